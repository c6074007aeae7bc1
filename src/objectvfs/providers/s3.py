# SPDX-FileCopyrightText: Copyright (c) 2024 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import io
import logging
from collections.abc import Callable
from typing import IO, Any, Optional, TypeVar, Union

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.credentials import RefreshableCredentials
from botocore.exceptions import ClientError, IncompleteReadError, ReadTimeoutError, ResponseStreamingError
from botocore.session import get_session

from ..config import ObjectFileSystemConfig
from ..filesystem import FileSystem
from ..types import (
    CredentialsProvider,
    NotFoundError,
    ObjectClient,
    ObjectMetadata,
    ObjectVFSError,
    RemoteError,
    RetryableError,
    StoreFamily,
)

_T = TypeVar("_T")

MiB = 1024 * 1024

MULTIPART_THRESHOLD = 64 * MiB
MULTIPART_CHUNKSIZE = 32 * MiB
IO_CHUNKSIZE = 32 * MiB
PYTHON_MAX_CONCURRENCY = 8
MAX_POOL_CONNECTIONS = 64

NOT_FOUND_ERROR_CODES = ("NoSuchKey", "NotFound", "404")

logger = logging.getLogger(__name__)


def _translate_errors(func: Callable[[], _T], operation: str, bucket: str, key: str) -> _T:
    """
    Translates errors like timeouts and client errors.

    :param func: The function that performs the actual S3 operation.
    :param operation: The type of operation being performed (e.g., "PUT", "GET", "DELETE").
    :param bucket: The name of the S3 bucket involved in the operation.
    :param key: The key of the object within the S3 bucket.

    :return: The result of the S3 operation, typically the return value of the `func` callable.
    """
    try:
        return func()
    except ClientError as error:
        status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        request_id = error.response.get("ResponseMetadata", {}).get("RequestId")
        error_code = error.response.get("Error", {}).get("Code")
        error_info = f"request_id: {request_id}, status_code: {status_code}, error_code: {error_code}"

        if status_code == 404 or error_code in NOT_FOUND_ERROR_CODES:
            raise NotFoundError(f"Object {bucket}/{key} does not exist. {error_info}") from error
        elif status_code in (429, 503):
            raise RetryableError(
                f"Service throttled or unavailable when {operation} object at {bucket}/{key}. {error_info}"
            ) from error
        else:
            raise RemoteError(f"Failed to {operation} object at {bucket}/{key}. {error_info}") from error
    except (ReadTimeoutError, IncompleteReadError, ResponseStreamingError) as error:
        raise RetryableError(
            f"Failed to {operation} object at {bucket}/{key} due to network timeout or incomplete read. "
            f"error_type: {type(error).__name__}"
        ) from error
    except ObjectVFSError:
        raise
    except Exception as error:
        raise RemoteError(
            f"Failed to {operation} object at {bucket}/{key}, error type: {type(error).__name__}, error: {error}"
        ) from error


class _S3ObjectStream(io.RawIOBase):
    """
    Readable stream over a GET response body that reports read failures as :py:class:`RemoteError`.
    """

    def __init__(self, body: Any, bucket: str, key: str):
        self._body = body
        self._bucket = bucket
        self._key = key

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        amount = None if size is None or size < 0 else size
        return _translate_errors(lambda: self._body.read(amount), "GET", self._bucket, self._key)

    def readinto(self, b: Any) -> int:
        data = self.read(len(b))
        b[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self._body.close()
        super().close()


class S3Client(ObjectClient):
    """
    An :py:class:`ObjectClient` for Amazon S3 or S3-compatible object stores, built on ``boto3``.
    """

    def __init__(
        self,
        region_name: str = "",
        endpoint_url: str = "",
        credentials_provider: Optional[CredentialsProvider] = None,
        s3_client: Any = None,
        verify: Optional[Union[bool, str]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Initializes the :py:class:`S3Client` with the region, endpoint URL, and optional credentials provider.

        :param region_name: The AWS region where the S3 bucket is located.
        :param endpoint_url: The custom endpoint URL for the S3 service.
        :param credentials_provider: The provider to retrieve S3 credentials.
        :param s3_client: A preconfigured ``boto3`` S3 client. When given, the other connection options are ignored.
        :param verify: Controls SSL certificate verification. Can be ``True`` (verify using system CA bundle, default),
            ``False`` (skip verification), or a string path to a custom CA certificate bundle.
        """
        self._region_name = region_name
        self._endpoint_url = endpoint_url
        self._credentials_provider = credentials_provider
        self._verify = verify

        self._s3_client = s3_client or self._create_s3_client(
            max_pool_connections=kwargs.get("max_pool_connections", MAX_POOL_CONNECTIONS),
            connect_timeout=kwargs.get("connect_timeout"),
            read_timeout=kwargs.get("read_timeout"),
            retries=kwargs.get("retries"),
        )
        self._transfer_config = TransferConfig(
            multipart_threshold=int(kwargs.get("multipart_threshold", MULTIPART_THRESHOLD)),
            max_concurrency=int(kwargs.get("max_concurrency", PYTHON_MAX_CONCURRENCY)),
            multipart_chunksize=int(kwargs.get("multipart_chunksize", MULTIPART_CHUNKSIZE)),
            io_chunksize=int(kwargs.get("io_chunksize", IO_CHUNKSIZE)),
            use_threads=True,
        )

    def _create_s3_client(
        self,
        max_pool_connections: int = MAX_POOL_CONNECTIONS,
        connect_timeout: Union[float, int, None] = None,
        read_timeout: Union[float, int, None] = None,
        retries: Optional[dict[str, Any]] = None,
    ):
        """
        Creates and configures the boto3 S3 client, using refreshable credentials if possible.

        :param max_pool_connections: The maximum number of connections to keep in a connection pool.
        :param connect_timeout: The time in seconds till a timeout exception is thrown when attempting to make a connection.
        :param read_timeout: The time in seconds till a timeout exception is thrown when attempting to read from a connection.
        :param retries: A dictionary for configuration related to retry behavior.

        :return: The configured S3 client.
        """
        options = {
            # https://botocore.amazonaws.com/v1/documentation/api/latest/reference/config.html
            "config": boto3.session.Config(  # pyright: ignore [reportAttributeAccessIssue]
                max_pool_connections=max_pool_connections,
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries=retries or {"mode": "standard"},
            ),
        }

        if self._region_name:
            options["region_name"] = self._region_name

        if self._endpoint_url:
            options["endpoint_url"] = self._endpoint_url

        if self._verify is not None:
            options["verify"] = self._verify

        if self._credentials_provider:
            creds = self._fetch_credentials()
            if creds["expiry_time"]:
                # Use RefreshableCredentials if expiry_time provided.
                refreshable_credentials = RefreshableCredentials.create_from_metadata(
                    metadata=creds, refresh_using=self._fetch_credentials, method="custom-refresh"
                )

                botocore_session = get_session()
                botocore_session._credentials = refreshable_credentials

                boto3_session = boto3.Session(botocore_session=botocore_session)

                return boto3_session.client("s3", **options)
            else:
                options["aws_access_key_id"] = creds["access_key"]
                options["aws_secret_access_key"] = creds["secret_key"]
                if creds["token"]:
                    options["aws_session_token"] = creds["token"]

        # Fallback to standard credential chain.
        return boto3.client("s3", **options)

    def _fetch_credentials(self) -> dict:
        if not self._credentials_provider:
            raise RuntimeError("Cannot fetch credentials if no credential provider configured.")
        self._credentials_provider.refresh_credentials()
        credentials = self._credentials_provider.get_credentials()
        if credentials.is_expired():
            raise RemoteError(f"Credentials provider returned credentials that expired at {credentials.expiration}")
        return {
            "access_key": credentials.access_key,
            "secret_key": credentials.secret_key,
            "token": credentials.token,
            "expiry_time": credentials.expiration,
        }

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        def _invoke_api() -> ObjectMetadata:
            response = self._s3_client.head_object(Bucket=bucket, Key=key)
            return ObjectMetadata(
                key=key,
                content_length=response["ContentLength"],
                last_modified=response["LastModified"],
                content_type=response.get("ContentType"),
                etag=response["ETag"].strip('"') if "ETag" in response else None,
            )

        return _translate_errors(_invoke_api, operation="HEAD", bucket=bucket, key=key)

    def get_object(self, bucket: str, key: str) -> IO[bytes]:
        def _invoke_api() -> IO[bytes]:
            response = self._s3_client.get_object(Bucket=bucket, Key=key)
            return _S3ObjectStream(response["Body"], bucket, key)  # type: ignore[return-value]

        return _translate_errors(_invoke_api, operation="GET", bucket=bucket, key=key)

    def put_object(
        self,
        bucket: str,
        key: str,
        body: IO[bytes],
        server_side_encryption: Optional[str] = None,
    ) -> None:
        body.seek(0, io.SEEK_END)
        size = body.tell()
        body.seek(0)

        extra_args = {}
        if server_side_encryption:
            extra_args["ServerSideEncryption"] = server_side_encryption

        def _invoke_api() -> None:
            if size <= self._transfer_config.multipart_threshold:
                self._s3_client.put_object(Bucket=bucket, Key=key, Body=body, **extra_args)
            else:
                # Large bodies go through the transfer manager, which switches to a multipart upload.
                logger.debug(f"Uploading {size} bytes to {bucket}/{key} with multipart upload")
                self._s3_client.upload_fileobj(
                    Fileobj=body,
                    Bucket=bucket,
                    Key=key,
                    Config=self._transfer_config,
                    ExtraArgs=extra_args,
                )

        _translate_errors(_invoke_api, operation="PUT", bucket=bucket, key=key)

    def copy_object(self, src_bucket: str, src_key: str, dest_bucket: str, dest_key: str) -> None:
        def _invoke_api() -> None:
            self._s3_client.copy_object(
                CopySource={"Bucket": src_bucket, "Key": src_key},
                Bucket=dest_bucket,
                Key=dest_key,
            )

        _translate_errors(_invoke_api, operation="COPY", bucket=dest_bucket, key=dest_key)

    def delete_object(self, bucket: str, key: str) -> None:
        def _invoke_api() -> None:
            self._s3_client.delete_object(Bucket=bucket, Key=key)

        _translate_errors(_invoke_api, operation="DELETE", bucket=bucket, key=key)


class S3FileSystem(FileSystem):
    """
    A :py:class:`FileSystem` for Amazon S3 or S3-compatible object stores.
    """

    def __init__(
        self,
        client: Optional[S3Client] = None,
        config: Optional[ObjectFileSystemConfig] = None,
        **client_options: Any,
    ):
        """
        :param client: The S3 client to use. A new :py:class:`S3Client` is built from ``client_options`` when omitted.
        :param config: Settings shared by the files of this filesystem.
        """
        super().__init__(client or S3Client(**client_options), config)

    @property
    def family(self) -> StoreFamily:
        return StoreFamily.S3

    @property
    def name(self) -> str:
        return "AWS S3"
