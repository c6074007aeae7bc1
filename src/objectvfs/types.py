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

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import IO, Any, Optional

from dateutil.parser import parse as dateutil_parser

DEFAULT_SERVER_SIDE_ENCRYPTION = "AES256"


class StoreFamily(str, Enum):
    """
    Enum of the store families a file can live in. The value doubles as the URI scheme.

    Two files share a family when one store's native copy can move data between them.
    """

    S3 = "s3"
    FILE = "file"
    MEMORY = "mem"


@dataclass
class Credentials:
    """
    A data class representing the credentials needed to access an object store.
    """

    #: The access key for authentication.
    access_key: str
    #: The secret key for authentication.
    secret_key: str
    #: An optional security token for temporary credentials.
    token: Optional[str]
    #: The expiration time of the credentials in ISO 8601 format.
    expiration: Optional[str]

    def is_expired(self) -> bool:
        """
        Checks if the credentials are expired based on the expiration time.

        :return: ``True`` if the credentials are expired, ``False`` otherwise.
        """
        expiry = dateutil_parser(self.expiration) if self.expiration else None
        if expiry is None:
            return False
        return expiry <= datetime.now(tz=timezone.utc)


class CredentialsProvider(ABC):
    """
    Abstract base class for providing credentials to access an object store.
    """

    @abstractmethod
    def get_credentials(self) -> Credentials:
        """
        Retrieves the current credentials.

        :return: The current credentials used for authentication.
        """
        pass

    @abstractmethod
    def refresh_credentials(self) -> None:
        """
        Refreshes the credentials if they are expired or about to expire.
        """
        pass


class StaticCredentialsProvider(CredentialsProvider):
    """
    A :py:class:`CredentialsProvider` that always hands out the same credentials.
    """

    def __init__(self, access_key: str, secret_key: str, session_token: Optional[str] = None):
        self._access_key = access_key
        self._secret_key = secret_key
        self._session_token = session_token

    def get_credentials(self) -> Credentials:
        return Credentials(
            access_key=self._access_key,
            secret_key=self._secret_key,
            token=self._session_token,
            expiration=None,
        )

    def refresh_credentials(self) -> None:
        pass


@dataclass
class ObjectMetadata:
    """
    A data class that represents the metadata returned by a HEAD request against a stored object.
    """

    #: Key of the object within its bucket.
    key: str
    #: The size of the object in bytes.
    content_length: int
    #: The timestamp indicating when the object was last modified.
    last_modified: datetime
    #: The MIME type of the object.
    content_type: Optional[str] = field(default=None)
    #: The entity tag (ETag) of the object.
    etag: Optional[str] = field(default=None)


class ObjectClient(ABC):
    """
    Abstract base class for the requests a file issues against an object store.

    Every operation is addressed by ``(bucket, key)``. Implementations translate their native
    errors into :py:class:`NotFoundError` and :py:class:`RemoteError`.
    """

    @abstractmethod
    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        """
        Retrieves metadata about an object without fetching its content.

        :param bucket: The bucket holding the object.
        :param key: The key of the object.

        :return: The metadata of the object.
        :raises NotFoundError: If the object does not exist.
        """
        pass

    @abstractmethod
    def get_object(self, bucket: str, key: str) -> IO[bytes]:
        """
        Retrieves the full content of an object.

        :param bucket: The bucket holding the object.
        :param key: The key of the object.

        :return: A readable binary stream over the object content. The caller closes it.
        :raises NotFoundError: If the object does not exist.
        """
        pass

    @abstractmethod
    def put_object(
        self,
        bucket: str,
        key: str,
        body: IO[bytes],
        server_side_encryption: Optional[str] = None,
    ) -> None:
        """
        Stores an object, replacing any existing object with the same key.

        :param bucket: The bucket to store the object in.
        :param key: The key of the object.
        :param body: A seekable binary stream positioned at the start of the content.
        :param server_side_encryption: The server-side encryption directive, e.g. ``AES256``.
        """
        pass

    @abstractmethod
    def copy_object(self, src_bucket: str, src_key: str, dest_bucket: str, dest_key: str) -> None:
        """
        Copies an object within the store without moving data through this process.

        :param src_bucket: The bucket of the source object.
        :param src_key: The key of the source object.
        :param dest_bucket: The bucket of the destination object.
        :param dest_key: The key of the destination object.
        """
        pass

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """
        Deletes an object.

        :param bucket: The bucket holding the object.
        :param key: The key of the object.
        """
        pass


class ObjectVFSError(Exception):
    """
    Base class for errors raised by objectvfs.
    """

    pass


class NotFoundError(ObjectVFSError, FileNotFoundError):
    """
    Exception raised when an object does not exist in the store.
    """

    pass


class RemoteError(ObjectVFSError):
    """
    Exception raised for transport or service failures reported by an object store.
    """

    pass


class RetryableError(RemoteError):
    """
    Exception raised for remote failures that may succeed when retried, e.g. throttling.
    """

    pass


class ConsistencyTimeoutError(ObjectVFSError, TimeoutError):
    """
    Exception raised when a written object did not become visible within the retry budget.
    """

    pass


class PollError(ObjectVFSError):
    """
    Exception raised when the visibility of an object could not be determined while polling.
    """

    pass


class LocalIOError(ObjectVFSError, OSError):
    """
    Exception raised when the local temporary copy of an object cannot be created, written or seeked.
    """

    pass


class AggregatedError(ObjectVFSError):
    """
    Exception raised when one or more independent cleanup steps fail.

    The individual failures are kept in :py:attr:`errors` in the order they happened.
    """

    def __init__(self, message: str, errors: list[BaseException]):
        details = "; ".join(f"{type(error).__name__}: {error}" for error in errors)
        super().__init__(f"{message}: {details}" if details else message)
        self.errors = errors

    @property
    def first(self) -> Optional[BaseException]:
        return self.errors[0] if self.errors else None


class PartialMoveError(ObjectVFSError):
    """
    Exception raised when a move copied the object but failed to delete the source.

    The data now exists in both places. :py:attr:`new_file` is the destination file.
    """

    def __init__(self, message: str, new_file: Any):
        super().__init__(message)
        self.new_file = new_file
