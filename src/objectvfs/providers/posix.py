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

import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from datetime import datetime, timezone
from typing import IO, Optional, TypeVar

from ..config import ObjectFileSystemConfig
from ..filesystem import FileSystem
from ..types import NotFoundError, ObjectClient, ObjectMetadata, RemoteError, StoreFamily

_T = TypeVar("_T")

logger = logging.getLogger(__name__)


def _translate_errors(func: Callable[[], _T], operation: str, bucket: str, key: str) -> _T:
    try:
        return func()
    except FileNotFoundError as error:
        raise NotFoundError(f"Object {bucket}/{key} does not exist.") from error
    except OSError as error:
        raise RemoteError(
            f"Failed to {operation} object at {bucket}/{key}, error type: {type(error).__name__}, error: {error}"
        ) from error


class PosixClient(ObjectClient):
    """
    An :py:class:`ObjectClient` over a local directory. Each bucket is a sub-directory of ``base_path``.

    Writes go to a temporary file next to the target and are renamed into place, so readers see either
    the old or the new content. Server-side encryption directives are ignored.
    """

    def __init__(self, base_path: str):
        if not base_path:
            raise ValueError("A non-empty base_path is required")
        self._base_path = os.path.abspath(base_path)

    @property
    def base_path(self) -> str:
        return self._base_path

    def _real_path(self, bucket: str, key: str) -> str:
        real_path = os.path.normpath(os.path.join(self._base_path, bucket, key))
        if os.path.commonpath([self._base_path, real_path]) != self._base_path or real_path == self._base_path:
            raise ValueError(f"Object {bucket}/{key} resolves outside of {self._base_path}")
        return real_path

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        real_path = self._real_path(bucket, key)

        def _invoke_api() -> ObjectMetadata:
            if not os.path.isfile(real_path):
                raise FileNotFoundError(real_path)
            stat = os.stat(real_path)
            return ObjectMetadata(
                key=key,
                content_length=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            )

        return _translate_errors(_invoke_api, operation="HEAD", bucket=bucket, key=key)

    def get_object(self, bucket: str, key: str) -> IO[bytes]:
        real_path = self._real_path(bucket, key)
        return _translate_errors(lambda: open(real_path, "rb"), operation="GET", bucket=bucket, key=key)

    def put_object(
        self,
        bucket: str,
        key: str,
        body: IO[bytes],
        server_side_encryption: Optional[str] = None,
    ) -> None:
        real_path = self._real_path(bucket, key)

        def _invoke_api() -> None:
            os.makedirs(os.path.dirname(real_path), exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="wb", delete=False, dir=os.path.dirname(real_path), prefix="."
            ) as fp:
                temp_file_path = fp.name
            try:
                with open(temp_file_path, "wb") as fp:
                    shutil.copyfileobj(body, fp)
                os.replace(temp_file_path, real_path)
            except Exception:
                os.unlink(temp_file_path)
                raise

        _translate_errors(_invoke_api, operation="PUT", bucket=bucket, key=key)

    def copy_object(self, src_bucket: str, src_key: str, dest_bucket: str, dest_key: str) -> None:
        src_path = self._real_path(src_bucket, src_key)
        dest_path = self._real_path(dest_bucket, dest_key)

        def _invoke_api() -> None:
            if not os.path.isfile(src_path):
                raise FileNotFoundError(src_path)
            os.makedirs(os.path.dirname(dest_path), exist_ok=True)
            shutil.copy2(src_path, dest_path)

        _translate_errors(_invoke_api, operation="COPY", bucket=src_bucket, key=src_key)

    def delete_object(self, bucket: str, key: str) -> None:
        real_path = self._real_path(bucket, key)

        def _invoke_api() -> None:
            try:
                os.remove(real_path)
            except FileNotFoundError:
                logger.debug(f"{real_path} already removed")

        _translate_errors(_invoke_api, operation="DELETE", bucket=bucket, key=key)


class PosixFileSystem(FileSystem):
    """
    A :py:class:`FileSystem` over a local directory. Closes never wait for visibility.
    """

    def __init__(self, base_path: str, config: Optional[ObjectFileSystemConfig] = None):
        super().__init__(PosixClient(base_path), config)

    @property
    def family(self) -> StoreFamily:
        return StoreFamily.FILE

    @property
    def name(self) -> str:
        return "POSIX"

    @property
    def requires_consistency_wait(self) -> bool:
        return False

    def shares_store_with(self, other: Optional[FileSystem]) -> bool:
        if not super().shares_store_with(other):
            return False
        return isinstance(other.client, PosixClient) and other.client.base_path == self.client.base_path  # type: ignore[union-attr]
