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

import hashlib
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import IO, Optional

from ..config import ObjectFileSystemConfig
from ..filesystem import FileSystem
from ..types import NotFoundError, ObjectClient, ObjectMetadata, StoreFamily


@dataclass
class _StoredObject:
    data: bytes
    last_modified: datetime
    etag: str
    server_side_encryption: Optional[str] = None


class InMemoryClient(ObjectClient):
    """
    An :py:class:`ObjectClient` that keeps objects in a process-local dictionary.

    Writes are visible immediately. Useful for tests and for staging data between stores.
    """

    def __init__(self):
        self._objects: dict[tuple[str, str], _StoredObject] = {}
        self._lock = threading.Lock()

    def _lookup(self, bucket: str, key: str) -> _StoredObject:
        stored = self._objects.get((bucket, key))
        if stored is None:
            raise NotFoundError(f"Object {bucket}/{key} does not exist.")
        return stored

    def _store(self, bucket: str, key: str, data: bytes, server_side_encryption: Optional[str]) -> None:
        self._objects[(bucket, key)] = _StoredObject(
            data=data,
            last_modified=datetime.now(tz=timezone.utc),
            etag=hashlib.md5(data).hexdigest(),
            server_side_encryption=server_side_encryption,
        )

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        with self._lock:
            stored = self._lookup(bucket, key)
        return ObjectMetadata(
            key=key,
            content_length=len(stored.data),
            last_modified=stored.last_modified,
            etag=stored.etag,
        )

    def get_object(self, bucket: str, key: str) -> IO[bytes]:
        with self._lock:
            stored = self._lookup(bucket, key)
        return BytesIO(stored.data)

    def put_object(
        self,
        bucket: str,
        key: str,
        body: IO[bytes],
        server_side_encryption: Optional[str] = None,
    ) -> None:
        data = body.read()
        with self._lock:
            self._store(bucket, key, data, server_side_encryption)

    def copy_object(self, src_bucket: str, src_key: str, dest_bucket: str, dest_key: str) -> None:
        with self._lock:
            stored = self._lookup(src_bucket, src_key)
            self._store(dest_bucket, dest_key, stored.data, stored.server_side_encryption)

    def delete_object(self, bucket: str, key: str) -> None:
        # Deleting a missing key succeeds, as it does on S3.
        with self._lock:
            self._objects.pop((bucket, key), None)

    def server_side_encryption(self, bucket: str, key: str) -> Optional[str]:
        """
        :return: The encryption directive the object was stored with.
        """
        with self._lock:
            return self._lookup(bucket, key).server_side_encryption


class InMemoryFileSystem(FileSystem):
    """
    A :py:class:`FileSystem` over an :py:class:`InMemoryClient`. Closes never wait for visibility.
    """

    def __init__(self, client: Optional[InMemoryClient] = None, config: Optional[ObjectFileSystemConfig] = None):
        super().__init__(client or InMemoryClient(), config)

    @property
    def family(self) -> StoreFamily:
        return StoreFamily.MEMORY

    @property
    def name(self) -> str:
        return "In-Memory"

    @property
    def requires_consistency_wait(self) -> bool:
        return False

    def shares_store_with(self, other: Optional[FileSystem]) -> bool:
        # Each client owns its own dictionary of objects.
        return super().shares_store_with(other) and other.client is self.client  # type: ignore[union-attr]
