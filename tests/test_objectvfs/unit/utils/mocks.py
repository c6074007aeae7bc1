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

from typing import IO, Optional

from objectvfs.config import ObjectFileSystemConfig
from objectvfs.providers.memory import InMemoryClient, InMemoryFileSystem
from objectvfs.types import NotFoundError, ObjectMetadata


class RecordingClient(InMemoryClient):
    """
    An in-memory client that records every request and can be told to fail specific operations.
    """

    def __init__(self):
        super().__init__()
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        self._record("head_object")
        return super().head_object(bucket, key)

    def get_object(self, bucket: str, key: str) -> IO[bytes]:
        self._record("get_object")
        return super().get_object(bucket, key)

    def put_object(self, bucket: str, key: str, body: IO[bytes], server_side_encryption: Optional[str] = None) -> None:
        self._record("put_object")
        super().put_object(bucket, key, body, server_side_encryption=server_side_encryption)

    def copy_object(self, src_bucket: str, src_key: str, dest_bucket: str, dest_key: str) -> None:
        self._record("copy_object")
        super().copy_object(src_bucket, src_key, dest_bucket, dest_key)

    def delete_object(self, bucket: str, key: str) -> None:
        self._record("delete_object")
        super().delete_object(bucket, key)


class LaggingClient(RecordingClient):
    """
    A recording client whose HEAD requests miss a freshly written object ``lag`` times.
    """

    def __init__(self, lag: int):
        super().__init__()
        self._lag = lag
        self._misses = 0

    def put_object(self, bucket: str, key: str, body: IO[bytes], server_side_encryption: Optional[str] = None) -> None:
        super().put_object(bucket, key, body, server_side_encryption=server_side_encryption)
        self._misses = self._lag

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        if self._misses > 0:
            self.calls.append("head_object")
            self._misses -= 1
            raise NotFoundError(f"Object {bucket}/{key} does not exist.")
        return super().head_object(bucket, key)


class EventuallyConsistentFileSystem(InMemoryFileSystem):
    """
    An in-memory filesystem that waits for visibility on close, like a remote object store.
    """

    def __init__(self, client: InMemoryClient, wait_retries: int = 3):
        super().__init__(client, ObjectFileSystemConfig(wait_retries=wait_retries, wait_interval=0))

    @property
    def requires_consistency_wait(self) -> bool:
        return True
