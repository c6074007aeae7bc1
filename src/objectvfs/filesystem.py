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
from typing import Optional

from .config import ObjectFileSystemConfig
from .file import ObjectFile
from .types import ObjectClient, StoreFamily
from .utils import join_key


class FileSystem(ABC):
    """
    Abstract base class for a family of object stores reachable through one :py:class:`ObjectClient`.

    Files whose filesystems report the same :py:attr:`family` are copied with the store's native copy
    instead of streaming their bytes through this process.
    """

    _client: ObjectClient
    _config: ObjectFileSystemConfig

    def __init__(self, client: ObjectClient, config: Optional[ObjectFileSystemConfig] = None):
        self._client = client
        self._config = config or ObjectFileSystemConfig()

    @property
    @abstractmethod
    def family(self) -> StoreFamily:
        """
        :return: The store family of this filesystem.
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """
        :return: A human readable name of the store, e.g. ``AWS S3``.
        """
        pass

    @property
    def scheme(self) -> str:
        return self.family.value

    @property
    def requires_consistency_wait(self) -> bool:
        """
        :return: ``True`` if written objects may not be visible right away and closes should wait for them.
        """
        return True

    @property
    def client(self) -> ObjectClient:
        return self._client

    @property
    def config(self) -> ObjectFileSystemConfig:
        return self._config

    def shares_store_with(self, other: Optional[FileSystem]) -> bool:
        """
        Check whether ``other`` addresses the same objects as this filesystem, so that this filesystem's
        client can copy between them natively.

        :param other: The filesystem of the copy destination. ``None`` for targets outside any filesystem.
        """
        return other is not None and other.family == self.family

    def new_file(self, bucket: str, key: str) -> ObjectFile:
        """
        Create a file handle. No request is sent to the store.

        :raises ValueError: If ``bucket`` or ``key`` is empty.
        """
        return ObjectFile(self, bucket, key)

    def new_location(self, bucket: str, path: str = "") -> Location:
        return Location(self, bucket, path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(family={self.family.value!r})"


class Location:
    """
    A path prefix within one bucket of a filesystem, e.g. ``s3://bucket/some/path/``.
    """

    def __init__(self, filesystem: FileSystem, bucket: str, path: str = ""):
        if filesystem is None:
            raise ValueError("A filesystem is required")
        if not bucket:
            raise ValueError("A non-empty bucket is required")
        self._filesystem = filesystem
        self._bucket = bucket
        self._path = path.strip("/")

    @property
    def filesystem(self) -> FileSystem:
        return self._filesystem

    @property
    def family(self) -> StoreFamily:
        return self._filesystem.family

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def path(self) -> str:
        """
        :return: The prefix within the bucket, without leading or trailing separators.
        """
        return self._path

    @property
    def uri(self) -> str:
        prefix = f"{self._path}/" if self._path else ""
        return f"{self._filesystem.scheme}://{self._bucket}/{prefix}"

    def new_file(self, name: str) -> ObjectFile:
        return self._filesystem.new_file(self._bucket, join_key(self._path, name))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self._filesystem is other._filesystem and self.uri == other.uri

    def __hash__(self) -> int:
        return hash(self.uri)

    def __str__(self) -> str:
        return self.uri

    def __repr__(self) -> str:
        return f"Location({self.uri!r})"
