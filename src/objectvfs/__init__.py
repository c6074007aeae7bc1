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

from .config import SKIP_WAIT, ObjectFileSystemConfig
from .consistency import wait_until_exists
from .file import ObjectFile
from .filesystem import FileSystem, Location
from .providers import InMemoryClient, InMemoryFileSystem, PosixClient, PosixFileSystem, S3Client, S3FileSystem
from .types import (
    AggregatedError,
    ConsistencyTimeoutError,
    Credentials,
    CredentialsProvider,
    LocalIOError,
    NotFoundError,
    ObjectClient,
    ObjectMetadata,
    ObjectVFSError,
    PartialMoveError,
    PollError,
    RemoteError,
    RetryableError,
    StaticCredentialsProvider,
    StoreFamily,
)
from .utils import touch_copy

__all__ = [
    "SKIP_WAIT",
    "AggregatedError",
    "ConsistencyTimeoutError",
    "Credentials",
    "CredentialsProvider",
    "FileSystem",
    "InMemoryClient",
    "InMemoryFileSystem",
    "LocalIOError",
    "Location",
    "NotFoundError",
    "ObjectClient",
    "ObjectFile",
    "ObjectFileSystemConfig",
    "ObjectMetadata",
    "ObjectVFSError",
    "PartialMoveError",
    "PollError",
    "PosixClient",
    "PosixFileSystem",
    "RemoteError",
    "RetryableError",
    "S3Client",
    "S3FileSystem",
    "StaticCredentialsProvider",
    "StoreFamily",
    "touch_copy",
    "wait_until_exists",
]
