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

from dataclasses import dataclass, fields
from typing import Any, Optional

from .types import DEFAULT_SERVER_SIDE_ENCRYPTION

MiB = 1024 * 1024

DEFAULT_WAIT_RETRIES = 5
DEFAULT_WAIT_INTERVAL = 1.0
DEFAULT_CHUNK_SIZE = 1 * MiB

#: Retry budget that disables the post-write visibility check.
SKIP_WAIT = -1


@dataclass
class ObjectFileSystemConfig:
    """
    A data class that represents the settings shared by every file of a filesystem.
    """

    #: How many times to re-check visibility after a write. ``-1`` skips the check.
    wait_retries: int = DEFAULT_WAIT_RETRIES
    #: Delay (in seconds) between two visibility checks. Must be a non-negative value.
    wait_interval: float = DEFAULT_WAIT_INTERVAL
    #: Server-side encryption directive sent with every write. ``None`` sends no directive.
    server_side_encryption: Optional[str] = DEFAULT_SERVER_SIDE_ENCRYPTION
    #: Directory for local mirrors. ``None`` uses the system temporary directory.
    temp_dir: Optional[str] = None
    #: Chunk size (in bytes) for streamed copies and downloads.
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.wait_retries < SKIP_WAIT:
            raise ValueError(f"Wait retries must be at least {SKIP_WAIT}.")
        if self.wait_interval < 0:
            raise ValueError("Wait interval must be a non-negative number.")
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be a positive number.")

    @staticmethod
    def from_dict(config_dict: dict[str, Any]) -> "ObjectFileSystemConfig":
        """
        Creates an :py:class:`ObjectFileSystemConfig` from a dictionary, e.g. a parsed YAML or JSON document.

        :param config_dict: The configuration options. Unknown keys are rejected.
        """
        known = {f.name for f in fields(ObjectFileSystemConfig)}
        unknown = set(config_dict) - known
        if unknown:
            raise ValueError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
        return ObjectFileSystemConfig(**config_dict)
