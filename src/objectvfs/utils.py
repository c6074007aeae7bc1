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

import posixpath
import shutil
from typing import Any

from .config import DEFAULT_CHUNK_SIZE


class _CountingWriter:
    def __init__(self, writer: Any):
        self._writer = writer
        self.count = 0

    def write(self, data: Any) -> int:
        written = self._writer.write(data)
        self.count += len(data)
        return written


def touch_copy(writer: Any, reader: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """
    Copy every byte from ``reader`` to ``writer``.

    When the reader is empty an empty write is still issued, so writers that only create their target
    on first write (e.g. buffered object files) end up with an empty object instead of none.

    :return: The number of bytes copied.
    """
    counter = _CountingWriter(writer)
    shutil.copyfileobj(reader, counter, chunk_size)
    if counter.count == 0:
        writer.write(b"")
    return counter.count


def split_key(key: str) -> tuple[str, str]:
    """
    Split an object key into its parent path and basename, e.g. ``a/b/c.txt`` into ``("a/b", "c.txt")``.
    """
    parent, name = posixpath.split(key)
    return parent, name


def clean_prefix(path: str) -> str:
    """
    Strip leading path separators so a key is relative to its bucket.
    """
    return path.lstrip("/")


def join_key(path: str, name: str) -> str:
    """
    Join a location path and a file name into an object key.
    """
    path = path.strip("/")
    return f"{path}/{name}" if path else name
