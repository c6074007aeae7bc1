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

import logging
import os
import shutil
import tempfile
import time
from typing import IO, Any, Optional

from .config import DEFAULT_CHUNK_SIZE
from .types import LocalIOError, ObjectClient, ObjectVFSError

logger = logging.getLogger(__name__)


class LocalMirror:
    """
    A temporary local copy of a whole remote object.

    Object stores only serve whole objects, so random access is provided by downloading the object once
    and serving every read and seek from a local temporary file. The temporary file is removed by
    :py:meth:`release`.
    """

    _file: IO[bytes]

    def __init__(self, file: IO[bytes]):
        self._file = file

    @classmethod
    def materialize(
        cls,
        client: ObjectClient,
        bucket: str,
        key: str,
        name: str,
        temp_dir: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> LocalMirror:
        """
        Download an object into a new temporary file and return a mirror positioned at offset 0.

        Nothing is left on disk when the download fails.

        :param client: The client used to retrieve the object.
        :param bucket: The bucket holding the object.
        :param key: The key of the object.
        :param name: The basename of the object, used as the temporary file prefix.
        :param temp_dir: The directory to create the temporary file in.
        :param chunk_size: The chunk size used to stream the object to disk.

        :raises NotFoundError: If the object does not exist.
        :raises RemoteError: If the object cannot be retrieved.
        :raises LocalIOError: If the temporary file cannot be created or written.
        """
        # time_ns keeps concurrent opens of same-named objects apart.
        prefix = f"{name}.{time.time_ns()}"
        try:
            temp_file = tempfile.NamedTemporaryFile(mode="w+b", prefix=prefix, dir=temp_dir, delete=False)
        except OSError as error:
            raise LocalIOError(f"Failed to create a temporary file for {bucket}/{key}") from error

        try:
            body = client.get_object(bucket, key)
            try:
                shutil.copyfileobj(body, temp_file, chunk_size)
            finally:
                body.close()
            temp_file.seek(0)
        except Exception as error:
            _discard(temp_file)
            if isinstance(error, OSError) and not isinstance(error, ObjectVFSError):
                raise LocalIOError(f"Failed to write {bucket}/{key} to {temp_file.name}") from error
            raise

        logger.debug(f"Materialized {bucket}/{key} at {temp_file.name}")
        return cls(temp_file)

    @property
    def name(self) -> str:
        return self._file.name

    def read(self, size: int = -1) -> bytes:
        return self._file.read(size)

    def readinto(self, b: Any) -> int:
        return self._file.readinto(b)  # type: ignore[attr-defined]

    def readline(self, size: int = -1) -> bytes:
        return self._file.readline(size)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        try:
            return self._file.seek(offset, whence)
        except OSError as error:
            raise LocalIOError(f"Failed to seek {self._file.name}") from error

    def tell(self) -> int:
        return self._file.tell()

    def release(self) -> None:
        """
        Close and remove the temporary file. A file that is already gone counts as released.

        :raises LocalIOError: If the temporary file cannot be removed.
        """
        try:
            self._file.close()
            os.remove(self._file.name)
        except FileNotFoundError:
            pass
        except OSError as error:
            raise LocalIOError(f"Failed to remove temporary file {self._file.name}") from error


def _discard(temp_file: IO[bytes]) -> None:
    temp_file.close()
    try:
        os.remove(temp_file.name)
    except FileNotFoundError:
        pass
