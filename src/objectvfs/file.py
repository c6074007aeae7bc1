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

from __future__ import annotations  # Enables forward references in type hints

import logging
import os
from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from .buffer import WriteBuffer
from .consistency import wait_until_exists
from .mirror import LocalMirror
from .types import AggregatedError, NotFoundError, ObjectMetadata, ObjectVFSError, PartialMoveError
from .utils import clean_prefix, join_key, split_key, touch_copy

if TYPE_CHECKING:
    from .filesystem import FileSystem, Location

logger = logging.getLogger(__name__)


class ObjectFile:
    """
    A file-like object over a single object in an object store.

    Reads and seeks are served from a local temporary copy of the whole object, downloaded on first use.
    Writes are buffered in memory and stored as one object when the file is closed; the close then waits
    until the written object is visible. Nothing is sent to the store before the first operation that
    needs it.

    Reading and writing may be mixed in one session. A closed file can be used again: the next read
    downloads a fresh copy and the next write starts a new buffer.
    """

    _filesystem: FileSystem
    _bucket: str
    _key: str

    _mirror: Optional[LocalMirror] = None
    _write_buffer: Optional[WriteBuffer] = None

    def __init__(self, filesystem: FileSystem, bucket: str, key: str):
        """
        Initialize the ObjectFile instance.

        :param filesystem: The filesystem the object belongs to.
        :param bucket: The bucket holding the object.
        :param key: The key of the object. Leading separators are removed.

        :raises ValueError: If ``filesystem`` is missing or ``bucket`` or ``key`` is empty.
        """
        if filesystem is None:
            raise ValueError("A filesystem is required")
        key = clean_prefix(key or "")
        if not bucket or not key:
            raise ValueError("Non-empty strings for bucket and key are required")

        self._filesystem = filesystem
        self._bucket = bucket
        self._key = key

    # Identity

    @property
    def filesystem(self) -> FileSystem:
        return self._filesystem

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def key(self) -> str:
        return self._key

    @property
    def name(self) -> str:
        """
        :return: The basename of the key, e.g. ``file.txt`` for ``s3://bucket/path/to/file.txt``.
        """
        return split_key(self._key)[1]

    @property
    def path(self) -> str:
        """
        :return: The full key with a leading separator, e.g. ``/path/to/file.txt``.
        """
        return "/" + self._key

    @property
    def uri(self) -> str:
        return f"{self._filesystem.scheme}://{self._bucket}/{self._key}"

    def location(self) -> Location:
        """
        :return: The location holding this file, e.g. ``s3://bucket/path/to/`` for ``s3://bucket/path/to/file.txt``.
        """
        return self._filesystem.new_location(self._bucket, split_key(self._key)[0])

    # Metadata

    def _head(self) -> ObjectMetadata:
        return self._filesystem.client.head_object(self._bucket, self._key)

    def exists(self) -> bool:
        """
        Check whether the object exists in the store.

        :return: ``False`` only when the store reports the object as absent.
        :raises RemoteError: For any other failure.
        """
        try:
            self._head()
        except NotFoundError:
            return False
        return True

    def last_modified(self) -> datetime:
        return self._head().last_modified

    def size(self) -> int:
        return self._head().content_length

    # Reads

    def _materialize(self) -> LocalMirror:
        if self._mirror is None:
            config = self._filesystem.config
            self._mirror = LocalMirror.materialize(
                self._filesystem.client,
                self._bucket,
                self._key,
                self.name,
                temp_dir=config.temp_dir,
                chunk_size=config.chunk_size,
            )
        return self._mirror

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        return self._materialize().read(size)

    def readinto(self, b: Any) -> int:
        return self._materialize().readinto(b)

    def readline(self, size: int = -1) -> bytes:
        return self._materialize().readline(size)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._materialize().seek(offset, whence)

    def tell(self) -> int:
        return self._materialize().tell()

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        line = self.readline()
        if not line:
            raise StopIteration
        return line

    # Writes

    def write(self, data: Any) -> int:
        """
        Buffer ``data`` for the upload that happens on :py:meth:`close`.

        :return: The number of bytes accepted, always ``len(data)``.
        """
        if self._write_buffer is None:
            self._write_buffer = WriteBuffer()
        return self._write_buffer.write(data)

    def writelines(self, lines: Iterable[Any]) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        # Buffered bytes are only stored on close.
        pass

    def close(self) -> None:
        """
        Release the local copy, store any buffered writes and wait until they are visible.

        Every step runs even if an earlier one failed. Closing a file with nothing to release or
        store sends no request.

        :raises AggregatedError: If any step failed.
        """
        errors: list[BaseException] = []

        if self._mirror is not None:
            mirror, self._mirror = self._mirror, None
            try:
                mirror.release()
            except Exception as error:
                logger.warning(f"Failed to release local copy of {self.uri}: {error}")
                errors.append(error)

        committed = False
        if self._write_buffer is not None:
            # Drop the buffer before committing so a failed commit is never submitted twice.
            write_buffer, self._write_buffer = self._write_buffer, None
            try:
                write_buffer.commit(
                    self._filesystem.client,
                    self._bucket,
                    self._key,
                    server_side_encryption=self._filesystem.config.server_side_encryption,
                )
                committed = True
            except Exception as error:
                logger.warning(f"Failed to store {self.uri}: {error}")
                errors.append(error)

        if committed and self._filesystem.requires_consistency_wait:
            config = self._filesystem.config
            try:
                wait_until_exists(self, config.wait_retries, config.wait_interval)
            except ObjectVFSError as error:
                errors.append(error)

        if errors:
            raise AggregatedError(f"Failed to close {self.uri}", errors) from errors[0]

    def __enter__(self) -> ObjectFile:
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.close()

    # Delete, copy and move

    def delete(self) -> None:
        """
        Delete the object. Buffered writes that were not stored yet are discarded, not uploaded.

        :raises AggregatedError: If releasing the local copy fails; the object is not deleted then.
        """
        if self._write_buffer is not None:
            logger.debug(f"Discarding {len(self._write_buffer)} unstored bytes of {self.uri} before delete")
            self._write_buffer = None
        self.close()
        self._filesystem.client.delete_object(self._bucket, self._key)

    def _shares_store_with(self, filesystem: Optional[FileSystem]) -> bool:
        return self._filesystem.shares_store_with(filesystem)

    def _stream_to(self, target: Any) -> None:
        touch_copy(target, self, self._filesystem.config.chunk_size)
        # Closing the target stores it before the caller can reopen it for reads.
        target.close()
        self.close()

    def copy_to_file(self, target: Any) -> None:
        """
        Copy the content of this file into ``target``.

        A target in the same store family is written with the store's native copy. Any other target,
        including plain writable file objects, receives the bytes through this process and is closed
        afterwards, as is this file.
        """
        if self._shares_store_with(getattr(target, "filesystem", None)):
            logger.debug(f"Native copy {self.uri} -> {target.uri}")
            self._filesystem.client.copy_object(self._bucket, self._key, target.bucket, target.key)
            return

        logger.debug(f"Streaming copy {self.uri} -> {target}")
        self._stream_to(target)

    def copy_to_location(self, location: Location) -> ObjectFile:
        """
        Copy this file into ``location`` under the same name.

        :return: The new file. After a native copy it is returned without checking that it is visible yet.
        """
        dest_key = join_key(location.path, self.name)

        if self._shares_store_with(location.filesystem):
            logger.debug(f"Native copy {self.uri} -> {location.uri}")
            self._filesystem.client.copy_object(self._bucket, self._key, location.bucket, dest_key)
            return location.filesystem.new_file(location.bucket, dest_key)

        new_file = location.filesystem.new_file(location.bucket, dest_key)
        logger.debug(f"Streaming copy {self.uri} -> {new_file.uri}")
        self._stream_to(new_file)
        return new_file

    def move_to_file(self, target: Any) -> None:
        """
        Copy this file into ``target``, then delete it. If the copy fails nothing is deleted.
        """
        self.copy_to_file(target)
        self.delete()

    def move_to_location(self, location: Location) -> ObjectFile:
        """
        Copy this file into ``location``, then delete it. If the copy fails nothing is deleted.

        :return: The new file.
        :raises PartialMoveError: If the copy succeeded but the delete failed. The new file is attached
            to the error as ``new_file`` and the delete error is its cause.
        """
        new_file = self.copy_to_location(location)
        try:
            self.delete()
        except ObjectVFSError as error:
            raise PartialMoveError(
                f"Copied {self.uri} to {new_file.uri} but failed to delete the source", new_file
            ) from error
        return new_file

    def __str__(self) -> str:
        return self.uri

    def __repr__(self) -> str:
        return f"ObjectFile({self.uri!r})"
