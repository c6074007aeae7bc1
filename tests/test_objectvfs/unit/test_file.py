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

import codecs
import csv
import os
from unittest import mock

import pytest

from objectvfs import (
    AggregatedError,
    ConsistencyTimeoutError,
    InMemoryFileSystem,
    LocalIOError,
    NotFoundError,
    ObjectFile,
    ObjectFileSystemConfig,
    RemoteError,
    StoreFamily,
)
from objectvfs.mirror import LocalMirror
from test_objectvfs.unit.utils.mocks import EventuallyConsistentFileSystem, LaggingClient, RecordingClient


@pytest.fixture
def client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def fs(client: RecordingClient, tmp_path) -> InMemoryFileSystem:
    return InMemoryFileSystem(client, ObjectFileSystemConfig(temp_dir=str(tmp_path)))


def _store(fs: InMemoryFileSystem, bucket: str, key: str, data: bytes) -> None:
    with fs.new_file(bucket, key) as file:
        file.write(data)


@pytest.mark.parametrize(
    argnames=["bucket", "key"],
    argvalues=[["", "a.txt"], ["docs", ""], ["docs", "/"], [None, "a.txt"], ["docs", None]],
)
def test_file_requires_bucket_and_key(fs: InMemoryFileSystem, bucket, key):
    with pytest.raises(ValueError):
        ObjectFile(fs, bucket, key)


def test_file_requires_filesystem():
    with pytest.raises(ValueError):
        ObjectFile(None, "docs", "a.txt")  # type: ignore[arg-type]


def test_file_construction_sends_no_request(fs: InMemoryFileSystem, client: RecordingClient):
    fs.new_file("docs", "a/b/report.txt")
    assert client.calls == []


def test_file_naming(fs: InMemoryFileSystem):
    file = fs.new_file("docs", "a/b/report.txt")

    assert file.bucket == "docs"
    assert file.key == "a/b/report.txt"
    assert file.name == "report.txt"
    assert file.path == "/a/b/report.txt"
    assert file.uri == "mem://docs/a/b/report.txt"
    assert str(file) == file.uri

    location = file.location()
    assert location.bucket == "docs"
    assert location.path == "a/b"
    assert location.family == StoreFamily.MEMORY
    assert location.filesystem is fs
    assert location.uri == "mem://docs/a/b/"


def test_file_key_strips_leading_separators(fs: InMemoryFileSystem):
    file = fs.new_file("docs", "//a/b/report.txt")
    assert file.key == "a/b/report.txt"
    assert file.path == "/a/b/report.txt"


def test_file_location_of_top_level_key(fs: InMemoryFileSystem):
    location = fs.new_file("docs", "report.txt").location()
    assert location.path == ""
    assert location.uri == "mem://docs/"


def test_file_metadata(fs: InMemoryFileSystem):
    _store(fs, "docs", "a.txt", b"12345")
    file = fs.new_file("docs", "a.txt")

    assert file.exists()
    assert file.size() == 5
    assert file.last_modified().tzinfo is not None


def test_file_metadata_of_missing_object(fs: InMemoryFileSystem):
    file = fs.new_file("docs", "missing.txt")

    assert file.exists() is False
    with pytest.raises(NotFoundError):
        file.size()
    with pytest.raises(NotFoundError):
        file.last_modified()


def test_file_exists_raises_on_transport_error(fs: InMemoryFileSystem, client: RecordingClient):
    client.failures["head_object"] = RemoteError("connection reset")
    file = fs.new_file("docs", "a.txt")

    with pytest.raises(RemoteError, match="connection reset") as exc_info:
        file.exists()
    assert not isinstance(exc_info.value, NotFoundError)


def test_file_write_close_read(fs: InMemoryFileSystem, client: RecordingClient, tmp_path):
    with fs.new_file("docs", "a/b/report.txt") as file:
        assert file.write(b"hello ") == 6
        assert file.write(b"world") == 5
        # Nothing is stored before close.
        assert "put_object" not in client.calls

    assert client.calls.count("put_object") == 1

    with fs.new_file("docs", "a/b/report.txt") as file:
        assert file.read() == b"hello world"

    # The local copy is removed on close.
    assert os.listdir(tmp_path) == []


def test_file_write_uses_server_side_encryption(client: RecordingClient):
    fs = InMemoryFileSystem(client)
    _store(fs, "docs", "default.txt", b"data")
    assert client.server_side_encryption("docs", "default.txt") == "AES256"

    fs = InMemoryFileSystem(client, ObjectFileSystemConfig(server_side_encryption=None))
    _store(fs, "docs", "plain.txt", b"data")
    assert client.server_side_encryption("docs", "plain.txt") is None


def test_file_write_with_csv_writer(fs: InMemoryFileSystem):
    with fs.new_file("docs", "table.csv") as file:
        writer = csv.writer(codecs.getwriter("utf-8")(file))
        writer.writerow(["a", "b"])
        writer.writerow(["1", "2"])

    assert fs.new_file("docs", "table.csv").read() == b"a,b\r\n1,2\r\n"


def test_file_random_access(fs: InMemoryFileSystem, client: RecordingClient):
    _store(fs, "docs", "digits.txt", b"0123456789")
    file = fs.new_file("docs", "digits.txt")

    assert file.seek(4) == 4
    assert file.read(3) == b"456"
    assert file.tell() == 7
    assert file.seek(-2, os.SEEK_END) == 8
    assert file.read() == b"89"
    assert file.seek(-5, os.SEEK_CUR) == 5

    buffer = bytearray(3)
    assert file.readinto(buffer) == 3
    assert buffer == b"567"

    # The object is downloaded once per session.
    assert client.calls.count("get_object") == 1
    file.close()


def test_file_read_lines(fs: InMemoryFileSystem):
    _store(fs, "docs", "lines.txt", b"one\ntwo\nthree")
    with fs.new_file("docs", "lines.txt") as file:
        assert list(file) == [b"one\n", b"two\n", b"three"]


def test_file_read_missing_object(fs: InMemoryFileSystem, tmp_path):
    file = fs.new_file("docs", "missing.txt")

    with pytest.raises(NotFoundError):
        file.read()
    with pytest.raises(NotFoundError):
        file.seek(0)

    assert file._mirror is None
    assert os.listdir(tmp_path) == []


def test_file_read_retries_after_failed_download(fs: InMemoryFileSystem, client: RecordingClient):
    _store(fs, "docs", "a.txt", b"content")
    file = fs.new_file("docs", "a.txt")

    client.failures["get_object"] = RemoteError("service unavailable")
    with pytest.raises(RemoteError):
        file.read()
    assert file._mirror is None

    del client.failures["get_object"]
    assert file.read() == b"content"
    file.close()


def test_file_close_twice_sends_no_request(fs: InMemoryFileSystem, client: RecordingClient):
    file = fs.new_file("docs", "a.txt")
    file.write(b"data")
    file.close()
    calls = list(client.calls)

    file.close()
    assert client.calls == calls


def test_file_close_without_activity(fs: InMemoryFileSystem, client: RecordingClient):
    fs.new_file("docs", "a.txt").close()
    assert client.calls == []


def test_file_read_then_write(fs: InMemoryFileSystem):
    _store(fs, "docs", "a.txt", b"old")
    file = fs.new_file("docs", "a.txt")

    assert file.read() == b"old"
    file.write(b"new")
    assert file._mirror is not None
    assert file._write_buffer is not None
    file.close()

    assert file._mirror is None
    assert file._write_buffer is None
    assert file.read() == b"new"
    file.close()


def test_file_close_failed_commit_is_not_resubmitted(fs: InMemoryFileSystem, client: RecordingClient):
    client.failures["put_object"] = RemoteError("access denied")
    file = fs.new_file("docs", "a.txt")
    file.write(b"data")

    with pytest.raises(AggregatedError) as exc_info:
        file.close()
    assert isinstance(exc_info.value.first, RemoteError)
    assert isinstance(exc_info.value.__cause__, RemoteError)
    assert file._write_buffer is None

    file.close()
    assert client.calls.count("put_object") == 1


def test_file_close_attempts_every_step(fs: InMemoryFileSystem, client: RecordingClient):
    _store(fs, "docs", "a.txt", b"old")
    file = fs.new_file("docs", "a.txt")
    file.read()
    file.write(b"new")
    client.failures["put_object"] = RemoteError("access denied")

    with mock.patch.object(LocalMirror, "release", side_effect=LocalIOError("disk gone")):
        with pytest.raises(AggregatedError) as exc_info:
            file.close()

    errors = exc_info.value.errors
    assert [type(error) for error in errors] == [LocalIOError, RemoteError]
    assert file._mirror is None
    assert file._write_buffer is None


def test_file_close_waits_for_visibility():
    client = LaggingClient(lag=2)
    fs = EventuallyConsistentFileSystem(client, wait_retries=3)

    with fs.new_file("docs", "a.txt") as file:
        file.write(b"data")

    assert client.calls == ["put_object", "head_object", "head_object", "head_object"]


def test_file_close_times_out_waiting_for_visibility():
    client = LaggingClient(lag=5)
    fs = EventuallyConsistentFileSystem(client, wait_retries=2)
    file = fs.new_file("docs", "a.txt")
    file.write(b"data")

    with pytest.raises(AggregatedError) as exc_info:
        file.close()
    assert isinstance(exc_info.value.first, ConsistencyTimeoutError)
    assert client.calls.count("head_object") == 3


def test_file_close_skips_wait_for_immediately_consistent_store(fs: InMemoryFileSystem, client: RecordingClient):
    with fs.new_file("docs", "a.txt") as file:
        file.write(b"data")

    assert "head_object" not in client.calls


def test_file_delete(fs: InMemoryFileSystem, client: RecordingClient, tmp_path):
    _store(fs, "docs", "a.txt", b"data")
    file = fs.new_file("docs", "a.txt")
    file.read()

    file.delete()

    assert not file.exists()
    assert file._mirror is None
    assert os.listdir(tmp_path) == []


def test_file_delete_discards_pending_writes(fs: InMemoryFileSystem, client: RecordingClient):
    file = fs.new_file("docs", "a.txt")
    file.write(b"never stored")

    file.delete()

    assert "put_object" not in client.calls
    assert client.calls == ["delete_object"]
    assert not file.exists()


def test_file_delete_aborts_when_close_fails(fs: InMemoryFileSystem, client: RecordingClient):
    _store(fs, "docs", "a.txt", b"data")
    file = fs.new_file("docs", "a.txt")
    file.read()

    with mock.patch.object(LocalMirror, "release", side_effect=LocalIOError("disk gone")):
        with pytest.raises(AggregatedError):
            file.delete()

    assert "delete_object" not in client.calls
    assert file.exists()


def test_file_delete_error(fs: InMemoryFileSystem, client: RecordingClient):
    client.failures["delete_object"] = RemoteError("access denied")

    with pytest.raises(RemoteError, match="access denied"):
        fs.new_file("docs", "a.txt").delete()
