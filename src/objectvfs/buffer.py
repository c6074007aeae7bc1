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
from io import BytesIO
from typing import Any, Optional

from .types import ObjectClient

logger = logging.getLogger(__name__)


class WriteBuffer:
    """
    Accumulates written bytes in memory until they are committed as a single object.

    The store decides between a single request and a multipart upload based on the total size.
    """

    def __init__(self):
        self._buffer = BytesIO()
        self._size = 0

    def write(self, data: Any) -> int:
        written = self._buffer.write(data)
        self._size += written
        return written

    def __len__(self) -> int:
        return self._size

    def commit(
        self,
        client: ObjectClient,
        bucket: str,
        key: str,
        server_side_encryption: Optional[str] = None,
    ) -> int:
        """
        Store the accumulated bytes as the content of ``bucket/key``.

        :return: The number of bytes committed.
        """
        size = len(self)
        self._buffer.seek(0)
        client.put_object(bucket, key, self._buffer, server_side_encryption=server_side_encryption)
        logger.debug(f"Committed {size} bytes to {bucket}/{key}")
        return size
