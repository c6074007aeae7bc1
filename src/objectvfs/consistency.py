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
import time
from collections.abc import Callable
from typing import Protocol

from .config import DEFAULT_WAIT_INTERVAL
from .types import ConsistencyTimeoutError, PollError

logger = logging.getLogger(__name__)


class _Existence(Protocol):
    def exists(self) -> bool: ...


def wait_until_exists(
    file: _Existence,
    retries: int,
    interval: float = DEFAULT_WAIT_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Block until a recently written object is visible in its store.

    The object is checked once, then re-checked up to ``retries`` more times with ``interval`` seconds
    between checks. A negative ``retries`` returns immediately without checking.

    :param file: The file to check. Only its ``exists()`` method is used.
    :param retries: The number of re-checks after the first one. ``-1`` skips waiting.
    :param interval: The delay (in seconds) between two checks.
    :param sleep: The function used to wait between checks.

    :raises ConsistencyTimeoutError: If the object is still not visible after the last check.
    :raises PollError: If a check fails for any reason other than the object being absent.
    """
    if retries < 0:
        return

    for attempt in range(retries + 1):
        try:
            found = file.exists()
        except Exception as error:
            raise PollError(f"Unable to check whether {file} exists") from error

        if found:
            if attempt:
                logger.debug(f"{file} became visible after {attempt} retries")
            return

        if attempt < retries:
            logger.debug(f"{file} not visible yet, retry {attempt + 1} of {retries}")
            sleep(interval)

    raise ConsistencyTimeoutError(f"Failed to find {file} after {retries} retries")
