# log_utils.py -- Logging utilities for dumbserve
# Copyright (C) 2026 The dumbserve authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# dumbserve is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Logging utilities for dumbserve.

The package logger carries a no-op handler so that importing dumbserve as a
library never prints anything. The command line calls
default_logging_config(), which either leaves that in place (quiet mode) or
sends every record to standard output.

For many modules, the only function from the logging module they need is
getLogger; this module exports that function for convenience.
"""

import logging
import sys
from typing import Optional, TextIO

getLogger = logging.getLogger

LOG_FORMAT = "http: %(asctime)s %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


class QuietStreamHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Stream handler that never reports failures of its destination.

    Request handling must not be affected by a closed or broken log stream.
    """

    def handleError(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_DUMBSERVE_LOGGER = getLogger("dumbserve")
_DUMBSERVE_LOGGER.addHandler(_NULL_HANDLER)


def default_logging_config(
    verbose: bool = False, stream: Optional[TextIO] = None
) -> None:
    """Set up the default dumbserve loggers.

    Args:
      verbose: When False, log records are discarded. When True, they are
        written to *stream*.
      stream: Destination for log output (defaults to standard output)
    """
    if not verbose:
        return
    remove_null_handler()
    if stream is None:
        stream = sys.stdout
    handler = QuietStreamHandler(stream)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    _DUMBSERVE_LOGGER.addHandler(handler)
    _DUMBSERVE_LOGGER.setLevel(logging.INFO)
    _DUMBSERVE_LOGGER.propagate = False


def remove_null_handler() -> None:
    """Remove the null handler from the dumbserve loggers.

    If a caller wants to set up logging using something other than
    default_logging_config, calling this function first is a minor optimization
    to avoid the overhead of using the _NullHandler.
    """
    _DUMBSERVE_LOGGER.removeHandler(_NULL_HANDLER)
