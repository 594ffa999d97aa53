# config.py -- Server configuration
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

"""Process-wide configuration for the server."""

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "IDLE_TIMEOUT",
    "READ_TIMEOUT",
    "WRITE_TIMEOUT",
    "ServerConfig",
]

import os
from dataclasses import dataclass

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

# Seconds
READ_TIMEOUT = 5.0
WRITE_TIMEOUT = 10.0
IDLE_TIMEOUT = 15.0


@dataclass(frozen=True)
class ServerConfig:
    """Immutable server configuration, built once at startup.

    Attributes:
        root: Directory that is served, and searched for repositories
        host: Address to listen on
        port: Port to listen on (0 picks a free port)
        verbose: Whether request logs are written to standard output
        read_timeout: Seconds allowed for reading a request head
        write_timeout: Socket timeout for each send while writing a response
        idle_timeout: Seconds a connection may wait before sending a request
    """

    root: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    verbose: bool = False
    read_timeout: float = READ_TIMEOUT
    write_timeout: float = WRITE_TIMEOUT
    idle_timeout: float = IDLE_TIMEOUT

    @classmethod
    def from_options(
        cls,
        root: str | None = None,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        verbose: bool = False,
    ) -> "ServerConfig":
        """Create a configuration from command line options.

        Args:
          root: Directory to serve (defaults to the current directory)
          host: Address to listen on
          port: Port to listen on
          verbose: Enable request logging
        Raises:
          OSError: if root is not given and the working directory
            cannot be determined
        """
        if root is None:
            root = os.getcwd()
        return cls(root=os.path.abspath(root), host=host, port=port, verbose=verbose)

    @property
    def address(self) -> str:
        """The listen address as ``host:port``."""
        return f"{self.host}:{self.port}"
