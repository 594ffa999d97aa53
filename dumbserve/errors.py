# errors.py -- errors for dumbserve
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

"""dumbserve-related exception classes."""

__all__ = [
    "RefsNotFound",
    "TagListingError",
]

from typing import Optional


class RefsNotFound(Exception):
    """Indicates that the refs of a repository could not be read.

    Raised when ``refs/heads`` cannot be listed or a ref file cannot be read.
    Answered with a 404 to the client.
    """

    def __init__(self, path: str, cause: Optional[OSError] = None) -> None:
        """Initialize a RefsNotFound exception.

        Args:
            path: The filesystem path that could not be read.
            cause: The underlying OS error, if any.
        """
        self.path = path
        self.cause = cause
        Exception.__init__(self, f"No refs found at {path}")


class TagListingError(Exception):
    """Indicates that ``refs/tags`` of a repository could not be listed.

    Unlike RefsNotFound this terminates the serving process.
    """

    def __init__(self, path: str, cause: Optional[OSError] = None) -> None:
        """Initialize a TagListingError exception.

        Args:
            path: The tags directory that could not be listed.
            cause: The underlying OS error, if any.
        """
        self.path = path
        self.cause = cause
        message = f"Unable to list tags at {path}"
        if cause is not None:
            message += f": {cause}"
        Exception.__init__(self, message)
