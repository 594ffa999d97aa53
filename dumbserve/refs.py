# refs.py -- Reading loose refs and formatting info/refs
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

"""Ref reading and info/refs generation for dumb HTTP clients.

Refs are read straight from the loose ``refs/heads`` and ``refs/tags``
directories of a repository on disk; packed refs are not consulted.

Two quirks of the advertisement are kept on purpose because clients can
observe them:

* The hash of a tag is read from ``refs/heads/<name>``, not from
  ``refs/tags/<name>``. A tag without a branch of the same name therefore
  makes the whole request fail with a not-found error.
* The ``^{}`` line of a tag repeats the tag's own hash. Annotated tags are
  never peeled.
"""

__all__ = [
    "KIND_HEAD",
    "KIND_TAG",
    "LOCAL_BRANCH_PREFIX",
    "LOCAL_TAG_PREFIX",
    "PEELED_TAG_SUFFIX",
    "RefEntry",
    "format_info_refs",
    "read_refs",
    "write_info_refs",
]

import os
from collections.abc import Iterable, Iterator
from typing import NamedTuple

from . import log_utils
from .errors import RefsNotFound, TagListingError

logger = log_utils.getLogger(__name__)

LOCAL_BRANCH_PREFIX = b"refs/heads/"
LOCAL_TAG_PREFIX = b"refs/tags/"
PEELED_TAG_SUFFIX = b"^{}"

KIND_HEAD = "head"
KIND_TAG = "tag"

HEADS_DIR = os.path.join("refs", "heads")
TAGS_DIR = os.path.join("refs", "tags")


class RefEntry(NamedTuple):
    """A single loose ref.

    Attributes:
      sha: Contents of the ref file, without its trailing newline.
      name: Base name of the ref file.
      kind: Either KIND_HEAD or KIND_TAG.
    """

    sha: bytes
    name: bytes
    kind: str


def _read_ref_file(path: str) -> bytes:
    """Read a loose ref file, dropping one trailing newline.

    Raises:
      RefsNotFound: if the file cannot be read
    """
    try:
        with open(path, "rb") as f:
            contents = f.read()
    except OSError as e:
        raise RefsNotFound(path, e) from e
    if contents.endswith(b"\n"):
        contents = contents[:-1]
    return contents


def read_refs(repo_path: str) -> list[RefEntry]:
    """Read the branches and tags of a repository.

    Heads are returned first, then tags, each sorted by file name.

    Args:
      repo_path: Path to the repository (the directory containing ``refs``)
    Returns: List of RefEntry objects
    Raises:
      RefsNotFound: if ``refs/heads`` cannot be listed, or a ref file
        cannot be read
      TagListingError: if ``refs/tags`` cannot be listed
    """
    heads_path = os.path.join(repo_path, HEADS_DIR)
    try:
        head_names = sorted(os.listdir(heads_path))
    except OSError as e:
        raise RefsNotFound(heads_path, e) from e

    entries = []
    for name in head_names:
        sha = _read_ref_file(os.path.join(heads_path, name))
        entries.append(RefEntry(sha, os.fsencode(name), KIND_HEAD))

    tags_path = os.path.join(repo_path, TAGS_DIR)
    try:
        tag_names = sorted(os.listdir(tags_path))
    except OSError as e:
        raise TagListingError(tags_path, e) from e

    for name in tag_names:
        # Looked up under refs/heads, see module docstring.
        sha = _read_ref_file(os.path.join(heads_path, name))
        entries.append(RefEntry(sha, os.fsencode(name), KIND_TAG))

    logger.debug("Read %d refs from %s", len(entries), repo_path)
    return entries


def write_info_refs(entries: Iterable[RefEntry]) -> Iterator[bytes]:
    """Generate the lines of a dumb info/refs advertisement.

    Lines are yielded without a terminating newline.

    Args:
      entries: RefEntry objects, in the order they should be advertised
    Returns: Iterator over advertisement lines
    """
    for entry in entries:
        if entry.kind == KIND_TAG:
            refname = LOCAL_TAG_PREFIX + entry.name
            yield entry.sha + b"\t" + refname
            yield entry.sha + b"\t" + refname + PEELED_TAG_SUFFIX
        else:
            yield entry.sha + b"\t" + LOCAL_BRANCH_PREFIX + entry.name


def format_info_refs(entries: Iterable[RefEntry]) -> bytes:
    """Format a complete info/refs body.

    Lines are joined with newlines and the body always ends with a single
    newline, so an empty repository produces ``b"\\n"``.
    """
    return b"\n".join(write_info_refs(entries)) + b"\n"
