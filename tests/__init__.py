# __init__.py -- The tests for dumbserve
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

"""Tests for dumbserve."""

__all__ = [
    "SkipTest",
    "TestCase",
    "make_repo",
    "self_test_suite",
    "skipIf",
    "test_suite",
]

import logging
import os
import shutil
import tempfile
import unittest
from collections.abc import Mapping
from typing import Optional
from unittest import SkipTest, skipIf
from unittest import TestCase as _TestCase


class TestCase(_TestCase):
    """TestCase that restores the dumbserve logger after each test."""

    def setUp(self) -> None:
        super().setUp()
        self._logger = logging.getLogger("dumbserve")
        self._old_handlers = list(self._logger.handlers)
        self._old_level = self._logger.level
        self._old_propagate = self._logger.propagate

    def tearDown(self) -> None:
        self._logger.handlers = self._old_handlers
        self._logger.setLevel(self._old_level)
        self._logger.propagate = self._old_propagate
        super().tearDown()

    def make_temp_dir(self) -> str:
        """Create a temporary directory that is removed after the test."""
        path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, path)
        return path


def make_repo(
    path: str,
    heads: Mapping[str, bytes],
    tags: Optional[Mapping[str, bytes]] = None,
) -> str:
    """Lay out loose refs for a repository on disk.

    Args:
      path: Repository directory; created if missing
      heads: Branch name to ref file contents
      tags: Tag name to ref file contents, or None to omit refs/tags
    Returns: path
    """
    os.makedirs(os.path.join(path, "refs", "heads"), exist_ok=True)
    for name, contents in heads.items():
        with open(os.path.join(path, "refs", "heads", name), "wb") as f:
            f.write(contents)
    if tags is not None:
        os.makedirs(os.path.join(path, "refs", "tags"), exist_ok=True)
        for name, contents in tags.items():
            with open(os.path.join(path, "refs", "tags", name), "wb") as f:
                f.write(contents)
    return path


def self_test_suite() -> unittest.TestSuite:
    """Get the test suite for dumbserve."""
    names = [
        "config",
        "log_utils",
        "refs",
        "server",
        "web",
    ]
    module_names = ["tests.test_" + name for name in names]
    loader = unittest.TestLoader()
    return loader.loadTestsFromNames(module_names)


def test_suite() -> unittest.TestSuite:
    """Get the complete test suite for dumbserve."""
    return self_test_suite()
