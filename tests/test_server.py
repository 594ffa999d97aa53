# test_server.py -- Tests for serving over a real socket
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

"""End-to-end tests running the server on a local port."""

import os
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import urllib3

from dumbserve import web
from dumbserve.config import ServerConfig
from dumbserve.web import make_server, make_wsgi_chain

from . import TestCase, make_repo


def _sha(prefix: bytes) -> bytes:
    return (prefix * 40)[:40]


class ServerTestCase(TestCase):
    """Starts a server for the duration of each test."""

    idle_timeout = ServerConfig.idle_timeout
    write_timeout = ServerConfig.write_timeout

    def setUp(self) -> None:
        super().setUp()
        self.root = self.make_temp_dir()
        config = ServerConfig(
            root=self.root,
            port=0,
            idle_timeout=self.idle_timeout,
            write_timeout=self.write_timeout,
        )
        self.server = make_server(config, make_wsgi_chain(config))
        self.addCleanup(self.server.server_close)
        thread = threading.Thread(target=self.server.serve_forever)
        thread.daemon = True
        thread.start()
        self.addCleanup(thread.join)
        self.addCleanup(self.server.shutdown)
        self.base_url = f"http://127.0.0.1:{self.server.server_port}"
        self.http = urllib3.PoolManager(maxsize=8, retries=False, timeout=10.0)
        self.addCleanup(self.http.clear)

    def raw_request(self, request: bytes) -> bytes:
        """Send a raw request and return everything the server writes back."""
        with socket.create_connection(("127.0.0.1", self.server.server_port)) as s:
            s.settimeout(10.0)
            s.sendall(request)
            chunks = []
            while True:
                data = s.recv(4096)
                if not data:
                    return b"".join(chunks)
                chunks.append(data)

    def get(self, path: str) -> "urllib3.BaseHTTPResponse":
        return self.http.request("GET", self.base_url + path)


class EndToEndTests(ServerTestCase):
    def test_info_refs(self) -> None:
        main_sha = _sha(b"deadbeef01")
        dev_sha = _sha(b"cafebabe02")
        make_repo(
            os.path.join(self.root, "project.git"),
            {"main": main_sha + b"\n", "dev": dev_sha + b"\n"},
            {},
        )
        response = self.get("/project.git/info/refs")
        self.assertEqual(200, response.status)
        self.assertEqual(
            dev_sha + b"\trefs/heads/dev\n" + main_sha + b"\trefs/heads/main\n",
            response.data,
        )

    def test_head_info_refs(self) -> None:
        sha = _sha(b"deadbeef01")
        make_repo(os.path.join(self.root, "project.git"), {"main": sha + b"\n"}, {})
        raw = self.raw_request(b"HEAD /project.git/info/refs HTTP/1.0\r\n\r\n")
        head, body = raw.split(b"\r\n\r\n", 1)
        self.assertIn(b" 200 ", head.split(b"\r\n", 1)[0])
        length = len(sha + b"\trefs/heads/main\n")
        self.assertIn(b"Content-Length: %d\r\n" % length, head + b"\r\n")
        self.assertEqual(b"", body)

    def test_head_not_found(self) -> None:
        raw = self.raw_request(b"HEAD /missing.git/info/refs HTTP/1.0\r\n\r\n")
        head, body = raw.split(b"\r\n\r\n", 1)
        self.assertIn(b" 404 ", head.split(b"\r\n", 1)[0])
        self.assertEqual(b"", body)

    def test_info_refs_not_found(self) -> None:
        response = self.get("/missing.git/info/refs")
        self.assertEqual(404, response.status)

    def test_static_file(self) -> None:
        with open(os.path.join(self.root, "hello.txt"), "wb") as f:
            f.write(b"hello\n")
        response = self.get("/hello.txt")
        self.assertEqual(200, response.status)
        self.assertEqual(b"hello\n", response.data)
        self.assertEqual("text/plain; charset=utf-8", response.headers["Content-Type"])

    def test_static_ref_file(self) -> None:
        sha = _sha(b"0123456789")
        make_repo(os.path.join(self.root, "project.git"), {"main": sha + b"\n"}, {})
        response = self.get("/project.git/refs/heads/main")
        self.assertEqual(200, response.status)
        self.assertEqual(sha + b"\n", response.data)

    def test_static_not_found(self) -> None:
        self.assertEqual(404, self.get("/nope").status)

    def test_concurrent_repositories(self) -> None:
        repos = {
            "one.git": {f"b{i}": _sha(b"1") for i in range(20)},
            "two.git": {f"c{i}": _sha(b"2") for i in range(5)},
        }
        expected = {}
        for name, heads in repos.items():
            make_repo(
                os.path.join(self.root, name),
                {head: sha + b"\n" for head, sha in heads.items()},
                {},
            )
            expected[name] = sorted(
                sha + b"\trefs/heads/" + head.encode("ascii")
                for head, sha in heads.items()
            )

        paths = [f"/{name}/info/refs" for name in repos] * 25

        def fetch(path):
            response = self.get(path)
            return path, response.status, response.data

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(fetch, paths))

        self.assertEqual(len(paths), len(results))
        for path, status, data in results:
            name = path.split("/")[1]
            self.assertEqual(200, status)
            self.assertTrue(data.endswith(b"\n"))
            self.assertEqual(expected[name], sorted(data.splitlines()))


class IdleTimeoutTests(ServerTestCase):
    idle_timeout = 0.2

    def test_idle_connection_closed(self) -> None:
        with socket.create_connection(("127.0.0.1", self.server.server_port)) as s:
            s.settimeout(5.0)
            self.assertEqual(b"", s.recv(1024))

    def test_request_after_connect(self) -> None:
        self.assertEqual(404, self.get("/nope").status)


class WriteTimeoutTests(ServerTestCase):
    write_timeout = 2.5

    def test_socket_timeout_while_responding(self) -> None:
        timeouts = []
        run = web.ServerHandlerLogger.run

        def recording_run(handler, application):
            timeouts.append(handler.request_handler.connection.gettimeout())
            return run(handler, application)

        with patch.object(web.ServerHandlerLogger, "run", recording_run):
            self.assertEqual(404, self.get("/nope").status)
        # Applied per socket operation through settimeout, not as a deadline.
        self.assertEqual([2.5], timeouts)


class MainTests(TestCase):
    def test_bind_failure(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            s.listen(1)
            port = s.getsockname()[1]
            with patch("sys.stderr") as stderr:
                ret = web.main(["--dir", self.make_temp_dir(), "--port", str(port)])
        self.assertEqual(1, ret)
        stderr.write.assert_called_once()
        self.assertIn("unable to listen", stderr.write.call_args.args[0])

    def test_getcwd_failure(self) -> None:
        with patch("dumbserve.config.os.getcwd", side_effect=FileNotFoundError), patch(
            "sys.stderr"
        ) as stderr:
            ret = web.main(["--port", "0"])
        self.assertEqual(1, ret)
        self.assertIn("unable to determine directory", stderr.write.call_args.args[0])

    def test_serves_until_interrupted(self) -> None:
        root = self.make_temp_dir()
        with patch.object(
            web.WSGIServerLogger, "serve_forever", side_effect=KeyboardInterrupt
        ) as serve_forever, patch.object(
            web.log_utils, "default_logging_config"
        ) as logging_config:
            ret = web.main(["-dir", root, "-port", "0", "-verbose"])
        self.assertEqual(0, ret)
        serve_forever.assert_called_once()
        logging_config.assert_called_once_with(True)

    def test_listening_message(self) -> None:
        with patch.object(
            web.WSGIServerLogger, "serve_forever", side_effect=KeyboardInterrupt
        ), self.assertLogs("dumbserve.web", level="INFO") as cm:
            web.main(["--dir", self.make_temp_dir(), "--port", "0"])
        prefix = "INFO:dumbserve.web:Listening on 127.0.0.1:"
        self.assertTrue(any(line.startswith(prefix) for line in cm.output))
