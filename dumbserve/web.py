# web.py -- WSGI static file server with dumb git info/refs emulation
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

"""HTTP server that serves a directory and emulates dumb git info/refs.

Requests pass through a chain of WSGI middleware::

    AccessLogFilter -> DumbGitFilter -> StaticFileApplication

DumbGitFilter answers ``<repo>/info/refs`` by reading the loose refs of
``<repo>``; everything else is served from disk by StaticFileApplication.
"""

__all__ = [
    "HTTP_ERROR",
    "HTTP_FORBIDDEN",
    "HTTP_MOVED_PERMANENTLY",
    "HTTP_NOT_FOUND",
    "HTTP_NOT_MODIFIED",
    "HTTP_OK",
    "AccessLogFilter",
    "DumbGitFilter",
    "HTTPRequest",
    "StaticFileApplication",
    "WSGIRequestHandlerLogger",
    "WSGIServerLogger",
    "abort_process",
    "clean_path",
    "date_time_string",
    "main",
    "make_server",
    "make_wsgi_chain",
    "repo_path_for",
    "request_url",
    "send_file",
]

import argparse
import functools
import html
import logging
import mimetypes
import os
import posixpath
import re
import socket
import stat
import sys
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from email.utils import parsedate_to_datetime
from socketserver import ThreadingMixIn
from types import TracebackType
from typing import TYPE_CHECKING, Any, Optional, Union
from urllib.parse import quote
from wsgiref.simple_server import (
    ServerHandler,
    WSGIRequestHandler,
    WSGIServer,
)
from wsgiref.simple_server import make_server as _make_server

if TYPE_CHECKING:
    from wsgiref.types import StartResponse, WSGIApplication, WSGIEnvironment
else:
    StartResponse = Any
    WSGIEnvironment = dict[str, Any]
    WSGIApplication = Callable

from . import log_utils
from .config import ServerConfig
from .errors import RefsNotFound, TagListingError
from .refs import format_info_refs, read_refs

logger = log_utils.getLogger(__name__)
access_logger = log_utils.getLogger("dumbserve.access")


# HTTP status strings
HTTP_OK = "200 OK"
HTTP_MOVED_PERMANENTLY = "301 Moved Permanently"
HTTP_NOT_MODIFIED = "304 Not Modified"
HTTP_FORBIDDEN = "403 Forbidden"
HTTP_NOT_FOUND = "404 Not Found"
HTTP_ERROR = "500 Internal Server Error"

INFO_REFS_RE = re.compile(r"/.*/info/refs")

NOT_FOUND_TEXT = "404 page not found"

CHUNK_SIZE = 10240


def date_time_string(timestamp: Optional[float] = None) -> str:
    """Convert a timestamp to an HTTP date string.

    Args:
      timestamp: Unix timestamp to convert (defaults to current time)

    Returns:
      HTTP date string in RFC 1123 format
    """
    weekdays = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = [
        None,
        "Jan",
        "Feb",
        "Mar",
        "Apr",
        "May",
        "Jun",
        "Jul",
        "Aug",
        "Sep",
        "Oct",
        "Nov",
        "Dec",
    ]
    if timestamp is None:
        timestamp = time.time()
    year, month, day, hh, mm, ss, wd = time.gmtime(timestamp)[:7]
    return "%s, %02d %3s %4d %02d:%02d:%02d GMT" % (  # noqa: UP031
        weekdays[wd],
        day,
        months[month],
        year,
        hh,
        mm,
        ss,
    )


def clean_path(path: str) -> str:
    """Normalize a URL path.

    Resolves ``.`` and ``..`` segments, collapses repeated slashes and
    drops any trailing slash. The result always starts with a single ``/``
    and never climbs above it.
    """
    return posixpath.normpath("/" + path.lstrip("/"))


def _url_to_path(url: str) -> str:
    return url.lstrip("/").replace("/", os.path.sep)


def repo_path_for(root: str, url_path: str) -> str:
    """Find the repository directory an info/refs URL refers to.

    Args:
      root: Directory being served
      url_path: Request path, e.g. ``/project.git/info/refs``
    Returns: Filesystem path two levels above the requested file
    """
    return os.path.normpath(
        os.path.join(root, _url_to_path(clean_path(url_path)), os.pardir, os.pardir)
    )


def request_url(environ: WSGIEnvironment) -> str:
    """Reconstruct the request target (path and query) of a request."""
    url = quote(
        environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", ""), safe="/;=,"
    )
    query = environ.get("QUERY_STRING")
    if query:
        url += "?" + query
    return url


def abort_process(error: Exception) -> None:
    """Terminate the whole server process after an unrecoverable error.

    Used when the tags of a repository cannot be listed. Every client of
    the server is affected, not just the request that hit the error;
    treating it as a not-found response would be the more robust choice.
    """
    logger.critical("%s", error)
    sys.stderr.write(f"dumbserve: {error}\n")
    logging.shutdown()
    # Called from a request thread, where SystemExit would only end the thread.
    os._exit(1)


class HTTPRequest:
    """Class encapsulating the state of a single HTTP request.

    Attributes:
      environ: the WSGI environment for the request.
    """

    def __init__(
        self,
        environ: WSGIEnvironment,
        start_response: StartResponse,
    ) -> None:
        """Initialize HTTPRequest.

        Args:
            environ: WSGI environment dictionary
            start_response: WSGI start_response callable
        """
        self.environ = environ
        self._start_response = start_response
        self._headers: list[tuple[str, str]] = []

    @property
    def method(self) -> str:
        """The request method."""
        return self.environ.get("REQUEST_METHOD", "GET")

    def respond(
        self,
        status: str = HTTP_OK,
        content_type: Optional[str] = None,
        headers: Optional[Sequence[tuple[str, str]]] = None,
    ) -> Callable[[bytes], object]:
        """Begin a response with the given status and other headers."""
        if headers:
            self._headers.extend(headers)
        if content_type:
            self._headers.append(("Content-Type", content_type))

        return self._start_response(status, self._headers)

    def body(self, data: bytes) -> bytes:
        """Return the response body to send; HEAD responses carry none."""
        if self.method == "HEAD":
            return b""
        return data

    def not_found(self, message: str = NOT_FOUND_TEXT) -> bytes:
        """Begin a HTTP 404 response and return the text of a message."""
        logger.debug("Not found: %s", request_url(self.environ))
        self.respond(HTTP_NOT_FOUND, "text/plain; charset=utf-8")
        return self.body(message.encode("utf-8") + b"\n")

    def forbidden(self, message: str = "403 Forbidden") -> bytes:
        """Begin a HTTP 403 response and return the text of a message."""
        logger.debug("Forbidden: %s", request_url(self.environ))
        self.respond(HTTP_FORBIDDEN, "text/plain; charset=utf-8")
        return self.body(message.encode("utf-8") + b"\n")

    def error(self, message: str) -> bytes:
        """Begin a HTTP 500 response and return the text of a message."""
        logger.error("Error: %s", message)
        self.respond(HTTP_ERROR, "text/plain; charset=utf-8")
        return self.body(b"500 Internal Server Error\n")

    def redirect(self, location: str) -> bytes:
        """Begin a HTTP 301 response pointing at a relative location."""
        query = self.environ.get("QUERY_STRING")
        if query:
            location += "?" + query
        self.respond(HTTP_MOVED_PERMANENTLY, headers=[("Location", location)])
        return b""


def _guess_mime(path: str) -> str:
    """Return the content type to serve *path* with."""
    mime, _ = mimetypes.guess_type(path)
    if mime is None:
        return "application/octet-stream"
    if mime.startswith("text/"):
        return mime + "; charset=utf-8"
    return mime


def _not_modified_since(environ: WSGIEnvironment, mtime: float) -> bool:
    value = environ.get("HTTP_IF_MODIFIED_SINCE")
    if not value:
        return False
    try:
        since = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return False
    return int(mtime) <= since.timestamp()


def send_file(req: HTTPRequest, path: str, st: os.stat_result) -> Iterator[bytes]:
    """Send a file from disk to the request output.

    Args:
      req: The HTTPRequest object to send output to.
      path: Path of the file to send.
      st: Result of stat() on *path*.
    Returns: Iterator over the contents of the file, as chunks.
    """
    if _not_modified_since(req.environ, st.st_mtime):
        req.respond(HTTP_NOT_MODIFIED)
        return
    try:
        f = open(path, "rb")
    except FileNotFoundError:
        yield req.not_found()
        return
    except PermissionError:
        yield req.forbidden()
        return
    except OSError as e:
        yield req.error(f"Error opening {path}: {e}")
        return
    try:
        req.respond(
            HTTP_OK,
            _guess_mime(path),
            headers=[
                ("Content-Length", str(st.st_size)),
                ("Last-Modified", date_time_string(st.st_mtime)),
            ],
        )
        if req.method == "HEAD":
            return
        while True:
            data = f.read(CHUNK_SIZE)
            if not data:
                break
            yield data
    except OSError:
        # Headers have already been sent; drop the connection.
        logger.exception("Error reading %s", path)
        raise
    finally:
        f.close()


class StaticFileApplication:
    """WSGI application serving the files below a directory.

    Directories are answered with their ``index.html`` or with a listing.
    """

    def __init__(self, root: str) -> None:
        """Initialize StaticFileApplication.

        Args:
            root: Directory to serve
        """
        self.root = root

    def __call__(
        self,
        environ: WSGIEnvironment,
        start_response: StartResponse,
    ) -> Iterable[bytes]:
        """Handle WSGI request."""
        req = HTTPRequest(environ, start_response)
        raw_path = environ.get("PATH_INFO", "") or "/"
        url_path = clean_path(raw_path)

        if url_path.endswith("/index.html"):
            return [req.redirect("./")]

        path = os.path.join(self.root, _url_to_path(url_path))
        try:
            st = os.stat(path)
        except OSError:
            return [req.not_found()]

        if stat.S_ISDIR(st.st_mode):
            if not raw_path.endswith("/"):
                return [req.redirect(quote(posixpath.basename(url_path)) + "/")]
            index = os.path.join(path, "index.html")
            try:
                st = os.stat(index)
            except OSError:
                return self.list_directory(req, path)
            path = index
        elif raw_path.endswith("/"):
            return [req.redirect("../" + quote(posixpath.basename(url_path)))]

        return send_file(req, path, st)

    def list_directory(self, req: HTTPRequest, path: str) -> list[bytes]:
        """Render an HTML listing of a directory."""
        try:
            names = sorted(os.listdir(path))
        except PermissionError:
            return [req.forbidden()]
        except OSError as e:
            return [req.error(f"Error reading directory {path}: {e}")]
        lines = [
            "<!doctype html>",
            '<meta name="viewport" content="width=device-width">',
            "<pre>",
        ]
        for name in names:
            if os.path.isdir(os.path.join(path, name)):
                name += "/"
            href = html.escape(quote(name), quote=True)
            lines.append(f'<a href="{href}">{html.escape(name)}</a>')
        lines.append("</pre>")
        body = ("\n".join(lines) + "\n").encode("utf-8")
        req.respond(
            HTTP_OK,
            "text/html; charset=utf-8",
            headers=[("Content-Length", str(len(body)))],
        )
        return [req.body(body)]


class DumbGitFilter:
    """WSGI middleware that answers ``<repo>/info/refs`` for dumb git clients.

    Requests for any other path are passed on to the wrapped application
    untouched.
    """

    def __init__(
        self,
        application: WSGIApplication,
        root: str,
        abort: Callable[[Exception], None] = abort_process,
    ) -> None:
        """Initialize DumbGitFilter.

        Args:
            application: WSGI application to pass other requests to
            root: Directory in which repositories are looked up
            abort: Called when a repository's tags cannot be listed;
                terminates the process by default
        """
        self.app = application
        self.root = root
        self.abort = abort

    def __call__(
        self,
        environ: WSGIEnvironment,
        start_response: StartResponse,
    ) -> Iterable[bytes]:
        """Handle WSGI request."""
        path = clean_path(environ.get("PATH_INFO", "") or "/")
        if not INFO_REFS_RE.fullmatch(path):
            return self.app(environ, start_response)

        req = HTTPRequest(environ, start_response)
        repo_path = repo_path_for(self.root, path)
        try:
            entries = read_refs(repo_path)
        except RefsNotFound as e:
            logger.debug("%s", e)
            return [req.not_found()]
        except TagListingError as e:
            self.abort(e)
            return [req.error(str(e))]

        logger.debug("Emulating dumb info/refs for %s", repo_path)
        body = format_info_refs(entries)
        req.respond(HTTP_OK, headers=[("Content-Length", str(len(body)))])
        return [req.body(body)]


class AccessLogFilter:
    """WSGI middleware that logs the method and URL of every request."""

    def __init__(
        self, application: WSGIApplication, logger: logging.Logger = access_logger
    ) -> None:
        """Initialize AccessLogFilter with WSGI application."""
        self.app = application
        self.logger = logger

    def __call__(
        self,
        environ: WSGIEnvironment,
        start_response: StartResponse,
    ) -> Iterable[bytes]:
        """Log the request, then pass it on."""
        self.logger.info(
            "%s %s", environ.get("REQUEST_METHOD", ""), request_url(environ)
        )
        return self.app(environ, start_response)


def make_wsgi_chain(config: ServerConfig) -> WSGIApplication:
    """Build the WSGI application for a server configuration.

    Middleware is listed outermost first; each entry wraps everything
    after it.
    """
    middleware: list[Callable[[WSGIApplication], WSGIApplication]] = [
        AccessLogFilter,
        functools.partial(DumbGitFilter, root=config.root),
    ]
    app: WSGIApplication = StaticFileApplication(config.root)
    for wrap in reversed(middleware):
        app = wrap(app)
    return app


class ServerHandlerLogger(ServerHandler):
    """ServerHandler that uses dumbserve's logger for logging exceptions."""

    def log_exception(
        self,
        exc_info: Union[
            tuple[type[BaseException], BaseException, TracebackType],
            tuple[None, None, None],
            None,
        ],
    ) -> None:
        """Log exception using dumbserve logger."""
        logger.exception(
            "Exception happened during processing of request",
            exc_info=exc_info,
        )


class WSGIRequestHandlerLogger(WSGIRequestHandler):
    """WSGIRequestHandler that applies timeouts and logs via dumbserve.

    The connection may sit idle for the server's idle timeout before the
    first byte of a request arrives. The request head must then arrive
    within the read timeout. The write timeout is a socket timeout: it
    limits each send while the response is written, not the time taken by
    the whole response, so a slow client that keeps reading can hold the
    connection for longer.
    """

    server: "WSGIServerLogger"

    def log_message(self, format: str, *args: object) -> None:
        """Log message using dumbserve logger."""
        logger.debug(format, *args)

    def log_error(self, *args: object) -> None:
        """Log error using dumbserve logger."""
        logger.error(*args)

    def handle(self) -> None:
        """Handle a single HTTP request."""
        try:
            self.connection.settimeout(self.server.idle_timeout)
            if not self.rfile.peek(1):
                return
            self.connection.settimeout(self.server.read_timeout)
            self.raw_requestline = self.rfile.readline(65537)
            if len(self.raw_requestline) > 65536:
                self.requestline = ""
                self.request_version = ""
                self.command = ""
                self.send_error(414)
                return
            if not self.parse_request():  # An error code has been sent, just exit
                return

            self.connection.settimeout(self.server.write_timeout)
            handler = ServerHandlerLogger(
                self.rfile,
                self.wfile,
                self.get_stderr(),
                self.get_environ(),
            )
            handler.request_handler = self  # type: ignore  # backpointer for logging
            handler.run(self.server.get_app())  # type: ignore
        except TimeoutError:
            logger.info("Connection from %s timed out", self.client_address[0])
            self.close_connection = True


class WSGIServerLogger(ThreadingMixIn, WSGIServer):
    """Threaded WSGIServer that uses dumbserve's logger for error handling."""

    daemon_threads = True

    read_timeout: float = ServerConfig.read_timeout
    write_timeout: float = ServerConfig.write_timeout
    idle_timeout: float = ServerConfig.idle_timeout

    def handle_error(self, request: object, client_address: tuple[str, int]) -> None:
        """Handle an error."""
        logger.exception(
            f"Exception happened during processing of request from {client_address!s}"
        )


class WSGIServerLogger6(WSGIServerLogger):
    """WSGIServerLogger listening on an IPv6 address."""

    address_family = socket.AF_INET6


def make_server(config: ServerConfig, app: WSGIApplication) -> WSGIServerLogger:
    """Create a bound HTTP server for *app*.

    Raises:
      OSError: if the listen address cannot be bound
    """
    server_class = WSGIServerLogger6 if ":" in config.host else WSGIServerLogger
    server = _make_server(
        config.host,
        config.port,
        app,
        server_class=server_class,
        handler_class=WSGIRequestHandlerLogger,
    )
    server.read_timeout = config.read_timeout
    server.write_timeout = config.write_timeout
    server.idle_timeout = config.idle_timeout
    return server


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for starting the HTTP server.

    Args:
      argv: Command line arguments (defaults to sys.argv[1:])
    Returns: Exit code
    """
    parser = argparse.ArgumentParser(
        prog="dumbserve",
        description="Serve a directory over HTTP, emulating dumb git info/refs.",
    )
    parser.add_argument("--dir", "-dir", dest="dir", default=None, help="directory")
    parser.add_argument(
        "--port",
        "-port",
        dest="port",
        type=int,
        default=ServerConfig.port,
        help="the port that the server will listen to",
    )
    parser.add_argument(
        "--host",
        "-host",
        dest="host",
        default=ServerConfig.host,
        help="the ip that the server will listen to",
    )
    parser.add_argument(
        "--verbose",
        "-verbose",
        dest="verbose",
        action="store_true",
        help="enable logging",
    )
    args = parser.parse_args(argv)

    try:
        config = ServerConfig.from_options(
            root=args.dir, host=args.host, port=args.port, verbose=args.verbose
        )
    except OSError as e:
        sys.stderr.write(f"dumbserve: unable to determine directory: {e}\n")
        return 1

    log_utils.default_logging_config(config.verbose)
    app = make_wsgi_chain(config)
    try:
        server = make_server(config, app)
    except OSError as e:
        sys.stderr.write(f"dumbserve: unable to listen on {config.address}: {e}\n")
        return 1

    logger.info("Listening on %s:%d", config.host, server.server_port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    return 0


def _main() -> None:
    sys.exit(main())


if __name__ == "__main__":
    _main()
