# web.py -- WSGI smart-http server
# Copyright (C) 2026 The gitgate Authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# gitgate is dual-licensed under the Apache License, Version 2.0 and the GNU
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

"""WSGI front end for the git smart HTTP server."""

__all__ = [
    "ChunkReader",
    "HTTPGitApplication",
    "LimitedInputFilter",
    "WSGIRequestHandlerLogger",
    "WSGIServerLogger",
    "adapter_factory_from_args",
    "make_argument_parser",
    "main",
    "make_server",
    "make_wsgi_chain",
    "request_info",
    "send_response",
]

import functools
import sys
from collections.abc import Callable, Iterable, Iterator
from socketserver import ThreadingMixIn
from types import TracebackType
from typing import TYPE_CHECKING, Any, BinaryIO
from urllib.parse import parse_qs
from wsgiref.simple_server import (
    ServerHandler,
    WSGIRequestHandler,
    WSGIServer,
    make_server,
)

# wsgiref.types was added in Python 3.11
if sys.version_info >= (3, 11):
    from wsgiref.types import StartResponse, WSGIApplication, WSGIEnvironment
else:
    StartResponse = Any
    WSGIEnvironment = dict[str, Any]
    WSGIApplication = Callable

from . import log_utils
from .adapter import GitAdapter, RepositoryAdapter
from .dispatch import Dispatcher
from .dulwich_adapter import DulwichAdapter
from .handlers import RequestInfo
from .responses import FileStreamer, PackExchange, Response

if TYPE_CHECKING:
    import argparse

logger = log_utils.getLogger(__name__)


def _chunk_iter(f: BinaryIO) -> Iterator[bytes]:
    while True:
        line = f.readline()
        length = int(line.split(b";", 1)[0].strip(), 16)
        chunk = f.read(length + 2)
        if length == 0:
            break
        yield chunk[:-2]


class ChunkReader:
    """Reader that undoes HTTP/1.1 chunked transfer encoding."""

    def __init__(self, f: BinaryIO) -> None:
        self._iter = _chunk_iter(f)
        self._buffer = b""
        self._eof = False

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes of decoded data; everything if size < 0."""
        while not self._eof and (size < 0 or len(self._buffer) < size):
            try:
                self._buffer += next(self._iter)
            except StopIteration:
                self._eof = True
        if size < 0:
            size = len(self._buffer)
        ret, self._buffer = self._buffer[:size], self._buffer[size:]
        return ret


class _LengthLimitedFile:
    """Wrapper class to limit the length of reads from a file-like object.

    This is used to ensure EOF is read from the wsgi.input object once
    Content-Length bytes are read. This behavior is required by the WSGI spec
    but not implemented in wsgiref.
    """

    def __init__(self, input: BinaryIO, max_bytes: int) -> None:
        self._input = input
        self._bytes_avail = max_bytes

    def read(self, size: int = -1) -> bytes:
        if self._bytes_avail <= 0:
            return b""
        if size < 0 or size > self._bytes_avail:
            size = self._bytes_avail
        data = self._input.read(size)
        self._bytes_avail -= len(data)
        return data


def request_info(environ: WSGIEnvironment) -> RequestInfo:
    """Extract what the dispatcher needs from a WSGI environment."""
    params = parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True)
    return RequestInfo(
        method=environ["REQUEST_METHOD"],
        path=environ.get("PATH_INFO", ""),
        query={name: values[0] for name, values in params.items()},
        content_type=environ.get("CONTENT_TYPE") or None,
        content_encoding=environ.get("HTTP_CONTENT_ENCODING") or None,
        protocol=environ.get("SERVER_PROTOCOL", "HTTP/1.0"),
        body=environ.get("wsgi.input"),
    )


def _run_exchange(
    exchange: PackExchange, write: Callable[[bytes], object]
) -> Iterator[bytes]:
    # Writing nothing makes the server send the status line and headers
    # before the adapter produces any output.
    write(b"")
    exchange.run(write)
    # All output goes through write().
    yield from ()


def send_response(response: Response, start_response: StartResponse) -> Iterable[bytes]:
    """Start a WSGI response and return its body iterable.

    Pack exchanges write straight to the client through the callable
    returned by start_response, so their output is never collected.
    """
    headers = list(response.headers)
    body = response.body
    if isinstance(body, PackExchange):
        write = start_response(response.status_line, headers)
        return _run_exchange(body, write)
    start_response(response.status_line, headers)
    if isinstance(body, FileStreamer):
        return iter(body)
    return [body]


class HTTPGitApplication:
    """WSGI application serving the repositories of a Dispatcher.

    Attributes:
      dispatcher: The dispatcher handling requests.
      fallback_app: WSGI application for paths that match no route; when
        None such requests get a 404.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        fallback_app: WSGIApplication | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.fallback_app = fallback_app

    def __call__(
        self,
        environ: WSGIEnvironment,
        start_response: StartResponse,
    ) -> Iterable[bytes]:
        """Handle WSGI request."""
        info = request_info(environ)
        if self.fallback_app is not None and self.dispatcher.match(info.path) is None:
            return self.fallback_app(environ, start_response)
        return send_response(self.dispatcher.dispatch(info), start_response)


class LimitedInputFilter:
    """WSGI middleware that makes wsgi.input end where the request body does.

    Chunked request bodies are decoded; otherwise reads stop after
    Content-Length bytes.
    """

    def __init__(self, application: WSGIApplication) -> None:
        self.app = application

    def __call__(
        self,
        environ: WSGIEnvironment,
        start_response: StartResponse,
    ) -> Iterable[bytes]:
        # This is not necessary if this app is run from a conforming WSGI
        # server. Unfortunately, there's no way to tell that at this point.
        if environ.get("HTTP_TRANSFER_ENCODING", "").lower() == "chunked":
            environ["wsgi.input"] = ChunkReader(environ["wsgi.input"])
        else:
            content_length = environ.get("CONTENT_LENGTH", "")
            if content_length:
                environ["wsgi.input"] = _LengthLimitedFile(
                    environ["wsgi.input"], int(content_length)
                )
        return self.app(environ, start_response)


def make_wsgi_chain(
    root: str = ".",
    allow_push: bool | None = None,
    allow_pull: bool | None = None,
    adapter_factory: Callable[[], RepositoryAdapter] = GitAdapter,
    fallback_app: WSGIApplication | None = None,
) -> WSGIApplication:
    """Create an HTTPGitApplication wrapped with the middleware it needs."""
    dispatcher = Dispatcher(
        root,
        allow_push=allow_push,
        allow_pull=allow_pull,
        adapter_factory=adapter_factory,
    )
    return LimitedInputFilter(HTTPGitApplication(dispatcher, fallback_app=fallback_app))


class ServerHandlerLogger(ServerHandler):
    """ServerHandler that uses gitgate's logger for logging exceptions."""

    def log_exception(
        self,
        exc_info: tuple[type[BaseException], BaseException, TracebackType]
        | tuple[None, None, None]
        | None,
    ) -> None:
        logger.exception(
            "Exception happened during processing of request",
            exc_info=exc_info,
        )


class WSGIRequestHandlerLogger(WSGIRequestHandler):
    """WSGIRequestHandler that logs through gitgate's logger."""

    def log_message(self, format: str, *args: object) -> None:
        logger.info(format, *args)

    def log_error(self, *args: object) -> None:
        logger.error(*args)

    def handle(self) -> None:
        """Handle a single HTTP request."""
        self.raw_requestline = self.rfile.readline(65537)
        if len(self.raw_requestline) > 65536:
            self.requestline = ""
            self.request_version = ""
            self.command = ""
            self.send_error(414)
            return
        if not self.parse_request():  # An error code has been sent, just exit
            return

        handler = ServerHandlerLogger(
            self.rfile,
            self.wfile,  # type: ignore[arg-type]
            self.get_stderr(),
            self.get_environ(),
        )
        handler.request_handler = self  # type: ignore[attr-defined]  # backpointer for logging
        handler.run(self.server.get_app())  # type: ignore[attr-defined]


class WSGIServerLogger(ThreadingMixIn, WSGIServer):
    """Threaded WSGIServer that uses gitgate's logger for error handling."""

    daemon_threads = True

    def handle_error(self, request: object, client_address: tuple[str, int]) -> None:
        logger.exception(
            "Exception happened during processing of request from %s", client_address
        )


def make_argument_parser(description: str) -> "argparse.ArgumentParser":
    """Build the command line parser shared by the server entry points."""
    import argparse

    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "-l",
        "--listen_address",
        dest="listen_address",
        default="localhost",
        help="Binding IP address.",
    )
    parser.add_argument(
        "-p",
        "--port",
        dest="port",
        type=int,
        default=8000,
        help="Port to listen on.",
    )
    parser.add_argument(
        "--allow-push",
        dest="allow_push",
        action="store_const",
        const=True,
        default=None,
        help="Allow pushes to every repository.",
    )
    parser.add_argument(
        "--deny-push",
        dest="allow_push",
        action="store_const",
        const=False,
        help="Refuse pushes to every repository.",
    )
    parser.add_argument(
        "--allow-pull",
        dest="allow_pull",
        action="store_const",
        const=True,
        default=None,
        help="Allow fetches from every repository.",
    )
    parser.add_argument(
        "--deny-pull",
        dest="allow_pull",
        action="store_const",
        const=False,
        help="Refuse fetches from every repository.",
    )
    parser.add_argument(
        "--backend",
        choices=["git", "dulwich"],
        default="git",
        help="Run pack exchanges with the git executable or in-process.",
    )
    parser.add_argument(
        "--git-path", default="git", help="Path to the git executable."
    )
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Directory containing the repositories to serve.",
    )
    return parser


def adapter_factory_from_args(
    args: "argparse.Namespace",
) -> Callable[[], RepositoryAdapter]:
    """Pick the adapter factory selected on the command line."""
    if args.backend == "dulwich":
        return DulwichAdapter
    return functools.partial(GitAdapter, git_path=args.git_path)


def main(argv: list[str] | None = None) -> None:
    """Entry point for starting an HTTP git server."""
    parser = make_argument_parser("Serve git repositories over HTTP (WSGI).")
    args = parser.parse_args(argv)

    log_utils.default_logging_config()
    app = make_wsgi_chain(
        args.root,
        allow_push=args.allow_push,
        allow_pull=args.allow_pull,
        adapter_factory=adapter_factory_from_args(args),
    )
    server = make_server(
        args.listen_address,
        args.port,
        app,
        handler_class=WSGIRequestHandlerLogger,
        server_class=WSGIServerLogger,
    )
    logger.info(
        "Listening for HTTP connections on %s:%d",
        args.listen_address,
        args.port,
    )
    server.serve_forever()


if __name__ == "__main__":
    main()
