# server.py -- aiohttp smart-http server
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


"""aiohttp front end for the git smart HTTP server.

Dispatching and pack exchanges block, so they run in worker threads; output
produced there is handed back to the event loop for writing.
"""

__all__ = [
    "DISPATCHER_KEY",
    "SyncRequestReader",
    "create_app",
    "handle_request",
    "main",
    "send_response",
]

import asyncio
import sys

from aiohttp import web
from aiohttp.streams import StreamReader

from .. import log_utils
from ..dispatch import Dispatcher
from ..handlers import RequestInfo
from ..responses import FileStreamer, PackExchange, Response
from ..web import adapter_factory_from_args, make_argument_parser

logger = log_utils.getLogger(__name__)

# Application keys for type-safe access to app state
DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)


class SyncRequestReader:
    """Blocking reader over a request body.

    Only usable from a thread other than the one running the event loop.
    """

    def __init__(self, content: StreamReader, loop: asyncio.AbstractEventLoop) -> None:
        self._content = content
        self._loop = loop

    def read(self, size: int = -1) -> bytes:
        future = asyncio.run_coroutine_threadsafe(self._content.read(size), self._loop)
        return future.result()


def request_info(request: web.Request) -> RequestInfo:
    """Extract what the dispatcher needs from an aiohttp request."""
    loop = asyncio.get_running_loop()
    return RequestInfo(
        method=request.method,
        path=request.rel_url.raw_path,
        query={name: request.query.getone(name) for name in request.query},
        content_type=request.headers.get("Content-Type"),
        content_encoding=request.headers.get("Content-Encoding"),
        protocol=f"HTTP/{request.version.major}.{request.version.minor}",
        body=SyncRequestReader(request.content, loop),  # type: ignore[arg-type]
    )


async def _send_exchange(
    request: web.Request, response: web.StreamResponse, exchange: PackExchange
) -> None:
    loop = asyncio.get_running_loop()

    def write(data: bytes) -> None:
        asyncio.run_coroutine_threadsafe(response.write(data), loop).result()

    if not await asyncio.to_thread(exchange.run, write):
        # Headers are already sent; dropping the connection is all that is left.
        response.force_close()


async def send_response(
    request: web.Request, response: Response
) -> web.StreamResponse:
    """Write a dispatcher response to the client.

    Args:
      request: aiohttp request object
      response: Response returned by the dispatcher
    Returns: The aiohttp response that was sent
    """
    headers = dict(response.headers)
    body = response.body
    if isinstance(body, bytes):
        return web.Response(status=response.status, headers=headers, body=body)
    stream = web.StreamResponse(status=response.status, headers=headers)
    await stream.prepare(request)
    if isinstance(body, FileStreamer):
        for data in body:
            await stream.write(data)
    else:
        await _send_exchange(request, stream, body)
    await stream.write_eof()
    return stream


async def handle_request(request: web.Request) -> web.StreamResponse:
    """Handle any request by handing it to the application's dispatcher.

    Args:
      request: aiohttp request object
    Returns: Response from the dispatcher
    """
    dispatcher = request.app[DISPATCHER_KEY]
    response = await asyncio.to_thread(dispatcher.dispatch, request_info(request))
    return await send_response(request, response)


def create_app(dispatcher: Dispatcher) -> web.Application:
    """Create an aiohttp application serving the dispatcher's repositories.

    Request bodies are passed on untouched; gzip encoded pack requests are
    decompressed by the pack handler.

    Args:
      dispatcher: Dispatcher to route requests with
    Returns: Configured aiohttp Application
    """
    app = web.Application(handler_args={"auto_decompress": False})
    app[DISPATCHER_KEY] = dispatcher
    app.router.add_route("*", "/{tail:.*}", handle_request)
    return app


def main(argv: list[str] | None = None) -> None:
    """Entry point for starting an HTTP git server."""
    parser = make_argument_parser("Serve git repositories over HTTP (aiohttp).")
    args = parser.parse_args(argv)

    log_utils.default_logging_config()
    dispatcher = Dispatcher(
        args.root,
        allow_push=args.allow_push,
        allow_pull=args.allow_pull,
        adapter_factory=adapter_factory_from_args(args),
    )
    logger.info(
        "Listening for HTTP connections on %s:%d",
        args.listen_address,
        args.port,
    )
    web.run_app(create_app(dispatcher), port=args.port, host=args.listen_address)


if __name__ == "__main__":
    main(sys.argv[1:])
