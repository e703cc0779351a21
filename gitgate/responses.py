# responses.py -- Response descriptors and header policies
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

"""Transport independent HTTP responses.

A handler returns a Response; the WSGI or aiohttp front end then turns it
into an actual HTTP response. Bodies come in three flavours: a fixed byte
string, a FileStreamer that reads a file lazily, or a PackExchange that the
transport runs against a live output sink once the headers are sent.
"""

__all__ = [
    "HTTP_BAD_REQUEST",
    "HTTP_FORBIDDEN",
    "HTTP_METHOD_NOT_ALLOWED",
    "HTTP_NOT_FOUND",
    "HTTP_OK",
    "NO_CACHE_HEADERS",
    "FileStreamer",
    "PackExchange",
    "Response",
    "bad_request",
    "cache_forever_headers",
    "date_time_string",
    "forbidden",
    "method_not_allowed",
    "not_found",
    "send_file",
]

import os
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from email.utils import formatdate
from http import HTTPStatus
from typing import TYPE_CHECKING, BinaryIO, Union

from . import log_utils
from .errors import AdapterError

if TYPE_CHECKING:
    from .adapter import RepositoryAdapter

logger = log_utils.getLogger(__name__)


HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_METHOD_NOT_ALLOWED = 405

ONE_YEAR = 31536000

NO_CACHE_HEADERS = (
    ("Expires", "Fri, 01 Jan 1980 00:00:00 GMT"),
    ("Pragma", "no-cache"),
    ("Cache-Control", "no-cache, max-age=0, must-revalidate"),
)

PLAIN_TYPE = (("Content-Type", "text/plain"),)


def date_time_string(timestamp: float | None = None) -> str:
    """Convert a timestamp to an HTTP date string.

    Args:
      timestamp: Unix timestamp to convert (defaults to current time)

    Returns:
      HTTP date string in RFC 1123 format
    """
    return formatdate(timestamp, usegmt=True)


def cache_forever_headers(now: float | None = None) -> tuple[tuple[str, str], ...]:
    """Generate headers that let clients and proxies cache for a year.

    Args:
      now: Timestamp to use as base (defaults to current time)
    """
    if now is None:
        now = time.time()
    return (
        ("Date", date_time_string(now)),
        ("Expires", date_time_string(now + ONE_YEAR)),
        ("Cache-Control", f"public, max-age={ONE_YEAR}"),
    )


class FileStreamer:
    """Lazily read a repository file in chunks.

    The modification time is taken when the streamer is created; the file
    itself is only opened once iteration starts.
    """

    chunk_size = 10240

    def __init__(self, path: str) -> None:
        self.path = path
        self.mtime = os.path.getmtime(path)

    def to_path(self) -> str:
        return self.path

    def __iter__(self) -> Iterator[bytes]:
        with open(self.path, "rb") as f:
            while True:
                data = f.read(self.chunk_size)
                if not data:
                    break
                yield data


class PackExchange:
    """A pack exchange waiting for a sink to write its output to.

    Attributes:
      adapter: Adapter bound to the requested repository.
      pack_type: Service to run, e.g. ``git-upload-pack``.
      io_in: Reader with the (decompressed) request body, or None when only
        advertising refs.
      advertise_refs: Whether to only advertise refs.
    """

    def __init__(
        self,
        adapter: "RepositoryAdapter",
        pack_type: str,
        io_in: BinaryIO | None,
        advertise_refs: bool = False,
    ) -> None:
        self.adapter = adapter
        self.pack_type = pack_type
        self.io_in = io_in
        self.advertise_refs = advertise_refs

    def run(self, write: Callable[[bytes], object]) -> bool:
        """Let the adapter stream the exchange into write.

        Output is handed to write as the adapter produces it. A failure part
        way through can not be reported to the client any more, so it is
        logged and the stream just ends. The adapter is closed afterwards.

        Args:
          write: Callable that sends bytes to the client.
        Returns: True if the exchange completed, False if the adapter failed.
        """
        logger.info(
            "Handling %s%s for %s",
            self.pack_type,
            " advertisement" if self.advertise_refs else "",
            self.adapter.repository_path,
        )
        try:
            self.adapter.exchange(
                self.pack_type, self.io_in, write, advertise_refs=self.advertise_refs
            )
        except AdapterError:
            logger.exception(
                "%s failed for %s", self.pack_type, self.adapter.repository_path
            )
            return False
        finally:
            self.adapter.close()
        return True


Body = Union[bytes, FileStreamer, PackExchange]


@dataclass(frozen=True)
class Response:
    """Status, headers and body source of a response."""

    status: int
    headers: tuple[tuple[str, str], ...]
    body: Body = b""

    @property
    def status_line(self) -> str:
        """The status formatted the way WSGI wants it, e.g. ``200 OK``."""
        return f"{self.status} {HTTPStatus(self.status).phrase}"

    def get_header(self, name: str) -> str | None:
        """Look up a header value by case-insensitive name."""
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


def send_file(
    streamer: FileStreamer | None,
    content_type: str,
    headers: Sequence[tuple[str, str]] = (),
) -> Response:
    """Build a response that streams a file.

    Args:
      streamer: Streamer for the file, or None if it does not exist.
      content_type: The MIME type of the content.
      headers: Cache policy headers to include.
    Returns: A 404 response if there is no file, otherwise a 200 response
      with the file as body.
    """
    if streamer is None:
        return not_found("File not found")
    return Response(
        HTTP_OK,
        (
            *headers,
            ("Content-Type", content_type),
            ("Last-Modified", date_time_string(streamer.mtime)),
        ),
        streamer,
    )


def bad_request(reason: str = "Bad request") -> Response:
    """Return a 400 response; reason is only logged."""
    logger.info("Bad request: %s", reason)
    return Response(HTTP_BAD_REQUEST, PLAIN_TYPE, b"Bad Request")


def forbidden(reason: str = "Forbidden") -> Response:
    """Return a 403 response; reason is only logged."""
    logger.info("Forbidden: %s", reason)
    return Response(HTTP_FORBIDDEN, PLAIN_TYPE, b"Forbidden")


def not_found(reason: str = "Not found") -> Response:
    """Return a 404 response; reason is only logged."""
    logger.info("Not found: %s", reason)
    return Response(HTTP_NOT_FOUND, PLAIN_TYPE, b"Not Found")


def method_not_allowed(protocol: str | None) -> Response:
    """Return a response for a request using the wrong verb.

    HTTP/1.1 requests get a 405; HTTP/1.0 has no such status, so anything
    else gets a 400 instead.

    Args:
      protocol: The request protocol, e.g. ``HTTP/1.1``.
    """
    if protocol == "HTTP/1.1":
        logger.info("Method not allowed")
        return Response(HTTP_METHOD_NOT_ALLOWED, PLAIN_TYPE, b"Method Not Allowed")
    return bad_request(f"Method not allowed over {protocol}")
