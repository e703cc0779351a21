# handlers.py -- Resource handlers for the git HTTP server
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

"""Handlers for the resources the git HTTP server exposes.

Every handler takes the per-request GitRequest built by the dispatcher and
returns a Response. Handlers that touch repository content check
authorization before they ask the adapter for anything.
"""

__all__ = [
    "GitRequest",
    "InfoRefsResource",
    "PackResource",
    "RequestInfo",
    "StaticResource",
    "exchange_pack",
    "get_idx_file",
    "get_info_packs",
    "get_info_refs",
    "get_loose_object",
    "get_pack_file",
    "get_text_file",
    "handle_pack",
    "request_io_in",
]

import gzip
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from io import BytesIO
from typing import TYPE_CHECKING, BinaryIO, Union

from . import log_utils
from .auth import authorized
from .responses import (
    HTTP_OK,
    NO_CACHE_HEADERS,
    PackExchange,
    Response,
    cache_forever_headers,
    forbidden,
    not_found,
    send_file,
)
from .routes import VALID_SERVICE_TYPES, Direction, ResourceKind, RouteMatch

if TYPE_CHECKING:
    from .adapter import RepositoryAdapter

logger = log_utils.getLogger(__name__)


@dataclass(frozen=True)
class RequestInfo:
    """What the dispatcher needs to know about an incoming HTTP request.

    Attributes:
      method: HTTP verb.
      path: Request path, not yet sanitized.
      query: Query parameters, first value per name.
      content_type: Raw Content-Type header, if any.
      content_encoding: Raw Content-Encoding header, if any.
      protocol: Request protocol, e.g. ``HTTP/1.1``.
      body: Reader for the request body.
    """

    method: str
    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    content_type: str | None = None
    content_encoding: str | None = None
    protocol: str = "HTTP/1.1"
    body: BinaryIO | None = None


@dataclass(frozen=True)
class PackResource:
    """A pack RPC endpoint."""

    pack_type: str


@dataclass(frozen=True)
class InfoRefsResource:
    """The refs listing; service is the ``service`` query parameter."""

    service: str | None


@dataclass(frozen=True)
class StaticResource:
    """A file served as-is from the repository."""

    kind: ResourceKind
    path: str


Resource = Union[PackResource, InfoRefsResource, StaticResource]


@dataclass(frozen=True)
class GitRequest:
    """State of a single git HTTP request.

    Built once by the dispatcher after routing succeeds and never shared
    between requests.
    """

    info: RequestInfo
    adapter: "RepositoryAdapter"
    repository_path: str
    match: RouteMatch
    resource: Resource
    direction: Direction
    allow_push: bool | None = None
    allow_pull: bool | None = None

    def authorized(self) -> bool:
        """Check the configured and per-repository access policy."""
        return authorized(
            self.direction,
            self.allow_push,
            self.allow_pull,
            self.adapter,
            rpc=isinstance(self.resource, PackResource),
        )


def request_io_in(body: BinaryIO | None, content_encoding: str | None) -> BinaryIO:
    """Get a reader that yields the request body uncompressed.

    Args:
      body: Reader for the raw request body.
      content_encoding: The request's Content-Encoding header.
    Returns: A gzip reader around body if the body is gzip encoded,
      otherwise body itself.
    """
    if body is None:
        body = BytesIO()
    if content_encoding and "gzip" in content_encoding:
        return gzip.GzipFile(fileobj=body, mode="rb")  # type: ignore[return-value]
    return body


def exchange_pack(
    req: GitRequest,
    headers: Sequence[tuple[str, str]],
    io_in: BinaryIO | None,
    pack_type: str,
    advertise_refs: bool = False,
) -> Response:
    """Open a tunnel between the client and the adapter's pack exchange.

    Args:
      req: The request being handled.
      headers: Response headers.
      io_in: Reader with client input, or None.
      pack_type: Service to run.
      advertise_refs: Whether to only advertise refs.
    Returns: A 200 response whose body runs the exchange.
    """
    return Response(
        HTTP_OK,
        tuple(headers),
        PackExchange(req.adapter, pack_type, io_in, advertise_refs=advertise_refs),
    )


def handle_pack(req: GitRequest) -> Response:
    """Handle a git-upload-pack or git-receive-pack RPC.

    Malformed and unauthorized requests both get a 403, so clients can not
    tell them apart.
    """
    assert isinstance(req.resource, PackResource)
    pack_type = req.resource.pack_type
    if pack_type not in VALID_SERVICE_TYPES:
        return forbidden(f"Unsupported service {pack_type}")
    if req.info.content_type != f"application/x-{pack_type}-request":
        return forbidden(f"Unexpected content type {req.info.content_type}")
    if not req.authorized():
        return forbidden(f"{pack_type} not allowed for {req.repository_path}")
    headers = [("Content-Type", f"application/x-{pack_type}-result")]
    return exchange_pack(
        req, headers, request_io_in(req.info.body, req.info.content_encoding), pack_type
    )


def get_info_refs(req: GitRequest) -> Response:
    """List the refs of a repository.

    Without a ``service`` parameter the client speaks the dumb protocol: the
    adapter refreshes info/refs and the file is sent as is. With a valid
    service the ref advertisement comes from the pack exchange.
    """
    assert isinstance(req.resource, InfoRefsResource)
    service = req.resource.service
    if not req.authorized():
        return forbidden(f"Listing refs not allowed for {req.repository_path}")
    if service is None:
        logger.info("Sending dumb info/refs for %s", req.repository_path)
        req.adapter.update_server_info()
        return send_file(
            req.adapter.open_file("info/refs"),
            "text/plain; charset=utf-8",
            NO_CACHE_HEADERS,
        )
    if service in VALID_SERVICE_TYPES:
        headers = [
            *NO_CACHE_HEADERS,
            ("Content-Type", f"application/x-{service}-advertisement"),
        ]
        return exchange_pack(req, headers, None, service, advertise_refs=True)
    return not_found(f"Unsupported service {service}")


def _static_path(req: GitRequest) -> str:
    assert isinstance(req.resource, StaticResource)
    return req.resource.path


def get_text_file(req: GitRequest) -> Response:
    """Send a plain text file, e.g. HEAD, with caching disabled."""
    if not req.authorized():
        return forbidden(f"Reading not allowed for {req.repository_path}")
    path = _static_path(req)
    logger.info("Sending plain text file %s", path)
    return send_file(req.adapter.open_file(path), "text/plain", NO_CACHE_HEADERS)


def get_info_packs(req: GitRequest) -> Response:
    """Send the objects/info/packs listing with caching disabled."""
    if not req.authorized():
        return forbidden(f"Reading not allowed for {req.repository_path}")
    path = _static_path(req)
    logger.info("Sending info packs %s", path)
    return send_file(
        req.adapter.open_file(path), "text/plain; charset=utf-8", NO_CACHE_HEADERS
    )


def get_loose_object(req: GitRequest) -> Response:
    """Send a loose object.

    Objects are content addressed and never change, so they may be cached
    forever.
    """
    if not req.authorized():
        return forbidden(f"Reading not allowed for {req.repository_path}")
    path = _static_path(req)
    logger.info("Sending loose object %s", path)
    return send_file(
        req.adapter.open_file(path),
        "application/x-git-loose-object",
        cache_forever_headers(),
    )


def get_pack_file(req: GitRequest) -> Response:
    """Send a pack file, cacheable forever."""
    if not req.authorized():
        return forbidden(f"Reading not allowed for {req.repository_path}")
    path = _static_path(req)
    logger.info("Sending pack file %s", path)
    return send_file(
        req.adapter.open_file(path),
        "application/x-git-packed-objects",
        cache_forever_headers(),
    )


def get_idx_file(req: GitRequest) -> Response:
    """Send a pack index file, cacheable forever."""
    if not req.authorized():
        return forbidden(f"Reading not allowed for {req.repository_path}")
    path = _static_path(req)
    logger.info("Sending pack index %s", path)
    return send_file(
        req.adapter.open_file(path),
        "application/x-git-packed-objects-toc",
        cache_forever_headers(),
    )
