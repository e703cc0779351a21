# routes.py -- Request routing for the git HTTP server
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

"""Ordered route table for the git HTTP server.

Each request path is matched against ROUTES in declared order and the first
rule that matches wins. Later rules are never consulted, so specific
``objects/info`` rules have to come before the ``objects/info`` catch-all.
"""

__all__ = [
    "ROUTES",
    "VALID_SERVICE_TYPES",
    "Direction",
    "ResourceKind",
    "Route",
    "RouteMatch",
    "bad_uri",
    "direction_for_service",
    "match_route",
    "sanitize_path",
]

import enum
import re
from collections.abc import Sequence
from typing import NamedTuple
from urllib.parse import unquote

# Pack services clients may ask for.
VALID_SERVICE_TYPES = ("git-upload-pack", "git-receive-pack")


class Direction(enum.Enum):
    """Which way repository data flows for a request."""

    PULL = "pull"
    PUSH = "push"
    UNKNOWN = "unknown"


class ResourceKind(enum.Enum):
    """The kinds of resource a route can resolve to."""

    PACK = "pack"
    INFO_REFS = "info_refs"
    TEXT_FILE = "text_file"
    INFO_PACKS = "info_packs"
    LOOSE_OBJECT = "loose_object"
    PACK_FILE = "pack_file"
    IDX_FILE = "idx_file"


class Route(NamedTuple):
    """A single routing rule.

    Attributes:
      pattern: Regular expression matched against the sanitized path. It
        captures ``repository`` and at most one of ``pack_type`` or ``path``.
      verb: The only HTTP method the resource accepts.
      kind: Resource kind the rule resolves to.
      direction: Direction hint for the request.
    """

    pattern: re.Pattern[str]
    verb: str
    kind: ResourceKind
    direction: Direction


class RouteMatch(NamedTuple):
    """The first rule matching a path, with its captures."""

    route: Route
    repository: str
    pack_type: str | None = None
    path: str | None = None


def _route(
    pattern: str, verb: str, kind: ResourceKind, direction: Direction = Direction.PULL
) -> Route:
    regex = re.compile("/(?P<repository>.*?)/" + pattern + r"\Z")
    return Route(regex, verb, kind, direction)


ROUTES: tuple[Route, ...] = (
    _route(
        "(?P<pack_type>git-upload-pack)", "POST", ResourceKind.PACK, Direction.PULL
    ),
    _route(
        "(?P<pack_type>git-receive-pack)", "POST", ResourceKind.PACK, Direction.PUSH
    ),
    _route("info/refs", "GET", ResourceKind.INFO_REFS, Direction.UNKNOWN),
    _route("(?P<path>HEAD)", "GET", ResourceKind.TEXT_FILE),
    _route("(?P<path>objects/info/alternates)", "GET", ResourceKind.TEXT_FILE),
    _route("(?P<path>objects/info/http-alternates)", "GET", ResourceKind.TEXT_FILE),
    _route("(?P<path>objects/info/packs)", "GET", ResourceKind.INFO_PACKS),
    _route("(?P<path>objects/info/[^/]+)", "GET", ResourceKind.TEXT_FILE),
    _route(
        "(?P<path>objects/[0-9a-f]{2}/[0-9a-f]{38})", "GET", ResourceKind.LOOSE_OBJECT
    ),
    _route(
        "(?P<path>objects/pack/pack-[0-9a-f]{40}\\.pack)", "GET", ResourceKind.PACK_FILE
    ),
    _route(
        "(?P<path>objects/pack/pack-[0-9a-f]{40}\\.idx)", "GET", ResourceKind.IDX_FILE
    ),
)


def sanitize_path(path: str) -> str:
    """Percent-decode a request path and collapse runs of slashes.

    Args:
      path: Path part of the request URI.
    Returns: The cleaned up path.
    """
    return re.sub("/+", "/", unquote(path))


def match_route(path: str, routes: Sequence[Route] = ROUTES) -> RouteMatch | None:
    """Find the first route matching a sanitized path.

    Args:
      path: A path as returned by sanitize_path().
      routes: Route table to search, in priority order.
    Returns: A RouteMatch for the first matching rule, or None.
    """
    for route in routes:
        mat = route.pattern.search(path)
        if mat is None:
            continue
        groups = mat.groupdict()
        return RouteMatch(
            route,
            groups["repository"],
            pack_type=groups.get("pack_type"),
            path=groups.get("path"),
        )
    return None


def bad_uri(repository: str) -> bool:
    """Check whether a captured repository name tries to escape the root.

    Args:
      repository: The raw captured repository name.
    Returns: True if any segment of the name is ``.`` or ``..``.
    """
    return any(segment in (".", "..") for segment in repository.split("/"))


def direction_for_service(service: str | None) -> Direction:
    """Map a pack service name to the direction it moves data in."""
    if service == "git-upload-pack":
        return Direction.PULL
    if service == "git-receive-pack":
        return Direction.PUSH
    return Direction.UNKNOWN
