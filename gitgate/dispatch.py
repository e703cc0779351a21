# dispatch.py -- Transport independent request dispatching
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

"""Route requests to handlers, independently of the HTTP transport.

The WSGI and aiohttp front ends both turn an incoming request into a
RequestInfo, hand it to Dispatcher.dispatch() and render the Response they
get back.
"""

__all__ = [
    "STATIC_HANDLERS",
    "Dispatcher",
    "resolve_direction",
    "resource_for",
]

import os
from collections.abc import Callable, Mapping, Sequence

from . import log_utils
from .adapter import GitAdapter, RepositoryAdapter
from .handlers import (
    GitRequest,
    InfoRefsResource,
    PackResource,
    RequestInfo,
    Resource,
    StaticResource,
    get_idx_file,
    get_info_packs,
    get_info_refs,
    get_loose_object,
    get_pack_file,
    get_text_file,
    handle_pack,
)
from .responses import (
    PackExchange,
    Response,
    bad_request,
    method_not_allowed,
    not_found,
)
from .routes import (
    ROUTES,
    Direction,
    ResourceKind,
    Route,
    RouteMatch,
    bad_uri,
    direction_for_service,
    match_route,
    sanitize_path,
)

logger = log_utils.getLogger(__name__)

Handler = Callable[[GitRequest], Response]

STATIC_HANDLERS: dict[ResourceKind, Handler] = {
    ResourceKind.TEXT_FILE: get_text_file,
    ResourceKind.INFO_PACKS: get_info_packs,
    ResourceKind.LOOSE_OBJECT: get_loose_object,
    ResourceKind.PACK_FILE: get_pack_file,
    ResourceKind.IDX_FILE: get_idx_file,
}


def resource_for(mat: RouteMatch, query: Mapping[str, str]) -> Resource:
    """Build the resource a route match refers to.

    Args:
      mat: Result of match_route().
      query: The request's query parameters.
    """
    kind = mat.route.kind
    if kind is ResourceKind.PACK:
        assert mat.pack_type is not None
        return PackResource(mat.pack_type)
    if kind is ResourceKind.INFO_REFS:
        return InfoRefsResource(query.get("service"))
    assert mat.path is not None
    return StaticResource(kind, mat.path)


def resolve_direction(route: Route, resource: Resource) -> Direction:
    """Work out the direction of a request.

    The route's hint is used, except that the refs listing takes its
    direction from the ``service`` parameter.
    """
    if route.direction is Direction.UNKNOWN and isinstance(resource, InfoRefsResource):
        return direction_for_service(resource.service)
    return route.direction


class Dispatcher:
    """Match requests to repositories and resources and run their handlers.

    A dispatcher only holds configuration, which never changes after
    construction, so one instance can serve any number of concurrent
    requests.

    Attributes:
      root: Absolute path of the directory holding the repositories.
      allow_push: Whether to allow pushes; None defers to each repository.
      allow_pull: Whether to allow fetches; None defers to each repository.
      adapter_factory: Callable returning a new adapter for every request.
      routes: Route table, in priority order.
    """

    def __init__(
        self,
        root: str = ".",
        allow_push: bool | None = None,
        allow_pull: bool | None = None,
        adapter_factory: Callable[[], RepositoryAdapter] = GitAdapter,
        routes: Sequence[Route] = ROUTES,
    ) -> None:
        self.root = os.path.abspath(os.path.expanduser(root))
        self.allow_push = allow_push
        self.allow_pull = allow_pull
        self.adapter_factory = adapter_factory
        self.routes = tuple(routes)

    def match(self, path: str) -> RouteMatch | None:
        """Sanitize a raw request path and find the route it matches."""
        return match_route(sanitize_path(path), self.routes)

    def build_request(self, info: RequestInfo, mat: RouteMatch) -> GitRequest:
        """Create the context for a routed request, with a fresh adapter."""
        repository_path = os.path.join(self.root, mat.repository)
        adapter = self.adapter_factory()
        adapter.repository_path = repository_path
        resource = resource_for(mat, info.query)
        return GitRequest(
            info=info,
            adapter=adapter,
            repository_path=repository_path,
            match=mat,
            resource=resource,
            direction=resolve_direction(mat.route, resource),
            allow_push=self.allow_push,
            allow_pull=self.allow_pull,
        )

    def dispatch(self, info: RequestInfo) -> Response:
        """Handle a request.

        Routing failures are checked in a fixed order: a wrong verb beats a
        bad repository path, which beats a missing repository.

        Args:
          info: The incoming request.
        Returns: The response to send.
        """
        mat = self.match(info.path)
        if mat is None:
            return not_found(f"No route for {info.path}")
        if mat.route.verb != info.method:
            return method_not_allowed(info.protocol)
        if bad_uri(mat.repository):
            return bad_request(f"Invalid repository path {mat.repository}")
        req = self.build_request(info, mat)
        response = None
        try:
            if not req.adapter.exists():
                response = not_found(f"No repository at {req.repository_path}")
            else:
                response = self.handle(req)
        finally:
            # A pack exchange closes the adapter itself once it has run.
            if response is None or not isinstance(response.body, PackExchange):
                req.adapter.close()
        return response

    def handle(self, req: GitRequest) -> Response:
        """Run the handler for the request's resource."""
        resource = req.resource
        handler: Handler
        if isinstance(resource, PackResource):
            handler = handle_pack
        elif isinstance(resource, InfoRefsResource):
            handler = get_info_refs
        elif isinstance(resource, StaticResource):
            handler = STATIC_HANDLERS[resource.kind]
        else:
            raise TypeError(f"Unknown resource {resource!r}")
        logger.debug(
            "Dispatching %s %s to %s", req.info.method, req.info.path, handler.__name__
        )
        return handler(req)
