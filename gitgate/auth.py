# auth.py -- Authorization decisions for repository access
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

"""Decide whether a request may read from or write to a repository."""

__all__ = ["authorized", "need_read"]

from typing import TYPE_CHECKING

from .routes import Direction

if TYPE_CHECKING:
    from .adapter import RepositoryAdapter


def need_read(direction: Direction, rpc: bool = False) -> bool:
    """Check whether a request needs read (rather than write) access.

    Args:
      direction: Resolved direction of the request.
      rpc: Whether the request is a pack RPC rather than a plain GET.
    Returns: True for pulls, and for requests of unknown direction that only
      read static repository content.
    """
    if direction is Direction.PULL:
        return True
    return direction is Direction.UNKNOWN and not rpc


def authorized(
    direction: Direction,
    allow_push: bool | None,
    allow_pull: bool | None,
    adapter: "RepositoryAdapter",
    rpc: bool = False,
) -> bool:
    """Decide whether a request is allowed.

    Explicitly configured flags win; None defers to the repository's own
    settings as reported by the adapter.

    Args:
      direction: Resolved direction of the request.
      allow_push: Configured push policy, or None.
      allow_pull: Configured pull policy, or None.
      adapter: Adapter bound to the requested repository.
      rpc: Whether the request is a pack RPC.
    Returns: True if the request may proceed.
    """
    if need_read(direction, rpc):
        if allow_pull is not None:
            return allow_pull
        return adapter.allow_pull()
    if allow_push is not None:
        return allow_push
    return adapter.allow_push()
