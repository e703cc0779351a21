# dulwich_adapter.py -- Repository adapter backed by dulwich
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

"""Repository adapter that serves repositories in-process with dulwich.

Useful where no git executable is available: refs advertisement, fetches
and pushes are handled by dulwich's own protocol handlers.
"""

__all__ = ["DulwichAdapter"]

from collections.abc import Callable
from io import BytesIO
from typing import Any, BinaryIO

from dulwich.errors import GitProtocolError
from dulwich.errors import NotGitRepository as DulwichNotGitRepository
from dulwich.protocol import ReceivableProtocol
from dulwich.repo import Repo
from dulwich.server import DEFAULT_HANDLERS, DictBackend, update_server_info

from . import log_utils
from .adapter import RepositoryAdapter, advertisement_prefix
from .errors import AdapterError, NotGitRepository

logger = log_utils.getLogger(__name__)


class DulwichAdapter(RepositoryAdapter):
    """Repository adapter using dulwich's upload-pack and receive-pack.

    Attributes:
      handlers: Map from service name (bytes) to dulwich handler class.
    """

    def __init__(self, handlers: dict[bytes, Callable[..., Any]] | None = None) -> None:
        self.handlers: dict[bytes, Callable[..., Any]] = dict(DEFAULT_HANDLERS)
        if handlers is not None:
            self.handlers.update(handlers)
        self._repo: Repo | None = None

    def open_repository(self) -> Repo:
        """Open the repository at repository_path.

        Raises:
          NotGitRepository: if there is no repository there.
        """
        if self._repo is None:
            try:
                self._repo = Repo(self.repository_path)
            except DulwichNotGitRepository as e:
                raise NotGitRepository(str(e)) from e
        return self._repo

    def close(self) -> None:
        """Release the repository's open files."""
        if self._repo is not None:
            self._repo.close()
            self._repo = None

    def _get_boolean(self, name: bytes, default: bool) -> bool:
        config = self.open_repository().get_config()
        value = config.get_boolean((b"http",), name, default)
        return default if value is None else value

    def exists(self) -> bool:
        try:
            self.open_repository()
        except NotGitRepository:
            return False
        return True

    def allow_push(self) -> bool:
        return self._get_boolean(b"receivepack", False)

    def allow_pull(self) -> bool:
        return self._get_boolean(b"uploadpack", True)

    def update_server_info(self) -> None:
        try:
            update_server_info(self.open_repository())
        finally:
            self.close()

    def exchange(
        self,
        pack_type: str,
        io_in: BinaryIO | None,
        write: Callable[[bytes], object],
        advertise_refs: bool = False,
    ) -> None:
        handler_cls = self.handlers.get(pack_type.encode("ascii"))
        if handler_cls is None:
            raise AdapterError(f"Unsupported service {pack_type}")
        repo = self.open_repository()

        def write_fn(data: bytes) -> int:
            write(data)
            return len(data)

        read = BytesIO().read if io_in is None else io_in.read
        proto = ReceivableProtocol(read, write_fn)
        if advertise_refs:
            write(advertisement_prefix(pack_type))
        handler = handler_cls(
            DictBackend({b"/": repo}),
            [b"/"],
            proto,
            stateless_rpc=True,
            advertise_refs=advertise_refs,
        )
        try:
            handler.handle()
        except GitProtocolError as e:
            raise AdapterError(f"{pack_type} failed: {e}") from e
        finally:
            self.close()
