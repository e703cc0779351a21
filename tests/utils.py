# utils.py -- test utilities
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

"""Utility functions common to gitgate tests."""

import os
from collections.abc import Callable
from typing import BinaryIO

from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo

from gitgate.adapter import RepositoryAdapter, advertisement_prefix
from gitgate.errors import AdapterError

# Refs a FakeAdapter writes when asked to update server info.
FAKE_INFO_REFS = b"1234567890123456789012345678901234567890\trefs/heads/master\n"


class FakeAdapter(RepositoryAdapter):
    """Adapter over a plain directory that records what it is asked to do.

    The repository exists if its directory does. Pack exchanges consume the
    whole input, write ``output`` and then raise ``error`` if one was given.
    """

    def __init__(
        self,
        allow_push: bool = False,
        allow_pull: bool = True,
        output: bytes = b"",
        error: AdapterError | None = None,
    ) -> None:
        self._allow_push = allow_push
        self._allow_pull = allow_pull
        self.output = output
        self.error = error
        self.exchanges: list[tuple[str, bytes | None, bool]] = []
        self.server_info_updates = 0
        self.closed = 0

    def exists(self) -> bool:
        assert self.repository_path is not None
        return os.path.isdir(self.repository_path)

    def allow_push(self) -> bool:
        return self._allow_push

    def allow_pull(self) -> bool:
        return self._allow_pull

    def close(self) -> None:
        self.closed += 1

    def update_server_info(self) -> None:
        assert self.repository_path is not None
        self.server_info_updates += 1
        info_dir = os.path.join(self.repository_path, "info")
        os.makedirs(info_dir, exist_ok=True)
        with open(os.path.join(info_dir, "refs"), "wb") as f:
            f.write(FAKE_INFO_REFS)

    def exchange(
        self,
        pack_type: str,
        io_in: BinaryIO | None,
        write: Callable[[bytes], object],
        advertise_refs: bool = False,
    ) -> None:
        data = None if io_in is None else io_in.read()
        self.exchanges.append((pack_type, data, advertise_refs))
        if advertise_refs:
            write(advertisement_prefix(pack_type))
        write(self.output)
        if self.error is not None:
            raise self.error


class FakeAdapterFactory:
    """Adapter factory handing out FakeAdapters and remembering them."""

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.adapters: list[FakeAdapter] = []

    def __call__(self) -> FakeAdapter:
        adapter = FakeAdapter(**self.kwargs)
        self.adapters.append(adapter)
        return adapter

    @property
    def exchanges(self) -> list[tuple[str, bytes | None, bool]]:
        return [e for adapter in self.adapters for e in adapter.exchanges]


def write_file(path: str, contents: bytes) -> None:
    """Write a file, creating its parent directories."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(contents)


def make_repo_with_commit(path: str) -> tuple[Repo, Commit]:
    """Create a bare repository at path with a single commit on master.

    All objects are stored loose.
    """
    repo = Repo.init_bare(path, mkdir=True)
    blob = Blob.from_string(b"hello\n")
    tree = Tree()
    tree.add(b"hello.txt", 0o100644, blob.id)
    commit = Commit()
    commit.tree = tree.id
    commit.author = commit.committer = b"Test User <test@example.com>"
    commit.author_time = commit.commit_time = 1700000000
    commit.author_timezone = commit.commit_timezone = 0
    commit.message = b"Initial commit\n"
    repo.object_store.add_objects([(blob, None), (tree, None), (commit, None)])
    repo.refs[b"refs/heads/master"] = commit.id
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")
    return repo, commit


def set_http_config(path: str, name: bytes, value: bool) -> None:
    """Set an ``http.*`` boolean in a repository's configuration."""
    repo = Repo(path)
    try:
        config = repo.get_config()
        config.set((b"http",), name, value)
        config.write_to_path()
    finally:
        repo.close()
