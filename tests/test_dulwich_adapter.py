# test_dulwich_adapter.py -- tests for the in-process adapter
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

"""Tests for gitgate.dulwich_adapter."""

import os
from io import BytesIO

from dulwich.protocol import pkt_line
from dulwich.server import UploadPackHandler

from gitgate.adapter import advertisement_prefix
from gitgate.dispatch import Dispatcher
from gitgate.dulwich_adapter import DulwichAdapter
from gitgate.errors import AdapterError, NotGitRepository
from gitgate.handlers import RequestInfo
from gitgate.responses import HTTP_FORBIDDEN, HTTP_OK

from . import TestCase
from .utils import make_repo_with_commit, set_http_config


class DulwichAdapterTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.path = os.path.join(self.make_tempdir(), "repo.git")
        repo, self.commit = make_repo_with_commit(self.path)
        repo.close()
        self.adapter = DulwichAdapter()
        self.adapter.repository_path = self.path
        self.addCleanup(self.adapter.close)
        self.output: list[bytes] = []

    def exchange(self, pack_type, io_in=None, advertise_refs=False) -> bytes:
        self.adapter.exchange(
            pack_type, io_in, self.output.append, advertise_refs=advertise_refs
        )
        return b"".join(self.output)

    def test_exists(self) -> None:
        self.assertTrue(self.adapter.exists())

    def test_not_a_repository(self) -> None:
        adapter = DulwichAdapter()
        adapter.repository_path = self.make_tempdir()
        self.assertFalse(adapter.exists())
        self.assertRaises(NotGitRepository, adapter.open_repository)
        adapter.repository_path = os.path.join(adapter.repository_path, "missing")
        self.assertFalse(adapter.exists())

    def test_default_permissions(self) -> None:
        self.assertTrue(self.adapter.allow_pull())
        self.assertFalse(self.adapter.allow_push())

    def test_configured_permissions(self) -> None:
        set_http_config(self.path, b"receivepack", True)
        set_http_config(self.path, b"uploadpack", False)
        self.assertTrue(self.adapter.allow_push())
        self.assertFalse(self.adapter.allow_pull())

    def test_update_server_info(self) -> None:
        self.adapter.update_server_info()
        with open(os.path.join(self.path, "info", "refs"), "rb") as f:
            self.assertIn(self.commit.id + b"\trefs/heads/master\n", f.read())

    def test_advertise_upload_pack(self) -> None:
        output = self.exchange("git-upload-pack", advertise_refs=True)
        self.assertTrue(output.startswith(advertisement_prefix("git-upload-pack")))
        self.assertIn(self.commit.id, output)
        self.assertTrue(output.endswith(b"0000"))

    def test_advertise_receive_pack(self) -> None:
        output = self.exchange("git-receive-pack", advertise_refs=True)
        self.assertTrue(output.startswith(advertisement_prefix("git-receive-pack")))
        self.assertIn(b"report-status", output)

    def test_fetch(self) -> None:
        body = (
            pkt_line(b"want " + self.commit.id + b"\n")
            + pkt_line(None)
            + pkt_line(b"done\n")
        )
        output = self.exchange("git-upload-pack", BytesIO(body))
        self.assertIn(b"NAK", output)
        self.assertIn(b"PACK", output)

    def test_unknown_service(self) -> None:
        self.assertRaises(AdapterError, self.exchange, "git-frobnicate")
        self.assertEqual([], self.output)

    def test_handler_overrides(self) -> None:
        adapter = DulwichAdapter(handlers={b"git-frobnicate": UploadPackHandler})
        self.assertIs(UploadPackHandler, adapter.handlers[b"git-frobnicate"])
        self.assertIn(b"git-receive-pack", adapter.handlers)

    def test_close(self) -> None:
        repo = self.adapter.open_repository()
        self.assertIs(repo, self.adapter.open_repository())
        self.adapter.close()
        self.assertIsNot(repo, self.adapter.open_repository())


class DulwichAdapterDispatchTests(TestCase):
    """Check that requests served through a Dispatcher release the repository."""

    def setUp(self) -> None:
        super().setUp()
        root = self.make_tempdir()
        repo, self.commit = make_repo_with_commit(os.path.join(root, "repo.git"))
        repo.close()
        self.adapters: list[DulwichAdapter] = []
        self.dispatcher = Dispatcher(root, adapter_factory=self.make_adapter)

    def make_adapter(self) -> DulwichAdapter:
        adapter = DulwichAdapter()
        self.adapters.append(adapter)
        return adapter

    def get_refs(self, service: str):
        info = RequestInfo("GET", "/repo.git/info/refs", query={"service": service})
        return self.dispatcher.dispatch(info)

    def test_static_file(self) -> None:
        response = self.dispatcher.dispatch(RequestInfo("GET", "/repo.git/HEAD"))
        self.assertEqual(HTTP_OK, response.status)
        self.assertIsNone(self.adapters[0]._repo)
        self.assertEqual(b"ref: refs/heads/master\n", b"".join(response.body))

    def test_refused_request(self) -> None:
        response = self.get_refs("git-receive-pack")
        self.assertEqual(HTTP_FORBIDDEN, response.status)
        self.assertIsNone(self.adapters[0]._repo)

    def test_pack_exchange(self) -> None:
        response = self.get_refs("git-upload-pack")
        output: list[bytes] = []
        self.assertTrue(response.body.run(output.append))
        self.assertIn(self.commit.id, b"".join(output))
        self.assertIsNone(self.adapters[0]._repo)
