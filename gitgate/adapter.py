# adapter.py -- Repository adapters backed by the git executable
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

"""Repository adapters.

The HTTP layer never looks inside a repository itself. For every request
the dispatcher constructs a fresh adapter, points it at the requested
repository and asks it for files, permissions and pack exchanges.

GitAdapter does this by running the ``git`` executable, the same way
``git http-backend`` drives ``git upload-pack`` and ``git receive-pack``.
"""

__all__ = [
    "READ_SIZE",
    "GitAdapter",
    "RepositoryAdapter",
    "advertisement_prefix",
]

import os
import subprocess
import tempfile
import threading
import zlib
from collections.abc import Callable
from typing import IO, BinaryIO

from dulwich.protocol import pkt_line

from . import log_utils
from .errors import AdapterError, CommandFailed
from .responses import FileStreamer

logger = log_utils.getLogger(__name__)

READ_SIZE = 32768


def advertisement_prefix(pack_type: str) -> bytes:
    """Return the service announcement that precedes a smart ref listing.

    Args:
      pack_type: The service, e.g. ``git-upload-pack``.
    Returns: A ``# service=`` pkt-line followed by a flush-pkt.
    """
    return pkt_line(f"# service={pack_type}\n".encode("ascii")) + pkt_line(None)


class RepositoryAdapter:
    """Access to one repository on behalf of one request.

    Attributes:
      repository_path: Filesystem path of the repository; set by the
        dispatcher before any other method is called.
    """

    repository_path: str | None = None

    def exists(self) -> bool:
        """Check whether the repository exists."""
        raise NotImplementedError(self.exists)

    def allow_push(self) -> bool:
        """Check whether the repository itself allows pushes."""
        raise NotImplementedError(self.allow_push)

    def allow_pull(self) -> bool:
        """Check whether the repository itself allows fetches."""
        raise NotImplementedError(self.allow_pull)

    def update_server_info(self) -> None:
        """Regenerate the files dumb clients rely on, such as info/refs."""
        raise NotImplementedError(self.update_server_info)

    def close(self) -> None:
        """Release anything held open for the request."""

    def open_file(self, path: str) -> FileStreamer | None:
        """Get a streamer for a file inside the repository.

        Args:
          path: Path relative to the repository, with ``/`` separators.
        Returns: A FileStreamer, or None if there is no such regular file.
        """
        assert self.repository_path is not None
        full_path = os.path.join(self.repository_path, path.replace("/", os.path.sep))
        if not os.path.isfile(full_path):
            return None
        return FileStreamer(full_path)

    def exchange(
        self,
        pack_type: str,
        io_in: BinaryIO | None,
        write: Callable[[bytes], object],
        advertise_refs: bool = False,
    ) -> None:
        """Run a pack exchange.

        Implementations read the request from io_in and pass output to write
        as it is produced, without collecting it first.

        Args:
          pack_type: ``git-upload-pack`` or ``git-receive-pack``.
          io_in: Reader for the request body; None when advertising refs.
          write: Callable that sends bytes to the client.
          advertise_refs: Only advertise refs, prefixed with the service
            announcement.
        Raises:
          AdapterError: if the exchange fails.
        """
        raise NotImplementedError(self.exchange)


class _InputFeeder(threading.Thread):
    """Copy a request body into a subprocess' stdin."""

    def __init__(self, io_in: BinaryIO, pipe: IO[bytes]) -> None:
        super().__init__(name="gitgate-input-feeder", daemon=True)
        self._io_in = io_in
        self._pipe = pipe
        self.error: Exception | None = None

    def run(self) -> None:
        try:
            while True:
                chunk = self._io_in.read(READ_SIZE)
                if not chunk:
                    break
                self._pipe.write(chunk)
        except BrokenPipeError:
            # git stopped reading; its exit status says whether that was fine.
            logger.debug("git closed its input early")
        except (OSError, EOFError, zlib.error) as e:
            self.error = e
        finally:
            try:
                self._pipe.close()
            except BrokenPipeError:
                pass


class GitAdapter(RepositoryAdapter):
    """Repository adapter that runs the git executable."""

    def __init__(self, git_path: str = "git") -> None:
        self.git_path = git_path

    def _git_dir(self) -> str:
        assert self.repository_path is not None
        dotgit = os.path.join(self.repository_path, ".git")
        if os.path.isdir(dotgit):
            return dotgit
        return self.repository_path

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[bytes]:
        cmd = [self.git_path, "--git-dir", self._git_dir(), *args]
        logger.debug("Running %s", cmd)
        return subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    def config(self, key: str) -> str | None:
        """Read a boolean setting from the repository configuration.

        Args:
          key: Setting name, e.g. ``http.receivepack``.
        Returns: ``"true"``, ``"false"``, or None if unset or not a boolean.
        """
        result = self._run(["config", "--bool", "--get", key])
        if result.returncode != 0:
            return None
        return result.stdout.decode("utf-8").strip()

    def exists(self) -> bool:
        assert self.repository_path is not None
        return os.path.exists(self.repository_path)

    def allow_push(self) -> bool:
        return self.config("http.receivepack") == "true"

    def allow_pull(self) -> bool:
        return self.config("http.uploadpack") != "false"

    def update_server_info(self) -> None:
        result = self._run(["update-server-info"])
        if result.returncode != 0:
            raise CommandFailed(
                [self.git_path, "update-server-info"], result.returncode, result.stderr
            )

    def exchange(
        self,
        pack_type: str,
        io_in: BinaryIO | None,
        write: Callable[[bytes], object],
        advertise_refs: bool = False,
    ) -> None:
        assert self.repository_path is not None
        cmd = [self.git_path, pack_type[len("git-") :], "--stateless-rpc"]
        if advertise_refs:
            write(advertisement_prefix(pack_type))
            cmd.append("--advertise-refs")
        cmd.append(self.repository_path)
        logger.debug("Running %s", cmd)

        with tempfile.TemporaryFile() as stderr:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL if io_in is None else subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=stderr,
            )
            assert proc.stdout is not None
            feeder = None
            if io_in is not None:
                assert proc.stdin is not None
                # Output has to flow while the request body is still arriving.
                feeder = _InputFeeder(io_in, proc.stdin)
                feeder.start()
            try:
                while True:
                    chunk = proc.stdout.read1(READ_SIZE)
                    if not chunk:
                        break
                    write(chunk)
            except BaseException:
                proc.kill()
                proc.stdout.close()
                proc.wait()
                raise
            proc.stdout.close()
            returncode = proc.wait()
            if feeder is not None:
                feeder.join()
                if feeder.error is not None:
                    raise AdapterError(
                        f"Unable to read request body: {feeder.error}"
                    ) from feeder.error
            if returncode != 0:
                stderr.seek(0)
                raise CommandFailed(cmd, returncode, stderr.read())
