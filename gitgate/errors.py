# errors.py -- Errors for gitgate
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

"""gitgate exception classes."""


class AdapterError(Exception):
    """A repository adapter failed to complete an operation."""


class NotGitRepository(AdapterError):
    """The requested path is not a git repository."""


class CommandFailed(AdapterError):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: bytes = b"") -> None:
        """Initialize a CommandFailed exception.

        Args:
            command: The command line that was run.
            returncode: Exit status of the process.
            stderr: Whatever the process wrote to its standard error.
        """
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"{' '.join(command)} exited with status {returncode}"
        detail = stderr.decode("utf-8", "replace").strip()
        if detail:
            message += f": {detail}"
        super().__init__(message)
