# log_utils.py -- Logging utilities for gitgate
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

"""Logging utilities for gitgate.

gitgate is usually embedded in a larger WSGI or aiohttp deployment, so the
package logger carries a handler that discards records until the host
application configures logging, or the command line entry points call
default_logging_config().

Modules only need getLogger from here; anything else can come straight
from the standard logging module.
"""

import logging
import os
import sys

getLogger = logging.getLogger

TRACE_ENVIRONMENT_VARIABLE = "GITGATE_TRACE"


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_GITGATE_LOGGER = getLogger("gitgate")
_GITGATE_LOGGER.addHandler(_NULL_HANDLER)


def _get_trace_target() -> str | int | None:
    """Get the trace target from the GITGATE_TRACE environment variable.

    Returns:
        - None if tracing is disabled
        - 2 to trace to stderr ("1", "true", "yes")
        - str with an absolute file path to append the trace to
    """
    value = os.environ.get(TRACE_ENVIRONMENT_VARIABLE, "")
    if value.lower() in ("1", "true", "yes"):
        return 2
    if os.path.isabs(value):
        return value
    return None


def default_logging_config() -> None:
    """Set up the default gitgate loggers.

    Logs at INFO to stderr, unless GITGATE_TRACE asks for DEBUG output on
    stderr or in a file.
    """
    remove_null_handler()
    trace_target = _get_trace_target()
    trace_format = "%(asctime)s %(name)s %(levelname)s: %(message)s"
    if trace_target == 2:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format=trace_format)
    elif isinstance(trace_target, str):
        logging.basicConfig(
            level=logging.DEBUG, filename=trace_target, filemode="a", format=trace_format
        )
    else:
        logging.basicConfig(
            level=logging.INFO,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s: %(message)s",
        )


def remove_null_handler() -> None:
    """Remove the null handler from the gitgate loggers.

    Callers that set up logging some other way can call this first to skip
    the overhead of the null handler.
    """
    _GITGATE_LOGGER.removeHandler(_NULL_HANDLER)
