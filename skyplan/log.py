# Copyright 2024, Skyplan Contributors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Utility functions for logging messages to the diagnostic stream of the engine.
"""
import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from .runtime.monitor import LogRequest, LogSeverity
from .runtime.settings import get_engine, get_task_ledger

if TYPE_CHECKING:
    from .resource import Resource

_LOGGER = logging.getLogger("skyplan")

_LEVELS = {
    LogSeverity.DEBUG: logging.DEBUG,
    LogSeverity.INFO: logging.INFO,
    LogSeverity.WARNING: logging.WARNING,
    LogSeverity.ERROR: logging.ERROR,
}


def debug(msg: str, resource: Optional['Resource'] = None, stream_id: Optional[int] = None, ephemeral: Optional[bool] = None) -> None:
    """
    Logs a message to the engine's debug channel, associating it with a resource
    and stream_id if provided.

    :param str msg: The message to send to the engine.
    :param Optional[Resource] resource: If provided, associate this message with the given resource.
    :param Optional[int] stream_id: If provided, associate this message with a stream of other messages.
    """
    _log(LogSeverity.DEBUG, msg, resource, stream_id, ephemeral)


def info(msg: str, resource: Optional['Resource'] = None, stream_id: Optional[int] = None, ephemeral: Optional[bool] = None) -> None:
    """
    Logs a message to the engine's info channel, associating it with a resource
    and stream_id if provided.
    """
    _log(LogSeverity.INFO, msg, resource, stream_id, ephemeral)


def warn(msg: str, resource: Optional['Resource'] = None, stream_id: Optional[int] = None, ephemeral: Optional[bool] = None) -> None:
    """
    Logs a message to the engine's warning channel, associating it with a resource
    and stream_id if provided.
    """
    _log(LogSeverity.WARNING, msg, resource, stream_id, ephemeral)


def error(msg: str, resource: Optional['Resource'] = None, stream_id: Optional[int] = None, ephemeral: Optional[bool] = None) -> None:
    """
    Logs a message to the engine's error channel, associating it with a resource
    and stream_id if provided.

    Logging an error marks the current run as failed, even if no exception escapes the program.
    """
    ledger = get_task_ledger()
    if ledger is not None:
        ledger.record_logged_error()
    _log(LogSeverity.ERROR, msg, resource, stream_id, ephemeral)


def _log(severity: LogSeverity, message: str, resource: Optional['Resource'], stream_id: Optional[int], ephemeral: Optional[bool]) -> None:
    engine = get_engine()
    if engine is None:
        _LOGGER.log(_LEVELS[severity], message)
        return

    if stream_id is None:
        stream_id = 0

    # If we can log synchronously, do so. The worst thing we can do with a log message is exit
    # before we have the chance to send the message.
    #
    # We can log synchronously as long as we haven't been given a resource to attach to. If we have,
    # we have to asynchronously resolve the URN first.
    async def do_log():
        resolved_urn = await resource.urn.future()
        engine.log(LogRequest(severity, message, resolved_urn or "", stream_id, ephemeral))

    if resource is not None:
        task = asyncio.ensure_future(do_log())
        ledger = get_task_ledger()
        if ledger is not None:
            ledger.register_task("log", task)
    else:
        engine.log(LogRequest(severity, message, "", stream_id, ephemeral))
