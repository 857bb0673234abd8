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
Bookkeeping of the asynchronous work started by a program run.
"""
import asyncio
import concurrent.futures
import enum
import logging
import os
import sys
import threading
import traceback
from inspect import isawaitable
from typing import Any, Awaitable, Dict, List, NamedTuple, Union

from ..errors import ResourceError, RunError, TaskFailedError

_LOGGER = logging.getLogger(__name__)

Task = Union["asyncio.Future[Any]", "concurrent.futures.Future[Any]"]


class ExitCode(enum.IntEnum):
    SUCCESS = 0
    TERMINATED_WITH_LOGGED_USER_ERRORS = 1
    # Returned once an unhandled error has already been reported to the user, so the language host
    # knows not to print anything further. Picked to be unlikely to collide with other codes.
    TERMINATED_WITH_UNHANDLED_EXCEPTION = 32


class RunResult(NamedTuple):
    exit_code: ExitCode
    exceptions: List[BaseException]


class TaskLedger:
    """
    The set of tasks that a program run has fired off.

    Resources are created synchronously by user code while the work of populating them happens
    asynchronously, so the run loop has to keep waiting for these tasks, and only exit once the
    set becomes empty (or one of them fails).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: Dict[Task, List[str]] = {}
        self._swallowed: List[BaseException] = []
        self._logged_errors = 0

    def init(self) -> None:
        with self._lock:
            self._in_flight.clear()
            self._swallowed.clear()
            self._logged_errors = 0

    @property
    def swallowed_exceptions(self) -> List[BaseException]:
        with self._lock:
            return list(self._swallowed)

    @property
    def has_logged_errors(self) -> bool:
        with self._lock:
            return self._logged_errors > 0

    def record_logged_error(self) -> None:
        with self._lock:
            self._logged_errors += 1

    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def register_task(self, description: str, task: Union[Task, Awaitable[Any]]) -> Task:
        """
        Records the given task so that `await_all` waits for it. Coroutines and other awaitables are
        scheduled on the running loop; futures may be registered from any thread.
        """
        if not isinstance(task, (asyncio.Future, concurrent.futures.Future)):
            if not isawaitable(task):
                raise TypeError(f"Expected a future or awaitable, got {type(task).__name__}")
            task = asyncio.ensure_future(task)

        _LOGGER.debug("Registering task: '%s'", description)

        # The same future may be registered several times with different descriptions, for example
        # when an already completed future is reused. All of them are reported once it finishes.
        with self._lock:
            self._in_flight.setdefault(task, []).append(description)
        return task

    async def await_all(self) -> RunResult:
        """
        Waits until every registered task (including ones registered while waiting) has finished, or
        until the first one fails. Tasks that are still pending when a failure is seen are left alone.
        """
        while True:
            with self._lock:
                tasks = list(self._in_flight)
            if not tasks:
                break

            done = [t for t in tasks if t.done()]
            if not done:
                _LOGGER.debug("Remaining tasks [%d]", len(tasks))
                await asyncio.wait(
                    [_as_asyncio_future(t) for t in tasks],
                    return_when=asyncio.FIRST_COMPLETED,
                )
                continue

            for task in done:
                try:
                    self._complete(task)
                except TaskFailedError as exn:
                    return RunResult(self.handle_exception(exn), self.swallowed_exceptions)

        exit_code = (
            ExitCode.TERMINATED_WITH_LOGGED_USER_ERRORS
            if self.has_logged_errors
            else ExitCode.SUCCESS
        )
        return RunResult(exit_code, self.swallowed_exceptions)

    def _complete(self, task: Task) -> None:
        with self._lock:
            descriptions = self._in_flight.pop(task, [])

        if task.cancelled():
            _LOGGER.debug("Failed task: '%s', cancelled", ",".join(descriptions))
            raise TaskFailedError(descriptions) from asyncio.CancelledError()

        exn = task.exception()
        if exn is not None:
            _LOGGER.debug("Failed task: '%s', exception: %s", ",".join(descriptions), exn)
            raise TaskFailedError(descriptions) from exn

        _LOGGER.debug("Completed task: '%s'", ",".join(descriptions))

    def handle_exception(self, exn: BaseException) -> ExitCode:
        """
        Records the exception and reports it through the engine log. A TaskFailedError is recorded
        along with its cause.
        """
        from .. import log  # pylint: disable=import-outside-toplevel

        with self._lock:
            self._swallowed.append(exn)

        if isinstance(exn, TaskFailedError) and exn.__cause__ is not None:
            return self.handle_exception(exn.__cause__)

        if isinstance(exn, RunError):
            # Always hide the stack for RunErrors.
            log.error(str(exn))
        elif isinstance(exn, ResourceError):
            message = str(exn) if exn.hide_stack else _format_exception(exn)
            log.error(message, exn.resource)
        else:
            log.error(
                f"Running program [PID: {os.getpid()}]({sys.argv[0] if sys.argv else 'unknown'}) "
                f"failed with an unhandled exception:\n{_format_exception(exn)}"
            )

        _LOGGER.debug("Returning from program after last error")
        return ExitCode.TERMINATED_WITH_UNHANDLED_EXCEPTION


def _as_asyncio_future(task: Task) -> "asyncio.Future[Any]":
    if isinstance(task, concurrent.futures.Future):
        return asyncio.wrap_future(task)
    return task


def _format_exception(exn: BaseException) -> str:
    return "".join(traceback.format_exception(type(exn), exn, exn.__traceback__))
