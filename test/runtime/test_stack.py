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

import asyncio
import logging
import time

import pytest

from skyplan import CustomResource, Output, export, log
from skyplan.errors import RunError
from skyplan.runtime import mocks
from skyplan.runtime.settings import Settings, get_root_resource
from skyplan.runtime.stack import Stack, run, run_in_stack
from skyplan.runtime.task_ledger import ExitCode

from helpers import EchoMocks

STACK_URN = "urn:skyplan:stack::project::skyplan:skyplan:Stack::project-stack"


def mocked_settings(monitor=None):
    return Settings(
        project="project",
        stack="stack",
        monitor=monitor if monitor is not None else mocks.MockMonitor(EchoMocks()),
        engine=mocks.MockEngine(None),
    )


def test_run_succeeds():
    assert run(lambda: export("answer", 42), Settings("project", "stack")) == ExitCode.SUCCESS


def test_run_records_stack_outputs():
    monitor = mocks.MockMonitor(EchoMocks())

    def program():
        res = CustomResource("test:index:Thing", "thing", {"size": 3})
        export("size", 3)
        export("urn", res.urn)

    assert run(program, mocked_settings(monitor)) == 0
    assert monitor.outputs[STACK_URN] == {
        "size": 3,
        "urn": "urn:skyplan:stack::project::skyplan:skyplan:Stack$test:index:Thing::thing",
    }
    stack_request = monitor.requests[0]
    assert stack_request.type == "skyplan:skyplan:Stack"
    assert stack_request.name == "project-stack"
    assert stack_request.parent == ""


def test_async_program_exports_after_awaiting():
    monitor = mocks.MockMonitor(EchoMocks())

    async def program():
        export("early", "a")
        await asyncio.sleep(0.01)
        export("late", Output.of("b"))

    assert run(program, mocked_settings(monitor)) == 0
    assert monitor.outputs[STACK_URN] == {"early": "a", "late": "b"}


def test_synchronous_failure_is_unhandled(caplog):
    def program():
        raise ValueError("boom")

    with caplog.at_level(logging.ERROR, logger="skyplan"):
        assert run(program, Settings("project", "stack")) == ExitCode.TERMINATED_WITH_UNHANDLED_EXCEPTION
    assert "failed with an unhandled exception" in caplog.text
    assert "ValueError: boom" in caplog.text


def test_asynchronous_failure_is_unhandled():
    async def program():
        await asyncio.sleep(0)
        raise ValueError("boom")

    assert run(program, Settings("project", "stack")) == 32


def test_failed_apply_is_unhandled():
    def program():
        export("broken", Output.of(1).apply(lambda v: v / 0))

    assert run(program, Settings("project", "stack")) == 32


def test_run_error_hides_stack(caplog):
    def program():
        raise RunError("bad configuration")

    with caplog.at_level(logging.ERROR, logger="skyplan"):
        assert run(program, Settings("project", "stack")) == 32
    assert "bad configuration" in caplog.text
    assert "Traceback" not in caplog.text


def test_logged_errors_fail_the_run():
    def program():
        log.error("something went wrong")
        export("still", "exported")

    assert run(program, Settings("project", "stack")) == ExitCode.TERMINATED_WITH_LOGGED_USER_ERRORS


def test_failure_does_not_wait_for_pending_work():
    async def program():
        Output.from_input(asyncio.sleep(30))
        await asyncio.sleep(0.01)
        raise ValueError("fail fast")

    start = time.monotonic()
    assert run(program, Settings("project", "stack")) == 32
    assert time.monotonic() - start < 10


def test_run_in_stack_reports_exceptions():
    async def main():
        return await run_in_stack(lambda: Output.of(1).apply(lambda v: v / 0))

    result = asyncio.run(main())
    assert result.exit_code == ExitCode.TERMINATED_WITH_UNHANDLED_EXCEPTION
    assert isinstance(result.exceptions[-1], ZeroDivisionError)


def test_root_stack_is_set_while_running():
    seen = []

    def program():
        seen.append(get_root_resource())
        with pytest.raises(Exception, match="Only one root"):
            Stack(lambda: None)

    assert run(program, Settings("project", "stack")) == 0
    assert isinstance(seen[0], Stack)
    # The run happened in its own context.
    assert get_root_resource() is None


def test_export_requires_a_stack():
    with pytest.raises(Exception, match="Root resource is not an instance of 'Stack'"):
        export("x", 1)
