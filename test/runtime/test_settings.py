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

import grpc
import pytest

from skyplan.errors import RunError
from skyplan.runtime import mocks
from skyplan.runtime.settings import (
    SETTINGS,
    Settings,
    configure,
    get_monitor,
    get_project,
    get_stack,
    grpc_error_to_exception,
    is_dry_run,
    monitor_supports_feature,
    reset_options,
)

from helpers import EchoMocks


class FakeRpcError(grpc.RpcError):
    def __init__(self, code, details):
        super().__init__(details)
        self._code = code
        self._details = details

    def code(self):
        return self._code

    def details(self):
        return self._details


class TestConfigure:
    def test_configure_copies_fields(self):
        configure(Settings(project="proj", stack="dev", dry_run=True))
        assert get_project() == "proj"
        assert get_stack() == "dev"
        assert is_dry_run()

    def test_configure_rejects_other_types(self):
        with pytest.raises(TypeError):
            configure({"project": "proj"})  # type: ignore

    def test_reset_options(self):
        monitor = mocks.MockMonitor(EchoMocks())
        reset_options(project="p", stack="s", monitor=monitor, preview=False)
        assert get_monitor() is monitor
        assert not is_dry_run()
        reset_options(project="p", stack="s")
        assert get_monitor() is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SKYPLAN_PROJECT", "envproj")
        monkeypatch.setenv("SKYPLAN_STACK", "envstack")
        monkeypatch.setenv("SKYPLAN_ORGANIZATION", "acme")
        monkeypatch.setenv("SKYPLAN_DRY_RUN", "true")
        monkeypatch.setenv("SKYPLAN_PARALLEL", "4")

        settings = Settings.from_env()
        configure(settings)

        assert SETTINGS.project == "envproj"
        assert SETTINGS.stack == "envstack"
        assert SETTINGS.organization == "acme"
        assert SETTINGS.dry_run is True
        assert SETTINGS.parallel == 4

    def test_error_output_string_from_env(self, monkeypatch):
        monkeypatch.setenv("SKYPLAN_ERROR_OUTPUT_STRING", "1")
        configure(Settings(project="p", stack="s"))
        assert SETTINGS.error_output_string is True


def test_concurrent_runs_are_isolated():
    async def run(project: str, delay: float):
        configure(Settings(project=project, stack="stack"))
        await asyncio.sleep(delay)
        return get_project()

    async def main():
        return await asyncio.gather(run("first", 0.02), run("second", 0.01))

    assert asyncio.run(main()) == ["first", "second"]
    # Nothing leaks into the caller's context.
    assert get_project() == "project"


def test_grpc_unavailable_is_a_run_error():
    exn = grpc_error_to_exception(FakeRpcError(grpc.StatusCode.UNAVAILABLE, "gone"))
    assert isinstance(exn, RunError)
    assert str(exn) == "Resource monitor has terminated, shutting down"


def test_grpc_other_errors_keep_details():
    exn = grpc_error_to_exception(FakeRpcError(grpc.StatusCode.INTERNAL, "kaboom"))
    assert not isinstance(exn, RunError)
    assert str(exn) == "kaboom"


def test_monitor_supports_feature_is_cached():
    class CountingMonitor(mocks.MockMonitor):
        def __init__(self):
            super().__init__(EchoMocks())
            self.probes = 0

        def supports_feature(self, feature: str) -> bool:
            self.probes += 1
            return feature == "secrets"

    async def main():
        monitor = CountingMonitor()
        configure(Settings(project="p", stack="s", monitor=monitor))
        first = await monitor_supports_feature("secrets")
        second = await monitor_supports_feature("secrets")
        other = await monitor_supports_feature("outputValues")
        return first, second, other, monitor.probes

    assert asyncio.run(main()) == (True, True, False, 2)


def test_monitor_supports_feature_unimplemented():
    class OldMonitor(mocks.MockMonitor):
        def supports_feature(self, feature: str) -> bool:
            raise FakeRpcError(grpc.StatusCode.UNIMPLEMENTED, "no")

    async def main():
        configure(Settings(project="p", stack="s", monitor=OldMonitor(EchoMocks())))
        return await monitor_supports_feature("anything")

    assert asyncio.run(main()) is False
