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

import logging
import unittest

import pytest

from skyplan.runtime import mocks, settings
from skyplan.runtime.monitor import (
    CheckFailure,
    InvokeRequest,
    LogRequest,
    LogSeverity,
    ReadResourceRequest,
    RegisterResourceOutputsRequest,
    RegisterResourceRequest,
)

from helpers import EchoMocks, raises

STACK_URN = "urn:skyplan:stack::project::skyplan:skyplan:Stack::project-stack"


class FailingMocks(EchoMocks):
    def call(self, args: mocks.MockCallArgs):
        if args.token == "test:index:plain":
            return {"echo": args.args}
        return {}, [("name", "must not be empty"), ("size", "too large")]


class MockMonitorTests(unittest.TestCase):
    def setUp(self):
        self.monitor = mocks.MockMonitor(FailingMocks(), project="proj", stack="dev")

    def test_make_urn(self):
        self.assertEqual(
            self.monitor.make_urn("", "test:index:Thing", "thing"),
            "urn:skyplan:dev::proj::test:index:Thing::thing",
        )
        parent = "urn:skyplan:dev::proj::test:index:Component::comp"
        self.assertEqual(
            self.monitor.make_urn(parent, "test:index:Thing", "thing"),
            "urn:skyplan:dev::proj::test:index:Component$test:index:Thing::thing",
        )

    def test_register_resource_records_state(self):
        resp = self.monitor.register_resource(
            RegisterResourceRequest(type="test:index:Thing", name="thing", custom=True, object={"a": 1})
        )
        self.assertEqual(resp.urn, "urn:skyplan:dev::proj::test:index:Thing::thing")
        self.assertEqual(resp.id, "thing_id")
        self.assertEqual(resp.object, {"a": 1})
        self.assertEqual(self.monitor.resources[resp.urn].state, {"a": 1})
        self.assertEqual(len(self.monitor.requests), 1)

    def test_stack_is_not_passed_to_mocks(self):
        resp = self.monitor.register_resource(
            RegisterResourceRequest(type="skyplan:skyplan:Stack", name="proj-dev", custom=False)
        )
        self.assertIsNone(resp.id)
        self.assertEqual(resp.object, {})
        self.assertEqual(self.monitor.resources, {})

    def test_read_resource(self):
        resp = self.monitor.read_resource(
            ReadResourceRequest(type="test:index:Thing", name="thing", id="abc", properties={"b": 2})
        )
        self.assertEqual(resp.properties, {"b": 2})
        self.assertEqual(self.monitor.resources[resp.urn].id, "thing_id")

    def test_get_resource(self):
        resp = self.monitor.register_resource(
            RegisterResourceRequest(type="test:index:Thing", name="thing", custom=True, object={"a": 1})
        )
        result = self.monitor.invoke(
            InvokeRequest(token=mocks.GET_RESOURCE_TOKEN, args={"urn": resp.urn})
        ).result
        self.assertEqual(result, {"urn": resp.urn, "id": "thing_id", "state": {"a": 1}})

    @raises(Exception)
    def test_get_unknown_resource(self):
        self.monitor.invoke(
            InvokeRequest(token=mocks.GET_RESOURCE_TOKEN, args={"urn": "urn:skyplan:dev::proj::x::y"})
        )

    def test_call_results_and_failures(self):
        resp = self.monitor.invoke(InvokeRequest(token="test:index:plain", args={"x": 1}))
        self.assertEqual(resp.result, {"echo": {"x": 1}})
        self.assertEqual(resp.failures, [])

        resp = self.monitor.invoke(InvokeRequest(token="test:index:failing"))
        self.assertEqual(
            resp.failures,
            [CheckFailure("name", "must not be empty"), CheckFailure("size", "too large")],
        )

    def test_register_resource_outputs(self):
        self.monitor.register_resource_outputs(
            RegisterResourceOutputsRequest(urn=STACK_URN, outputs={"x": 1})
        )
        self.assertEqual(self.monitor.outputs, {STACK_URN: {"x": 1}})
        self.assertTrue(self.monitor.supports_feature("anything"))


@pytest.mark.parametrize(
    "severity,level",
    [
        (LogSeverity.DEBUG, logging.DEBUG),
        (LogSeverity.INFO, logging.INFO),
        (LogSeverity.WARNING, logging.WARNING),
        (LogSeverity.ERROR, logging.ERROR),
    ],
)
def test_mock_engine_logs(caplog, severity, level):
    engine = mocks.MockEngine(logging.getLogger("mock-engine"))
    with caplog.at_level(logging.DEBUG, logger="mock-engine"):
        engine.log(LogRequest(severity, "hello"))
    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [(level, "hello")]


def test_set_mocks_configures_settings():
    monitor = mocks.set_mocks(EchoMocks(), project="proj", stack="dev", preview=True)
    assert settings.get_monitor() is monitor
    assert isinstance(settings.get_engine(), mocks.MockEngine)
    assert settings.get_project() == "proj"
    assert settings.get_stack() == "dev"
    assert settings.is_dry_run()
    assert monitor.make_urn("", "t:i:T", "n") == "urn:skyplan:dev::proj::t:i:T::n"


def test_set_mocks_defaults():
    mocks.set_mocks(EchoMocks())
    assert settings.get_project() == "project"
    assert settings.get_stack() == "stack"
    assert not settings.is_dry_run()


def test_test_decorator_raises_program_failures():
    mocks.set_mocks(EchoMocks())

    @mocks.test
    def program():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        program()


def test_test_decorator_passes_arguments():
    mocks.set_mocks(EchoMocks())
    seen = []

    @mocks.test
    async def program(a, b=None):
        seen.append((a, b))

    program(1, b=2)
    assert seen == [(1, 2)]
