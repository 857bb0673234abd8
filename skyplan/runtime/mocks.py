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
Mocks for testing.
"""
import asyncio
import functools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union

from ..resource import STACK_TYPE
from .monitor import (
    CheckFailure,
    InvokeRequest,
    InvokeResponse,
    LogRequest,
    LogSeverity,
    ReadResourceRequest,
    ReadResourceResponse,
    RegisterResourceOutputsRequest,
    RegisterResourceRequest,
    RegisterResourceResponse,
)
from .resource import create_urn
from .settings import Settings, configure
from .stack import run_in_stack

GET_RESOURCE_TOKEN = "skyplan:skyplan:getResource"


def test(fn):
    """
    Decorates a test so that its body, which may be a coroutine function, runs as a complete program
    on a fresh event loop. The test fails with the first exception the program raised, if any.
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        async def main():
            return await run_in_stack(lambda: fn(*args, **kwargs))

        result = asyncio.run(main())
        if result.exceptions:
            raise result.exceptions[-1]

    return wrapper


class MockResourceArgs:
    """
    MockResourceArgs is used to construct a new_resource Mock
    """

    typ: str
    name: str
    inputs: dict
    provider: str
    resource_id: str
    custom: bool

    def __init__(
        self, typ: str, name: str, inputs: dict, provider: str, resource_id: str, custom: bool
    ) -> None:
        """
        :param str typ: The token that indicates which resource type is being constructed. This token is of the form "package:module:type".
        :param str name: The logical name of the resource instance.
        :param dict inputs: The inputs for the resource.
        :param str provider: The identifier of the provider instance being used to manage this resource.
        :param str resource_id: The physical identifier of an existing resource to read or import.
        :param bool custom: Specifies whether or not the resource is Custom (i.e. managed by a resource provider).
        """
        self.typ = typ
        self.name = name
        self.inputs = inputs
        self.provider = provider
        self.resource_id = resource_id
        self.custom = custom


class MockCallArgs:
    """
    MockCallArgs is used to construct a call Mock
    """

    token: str
    args: dict
    provider: str

    def __init__(self, token: str, args: dict, provider: str) -> None:
        """
        :param str token: The token that indicates which function is being called. This token is of the form "package:module:function".
        :param dict args: The arguments provided to the function call.
        :param str provider: The identifier of the provider instance being used to make the call
        """
        self.token = token
        self.args = args
        self.provider = provider


class Mocks(ABC):
    """
    Mocks is an abstract class that allows subclasses to replace operations normally implemented by the engine with
    their own implementations. This can be used during testing to ensure that calls to provider functions and resource
    constructors return predictable values.
    """

    @abstractmethod
    def call(
        self, args: MockCallArgs
    ) -> Union[dict, Tuple[dict, Optional[List[Tuple[str, str]]]]]:
        """
        call mocks provider-implemented function calls. It returns the result, optionally along with a list of
        (property, reason) failures.

        :param MockCallArgs args.
        """
        return {}, None

    @abstractmethod
    def new_resource(self, args: MockResourceArgs) -> Tuple[Optional[str], dict]:
        """
        new_resource mocks resource construction calls. This function should return the physical identifier and the output properties
        for the resource being constructed.

        :param MockResourceArgs args.
        """
        return "", {}


class MockMonitor:
    """
    A resource monitor that answers every request from a Mocks instance, recording what was registered.
    """

    class ResourceRegistration(NamedTuple):
        urn: str
        id: Optional[str]
        state: dict

    mocks: Mocks
    resources: Dict[str, ResourceRegistration]
    outputs: Dict[str, Dict[str, Any]]
    requests: List[RegisterResourceRequest]

    def __init__(self, mocks: Mocks, project: str = "project", stack: str = "stack"):
        self.mocks = mocks
        self.project = project
        self.stack = stack
        self.resources = {}
        self.outputs = {}
        self.requests = []
        # Requests arrive on worker threads.
        self._lock = threading.Lock()

    def make_urn(self, parent: str, type_: str, name: str) -> str:
        return create_urn(self.project, self.stack, name, type_, parent)

    def invoke(self, request: InvokeRequest) -> InvokeResponse:
        args = request.args

        if request.token == GET_RESOURCE_TOKEN:
            with self._lock:
                registered_resource = self.resources.get(args["urn"])
            if registered_resource is None:
                raise Exception(f"unknown resource {args['urn']}")
            return InvokeResponse(result=registered_resource._asdict())

        call_args = MockCallArgs(token=request.token, args=args, provider=request.provider)
        tup = self.mocks.call(call_args)
        if isinstance(tup, dict):
            (ret, failures) = (tup, [])
        else:
            ret = tup[0]
            failures = [CheckFailure(failure[0], failure[1]) for failure in tup[1] or []]

        return InvokeResponse(result=ret, failures=failures)

    def read_resource(self, request: ReadResourceRequest) -> ReadResourceResponse:
        resource_args = MockResourceArgs(
            typ=request.type,
            name=request.name,
            inputs=request.properties,
            provider=request.provider,
            resource_id=request.id,
            custom=True,
        )
        id_, state = self.mocks.new_resource(resource_args)

        urn = self.make_urn(request.parent, request.type, request.name)

        with self._lock:
            self.resources[urn] = MockMonitor.ResourceRegistration(urn, id_, state)

        return ReadResourceResponse(urn=urn, properties=state)

    def register_resource(self, request: RegisterResourceRequest) -> RegisterResourceResponse:
        urn = self.make_urn(request.parent, request.type, request.name)

        with self._lock:
            self.requests.append(request)

        if request.type == STACK_TYPE:
            return RegisterResourceResponse(urn=urn)

        resource_args = MockResourceArgs(
            typ=request.type,
            name=request.name,
            inputs=request.object,
            provider=request.provider,
            resource_id=request.import_id,
            custom=request.custom,
        )
        id_, state = self.mocks.new_resource(resource_args)

        with self._lock:
            self.resources[urn] = MockMonitor.ResourceRegistration(urn, id_, state)

        return RegisterResourceResponse(urn=urn, id=id_, object=state)

    def register_resource_outputs(self, request: RegisterResourceOutputsRequest) -> None:
        with self._lock:
            self.outputs[request.urn] = request.outputs

    def supports_feature(self, feature: str) -> bool:
        # pylint: disable=unused-argument
        return True


class MockEngine:
    logger: logging.Logger

    def __init__(self, logger: Optional[logging.Logger]):
        self.logger = logger if logger is not None else logging.getLogger()

    def log(self, request: LogRequest) -> None:
        if request.severity == LogSeverity.DEBUG:
            self.logger.debug(request.message)
        elif request.severity == LogSeverity.INFO:
            self.logger.info(request.message)
        elif request.severity == LogSeverity.WARNING:
            self.logger.warning(request.message)
        elif request.severity == LogSeverity.ERROR:
            self.logger.error(request.message)


def set_mocks(
    mocks: Mocks,
    project: Optional[str] = None,
    stack: Optional[str] = None,
    preview: Optional[bool] = None,
    logger: Optional[logging.Logger] = None,
) -> MockMonitor:
    """
    set_mocks configures the runtime to use the given mocks for testing. Returns the monitor, which
    records every registration.
    """
    project = project if project is not None else "project"
    stack = stack if stack is not None else "stack"
    monitor = MockMonitor(mocks, project, stack)
    settings = Settings(
        monitor=monitor,
        engine=MockEngine(logger),
        project=project,
        stack=stack,
        dry_run=preview,
    )
    configure(settings)
    return monitor
