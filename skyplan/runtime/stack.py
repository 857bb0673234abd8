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
Support for automatic stack components.
"""
import asyncio
from inspect import isawaitable
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Union

from .. import log
from ..output import Output
from ..resource import STACK_TYPE, ComponentResource
from .settings import (
    SETTINGS,
    Settings,
    configure,
    get_project,
    get_root_resource,
    get_stack,
    set_root_resource,
)
from .task_ledger import RunResult, TaskLedger

if TYPE_CHECKING:
    from ..output import Input


async def run_in_stack(
    func: Callable[[], Union[Optional[Awaitable[Any]], Any]],
) -> RunResult:
    """
    Run the given function inside of a new stack resource. This ensures that any stack export calls
    will end up as output properties on the resulting stack component in the checkpoint file. This
    is meant for internal runtime use only and is used by the Python SDK entrypoint program.

    Returns once every task the program started has finished, or as soon as one of them fails.
    """
    ledger = TaskLedger()
    SETTINGS.ledger = ledger

    try:
        Stack(func)
    except Exception as exn:  # pylint: disable=broad-except
        # The program body itself raised, so there is nothing worth waiting for.
        return RunResult(ledger.handle_exception(exn), ledger.swallowed_exceptions)

    result = await ledger.await_all()
    log.debug(f"Program finished with exit code {int(result.exit_code)}")
    return result


def run(
    func: Callable[[], Union[Optional[Awaitable[Any]], Any]],
    settings: Optional[Settings] = None,
) -> int:
    """
    Runs a program on a fresh event loop and returns its process exit code.
    """

    async def main() -> int:
        if settings is not None:
            configure(settings)
        result = await run_in_stack(func)
        return int(result.exit_code)

    return asyncio.run(main())


class Stack(ComponentResource):
    """
    A synthetic stack component that automatically parents resources as the program runs.
    """

    outputs: Dict[str, "Input[Any]"]

    def __init__(self, func: Callable[[], Union[Optional[Awaitable[Any]], Any]]) -> None:
        # Ensure we don't already have a stack registered.
        if get_root_resource() is not None:
            raise Exception("Only one root Skyplan Stack may be active at once")

        # Now invoke the registration to begin creating this resource.
        name = f"{get_project()}-{get_stack()}"
        super().__init__(STACK_TYPE, name, None, None)

        # Invoke the function while this stack is active and then register its outputs.
        self.outputs = {}
        set_root_resource(self)

        result = func()
        if isawaitable(result):
            # Exports made after the program's awaitable finishes are still picked up.
            self.register_outputs(Output.from_input(result).apply(lambda _: dict(self.outputs)))
        else:
            self.register_outputs(self.outputs)

    def output(self, name: str, value: "Input[Any]") -> None:
        """
        Export a stack output with a given name and value.
        """
        self.outputs[name] = value


def export(name: str, value: "Input[Any]") -> None:
    """
    Exports a named stack output.

    :param str name: The name to assign to this output.
    :param Input[Any] value: The value of this output.
    """
    stack = get_root_resource()
    if not isinstance(stack, Stack):
        raise Exception("Failed to export output. Root resource is not an instance of 'Stack'")
    stack.output(name, value)
