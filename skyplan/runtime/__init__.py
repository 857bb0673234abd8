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
The runtime implementation of the Skyplan Python SDK.
"""

# settings has to be loaded before anything that imports the public modules.
from .settings import (
    Settings,
    configure,
    is_dry_run,
    reset_options,
    get_project,
    get_stack,
    get_organization,
    get_root_resource,
    set_root_resource,
)

from .task_ledger import (
    ExitCode,
    RunResult,
    TaskLedger,
)

from .mocks import (
    Mocks,
    MockMonitor,
    set_mocks,
    test,
    MockResourceArgs,
    MockCallArgs,
)

from .stack import (
    run,
    run_in_stack,
)

from .invoke import (
    invoke,
    invoke_async,
)

from .completion_source import (
    OutputCompletionSource,
)

__all__ = [
    # settings
    "Settings",
    "configure",
    "is_dry_run",
    "reset_options",
    "get_project",
    "get_stack",
    "get_organization",
    "get_root_resource",
    "set_root_resource",
    # task_ledger
    "ExitCode",
    "RunResult",
    "TaskLedger",
    # mocks
    "Mocks",
    "MockMonitor",
    "set_mocks",
    "test",
    "MockCallArgs",
    "MockResourceArgs",
    # stack
    "run",
    "run_in_stack",
    # invoke
    "invoke",
    "invoke_async",
    # completion_source
    "OutputCompletionSource",
]
