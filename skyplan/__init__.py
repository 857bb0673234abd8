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
The Skyplan Core SDK for Python. This package defines the primitives that programs and libraries use to
declare resources and to track the values that flow between them.
"""

# Make all module members inside of this package available as package members.
from .errors import (
    RunError,
    ResourceError,
    InputPropertyError,
    OutputToStringError,
    TaskFailedError,
)

# The runtime is imported ahead of the modules below, which depend on its settings.
from . import runtime

from .either import (
    Either,
    Left,
    Right,
)

from .output_data import (
    OutputData,
    UNKNOWN,
)

from .output import (
    Output,
    Input,
    Inputs,
    contains_unknowns,
)

from .type_shape import (
    TypeShape,
)

from .resource import (
    Resource,
    CustomResource,
    ComponentResource,
    ProviderResource,
    ResourceOptions,
    output_property,
)

from .invoke import (
    InvokeOptions,
)

from .runtime.settings import (
    get_project,
    get_stack,
    get_organization,
)

from .runtime.stack import (
    export,
)

from .log import (
    debug,
    info,
    warn,
    error,
)

__all__ = [
    # errors
    "RunError",
    "ResourceError",
    "InputPropertyError",
    "OutputToStringError",
    "TaskFailedError",

    # either
    "Either",
    "Left",
    "Right",

    # output_data
    "OutputData",
    "UNKNOWN",

    # output
    "Output",
    "Input",
    "Inputs",
    "contains_unknowns",

    # type_shape
    "TypeShape",

    # resource
    "Resource",
    "CustomResource",
    "ComponentResource",
    "ProviderResource",
    "ResourceOptions",
    "output_property",

    # invoke
    "InvokeOptions",

    # metadata
    "get_project",
    "get_stack",
    "get_organization",

    # stack
    "export",

    # log
    "debug",
    "info",
    "warn",
    "error",

    # sub-modules
    "runtime",
]
