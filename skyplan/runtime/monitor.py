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
The contract between the SDK and the engine process. Everything crossing this boundary is a plain value;
unknown property values are represented by `UNKNOWN`.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Set, runtime_checkable


class LogSeverity(enum.IntEnum):
    DEBUG = 1
    INFO = 2
    WARNING = 3
    ERROR = 4


@dataclass
class LogRequest:
    severity: LogSeverity
    message: str
    urn: str = ""
    stream_id: int = 0
    ephemeral: Optional[bool] = None


@dataclass
class RegisterResourceRequest:
    type: str
    name: str
    custom: bool
    parent: str = ""
    object: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    property_dependencies: Dict[str, List[str]] = field(default_factory=dict)
    has_secrets: bool = False
    has_unknowns: bool = False
    protect: Optional[bool] = None
    provider: str = ""
    version: str = ""
    additional_secret_outputs: List[str] = field(default_factory=list)
    ignore_changes: List[str] = field(default_factory=list)
    import_id: str = ""
    remote: bool = False


@dataclass
class RegisterResourceResponse:
    urn: str
    id: Optional[str] = None
    object: Dict[str, Any] = field(default_factory=dict)
    property_dependencies: Dict[str, List[str]] = field(default_factory=dict)
    secret_outputs: List[str] = field(default_factory=list)


@dataclass
class ReadResourceRequest:
    type: str
    name: str
    id: str
    parent: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    provider: str = ""
    version: str = ""
    additional_secret_outputs: List[str] = field(default_factory=list)


@dataclass
class ReadResourceResponse:
    urn: str
    properties: Dict[str, Any] = field(default_factory=dict)
    secret_outputs: List[str] = field(default_factory=list)


@dataclass
class RegisterResourceOutputsRequest:
    urn: str
    outputs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CheckFailure:
    property: str
    reason: str


@dataclass
class InvokeRequest:
    token: str
    args: Dict[str, Any] = field(default_factory=dict)
    provider: str = ""
    version: str = ""


@dataclass
class InvokeResponse:
    result: Optional[Dict[str, Any]] = None
    failures: List[CheckFailure] = field(default_factory=list)
    secret_outputs: Set[str] = field(default_factory=set)


@runtime_checkable
class ResourceMonitor(Protocol):
    """
    The engine's resource monitoring service. Methods are blocking, and are called from worker threads.
    """

    def register_resource(
        self, request: RegisterResourceRequest
    ) -> RegisterResourceResponse:
        ...

    def read_resource(self, request: ReadResourceRequest) -> ReadResourceResponse:
        ...

    def register_resource_outputs(
        self, request: RegisterResourceOutputsRequest
    ) -> None:
        ...

    def invoke(self, request: InvokeRequest) -> InvokeResponse:
        ...

    def supports_feature(self, feature: str) -> bool:
        ...


@runtime_checkable
class Engine(Protocol):
    """
    The engine's logging service.
    """

    def log(self, request: LogRequest) -> None:
        ...
