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

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .resource import Resource


class RunError(Exception):
    """
    Can be used for terminating a program abruptly, but resulting in a clean exit rather than the usual
    verbose unhandled error logic which emits the source program text and complete stack trace.
    """


class ResourceError(Exception):
    """
    An error attributed to a specific resource. Pass `hide_stack=True` to report only the message.
    """

    resource: Optional["Resource"]
    hide_stack: bool

    def __init__(
        self, message: str, resource: Optional["Resource"], hide_stack: bool = False
    ) -> None:
        super().__init__(message)
        self.resource = resource
        self.hide_stack = hide_stack


class TaskFailedError(Exception):
    """
    Raised by the task ledger when a tracked task failed. The original exception is its `__cause__`.
    """

    descriptions: List[str]

    def __init__(self, descriptions: List[str]) -> None:
        super().__init__(f"Task failed: '{','.join(descriptions)}'")
        self.descriptions = descriptions


class OutputToStringError(Exception):
    """
    Raised when `str()` is called on an Output and the SKYPLAN_ERROR_OUTPUT_STRING setting is enabled.
    """


class InputPropertyError(Exception):
    def __init__(self, property_path: str, reason: str):
        """
        Can be used to indicate that the client has made a request with a bad input property.
        """
        super().__init__(f"{property_path}: {reason}")
        self.property_path = property_path
        self.reason = reason
