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
Runtime settings and configuration.

Every field of `Settings` is stored in a ContextVar, so that two runs executing in separate contexts (for
example two asyncio tasks in one test suite) each observe their own project, stack, engine and task ledger.
"""
from __future__ import annotations

import asyncio
import os
from contextvars import ContextVar
from typing import TYPE_CHECKING, Dict, Optional

import grpc

from .._utils import contextproperty, getenv_bool
from ..errors import RunError
from .monitor import Engine, ResourceMonitor

if TYPE_CHECKING:
    from ..resource import Resource
    from .task_ledger import TaskLedger


# excessive_debug_output enables, well, pretty excessive debug output pertaining to resources and properties.
excessive_debug_output = getenv_bool("SKYPLAN_EXCESSIVE_DEBUG_OUTPUT")


class Settings:
    """
    A bag of properties for configuring the Skyplan Python language runtime.
    """

    def __init__(
        self,
        project: Optional[str],
        stack: Optional[str],
        monitor: Optional[ResourceMonitor] = None,
        engine: Optional[Engine] = None,
        parallel: Optional[int] = None,
        dry_run: Optional[bool] = None,
        organization: Optional[str] = None,
        error_output_string: Optional[bool] = None,
    ):
        self.project = project
        self.stack = stack
        self.monitor = monitor
        self.engine = engine
        self.parallel = parallel
        self.dry_run = dry_run
        self.organization = organization
        self.feature_support = {}
        self.ledger = None

        if error_output_string is None:
            error_output_string = getenv_bool("SKYPLAN_ERROR_OUTPUT_STRING")
        self.error_output_string = error_output_string

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Builds settings from the SKYPLAN_* environment variables set by the engine when it launches a program.
        """
        parallel = os.getenv("SKYPLAN_PARALLEL")
        return cls(
            project=os.getenv("SKYPLAN_PROJECT"),
            stack=os.getenv("SKYPLAN_STACK"),
            organization=os.getenv("SKYPLAN_ORGANIZATION"),
            dry_run=getenv_bool("SKYPLAN_DRY_RUN"),
            parallel=int(parallel) if parallel else None,
        )

    @contextproperty
    def monitor(self) -> Optional[ResourceMonitor]:  # type: ignore
        # The contextproperty decorator will fill the body of this method in, but mypy doesn't know that.
        ...

    @contextproperty
    def engine(self) -> Optional[Engine]: ...  # type: ignore

    @contextproperty
    def organization(self) -> Optional[str]: ...  # type: ignore

    @contextproperty
    def project(self) -> Optional[str]: ...  # type: ignore

    @contextproperty
    def stack(self) -> Optional[str]: ...  # type: ignore

    @contextproperty
    def parallel(self) -> Optional[int]: ...  # type: ignore

    @contextproperty
    def dry_run(self) -> Optional[bool]: ...  # type: ignore

    @contextproperty
    def feature_support(self) -> Dict[str, bool]: ...  # type: ignore

    @contextproperty
    def ledger(self) -> Optional[TaskLedger]: ...  # type: ignore

    @contextproperty
    def error_output_string(self) -> bool: ...  # type: ignore

    _FIELDS = (
        "project",
        "stack",
        "monitor",
        "engine",
        "parallel",
        "dry_run",
        "organization",
        "feature_support",
        "ledger",
        "error_output_string",
    )

    def __repr__(self):
        return f"<class Settings[engine={self.engine!r} monitor={self.monitor!r} project={self.project!r} stack={self.stack!r}]>"


# default to "empty" settings.
SETTINGS = Settings(stack="stack", project="project", organization="organization")


def configure(settings: Settings):
    """
    Configure sets the current ambient settings bag to the one given.
    """
    if not settings or not isinstance(settings, Settings):
        raise TypeError("Settings is expected to be non-None and of type Settings")
    # The properties of SETTINGS are contextvars but SETTINGS itself isn't.
    for key in Settings._FIELDS:
        setattr(SETTINGS, key, getattr(settings, key))


def is_dry_run() -> bool:
    """
    Returns whether or not we are currently doing a preview.

    When writing unit tests, you can set this flag via `skyplan.runtime.set_mocks` by supplying a value
    for the argument `preview`.
    """
    return bool(SETTINGS.dry_run)


def get_organization() -> Optional[str]:
    return SETTINGS.organization


def get_project() -> str:
    """
    Returns the current project name.
    """
    return SETTINGS.project


def get_stack() -> str:
    """
    Returns the current stack name.
    """
    return SETTINGS.stack


def get_monitor() -> Optional[ResourceMonitor]:
    """
    Returns the current resource monitoring service client.
    """
    return SETTINGS.monitor


def get_engine() -> Optional[Engine]:
    """
    Returns the current engine service client.
    """
    return SETTINGS.engine


def get_task_ledger() -> Optional[TaskLedger]:
    """
    Returns the task ledger of the active run, or None when no run is active.
    """
    return SETTINGS.ledger


def get_root_resource() -> Optional["Resource"]:
    """
    Returns the implicit root stack resource for all resources created in this program.
    """
    return ROOT.get()


def set_root_resource(root: Optional["Resource"]):
    """
    Sets the current root stack resource for all resources subsequently to be created in this program.
    """
    ROOT.set(root)


ROOT: ContextVar[Optional[Resource]] = ContextVar("root_resource", default=None)


async def monitor_supports_feature(feature: str) -> bool:
    if feature not in SETTINGS.feature_support:
        monitor = SETTINGS.monitor
        if not monitor:
            return False

        def do_rpc_call():
            try:
                return monitor.supports_feature(feature)
            except grpc.RpcError as exn:
                if exn.code() != grpc.StatusCode.UNIMPLEMENTED:  # pylint: disable=no-member
                    handle_grpc_error(exn)
                return False

        result = await asyncio.get_running_loop().run_in_executor(None, do_rpc_call)
        SETTINGS.feature_support[feature] = result

    return SETTINGS.feature_support[feature]


def grpc_error_to_exception(exn: grpc.RpcError) -> Exception:
    # grpc.RpcError as a type is useless; the usefulness comes from the fact that it is polymorphically also
    # a grpc.Call and thus has the .code() member.
    # pylint: disable=no-member
    if exn.code() == grpc.StatusCode.UNAVAILABLE:
        # If the monitor is unavailable, it is in the process of
        # shutting down or has already shut down.
        return RunError("Resource monitor has terminated, shutting down")

    details = exn.details()
    return Exception(details)


def handle_grpc_error(exn: grpc.RpcError) -> None:
    raise grpc_error_to_exception(exn)


def reset_options(
    project: Optional[str] = None,
    stack: Optional[str] = None,
    parallel: Optional[int] = None,
    monitor: Optional[ResourceMonitor] = None,
    engine: Optional[Engine] = None,
    preview: Optional[bool] = None,
    organization: Optional[str] = None,
):
    """Resets globals to the values provided."""

    ROOT.set(None)

    configure(
        Settings(
            project=project,
            monitor=monitor,
            engine=engine,
            stack=stack,
            parallel=parallel,
            dry_run=preview,
            organization=organization,
        )
    )
