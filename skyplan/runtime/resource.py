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
from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, Mapping, NamedTuple, Optional, Set

import grpc
from semver import Version

from .. import log
from ..output import Output, contains_unknowns
from ..output_data import Unknown
from ..resource import DependencyResource, HasId
from ..type_shape import TypeShape
from . import settings
from .dependencies import check_version, expand_dependencies, gather_dependencies
from .monitor import (
    ReadResourceRequest,
    ReadResourceResponse,
    RegisterResourceOutputsRequest,
    RegisterResourceRequest,
    RegisterResourceResponse,
)

if TYPE_CHECKING:
    from ..output import Input, Inputs
    from ..resource import ProviderResource, Resource, ResourceOptions
    from .completion_source import OutputCompletionSource

# The provider ID used when a provider's real ID is not known yet, e.g. during previews.
UNKNOWN_ID = "04da6b54-80e4-46f7-96ec-b56ff0331ba9"


class ResourceResolverOperations(NamedTuple):
    """
    The set of properties resulting from a successful call to prepare_resource.
    """

    parent_urn: str
    """
    This resource's parent URN.
    """

    serialized_props: Dict[str, Any]
    """
    This resource's input properties, serialized into plain values.
    """

    dependencies: Set[str]
    """
    A list of dependencies for this resource.
    """

    provider_ref: str
    """
    This resource's provider reference, if it has one.
    """

    property_dependencies: Dict[str, List[str]]
    """
    A map from property name to the URNs of the resources the property depends on.
    """

    has_secrets: bool

    has_unknowns: bool


def schedule(description: str, awaitable: Awaitable[Any]) -> "asyncio.Future[Any]":
    """
    Starts the given work on the running loop, recording it in the active run's task ledger.
    """
    task = asyncio.ensure_future(awaitable)
    ledger = settings.get_task_ledger()
    if ledger is not None:
        ledger.register_task(description, task)
    return task


async def prepare_resource(
    res: "Resource",
    ty: str,
    custom: bool,
    props: "Inputs",
    opts: Optional["ResourceOptions"],
) -> ResourceResolverOperations:
    deps = await gather_dependencies(props, opts.depends_on if opts is not None else None)
    if settings.excessive_debug_output:
        log.debug(f"serialized props: {deps.props}")

    # Resolve the parent URN, if any. The parent is not a dependency.
    parent_urn: Optional[str] = ""
    if res.parent is not None:
        parent_urn = await res.parent.urn.future()

    # Only custom resources have providers.
    provider_ref = ""
    if custom:
        provider = res.get_provider(ty)
        if provider is not None:
            _check_provider_version(res, provider, opts)
            provider_ref = await create_provider_ref(provider)

    # Local component resources are expanded into their children, and the resource being registered
    # never waits on itself.
    dependencies = await expand_dependencies(deps.resources, res)
    property_dependencies: Dict[str, List[str]] = {}
    for key, property_deps in deps.property_dependencies.items():
        property_dependencies[key] = sorted(await expand_dependencies(property_deps, res))

    return ResourceResolverOperations(
        parent_urn or "",
        deps.props,
        dependencies,
        provider_ref,
        property_dependencies,
        deps.has_secrets,
        deps.has_unknowns,
    )


async def create_provider_ref(provider: "ProviderResource") -> str:
    if not isinstance(provider, HasId):
        raise TypeError(f"Expected a provider resource, got {provider!r}")
    urn = await provider.urn.future()
    provider_id = await provider.id.future()
    return f"{urn}::{provider_id or UNKNOWN_ID}"


def _check_provider_version(
    res: "Resource", provider: "ProviderResource", opts: Optional["ResourceOptions"]
) -> None:
    if opts is None or opts.version is None or provider.version is None:
        return
    if not check_version(Version.parse(opts.version), Version.parse(provider.version)):
        log.warn(
            f"Provider '{provider.package}' has version {provider.version}, "
            f"which does not satisfy the requested version {opts.version}",
            res,
        )


def register_resource(
    res: "Resource",
    ty: str,
    name: str,
    custom: bool,
    remote: bool,
    props: "Inputs",
    opts: "ResourceOptions",
) -> None:
    """
    Registers a new resource object with a given type t and name. It returns the auto-generated
    URN and the ID that will resolve after the deployment has completed. All properties will be
    initialized to property objects that the registration operation will resolve at the right time
    (or remain unresolved for deployments).
    """
    log.debug(f"registering resource: ty={ty}, name={name}, custom={custom}, remote={remote}")
    monitor = settings.get_monitor()
    sources = res._sources
    project = settings.get_project()
    stack = settings.get_stack()

    async def do_register():
        try:
            resolver = await prepare_resource(res, ty, custom, props, opts)
            log.debug(f"resource registration prepared: ty={ty}, name={name}")

            if opts.additional_secret_outputs and monitor is not None:
                if not await settings.monitor_supports_feature("additionalSecretOutputs"):
                    raise Exception(
                        "The Skyplan engine does not support the additional_secret_outputs option. "
                        "Please update the engine."
                    )

            req = RegisterResourceRequest(
                type=ty,
                name=name,
                custom=custom,
                parent=resolver.parent_urn,
                object=resolver.serialized_props,
                dependencies=sorted(resolver.dependencies),
                property_dependencies=resolver.property_dependencies,
                has_secrets=resolver.has_secrets,
                has_unknowns=resolver.has_unknowns,
                protect=opts.protect,
                provider=resolver.provider_ref,
                version=opts.version or "",
                additional_secret_outputs=list(opts.additional_secret_outputs or []),
                ignore_changes=list(opts.ignore_changes or []),
                import_id=opts.import_ or "",
                remote=remote,
            )

            def do_rpc_call() -> RegisterResourceResponse:
                if monitor is None:
                    # If no monitor is available, we'll need to fake up a response, for testing.
                    return RegisterResourceResponse(
                        urn=create_urn(project, stack, name, ty, resolver.parent_urn),
                        id=None,
                        object=dict(resolver.serialized_props),
                    )
                try:
                    return monitor.register_resource(req)
                except grpc.RpcError as exn:
                    raise settings.grpc_error_to_exception(exn) from exn

            resp = await asyncio.get_running_loop().run_in_executor(None, do_rpc_call)
        except Exception as exn:
            log.debug(f"exception when preparing or executing rpc: {exn}")
            resolve_outputs_due_to_exception(sources, exn)
            raise

        log.debug(f"resource registration successful: ty={ty}, urn={resp.urn}")
        try:
            resolve_outputs(
                sources,
                resp.urn,
                resp.id,
                resp.object,
                resp.property_dependencies,
                set(resp.secret_outputs) | set(opts.additional_secret_outputs or []),
                custom,
            )
        except Exception as exn:
            resolve_outputs_due_to_exception(sources, exn)
            raise

    schedule(f"register_resource: {ty}-{name}", do_register())


def read_resource(
    res: "Resource",
    ty: str,
    name: str,
    props: "Inputs",
    opts: "ResourceOptions",
) -> None:
    """
    Reads an existing resource with the given type, name and ID instead of creating it.
    """
    if opts.id is None:
        raise ValueError("Cannot read resource whose options are lacking an ID value")

    log.debug(f"reading resource: ty={ty}, name={name}, id={opts.id}")
    monitor = settings.get_monitor()
    sources = res._sources
    project = settings.get_project()
    stack = settings.get_stack()

    async def do_read():
        try:
            resolver = await prepare_resource(res, ty, True, props, opts)

            resolved_id = await Output.from_input(opts.id).future(with_unknowns=True)
            if isinstance(resolved_id, Unknown) or resolved_id is None:
                resolved_id = ""

            req = ReadResourceRequest(
                type=ty,
                name=name,
                id=resolved_id,
                parent=resolver.parent_urn,
                properties=resolver.serialized_props,
                dependencies=sorted(resolver.dependencies),
                provider=resolver.provider_ref,
                version=opts.version or "",
                additional_secret_outputs=list(opts.additional_secret_outputs or []),
            )

            def do_rpc_call() -> ReadResourceResponse:
                if monitor is None:
                    return ReadResourceResponse(
                        urn=create_urn(project, stack, name, ty, resolver.parent_urn),
                        properties=dict(resolver.serialized_props),
                    )
                try:
                    return monitor.read_resource(req)
                except grpc.RpcError as exn:
                    raise settings.grpc_error_to_exception(exn) from exn

            resp = await asyncio.get_running_loop().run_in_executor(None, do_rpc_call)
        except Exception as exn:
            log.debug(f"exception when preparing or executing rpc: {exn}")
            resolve_outputs_due_to_exception(sources, exn)
            raise

        log.debug(f"resource read successful: ty={ty}, urn={resp.urn}")
        try:
            resolve_outputs(
                sources,
                resp.urn,
                resolved_id or None,
                resp.properties,
                {},
                set(resp.secret_outputs) | set(opts.additional_secret_outputs or []),
                True,
            )
        except Exception as exn:
            resolve_outputs_due_to_exception(sources, exn)
            raise

    schedule(f"read_resource: {ty}-{name}", do_read())


def register_resource_outputs(res: "Resource", outputs: "Input[Mapping[str, Any]]") -> None:
    """
    Completes the registration of a component resource with the outputs it exposes.
    """
    monitor = settings.get_monitor()

    async def do_register_resource_outputs():
        urn = await res.urn.future()
        props = outputs
        if not isinstance(props, Mapping):
            props = await Output._from_input_shallow(props).future() or {}
        deps = await gather_dependencies(props)
        log.debug(f"register resource outputs prepared: urn={urn}, props={deps.props}")

        req = RegisterResourceOutputsRequest(urn=urn or "", outputs=deps.props)

        def do_rpc_call() -> None:
            if monitor is None:
                return
            try:
                monitor.register_resource_outputs(req)
            except grpc.RpcError as exn:
                raise settings.grpc_error_to_exception(exn) from exn

        await asyncio.get_running_loop().run_in_executor(None, do_rpc_call)
        log.debug(f"resource registration successful: urn={urn}, props={deps.props}")

    schedule(
        f"register_resource_outputs: {res._type}-{res._name}",
        do_register_resource_outputs(),
    )


def resolve_outputs(
    sources: Dict[str, "OutputCompletionSource[Any]"],
    urn: str,
    resource_id: Optional[str],
    properties: Mapping[str, Any],
    property_dependencies: Mapping[str, List[str]],
    secret_outputs: Set[str],
    custom: bool,
) -> None:
    """
    Completes every output of a resource from the engine's response. Outputs the engine did not
    return are resolved as absent, or as unknown during previews.

    :raises TypeError: if a returned value does not have the declared type of its output.
    """
    dry_run = settings.is_dry_run()

    for name, source in sources.items():
        if name == "urn":
            source.set_object_value(urn, TypeShape.of(str), True)
            continue

        if name == "id" and custom:
            # An empty ID means the resource has not been created yet.
            known = bool(resource_id)
            source.set_object_value(resource_id if known else None, TypeShape.of(str), known)
            continue

        if name not in properties:
            source.try_set_default_result(not dry_run)
            continue

        value = properties[name]
        known = not contains_unknowns(value)
        deps = {DependencyResource(dep) for dep in property_dependencies.get(name, [])}
        source.set_object_value(
            value if known else None,
            TypeShape.of_value(value) if known else TypeShape.of(object),
            known,
            name in secret_outputs,
            deps,
        )


def resolve_outputs_due_to_exception(
    sources: Dict[str, "OutputCompletionSource[Any]"], exn: BaseException
) -> None:
    """
    Fails every output that has not been completed yet with the given exception.
    """
    for source in sources.values():
        source.try_set_exception(exn)


def create_urn(
    project: str, stack: str, name: str, ty: str, parent_urn: Optional[str] = None
) -> str:
    """
    Builds the URN the engine would assign to a resource, qualifying its type with the type of its
    parent.
    """
    qualified_type = ty
    if parent_urn:
        parent_type = parent_urn.split("::")[2].split("$")[-1]
        qualified_type = f"{parent_type}${ty}"
    return f"urn:skyplan:{stack}::{project}::{qualified_type}::{name}"

