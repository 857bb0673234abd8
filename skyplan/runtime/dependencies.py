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
Support for computing the set of resources a resource or invoke depends on.
"""
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, NamedTuple, Optional, Set

from semver import Version

from ..output import Output, contains_unknowns
from ..output_data import UNKNOWN
from ..resource import ComponentContainer, is_resource
from .resource_cycle_breaker import declare_dependency

if TYPE_CHECKING:
    from ..output import Input, Inputs
    from ..resource import Resource


class ResourceDependencies(NamedTuple):
    resources: Set["Resource"]
    """
    Every resource the inputs depend on, explicitly or through their Outputs.
    """
    property_dependencies: Dict[str, Set["Resource"]]
    """
    The resources each input property depends on, by property name.
    """
    has_secrets: bool
    has_unknowns: bool
    props: Dict[str, Any]
    """
    The resolved input values. Unknown values are UNKNOWN, and resources are replaced with their URNs.
    """


async def gather_dependencies(
    props: Optional["Inputs"], depends_on: Optional["Input[Any]"] = None
) -> ResourceDependencies:
    """
    Resolves every input property and collects the resources they were computed from, together with
    the resources listed in `depends_on`.
    """
    resources: Set["Resource"] = set()
    property_dependencies: Dict[str, Set["Resource"]] = {}
    resolved: Dict[str, Any] = {}
    has_secrets = False
    has_unknowns = False

    for name, value in (props or {}).items():
        data = await Output.from_input(value).get_data()
        deps = set(data.resources)

        if not data.known:
            serialized: Any = UNKNOWN
        else:
            serialized = await _serialize(data.value, deps)

        has_secrets = has_secrets or data.secret
        has_unknowns = has_unknowns or not data.known or contains_unknowns(serialized)
        # Absent values are not sent to the engine.
        if serialized is not None:
            resolved[name] = serialized
        property_dependencies[name] = deps
        resources |= deps

    resources |= await resolve_depends_on(depends_on)

    return ResourceDependencies(
        resources, property_dependencies, has_secrets, has_unknowns, resolved
    )


async def resolve_depends_on(depends_on: Optional["Input[Any]"]) -> Set["Resource"]:
    """
    Resolves a `depends_on` input, which may be a resource, a list of resources, or Outputs of
    either, into a set of resources. The resources the Outputs themselves depend on are included.

    :raises TypeError: if something other than a resource is found.
    """
    if depends_on is None:
        return set()

    outer = Output._from_input_shallow(depends_on)
    all_deps = await outer.resources()
    inner_list = await outer.future()
    if inner_list is None:
        return all_deps
    if not isinstance(inner_list, (list, tuple)):
        inner_list = [inner_list]

    for item in inner_list:
        inner = Output._from_input_shallow(item)
        all_deps |= await inner.resources()
        res = await inner.future()
        if res is None:
            continue
        if not is_resource(res):
            raise TypeError(
                f"'depends_on' was passed a value {res!r} that was not a Resource."
            )
        all_deps.add(res)

    return all_deps


async def expand_dependencies(
    resources: Iterable["Resource"], from_resource: Optional["Resource"] = None
) -> Set[str]:
    """
    Computes the URNs to send to the engine for the given dependencies. Local component resources
    are replaced by their children, transitively, since they have no physical counterpart. Custom
    resources and remote components are depended on directly.

    `from_resource`, the resource the dependencies are being computed for, is never waited on, nor is
    any resource that already waits on `from_resource`, since that wait could never finish.
    """
    urns: Set[str] = set()
    for res in set(resources):
        await _add_dependency(urns, res, from_resource)
    return urns


async def _add_dependency(
    urns: Set[str], res: "Resource", from_resource: Optional["Resource"]
) -> None:
    if res is from_resource:
        return
    if from_resource is not None and not declare_dependency(from_resource, res):
        return

    if isinstance(res, ComponentContainer) and not res.remote:
        for child in res.child_resources():
            await _add_dependency(urns, child, from_resource)
        return

    urn = await res.urn.future()
    if urn:
        urns.add(urn)


async def _serialize(value: Any, deps: Set["Resource"]) -> Any:
    """
    Replaces resources nested in a resolved value with their URNs, recording them as dependencies.
    """
    if is_resource(value):
        deps.add(value)
        return await value.urn.future(with_unknowns=True)

    if isinstance(value, dict):
        return {k: await _serialize(v, deps) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        items: List[Any] = []
        for item in value:
            items.append(await _serialize(item, deps))
        return items

    return value


def check_version(want: Optional[Version], have: Optional[Version]) -> bool:
    """
    Whether a provider of version `have` satisfies a request for version `want`: the major
    versions must match and `have` must be at least `want`. None is treated as a wildcard.
    """
    if want is None or have is None:
        return True
    return have.major == want.major and have >= want

