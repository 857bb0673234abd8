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
Tracks the direct dependencies resources wait on while their dependencies are expanded, so that
a wait which would close a cycle can be left out instead of hanging the program.
"""
from typing import TYPE_CHECKING, Iterator, Set

if TYPE_CHECKING:
    from ..resource import Resource


_DIRECT_DEPENDENCIES = "_direct_computed_dependencies"


def declare_dependency(from_resource: "Resource", to_resource: "Resource") -> bool:
    """
    Records that `from_resource` waits on `to_resource`. Returns False, recording nothing, when
    `to_resource` already waits on `from_resource`, directly or transitively.
    """
    if _reachable(to_resource, from_resource):
        return False

    setattr(from_resource, _DIRECT_DEPENDENCIES, _direct_dependencies(from_resource) | {to_resource})
    return True


def _direct_dependencies(res: "Resource") -> Set["Resource"]:
    return getattr(res, _DIRECT_DEPENDENCIES, set())


def _reachable(start: "Resource", target: "Resource") -> bool:
    return any(res is target for res in _walk(start, set()))


def _walk(res: "Resource", visited: Set[int]) -> Iterator["Resource"]:
    if id(res) in visited:
        return
    visited.add(id(res))
    yield res
    for dep in _direct_dependencies(res):
        yield from _walk(dep, visited)
