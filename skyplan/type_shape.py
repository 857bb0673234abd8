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
Descriptions of the expected type of a resource output, including generic parameters.
"""
import types
from dataclasses import dataclass
from typing import Any, Tuple, Union, get_args, get_origin


@dataclass(frozen=True)
class TypeShape:
    """
    A type together with the shapes of its generic parameters, e.g. `TypeShape.of(list, str)` for `List[str]`.

    `object` is used for `Any` and matches every value.
    """

    type: type
    parameters: Tuple["TypeShape", ...] = ()

    @staticmethod
    def of(typ: type, *parameters: Union["TypeShape", type]) -> "TypeShape":
        return TypeShape(
            typ,
            tuple(p if isinstance(p, TypeShape) else TypeShape.from_hint(p) for p in parameters),
        )

    @staticmethod
    def from_hint(hint: Any) -> "TypeShape":
        """
        Builds a shape from a type hint such as `int`, `List[str]` or `Optional[Dict[str, int]]`.
        """
        if hint is Any or hint is None or hint is type(None):
            return ANY

        origin = get_origin(hint)
        if origin is None:
            if not isinstance(hint, type):
                raise TypeError(f"Unsupported type hint: {hint!r}")
            return TypeShape(hint)

        args = tuple(a for a in get_args(hint) if a is not Ellipsis)
        if origin in _UNION_TYPES:
            # Only Optional[X] is supported; None is always an acceptable value.
            members = [a for a in args if a is not type(None)]
            if len(members) != 1:
                raise TypeError(f"Unsupported union type hint: {hint!r}")
            return TypeShape.from_hint(members[0])

        return TypeShape(origin, tuple(TypeShape.from_hint(a) for a in args))

    @staticmethod
    def of_value(value: Any) -> "TypeShape":
        if value is None:
            return ANY
        return TypeShape(type(value))

    def is_any(self) -> bool:
        return self.type is object

    def is_instance(self, value: Any) -> bool:
        """
        Checks the runtime class of a value. Generic parameters are not checked.
        """
        if self.is_any():
            return True
        if isinstance(value, bool) and self.type in (int, float):
            # bool subclasses int, but a flag is never a number.
            return False
        if self.type is float and isinstance(value, int):
            return True
        return isinstance(value, self.type)

    def is_assignable_from(self, other: "TypeShape") -> bool:
        """
        Whether a value of shape `other` may be used where this shape is expected. Parameters are matched
        covariantly, and a shape without parameters matches any parameterization.
        """
        if self.is_any() or other.is_any():
            return True
        if not _is_subclass(other.type, self.type):
            return False
        if not self.parameters or not other.parameters:
            return True
        if len(self.parameters) != len(other.parameters):
            return False
        return all(
            mine.is_assignable_from(theirs)
            for mine, theirs in zip(self.parameters, other.parameters)
        )

    def as_string(self) -> str:
        name = "Any" if self.is_any() else self.type.__qualname__
        if not self.parameters:
            return name
        return f"{name}[{', '.join(p.as_string() for p in self.parameters)}]"

    def __str__(self) -> str:
        return self.as_string()


ANY = TypeShape(object)

_UNION_TYPES = (Union, getattr(types, "UnionType", Union))


def _is_subclass(sub: type, sup: type) -> bool:
    if sub is bool and sup in (int, float):
        return False
    if sup is float and issubclass(sub, int):
        return True
    try:
        return issubclass(sub, sup)
    except TypeError:
        return False
