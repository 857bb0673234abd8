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
The immutable data carried by an Output, and the algebra used to combine it.
"""
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    FrozenSet,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
    cast,
)

if TYPE_CHECKING:
    from .resource import Resource

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")


class Unknown:
    """
    Unknown represents a value that is unknown.
    """

    def __repr__(self) -> str:
        return "UNKNOWN"


UNKNOWN = Unknown()
"""
UNKNOWN is the singleton unknown value.
"""


class OutputData(Generic[T]):
    """
    This is an advanced type used to report back internal details of an Output.

    An OutputData is never mutated once constructed; every operation returns a new instance.
    """

    __slots__ = ("_resources", "_value", "_known", "_secret")

    _resources: FrozenSet["Resource"]
    _value: Optional[T]
    _known: bool
    _secret: bool

    def __init__(
        self,
        resources: Iterable["Resource"],
        value: Optional[T],
        known: bool = True,
        secret: bool = False,
    ) -> None:
        if not known and value is not None:
            raise ValueError(
                f"An unknown OutputData must not carry a value, got {value!r}"
            )
        object.__setattr__(self, "_resources", frozenset(resources))
        object.__setattr__(self, "_value", value)
        object.__setattr__(self, "_known", bool(known))
        object.__setattr__(self, "_secret", bool(secret))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"OutputData is immutable, cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"OutputData is immutable, cannot delete '{name}'")

    @property
    def resources(self) -> FrozenSet["Resource"]:
        """
        The set of resources that the value depends on.
        """
        return self._resources

    @property
    def value(self) -> Optional[T]:
        """
        The concrete value if known and present; else None.
        """
        return self._value

    @property
    def known(self) -> bool:
        """
        Whether the value is known. During a preview a value may not be known, because it would have
        to actually be computed by doing an update. Unknown data never carries a value.
        """
        return self._known

    @property
    def secret(self) -> bool:
        """
        Whether or not the value should be treated as containing secret data.
        """
        return self._secret

    def is_present(self) -> bool:
        return self._value is not None

    def is_empty(self) -> bool:
        return self._value is None

    def value_or(self, default: T) -> T:
        return default if self._value is None else self._value

    # Factories.

    @staticmethod
    def of(
        value: T, *, resources: Iterable["Resource"] = (), secret: bool = False
    ) -> "OutputData[T]":
        """
        Creates known data holding the given value.

        :raises ValueError: if the value is None, use `of_nullable` for absent values.
        """
        if value is None:
            raise ValueError("OutputData.of() requires a value, use of_nullable()")
        return OutputData(resources, value, True, secret)

    @staticmethod
    def of_nullable(
        resources: Iterable["Resource"],
        value: Optional[T],
        known: bool,
        secret: bool,
    ) -> "OutputData[T]":
        resources = frozenset(resources)
        if not resources and value is None:
            return cast(OutputData[T], _CANONICAL[(bool(known), bool(secret))])
        return OutputData(resources, value, known, secret)

    @staticmethod
    def empty() -> "OutputData[Any]":
        return _CANONICAL[(True, False)]

    @staticmethod
    def empty_secret() -> "OutputData[Any]":
        return _CANONICAL[(True, True)]

    @staticmethod
    def unknown() -> "OutputData[Any]":
        return _CANONICAL[(False, False)]

    @staticmethod
    def unknown_secret() -> "OutputData[Any]":
        return _CANONICAL[(False, True)]

    @staticmethod
    def builder(start: Union["OutputData[T]", T, None]) -> "OutputDataBuilder[T]":
        return OutputDataBuilder(start)

    # Algebra.

    def apply(self, fn: Callable[[Optional[T]], Optional[U]]) -> "OutputData[U]":
        """
        Transforms the value with fn. Unknown data stays unknown and fn is never called. The resources
        and the secret flag are carried over either way.
        """
        if not self._known:
            return OutputData.of_nullable(self._resources, None, False, self._secret)
        return OutputData.of_nullable(
            self._resources, fn(self._value), True, self._secret
        )

    def combine(
        self,
        other: "OutputData[U]",
        fn: Callable[[Optional[T], Optional[U]], Optional[V]],
    ) -> "OutputData[V]":
        """
        Joins two data cells. The resources are unioned and the secret flags are or-ed even if one of
        the two is unknown, in which case the result is unknown and fn is not called.
        """
        resources = self._resources | other._resources
        secret = self._secret or other._secret
        if self._known and other._known:
            return OutputData.of_nullable(
                resources, fn(self._value, other._value), True, secret
            )
        return OutputData.of_nullable(resources, None, False, secret)

    def compose(
        self, fn: Callable[[Optional[T]], "OutputData[U]"]
    ) -> "OutputData[U]":
        """
        Like `apply`, but fn produces a full OutputData which is flattened into the result.
        """
        if not self._known:
            return OutputData.of_nullable(self._resources, None, False, self._secret)
        inner = fn(self._value)
        return OutputData.of_nullable(
            self._resources | inner._resources,
            inner._value,
            inner._known,
            self._secret or inner._secret,
        )

    def with_dependency(self, resource: "Resource") -> "OutputData[T]":
        return self.with_dependencies([resource])

    def with_dependencies(self, resources: Iterable["Resource"]) -> "OutputData[T]":
        return OutputData.of_nullable(
            self._resources.union(resources), self._value, self._known, self._secret
        )

    def with_is_secret(self, secret: bool) -> "OutputData[T]":
        return OutputData.of_nullable(
            self._resources, self._value, self._known, secret
        )

    def copy(self) -> "OutputData[T]":
        return OutputData.of_nullable(
            self._resources, self._value, self._known, self._secret
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, OutputData):
            return NotImplemented
        return (
            self._known == other._known
            and self._secret == other._secret
            and self._resources == other._resources
            and self._value == other._value
        )

    def __hash__(self) -> int:
        # The value is left out since it may not be hashable.
        return hash((self._resources, self._known, self._secret))

    def __repr__(self) -> str:
        return (
            f"OutputData(resources={set(self._resources)!r}, value={self._value!r}, "
            f"known={self._known}, secret={self._secret})"
        )


def _make_canonical() -> Dict[Tuple[bool, bool], OutputData[Any]]:
    return {
        (known, secret): OutputData(frozenset(), None, known, secret)
        for known in (True, False)
        for secret in (True, False)
    }


_CANONICAL = _make_canonical()


class OutputDataBuilder(Generic[T]):
    """
    Folds a sequence of OutputData into a single one, starting from a seed value.
    """

    def __init__(self, start: Union[OutputData[T], T, None]) -> None:
        if isinstance(start, OutputData):
            self._data: OutputData[T] = start
        else:
            self._data = OutputData.of_nullable((), start, True, False)

    def accumulate(
        self,
        data: OutputData[U],
        reduce: Callable[[Optional[T], Optional[U]], Optional[T]],
    ) -> "OutputDataBuilder[T]":
        self._data = self._data.combine(data, reduce)
        return self

    def accumulate_all(
        self,
        datas: Iterable[OutputData[U]],
        reduce: Callable[[Optional[T], Optional[U]], Optional[T]],
    ) -> "OutputDataBuilder[T]":
        for data in datas:
            self.accumulate(data, reduce)
        return self

    def transform(
        self,
        data: OutputData[U],
        reduce: Callable[[Optional[T], Optional[U]], Optional[V]],
    ) -> "OutputDataBuilder[V]":
        return OutputDataBuilder(self._data.combine(data, reduce))

    def build(
        self, fn: Optional[Callable[[Optional[T]], Optional[U]]] = None
    ) -> OutputData[Any]:
        if fn is None:
            return self._data
        return self._data.apply(fn)


def all_data(datas: Sequence[OutputData[T]]) -> OutputData[List[Optional[T]]]:
    """
    Folds a list of data cells into a single cell holding a list, in input order.
    """
    seed: List[Optional[T]] = []
    return (
        OutputData.builder(seed)
        .accumulate_all(datas, lambda acc, v: acc + [v])  # type: ignore
        .build()
    )


TUPLE_ARITY = 8


def tuple_data(datas: Sequence[OutputData[Any]]) -> OutputData[Tuple[Any, ...]]:
    """
    Folds between one and eight data cells into a single cell holding a tuple. Unused slots are padded
    with the empty cell and dropped again once the tuple is built.
    """
    arity = len(datas)
    if arity < 1 or arity > TUPLE_ARITY:
        raise ValueError(
            f"tuple expects between 1 and {TUPLE_ARITY} values, got {arity}"
        )
    padded = list(datas) + [OutputData.empty()] * (TUPLE_ARITY - arity)

    builder: OutputDataBuilder[Any] = OutputData.builder(())
    for data in padded:
        builder = builder.transform(data, lambda acc, v: acc + (v,))
    return builder.build(lambda values: values[:arity])
