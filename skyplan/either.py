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
A minimal two-variant container, used as a lightweight success/failure or this-or-that encoding.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, TypeVar

L = TypeVar("L")
R = TypeVar("R")
L2 = TypeVar("L2")
R2 = TypeVar("R2")
U = TypeVar("U")


class Either(ABC, Generic[L, R]):
    """
    Either holds exactly one non-None value, which is either a `Left` or a `Right`.

    By convention `Right` is the "success" side: `map` and `flat_map` only ever touch a `Right`, and a
    `Left` passes through them untouched.
    """

    __slots__ = ()

    @staticmethod
    def of_left(value: L) -> "Either[L, Any]":
        return Left(value)

    @staticmethod
    def of_right(value: R) -> "Either[Any, R]":
        return Right(value)

    error_of = of_left
    value_of = of_right

    @abstractmethod
    def is_left(self) -> bool:
        ...

    def is_right(self) -> bool:
        return not self.is_left()

    def is_error(self) -> bool:
        return self.is_left()

    def is_value(self) -> bool:
        return self.is_right()

    @abstractmethod
    def left(self) -> L:
        """
        Returns the left value.

        :raises RuntimeError: if this is a `Right`.
        """

    @abstractmethod
    def right(self) -> R:
        """
        Returns the right value.

        :raises RuntimeError: if this is a `Left`.
        """

    def error(self) -> L:
        return self.left()

    def value(self) -> R:
        return self.right()

    @abstractmethod
    def either(self, left_fn: Callable[[L], U], right_fn: Callable[[R], U]) -> U:
        """
        Folds this value into a single result by applying the function matching the variant.
        """

    def or_(self, alternative: "Either[L, R]") -> "Either[L, R]":
        """
        Returns this value if it is a `Right`, otherwise the given alternative.
        """
        return self if self.is_right() else alternative

    def or_else(self, default: R) -> R:
        return self.right() if self.is_right() else default

    def or_raise(self, left_fn: Callable[[L], BaseException]) -> R:
        if self.is_left():
            raise left_fn(self.left())
        return self.right()

    def map_or_raise(
        self, left_fn: Callable[[L], BaseException], right_fn: Callable[[R], U]
    ) -> U:
        return right_fn(self.or_raise(left_fn))

    def map(self, fn: Callable[[R], R2]) -> "Either[L, R2]":
        if self.is_left():
            return self  # type: ignore
        return Right(fn(self.right()))

    def flat_map(self, fn: Callable[[R], "Either[L, R2]"]) -> "Either[L, R2]":
        if self.is_left():
            return self  # type: ignore
        return fn(self.right())

    def transform(
        self, left_fn: Callable[[L], L2], right_fn: Callable[[R], R2]
    ) -> "Either[L2, R2]":
        if self.is_left():
            return Left(left_fn(self.left()))
        return Right(right_fn(self.right()))

    @abstractmethod
    def swap(self) -> "Either[R, L]":
        ...


class Left(Either[L, Any]):
    __slots__ = ("_value",)

    def __init__(self, value: L) -> None:
        if value is None:
            raise ValueError("Left value must not be None")
        self._value = value

    def is_left(self) -> bool:
        return True

    def left(self) -> L:
        return self._value

    def right(self) -> Any:
        raise RuntimeError(f"right() called on {self!r}")

    def either(self, left_fn: Callable[[L], U], right_fn: Callable[[Any], U]) -> U:
        return left_fn(self._value)

    def swap(self) -> "Either[Any, L]":
        return Right(self._value)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Left) and self._value == other._value

    def __hash__(self) -> int:
        return hash((Left, self._value))

    def __repr__(self) -> str:
        return f"Left({self._value!r})"


class Right(Either[Any, R]):
    __slots__ = ("_value",)

    def __init__(self, value: R) -> None:
        if value is None:
            raise ValueError("Right value must not be None")
        self._value = value

    def is_left(self) -> bool:
        return False

    def left(self) -> Any:
        raise RuntimeError(f"left() called on {self!r}")

    def right(self) -> R:
        return self._value

    def either(self, left_fn: Callable[[Any], U], right_fn: Callable[[R], U]) -> U:
        return right_fn(self._value)

    def swap(self) -> "Either[R, Any]":
        return Left(self._value)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Right) and self._value == other._value

    def __hash__(self) -> int:
        return hash((Right, self._value))

    def __repr__(self) -> str:
        return f"Right({self._value!r})"
