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
The write-once bridge between a resource's declared output field and the value the engine reports for it.
"""
import asyncio
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable, Optional, Tuple, TypeVar

from ..output import Output
from ..output_data import OutputData
from ..type_shape import ANY, TypeShape

if TYPE_CHECKING:
    from ..resource import Resource

T = TypeVar("T")


class OutputCompletionSource(Generic[T]):
    """
    Holds an initially incomplete future of OutputData, completed exactly once by one of the `set_*`
    methods. Completing an already completed source does nothing.

    The owning resources are added to whatever resources the completing data carries.
    """

    def __init__(
        self,
        future: "asyncio.Future[OutputData[T]]",
        resources: Iterable["Resource"],
        shape: TypeShape = ANY,
        name: str = "value",
    ) -> None:
        self._future = future
        self._loop = future.get_loop()
        self._resources = frozenset(resources)
        self._shape = shape
        self._name = name

    @staticmethod
    def create(
        resources: Iterable["Resource"], shape: TypeShape = ANY, name: str = "value"
    ) -> Tuple["OutputCompletionSource[Any]", Output[Any]]:
        """
        Creates a completion source along with the Output that observes it.
        """
        future: asyncio.Future[OutputData[Any]] = asyncio.get_event_loop().create_future()
        return OutputCompletionSource(future, resources, shape, name), Output(future)

    @property
    def shape(self) -> TypeShape:
        return self._shape

    @property
    def name(self) -> str:
        return self._name

    @property
    def resources(self) -> frozenset:
        return self._resources

    def is_completed(self) -> bool:
        return self._future.done()

    def set_value(self, data: OutputData[T]) -> None:
        self._complete(
            self._future.set_result,
            OutputData.of_nullable(
                self._resources | data.resources, data.value, data.known, data.secret
            ),
        )

    def set_object_value(
        self,
        value: Any,
        value_shape: TypeShape,
        known: bool,
        secret: bool = False,
        resources: Iterable["Resource"] = (),
    ) -> None:
        """
        Completes the source with the given value after checking it against the declared shape. The given
        resources are added to the owners.

        :raises TypeError: if the value or its shape does not match the declared shape. The source is
            left incomplete.
        """
        if value is not None and not self._shape.is_instance(value):
            raise TypeError(
                f"Expected '{self._name}' to have a value of type '{self._shape}', "
                f"got value of class '{type(value).__qualname__}'"
            )
        if not self._shape.is_assignable_from(value_shape):
            raise TypeError(
                f"Expected '{self._name}' to have a value of type '{self._shape}', "
                f"got value of type '{value_shape}'"
            )
        self.set_value(
            OutputData.of_nullable(resources, value if known else None, known, secret)
        )

    def try_set_exception(self, exn: BaseException) -> None:
        self._complete(self._future.set_exception, exn)

    def try_set_default_result(self, known: bool) -> None:
        self._complete(
            self._future.set_result,
            OutputData.of_nullable(self._resources, None, known, False),
        )

    def _complete(self, setter: Callable[[Any], None], arg: Any) -> None:
        def complete() -> None:
            if not self._future.done():
                setter(arg)

        running: Optional[asyncio.AbstractEventLoop]
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            complete()
        else:
            self._loop.call_soon_threadsafe(complete)

    def __repr__(self) -> str:
        return f"OutputCompletionSource[{self._shape}]({self._name})"
