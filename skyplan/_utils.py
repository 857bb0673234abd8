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

from contextvars import ContextVar
import os
import typing


def contextproperty(fn=None, *, default: typing.Optional[typing.Any] = None):
    """Decorator interface for ContextProperty

    This gives a @property-like interface into ContextProperty:

    >>> class Foo:
    ...    @contextproperty(default="bar")
    ...    def my_attribute(): ...
    >>> Foo().my_attribute
    'bar'
    """

    def inner(func: typing.Callable):
        return ContextProperty(
            name=func.__qualname__, doc=func.__doc__, default=default
        )

    if fn is None:
        return inner
    return inner(fn)


class ContextProperty:
    """Property-like interface for ContextVars

    Reads and writes go to a ContextVar owned by the class, so a value set while one asyncio task (or
    `contextvars.Context`) is running is not observed by another.

    >>> class Foo:
    ...     my_attribute = ContextProperty(name="foo", default="bar")
    >>> Foo().my_attribute
    'bar'
    """

    def __init__(
        self,
        *_,
        name: str,
        doc: typing.Optional[str] = None,
        default: typing.Optional[typing.Any] = None,
    ):
        """
        :param str name: The name assigned to both the property and also passed to the underlying ContextVar
        :param str doc: Docstring to assign to this property
        :param Any default: Default value to be passed to the underlying ContextVar
        """
        self.__doc__ = doc
        self._name = name
        self._default = default
        self._data: ContextVar = ContextVar(name, default=default)

    def __repr__(self):
        return f"<class {type(self).__qualname__}[name={self._name!r} default={self._default!r}] value: {self._data.get()!r}>"

    def __get__(self, obj: typing.Optional[typing.Any], _):
        if obj is None:
            return self
        return self._data.get()

    def __set__(self, _, v: typing.Any):
        self._data.set(v)

    def __delete__(self, _):
        self._data.set(self._default)


def getenv_bool(name: str, default: bool = False) -> bool:
    """
    Reads a boolean flag from the environment. "1" and "true" (in any case) are true.
    """
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true"}
