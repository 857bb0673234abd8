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
import json
from inspect import isawaitable
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
    cast,
    overload,
)

from .either import Either
from .errors import OutputToStringError
from .output_data import UNKNOWN, OutputData, Unknown, all_data, tuple_data
from .runtime.settings import SETTINGS, get_task_ledger

if TYPE_CHECKING:
    from .resource import Resource

T = TypeVar("T")
T1 = TypeVar("T1")
T2 = TypeVar("T2")
T3 = TypeVar("T3")
T_co = TypeVar("T_co", covariant=True)
U = TypeVar("U")
K = TypeVar("K")

Input = Union[T, Awaitable[T], "Output[T]"]
Inputs = Mapping[str, Input[Any]]


class Output(Generic[T_co]):
    """
    Output helps encode the relationship between Resources in a Skyplan program. Specifically an
    Output holds onto a piece of Data and the Resources it was generated from. An Output value can
    then be provided when constructing new Resources, allowing that new Resource to know both the
    value as well as the Resource the value came from.  This allows for a precise 'Resource
    dependency graph' to be created, which properly tracks the relationship between resources.
    """

    _data: "asyncio.Future[OutputData[T_co]]"
    """
    The future internal data for this Output.
    """

    def __init__(self, data: Awaitable[OutputData[T_co]]) -> None:
        self._data = asyncio.ensure_future(data)

        # The run loop must not finish while this output is still being computed.
        ledger = get_task_ledger()
        if ledger is not None:
            ledger.register_task("Output", self._data)

    # Factories.

    @staticmethod
    def of(value: Input[T]) -> "Output[T]":
        """
        Creates a known, non-secret Output from a prompt value or an awaitable.

        :raises ValueError: if the value is None, use `of_nullable` for absent values.
        """
        if value is None:
            raise ValueError("Output.of() requires a value, use Output.of_nullable()")
        if isinstance(value, Output):
            return value
        if isawaitable(value):

            async def get_data() -> OutputData[T]:
                return OutputData.of_nullable((), await value, True, False)

            return Output(get_data())
        return Output(_resolved(OutputData.of(value)))

    @staticmethod
    def of_secret(value: Input[T]) -> "Output[T]":
        return Output.of(value).as_secret()

    @staticmethod
    def of_nullable(value: Optional[T]) -> "Output[T]":
        return Output(_resolved(OutputData.of_nullable((), value, True, False)))

    @staticmethod
    def unknown() -> "Output[Any]":
        return Output(_resolved(OutputData.unknown()))

    @staticmethod
    def unknown_secret() -> "Output[Any]":
        return Output(_resolved(OutputData.unknown_secret()))

    # Private implementation details - do not document.
    async def get_data(self) -> OutputData[T_co]:
        # A reader giving up, e.g. on a timeout, must not cancel the future other readers share.
        return await asyncio.shield(self._data)

    async def resources(self) -> Set["Resource"]:
        data = await self.get_data()
        return set(data.resources)

    @overload
    async def future(self) -> Optional[T_co]:
        ...

    @overload
    async def future(self, with_unknowns: bool) -> Union[Optional[T_co], Unknown]:
        ...

    async def future(
        self, with_unknowns: Optional[bool] = None
    ) -> Union[Optional[T_co], Unknown]:
        data = await self.get_data()
        if not data.known:
            # Unknown values are reported as None unless the caller explicitly asks to see them.
            return UNKNOWN if with_unknowns else None
        return data.value

    async def is_known(self) -> bool:
        data = await self.get_data()
        return data.known

    # End private implementation details.

    async def is_secret(self) -> bool:
        data = await self.get_data()
        return data.secret

    def apply(self, func: Callable[[T_co], Input[U]]) -> "Output[U]":
        """
        Transforms the data of the output with the provided func.  The result remains an
        Output so that dependent resources can be properly tracked.

        'func' is not allowed to make resources.

        'func' can return other Outputs.  This can be handy if you have a Output<SomeVal>
        and you want to get a transitive dependency of it.

        'func' is called exactly once, and only once the value of this Output is known. During a
        preview, values of resources may not be known, in which case 'func' is never called.

        :param Callable[[T_co],Input[U]] func: A function that will, given this Output's value, transform the value to
               an Input of some kind, where an Input is either a prompt value, a Future, or another Output of the given
               type.
        :return: A transformed Output obtained from running the transformation function on this Output's value.
        :rtype: Output[U]
        """

        # The "run" coroutine actually runs the apply.
        async def run() -> OutputData[U]:
            # Await this output's details.
            data = await self._data

            if not data.known:
                # We can't run the apply because the value isn't known
                return OutputData.of_nullable(data.resources, None, False, data.secret)

            transformed = func(cast(T_co, data.value))
            # Transformed is an Input, meaning there are three cases:
            #  1. transformed is an Output[U]
            if isinstance(transformed, Output):
                # Forward along the inner output's resources, value, and secret values.
                transformed_data = await transformed._data
                return data.compose(lambda _: transformed_data)

            #  2. transformed is an Awaitable[U]
            if isawaitable(transformed):
                # Since transformed is not an Output, it is known.
                transformed_value = cast(U, await transformed)
                return OutputData.of_nullable(
                    data.resources, transformed_value, True, data.secret
                )

            #  3. transformed is U. It is trivially known.
            return OutputData.of_nullable(
                data.resources, cast(U, transformed), True, data.secret
            )

        return Output(run())

    def apply_value(self, func: Callable[[T_co], U]) -> "Output[U]":
        """
        Like `apply`, but the result of func is taken as a plain value and is never flattened.
        """

        async def run() -> OutputData[U]:
            data = await self._data
            return data.apply(func)

        return Output(run())

    def copy(self) -> "Output[T_co]":
        """
        Returns a new Output over the same underlying future.
        """
        return Output(self._data)

    def as_secret(self) -> "Output[T_co]":
        return _map_data(self, lambda data: data.with_is_secret(True))

    def as_plaintext(self) -> "Output[T_co]":
        return _map_data(self, lambda data: data.with_is_secret(False))

    def __getattr__(self, item: str) -> "Output[Any]":  # type: ignore
        """
        Syntax sugar for retrieving attributes off of outputs.

        :param str item: An attribute name.
        :return: An Output of this Output's underlying value's property with the given name.
        :rtype: Output[Any]
        """
        # Dunder lookups come from the interpreter and libraries probing for protocols, e.g. copy or pickle.
        if (item.startswith("__") and item.endswith("__")) or item == "_data":
            raise AttributeError(item)
        return self.apply(lambda v: getattr(v, item))  # type: ignore

    def __getitem__(self, key: Any) -> "Output[Any]":
        """
        Syntax sugar for looking up attributes dynamically off of outputs.

        :param Any key: Key for the attribute dictionary.
        :return: An Output of this Output's underlying value, keyed with the given key as if it were a dictionary.
        :rtype: Output[Any]
        """
        return self.apply(lambda v: v[key])  # type: ignore

    def __iter__(self) -> Any:
        """
        Output instances are not iterable, but since they implement __getitem__ we need to explicitly prevent
        iteration by implementing __iter__ to raise a TypeError.
        """
        raise TypeError(
            "'Output' object is not iterable, consider iterating the underlying value inside an 'apply'"
        )

    @staticmethod
    def from_input(val: Input[T]) -> "Output[T]":
        """
        Takes an Input value and produces an Output value from it, deeply unwrapping nested Input values through nested
        lists, tuples and dicts.  Nested objects of other types (including Resources) are not deeply unwrapped.

        :param Input[T] val: An Input to be converted to an Output.
        :return: A deeply-unwrapped Output that is guaranteed to not contain any Input values.
        :rtype: Output[T]
        """

        # Is it an output already? Recurse into the value contained within it.
        if isinstance(val, Output):
            return val.apply(Output.from_input)

        # Is a (non-empty) dict, list or tuple? Recurse into the values within them.
        if val and isinstance(val, dict):
            # The keys themselves might be outputs, so we can't just pass `**val` to all.
            keys = list(val.keys())
            values = list(val.values())

            def lift_values(resolved_keys: List[Any]) -> "Output[Dict[Any, Any]]":
                return _all_dict(resolved_keys, [Output.from_input(v) for v in values])

            return cast(Output[T], Output.all(*keys).apply(lift_values))

        if val and isinstance(val, list):
            return cast(Output[T], Output.all(*val))

        if val and isinstance(val, tuple):
            return cast(Output[T], Output.all(*val).apply_value(tuple))

        # If it's not an output, list, or dict, it must be known and not secret

        # Is it awaitable? If so, schedule it for execution and use the resulting future
        # as the value future for a new output.
        if isawaitable(val):

            async def get_data(val: Awaitable[T]) -> OutputData[T]:
                o: Output[T] = Output.from_input(await val)
                return await o._data

            return Output(get_data(val))

        # Is it a prompt value? Set up a new resolved future and use that as the value future.
        return Output(_resolved(OutputData.of_nullable((), cast(T, val), True, False)))

    @staticmethod
    def _from_input_shallow(val: Input[T]) -> "Output[T]":
        """
        Like `from_input`, but does not recur deeply. Instead, checks if `val` is an `Output` value
        and returns it as is. Otherwise, promotes a known value or future to `Output`.
        """

        if isinstance(val, Output):
            return val

        # If it's not an output, it must be known and not secret
        if isawaitable(val):

            async def get_data(val: Awaitable[T]) -> OutputData[T]:
                return OutputData.of_nullable((), await val, True, False)

            return Output(get_data(val))

        return Output(_resolved(OutputData.of_nullable((), cast(T, val), True, False)))

    @staticmethod
    def unsecret(val: "Output[T]") -> "Output[T]":
        """
        Takes an existing Output and returns a new Output that is not marked as a secret.

        :param Output[T] val: An Output to be converted to a non-Secret Output.
        :rtype: Output[T]
        """
        return val.as_plaintext()

    @staticmethod
    def secret(val: Input[T]) -> "Output[T]":
        """
        Takes an Input value and produces an Output value from it, deeply unwrapping nested Input values as necessary
        given the type. It also marks the returned Output as a secret, so its contents will be persisted in an encrypted
        form in state files.

        :param Input[T] val: An Input to be converted to an Secret Output.
        :rtype: Output[T]
        """
        return Output.from_input(val).as_secret()

    # According to mypy these overloads unsafely overlap, so we ignore the type check.
    @overload
    @staticmethod
    def all(*args: Input[T]) -> "Output[List[T]]":  # type: ignore
        ...

    @overload
    @staticmethod
    def all(**kwargs: Input[T]) -> "Output[Dict[str, T]]":
        ...

    @staticmethod
    def all(*args: Input[T], **kwargs: Input[T]):
        """
        Produces an Output of a list (if args i.e a list of inputs are supplied)
        or dict (if kwargs i.e. keyworded arguments are supplied).

        This function can be used to combine multiple, separate Inputs into a single
        Output which can then be used as the target of `apply`. Resource dependencies
        are preserved in the returned Output. The result is unknown if any input is
        unknown, and secret if any input is secret.

        Examples::

            Output.all(foo, bar) -> Output[[foo, bar]]
            Output.all(foo=foo, bar=bar) -> Output[{"foo": foo, "bar": bar}]

        :param Input[T] args: A list of Inputs to convert.
        :param Input[T] kwargs: A list of named Inputs to convert.
        :return: An output of list or dict, converted from unnamed or named Inputs respectively.
        """

        if args and kwargs:
            raise ValueError(
                "Output.all() was supplied a mix of named and unnamed inputs"
            )

        # First, map all inputs to outputs using `from_input`, then aggregate the list or dict of futures into
        # a future of list or dict.
        if kwargs:
            return _all_dict(
                list(kwargs.keys()), [Output.from_input(v) for v in kwargs.values()]
            )
        return _all_list([Output.from_input(x) for x in args])

    @staticmethod
    def tuple(*args: Input[Any]) -> "Output[Tuple[Any, ...]]":
        """
        Combines between one and eight Inputs of possibly different types into an Output of a tuple,
        with the same unknown and secret propagation as `all`.

        :raises ValueError: if given fewer than one or more than eight inputs.
        """
        if not 1 <= len(args) <= 8:
            raise ValueError(
                f"Output.tuple() expects between 1 and 8 inputs, got {len(args)}"
            )
        outputs = [Output._from_input_shallow(a) for a in args]

        async def gather() -> OutputData[Tuple[Any, ...]]:
            data_list = await asyncio.gather(*[o._data for o in outputs])
            return tuple_data(data_list)

        return Output(gather())

    @staticmethod
    def concat(*args: Input[str]) -> "Output[str]":
        """
        Concatenates a collection of Input[str] into a single Output[str].

        This function takes a sequence of Input[str], stringifies each, and concatenates all values
        into one final string. This can be used like so:

            url = Output.concat("http://", server.hostname, ":", load_balancer.port)

        :param Input[str] args: A list of string Inputs to concatenate.
        :return: A concatenated output string.
        :rtype: Output[str]
        """

        transformed_items: List[Output[str]] = [Output.from_input(v) for v in args]
        return Output.all(*transformed_items).apply_value(lambda parts: "".join(str(p) for p in parts))  # type: ignore

    @staticmethod
    def format(
        format_string: Input[str], *args: Input[object], **kwargs: Input[object]
    ) -> "Output[str]":
        """
        Perform a string formatting operation.

        This has the same semantics as `str.format` except it handles Input types.

        :param Input[str] format_string: A formatting string
        :param Input[object] args: Positional arguments for the format string
        :param Input[object] kwargs: Keyword arguments for the format string
        :return: A formatted output string.
        :rtype: Output[str]
        """

        if args and kwargs:
            return _map3_output(
                Output.from_input(format_string),
                Output.all(*args),
                Output.all(**kwargs),
                lambda s, args, kwargs: s.format(*args, **kwargs),
            )
        if args:
            return _map2_output(
                Output.from_input(format_string),
                Output.all(*args),
                lambda s, args: s.format(*args),
            )
        if kwargs:
            return _map2_output(
                Output.from_input(format_string),
                Output.all(**kwargs),
                lambda s, kwargs: s.format(**kwargs),
            )
        return Output.from_input(format_string).apply_value(lambda s: s.format())

    @staticmethod
    def list_builder() -> "ListBuilder[Any]":
        return ListBuilder()

    @staticmethod
    def map_builder() -> "MapBuilder[Any, Any]":
        return MapBuilder()

    @staticmethod
    def of_list(*items: Input[T]) -> "Output[List[T]]":
        return ListBuilder().add(*items).build()

    @staticmethod
    def concat_list(
        left: Optional[Input[List[T]]], right: Optional[Input[List[T]]]
    ) -> "Output[List[T]]":
        """
        Concatenates two lists, either of which may be an Output or None. None counts as an empty list.
        """
        return _map2_output(
            Output._from_input_shallow(left),
            Output._from_input_shallow(right),
            lambda l, r: list(l or []) + list(r or []),
        )

    @staticmethod
    def of_left(value: Input[T]) -> "Output[Either[T, Any]]":
        return Output._from_input_shallow(value).apply_value(Either.of_left)

    @staticmethod
    def of_right(value: Input[T]) -> "Output[Either[Any, T]]":
        return Output._from_input_shallow(value).apply_value(Either.of_right)

    @staticmethod
    def json_dumps(
        obj: Input[Any],
        *,
        skipkeys: bool = False,
        ensure_ascii: bool = True,
        check_circular: bool = True,
        allow_nan: bool = True,
        cls: Optional[Type[json.JSONEncoder]] = None,
        indent: Optional[Union[int, str]] = None,
        separators: Optional[Tuple[str, str]] = None,
        default: Optional[Callable[[Any], Any]] = None,
        sort_keys: bool = False,
        **kw: Any,
    ) -> "Output[str]":
        """
        Uses json.dumps to serialize the given Input[object] value into a JSON string.

        The arguments have the same meaning as in `json.dumps` except obj is an Input. Outputs nested in lists
        and dicts are resolved first; if any of them is unknown the result is unknown.
        """

        def dumps(value: Any) -> str:
            return json.dumps(
                value,
                skipkeys=skipkeys,
                ensure_ascii=ensure_ascii,
                check_circular=check_circular,
                allow_nan=allow_nan,
                cls=cls,
                indent=indent,
                separators=separators,
                default=default,
                sort_keys=sort_keys,
                **kw,
            )

        return Output.from_input(obj).apply_value(dumps)

    @staticmethod
    def json_loads(
        s: Input[Union[str, bytes, bytearray]],
        *,
        cls: Optional[Type[json.JSONDecoder]] = None,
        object_hook: Optional[Callable[[Dict[Any, Any]], Any]] = None,
        parse_float: Optional[Callable[[str], Any]] = None,
        parse_int: Optional[Callable[[str], Any]] = None,
        parse_constant: Optional[Callable[[str], Any]] = None,
        object_pairs_hook: Optional[Callable[[List[Tuple[Any, Any]]], Any]] = None,
        **kwds: Any,
    ) -> "Output[Any]":
        """
        Uses json.loads to deserialize the given JSON Input[str] value into a value.

        The arguments have the same meaning as in `json.loads` except s is an Input.
        """

        def loads(s: Union[str, bytes, bytearray]) -> Any:
            return json.loads(
                s,
                cls=cls,
                object_hook=object_hook,
                parse_float=parse_float,
                parse_int=parse_int,
                parse_constant=parse_constant,
                object_pairs_hook=object_pairs_hook,
                **kwds,
            )

        os: Output[Union[str, bytes, bytearray]] = Output.from_input(s)
        return os.apply_value(loads)

    def __str__(self) -> str:
        if SETTINGS.error_output_string:
            raise OutputToStringError(_STR_MESSAGE)
        return _STR_MESSAGE + "\nThis function may throw in a future version of Skyplan."


_STR_MESSAGE = """Calling __str__ on an Output[T] is not supported.

To get the value of an Output[T] as an Output[str] consider:
1. o.apply(lambda v: f"prefix{v}suffix")
2. Output.format("prefix{}suffix", o)"""


class ListBuilder(Generic[T]):
    """
    Accumulates prompt values and Outputs into a single Output of a list, in the order they were added.
    """

    def __init__(self) -> None:
        self._items: List[Output[Any]] = []

    def add(self, *values: Input[T]) -> "ListBuilder[T]":
        for value in values:
            self._items.append(Output._from_input_shallow(value))
        return self

    def add_all(self, values: Iterable[Input[T]]) -> "ListBuilder[T]":
        return self.add(*values)

    def build(self) -> Output[List[T]]:
        return _all_list(list(self._items))


class MapBuilder(Generic[K, T]):
    """
    Accumulates prompt values and Outputs into a single Output of a dict. Later puts of the same key win.
    """

    def __init__(self) -> None:
        self._items: Dict[K, Output[Any]] = {}

    def put(self, key: K, value: Input[T]) -> "MapBuilder[K, T]":
        self._items[key] = Output._from_input_shallow(value)
        return self

    def put_all(self, values: Mapping[K, Input[T]]) -> "MapBuilder[K, T]":
        for key, value in values.items():
            self.put(key, value)
        return self

    def build(self) -> Output[Dict[K, T]]:
        return _all_dict(list(self._items.keys()), list(self._items.values()))


def contains_unknowns(val: Any) -> bool:
    """
    Returns true if the given plain value is UNKNOWN or contains UNKNOWN in a nested list, tuple or dict.
    """

    def impl(val: Any, stack: List[Any]) -> bool:
        if isinstance(val, Unknown):
            return True

        if not any((x is val for x in stack)):
            stack.append(val)
            if isinstance(val, dict):
                return any((impl(val[k], stack) for k in val))
            if isinstance(val, (list, tuple)):
                return any((impl(x, stack) for x in val))
        return False

    return impl(val, [])


def safe_str(v: Any) -> str:
    """
    Returns the string representation of v if possible. If v is an Output and the SKYPLAN_ERROR_OUTPUT_STRING
    setting is enabled, returns a fallback string instead of raising. Meant for logging and debugging.
    """

    try:
        return str(v)
    except OutputToStringError:
        return "Output[T]"


def _resolved(data: OutputData[T]) -> "asyncio.Future[OutputData[T]]":
    fut: asyncio.Future[OutputData[T]] = asyncio.Future()
    fut.set_result(data)
    return fut


def _map_data(
    o: Output[T], transform: Callable[[OutputData[T]], OutputData[U]]
) -> Output[U]:
    """Transforms an output's data (not just its value) with a pure function."""

    async def fut() -> OutputData[U]:
        return transform(await o._data)

    return Output(fut())


def _all_list(outputs: List[Output[Any]]) -> Output[List[Any]]:
    async def gather() -> OutputData[List[Any]]:
        data_list = await asyncio.gather(*[o._data for o in outputs])
        return all_data(data_list)

    return Output(gather())


def _all_dict(keys: List[Any], outputs: List[Output[Any]]) -> Output[Dict[Any, Any]]:
    async def gather() -> OutputData[Dict[Any, Any]]:
        data_list = await asyncio.gather(*[o._data for o in outputs])
        return all_data(data_list).apply(lambda values: dict(zip(keys, values)))

    return Output(gather())


def _map2_output(
    o1: Output[T1], o2: Output[T2], transform: Callable[[T1, T2], U]
) -> Output[U]:
    """
    Joins two outputs and transforms their result with a pure function.
    Similar to `all` but does not deeply await.
    """

    async def fut() -> OutputData[U]:
        data1 = await o1._data
        data2 = await o2._data
        return data1.combine(data2, transform)  # type: ignore

    return Output(fut())


def _map3_output(
    o1: Output[T1], o2: Output[T2], o3: Output[T3], transform: Callable[[T1, T2, T3], U]
) -> Output[U]:
    """
    Joins three outputs and transforms their result with a pure function.
    Similar to `all` but does not deeply await.
    """

    async def fut() -> OutputData[U]:
        data1 = await o1._data
        data2 = await o2._data
        data3 = await o3._data
        return data1.combine(data2, lambda v1, v2: (v1, v2)).combine(
            data3, lambda v12, v3: transform(v12[0], v12[1], v3)  # type: ignore
        )

    return Output(fut())
