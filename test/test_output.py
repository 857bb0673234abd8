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
import unittest

from skyplan import Either, Output, UNKNOWN
from skyplan.errors import OutputToStringError
from skyplan.output import safe_str
from skyplan.output_data import OutputData
from skyplan.runtime import settings

from helpers import raises, skyplan_test


class FakeResource:
    def __init__(self, name):
        self.name = name


R1 = FakeResource("r1")
R2 = FakeResource("r2")


def make(value, known=True, secret=False, resources=()):
    async def get_data():
        return OutputData.of_nullable(resources, value if known else None, known, secret)

    return Output(get_data())


class OutputFactoryTests(unittest.TestCase):
    @raises(ValueError)
    def test_of_rejects_none(self):
        Output.of(None)

    @skyplan_test
    async def test_of(self):
        x = Output.of(1)
        self.assertEqual(await x.future(), 1)
        self.assertTrue(await x.is_known())
        self.assertFalse(await x.is_secret())
        self.assertEqual(await x.resources(), set())

    @skyplan_test
    async def test_of_awaitable(self):
        async def value():
            return "later"

        self.assertEqual(await Output.of(value()).future(), "later")

    @skyplan_test
    async def test_of_nullable(self):
        x = Output.of_nullable(None)
        self.assertEqual(await x.get_data(), OutputData.empty())

    @skyplan_test
    async def test_of_secret(self):
        x = Output.of_secret("hunter2")
        self.assertTrue(await x.is_secret())
        self.assertEqual(await x.future(), "hunter2")

    @skyplan_test
    async def test_unknown(self):
        x = Output.unknown()
        self.assertFalse(await x.is_known())
        self.assertIsNone(await x.future())
        self.assertIs(await x.future(with_unknowns=True), UNKNOWN)
        self.assertTrue(await Output.unknown_secret().is_secret())


class OutputSecretTests(unittest.TestCase):
    @skyplan_test
    async def test_secret(self):
        x = Output.secret("foo")
        is_secret = await x.is_secret()
        self.assertTrue(is_secret)

    @skyplan_test
    async def test_unsecret(self):
        x = Output.secret("foo")
        x_is_secret = await x.is_secret()
        self.assertTrue(x_is_secret)

        y = Output.unsecret(x)
        y_val = await y.future()
        y_is_secret = await y.is_secret()
        self.assertEqual(y_val, "foo")
        self.assertFalse(y_is_secret)

    @skyplan_test
    async def test_as_secret_does_not_mutate_receiver(self):
        x = Output.of(1)
        y = x.as_secret()
        self.assertTrue(await y.is_secret())
        self.assertFalse(await x.is_secret())
        self.assertFalse(await y.as_plaintext().is_secret())


class OutputApplyTests(unittest.TestCase):
    @skyplan_test
    async def test_apply_matrix(self):
        for known in (True, False):
            for secret in (True, False):
                calls = []

                def fn(v):
                    calls.append(v)
                    return v + 1

                data = await make(1, known, secret, [R1]).apply(fn).get_data()
                self.assertEqual(data.known, known)
                self.assertEqual(data.secret, secret)
                self.assertEqual(data.resources, frozenset({R1}))
                self.assertEqual(data.value, 2 if known else None)
                self.assertEqual(calls, [1] if known else [])

    @skyplan_test
    async def test_apply_flattens_inner_output(self):
        outer = make(1, resources=[R1])
        result = outer.apply(lambda v: make(v + 1, secret=True, resources=[R2]))
        data = await result.get_data()
        self.assertEqual(data, OutputData.of(2, resources=[R1, R2], secret=True))

    @skyplan_test
    async def test_apply_inner_unknown(self):
        result = Output.of(1).apply(lambda _: Output.unknown())
        self.assertFalse(await result.is_known())

    @skyplan_test
    async def test_apply_awaitable(self):
        async def add_one(v):
            await asyncio.sleep(0)
            return v + 1

        self.assertEqual(await Output.of(1).apply(add_one).future(), 2)

    @skyplan_test
    async def test_apply_runs_once(self):
        calls = []
        x = Output.of("abc").apply(lambda v: calls.append(v) or v.upper())
        self.assertEqual(await x.future(), "ABC")
        self.assertEqual(await x.future(), "ABC")
        self.assertEqual(calls, ["abc"])

    @skyplan_test
    async def test_apply_value_does_not_flatten(self):
        inner = Output.of(2)
        x = Output.of(1).apply_value(lambda _: inner)
        self.assertIs(await x.future(), inner)

    @skyplan_test
    async def test_copy_shares_future(self):
        x = make(1, secret=True, resources=[R1])
        self.assertEqual(await x.copy().get_data(), await x.get_data())

    @skyplan_test
    async def test_lifted_attribute_and_item(self):
        x = Output.of({"a": [1, 2]})
        self.assertEqual(await x["a"][1].future(), 2)
        self.assertEqual(await Output.of(FakeResource("n")).name.future(), "n")

    @skyplan_test
    async def test_not_iterable(self):
        with self.assertRaises(TypeError):
            for _ in Output.of([1, 2]):
                pass


class OutputFromInputTests(unittest.TestCase):
    @skyplan_test
    async def test_unwrap_empty_dict(self):
        x = Output.from_input({})
        x_val = await x.future()
        self.assertEqual(x_val, {})

    @skyplan_test
    async def test_unwrap_dict(self):
        x = Output.from_input({"hello": Output.from_input("world")})
        x_val = await x.future()
        self.assertEqual(x_val, {"hello": "world"})

    @skyplan_test
    async def test_unwrap_dict_output_key(self):
        x = Output.from_input({Output.from_input("hello"): Output.from_input("world")})
        x_val = await x.future()
        self.assertEqual(x_val, {"hello": "world"})

    @skyplan_test
    async def test_unwrap_nested(self):
        x = Output.from_input({"a": [Output.of(1), (Output.of(2), 3)]})
        self.assertEqual(await x.future(), {"a": [1, (2, 3)]})

    @skyplan_test
    async def test_unwrap_secret_taints_whole(self):
        x = Output.from_input([1, Output.secret(2)])
        self.assertTrue(await x.is_secret())
        self.assertEqual(await x.future(), [1, 2])


class OutputAllTests(unittest.TestCase):
    @skyplan_test
    async def test_args(self):
        o1 = make(1, resources=[R1])
        o2 = Output.of(2)
        x = Output.all(o1, o2, 3)
        self.assertEqual(await x.future(), [1, 2, 3])
        self.assertEqual(await x.resources(), {R1})

    @skyplan_test
    async def test_kwargs(self):
        x = Output.all(a=Output.of(1), b=2)
        self.assertEqual(await x.future(), {"a": 1, "b": 2})

    @skyplan_test
    async def test_empty(self):
        self.assertEqual(await Output.all().future(), [])

    @skyplan_test
    async def test_keeps_none(self):
        self.assertEqual(await Output.all(1, None).future(), [1, None])

    @skyplan_test
    async def test_unknown_and_secret_propagate(self):
        x = Output.all(Output.secret(1), make(None, known=False, resources=[R2]))
        data = await x.get_data()
        self.assertFalse(data.known)
        self.assertTrue(data.secret)
        self.assertEqual(data.resources, frozenset({R2}))

    @raises(ValueError)
    def test_mixed(self):
        Output.all(1, b=2)


class OutputTupleTests(unittest.TestCase):
    @skyplan_test
    async def test_arities(self):
        for arity in range(1, 9):
            values = list(range(arity))
            x = Output.tuple(*[Output.of(v) for v in values])
            self.assertEqual(await x.future(), tuple(values))

    @raises(ValueError)
    def test_too_many(self):
        Output.tuple(*range(9))

    @raises(ValueError)
    def test_too_few(self):
        Output.tuple()

    @skyplan_test
    async def test_secret_propagates(self):
        x = Output.tuple(Output.of("a"), Output.secret(1))
        self.assertEqual(await x.future(), ("a", 1))
        self.assertTrue(await x.is_secret())


class OutputCombinatorTests(unittest.TestCase):
    @skyplan_test
    async def test_concat(self):
        x = Output.concat("http://", Output.of("host"), ":", Output.of(80))
        self.assertEqual(await x.future(), "http://host:80")

    @skyplan_test
    async def test_format(self):
        x = Output.format("{0}-{name}", Output.of("a"), name=Output.secret("b"))
        self.assertEqual(await x.future(), "a-b")
        self.assertTrue(await x.is_secret())
        self.assertEqual(await Output.format("{}!", "hi").future(), "hi!")
        self.assertEqual(await Output.format("plain").future(), "plain")

    @skyplan_test
    async def test_builders(self):
        lst = Output.list_builder().add(1, Output.of(2)).add_all([3]).build()
        self.assertEqual(await lst.future(), [1, 2, 3])
        mp = Output.map_builder().put("a", Output.of(1)).put_all({"b": 2}).build()
        self.assertEqual(await mp.future(), {"a": 1, "b": 2})
        self.assertEqual(await Output.of_list("x", Output.of("y")).future(), ["x", "y"])

    @skyplan_test
    async def test_concat_list(self):
        x = Output.concat_list(Output.of([1]), None)
        self.assertEqual(await x.future(), [1])
        self.assertEqual(await Output.concat_list(None, None).future(), [])

    @skyplan_test
    async def test_either(self):
        self.assertEqual(await Output.of_left("bad").future(), Either.of_left("bad"))
        self.assertEqual(await Output.of_right(1).future(), Either.of_right(1))


class OutputJsonTests(unittest.TestCase):
    @skyplan_test
    async def test_dumps_nested_outputs(self):
        x = Output.json_dumps({"a": Output.of([1, Output.of(2)])}, sort_keys=True)
        self.assertEqual(await x.future(), '{"a": [1, 2]}')

    @skyplan_test
    async def test_dumps_unknown(self):
        x = Output.json_dumps({"a": Output.unknown()})
        self.assertFalse(await x.is_known())

    @skyplan_test
    async def test_loads(self):
        x = Output.json_loads(Output.secret(json.dumps({"a": 1})))
        self.assertEqual(await x.future(), {"a": 1})
        self.assertTrue(await x.is_secret())


class OutputStrTests(unittest.TestCase):
    @skyplan_test
    async def test_str(self):
        o = Output.of(1)
        self.assertIn("Calling __str__ on an Output[T] is not supported", str(o))

    @skyplan_test
    async def test_str_raises(self):
        settings.SETTINGS.error_output_string = True
        o = Output.of(1)
        with self.assertRaises(OutputToStringError):
            str(o)
        self.assertEqual(safe_str(o), "Output[T]")
        self.assertEqual(safe_str(1), "1")
