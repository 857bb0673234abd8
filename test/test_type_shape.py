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

from typing import Any, Dict, List, Optional, Union

import pytest

from skyplan.type_shape import ANY, TypeShape


def test_from_hint():
    assert TypeShape.from_hint(int) == TypeShape(int)
    assert TypeShape.from_hint(List[str]) == TypeShape(list, (TypeShape(str),))
    assert TypeShape.from_hint(Optional[Dict[str, int]]) == TypeShape.of(dict, str, int)
    assert TypeShape.from_hint(Any) is ANY


def test_unsupported_hints():
    with pytest.raises(TypeError):
        TypeShape.from_hint("int")
    with pytest.raises(TypeError):
        TypeShape.from_hint(Union[int, str])


def test_is_instance():
    assert TypeShape.of(str).is_instance("x")
    assert not TypeShape.of(str).is_instance(1)
    assert TypeShape.of(float).is_instance(1)
    assert TypeShape.of(bool).is_instance(True)
    assert not TypeShape.of(float).is_instance(True)
    assert not TypeShape.of(int).is_instance(False)
    assert ANY.is_instance(object())


@pytest.mark.parametrize(
    "declared,actual,expected",
    [
        (TypeShape.of(float), TypeShape.of(int), True),
        (TypeShape.of(int), TypeShape.of(float), False),
        (TypeShape.of(float), TypeShape.of(bool), False),
        (TypeShape.of(int), TypeShape.of(bool), False),
        (TypeShape.of(bool), TypeShape.of(bool), True),
        (TypeShape.of(list, float), TypeShape.of(list, bool), False),
        (TypeShape.of(object), TypeShape.of(list, str), True),
        (TypeShape.of(list, str), ANY, True),
        (TypeShape.of(list, str), TypeShape.of(list), True),
        (TypeShape.of(list), TypeShape.of(list, int), True),
        (TypeShape.of(list, str), TypeShape.of(list, int), False),
        (TypeShape.of(list, float), TypeShape.of(list, int), True),
        (TypeShape.of(dict, str, int), TypeShape.of(dict, str), False),
        (TypeShape.of(str), TypeShape.of(list), False),
    ],
)
def test_is_assignable_from(declared, actual, expected):
    assert declared.is_assignable_from(actual) == expected


def test_as_string():
    assert TypeShape.of(dict, str, TypeShape.of(list, int)).as_string() == "dict[str, list[int]]"
    assert str(ANY) == "Any"
