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

import functools
import logging
from typing import Optional

import pytest

from skyplan.runtime import mocks, settings


def supress_unobserved_task_logging():
    """Suppresses logs about faulted unobserved tasks.

    Programs that exit early on a failure leave tasks behind on purpose, and asyncio complains about
    them when the loop is closed. The scope of this setting necessarily bleeds beyond a single test.
    """
    logging.getLogger("asyncio").setLevel(logging.CRITICAL)


# If calling code imports this module to use `raises`, it probably needs this.
supress_unobserved_task_logging()


def raises(exception_type):
    """Decorates a test by wrapping its body in `pytest.raises`."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            with pytest.raises(exception_type):
                return fn(*args, **kwargs)

        return wrapper

    return decorator


def skyplan_test(coro):
    """Runs the decorated test as a program, with fresh settings and no engine."""
    wrapped = mocks.test(coro)

    @functools.wraps(coro)
    def wrapper(*args, **kwargs):
        settings.configure(settings.Settings("project", "stack"))
        wrapped(*args, **kwargs)

    return wrapper


class EchoMocks(mocks.Mocks):
    """Creates every resource with the ID `<name>_id` and echoes its inputs back as its state."""

    def new_resource(self, args: mocks.MockResourceArgs):
        return f"{args.name}_id", dict(args.inputs)

    def call(self, args: mocks.MockCallArgs):
        return {}, None


def mocked_test(mocks_instance: Optional[mocks.Mocks] = None, preview: Optional[bool] = None):
    """Like `skyplan_test`, but with the given mocks installed. The monitor is passed as the last argument."""

    def decorator(coro):
        def wrapper(*args, **kwargs):
            monitor = mocks.set_mocks(mocks_instance or EchoMocks(), preview=preview)
            mocks.test(coro)(*args, monitor, **kwargs)

        return wrapper

    return decorator
