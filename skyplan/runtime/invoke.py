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
from typing import TYPE_CHECKING, Any, Dict, Optional

import grpc

from .. import log
from ..errors import InputPropertyError, RunError
from ..invoke import InvokeOptions
from ..output import Output
from ..output_data import OutputData
from ..resource import ProviderBacked
from . import settings
from .dependencies import gather_dependencies
from .monitor import InvokeRequest, InvokeResponse
from .resource import create_provider_ref

if TYPE_CHECKING:
    from ..output import Inputs


def invoke(
    tok: str,
    props: "Inputs",
    opts: Optional[InvokeOptions] = None,
) -> Output[Dict[str, Any]]:
    """
    invoke dynamically invokes the function, tok, which is offered by a provider plugin. The inputs
    can be a bag of computed values (Ts or Awaitable[T]s).

    The result is an Output that depends on every resource the inputs depend on. If any input is
    unknown the provider is not called at all and the result is unknown.
    """
    log.debug(f"Invoking function: tok={tok}")
    if opts is None:
        opts = InvokeOptions()

    # The provider comes from the options, or else the parent's provider bag.
    provider = opts.provider
    if provider is None and isinstance(opts.parent, ProviderBacked):
        provider = opts.parent.get_provider(tok)

    monitor = settings.get_monitor()
    version = opts.version or ""

    async def do_invoke() -> OutputData[Dict[str, Any]]:
        deps = await gather_dependencies(props, opts.depends_on)

        if deps.has_unknowns:
            log.debug(f"Skipping invoke of {tok}, its inputs are not known yet")
            return OutputData.of_nullable(deps.resources, None, False, deps.has_secrets)

        provider_ref = await create_provider_ref(provider) if provider is not None else ""
        req = InvokeRequest(token=tok, args=deps.props, provider=provider_ref, version=version)

        def do_rpc_call() -> InvokeResponse:
            if monitor is None:
                raise RunError(f"Cannot invoke '{tok}' without a resource monitor")
            try:
                return monitor.invoke(req)
            except grpc.RpcError as exn:
                raise settings.grpc_error_to_exception(exn) from exn

        resp = await asyncio.get_running_loop().run_in_executor(None, do_rpc_call)
        log.debug(f"Invoking function completed: tok={tok}")

        # If the invoke failed, raise an error.
        if resp.failures:
            failure = resp.failures[0]
            raise InputPropertyError(
                failure.property, f"invoke of {tok} failed: {failure.reason}"
            )

        secret = deps.has_secrets or bool(resp.secret_outputs)
        return OutputData.of_nullable(deps.resources, resp.result, True, secret)

    return Output(do_invoke())


async def invoke_async(
    tok: str,
    props: "Inputs",
    opts: Optional[InvokeOptions] = None,
) -> Optional[Dict[str, Any]]:
    """
    Like invoke, but returns the plain result once it is available. Unknown results are None.
    """
    return await invoke(tok, props, opts).future()
