"""Backend invokers: one outbound call to the research canister.

Two adapters share the BackendClient interface:
    CliBackendClient   spawns `dfx canister call ...` (argv list, no shell)
    HttpBackendClient  posts JSON to an HTTP relay in front of the canister
Both bound every call by a timeout and cap concurrent calls with a semaphore.
Failures surface only as BackendError; there are no retries.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
from collections.abc import Mapping
from typing import Any, List, Optional, Protocol

import httpx

from research_gateway.candid import encode_args
from research_gateway.deps import Settings
from research_gateway.errors import BackendError, BackendErrorReason

logger = logging.getLogger(__name__)

_STDERR_TAIL = 500


class BackendClient(Protocol):
    async def invoke(
        self,
        method: str,
        args: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> str: ...


class CliBackendClient:
    def __init__(
        self,
        canister: str,
        binary: str = "dfx",
        network: Optional[str] = None,
        timeout: float = 20.0,
        max_inflight: int = 8,
    ):
        self.canister = canister
        self.binary = binary
        self.network = network
        self.timeout = timeout
        self._slots = asyncio.Semaphore(max_inflight)

    def build_command(self, method: str, args: Optional[Mapping[str, Any]] = None) -> List[str]:
        cmd = [self.binary, "canister", "call"]
        if self.network:
            cmd += ["--network", self.network]
        cmd += [self.canister, method]
        if args is not None:
            cmd.append(encode_args(args))
        return cmd

    async def invoke(
        self,
        method: str,
        args: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        budget = timeout if timeout is not None else self.timeout
        try:
            cmd = self.build_command(method, args)
        except (TypeError, ValueError) as e:
            raise BackendError(BackendErrorReason.TRANSPORT, f"cannot encode arguments: {e}") from e

        logger.debug(f"Calling {self.canister}.{method} via {self.binary} (budget={budget}s)")
        try:
            return await asyncio.wait_for(self._run(cmd), budget)
        except asyncio.TimeoutError as e:
            raise BackendError(BackendErrorReason.TIMEOUT, f"{method} exceeded {budget}s") from e

    async def _run(self, cmd: List[str]) -> str:
        async with self._slots:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise BackendError(BackendErrorReason.TRANSPORT, f"cannot start {cmd[0]}: {e}") from e

            try:
                stdout, stderr = await proc.communicate()
            finally:
                # cancelled by the timeout: don't leave the child running
                if proc.returncode is None:
                    with contextlib.suppress(ProcessLookupError):
                        proc.kill()
                    await proc.wait()

        if proc.returncode != 0:
            tail = stderr.decode("utf-8", "replace").strip()[-_STDERR_TAIL:]
            raise BackendError(BackendErrorReason.NON_ZERO_EXIT, f"exit {proc.returncode}: {tail}")
        try:
            text = stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise BackendError(BackendErrorReason.MALFORMED_OUTPUT, "output is not valid UTF-8") from e
        if not text.strip():
            raise BackendError(BackendErrorReason.MALFORMED_OUTPUT, "empty output")
        return text


class HttpBackendClient:
    def __init__(
        self,
        base_url: str,
        canister: str,
        timeout: float = 20.0,
        max_inflight: int = 8,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.canister = canister
        self.timeout = timeout
        self._transport = transport
        self._slots = asyncio.Semaphore(max_inflight)

    def url_for(self, method: str) -> str:
        return f"{self.base_url}/call/{self.canister}/{method}"

    async def invoke(
        self,
        method: str,
        args: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        budget = timeout if timeout is not None else self.timeout
        payload = {"args": dict(args) if args is not None else None}
        logger.debug(f"POST {self.url_for(method)} (budget={budget}s)")
        try:
            response = await asyncio.wait_for(self._post(method, payload, budget), budget)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise BackendError(BackendErrorReason.TIMEOUT, f"{method} exceeded {budget}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BackendError(BackendErrorReason.TRANSPORT, str(e) or type(e).__name__) from e
        except TypeError as e:
            raise BackendError(BackendErrorReason.TRANSPORT, f"cannot encode arguments: {e}") from e

        if response.status_code >= 400:
            raise BackendError(
                BackendErrorReason.TRANSPORT, f"HTTP {response.status_code} from {self.url_for(method)}"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise BackendError(BackendErrorReason.MALFORMED_OUTPUT, "response is not JSON") from e
        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, str):
            raise BackendError(BackendErrorReason.MALFORMED_OUTPUT, "response has no string 'result'")
        return result

    async def _post(self, method: str, payload: dict, budget: float) -> httpx.Response:
        async with self._slots:
            async with httpx.AsyncClient(timeout=budget, transport=self._transport) as client:
                return await client.post(self.url_for(method), json=payload)


def build_backend_client(settings: Settings) -> BackendClient:
    """Construct the configured adapter; raises on unusable configuration."""
    if settings.backend_mode == "http":
        return HttpBackendClient(
            base_url=settings.backend_url,
            canister=settings.canister_name,
            timeout=settings.query_timeout_secs,
            max_inflight=settings.backend_max_inflight,
        )
    if shutil.which(settings.dfx_binary) is None:
        raise RuntimeError(f"Backend CLI '{settings.dfx_binary}' not found on PATH")
    return CliBackendClient(
        canister=settings.canister_name,
        binary=settings.dfx_binary,
        network=settings.backend_network,
        timeout=settings.query_timeout_secs,
        max_inflight=settings.backend_max_inflight,
    )
