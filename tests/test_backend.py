import asyncio
import json
import time

import httpx
import pytest

from research_gateway.backend import CliBackendClient, HttpBackendClient, build_backend_client
from research_gateway.candid import encode_args
from research_gateway.deps import Settings
from research_gateway.errors import BackendError, BackendErrorReason


def test_build_command_binds_canister_and_network():
    client = CliBackendClient(canister="research_ai_simple_backend", network="ic")
    assert client.build_command("health_check") == [
        "dfx", "canister", "call", "--network", "ic", "research_ai_simple_backend", "health_check",
    ]
    cmd = client.build_command("get_latest_news", {"topic": "x"})
    assert cmd[-1] == '(record { topic = "x" })'


@pytest.mark.asyncio
async def test_cli_success_returns_raw_stdout(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("echo '(\"hello world\")'"))
    raw = await client.invoke("health_check", timeout=5)
    assert raw.strip() == '("hello world")'


@pytest.mark.asyncio
async def test_cli_passes_arguments_without_a_shell(fake_cli):
    topic = "it's \"$(whoami)\"; rm -rf /"
    client = CliBackendClient(canister="c", binary=fake_cli('printf "%s\\n" "$@"'))
    raw = await client.invoke("get_latest_news", {"topic": topic}, timeout=5)
    lines = raw.splitlines()
    assert lines[:4] == ["canister", "call", "c", "get_latest_news"]
    assert lines[4] == encode_args({"topic": topic})


@pytest.mark.asyncio
async def test_cli_non_zero_exit(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("echo 'replica unreachable' >&2; exit 3"))
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=5)
    assert exc.value.reason is BackendErrorReason.NON_ZERO_EXIT
    assert "replica unreachable" in exc.value.detail


@pytest.mark.asyncio
async def test_cli_timeout_kills_the_call(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("exec sleep 10"))
    started = time.monotonic()
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=0.3)
    assert exc.value.reason is BackendErrorReason.TIMEOUT
    assert time.monotonic() - started < 5


@pytest.mark.asyncio
async def test_cli_missing_binary_is_transport(tmp_path):
    client = CliBackendClient(canister="c", binary=str(tmp_path / "no-such-dfx"))
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=5)
    assert exc.value.reason is BackendErrorReason.TRANSPORT


@pytest.mark.asyncio
async def test_cli_empty_output_is_malformed(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("exit 0"))
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=5)
    assert exc.value.reason is BackendErrorReason.MALFORMED_OUTPUT


@pytest.mark.asyncio
async def test_cli_unencodable_args_never_spawn(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("exit 0"))
    with pytest.raises(BackendError) as exc:
        await client.invoke("get_latest_news", {"topic": object()}, timeout=5)
    assert exc.value.reason is BackendErrorReason.TRANSPORT


def _http_client(handler):
    return HttpBackendClient(
        base_url="http://relay.local/", canister="research", transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_http_success_posts_structured_args():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"result": '("fresh news")'})

    raw = await _http_client(handler).invoke("get_latest_news", {"topic": "icp"}, timeout=2)
    assert raw == '("fresh news")'
    assert seen["path"] == "/call/research/get_latest_news"
    assert seen["body"] == {"args": {"topic": "icp"}}


def _read_timeout(request):
    raise httpx.ReadTimeout("slow", request=request)


def _refused(request):
    raise httpx.ConnectError("refused", request=request)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler, reason",
    [
        (_read_timeout, BackendErrorReason.TIMEOUT),
        (_refused, BackendErrorReason.TRANSPORT),
        (lambda r: httpx.Response(503, text="starting"), BackendErrorReason.TRANSPORT),
        (lambda r: httpx.Response(200, text="not json"), BackendErrorReason.MALFORMED_OUTPUT),
        (lambda r: httpx.Response(200, json={"result": 7}), BackendErrorReason.MALFORMED_OUTPUT),
    ],
)
async def test_http_failures_are_classified(handler, reason):
    with pytest.raises(BackendError) as exc:
        await _http_client(handler).invoke("health_check", timeout=2)
    assert exc.value.reason is reason


def test_build_backend_client_http_mode():
    settings = Settings(BACKEND_MODE="http", BACKEND_URL="http://relay.local", CANISTER_NAME="research")
    client = build_backend_client(settings)
    assert isinstance(client, HttpBackendClient)
    assert client.url_for("health_check") == "http://relay.local/call/research/health_check"


def test_build_backend_client_fails_fast_without_cli(tmp_path):
    settings = Settings(BACKEND_MODE="cli", DFX_BINARY=str(tmp_path / "missing-dfx"))
    with pytest.raises(RuntimeError):
        build_backend_client(settings)


def test_http_mode_requires_url():
    with pytest.raises(ValueError):
        Settings(BACKEND_MODE="http", BACKEND_URL=None)


def test_timeouts_must_be_positive():
    with pytest.raises(ValueError):
        Settings(QUERY_TIMEOUT_SECS=0)


def test_backend_url_must_be_a_valid_http_url():
    with pytest.raises(ValueError):
        Settings(BACKEND_MODE="http", BACKEND_URL="http://relay:notaport")
    with pytest.raises(ValueError):
        Settings(BACKEND_MODE="http", BACKEND_URL="ftp://relay.local")
    with pytest.raises(ValueError):
        Settings(BACKEND_MODE="http", BACKEND_URL="relay-without-scheme")
    assert Settings(BACKEND_MODE="http", BACKEND_URL="https://relay.local:8443").backend_url


@pytest.mark.asyncio
async def test_http_invalid_url_is_transport():
    client = HttpBackendClient(base_url="http://relay:notaport", canister="c")
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=2)
    assert exc.value.reason is BackendErrorReason.TRANSPORT


@pytest.mark.asyncio
async def test_explicit_zero_timeout_is_not_replaced_by_default(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("echo '(\"ok\")'"), timeout=20)
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=0)
    assert exc.value.reason is BackendErrorReason.TIMEOUT


@pytest.mark.asyncio
async def test_cli_non_finite_arg_is_transport(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("exit 0"))
    with pytest.raises(BackendError) as exc:
        await client.invoke("get_latest_news", {"weight": float("inf")}, timeout=5)
    assert exc.value.reason is BackendErrorReason.TRANSPORT


@pytest.mark.asyncio
async def test_http_queued_call_times_out_waiting_for_a_slot():
    calls = []
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        await release.wait()
        return httpx.Response(200, json={"result": "done"})

    client = HttpBackendClient(
        base_url="http://relay.local", canister="c", max_inflight=1, transport=httpx.MockTransport(handler)
    )
    first = asyncio.create_task(client.invoke("health_check", timeout=5))
    await asyncio.sleep(0.1)

    started = time.monotonic()
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=0.2)
    assert exc.value.reason is BackendErrorReason.TIMEOUT
    assert time.monotonic() - started < 2
    assert len(calls) == 1

    release.set()
    assert await first == "done"


@pytest.mark.asyncio
async def test_cli_queued_call_times_out_waiting_for_a_slot(fake_cli):
    client = CliBackendClient(canister="c", binary=fake_cli("exec sleep 10"), max_inflight=1)
    first = asyncio.create_task(client.invoke("health_check", timeout=8))
    await asyncio.sleep(0.2)

    started = time.monotonic()
    with pytest.raises(BackendError) as exc:
        await client.invoke("health_check", timeout=0.3)
    assert exc.value.reason is BackendErrorReason.TIMEOUT
    assert time.monotonic() - started < 2

    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first
