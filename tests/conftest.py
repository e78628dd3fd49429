import asyncio

import pytest

from research_gateway.deps import Settings


class FakeClient:
    """Stands in for a BackendClient; records every call."""

    def __init__(self, result='("hello world")', error=None, delay=0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = []

    async def invoke(self, method, args=None, *, timeout=None):
        self.calls.append((method, args, timeout))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def settings():
    return Settings(QUERY_TIMEOUT_SECS=1.0, HEALTH_TIMEOUT_SECS=0.5, DEFAULT_TOPIC="general research")


@pytest.fixture
def fake_cli(tmp_path):
    """Write an executable shell script standing in for `dfx`; returns its path."""

    def make(body: str) -> str:
        script = tmp_path / "fake-dfx"
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(0o755)
        return str(script)

    return make
