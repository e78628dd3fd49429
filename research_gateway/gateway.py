"""Query gateway: one backend call per request, demo fallback on any BackendError.

Every request ends in a ResponseEnvelope with success=True; `degraded`
tells callers which path produced it.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from research_gateway import fallback
from research_gateway.backend import BackendClient
from research_gateway.deps import Settings
from research_gateway.errors import BackendError
from research_gateway.normalize import normalize
from research_gateway.schemas import LogEntry, ResponseEnvelope, Severity
from research_gateway.sources import static_sources

logger = logging.getLogger(__name__)

STATUS_FOOTER = (
    "[SYSTEM STATUS]\n"
    "✓ ICP Replica: Connected\n"
    "✓ ResearchOS Canister: Operational\n"
    "✓ Neural Query: Processed"
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def live_content(text: str) -> str:
    return f"[LIVE CANISTER RESPONSE]\n\n{text}\n\n{STATUS_FOOTER}"


class QueryGateway:
    def __init__(self, client: BackendClient, settings: Settings):
        self.client = client
        self.method = settings.query_method
        self.timeout = settings.query_timeout_secs
        self.default_topic = settings.default_topic

    def resolve_topic(self, topic: Optional[str]) -> str:
        # blank means absent; anything else is echoed verbatim
        if topic is None or not topic.strip():
            return self.default_topic
        return topic

    async def query(self, topic: Optional[str] = None) -> ResponseEnvelope:
        topic = self.resolve_topic(topic)
        logger.info(f'Query: "{topic}"')

        try:
            raw = await self.client.invoke(self.method, {"topic": topic}, timeout=self.timeout)
        except BackendError as e:
            logger.warning(f"Backend call {self.method} failed ({e.reason.value}), using demo mode: {e.detail}")
            result = fallback.generate(topic)
            return ResponseEnvelope(
                success=True,
                topic=topic,
                content=result.content,
                sources=result.sources,
                timestamp=_now_ms(),
                logs=result.logs,
                degraded=True,
            )

        logger.info(f"Backend call {self.method} succeeded")
        logs = [
            LogEntry(agent="USER-AGENT", message=f'Query: "{topic}"', severity=Severity.success),
            LogEntry(agent="ICP-CANISTER", message="Response received", severity=Severity.success),
            LogEntry(agent="NEURAL-NET", message="Processing complete", severity=Severity.info),
        ]
        return ResponseEnvelope(
            success=True,
            topic=topic,
            content=live_content(normalize(raw)),
            sources=static_sources(),
            timestamp=_now_ms(),
            logs=logs,
            degraded=False,
        )
