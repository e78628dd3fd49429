from dataclasses import dataclass
from textwrap import dedent
from typing import List

from research_gateway.schemas import LogEntry, Severity, Source
from research_gateway.sources import static_sources

DEMO_TEMPLATE = dedent("""
    [FALLBACK MODE]

    Query: "{topic}"

    🔧 Canister Status: Offline/Starting
    🚀 Demo Mode: Active

    ResearchOS demonstrates distributed AI research on ICP.
    Neural pathways remain functional during canister deployment.
""").strip()


@dataclass(frozen=True)
class FallbackResult:
    content: str
    sources: List[Source]
    logs: List[LogEntry]


def generate(topic: str) -> FallbackResult:
    """Demo-mode substitute used when the backend call fails.

    Deterministic in `topic`; the gateway attaches the timestamp.
    """
    logs = [
        LogEntry(agent="USER-AGENT", message=f'Query: "{topic}"', severity=Severity.info),
        LogEntry(agent="FALLBACK-SYS", message="Using demo mode", severity=Severity.warning),
        LogEntry(agent="DEMO-SYS", message="Functionality maintained", severity=Severity.success),
    ]
    return FallbackResult(
        content=DEMO_TEMPLATE.format(topic=topic),
        sources=static_sources(),
        logs=logs,
    )
