from typing import List

from research_gateway.schemas import Source

# Static reference list, shared by the live and demo paths.
SOURCES = (
    Source(handle="@researchos", influence=99.9, id="NID_000"),
    Source(handle="@icp_protocol", influence=95.5, id="NID_001"),
    Source(handle="@dfinity", influence=92.1, id="NID_002"),
)


def static_sources() -> List[Source]:
    return [s.model_copy() for s in SOURCES]
