import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Severity(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class HealthState(str, Enum):
    online = "online"
    demo = "demo"


class NeuralQueryRequest(BaseModel):
    query: Optional[str] = Field(default=None, description="free-text research topic")

    @field_validator("query", mode="before")
    @classmethod
    def coerce_to_text(cls, v):
        """Any JSON value becomes topic text; false and 0 count as absent."""
        if v is None or isinstance(v, str):
            return v
        if v is False or v == 0:
            return None
        if isinstance(v, bool):
            return "true"
        if isinstance(v, (int, float)):
            return str(v)
        return json.dumps(v, ensure_ascii=False)


class Source(BaseModel):
    handle: str
    influence: float
    id: str


class LogEntry(BaseModel):
    agent: str
    message: str
    severity: Severity


class ResponseEnvelope(BaseModel):
    success: bool = True
    topic: str
    content: str
    sources: List[Source] = []
    timestamp: int
    logs: List[LogEntry] = []
    degraded: bool = False


class HealthStatus(BaseModel):
    state: HealthState
    message: str
    backend_connected: bool
