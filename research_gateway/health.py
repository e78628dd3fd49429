import logging

from research_gateway.backend import BackendClient
from research_gateway.deps import Settings
from research_gateway.errors import BackendError
from research_gateway.normalize import normalize
from research_gateway.schemas import HealthState, HealthStatus

logger = logging.getLogger(__name__)

DEMO_MESSAGE = "ResearchOS Demo Mode - Canister Starting"


class HealthMonitor:
    def __init__(self, client: BackendClient, settings: Settings):
        self.client = client
        self.method = settings.health_method
        self.timeout = settings.health_timeout_secs

    async def check(self) -> HealthStatus:
        """online iff the zero-argument health call succeeds; never raises."""
        try:
            raw = await self.client.invoke(self.method, timeout=self.timeout)
        except BackendError as e:
            logger.info(f"Health call {self.method} failed ({e.reason.value}), reporting demo")
            return HealthStatus(state=HealthState.demo, message=DEMO_MESSAGE, backend_connected=False)
        return HealthStatus(state=HealthState.online, message=normalize(raw), backend_connected=True)
