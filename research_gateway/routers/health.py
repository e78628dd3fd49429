from fastapi import APIRouter, Depends
from research_gateway.schemas import HealthStatus
from research_gateway.deps import get_health_monitor
from research_gateway.health import HealthMonitor

router = APIRouter(tags=["health"])


@router.get("/api/health", response_model=HealthStatus)
async def health(monitor: HealthMonitor = Depends(get_health_monitor)) -> HealthStatus:
    return await monitor.check()
