import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from research_gateway.backend import build_backend_client
from research_gateway.deps import get_settings
from research_gateway.gateway import QueryGateway
from research_gateway.health import HealthMonitor
from research_gateway.routers.health import router as health_router
from research_gateway.routers.query import router as query_router

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the backend client once; bad configuration stops startup here."""
    client = build_backend_client(settings)
    app.state.gateway = QueryGateway(client, settings)
    app.state.health_monitor = HealthMonitor(client, settings)
    logger.info(
        f"Gateway started (env={settings.app_env}, backend={settings.backend_mode}, "
        f"canister={settings.canister_name}, query_timeout={settings.query_timeout_secs}s)"
    )
    yield
    logger.info("Gateway shutting down")


app = FastAPI(title=settings.api_title, version=settings.api_version, docs_url=settings.api_docs, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.cors_origins == "*" else [o.strip() for o in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(query_router)

@app.get("/")
async def root():
    return {"message": "ResearchOS gateway is up", "docs": settings.api_docs}
