import uvicorn

from research_gateway.deps import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "research_gateway.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
