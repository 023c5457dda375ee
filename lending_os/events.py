import logging

from fastapi import FastAPI

from lending_os.core.settings import settings
from lending_os.db.session import engine
from lending_os.utils.redis_client import close_redis_client

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "Application startup",
            extra={"environment": settings.environment, "tenancy_mode": settings.tenancy_mode},
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        await close_redis_client()
        await engine.dispose()
