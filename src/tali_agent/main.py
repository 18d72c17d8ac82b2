"""Tali Agent — FastAPI app serving the channel webhook and the mock bank API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tali_agent.config import settings
from tali_agent.database.engine import init_db
from tali_agent.mock_external_api.router import router as mock_api_router
from tali_agent.webhook.handler import router as webhook_router

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "%s starting (intents: %s, accounts: %s)",
        settings.app_name,
        settings.intent_api_url,
        settings.account_api_base_url,
    )
    await init_db()
    yield
    logger.info("%s stopped", settings.app_name)


def create_app(with_mock_api: bool = True) -> FastAPI:
    """Build the app; the mock bank API is mounted unless real endpoints are used."""
    app = FastAPI(
        title=f"{settings.app_name} banking agent",
        description="Onboarding, balances, bills and transfers over a channel webhook",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(webhook_router)
    if with_mock_api:
        app.include_router(mock_api_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "assistant": settings.app_name,
            "intentApi": settings.intent_api_url,
            "accountApi": settings.account_api_base_url,
            "mockApi": with_mock_api,
        }

    return app


app = create_app()
