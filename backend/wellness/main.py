# backend/wellness/main.py
"""
Wellness marketplace API.

Assembles the routers, the error envelope and logging. Tables are created
on startup outside of test runs; tests build their own schema.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import BRAND_NAME, is_running_tests, settings
from .database import init_db
from .errors import register_error_handlers
from .routes import associations, availability, bookings, metrics, payments

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(f"Starting {API_TITLE} ({settings.environment})")
    if not is_running_tests():
        init_db()
    yield
    logger.info(f"Shutting down {API_TITLE}")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings.router, prefix="/bookings")
api_v1.include_router(availability.router, prefix="/availability")
api_v1.include_router(payments.router, prefix="/payments")
api_v1.include_router(associations.router, prefix="/associations")

app.include_router(api_v1)
app.include_router(metrics.router)
