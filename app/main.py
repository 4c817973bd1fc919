"""Main FastAPI application."""
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.logging import setup_logging
from app.db.database import init_db
from app.api import health, delivery, orders


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Marketplace delivery quoting and checkout API",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(delivery.router, tags=["delivery"])
app.include_router(orders.router, tags=["orders"])


@app.get("/")
async def root():
    """API index."""
    return {
        "message": f"{settings.app_name} API",
        "version": "0.1.0",
    }
