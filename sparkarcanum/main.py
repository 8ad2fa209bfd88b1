from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sparkarcanum.api import (
    admin_router,
    cards_router,
    decks_router,
    health_router,
    rules_router,
    rulings_router,
)
from sparkarcanum.config import settings
from sparkarcanum.db.database import init_db


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("sparkarcanum"),
    lifespan=lifespan,
)

app.include_router(admin_router)
app.include_router(cards_router)
app.include_router(decks_router)
app.include_router(health_router)
app.include_router(rules_router)
app.include_router(rulings_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
