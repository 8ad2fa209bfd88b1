import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sparkarcanum.config import settings
from sparkarcanum.db.database import get_session, get_session_factory
from sparkarcanum.importers.mtgjson import import_document
from sparkarcanum.main import app
from sparkarcanum.models.db import Base


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing.

    pysqlite's own transaction handling breaks SAVEPOINT, so BEGIN is
    emitted explicitly. StaticPool shares the one in-memory database
    between every session the importer opens.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Provide an async test client with overridden database dependencies."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_document() -> dict[str, Any]:
    """A small AllPrintings document: two sets sharing two card names."""
    return {
        "meta": {"date": "2025-01-01", "version": "5.2.2"},
        "data": {
            "LEA": {
                "name": "Limited Edition Alpha",
                "code": "LEA",
                "releaseDate": "1993-08-05",
                "type": "core",
                "cards": [
                    {
                        "uuid": "lea-bolt",
                        "name": "Lightning Bolt",
                        "number": "161",
                        "manaCost": "{R}",
                        "manaValue": 1.0,
                        "type": "Instant",
                        "types": ["Instant"],
                        "text": "Lightning Bolt deals 3 damage to any target.",
                        "rarity": "common",
                        "colors": ["R"],
                        "colorIdentity": ["R"],
                        "identifiers": {"scryfallId": "sf-lea-bolt", "multiverseId": "209"},
                        "legalities": {"vintage": "Legal", "legacy": "Legal"},
                    },
                    {
                        "uuid": "lea-shivan",
                        "name": "Shivan Dragon",
                        "number": "174",
                        "manaCost": "{4}{R}{R}",
                        "manaValue": 6.0,
                        "type": "Creature — Dragon",
                        "power": "5",
                        "toughness": "5",
                        "rarity": "rare",
                        "keywords": ["Flying"],
                    },
                ],
            },
            "M10": {
                "name": "Magic 2010",
                "code": "M10",
                "releaseDate": "2009-07-17",
                "type": "core",
                "cards": [
                    {
                        "uuid": "m10-bolt",
                        "name": "Lightning Bolt",
                        "number": "146",
                        "manaCost": "{R}",
                        "cmc": 1.0,
                        "type": "Instant",
                        "rarity": "common",
                    },
                    {
                        "uuid": "m10-shivan",
                        "name": "Shivan Dragon",
                        "number": "154",
                        "manaCost": "{4}{R}{R}",
                        "manaValue": 6.0,
                        "type": "Creature — Dragon",
                        "rarity": "rare",
                    },
                    {
                        "uuid": "m10-hatchling",
                        "name": "Boltwing Hatchling",
                        "number": "155",
                        "manaCost": "{1}{R}",
                        "manaValue": 2.0,
                        "type": "Creature — Dragon",
                        "rarity": "uncommon",
                    },
                ],
            },
        },
    }


@pytest.fixture
def all_printings_path(tmp_path: Path, sample_document: dict[str, Any]) -> Path:
    path = tmp_path / "AllPrintings.json"
    path.write_text(json.dumps(sample_document), encoding="utf-8")
    return path


@pytest.fixture
def sample_rules_text() -> str:
    return """Magic: The Gathering Comprehensive Rules

Contents

1. Game Concepts
100. General
7. Additional Rules

1. Game Concepts

100. General

100.1. These Magic rules apply to any Magic game with two or more players.

100.1a A two-player game is a game that begins with only two players.

100.2. To play, each player needs their own deck of traditional Magic cards.
Example: A player building a deck for a constructed event must use at least sixty cards.

7. Additional Rules

702. Keyword Abilities

702.19. Trample

702.19b The controller of an attacking creature with trample first assigns damage
to the creature(s) blocking it. See rule 510.1c-d.

Glossary

Trample
A keyword ability that modifies how a creature assigns combat damage. See rule 702.19.
"""


@pytest.fixture
async def imported_cards(session_factory, sample_document: dict[str, Any]) -> None:
    """Load the sample document into the database."""
    await import_document(session_factory, sample_document)


@pytest.fixture
def data_dir(tmp_path: Path):
    """Point bulk data, rules, and the rarity cache at a temporary directory."""
    with patch.object(settings, "data_dir", tmp_path):
        yield tmp_path
