"""
Database CRUD operations.

Provides async functions for reading cards, sets, rules, and import
metadata, and for creating, reading, updating, and deleting users and
their saved decks.
"""

import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sparkarcanum.config import MAX_SEARCH_CANDIDATES
from sparkarcanum.errors import DeckPermissionError
from sparkarcanum.importers.mtgjson import METADATA_ID
from sparkarcanum.models.db import CardDB, CardSetDB, DbMetadataDB, RuleDB, SavedDeckDB, UserDB
from sparkarcanum.search.ranking import tokenize_query

_RULE_NUMBER_RE = re.compile(r"^\d{3}(\.\d+[a-z]?)?\.?$")

# Deck fields a PUT may change
DECK_UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "format",
        "commander",
        "deck_data",
        "sideboard_data",
        "thumbnail_card_id",
        "is_public",
        "tags",
    }
)


def _like_pattern(token: str) -> str:
    escaped = token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# --- Card Operations ---


async def search_card_candidates(
    session: AsyncSession, query: str | None, limit: int = MAX_SEARCH_CANDIDATES
) -> list[CardDB]:
    """
    Fetch cards whose name contains every query word.

    This is the database prefilter; ranking happens afterwards in Python.
    An empty query returns no candidates.
    """
    tokens = tokenize_query(query)
    if not tokens:
        return []

    stmt = select(CardDB)
    for token in tokens:
        stmt = stmt.where(CardDB.name.ilike(_like_pattern(token), escape="\\"))

    result = await session.execute(stmt.order_by(CardDB.name, CardDB.uuid).limit(limit))
    return list(result.scalars().all())


async def get_card(session: AsyncSession, card_uuid: str) -> CardDB | None:
    """Get a card printing by uuid."""
    return await session.get(CardDB, card_uuid)


async def get_cards(session: AsyncSession, card_uuids: list[str]) -> list[CardDB]:
    """
    Get several cards by uuid, in the order requested.

    Unknown uuids are skipped.
    """
    if not card_uuids:
        return []
    result = await session.execute(select(CardDB).where(CardDB.uuid.in_(card_uuids)))
    by_uuid = {card.uuid: card for card in result.scalars().all()}
    return [by_uuid[u] for u in dict.fromkeys(card_uuids) if u in by_uuid]


async def list_sets(session: AsyncSession) -> list[CardSetDB]:
    """All sets, newest first."""
    result = await session.execute(
        select(CardSetDB).order_by(CardSetDB.release_date.desc().nulls_last(), CardSetDB.code)
    )
    return list(result.scalars().all())


async def get_metadata(session: AsyncSession) -> DbMetadataDB | None:
    """Get the card import metadata row, if an import has run."""
    return await session.get(DbMetadataDB, METADATA_ID)


# --- Rule Operations ---


async def get_rule(session: AsyncSession, rule_number: str) -> RuleDB | None:
    """Get a rule by its number, e.g. "702.19b"."""
    result = await session.execute(
        select(RuleDB).where(RuleDB.rule_number == rule_number.rstrip("."))
    )
    return result.scalar_one_or_none()


async def search_rules(session: AsyncSession, query: str, limit: int = 50) -> list[RuleDB]:
    """
    Search rules by number prefix or text.

    A query shaped like a rule number ("702", "702.19") returns that rule
    and its subrules. Anything else matches rules containing every word.
    """
    query = query.strip()
    if not query:
        return []

    stmt = select(RuleDB)
    if _RULE_NUMBER_RE.match(query):
        stmt = stmt.where(RuleDB.rule_number.startswith(query.rstrip("."), autoescape=True))
    else:
        for token in tokenize_query(query):
            stmt = stmt.where(RuleDB.text.ilike(_like_pattern(token), escape="\\"))

    result = await session.execute(stmt.order_by(RuleDB.rule_number).limit(limit))
    return list(result.scalars().all())


# --- User Operations ---


async def create_user(
    session: AsyncSession, username: str, email: str, password_hash: str
) -> UserDB:
    """
    Create a user record.

    Raises IntegrityError if the username or email is taken.
    """
    user = UserDB(username=username, email=email, password_hash=password_hash)
    session.add(user)
    await session.flush()
    return user


async def get_user(session: AsyncSession, user_id: str) -> UserDB | None:
    return await session.get(UserDB, user_id)


async def delete_user(session: AsyncSession, user_id: str) -> bool:
    """
    Delete a user along with their decks and sessions.

    Returns True if deleted, False if not found.
    """
    result = await session.execute(
        select(UserDB)
        .where(UserDB.id == user_id)
        .options(selectinload(UserDB.decks), selectinload(UserDB.sessions))
    )
    user = result.scalar_one_or_none()
    if not user:
        return False

    await session.delete(user)
    await session.flush()
    return True


# --- Deck Operations ---


async def create_deck(session: AsyncSession, user_id: str, **fields: Any) -> SavedDeckDB:
    """
    Save a new deck for a user.

    Raises IntegrityError if the user does not exist (on databases that
    enforce foreign keys).
    """
    unknown = set(fields) - DECK_UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown deck fields: {', '.join(sorted(unknown))}")

    deck = SavedDeckDB(user_id=user_id, **fields)
    session.add(deck)
    await session.flush()
    await session.refresh(deck)
    return deck


async def get_deck(
    session: AsyncSession, deck_id: str, user_id: str | None = None
) -> SavedDeckDB | None:
    """
    Get a deck visible to the given user.

    Public decks are visible to everyone, private decks only to their owner.

    Returns None if the deck does not exist.

    Raises:
        DeckPermissionError: If the deck is private and not owned by user_id
    """
    deck = await session.get(SavedDeckDB, deck_id)
    if deck is None:
        return None
    if not deck.is_public and deck.user_id != user_id:
        raise DeckPermissionError(deck_id, user_id or "anonymous")
    return deck


async def get_decks_by_user(session: AsyncSession, user_id: str) -> list[SavedDeckDB]:
    """All of a user's decks, most recently updated first."""
    result = await session.execute(
        select(SavedDeckDB)
        .where(SavedDeckDB.user_id == user_id)
        .order_by(SavedDeckDB.updated_at.desc(), SavedDeckDB.name)
    )
    return list(result.scalars().all())


async def get_public_decks(
    session: AsyncSession, format_name: str | None = None, limit: int = 50
) -> list[SavedDeckDB]:
    """Public decks, optionally filtered by format, newest first."""
    stmt = select(SavedDeckDB).where(SavedDeckDB.is_public.is_(True))
    if format_name:
        stmt = stmt.where(SavedDeckDB.format == format_name)
    result = await session.execute(
        stmt.order_by(SavedDeckDB.created_at.desc(), SavedDeckDB.name).limit(limit)
    )
    return list(result.scalars().all())


async def _owned_deck(session: AsyncSession, deck_id: str, user_id: str) -> SavedDeckDB | None:
    deck = await session.get(SavedDeckDB, deck_id)
    if deck is None:
        return None
    if deck.user_id != user_id:
        raise DeckPermissionError(deck_id, user_id)
    return deck


async def update_deck(
    session: AsyncSession, deck_id: str, user_id: str, changes: dict[str, Any]
) -> SavedDeckDB | None:
    """
    Apply changes to a deck owned by user_id.

    Only fields in DECK_UPDATABLE_FIELDS are applied; others are ignored.

    Returns None if the deck does not exist.

    Raises:
        DeckPermissionError: If user_id does not own the deck
    """
    deck = await _owned_deck(session, deck_id, user_id)
    if deck is None:
        return None

    for key, value in changes.items():
        if key in DECK_UPDATABLE_FIELDS:
            setattr(deck, key, value)

    await session.flush()
    await session.refresh(deck)
    return deck


async def delete_deck(session: AsyncSession, deck_id: str, user_id: str) -> bool:
    """
    Delete a deck owned by user_id.

    Returns True if deleted, False if not found.

    Raises:
        DeckPermissionError: If user_id does not own the deck
    """
    deck = await _owned_deck(session, deck_id, user_id)
    if deck is None:
        return False

    await session.delete(deck)
    await session.flush()
    return True
