"""
MTGJSON bulk importer.

Reads an AllPrintings.json document and upserts every card into the cards
table, one transaction per batch. Every write is keyed by the MTGJSON uuid,
so re-running an import is safe and is the retry mechanism.

Document shape:
    {"data": {"<SET>": {"name": ..., "code": ..., "cards": [<card>, ...]}}}
"""

import json
import logging
from collections.abc import Mapping
from datetime import date
from pathlib import Path
from typing import Any

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sparkarcanum.config import settings
from sparkarcanum.errors import BulkDataError, MissingIdentifierError
from sparkarcanum.models.db import Base, CardDB, CardSetDB, DbMetadataDB
from sparkarcanum.models.summary import ImportSummary, RecordOutcome

logger = logging.getLogger(__name__)

METADATA_ID = "card_database"

# Column -> key inside the card's "identifiers" object
_IDENTIFIER_COLUMNS = {
    "scryfall_id": "scryfallId",
    "scryfall_oracle_id": "scryfallOracleId",
    "scryfall_illustration_id": "scryfallIllustrationId",
    "multiverse_id": "multiverseId",
    "mtgo_id": "mtgoId",
    "mtgo_foil_id": "mtgoFoilId",
    "mtg_arena_id": "mtgArenaId",
    "tcgplayer_id": "tcgplayerId",
    "card_kingdom_id": "cardKingdomId",
    "cardmarket_id": "cardmarketId",
}

# Identifiers kept as text; the others arrive as strings and are stored as integers
_TEXT_IDENTIFIERS = frozenset({"scryfall_id", "scryfall_oracle_id", "scryfall_illustration_id"})

# Column -> card key, copied as-is or None
_SCALAR_COLUMNS = {
    "name": "name",
    "face_name": "faceName",
    "flavor_name": "flavorName",
    "face_flavor_name": "faceFlavorName",
    "number": "number",
    "artist": "artist",
    "layout": "layout",
    "mana_cost": "manaCost",
    "face_mana_cost": "faceManaCost",
    "face_mana_value": "faceManaValue",
    "type": "type",
    "face_type": "faceType",
    "power": "power",
    "toughness": "toughness",
    "loyalty": "loyalty",
    "defense": "defense",
    "text": "text",
    "face_text": "faceText",
    "flavor_text": "flavorText",
    "original_text": "originalText",
    "original_type": "originalType",
    "rarity": "rarity",
    "frame_version": "frameVersion",
    "border_color": "borderColor",
    "security_stamp": "securityStamp",
    "duel_deck": "duelDeck",
    "edhrec_rank": "edhrecRank",
    "image_url": "imageUrl",
}

# Column -> card key, defaulting to []
_LIST_COLUMNS = {
    "colors": "colors",
    "color_identity": "colorIdentity",
    "color_indicator": "colorIndicator",
    "types": "types",
    "supertypes": "supertypes",
    "subtypes": "subtypes",
    "frame_effects": "frameEffects",
    "finishes": "finishes",
    "keywords": "keywords",
    "other_face_ids": "otherFaceIds",
    "variations": "variations",
    "original_printings": "originalPrintings",
    "printings": "printings",
}

# Column -> card key, defaulting to False
_FLAG_COLUMNS = {
    "is_alternative": "isAlternative",
    "is_full_art": "isFullArt",
    "is_funny": "isFunny",
    "is_online_only": "isOnlineOnly",
    "is_oversized": "isOversized",
    "is_promo": "isPromo",
    "is_rebalanced": "isRebalanced",
    "is_reprint": "isReprint",
    "is_reserved": "isReserved",
    "is_story_spotlight": "isStorySpotlight",
    "is_textless": "isTextless",
    "has_content_warning": "hasContentWarning",
    "has_alternative_deck_limit": "hasAlternativeDeckLimit",
}

# Column -> card key, structured sub-documents stored as JSON or None
_DOCUMENT_COLUMNS = {
    "identifiers": "identifiers",
    "legalities": "legalities",
    "foreign_data": "foreignData",
    "related_cards": "relatedCards",
    "rulings": "rulings",
    "foreign_names": "foreignNames",
}

# Columns the importer owns; created_at/updated_at are managed by the database
CARD_COLUMNS: frozenset[str] = frozenset(
    column.name
    for column in CardDB.__table__.columns
    if column.name not in ("created_at", "updated_at")
)


def load_all_printings(path: Path) -> dict[str, Any]:
    """
    Read and parse an AllPrintings.json document.

    Args:
        path: Path to the JSON file

    Returns:
        The parsed document. ``document["data"]`` maps set codes to sets.

    Raises:
        BulkDataError: If the file is missing, unreadable, not JSON, or
            does not have a top-level "data" object
    """
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BulkDataError(f"Could not read bulk data from {path}: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("data"), dict):
        raise BulkDataError(f"Bulk data at {path} has no top-level 'data' object")

    return document


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def map_card(raw: Mapping[str, Any], set_data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map a raw MTGJSON card to a cards table row.

    Every column in CARD_COLUMNS is present in the result. Missing values
    become None, [] or False so the database always receives an explicit
    value rather than falling back to column defaults.

    Args:
        raw: Card object from the set's "cards" array
        set_data: The enclosing set object (used for set code/name fallbacks)

    Raises:
        MissingIdentifierError: If the card has no uuid
    """
    card_uuid = raw.get("uuid")
    if not card_uuid:
        raise MissingIdentifierError(raw.get("name"), set_data.get("code"))

    identifiers = raw.get("identifiers") or {}

    row: dict[str, Any] = {"uuid": card_uuid, "id": card_uuid}

    for column, key in _IDENTIFIER_COLUMNS.items():
        value = identifiers.get(key)
        row[column] = value if column in _TEXT_IDENTIFIERS else _as_int(value)
    for column, key in _SCALAR_COLUMNS.items():
        row[column] = raw.get(key)
    for column, key in _LIST_COLUMNS.items():
        row[column] = list(raw.get(key) or [])
    for column, key in _FLAG_COLUMNS.items():
        row[column] = bool(raw.get(key, False))
    for column, key in _DOCUMENT_COLUMNS.items():
        row[column] = raw.get(key)

    row["set_code"] = raw.get("setCode") or set_data.get("code")
    row["set_name"] = raw.get("setName") or set_data.get("name")

    # manaValue replaced the deprecated cmc; keep both populated
    mana_value = raw.get("manaValue")
    cmc = raw.get("cmc")
    row["mana_value"] = mana_value if mana_value is not None else cmc
    row["cmc"] = cmc if cmc is not None else mana_value

    saltiness = raw.get("edhrecSaltiness")
    row["edhrec_saltiness"] = str(saltiness) if saltiness is not None else None

    multiverseid = raw.get("multiverseid")
    if multiverseid is None and identifiers.get("multiverseId") is not None:
        multiverseid = identifiers["multiverseId"]
    row["multiverseid"] = str(multiverseid) if multiverseid is not None else None

    return row


def map_batch(
    batch: list[Any], set_data: Mapping[str, Any], summary: ImportSummary
) -> list[dict[str, Any]]:
    """
    Map a batch of raw cards, dropping records with malformed fields.

    A dropped record is logged and counted as an error in ``summary``.

    Raises:
        MissingIdentifierError: If a card has no uuid
    """
    rows = []
    for raw in batch:
        try:
            rows.append(map_card(raw, set_data))
        except MissingIdentifierError:
            raise
        except (TypeError, ValueError, AttributeError) as e:
            name = raw.get("name") if isinstance(raw, Mapping) else None
            card_uuid = raw.get("uuid") if isinstance(raw, Mapping) else None
            logger.error("Error mapping card %s (uuid %s): %s", name, card_uuid, e)
            summary.record(RecordOutcome.FAILED)
    return rows


def _insert_for(session: AsyncSession) -> Any:
    """Pick the dialect insert construct that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert is not supported for dialect {dialect!r}")


async def _upsert(
    session: AsyncSession,
    model: type[Base],
    row: dict[str, Any],
    key: str,
) -> None:
    """
    INSERT ... ON CONFLICT (key) DO UPDATE SET <every other column>.

    Full-row replace: every column in ``row`` is overwritten and
    updated_at is refreshed when the model has one.
    """
    insert = _insert_for(session)
    stmt = insert(model).values(**row)
    replacements = {column: stmt.excluded[column] for column in row if column != key}
    if "updated_at" in model.__table__.columns:
        replacements["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=[key], set_=replacements)
    await session.execute(stmt)


async def upsert_card_row(session: AsyncSession, row: dict[str, Any]) -> RecordOutcome:
    """
    Upsert one mapped card inside a savepoint.

    A failing row is rolled back on its own and reported as FAILED so the
    rest of the batch can still commit.
    """
    try:
        async with session.begin_nested():
            await _upsert(session, CardDB, row, "uuid")
    except (SQLAlchemyError, TypeError, ValueError) as e:
        logger.error("Error upserting card %s (uuid %s): %s", row.get("name"), row.get("uuid"), e)
        return RecordOutcome.FAILED

    return RecordOutcome.UPDATED


async def upsert_card_set(
    session: AsyncSession, set_code: str, set_data: Mapping[str, Any], total_cards: int
) -> None:
    """Insert or replace the set's reference row."""
    release_date = None
    raw_date = set_data.get("releaseDate")
    if raw_date:
        try:
            release_date = date.fromisoformat(raw_date)
        except ValueError:
            logger.warning("Set %s has unparseable release date %r", set_code, raw_date)

    row = {
        "code": set_data.get("code") or set_code,
        "name": set_data.get("name") or set_code,
        "release_date": release_date,
        "set_type": set_data.get("type"),
        "total_cards": total_cards,
    }
    await _upsert(session, CardSetDB, row, "code")


async def update_import_metadata(session: AsyncSession, total_cards: int) -> None:
    """Write the singleton metadata row describing the last import."""
    row = {
        "id": METADATA_ID,
        "last_updated": func.now(),
        "total_cards": total_cards,
        "description": f"Complete MTGJSON import - {total_cards} cards from AllPrintings.json",
    }
    insert = _insert_for(session)
    stmt = insert(DbMetadataDB).values(**row)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id"],
        set_={
            "last_updated": func.now(),
            "total_cards": stmt.excluded.total_cards,
            "description": stmt.excluded.description,
        },
    )
    await session.execute(stmt)


async def import_document(
    session_factory: async_sessionmaker[AsyncSession],
    document: Mapping[str, Any],
    batch_size: int | None = None,
) -> ImportSummary:
    """
    Import an already-parsed AllPrintings document.

    Sets are processed in key order and cards in file order. Each batch is
    mapped in full before anything is written, so a card without a uuid
    aborts the run before its batch touches the database; batches that
    completed earlier stay committed. A card with a malformed field is
    skipped and counted as an error.

    Args:
        session_factory: Factory for the per-batch sessions
        document: Parsed AllPrintings document
        batch_size: Cards per transaction. Defaults to settings.import_batch_size.

    Returns:
        ImportSummary with processed/upserted/error counts

    Raises:
        MissingIdentifierError: If a card has no uuid
    """
    if batch_size is None:
        batch_size = settings.import_batch_size
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    sets: Mapping[str, Any] = document["data"]
    logger.info("Found %d sets to import", len(sets))

    summary = ImportSummary()

    for set_code, set_data in sets.items():
        cards = set_data.get("cards") or []
        logger.info("Processing set %s (%s) - %d cards", set_code, set_data.get("name"), len(cards))

        for start in range(0, len(cards), batch_size):
            batch = cards[start : start + batch_size]
            rows = map_batch(batch, set_data, summary)

            async with session_factory() as session, session.begin():
                for row in rows:
                    summary.record(await upsert_card_row(session, row))

            logger.info(
                "Processed %d/%d cards from %s", start + len(batch), len(cards), set_code
            )

        async with session_factory() as session, session.begin():
            await upsert_card_set(session, set_code, set_data, len(cards))
        summary.sets += 1

    async with session_factory() as session, session.begin():
        await update_import_metadata(session, summary.processed)

    logger.info(
        "MTGJSON import complete: %d processed, %d upserted, %d errors",
        summary.processed,
        summary.upserted,
        summary.errors,
    )
    return summary


async def import_all_printings(
    session_factory: async_sessionmaker[AsyncSession],
    path: Path,
    batch_size: int | None = None,
) -> ImportSummary:
    """
    Import an AllPrintings.json file into the database.

    Raises:
        BulkDataError: If the file cannot be read or parsed
        MissingIdentifierError: If a card has no uuid
    """
    logger.info("Starting MTGJSON import from %s", path)
    document = load_all_printings(path)
    return await import_document(session_factory, document, batch_size=batch_size)
