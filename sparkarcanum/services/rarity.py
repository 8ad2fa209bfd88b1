"""
Rarity backfill.

Resolves a rarity for every card stored without one. Each card is run
through an ordered chain of lookup sources and the first answer wins:

1. cache      - rarities resolved on earlier runs, keyed by card uuid
2. bulk       - the AllPrintings reference data
3. remote     - Scryfall, only when no bulk data could be loaded
4. heuristic  - a guess from type line and mana cost

Every answer not taken from the cache is written back to it.
"""

import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any

import httpx
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sparkarcanum.config import settings
from sparkarcanum.models.db import CardDB
from sparkarcanum.models.summary import BackfillTally, RecordOutcome
from sparkarcanum.services.rarity_cache import RarityCache

logger = logging.getLogger(__name__)

# Highest first. Breaks ties between equally frequent rarities.
RARITY_PRIORITY = ("mythic", "rare", "uncommon", "common", "special", "basic")

SOURCE_CACHE = "cache"
SOURCE_BULK = "bulk"
SOURCE_REMOTE = "remote"
SOURCE_HEURISTIC = "heuristic"


def _rarity_rank(rarity: str) -> int:
    try:
        return RARITY_PRIORITY.index(rarity)
    except ValueError:
        return len(RARITY_PRIORITY)


def most_common_rarity(counts: Mapping[str, int]) -> str | None:
    """Most frequent rarity, preferring the higher rarity on a tie."""
    if not counts:
        return None
    return max(counts, key=lambda rarity: (counts[rarity], -_rarity_rank(rarity)))


class BulkRarityIndex:
    """
    Rarity lookups over AllPrintings data.

    Lookups go from most to least specific: collector number within the
    card's set, then name within the set, then name across every set.
    """

    def __init__(self) -> None:
        self._by_number: dict[tuple[str, str, str], str] = {}
        self._by_set_name: dict[tuple[str, str], str] = {}
        self._by_name: dict[str, Counter[str]] = {}

    def __len__(self) -> int:
        return len(self._by_name)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "BulkRarityIndex":
        """Build the index from a parsed AllPrintings document."""
        index = cls()
        for set_key, set_data in (document.get("data") or {}).items():
            set_code = str(set_data.get("code") or set_key).upper()
            for raw in set_data.get("cards") or []:
                index.add(set_code, raw.get("name"), raw.get("number"), raw.get("rarity"))

        logger.info("Indexed rarities for %d card names", len(index))
        return index

    def add(
        self, set_code: str, name: str | None, number: str | None, rarity: str | None
    ) -> None:
        if not name or not rarity:
            return
        rarity = rarity.lower()
        set_code = set_code.upper()

        if number:
            self._by_number.setdefault((set_code, str(number), name), rarity)
        self._by_set_name.setdefault((set_code, name), rarity)
        self._by_name.setdefault(name, Counter())[rarity] += 1

    def lookup(
        self, name: str | None, set_code: str | None = None, number: str | None = None
    ) -> str | None:
        """
        Find the rarity of a printing.

        Args:
            name: Exact card name
            set_code: Set code of the printing, any case
            number: Collector number within the set

        Returns:
            Lowercased rarity, or None if the name is unknown.
        """
        if not name:
            return None

        if set_code:
            set_code = set_code.upper()
            if number:
                rarity = self._by_number.get((set_code, str(number), name))
                if rarity:
                    return rarity
            rarity = self._by_set_name.get((set_code, name))
            if rarity:
                return rarity

        return most_common_rarity(self._by_name.get(name) or {})


def heuristic_rarity(type_line: str | None, mana_cost: str | None) -> str:
    """
    Guess a rarity from card characteristics.

    Always returns a value, so it is the last source in any chain.
    """
    card_type = (type_line or "").lower()

    if "land" in card_type:
        return "common" if "basic" in card_type else "uncommon"
    if "legendary" in card_type:
        return "rare"
    if "planeswalker" in card_type:
        return "mythic"
    if mana_cost and len(mana_cost) <= 3:
        return "common"
    return "uncommon"


async def fetch_remote_rarity(
    client: httpx.AsyncClient,
    name: str,
    base_url: str | None = None,
    timeout: float | None = None,
) -> str | None:
    """
    Look up a card's rarity on Scryfall by exact name.

    Best effort: network errors, error statuses, and unexpected payloads
    all return None.
    """
    base_url = (base_url or settings.scryfall_api_url).rstrip("/")
    try:
        response = await client.get(
            f"{base_url}/cards/named",
            params={"exact": name},
            timeout=timeout if timeout is not None else settings.http_timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug("Remote rarity lookup failed for %s: %s", name, e)
        return None

    rarity = data.get("rarity") if isinstance(data, dict) else None
    if not isinstance(rarity, str) or not rarity:
        return None
    return rarity.lower()


@dataclass(frozen=True, slots=True)
class Resolution:
    """A resolved rarity and the source that produced it."""

    rarity: str
    source: str


LookupSource = Callable[[CardDB], Awaitable[str | None]]


async def _from_bulk(bulk_index: BulkRarityIndex, card: CardDB) -> str | None:
    return bulk_index.lookup(card.name, card.set_code, card.number)


async def _from_remote(client: httpx.AsyncClient, card: CardDB) -> str | None:
    if not card.name:
        return None
    return await fetch_remote_rarity(client, card.name)


class RarityResolver:
    """
    Runs a card through the lookup chain.

    Args:
        cache: Loaded rarity cache; written to on every non-cache answer
        bulk_index: AllPrintings index, or None if bulk data is unavailable
        client: HTTP client for the remote source. Only used without bulk data.
        include_heuristic: False leaves cards unresolved instead of guessing
    """

    def __init__(
        self,
        cache: RarityCache,
        bulk_index: BulkRarityIndex | None = None,
        client: httpx.AsyncClient | None = None,
        include_heuristic: bool = True,
    ) -> None:
        self.cache = cache
        self.bulk_index = bulk_index
        self.client = client

        self._sources: list[tuple[str, LookupSource]] = [(SOURCE_CACHE, self._from_cache)]
        if bulk_index is not None:
            self._sources.append((SOURCE_BULK, partial(_from_bulk, bulk_index)))
        elif client is not None:
            self._sources.append((SOURCE_REMOTE, partial(_from_remote, client)))
        if include_heuristic:
            self._sources.append((SOURCE_HEURISTIC, self._from_heuristic))

    @property
    def source_names(self) -> list[str]:
        return [name for name, _ in self._sources]

    async def _from_cache(self, card: CardDB) -> str | None:
        return self.cache.get(card.uuid)

    async def _from_heuristic(self, card: CardDB) -> str | None:
        return heuristic_rarity(card.type, card.mana_cost)

    async def resolve(self, card: CardDB) -> Resolution | None:
        """Return the first answer in the chain, or None if no source knows."""
        for source, lookup in self._sources:
            rarity = await lookup(card)
            if not rarity:
                continue
            if source != SOURCE_CACHE:
                self.cache.put(card.uuid, rarity)
            return Resolution(rarity=rarity, source=source)
        return None


async def apply_rarity(
    session: AsyncSession, resolver: RarityResolver, card: CardDB
) -> tuple[RecordOutcome, str | None]:
    """
    Resolve and store one card's rarity.

    The write happens in a savepoint so a failure leaves the rest of the
    batch intact.

    Returns:
        The outcome and the source that answered (None if unresolved).
    """
    name, card_uuid = card.name, card.uuid
    resolution = await resolver.resolve(card)
    if resolution is None:
        logger.warning("Could not determine rarity for %s (%s)", name, card_uuid)
        return RecordOutcome.FAILED, None

    if card.rarity == resolution.rarity:
        return RecordOutcome.UNCHANGED, resolution.source

    try:
        async with session.begin_nested():
            card.rarity = resolution.rarity
    except SQLAlchemyError as e:
        logger.error("Failed to store rarity for %s (%s): %s", name, card_uuid, e)
        return RecordOutcome.FAILED, resolution.source

    logger.debug(
        "Set rarity of %s (%s) to %s from %s", name, card_uuid, resolution.rarity, resolution.source
    )
    return RecordOutcome.UPDATED, resolution.source


async def backfill_rarities(
    session: AsyncSession,
    resolver: RarityResolver,
    batch_size: int | None = None,
) -> BackfillTally:
    """
    Fill in the rarity of every card stored without one.

    Cards are processed in uuid order, one batch at a time. An unresolvable
    card is counted as an error and never stops the run. Each batch is
    committed and the cache flushed before the next batch is selected, so
    an interrupted run keeps every finished batch.

    Returns:
        Counts of processed, updated, unchanged, and failed cards
    """
    batch_size = batch_size or settings.rarity_batch_size
    tally = BackfillTally()
    last_uuid = ""
    batch_number = 0

    logger.info("Starting rarity backfill with sources: %s", ", ".join(resolver.source_names))

    while True:
        result = await session.execute(
            select(CardDB)
            .where(or_(CardDB.rarity.is_(None), CardDB.rarity == ""))
            .where(CardDB.uuid > last_uuid)
            .order_by(CardDB.uuid)
            .limit(batch_size)
        )
        batch = list(result.scalars().all())
        if not batch:
            break

        batch_number += 1
        last_uuid = batch[-1].uuid
        for card in batch:
            outcome, source = await apply_rarity(session, resolver, card)
            tally.record(outcome, source)

        await session.commit()
        resolver.cache.flush()

        logger.info(
            "Rarity batch %d: %d cards (%d updated so far)",
            batch_number,
            len(batch),
            tally.updated,
        )

    logger.info(
        "Rarity backfill complete: %d processed, %d updated, %d unchanged, %d errors",
        tally.processed,
        tally.updated,
        tally.unchanged,
        tally.errors,
    )
    return tally


async def repair_card_rarity(
    session: AsyncSession, resolver: RarityResolver, card_uuid: str
) -> BackfillTally | None:
    """
    Re-resolve a single card, whatever rarity it currently holds.

    Returns:
        Tally for the one card, or None if no card has this uuid.
    """
    card = await session.get(CardDB, card_uuid)
    if card is None:
        return None

    outcome, source = await apply_rarity(session, resolver, card)
    resolver.cache.flush()
    return BackfillTally().record(outcome, source)


@dataclass
class RarityReport:
    """Snapshot of rarity coverage in the cards table."""

    missing: int
    by_rarity: dict[str, int]
    samples: dict[str, list[str]]


async def rarity_report(session: AsyncSession, sample_size: int = 5) -> RarityReport:
    """Count cards without a rarity and sample uuids for each common rarity."""
    missing = await session.scalar(
        select(func.count())
        .select_from(CardDB)
        .where(or_(CardDB.rarity.is_(None), CardDB.rarity == ""))
    )

    result = await session.execute(
        select(func.lower(CardDB.rarity), func.count())
        .where(CardDB.rarity.is_not(None), CardDB.rarity != "")
        .group_by(func.lower(CardDB.rarity))
    )
    by_rarity = {rarity: count for rarity, count in result.all()}

    samples: dict[str, list[str]] = {}
    for rarity in ("common", "uncommon", "rare", "mythic"):
        rows = await session.execute(
            select(CardDB.uuid)
            .where(func.lower(CardDB.rarity) == rarity)
            .order_by(CardDB.uuid)
            .limit(sample_size)
        )
        samples[rarity] = list(rows.scalars().all())

    return RarityReport(missing=missing or 0, by_rarity=by_rarity, samples=samples)
