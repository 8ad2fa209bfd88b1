"""
Backfill missing card rarities.

Resolves a rarity for every card stored without one, using the rarity
cache, the local AllPrintings file, Scryfall (only when AllPrintings is
unavailable), and finally a heuristic.
"""

import argparse
import asyncio
import logging
from pathlib import Path

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sparkarcanum.config import settings
from sparkarcanum.db.database import async_session_factory
from sparkarcanum.models.summary import BackfillTally
from sparkarcanum.services.bulk_data import ensure_all_printings, open_bulk_index
from sparkarcanum.services.rarity import RarityResolver, backfill_rarities, repair_card_rarity
from sparkarcanum.services.rarity_cache import RarityCache

logger = logging.getLogger(__name__)

USER_AGENT = "SparkArcanum/1.0 Rarity Repair"


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        follow_redirects=True,
        timeout=settings.http_timeout,
    )


async def run_rarity_repair(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    cache_path: Path | None = None,
    bulk_path: Path | None = None,
    download: bool = False,
    batch_size: int | None = None,
) -> BackfillTally:
    """
    Fill in every missing rarity.

    Args:
        session_factory: Defaults to the application session factory
        cache_path: Rarity cache file. Defaults to settings.rarity_cache_path
        bulk_path: AllPrintings.json. Defaults to settings.all_printings_path
        download: Fetch AllPrintings first if there is no local copy
        batch_size: Cards loaded per query

    Raises:
        RarityCacheError: If the cache file is corrupt
    """
    session_factory = session_factory or async_session_factory
    bulk_path = bulk_path or settings.all_printings_path

    cache = RarityCache(cache_path or settings.rarity_cache_path).load()

    if download:
        try:
            await ensure_all_printings(bulk_path)
        except httpx.HTTPError as e:
            logger.warning("Could not download AllPrintings: %s", e)

    bulk_index = open_bulk_index(bulk_path)

    async with _http_client() as client, session_factory() as session:
        resolver = RarityResolver(cache, bulk_index, client)
        tally = await backfill_rarities(session, resolver, batch_size=batch_size)

    return tally


async def run_card_rarity_repair(
    card_uuid: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    cache_path: Path | None = None,
    bulk_path: Path | None = None,
) -> BackfillTally | None:
    """
    Re-resolve one card's rarity without falling back to the heuristic.

    Returns None if the card does not exist.
    """
    session_factory = session_factory or async_session_factory

    cache = RarityCache(cache_path or settings.rarity_cache_path).load()
    bulk_index = open_bulk_index(bulk_path)

    async with _http_client() as client, session_factory() as session:
        resolver = RarityResolver(cache, bulk_index, client, include_heuristic=False)
        tally = await repair_card_rarity(session, resolver, card_uuid)
        await session.commit()

    return tally


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Backfill missing card rarities")
    parser.add_argument("--card", help="repair a single card by uuid")
    parser.add_argument(
        "--download", action="store_true", help="download AllPrintings if it is missing"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.card:
        tally = asyncio.run(run_card_rarity_repair(args.card))
        if tally is None:
            logger.error("Card %s not found", args.card)
            raise SystemExit(1)
    else:
        tally = asyncio.run(run_rarity_repair(download=args.download))

    logger.info("Rarity repair finished: %s", tally.to_dict())


if __name__ == "__main__":
    main()
