"""
Import MTGJSON card data.

Loads AllPrintings.json into the cards and card_sets tables, downloading
it first when there is no local copy. Can be run as a standalone script
or called from a scheduler.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sparkarcanum.config import settings
from sparkarcanum.db.database import async_session_factory, init_db
from sparkarcanum.importers.mtgjson import import_all_printings
from sparkarcanum.models.summary import ImportSummary
from sparkarcanum.services.bulk_data import download_all_printings, ensure_all_printings

logger = logging.getLogger(__name__)


async def run_card_import(
    path: Path | None = None,
    download: bool = False,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    batch_size: int | None = None,
) -> ImportSummary:
    """
    Run a full card import.

    Args:
        path: AllPrintings.json location. Defaults to settings.all_printings_path
        download: Fetch a fresh copy even if one exists locally
        session_factory: Defaults to the application session factory
        batch_size: Cards per transaction

    Returns:
        ImportSummary of the run
    """
    path = path or settings.all_printings_path
    session_factory = session_factory or async_session_factory

    if download:
        path = await download_all_printings(path)
    else:
        path = await ensure_all_printings(path)

    return await import_all_printings(session_factory, path, batch_size=batch_size)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Import MTGJSON AllPrintings into the database")
    parser.add_argument("--path", type=Path, help="AllPrintings.json location")
    parser.add_argument(
        "--download", action="store_true", help="download a fresh copy before importing"
    )
    parser.add_argument("--batch-size", type=int, help="cards per transaction")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    async def _run() -> ImportSummary:
        await init_db()
        return await run_card_import(args.path, args.download, batch_size=args.batch_size)

    summary = asyncio.run(_run())
    logger.info("Import finished: %s", summary.to_dict())


if __name__ == "__main__":
    main()
