"""
Update the Comprehensive Rules.

Downloads the current rules text from Wizards of the Coast (or reads a
local copy) and syncs it into the rules table.
"""

import argparse
import asyncio
import logging
from pathlib import Path

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sparkarcanum.config import settings
from sparkarcanum.db.database import async_session_factory, init_db
from sparkarcanum.importers.rules import fetch_rules_text, parse_rules, read_rules_file, sync_rules
from sparkarcanum.models.summary import RulesSyncSummary

logger = logging.getLogger(__name__)


async def run_rules_update(
    path: Path | None = None,
    url: str | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> RulesSyncSummary:
    """
    Parse the rules and sync them into the database.

    Args:
        path: Local rules text file. When omitted the rules are downloaded.
        url: Download URL. Defaults to settings.rules_url
        session_factory: Defaults to the application session factory

    Raises:
        httpx.HTTPError: If the download fails
    """
    session_factory = session_factory or async_session_factory

    if path is not None:
        text = read_rules_file(path)
    else:
        async with httpx.AsyncClient(
            follow_redirects=True, timeout=settings.download_timeout
        ) as client:
            text = await fetch_rules_text(client, url or settings.rules_url)

    rules = parse_rules(text)
    if not rules:
        logger.warning("No rules found in rules text, nothing to sync")
        return RulesSyncSummary()

    async with session_factory() as session:
        summary = await sync_rules(session, rules)
        await session.commit()

    return summary


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Import the Comprehensive Rules")
    parser.add_argument("--path", type=Path, help="read rules from a local text file")
    parser.add_argument("--url", help="download rules from this URL")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    async def _run() -> RulesSyncSummary:
        await init_db()
        return await run_rules_update(args.path, args.url)

    summary = asyncio.run(_run())
    logger.info("Rules update finished: %s", summary.to_dict())


if __name__ == "__main__":
    main()
