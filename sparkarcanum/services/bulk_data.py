"""
MTGJSON bulk data acquisition.

AllPrintings.json is large (several hundred MB), so it is streamed to a
temporary file and renamed into place once complete.
"""

import logging
from pathlib import Path

import httpx

from sparkarcanum.config import settings
from sparkarcanum.errors import BulkDataError
from sparkarcanum.importers.mtgjson import load_all_printings
from sparkarcanum.services.rarity import BulkRarityIndex

logger = logging.getLogger(__name__)

USER_AGENT = "SparkArcanum/1.0 MTGJSON Importer"


async def download_all_printings(
    output_path: Path | None = None,
    url: str | None = None,
    timeout: float | None = None,
) -> Path:
    """
    Download the latest AllPrintings.json.

    Args:
        output_path: Where to save the file. Defaults to settings.all_printings_path
        url: Download URL. Defaults to settings.all_printings_url
        timeout: Seconds. Defaults to settings.download_timeout

    Returns:
        Path to downloaded file.

    Raises:
        httpx.HTTPError: If download fails. No partial file is left behind.
    """
    output_path = output_path or settings.all_printings_path
    url = url or settings.all_printings_url
    timeout = timeout if timeout is not None else settings.download_timeout

    output_path.parent.mkdir(parents=True, exist_ok=True)
    partial_path = output_path.with_name(output_path.name + ".part")

    logger.info("Downloading AllPrintings from %s", url)
    try:
        async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as client:
            async with client.stream("GET", url, timeout=timeout) as response:
                response.raise_for_status()
                with open(partial_path, "wb") as f:
                    async for chunk in response.aiter_bytes(8192):
                        f.write(chunk)
        partial_path.replace(output_path)
    except Exception:
        partial_path.unlink(missing_ok=True)
        raise

    logger.info("Saved AllPrintings to %s (%d bytes)", output_path, output_path.stat().st_size)
    return output_path


async def ensure_all_printings(path: Path | None = None, url: str | None = None) -> Path:
    """Return the local AllPrintings path, downloading it only if absent."""
    path = path or settings.all_printings_path
    if path.exists():
        return path
    return await download_all_printings(path, url)


def open_bulk_index(path: Path | None = None) -> BulkRarityIndex | None:
    """
    Build a rarity index from a local AllPrintings file.

    Returns:
        The index, or None if the file is missing or unreadable.
    """
    path = path or settings.all_printings_path
    if not path.exists():
        logger.warning("AllPrintings not found at %s, bulk rarity lookup disabled", path)
        return None

    try:
        document = load_all_printings(path)
    except BulkDataError as e:
        logger.warning("Bulk rarity lookup disabled: %s", e)
        return None

    return BulkRarityIndex.from_document(document)
