"""
File-backed cache of resolved card rarities.

Maps card uuid -> rarity. The store is an explicit object handed to the
resolver rather than module state, with the lifecycle:

    cache = RarityCache(path)
    cache.load()
    cache.get(uuid) / cache.put(uuid, rarity)   # any number of times
    cache.flush()

Writes are not transactional; the last writer to flush wins.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from sparkarcanum.errors import RarityCacheError

logger = logging.getLogger(__name__)


class RarityCache:
    """Memoization layer over the rarity resolution chain."""

    def __init__(self, path: Path | None = None) -> None:
        """Initialize cache.

        Args:
            path: JSON file backing the cache. None keeps the cache in memory only.
        """
        self.path = path
        self._entries: dict[str, str] = {}
        self._dirty = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, card_uuid: object) -> bool:
        return card_uuid in self._entries

    @property
    def dirty(self) -> bool:
        """True if entries were added since the last load or flush."""
        return self._dirty

    def load(self) -> "RarityCache":
        """
        Read the cache file, replacing any in-memory entries.

        A missing file yields an empty cache.

        Raises:
            RarityCacheError: If the file exists but is not a JSON object of strings
        """
        self._entries = {}
        self._dirty = False

        if self.path is None or not self.path.exists():
            return self

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RarityCacheError(f"Rarity cache at {self.path} is corrupted: {e}") from e

        if not isinstance(data, dict):
            raise RarityCacheError(f"Rarity cache at {self.path} is not a JSON object")

        self._entries = {str(k): str(v) for k, v in data.items() if v}
        logger.info("Loaded %d rarity records from cache", len(self._entries))
        return self

    def get(self, card_uuid: str) -> str | None:
        return self._entries.get(card_uuid)

    def put(self, card_uuid: str, rarity: str) -> None:
        if self._entries.get(card_uuid) != rarity:
            self._entries[card_uuid] = rarity
            self._dirty = True

    def flush(self) -> bool:
        """
        Write the cache to disk if it changed.

        The file is written to a temporary sibling and renamed into place
        so readers never see a half-written file.

        Returns:
            True if the file was written.
        """
        if self.path is None or not self._dirty:
            return False

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._entries, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        self._dirty = False
        logger.info("Saved %d rarity records to %s", len(self._entries), self.path)
        return True
