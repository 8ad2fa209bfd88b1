"""
Spark Arcanum services.

Rarity backfill, bulk data acquisition, and the AI rules assistant.
"""

from sparkarcanum.services.bulk_data import (
    download_all_printings,
    ensure_all_printings,
    open_bulk_index,
)
from sparkarcanum.services.rarity import (
    BulkRarityIndex,
    RarityResolver,
    Resolution,
    backfill_rarities,
    heuristic_rarity,
    rarity_report,
    repair_card_rarity,
)
from sparkarcanum.services.rarity_cache import RarityCache
from sparkarcanum.services.rulings import ask_ruling, find_relevant_rules

__all__ = [
    "BulkRarityIndex",
    "RarityCache",
    "RarityResolver",
    "Resolution",
    "ask_ruling",
    "backfill_rarities",
    "download_all_printings",
    "ensure_all_printings",
    "find_relevant_rules",
    "heuristic_rarity",
    "open_bulk_index",
    "rarity_report",
    "repair_card_rarity",
]
