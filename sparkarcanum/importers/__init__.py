"""
Importers for upstream bulk data.

MTGJSON AllPrintings for cards and sets, and the Wizards of the Coast
Comprehensive Rules text for rules.
"""

from sparkarcanum.importers.mtgjson import (
    import_all_printings,
    import_document,
    load_all_printings,
    map_card,
)
from sparkarcanum.importers.rules import fetch_rules_text, parse_rules, sync_rules

__all__ = [
    "fetch_rules_text",
    "import_all_printings",
    "import_document",
    "load_all_printings",
    "map_card",
    "parse_rules",
    "sync_rules",
]
