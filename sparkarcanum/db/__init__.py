from sparkarcanum.db.database import get_session, get_session_factory, init_db
from sparkarcanum.db.operations import (
    create_deck,
    create_user,
    delete_deck,
    delete_user,
    get_card,
    get_cards,
    get_deck,
    get_decks_by_user,
    get_metadata,
    get_public_decks,
    get_rule,
    get_user,
    list_sets,
    search_card_candidates,
    search_rules,
    update_deck,
)

__all__ = [
    "create_deck",
    "create_user",
    "delete_deck",
    "delete_user",
    "get_card",
    "get_cards",
    "get_deck",
    "get_decks_by_user",
    "get_metadata",
    "get_public_decks",
    "get_rule",
    "get_session",
    "get_session_factory",
    "get_user",
    "init_db",
    "list_sets",
    "search_card_candidates",
    "search_rules",
    "update_deck",
]
