"""
Domain exceptions.

Fatal conditions (unreadable bulk data, a card without its identifier)
propagate to the caller. Per-record failures are caught where the record
is written and never use these types.
"""


class SparkArcanumError(Exception):
    """Base class for all application errors."""

    pass


class BulkDataError(SparkArcanumError):
    """Raised when a bulk data file cannot be read or has the wrong shape."""

    pass


class MissingIdentifierError(SparkArcanumError):
    """Raised when a card record has no MTGJSON uuid."""

    def __init__(self, card_name: str | None, set_code: str | None = None) -> None:
        self.card_name = card_name
        self.set_code = set_code
        where = f" in set {set_code}" if set_code else ""
        super().__init__(f"Card {card_name!r}{where} is missing its uuid")


class RarityCacheError(SparkArcanumError):
    """Raised when the rarity cache file exists but cannot be parsed."""

    pass


class RulingUnavailableError(SparkArcanumError):
    """Raised when AI rulings are requested but not configured."""

    pass


class DeckPermissionError(SparkArcanumError):
    """Raised when a user modifies or views a private deck they do not own."""

    def __init__(self, deck_id: str, user_id: str) -> None:
        self.deck_id = deck_id
        self.user_id = user_id
        super().__init__(f"User {user_id} may not access deck {deck_id}")
