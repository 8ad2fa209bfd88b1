from sparkarcanum.api.admin import router as admin_router
from sparkarcanum.api.cards import router as cards_router
from sparkarcanum.api.decks import router as decks_router
from sparkarcanum.api.health import router as health_router
from sparkarcanum.api.rules import router as rules_router
from sparkarcanum.api.rulings import router as rulings_router

__all__ = [
    "admin_router",
    "cards_router",
    "decks_router",
    "health_router",
    "rules_router",
    "rulings_router",
]
