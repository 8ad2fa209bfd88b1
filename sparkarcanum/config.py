from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "Spark Arcanum"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/sparkarcanum"

    # Local copies of bulk data (AllPrintings.json, rules text, rarity cache)
    data_dir: Path = Path(__file__).parent.parent / "data"

    all_printings_url: str = "https://mtgjson.com/api/v5/AllPrintings.json"
    rules_url: str = "https://media.wizards.com/2025/downloads/MagicCompRules%2020250404.txt"
    scryfall_api_url: str = "https://api.scryfall.com"

    # Seconds. Remote rarity lookups are a last resort, keep them short.
    http_timeout: float = 10.0
    download_timeout: float = 300.0

    import_batch_size: int = 100
    rarity_batch_size: int = 500

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    ruling_max_tokens: int = 1000

    @property
    def all_printings_path(self) -> Path:
        return self.data_dir / "AllPrintings.json"

    @property
    def rarity_cache_path(self) -> Path:
        return self.data_dir / "rarity-cache.json"

    @property
    def rules_path(self) -> Path:
        return self.data_dir / "mtg_comprehensive_rules.txt"


settings = Settings()


# =============================================================================
# IMPORT LIMITS
# =============================================================================

# Maximum rows returned by a card search before ranking
MAX_SEARCH_CANDIDATES = 500

# Rules passed to the ruling prompt
MAX_RULES_IN_PROMPT = 15
