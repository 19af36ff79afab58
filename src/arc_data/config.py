"""Configuration module for arc-data.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path


def _positive_int(name: str, default: str, minimum: int = 1) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
        if value < minimum:
            raise ValueError(f"Value must be >= {minimum}, got {value}")
    except ValueError as e:
        raise ValueError(f"Invalid {name} value '{raw}': {e}") from e
    return value


@dataclass
class Config:
    """Application configuration."""

    data_dir: Path
    store_db: Path
    index_db: Path
    index_debounce_ms: int
    chunk_size: int
    reindex_page_size: int
    export_page_size: int

    @property
    def index_debounce(self) -> float:
        """Debounce window in seconds."""
        return self.index_debounce_ms / 1000

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        default_dir = str(Path.home() / ".arc-data")
        data_dir = Path(os.getenv("ARC_DATA_DIR", default_dir)).expanduser()

        store_db = Path(os.getenv("ARC_STORE_DB", str(data_dir / "store.db"))).expanduser()
        index_db = Path(os.getenv("ARC_INDEX_DB", str(data_dir / "index.db"))).expanduser()

        # 0 disables debouncing (changes are indexed on the next timer tick)
        index_debounce_ms = _positive_int("ARC_INDEX_DEBOUNCE_MS", "25", minimum=0)
        chunk_size = _positive_int("ARC_CHUNK_SIZE", "200")
        reindex_page_size = _positive_int("ARC_REINDEX_PAGE_SIZE", "800")
        export_page_size = _positive_int("ARC_EXPORT_PAGE_SIZE", "1000")

        return cls(
            data_dir=data_dir,
            store_db=store_db,
            index_db=index_db,
            index_debounce_ms=index_debounce_ms,
            chunk_size=chunk_size,
            reindex_page_size=reindex_page_size,
            export_page_size=export_page_size,
        )


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
