"""Application configuration via Pydantic Settings."""

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OversellPolicy(str, Enum):
    """What to do with a SELL larger than the quantity currently held."""

    CLAMP = "clamp"
    REJECT = "reject"


class Settings(BaseSettings):
    """All application settings, loaded from .env or environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Price Feed ──────────────────────────────────────────────
    tick_interval_seconds: float = Field(
        default=10.0, gt=0, description="Seconds between price feed cycles"
    )
    tick_max_move_pct: float = Field(
        default=0.2, ge=0, description="Max random move per tick, in percent"
    )
    feed_seed: int | None = Field(
        default=None, description="Seed for the synthetic feed (None = random)"
    )
    price_history_length: int = Field(
        default=100, gt=0, description="Ticks of price history kept per instrument"
    )

    # ── Portfolio & Alerts ──────────────────────────────────────
    oversell_policy: OversellPolicy = Field(
        default=OversellPolicy.CLAMP,
        description="Clamp over-sells to the held quantity, or reject them",
    )
    recent_notifications: int = Field(
        default=50, gt=0, description="Alert notifications kept in memory"
    )

    # ── Database ────────────────────────────────────────────────
    db_path: Path = Field(default=Path("ryaion.db"), description="SQLite database path")

    # ── Logging ─────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Console logging level")
    log_dir: Path = Field(default=Path("logs"), description="Directory for JSON log files")
    log_file_level: str = Field(default="DEBUG", description="File logging level")
    log_max_bytes: int = Field(default=5_000_000, description="Rotate log files at this size")
    log_backup_count: int = Field(default=3, description="Rotated log files to keep")


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
