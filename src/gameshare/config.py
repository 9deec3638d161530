"""Configuration management for gameshare.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Logging
    log_level: str
    log_file: Optional[Path]

    # Pagination
    page_size: int
    max_page_size: int

    # Clock offset applied by the CLI, in days
    time_offset_days: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "GAMESHARE_DB_PATH",
            str(Path.home() / ".gameshare" / "gameshare.db"),
        )
        log_file = os.environ.get("GAMESHARE_LOG_FILE")

        return cls(
            db_path=Path(db_path_str).expanduser(),
            log_level=os.environ.get("GAMESHARE_LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
            page_size=int(os.environ.get("GAMESHARE_PAGE_SIZE", "10")),
            max_page_size=int(os.environ.get("GAMESHARE_MAX_PAGE_SIZE", "100")),
            time_offset_days=int(os.environ.get("GAMESHARE_TIME_OFFSET_DAYS", "0")),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.page_size < 1:
            errors.append("GAMESHARE_PAGE_SIZE must be at least 1")
        if self.max_page_size < self.page_size:
            errors.append("GAMESHARE_MAX_PAGE_SIZE must not be below GAMESHARE_PAGE_SIZE")
        if self.log_level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            errors.append(f"Unknown log level: {self.log_level}")

        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
