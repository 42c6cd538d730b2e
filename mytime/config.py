"""Application configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Config:
    """Where the application keeps its data."""

    db_path: Path

    @property
    def db_url(self) -> str:
        """The database location as a ``file://`` URL."""
        return f"file://{self.db_path}"


def load() -> Config:
    """Build the configuration from the environment."""
    home = os.environ.get("HOME", "")
    return Config(db_path=Path(f"{home}/.local/share/mytime/mytime.sqlite"))