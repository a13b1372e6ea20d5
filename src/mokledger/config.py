"""Environment driven configuration for MokLedger."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .flags import FeatureFlagRegistry, default_flags

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class Settings:
    sqlite_file: str = "mokledger.db"
    reward_repeat_completion: bool = True
    log_path: Optional[Path] = None

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.sqlite_file}"

    def feature_flags(self) -> FeatureFlagRegistry:
        return default_flags(reward_repeat_completion=self.reward_repeat_completion)


def load_settings() -> Settings:
    """Read settings from the process environment, after loading ``.env``."""

    load_dotenv()
    log_path = os.environ.get("MOKLEDGER_LOG_PATH", "").strip()
    return Settings(
        sqlite_file=os.environ.get("MOKLEDGER_SQLITE", "mokledger.db"),
        reward_repeat_completion=_env_flag("MOKLEDGER_REWARD_REPEAT_COMPLETION", True),
        log_path=Path(log_path) if log_path else None,
    )


__all__ = ["Settings", "load_settings"]
