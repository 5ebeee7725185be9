import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

_TRUE_VALUES = ("true", "1", "yes")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _optional_int_env(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return _int_env(name, 0)


@dataclass(frozen=True)
class Settings:
    """Process-wide defaults for matches and leagues."""

    starting_score: int = 501
    win_rule: str = "exact_zero"
    scoring_unit: str = "per_dart"
    min_checkout_remainder: int = 0
    points_for_win: int = 3
    points_for_draw: int = 1
    points_for_loss: int = 0
    random_seed: Optional[int] = None
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read OCHE_* variables (after .env) into a Settings object."""
    return Settings(
        starting_score=_int_env("OCHE_STARTING_SCORE", 501),
        win_rule=os.getenv("OCHE_WIN_RULE", "exact_zero").strip().lower(),
        scoring_unit=os.getenv("OCHE_SCORING_UNIT", "per_dart").strip().lower(),
        min_checkout_remainder=_int_env("OCHE_MIN_CHECKOUT_REMAINDER", 0),
        points_for_win=_int_env("OCHE_POINTS_FOR_WIN", 3),
        points_for_draw=_int_env("OCHE_POINTS_FOR_DRAW", 1),
        points_for_loss=_int_env("OCHE_POINTS_FOR_LOSS", 0),
        random_seed=_optional_int_env("OCHE_RANDOM_SEED"),
        log_level=os.getenv("OCHE_LOG_LEVEL", "INFO").strip().upper(),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return cached settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the configured log level to the oche logger hierarchy."""
    level_name = (level or get_settings().log_level).upper()
    logging.getLogger("oche").setLevel(getattr(logging, level_name, logging.INFO))
    if os.getenv("OCHE_LOG_BASIC", "false").lower() in _TRUE_VALUES:
        logging.basicConfig(
            level=level_name,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
