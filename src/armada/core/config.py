from __future__ import annotations

from typing import Final

from decouple import Csv, config


def _optional_int(name: str) -> int | None:
    """Return env var as int, or None if unset/blank."""
    value = config(name, default="", cast=str).strip()
    return int(value) if value else None


ENVIRONMENT: Final[str] = config("ENVIRONMENT", default="production")
DEBUG: Final[bool] = ENVIRONMENT != "production"

APP_VERSION: Final[str] = config("APP_VERSION", default="dev")
LOG_LEVEL: Final[str] = config("LOG_LEVEL", default="INFO", cast=str).upper()

# --- Board & fleet ---
BOARD_SIZE: Final[int] = config("BOARD_SIZE", default=10, cast=int)
FLEET_LENGTHS: Final[tuple[int, ...]] = tuple(
    config("FLEET_LENGTHS", default="5,4,3,3,2", cast=Csv(int))
)
SHIP_NAMES: Final[dict[int, str]] = {
    0: "Carrier",
    1: "Battleship",
    2: "Cruiser",
    3: "Submarine",
    4: "Destroyer",
}
PLACEMENT_MAX_ATTEMPTS: Final[int] = config(
    "PLACEMENT_MAX_ATTEMPTS", default=1000, cast=int
)

# --- Computer opponent ---
AI_RANDOM_SEED: Final[int | None] = _optional_int("AI_RANDOM_SEED")
AI_DETERMINISTIC: Final[bool] = config("AI_DETERMINISTIC", default=False, cast=bool)

# --- Sessions ---
MAX_SESSIONS: Final[int] = config("MAX_SESSIONS", default=1000, cast=int)
