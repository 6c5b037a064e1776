"""League configuration management."""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import POSITION_NAMES

CONFIG_ENV_VAR = "FANTASY_CRICKET_CONFIG"


def _default_main_slots() -> Dict[str, int]:
    return {"Batsman": 2, "Bowler": 2, "All-rounder": 2, "Wicket-keeper": 1}


def _default_substitute_slots() -> Dict[str, int]:
    return {name: 1 for name in POSITION_NAMES}


class LeagueConfig(BaseModel):
    """
    Every tunable number of the game in one versioned structure.

    The team shape has changed several times (5, 6, 7 and then 11 players;
    one and then two all-rounders), so nothing here is hardcoded elsewhere.
    """
    model_config = ConfigDict(extra="forbid")

    version: int = Field(default=1, ge=1)
    roster_size: int = Field(default=11, ge=1)
    main_slots: Dict[str, int] = Field(default_factory=_default_main_slots)
    substitute_slots: Dict[str, int] = Field(default_factory=_default_substitute_slots)

    starting_budget: int = Field(default=1_000_000, ge=0)
    default_player_price: int = Field(default=100_000, ge=0)
    min_player_price: int = Field(default=50_000, ge=0)
    reprice_base: int = Field(default=100_000, ge=0)
    price_per_point: int = Field(default=1_000, ge=0)

    captain_multiplier: int = Field(default=2, ge=1)
    min_round_multiplier: float = Field(default=0.1, gt=0)
    max_round_multiplier: float = Field(default=10.0, gt=0)

    @field_validator("main_slots", "substitute_slots")
    @classmethod
    def validate_position_slots(cls, v):
        """Ensure slot maps only name real positions."""
        for pos, count in v.items():
            if pos not in POSITION_NAMES:
                raise ValueError(f"Invalid position: {pos}")
            if count < 0:
                raise ValueError(f"Invalid slot count for {pos}: {count}")
        return v

    def main_cap(self, position: str) -> int:
        return self.main_slots.get(position, 0)

    def substitute_cap(self, position: str):
        """None means the position is only bounded by roster_size."""
        return self.substitute_slots.get(position)


def load_config(path) -> LeagueConfig:
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        return LeagueConfig(**json.load(f))


@lru_cache(maxsize=1)
def get_config() -> LeagueConfig:
    """
    Load the league configuration.

    Reads the JSON file named by FANTASY_CRICKET_CONFIG when it is set,
    otherwise returns the defaults. Cached after first load.
    """
    path = os.environ.get(CONFIG_ENV_VAR)
    if path:
        return load_config(path)
    return LeagueConfig()


def clear_config_cache() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    get_config.cache_clear()
