from __future__ import annotations

import os
from typing import Any, Dict

from pydantic import BaseModel, Field

ENV_PREFIX = "TASKBOARD_"


class PolicyConfig(BaseModel):
    """Limits enforced by the creation and move policies."""

    max_lists_per_board: int = Field(default=20, ge=1)
    recommended_lists_per_board: int = Field(default=10, ge=1)
    warning_threshold: int = Field(default=15, ge=1)
    max_cards_per_list: int = Field(default=100, ge=1)
    allow_cross_board_moves: bool = True
    max_retries: int = Field(default=3, ge=0)

    @classmethod
    def from_env(cls) -> "PolicyConfig":
        """Build a config from ``TASKBOARD_<FIELD>`` variables.

        Unset variables keep their defaults; pydantic converts and validates
        the raw strings.
        """
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        return cls(**values)
