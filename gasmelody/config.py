from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidConfigError

_LOGGER = logging.getLogger("gasmelody.config")

ENV_MODE = "GASMELODY_ENV"
ENV_JITTER_SEED = "GASMELODY_JITTER_SEED"
ENV_MASTER_GAIN = "GASMELODY_MASTER_GAIN"
ENV_DESCRIPTION_MODEL = "GASMELODY_DESCRIPTION_MODEL"

SAMPLE_RATE = 44_100
DEFAULT_DESCRIPTION_MODEL = "gemini/gemini-2.5-flash"


class EngineSettings(BaseModel):
    """Fixed engine constants plus the few knobs exposed through the environment."""

    sample_rate: int = Field(default=SAMPLE_RATE, gt=0)
    master_gain: float = Field(default=0.3, ge=0.0, le=1.0)
    render_tail_seconds: float = Field(default=2.0, ge=0.0)
    safety_tail_seconds: float = Field(default=0.5, gt=0.0)
    jitter_seed: int = 0
    strict: bool = True
    description_model: str = DEFAULT_DESCRIPTION_MODEL
    description_temperature: float = Field(default=0.8, ge=0.0, le=2.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        mode = env.get(ENV_MODE, "development").strip().lower()
        match mode:
            case "production" | "prod":
                values["strict"] = False
            case "development" | "dev" | "test" | "":
                values["strict"] = True
            case _:
                raise InvalidConfigError(f"{ENV_MODE} must be 'development' or 'production'")

        if seed := env.get(ENV_JITTER_SEED):
            values["jitter_seed"] = seed
        if gain := env.get(ENV_MASTER_GAIN):
            values["master_gain"] = gain
        if model := env.get(ENV_DESCRIPTION_MODEL):
            values["description_model"] = model

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            _LOGGER.warning("Invalid engine settings from environment: %s", exc)
            raise InvalidConfigError(str(exc)) from exc


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    return EngineSettings.from_env()
