"""
AnswerNet - Pydantic Configuration Schema

Validates config.yaml against a typed schema at load time.  Catches typos,
type errors, and invalid choices (unknown backend, unknown fetch mode)
before a store is opened.

# ---- Changelog ----
# [2026-10-17] Initial creation.
#   What: Pydantic v2 models mirroring every section of config.yaml
#         (store, network, logging) under the "answernet:" key.
#   How:  BaseModel with Field() constraints.  Unknown keys are ignored
#         for forward compatibility.  A missing file yields defaults; an
#         invalid file raises pydantic.ValidationError.
# -------------------
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("answernet.config")


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    backend: str = Field("memory", pattern=r"^(memory|sqlite)$")
    sqlite_path: str = "answernet.db"
    timeout: float = Field(30.0, gt=0.0)
    state_path: str = "answernet_state.json"


class NetworkConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    fetch_mode: str = Field("sequential", pattern=r"^(sequential|bulk)$")
    dedupe_hidden: bool = False


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: str = "INFO"
    format: str = "%(name)s %(levelname)s: %(message)s"

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"unknown logging level '{v}'")
        return level


class AnswerNetConfig(BaseModel):
    """Top-level validated config schema for config.yaml -> answernet: key."""
    model_config = ConfigDict(extra="ignore")

    store: StoreConfig = StoreConfig()
    network: NetworkConfig = NetworkConfig()
    logging: LoggingConfig = LoggingConfig()


def validate_config(raw: Dict[str, Any]) -> AnswerNetConfig:
    """Validate a raw config dict against the schema.

    Args:
        raw: The dict from yaml.safe_load(f).get("answernet", {}).

    Returns:
        Validated AnswerNetConfig with defaults filled in.

    Raises:
        pydantic.ValidationError: If config values are invalid.
    """
    return AnswerNetConfig(**raw)


def load_and_validate(config_path: str = "config.yaml") -> Dict[str, Any]:
    """Load config.yaml, validate it, and return it as a plain dict.

    Args:
        config_path: Path to config.yaml.

    Returns:
        Validated config as a dict.  Defaults if the file is not found.

    Raises:
        pydantic.ValidationError: If config values are invalid.
    """
    p = Path(config_path)
    if not p.exists():
        logger.warning("Config not found at %s, using defaults", config_path)
        return AnswerNetConfig().model_dump()

    with open(p, "r") as f:
        raw = yaml.safe_load(f)

    answernet_raw = raw.get("answernet", {}) if raw else {}

    try:
        validated = validate_config(answernet_raw or {})
    except Exception as e:
        logger.error("Config validation failed for %s: %s", config_path, e)
        raise
    logger.info("Config validated successfully from %s", config_path)
    return validated.model_dump()
