"""Engine configuration: YAML on disk, validated with Pydantic."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

CONFIG_ENV_VAR = "PERIODTREND_CONFIG"
DEFAULT_CONFIG_PATH = Path("config.yaml")


class LoggingConfig(BaseModel):
    """Where and how loudly the CLI logs."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", description="Root level for periodtrend loggers")
    logs_dir: Optional[str] = Field(None, description="Directory for the log file; console only when unset")
    file_name: str = Field("periodtrend.log", description="Log file name inside logs_dir")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        return str(v).upper() if v is not None else v


class ExportConfig(BaseModel):
    output_dir: str = Field("exports", description="Default directory for trend exports")


class EngineConfig(BaseModel):
    """Complete engine configuration."""

    week_rule: Literal["sunday", "iso", "fiscal"] = Field(
        "sunday", description="Week numbering used for weekly buckets"
    )
    residual_days: Literal["drop", "roll", "reject"] = Field(
        "drop", description="What happens to days after P13 and before the next anchor"
    )
    default_target: float = Field(30, ge=0, description="Per-period KPI target when none is configured")
    timestamp_field: str = Field("timestamp", min_length=1)
    value_field: str = Field("value", min_length=1)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)


def load_config(path: str | Path) -> Dict:
    """Load a YAML configuration file."""

    with open(path, "r", encoding="utf-8") as stream:
        return yaml.safe_load(stream) or {}


def load_and_validate_config(config_dict: dict) -> EngineConfig:
    """
    Validate a raw configuration mapping.

    Engine settings live under ``engine:``; ``logging:`` and ``export:`` are
    top-level blocks. Flat engine keys at the top level are accepted too.

    Raises:
        ValidationError: If configuration is invalid
    """
    config_dict = config_dict or {}
    engine = dict(config_dict.get("engine") or {})
    for key in EngineConfig.model_fields:
        if key in ("logging", "export"):
            continue
        if key in config_dict and key not in engine:
            engine[key] = config_dict[key]
    if "logging" in config_dict:
        engine["logging"] = config_dict["logging"] or {}
    if "export" in config_dict:
        engine["export"] = config_dict["export"] or {}
    return EngineConfig(**engine)


def load_engine_config(path: str | Path | None = None) -> EngineConfig:
    """Load and validate configuration from ``path``, ``$PERIODTREND_CONFIG`` or ./config.yaml.

    A missing file yields the defaults.
    """
    candidate = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    if not candidate.exists():
        if path is not None:
            raise FileNotFoundError(f"Config file not found: {candidate}")
        logging.getLogger("periodtrend.config").debug("No config at %s; using defaults", candidate)
        return EngineConfig()
    return load_and_validate_config(load_config(candidate))
