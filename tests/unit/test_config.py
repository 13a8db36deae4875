from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from periodtrend.config import (
    CONFIG_ENV_VAR,
    EngineConfig,
    load_and_validate_config,
    load_engine_config,
)
from periodtrend.logging_utils import end_step_timer, get_logger, start_step_timer


def test_defaults():
    config = EngineConfig()
    assert config.week_rule == "sunday"
    assert config.residual_days == "drop"
    assert config.default_target == 30
    assert config.logging.level == "INFO"
    assert config.logging.logs_dir is None
    assert config.export.output_dir == "exports"


def test_load_engine_config_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        """
engine:
  week_rule: fiscal
  residual_days: roll
  default_target: 12
logging:
  level: debug
  logs_dir: logs
export:
  output_dir: out
        """.strip()
    )
    config = load_engine_config(path)
    assert config.week_rule == "fiscal"
    assert config.residual_days == "roll"
    assert config.default_target == 12
    assert config.logging.level == "DEBUG"
    assert config.logging.logs_dir == "logs"
    assert config.export.output_dir == "out"


def test_flat_keys_are_accepted_but_engine_block_wins():
    config = load_and_validate_config({"week_rule": "iso", "residual_days": "reject", "engine": {"residual_days": "roll"}})
    assert config.week_rule == "iso"
    assert config.residual_days == "roll"
    assert load_and_validate_config(None) == EngineConfig()


@pytest.mark.parametrize(
    "raw",
    [
        {"engine": {"week_rule": "monday"}},
        {"engine": {"residual_days": "period14"}},
        {"engine": {"default_target": -1}},
        {"logging": {"level": "LOUD"}},
        {"engine": {"timestamp_field": ""}},
    ],
)
def test_invalid_values_are_rejected(raw):
    with pytest.raises(ValidationError):
        load_and_validate_config(raw)


def test_missing_explicit_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_engine_config(tmp_path / "nope.yaml")


def test_environment_variable_and_default_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert load_engine_config() == EngineConfig()

    (tmp_path / "config.yaml").write_text("engine:\n  week_rule: iso\n")
    assert load_engine_config().week_rule == "iso"

    other = tmp_path / "other.yaml"
    other.write_text("week_rule: fiscal\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(other))
    assert load_engine_config().week_rule == "fiscal"


def test_get_logger_writes_to_log_file_and_records_timings(tmp_path):
    config = load_and_validate_config({"logging": {"level": "INFO", "logs_dir": str(tmp_path / "logs")}})
    logger = get_logger("cli", config)
    assert logger.name == "periodtrend.cli"
    assert get_logger("periodtrend.trend", config).name == "periodtrend.trend"

    timings = {}
    start = start_step_timer("trend")
    elapsed = end_step_timer("trend", start, timings, logger)
    assert timings["trend"] == pytest.approx(elapsed)
    assert elapsed >= 0

    for handler in logging.getLogger("periodtrend").handlers:
        handler.flush()
    text = (tmp_path / "logs" / "periodtrend.log").read_text(encoding="utf-8")
    assert "Step trend completed" in text

    root = logging.getLogger("periodtrend")
    for handler in root.handlers:
        handler.close()
    root.handlers = []
