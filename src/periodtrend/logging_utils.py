"""Logging setup and step timing for the periodtrend CLI.

The engine modules only create named loggers (``periodtrend.<area>``) and
never configure handlers; this module wires them up for command-line runs:
  - console output in every case
  - a file handler under ``logging.logs_dir`` when configured
  - per-step timings recorded into a dict and logged at INFO

If the file handler cannot be attached the run keeps console logging.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Optional

from .config import EngineConfig

ROOT_LOGGER = "periodtrend"
SYSTEM_FMT = "[%(asctime)s] [%(levelname)s] %(message)s"


def _ensure_logs_dir(config: EngineConfig) -> Optional[Path]:
    if not config.logging.logs_dir:
        return None
    logs_dir = Path(config.logging.logs_dir).expanduser().resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _safe_add_file_handler(logger: logging.Logger, path: Path, fmt: str, level: int) -> None:
    try:
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(fmt))
        logger.addHandler(fh)
    except OSError as exc:
        logger.warning("[WARNING] Failed to attach file handler %s (%s)", str(path), exc)


def get_logger(name: str, config: EngineConfig) -> logging.Logger:
    """Configure the ``periodtrend`` logger tree and return ``name`` under it.

    - Console: always
    - File: ``<logs_dir>/<file_name>`` when ``logs_dir`` is set
    - Level: ``logging.level`` (INFO by default)
    """
    level = getattr(logging, config.logging.level, logging.INFO)
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    # Reset handlers to avoid duplication across repeated initializations
    root.handlers = []

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(SYSTEM_FMT))
    root.addHandler(sh)

    logs_dir = _ensure_logs_dir(config)
    if logs_dir is not None:
        _safe_add_file_handler(root, logs_dir / config.logging.file_name, SYSTEM_FMT, level)

    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def start_step_timer(step_name: str) -> float:
    """Start a timer for a CLI step and return the perf counter."""
    return time.perf_counter()


def end_step_timer(step_name: str, start_time: float, timing_dict: Dict[str, float], logger: logging.Logger) -> float:
    """End timer, record to ``timing_dict`` and log the duration."""
    elapsed = time.perf_counter() - float(start_time)
    timing_dict[step_name] = timing_dict.get(step_name, 0.0) + elapsed
    logger.info("Step %s completed in %.3f seconds", step_name, elapsed)
    return elapsed
