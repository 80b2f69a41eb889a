from __future__ import annotations

import yaml
from pathlib import Path
from typing import Dict, Any

from core.stage import DEFAULT_STAGE, normalize_stage

USER_CONFIG_PATH = Path.home() / ".taskdeck_config.yaml"
DEFAULT_LOG_LEVEL = "WARNING"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _load_config() -> Dict[str, Any]:
    if not USER_CONFIG_PATH.exists():
        return {}
    try:
        data = yaml.safe_load(USER_CONFIG_PATH.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def _save_config(data: Dict[str, Any]) -> None:
    if not data:
        if USER_CONFIG_PATH.exists():
            USER_CONFIG_PATH.unlink()
        return
    USER_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    USER_CONFIG_PATH.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


def _set_value(key: str, value: str) -> None:
    data = _load_config()
    value = (value or "").strip()
    if value:
        data[key] = value
    else:
        data.pop(key, None)
    _save_config(data)


def get_default_stage() -> str:
    return normalize_stage(str(_load_config().get("default_stage", "")), DEFAULT_STAGE)


def set_default_stage(value: str) -> None:
    stage = normalize_stage(value, None) if value else ""
    if value and not stage:
        raise ValueError(f"Unknown stage: {value}")
    _set_value("default_stage", stage)


def get_default_template() -> str:
    return str(_load_config().get("default_template", "")).strip()


def set_default_template(value: str) -> None:
    _set_value("default_template", value)


def get_log_level() -> str:
    level = str(_load_config().get("log_level", "")).strip().upper()
    return level if level in _LOG_LEVELS else DEFAULT_LOG_LEVEL


def set_log_level(value: str) -> None:
    level = (value or "").strip().upper()
    if level and level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value}")
    _set_value("log_level", level)
