"""Global app configuration (webhook, fallback, chat timers)."""

import json
import os
from pathlib import Path
from typing import Any

from .core import data_dir


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() != "false"


def _config_defaults() -> dict[str, Any]:
    """Defaults, seeded from the environment (.env is loaded by the app)."""
    return {
        "webhook_url": os.getenv("N8N_WEBHOOK_URL", ""),
        "use_local_fallback": _env_flag("USE_LOCAL_FALLBACK", True),
        "ai_timeout": float(os.getenv("AI_TIMEOUT", "20")),
        "greeting_delay_seconds": 1.0,
        "card_drop_period_seconds": 300.0,
        "card_drop_dwell_seconds": 300.0,
    }


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = _config_defaults()
    path = _config_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for key, value in stored.items():
            if key in config:
                config[key] = value
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Unknown keys are ignored. Returns full config."""
    config = get_config()
    for key, value in fields.items():
        if key in config:
            config[key] = value
    _config_path().write_text(json.dumps(config, indent=2))
    return config
