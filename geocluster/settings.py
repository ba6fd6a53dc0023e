"""Settings loading for the geocluster CLI and service wiring."""
from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

import tomllib

NOMINATIM_URL = "https://nominatim.openstreetmap.org"

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "app": {
        "metrics_dir": "data/metrics",
    },
    "geocoder": {
        "base_url": NOMINATIM_URL,
        "user_agent": "Arcane-City-Events/1.0",
        "timeout_seconds": 10.0,
        "min_interval_seconds": 1.0,
        "batch_delay_seconds": 1.0,
    },
    "store": {
        "api_base_url": "",
        "timeout_seconds": 10.0,
    },
}


def load_settings(path: Path) -> Dict[str, Dict[str, Any]]:
    """Read the TOML configuration file layered over the defaults."""
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    if not path.exists():
        return settings
    with path.open("rb") as handle:
        loaded = tomllib.load(handle)
    for section, values in loaded.items():
        if isinstance(values, dict):
            settings.setdefault(section, {}).update(values)
        else:
            settings[section] = values
    return settings
