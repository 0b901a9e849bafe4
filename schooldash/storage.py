"""
Persistent storage for the calendar settings.

This module manages one JSON file (by default
~/.schooldash/academic-calendar-settings.json) with the shape:

    {
      "notifications": {"email": bool, "push": bool, "reminders": bool},
      "display": {"showWeekends": bool, "showHolidays": bool, "colorCoding": bool},
      "integration": {"googleSync": bool, "outlookSync": bool}
    }

Only known sections and keys with boolean values are kept; everything else
in the file is ignored.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, dict[str, bool]] = {
    "notifications": {"email": True, "push": False, "reminders": True},
    "display": {"showWeekends": True, "showHolidays": True, "colorCoding": True},
    "integration": {"googleSync": False, "outlookSync": False},
}


def default_settings() -> dict[str, dict[str, bool]]:
    return copy.deepcopy(DEFAULT_SETTINGS)


def _merge(data: Any) -> dict[str, dict[str, bool]]:
    settings = default_settings()
    if not isinstance(data, dict):
        return settings
    for section, values in settings.items():
        stored = data.get(section)
        if not isinstance(stored, dict):
            continue
        for key in values:
            if isinstance(stored.get(key), bool):
                values[key] = stored[key]
    return settings


def load_settings(path: str | Path) -> dict[str, dict[str, bool]]:
    """
    Load settings from `path`, merged over the defaults.

    Returns the defaults if the file does not exist or is invalid; never
    raises.
    """
    settings_path = Path(path)

    # First run: nothing saved yet
    if not settings_path.exists():
        return default_settings()

    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        log.warning("Ignoring unreadable settings file %s: %s", settings_path, e)
        return default_settings()
    return _merge(data)


def save_settings(settings: dict[str, dict[str, bool]], path: str | Path) -> None:
    """
    Save settings to `path`. Creates parent directories if needed.
    """
    settings_path = Path(path)
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    payload = _merge(settings)
    settings_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def update_setting(settings: dict[str, dict[str, bool]], dotted_key: str, value: bool) -> dict[str, dict[str, bool]]:
    """
    Return a copy of `settings` with SECTION.KEY set to `value`.

    Raises KeyError for an unknown section or key.
    """
    section, _, key = dotted_key.partition(".")
    if section not in DEFAULT_SETTINGS or key not in DEFAULT_SETTINGS[section]:
        raise KeyError(dotted_key)
    updated = copy.deepcopy(settings)
    updated.setdefault(section, {})[key] = bool(value)
    return updated
