from __future__ import annotations
import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict

from .models import AppSettings

logger = logging.getLogger(__name__)

# settings field -> key in config.json
KEYS = {
    "default_hour": "defaultHour",
    "poll_interval_ms": "pollIntervalMs",
    "notification_title": "notificationTitle",
    "timezone": "timezone",
}

MIN_POLL_INTERVAL_MS = 100


def _parse_int(raw: Any, default: int, lo: int, hi: int) -> int:
    try:
        v = int(raw)
    except (TypeError, ValueError):
        return default
    if isinstance(raw, bool) or not lo <= v <= hi:
        return default
    return v


def settings_from_dict(d: Dict[str, Any]) -> AppSettings:
    defaults = AppSettings()
    hour = _parse_int(d.get("defaultHour", defaults.default_hour), defaults.default_hour, 0, 23)
    poll = _parse_int(
        d.get("pollIntervalMs", defaults.poll_interval_ms),
        defaults.poll_interval_ms,
        MIN_POLL_INTERVAL_MS,
        24 * 3600 * 1000,
    )
    title = d.get("notificationTitle")
    if not isinstance(title, str) or not title.strip():
        title = defaults.notification_title
    tz = d.get("timezone")
    if not isinstance(tz, str) or not tz.strip():
        tz = None

    settings = AppSettings(default_hour=hour, poll_interval_ms=poll, notification_title=title, timezone=tz)
    for f in fields(AppSettings):
        key = KEYS[f.name]
        if key in d and d[key] != getattr(settings, f.name):
            logger.warning("Invalid config value %s=%r, using %r", key, d[key], getattr(settings, f.name))
    return settings


def settings_to_dict(settings: AppSettings) -> Dict[str, Any]:
    return {KEYS[k]: v for k, v in asdict(settings).items()}


def save_settings(path: Path, settings: AppSettings) -> None:
    Path(path).write_text(json.dumps(settings_to_dict(settings), indent=2), encoding="utf-8")


def load_settings(path: Path) -> AppSettings:
    """
    Read config.json, writing one with the defaults on first run.
    Unreadable files and bad values fall back to defaults.
    """
    path = Path(path)
    if not path.exists():
        settings = AppSettings()
        try:
            save_settings(path, settings)
        except OSError:
            logger.exception("Error writing default config to %s", path)
        return settings

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.exception("Error loading config from %s", path)
        return AppSettings()
    if not isinstance(data, dict):
        logger.error("Config %s is not a JSON object, using defaults", path)
        return AppSettings()
    return settings_from_dict(data)
