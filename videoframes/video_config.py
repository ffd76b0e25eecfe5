from __future__ import annotations

import json
import os
from typing import Any

PACKAGE_DIR = os.path.dirname(__file__)
CONFIG_PATH = os.path.join(PACKAGE_DIR, "video_config.json")

DEFAULT_CFG: dict[str, Any] = {
    "enabled": True,
    "debug_enabled": False,
    "log_level": "info",
    "module_logs": {},
    "module_levels": {},
    "player_width": 445,
    "player_height": 364,
    "button_icon_size": 16,
    "collapsed_icon": "go-next",
    "expanded_icon": "go-down",
    "page_directory": "",
    "remove_pages_on_destroy": True,
    "websites": [],
}

_BOOL_KEYS = ("enabled", "debug_enabled", "remove_pages_on_destroy")

_SIZE_LIMITS = {
    "player_width": (64, 4096),
    "player_height": (48, 4096),
    "button_icon_size": (8, 128),
}


def _parse_bool_like(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in ("1", "true", "yes", "on"):
            return True
        if raw in ("0", "false", "no", "off"):
            return False
    return fallback


def _parse_size(value: Any, key: str) -> int:
    lo, hi = _SIZE_LIMITS[key]
    try:
        num = int(value)
    except (TypeError, ValueError):
        return int(DEFAULT_CFG[key])
    return max(lo, min(hi, num))


def _normalize_websites(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    out: list[dict[str, Any]] = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        entry = {k: str(raw.get(k) or "").strip() for k in ("id", "regex", "embed")}
        if not all(entry.values()):
            continue
        entry["ignore_case"] = _parse_bool_like(raw.get("ignore_case"), False)
        out.append(entry)
    return out


def _normalize(cfg: dict[str, Any]) -> dict[str, Any]:
    for key in _BOOL_KEYS:
        cfg[key] = _parse_bool_like(cfg.get(key), bool(DEFAULT_CFG[key]))
    for key in _SIZE_LIMITS:
        cfg[key] = _parse_size(cfg.get(key, DEFAULT_CFG[key]), key)
    for key in ("module_logs", "module_levels"):
        if not isinstance(cfg.get(key), dict):
            cfg[key] = {}
    for key in ("log_level", "collapsed_icon", "expanded_icon", "page_directory"):
        val = cfg.get(key)
        if not isinstance(val, str):
            cfg[key] = DEFAULT_CFG[key]
        else:
            cfg[key] = val.strip()
    if not cfg["collapsed_icon"]:
        cfg["collapsed_icon"] = DEFAULT_CFG["collapsed_icon"]
    if not cfg["expanded_icon"]:
        cfg["expanded_icon"] = DEFAULT_CFG["expanded_icon"]
    cfg["websites"] = _normalize_websites(cfg.get("websites"))
    return cfg


def default_config() -> dict[str, Any]:
    return _normalize(json.loads(json.dumps(DEFAULT_CFG)))


def load_video_config(path: str | None = None) -> dict[str, Any]:
    path = path or CONFIG_PATH
    if not os.path.exists(path):
        return default_config()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return default_config()
    if not isinstance(data, dict):
        return default_config()
    return _normalize(data)


def save_video_config(cfg: dict[str, Any], path: str | None = None) -> None:
    path = path or CONFIG_PATH
    _normalize(cfg)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(cfg, f, ensure_ascii=False, indent=2)


def set_config_value(key: str, value: Any, path: str | None = None) -> dict[str, Any]:
    if key not in DEFAULT_CFG:
        raise KeyError(key)
    cfg = load_video_config(path)
    cfg[key] = value
    save_video_config(cfg, path)
    return cfg
