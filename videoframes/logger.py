from __future__ import annotations

import inspect
import os
import time
from typing import Any, Callable

PACKAGE_DIR = os.path.dirname(__file__)
DEFAULT_LOG_PATH = os.path.join(PACKAGE_DIR, "videoframes.log")
LOG_PATH = DEFAULT_LOG_PATH

_LEVELS = ("trace", "debug", "info", "warn", "error")

# Module name (last dotted part) -> tag written in front of each line.
_SOURCE_ALIASES = {
    "video_controller": "controller",
    "video_transcript": "transcript",
    "video_toggle": "toggle",
    "video_registry": "registry",
    "video_page": "page",
    "video_websites": "websites",
    "video_scanner": "scanner",
    "video_config": "config",
    "init": "core",
}

_ENABLED = False
_LEVEL = "info"
_MODULE_LOGS: dict[str, bool] = {}
_MODULE_LEVELS: dict[str, str] = {}


def _level_name(level: Any) -> str:
    name = str(level or "").strip().lower()
    if name == "warning":
        name = "warn"
    return name if name in _LEVELS else "info"


def _rank(level: Any) -> int:
    return _LEVELS.index(_level_name(level))


def _tag(name: Any) -> str:
    tag = str(name or "").strip().strip("_")
    if not tag:
        return "core"
    return _SOURCE_ALIASES.get(tag, tag)


def _by_tag(value: Any, cast: Callable[[Any], Any]) -> dict[str, Any]:
    if not isinstance(value, dict):
        return {}
    return {_tag(key): cast(raw) for key, raw in value.items()}


def configure(
    debug_enabled: Any = None,
    level: Any = None,
    module_logs: Any = None,
    module_levels: Any = None,
) -> None:
    """Apply the logging keys of the plugin config; no arguments resets."""
    global _ENABLED, _LEVEL, _MODULE_LOGS, _MODULE_LEVELS
    if all(v is None for v in (debug_enabled, level, module_logs, module_levels)):
        _ENABLED, _LEVEL, _MODULE_LOGS, _MODULE_LEVELS = False, "info", {}, {}
        return
    _ENABLED = bool(debug_enabled)
    _LEVEL = _level_name(level)
    _MODULE_LOGS = _by_tag(module_logs, bool)
    _MODULE_LEVELS = _by_tag(module_levels, _level_name)


def set_log_path(path: str | None) -> None:
    global LOG_PATH
    LOG_PATH = str(path) if path else DEFAULT_LOG_PATH


def _wanted(tag: str, level: str) -> bool:
    if not _ENABLED or not _MODULE_LOGS.get(tag, True):
        return False
    floor = max(_rank(_LEVEL), _rank(_MODULE_LEVELS.get(tag, _LEVEL)))
    return _rank(level) >= floor


def _caller_tag() -> str:
    here = os.path.abspath(__file__)
    frame = inspect.currentframe()
    while frame is not None:
        if os.path.abspath(frame.f_code.co_filename) != here:
            module = str(frame.f_globals.get("__name__") or "")
            leaf = module.rpartition(".")[2]
            if not leaf:
                leaf = os.path.splitext(os.path.basename(frame.f_code.co_filename))[0]
            return _tag(leaf)
        frame = frame.f_back
    return "core"


def _write(level: str, args: tuple[Any, ...], source: str | None) -> None:
    tag = _tag(source) if source else _caller_tag()
    if not _wanted(tag, level):
        return
    stamp = time.strftime("%H:%M:%S")
    try:
        text = " ".join(str(a) for a in args)
        with open(LOG_PATH, "a", encoding="utf-8") as fh:
            fh.write(f"[{tag} {level.upper()} {stamp}] {text}\n")
    except Exception:
        # Logging never takes the host down.
        pass


def trace(*args: Any, source: str | None = None) -> None:
    _write("trace", args, source)


def dbg(*args: Any, source: str | None = None) -> None:
    _write("debug", args, source)


def info(*args: Any, source: str | None = None) -> None:
    _write("info", args, source)


def warn(*args: Any, source: str | None = None) -> None:
    _write("warn", args, source)


def error(*args: Any, source: str | None = None) -> None:
    _write("error", args, source)
