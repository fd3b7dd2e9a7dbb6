from pathlib import Path
from typing import Any, Dict
import copy
import logging

import yaml

log = logging.getLogger(__name__)

SETTINGS_PATH = Path("settings.yaml")

DEFAULTS: Dict[str, Any] = {
    "workspace_path": "workspace",
    "debounce_ms": 1200,
    "max_list_filters": 200000,
    "log_level": "INFO",
    "export": {"format": "dat", "filename": None},
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_settings(path: str | Path = SETTINGS_PATH) -> Dict[str, Any]:
    path = Path(path)
    if path.exists():
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            log.warning("Ignoring %s: expected a mapping", path)
            data = {}
        return _merge(DEFAULTS, data)
    return copy.deepcopy(DEFAULTS)


def save_settings(settings: Dict[str, Any], path: str | Path = SETTINGS_PATH) -> None:
    Path(path).write_text(yaml.safe_dump(settings, sort_keys=False))


def export_format(settings: Dict[str, Any]) -> str:
    return (settings.get("export") or {}).get("format") or "dat"


def workspace(settings: Dict[str, Any]) -> Path:
    return Path(settings.get("workspace_path", "workspace"))
