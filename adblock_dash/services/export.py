from pathlib import Path
from typing import Any, Callable, Dict, Optional
import gzip
import json
import logging

import yaml

log = logging.getLogger(__name__)

FORMATS = ("dat", "json", "yaml")
DEFAULT_FILENAMES = {
    "dat": "rs-ABPFilterParserData.dat",
    "json": "engine.json",
    "yaml": "engine.yaml",
}


_SUFFIXES = {
    "dat": (".dat",),
    "json": (".json",),
    "yaml": (".yaml", ".yml"),
}


def export_filename(fmt: str, configured: Optional[str] = None) -> str:
    """The configured name when its suffix fits ``fmt``, else the format's default."""
    if configured and Path(configured).suffix.lower() in _SUFFIXES.get(fmt, ()):
        return configured
    return DEFAULT_FILENAMES.get(fmt, f"engine.{fmt}")


def serialize(payload: Dict[str, Any], fmt: str = "dat") -> bytes:
    if fmt == "dat":
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        # fixed mtime keeps the output reproducible
        return gzip.compress(raw, mtime=0)
    elif fmt == "json":
        return json.dumps(payload, indent=2).encode("utf-8")
    elif fmt == "yaml":
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True).encode("utf-8")
    else:
        raise ValueError(f"Unsupported format: {fmt}")


def next_format(fmt: str) -> str:
    idx = FORMATS.index(fmt) if fmt in FORMATS else -1
    return FORMATS[(idx + 1) % len(FORMATS)]


class DownloadService:
    """Saves exported bytes into the downloads directory."""

    def __init__(self, out_dir: str | Path, on_saved: Optional[Callable[[Path], None]] = None):
        self.out_dir = Path(out_dir)
        self.on_saved = on_saved

    def save(self, filename: str, data: bytes) -> Path:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.out_dir / Path(filename).name
        path.write_bytes(data)
        log.info("Wrote %d bytes to %s", len(data), path)
        if self.on_saved is not None:
            self.on_saved(path)
        return path
