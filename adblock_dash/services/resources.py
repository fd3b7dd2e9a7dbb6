import base64
import binascii
import json
import logging
import re
from typing import Dict, Iterable, List, Optional

from adblock_dash_core.errors import ResourceError
from adblock_dash_core.models import Resource, Result

log = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{(\d+)\}\}")


def _fail(message: str) -> Result:
    return Result.failure(ResourceError(message))


def parse_resources(json_text: str) -> Result[List[Resource], ResourceError]:
    """
    Parse a resources.json payload:
      [{"name": ..., "aliases": [...], "kind": {"mime": ...} | "template", "content": <base64>}, ...]
    """
    try:
        data = json.loads(json_text)
    except (json.JSONDecodeError, RecursionError) as e:
        return _fail(f"invalid JSON: {e}")
    if not isinstance(data, list):
        return _fail("expected a JSON list of resources")

    out: List[Resource] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            return _fail(f"resource #{i}: expected an object")
        name = item.get("name")
        if not isinstance(name, str) or not name:
            return _fail(f"resource #{i}: missing name")
        aliases = item.get("aliases", [])
        if not isinstance(aliases, list) or not all(isinstance(a, str) for a in aliases):
            return _fail(f"resource {name!r}: aliases must be a list of strings")

        kind = item.get("kind")
        mime: Optional[str] = None
        template = False
        if kind == "template":
            template = True
        elif isinstance(kind, dict) and isinstance(kind.get("mime"), str):
            mime = kind["mime"]
        else:
            return _fail(f"resource {name!r}: kind must be \"template\" or {{\"mime\": ...}}")

        content = item.get("content")
        if not isinstance(content, str):
            return _fail(f"resource {name!r}: content must be a base64 string")
        try:
            base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError):
            return _fail(f"resource {name!r}: content is not valid base64")

        out.append(Resource(name=name, content=content, mime=mime, template=template, aliases=tuple(aliases)))
    return Result.success(out)


class ResourceTable:
    """Name/alias lookup over the resources applied to an engine."""

    def __init__(self, resources: Iterable[Resource] = ()):
        self._by_name: Dict[str, Resource] = {}
        self.resources: List[Resource] = list(resources)
        for r in self.resources:
            self._by_name[r.name] = r
            for alias in r.aliases:
                self._by_name.setdefault(alias, r)

    def __len__(self) -> int:
        return len(self.resources)

    def get(self, name: str) -> Optional[Resource]:
        r = self._by_name.get(name)
        if r is None and not name.endswith(".js"):
            r = self._by_name.get(name + ".js")
        return r

    def data_url(self, name: str) -> Optional[str]:
        r = self.get(name)
        if r is None or r.template:
            return None
        return f"data:{r.mime};base64,{r.content}"

    def scriptlet(self, call: str) -> Optional[str]:
        """Render a ``name, arg1, arg2`` scriptlet call into script text."""
        parts = [p.strip() for p in call.split(",")]
        name, args = parts[0], parts[1:]
        r = self.get(name)
        if r is None:
            return None
        body = base64.b64decode(r.content).decode("utf-8", "replace")

        def _sub(m: "re.Match[str]") -> str:
            idx = int(m.group(1)) - 1
            return args[idx] if 0 <= idx < len(args) else m.group(0)

        return _PLACEHOLDER_RE.sub(_sub, body)
