import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from adblock_dash_core.errors import FilterParseError
from adblock_dash_core.models import CosmeticFilter, Expires, ListMetadata, NetworkFilter

from .filters import is_comment, parse_filter

log = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"^!\s*([A-Za-z]+)\s*:\s*(.+?)\s*$")
_EXPIRES_RE = re.compile(r"^(\d+)\s*(day|days|hour|hours|d|h)\b", re.IGNORECASE)


@dataclass
class FilterSet:
    network: List[NetworkFilter] = field(default_factory=list)
    cosmetic: List[CosmeticFilter] = field(default_factory=list)
    # (line number, error) for lines that were not accepted
    rejected: List[Tuple[int, FilterParseError]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.network) + len(self.cosmetic)


def _parse_expires(value: str) -> Optional[Expires]:
    m = _EXPIRES_RE.match(value.strip())
    if not m:
        return None
    amount = int(m.group(1))
    unit = "hours" if m.group(2).lower().startswith("h") else "days"
    if amount <= 0:
        return None
    return Expires(amount=amount, unit=unit)


def _read_header(line: str, meta: dict) -> None:
    m = _HEADER_RE.match(line)
    if not m:
        return
    key, value = m.group(1).lower(), m.group(2)
    # the first occurrence of each header wins
    if key in ("title", "homepage", "redirect") and key not in meta:
        meta[key] = value
    elif key == "expires" and key not in meta:
        expires = _parse_expires(value)
        if expires is not None:
            meta[key] = expires


def build_filter_set(list_text: str) -> Tuple[FilterSet, ListMetadata]:
    """Parse a whole filter list. Lines that fail to parse are skipped and counted."""
    filter_set = FilterSet()
    meta: dict = {}
    for lineno, raw in enumerate(list_text.splitlines(), 1):
        line = raw.strip()
        if not line:
            continue
        if is_comment(line):
            _read_header(line, meta)
            continue
        result = parse_filter(line)
        if not result.ok:
            filter_set.rejected.append((lineno, result.error))
            continue
        if isinstance(result.value, NetworkFilter):
            filter_set.network.append(result.value)
        else:
            filter_set.cosmetic.append(result.value)

    if filter_set.rejected:
        log.debug("Rejected %d list lines", len(filter_set.rejected))
    metadata = ListMetadata(
        title=meta.get("title"),
        homepage=meta.get("homepage"),
        expires=meta.get("expires"),
        redirect=meta.get("redirect"),
        accepted=len(filter_set),
        rejected=len(filter_set.rejected),
    )
    return filter_set, metadata
