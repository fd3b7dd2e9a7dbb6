"""The rule-matching engine and the adapter the dashboard talks to.

``EngineAdapter`` is the seam the state store depends on; ``AdblockEngineAdapter``
is the shipped implementation. Network rules are matched with adblockparser's
``AdblockRule.match_url``; content types, priorities, redirects, cosmetic
lookups and resources live here.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple
from urllib.parse import urlsplit

from adblock_dash_core.errors import (
    CbError, EngineBuildError, FilterParseError, RequestError, ResourceError,
)
from adblock_dash_core.models import (
    CbEquivalent, CosmeticFilter, CosmeticResources, ListMetadata, MatchResult,
    NetworkFilter, ParsedFilter, Resource, Result,
)

from . import content_blocking, export, filters, lists, resources as resources_service
from .filters import CONTENT_TYPES, TYPE_ALIASES
from .lists import FilterSet
from .resources import ResourceTable

log = logging.getLogger(__name__)

DEFAULT_MAX_FILTERS = 200_000
_IPV4_RE = re.compile(r"^\d+(\.\d+){3}$")


# ---------------------------
# Requests
# ---------------------------

@dataclass(frozen=True)
class Request:
    url: str
    hostname: str
    source_hostname: str
    request_type: str
    third_party: Optional[bool]


def _hostname(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not host:
        return None
    return host.lower()


def _base_domain(host: str) -> str:
    if _IPV4_RE.match(host) or ":" in host:
        return host
    return ".".join(host.split(".")[-2:])


def _host_matches(host: str, pattern: str) -> bool:
    if not host:
        return False
    if pattern.endswith(".*"):
        stem = pattern[:-1]
        labels = host.split(".")
        return any(".".join(labels[i:]).startswith(stem) for i in range(len(labels)))
    return host == pattern or host.endswith("." + pattern)


def build_request(url: str, source_url: str, request_type: str) -> Result[Request, RequestError]:
    url = url.strip()
    host = _hostname(url)
    if host is None:
        return Result.failure(RequestError(f"invalid request URL: {url!r}"))

    source_host = ""
    third_party: Optional[bool] = None
    if source_url.strip():
        src = _hostname(source_url.strip())
        if src is None:
            return Result.failure(RequestError(f"invalid source URL: {source_url.strip()!r}"))
        source_host = src
        third_party = _base_domain(host) != _base_domain(src)

    rt = request_type.strip().lower()
    rt = TYPE_ALIASES.get(rt, rt)
    if rt not in CONTENT_TYPES:
        rt = "other"
    return Result.success(Request(
        url=url, hostname=host, source_hostname=source_host, request_type=rt, third_party=third_party,
    ))


# ---------------------------
# Compiled engine
# ---------------------------

class _Compiled:
    __slots__ = ("filter", "rule")

    def __init__(self, f: NetworkFilter):
        self.filter = f
        self.rule = filters.adblock_rule(f.pattern, filters.library_options(f), match_case=f.match_case)

    def _type_ok(self, request_type: str) -> bool:
        f = self.filter
        if f.types:
            return request_type in f.types
        if f.not_types:
            return request_type not in f.not_types
        return request_type not in ("document", "popup")

    def matches(self, req: Request) -> bool:
        if not self._type_ok(req.request_type):
            return False
        return self.rule.match_url(req.url, {"domain": req.source_hostname, "third-party": req.third_party})

    def matches_page(self, url: str, host: str) -> bool:
        return self.rule.match_url(url, {"domain": host, "third-party": False})


class FilterEngine:
    def __init__(self, filter_set: FilterSet):
        self.filter_set = filter_set
        self._important: List[_Compiled] = []
        self._blocking: List[_Compiled] = []
        self._exceptions: List[_Compiled] = []
        self._hide_exceptions: List[_Compiled] = []
        for f in filter_set.network:
            c = _Compiled(f)
            if f.generichide or f.elemhide:
                self._hide_exceptions.append(c)
            elif f.is_exception:
                self._exceptions.append(c)
            elif f.important:
                self._important.append(c)
            else:
                self._blocking.append(c)
        self._cosmetic: List[CosmeticFilter] = list(filter_set.cosmetic)
        self.resources = ResourceTable()

    def __len__(self) -> int:
        return len(self.filter_set)

    def use_resources(self, resources: Iterable[Resource]) -> None:
        self.resources = ResourceTable(resources)

    @staticmethod
    def _first(compiled: List[_Compiled], req: Request) -> Optional[NetworkFilter]:
        for c in compiled:
            if c.matches(req):
                return c.filter
        return None

    def _redirect(self, f: NetworkFilter) -> Optional[str]:
        if f.redirect is None:
            return None
        return self.resources.data_url(f.redirect)

    def check_network_request(self, req: Request) -> MatchResult:
        important = self._first(self._important, req)
        if important is not None:
            return MatchResult(matched=True, important=True, filter=important.raw, redirect=self._redirect(important))
        block = self._first(self._blocking, req)
        if block is None:
            return MatchResult(matched=False)
        exception = self._first(self._exceptions, req)
        if exception is not None:
            return MatchResult(matched=False, filter=block.raw, exception=exception.raw)
        return MatchResult(matched=True, filter=block.raw, redirect=self._redirect(block))

    def _hide_flags(self, url: str, host: str) -> Tuple[bool, bool]:
        generichide = elemhide = False
        for c in self._hide_exceptions:
            if c.matches_page(url, host):
                generichide = generichide or c.filter.generichide
                elemhide = elemhide or c.filter.elemhide
        return generichide, elemhide

    @staticmethod
    def _applies(f: CosmeticFilter, host: str) -> bool:
        if any(_host_matches(host, h) for h in f.not_hostnames):
            return False
        if f.hostnames:
            return any(_host_matches(host, h) for h in f.hostnames)
        return True

    def url_cosmetic_resources(self, url: str) -> CosmeticResources:
        url = url.strip()
        host = _hostname(url) or ""
        generichide, elemhide = self._hide_flags(url, host)
        out = CosmeticResources(generichide=generichide)
        if elemhide:
            return out

        unhidden = set()
        unhidden_scripts = set()
        for f in self._cosmetic:
            if f.unhide and self._applies(f, host):
                if f.scriptlet is not None:
                    unhidden_scripts.add(f.scriptlet)
                else:
                    unhidden.add(f.selector)

        hide: Dict[str, None] = {}
        scripts: List[str] = []
        for f in self._cosmetic:
            if f.unhide or f.procedural or not self._applies(f, host):
                continue
            if f.generic and generichide:
                continue
            if f.scriptlet is not None:
                if f.scriptlet in unhidden_scripts:
                    continue
                script = self.resources.scriptlet(f.scriptlet)
                if script is not None:
                    scripts.append(script)
            elif f.selector in unhidden:
                continue
            elif f.style is not None:
                out.style_selectors.setdefault(f.selector, []).append(f.style)
            else:
                hide[f.selector] = None

        out.hide_selectors = list(hide)
        out.exceptions = sorted(unhidden)
        out.injected_script = "\n".join(scripts)
        return out

    def to_payload(self) -> Dict[str, Any]:
        return {
            "format_version": 1,
            "network": [f.raw for f in self.filter_set.network],
            "cosmetic": [f.raw for f in self.filter_set.cosmetic],
            "resources": [r.to_dict() for r in self.resources.resources],
        }


# ---------------------------
# Adapter
# ---------------------------

class EngineAdapter(Protocol):
    def parse_filter(self, text: str) -> Result[ParsedFilter, FilterParseError]: ...

    def convert_to_content_blocking(self, parsed: ParsedFilter) -> Result[CbEquivalent, CbError]: ...

    def build_filter_set(self, list_text: str) -> Tuple[Any, ListMetadata]: ...

    def compile_engine(self, filter_set: Any) -> Any: ...

    def apply_resources(self, engine: Any, resources: List[Resource]) -> None: ...

    def match_network_request(self, engine: Any, url: str, source_url: str,
                              request_type: str) -> Result[MatchResult, RequestError]: ...

    def cosmetic_resources_for(self, engine: Any, url: str) -> CosmeticResources: ...

    def serialize_engine(self, engine: Any, fmt: str) -> bytes: ...

    def parse_resources(self, json_text: str) -> Result[List[Resource], ResourceError]: ...


class AdblockEngineAdapter:
    def __init__(self, max_filters: int = DEFAULT_MAX_FILTERS):
        self.max_filters = max_filters

    def parse_filter(self, text: str) -> Result[ParsedFilter, FilterParseError]:
        return filters.parse_filter(text)

    def convert_to_content_blocking(self, parsed: ParsedFilter) -> Result[CbEquivalent, CbError]:
        return content_blocking.convert(parsed)

    def build_filter_set(self, list_text: str) -> Tuple[FilterSet, ListMetadata]:
        return lists.build_filter_set(list_text)

    def compile_engine(self, filter_set: FilterSet) -> FilterEngine:
        if len(filter_set) > self.max_filters:
            raise EngineBuildError(f"list has {len(filter_set)} filters, limit is {self.max_filters}")
        try:
            engine = FilterEngine(filter_set)
        except (ValueError, re.error) as e:
            raise EngineBuildError(f"filter pattern failed to compile: {e}") from e
        log.info("Compiled engine with %d filters", len(engine))
        return engine

    def apply_resources(self, engine: FilterEngine, resources: List[Resource]) -> None:
        engine.use_resources(resources)

    def match_network_request(self, engine: FilterEngine, url: str, source_url: str,
                              request_type: str) -> Result[MatchResult, RequestError]:
        req = build_request(url, source_url, request_type)
        if not req.ok:
            return req
        return Result.success(engine.check_network_request(req.value))

    def cosmetic_resources_for(self, engine: FilterEngine, url: str) -> CosmeticResources:
        return engine.url_cosmetic_resources(url)

    def serialize_engine(self, engine: FilterEngine, fmt: str) -> bytes:
        return export.serialize(engine.to_payload(), fmt)

    def parse_resources(self, json_text: str) -> Result[List[Resource], ResourceError]:
        return resources_service.parse_resources(json_text)
