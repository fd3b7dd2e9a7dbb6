"""Recomputation of derived state fields from inputs plus the engine."""
from typing import Any, List, Optional, Tuple

from adblock_dash_core.errors import CbError, FilterParseError, RequestError
from adblock_dash_core.models import CbEquivalent, CosmeticResources, ListMetadata, MatchResult, ParsedFilter, Resource, Result


def filter_fields(adapter, text: str) -> Tuple[Result[ParsedFilter, FilterParseError], Optional[Result[CbEquivalent, CbError]]]:
    """Parse and convert from one evaluation of ``text``."""
    parsed = adapter.parse_filter(text)
    cb = adapter.convert_to_content_blocking(parsed.value) if parsed.ok else None
    return parsed, cb


def network_result(adapter, engine, url: str, source_url: str,
                   request_type: str) -> Optional[Result[MatchResult, RequestError]]:
    if not (url or source_url or request_type):
        return None
    return adapter.match_network_request(engine, url, source_url, request_type)


def cosmetic_result(adapter, engine, url: str) -> CosmeticResources:
    return adapter.cosmetic_resources_for(engine, url)


def rebuild(adapter, list_text: str, resources: List[Resource]) -> Tuple[Any, ListMetadata]:
    """
    Build a complete new engine with resources already applied. Raises on any
    failure; nothing is returned half-built.
    """
    filter_set, metadata = adapter.build_filter_set(list_text)
    engine = adapter.compile_engine(filter_set)
    adapter.apply_resources(engine, list(resources))
    return engine, metadata
