"""Conversion of parsed filters into Safari content-blocker rules.

Only the subset that Safari's JSON format can express is converted; everything
else yields a ``CbError`` describing why.
"""
from typing import Any, Dict, List, Tuple

from adblock_dash_core.errors import CbError
from adblock_dash_core.models import CbEquivalent, CbRule, CosmeticFilter, NetworkFilter, ParsedFilter, Result

from .filters import CONTENT_TYPES

_RESOURCE_TYPES = {
    "script": "script",
    "image": "image",
    "stylesheet": "style-sheet",
    "font": "font",
    "media": "media",
    "subdocument": "document",
    "document": "document",
    "popup": "popup",
    "xmlhttprequest": "raw",
    "websocket": "raw",
    "ping": "raw",
    "object": "raw",
    "other": "raw",
}

_HOST_ANCHOR = r"^[^:]+:(//)?([^/]+\.)?"
_SEPARATOR = r"[/:?=&]"
_SPECIAL = set(".+?()[]{}\\$")


def _fail(kind: str, message: str) -> Result:
    return Result.failure(CbError(kind=kind, message=message))


def _url_filter(pattern: str) -> str:
    out: List[str] = []
    body = pattern
    if body.startswith("||"):
        out.append(_HOST_ANCHOR)
        body = body[2:]
    elif body.startswith("|"):
        out.append("^")
        body = body[1:]
    end_anchor = body.endswith("|")
    if end_anchor:
        body = body[:-1]
    for ch in body:
        if ch == "*":
            out.append(".*")
        elif ch == "^":
            out.append(_SEPARATOR)
        elif ch in _SPECIAL or ch == "|":
            out.append("\\" + ch)
        else:
            out.append(ch)
    if end_anchor:
        out.append("$")
    return "".join(out) or ".*"


def _domain_list(hosts: Tuple[str, ...]) -> List[str]:
    return ["*" + h for h in hosts]


def _resource_types(f: NetworkFilter) -> List[str]:
    if f.types:
        selected = list(f.types)
    elif f.not_types:
        selected = [t for t in CONTENT_TYPES if t not in f.not_types and t not in ("document", "popup")]
    else:
        return []
    types: List[str] = []
    for t in selected:
        mapped = _RESOURCE_TYPES[t]
        if mapped not in types:
            types.append(mapped)
    return types


def _convert_network(f: NetworkFilter) -> Result[CbEquivalent, CbError]:
    if f.redirect is not None:
        return _fail("network_redirect_unsupported", "redirects cannot be expressed as content blocking rules")
    if f.generichide or f.elemhide:
        return _fail("network_generichide_unsupported", "element hiding exceptions cannot be expressed as content blocking rules")
    if f.is_regex:
        return _fail("network_regex_unsupported", "regular expression filters are not converted")
    if f.domains and f.not_domains:
        return _fail("domain_include_and_exclude", "a rule cannot both include and exclude domains")
    if not f.pattern.isascii():
        return _fail("network_non_ascii", "url-filter must be ASCII")

    trigger: Dict[str, Any] = {"url-filter": _url_filter(f.pattern)}
    if f.match_case:
        trigger["url-filter-is-case-sensitive"] = True
    if f.domains:
        trigger["if-domain"] = _domain_list(f.domains)
    if f.not_domains:
        trigger["unless-domain"] = _domain_list(f.not_domains)
    resource_types = _resource_types(f)
    if resource_types:
        trigger["resource-type"] = resource_types
    if f.third_party is True:
        trigger["load-type"] = ["third-party"]
    elif f.third_party is False:
        trigger["load-type"] = ["first-party"]

    action = {"type": "ignore-previous-rules" if f.is_exception else "block"}

    if f.is_exception and "document" in f.types:
        host = f.hostname
        if host is None:
            return _fail("document_exception_needs_hostname", "$document exceptions must be anchored to a hostname")
        # the page itself, then every request made from it
        page_trigger = dict(trigger)
        page_trigger.pop("resource-type", None)
        page_trigger["url-filter"] = ".*"
        page_trigger["if-domain"] = ["*" + host]
        page_trigger.pop("unless-domain", None)
        return Result.success(CbEquivalent(rules=(
            CbRule(trigger=trigger, action=action),
            CbRule(trigger=page_trigger, action=dict(action)),
        )))

    return Result.success(CbEquivalent(rules=(CbRule(trigger=trigger, action=action),)))


def _convert_cosmetic(f: CosmeticFilter) -> Result[CbEquivalent, CbError]:
    if f.scriptlet is not None:
        return _fail("cosmetic_scriptlet_unsupported", "scriptlet injections cannot be expressed as content blocking rules")
    if f.procedural:
        return _fail("cosmetic_procedural_unsupported", "procedural filters cannot be expressed as content blocking rules")
    if f.style is not None:
        return _fail("cosmetic_style_unsupported", "style injections cannot be expressed as content blocking rules")
    if f.unhide:
        return _fail("cosmetic_unhide_unsupported", "unhide filters cannot be expressed as content blocking rules")
    if any(h.endswith(".*") for h in f.hostnames + f.not_hostnames):
        return _fail("cosmetic_entity_unsupported", "entity hostnames cannot be expressed as content blocking rules")
    if f.hostnames and f.not_hostnames:
        return _fail("domain_include_and_exclude", "a rule cannot both include and exclude domains")

    trigger: Dict[str, Any] = {"url-filter": ".*"}
    if f.hostnames:
        trigger["if-domain"] = _domain_list(f.hostnames)
    if f.not_hostnames:
        trigger["unless-domain"] = _domain_list(f.not_hostnames)
    action = {"type": "css-display-none", "selector": f.selector}
    return Result.success(CbEquivalent(rules=(CbRule(trigger=trigger, action=action),)))


def convert(parsed: ParsedFilter) -> Result[CbEquivalent, CbError]:
    if isinstance(parsed, NetworkFilter):
        return _convert_network(parsed)
    if isinstance(parsed, CosmeticFilter):
        return _convert_cosmetic(parsed)
    raise TypeError(f"cannot convert {type(parsed).__name__}")

