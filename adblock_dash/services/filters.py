import logging
import re
from typing import List, Optional, Tuple

from adblockparser import AdblockRule

from adblock_dash_core.errors import EMPTY_FILTER, FilterParseError
from adblock_dash_core.models import CosmeticFilter, NetworkFilter, ParsedFilter, Result

log = logging.getLogger(__name__)

CONTENT_TYPES = (
    "script", "image", "stylesheet", "object", "xmlhttprequest", "subdocument",
    "document", "ping", "media", "font", "websocket", "other", "popup",
)
TYPE_ALIASES = {
    "xhr": "xmlhttprequest",
    "css": "stylesheet",
    "frame": "subdocument",
    "doc": "document",
    "object-subrequest": "object",
}

# At the same position the longer separator wins, so order matters.
_COSMETIC_SEPARATORS = ("#@?#", "#@$#", "#@#", "#?#", "#$#", "##")
_UNSUPPORTED_MARKERS = ("#@%#", "#%#", "$$", "$@$")
_PROCEDURAL_OPERATORS = (
    ":has-text(", ":-abp-has(", ":-abp-contains(", ":matches-css(", ":matches-css-before(",
    ":matches-css-after(", ":matches-path(", ":min-text-length(", ":watch-attr(",
    ":xpath(", ":upward(", ":remove(", ":others(", ":if(", ":if-not(",
)
_HOSTNAME_RE = re.compile(r"^[a-z0-9*](?:[a-z0-9\-.*]*[a-z0-9*])?$")
_STYLE_INJECTION_RE = re.compile(r"^(.+?)\s*\{\s*(.*?)\s*\}$")
_STYLE_SUFFIX_RE = re.compile(r":style\((.*)\)$")


def _network_error(message: str) -> Result:
    return Result.failure(FilterParseError(kind="network", message=message))


def _cosmetic_error(message: str) -> Result:
    return Result.failure(FilterParseError(kind="cosmetic", message=message))


def _find_cosmetic_separator(text: str) -> Optional[Tuple[int, str]]:
    best: Optional[Tuple[int, str]] = None
    for sep in _COSMETIC_SEPARATORS:
        idx = text.find(sep)
        if idx != -1 and (best is None or idx < best[0]):
            best = (idx, sep)
    return best


def is_comment(line: str) -> bool:
    s = line.strip()
    return s.startswith("!") or (s.startswith("[") and s.endswith("]"))


def parse_filter(text: str) -> Result[ParsedFilter, FilterParseError]:
    """Classify and parse a single filter line."""
    line = text.strip()
    if not line:
        return Result.failure(EMPTY_FILTER)
    if is_comment(line):
        return Result.failure(FilterParseError(kind="unsupported", message="comment"))
    if any(marker in line for marker in _UNSUPPORTED_MARKERS):
        return Result.failure(FilterParseError(kind="unsupported", message="unsupported filter syntax"))

    found = _find_cosmetic_separator(line)
    if found is not None:
        return _parse_cosmetic(line, *found)
    return _parse_network(line)


# ---------------------------
# Cosmetic filters
# ---------------------------

def _parse_hostnames(part: str) -> Tuple[Optional[List[str]], Optional[List[str]], Optional[str]]:
    hostnames: List[str] = []
    not_hostnames: List[str] = []
    for raw in part.split(","):
        host = raw.strip().lower()
        negated = host.startswith("~")
        if negated:
            host = host[1:]
        if not host or not _HOSTNAME_RE.match(host):
            return None, None, raw.strip()
        (not_hostnames if negated else hostnames).append(host)
    return hostnames, not_hostnames, None


def _parse_cosmetic(line: str, idx: int, sep: str) -> Result[ParsedFilter, FilterParseError]:
    domains_part = line[:idx]
    selector = line[idx + len(sep):].strip()
    unhide = "@" in sep
    procedural = "?" in sep

    hostnames: List[str] = []
    not_hostnames: List[str] = []
    if domains_part:
        hostnames, not_hostnames, bad = _parse_hostnames(domains_part)
        if bad is not None:
            return _cosmetic_error(f"invalid hostname: {bad!r}")
    if not selector:
        return _cosmetic_error("missing selector")

    style: Optional[str] = None
    scriptlet: Optional[str] = None
    if "$" in sep:
        m = _STYLE_INJECTION_RE.match(selector)
        if not m:
            return _cosmetic_error("malformed style injection, expected 'selector { style }'")
        selector, style = m.group(1).strip(), m.group(2)
    elif selector.startswith("+js("):
        if not selector.endswith(")"):
            return _cosmetic_error("malformed scriptlet injection")
        scriptlet = selector[len("+js("):-1].strip()
        if not scriptlet:
            return _cosmetic_error("empty scriptlet injection")
        if not hostnames and not unhide:
            return _cosmetic_error("generic scriptlet injection is not supported")
    else:
        m = _STYLE_SUFFIX_RE.search(selector)
        if m:
            style = m.group(1).strip()
            selector = selector[:m.start()].strip()
            if not selector:
                return _cosmetic_error("missing selector")
        if any(op in selector for op in _PROCEDURAL_OPERATORS):
            procedural = True

    if unhide and not hostnames:
        return _cosmetic_error("generic unhide is not supported")

    return Result.success(CosmeticFilter(
        raw=line,
        selector=selector,
        hostnames=tuple(hostnames),
        not_hostnames=tuple(not_hostnames),
        unhide=unhide,
        procedural=procedural,
        style=style,
        scriptlet=scriptlet,
    ))


# ---------------------------
# Network filters
# ---------------------------

def _split_options(text: str) -> Tuple[str, Optional[str]]:
    if text.startswith("/") and text.endswith("/") and len(text) > 1:
        return text, None
    idx = text.rfind("$")
    if idx == -1:
        return text, None
    return text[:idx], text[idx + 1:]


def library_options(f: NetworkFilter) -> List[str]:
    """The options of ``f`` that adblockparser evaluates itself, in its own spelling."""
    options: List[str] = []
    if f.third_party is not None:
        options.append("third-party" if f.third_party else "~third-party")
    if f.domains or f.not_domains:
        options.append("domain=" + "|".join(list(f.domains) + ["~" + d for d in f.not_domains]))
    if f.match_case:
        options.append("match-case")
    return options


def adblock_rule(pattern: str, options: List[str], match_case: bool = False) -> AdblockRule:
    """
    Build the adblockparser rule for a pattern. adblockparser splits a rule at
    its first "$", so a pattern containing one is translated on its own.
    """
    suffix = "$" + ",".join(options) if options else ""
    if "$" in pattern:
        rule = AdblockRule(suffix)
        rule.regex = AdblockRule.rule_to_regex(pattern) if pattern else ""
    else:
        rule = AdblockRule(pattern + suffix)
    # ABP patterns are case-insensitive unless match-case is set
    rule.regex_re = re.compile(rule.regex, 0 if match_case else re.IGNORECASE)
    return rule


def _parse_network(line: str) -> Result[ParsedFilter, FilterParseError]:
    text = line
    is_exception = text.startswith("@@")
    if is_exception:
        text = text[2:]
    pattern, options_text = _split_options(text)

    # content types stay here: adblockparser requires every listed type at once
    # and knows neither "font" nor "popup"
    types: List[str] = []
    not_types: List[str] = []
    rule_options: List[str] = []
    important = generichide = elemhide = False
    redirect: Optional[str] = None

    if options_text is not None:
        for opt in options_text.split(","):
            opt = opt.strip()
            if not opt:
                return _network_error("empty option")
            negated = opt.startswith("~")
            name = opt[1:] if negated else opt
            key, _, value = name.partition("=")
            key = TYPE_ALIASES.get(key.lower(), key.lower())

            if key in CONTENT_TYPES:
                (not_types if negated else types).append(key)
            elif key in ("third-party", "3p"):
                rule_options.append("~third-party" if negated else "third-party")
            elif key in ("first-party", "1p"):
                rule_options.append("third-party" if negated else "~third-party")
            elif negated:
                return _network_error(f"option cannot be negated: {key}")
            elif key == "domain":
                if not value:
                    return _network_error("empty domain option")
                hosts = [d.strip().lower() for d in value.split("|")]
                if any(not d.lstrip("~") or not _HOSTNAME_RE.match(d.lstrip("~")) for d in hosts):
                    return _network_error(f"invalid domain in option: {value!r}")
                rule_options.append("domain=" + "|".join(hosts))
            elif key == "match-case":
                rule_options.append("match-case")
            elif key == "important":
                important = True
            elif key in ("redirect", "redirect-rule"):
                if not value:
                    return _network_error(f"empty {key} option")
                redirect = value
            elif key in ("generichide", "ghide"):
                generichide = True
            elif key in ("elemhide", "ehide"):
                elemhide = True
            else:
                return _network_error(f"unrecognised option: {key}")

    if (generichide or elemhide) and not is_exception:
        return _network_error("generichide and elemhide are only valid on exception filters")
    if not pattern and options_text is None:
        return _network_error("empty pattern")

    is_regex = pattern.startswith("/") and pattern.endswith("/") and len(pattern) > 2
    try:
        rule = adblock_rule(pattern, rule_options, match_case="match-case" in rule_options)
    except (ValueError, re.error) as e:
        return _network_error(f"invalid pattern: {e}")

    domain_options = rule.options.get("domain", {})
    return Result.success(NetworkFilter(
        raw=line,
        pattern=pattern,
        regex=rule.regex,
        is_exception=is_exception,
        is_regex=is_regex,
        match_case=bool(rule.options.get("match-case")),
        important=important,
        types=tuple(types),
        not_types=tuple(not_types),
        third_party=rule.options.get("third-party"),
        domains=tuple(d for d, on in domain_options.items() if on),
        not_domains=tuple(d for d, on in domain_options.items() if not on),
        redirect=redirect,
        generichide=generichide,
        elemhide=elemhide,
    ))
