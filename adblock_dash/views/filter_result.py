import json
from typing import List

from rich.markup import escape
from textual.widgets import Static

from adblock_dash_core.models import CbEquivalent, CbRule, CosmeticFilter, NetworkFilter


def _code(value) -> str:
    return f"[bold]{escape(str(value))}[/bold]"


def describe_network_filter(f: NetworkFilter) -> List[str]:
    lines = ["[b]Network Filter[/b]" + (" (exception)" if f.is_exception else "")]
    lines.append(f"Pattern: {_code(f.pattern or '*')}" + ("  [i]regex[/i]" if f.is_regex else ""))
    if f.hostname:
        lines.append(f"Hostname: {_code(f.hostname)}")
    if f.types:
        lines.append(f"Types: {_code(', '.join(f.types))}")
    if f.not_types:
        lines.append(f"Excluded types: {_code(', '.join(f.not_types))}")
    if f.third_party is not None:
        lines.append("Party: " + _code("third-party" if f.third_party else "first-party"))
    if f.domains:
        lines.append(f"Domains: {_code(', '.join(f.domains))}")
    if f.not_domains:
        lines.append(f"Excluded domains: {_code(', '.join(f.not_domains))}")
    flags = [name for name, on in (
        ("important", f.important), ("match-case", f.match_case),
        ("generichide", f.generichide), ("elemhide", f.elemhide),
    ) if on]
    if flags:
        lines.append(f"Flags: {_code(', '.join(flags))}")
    if f.redirect:
        lines.append(f"Redirect: {_code(f.redirect)}")
    lines.append(f"Regex: {_code(f.regex or '(any)')}")
    return lines


def describe_cosmetic_filter(f: CosmeticFilter) -> List[str]:
    lines = ["[b]Cosmetic Filter[/b]" + (" (unhide)" if f.unhide else "")]
    if f.scriptlet is not None:
        lines.append(f"Scriptlet: {_code(f.scriptlet)}")
    else:
        lines.append(f"Selector: {_code(f.selector)}")
    if f.style is not None:
        lines.append(f"Style: {_code(f.style)}")
    if f.procedural:
        lines.append("[i]procedural[/i]")
    lines.append("Hostnames: " + (_code(", ".join(f.hostnames)) if f.hostnames else "[i]generic[/i]"))
    if f.not_hostnames:
        lines.append(f"Excluded hostnames: {_code(', '.join(f.not_hostnames))}")
    return lines


def describe_cb_rule(rule: CbRule) -> str:
    return _code(json.dumps(rule.to_dict()))


def render_filter_result(parsed, cb) -> str:
    lines: List[str] = []
    if parsed.ok:
        if isinstance(parsed.value, NetworkFilter):
            lines += describe_network_filter(parsed.value)
        else:
            lines += describe_cosmetic_filter(parsed.value)
    else:
        err = parsed.error
        if err.kind == "network":
            lines.append(f"Error parsing network filter: [red]{escape(str(err))}[/red]")
        elif err.kind == "cosmetic":
            lines.append(f"Error parsing cosmetic filter: [red]{escape(str(err))}[/red]")
        elif err.kind == "unsupported":
            lines.append("Unsupported filter")

    if cb is not None:
        lines.append("")
        lines.append("[b]Content blocking syntax equivalent[/b]")
        if cb.ok:
            equivalent: CbEquivalent = cb.value
            lines += [describe_cb_rule(r) for r in equivalent.rules]
        else:
            lines.append(f"Couldn't convert to content blocking syntax: [red]{escape(str(cb.error))}[/red]")
    return "\n".join(lines)


class FilterResultView(Static):
    def update_result(self, parsed, cb):
        self.update(render_filter_result(parsed, cb))
