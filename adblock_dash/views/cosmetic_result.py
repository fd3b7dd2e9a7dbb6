from rich.markup import escape
from textual.widgets import Static

from adblock_dash_core.state import AppState


def render_cosmetic_result(state: AppState) -> str:
    res = state.cosmetic_result
    if res is None:
        return ""
    lines = []
    if res.hide_selectors:
        lines.append("[b]Hide selectors[/b]")
        lines += [f"  {escape(s)}" for s in res.hide_selectors]
    else:
        lines.append("[i]No hide selectors[/i]")
    for selector, styles in res.style_selectors.items():
        lines.append(f"[b]Style[/b] {escape(selector)} {{ {escape('; '.join(styles))} }}")
    if res.exceptions:
        lines.append("[b]Exceptions[/b] " + escape(", ".join(res.exceptions)))
    if res.generichide:
        lines.append("[i]generichide: generic cosmetic filters are disabled[/i]")
    if res.injected_script:
        lines.append("[b]Injected script[/b]")
        lines.append(escape(res.injected_script))
    if not state.resources:
        lines.append("[i]Note: scriptlets will not show up, as none have been loaded[/i]")
    return "\n".join(lines)


class CosmeticResultView(Static):
    def update_result(self, state: AppState):
        self.update(render_cosmetic_result(state))
