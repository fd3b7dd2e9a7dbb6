from rich.markup import escape
from textual.widgets import Static

from adblock_dash_core.state import AppState


def render_network_result(state: AppState) -> str:
    result = state.network_result
    if result is None:
        return ""
    if state.network_result_stale:
        return "[i]Waiting for the list to be rebuilt...[/i]"
    if not result.ok:
        return f"Error parsing request: [red]{escape(str(result.error))}[/red]"

    m = result.value
    if m.matched:
        lines = ["[bold red]Blocked[/bold red]" + (" [i](important)[/i]" if m.important else "")]
    elif m.exception:
        lines = ["[bold green]Allowed by exception[/bold green]"]
    else:
        lines = ["[bold green]Not blocked[/bold green]"]
    if m.filter:
        lines.append(f"Filter: [bold]{escape(m.filter)}[/bold]")
    if m.exception:
        lines.append(f"Exception: [bold]{escape(m.exception)}[/bold]")
    if m.redirect:
        lines.append(f"Redirect: [bold]{escape(m.redirect[:120])}[/bold]")
    elif not state.resources:
        lines.append("[i]Note: redirects will not show up, as none have been loaded[/i]")
    return "\n".join(lines)


class NetworkResultView(Static):
    def update_result(self, state: AppState):
        self.update(render_network_result(state))
