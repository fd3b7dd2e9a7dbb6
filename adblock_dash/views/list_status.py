from rich.markup import escape
from rich.table import Table
from textual.widgets import Static

from adblock_dash_core.state import AppState


def metadata_table(meta) -> Table:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Field", style="bold", no_wrap=True)
    table.add_column("Value")
    if meta.title:
        table.add_row("Title", escape(meta.title))
    if meta.homepage:
        table.add_row("Homepage", f"[link={meta.homepage}]{escape(meta.homepage)}[/link]")
    if meta.expires:
        table.add_row("Expires", str(meta.expires))
    if meta.redirect:
        table.add_row("Redirect", f"[link={meta.redirect}]{escape(meta.redirect)}[/link]")
    table.add_row("Filters", f"{meta.accepted} accepted, {meta.rejected} rejected")
    return table


def resources_line(state: AppState) -> str:
    if state.resources:
        line = f"[i]{len(state.resources)} resources loaded[/i]"
    else:
        line = "[i]No resources loaded[/i]"
    if state.resources_error is not None:
        line += f"\n[red]Could not load resources:[/red] {escape(str(state.resources_error))}"
    return line


def rebuild_line(state: AppState) -> str:
    if state.pending_rebuild is not None:
        return "[yellow]Rebuilding engine...[/yellow]"
    if state.rebuild_error:
        return f"[red]Rebuild failed, previous engine kept:[/red] {escape(state.rebuild_error)}"
    return f"Engine builds: {state.rebuild_count}"


class ListStatusView(Static):
    def update_status(self, state: AppState):
        grid = Table.grid()
        grid.add_row(rebuild_line(state))
        grid.add_row(resources_line(state))
        grid.add_row(metadata_table(state.list_metadata))
        self.update(grid)
