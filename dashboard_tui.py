from pathlib import Path
from typing import Iterable
import logging

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Button, DirectoryTree, Footer, Header, Input, Static, TextArea

from adblock_dash.controllers.debounce import textual_scheduler
from adblock_dash.controllers.dispatcher import EventDispatcher
from adblock_dash.controllers.store import StateStore
from adblock_dash.services.engine import AdblockEngineAdapter
from adblock_dash.services.export import DownloadService, next_format
from adblock_dash.settings import SETTINGS_PATH, export_format, load_settings, save_settings, workspace
from adblock_dash.views.cosmetic_result import CosmeticResultView
from adblock_dash.views.filter_result import FilterResultView
from adblock_dash.views.list_status import ListStatusView
from adblock_dash.views.log import LogView
from adblock_dash.views.network_result import NetworkResultView

log = logging.getLogger(__name__)

_INPUT_ROUTES = {
    "filter_input": "filter_edited",
    "net_url": "network_url_edited",
    "net_source": "network_source_edited",
    "net_type": "network_type_edited",
    "cosmetic_url": "cosmetic_url_edited",
}


def configure_logging(settings) -> None:
    ws = workspace(settings)
    ws.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(ws / "dashboard.log"),
        level=str(settings.get("log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ─────────────────────────────────────────
# Resources picker
# ─────────────────────────────────────────
class JsonDirectoryTree(DirectoryTree):
    def filter_paths(self, paths: Iterable[Path]) -> Iterable[Path]:
        return [p for p in paths if p.is_dir() or p.suffix.lower() == ".json"]


class ResourcesPicker(Vertical):
    def __init__(self, on_pick):
        super().__init__()
        self.on_pick = on_pick

    def compose(self) -> ComposeResult:
        yield Static("[b]Select a resources.json to load[/b] (Enter to select)")
        self.dir_tree = JsonDirectoryTree(Path.cwd())
        yield self.dir_tree
        yield Button("Close", id="rp_close")

    def on_mount(self):
        self.dir_tree.focus()

    def on_directory_tree_file_selected(self, event: DirectoryTree.FileSelected):
        self.on_pick(event.path)
        self.remove()

    def on_button_pressed(self, event: Button.Pressed):
        if event.button.id == "rp_close":
            event.stop()
            self.remove()


# ─────────────────────────────────────────
# App
# ─────────────────────────────────────────
class AdblockDashboard(App):
    TITLE = "adblock dashboard"
    CSS = """
    Screen { layout: vertical; }
    #main { height: 1fr; }
    #left { width: 1fr; }
    #right { width: 1fr; }
    #list_input { height: 12; }
    #toolbar { height: 3; }
    #log { height: 4; }
    #bottom { height: auto; max-height: 16; border-top: solid $surface; }
    .section { text-style: bold; margin-top: 1; }
    """
    BINDINGS = [
        ("ctrl+o", "load_resources", "Load resources.json"),
        ("ctrl+s", "download", "Download engine"),
        ("ctrl+t", "cycle_format", "Export format"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, settings=None, adapter=None, scheduler=None, settings_path: Path = SETTINGS_PATH):
        super().__init__()
        self.settings_path = Path(settings_path)
        self.settings = settings if settings is not None else load_settings(self.settings_path)
        download = DownloadService(workspace(self.settings) / "downloads", on_saved=self._on_saved)
        self.store = StateStore(
            self.settings,
            adapter or AdblockEngineAdapter(int(self.settings.get("max_list_filters", 200000))),
            scheduler or textual_scheduler(self),
            download=download,
        )
        self.dispatcher = EventDispatcher(self.store)

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main"):
            with VerticalScroll(id="left"):
                yield Static("Parse a single filter", classes="section")
                yield Input(placeholder="||ads.example^$script", id="filter_input")
                self.filter_result = FilterResultView(id="filter_result")
                yield self.filter_result

                yield Static("Test a list", classes="section")
                yield TextArea(id="list_input")
                self.list_status = ListStatusView(id="list_status")
                yield self.list_status
            with VerticalScroll(id="right"):
                yield Static("Check a network request", classes="section")
                yield Input(placeholder="Request URL", id="net_url")
                yield Input(placeholder="Source URL", id="net_source")
                yield Input(placeholder="Request type (script, image, ...)", id="net_type")
                self.network_result = NetworkResultView(id="network_result")
                yield self.network_result

                yield Static("Check cosmetic resources", classes="section")
                yield Input(placeholder="Page URL", id="cosmetic_url")
                self.cosmetic_result = CosmeticResultView(id="cosmetic_result")
                yield self.cosmetic_result
        with Horizontal(id="toolbar"):
            yield Button("Load resources.json", id="btn_resources")
            yield Button("Download", id="btn_download")
            self.format_label = Static(id="format_label")
            yield self.format_label
        self.log_panel = LogView(id="log")
        yield self.log_panel
        self.bottom = Vertical(id="bottom")
        yield self.bottom
        yield Footer()

    def on_mount(self):
        configure_logging(self.settings)
        log.info("Dashboard started, workspace %s", workspace(self.settings).resolve())
        self.store.subscribe(self.render_state)
        self.render_state(self.store.state)
        self._show_format()
        self.query_one("#filter_input", Input).focus()

    def on_unmount(self):
        self.store.close()

    def render_state(self, state) -> None:
        self.filter_result.update_result(state.parsed_filter, state.cb_equivalent)
        self.list_status.update_status(state)
        self.network_result.update_result(state)
        self.cosmetic_result.update_result(state)

    # ─────────────────────────────────────
    # Input routing
    # ─────────────────────────────────────
    def on_input_changed(self, event: Input.Changed):
        route = _INPUT_ROUTES.get(event.input.id or "")
        if route is not None:
            getattr(self.dispatcher, route)(event.value)

    def on_text_area_changed(self, event: TextArea.Changed):
        if event.text_area.id == "list_input":
            self.dispatcher.filter_list_edited(event.text_area.text)

    def on_button_pressed(self, event: Button.Pressed):
        if event.button.id == "btn_resources":
            self.action_load_resources()
        elif event.button.id == "btn_download":
            self.action_download()

    # ─────────────────────────────────────
    # Actions
    # ─────────────────────────────────────
    def action_load_resources(self):
        self.bottom.remove_children()
        self.bottom.mount(ResourcesPicker(self._on_resources_picked))

    def action_download(self):
        self.dispatcher.download_clicked()
        if self.store.state.export_error:
            self.log_panel.write(f"[red]{escape(self.store.state.export_error)}[/red]")

    def action_cycle_format(self):
        fmt = next_format(export_format(self.settings))
        self.settings.setdefault("export", {})["format"] = fmt
        try:
            save_settings(self.settings, self.settings_path)
        except OSError as e:
            self.log_panel.write(f"[red]Could not save settings:[/red] {escape(str(e))}")
        self._show_format()

    # ─────────────────────────────────────
    # Callbacks
    # ─────────────────────────────────────
    def _show_format(self):
        self.format_label.update(f" Export format: [b]{export_format(self.settings)}[/b]")

    def _on_saved(self, path: Path):
        self.log_panel.write(f"Saved {escape(str(path))}")

    def _on_resources_picked(self, path: Path):
        try:
            text = Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            self.log_panel.write(f"[red]Could not read {escape(str(path))}:[/red] {escape(str(e))}")
            return
        self.dispatcher.resources_file_read(text)
        err = self.store.state.resources_error
        if err is not None:
            self.log_panel.write(f"[red]Resources rejected:[/red] {escape(str(err))}")
        else:
            self.log_panel.write(f"Loaded {len(self.store.state.resources)} resources from {escape(Path(path).name)}")


def main():
    AdblockDashboard().run()


if __name__ == "__main__":
    main()
