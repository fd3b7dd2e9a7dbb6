from typing import Any, Callable, Dict, List, Optional
import logging
import threading

from adblock_dash_core.errors import EngineBuildError
from adblock_dash_core.events import (
    CosmeticUrlChanged, DebounceElapsed, Event, ExportRequested, FilterListTextChanged,
    FilterTextChanged, NetworkSourceChanged, NetworkTypeChanged, NetworkUrlChanged, ResourcesLoaded,
)
from adblock_dash_core.state import AppState
from adblock_dash.controllers import derived
from adblock_dash.controllers.debounce import DebounceTimer, Scheduler
from adblock_dash.services.export import DownloadService, export_filename
from adblock_dash.settings import export_format, workspace

log = logging.getLogger(__name__)

Listener = Callable[[AppState], None]


class StateStore:
    """
    Owns the AppState. apply() runs one event to completion; engine rebuilds
    are debounced and only ever replace the engine as a whole.
    """

    def __init__(self, settings, adapter, scheduler: Scheduler, download: Optional[DownloadService] = None):
        self.settings = settings
        self.adapter = adapter
        self.download = download or DownloadService(workspace(settings) / "downloads")
        self.timer = DebounceTimer(scheduler)
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._post: Callable[[Event], None] = self.apply

        filter_set, metadata = adapter.build_filter_set("")
        self.state = AppState(engine=adapter.compile_engine(filter_set), list_metadata=metadata)

        self._handlers: Dict[type, Callable[[Any], None]] = {
            FilterTextChanged: self._on_filter_text,
            FilterListTextChanged: self._on_filter_list_text,
            DebounceElapsed: self._on_debounce_elapsed,
            NetworkUrlChanged: self._on_network_url,
            NetworkSourceChanged: self._on_network_source,
            NetworkTypeChanged: self._on_network_type,
            CosmeticUrlChanged: self._on_cosmetic_url,
            ResourcesLoaded: self._on_resources_loaded,
            ExportRequested: self._on_export,
        }

    @property
    def debounce_seconds(self) -> float:
        return int(self.settings.get("debounce_ms", 1200)) / 1000.0

    def connect(self, post: Callable[[Event], None]) -> None:
        """Route timer-originated events through ``post`` (the dispatcher queue)."""
        self._post = post

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def apply(self, event: Event) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unknown event: {event!r}")
        with self._lock:
            handler(event)
        for listener in list(self._listeners):
            listener(self.state)

    def close(self) -> None:
        self.timer.cancel()
        self.state.pending_rebuild = None

    # ─────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────
    def _on_filter_text(self, event: FilterTextChanged) -> None:
        s = self.state
        s.raw_filter_text = event.text
        s.parsed_filter, s.cb_equivalent = derived.filter_fields(self.adapter, event.text)

    def _on_filter_list_text(self, event: FilterListTextChanged) -> None:
        s = self.state
        s.raw_filter_list_text = event.text
        self.timer.cancel()
        # the shown result belongs to the engine about to be replaced
        s.network_result_stale = s.network_result is not None
        s.pending_rebuild = self.timer.arm(self.debounce_seconds, lambda: self._post(DebounceElapsed()))

    def _on_debounce_elapsed(self, event: DebounceElapsed) -> None:
        s = self.state
        s.pending_rebuild = None
        try:
            engine, metadata = derived.rebuild(self.adapter, s.raw_filter_list_text, s.resources)
        except EngineBuildError as e:
            log.warning("Rebuild failed: %s", e)
            self._rebuild_failed(str(e))
            return
        except Exception as e:
            log.exception("Rebuild failed unexpectedly")
            self._rebuild_failed(f"{type(e).__name__}: {e}")
            return

        s.engine = engine
        s.list_metadata = metadata
        s.rebuild_error = None
        s.rebuild_count += 1
        log.info("Rebuilt engine (%d filters, %d rejected)", metadata.accepted, metadata.rejected)
        self._recompute_network()
        if s.cosmetic_result is not None:
            self._recompute_cosmetic()

    def _rebuild_failed(self, message: str) -> None:
        s = self.state
        s.rebuild_error = message
        # the held result belongs to the engine that was kept
        s.network_result_stale = False

    def _on_network_url(self, event: NetworkUrlChanged) -> None:
        self.state.network_url = event.text
        self._recompute_network()

    def _on_network_source(self, event: NetworkSourceChanged) -> None:
        self.state.network_source_url = event.text
        self._recompute_network()

    def _on_network_type(self, event: NetworkTypeChanged) -> None:
        self.state.network_request_type = event.text
        self._recompute_network()

    def _on_cosmetic_url(self, event: CosmeticUrlChanged) -> None:
        self.state.cosmetic_url = event.text
        self._recompute_cosmetic()

    def _on_resources_loaded(self, event: ResourcesLoaded) -> None:
        s = self.state
        parsed = self.adapter.parse_resources(event.json_text)
        if not parsed.ok:
            log.warning("Rejected resources: %s", parsed.error)
            s.resources_error = parsed.error
            return
        s.resources = parsed.value
        s.resources_error = None
        self.adapter.apply_resources(s.engine, list(s.resources))
        log.info("Loaded %d resources", len(s.resources))
        # redirects and scriptlets depend on resources
        self._recompute_network()
        if s.cosmetic_result is not None:
            self._recompute_cosmetic()

    def _on_export(self, event: ExportRequested) -> None:
        fmt = export_format(self.settings)
        filename = export_filename(fmt, (self.settings.get("export") or {}).get("filename"))
        try:
            data = self.adapter.serialize_engine(self.state.engine, fmt)
            self.download.save(filename, data)
        except (OSError, ValueError) as e:
            log.warning("Export failed: %s", e)
            self.state.export_error = f"Export failed: {e}"
            return
        self.state.export_error = None

    # ─────────────────────────────────────
    # Derived fields
    # ─────────────────────────────────────
    def _recompute_network(self) -> None:
        s = self.state
        s.network_result = derived.network_result(
            self.adapter, s.engine, s.network_url, s.network_source_url, s.network_request_type,
        )
        s.network_result_stale = False

    def _recompute_cosmetic(self) -> None:
        s = self.state
        s.cosmetic_result = derived.cosmetic_result(self.adapter, s.engine, s.cosmetic_url)
