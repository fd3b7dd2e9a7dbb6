from collections import deque
from typing import Deque
import logging

from adblock_dash_core.events import (
    CosmeticUrlChanged, Event, ExportRequested, FilterListTextChanged, FilterTextChanged,
    NetworkSourceChanged, NetworkTypeChanged, NetworkUrlChanged, ResourcesLoaded,
)

log = logging.getLogger(__name__)


class EventDispatcher:
    """
    Turns UI interactions into typed events and feeds them to the store one at
    a time. Events dispatched while another is being applied wait in the queue.
    """

    def __init__(self, store):
        self.store = store
        self._queue: Deque[Event] = deque()
        self._draining = False
        store.connect(self.dispatch)

    def dispatch(self, event: Event) -> None:
        self._queue.append(event)
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                ev = self._queue.popleft()
                log.debug("Applying %s", type(ev).__name__)
                self.store.apply(ev)
        finally:
            self._draining = False

    # ─────────────────────────────────────
    # UI interactions
    # ─────────────────────────────────────
    def filter_edited(self, text: str) -> None:
        self.dispatch(FilterTextChanged(text))

    def filter_list_edited(self, text: str) -> None:
        self.dispatch(FilterListTextChanged(text))

    def network_url_edited(self, text: str) -> None:
        self.dispatch(NetworkUrlChanged(text))

    def network_source_edited(self, text: str) -> None:
        self.dispatch(NetworkSourceChanged(text))

    def network_type_edited(self, text: str) -> None:
        self.dispatch(NetworkTypeChanged(text))

    def cosmetic_url_edited(self, text: str) -> None:
        self.dispatch(CosmeticUrlChanged(text))

    def resources_file_read(self, text: str) -> None:
        self.dispatch(ResourcesLoaded(text))

    def download_clicked(self) -> None:
        self.dispatch(ExportRequested())
