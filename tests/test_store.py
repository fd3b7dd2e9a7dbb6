"""
State store transitions.

Covers:
  - single filter parse/convert is synchronous and idempotent
  - list edits are debounced and coalesced into one rebuild
  - network results are None exactly when all three inputs are empty
  - rebuilds are all-or-nothing and refresh the network result
  - resource loading is fallible and never raises
  - export hands the serialized engine to the download service
"""
import json

import pytest

from adblock_dash_core.events import (
    CosmeticUrlChanged, DebounceElapsed, ExportRequested, FilterListTextChanged, FilterTextChanged,
    NetworkSourceChanged, NetworkTypeChanged, NetworkUrlChanged, ResourcesLoaded,
)
from adblock_dash_core.errors import EMPTY_FILTER

DELAY = 1.2

RESOURCES_JSON = json.dumps([
    {"name": "noop.js", "aliases": ["noopjs"], "kind": {"mime": "application/javascript"}, "content": "KGZ1bmN0aW9uKCkge30pKCk7"},
])


def set_query(dispatcher, url, source, rtype):
    dispatcher.dispatch(NetworkUrlChanged(url))
    dispatcher.dispatch(NetworkSourceChanged(source))
    dispatcher.dispatch(NetworkTypeChanged(rtype))


def check_result_presence(state):
    assert (state.network_result is None) == state.network_inputs_empty


# ============================================================================
# Initial state
# ============================================================================

class TestInitialState:
    def test_defaults(self, store):
        s = store.state
        assert s.raw_filter_text == ""
        assert not s.parsed_filter.ok
        assert s.parsed_filter.error == EMPTY_FILTER
        assert s.cb_equivalent is None
        assert s.pending_rebuild is None
        assert s.network_result is None
        assert s.cosmetic_result is None
        assert s.resources == []
        assert s.engine is not None

    def test_unknown_event_is_rejected(self, store):
        with pytest.raises(TypeError):
            store.apply(object())


# ============================================================================
# Single filter
# ============================================================================

class TestFilterText:
    def test_parse_and_convert_immediately(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterTextChanged("||ads.example^"))
        s = store.state
        assert s.parsed_filter.ok
        assert s.parsed_filter.value.raw == "||ads.example^"
        assert s.cb_equivalent is not None and s.cb_equivalent.ok
        assert scheduler.live == []

    def test_parse_failure_clears_cb(self, dispatcher, store):
        dispatcher.dispatch(FilterTextChanged("||ok^"))
        dispatcher.dispatch(FilterTextChanged("bad filter"))
        assert not store.state.parsed_filter.ok
        assert store.state.cb_equivalent is None

    def test_conversion_failure_is_a_value(self, dispatcher, store):
        dispatcher.dispatch(FilterTextChanged("||nocb^"))
        cb = store.state.cb_equivalent
        assert cb is not None and not cb.ok
        assert "no equivalent" in str(cb.error)

    @pytest.mark.parametrize("text", ["", "||a^", "bad", "||nocb^", "  "])
    def test_idempotent(self, dispatcher, store, text):
        dispatcher.dispatch(FilterTextChanged(text))
        once = (store.state.parsed_filter, store.state.cb_equivalent)
        dispatcher.dispatch(FilterTextChanged(text))
        assert (store.state.parsed_filter, store.state.cb_equivalent) == once

    def test_parse_and_cb_come_from_same_text(self, dispatcher, store, adapter):
        dispatcher.dispatch(FilterTextChanged("||one^"))
        dispatcher.dispatch(FilterTextChanged("||two^"))
        assert store.state.parsed_filter.value.raw == "||two^"
        assert store.state.cb_equivalent.value.rules[0].trigger["url-filter"] == "||two^"


# ============================================================================
# Debounced rebuild
# ============================================================================

class TestDebounce:
    def test_list_edit_arms_timer_without_rebuilding(self, dispatcher, store, adapter, scheduler):
        before = store.state.engine
        dispatcher.dispatch(FilterListTextChanged("ads"))
        assert store.state.pending_rebuild is not None
        assert len(scheduler.live) == 1
        assert store.state.engine is before
        assert store.state.rebuild_count == 0

    def test_rebuild_after_delay(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("ads"))
        scheduler.advance(DELAY)
        assert store.state.pending_rebuild is None
        assert store.state.rebuild_count == 1
        assert store.state.engine.rules == ["ads"]

    def test_not_before_delay(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("ads"))
        scheduler.advance(DELAY - 0.1)
        assert store.state.rebuild_count == 0

    def test_coalescing_uses_last_text(self, dispatcher, store, adapter, scheduler):
        for i in range(5):
            dispatcher.dispatch(FilterListTextChanged(f"rule{i}"))
            scheduler.advance(DELAY / 3)
        scheduler.advance(DELAY)
        assert store.state.rebuild_count == 1
        assert adapter.count("compile_engine") == 2  # initial empty engine + one rebuild
        assert store.state.engine.rules == ["rule4"]

    def test_at_most_one_live_timer(self, dispatcher, scheduler):
        for i in range(4):
            dispatcher.dispatch(FilterListTextChanged(f"r{i}"))
            assert len(scheduler.live) == 1
        assert sum(1 for h in scheduler.handles if h.cancelled) == 3

    def test_superseded_timer_never_fires(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("first"))
        first = scheduler.live[0]
        scheduler.advance(DELAY / 2)
        dispatcher.dispatch(FilterListTextChanged("second"))
        # a host that delivers the cancelled callback anyway must not trigger a rebuild
        first.callback()
        assert store.state.rebuild_count == 0
        scheduler.advance(DELAY)
        assert store.state.rebuild_count == 1
        assert store.state.engine.rules == ["second"]

    def test_separate_quiet_periods_rebuild_twice(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("a"))
        scheduler.advance(DELAY)
        dispatcher.dispatch(FilterListTextChanged("b"))
        scheduler.advance(DELAY)
        assert store.state.rebuild_count == 2

    def test_close_cancels_pending(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("a"))
        store.close()
        scheduler.advance(DELAY * 2)
        assert store.state.rebuild_count == 0
        assert store.state.pending_rebuild is None

    def test_debounce_delay_from_settings(self, settings, adapter, scheduler, downloads):
        from adblock_dash.controllers.store import StateStore
        settings["debounce_ms"] = 300
        s = StateStore(settings, adapter, scheduler, download=downloads)
        s.apply(FilterListTextChanged("x"))
        scheduler.advance(0.3)
        assert s.state.rebuild_count == 1

    def test_metadata_captured(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("! Title: My list\nads"))
        scheduler.advance(DELAY)
        assert store.state.list_metadata.title == "My list"


# ============================================================================
# Rebuild atomicity
# ============================================================================

class TestRebuildAtomicity:
    def test_failed_rebuild_keeps_previous_engine(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("! Title: Good\nads"))
        scheduler.advance(DELAY)
        engine, meta = store.state.engine, store.state.list_metadata
        dispatcher.dispatch(NetworkUrlChanged("http://ads.test/x"))
        result = store.state.network_result

        dispatcher.dispatch(FilterListTextChanged("! Title: Broken\nBOOM"))
        assert store.state.network_result_stale
        scheduler.advance(DELAY)
        s = store.state
        assert s.engine is engine
        assert s.list_metadata is meta
        assert s.rebuild_count == 1
        assert "BOOM" in s.rebuild_error
        assert s.pending_rebuild is None
        # the kept result is valid for the kept engine
        assert s.network_result is result
        assert not s.network_result_stale

    def test_failed_rebuild_keeps_resources_applied(self, dispatcher, store, scheduler):
        dispatcher.dispatch(ResourcesLoaded(RESOURCES_JSON))
        dispatcher.dispatch(FilterListTextChanged("BOOM"))
        scheduler.advance(DELAY)
        assert len(store.state.engine.resources) == 1

    def test_good_rebuild_clears_error(self, dispatcher, store, scheduler):
        dispatcher.dispatch(FilterListTextChanged("BOOM"))
        scheduler.advance(DELAY)
        dispatcher.dispatch(FilterListTextChanged("ads"))
        scheduler.advance(DELAY)
        assert store.state.rebuild_error is None
        assert store.state.engine.rules == ["ads"]

    def test_resources_applied_to_new_engine(self, dispatcher, store, scheduler):
        dispatcher.dispatch(ResourcesLoaded(RESOURCES_JSON))
        dispatcher.dispatch(FilterListTextChanged("ads"))
        scheduler.advance(DELAY)
        assert [r.name for r in store.state.engine.resources] == ["noop.js"]


# ============================================================================
# Network query
# ============================================================================

class TestNetworkQuery:
    def test_empty_inputs_give_none(self, dispatcher, store):
        set_query(dispatcher, "", "", "")
        assert store.state.network_result is None

    def test_any_input_gives_result(self, dispatcher, store):
        dispatcher.dispatch(NetworkTypeChanged("script"))
        assert store.state.network_result is not None
        # no url: request construction fails and is reported as a value
        assert not store.state.network_result.ok

    def test_clearing_all_inputs_returns_to_none(self, dispatcher, store):
        set_query(dispatcher, "https://a.test/", "https://b.test", "script")
        set_query(dispatcher, "", "", "")
        assert store.state.network_result is None

    def test_i2_holds_after_every_event(self, dispatcher, store, scheduler):
        events = [
            NetworkUrlChanged("https://ads.test/x"),
            FilterListTextChanged("ads"),
            NetworkSourceChanged("https://site.test"),
            DebounceElapsed(),
            NetworkUrlChanged(""),
            NetworkSourceChanged(""),
            CosmeticUrlChanged("https://site.test"),
            NetworkTypeChanged("image"),
            NetworkTypeChanged(""),
            FilterTextChanged("||x^"),
            ResourcesLoaded("not json"),
        ]
        for ev in events:
            dispatcher.dispatch(ev)
            check_result_presence(store.state)
            scheduler.advance(DELAY)
            check_result_presence(store.state)

    def test_result_marked_stale_on_list_edit(self, dispatcher, store, scheduler):
        set_query(dispatcher, "https://ads.test/x", "https://site.test", "script")
        dispatcher.dispatch(FilterListTextChanged("ads"))
        assert store.state.network_result_stale
        scheduler.advance(DELAY)
        assert not store.state.network_result_stale

    def test_recomputed_after_rebuild(self, dispatcher, store, scheduler):
        set_query(dispatcher, "https://ads.test/x", "https://site.test", "script")
        assert store.state.network_result.value.matched is False
        dispatcher.dispatch(FilterListTextChanged("ads"))
        scheduler.advance(DELAY)
        result = store.state.network_result
        assert result.ok and result.value.matched
        assert result.value.filter == "ads"

    def test_uses_current_engine(self, dispatcher, store, scheduler, adapter):
        dispatcher.dispatch(FilterListTextChanged("ads"))
        scheduler.advance(DELAY)
        dispatcher.dispatch(NetworkUrlChanged("https://ads.test/"))
        assert store.state.network_result.value.matched

    def test_not_recomputed_when_empty(self, dispatcher, store, scheduler, adapter):
        dispatcher.dispatch(FilterListTextChanged("ads"))
        scheduler.advance(DELAY)
        assert adapter.count("match") == 0
        assert store.state.network_result is None


# ============================================================================
# Cosmetic query
# ============================================================================

class TestCosmeticQuery:
    def test_always_some(self, dispatcher, store):
        dispatcher.dispatch(CosmeticUrlChanged(""))
        assert store.state.cosmetic_result is not None

    def test_refreshed_after_rebuild(self, dispatcher, store, scheduler):
        dispatcher.dispatch(CosmeticUrlChanged("https://site.test"))
        assert store.state.cosmetic_result.hide_selectors == []
        dispatcher.dispatch(FilterListTextChanged("#banner"))
        scheduler.advance(DELAY)
        assert store.state.cosmetic_result.hide_selectors == ["#banner"]


# ============================================================================
# Resources
# ============================================================================

class TestResources:
    def test_load_applies_to_current_engine(self, dispatcher, store, adapter, scheduler):
        dispatcher.dispatch(ResourcesLoaded(RESOURCES_JSON))
        assert [r.name for r in store.state.resources] == ["noop.js"]
        assert len(store.state.engine.resources) == 1
        assert store.state.resources_error is None
        assert scheduler.live == []

    def test_malformed_json_is_recoverable(self, dispatcher, store):
        dispatcher.dispatch(ResourcesLoaded(RESOURCES_JSON))
        dispatcher.dispatch(ResourcesLoaded("{not json"))
        assert [r.name for r in store.state.resources] == ["noop.js"]
        assert store.state.resources_error is not None
        assert "invalid JSON" in str(store.state.resources_error)

    def test_deeply_nested_json_is_recoverable(self, dispatcher, store):
        dispatcher.dispatch(ResourcesLoaded(RESOURCES_JSON))
        dispatcher.dispatch(ResourcesLoaded("[" * 100000 + "]" * 100000))
        assert [r.name for r in store.state.resources] == ["noop.js"]
        assert "invalid JSON" in str(store.state.resources_error)

    def test_wrong_shape_is_recoverable(self, dispatcher, store):
        dispatcher.dispatch(ResourcesLoaded(json.dumps({"name": "x"})))
        assert store.state.resources == []
        assert store.state.resources_error is not None

    def test_error_cleared_by_good_payload(self, dispatcher, store):
        dispatcher.dispatch(ResourcesLoaded("[1, 2]"))
        dispatcher.dispatch(ResourcesLoaded(RESOURCES_JSON))
        assert store.state.resources_error is None


# ============================================================================
# Export
# ============================================================================

class TestExport:
    def test_writes_serialized_engine(self, dispatcher, store, scheduler, downloads):
        dispatcher.dispatch(FilterListTextChanged("ads\ntrackers"))
        scheduler.advance(DELAY)
        engine = store.state.engine
        dispatcher.dispatch(ExportRequested())
        out = downloads.out_dir / "rs-ABPFilterParserData.dat"
        assert out.read_bytes() == b"ads\ntrackers"
        assert store.state.engine is engine
        assert store.state.export_error is None

    def test_format_follows_settings(self, dispatcher, store, settings, adapter, downloads):
        settings["export"]["format"] = "json"
        dispatcher.dispatch(ExportRequested())
        assert ("serialize", "json") in adapter.calls
        assert (downloads.out_dir / "engine.json").exists()

    def test_configured_filename_only_for_matching_format(self, dispatcher, store, settings, downloads):
        settings["export"]["filename"] = "my-list.dat"
        dispatcher.dispatch(ExportRequested())
        assert (downloads.out_dir / "my-list.dat").exists()

        settings["export"]["format"] = "json"
        dispatcher.dispatch(ExportRequested())
        assert (downloads.out_dir / "engine.json").exists()
        assert sorted(p.name for p in downloads.out_dir.iterdir()) == ["engine.json", "my-list.dat"]

    def test_unknown_format_is_reported(self, dispatcher, store, settings):
        settings["export"]["format"] = "xml"
        dispatcher.dispatch(ExportRequested())
        assert "Unsupported format" in store.state.export_error

    def test_write_failure_is_reported(self, dispatcher, store, downloads):
        downloads.out_dir.parent.mkdir(parents=True, exist_ok=True)
        downloads.out_dir.write_text("a file where the directory should be")
        dispatcher.dispatch(ExportRequested())
        assert store.state.export_error is not None


# ============================================================================
# Subscribers
# ============================================================================

def test_listeners_called_after_each_event(dispatcher, store, scheduler):
    seen = []
    store.subscribe(lambda state: seen.append(state.raw_filter_list_text))
    dispatcher.dispatch(FilterListTextChanged("a"))
    scheduler.advance(DELAY)
    assert seen == ["a", "a"]
