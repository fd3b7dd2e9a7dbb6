import asyncio

from textual.widgets import Input

from dashboard_tui import AdblockDashboard
from adblock_dash.settings import load_settings


def run(app, scenario):
    async def main():
        async with app.run_test() as pilot:
            await scenario(app, pilot)
    asyncio.run(main())


def make_app(settings, adapter, scheduler, tmp_path):
    return AdblockDashboard(
        settings=settings, adapter=adapter, scheduler=scheduler,
        settings_path=tmp_path / "settings.yaml",
    )


def test_filter_input_reaches_store(settings, adapter, scheduler, tmp_path):
    app = make_app(settings, adapter, scheduler, tmp_path)

    async def scenario(app, pilot):
        app.query_one("#filter_input", Input).value = "||ads.example^"
        await pilot.pause()
        assert app.store.state.raw_filter_text == "||ads.example^"
        assert app.store.state.parsed_filter.ok
        assert app.store.state.cb_equivalent.ok

    run(app, scenario)


def test_network_inputs_after_rebuild(settings, adapter, scheduler, tmp_path):
    app = make_app(settings, adapter, scheduler, tmp_path)

    async def scenario(app, pilot):
        app.dispatcher.filter_list_edited("ads.example")
        scheduler.advance(1.2)
        app.query_one("#net_url", Input).value = "https://ads.example/x"
        app.query_one("#net_type", Input).value = "script"
        await pilot.pause()
        state = app.store.state
        assert state.network_request_type == "script"
        assert state.network_result.value.matched

    run(app, scenario)


def test_cycle_format_persists(settings, adapter, scheduler, tmp_path):
    app = make_app(settings, adapter, scheduler, tmp_path)

    async def scenario(app, pilot):
        app.action_cycle_format()
        await pilot.pause()

    run(app, scenario)
    assert settings["export"]["format"] == "json"
    assert load_settings(tmp_path / "settings.yaml")["export"]["format"] == "json"


def test_download_saves_into_workspace(settings, adapter, scheduler, tmp_path):
    app = make_app(settings, adapter, scheduler, tmp_path)

    async def scenario(app, pilot):
        app.dispatcher.filter_list_edited("ads.example")
        scheduler.advance(1.2)
        app.action_download()
        await pilot.pause()

    run(app, scenario)
    saved = tmp_path / "workspace" / "downloads" / "rs-ABPFilterParserData.dat"
    assert saved.read_bytes() == b"ads.example"


def test_textual_timer_coalesces_list_edits(settings, adapter, tmp_path):
    settings["debounce_ms"] = 50
    app = AdblockDashboard(settings=settings, adapter=adapter, settings_path=tmp_path / "settings.yaml")

    async def scenario(app, pilot):
        for text in ("a", "ad", "ads"):
            app.dispatcher.filter_list_edited(text)
        assert app.store.state.pending_rebuild is not None
        await pilot.pause(0.3)
        state = app.store.state
        assert state.pending_rebuild is None
        assert state.rebuild_count == 1
        assert state.engine.rules == ["ads"]
        # one engine at startup, one for the coalesced edits
        assert adapter.count("compile_engine") == 2

    run(app, scenario)
