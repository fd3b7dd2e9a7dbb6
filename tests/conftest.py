"""
Shared fixtures: a manually advanced scheduler and a small fake engine adapter
so the coordinator can be exercised without the real matching engine.
"""
import copy

import pytest

from adblock_dash_core.errors import CbError, EMPTY_FILTER, EngineBuildError, FilterParseError, RequestError
from adblock_dash_core.models import (
    CbEquivalent, CbRule, CosmeticResources, ListMetadata, MatchResult, NetworkFilter, Result,
)
from adblock_dash.controllers.dispatcher import EventDispatcher
from adblock_dash.controllers.store import StateStore
from adblock_dash.services.export import DownloadService
from adblock_dash.services.resources import parse_resources
from adblock_dash.settings import DEFAULTS


class ManualHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Virtual clock; callbacks run only from advance()."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def __call__(self, delay, callback):
        handle = ManualHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = sorted((h for h in self.live if h.when <= target), key=lambda h: h.when)
            if not due:
                break
            handle = due[0]
            self.now = handle.when
            handle.fired = True
            handle.callback()
        self.now = target


class FakeEngine:
    def __init__(self, rules):
        self.rules = list(rules)
        self.resources = []


class FakeEngineAdapter:
    """
    Lines of the list are substrings; a request matches when its URL contains
    one. Filters starting with "bad" fail to parse, filters containing "nocb"
    fail to convert, lists containing "BOOM" fail to compile.
    """

    def __init__(self):
        self.calls = []

    def parse_filter(self, text):
        self.calls.append(("parse_filter", text))
        if not text.strip():
            return Result.failure(EMPTY_FILTER)
        if text.startswith("bad"):
            return Result.failure(FilterParseError(kind="network", message="bad filter"))
        return Result.success(NetworkFilter(raw=text, pattern=text, regex=text))

    def convert_to_content_blocking(self, parsed):
        self.calls.append(("convert", parsed.raw))
        if "nocb" in parsed.raw:
            return Result.failure(CbError(kind="unsupported", message="no equivalent"))
        rule = CbRule(trigger={"url-filter": parsed.raw}, action={"type": "block"})
        return Result.success(CbEquivalent(rules=(rule,)))

    def build_filter_set(self, list_text):
        self.calls.append(("build_filter_set", list_text))
        lines = [l.strip() for l in list_text.splitlines() if l.strip()]
        title = next((l[len("! Title: "):] for l in lines if l.startswith("! Title: ")), None)
        rules = [l for l in lines if not l.startswith("!")]
        return rules, ListMetadata(title=title, accepted=len(rules))

    def compile_engine(self, filter_set):
        self.calls.append(("compile_engine", list(filter_set)))
        if "BOOM" in filter_set:
            raise EngineBuildError("cannot compile BOOM")
        return FakeEngine(filter_set)

    def apply_resources(self, engine, resources):
        self.calls.append(("apply_resources", len(resources)))
        engine.resources = list(resources)

    def match_network_request(self, engine, url, source_url, request_type):
        self.calls.append(("match", url, source_url, request_type))
        if not url.startswith("http"):
            return Result.failure(RequestError(f"invalid request URL: {url!r}"))
        hit = next((r for r in engine.rules if r in url), None)
        return Result.success(MatchResult(matched=hit is not None, filter=hit))

    def cosmetic_resources_for(self, engine, url):
        self.calls.append(("cosmetic", url))
        return CosmeticResources(hide_selectors=[r for r in engine.rules if r.startswith("#")])

    def serialize_engine(self, engine, fmt):
        self.calls.append(("serialize", fmt))
        if fmt not in ("dat", "json", "yaml"):
            raise ValueError(f"Unsupported format: {fmt}")
        return "\n".join(engine.rules).encode("utf-8")

    def parse_resources(self, json_text):
        return parse_resources(json_text)

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)


@pytest.fixture
def settings(tmp_path):
    s = copy.deepcopy(DEFAULTS)
    s["workspace_path"] = str(tmp_path / "workspace")
    return s


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def adapter():
    return FakeEngineAdapter()


@pytest.fixture
def downloads(tmp_path):
    return DownloadService(tmp_path / "downloads")


@pytest.fixture
def store(settings, adapter, scheduler, downloads):
    return StateStore(settings, adapter, scheduler, download=downloads)


@pytest.fixture
def dispatcher(store):
    return EventDispatcher(store)
