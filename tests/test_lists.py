from adblock_dash_core.models import Expires
from adblock_dash.services.lists import build_filter_set

EASYLIST_HEAD = """[Adblock Plus 2.0]
! Title: EasyList
! Homepage: https://easylist.to/
! Expires: 4 days (update frequency)
! Redirect: https://easylist.to/easylist/easylist.txt
! Title: Not this one
||ads.example^
example.com##.ad

||bad.example^$foo
#@#.generic-unhide
"""


def test_metadata_headers():
    _, meta = build_filter_set(EASYLIST_HEAD)
    assert meta.title == "EasyList"
    assert meta.homepage == "https://easylist.to/"
    assert meta.expires == Expires(4, "days")
    assert meta.redirect == "https://easylist.to/easylist/easylist.txt"


def test_counts_and_rejected_lines():
    filter_set, meta = build_filter_set(EASYLIST_HEAD)
    assert len(filter_set.network) == 1
    assert len(filter_set.cosmetic) == 1
    assert meta.accepted == 2
    assert meta.rejected == 2
    assert [lineno for lineno, _ in filter_set.rejected] == [10, 11]


def test_expires_hours():
    _, meta = build_filter_set("! Expires: 12 hours\n")
    assert meta.expires == Expires(12, "hours")
    assert str(meta.expires) == "12 hours"


def test_unparseable_expires_is_ignored():
    _, meta = build_filter_set("! Expires: soon\n! Expires: 2d\n")
    assert meta.expires == Expires(2, "days")


def test_empty_list():
    filter_set, meta = build_filter_set("")
    assert len(filter_set) == 0
    assert meta.title is None
    assert meta.accepted == 0 and meta.rejected == 0
