import pytest

from blog_reader import checker
from blog_reader.checker import check_and_save, check_source, run_check_cycle
from blog_reader.errors import NetworkError, StateIOError
from blog_reader.hashing import digest
from blog_reader.models import (
    FeedUpdate,
    ManualUpdate,
    SeenHash,
    SeenIds,
    Source,
    SourceFailure,
    SourceKind,
    SourceState,
)
from conftest import rss_document, rss_item


def _fetcher(payloads):
    def fetch(url, timeout=None):
        value = payloads[url]
        if isinstance(value, Exception):
            raise value
        return value

    return fetch


def test_feed_source_reports_new_entries(feed_source, rss_payload):
    previous = SourceState(feed_source.name, SeenIds(("a",)))

    result, state = check_source(
        feed_source, previous, fetcher=_fetcher({feed_source.url: rss_payload})
    )

    assert isinstance(result, FeedUpdate)
    assert [entry.id for entry in result.new_entries] == ["c", "b"]
    assert state.last_seen == SeenIds(("a", "c", "b"))


def test_manual_source_first_check_is_baseline(manual_source):
    result, state = check_source(
        manual_source, None, fetcher=_fetcher({manual_source.url: b"<p>hi</p>"})
    )

    assert result == ManualUpdate(manual_source.name, manual_source.url, changed=False)
    assert state.last_seen == SeenHash(digest(b"<p>hi</p>"))


def test_manual_source_detects_change(manual_source):
    previous = SourceState(manual_source.name, SeenHash(digest(b"<p>hi</p>")))
    fetch = _fetcher({manual_source.url: b"<p>hi</p>"})

    unchanged, _ = check_source(manual_source, previous, fetcher=fetch)
    changed, _ = check_source(
        manual_source, previous, fetcher=_fetcher({manual_source.url: b"<p>bye</p>"})
    )

    assert unchanged.changed is False
    assert changed.changed is True


def test_failure_keeps_previous_state(feed_source):
    previous = SourceState(feed_source.name, SeenIds(("a",)))

    result, state = check_source(
        feed_source,
        previous,
        fetcher=_fetcher({feed_source.url: NetworkError("timed out")}),
    )

    assert isinstance(result, SourceFailure)
    assert "timed out" in result.error
    assert state is previous


def test_unexpected_errors_become_failures(feed_source):
    result, state = check_source(
        feed_source, None, fetcher=_fetcher({feed_source.url: KeyError("boom")})
    )

    assert isinstance(result, SourceFailure)
    assert state is None


def test_malformed_feed_does_not_stop_other_sources(manual_source):
    broken = Source("Broken", SourceKind.FEED, "https://broken.example.com/feed")
    good = Source("Good", SourceKind.FEED, "https://good.example.com/feed")
    payloads = {
        broken.url: b"<html>not a feed</html>",
        good.url: rss_document(rss_item("g1")),
        manual_source.url: b"page",
    }

    report = run_check_cycle(
        [broken, good, manual_source], {}, concurrency=2, fetcher=_fetcher(payloads)
    )

    assert [result.source_name for result in report.results] == [
        "Broken",
        "Good",
        manual_source.name,
    ]
    assert isinstance(report.results[0], SourceFailure)
    assert [entry.id for entry in report.results[1].new_entries] == ["g1"]
    assert isinstance(report.results[2], ManualUpdate)
    assert set(report.state) == {good.state_key, manual_source.state_key}
    assert report.new_entry_count == 1
    assert len(report.failures) == 1


def test_cycle_does_not_mutate_input_state(feed_source):
    previous = SourceState(feed_source.name, SeenIds(("a", "b", "c")))
    state = {feed_source.state_key: previous}
    payload = rss_document(rss_item("b"), rss_item("c"), rss_item("d"))

    report = run_check_cycle(
        [feed_source], state, fetcher=_fetcher({feed_source.url: payload})
    )

    assert [entry.id for entry in report.results[0].new_entries] == ["d"]
    seen = report.state[feed_source.state_key].last_seen
    assert set(seen.ids) == {"a", "b", "c", "d"}
    assert state[feed_source.state_key].last_seen.ids == ("a", "b", "c")


def test_orphaned_state_is_carried_over(feed_source):
    orphan = SourceState("Removed", SeenHash("x"))

    report = run_check_cycle(
        [feed_source],
        {"manual:https://removed.example.com": orphan},
        fetcher=_fetcher({feed_source.url: rss_document(rss_item("a"))}),
    )

    assert report.state["manual:https://removed.example.com"] is orphan


def test_sources_sharing_a_name_keep_separate_state():
    first = Source("Blog", SourceKind.FEED, "https://one.example.com/feed")
    second = Source("Blog", SourceKind.FEED, "https://two.example.com/feed")
    page = Source("Blog", SourceKind.MANUAL, "https://three.example.com/")
    fetch = _fetcher(
        {
            first.url: rss_document(rss_item("a1"), rss_item("a2")),
            second.url: rss_document(rss_item("b1")),
            page.url: b"<p>static</p>",
        }
    )

    state = {}
    reports = []
    for _ in range(3):
        report = run_check_cycle([first, second, page], state, fetcher=fetch)
        reports.append(report)
        state = report.state

    assert reports[0].new_entry_count == 3
    assert reports[1].new_entry_count == 0
    assert reports[2].new_entry_count == 0
    assert reports[2].changed_count == 0
    assert state[first.state_key].last_seen == SeenIds(("a1", "a2"))
    assert state[second.state_key].last_seen == SeenIds(("b1",))
    assert state[page.state_key].last_seen == SeenHash(digest(b"<p>static</p>"))


def test_empty_source_list():
    report = run_check_cycle([], {})

    assert report.results == []
    assert report.state == {}


def test_cycle_uses_module_fetch_by_default(monkeypatch, manual_source):
    monkeypatch.setattr(checker, "fetch", lambda url, timeout=None: b"body")

    report = run_check_cycle([manual_source], {})

    assert report.results[0].changed is False


class _MemoryStore:
    def __init__(self, error=None):
        self.saved = None
        self.error = error

    def save(self, mapping):
        if self.error:
            raise self.error
        self.saved = mapping


def test_check_and_save_persists_state(monkeypatch, manual_source):
    monkeypatch.setattr(checker, "fetch", lambda url, timeout=None: b"body")
    store = _MemoryStore()

    report, error = check_and_save(store, [manual_source], {})

    assert error is None
    assert store.saved == report.state


def test_check_and_save_surfaces_save_errors(monkeypatch, manual_source):
    monkeypatch.setattr(checker, "fetch", lambda url, timeout=None: b"body")
    store = _MemoryStore(StateIOError("read-only"))

    report, error = check_and_save(store, [manual_source], {})

    assert isinstance(error, StateIOError)
    assert manual_source.state_key in report.state


@pytest.mark.parametrize("concurrency", [1, 4])
def test_results_follow_configuration_order(concurrency):
    sources = [
        Source(f"Page {i}", SourceKind.MANUAL, f"https://p{i}.example.com")
        for i in range(6)
    ]
    payloads = {source.url: source.url.encode() for source in sources}

    report = run_check_cycle(
        sources, {}, concurrency=concurrency, fetcher=_fetcher(payloads)
    )

    assert [result.source_name for result in report.results] == [
        source.name for source in sources
    ]
