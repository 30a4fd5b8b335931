import types

import pytest
import requests

from blog_reader import fetcher
from blog_reader.errors import NetworkError


def _response(content=b"payload", error=None):
    def raise_for_status():
        if error is not None:
            raise error

    return types.SimpleNamespace(content=content, raise_for_status=raise_for_status)


def test_fetch_returns_body_and_passes_timeout(monkeypatch):
    captured = {}

    def fake_get(url, timeout=None, headers=None):
        captured.update(url=url, timeout=timeout, headers=headers)
        return _response(b"<rss/>")

    monkeypatch.setattr(fetcher.requests, "get", fake_get)

    assert fetcher.fetch("https://example.com/feed", timeout=3.0) == b"<rss/>"
    assert captured["timeout"] == 3.0
    assert captured["headers"]["User-Agent"].startswith("blog_reader/")


def test_fetch_wraps_connection_errors(monkeypatch):
    def fake_get(url, timeout=None, headers=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(fetcher.requests, "get", fake_get)

    with pytest.raises(NetworkError) as excinfo:
        fetcher.fetch("https://down.example.com")

    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


def test_fetch_wraps_timeouts(monkeypatch):
    def fake_get(url, timeout=None, headers=None):
        raise requests.Timeout("too slow")

    monkeypatch.setattr(fetcher.requests, "get", fake_get)

    with pytest.raises(NetworkError):
        fetcher.fetch("https://slow.example.com")


def test_fetch_rejects_non_2xx(monkeypatch):
    monkeypatch.setattr(
        fetcher.requests,
        "get",
        lambda url, timeout=None, headers=None: _response(
            error=requests.HTTPError("404 Client Error")
        ),
    )

    with pytest.raises(NetworkError, match="404"):
        fetcher.fetch("https://example.com/missing")
