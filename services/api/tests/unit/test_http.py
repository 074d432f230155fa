import pytest

from health_agent.tools import http


class DummyResponse:
    def __init__(self, url: str):
        self.url = url


def test_safe_request_allows_exact_domain(monkeypatch):
    captured = {}

    def fake_request(method, url, headers=None, allow_redirects=None, **kwargs):
        captured.update(
            method=method, url=url, headers=headers, allow_redirects=allow_redirects, kwargs=kwargs
        )
        return DummyResponse(url)

    monkeypatch.setattr(http.requests, "request", fake_request)

    resp = http.safe_request(
        "post",
        "https://generativelanguage.googleapis.com/v1beta/models/x:generateContent",
        allowlist=["generativelanguage.googleapis.com"],
        headers={"x": "y"},
        timeout=5,
    )

    assert isinstance(resp, DummyResponse)
    assert captured["method"] == "POST"
    assert captured["headers"] == {"x": "y"}
    assert captured["allow_redirects"] is False
    assert captured["kwargs"]["timeout"] == 5


def test_subdomain_matches_parent_entry():
    assert http.check_url("https://api.example.com/data", ["example.com"]) == "api.example.com"


def test_unlisted_domain_blocked():
    with pytest.raises(http.OutboundDomainError):
        http.check_url("https://other.com/", ["example.com"])
    # Suffix match needs a dot boundary
    with pytest.raises(http.OutboundDomainError):
        http.check_url("https://foobar.com/", ["bar.com"])


def test_no_allowlist_allows_all():
    assert http.check_url("https://anywhere.test/path") == "anywhere.test"


def test_invalid_scheme():
    with pytest.raises(ValueError):
        http.check_url("ftp://example.com/file")


def test_allowlist_is_case_insensitive():
    assert http.check_url("https://Example.com", ["EXAMPLE.COM"]) == "example.com"


def test_ip_must_be_listed_exactly():
    assert http.check_url("https://127.0.0.1/api", ["127.0.0.1"]) == "127.0.0.1"
    with pytest.raises(http.OutboundDomainError):
        http.check_url("https://127.0.0.1/api", ["example.com"])


def test_redirects_rejected(monkeypatch):
    monkeypatch.setattr(http.requests, "request", lambda *a, **k: DummyResponse("ok"))
    with pytest.raises(ValueError):
        http.safe_request("GET", "https://example.com", allowlist=["example.com"], allow_redirects=True)


def test_env_allowlist(monkeypatch):
    monkeypatch.setenv("OUTBOUND_ALLOWLIST", " example.com, ,  TEST.org  ")
    assert http.check_url("https://test.org/resource") == "test.org"
    assert http.check_url("https://example.com/resource") == "example.com"
    with pytest.raises(http.OutboundDomainError):
        http.check_url("https://evil.net")


def test_safe_post_json_sets_content_type(monkeypatch):
    captured = {}

    def fake_request(method, url, headers=None, allow_redirects=None, **kwargs):
        captured.update(method=method, headers=headers, json=kwargs.get("json"))
        return DummyResponse(url)

    monkeypatch.setattr(http.requests, "request", fake_request)
    http.safe_post_json("https://example.com/api", {"a": 1}, headers={"x-key": "k"})
    assert captured["method"] == "POST"
    assert captured["headers"] == {"Content-Type": "application/json", "x-key": "k"}
    assert captured["json"] == {"a": 1}
