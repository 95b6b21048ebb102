import pytest
import requests

from meal_to_macros.catalog import CatalogError, FatSecretClient, FatSecretTokenProvider


class _Resp:
    def __init__(self, payload=None, status_code=200, text=""):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


def _client(payload=None, status_code=200, monkeypatch=None, seen=None):
    def fake_get(url, params=None, headers=None, timeout=None):
        if seen is not None:
            seen.append((url, params, headers))
        return _Resp(payload, status_code, text="upstream says no")

    monkeypatch.setattr(requests, "get", fake_get)
    return FatSecretClient(token_provider=lambda: "tok")


def test_search_returns_foods_object(monkeypatch):
    seen = []
    foods = {"food": {"food_id": "1", "food_name": "Banana"}, "total_results": "1"}
    client = _client({"foods": foods}, monkeypatch=monkeypatch, seen=seen)
    assert client.search("banana", max_results=5) == foods
    url, params, headers = seen[0]
    assert url.endswith("/rest/server.api")
    assert params["method"] == "foods.search"
    assert params["search_expression"] == "banana"
    assert params["max_results"] == 5
    assert headers["Authorization"] == "Bearer tok"


def test_no_hits_is_empty(monkeypatch):
    client = _client({"foods": {"total_results": "0"}}, monkeypatch=monkeypatch)
    assert client.search("zzz") == {"total_results": "0"}
    client = _client({"foods": None}, monkeypatch=monkeypatch)
    assert client.search("zzz") == {}


def test_error_payload_raises(monkeypatch):
    client = _client({"error": {"code": 12, "message": "User is performing too many actions"}}, monkeypatch=monkeypatch)
    with pytest.raises(CatalogError, match="12"):
        client.search("banana")


def test_http_error_raises(monkeypatch):
    client = _client(status_code=500, monkeypatch=monkeypatch)
    with pytest.raises(CatalogError, match="500"):
        client.search("banana")


def test_bad_json_raises(monkeypatch):
    client = _client(ValueError("Expecting value"), monkeypatch=monkeypatch)
    with pytest.raises(CatalogError):
        client.search("banana")


def test_transport_error_raises(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("reset")

    monkeypatch.setattr(requests, "get", boom)
    with pytest.raises(CatalogError):
        FatSecretClient(token_provider=lambda: "tok").search("banana")


def test_token_is_cached_until_near_expiry(monkeypatch):
    posts = []
    now = [0.0]

    def fake_post(url, data=None, auth=None, timeout=None):
        posts.append(auth)
        return _Resp({"access_token": f"t{len(posts)}", "expires_in": 3600})

    monkeypatch.setattr(requests, "post", fake_post)
    provider = FatSecretTokenProvider("id", "secret", clock=lambda: now[0])
    assert provider() == "t1"
    now[0] = 3000.0
    assert provider() == "t1"
    now[0] = 3541.0
    assert provider() == "t2"
    assert posts == [("id", "secret"), ("id", "secret")]


def test_token_failure_raises(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: _Resp({"error": "invalid_client"}, 401))
    with pytest.raises(CatalogError, match="401"):
        FatSecretTokenProvider("id", "bad")()
