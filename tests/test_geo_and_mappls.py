import pytest
import requests

from giftscart.errors import ServiceNotConfigured, UpstreamServiceError
from giftscart.geo import payment_region, region_payload
from giftscart.services import mappls_token
from giftscart.services.mappls_token import MapplsTokenCache


def test_region_detection_header_order():
    assert payment_region({}) == "india"
    assert payment_region({"CF-IPCountry": "IN"}) == "india"
    assert payment_region({"CF-IPCountry": "US", "X-Country": "IN"}) == "international"
    assert payment_region({"X-Vercel-IP-Country": "gb"}) == "international"


def test_region_payload_shapes():
    assert region_payload({}) == {
        "region": "india",
        "country": "IN",
        "currency": "INR",
        "gateways": ["razorpay", "cod"],
    }
    assert region_payload({"X-Country": "AE"})["gateways"] == ["stripe", "paypal"]


def test_geo_endpoint(client):
    response = client.get("/api/geo", headers={"CF-IPCountry": "SG"})
    assert response.get_json()["data"]["currency"] == "USD"


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.text = str(payload)

    def json(self):
        return self.payload


class Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_token_is_cached_until_buffer(monkeypatch):
    calls = []

    def fake_post(url, data=None, headers=None, timeout=None):
        calls.append(data)
        return FakeResponse({"access_token": f"token-{len(calls)}", "expires_in": 86400})

    monkeypatch.setattr(requests, "post", fake_post)
    clock = Clock()
    cache = MapplsTokenCache(client_id="id", client_secret="secret", clock=clock)

    first = cache.get_token()
    assert first == {"access_token": "token-1", "expires_in": 86400}
    assert calls[0]["grant_type"] == "client_credentials"

    clock.now += 3600
    second = cache.get_token()
    assert second["access_token"] == "token-1"
    assert second["expires_in"] == 86400 - 3600 - 3600
    assert len(calls) == 1

    clock.now += 86400 - 7200
    assert cache.get_token()["access_token"] == "token-2"
    assert len(calls) == 2


def test_token_requires_credentials():
    with pytest.raises(ServiceNotConfigured):
        MapplsTokenCache(client_id="", client_secret="").get_token()


def test_token_upstream_failure(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse({"error": "invalid_client"}, 401))

    with pytest.raises(UpstreamServiceError):
        MapplsTokenCache(client_id="id", client_secret="bad").get_token()


def test_token_endpoint_without_credentials(client, monkeypatch):
    monkeypatch.setattr(mappls_token, "token_cache", MapplsTokenCache(client_id="", client_secret=""))

    response = client.get("/api/mappls/token")

    assert response.status_code == 503
    assert response.get_json() == {"success": False, "error": "Mappls credentials not configured"}


def test_token_endpoint(client, monkeypatch):
    monkeypatch.setattr(
        requests, "post", lambda *a, **kw: FakeResponse({"access_token": "abc", "expires_in": 7200})
    )
    monkeypatch.setattr(mappls_token, "token_cache", MapplsTokenCache(client_id="id", client_secret="secret"))

    response = client.get("/api/mappls/token")

    assert response.status_code == 200
    assert response.get_json()["data"] == {"access_token": "abc", "expires_in": 7200}
