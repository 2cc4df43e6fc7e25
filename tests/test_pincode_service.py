import pytest
import requests

from giftscart.errors import ValidationError
from giftscart.models import City, ServiceArea, VendorPincode, VendorStatus
from giftscart.services.geocoding import GeocodedPincode, NominatimClient
from giftscart.services.pincode_service import PincodeService


class StubGeocoder:
    """Answers from a dict; records every lookup."""

    def __init__(self, results=None, error=None):
        self.results = results or {}
        self.error = error
        self.calls = []

    def lookup_pincode(self, pincode):
        self.calls.append(pincode)
        if self.error is not None:
            raise self.error
        return self.results.get(pincode)


def _geocoded(pincode, city="Hyderabad", area="Banjara Hills"):
    return GeocodedPincode(pincode=pincode, area_name=area, lat=17.41, lng=78.44, city=city, state="Telangana")


def _area(db_session, city, pincode="500034", active=True):
    area = ServiceArea(
        pincode=pincode,
        name="Banjara Hills",
        cityID=city.cityID,
        city_name=city.name,
        state="Telangana",
        lat=17.4138,
        lng=78.4398,
        is_active=active,
    )
    db_session.add(area)
    db_session.commit()
    return area


def test_database_answer_wins_over_geocoder(db_session, city, make_vendor):
    _area(db_session, city)
    vendor = make_vendor(city)
    pending = make_vendor(city, status=VendorStatus.PENDING.value, name="Pending")
    db_session.add_all([
        VendorPincode(vendorID=vendor.vendorID, pincode="500034"),
        VendorPincode(vendorID=pending.vendorID, pincode="500034"),
    ])
    db_session.commit()
    geocoder = StubGeocoder({"500034": _geocoded("500034", city="Somewhere Else")})

    data = PincodeService(db_session, geocoder=geocoder).resolve("500034")

    assert geocoder.calls == []
    assert data["source"] == "database"
    assert data["isServiceable"] is True
    assert data["hasVendor"] is True
    assert data["vendorCount"] == 1
    assert data["cityId"] == city.cityID
    assert data["areaName"] == "Banjara Hills"


def test_not_found_when_geocoder_has_nothing(db_session):
    data = PincodeService(db_session, geocoder=StubGeocoder()).resolve("999999")

    assert data["source"] == "not_found"
    assert data["found"] is False
    assert data["isServiceable"] is False


def test_known_city_is_queued_for_review(db_session, city):
    geocoder = StubGeocoder({"500081": _geocoded("500081", city="hyderabad", area="Madhapur")})

    data = PincodeService(db_session, geocoder=geocoder).resolve("500081")

    assert data["source"] == "nominatim"
    assert data["pendingReview"] is True
    assert data["isServiceable"] is True
    assert data["cityId"] == city.cityID
    stored = db_session.query(ServiceArea).filter_by(pincode="500081").one()
    assert stored.is_active is False
    assert stored.name == "Madhapur"


def test_repeat_lookup_ignores_existing_pending_area(db_session, city):
    geocoder = StubGeocoder({"500081": _geocoded("500081")})
    service = PincodeService(db_session, geocoder=geocoder)

    service.resolve("500081")
    data = service.resolve("500081")

    assert data["source"] == "nominatim"
    assert db_session.query(ServiceArea).filter_by(pincode="500081").count() == 1


def test_city_matches_on_slug(db_session):
    db_session.add(City(name="New Delhi NCR", slug="new-delhi"))
    db_session.commit()
    geocoder = StubGeocoder({"110001": _geocoded("110001", city="New Delhi")})

    data = PincodeService(db_session, geocoder=geocoder).resolve("110001")

    assert data["source"] == "nominatim"
    assert data["cityName"] == "New Delhi NCR"


def test_unknown_city(db_session, city):
    geocoder = StubGeocoder({"400001": _geocoded("400001", city="Mumbai")})

    data = PincodeService(db_session, geocoder=geocoder).resolve("400001")

    assert data["source"] == "nominatim_unknown_city"
    assert data["isServiceable"] is False
    assert data["cityName"] == "Mumbai"
    assert db_session.query(ServiceArea).count() == 0


def test_blank_geocoded_city_is_unknown(db_session, city):
    geocoder = StubGeocoder({"400001": _geocoded("400001", city="")})

    data = PincodeService(db_session, geocoder=geocoder).resolve("400001")

    assert data["source"] == "nominatim_unknown_city"


@pytest.mark.parametrize("pincode", [None, "", "12345", "1234567", "50003a"])
def test_invalid_pincodes_raise(db_session, pincode):
    with pytest.raises(ValidationError):
        PincodeService(db_session, geocoder=StubGeocoder()).resolve(pincode)


def test_geocoder_network_failure_propagates(db_session):
    geocoder = StubGeocoder(error=requests.ConnectionError("dns failure"))

    with pytest.raises(requests.ConnectionError):
        PincodeService(db_session, geocoder=geocoder).resolve("500081")


def test_ensure_service_areas(db_session, city):
    _area(db_session, city, pincode="500034")
    geocoder = StubGeocoder(
        {"500081": _geocoded("500081", area="Madhapur")},
        error=None,
    )

    result = PincodeService(db_session, geocoder=geocoder).ensure_service_areas(
        ["500034", "500081", "500099", "bad"], city.cityID
    )

    assert result == {"created": 2, "failed": []}
    assert geocoder.calls == ["500081", "500099"]
    fallback = db_session.query(ServiceArea).filter_by(pincode="500099").one()
    assert fallback.is_active is True
    assert fallback.cityID == city.cityID
    assert fallback.name == "500099"


def test_lookup_endpoint(client, db_session, city, monkeypatch):
    _area(db_session, city)
    monkeypatch.setattr(NominatimClient, "lookup_pincode", lambda self, pincode: pytest.fail("geocoder called"))

    response = client.get("/api/location/pincode?pincode=500034")

    assert response.status_code == 200
    assert response.get_json()["data"]["source"] == "database"


def test_lookup_endpoint_validation_and_upstream_failure(client, monkeypatch):
    assert client.get("/api/location/pincode?pincode=12").status_code == 400

    def offline(*args, **kwargs):
        raise requests.Timeout("nominatim timed out")

    monkeypatch.setattr(requests, "get", offline)
    response = client.get("/api/location/pincode?pincode=500081")

    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Failed to look up pincode"}


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload


def test_nominatim_client_parses_first_hit(monkeypatch):
    captured = {}

    def fake_get(url, params=None, headers=None, timeout=None):
        captured.update(url=url, params=params, headers=headers, timeout=timeout)
        return FakeResponse([{
            "lat": "17.4483",
            "lon": "78.3915",
            "address": {"suburb": "Madhapur", "city": "Hyderabad", "state": "Telangana"},
        }])

    monkeypatch.setattr(requests, "get", fake_get)

    hit = NominatimClient(base_url="https://nominatim.test", timeout=5).lookup_pincode("500081")

    assert hit == GeocodedPincode("500081", "Madhapur", 17.4483, 78.3915, "Hyderabad", "Telangana")
    assert captured["url"] == "https://nominatim.test/search"
    assert captured["params"]["postalcode"] == "500081"
    assert captured["params"]["country"] == "India"
    assert captured["headers"]["User-Agent"]
    assert captured["timeout"] == 5


def test_nominatim_client_treats_http_errors_as_no_result(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse({}, status_code=503))
    assert NominatimClient().lookup_pincode("500081") is None
