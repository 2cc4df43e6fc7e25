from sqlalchemy.exc import OperationalError

from conftest import ist
from giftscart.models import CitySlotCutoff, Product
from giftscart.services.express_service import (
    NOT_AVAILABLE_IN_CITY,
    PRODUCTS_NOT_ELIGIBLE,
    TOO_LATE,
    ExpressEligibilityService,
    evaluate_express,
)


def test_too_late_at_half_past_ten_with_three_hour_cutoff(db_session, city, express_cutoff, make_product):
    product = make_product()

    result = ExpressEligibilityService(db_session).check(
        city.cityID, [product.productID], now=ist(2026, 10, 19, 22, 30)
    )

    assert result.to_dict() == {
        "eligible": False,
        "expressCharge": 200.0,
        "cutoffHours": 3,
        "reason": TOO_LATE,
    }


def test_eligible_before_cutoff(db_session, city, express_cutoff, make_product):
    product = make_product()

    result = ExpressEligibilityService(db_session).check(
        city.cityID, [product.productID], now=ist(2026, 10, 19, 20, 59)
    )

    assert result.to_dict() == {"eligible": True, "expressCharge": 200.0, "cutoffHours": 3}


def test_cutoff_boundary_hour_is_too_late(db_session, city, express_cutoff, make_product):
    product = make_product()

    result = ExpressEligibilityService(db_session).check(
        city.cityID, [product.productID], now=ist(2026, 10, 19, 21, 0)
    )

    assert result.reason == TOO_LATE


def test_any_ineligible_product_blocks_express(db_session, city, express_cutoff, make_product):
    roses = make_product("Roses", express=True)
    cake = make_product("Designer Cake", express=False)

    result = ExpressEligibilityService(db_session).check(
        city.cityID, [roses.productID, cake.productID], now=ist(2026, 10, 19, 9, 0)
    )

    assert result.to_dict() == {
        "eligible": False,
        "expressCharge": 0,
        "cutoffHours": 3,
        "reason": PRODUCTS_NOT_ELIGIBLE,
    }


def test_unknown_products_block_express(db_session, city, express_cutoff, make_product):
    roses = make_product("Roses", express=True)

    result = ExpressEligibilityService(db_session).check(
        city.cityID, [roses.productID, 404, None], now=ist(2026, 10, 19, 9, 0)
    )

    assert result.reason == PRODUCTS_NOT_ELIGIBLE


def test_city_without_express_row(db_session, city, make_product):
    product = make_product()

    result = ExpressEligibilityService(db_session).check(city.cityID, [product.productID])

    assert result.to_dict() == {
        "eligible": False,
        "expressCharge": 0,
        "cutoffHours": 0,
        "reason": NOT_AVAILABLE_IN_CITY,
    }


def test_unavailable_express_row(db_session, city, express_cutoff, make_product):
    express_cutoff.is_available = False
    db_session.commit()

    result = ExpressEligibilityService(db_session).check(city.cityID, [make_product().productID])

    assert result.reason == NOT_AVAILABLE_IN_CITY


def test_zero_charge_and_cutoff_fall_back_to_defaults():
    row = CitySlotCutoff(slot_slug="express", cutoff_hours=0, base_charge=0, is_available=True)

    class FakeProduct:
        productID = 1
        is_express_eligible = True

    result = evaluate_express(row, [1], [FakeProduct()], now=ist(2026, 10, 19, 10, 0))

    assert result.eligible is True
    assert result.express_charge == 200
    assert result.cutoff_hours == 3


def test_cutoff_lookup_failure_is_reported_as_unavailable(db_session, city, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(db_session, "query", broken_query)

    result = ExpressEligibilityService(db_session).check(city.cityID, [1])

    assert result.reason == NOT_AVAILABLE_IN_CITY


def test_express_endpoint_parses_query_string(client, city, express_cutoff, make_product):
    plant = make_product("Money Plant", express=False)

    response = client.get(
        f"/api/checkout/express-eligibility?cityId={city.cityID}&productIds={plant.productID},abc"
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["eligible"] is False
    assert data["reason"] == PRODUCTS_NOT_ELIGIBLE


def test_express_endpoint_requires_product_ids(client, city, express_cutoff):
    missing = client.get(f"/api/checkout/express-eligibility?cityId={city.cityID}")
    blank = client.get(f"/api/checkout/express-eligibility?cityId={city.cityID}&productIds=")

    assert missing.status_code == 400
    assert missing.get_json() == {"success": False, "error": "At least one productId is required"}
    assert blank.status_code == 400
    assert client.get("/api/checkout/express-eligibility?productIds=1").status_code == 400


def test_product_lookup_failure_is_reported_as_ineligible(db_session, city, express_cutoff, monkeypatch):
    real_query = db_session.query

    def query(model, *args, **kwargs):
        if model is Product:
            raise OperationalError("SELECT", {}, Exception("connection lost"))
        return real_query(model, *args, **kwargs)

    monkeypatch.setattr(db_session, "query", query)

    result = ExpressEligibilityService(db_session).check(city.cityID, [1], now=ist(2026, 10, 19, 9, 0))

    assert result.to_dict() == {
        "eligible": False,
        "expressCharge": 0,
        "cutoffHours": 3,
        "reason": PRODUCTS_NOT_ELIGIBLE,
    }
