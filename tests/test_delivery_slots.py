from datetime import date

import pytest

from conftest import ist
from giftscart.errors import NotFoundError, ValidationError
from giftscart.models import DeliveryHoliday, DeliverySurcharge, HolidayMode, VendorProduct
from giftscart.services.delivery_slots_service import DeliverySlotsService, fixed_window_charge


@pytest.fixture
def configured_city(city, slots, enable_city_slots):
    enable_city_slots(city, slots.values())
    return city


def _availability(db_session, city, day, now, **kwargs):
    return DeliverySlotsService(db_session).availability(city.cityID, day, now=now, **kwargs)


def test_fixed_window_minimum_prices():
    assert fixed_window_charge(0, 9) == 50
    assert fixed_window_charge(0, 15) == 75
    assert fixed_window_charge(0, 19) == 100
    assert fixed_window_charge(120, 19) == 120


def test_future_date_offers_everything(db_session, configured_city):
    data = _availability(db_session, configured_city, "2026-10-21", ist(2026, 10, 19, 10, 0))

    assert data["fullyBlocked"] is False
    assert data["standard"] == {"available": True, "charge": 0.0}
    assert [w["start"] for w in data["fixedWindows"]] == ["09:00", "11:00", "13:00", "15:00", "17:00", "19:00"]
    assert [w["charge"] for w in data["fixedWindows"]] == [50, 50, 50, 75, 75, 100]
    assert data["earlyMorning"] == {"available": True, "charge": 149.0, "cutoffPassed": False}
    assert data["express"] == {"available": True, "charge": 200.0}
    assert data["midnight"] == {"available": True, "charge": 199.0, "cutoffPassed": False}
    assert data["surcharge"] is None
    assert data["maxPreparationTime"] == 120


def test_today_hides_started_windows_and_early_morning(db_session, configured_city):
    data = _availability(db_session, configured_city, "2026-10-19", ist(2026, 10, 19, 13, 5))

    assert [w["start"] for w in data["fixedWindows"]] == ["15:00", "17:00", "19:00"]
    assert data["earlyMorning"]["available"] is False
    assert data["earlyMorning"]["cutoffPassed"] is True
    assert data["midnight"]["available"] is True


def test_midnight_closes_at_six_pm_same_day(db_session, configured_city):
    data = _availability(db_session, configured_city, "2026-10-19", ist(2026, 10, 19, 18, 0))

    assert data["midnight"] == {"available": False, "charge": 199.0, "cutoffPassed": True}


def test_early_morning_closes_at_six_pm_the_day_before(db_session, configured_city):
    before = _availability(db_session, configured_city, "2026-10-20", ist(2026, 10, 19, 17, 59))
    after = _availability(db_session, configured_city, "2026-10-20", ist(2026, 10, 19, 18, 0))

    assert before["earlyMorning"]["available"] is True
    assert after["earlyMorning"]["available"] is False


def test_full_block_holiday(db_session, configured_city):
    db_session.add(DeliveryHoliday(
        date=date(2026, 10, 21),
        reason="Diwali",
        customer_message="Happy Diwali! We are closed today.",
        mode=HolidayMode.FULL_BLOCK.value,
    ))
    db_session.commit()

    data = _availability(db_session, configured_city, "2026-10-21", ist(2026, 10, 19, 10, 0))

    assert data["fullyBlocked"] is True
    assert data["holidayReason"] == "Happy Diwali! We are closed today."
    assert data["fixedWindows"] == []


def test_city_holiday_wins_over_global(db_session, configured_city):
    db_session.add(DeliveryHoliday(date=date(2026, 10, 21), reason="Global", mode=HolidayMode.FULL_BLOCK.value))
    db_session.add(DeliveryHoliday(
        date=date(2026, 10, 21),
        cityID=configured_city.cityID,
        reason="Local festival",
        mode=HolidayMode.STANDARD_ONLY.value,
    ))
    db_session.commit()

    data = _availability(db_session, configured_city, "2026-10-21", ist(2026, 10, 19, 10, 0))

    assert data["fullyBlocked"] is False
    assert data["standard"]["available"] is True
    assert data["fixedWindows"] == []
    assert data["express"]["available"] is False
    assert data["midnight"]["available"] is False


def test_custom_holiday_blocks_and_reprices(db_session, configured_city):
    db_session.add(DeliveryHoliday(
        date=date(2026, 10, 21),
        reason="Karva Chauth",
        mode=HolidayMode.CUSTOM.value,
        slot_overrides=[
            {"slug": "express", "blocked": True, "priceOverride": None},
            {"slug": "midnight", "blocked": False, "priceOverride": 299},
        ],
    ))
    db_session.commit()

    data = _availability(db_session, configured_city, "2026-10-21", ist(2026, 10, 19, 10, 0))

    assert data["express"]["available"] is False
    assert data["midnight"]["charge"] == 299


def test_city_charge_override_and_surcharge(db_session, city, slots, enable_city_slots):
    enable_city_slots(city, [slots["standard"], slots["midnight"]], charge_overrides={"midnight": 249})
    db_session.add_all([
        DeliverySurcharge(name="Festive", start_date=date(2026, 10, 20), end_date=date(2026, 10, 22), amount=30),
        DeliverySurcharge(name="Rain", start_date=date(2026, 10, 21), end_date=date(2026, 10, 21), amount=20),
    ])
    db_session.commit()

    data = _availability(db_session, city, "2026-10-21", ist(2026, 10, 19, 10, 0))

    assert data["midnight"]["charge"] == 249
    assert data["express"] == {"available": False, "charge": 249}
    assert data["surcharge"] == {"name": "Festive, Rain", "amount": 50.0}


def test_preparation_time_uses_slowest_product(db_session, configured_city, make_vendor, make_product):
    vendor = make_vendor(configured_city)
    cake = make_product("Photo Cake")
    roses = make_product("Roses")
    db_session.add_all([
        VendorProduct(vendorID=vendor.vendorID, productID=cake.productID, preparation_minutes=240),
        VendorProduct(vendorID=vendor.vendorID, productID=roses.productID, preparation_minutes=60),
    ])
    db_session.commit()

    data = _availability(
        db_session, configured_city, "2026-10-21", ist(2026, 10, 19, 10, 0),
        product_ids=[cake.productID, roses.productID],
    )

    assert data["maxPreparationTime"] == 240


def test_invalid_requests(db_session, city):
    service = DeliverySlotsService(db_session)
    with pytest.raises(ValidationError):
        service.availability(None, "2026-10-21")
    with pytest.raises(ValidationError):
        service.availability(city.cityID, "21/10/2026")
    with pytest.raises(NotFoundError):
        service.availability(9999, "2026-10-21")


def test_slots_endpoint(client, configured_city):
    response = client.get(f"/api/delivery/slots?cityId={configured_city.cityID}&date=2030-01-15")

    assert response.status_code == 200
    assert response.get_json()["data"]["standard"]["available"] is True
    assert client.get("/api/delivery/slots?date=2030-01-15").status_code == 400
    assert client.get("/api/delivery/slots?cityId=9999&date=2030-01-15").status_code == 404
