from __future__ import annotations

import logging

import requests
from flask import Blueprint, request

from giftscart.blueprints import json_body, ok
from giftscart.database import get_db
from giftscart.errors import ApiError
from giftscart.geo import region_payload
from giftscart.services import mappls_token
from giftscart.services.geocoding import NominatimClient
from giftscart.services.pincode_service import PincodeService
from giftscart.services.serviceability_service import ServiceabilityService

logger = logging.getLogger(__name__)

location_bp = Blueprint("location", __name__)


def _get_pincode_service() -> PincodeService:
    return PincodeService(get_db(), geocoder=NominatimClient())


@location_bp.route("/api/location/pincode", methods=["GET"])
def lookup_pincode():
    service = _get_pincode_service()
    try:
        data = service.resolve(request.args.get("pincode"))
    except requests.RequestException as exc:
        logger.error("Pincode lookup failed: %s", exc)
        raise ApiError("Failed to look up pincode")
    return ok(data)


@location_bp.route("/api/serviceability", methods=["POST"])
def check_serviceability():
    payload = json_body()
    return ok(ServiceabilityService(get_db()).check(payload))


@location_bp.route("/api/geo", methods=["GET"])
def geo_region():
    return ok(region_payload(request.headers))


@location_bp.route("/api/mappls/token", methods=["GET"])
def get_mappls_token():
    return ok(mappls_token.token_cache.get_token())
