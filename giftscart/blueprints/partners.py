from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from giftscart.database import get_db
from giftscart.services.partner_service import PartnerService

logger = logging.getLogger(__name__)

partners_bp = Blueprint("partners", __name__)

CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"


@partners_bp.route("/api/partners/resolve", methods=["GET"])
def resolve_partner():
    db = get_db()
    try:
        partner = PartnerService(db).resolve(
            ref=request.args.get("ref"),
            domain=request.args.get("domain"),
        )
    except Exception as exc:
        # Storefronts fall back to the default brand when resolution fails
        db.rollback()
        logger.error("Partner resolution failed: %s", exc)
        return jsonify({"success": True, "data": None})

    if partner is None:
        return jsonify({"success": True, "data": None})

    response = jsonify({"success": True, "data": partner})
    response.headers["Cache-Control"] = CACHE_CONTROL
    return response
