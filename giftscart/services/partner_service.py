from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from giftscart.config import Config
from giftscart.models import Partner

logger = logging.getLogger(__name__)


def is_platform_host(domain: str) -> bool:
    """True for the platform's own hostnames and anything beneath them."""
    return any(domain == host or domain.endswith(f".{host}") for host in Config.PLATFORM_HOSTS)


def partner_subdomain(domain: str) -> Optional[str]:
    """``sweetdelights.giftscart.in`` -> ``sweetdelights``."""
    for root in Config.PARTNER_SUBDOMAIN_ROOTS:
        if domain.endswith(f".{root}"):
            return domain.split(".", 1)[0]
    return None


class PartnerService:
    """Looks up white-label partner storefronts by referral code or hostname."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def resolve(self, ref: Optional[str] = None, domain: Optional[str] = None) -> Optional[Dict[str, Any]]:
        conditions = []
        if ref:
            conditions.append(Partner.ref_code == ref)

        domain = (domain or "").strip().lower()
        # Partner subdomains sit under the platform roots, so match them first
        if domain:
            sub = partner_subdomain(domain)
            if sub and sub != "www":
                conditions.append(Partner.subdomain == sub)
            elif not is_platform_host(domain):
                conditions.append(Partner.custom_domain == domain)

        if not conditions:
            return None

        partner = (
            self.db.query(Partner)
            .filter(Partner.is_active.is_(True), or_(*conditions))
            .order_by(Partner.partnerID)
            .first()
        )
        if partner is None:
            return None
        return self.to_public_dict(partner)

    @staticmethod
    def to_public_dict(partner: Partner) -> Dict[str, Any]:
        city = partner.default_city
        vendor = partner.default_vendor
        # A suspended or offline default vendor must not be pinned on the storefront
        vendor_valid = vendor is not None and vendor.is_approved and bool(vendor.is_online)
        return {
            "id": partner.partnerID,
            "name": partner.name,
            "refCode": partner.ref_code,
            "logoUrl": partner.logo_url,
            "primaryColor": partner.primary_color or Config.DEFAULT_PARTNER_COLOR,
            "showPoweredBy": bool(partner.show_powered_by),
            "commissionPercent": float(partner.commission_percent or 0),
            "defaultCityId": city.cityID if city else None,
            "defaultCitySlug": city.slug if city else None,
            "defaultCityName": city.name if city else None,
            "defaultVendorId": vendor.vendorID if vendor_valid else None,
            "defaultVendorName": vendor.business_name if vendor_valid else None,
        }
