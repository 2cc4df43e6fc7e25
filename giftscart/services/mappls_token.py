"""Process-wide cache for the Mappls (MapmyIndia) OAuth client-credentials token."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests

from giftscart.config import Config
from giftscart.errors import ServiceNotConfigured, UpstreamServiceError
from giftscart.observability import increment_counter

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 86400
# Refresh an hour before Mappls expires the token
EXPIRY_BUFFER_SECONDS = 3600


@dataclass
class _CachedToken:
    access_token: str
    expires_at: float


class MapplsTokenCache:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id if client_id is not None else Config.MAPPLS_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else Config.MAPPLS_CLIENT_SECRET
        self.token_url = token_url or Config.MAPPLS_TOKEN_URL
        self.clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[_CachedToken] = None

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_token(self) -> Dict[str, object]:
        """
        Return ``{"access_token", "expires_in"}``, fetching a new token only
        when the cached one is missing or inside the expiry buffer. The lock
        is held across the fetch so concurrent callers share one request.
        """
        if not self.configured:
            raise ServiceNotConfigured("Mappls credentials not configured")

        with self._lock:
            now = self.clock()
            if self._cached is not None and now < self._cached.expires_at:
                increment_counter("mappls_token_requests_total", labels={"cache": "hit"})
                return {
                    "access_token": self._cached.access_token,
                    "expires_in": int(self._cached.expires_at - now),
                }

            increment_counter("mappls_token_requests_total", labels={"cache": "miss"})
            try:
                response = requests.post(
                    self.token_url,
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=Config.MAPPLS_TIMEOUT_SECONDS,
                )
            except requests.RequestException as exc:
                logger.error("Mappls OAuth request failed: %s", exc)
                raise UpstreamServiceError("Failed to obtain Mappls token") from exc

            if response.status_code != 200:
                logger.error("Mappls OAuth failed: %s %s", response.status_code, response.text)
                raise UpstreamServiceError("Failed to obtain Mappls token")

            data = response.json()
            expires_in = int(data.get("expires_in") or DEFAULT_EXPIRES_IN)
            self._cached = _CachedToken(
                access_token=data["access_token"],
                expires_at=now + expires_in - EXPIRY_BUFFER_SECONDS,
            )
            logger.info("Fetched new Mappls token (expires in %ss)", expires_in)
            return {"access_token": data["access_token"], "expires_in": expires_in}

    def clear(self) -> None:
        with self._lock:
            self._cached = None


token_cache = MapplsTokenCache()
