from __future__ import annotations

import time
from typing import Any, Dict, Tuple

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from giftscart.config import Config
from giftscart.database import engine


def check_database_health() -> Dict[str, Any]:
    """Run ``SELECT 1`` and report how long it took."""
    started = time.perf_counter()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except OperationalError as exc:
        return {"status": "DOWN", "detail": str(exc)}
    return {"status": "UP", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}


def build_health_report() -> Tuple[Dict[str, Any], int]:
    """Overall status plus per-component detail; only the database is critical."""
    database = check_database_health()
    components = {
        "database": database,
        "mappls": {
            "status": "CONFIGURED"
            if Config.MAPPLS_CLIENT_ID and Config.MAPPLS_CLIENT_SECRET
            else "NOT_CONFIGURED"
        },
    }
    overall = "UP" if database["status"] == "UP" else "DEGRADED"
    return {"status": overall, "components": components}, 200 if overall == "UP" else 503
