"""HTTP blueprints and the small helpers they share."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import jsonify, request

from giftscart.errors import ValidationError


def ok(data: Any = None, status: int = 200, **extra: Any):
    body: Dict[str, Any] = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def int_arg(name: str, required: bool = True) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{name} is required")
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def id_list(raw: Any) -> List[Optional[int]]:
    """Comma-separated string or list of ids; unparseable entries become None."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    if not isinstance(items, list):
        raise ValidationError("productIds must be a list")
    ids: List[Optional[int]] = []
    for item in items:
        if isinstance(item, str):
            item = item.strip()
            if not item:
                continue
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            ids.append(None)
    return ids
