from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from flask import jsonify, request

from ..common.datetime_utils import coerce_date
from ..common.validators import optional_int, require_int
from ..core.exceptions import ValidationError


def ok(data: Any = None, message: str = "OK", status: int = 200):
    return jsonify({"success": True, "data": data, "message": message}), status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def arg_int(name: str, *, required: bool = False) -> Optional[int]:
    value = request.args.get(name)
    if required:
        return require_int(value, name)
    return optional_int(value, name)


def arg_date(name: str) -> Optional[date]:
    value = request.args.get(name)
    try:
        return coerce_date(value)
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD", details={name: value})


def arg_datetime(name: str, *, end_of_day: bool = False) -> Optional[datetime]:
    parsed = arg_date(name)
    if parsed is None:
        return None
    if end_of_day:
        return datetime.combine(parsed, datetime.max.time())
    return datetime.combine(parsed, datetime.min.time())


def arg_bool(name: str, default: bool = False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}
