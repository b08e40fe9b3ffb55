"""
Request body parsing helpers shared by the blueprints
"""

from typing import Any, Dict, Mapping, Optional

from flask import request

from utils.errors import ValidationError


def json_body() -> Dict[str, Any]:
    """JSON object body, or ``{}`` for a missing, malformed or non-object body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def text_field(data: Mapping[str, Any], key: str, *, strip: bool = True) -> Optional[str]:
    """String value of ``key``; ``None`` when absent or null.

    Numbers, lists and objects are rejected with a 400 instead of failing later
    on string operations.
    """
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{key} must be a string')
    return value.strip() if strip else value
