"""Utility helpers for consistent API responses."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import jsonify


def json_response(data: Any, *, status_code: int = 200):
    return jsonify(data), status_code


def message_response(message: str, *, status_code: int = 200, **extra: Any):
    payload = {'message': message}
    payload.update(extra)
    return jsonify(payload), status_code


def error_response(code: str, message: str, *, status_code: int = 400, meta: Optional[Mapping[str, Any]] = None):
    payload = {'message': message, 'code': code}
    if meta:
        payload.update(meta)
    return jsonify(payload), status_code
