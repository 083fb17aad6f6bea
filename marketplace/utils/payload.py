"""Helpers for reading JSON request bodies.

Field schemas are validated upstream; these only guard against missing keys
and map the camelCase wire names onto service arguments.
"""
from typing import Any, Dict, Iterable

from flask import request

from marketplace.exceptions import BusinessLogicError


def get_json_body() -> Dict[str, Any]:
    """Request JSON as a dict (empty dict for no/invalid body)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_fields(data: Dict[str, Any], fields: Iterable[str]) -> None:
    missing = [name for name in fields if data.get(name) in (None, '')]
    if missing:
        raise BusinessLogicError(f'Missing required fields: {", ".join(missing)}')


def parse_flag(value) -> bool:
    """Interpret JSON/form booleans ('true', 1, True...)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return False
