"""
Response text normalization.

Request helpers hand back payloads in many shapes: plain strings, raw bytes,
typed views, or objects carrying a body somewhere inside. Everything here
turns those into a plain string and never raises, so callers downstream can
always assume text.
"""

import json
from collections.abc import Mapping
from typing import Any, Optional

BODY_FIELDS = ('text', 'body', 'message', 'error')


def _decode_bytes(value) -> str:
    data = bytes(value)
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        # One character per byte
        return data.decode('latin-1')


def _field(value, name):
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _body_text(value) -> Optional[str]:
    """Look for text in the known body-carrying fields of an object."""
    for name in BODY_FIELDS:
        field = _field(value, name)
        if isinstance(field, str):
            return field
        if name == 'body' and field is not None:
            data = _field(field, 'data')
            if isinstance(data, list):
                return '\n'.join(str(entry) for entry in data)
            if isinstance(data, (bytes, bytearray, memoryview)):
                return _decode_bytes(data)
    raw = _field(value, 'raw')
    if raw is not None and raw is not value:
        text = normalize_api_text(raw)
        if text:
            return text
    return None


def normalize_api_text(value: Any) -> str:
    """
    Convert any response payload into a string.

    Args:
        value: str, bytes, bytearray, memoryview, number, bool, mapping or object

    Returns:
        Text form of the payload, or '' when there is none
    """
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _decode_bytes(value)

    text = _body_text(value)
    if text is not None:
        return text

    try:
        serialized = json.dumps(value)
    except (TypeError, ValueError, RecursionError):
        return ''
    if serialized in ('{}', '[]'):
        return ''
    return serialized


def safe_json_parse(text, label: str = None, trace=None):
    """Parse JSON text, returning None instead of raising."""
    if isinstance(text, (dict, list)):
        return text
    text = normalize_api_text(text).strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except (ValueError, RecursionError) as e:
        if trace:
            trace(f"[json] {label or 'payload'} parse error: {e}")
        return None


def extract_api_response_text(response) -> str:
    """Text body of an API response dict, falling back to its parsed data."""
    if not response:
        return ''
    raw = response.get('raw')
    if raw:
        return raw
    return normalize_api_text(response.get('data'))
