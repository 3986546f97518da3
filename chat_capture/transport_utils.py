"""
Transport chain for a single logical HTTP call.

Each request mechanism the host offers is wrapped as a Transport. The chain
tries them in order and stops at the first one that produces any response.
Every response, whatever its shape, is read through the same adapter into an
API response dict:

    {'ok', 'status', 'data', 'raw', 'content_type', 'headers'}

When JSON was expected but the answer is not a JSON object or array, the
chain promotes to the in-page fetch fallback (same origin, page credentials)
and uses its result if that one is usable.
"""

import time
from collections.abc import Mapping
from typing import Callable, Optional

import requests

from .config import JSON_CONTENT_TYPE_REGEX
from .text_utils import normalize_api_text, safe_json_parse


class Transport:
    """A named request mechanism. The runner returns a response or None."""

    def __init__(self, name: str, runner: Callable):
        self.name = name
        self.runner = runner

    def __repr__(self):
        return f"Transport({self.name!r})"


def empty_response() -> dict:
    """Result returned when no mechanism produced a response."""
    return {
        'ok': False,
        'status': 0,
        'data': None,
        'raw': '',
        'content_type': None,
        'headers': None,
    }


def _get(response, *names):
    for name in names:
        if isinstance(response, Mapping):
            value = response.get(name)
        else:
            value = getattr(response, name, None)
        if value is not None:
            return value
    return None


def read_status(response) -> int:
    value = _get(response, 'status', 'status_code')
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def read_body(response) -> str:
    if isinstance(response, requests.Response):
        return response.text
    body = _get(response, 'responseText', 'response', 'body', 'text', 'content')
    return normalize_api_text(body)


def _parse_header_lines(text: str) -> dict:
    headers = {}
    for line in text.splitlines():
        name, sep, value = line.partition(':')
        if sep and name.strip():
            headers[name.strip().lower()] = value.strip()
    return headers


def read_headers(response) -> Optional[dict]:
    """Response headers as a dict with lowercase names."""
    getter = getattr(response, 'getAllResponseHeaders', None)
    if callable(getter):
        raw = getter()
        if isinstance(raw, str):
            return _parse_header_lines(raw)

    headers = _get(response, 'headers', 'responseHeaders')
    if headers is None:
        return None
    if isinstance(headers, str):
        return _parse_header_lines(headers)
    if isinstance(headers, Mapping) or hasattr(headers, 'items'):
        return {str(k).lower(): str(v) for k, v in headers.items()}
    try:
        return {str(k).lower(): str(v) for k, v in headers}
    except (TypeError, ValueError):
        return None


def read_content_type(response, headers: Optional[dict]) -> Optional[str]:
    getter = getattr(response, 'getResponseHeader', None)
    if callable(getter):
        value = getter('Content-Type')
        if value:
            return value
    if headers:
        return headers.get('content-type')
    return None


def read_response(response) -> dict:
    """Pull status, body and headers out of any supported response shape."""
    headers = read_headers(response)
    return {
        'status': read_status(response),
        'raw': read_body(response),
        'content_type': read_content_type(response, headers),
        'headers': headers,
        'json_candidate': _get(response, 'responseJSON'),
    }


def expects_json(request: dict, content_type: Optional[str]) -> bool:
    """Explicit expect_json wins, then caller intent, then the content type."""
    if request.get('expect_json') is not None:
        return bool(request['expect_json'])
    if request.get('wants_json'):
        return True
    return bool(content_type and JSON_CONTENT_TYPE_REGEX.search(content_type))


def build_result(parts: dict, request: dict, trace=None) -> dict:
    raw = parts['raw']
    data = raw
    if expects_json(request, parts['content_type']):
        candidate = parts.get('json_candidate')
        if isinstance(candidate, (dict, list)):
            data = candidate
        else:
            parsed = safe_json_parse(raw, request.get('label'), trace)
            if isinstance(parsed, (dict, list)):
                data = parsed
    status = parts['status']
    return {
        'ok': 200 <= status < 300,
        'status': status,
        'data': data,
        'raw': raw,
        'content_type': parts['content_type'],
        'headers': parts['headers'],
    }


def has_meaningful_payload(result: Optional[dict]) -> bool:
    if not result:
        return False
    if isinstance(result.get('data'), (dict, list)):
        return True
    return bool((result.get('raw') or '').strip())


class TransportChain:
    """Ordered request mechanisms behind one send() call."""

    def __init__(self, transports, page_fetch=None, trace=None):
        self.transports = [t for t in transports if t is not None]
        self.page_fetch = page_fetch
        self.trace = trace or print

    def _run_page_fetch(self, request: dict) -> Optional[dict]:
        if not self.page_fetch:
            return None
        started = time.monotonic()
        try:
            response = self.page_fetch(request)
        except Exception as e:
            self.trace(f"[transport] page fetch error: {e}")
            return None
        if response is None:
            return None
        result = build_result(read_response(response), request, self.trace)
        elapsed = int((time.monotonic() - started) * 1000)
        self.trace(f"[transport] page fetch status={result['status']} ms={elapsed}")
        return result

    def send(self, request: dict) -> Optional[dict]:
        """
        Run the request through the chain.

        Returns:
            API response dict, or None when every mechanism failed outright
        """
        disabled = request.get('disable_page_fetch', False)
        prefer = request.get('prefer_page_fetch', False)
        fallback_tried = False

        if not disabled and (request.get('force_page_fetch') or prefer):
            fallback_tried = True
            fallback = self._run_page_fetch(request)
            if fallback and fallback['ok'] and (prefer or has_meaningful_payload(fallback)):
                return fallback

        for transport in self.transports:
            try:
                response = transport.runner(request)
            except Exception as e:
                self.trace(f"[transport] {transport.name} failed: {e}")
                continue
            if response is None:
                continue

            result = build_result(read_response(response), request, self.trace)
            self.trace(f"[transport] {transport.name} status={result['status']}")

            if (not disabled and not fallback_tried
                    and expects_json(request, result['content_type'])
                    and not isinstance(result['data'], (dict, list))):
                fallback = self._run_page_fetch(request)
                if fallback and fallback['ok'] and has_meaningful_payload(fallback):
                    self.trace(f"[transport] promoted {transport.name} result to page fetch")
                    return fallback
            return result

        return None
