"""
API client built on the transport chain.

call_api() resolves the URL against the page, adds the same-origin headers
the ChatGPT web app sends (taken from the page's own cookies, never made
up), applies a default timeout and hands the request to the transport chain.
It always returns an API response dict; total failure is the empty response.
"""

import re
import time
from urllib.parse import unquote, urljoin, urlparse

import requests

from .config import CHATGPT_HOSTS, DEFAULT_TIMEOUT, ENABLE_VERBOSE_API_LOGGING, USER_AGENT
from .transport_utils import Transport, TransportChain, empty_response


def is_chatgpt_host(url) -> bool:
    try:
        host = (urlparse(url).hostname or '').lower()
    except ValueError:
        return False
    if host.startswith('www.'):
        host = host[4:]
    return host in CHATGPT_HOSTS


def get_cookie_value(cookie: str, name: str):
    """Value of one cookie from a Cookie header string, URL-decoded."""
    if not cookie or not name:
        return None
    match = re.search(r'(?:^|;\s*)' + re.escape(name) + r'=([^;]*)', cookie)
    if not match:
        return None
    try:
        return unquote(match.group(1))
    except (TypeError, ValueError):
        return match.group(1)


def has_header(headers: dict, name: str) -> bool:
    name = name.lower()
    return any(key.lower() == name for key in headers)


def get_page_language(ctx):
    if ctx.language:
        return ctx.language
    html_tag = ctx.soup.find('html')
    if html_tag and html_tag.get('lang'):
        return html_tag.get('lang')
    return None


def apply_request_headers(ctx, url: str, headers: dict = None) -> dict:
    """
    Copy headers and add the workspace, device and language headers.

    Only applied to ChatGPT hosts. Headers the caller already set are kept.
    """
    merged = dict(headers or {})
    if not is_chatgpt_host(url):
        return merged

    injected = (
        ('chatgpt-account-id', get_cookie_value(ctx.cookie, '_account')),
        ('oai-device-id', get_cookie_value(ctx.cookie, 'oai-did')),
        ('oai-language', get_page_language(ctx)),
    )
    for name, value in injected:
        if value and not has_header(merged, name):
            merged[name] = value
    return merged


def make_requests_runner(ctx):
    """Host HTTP helper backed by requests, or by ctx.session when one was given."""
    def run(request):
        headers = dict(request.get('headers') or {})
        if not has_header(headers, 'User-Agent'):
            headers['User-Agent'] = USER_AGENT
        # Session cookies only go back to the site they came from
        if ctx.cookie and is_chatgpt_host(request['url']) and not has_header(headers, 'Cookie'):
            headers['Cookie'] = ctx.cookie
        return (ctx.session or requests).request(
            request.get('method', 'GET'),
            request['url'],
            headers=headers,
            data=request.get('body'),
            timeout=request.get('timeout'),
            allow_redirects=True,
        )
    return run


def build_transport_chain(ctx) -> TransportChain:
    transports = []
    if ctx.connector_request:
        transports.append(Transport('connector', ctx.connector_request))
    transports.append(Transport('http', ctx.host_request or make_requests_runner(ctx)))
    if ctx.page_request:
        transports.append(Transport('page', ctx.page_request))
    return TransportChain(transports, page_fetch=ctx.page_fetch, trace=ctx.trace)


def _redacted(headers: dict) -> dict:
    return {k: ('<redacted>' if k.lower() in ('cookie', 'authorization') else v)
            for k, v in headers.items()}


def call_api(ctx, url: str, method: str = 'GET', headers: dict = None, body=None,
             timeout: float = None, expect_json: bool = None,
             prefer_page_fetch: bool = False, force_page_fetch: bool = False,
             disable_page_fetch: bool = False, label: str = None) -> dict:
    """
    Make one logical API call from the page's point of view.

    Args:
        ctx: PageContext of the page making the call
        url: Absolute URL or path relative to the page
        expect_json: Force (True) or suppress (False) JSON parsing
        prefer_page_fetch: Use the in-page fetch first whenever it succeeds
        force_page_fetch: Use the in-page fetch first when it returns a payload
        disable_page_fetch: Never fall back to the in-page fetch

    Returns:
        API response dict {'ok', 'status', 'data', 'raw', 'content_type', 'headers'}
    """
    if not url:
        raise ValueError('call_api requires a url')

    absolute_url = urljoin(ctx.url or '', url)
    request_headers = apply_request_headers(ctx, absolute_url, headers)
    accept = next((v for k, v in request_headers.items() if k.lower() == 'accept'), '')
    wants_json = 'application/json' in accept or expect_json is True

    request = {
        'url': absolute_url,
        'method': method,
        'headers': request_headers,
        'body': body,
        'timeout': timeout or DEFAULT_TIMEOUT,
        'expect_json': expect_json,
        'wants_json': wants_json,
        'prefer_page_fetch': prefer_page_fetch,
        'force_page_fetch': force_page_fetch,
        'disable_page_fetch': disable_page_fetch,
        'label': label,
    }
    path = urlparse(absolute_url).path
    if ENABLE_VERBOSE_API_LOGGING:
        ctx.trace(f"[api][call_api] start {method} path=\"{path}\" headers={_redacted(request_headers)}")

    started = time.monotonic()
    result = build_transport_chain(ctx).send(request)
    elapsed = int((time.monotonic() - started) * 1000)

    if result is None:
        ctx.trace(f"[api][call_api] failed path=\"{path}\" label={label} ms={elapsed}")
        return empty_response()

    ctx.trace(f"[api][call_api] done path=\"{path}\" status={result['status']} "
              f"bytes={len(result['raw'])} ms={elapsed}")
    return result
