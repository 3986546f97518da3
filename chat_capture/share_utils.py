"""
Share-link discovery.

Finds a public share URL in a string, in any JSON value, or in a parsed
page. Every substrate ends in normalize_share_candidate(), so a candidate is
accepted the same way no matter where it was found.
"""

from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from .config import (
    DEFAULT_SHARE_HOST,
    MAX_SCRIPT_SCAN_LENGTH,
    SHARE_ID_REGEX,
    SHARE_PATH_REGEX,
    SHARE_URL_REGEX,
)
from .text_utils import safe_json_parse

# Meta tags that may carry the share URL, in priority order
SHARE_META_NAMES = ('og:url', 'twitter:url', 'share-url', 'shareUrl')
SHARE_DATA_ATTRIBUTES = ('data-share-url', 'data-share-link', 'data-public-share-url')
SCRIPT_SELECTORS = (
    'script[type="application/json"]',
    'script[type="application/ld+json"]',
    'script#__NEXT_DATA__',
    'script[data-state]',
)
MAX_SHARE_ANCHORS = 4


def find_in_value(value, accept, key=None):
    """
    Depth-first search of a JSON-like value.

    accept(leaf, key) is called for every non-container leaf along with the
    key of the enclosing dict entry. The first non-None result is returned.
    Containers already visited are skipped, so cyclic input terminates. The
    walk keeps its own stack, so nesting depth is not bounded by recursion.
    """
    seen = set()
    stack = [(value, key)]
    while stack:
        current, current_key = stack.pop()

        if isinstance(current, dict):
            if id(current) in seen:
                continue
            seen.add(id(current))
            stack.extend(reversed(list(current.items())))
            continue

        if isinstance(current, (list, tuple)):
            if id(current) in seen:
                continue
            seen.add(id(current))
            stack.extend((child, current_key) for child in reversed(current))
            continue

        found = accept(current, current_key)
        if found is not None:
            return found
    return None


def default_share_host(page_url) -> str:
    host = (urlparse(page_url or '').hostname or '').lower()
    if host == 'chat.openai.com':
        return host
    return DEFAULT_SHARE_HOST


def normalize_share_candidate(candidate, hint=None, default_host=DEFAULT_SHARE_HOST):
    """
    Canonical https://<host>/share/<id> form of a candidate, or None.

    A bare id is only accepted when the hint (an object key or attribute
    name) mentions "share".
    """
    if not isinstance(candidate, str):
        return None
    text = candidate.strip()
    if not text:
        return None
    text = text.replace('\\u002F', '/').replace('\\u002f', '/').replace('\\/', '/')

    match = SHARE_URL_REGEX.search(text)
    if match:
        return f"https://{match.group(1).lower()}/share/{match.group(2).lower()}"

    match = SHARE_PATH_REGEX.match(text)
    if match:
        return f"https://{default_host}/share/{match.group(1).lower()}"

    if hint and 'share' in str(hint).lower() and SHARE_ID_REGEX.match(text):
        return f"https://{default_host}/share/{text.lower()}"

    return None


def share_id_from_url(url):
    """The share id of a canonical or raw share URL."""
    normalized = normalize_share_candidate(url)
    if not normalized:
        return None
    return normalized.rsplit('/', 1)[-1]


def _document_candidates(soup):
    """(value, hint) pairs from a page, in priority order."""
    for name in SHARE_META_NAMES:
        meta = soup.find('meta', attrs={'property': name}) or soup.find('meta', attrs={'name': name})
        if meta and meta.get('content'):
            yield meta.get('content'), name

    canonical = soup.find('link', rel='canonical')
    if canonical and canonical.get('href'):
        yield canonical.get('href'), 'canonical'

    for meta in soup.select('meta[content*="/share/"]'):
        yield meta.get('content'), meta.get('name') or meta.get('property') or 'meta'

    for anchor in soup.select('a[href*="/share/"]')[:MAX_SHARE_ANCHORS]:
        yield anchor.get('href'), 'anchor'

    for attribute in SHARE_DATA_ATTRIBUTES:
        for element in soup.find_all(attrs={attribute: True}):
            yield element.get(attribute), attribute

    body = soup.find('body')
    if body:
        for attribute, value in body.attrs.items():
            if attribute.startswith('data-') and 'share' in attribute.lower():
                yield value, attribute


def _script_payloads(soup):
    seen = set()
    for selector in SCRIPT_SELECTORS:
        for script in soup.select(selector):
            if id(script) in seen:
                continue
            seen.add(id(script))
            text = script.string or script.get_text() or ''
            if text and len(text) <= MAX_SCRIPT_SCAN_LENGTH:
                yield text


def find_share_in_document(soup, page_url=None, default_host=None):
    """Scan a parsed page for a share URL."""
    default_host = default_host or default_share_host(page_url)

    if page_url:
        found = normalize_share_candidate(page_url, None, default_host)
        if found:
            return found

    for value, hint in _document_candidates(soup):
        found = normalize_share_candidate(value, hint, default_host)
        if found:
            return found

    for text in _script_payloads(soup):
        parsed = safe_json_parse(text)
        if isinstance(parsed, (dict, list)):
            found = find_share(parsed, default_host=default_host)
        else:
            found = normalize_share_candidate(text, None, default_host)
        if found:
            return found

    return None


def find_share(value, context_hint=None, default_host=DEFAULT_SHARE_HOST):
    """
    Find a share URL in a string, JSON value or parsed page.

    Args:
        value: str, dict, list, BeautifulSoup or Tag
        context_hint: Key or selector the value came from

    Returns:
        Canonical share URL or None
    """
    if value is None:
        return None

    if isinstance(value, (BeautifulSoup, Tag)):
        return find_share_in_document(value, default_host=default_host)

    if isinstance(value, str):
        found = normalize_share_candidate(value, context_hint, default_host)
        if found:
            return found
        stripped = value.strip()
        if stripped[:1] in ('{', '['):
            parsed = safe_json_parse(stripped)
            if isinstance(parsed, (dict, list)):
                return find_share(parsed, context_hint, default_host)
        return None

    def accept(leaf, key):
        return normalize_share_candidate(leaf, key or context_hint, default_host)

    return find_in_value(value, accept, context_hint)
