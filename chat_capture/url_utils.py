"""
Conversation identifiers and URL sets.

get_ids() and get_urls() are computed once per conversation. The URL set
follows one rule: when both a private (session) URL and a public share URL
are known, the saved item points at the public one and the snapshot is taken
from the private one. With only one known, both use it.
"""

from urllib.parse import urlparse, urlunparse

from .config import (
    CONVERSATION_ID_REGEXES,
    PROJECT_PAGE_REGEX,
    PROJECT_SLUG_REGEX,
    SHARE_ID_IN_PATH_REGEX,
    CONVERSATION_PAGE_REGEX,
)
from .dom_utils import get_dom_conversation_id, get_dom_message_ids
from .share_utils import default_share_host, find_share_in_document, normalize_share_candidate, share_id_from_url

URL_KEYS = ('page', 'private', 'public', 'item', 'snapshot', 'project')


def strip_fragment(url):
    if not url:
        return url
    return url.split('#', 1)[0]


def origin_of(url) -> str:
    parsed = urlparse(url or '')
    if not parsed.scheme or not parsed.netloc:
        return 'https://chatgpt.com'
    return f"{parsed.scheme}://{parsed.netloc}"


def normalize_url(url):
    """Absolute URL without its fragment, or None."""
    if not url or not isinstance(url, str):
        return None
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        return None
    return urlunparse(parsed._replace(fragment=''))


def same_page(a, b) -> bool:
    return bool(a and b) and strip_fragment(a) == strip_fragment(b)


def is_share_url(url) -> bool:
    return bool(url and SHARE_ID_IN_PATH_REGEX.search(url))


def is_project_url(url) -> bool:
    return bool(url and PROJECT_PAGE_REGEX.search(url))


def is_conversation_url(url) -> bool:
    return bool(url and CONVERSATION_PAGE_REGEX.search(url))


def extract_conversation_id(url):
    """Conversation (or share) id from a URL, lowercased."""
    if not url:
        return None
    path = urlparse(url).path
    match = SHARE_ID_IN_PATH_REGEX.search(path)
    if match:
        return match.group(1).lower()
    for pattern in CONVERSATION_ID_REGEXES:
        match = pattern.search(path)
        if match:
            return match.group(1).lower()
    return None


def extract_project_slug(url):
    if not url:
        return None
    match = PROJECT_SLUG_REGEX.search(urlparse(url).path)
    return match.group(1) if match else None


def get_ids(ctx, url=None, overrides=None) -> dict:
    """
    Identify the conversation shown at url (default: the current page).

    Overrides come from list iteration and win over anything derived. DOM
    probes only run when url is the page the context holds.
    """
    url = url or ctx.url
    overrides = overrides or {}
    on_page = same_page(url, ctx.url)

    conversation_id = overrides.get('conversation_id') or extract_conversation_id(url)
    if not conversation_id and on_page:
        conversation_id = get_dom_conversation_id(ctx.soup)
    if not conversation_id and on_page:
        public = find_share_in_document(ctx.soup, url)
        conversation_id = share_id_from_url(public)

    message_ids = get_dom_message_ids(ctx.soup) if on_page else {}

    return {
        'conversation_id': conversation_id.lower() if conversation_id else None,
        'last_prompt_id': message_ids.get('last_prompt_id'),
        'last_response_id': message_ids.get('last_response_id'),
        'project_slug': overrides.get('project_slug') or extract_project_slug(url),
    }


def get_private_url(ctx, url=None):
    """First non-share URL among the target and the page location."""
    for candidate in (url, ctx.url):
        normalized = normalize_url(candidate)
        if normalized and not is_share_url(normalized):
            return normalized
    return None


def get_public_url(ctx, url=None):
    url = url or ctx.url
    host = default_share_host(url)
    direct = normalize_share_candidate(url, None, host)
    if direct:
        return direct
    if same_page(url, ctx.url):
        return find_share_in_document(ctx.soup, url, host)
    return None


def project_conversation_url(origin, project_slug, conversation_id) -> str:
    return f"{origin}/g/{project_slug}/c/{conversation_id}"


def apply_share_hint(urls: dict, share_url) -> dict:
    """Record a newly discovered share URL, keeping item and snapshot consistent."""
    if not share_url:
        return urls
    urls['public'] = share_url
    urls['item'] = share_url
    urls['snapshot'] = urls.get('private') or share_url
    return urls


def get_urls(ctx, url=None, ids=None, overrides=None) -> dict:
    """
    Build the URL set for a conversation.

    Returns:
        dict with page, private, public, item, snapshot and project URLs
    """
    url = url or ctx.url
    overrides = overrides or {}
    ids = ids or get_ids(ctx, url, overrides)

    urls = dict.fromkeys(URL_KEYS)
    urls['page'] = normalize_url(url)
    urls['private'] = get_private_url(ctx, url)
    urls['public'] = get_public_url(ctx, url)
    urls['project'] = overrides.get('project') or (strip_fragment(ctx.url) if is_project_url(ctx.url) else None)

    if urls['private'] and urls['public']:
        urls['item'] = urls['public']
        urls['snapshot'] = urls['private']
    else:
        urls['item'] = urls['snapshot'] = urls['private'] or urls['public']

    if ids.get('conversation_id') and ids.get('project_slug'):
        conversation_url = project_conversation_url(
            origin_of(url), ids['project_slug'], ids['conversation_id'])
        for key in ('private', 'snapshot', 'item'):
            if not urls[key] or '/project' in urls[key]:
                urls[key] = conversation_url

    return urls
