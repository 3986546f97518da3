"""
Field resolution cascade.

Every record field is resolved the same way: cached API summary, then a
live API lookup, then the page markup, then a static default. A source
counts only if its value survives the field's normalizer, which turns
generic values (the platform name, the default title) into None so the
cascade keeps looking.
"""

import time

from .api_metadata import get_api_metadata, get_cached_summary
from .config import TRANSLATOR_DEFAULTS
from .dom_utils import get_dom_ai_model, get_dom_date, get_dom_human_author, get_dom_titles
from .field_utils import make_creator, normalize_author, normalize_date, normalize_model, now_utc
from .title_utils import normalize_title
from .url_utils import same_page

SOURCE_KINDS = ('cache', 'api', 'dom')


def _usable(value) -> bool:
    return value is not None and value != '' and value != [] and value != {}


def resolve_field(ctx, name, cached=None, api=None, dom=None, normalize=None, default=None) -> dict:
    """
    Resolve one field through the cascade.

    Args:
        cached, api, dom: Zero-argument callables returning a raw value, or None to skip
        normalize: Maps a raw value to a clean one, or None when unusable
        default: Value (or zero-argument callable) used when no source is usable

    Returns:
        {'kind': 'cache'|'api'|'dom'|'fallback', 'value': ...}
    """
    started = time.monotonic()
    for kind, source in zip(SOURCE_KINDS, (cached, api, dom)):
        if source is None:
            continue
        try:
            value = source()
        except Exception as e:
            ctx.trace(f"[cascade][{name}] {kind} error: {e}")
            continue
        if normalize is not None:
            value = normalize(value)
        if _usable(value):
            elapsed = int((time.monotonic() - started) * 1000)
            ctx.trace(f"[cascade][{name}] done source={kind} value=\"{value}\" ms={elapsed}")
            return {'kind': kind, 'value': value}

    value = default() if callable(default) else default
    ctx.trace(f"[cascade][{name}] done source=fallback value=\"{value}\"")
    return {'kind': 'fallback', 'value': value}


def _summary_field(summary, key):
    return summary.get(key) if summary else None


def _sources(ctx, ids, urls, key):
    """Cache and API sources reading one key of the conversation summary."""
    def cached():
        return _summary_field(get_cached_summary(ctx, ids), key)

    def api():
        if get_cached_summary(ctx, ids) is not None:
            return None
        return _summary_field(get_api_metadata(ctx, ids, urls), key)

    return cached, api


def _dom(ctx, urls, accessor):
    """DOM source, only when the conversation is the page the context holds."""
    if not same_page(urls.get('page'), ctx.url):
        return None
    return lambda: accessor(ctx.soup)


def _first_title(candidates):
    for candidate in candidates or ():
        title = normalize_title(candidate)
        if title:
            return title
    return None


def get_title(ctx, ids, urls) -> str:
    cached, api = _sources(ctx, ids, urls, 'title')
    return resolve_field(
        ctx, 'title', cached, api,
        dom=_dom(ctx, urls, lambda soup: _first_title(get_dom_titles(soup))),
        normalize=normalize_title,
        default=TRANSLATOR_DEFAULTS['title'],
    )['value']


def get_ai_name(ctx, ids, urls) -> dict:
    cached, api = _sources(ctx, ids, urls, 'ai_name')
    name = resolve_field(
        ctx, 'ai_name', cached, api,
        normalize=lambda value: value.strip() if isinstance(value, str) and value.strip() else None,
        default=TRANSLATOR_DEFAULTS['ai_name'],
    )['value']
    return make_creator(name)


def get_human_author(ctx, ids, urls) -> dict:
    cached, api = _sources(ctx, ids, urls, 'human_author')
    name = resolve_field(
        ctx, 'human_author', cached, api,
        dom=_dom(ctx, urls, get_dom_human_author),
        normalize=normalize_author,
        default=TRANSLATOR_DEFAULTS['human_author'],
    )['value']
    return make_creator(name)


def get_authors(ctx, ids, urls) -> list:
    """AI participant first, then the human."""
    return [get_ai_name(ctx, ids, urls), get_human_author(ctx, ids, urls)]


def get_ai_model(ctx, ids, urls):
    cached, api = _sources(ctx, ids, urls, 'ai_model')
    return resolve_field(
        ctx, 'ai_model', cached, api,
        dom=_dom(ctx, urls, get_dom_ai_model),
        normalize=normalize_model,
        default=TRANSLATOR_DEFAULTS['ai_model'],
    )['value']


def get_date(ctx, ids, urls) -> str:
    cached, api = _sources(ctx, ids, urls, 'date')
    return resolve_field(
        ctx, 'date', cached, api,
        dom=_dom(ctx, urls, get_dom_date),
        normalize=normalize_date,
        default=now_utc,
    )['value']


def get_extra(urls):
    """Note the private URL when the record points at a different public one."""
    private = urls.get('private')
    public = urls.get('public')
    if private and public and private != public:
        return f"Private URL: {private}"
    return None
