"""
ChatGPT backend lookups.

Each lookup returns plain dicts (or None) and caches its result on the page
context, so the field cascade can ask for the same conversation several
times at the cost of one round trip. Failures (network, 401/403, odd
payloads) come back as "nothing found" and never raise.

Share URL discovery runs in this order, each step only while the public URL
is still unknown:
1. page URL and markup (done by get_urls before any request)
2. share link embedded in the conversation payload
3. targeted probe of /backend-api/conversation/<id>/share (404 ends the search)
4. scan of /backend-api/shared_conversations, newest matching entry wins
"""

import time
from typing import Optional

from .api_client import call_api
from .config import SHARE_LIST_TIMEOUT, SHARE_PROBE_TIMEOUT
from .field_utils import collect_timestamps, format_date, newest_timestamp, normalize_author, normalize_model
from .share_utils import default_share_host, find_share, share_id_from_url
from .title_utils import normalize_title
from .url_utils import apply_share_hint, extract_conversation_id, is_share_url

AUTH_PATH = '/api/auth/session'
CONVERSATION_PATH = '/backend-api/conversation/{cid}'
SHARE_PROBE_PATH = '/backend-api/conversation/{cid}/share'
SHARE_LIST_PATH = '/backend-api/shared_conversations?order=created'
PUBLIC_CONVERSATION_PATH = '/backend-api/public/conversation/{share_id}'

JSON_HEADERS = {'Accept': 'application/json'}


def _auth_headers(token) -> dict:
    headers = dict(JSON_HEADERS)
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return headers


def _json_data(response) -> Optional[dict]:
    if response['ok'] and isinstance(response['data'], dict):
        return response['data']
    return None


def _newest_date(payload) -> Optional[str]:
    moment = newest_timestamp(collect_timestamps(payload))
    return format_date(moment) if moment else None


def get_api_auth(ctx) -> dict:
    """Session access token and user name, fetched once per page."""
    if ctx.cache.auth is not None:
        return ctx.cache.auth

    auth = {'token': None, 'user_name': None}
    data = _json_data(call_api(ctx, AUTH_PATH, headers=JSON_HEADERS, expect_json=True, label='auth'))
    if data:
        user = data.get('user') if isinstance(data.get('user'), dict) else {}
        auth['token'] = (data.get('accessToken') or data.get('access_token')
                         or user.get('accessToken') or user.get('access_token'))
        auth['user_name'] = normalize_author(user.get('name'))

    ctx.trace(f"[api][get_api_auth] token={'yes' if auth['token'] else 'no'} user={auth['user_name'] or '-'}")
    ctx.cache.auth = auth
    return auth


def _model_from_payload(data):
    model = normalize_model(data.get('default_model_slug'))
    if model:
        return model
    mapping = data.get('mapping')
    if isinstance(mapping, dict):
        for node in mapping.values():
            message = node.get('message') if isinstance(node, dict) else None
            metadata = message.get('metadata') if isinstance(message, dict) else None
            if isinstance(metadata, dict):
                model = normalize_model(metadata.get('model_slug') or metadata.get('model'))
                if model:
                    return model
    return None


def get_api_conversation(ctx, conversation_id, token=None) -> Optional[dict]:
    """
    Private conversation lookup.

    Returns:
        dict with title, date, ai_model, public and the raw payload, or None
    """
    if not conversation_id:
        return None
    if conversation_id in ctx.cache.conversations:
        return ctx.cache.conversations[conversation_id]

    response = call_api(ctx, CONVERSATION_PATH.format(cid=conversation_id),
                        headers=_auth_headers(token), expect_json=True, label='conversation')
    data = _json_data(response)
    result = None
    if data:
        result = {
            'title': normalize_title(data.get('title')),
            'date': _newest_date(data),
            'ai_model': _model_from_payload(data),
            'public': find_share(data, default_host=default_share_host(ctx.url)),
            'payload': data,
        }
    elif response['status'] in (401, 403):
        ctx.trace(f"[api][get_api_conversation] not authorized cid={conversation_id} status={response['status']}")

    ctx.cache.conversations[conversation_id] = result
    return result


def get_api_share(ctx, conversation_id, token=None) -> dict:
    """
    Ask the backend for this conversation's share link.

    Returns:
        {'url': share URL or None, 'confirmed_none': True when the backend says 404}
    """
    response = call_api(ctx, SHARE_PROBE_PATH.format(cid=conversation_id),
                        headers=_auth_headers(token), timeout=SHARE_PROBE_TIMEOUT,
                        expect_json=True, disable_page_fetch=True, label='share-probe')
    if response['status'] == 404:
        return {'url': None, 'confirmed_none': True}

    url = None
    data = _json_data(response)
    if data:
        host = default_share_host(ctx.url)
        url = find_share(data, default_host=host)
        if not url and data.get('share_id'):
            url = find_share(data['share_id'], 'share_id', host)
    return {'url': url, 'confirmed_none': False}


def get_api_share_list(ctx, conversation_id, token=None) -> Optional[dict]:
    """Newest entry for this conversation in the user's shared links."""
    if conversation_id in ctx.cache.share_lists:
        return ctx.cache.share_lists[conversation_id]

    response = call_api(ctx, SHARE_LIST_PATH, headers=_auth_headers(token),
                        timeout=SHARE_LIST_TIMEOUT, expect_json=True, label='share-list')
    data = _json_data(response)
    items = data.get('items') if data else None
    host = default_share_host(ctx.url)

    best = None
    best_moment = None
    for entry in items if isinstance(items, list) else []:
        if not isinstance(entry, dict):
            continue
        if str(entry.get('conversation_id') or '').lower() != conversation_id:
            continue
        share_key = entry.get('id') or entry.get('share_id')
        url = find_share(share_key, 'share_id', host) if share_key else None
        if not url:
            continue
        moment = newest_timestamp(collect_timestamps(entry))
        if best is None or (moment and (best_moment is None or moment > best_moment)):
            best = {'url': url, 'date': format_date(moment) if moment else None}
            best_moment = moment

    ctx.trace(f"[api][get_api_share_list] cid={conversation_id} status={response['status']} "
              f"found={len(items) if isinstance(items, list) else 0} matched={best is not None}")
    ctx.cache.share_lists[conversation_id] = best
    return best


def get_public_conversation(ctx, share_id) -> Optional[dict]:
    """Public share payload, looked up without credentials."""
    if not share_id:
        return None
    if share_id in ctx.cache.public_conversations:
        return ctx.cache.public_conversations[share_id]

    response = call_api(ctx, PUBLIC_CONVERSATION_PATH.format(share_id=share_id),
                        headers=JSON_HEADERS, expect_json=True, label='public-share')
    data = _json_data(response)
    ctx.cache.public_conversations[share_id] = data
    return data


def _summary_key(ids):
    return ids.get('conversation_id') if ids else None


def get_cached_summary(ctx, ids) -> Optional[dict]:
    key = _summary_key(ids)
    return ctx.cache.summaries.get(key) if key else None


def get_api_metadata(ctx, ids, urls) -> Optional[dict]:
    """
    Metadata summary for one conversation, computed once and cached.

    Share pages read the public share payload. Everything else goes through
    the session: auth, conversation, then share discovery.

    Returns:
        {'conversation_id', 'title', 'date', 'ai_model', 'human_author'} or None
    """
    key = _summary_key(ids)
    if not key:
        return None
    cached = ctx.cache.summaries.get(key)
    if cached is not None:
        return cached

    started = time.monotonic()
    summary = {
        'conversation_id': key,
        'title': None,
        'date': None,
        'ai_model': None,
        'human_author': None,
    }
    page_url = urls.get('page') or urls.get('item') or ctx.url

    if is_share_url(page_url):
        payload = get_public_conversation(ctx, key)
        if payload:
            summary['title'] = normalize_title(payload.get('title'))
            summary['date'] = _newest_date(payload)
            summary['ai_model'] = _model_from_payload(payload)
        source = 'public-share'
    else:
        auth = get_api_auth(ctx)
        summary['human_author'] = auth['user_name']

        conversation = get_api_conversation(ctx, key, auth['token'])
        if conversation:
            summary['title'] = conversation['title']
            summary['date'] = conversation['date']
            summary['ai_model'] = conversation['ai_model']
            if not urls.get('public') and conversation['public']:
                apply_share_hint(urls, conversation['public'])

        confirmed_none = False
        if not urls.get('public'):
            probe = get_api_share(ctx, key, auth['token'])
            confirmed_none = probe['confirmed_none']
            if probe['url']:
                apply_share_hint(urls, probe['url'])

        if not urls.get('public') and not confirmed_none:
            entry = get_api_share_list(ctx, key, auth['token'])
            if entry:
                apply_share_hint(urls, entry['url'])
                summary['date'] = summary['date'] or entry['date']
        source = 'session'

    elapsed = int((time.monotonic() - started) * 1000)
    ctx.trace(f"[api][get_api_metadata] done cid={key} source={source} "
              f"title=\"{summary['title'] or '-'}\" ms={elapsed}")
    ctx.cache.summaries[key] = summary
    return summary


def fetch_conversation_payload(ctx, ids, urls, html=None) -> Optional[dict]:
    """
    Conversation payload for rendering a snapshot.

    The public share payload is tried first, then the private conversation.
    """
    host = default_share_host(ctx.url)
    share_url = None
    for candidate in (urls.get('snapshot'), urls.get('public')):
        if is_share_url(candidate):
            share_url = candidate
            break
    if not share_url and html:
        share_url = find_share(html, default_host=host)
    if not share_url and is_share_url(ctx.url):
        share_url = ctx.url

    share_id = share_id_from_url(share_url)
    if share_id:
        payload = get_public_conversation(ctx, share_id)
        if payload and isinstance(payload.get('mapping') or payload.get('conversation'), dict):
            return payload

    conversation_id = ids.get('conversation_id') or extract_conversation_id(urls.get('private'))
    if conversation_id and urls.get('private'):
        token = get_api_auth(ctx)['token']
        conversation = get_api_conversation(ctx, conversation_id, token)
        if conversation:
            return conversation['payload']
    return None
