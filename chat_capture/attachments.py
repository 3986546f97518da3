"""
Snapshot attachments.

When the conversation is the page being captured, the page itself is the
snapshot. Otherwise (saving from a project list) the conversation has to be
loaded in the background, which only happens with emulated snapshots
enabled:
1. fetch the conversation page, preferring the in-page fetch
2. if the markup has no conversation turns, render one from the API payload
3. failing that, load the page in a hidden frame and wait for it to hydrate
"""

import time

from .api_client import call_api
from .api_metadata import fetch_conversation_payload
from .config import (
    ENABLE_EMULATED_SNAPSHOTS,
    FRAME_POLL_INTERVAL,
    FRAME_WAIT_CEILING,
    SNAPSHOT_MIME_TYPE,
    SNAPSHOT_TIMEOUT,
    SNAPSHOT_TITLE,
)
from .dom_utils import has_conversation_markup
from .render_utils import render_conversation
from .text_utils import extract_api_response_text
from .url_utils import same_page

SNAPSHOT_URL_KEYS = ('private', 'snapshot', 'item', 'page', 'public')


def get_snapshot_url(ctx, urls):
    for key in SNAPSHOT_URL_KEYS:
        if urls.get(key):
            return urls[key]
    return ctx.url


def wait_for_content(ctx, url, ceiling=FRAME_WAIT_CEILING, interval=FRAME_POLL_INTERVAL):
    """
    Load url in a hidden frame and poll until conversation turns appear.

    Gives up after the ceiling and returns whatever markup is there.
    """
    if not ctx.open_frame:
        return None
    try:
        frame = ctx.open_frame(url)
    except Exception as e:
        ctx.trace(f"[attachments] hidden frame error: {e}")
        return None
    if frame is None:
        return None

    html = None
    deadline = time.monotonic() + ceiling
    try:
        while True:
            html = frame.content()
            if has_conversation_markup(html) or time.monotonic() >= deadline:
                break
            time.sleep(interval)
    except Exception as e:
        ctx.trace(f"[attachments] hidden frame read error: {e}")
    finally:
        close = getattr(frame, 'close', None)
        if callable(close):
            close()

    ctx.trace(f"[attachments] hidden frame hydrated={has_conversation_markup(html)}")
    return html or None


def load_snapshot_document(ctx, ids, urls, snapshot_url):
    """Snapshot markup for a conversation that isn't the current page."""
    response = call_api(ctx, snapshot_url, headers={'Accept': 'text/html'},
                        timeout=SNAPSHOT_TIMEOUT, expect_json=False,
                        prefer_page_fetch=True, label='snapshot')
    html = extract_api_response_text(response) if response['ok'] else ''
    if has_conversation_markup(html):
        return html

    payload = fetch_conversation_payload(ctx, ids, urls, html)
    if payload:
        ctx.trace('[attachments] rendering snapshot from conversation data')
        return render_conversation(payload, snapshot_url)

    return wait_for_content(ctx, snapshot_url)


def get_attachments(ctx, ids, urls, emulate=None) -> list:
    """
    Attachment descriptors for the record.

    Returns:
        List with one snapshot (document or URL-only), or empty
    """
    emulate = ENABLE_EMULATED_SNAPSHOTS if emulate is None else emulate
    snapshot_url = get_snapshot_url(ctx, urls)
    needs_background = not same_page(snapshot_url, ctx.url)

    if not needs_background:
        if ctx.html:
            return [{
                'title': SNAPSHOT_TITLE,
                'url': snapshot_url,
                'document': ctx.html,
                'snapshot': True,
                'mime_type': SNAPSHOT_MIME_TYPE,
            }]
        return [{'title': SNAPSHOT_TITLE, 'url': snapshot_url, 'snapshot': False}]

    if not emulate:
        ctx.trace(f"[attachments] skipped background snapshot url={snapshot_url}")
        return []

    document = load_snapshot_document(ctx, ids, urls, snapshot_url)
    if document:
        return [{
            'title': SNAPSHOT_TITLE,
            'url': snapshot_url,
            'document': document,
            'snapshot': True,
            'mime_type': SNAPSHOT_MIME_TYPE,
        }]
    return [{'title': SNAPSHOT_TITLE, 'url': snapshot_url, 'snapshot': False}]
