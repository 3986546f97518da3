"""
Page detection and record assembly.

detect_web() decides what a page holds, get_item() builds the record for
one conversation and do_web() drives a whole save, including picking
conversations from a project page.
"""

from urllib.parse import urljoin, urlparse

from .attachments import get_attachments
from .cascade import get_ai_model, get_authors, get_date, get_extra, get_title
from .config import PROJECT_CONVERSATION_PATH_REGEX
from .records import Item
from .title_utils import trim_internal
from .url_utils import get_ids, get_urls, is_conversation_url, is_project_url, strip_fragment

ITEM_TYPE = 'instantMessage'


def get_type(ctx, url=None) -> str:
    return ITEM_TYPE


def detect_web(ctx, url=None):
    """'multiple' for project pages, 'instantMessage' for conversations, else False."""
    url = url or ctx.url
    if is_project_url(url):
        return 'multiple' if get_search_results(ctx, check_only=True) else False
    if is_conversation_url(url):
        return get_type(ctx, url)
    return False


def get_project_conversations(ctx) -> list:
    """Conversation links on a project page, de-duplicated."""
    rows = []
    seen = set()
    for anchor in ctx.soup.find_all('a', href=True):
        absolute = urljoin(ctx.url, anchor['href'])
        match = PROJECT_CONVERSATION_PATH_REGEX.match(urlparse(absolute).path)
        if not match:
            continue
        project_slug, conversation_id = match.group(1), match.group(2).lower()
        if conversation_id in seen:
            continue
        seen.add(conversation_id)
        overrides = {'conversation_id': conversation_id, 'project_slug': project_slug}
        urls = get_urls(ctx, strip_fragment(absolute), overrides=overrides)
        rows.append({
            'url': urls['item'],
            'conversation_id': conversation_id,
            'project_slug': project_slug,
            'label': trim_internal(anchor.get_text()) or f"Conversation {conversation_id[:8]}",
        })
    return rows


def get_search_results(ctx, check_only=False):
    """{url: label} for the project page, or a bool when check_only."""
    rows = get_project_conversations(ctx)
    if check_only:
        return bool(rows)
    return {row['url']: row['label'] for row in rows}


def get_item(ctx, url=None, overrides=None, emulate=None, sink=None) -> Item:
    """
    Build and complete the record for one conversation.

    Args:
        ctx: PageContext of the page being captured
        url: Conversation URL; defaults to the page URL
        overrides: conversation_id, project_slug and project URL from list iteration
        emulate: Enable background snapshots; defaults to the configured flag
    """
    url = url or ctx.url
    ids = get_ids(ctx, url, overrides)
    urls = get_urls(ctx, url, ids, overrides)

    item = Item(ITEM_TYPE, sink=sink)
    item.title = get_title(ctx, ids, urls)
    item.creators = get_authors(ctx, ids, urls)
    item.ai_model = get_ai_model(ctx, ids, urls)
    item.date = get_date(ctx, ids, urls)
    # Lookups above may have discovered a share URL
    item.url = urls['item'] or urls['page']
    item.extra = get_extra(urls)
    item.attachments = get_attachments(ctx, ids, urls, emulate)
    return item.complete()


def do_web(ctx, url=None, emulate=None, sink=None) -> list:
    """
    Save the page: one record for a conversation, or one per selected
    conversation on a project page.
    """
    url = url or ctx.url
    if detect_web(ctx, url) != 'multiple':
        return [get_item(ctx, url, emulate=emulate, sink=sink)]

    rows = {row['url']: row for row in get_project_conversations(ctx)}
    choices = {row_url: row['label'] for row_url, row in rows.items()}
    selected = ctx.select_items(choices) if ctx.select_items else None
    if not selected:
        return []

    project_url = strip_fragment(url)
    items = []
    for selected_url in selected:
        row = rows.get(selected_url)
        if not row:
            continue
        overrides = {
            'conversation_id': row['conversation_id'],
            'project_slug': row['project_slug'],
            'project': project_url,
        }
        try:
            items.append(get_item(ctx, selected_url, overrides, emulate=emulate, sink=sink))
        except Exception as e:
            ctx.trace(f"[do_web] failed to save {selected_url}: {e}")
    return items
