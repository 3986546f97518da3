"""
Conversation graph traversal and snapshot rendering.

A conversation payload stores messages as a tree of nodes with parent
pointers plus a current_node. order_messages() turns that into a linear
transcript; render_conversation() writes the transcript as a standalone
HTML document used as a snapshot when the live page can't be captured.
"""

import json
import re
from datetime import timezone

from bs4 import BeautifulSoup

from .config import TRANSLATOR_DEFAULTS
from .field_utils import parse_timestamp
from .title_utils import normalize_title

ROLE_LABELS = {
    'assistant': TRANSLATOR_DEFAULTS['ai_name'],
    'user': TRANSLATOR_DEFAULTS['human_author'],
    'system': 'System',
}
EXCLUDED_ROLES = ('tool',)
EMPTY_MESSAGE_TEXT = '[empty response]'
FOOTER_TEXT = 'Snapshot rendered from the conversation data.'

FENCE_OPEN_PATTERN = re.compile(r'^```[a-zA-Z0-9-]*\s*')
FENCE_CLOSE_PATTERN = re.compile(r'```\s*$')

STYLE = """
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif; margin: 0 auto; max-width: 860px; padding: 32px 20px; color: #1f2933; }
header h1 { margin: 0; font-size: 1.8rem; }
header p { margin: 4px 0 0; color: #555; }
.conversation { display: flex; flex-direction: column; gap: 18px; margin-top: 24px; }
.message { border-radius: 14px; padding: 18px 20px; border: 1px solid #d9e2ec; }
.message.role-assistant { background: #f4f9fd; }
.message.role-user { background: #f8f4fb; }
.message.role-system { background: #f4f6f6; }
.message-meta { font-size: 0.9rem; font-weight: 600; margin-bottom: 12px; display: flex; justify-content: space-between; }
.message-body p { margin: 0 0 12px; white-space: pre-wrap; }
.message-body pre { background: rgba(0,0,0,0.06); border-radius: 10px; padding: 14px; overflow-x: auto; white-space: pre; }
.message-body img { max-width: 100%; border-radius: 10px; }
footer { margin-top: 36px; font-size: 0.85rem; color: #7f8c8d; text-align: center; }
"""


def resolve_mapping(conversation):
    """The node mapping and current node of a payload, or a share wrapper around one."""
    if not isinstance(conversation, dict):
        return {}, None
    mapping = conversation.get('mapping')
    if not isinstance(mapping, dict) and isinstance(conversation.get('conversation'), dict):
        conversation = conversation['conversation']
        mapping = conversation.get('mapping')
    if not isinstance(mapping, dict):
        return {}, None
    return mapping, conversation.get('current_node')


def message_timestamp(message) -> float:
    """Sort key: update time, then create time, then metadata timestamp, else 0."""
    if not isinstance(message, dict):
        return 0
    metadata = message.get('metadata') if isinstance(message.get('metadata'), dict) else {}
    for value in (message.get('update_time'), message.get('create_time'), metadata.get('timestamp')):
        moment = parse_timestamp(value)
        if moment:
            return moment.timestamp()
    return 0


def order_messages(mapping: dict, current_node) -> list:
    """
    Linear message order for a node mapping.

    Walks parent pointers back from current_node, never visiting a node twice,
    and reverses the walk. Messages on nodes the walk didn't reach are merged
    in by timestamp: each goes before the first walked message that is newer.
    An orphan without any timestamp sorts as zero.
    """
    ordered = []
    visited = set()
    cursor = current_node
    while cursor is not None and cursor in mapping and cursor not in visited:
        visited.add(cursor)
        node = mapping[cursor]
        if not isinstance(node, dict):
            break
        if isinstance(node.get('message'), dict):
            ordered.append(node['message'])
        cursor = node.get('parent')
    ordered.reverse()

    orphans = [
        node['message'] for node_id, node in mapping.items()
        if node_id not in visited and isinstance(node, dict) and isinstance(node.get('message'), dict)
    ]
    orphans.sort(key=message_timestamp)

    merged = []
    for message in ordered:
        stamp = message_timestamp(message)
        while orphans and stamp and message_timestamp(orphans[0]) < stamp:
            merged.append(orphans.pop(0))
        merged.append(message)
    return merged + orphans


def message_role(message) -> str:
    author = message.get('author')
    role = author.get('role') if isinstance(author, dict) else None
    return role.lower() if isinstance(role, str) else 'system'


def role_label(role: str) -> str:
    return ROLE_LABELS.get(role) or role.capitalize()


def message_parts(message) -> list:
    content = message.get('content')
    if isinstance(content, dict):
        parts = content.get('parts')
        if isinstance(parts, list) and parts:
            return parts
        if isinstance(content.get('text'), str):
            return [content['text']]
        return []
    if isinstance(message.get('text'), str):
        return [message['text']]
    return []


def build_transcript(conversation) -> list:
    """One entry per non-tool message, in conversation order."""
    mapping, current_node = resolve_mapping(conversation)
    transcript = []
    for message in order_messages(mapping, current_node):
        role = message_role(message)
        if role in EXCLUDED_ROLES:
            continue
        transcript.append({
            'role': role,
            'label': role_label(role),
            'timestamp': message_timestamp(message),
            'parts': message_parts(message),
        })
    return transcript


def _append_text(soup, container, text):
    if not text:
        return
    text = str(text)
    if text.strip().startswith('```') or '\n' in text:
        pre = soup.new_tag('pre')
        pre.string = FENCE_CLOSE_PATTERN.sub('', FENCE_OPEN_PATTERN.sub('', text.strip()))
        container.append(pre)
        return
    paragraph = soup.new_tag('p')
    paragraph.string = text
    container.append(paragraph)


def _append_part(soup, container, part):
    if isinstance(part, str):
        _append_text(soup, container, part)
        return
    if not isinstance(part, dict):
        return
    if part.get('text'):
        _append_text(soup, container, part['text'])
        return
    if part.get('type') == 'text' and part.get('content'):
        _append_text(soup, container, part['content'])
        return
    image = part.get('image_url')
    if part.get('type') == 'image_url' and isinstance(image, dict) and image.get('url'):
        figure = soup.new_tag('figure')
        figure.append(soup.new_tag('img', src=image['url']))
        if image.get('alt_text'):
            caption = soup.new_tag('figcaption')
            caption.string = image['alt_text']
            figure.append(caption)
        container.append(figure)
        return
    pre = soup.new_tag('pre')
    pre.string = json.dumps(part, indent=2, default=str)
    container.append(pre)


def _format_moment(timestamp) -> str:
    moment = parse_timestamp(timestamp)
    return moment.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M UTC') if moment else ''


def _info_line(conversation) -> str:
    parts = []
    metadata = conversation.get('metadata') if isinstance(conversation.get('metadata'), dict) else {}
    inner = conversation.get('conversation') if isinstance(conversation.get('conversation'), dict) else {}
    inner_metadata = inner.get('metadata') if isinstance(inner.get('metadata'), dict) else {}
    author = metadata.get('author') or inner_metadata.get('share_author') or metadata.get('share_author')
    if isinstance(author, str) and author.strip():
        parts.append(f"Shared by {author.strip()}")
    for source in (inner, conversation):
        updated = _format_moment(source.get('update_time') or source.get('create_time'))
        if updated:
            parts.append(f"Updated {updated}")
            break
    return ' • '.join(parts)


def render_conversation(conversation, snapshot_url=None, title=None) -> str:
    """
    Render a conversation payload as a self-contained HTML document.

    Args:
        conversation: Conversation payload (or public share payload)
        snapshot_url: URL the snapshot stands in for, used as the base href
        title: Title to show; the payload title or the default otherwise

    Returns:
        HTML string
    """
    conversation = conversation if isinstance(conversation, dict) else {}
    title = (title or normalize_title(conversation.get('title'))
             or TRANSLATOR_DEFAULTS['title'])

    soup = BeautifulSoup('<!DOCTYPE html><html><head></head><body></body></html>', 'html.parser')
    head = soup.head
    head.append(soup.new_tag('meta', charset='utf-8'))
    if snapshot_url:
        head.append(soup.new_tag('base', href=snapshot_url))
    title_tag = soup.new_tag('title')
    title_tag.string = title
    head.append(title_tag)
    style = soup.new_tag('style')
    style.string = STYLE
    head.append(style)

    body = soup.body
    header = soup.new_tag('header')
    heading = soup.new_tag('h1')
    heading.string = title
    header.append(heading)
    info = _info_line(conversation)
    if info:
        subheading = soup.new_tag('p')
        subheading.string = info
        header.append(subheading)
    body.append(header)

    container = soup.new_tag('div', attrs={'class': 'conversation'})
    body.append(container)

    for entry in build_transcript(conversation):
        section = soup.new_tag('section', attrs={'class': f"message role-{entry['role']}"})
        meta = soup.new_tag('div', attrs={'class': 'message-meta'})
        label = soup.new_tag('span')
        label.string = entry['label']
        meta.append(label)
        when = _format_moment(entry['timestamp'])
        if when:
            stamp = soup.new_tag('span')
            stamp.string = when
            meta.append(stamp)
        section.append(meta)

        message_body = soup.new_tag('div', attrs={'class': 'message-body'})
        for part in entry['parts']:
            _append_part(soup, message_body, part)
        if not message_body.contents:
            _append_text(soup, message_body, EMPTY_MESSAGE_TEXT)
        section.append(message_body)
        container.append(section)

    footer = soup.new_tag('footer')
    footer.string = FOOTER_TEXT
    body.append(footer)

    return str(soup)
