"""
Page markup accessors.

Each accessor returns the raw candidate string (or None); normalization and
generic-value rejection happen in the field cascade.
"""

from bs4 import BeautifulSoup

from .config import CONVERSATION_MARKERS
from .field_utils import normalize_author

TITLE_TEST_IDS = ('conversation-title', 'conversation-detail-title')
CONVERSATION_ID_ATTRIBUTES = ('data-conversation-id', 'data-conversationid', 'data-conversation')

# Account menu paths observed in the ChatGPT sidebar popover
RADIX_AUTHOR_SELECTORS = (
    '[id^="radix-"] > div:nth-of-type(2) > div:nth-of-type(1) > div',
    '[id^="radix-"] > div:nth-of-type(1) > div:nth-of-type(2) > div:nth-of-type(1) > div',
)


def meta_content(soup: BeautifulSoup, *names):
    """Content of the first meta tag matching any name (name or property)."""
    for name in names:
        meta = soup.find('meta', attrs={'name': name}) or soup.find('meta', attrs={'property': name})
        if meta and meta.get('content'):
            return meta.get('content')
    return None


def get_dom_titles(soup: BeautifulSoup) -> list:
    """Title candidates in priority order."""
    candidates = []
    title_tag = soup.find('title')
    if title_tag:
        candidates.append(title_tag.get_text())
    for test_id in TITLE_TEST_IDS:
        element = soup.find(attrs={'data-testid': test_id})
        if element:
            candidates.append(element.get_text())
    candidates.append(meta_content(soup, 'og:title'))
    candidates.append(meta_content(soup, 'twitter:title'))
    candidates.append(meta_content(soup, 'title'))
    return [c for c in candidates if c]


def get_radix_author(soup: BeautifulSoup):
    for selector in RADIX_AUTHOR_SELECTORS:
        element = soup.select_one(selector)
        if element:
            text = element.get_text(strip=True)
            if text:
                return text
    return None


def get_dom_human_author(soup: BeautifulSoup):
    """First author-like value on the page that isn't the platform's name."""
    candidates = [get_radix_author(soup)]

    owner = soup.find(attrs={'data-conversation-owner': True})
    if owner:
        candidates.append(owner.get('data-conversation-owner'))

    candidates.append(meta_content(soup, 'author'))
    candidates.append(meta_content(soup, 'profile:username'))
    candidates.append(meta_content(soup, 'profile:last_name'))
    candidates.append(meta_content(soup, 'twitter:creator'))

    for candidate in candidates:
        name = normalize_author(candidate)
        if name:
            return name
    return None


def get_dom_ai_model(soup: BeautifulSoup):
    model = meta_content(soup, 'ai-model', 'model', 'ai:model')
    if model:
        return model
    body = soup.find('body')
    if body:
        return body.get('data-ai-model') or body.get('data-model')
    return None


def get_dom_date(soup: BeautifulSoup):
    time_tag = soup.find('time', attrs={'datetime': True})
    if time_tag:
        return time_tag.get('datetime')
    return meta_content(soup, 'article:published_time', 'date', 'timestamp')


def get_dom_conversation_id(soup: BeautifulSoup):
    for attribute in CONVERSATION_ID_ATTRIBUTES:
        element = soup.find(attrs={attribute: True})
        if element and element.get(attribute):
            return element.get(attribute).strip().lower()
    value = meta_content(soup, 'conversation-id', 'conversationId')
    return value.strip().lower() if value else None


def get_dom_message_ids(soup: BeautifulSoup) -> dict:
    """Ids of the last user prompt and the last assistant response."""
    ids = {'last_prompt_id': None, 'last_response_id': None}
    for role, key in (('user', 'last_prompt_id'), ('assistant', 'last_response_id')):
        messages = soup.find_all(attrs={'data-message-author-role': role})
        for message in reversed(messages):
            message_id = message.get('data-message-id')
            if message_id:
                ids[key] = message_id
                break
    return ids


def has_conversation_markup(html) -> bool:
    """True if the markup contains hydrated conversation turns."""
    if not html:
        return False
    return any(marker in html for marker in CONVERSATION_MARKERS)
