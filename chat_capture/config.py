"""
Configuration for ChatGPT conversation capture.

Values are read once from environment variables at import time. Timeouts
are in seconds.
"""

import os
import re


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_seconds(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


USER_AGENT = 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'

# Network timeouts
DEFAULT_TIMEOUT = _env_seconds('CHAT_CAPTURE_TIMEOUT', 7)
SHARE_LIST_TIMEOUT = _env_seconds('CHAT_CAPTURE_SHARE_LIST_TIMEOUT', 3.5)
SHARE_PROBE_TIMEOUT = _env_seconds('CHAT_CAPTURE_SHARE_PROBE_TIMEOUT', 2)
SNAPSHOT_TIMEOUT = max(_env_seconds('CHAT_CAPTURE_SNAPSHOT_TIMEOUT', 9), DEFAULT_TIMEOUT)
PAGE_FETCH_TIMEOUT = 30

# Hidden frame hydration
FRAME_TIMEOUT = 12
FRAME_WAIT_CEILING = max(2.5, FRAME_TIMEOUT / 2)
FRAME_POLL_INTERVAL = 0.12

# Feature flags
ENABLE_EMULATED_SNAPSHOTS = _env_flag('CHAT_CAPTURE_EMULATED_SNAPSHOTS', False)
ENABLE_VERBOSE_API_LOGGING = _env_flag('CHAT_CAPTURE_VERBOSE_API', False)

TRANSLATOR_DEFAULTS = {
    'title': 'ChatGPT Conversation',
    'ai_name': 'ChatGPT',
    'human_author': 'User',
    'ai_model': None,
}

SNAPSHOT_TITLE = 'ChatGPT Conversation Snapshot'
SNAPSHOT_MIME_TYPE = 'text/html'

CHATGPT_HOSTS = ('chatgpt.com', 'chat.openai.com')
DEFAULT_SHARE_HOST = 'chatgpt.com'

# Strings that name the platform rather than a conversation or a person
PLATFORM_NAMES = ('chatgpt', 'chat gpt', 'openai')
GENERIC_TITLES = ('chatgpt', 'chatgpt conversation', 'openai')

# URL shapes
SHARE_URL_REGEX = re.compile(
    r'https?://(?:www\.)?(chatgpt\.com|chat\.openai\.com)/share/(?:e/|embed/)?([0-9a-f-]{36})',
    re.IGNORECASE,
)
SHARE_PATH_REGEX = re.compile(r'^/?share/(?:e/|embed/)?([0-9a-f-]{36})', re.IGNORECASE)
SHARE_ID_REGEX = re.compile(r'^[0-9a-f-]{36}$', re.IGNORECASE)
CONVERSATION_PAGE_REGEX = re.compile(
    r'^https?://(?:www\.)?(?:chatgpt\.com|chat\.openai\.com)/(?:c/|share/|g/[^/]+/c/)',
    re.IGNORECASE,
)
PROJECT_PAGE_REGEX = re.compile(
    r'^https?://(?:www\.)?(?:chatgpt\.com|chat\.openai\.com)/g/[^/]+/project(?=$|[/?#])',
    re.IGNORECASE,
)
PROJECT_CONVERSATION_PATH_REGEX = re.compile(r'^/?g/([^/]+)/c/([0-9a-f-]{36})', re.IGNORECASE)
PROJECT_SLUG_REGEX = re.compile(r'/g/([^/?#]+)/(?:c/|project)', re.IGNORECASE)
SHARE_ID_IN_PATH_REGEX = re.compile(r'/share/(?:e/|embed/)?([0-9a-f-]{36})', re.IGNORECASE)
CONVERSATION_ID_REGEXES = (
    re.compile(r'/(?:app/)?c/([0-9a-z-]{8,})', re.IGNORECASE),
    re.compile(r'/conversation/([0-9a-z-]{8,})', re.IGNORECASE),
)
JSON_CONTENT_TYPE_REGEX = re.compile(r'application/([a-z0-9.+-]*json)', re.IGNORECASE)

# Markers present in hydrated conversation markup
CONVERSATION_MARKERS = ('data-testid="conversation-turn"', 'data-message-author-role')

# Script payloads larger than this are skipped during share discovery
MAX_SCRIPT_SCAN_LENGTH = 750000
