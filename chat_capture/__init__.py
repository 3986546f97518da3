"""ChatGPT conversation capture."""

from .context import PageContext, ApiCache

from .text_utils import (
    normalize_api_text,
    safe_json_parse,
    extract_api_response_text,
)

from .transport_utils import (
    Transport,
    TransportChain,
    empty_response,
)

from .api_client import (
    call_api,
    get_cookie_value,
    apply_request_headers,
)

from .share_utils import (
    find_in_value,
    find_share,
    find_share_in_document,
    normalize_share_candidate,
)

from .url_utils import (
    get_ids,
    get_urls,
    apply_share_hint,
    extract_conversation_id,
)

from .title_utils import (
    normalize_title,
    is_generic_title,
    sanitize_title,
)

from .cascade import (
    resolve_field,
    get_title,
    get_authors,
    get_ai_model,
    get_date,
    get_extra,
)

from .render_utils import (
    order_messages,
    build_transcript,
    render_conversation,
)

from .attachments import get_attachments

from .records import Item

from .translator import (
    detect_web,
    get_item,
    get_search_results,
    do_web,
)

__all__ = [
    # Page context
    'PageContext',
    'ApiCache',
    # Response text
    'normalize_api_text',
    'safe_json_parse',
    'extract_api_response_text',
    # Transport
    'Transport',
    'TransportChain',
    'empty_response',
    'call_api',
    'get_cookie_value',
    'apply_request_headers',
    # Share links
    'find_in_value',
    'find_share',
    'find_share_in_document',
    'normalize_share_candidate',
    # Identifiers and URLs
    'get_ids',
    'get_urls',
    'apply_share_hint',
    'extract_conversation_id',
    # Fields
    'normalize_title',
    'is_generic_title',
    'sanitize_title',
    'resolve_field',
    'get_title',
    'get_authors',
    'get_ai_model',
    'get_date',
    'get_extra',
    # Rendering
    'order_messages',
    'build_transcript',
    'render_conversation',
    'get_attachments',
    # Records
    'Item',
    'detect_web',
    'get_item',
    'get_search_results',
    'do_web',
]
