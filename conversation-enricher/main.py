"""
Conversation Enricher Cloud Function

Captures a ChatGPT conversation page as a bibliographic record for the
Bookmark Knowledge Base.

Responsibilities:
- Fetch the conversation page (unless the caller sends its markup)
- Resolve conversation id, private/public URLs and the share link
- Resolve title, participants, model and date via API, page markup or defaults
- Attach a page snapshot (live or rendered from conversation data)
- List project conversations and save the selected ones

Does NOT:
- Log users in or store credentials (the caller passes its own cookie)
- Write to Notion/Raindrop (n8n's job)
- Handle retries (n8n's job)
"""

import functions_framework
import requests
import json
import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
from chat_capture import PageContext, detect_web, do_web, get_item, get_search_results
from chat_capture.config import PAGE_FETCH_TIMEOUT, USER_AGENT
from chat_capture.url_utils import strip_fragment


def fetch_webpage(url: str, cookie: str = None) -> tuple:
    """Fetch webpage content. Returns (html, error)."""
    try:
        headers = {
            'User-Agent': USER_AGENT,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
        }
        if cookie:
            headers['Cookie'] = cookie

        response = requests.get(url, headers=headers, timeout=PAGE_FETCH_TIMEOUT, allow_redirects=True)
        response.raise_for_status()

        return response.text, None

    except requests.exceptions.Timeout:
        return None, 'Request timed out'
    except requests.exceptions.HTTPError as e:
        return None, f'HTTP error: {e.response.status_code}'
    except requests.exceptions.RequestException as e:
        return None, f'Request failed: {str(e)}'


def build_context(request_json: dict) -> PageContext:
    """PageContext for the page described in the request."""
    return PageContext(
        request_json['url'],
        html=request_json.get('html'),
        cookie=request_json.get('cookie'),
        language=request_json.get('language'),
    )


@functions_framework.http
def enrich_conversation(request):
    """
    Main Cloud Function entry point.

    Expected JSON input:
    {
        "url": "https://chatgpt.com/c/<conversation-id>",
        "html": "<optional page markup>",
        "cookie": "<optional Cookie header of the ChatGPT session>",
        "language": "en-US",
        "options": {
            "select": ["https://chatgpt.com/g/<slug>/c/<id>"],
            "emulate_snapshot": false,
            "conversation_id": null,
            "project_slug": null
        }
    }
    """
    # Handle CORS
    if request.method == 'OPTIONS':
        headers = {
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Methods': 'POST',
            'Access-Control-Allow-Headers': 'Content-Type',
            'Access-Control-Max-Age': '3600'
        }
        return ('', 204, headers)

    headers = {'Access-Control-Allow-Origin': '*'}

    try:
        request_json = request.get_json(silent=True)

        if not request_json or not request_json.get('url'):
            return (json.dumps({
                'error': 'Missing required field: url'
            }), 400, headers)

        url = request_json['url']
        options = request_json.get('options') or {}
        emulate = options.get('emulate_snapshot')

        if request_json.get('html') is None:
            html, fetch_error = fetch_webpage(url, request_json.get('cookie'))
            if fetch_error:
                print(f"Conversation page fetch error: {fetch_error}")
                html = ''
            request_json = dict(request_json, html=html)

        ctx = build_context(request_json)
        page_type = detect_web(ctx, url)

        if not page_type:
            return (json.dumps({
                'url': url,
                'error': {
                    'stage': 'detect',
                    'message': 'Not a ChatGPT conversation or project page',
                    'recoverable': False
                }
            }), 200, headers)  # Return 200 with error in body

        processed_at = datetime.utcnow().isoformat() + 'Z'

        if page_type == 'multiple':
            selection = options.get('select')
            if not selection:
                return (json.dumps({
                    'url': url,
                    'type': 'multiple',
                    'choices': get_search_results(ctx),
                    'processed_at': processed_at,
                }), 200, headers)

            ctx.select_items = lambda choices: [u for u in selection if u in choices]
            items = do_web(ctx, url, emulate=emulate)
            return (json.dumps({
                'url': url,
                'type': 'multiple',
                'items': [item.to_dict() for item in items],
                'processed_at': processed_at,
            }), 200, headers)

        overrides = {
            key: options[key] for key in ('conversation_id', 'project_slug') if options.get(key)
        }
        item = get_item(ctx, strip_fragment(url), overrides or None, emulate=emulate)
        response = item.to_dict()
        response['processed_at'] = processed_at
        return (json.dumps(response), 200, headers)

    except Exception as e:
        return (json.dumps({
            'error': {
                'stage': 'processing',
                'message': str(e),
                'recoverable': False
            }
        }), 500, headers)
