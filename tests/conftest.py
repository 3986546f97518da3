"""
Shared pytest fixtures for conversation capture tests.
"""

import pytest
import sys
import json
import importlib.util
from pathlib import Path
from urllib.parse import urlparse

# Project root for finding Cloud Function modules
PROJECT_ROOT = Path(__file__).parent.parent


def _load_module_from_path(module_name: str, file_path: Path):
    """Load a module from a specific file path."""
    spec = importlib.util.spec_from_file_location(module_name, file_path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


# Load Cloud Function module with a unique name at module load time
_conversation_enricher_module = _load_module_from_path(
    'conversation_enricher_main',
    PROJECT_ROOT / 'conversation-enricher' / 'main.py'
)

from chat_capture.context import PageContext  # noqa: E402

CONVERSATION_ID = '0b7f7a2e-6d1c-4c55-9a4e-3f3a1c2b9d10'
SHARE_ID = '5e1d2c3b-4a59-4876-8a1b-2c3d4e5f6a7b'
PRIVATE_URL = f'https://chatgpt.com/c/{CONVERSATION_ID}'
SHARE_URL = f'https://chatgpt.com/share/{SHARE_ID}'


# ============================================================================
# Fake host request helper
# ============================================================================

class FakeBackend:
    """Host request helper answering from a table of canned responses."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, path, json_body=None, status=200, body=None, content_type='application/json'):
        if body is None:
            body = json.dumps(json_body) if json_body is not None else ''
        self.routes[path] = {
            'status': status,
            'responseText': body,
            'headers': {'Content-Type': content_type},
        }

    def paths(self):
        return [self._key(call['url']) for call in self.calls]

    @staticmethod
    def _key(url):
        parsed = urlparse(url)
        return parsed.path + ('?' + parsed.query if parsed.query else '')

    def __call__(self, request):
        self.calls.append(request)
        route = self.routes.get(self._key(request['url']))
        if route is None:
            return {'status': 404, 'responseText': '', 'headers': {'Content-Type': 'text/plain'}}
        return dict(route)


@pytest.fixture
def backend():
    """Empty FakeBackend; add routes per test."""
    return FakeBackend()


@pytest.fixture
def trace_lines():
    """List collecting trace output."""
    return []


@pytest.fixture
def make_context(backend, trace_lines):
    """Factory for PageContext objects wired to the fake backend."""
    def factory(url=PRIVATE_URL, html='', **kwargs):
        kwargs.setdefault('host_request', backend)
        kwargs.setdefault('trace', trace_lines.append)
        return PageContext(url, html=html, **kwargs)
    return factory


# ============================================================================
# Sample payloads
# ============================================================================

@pytest.fixture
def conversation_payload():
    """Private conversation payload with a short branch-free transcript."""
    return {
        'title': 'Trip planning',
        'create_time': 1700000000.5,
        'update_time': 1700003600.25,
        'default_model_slug': 'gpt-4o',
        'current_node': 'n3',
        'mapping': {
            'root': {'message': None, 'parent': None},
            'n1': {
                'message': {
                    'id': 'm1',
                    'author': {'role': 'user'},
                    'content': {'content_type': 'text', 'parts': ['hi']},
                    'create_time': 1700000001,
                },
                'parent': 'root',
            },
            'n2': {
                'message': {
                    'id': 'm2',
                    'author': {'role': 'assistant'},
                    'content': {'content_type': 'text', 'parts': ['hello']},
                    'create_time': 1700000002,
                },
                'parent': 'n1',
            },
            'n3': {
                'message': {
                    'id': 'm3',
                    'author': {'role': 'tool'},
                    'content': {'content_type': 'text', 'parts': ['search results']},
                    'create_time': 1700000003,
                },
                'parent': 'n2',
            },
        },
    }


@pytest.fixture
def conversation_page_html():
    """Markup of a hydrated private conversation page."""
    return """
    <!DOCTYPE html>
    <html lang="en-US">
    <head>
        <title>Trip planning | ChatGPT</title>
        <meta property="og:title" content="ChatGPT">
        <meta name="model" content="gpt-4o-mini">
        <meta name="author" content="Ada Lovelace">
    </head>
    <body>
        <div data-testid="conversation-turn">
            <div data-message-author-role="user" data-message-id="p-1">hi</div>
        </div>
        <div data-testid="conversation-turn">
            <div data-message-author-role="assistant" data-message-id="r-1">hello</div>
        </div>
        <div data-testid="conversation-turn">
            <div data-message-author-role="user" data-message-id="p-2">more</div>
        </div>
        <time datetime="2024-03-01T10:00:00Z">March 1</time>
    </body>
    </html>
    """


@pytest.fixture
def project_page_html():
    """Markup of a project page listing two conversations."""
    return f"""
    <html>
    <head><title>Research | ChatGPT</title></head>
    <body>
        <a href="/g/g-p-research/c/{CONVERSATION_ID}">Trip planning</a>
        <a href="/g/g-p-research/c/{CONVERSATION_ID}#top">Trip planning again</a>
        <a href="/g/g-p-research/c/9a8b7c6d-5e4f-4a3b-9c2d-1e0f9a8b7c6d">  </a>
        <a href="/g/g-p-research/project">Overview</a>
        <a href="https://example.com/c/elsewhere">External</a>
    </body>
    </html>
    """


@pytest.fixture
def mock_flask_request():
    """Factory for creating mock Flask request objects."""
    class MockRequest:
        def __init__(self, json_data=None, method='POST'):
            self._json = json_data or {}
            self.method = method
            self.data = b''

        def get_json(self, force=False, silent=False):
            return self._json

    return MockRequest


# ============================================================================
# Integration Test Fixtures (HTTP function)
# ============================================================================

@pytest.fixture
def fetch_webpage():
    """Returns fetch_webpage function from conversation-enricher."""
    return _conversation_enricher_module.fetch_webpage


@pytest.fixture
def enrich_conversation():
    """Returns main entry point from conversation-enricher."""
    return _conversation_enricher_module.enrich_conversation
