"""
Unit tests for call_api() and the same-origin header handling.
"""

import json
from unittest.mock import Mock, patch

import pytest

from chat_capture.api_client import (
    apply_request_headers,
    call_api,
    get_cookie_value,
    is_chatgpt_host,
    make_requests_runner,
)
from chat_capture.context import PageContext

PAGE_URL = 'https://chatgpt.com/c/0b7f7a2e-6d1c-4c55-9a4e-3f3a1c2b9d10'
COOKIE = '_account=ws%2D123; oai-did=device-9; other=1'


def ok_json(payload):
    return {'status': 200, 'responseText': json.dumps(payload), 'headers': {'Content-Type': 'application/json'}}


class TestGetCookieValue:
    """Tests for get_cookie_value()"""

    def test_reads_and_decodes(self):
        assert get_cookie_value(COOKIE, '_account') == 'ws-123'
        assert get_cookie_value(COOKIE, 'oai-did') == 'device-9'

    def test_missing_cookie(self):
        assert get_cookie_value(COOKIE, 'absent') is None
        assert get_cookie_value('', '_account') is None

    def test_does_not_match_suffix_of_other_name(self):
        assert get_cookie_value('x_account=1', '_account') is None


class TestIsChatgptHost:
    """Tests for is_chatgpt_host()"""

    @pytest.mark.parametrize('url', [
        'https://chatgpt.com/c/x',
        'https://www.chatgpt.com/c/x',
        'https://chat.openai.com/share/x',
    ])
    def test_chatgpt_hosts(self, url):
        assert is_chatgpt_host(url) is True

    def test_other_host(self):
        assert is_chatgpt_host('https://example.com/c/x') is False


class TestApplyRequestHeaders:
    """Tests for apply_request_headers()"""

    def test_injects_workspace_device_and_language(self):
        ctx = PageContext(PAGE_URL, html='<html lang="de-DE"></html>', cookie=COOKIE)
        headers = apply_request_headers(ctx, PAGE_URL, {'Accept': 'application/json'})
        assert headers == {
            'Accept': 'application/json',
            'chatgpt-account-id': 'ws-123',
            'oai-device-id': 'device-9',
            'oai-language': 'de-DE',
        }

    def test_explicit_language_wins_over_markup(self):
        ctx = PageContext(PAGE_URL, html='<html lang="de-DE"></html>', language='fr-FR')
        assert apply_request_headers(ctx, PAGE_URL)['oai-language'] == 'fr-FR'

    def test_existing_header_kept(self):
        ctx = PageContext(PAGE_URL, cookie=COOKIE)
        headers = apply_request_headers(ctx, PAGE_URL, {'ChatGPT-Account-Id': 'mine'})
        assert headers['ChatGPT-Account-Id'] == 'mine'
        assert 'chatgpt-account-id' not in headers

    def test_nothing_made_up_without_cookies(self):
        ctx = PageContext(PAGE_URL)
        assert apply_request_headers(ctx, PAGE_URL) == {}

    def test_other_hosts_untouched(self):
        ctx = PageContext(PAGE_URL, cookie=COOKIE, language='en-US')
        assert apply_request_headers(ctx, 'https://example.com/api', {'A': '1'}) == {'A': '1'}

    def test_caller_headers_not_mutated(self):
        ctx = PageContext(PAGE_URL, cookie=COOKIE)
        original = {'Accept': 'application/json'}
        apply_request_headers(ctx, PAGE_URL, original)
        assert original == {'Accept': 'application/json'}


class TestCallApi:
    """Tests for call_api()"""

    def test_empty_url_raises(self):
        ctx = PageContext(PAGE_URL, trace=lambda line: None)
        with pytest.raises(ValueError):
            call_api(ctx, '')

    def test_relative_url_resolved_against_page(self):
        host = Mock(return_value=ok_json({'a': 1}))
        ctx = PageContext(PAGE_URL, host_request=host, trace=lambda line: None)
        result = call_api(ctx, '/backend-api/me', expect_json=True)

        request = host.call_args[0][0]
        assert request['url'] == 'https://chatgpt.com/backend-api/me'
        assert result['ok'] is True
        assert result['data'] == {'a': 1}

    def test_default_timeout_applied(self):
        host = Mock(return_value=ok_json({}))
        ctx = PageContext(PAGE_URL, host_request=host, trace=lambda line: None)
        call_api(ctx, '/x')
        assert host.call_args[0][0]['timeout'] > 0

    def test_explicit_timeout_kept(self):
        host = Mock(return_value=ok_json({}))
        ctx = PageContext(PAGE_URL, host_request=host, trace=lambda line: None)
        call_api(ctx, '/x', timeout=2)
        assert host.call_args[0][0]['timeout'] == 2

    def test_json_accept_header_marks_json_intent(self):
        host = Mock(return_value=ok_json({}))
        ctx = PageContext(PAGE_URL, host_request=host, trace=lambda line: None)
        call_api(ctx, '/x', headers={'Accept': 'application/json'})
        assert host.call_args[0][0]['wants_json'] is True

    def test_request_fields(self):
        host = Mock(return_value=ok_json({}))
        ctx = PageContext(PAGE_URL, host_request=host, trace=lambda line: None)
        call_api(ctx, '/x', headers={'Accept': 'text/html'}, label='page')

        request = host.call_args[0][0]
        assert set(request) == {
            'url', 'method', 'headers', 'body', 'timeout', 'expect_json', 'wants_json',
            'prefer_page_fetch', 'force_page_fetch', 'disable_page_fetch', 'label',
        }
        assert request['wants_json'] is False

    def test_deeply_nested_json_body_kept_as_text(self):
        lines = []
        body = '[' * 100000
        host = Mock(return_value={'status': 200, 'responseText': body,
                                  'headers': {'Content-Type': 'application/json'}})
        ctx = PageContext(PAGE_URL, host_request=host, trace=lines.append)

        result = call_api(ctx, '/backend-api/conversation/x', expect_json=True)

        assert result['ok'] is True
        assert result['data'] == body
        assert any('parse error' in line for line in lines)

    def test_connector_tried_before_host(self):
        connector = Mock(return_value=ok_json({'from': 'connector'}))
        host = Mock()
        ctx = PageContext(PAGE_URL, connector_request=connector, host_request=host, trace=lambda line: None)
        assert call_api(ctx, '/x', expect_json=True)['data'] == {'from': 'connector'}
        host.assert_not_called()

    def test_page_request_used_after_host_fails(self):
        host = Mock(side_effect=RuntimeError('blocked'))
        page_request = Mock(return_value=ok_json({'from': 'page'}))
        ctx = PageContext(PAGE_URL, host_request=host, page_request=page_request, trace=lambda line: None)
        assert call_api(ctx, '/x', expect_json=True)['data'] == {'from': 'page'}

    def test_total_failure_returns_empty_response(self):
        lines = []
        host = Mock(side_effect=RuntimeError('offline'))
        ctx = PageContext(PAGE_URL, host_request=host, trace=lines.append)
        result = call_api(ctx, '/x', label='probe')
        assert result == {
            'ok': False, 'status': 0, 'data': None, 'raw': '', 'content_type': None, 'headers': None,
        }
        assert any('[api][call_api] failed' in line for line in lines)

    def test_non_2xx_is_a_result_not_a_failure(self):
        host = Mock(return_value={'status': 404, 'responseText': '', 'headers': {}})
        ctx = PageContext(PAGE_URL, host_request=host, trace=lambda line: None)
        result = call_api(ctx, '/x')
        assert result['ok'] is False
        assert result['status'] == 404


class TestMakeRequestsRunner:
    """Tests for make_requests_runner()"""

    def test_module_level_request_without_session(self):
        ctx = PageContext(PAGE_URL, cookie=COOKIE, trace=lambda line: None)
        request = {'url': PAGE_URL, 'method': 'GET', 'headers': {}, 'body': None, 'timeout': 3}

        with patch('chat_capture.api_client.requests.request') as mock_request:
            make_requests_runner(ctx)(request)

        args, kwargs = mock_request.call_args
        assert args == ('GET', PAGE_URL)
        assert kwargs['headers']['Cookie'] == COOKIE
        assert kwargs['timeout'] == 3

    def test_given_session_used(self):
        session = Mock()
        ctx = PageContext(PAGE_URL, session=session, trace=lambda line: None)

        with patch('chat_capture.api_client.requests.request') as mock_request:
            make_requests_runner(ctx)({'url': PAGE_URL})

        session.request.assert_called_once()
        mock_request.assert_not_called()
        assert 'Cookie' not in session.request.call_args[1]['headers']
