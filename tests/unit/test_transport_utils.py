"""
Unit tests for the transport chain and its response adapter.
"""

import json
from unittest.mock import Mock

import requests

from chat_capture.transport_utils import (
    Transport,
    TransportChain,
    build_result,
    has_meaningful_payload,
    read_response,
)


def json_response(payload, status=200):
    return {
        'status': status,
        'responseText': json.dumps(payload),
        'headers': {'Content-Type': 'application/json'},
    }


def empty_ok_response():
    return {'status': 200, 'responseText': '', 'headers': {'Content-Type': 'application/json'}}


class FakeXHR:
    status = 200
    responseText = '{"a": 1}'

    def getAllResponseHeaders(self):
        return 'Content-Type: application/json\r\nX-Test: 1\r\n'

    def getResponseHeader(self, name):
        return 'application/json'


class TestReadResponse:
    """Tests for read_response()"""

    def test_dict_shape(self):
        parts = read_response({'status': 201, 'responseText': 'ok', 'headers': {'Content-Type': 'text/plain'}})
        assert parts['status'] == 201
        assert parts['raw'] == 'ok'
        assert parts['content_type'] == 'text/plain'
        assert parts['headers'] == {'content-type': 'text/plain'}

    def test_xhr_like_object(self):
        parts = read_response(FakeXHR())
        assert parts['status'] == 200
        assert parts['raw'] == '{"a": 1}'
        assert parts['content_type'] == 'application/json'
        assert parts['headers'] == {'content-type': 'application/json', 'x-test': '1'}

    def test_requests_response(self):
        response = requests.Response()
        response.status_code = 200
        response._content = b'{"a": 1}'
        response.encoding = 'utf-8'
        response.headers['Content-Type'] = 'application/json'

        parts = read_response(response)
        assert parts['status'] == 200
        assert parts['raw'] == '{"a": 1}'
        assert parts['content_type'] == 'application/json'

    def test_header_pairs(self):
        parts = read_response({'status': 200, 'body': 'x', 'headers': [('X-A', '1')]})
        assert parts['headers'] == {'x-a': '1'}

    def test_missing_status_is_zero(self):
        assert read_response({'responseText': 'x'})['status'] == 0


class TestBuildResult:
    """Tests for build_result()"""

    def test_ok_is_2xx_only(self):
        assert build_result(read_response({'status': 204}), {})['ok'] is True
        assert build_result(read_response({'status': 302}), {})['ok'] is False
        assert build_result(read_response({'status': 404}), {})['ok'] is False

    def test_json_parsed_from_content_type(self):
        result = build_result(read_response(json_response({'a': 1})), {})
        assert result['data'] == {'a': 1}
        assert result['raw'] == '{"a": 1}'

    def test_data_equals_raw_when_not_json(self):
        response = {'status': 200, 'responseText': '<html></html>', 'headers': {'Content-Type': 'text/html'}}
        result = build_result(read_response(response), {})
        assert result['data'] == result['raw'] == '<html></html>'

    def test_invalid_json_keeps_raw(self):
        response = {'status': 200, 'responseText': 'oops', 'headers': {'Content-Type': 'application/json'}}
        assert build_result(read_response(response), {})['data'] == 'oops'

    def test_explicit_expect_json_false_skips_parsing(self):
        result = build_result(read_response(json_response({'a': 1})), {'expect_json': False})
        assert result['data'] == '{"a": 1}'

    def test_json_candidate_used(self):
        response = {'status': 200, 'responseText': '', 'responseJSON': {'a': 1}}
        assert build_result(read_response(response), {'expect_json': True})['data'] == {'a': 1}


class TestHasMeaningfulPayload:
    """Tests for has_meaningful_payload()"""

    def test_none(self):
        assert has_meaningful_payload(None) is False

    def test_blank_text(self):
        assert has_meaningful_payload({'raw': '   ', 'data': '   '}) is False

    def test_parsed_object(self):
        assert has_meaningful_payload({'raw': '', 'data': {'a': 1}}) is True

    def test_text(self):
        assert has_meaningful_payload({'raw': 'hello', 'data': 'hello'}) is True


class TestTransportChain:
    """Tests for TransportChain.send()"""

    def _chain(self, *runners, page_fetch=None, lines=None):
        transports = [Transport(f't{i}', runner) for i, runner in enumerate(runners)]
        return TransportChain(transports, page_fetch=page_fetch, trace=(lines if lines is not None else []).append)

    def test_first_response_wins(self):
        first = Mock(return_value={'status': 200, 'responseText': 'first'})
        second = Mock(return_value={'status': 200, 'responseText': 'second'})
        result = self._chain(first, second).send({'url': 'https://chatgpt.com/x'})
        assert result['raw'] == 'first'
        second.assert_not_called()

    def test_exception_moves_to_next_mechanism(self):
        lines = []
        first = Mock(side_effect=RuntimeError('no credentials'))
        second = Mock(return_value={'status': 200, 'responseText': 'second'})
        result = self._chain(first, second, lines=lines).send({'url': 'https://chatgpt.com/x'})
        assert result['raw'] == 'second'
        assert any('failed' in line for line in lines)

    def test_unavailable_mechanism_moves_to_next(self):
        first = Mock(return_value=None)
        second = Mock(return_value={'status': 200, 'responseText': 'second'})
        assert self._chain(first, second).send({'url': 'https://chatgpt.com/x'})['raw'] == 'second'

    def test_non_2xx_response_stops_chain(self):
        first = Mock(return_value={'status': 403, 'responseText': 'denied'})
        second = Mock(return_value={'status': 200, 'responseText': 'second'})
        result = self._chain(first, second).send({'url': 'https://chatgpt.com/x'})
        assert result['status'] == 403
        second.assert_not_called()

    def test_all_failed_returns_none(self):
        first = Mock(side_effect=RuntimeError('down'))
        assert self._chain(first).send({'url': 'https://chatgpt.com/x'}) is None

    def test_promotes_to_page_fetch_when_json_missing(self):
        primary = Mock(return_value=empty_ok_response())
        page_fetch = Mock(return_value=json_response({'title': 'From page'}))
        result = self._chain(primary, page_fetch=page_fetch).send(
            {'url': 'https://chatgpt.com/x', 'expect_json': True})
        assert result['data'] == {'title': 'From page'}
        page_fetch.assert_called_once()

    def test_keeps_primary_when_page_fetch_is_empty(self):
        primary = Mock(return_value=empty_ok_response())
        page_fetch = Mock(return_value=empty_ok_response())
        result = self._chain(primary, page_fetch=page_fetch).send(
            {'url': 'https://chatgpt.com/x', 'expect_json': True})
        assert result['ok'] is True
        assert result['raw'] == ''
        page_fetch.assert_called_once()

    def test_keeps_primary_when_page_fetch_fails(self):
        primary = Mock(return_value=empty_ok_response())
        page_fetch = Mock(return_value=json_response({'detail': 'no'}, status=401))
        result = self._chain(primary, page_fetch=page_fetch).send(
            {'url': 'https://chatgpt.com/x', 'expect_json': True})
        assert result['status'] == 200

    def test_no_promotion_when_json_parsed(self):
        primary = Mock(return_value=json_response({'a': 1}))
        page_fetch = Mock()
        self._chain(primary, page_fetch=page_fetch).send({'url': 'https://chatgpt.com/x', 'expect_json': True})
        page_fetch.assert_not_called()

    def test_no_promotion_when_json_not_expected(self):
        primary = Mock(return_value={'status': 200, 'responseText': '', 'headers': {'Content-Type': 'text/html'}})
        page_fetch = Mock()
        self._chain(primary, page_fetch=page_fetch).send({'url': 'https://chatgpt.com/x'})
        page_fetch.assert_not_called()

    def test_disable_page_fetch(self):
        primary = Mock(return_value=empty_ok_response())
        page_fetch = Mock()
        self._chain(primary, page_fetch=page_fetch).send(
            {'url': 'https://chatgpt.com/x', 'expect_json': True, 'disable_page_fetch': True})
        page_fetch.assert_not_called()

    def test_force_page_fetch_runs_first(self):
        primary = Mock()
        page_fetch = Mock(return_value=json_response({'a': 1}))
        result = self._chain(primary, page_fetch=page_fetch).send(
            {'url': 'https://chatgpt.com/x', 'force_page_fetch': True, 'expect_json': True})
        assert result['data'] == {'a': 1}
        primary.assert_not_called()

    def test_page_fetch_runs_at_most_once(self):
        primary = Mock(return_value=empty_ok_response())
        page_fetch = Mock(return_value=empty_ok_response())
        self._chain(primary, page_fetch=page_fetch).send(
            {'url': 'https://chatgpt.com/x', 'force_page_fetch': True, 'expect_json': True})
        assert page_fetch.call_count == 1
        primary.assert_called_once()

    def test_prefer_page_fetch_accepts_any_success(self):
        primary = Mock()
        page_fetch = Mock(return_value={'status': 200, 'responseText': ''})
        result = self._chain(primary, page_fetch=page_fetch).send(
            {'url': 'https://chatgpt.com/x', 'prefer_page_fetch': True})
        assert result['ok'] is True
        primary.assert_not_called()

    def test_page_fetch_exception_is_traced(self):
        lines = []
        primary = Mock(return_value=json_response({'a': 1}))
        page_fetch = Mock(side_effect=RuntimeError('frame detached'))
        result = self._chain(primary, page_fetch=page_fetch, lines=lines).send(
            {'url': 'https://chatgpt.com/x', 'force_page_fetch': True, 'expect_json': True})
        assert result['data'] == {'a': 1}
        assert any('frame detached' in line for line in lines)
