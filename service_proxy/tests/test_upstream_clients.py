"""
Unit tests for the upstream adapters.
"""

import time

import pytest
import httpx

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_proxy.app.adapters.archive_client import (
    ARCHIVE_BASE_URL,
    DEFAULT_USER_AGENT,
    ArchiveClient,
)
from service_proxy.app.adapters.chat_client import ChatClient, extract_reply
from service_proxy.app.adapters.predict_client import PredictClient
from shared.errors import ConfigurationError, TransportFailure, UpstreamError
from shared.test_helpers import (
    RecordingUpstream,
    json_response,
    raise_error,
    text_response,
    trickling_upstream,
)


class TestArchiveClient:
    """Test cases for ArchiveClient."""

    def test_build_url_keeps_query_verbatim(self):
        client = ArchiveClient()

        url = client.build_url("query=select+pl_name+from+ps&format=json")

        assert url == f"{ARCHIVE_BASE_URL}?query=select+pl_name+from+ps&format=json"

    @pytest.mark.asyncio
    async def test_open_stream_forwards_only_accept_and_user_agent(self):
        """Only accept and user-agent reach the archive."""
        upstream = RecordingUpstream(lambda request: json_response([{"pl_name": "TOI-700 d"}]))
        client = ArchiveClient(http_client=upstream.client())

        response = await client.open_stream(
            "query=select+1&format=json",
            accept="application/json",
            user_agent="explorer-test",
        )
        body = await response.aread()
        await response.aclose()

        sent = upstream.requests[0]
        assert sent.method == "GET"
        assert sent.url.host == "exoplanetarchive.ipac.caltech.edu"
        assert sent.url.path == "/TAP/sync"
        assert sent.url.query == b"query=select+1&format=json"
        assert sent.headers["accept"] == "application/json"
        assert sent.headers["user-agent"] == "explorer-test"
        assert "authorization" not in sent.headers
        assert body == b'[{"pl_name": "TOI-700 d"}]'

    @pytest.mark.asyncio
    async def test_open_stream_defaults_headers(self):
        upstream = RecordingUpstream()
        client = ArchiveClient(http_client=upstream.client())

        response = await client.open_stream("query=select+1")
        await response.aclose()

        sent = upstream.requests[0]
        assert sent.headers["accept"] == "*/*"
        assert sent.headers["user-agent"] == DEFAULT_USER_AGENT

    @pytest.mark.asyncio
    async def test_timeout_becomes_transport_failure(self):
        """A timed-out request surfaces as TransportFailure."""
        upstream = RecordingUpstream(raise_error(lambda request: httpx.ReadTimeout("timed out", request=request)))
        client = ArchiveClient(http_client=upstream.client())

        with pytest.raises(TransportFailure) as exc_info:
            await client.open_stream("query=select+1")

        assert exc_info.value.service == "archive"
        assert "timed out" in exc_info.value.message

    def test_timeout_is_explicit(self):
        client = ArchiveClient(timeout_seconds=25.0)

        assert client.timeout_seconds == 25.0
        assert client.timeout.read == 25.0
        assert client.timeout.connect == 25.0

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self):
        upstream = RecordingUpstream()
        http_client = upstream.client()
        client = ArchiveClient(http_client=http_client)

        await client.aclose()

        assert not http_client.is_closed
        await http_client.aclose()


class TestPredictClient:
    """Test cases for PredictClient."""

    @pytest.mark.asyncio
    async def test_predict_posts_json(self):
        """Features are POSTed as JSON to the configured endpoint."""
        upstream = RecordingUpstream(lambda request: json_response({"prediction": "CONFIRMED"}))
        client = PredictClient("http://model.test/predict/", http_client=upstream.client())

        prediction = await client.predict({"koi_prad": 1.2, "koi_depth": 450.0})

        sent = upstream.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == "http://model.test/predict/"
        assert sent.headers["content-type"] == "application/json"
        assert upstream.last_json() == {"koi_prad": 1.2, "koi_depth": 450.0}
        assert prediction.is_json is True
        assert prediction.payload == {"prediction": "CONFIRMED"}

    def test_default_endpoint(self):
        client = PredictClient(None)

        assert client.endpoint == "https://back-557899680969.us-south1.run.app/predict/"

    @pytest.mark.asyncio
    async def test_non_json_success_returned_as_text(self):
        upstream = RecordingUpstream(lambda request: text_response("CONFIRMED"))
        client = PredictClient("http://model.test/predict/", http_client=upstream.client())

        prediction = await client.predict({})

        assert prediction.is_json is False
        assert prediction.payload == "CONFIRMED"
        assert prediction.content_type == "text/plain"

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        """Non-2xx answers carry the upstream status and body."""
        upstream = RecordingUpstream(lambda request: text_response('{"detail":"bad features"}', status_code=422))
        client = PredictClient("http://model.test/predict/", http_client=upstream.client())

        with pytest.raises(UpstreamError) as exc_info:
            await client.predict({})

        assert exc_info.value.upstream_status == 422
        assert exc_info.value.upstream_body == '{"detail":"bad features"}'

    @pytest.mark.asyncio
    async def test_connect_error(self):
        upstream = RecordingUpstream(raise_error(lambda request: httpx.ConnectError("refused", request=request)))
        client = PredictClient("http://model.test/predict/", http_client=upstream.client())

        with pytest.raises(TransportFailure) as exc_info:
            await client.predict({})

        assert exc_info.value.status_code == 500
        assert exc_info.value.error == "ProxyError"

    @pytest.mark.asyncio
    async def test_trickling_answer_times_out(self):
        """The whole exchange, body included, must finish within the timeout."""
        async with trickling_upstream(b'{"prediction": "CONFIRMED"}', byte_interval=0.1) as base_url:
            async with httpx.AsyncClient(trust_env=False) as http_client:
                client = PredictClient(f"{base_url}/predict/", timeout_seconds=1.0, http_client=http_client)
                started = time.monotonic()

                with pytest.raises(TransportFailure) as exc_info:
                    await client.predict({})
                elapsed = time.monotonic() - started

        assert elapsed < 2.0
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "predict: Upstream request timed out"


class TestChatClient:
    """Test cases for ChatClient."""

    @pytest.mark.asyncio
    async def test_complete_sends_bearer_token(self):
        upstream = RecordingUpstream(lambda request: json_response({"reply": "Hello"}))
        client = ChatClient("http://chat.test/v1/complete", "secret", http_client=upstream.client())

        reply = await client.complete("What is a transit?")

        sent = upstream.requests[0]
        assert sent.headers["authorization"] == "Bearer secret"
        assert upstream.last_json() == {"prompt": "What is a transit?"}
        assert reply == "Hello"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = ChatClient(None, "secret")

        assert client.configured is False
        with pytest.raises(ConfigurationError):
            await client.complete("hi")

    def test_empty_values_count_as_missing(self):
        assert ChatClient("", "secret").configured is False
        assert ChatClient("http://chat.test", "").configured is False

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        upstream = RecordingUpstream(lambda request: text_response("quota exceeded", status_code=429))
        client = ChatClient("http://chat.test/v1/complete", "secret", http_client=upstream.client())

        with pytest.raises(UpstreamError) as exc_info:
            await client.complete("hi")

        assert exc_info.value.status_code == 502
        assert exc_info.value.upstream_status == 429

    @pytest.mark.asyncio
    async def test_slow_answer_times_out(self):
        async with trickling_upstream(b'{"reply": "hi"}', header_delay=3.0) as base_url:
            async with httpx.AsyncClient(trust_env=False) as http_client:
                client = ChatClient(f"{base_url}/chat", "secret", timeout_seconds=0.5, http_client=http_client)
                started = time.monotonic()

                with pytest.raises(TransportFailure) as exc_info:
                    await client.complete("hi")
                elapsed = time.monotonic() - started

        assert elapsed < 2.0
        assert exc_info.value.status_code == 500


class TestUpstreamDeadline:
    """Deadline helpers shared by every upstream client."""

    @pytest.mark.asyncio
    async def test_expired_deadline_fails_without_waiting(self):
        client = PredictClient("http://model.test/predict/", timeout_seconds=5.0)
        calls = []

        async def operation():
            calls.append(1)

        with pytest.raises(TransportFailure):
            await client.within_deadline(operation, time.monotonic() - 1)

        assert calls == []

    @pytest.mark.asyncio
    async def test_result_returned_before_deadline(self):
        client = PredictClient("http://model.test/predict/", timeout_seconds=5.0)

        async def operation():
            return "done"

        assert await client.within_deadline(operation, client.start_deadline()) == "done"


class TestExtractReply:
    """Reply field precedence."""

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"reply": "a", "result": "b"}, "a"),
            ({"result": "b", "output": "c"}, "b"),
            ({"output": "c", "choices": [{"text": "d"}]}, "c"),
            ({"choices": [{"text": "d"}]}, "d"),
        ],
    )
    def test_field_order(self, payload, expected):
        assert extract_reply(payload) == expected

    def test_null_fields_are_skipped(self):
        assert extract_reply({"reply": None, "result": "b"}) == "b"

    def test_empty_string_is_a_reply(self):
        assert extract_reply({"reply": "", "result": "b"}) == ""

    def test_fallback_serializes_payload(self):
        """Unknown shapes fall back to the compact JSON text."""
        assert extract_reply({"candidates": [{"content": "x"}]}) == '{"candidates":[{"content":"x"}]}'

    def test_empty_choices_fall_back(self):
        assert extract_reply({"choices": []}) == '{"choices":[]}'

    def test_non_string_reply_serialized(self):
        assert extract_reply({"reply": {"text": "x"}}) == '{"text":"x"}'

    def test_non_object_payload(self):
        assert extract_reply(["a", "b"]) == '["a","b"]'
