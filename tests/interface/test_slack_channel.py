"""测试 Slack 通道：签名校验、事件处理、消息发送"""
import json
from typing import Optional

import httpx
import pytest

from business.dedup import EventDeduplicator
from business.errors import ExternalServiceError
from interface.base import Message, MessageType, Reply
from interface.slack.channel import (
    SlackChannel, compute_slack_signature, verify_slack_signature,
)

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
NOW = 1_700_000_000


class RecordingSlackChannel(SlackChannel):
    """不访问网络，只记录发送内容"""

    def __init__(self, fail: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.fail = fail
        self.sent = []

    async def send(self, session_id: str, reply: Reply):
        if self.fail:
            raise ExternalServiceError("slack", "channel_not_found")
        self.sent.append((session_id, reply.content))


async def echo_handler(message: Message) -> Optional[Reply]:
    return Reply(type=MessageType.TEXT, content=f"echo: {message.content}")


def _event(event_id="Ev01", **event):
    body = {"type": "message", "channel": "C0123456", "user": "U1",
            "text": "현황", "ts": "1700000000.000100"}
    body.update(event)
    return {"type": "event_callback", "event_id": event_id, "event": body}


class TestSignature:
    """签名校验测试"""

    def test_valid_signature(self):
        body = b'{"type":"event_callback"}'
        signature = compute_slack_signature(SECRET, str(NOW), body)
        assert signature.startswith("v0=")
        assert verify_slack_signature(SECRET, body, str(NOW), signature, now=NOW + 10)

    def test_tampered_body(self):
        signature = compute_slack_signature(SECRET, str(NOW), b"original")
        assert not verify_slack_signature(SECRET, b"tampered", str(NOW), signature, now=NOW)

    def test_stale_timestamp(self):
        body = b"{}"
        signature = compute_slack_signature(SECRET, str(NOW), body)
        assert not verify_slack_signature(SECRET, body, str(NOW), signature, now=NOW + 301)

    @pytest.mark.parametrize("secret, timestamp, signature", [
        ("", str(NOW), "v0=abc"),
        (SECRET, None, "v0=abc"),
        (SECRET, str(NOW), None),
        (SECRET, "not-a-number", "v0=abc"),
    ])
    def test_missing_parts(self, secret, timestamp, signature):
        assert not verify_slack_signature(secret, b"{}", timestamp, signature, now=NOW)


class TestProcessEvent:
    """事件处理测试"""

    @pytest.mark.asyncio
    async def test_message_is_answered_in_channel(self):
        channel = RecordingSlackChannel(channel_id="C0123456", message_handler=echo_handler)
        assert await channel.process_event(_event(text="<@U0BOT> 정산  ")) is True
        assert channel.sent == [("C0123456", "echo: 정산")]

    @pytest.mark.asyncio
    async def test_duplicate_event_ignored(self):
        channel = RecordingSlackChannel(message_handler=echo_handler)
        assert await channel.process_event(_event("Ev42")) is True
        assert await channel.process_event(_event("Ev42")) is False
        assert len(channel.sent) == 1

    def test_injected_deduplicator_is_kept(self):
        dedup = EventDeduplicator(ttl_seconds=5, clock=lambda: 0.0)
        channel = SlackChannel(deduplicator=dedup)
        assert channel.dedup is dedup
        assert channel.dedup.ttl_seconds == 5

    @pytest.mark.asyncio
    async def test_redelivery_after_ttl_is_processed(self):
        now = [0.0]
        dedup = EventDeduplicator(ttl_seconds=60, clock=lambda: now[0])
        channel = RecordingSlackChannel(message_handler=echo_handler, deduplicator=dedup)
        await channel.process_event(_event("Ev42"))
        now[0] = 61.0
        assert await channel.process_event(_event("Ev42")) is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        _event(bot_id="B01"),
        _event(subtype="bot_message"),
        _event(channel="C999"),
        _event(type="reaction_added"),
        _event(text="<@U0BOT>"),
        {"type": "url_verification", "challenge": "abc"},
    ])
    async def test_filtered_events(self, payload):
        channel = RecordingSlackChannel(channel_id="C0123456", message_handler=echo_handler)
        assert await channel.process_event(payload) is False
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_app_mention_accepted(self):
        channel = RecordingSlackChannel(message_handler=echo_handler)
        assert await channel.process_event(_event(type="app_mention", text="<@U0BOT> 리포트"))
        assert channel.sent[0][1] == "echo: 리포트"

    @pytest.mark.asyncio
    async def test_send_failure_is_swallowed(self):
        channel = RecordingSlackChannel(fail=True, message_handler=echo_handler)
        assert await channel.process_event(_event()) is False


class TestSend:
    """chat.postMessage 调用测试"""

    @pytest.fixture
    def mock_slack(self, monkeypatch):
        requests = []
        responder = {"handler": lambda request: httpx.Response(200, json={"ok": True})}
        real_client = httpx.AsyncClient

        def handler(request):
            requests.append(request)
            return responder["handler"](request)

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", client_factory)
        return requests, responder

    @pytest.mark.asyncio
    async def test_post_message(self, mock_slack):
        requests, _ = mock_slack
        channel = SlackChannel(bot_token="xoxb-test")

        await channel.send("C0123456", Reply(type=MessageType.TEXT, content="안녕하세요"))

        request = requests[0]
        assert request.url.path == "/api/chat.postMessage"
        assert request.headers["Authorization"] == "Bearer xoxb-test"
        assert json.loads(request.content) == {"channel": "C0123456", "text": "안녕하세요"}

    @pytest.mark.asyncio
    async def test_slack_error_response(self, mock_slack):
        _, responder = mock_slack
        responder["handler"] = lambda request: httpx.Response(
            200, json={"ok": False, "error": "invalid_auth"})
        channel = SlackChannel(bot_token="xoxb-bad")

        with pytest.raises(ExternalServiceError) as exc_info:
            await channel.send("C1", Reply(type=MessageType.TEXT, content="x"))
        assert "invalid_auth" in exc_info.value.message
        assert exc_info.value.timed_out is False

    @pytest.mark.asyncio
    async def test_http_error_status(self, mock_slack):
        _, responder = mock_slack
        responder["handler"] = lambda request: httpx.Response(429, text="rate limited")

        with pytest.raises(ExternalServiceError):
            await SlackChannel(bot_token="t").send(
                "C1", Reply(type=MessageType.TEXT, content="x"))

    @pytest.mark.asyncio
    async def test_timeout(self, mock_slack):
        _, responder = mock_slack

        def _timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        responder["handler"] = _timeout

        with pytest.raises(ExternalServiceError) as exc_info:
            await SlackChannel(bot_token="t").send(
                "C1", Reply(type=MessageType.TEXT, content="x"))
        assert exc_info.value.timed_out is True

    @pytest.mark.asyncio
    async def test_non_object_response(self, mock_slack):
        _, responder = mock_slack
        responder["handler"] = lambda request: httpx.Response(200, json=["ok"])

        with pytest.raises(ExternalServiceError) as exc_info:
            await SlackChannel(bot_token="t").send(
                "C1", Reply(type=MessageType.TEXT, content="x"))
        assert "unexpected response body" in exc_info.value.message
