"""Slack 通道 - 事件订阅 + chat.postMessage

入站：Web 平台的 /api/slack/webhook 路由把已验证签名的事件交给
SlackChannel.process_event()，这里负责去重、过滤机器人消息与
非目标频道的消息，再把文本交给 message_handler 并回复到原频道。

出站：send() 调用 Slack Web API 的 chat.postMessage，
报表任务也通过它推送消息。网络错误、超时、Slack 返回 ok=false
都会抛出 ExternalServiceError。
"""
import hashlib
import hmac
import re
import time
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from business.dedup import EventDeduplicator
from business.errors import ExternalServiceError
from interface.base import Channel, Message, MessageHandler, MessageType, Reply

# 签名时间戳允许的最大偏差（秒），超过视为重放请求
SIGNATURE_TOLERANCE_SECONDS = 60 * 5

_MENTION_RE = re.compile(r"<@[A-Z0-9]+>")


def compute_slack_signature(signing_secret: str, timestamp: str, body: bytes) -> str:
    """计算 ``v0=<hex>`` 形式的请求签名"""
    base = b"v0:" + timestamp.encode("utf-8") + b":" + body
    digest = hmac.new(signing_secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"v0={digest}"


def verify_slack_signature(signing_secret: str, body: bytes,
                           timestamp: Optional[str], signature: Optional[str],
                           now: Optional[float] = None) -> bool:
    """校验 Slack 请求签名

    Args:
        signing_secret: Slack App 的 Signing Secret
        body: 原始请求体
        timestamp: X-Slack-Request-Timestamp 头
        signature: X-Slack-Signature 头
        now: 当前 Unix 时间（测试用）

    Returns:
        签名有效且时间戳在 5 分钟之内返回 True
    """
    if not signing_secret or not timestamp or not signature:
        return False
    try:
        ts = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if ts < current - SIGNATURE_TOLERANCE_SECONDS:
        return False

    expected = compute_slack_signature(signing_secret, timestamp, body)
    return hmac.compare_digest(expected, signature)


class SlackChannel(Channel):
    """Slack 通道

    Args:
        bot_token: Bot User OAuth Token（xoxb-...）
        signing_secret: 请求签名密钥
        channel_id: 监听与推送的频道 ID，为空时不过滤频道
        message_handler: 消息处理回调
        api_base_url: Slack Web API 地址
        timeout: HTTP 超时（秒）
        deduplicator: 事件去重器，默认 60 秒 TTL
    """

    def __init__(
        self,
        bot_token: str = "",
        signing_secret: str = "",
        channel_id: str = "",
        message_handler: Optional[MessageHandler] = None,
        api_base_url: str = "https://slack.com/api",
        timeout: float = 10.0,
        deduplicator: Optional[EventDeduplicator] = None,
    ):
        super().__init__("slack", message_handler)
        self.bot_token = bot_token
        self.signing_secret = signing_secret
        self.channel_id = channel_id
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self.dedup = deduplicator if deduplicator is not None else EventDeduplicator()

    async def startup(self):
        if not self.bot_token:
            logger.warning("SLACK_BOT_TOKEN 未配置，Slack 消息将无法发送")
        self.running = True
        logger.info(f"Slack 通道已启动 (channel={self.channel_id or '*'})")

    async def shutdown(self):
        self.running = False
        logger.info("Slack 通道已停止")

    def verify_signature(self, body: bytes, timestamp: Optional[str],
                         signature: Optional[str]) -> bool:
        return verify_slack_signature(self.signing_secret, body, timestamp, signature)

    async def send(self, session_id: str, reply: Reply):
        """发送消息到 Slack 频道

        Args:
            session_id: 频道 ID
            reply: 回复内容

        Raises:
            ExternalServiceError: 网络错误、超时或 Slack 返回 ok=false
        """
        url = f"{self.api_base_url}/chat.postMessage"
        headers = {"Authorization": f"Bearer {self.bot_token}"}
        payload = {"channel": session_id, "text": reply.content}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise ExternalServiceError("slack", f"request timed out: {exc}",
                                       timed_out=True) from exc
        except httpx.RequestError as exc:
            raise ExternalServiceError("slack", f"network error: {exc}") from exc

        if response.status_code >= 400:
            raise ExternalServiceError(
                "slack", f"chat.postMessage failed ({response.status_code})"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceError("slack", "invalid JSON response") from exc
        if not isinstance(body, dict):
            raise ExternalServiceError("slack", "unexpected response body")
        if not body.get("ok"):
            raise ExternalServiceError(
                "slack", f"chat.postMessage error: {body.get('error', 'unknown')}"
            )
        logger.debug(f"Slack 发送: channel={session_id}, content={reply.content[:50]}")

    async def process_event(self, payload: Dict[str, Any]) -> bool:
        """处理已通过签名校验的事件回调

        Args:
            payload: Slack 事件请求体

        Returns:
            是否对该事件进行了回复
        """
        if payload.get("type") != "event_callback":
            return False

        event_id = payload.get("event_id")
        if event_id and self.dedup.seen(event_id):
            logger.info(f"重复的 Slack 事件已忽略: {event_id}")
            return False

        event = payload.get("event") or {}
        if event.get("bot_id") or event.get("subtype") == "bot_message":
            return False
        if self.channel_id and event.get("channel") != self.channel_id:
            return False
        if event.get("type") not in ("message", "app_mention"):
            return False

        text = _MENTION_RE.sub("", event.get("text") or "").strip()
        if not text:
            return False

        message = Message(
            type=MessageType.TEXT,
            content=text,
            sender_id=event.get("user", ""),
            session_id=event.get("channel", ""),
            extra={"event_id": event_id, "ts": event.get("ts")},
        )
        reply = await self.handle(message)
        if not reply:
            return False

        try:
            await self.send(message.session_id, reply)
        except ExternalServiceError as e:
            logger.error(f"Slack 回复发送失败: {e.message}")
            return False
        return True
