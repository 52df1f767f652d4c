"""接口通道模块

- base: 通道抽象与消息格式
- slack: Slack 事件订阅与消息推送
- web: FastAPI 平台（REST API、定时任务入口、Slack webhook）
"""
from .base import Channel, Message, MessageHandler, MessageType, Reply

__all__ = ["Channel", "Message", "MessageHandler", "MessageType", "Reply"]
