"""通道协议 - Slack 命令与报表推送共用的消息结构

入站：Slack 事件经签名校验、去重、过滤后转换为 Message，
交给 MessageHandler（命令处理器）生成 Reply，再由通道发回原频道。

出站：报表任务把渲染好的文本包装成 Reply，通过通道的 send()
推送到配置的频道。send() 成功即返回，失败抛出
business.errors.ExternalServiceError，由调用方决定是否继续。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional


class MessageType(Enum):
    """消息类型（Slack 只交换 mrkdwn 文本）"""
    TEXT = "text"


@dataclass
class Message:
    """Slack 入站命令

    Attributes:
        type: 消息类型
        content: 去掉 @提及 后的命令文本
        sender_id: Slack user ID
        session_id: Slack channel ID，回复发往此处
        channel_name: 来源通道名称（由 Channel.handle 填充）
        extra: event_id、ts 等事件元数据
    """
    type: MessageType
    content: str
    sender_id: str
    session_id: str
    channel_name: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Reply:
    """出站文本：命令回复或一条报表消息"""
    type: MessageType
    content: str

    @classmethod
    def text(cls, content: str) -> "Reply":
        return cls(type=MessageType.TEXT, content=content)


# 命令处理回调：Message → Optional[Reply]
MessageHandler = Callable[[Message], Awaitable[Optional[Reply]]]


class Channel(ABC):
    """通道基类

    子类实现 startup / shutdown / send；
    handle() 把入站命令交给 message_handler。
    """

    def __init__(self, name: str, message_handler: Optional[MessageHandler] = None):
        self.name = name
        self.running = False
        self._message_handler = message_handler

    @abstractmethod
    async def startup(self):
        pass

    @abstractmethod
    async def shutdown(self):
        pass

    @abstractmethod
    async def send(self, session_id: str, reply: Reply):
        """发送到指定频道

        Raises:
            ExternalServiceError: 网络错误、超时或平台返回失败
        """
        pass

    async def handle(self, message: Message) -> Optional[Reply]:
        """处理入站命令，未设置处理器时返回 None"""
        if not self._message_handler:
            return None

        message.channel_name = self.name
        return await self._message_handler(message)
