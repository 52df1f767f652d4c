"""业务层异常定义

核心逻辑只抛出这里定义的类型化异常，不关心传输层。
由边界（Web 路由、定时任务入口）负责把异常映射为响应码或日志：

- ValidationError       → 400
- UnauthorizedError     → 401
- NotFoundError         → 404
- TransactionFailedError → 409
- ExternalServiceError  → 503（超时时提示"请求超时"）
"""
from typing import Dict, List, Optional


class BusinessError(Exception):
    """业务异常基类"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BusinessError):
    """输入缺失或格式错误

    Attributes:
        fields: 出错字段 → 错误说明
    """

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields = fields or {}


class NotFoundError(BusinessError):
    """引用的记录不存在

    Attributes:
        entity: 实体名称（Project / Influencer / Settlement ...）
        ids: 缺失的 ID 列表
    """

    def __init__(self, entity: str, ids: List[int]):
        ids_text = ", ".join(str(i) for i in ids)
        super().__init__(f"{entity} not found: {ids_text}")
        self.entity = entity
        self.ids = list(ids)


class TransactionFailedError(BusinessError):
    """事务执行失败，所有改动已回滚"""


class ExternalServiceError(BusinessError):
    """外部服务（Slack 等）调用失败

    Attributes:
        service: 服务名称
        timed_out: 是否因超时失败
    """

    def __init__(self, service: str, message: str, timed_out: bool = False):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.timed_out = timed_out


class UnauthorizedError(BusinessError):
    """缺少或无效的鉴权凭据"""
