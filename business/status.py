"""结算状态归一化

历史数据和外部输入中的结算状态写法不统一（PENDING、REQUESTED、小写等），
进入系统时统一归一化为三种规范值。
"""
from enum import Enum
from typing import Optional


class PaymentStatus(str, Enum):
    """结算状态规范值

    流转顺序 pending → in_progress → completed，
    但允许操作人员在任意状态之间直接改写。
    """
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    def __str__(self) -> str:
        return self.value


def normalize_status(raw: Optional[str]) -> PaymentStatus:
    """把任意状态字符串归一化为 PaymentStatus

    不区分大小写：completed → COMPLETED；in_progress / requested → IN_PROGRESS；
    其他任何值（包括空串、None）→ PENDING。该函数永不抛异常。

    Args:
        raw: 原始状态字符串

    Returns:
        规范状态
    """
    if isinstance(raw, PaymentStatus):
        return raw
    value = str(raw).lower() if raw is not None else ""
    if value == "completed":
        return PaymentStatus.COMPLETED
    if value in ("in_progress", "requested"):
        return PaymentStatus.IN_PROGRESS
    return PaymentStatus.PENDING
