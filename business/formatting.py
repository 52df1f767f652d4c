"""报表文本格式化工具

金额统一为整数货币单位（韩元）。
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

WEEKDAY_LABELS = ["월요일", "화요일", "수요일", "목요일", "금요일", "토요일", "일요일"]

INFINITY_UP = "+∞%"
INFINITY_DOWN = "-∞%"


def _round1(value: float) -> str:
    # 按四舍五入保留一位小数，避免银行家舍入
    return str(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _round0(value: float) -> str:
    return str(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_won(amount: int) -> str:
    """完整金额：1234567 → ``1,234,567원``"""
    return f"{int(amount):,}원"


def format_amount(amount: int) -> str:
    """简写金额

    绝对值不小于一万时以"万"为单位保留一位小数（去掉 .0），
    否则使用完整写法：

        15000   → 1.5만원
        500000  → 50만원
        9800    → 9,800원
        -50000  → -5만원
    """
    if abs(amount) >= 10000:
        short = _round1(amount / 10000)
        if short.endswith(".0"):
            short = short[:-2]
        return f"{short}만원"
    return format_won(amount)


def format_percent(part: int, total: int) -> str:
    """占比（整数百分比字符串，不含 %），total 为 0 时返回 "0"。"""
    if total <= 0:
        return "0"
    return _round0(part / total * 100)


def format_share(part: int, total: int) -> str:
    """占比（保留一位小数，不含 %），total 为 0 时返回 "0"。"""
    if total <= 0:
        return "0"
    return _round1(part / total * 100)


def get_change_percent(current: int, previous: int) -> str:
    """环比变化率文本

    - 两期都为 0：``0%``
    - 上期为 0、本期为正：``+∞%``；本期为负：``-∞%``
    - 其他：带符号保留一位小数，如 ``+50.0%``、``-12.5%``
    """
    if previous == 0:
        if current > 0:
            return INFINITY_UP
        if current < 0:
            return INFINITY_DOWN
        return "0%"
    change = (current - previous) / previous * 100
    sign = "+" if change >= 0 else ""
    return f"{sign}{_round1(change)}%"


def get_change_emoji(current: int, previous: int) -> str:
    """变化超过 ±10% 时返回趋势表情，否则返回空串。"""
    if previous == 0:
        return ""
    change = (current - previous) / previous * 100
    if change > 10:
        return "📈"
    if change < -10:
        return "📉"
    return ""


def format_date_ko(value: date) -> str:
    """``2024. 1. 15.``"""
    return f"{value.year}. {value.month}. {value.day}."


def format_month_day(value: date) -> str:
    """``1/15``"""
    return f"{value.month}/{value.day}"


def format_briefing_date(value: date) -> str:
    """``1월 15일 월요일``"""
    return f"{value.month}월 {value.day}일 {WEEKDAY_LABELS[value.weekday()]}"
