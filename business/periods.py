"""报表时间窗口计算

所有窗口都以日期表示，两端均包含。周从周一开始，
月末通过"下月第 0 天"（下月 1 日减一天）得到。
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta


@dataclass(frozen=True)
class Period:
    """闭区间 [start, end]"""
    start: date
    end: date
    label: str = ""

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def week_range(today: date) -> Period:
    """包含 today 的自然周（周一 ~ 周日）"""
    start = today - timedelta(days=today.weekday())
    return Period(start, start + timedelta(days=6))


def last_week_range(today: date) -> Period:
    this_week = week_range(today)
    end = this_week.start - timedelta(days=1)
    return Period(end - timedelta(days=6), end)


def next_week_range(today: date) -> Period:
    this_week = week_range(today)
    start = this_week.end + timedelta(days=1)
    return Period(start, start + timedelta(days=6))


def _first_of_next_month(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1)
    return date(year, month + 1, 1)


def month_range(today: date) -> Period:
    """today 所在月份的第一天到最后一天"""
    start = today.replace(day=1)
    end = _first_of_next_month(start.year, start.month) - timedelta(days=1)
    return Period(start, end, f"{start.month}월")


def month_range_offset(today: date, offset: int) -> Period:
    """相对 today 所在月份往前 offset 个月（负数表示往后）"""
    index = today.year * 12 + (today.month - 1) - offset
    year, month = divmod(index, 12)
    return month_range(date(year, month + 1, 1))


def days_between(target: date, today: date) -> int:
    """target 与 today 相差的天数（只比较日期部分），target 在未来为正"""
    return (_as_date(target) - _as_date(today)).days


def _as_date(value) -> date:
    # datetime 也是 date 的子类，需要去掉时间部分
    return value.date() if isinstance(value, datetime) else value
