"""Slack 文本命令处理

按业务配置中的关键词识别意图（顺序即优先级），
生成月度现况、待结算列表、支出分析、日程或简要报表的回复文本。
无法识别时返回帮助文本。
"""
from datetime import date
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from business.errors import BusinessError
from business.formatting import (
    format_amount, format_date_ko, format_share, get_change_percent,
)
from business.periods import (
    month_range, month_range_offset, next_week_range, week_range,
)
from business.status import normalize_status
from config.business_config import BusinessConfig, business_config
from interface.base import Message, Reply

UNKNOWN_INTENT = "unknown"

WEEKLY_KEYWORDS = ("주간", "이번주", "이번 주", "week")
MONTHLY_KEYWORDS = ("이번달", "이번 달", "month")
NEXT_WEEK_KEYWORDS = ("다음주", "다음 주", "next week")
LAST_MONTH_KEYWORDS = ("지난달", "지난 달", "last month")


def build_dashboard_summary(db, today: date) -> Dict[str, Any]:
    """当月收支、环比与进行中项目、待结算概况"""
    this_month = month_range(today)
    last_month = month_range_offset(today, 1)
    current = db.get_period_totals(this_month.start, this_month.end)
    previous = db.get_period_totals(last_month.start, last_month.end)
    pending = db.settlements.find_unsettled()
    return {
        "month": this_month.start.strftime("%Y-%m"),
        "revenue": current["revenue"],
        "expense": current["expense"],
        "profit": current["profit"],
        "revenueChange": get_change_percent(current["revenue"], previous["revenue"]),
        "expenseChange": get_change_percent(current["expense"], previous["expense"]),
        "activeProjects": db.projects.count_by_status().get("IN_PROGRESS", 0),
        "pendingSettlements": len(pending),
        "pendingSettlementAmount": sum(r.fee or 0 for r in pending),
    }


class CommandProcessor:
    """Slack 命令处理器

    Args:
        db: DatabaseManager
        config: 业务配置（命令关键词、分类与状态标签、帮助文本）
    """

    def __init__(self, db, config: Optional[BusinessConfig] = None):
        self.db = db
        self.config = config or business_config

    def parse_intent(self, text: str) -> str:
        """识别意图，返回意图名或 ``unknown``"""
        lowered = (text or "").lower()
        for intent, keywords in self.config.get_command_keywords().items():
            if any(keyword.lower() in lowered for keyword in keywords):
                return intent
        return UNKNOWN_INTENT

    def handle(self, text: str, today: Optional[date] = None) -> str:
        """处理一条命令文本并返回回复"""
        today = today or date.today()
        intent = self.parse_intent(text)
        if intent == "query_dashboard":
            return self.dashboard_reply(today)
        if intent == "query_settlement":
            return self.settlement_reply()
        if intent == "query_spending":
            return self.spending_reply(text, today)
        if intent == "query_schedule":
            return self.schedule_reply(text, today)
        if intent == "generate_report":
            weekly = any(k in (text or "").lower() for k in WEEKLY_KEYWORDS)
            return self.report_reply(today, weekly)
        return self.config.get_help_text()

    def dashboard_reply(self, today: date) -> str:
        summary = build_dashboard_summary(self.db, today)
        return (
            "📊 *이번 달 현황*\n"
            f"• 매출: {format_amount(summary['revenue'])}\n"
            f"• 지출: {format_amount(summary['expense'])}\n"
            f"• 순이익: {format_amount(summary['profit'])}"
        )

    def settlement_reply(self, limit: int = 10) -> str:
        rows = self.db.settlements.find_unsettled()
        if not rows:
            return "🔍 정산 내역을 찾을 수 없습니다."

        # 截止日期为空的排在最后
        rows.sort(key=lambda r: (r.payment_due_date is None,
                                 r.payment_due_date or date.max))
        labels = self.config.get_status_labels()
        total = sum(r.fee or 0 for r in rows)

        msg = f"💸 *정산 현황* ({len(rows)}건)\n"
        msg += f"📌 총 대기 금액: {format_amount(total)}\n\n"
        for i, row in enumerate(rows[:limit], 1):
            name = row.influencer.name if row.influencer else "-"
            project = row.project.name if row.project else "-"
            client = (row.project.client.name
                      if row.project and row.project.client else "-")
            status = normalize_status(row.payment_status).value
            status = labels.get(status, status)
            due = format_date_ko(row.payment_due_date) if row.payment_due_date else "미정"
            msg += f"{i}. *{name}* - {format_amount(row.fee or 0)}\n"
            msg += f"   {project} ({client})\n"
            msg += f"   상태: {status} | 마감: {due}\n"
        if len(rows) > limit:
            msg += f"\n_...외 {len(rows) - limit}건 더 있음_"
        return msg.rstrip("\n")

    def spending_reply(self, text: str, today: date) -> str:
        lowered = (text or "").lower()
        if any(k in lowered for k in LAST_MONTH_KEYWORDS):
            period, period_label = month_range_offset(today, 1), "지난달"
        elif any(k in lowered for k in WEEKLY_KEYWORDS):
            period, period_label = week_range(today), "이번주"
        else:
            period, period_label = month_range(today), "이번달"

        expenses = self.db.transactions.find_between(
            period.start, period.end, tx_type="EXPENSE"
        )
        total = sum(tx.amount for tx in expenses)
        by_category: Dict[str, int] = {}
        for tx in expenses:
            by_category[tx.category] = by_category.get(tx.category, 0) + tx.amount
        labels = self.config.get_expense_category_labels()

        msg = f"📉 *{period_label} 지출 분석*\n"
        msg += f"💰 총 지출: {format_amount(total)} ({len(expenses)}건)\n\n"
        if by_category:
            msg += "*카테고리별 상세*\n"
            ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)
            for i, (category, amount) in enumerate(ranked, 1):
                msg += (f"{i}. {labels.get(category, category)}: "
                        f"{format_amount(amount)} ({format_share(amount, total)}%)\n")
        return msg.strip()

    def schedule_reply(self, text: str, today: date, limit: int = 10) -> str:
        lowered = (text or "").lower()
        if any(k in lowered for k in NEXT_WEEK_KEYWORDS):
            period, period_label = next_week_range(today), "다음주"
        elif any(k in lowered for k in MONTHLY_KEYWORDS):
            period, period_label = month_range(today), "이번달"
        else:
            period, period_label = week_range(today), "이번주"
        meetings_only = "미팅" in lowered or "meeting" in lowered

        events = self.db.calendar.find_between(
            period.start, period.end, "MEETING" if meetings_only else None
        )
        deadlines, settlements = [], []
        if not meetings_only:
            deadlines = self.db.projects.get_ending_between(
                period.start, period.end, ["IN_PROGRESS", "QUOTING"]
            )
            settlements = [
                row for row in self.db.settlements.find_unsettled(period.end)
                if row.payment_due_date >= period.start
            ]

        # (日期, 图标, 标题, 金额)
        items = [
            (event.date.date(),
             "🤝" if event.type == "MEETING" else "📌",
             event.title, None)
            for event in events
        ]
        items += [
            (p.end_date, "📁",
             f"{p.name} ({p.client.name if p.client else '미지정'})", None)
            for p in deadlines
        ]
        items += [
            (row.payment_due_date, "💰",
             f"{row.influencer.name if row.influencer else '-'} - "
             f"{row.project.name if row.project else '-'}",
             row.fee or 0)
            for row in settlements
        ]
        if not items:
            return f"📅 *{period_label} 일정*\n등록된 일정이 없습니다."
        items.sort(key=lambda item: item[0])

        meetings = sum(1 for event in events if event.type == "MEETING")
        msg = f"📅 *{period_label} 일정* (총 {len(items)}건)\n"
        msg += (f"• 미팅: {meetings}건 | 프로젝트 마감: {len(deadlines)}건 | "
                f"정산 마감: {len(settlements)}건\n\n")
        for day, icon, title, amount in items[:limit]:
            msg += f"{icon} *{format_date_ko(day)}* - {title}\n"
            if amount:
                msg += f"   └ {format_amount(amount)}\n"
        if len(items) > limit:
            msg += f"\n_...외 {len(items) - limit}건 더 있음_"
        return msg.strip()

    def report_reply(self, today: date, weekly: bool = False) -> str:
        if weekly:
            period = week_range(today)
            period_label, kind = "이번주", "주간"
        else:
            period = month_range(today)
            period_label, kind = period.label, "월간"

        totals = self.db.get_period_totals(period.start, period.end)
        expenses = self.db.transactions.find_between(
            period.start, period.end, tx_type="EXPENSE"
        )
        by_category: Dict[str, int] = {}
        for tx in expenses:
            by_category[tx.category] = by_category.get(tx.category, 0) + tx.amount
        top = sorted(by_category.items(), key=lambda item: item[1], reverse=True)[:3]

        active = self.db.projects.count_by_status().get("IN_PROGRESS", 0)
        pending = self.db.settlements.find_unsettled()
        labels = self.config.get_expense_category_labels()

        msg = f"📊 *{period_label} {kind} 리포트*\n\n"
        msg += "*💰 재무 요약*\n"
        msg += f"• 매출: {format_amount(totals['revenue'])}\n"
        msg += f"• 지출: {format_amount(totals['expense'])}\n"
        msg += f"• 순이익: {format_amount(totals['profit'])}\n\n"
        msg += "*📁 현황*\n"
        msg += f"• 진행 중 프로젝트: {active}건\n"
        msg += (f"• 정산 대기: {len(pending)}건 "
                f"({format_amount(sum(r.fee or 0 for r in pending))})")
        if top:
            msg += "\n\n*📉 지출 TOP 3*\n"
            msg += "\n".join(
                f"{i}. {labels.get(category, category)}: {format_amount(amount)}"
                for i, (category, amount) in enumerate(top, 1)
            )
        return msg

    async def handle_message(self, message: Message) -> Optional[Reply]:
        """通道消息处理回调，出错时回复错误信息"""
        try:
            text = self.handle(message.content)
        except (BusinessError, SQLAlchemyError) as e:
            logger.error(f"Command failed: {message.content!r}: {e}")
            text = f"처리 중 오류가 발생했습니다: {e}"
        return Reply.text(text)
