"""定时报表：每日提醒、周报、月报

每个报表任务：
1. 根据传入的"当前时间"计算统计窗口（以及用于环比的上一个窗口）
2. 从数据库读取流水、结算、项目等数据并汇总
3. 渲染为固定格式的文本（财务摘要 → 分类明细 → 页脚）
4. 整条发送到通知通道

通知发送失败只记录日志，不影响任务返回已计算好的汇总数据。
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from business.errors import ExternalServiceError
from business.formatting import (
    format_amount, format_briefing_date, format_date_ko, format_month_day,
    format_percent, format_won, get_change_emoji, get_change_percent,
)
from business.periods import (
    days_between, last_week_range, month_range, month_range_offset,
    next_week_range, week_range,
)
from business.status import PaymentStatus, normalize_status
from config.business_config import BusinessConfig, business_config
from database.models import Client
from interface.base import Channel, Reply

ALERT_SEPARATOR = "─" * 30

SETTLEMENT_ALERT_STYLES = {
    "D-7": ("⏰", "7일 후 정산 마감 예정"),
    "D-3": ("⚠️", "3일 후 정산 마감 - 빠른 처리 필요"),
    "D-Day": ("🔴", "오늘 정산 마감"),
    "overdue": ("❌", "정산 지연 - 즉시 처리 필요"),
}


@dataclass
class ReportResult:
    """报表任务的执行结果

    Attributes:
        name: 任务名称
        messages: 渲染好的消息文本（按发送顺序）
        summary: 汇总数据
        delivered: 所有消息是否都已成功发送
        errors: 发送失败的错误信息
    """
    name: str
    messages: List[str]
    summary: Dict[str, Any]
    delivered: bool = False
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "report": self.name,
            "summary": self.summary,
            "sentToSlack": self.delivered,
            "errors": self.errors,
        }


def bucket_settlement_alerts(rows: Sequence[Any], today: date
                             ) -> Dict[str, List[Any]]:
    """按截止日期把未完成结算分到四个提醒组

    只有相差 7 天、3 天、当天和已逾期（负数）四种情况会提醒，
    其他天数的结算不出现在任何组中。

    Args:
        rows: 结算记录（需有 payment_due_date 属性）
        today: 当天日期

    Returns:
        ``{"D-7": [...], "D-3": [...], "D-Day": [...], "overdue": [...]}``
    """
    buckets: Dict[str, List[Any]] = {key: [] for key in SETTLEMENT_ALERT_STYLES}
    for row in rows:
        if row.payment_due_date is None:
            continue
        diff = days_between(row.payment_due_date, today)
        if diff == 7:
            buckets["D-7"].append(row)
        elif diff == 3:
            buckets["D-3"].append(row)
        elif diff == 0:
            buckets["D-Day"].append(row)
        elif diff < 0:
            buckets["overdue"].append(row)
    return buckets


def _split_totals(transactions: Sequence[Any]) -> Tuple[int, int]:
    revenue = sum(t.amount for t in transactions if t.type == "REVENUE")
    expense = sum(t.amount for t in transactions if t.type == "EXPENSE")
    return revenue, expense


def _sum_by(transactions: Sequence[Any], tx_type: str, key) -> List[Tuple[str, int]]:
    totals: Dict[str, int] = {}
    for t in transactions:
        if t.type != tx_type:
            continue
        name = key(t)
        if name is None:
            continue
        totals[name] = totals.get(name, 0) + t.amount
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def _client_name(obj: Any) -> str:
    client = getattr(obj, "client", None)
    return client.name if client else "미지정"


class ReportJob:
    """报表任务基类

    Args:
        db: DatabaseManager
        notifier: 通知通道（实现 Channel.send），为 None 时只生成不发送
        channel_id: 目标频道
        config: 业务配置（分类标签等）
    """

    name = "report"

    def __init__(self, db, notifier: Optional[Channel] = None,
                 channel_id: Optional[str] = None,
                 config: Optional[BusinessConfig] = None):
        self.db = db
        self.notifier = notifier
        self.channel_id = channel_id
        self.config = config or business_config

    def build(self, today: date) -> Tuple[List[str], Dict[str, Any]]:
        """生成消息文本与汇总数据（子类实现）"""
        raise NotImplementedError

    async def run(self, now: Optional[datetime] = None) -> ReportResult:
        """生成并发送报表

        Args:
            now: 当前时间，默认取系统时间

        Returns:
            ReportResult，发送失败时 delivered 为 False 但汇总数据完整
        """
        today = (now or datetime.now()).date()
        messages, summary = self.build(today)
        result = ReportResult(self.name, messages, summary)
        await self._deliver(result)
        logger.info(
            f"Report '{self.name}' for {today.isoformat()} generated, "
            f"{len(messages)} message(s), delivered={result.delivered}"
        )
        return result

    async def _deliver(self, result: ReportResult) -> None:
        if not result.messages:
            result.delivered = True
            return
        if self.notifier is None or not self.channel_id:
            logger.warning(f"Report '{self.name}': no notification channel configured, skip sending")
            return

        delivered = True
        for text in result.messages:
            try:
                await self.notifier.send(
                    self.channel_id, Reply.text(text)
                )
            except ExternalServiceError as e:
                delivered = False
                result.errors.append(e.message)
                logger.error(f"Report '{self.name}' delivery failed: {e.message}")
        result.delivered = delivered


class DailyAlerts(ReportJob):
    """每日提醒：晨间简报、结算截止提醒、应收/发票提醒、异常检测"""

    name = "daily-alerts"

    def build(self, today: date) -> Tuple[List[str], Dict[str, Any]]:
        db = self.db
        alerts: List[str] = []

        # 1. 结算截止提醒
        pending = [
            row for row in db.settlements.find_unsettled()
            if row.payment_due_date is not None
        ]
        buckets = bucket_settlement_alerts(pending, today)
        for key, rows in buckets.items():
            if rows:
                alerts.append(self._format_settlement_alerts(key, rows))

        # 2. 应收提醒：完成超过 30 天仍未收款
        unpaid_alerts, unpaid_count = self._unpaid_alerts(today)
        if unpaid_alerts:
            alerts.append(unpaid_alerts)

        # 3. 税务发票未开具：完成超过 7 天
        no_invoice = db.projects.get_completed_without_document(
            "TAX_INVOICE", ended_on_or_before=today - timedelta(days=7)
        )
        if no_invoice:
            alerts.append(self._format_tax_invoice_alerts(no_invoice))

        # 4. 晨间简报
        today_events = db.calendar.find_between(today, today)
        today_deadlines = db.projects.get_ending_between(
            today, today, statuses=["IN_PROGRESS", "QUOTING"]
        )
        active_projects = db.projects.count_by_status().get("IN_PROGRESS", 0)
        week_deadlines = len(db.projects.get_ending_between(
            today, week_range(today).end, statuses=["IN_PROGRESS"]
        ))

        briefing = f"☀️ *오늘의 브리핑* ({format_briefing_date(today)})\n\n"
        if today_events or today_deadlines:
            briefing += "📅 *오늘 일정*\n"
            for event in today_events:
                emoji = {"MEETING": "🤝", "DEADLINE": "⏰"}.get(event.type, "📌")
                briefing += f"{emoji} {event.title}\n"
            for project in today_deadlines:
                briefing += f"📁 [마감] {project.name} ({_client_name(project)})\n"
            briefing += "\n"
        else:
            briefing += "📅 오늘 예정된 일정이 없습니다.\n\n"

        briefing += "📊 *현황 요약*\n"
        briefing += f"• 진행 중 프로젝트: {active_projects}건\n"
        briefing += f"• 이번주 마감 예정: {week_deadlines}건\n"
        briefing += f"• 정산 대기: {len(pending)}건\n\n"

        # 5. 异常检测
        anomalies = self._anomalies(today, len(buckets["overdue"]))

        # 6. 明日会议提醒
        tomorrow = today + timedelta(days=1)
        tomorrow_meetings = db.calendar.find_between(
            tomorrow, tomorrow, event_type="MEETING"
        )
        reminder = ""
        if tomorrow_meetings:
            reminder = "\n🔔 *내일 미팅 알림*\n"
            for meeting in tomorrow_meetings:
                reminder += f"• {meeting.title}\n"

        messages = [briefing + reminder]
        if alerts:
            header = f"🚨 *알림 사항*\n{ALERT_SEPARATOR}\n\n"
            messages.append(header + f"\n{ALERT_SEPARATOR}\n\n".join(alerts))
        if anomalies:
            header = f"🔍 *이상 징후 감지*\n{ALERT_SEPARATOR}\n\n"
            messages.append(header + "\n\n".join(anomalies))

        summary = {
            "briefing": {
                "todayMeetings": len(today_events),
                "todayDeadlines": len(today_deadlines),
                "activeProjects": active_projects,
                "thisWeekDeadlines": week_deadlines,
            },
            "alerts": {
                "settlementD7": len(buckets["D-7"]),
                "settlementD3": len(buckets["D-3"]),
                "settlementDDay": len(buckets["D-Day"]),
                "settlementOverdue": len(buckets["overdue"]),
                "unpaid": unpaid_count,
                "taxInvoicePending": len(no_invoice),
            },
            "anomalies": len(anomalies),
            "reminders": {"tomorrowMeetings": len(tomorrow_meetings)},
        }
        return messages, summary

    @staticmethod
    def _format_settlement_alerts(key: str, rows: Sequence[Any]) -> str:
        emoji, title = SETTLEMENT_ALERT_STYLES[key]
        message = f"{emoji} *{title}*\n\n"
        for index, row in enumerate(rows, 1):
            influencer = row.influencer.name if row.influencer else "-"
            project = row.project.name if row.project else "-"
            client = _client_name(row.project) if row.project else "-"
            message += f"{index}. *{influencer}*\n"
            message += f"   • 프로젝트: {project} ({client})\n"
            message += f"   • 정산금액: {format_won(row.fee or 0)}\n"
            message += f"   • 마감일: {format_date_ko(row.payment_due_date)}\n\n"
        return message

    def _unpaid_alerts(self, today: date) -> Tuple[str, int]:
        projects = self.db.projects.get_completed_ended_before(
            today - timedelta(days=30)
        )
        unpaid: Dict[int, int] = {}
        for tx in self.db.transactions.find_unpaid_revenue(
                [p.id for p in projects]):
            unpaid[tx.project_id] = unpaid.get(tx.project_id, 0) + tx.amount

        lines = []
        for project in projects:
            amount = unpaid.get(project.id, 0)
            if amount <= 0:
                continue
            lines.append((project, amount))
        if not lines:
            return "", 0

        message = "💰 *미수금 알림* (프로젝트 종료 후 30일 이상)\n\n"
        for index, (project, amount) in enumerate(lines, 1):
            message += f"{index}. *{_client_name(project)}* - {project.name}\n"
            message += f"   • 미수금: {format_won(amount)}\n"
            message += f"   • 종료 후 {days_between(today, project.end_date)}일 경과\n\n"
        return message, len(lines)

    @staticmethod
    def _format_tax_invoice_alerts(projects: Sequence[Any]) -> str:
        message = "📄 *세금계산서 미발행 알림*\n\n"
        for index, project in enumerate(projects, 1):
            message += f"{index}. *{_client_name(project)}* - {project.name}\n"
            message += f"   • 금액: {format_won(project.contract_amount or 0)}\n"
            message += f"   • 완료일: {format_date_ko(project.end_date)}\n\n"
        return message

    def _anomalies(self, today: date, overdue_count: int) -> List[str]:
        anomalies = []
        this_month = self.db.transactions.sum_by_type(today.replace(day=1), today)
        last = month_range_offset(today, 1)
        last_month = self.db.transactions.sum_by_type(last.start, last.end)

        expense_now, expense_before = this_month["EXPENSE"], last_month["EXPENSE"]
        if expense_before > 0:
            change = (expense_now - expense_before) / expense_before * 100
            if change > 50:
                anomalies.append(
                    "📈 *지출 급증 알림*\n"
                    f"이번달 지출이 지난달 대비 {format_percent(expense_now - expense_before, expense_before)}% 증가했습니다.\n"
                    f"• 이번달: {format_amount(expense_now)}\n"
                    f"• 지난달: {format_amount(expense_before)}"
                )

        revenue_now, revenue_before = this_month["REVENUE"], last_month["REVENUE"]
        if revenue_before > 0:
            change = (revenue_now - revenue_before) / revenue_before * 100
            if change < -30:
                anomalies.append(
                    "📉 *매출 감소 알림*\n"
                    f"이번달 매출이 지난달 대비 {format_percent(revenue_before - revenue_now, revenue_before)}% 감소했습니다.\n"
                    f"• 이번달: {format_amount(revenue_now)}\n"
                    f"• 지난달: {format_amount(revenue_before)}"
                )

        if overdue_count >= 5:
            anomalies.append(
                "⚠️ *정산 연체 경고*\n"
                f"연체된 정산이 {overdue_count}건 있습니다. 즉시 처리가 필요합니다."
            )
        return anomalies


class WeeklyReport(ReportJob):
    """周报（每周一发送，统计本周一至周日）"""

    name = "weekly-report"

    def build(self, today: date) -> Tuple[List[str], Dict[str, Any]]:
        db = self.db
        this_week = week_range(today)
        last_week = last_week_range(today)
        next_week = next_week_range(today)

        this_tx = db.transactions.find_between(this_week.start, this_week.end)
        last_tx = db.transactions.find_between(last_week.start, last_week.end)
        revenue, expense = _split_totals(this_tx)
        last_revenue, last_expense = _split_totals(last_tx)
        profit = revenue - expense

        labels = self.config.get_expense_category_labels()
        top_expenses = _sum_by(this_tx, "EXPENSE", lambda t: t.category)[:3]
        top_clients = _sum_by(
            this_tx, "REVENUE", lambda t: t.client.name if t.client else None
        )[:3]

        unpaid = db.transactions.find_unpaid_revenue()
        unpaid_amount = sum(t.amount for t in unpaid)

        pending = db.settlements.find_unsettled()
        pending_amount = sum(r.fee or 0 for r in pending)
        due_this_week = [
            r for r in pending
            if r.payment_due_date and this_week.contains(r.payment_due_date)
        ]

        counts = db.projects.count_by_status()
        active, quoting = counts.get("IN_PROGRESS", 0), counts.get("QUOTING", 0)
        completed = db.projects.get_completed_updated_between(
            this_week.start, this_week.end
        )
        ending_next_week = db.projects.get_ending_between(
            next_week.start, next_week.end, statuses=["IN_PROGRESS", "QUOTING"]
        )
        no_invoice = db.projects.get_completed_without_document("TAX_INVOICE")

        new_influencers: Dict[int, str] = {}
        for row in db.settlements.find_created_between(this_week.start, this_week.end):
            if row.influencer is not None:
                new_influencers.setdefault(row.influencer_id, row.influencer.name)

        week_label = (f"{format_month_day(this_week.start)} ~ "
                      f"{format_month_day(this_week.end)}")
        rule = "━" * 28

        msg = "📊 *주간 현황 리포트*\n"
        msg += f"📅 {this_week.start.year}년 {week_label}\n"
        msg += f"{rule}\n\n"

        msg += "💰 *이번 주 재무 요약*\n"
        msg += "┌─────────────────────────┐\n"
        msg += (f"│ 매출: {format_amount(revenue).ljust(12)} "
                f"{get_change_emoji(revenue, last_revenue)} "
                f"{get_change_percent(revenue, last_revenue)}\n")
        msg += (f"│ 지출: {format_amount(expense).ljust(12)} "
                f"{get_change_emoji(expense, last_expense)} "
                f"{get_change_percent(expense, last_expense)}\n")
        msg += f"│ 순이익: {format_amount(profit)}\n"
        msg += "└─────────────────────────┘\n\n"

        if top_expenses:
            msg += "📉 *지출 TOP 3*\n"
            for i, (category, amount) in enumerate(top_expenses, 1):
                msg += (f"{i}. {labels.get(category, category)}: "
                        f"{format_amount(amount)} ({format_percent(amount, expense)}%)\n")
            msg += "\n"

        if top_clients:
            msg += "🏆 *클라이언트별 매출 TOP 3*\n"
            for i, (name, amount) in enumerate(top_clients, 1):
                msg += f"{i}. {name}: {format_amount(amount)}\n"
            msg += "\n"

        msg += "⚠️ *미결 현황*\n"
        msg += f"• 미수금: {format_amount(unpaid_amount)} ({len(unpaid)}건)\n"
        msg += f"• 정산 대기: {format_amount(pending_amount)} ({len(pending)}건)\n"
        if due_this_week:
            msg += f"• 🔴 이번 주 정산 마감: {len(due_this_week)}건\n"
        msg += "\n"

        msg += "📁 *프로젝트 현황*\n"
        msg += f"• 진행 중: {active}건 | 견적 중: {quoting}건\n"

        if completed:
            msg += f"\n✅ *이번 주 완료* ({len(completed)}건)\n"
            for p in completed[:3]:
                msg += f"• {_client_name(p)} - {p.name}\n"
            if len(completed) > 3:
                msg += f"  _...외 {len(completed) - 3}건_\n"

        if ending_next_week:
            msg += f"\n⏰ *다음 주 마감 예정* ({len(ending_next_week)}건)\n"
            for p in ending_next_week:
                msg += f"• {_client_name(p)} - {p.name} ({format_month_day(p.end_date)})\n"

        if no_invoice:
            msg += f"\n📄 *세금계산서 미발행* ({len(no_invoice)}건)\n"
            for p in no_invoice[:3]:
                msg += f"• {_client_name(p)} - {p.name} ({format_amount(p.contract_amount or 0)})\n"
            if len(no_invoice) > 3:
                msg += f"  _...외 {len(no_invoice) - 3}건_\n"

        if due_this_week:
            msg += "\n💸 *이번 주 정산 마감*\n"
            for s in due_this_week[:5]:
                name = s.influencer.name if s.influencer else "-"
                msg += (f"• {name} - {format_amount(s.fee or 0)} "
                        f"({format_month_day(s.payment_due_date)})\n")
            if len(due_this_week) > 5:
                msg += f"  _...외 {len(due_this_week) - 5}건_\n"

        if new_influencers:
            names = list(new_influencers.values())
            msg += f"\n👤 *이번 주 신규 협업*: {len(names)}명\n"
            more = f" 외 {len(names) - 5}명" if len(names) > 5 else ""
            msg += f"• {', '.join(names[:5])}{more}\n"

        msg += f"\n{rule}\n"
        msg += "_매주 월요일 오전 9시 자동 발송_"

        summary = {
            "period": week_label,
            "revenue": revenue,
            "expense": expense,
            "profit": profit,
            "revenueChange": get_change_percent(revenue, last_revenue),
            "expenseChange": get_change_percent(expense, last_expense),
            "unpaidAmount": unpaid_amount,
            "pendingSettlements": len(pending),
            "activeProjects": active,
            "quotingProjects": quoting,
            "completedThisWeek": len(completed),
            "projectsEndingNextWeek": len(ending_next_week),
            "taxInvoicePending": len(no_invoice),
        }
        return [msg], summary


class MonthlyReport(ReportJob):
    """月报（每月 1 日发送，统计当月并与前两个月比较）"""

    name = "monthly-report"

    def _stats(self, start: date, end: date) -> Dict[str, int]:
        return self.db.get_period_totals(start, end)

    def build(self, today: date) -> Tuple[List[str], Dict[str, Any]]:
        db = self.db
        this_month = month_range(today)
        last_month = month_range_offset(today, 1)
        two_months_ago = month_range_offset(today, 2)
        next_month = month_range_offset(today, -1)

        this_tx = db.transactions.find_between(this_month.start, this_month.end)
        revenue, expense = _split_totals(this_tx)
        profit = revenue - expense
        last_stats = self._stats(last_month.start, last_month.end)
        older_stats = self._stats(two_months_ago.start, two_months_ago.end)
        margin = (format(round(profit / revenue * 100, 1), ".1f")
                  if revenue > 0 else "0")

        expense_labels = self.config.get_expense_category_labels()
        revenue_labels = self.config.get_revenue_category_labels()
        top_expenses = _sum_by(this_tx, "EXPENSE", lambda t: t.category)[:5]
        top_revenues = _sum_by(this_tx, "REVENUE", lambda t: t.category)[:5]
        top_clients = _sum_by(
            this_tx, "REVENUE", lambda t: t.client.name if t.client else None
        )[:5]

        completed = db.projects.get_completed_updated_between(
            this_month.start, this_month.end
        )
        counts = db.projects.count_by_status()
        active, quoting = counts.get("IN_PROGRESS", 0), counts.get("QUOTING", 0)
        new_projects = db.projects.count_created_between(
            this_month.start, this_month.end
        )
        contract_total = sum(p.contract_amount or 0 for p in completed)

        new_clients = db.clients.count_created_between(
            this_month.start, this_month.end
        )
        active_clients = db.clients.count(Client, filters={"status": "ACTIVE"})
        fixed_vendors = db.clients.get_fixed_vendors()
        fixed_revenue = sum(v.monthly_fee or 0 for v in fixed_vendors)

        influencer_totals: Dict[int, Dict[str, Any]] = {}
        for row in db.settlements.find_created_between(
                this_month.start, this_month.end):
            entry = influencer_totals.setdefault(row.influencer_id, {
                "name": row.influencer.name if row.influencer else "알 수 없음",
                "fee": 0, "count": 0,
            })
            entry["fee"] += row.fee or 0
            entry["count"] += 1
        top_influencers = sorted(influencer_totals.values(),
                                 key=lambda e: e["fee"], reverse=True)

        paid = [
            r for r in db.settlements.find_paid_between(
                this_month.start, this_month.end)
            if normalize_status(r.payment_status) == PaymentStatus.COMPLETED
        ]
        pending = db.settlements.find_unsettled()
        overdue = [r for r in pending
                   if r.payment_due_date and r.payment_due_date < today]

        unpaid = db.transactions.find_unpaid_revenue()
        invoices_issued = db.documents.count_issued_between(
            "TAX_INVOICE", this_month.start, this_month.end
        )
        invoices_pending = len(
            db.projects.get_completed_without_document("TAX_INVOICE")
        )
        ending_next_month = db.projects.get_ending_between(
            next_month.start, next_month.end, statuses=["IN_PROGRESS", "QUOTING"]
        )[:5]

        rule = "━" * 30
        msg = "📊 *월간 결산 리포트*\n"
        msg += f"📅 {today.year}년 {today.month}월\n"
        msg += f"{rule}\n\n"

        msg += "💰 *이번 달 재무 요약*\n"
        msg += "┌──────────────────────────────┐\n"
        msg += (f"│ 매출: {format_amount(revenue).ljust(14)} "
                f"{get_change_emoji(revenue, last_stats['revenue'])} "
                f"{get_change_percent(revenue, last_stats['revenue'])}\n")
        msg += (f"│ 지출: {format_amount(expense).ljust(14)} "
                f"{get_change_emoji(expense, last_stats['expense'])} "
                f"{get_change_percent(expense, last_stats['expense'])}\n")
        msg += f"│ 순이익: {format_amount(profit)}\n"
        msg += f"│ 이익률: {margin}%\n"
        msg += "└──────────────────────────────┘\n\n"

        msg += "📈 *최근 3개월 추이*\n"
        msg += "┌─────────┬──────────┬──────────┐\n"
        msg += "│         │  매출    │  순이익  │\n"
        msg += "├─────────┼──────────┼──────────┤\n"
        for label, stats in ((two_months_ago.label, older_stats),
                             (last_month.label, last_stats),
                             (this_month.label, {"revenue": revenue, "profit": profit})):
            msg += (f"│ {label.ljust(7)}│ {format_amount(stats['revenue']).ljust(8)}"
                    f"│ {format_amount(stats['profit']).ljust(8)}│\n")
        msg += "└─────────┴──────────┴──────────┘\n\n"

        if top_clients:
            msg += "🏆 *클라이언트별 매출 TOP 5*\n"
            for i, (name, amount) in enumerate(top_clients, 1):
                msg += f"{i}. {name}: {format_amount(amount)} ({format_percent(amount, revenue)}%)\n"
            msg += "\n"

        if top_revenues:
            msg += "💵 *수입 구성*\n"
            for i, (category, amount) in enumerate(top_revenues, 1):
                msg += (f"{i}. {revenue_labels.get(category, category)}: "
                        f"{format_amount(amount)} ({format_percent(amount, revenue)}%)\n")
            if fixed_revenue > 0:
                msg += (f"   └ 고정 거래처 수익: {format_amount(fixed_revenue)} "
                        f"({len(fixed_vendors)}곳)\n")
            msg += "\n"

        if top_expenses:
            msg += "📉 *지출 분석 TOP 5*\n"
            for i, (category, amount) in enumerate(top_expenses, 1):
                msg += (f"{i}. {expense_labels.get(category, category)}: "
                        f"{format_amount(amount)} ({format_percent(amount, expense)}%)\n")
            msg += "\n"

        msg += "📁 *활동 현황*\n"
        msg += f"• 신규 프로젝트: {new_projects}건\n"
        msg += f"• 완료 프로젝트: {len(completed)}건 (계약금 {format_amount(contract_total)})\n"
        msg += f"• 진행 중: {active}건 | 견적 중: {quoting}건\n"
        msg += f"• 신규 클라이언트: {new_clients}건 | 활성 클라이언트: {active_clients}건\n\n"

        msg += "👤 *인플루언서 현황*\n"
        msg += f"• 이번 달 협업: {len(influencer_totals)}명\n"
        if top_influencers:
            msg += "• 협업 TOP 3:\n"
            for i, entry in enumerate(top_influencers[:3], 1):
                msg += f"  {i}. {entry['name']}: {format_amount(entry['fee'])} ({entry['count']}건)\n"
        msg += "\n"

        pending_amount = sum(r.fee or 0 for r in pending)
        msg += "💸 *정산 현황*\n"
        msg += (f"• 이번 달 완료: {format_amount(sum(r.fee or 0 for r in paid))} "
                f"({len(paid)}건)\n")
        msg += f"• 대기 중: {format_amount(pending_amount)} ({len(pending)}건)\n"
        if overdue:
            msg += (f"• 🔴 연체: {len(overdue)}건 "
                    f"({format_amount(sum(r.fee or 0 for r in overdue))})\n")
        msg += "\n"

        msg += "⚠️ *미결 현황*\n"
        msg += (f"• 미수금: {format_amount(sum(t.amount for t in unpaid))} "
                f"({len(unpaid)}건)\n")
        msg += f"• 세금계산서 발행: {invoices_issued}건 | 미발행: {invoices_pending}건\n\n"

        if ending_next_month:
            msg += f"⏰ *{next_month.label} 마감 예정* ({len(ending_next_month)}건)\n"
            for p in ending_next_month:
                msg += f"• {_client_name(p)} - {p.name} ({format_month_day(p.end_date)})\n"
            msg += "\n"

        msg += f"{rule}\n"
        msg += "_매월 1일 오전 9시 자동 발송_"

        summary = {
            "period": f"{today.year}년 {today.month}월",
            "revenue": revenue,
            "expense": expense,
            "profit": profit,
            "profitMargin": float(margin),
            "revenueChange": get_change_percent(revenue, last_stats["revenue"]),
            "expenseChange": get_change_percent(expense, last_stats["expense"]),
            "completedProjects": len(completed),
            "newClients": new_clients,
            "activeInfluencers": len(influencer_totals),
            "pendingSettlements": len(pending),
            "overdueSettlements": len(overdue),
            "taxInvoicePending": invoices_pending,
            "trend": {
                "twoMonthsAgo": older_stats,
                "lastMonth": last_stats,
                "thisMonth": {"revenue": revenue, "expense": expense,
                              "profit": profit},
            },
        }
        return [msg], summary


def build_report_jobs(db, notifier: Optional[Channel] = None,
                      channel_id: Optional[str] = None,
                      config: Optional[BusinessConfig] = None
                      ) -> Dict[str, ReportJob]:
    """创建三个报表任务，键为任务名（daily-alerts / weekly-report / monthly-report）"""
    jobs = [cls(db, notifier, channel_id, config)
            for cls in (DailyAlerts, WeeklyReport, MonthlyReport)]
    return {job.name: job for job in jobs}
