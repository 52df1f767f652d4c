"""网红结算：汇总统计、列表查询、单条更新与删除

汇总统计（aggregate_settlements）是纯函数，只依赖传入的结算行与
网红/项目查找表，可以脱离数据库单独测试。
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from business.errors import NotFoundError, ValidationError
from business.periods import Period, month_range
from business.schemas import SettlementUpdate, parse_payload
from business.status import PaymentStatus, normalize_status
from database.models import ProjectInfluencer


@dataclass
class StatusTotal:
    amount: int = 0
    count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"amount": self.amount, "count": self.count}


@dataclass
class SettlementSummary:
    """结算汇总结果

    Attributes:
        status_totals: 三种规范状态各自的金额与笔数
        influencer_totals: 按网红汇总，金额降序
        project_totals: 按项目汇总，金额降序
    """
    status_totals: Dict[PaymentStatus, StatusTotal]
    influencer_totals: List[Dict[str, Any]] = field(default_factory=list)
    project_totals: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statusTotals": {
                status.value: total.to_dict()
                for status, total in self.status_totals.items()
            },
            "influencerTotals": self.influencer_totals,
            "projectTotals": self.project_totals,
        }


def _influencer_brief(influencer: Any) -> Dict[str, Any]:
    return {
        "id": influencer.id,
        "name": influencer.name,
        "instagramId": getattr(influencer, "instagram_id", None),
    }


def _project_brief(project: Any) -> Dict[str, Any]:
    client = getattr(project, "client", None)
    return {
        "id": project.id,
        "name": project.name,
        "client": {"id": client.id, "name": client.name} if client else None,
    }


def aggregate_settlements(rows: Iterable[Any],
                          influencers: Mapping[int, Any],
                          projects: Mapping[int, Any]) -> SettlementSummary:
    """计算结算汇总

    状态汇总覆盖全部结算行；按网红、按项目的汇总中，
    查不到对应网红/项目的行直接跳过。排序为金额降序，
    金额相同时保持首次出现的顺序。

    Args:
        rows: 结算行，需要有 project_id、influencer_id、fee、payment_status 属性
        influencers: influencer_id → 网红对象（需有 id、name）
        projects: project_id → 项目对象（需有 id、name，可选 client）

    Returns:
        SettlementSummary
    """
    status_totals = {status: StatusTotal() for status in PaymentStatus}
    by_influencer: Dict[int, Dict[str, Any]] = {}
    by_project: Dict[int, Dict[str, Any]] = {}

    for row in rows:
        fee = row.fee or 0
        bucket = status_totals[normalize_status(row.payment_status)]
        bucket.amount += fee
        bucket.count += 1

        influencer = influencers.get(row.influencer_id)
        if influencer is not None:
            entry = by_influencer.setdefault(row.influencer_id, {
                "influencer": _influencer_brief(influencer),
                "totalFee": 0,
                "_projects": set(),
            })
            entry["totalFee"] += fee
            entry["_projects"].add(row.project_id)

        project = projects.get(row.project_id)
        if project is not None:
            entry = by_project.setdefault(row.project_id, {
                "project": _project_brief(project),
                "totalFee": 0,
                "_influencers": set(),
            })
            entry["totalFee"] += fee
            entry["_influencers"].add(row.influencer_id)

    # sorted 是稳定排序，金额相同的保持插入顺序
    influencer_totals = [
        {"influencer": e["influencer"], "totalFee": e["totalFee"],
         "projects": len(e["_projects"])}
        for e in sorted(by_influencer.values(),
                        key=lambda e: e["totalFee"], reverse=True)
    ]
    project_totals = [
        {"project": e["project"], "totalFee": e["totalFee"],
         "influencers": len(e["_influencers"])}
        for e in sorted(by_project.values(),
                        key=lambda e: e["totalFee"], reverse=True)
    ]
    return SettlementSummary(status_totals, influencer_totals, project_totals)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def settlement_to_dict(row: Any) -> Dict[str, Any]:
    """结算记录 → API 输出（状态已归一化，附带网红与项目信息）"""
    influencer = row.influencer
    project = row.project
    client = project.client if project is not None else None
    return {
        "id": row.id,
        "projectId": row.project_id,
        "influencerId": row.influencer_id,
        "fee": row.fee or 0,
        "paymentStatus": normalize_status(row.payment_status).value,
        "paymentDueDate": _iso(row.payment_due_date),
        "paymentDate": _iso(row.payment_date),
        "shootingDate": _iso(row.shooting_date),
        "draftDeliveryDate": _iso(row.draft_delivery_date),
        "uploadDate": _iso(row.upload_date),
        "influencer": {
            "id": influencer.id,
            "name": influencer.name,
            "instagramId": influencer.instagram_id,
            "bankName": influencer.bank_name,
            "bankAccount": influencer.bank_account,
            "accountHolder": influencer.account_holder,
        } if influencer is not None else None,
        "project": {
            "id": project.id,
            "name": project.name,
            "client": {"id": client.id, "name": client.name} if client else None,
        } if project is not None else None,
    }


def parse_month(month: Optional[str]) -> Optional[Period]:
    """解析 ``YYYY-MM`` 月份参数

    Raises:
        ValidationError: 格式错误
    """
    if not month:
        return None
    try:
        first = datetime.strptime(month, "%Y-%m").date()
    except ValueError:
        raise ValidationError(
            f"Invalid month: {month}", {"month": "expected YYYY-MM"}
        )
    return month_range(first)


class SettlementService:
    """结算查询与维护

    Args:
        db: DatabaseManager
    """

    def __init__(self, db):
        self.db = db

    def summary(self, month: Optional[str] = None) -> SettlementSummary:
        """结算汇总（可按月过滤，月份规则同 list_settlements）"""
        period = parse_month(month)
        rows = self.db.settlements.find_all(
            period.start if period else None, period.end if period else None
        )
        influencers = {r.influencer_id: r.influencer for r in rows
                       if r.influencer is not None}
        projects = {r.project_id: r.project for r in rows
                    if r.project is not None}
        return aggregate_settlements(rows, influencers, projects)

    def list_settlements(self, status: Optional[str] = None,
                         month: Optional[str] = None) -> Dict[str, Any]:
        """结算列表

        月份过滤：有结算日期按结算日期；否则有截止日期按截止日期；
        两者都没有时按创建时间。状态过滤作用于归一化后的状态，
        ``all`` 或空值表示不过滤。

        Returns:
            ``{"settlements": [...], "summary": {...}}``
        """
        period = parse_month(month)
        rows = self.db.settlements.find_all(
            period.start if period else None, period.end if period else None
        )
        if status and status != "all":
            wanted = normalize_status(status)
            rows = [r for r in rows
                    if normalize_status(r.payment_status) == wanted]

        totals = {s: StatusTotal() for s in PaymentStatus}
        for r in rows:
            bucket = totals[normalize_status(r.payment_status)]
            bucket.amount += r.fee or 0
            bucket.count += 1

        return {
            "settlements": [settlement_to_dict(r) for r in rows],
            "summary": {
                "total": sum(t.amount for t in totals.values()),
                "count": len(rows),
                "pending": totals[PaymentStatus.PENDING].amount,
                "inProgress": totals[PaymentStatus.IN_PROGRESS].amount,
                "completed": totals[PaymentStatus.COMPLETED].amount,
                "pendingCount": totals[PaymentStatus.PENDING].count,
                "inProgressCount": totals[PaymentStatus.IN_PROGRESS].count,
                "completedCount": totals[PaymentStatus.COMPLETED].count,
            },
        }

    def update(self, settlement_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """更新结算状态与结算日期

        状态总会被归一化后写入（缺省即 pending），结算日期缺省即清除。
        允许任意状态之间直接跳转。

        Raises:
            ValidationError: 数据格式错误
            NotFoundError: 结算记录不存在
        """
        payload = parse_payload(SettlementUpdate, data)
        status = normalize_status(payload.payment_status)
        updated = self.db.settlements.update_by_id(
            ProjectInfluencer, settlement_id,
            payment_status=status.value,
            payment_date=payload.payment_date,
        )
        if updated is None:
            raise NotFoundError("Settlement", [settlement_id])
        logger.info(f"Settlement {settlement_id} updated: status={status.value}")
        return settlement_to_dict(
            self.db.settlements.get_with_details(settlement_id)
        )

    def delete(self, settlement_id: int) -> None:
        """删除结算记录

        Raises:
            NotFoundError: 结算记录不存在
        """
        with self.db.transaction() as session:
            self.db.calendar.unlink_settlement(settlement_id, session=session)
            if not self.db.settlements.delete(settlement_id, session=session):
                raise NotFoundError("Settlement", [settlement_id])
        logger.info(f"Settlement {settlement_id} deleted")
