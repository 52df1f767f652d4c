"""业务记录仓库 —— 核心业务数据的数据访问层。

管理系统中的核心业务记录（网红结算、收支流水、文档、日程），
这些记录是日常经营活动产生的交易数据。

结算相关的写操作都接受外部 session，以便上层在同一个事务中
组合多条 upsert / delete（见 business.collaborators）。
"""
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import (
    CalendarEvent, Document, Project, ProjectInfluencer, Transaction
)


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min)


def _day_end(value: date) -> datetime:
    return datetime.combine(value, time.max)


class SettlementRepository(BaseCRUD):
    """网红结算（ProjectInfluencer）仓库。

    每个 (project_id, influencer_id) 组合至多一条记录，
    upsert 按该组合定位记录，存在则更新，不存在则插入。
    查询结果预加载网红、项目及其客户，会话关闭后仍可读取。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def _base_query(self, sess):
        return sess.query(ProjectInfluencer).options(
            joinedload(ProjectInfluencer.influencer),
            joinedload(ProjectInfluencer.project).joinedload(Project.client),
        )

    def get_with_details(self, settlement_id: int,
                         session: Optional[Session] = None
                         ) -> Optional[ProjectInfluencer]:
        """获取单条结算记录（含网红、项目信息）。"""
        def _query(sess):
            return self._base_query(sess).filter(
                ProjectInfluencer.id == settlement_id
            ).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def find_by_project(self, project_id: int,
                        session: Optional[Session] = None
                        ) -> List[ProjectInfluencer]:
        """获取项目的全部结算记录（按 ID 升序）。"""
        def _query(sess):
            return self._base_query(sess).filter(
                ProjectInfluencer.project_id == project_id
            ).order_by(ProjectInfluencer.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def upsert(self, project_id: int, influencer_id: int,
               values: Dict[str, Any],
               session: Optional[Session] = None) -> ProjectInfluencer:
        """按 (project_id, influencer_id) 插入或更新结算记录。

        Args:
            project_id: 项目ID。
            influencer_id: 网红ID。
            values: 待写入字段（fee、payment_status、payment_due_date 等）。
            session: 外部会话（可选）。

        Returns:
            写入后的 ProjectInfluencer 对象。
        """
        def _do(sess):
            row = sess.query(ProjectInfluencer).filter(
                ProjectInfluencer.project_id == project_id,
                ProjectInfluencer.influencer_id == influencer_id
            ).first()
            if row is None:
                row = ProjectInfluencer(
                    project_id=project_id, influencer_id=influencer_id
                )
                sess.add(row)
            for key, value in values.items():
                setattr(row, key, value)
            sess.flush()
            return row

        if session:
            return _do(session)

        with self._get_session() as sess:
            row = _do(sess)
            sess.commit()
            return row

    def delete(self, settlement_id: int,
               session: Optional[Session] = None) -> bool:
        """删除单条结算记录。"""
        return self.delete_by_id(
            ProjectInfluencer, settlement_id, session=session
        )

    def delete_for_influencers(self, project_id: int,
                               influencer_ids: Iterable[int],
                               session: Optional[Session] = None) -> int:
        """删除项目下指定网红的结算记录。

        Returns:
            删除的记录数。
        """
        ids = list(influencer_ids)

        def _do(sess):
            if not ids:
                return 0
            rows = sess.query(ProjectInfluencer).filter(
                ProjectInfluencer.project_id == project_id,
                ProjectInfluencer.influencer_id.in_(ids)
            ).all()
            for row in rows:
                sess.delete(row)
            sess.flush()
            return len(rows)

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

    def find_all(self, month_start: Optional[date] = None,
                 month_end: Optional[date] = None,
                 session: Optional[Session] = None
                 ) -> List[ProjectInfluencer]:
        """获取结算记录，可按月份过滤。

        月份过滤规则：
        - 有实际结算日期的，按结算日期判断；
        - 没有结算日期但有截止日期的，按截止日期判断；
        - 两者都没有的，按创建时间判断。

        Args:
            month_start: 月份第一天（含）。
            month_end: 月份最后一天（含）。

        Returns:
            结算记录列表（按创建时间倒序）。
        """
        def _query(sess):
            query = self._base_query(sess)
            if month_start and month_end:
                pi = ProjectInfluencer
                query = query.filter(or_(
                    and_(pi.payment_date >= month_start,
                         pi.payment_date <= month_end),
                    and_(pi.payment_date.is_(None),
                         pi.payment_due_date >= month_start,
                         pi.payment_due_date <= month_end),
                    and_(pi.payment_date.is_(None),
                         pi.payment_due_date.is_(None),
                         pi.created_at >= _day_start(month_start),
                         pi.created_at <= _day_end(month_end)),
                ))
            return query.order_by(
                ProjectInfluencer.created_at.desc(),
                ProjectInfluencer.id.desc()
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def find_unsettled(self, due_on_or_before: Optional[date] = None,
                       session: Optional[Session] = None
                       ) -> List[ProjectInfluencer]:
        """获取未完成结算的记录。

        历史数据的状态大小写不一，比较时统一转为小写。

        Args:
            due_on_or_before: 仅返回截止日期不晚于该日期的记录（可选）。
        """
        def _query(sess):
            query = self._base_query(sess).filter(
                or_(
                    ProjectInfluencer.payment_status.is_(None),
                    func.lower(ProjectInfluencer.payment_status) != "completed"
                )
            )
            if due_on_or_before is not None:
                query = query.filter(
                    ProjectInfluencer.payment_due_date.isnot(None),
                    ProjectInfluencer.payment_due_date <= due_on_or_before
                )
            return query.order_by(
                ProjectInfluencer.payment_due_date, ProjectInfluencer.id
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def find_created_between(self, start: date, end: date,
                             session: Optional[Session] = None
                             ) -> List[ProjectInfluencer]:
        """获取创建时间落在 [start, end] 区间内的结算记录。"""
        def _query(sess):
            return self._base_query(sess).filter(
                ProjectInfluencer.created_at >= _day_start(start),
                ProjectInfluencer.created_at <= _day_end(end)
            ).order_by(ProjectInfluencer.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def find_paid_between(self, start: date, end: date,
                          session: Optional[Session] = None
                          ) -> List[ProjectInfluencer]:
        """获取实际结算日期落在 [start, end] 区间内的记录。"""
        def _query(sess):
            return self._base_query(sess).filter(
                ProjectInfluencer.payment_date >= start,
                ProjectInfluencer.payment_date <= end
            ).order_by(ProjectInfluencer.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class TransactionRepository(BaseCRUD):
    """收支流水仓库。

    金额始终为非负整数，正负由 type（REVENUE / EXPENSE）决定。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def find_between(self, start: date, end: date,
                     tx_type: Optional[str] = None,
                     session: Optional[Session] = None
                     ) -> List[Transaction]:
        """获取日期落在 [start, end] 区间内的流水。

        Args:
            start: 起始日期（含）。
            end: 结束日期（含）。
            tx_type: REVENUE / EXPENSE（可选）。

        Returns:
            流水列表（按日期倒序），预加载客户与项目。
        """
        def _query(sess):
            query = sess.query(Transaction).options(
                joinedload(Transaction.client),
                joinedload(Transaction.project),
            ).filter(Transaction.date >= start, Transaction.date <= end)
            if tx_type:
                query = query.filter(Transaction.type == tx_type)
            return query.order_by(
                Transaction.date.desc(), Transaction.id.desc()
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def sum_by_type(self, start: date, end: date,
                    session: Optional[Session] = None) -> Dict[str, int]:
        """按类型汇总区间内的金额。

        Returns:
            ``{"REVENUE": int, "EXPENSE": int}``，无数据的类型为 0。
        """
        def _query(sess):
            rows = sess.query(
                Transaction.type, func.coalesce(func.sum(Transaction.amount), 0)
            ).filter(
                Transaction.date >= start, Transaction.date <= end
            ).group_by(Transaction.type).all()
            totals = {"REVENUE": 0, "EXPENSE": 0}
            for tx_type, total in rows:
                totals[tx_type] = int(total or 0)
            return totals

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def find_unpaid_revenue(self, project_ids: Optional[Iterable[int]] = None,
                            session: Optional[Session] = None
                            ) -> List[Transaction]:
        """获取未收款（payment_status 非 COMPLETED）的收入流水。

        Args:
            project_ids: 仅限这些项目（可选）。
        """
        ids = list(project_ids) if project_ids is not None else None

        def _query(sess):
            query = sess.query(Transaction).options(
                joinedload(Transaction.client),
                joinedload(Transaction.project),
            ).filter(
                Transaction.type == "REVENUE",
                Transaction.payment_status != "COMPLETED"
            )
            if ids is not None:
                if not ids:
                    return []
                query = query.filter(Transaction.project_id.in_(ids))
            return query.order_by(Transaction.date, Transaction.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def list_transactions(self, tx_type: Optional[str] = None,
                          limit: int = 100,
                          session: Optional[Session] = None
                          ) -> List[Transaction]:
        """获取最近的流水记录。"""
        def _query(sess):
            query = sess.query(Transaction).options(
                joinedload(Transaction.client),
                joinedload(Transaction.project),
            )
            if tx_type:
                query = query.filter(Transaction.type == tx_type)
            return query.order_by(
                Transaction.date.desc(), Transaction.id.desc()
            ).limit(limit).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class DocumentRepository(BaseCRUD):
    """文档仓库（报价单 / 税务发票 / 合同）。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def next_doc_number(self, prefix: str, issue_date: date,
                        session: Optional[Session] = None) -> str:
        """生成下一个文档编号。

        格式为 ``{PREFIX}-{YYYYMM}-{seq}``，seq 为当月同类文档数 + 1，
        补齐三位。

        Args:
            prefix: 编号前缀（EST / TAX / CON）。
            issue_date: 开具日期（决定 YYYYMM 部分）。

        Returns:
            文档编号，例如 ``EST-202401-003``。
        """
        stem = f"{prefix}-{issue_date.strftime('%Y%m')}"

        def _query(sess):
            count = sess.query(func.count(Document.id)).filter(
                Document.doc_number.like(f"{stem}-%")
            ).scalar() or 0
            return f"{stem}-{count + 1:03d}"

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def list_documents(self, doc_type: Optional[str] = None,
                       session: Optional[Session] = None) -> List[Document]:
        """获取文档列表（按开具日期倒序）。"""
        def _query(sess):
            query = sess.query(Document).options(
                joinedload(Document.client), joinedload(Document.project)
            )
            if doc_type:
                query = query.filter(Document.type == doc_type)
            return query.order_by(
                Document.issue_date.desc(), Document.id.desc()
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count_issued_between(self, doc_type: str, start: date, end: date,
                             session: Optional[Session] = None) -> int:
        """统计区间内开具的指定类型文档数。"""
        def _query(sess):
            return sess.query(Document).filter(
                Document.type == doc_type,
                Document.issue_date >= start,
                Document.issue_date <= end
            ).count()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class CalendarEventRepository(BaseCRUD):
    """日程仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def find_between(self, start: date, end: date,
                     event_type: Optional[str] = None,
                     session: Optional[Session] = None
                     ) -> List[CalendarEvent]:
        """获取日期落在 [start, end] 区间（按整天计）内的日程。

        Args:
            start: 起始日期（含）。
            end: 结束日期（含）。
            event_type: MEETING / DEADLINE / PAYMENT / OTHER（可选）。
        """
        def _query(sess):
            query = sess.query(CalendarEvent).options(
                joinedload(CalendarEvent.project)
            ).filter(
                CalendarEvent.date >= _day_start(start),
                CalendarEvent.date <= _day_end(end)
            )
            if event_type:
                query = query.filter(CalendarEvent.type == event_type)
            return query.order_by(CalendarEvent.date, CalendarEvent.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def unlink_settlement(self, project_influencer_id: int,
                          session: Optional[Session] = None) -> int:
        """解除日程与结算记录的关联（结算记录被删除前调用）。"""
        def _do(sess):
            updated = sess.query(CalendarEvent).filter(
                CalendarEvent.project_influencer_id == project_influencer_id
            ).update({CalendarEvent.project_influencer_id: None},
                     synchronize_session=False)
            if updated:
                logger.debug(
                    f"Unlinked {updated} calendar event(s) from settlement "
                    f"{project_influencer_id}"
                )
            return updated

        if session:
            return _do(session)

        with self._get_session() as sess:
            updated = _do(sess)
            sess.commit()
            return updated
