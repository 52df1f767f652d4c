"""实体仓库 —— 基础实体的数据访问层。

管理系统中的基础实体（用户、客户、项目、网红），
这些实体被结算、流水、文档、日程等业务记录所引用。

每个仓库继承 BaseCRUD 获得通用能力，并添加领域特定的查询方法。
"""
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Client, Document, Influencer, Project, User


class UserRepository(BaseCRUD):
    """用户仓库（项目负责人）。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get_or_create(self, name: str, email: Optional[str] = None,
                      session: Optional[Session] = None) -> User:
        """获取或创建用户（按姓名匹配）。

        Args:
            name: 用户姓名。
            email: 邮箱（仅创建时使用）。
            session: 外部会话（可选）。

        Returns:
            User 对象。
        """
        def _do(sess):
            user = sess.query(User).filter(User.name == name).first()
            if not user:
                user = User(name=name, email=email)
                sess.add(user)
                sess.flush()
                sess.refresh(user)
            return user

        if session:
            return _do(session)

        with self._get_session() as sess:
            user = _do(sess)
            sess.commit()
            return user


class ClientRepository(BaseCRUD):
    """客户仓库。

    管理广告主公司信息，包括固定月费客户（fixed vendor）。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def search(self, keyword: str,
               session: Optional[Session] = None) -> List[Client]:
        """按公司名或联系人搜索客户。

        Args:
            keyword: 搜索关键词。

        Returns:
            匹配的客户列表。
        """
        def _query(sess):
            return sess.query(Client).filter(
                or_(
                    Client.name.contains(keyword),
                    Client.contact_name.contains(keyword)
                )
            ).order_by(Client.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def list_clients(self, status: Optional[str] = None,
                     session: Optional[Session] = None) -> List[Client]:
        """获取客户列表，可按状态过滤。"""
        filters = {"status": status} if status else None
        return self.get_all(
            Client, filters=filters, order_by=Client.id, session=session
        )

    def get_fixed_vendors(self,
                          session: Optional[Session] = None) -> List[Client]:
        """获取所有活跃的固定月费客户。"""
        return self.get_all(
            Client,
            filters={"is_fixed_vendor": True, "status": "ACTIVE"},
            order_by=Client.id,
            session=session
        )

    def count_created_between(self, start: date, end: date,
                              session: Optional[Session] = None) -> int:
        """统计区间内新增的客户数。"""
        def _query(sess):
            return sess.query(Client).filter(
                Client.created_at >= datetime.combine(start, time.min),
                Client.created_at <= datetime.combine(end, time.max)
            ).count()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class ProjectRepository(BaseCRUD):
    """项目仓库。

    项目状态流转：QUOTING → IN_PROGRESS → COMPLETED（或 CANCELLED）。
    查询结果默认预加载所属客户，便于会话关闭后读取客户名称。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def _base_query(self, sess):
        return sess.query(Project).options(joinedload(Project.client))

    def get_with_client(self, project_id: int,
                        session: Optional[Session] = None
                        ) -> Optional[Project]:
        """获取项目（含客户信息）。"""
        def _query(sess):
            return self._base_query(sess).filter(
                Project.id == project_id
            ).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def list_projects(self, status: Optional[str] = None,
                      client_id: Optional[int] = None,
                      session: Optional[Session] = None) -> List[Project]:
        """获取项目列表（按创建时间倒序）。

        Args:
            status: 项目状态过滤（可选）。
            client_id: 客户过滤（可选）。

        Returns:
            项目列表。
        """
        def _query(sess):
            query = self._base_query(sess)
            if status:
                query = query.filter(Project.status == status)
            if client_id:
                query = query.filter(Project.client_id == client_id)
            return query.order_by(Project.created_at.desc(),
                                  Project.id.desc()).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_ending_between(self, start: date, end: date,
                           statuses: Optional[List[str]] = None,
                           session: Optional[Session] = None
                           ) -> List[Project]:
        """获取结束日期落在 [start, end] 区间内的项目。

        Args:
            start: 起始日期（含）。
            end: 结束日期（含）。
            statuses: 项目状态过滤（可选）。
        """
        def _query(sess):
            query = self._base_query(sess).filter(
                Project.end_date >= start, Project.end_date <= end
            )
            if statuses:
                query = query.filter(Project.status.in_(statuses))
            return query.order_by(Project.end_date, Project.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_completed_ended_before(self, cutoff: date,
                                   session: Optional[Session] = None
                                   ) -> List[Project]:
        """获取已完成且结束日期不晚于 cutoff 的项目。"""
        def _query(sess):
            return self._base_query(sess).filter(
                Project.status == "COMPLETED",
                Project.end_date.isnot(None),
                Project.end_date <= cutoff
            ).order_by(Project.end_date, Project.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_completed_without_document(self, doc_type: str,
                                       ended_on_or_before: Optional[date] = None,
                                       session: Optional[Session] = None
                                       ) -> List[Project]:
        """获取已完成但尚未开具指定类型文档的项目。

        Args:
            doc_type: 文档类型（如 TAX_INVOICE）。
            ended_on_or_before: 仅返回结束日期不晚于该日期的项目（可选）。
        """
        def _query(sess):
            query = self._base_query(sess).filter(
                Project.status == "COMPLETED",
                ~Project.documents.any(Document.type == doc_type)
            )
            if ended_on_or_before is not None:
                query = query.filter(
                    Project.end_date.isnot(None),
                    Project.end_date <= ended_on_or_before
                )
            return query.order_by(Project.end_date, Project.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_completed_updated_between(self, start: date, end: date,
                                      session: Optional[Session] = None
                                      ) -> List[Project]:
        """获取在 [start, end] 区间内被标记为完成（按更新时间）的项目。"""
        def _query(sess):
            return self._base_query(sess).filter(
                Project.status == "COMPLETED",
                Project.updated_at >= datetime.combine(start, time.min),
                Project.updated_at <= datetime.combine(end, time.max)
            ).order_by(Project.updated_at, Project.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count_created_between(self, start: date, end: date,
                              session: Optional[Session] = None) -> int:
        """统计区间内新建的项目数。"""
        def _query(sess):
            return sess.query(Project).filter(
                Project.created_at >= datetime.combine(start, time.min),
                Project.created_at <= datetime.combine(end, time.max)
            ).count()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def count_by_status(self,
                        session: Optional[Session] = None) -> Dict[str, int]:
        """按状态统计项目数量。"""
        def _query(sess):
            counts: Dict[str, int] = {}
            for (status,) in sess.query(Project.status).all():
                counts[status] = counts.get(status, 0) + 1
            return counts

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class InfluencerRepository(BaseCRUD):
    """网红仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def search(self, keyword: str,
               session: Optional[Session] = None) -> List[Influencer]:
        """按姓名或社交账号搜索网红。"""
        def _query(sess):
            return sess.query(Influencer).filter(
                or_(
                    Influencer.name.contains(keyword),
                    Influencer.instagram_id.contains(keyword),
                    Influencer.youtube_channel.contains(keyword),
                    Influencer.tiktok_id.contains(keyword)
                )
            ).order_by(Influencer.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def find_by_ids(self, influencer_ids: Iterable[int],
                    session: Optional[Session] = None
                    ) -> Dict[int, Influencer]:
        """按 ID 批量查询网红。

        Returns:
            influencer_id → Influencer 映射，不存在的 ID 不出现在结果中。
        """
        ids = list(set(influencer_ids))

        def _query(sess):
            if not ids:
                return {}
            rows = sess.query(Influencer).filter(
                Influencer.id.in_(ids)
            ).all()
            return {i.id: i for i in rows}

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
