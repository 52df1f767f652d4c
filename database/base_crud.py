"""通用 CRUD 能力。

各仓库继承 BaseCRUD 获得按模型的通用增删改查方法，
所有方法都接受可选的外部 session，便于在同一事务中组合调用：
传入 session 时只 flush 不提交，由调用方控制提交；
不传时自动创建会话并提交。
"""
from typing import Any, Dict, List, Optional, Type

from sqlalchemy.orm import Session

from .connection import DatabaseConnection


class BaseCRUD:
    """通用 CRUD 基类。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        return self.conn.get_session()

    def create(self, model: Type, session: Optional[Session] = None,
               **values: Any) -> Any:
        """创建一条记录。

        Args:
            model: ORM 模型类。
            session: 外部会话（可选）。
            **values: 字段值。

        Returns:
            新建的 ORM 对象（已分配主键）。
        """
        def _do(sess):
            obj = model(**values)
            sess.add(obj)
            sess.flush()
            sess.refresh(obj)
            return obj

        if session:
            return _do(session)

        with self._get_session() as sess:
            obj = _do(sess)
            sess.commit()
            return obj

    def get_by_id(self, model: Type, record_id: int,
                  session: Optional[Session] = None) -> Optional[Any]:
        """按主键获取记录，不存在返回 None。"""
        if session:
            return session.get(model, record_id)

        with self._get_session() as sess:
            return sess.get(model, record_id)

    def get_all(self, model: Type,
                filters: Optional[Dict[str, Any]] = None,
                order_by: Optional[Any] = None,
                session: Optional[Session] = None) -> List[Any]:
        """获取全部记录（支持等值过滤）。

        Args:
            model: ORM 模型类。
            filters: 字段名 → 值 的等值过滤条件。
            order_by: 排序表达式（可选）。
            session: 外部会话（可选）。

        Returns:
            ORM 对象列表。
        """
        def _query(sess):
            query = sess.query(model)
            if filters:
                query = query.filter_by(**filters)
            if order_by is not None:
                query = query.order_by(order_by)
            return query.all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def update_by_id(self, model: Type, record_id: int,
                     session: Optional[Session] = None,
                     **values: Any) -> Optional[Any]:
        """按主键更新记录。

        Returns:
            更新后的 ORM 对象，记录不存在返回 None。
        """
        def _do(sess):
            obj = sess.get(model, record_id)
            if obj is None:
                return None
            for key, value in values.items():
                setattr(obj, key, value)
            sess.flush()
            sess.refresh(obj)
            return obj

        if session:
            return _do(session)

        with self._get_session() as sess:
            obj = _do(sess)
            sess.commit()
            return obj

    def delete_by_id(self, model: Type, record_id: int,
                     session: Optional[Session] = None) -> bool:
        """按主键删除记录。

        Returns:
            是否删除成功（记录不存在返回 False）。
        """
        def _do(sess):
            obj = sess.get(model, record_id)
            if obj is None:
                return False
            sess.delete(obj)
            sess.flush()
            return True

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

    def count(self, model: Type, filters: Optional[Dict[str, Any]] = None,
              session: Optional[Session] = None) -> int:
        """统计记录数。"""
        def _query(sess):
            query = sess.query(model)
            if filters:
                query = query.filter_by(**filters)
            return query.count()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

