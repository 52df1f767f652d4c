"""数据库管理器 —— 统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库，
提供两套 API：

1. **子仓库访问**（细粒度）：
   通过 ``db.clients``、``db.settlements`` 等属性直接访问子仓库，
   返回 ORM 对象，适合需要精细控制（如事务组合）的场景。

2. **便捷方法**（粗粒度）：
   提供扁平化的方法（如 ``create_client()``、``list_projects()``），
   返回字典/基本类型，适合上层业务代码和 API 调用。
"""
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from .business_repos import (
    CalendarEventRepository, DocumentRepository,
    SettlementRepository, TransactionRepository
)
from .connection import DatabaseConnection
from .entity_repos import (
    ClientRepository, InfluencerRepository, ProjectRepository, UserRepository
)
from .models import (
    CalendarEvent, Client, Document, Influencer, Project, Transaction
)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def client_to_dict(client: Client) -> Dict[str, Any]:
    return {
        "id": client.id,
        "name": client.name,
        "contact_name": client.contact_name,
        "phone": client.phone,
        "email": client.email,
        "business_number": client.business_number,
        "address": client.address,
        "industry": client.industry,
        "status": client.status,
        "is_fixed_vendor": bool(client.is_fixed_vendor),
        "monthly_fee": client.monthly_fee,
        "memo": client.memo,
        "created_at": _iso(client.created_at),
    }


def influencer_to_dict(influencer: Influencer) -> Dict[str, Any]:
    return {
        "id": influencer.id,
        "name": influencer.name,
        "phone": influencer.phone,
        "instagram_id": influencer.instagram_id,
        "youtube_channel": influencer.youtube_channel,
        "tiktok_id": influencer.tiktok_id,
        "follower_count": influencer.follower_count,
        "categories": influencer.categories,
        "bank_name": influencer.bank_name,
        "bank_account": influencer.bank_account,
        "account_holder": influencer.account_holder,
        "price_range": influencer.price_range,
        "memo": influencer.memo,
    }


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "client_id": project.client_id,
        "client_name": project.client.name if project.client else None,
        "manager_id": project.manager_id,
        "status": project.status,
        "start_date": _iso(project.start_date),
        "end_date": _iso(project.end_date),
        "contract_amount": project.contract_amount or 0,
        "platforms": project.platforms.split(",") if project.platforms else [],
        "content_types": (
            project.content_types.split(",") if project.content_types else []
        ),
        "memo": project.memo,
    }


def transaction_to_dict(tx: Transaction) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "date": _iso(tx.date),
        "type": tx.type,
        "category": tx.category,
        "amount": tx.amount,
        "payment_status": tx.payment_status,
        "client_id": tx.client_id,
        "project_id": tx.project_id,
        "influencer_id": tx.influencer_id,
        "memo": tx.memo,
    }


def document_to_dict(doc: Document) -> Dict[str, Any]:
    return {
        "id": doc.id,
        "type": doc.type,
        "doc_number": doc.doc_number,
        "client_id": doc.client_id,
        "project_id": doc.project_id,
        "amount": doc.amount,
        "status": doc.status,
        "issue_date": _iso(doc.issue_date),
        "file_url": doc.file_url,
        "memo": doc.memo,
    }


def calendar_event_to_dict(event: CalendarEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "title": event.title,
        "date": _iso(event.date),
        "type": event.type,
        "color": event.color,
        "memo": event.memo,
        "project_id": event.project_id,
        "project_influencer_id": event.project_influencer_id,
    }


class DatabaseManager:
    """数据库管理器 —— 统一门面。

    组合了所有子仓库，提供统一的数据库访问接口。

    Attributes:
        conn: 数据库连接管理器。
        users: 用户仓库。
        clients: 客户仓库。
        projects: 项目仓库。
        influencers: 网红仓库。
        settlements: 网红结算仓库。
        transactions: 收支流水仓库。
        documents: 文档仓库。
        calendar: 日程仓库。

    Example::

        db = DatabaseManager("sqlite:///data/agency.db")
        db.create_tables()

        # 通过子仓库访问（返回 ORM 对象）
        rows = db.settlements.find_by_project(project_id)

        # 通过便捷方法访问（返回字典）
        clients = db.list_clients(status="ACTIVE")
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url)

        # 实体仓库
        self.users = UserRepository(self.conn)
        self.clients = ClientRepository(self.conn)
        self.projects = ProjectRepository(self.conn)
        self.influencers = InfluencerRepository(self.conn)

        # 业务记录仓库
        self.settlements = SettlementRepository(self.conn)
        self.transactions = TransactionRepository(self.conn)
        self.documents = DocumentRepository(self.conn)
        self.calendar = CalendarEventRepository(self.conn)

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """事务上下文，块内写操作全部提交或全部回滚。"""
        with self.conn.transaction() as session:
            yield session

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def execute_raw_sql(self, sql: str,
                        params: Optional[dict] = None) -> Any:
        """执行原始 SQL 语句。

        注意：应优先使用 ORM 方法，仅在必要时使用原始 SQL。
        """
        return self.conn.execute_raw_sql(sql, params)

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()

    # ================================================================
    # 客户 / 网红
    # ================================================================

    def create_client(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """创建客户。

        Args:
            values: 字段值，键名与 Client 模型字段一致。

        Returns:
            新客户信息字典。
        """
        return client_to_dict(self.clients.create(Client, **values))

    def update_client(self, client_id: int,
                      values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """更新客户，不存在返回 None。"""
        client = self.clients.update_by_id(Client, client_id, **values)
        return client_to_dict(client) if client else None

    def list_clients(self, status: Optional[str] = None
                     ) -> List[Dict[str, Any]]:
        """获取客户列表。"""
        return [client_to_dict(c) for c in self.clients.list_clients(status)]

    def create_influencer(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """创建网红。"""
        return influencer_to_dict(
            self.influencers.create(Influencer, **values)
        )

    def update_influencer(self, influencer_id: int, values: Dict[str, Any]
                          ) -> Optional[Dict[str, Any]]:
        """更新网红，不存在返回 None。"""
        influencer = self.influencers.update_by_id(
            Influencer, influencer_id, **values
        )
        return influencer_to_dict(influencer) if influencer else None

    def list_influencers(self, keyword: Optional[str] = None
                         ) -> List[Dict[str, Any]]:
        """获取网红列表，可按关键词搜索。"""
        if keyword:
            rows = self.influencers.search(keyword)
        else:
            rows = self.influencers.get_all(
                Influencer, order_by=Influencer.id
            )
        return [influencer_to_dict(i) for i in rows]

    # ================================================================
    # 项目
    # ================================================================

    def create_project(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """创建项目。"""
        project = self.projects.create(Project, **values)
        return self.get_project(project.id)

    def get_project(self, project_id: int) -> Optional[Dict[str, Any]]:
        """获取项目信息（含客户名称），不存在返回 None。"""
        project = self.projects.get_with_client(project_id)
        return project_to_dict(project) if project else None

    def update_project(self, project_id: int, values: Dict[str, Any]
                       ) -> Optional[Dict[str, Any]]:
        """更新项目，不存在返回 None。"""
        project = self.projects.update_by_id(Project, project_id, **values)
        return self.get_project(project_id) if project else None

    def list_projects(self, status: Optional[str] = None,
                      client_id: Optional[int] = None
                      ) -> List[Dict[str, Any]]:
        """获取项目列表。"""
        return [
            project_to_dict(p)
            for p in self.projects.list_projects(status, client_id)
        ]

    # ================================================================
    # 流水 / 文档 / 日程
    # ================================================================

    def create_transaction(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """创建收支流水。"""
        return transaction_to_dict(
            self.transactions.create(Transaction, **values)
        )

    def update_transaction(self, tx_id: int, values: Dict[str, Any]
                           ) -> Optional[Dict[str, Any]]:
        """原地更新收支流水（金额修正），不存在返回 None。"""
        tx = self.transactions.update_by_id(Transaction, tx_id, **values)
        return transaction_to_dict(tx) if tx else None

    def list_transactions(self, tx_type: Optional[str] = None,
                          start: Optional[date] = None,
                          end: Optional[date] = None
                          ) -> List[Dict[str, Any]]:
        """获取流水列表；给出 start/end 时按日期区间过滤。"""
        if start and end:
            rows = self.transactions.find_between(start, end, tx_type)
        else:
            rows = self.transactions.list_transactions(tx_type)
        return [transaction_to_dict(t) for t in rows]

    def create_document(self, values: Dict[str, Any],
                        prefix: str) -> Dict[str, Any]:
        """创建文档并生成编号。

        编号生成与插入在同一个事务内完成。

        Args:
            values: 字段值（type、amount 等）。
            prefix: 文档编号前缀（EST / TAX / CON）。

        Returns:
            新文档信息字典（含 doc_number）。
        """
        issue_date = values.get("issue_date") or date.today()
        with self.transaction() as session:
            doc_number = self.documents.next_doc_number(
                prefix, issue_date, session=session
            )
            doc = self.documents.create(
                Document, session=session,
                **{**values, "issue_date": issue_date,
                   "doc_number": doc_number}
            )
            return document_to_dict(doc)

    def list_documents(self, doc_type: Optional[str] = None
                       ) -> List[Dict[str, Any]]:
        """获取文档列表。"""
        return [
            document_to_dict(d) for d in self.documents.list_documents(doc_type)
        ]

    def create_calendar_event(self, values: Dict[str, Any]
                              ) -> Dict[str, Any]:
        """创建日程。"""
        return calendar_event_to_dict(
            self.calendar.create(CalendarEvent, **values)
        )

    def list_calendar_events(self, start: date, end: date,
                             event_type: Optional[str] = None
                             ) -> List[Dict[str, Any]]:
        """获取区间内的日程。"""
        return [
            calendar_event_to_dict(e)
            for e in self.calendar.find_between(start, end, event_type)
        ]

    def get_period_totals(self, start: date, end: date) -> Dict[str, int]:
        """区间内收入、支出与利润。"""
        totals = self.transactions.sum_by_type(start, end)
        revenue = totals.get("REVENUE", 0)
        expense = totals.get("EXPENSE", 0)
        return {"revenue": revenue, "expense": expense,
                "profit": revenue - expense}
