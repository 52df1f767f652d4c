"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 用户、客户、网红等基础实体
- 项目、项目-网红合作（结算）等业务实体
- 收支流水、文档、日程等辅助数据
"""
from typing import Any, Dict, List, Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime,
    ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime, date

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 允许使用旧式类型注解
Base.__allow_unmapped__ = True


class User(Base):
    """系统用户表模型（项目负责人）。

    Attributes:
        id: 主键，自增整数。
        name: 姓名，必填。
        email: 邮箱，唯一。
        role: 角色：ADMIN / MEMBER，默认 MEMBER。
        created_at: 创建时间。
    """
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(50), nullable=False)
    email: Optional[str] = Column(String(200), unique=True)
    role: str = Column(String(20), default="MEMBER")
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    projects: List["Project"] = relationship("Project", back_populates="manager")


class Client(Base):
    """客户（广告主公司）表模型。

    Attributes:
        id: 主键，自增整数。
        name: 公司名称，必填。
        contact_name: 联系人姓名，必填。
        phone: 联系电话，必填。
        email / business_number / address / industry: 可选信息。
        status: 客户状态：ACTIVE / DORMANT / TERMINATED，默认 ACTIVE。
        is_fixed_vendor: 是否为固定月费客户。
        monthly_fee: 固定月费金额（整数货币单位）。
        memo: 备注。
        created_at / updated_at: 时间戳。

    Relationships:
        projects: 该客户的项目列表。
        documents: 该客户的文档列表。
        transactions: 关联该客户的收支流水列表。
    """
    __tablename__ = "clients"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(100), nullable=False)
    contact_name: str = Column(String(50), nullable=False)
    phone: str = Column(String(30), nullable=False)
    email: Optional[str] = Column(String(200))
    business_number: Optional[str] = Column(String(30))
    address: Optional[str] = Column(String(300))
    industry: Optional[str] = Column(String(50))
    status: str = Column(String(20), default="ACTIVE")  # ACTIVE / DORMANT / TERMINATED
    is_fixed_vendor: bool = Column(Boolean, default=False)
    monthly_fee: Optional[int] = Column(Integer)
    memo: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    projects: List["Project"] = relationship("Project", back_populates="client")
    documents: List["Document"] = relationship("Document", back_populates="client")
    transactions: List["Transaction"] = relationship("Transaction", back_populates="client")


class Project(Base):
    """项目（营销活动）表模型。

    Attributes:
        id: 主键，自增整数。
        name: 项目名称，必填。
        client_id: 所属客户ID，必填。
        manager_id: 负责人ID，可选。
        status: QUOTING / IN_PROGRESS / COMPLETED / CANCELLED，默认 QUOTING。
        start_date / end_date: 起止日期。
        contract_amount: 合同金额（整数货币单位），默认0。
        platforms: 投放平台标签，逗号拼接。
        content_types: 内容类型标签，逗号拼接。
        memo: 备注。

    Relationships:
        client: 所属客户。
        manager: 负责人。
        project_influencers: 该项目的网红合作（结算）记录。
        documents / transactions / calendar_events: 关联数据。
    """
    __tablename__ = "projects"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(200), nullable=False)
    client_id: int = Column(Integer, ForeignKey("clients.id"), nullable=False)
    manager_id: Optional[int] = Column(Integer, ForeignKey("users.id"))
    status: str = Column(String(20), default="QUOTING")
    start_date: Optional[date] = Column(Date)
    end_date: Optional[date] = Column(Date)
    contract_amount: int = Column(Integer, default=0)
    platforms: Optional[str] = Column(String(200))
    content_types: Optional[str] = Column(String(200))
    memo: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client: "Client" = relationship("Client", back_populates="projects")
    manager: Optional["User"] = relationship("User", back_populates="projects")
    project_influencers: List["ProjectInfluencer"] = relationship(
        "ProjectInfluencer", back_populates="project"
    )
    documents: List["Document"] = relationship("Document", back_populates="project")
    transactions: List["Transaction"] = relationship("Transaction", back_populates="project")
    calendar_events: List["CalendarEvent"] = relationship("CalendarEvent", back_populates="project")


class Influencer(Base):
    """网红（创作者）表模型。

    Attributes:
        id: 主键，自增整数。
        name: 姓名，必填。
        phone: 联系电话。
        instagram_id / youtube_channel / tiktok_id: 社交账号，可选。
        follower_count: 粉丝数。
        categories: 内容分类标签。
        bank_name / bank_account / account_holder: 收款信息。
        price_range: 报价区间（自由文本）。
        memo: 备注。
    """
    __tablename__ = "influencers"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(100), nullable=False)
    phone: Optional[str] = Column(String(30))
    instagram_id: Optional[str] = Column(String(100))
    youtube_channel: Optional[str] = Column(String(200))
    tiktok_id: Optional[str] = Column(String(100))
    follower_count: Optional[int] = Column(Integer)
    categories: Optional[str] = Column(String(200))
    bank_name: Optional[str] = Column(String(50))
    bank_account: Optional[str] = Column(String(50))
    account_holder: Optional[str] = Column(String(50))
    price_range: Optional[str] = Column(String(100))
    memo: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    project_influencers: List["ProjectInfluencer"] = relationship(
        "ProjectInfluencer", back_populates="influencer"
    )


class ProjectInfluencer(Base):
    """项目-网红合作表模型（结算记录，核心业务表）。

    每个 (project_id, influencer_id) 组合至多一条记录，
    由唯一约束保证，重复提交只会更新不会新增。

    Attributes:
        id: 主键，自增整数。
        project_id: 项目ID，必填。
        influencer_id: 网红ID，必填。
        fee: 合作费用（整数货币单位），默认0。
        payment_status: 结算状态。历史数据中可能是 PENDING / REQUESTED 等
            旧写法，读取时统一通过 normalize_status 归一化。
        payment_due_date: 结算截止日期。
        payment_date: 实际结算日期。
        shooting_date / draft_delivery_date / upload_date: 制作节点日期。
        created_at / updated_at: 时间戳。
    """
    __tablename__ = "project_influencers"
    __table_args__ = (
        UniqueConstraint("project_id", "influencer_id", name="uq_project_influencer"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    project_id: int = Column(Integer, ForeignKey("projects.id"), nullable=False)
    influencer_id: int = Column(Integer, ForeignKey("influencers.id"), nullable=False)
    fee: int = Column(Integer, default=0)
    payment_status: str = Column(String(20), default="pending")
    payment_due_date: Optional[date] = Column(Date)
    payment_date: Optional[date] = Column(Date)
    shooting_date: Optional[date] = Column(Date)
    draft_delivery_date: Optional[date] = Column(Date)
    upload_date: Optional[date] = Column(Date)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project: "Project" = relationship("Project", back_populates="project_influencers")
    influencer: "Influencer" = relationship("Influencer", back_populates="project_influencers")


class Transaction(Base):
    """收支流水表模型。

    金额始终为非负整数，正负由 type 决定（REVENUE 收入 / EXPENSE 支出）。
    修正金额时原地更新，不做软删除。

    Attributes:
        id: 主键，自增整数。
        date: 发生日期，必填。
        type: REVENUE / EXPENSE。
        category: 分类标签（自由文本，如 INFLUENCER_FEE）。
        amount: 金额（非负整数）。
        payment_status: PENDING / COMPLETED 等，默认 PENDING。
        client_id / project_id / influencer_id: 可选关联。
        memo: 备注。
    """
    __tablename__ = "transactions"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    date: date = Column(Date, nullable=False)
    type: str = Column(String(20), nullable=False)  # REVENUE / EXPENSE
    category: str = Column(String(50), nullable=False)
    amount: int = Column(Integer, nullable=False)
    payment_status: str = Column(String(20), default="PENDING")
    client_id: Optional[int] = Column(Integer, ForeignKey("clients.id"))
    project_id: Optional[int] = Column(Integer, ForeignKey("projects.id"))
    influencer_id: Optional[int] = Column(Integer, ForeignKey("influencers.id"))
    memo: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    client: Optional["Client"] = relationship("Client", back_populates="transactions")
    project: Optional["Project"] = relationship("Project", back_populates="transactions")
    influencer: Optional["Influencer"] = relationship("Influencer")


class Document(Base):
    """文档表模型（报价单、税务发票、合同）。

    Attributes:
        id: 主键，自增整数。
        type: QUOTE / TAX_INVOICE / CONTRACT。
        doc_number: 文档编号，格式 ``{PREFIX}-{YYYYMM}-{seq}``，唯一。
        client_id / project_id: 可选关联。
        amount: 金额。
        status: 文档状态，默认 ISSUED。
        issue_date: 开具日期。
        file_url: 附件地址。
        memo: 备注。
    """
    __tablename__ = "documents"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    type: str = Column(String(20), nullable=False)
    doc_number: str = Column(String(50), nullable=False, unique=True)
    client_id: Optional[int] = Column(Integer, ForeignKey("clients.id"))
    project_id: Optional[int] = Column(Integer, ForeignKey("projects.id"))
    amount: int = Column(Integer, default=0)
    status: str = Column(String(20), default="ISSUED")
    issue_date: date = Column(Date, default=date.today)
    file_url: Optional[str] = Column(String(500))
    memo: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    client: Optional["Client"] = relationship("Client", back_populates="documents")
    project: Optional["Project"] = relationship("Project", back_populates="documents")


class CalendarEvent(Base):
    """日程表模型。

    记录项目截止日、结算截止日、会议等事件，
    google_event_id 用于与外部日历双向同步时的对账。

    Attributes:
        id: 主键，自增整数。
        title: 标题，必填。
        date: 日期时间，必填。
        type: MEETING / DEADLINE / PAYMENT / OTHER，默认 OTHER。
        color: 显示颜色。
        memo: 备注。
        project_id / project_influencer_id / user_id: 可选关联。
        google_event_id: 外部日历事件ID。
        extra_data: JSON 扩展字段。
    """
    __tablename__ = "calendar_events"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    title: str = Column(String(200), nullable=False)
    date: datetime = Column(DateTime, nullable=False)
    type: str = Column(String(20), default="OTHER")
    color: Optional[str] = Column(String(20))
    memo: Optional[str] = Column(Text)
    project_id: Optional[int] = Column(Integer, ForeignKey("projects.id"))
    project_influencer_id: Optional[int] = Column(
        Integer, ForeignKey("project_influencers.id", ondelete="SET NULL")
    )
    user_id: Optional[int] = Column(Integer, ForeignKey("users.id"))
    google_event_id: Optional[str] = Column(String(200))
    extra_data: Dict[str, Any] = Column(JSON, default={})
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    project: Optional["Project"] = relationship("Project", back_populates="calendar_events")
