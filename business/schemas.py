"""请求数据校验模型

所有入站数据先经过这里的 pydantic 模型校验，失败时统一转换为
business.errors.ValidationError，并列出出错字段。
字段同时接受 snake_case 与 camelCase 写法。
"""
import datetime as dt
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ValidationError

T = TypeVar("T", bound=BaseModel)


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


def parse_payload(schema: Type[T], data: Any) -> T:
    """按 schema 校验数据

    Raises:
        ValidationError: 数据缺失或格式错误，fields 中列出出错字段
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object",
                              {"body": "expected object"})
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        fields: Dict[str, str] = {}
        for err in exc.errors():
            name = ".".join(str(part) for part in err["loc"]) or "body"
            fields[name] = err["msg"]
        raise ValidationError(
            f"Invalid fields: {', '.join(fields)}", fields
        ) from exc


def _reject_null(value: Any) -> Any:
    """更新时显式传 null 的必填列直接拒绝，未传的字段不经过这里"""
    if value is None:
        raise ValueError("must not be null")
    return value


# ========== 结算 ==========

class CollaboratorInput(_Schema):
    """项目合作网红（同步接口的单个条目）"""
    influencer_id: int = Field(gt=0)
    fee: int = Field(ge=0)
    payment_status: Optional[str] = "pending"
    payment_due_date: Optional[dt.date] = None
    payment_date: Optional[dt.date] = None


class CollaboratorSyncRequest(_Schema):
    collaborators: List[CollaboratorInput]


class SettlementUpdate(_Schema):
    """结算记录更新：状态总是被重写，结算日期为空时清除"""
    payment_status: Optional[str] = None
    payment_date: Optional[dt.date] = None


# ========== 基础实体 ==========

class ClientCreate(_Schema):
    name: str = Field(min_length=1)
    contact_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: Optional[str] = None
    business_number: Optional[str] = None
    address: Optional[str] = None
    industry: Optional[str] = None
    status: str = "ACTIVE"
    is_fixed_vendor: bool = False
    monthly_fee: Optional[int] = Field(default=None, ge=0)
    memo: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _check_status(cls, value: str) -> str:
        if value not in ("ACTIVE", "DORMANT", "TERMINATED"):
            raise ValueError("must be ACTIVE, DORMANT or TERMINATED")
        return value


class ClientUpdate(ClientCreate):
    name: Optional[str] = Field(default=None, min_length=1)
    contact_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = Field(default=None, min_length=1)
    status: Optional[str] = None
    is_fixed_vendor: Optional[bool] = None

    @field_validator("status")
    @classmethod
    def _check_status(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in ("ACTIVE", "DORMANT", "TERMINATED"):
            raise ValueError("must be ACTIVE, DORMANT or TERMINATED")
        return value

    @field_validator(
        "name", "contact_name", "phone", "status", "is_fixed_vendor"
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class InfluencerCreate(_Schema):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    instagram_id: Optional[str] = None
    youtube_channel: Optional[str] = None
    tiktok_id: Optional[str] = None
    follower_count: Optional[int] = Field(default=None, ge=0)
    categories: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    account_holder: Optional[str] = None
    price_range: Optional[str] = None
    memo: Optional[str] = None

    @field_validator("categories", mode="before")
    @classmethod
    def _join_categories(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return value


class InfluencerUpdate(InfluencerCreate):
    name: Optional[str] = Field(default=None, min_length=1)

    @field_validator("name")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)


PROJECT_STATUSES = ("QUOTING", "IN_PROGRESS", "COMPLETED", "CANCELLED")


class ProjectCreate(_Schema):
    name: str = Field(min_length=1)
    client_id: int = Field(gt=0)
    manager_id: Optional[int] = None
    status: str = "QUOTING"
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    contract_amount: int = Field(default=0, ge=0)
    platforms: Optional[str] = None
    content_types: Optional[str] = None
    memo: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _check_status(cls, value: str) -> str:
        if value not in PROJECT_STATUSES:
            raise ValueError(f"must be one of {', '.join(PROJECT_STATUSES)}")
        return value

    @field_validator("platforms", "content_types", mode="before")
    @classmethod
    def _join_tags(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return value


class ProjectUpdate(ProjectCreate):
    name: Optional[str] = Field(default=None, min_length=1)
    client_id: Optional[int] = Field(default=None, gt=0)
    status: Optional[str] = None
    contract_amount: Optional[int] = Field(default=None, ge=0)

    @field_validator("status")
    @classmethod
    def _check_status(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in PROJECT_STATUSES:
            raise ValueError(f"must be one of {', '.join(PROJECT_STATUSES)}")
        return value

    @field_validator(
        "name", "client_id", "status", "contract_amount"
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class TransactionCreate(_Schema):
    date: dt.date
    type: str
    category: str = Field(min_length=1)
    amount: int = Field(ge=0)
    payment_status: str = "PENDING"
    client_id: Optional[int] = None
    project_id: Optional[int] = None
    influencer_id: Optional[int] = None
    memo: Optional[str] = None

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        if value not in ("REVENUE", "EXPENSE"):
            raise ValueError("must be REVENUE or EXPENSE")
        return value


class TransactionUpdate(_Schema):
    date: Optional[dt.date] = None
    category: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[int] = Field(default=None, ge=0)
    payment_status: Optional[str] = None
    memo: Optional[str] = None

    @field_validator("date", "category", "amount")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class DocumentCreate(_Schema):
    type: str
    client_id: Optional[int] = None
    project_id: Optional[int] = None
    amount: int = Field(default=0, ge=0)
    status: str = "ISSUED"
    issue_date: Optional[dt.date] = None
    file_url: Optional[str] = None
    memo: Optional[str] = None

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        if value not in ("QUOTE", "TAX_INVOICE", "CONTRACT"):
            raise ValueError("must be QUOTE, TAX_INVOICE or CONTRACT")
        return value


class CalendarEventCreate(_Schema):
    title: str = Field(min_length=1)
    date: dt.datetime
    type: str = "OTHER"
    color: Optional[str] = None
    memo: Optional[str] = None
    project_id: Optional[int] = None
    project_influencer_id: Optional[int] = None

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        if value not in ("MEETING", "DEADLINE", "PAYMENT", "OTHER"):
            raise ValueError("must be MEETING, DEADLINE, PAYMENT or OTHER")
        return value
