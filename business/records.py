"""基础记录维护：客户、网红、项目、流水、文档、日程

请求数据先经 pydantic 模型校验，引用的客户/项目/网红必须存在，
然后再交给 DatabaseManager 写入。返回值均为可直接序列化的字典。
"""
from datetime import date
from typing import Any, Dict, List, Optional

from loguru import logger

from business.errors import NotFoundError, ValidationError
from business.schemas import (
    CalendarEventCreate, ClientCreate, ClientUpdate, DocumentCreate,
    InfluencerCreate, InfluencerUpdate, ProjectCreate, ProjectUpdate,
    TransactionCreate, TransactionUpdate, parse_payload,
)
from config.business_config import BusinessConfig, business_config
from database.models import Client, Influencer, Project, ProjectInfluencer


class RecordService:
    """基础记录的创建、更新与查询

    Args:
        db: DatabaseManager
        config: 业务配置（文档编号前缀）
    """

    def __init__(self, db, config: Optional[BusinessConfig] = None):
        self.db = db
        self.config = config or business_config

    def _require(self, repo, model, entity: str, record_id: Optional[int]):
        if record_id is not None and repo.get_by_id(model, record_id) is None:
            raise NotFoundError(entity, [record_id])

    def _check_links(self, values: Dict[str, Any]) -> None:
        self._require(self.db.clients, Client, "Client", values.get("client_id"))
        self._require(self.db.projects, Project, "Project", values.get("project_id"))
        self._require(self.db.influencers, Influencer, "Influencer",
                      values.get("influencer_id"))

    # ========== 客户 ==========

    def create_client(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(ClientCreate, data).model_dump()
        client = self.db.create_client(values)
        logger.info(f"Client created: {client['id']} {client['name']}")
        return client

    def update_client(self, client_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(ClientUpdate, data).model_dump(exclude_unset=True)
        client = self.db.update_client(client_id, values)
        if client is None:
            raise NotFoundError("Client", [client_id])
        return client

    def list_clients(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.db.list_clients(status)

    # ========== 网红 ==========

    def create_influencer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(InfluencerCreate, data).model_dump()
        influencer = self.db.create_influencer(values)
        logger.info(f"Influencer created: {influencer['id']} {influencer['name']}")
        return influencer

    def update_influencer(self, influencer_id: int,
                          data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(InfluencerUpdate, data).model_dump(exclude_unset=True)
        influencer = self.db.update_influencer(influencer_id, values)
        if influencer is None:
            raise NotFoundError("Influencer", [influencer_id])
        return influencer

    def list_influencers(self, keyword: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.db.list_influencers(keyword)

    # ========== 项目 ==========

    def create_project(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(ProjectCreate, data).model_dump()
        self._check_links(values)
        project = self.db.create_project(values)
        logger.info(f"Project created: {project['id']} {project['name']}")
        return project

    def get_project(self, project_id: int) -> Dict[str, Any]:
        project = self.db.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", [project_id])
        return project

    def update_project(self, project_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(ProjectUpdate, data).model_dump(exclude_unset=True)
        self._check_links(values)
        project = self.db.update_project(project_id, values)
        if project is None:
            raise NotFoundError("Project", [project_id])
        return project

    def list_projects(self, status: Optional[str] = None,
                      client_id: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.db.list_projects(status, client_id)

    # ========== 流水 ==========

    def create_transaction(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(TransactionCreate, data).model_dump()
        self._check_links(values)
        return self.db.create_transaction(values)

    def update_transaction(self, tx_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """原地修正流水（金额、分类、收款状态等）"""
        values = parse_payload(TransactionUpdate, data).model_dump(exclude_unset=True)
        tx = self.db.update_transaction(tx_id, values)
        if tx is None:
            raise NotFoundError("Transaction", [tx_id])
        return tx

    def list_transactions(self, tx_type: Optional[str] = None,
                          start: Optional[date] = None,
                          end: Optional[date] = None) -> List[Dict[str, Any]]:
        if (start is None) != (end is None):
            raise ValidationError("start and end must be given together",
                                  {"start": "required with end",
                                   "end": "required with start"})
        if start and end and start > end:
            raise ValidationError("start must not be after end",
                                  {"start": "after end"})
        return self.db.list_transactions(tx_type, start, end)

    # ========== 文档 ==========

    def create_document(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """创建文档，编号形如 ``TAX-202401-001``"""
        values = parse_payload(DocumentCreate, data).model_dump()
        self._check_links(values)
        prefix = self.config.get_document_prefixes()[values["type"]]
        document = self.db.create_document(values, prefix)
        logger.info(f"Document issued: {document['doc_number']}")
        return document

    def list_documents(self, doc_type: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.db.list_documents(doc_type)

    # ========== 日程 ==========

    def create_calendar_event(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = parse_payload(CalendarEventCreate, data).model_dump()
        self._check_links(values)
        self._require(self.db.settlements, ProjectInfluencer, "Settlement",
                      values.get("project_influencer_id"))
        return self.db.create_calendar_event(values)

    def list_calendar_events(self, start: date, end: date,
                             event_type: Optional[str] = None
                             ) -> List[Dict[str, Any]]:
        return self.db.list_calendar_events(start, end, event_type)
