"""项目合作网红同步

把项目的合作网红列表整体替换为调用方给出的期望集合：
期望集合中的每一项按 (project_id, influencer_id) upsert，
现有但不在期望集合中的记录被删除。全部改动在同一个事务内完成，
任何一步失败都会整体回滚，调用方收到类型化异常。
"""
from typing import Any, Dict, List, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from business.errors import NotFoundError, TransactionFailedError, ValidationError
from business.schemas import CollaboratorInput, CollaboratorSyncRequest, parse_payload
from business.settlements import settlement_to_dict
from business.status import normalize_status
from database.models import Project


class CollaboratorSync:
    """合作网红同步器

    Args:
        db: DatabaseManager（需要 settlements / influencers 仓库与 transaction()）
    """

    def __init__(self, db):
        self.db = db

    def sync_payload(self, project_id: int, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """校验 ``{"collaborators": [...]}`` 请求体后同步"""
        request = parse_payload(CollaboratorSyncRequest, data)
        return self.sync(project_id, request.collaborators)

    def sync(self, project_id: int,
             desired: Sequence[CollaboratorInput]) -> List[Dict[str, Any]]:
        """同步项目的合作网红

        Args:
            project_id: 项目ID
            desired: 期望的合作网红列表

        Returns:
            同步后的结算记录列表（状态已归一化，附带网红信息）

        Raises:
            ValidationError: 期望列表中有重复的网红
            NotFoundError: 项目或网红不存在
            TransactionFailedError: 写入失败，所有改动已回滚
        """
        seen = set()
        duplicates = []
        for item in desired:
            if item.influencer_id in seen:
                duplicates.append(item.influencer_id)
            seen.add(item.influencer_id)
        if duplicates:
            raise ValidationError(
                f"Duplicate influencerId in collaborators: {duplicates}",
                {"collaborators": f"duplicate influencerId {duplicates}"}
            )

        if self.db.projects.get_by_id(Project, project_id) is None:
            raise NotFoundError("Project", [project_id])

        found = self.db.influencers.find_by_ids(seen)
        missing = sorted(i for i in seen if i not in found)
        if missing:
            raise NotFoundError("Influencer", missing)

        try:
            with self.db.transaction() as session:
                existing = self.db.settlements.find_by_project(
                    project_id, session=session
                )
                removed = [row.influencer_id for row in existing
                           if row.influencer_id not in seen]

                for item in desired:
                    self.db.settlements.upsert(
                        project_id, item.influencer_id,
                        {
                            "fee": item.fee,
                            "payment_status": normalize_status(
                                item.payment_status
                            ).value,
                            "payment_due_date": item.payment_due_date,
                            "payment_date": item.payment_date,
                        },
                        session=session,
                    )

                self.db.settlements.delete_for_influencers(
                    project_id, removed, session=session
                )
        except SQLAlchemyError as exc:
            logger.error(f"Collaborator sync failed for project {project_id}: {exc}")
            raise TransactionFailedError(
                f"Collaborator sync failed for project {project_id}"
            ) from exc

        logger.info(
            f"Project {project_id} collaborators synced: "
            f"{len(desired)} upserted, {len(removed)} removed"
        )
        return [
            settlement_to_dict(row)
            for row in self.db.settlements.find_by_project(project_id)
        ]
