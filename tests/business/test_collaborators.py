"""Collaborator sync tests: replace-set semantics, atomicity, idempotence."""
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from business.collaborators import CollaboratorSync
from business.errors import NotFoundError, TransactionFailedError, ValidationError
from business.schemas import CollaboratorInput


def _persisted(db, project_id):
    return {
        row.influencer_id: (row.fee, row.payment_status)
        for row in db.settlements.find_by_project(project_id)
    }


@pytest.fixture
def seeded(temp_db, make):
    """Project with existing collaborators A, B, C plus a spare influencer D."""
    project = make.project()
    people = {name: make.influencer(name) for name in ("A", "B", "C", "D")}
    for name in ("A", "B", "C"):
        make.settlement(project, people[name], fee=100000, payment_status="PENDING")
    return project, people


def _desired(people):
    return [
        CollaboratorInput(influencer_id=people["B"].id, fee=250000,
                          payment_status="REQUESTED"),
        CollaboratorInput(influencer_id=people["D"].id, fee=300000,
                          payment_due_date=date(2024, 2, 10)),
    ]


class TestReplaceSet:
    def test_persisted_set_matches_desired(self, temp_db, seeded):
        project, people = seeded

        result = CollaboratorSync(temp_db).sync(project.id, _desired(people))

        assert _persisted(temp_db, project.id) == {
            people["B"].id: (250000, "in_progress"),
            people["D"].id: (300000, "pending"),
        }
        assert {r["influencer"]["name"] for r in result} == {"B", "D"}
        assert {r["paymentStatus"] for r in result} == {"in_progress", "pending"}

    def test_existing_row_is_updated_in_place(self, temp_db, seeded):
        project, people = seeded
        before = {r.influencer_id: r.id for r in temp_db.settlements.find_by_project(project.id)}

        CollaboratorSync(temp_db).sync(project.id, _desired(people))

        after = {r.influencer_id: r.id for r in temp_db.settlements.find_by_project(project.id)}
        assert after[people["B"].id] == before[people["B"].id]

    def test_empty_desired_removes_everything(self, temp_db, seeded):
        project, _ = seeded
        assert CollaboratorSync(temp_db).sync(project.id, []) == []
        assert _persisted(temp_db, project.id) == {}

    def test_other_projects_untouched(self, temp_db, make, seeded):
        project, people = seeded
        other = make.project(name="다른 프로젝트")
        make.settlement(other, people["A"])

        CollaboratorSync(temp_db).sync(project.id, _desired(people))

        assert list(_persisted(temp_db, other.id)) == [people["A"].id]

    def test_sync_payload_accepts_camel_case(self, temp_db, seeded):
        project, people = seeded
        result = CollaboratorSync(temp_db).sync_payload(project.id, {
            "collaborators": [
                {"influencerId": people["C"].id, "fee": 90000, "paymentStatus": "completed",
                 "paymentDate": "2024-01-31"},
            ]
        })
        assert len(result) == 1
        assert result[0]["paymentDate"] == "2024-01-31"
        assert result[0]["paymentStatus"] == "completed"


class TestAtomicity:
    def test_failure_mid_transaction_keeps_original_set(self, temp_db, seeded, monkeypatch):
        project, people = seeded
        original = _persisted(temp_db, project.id)

        def _fail(*args, **kwargs):
            raise OperationalError("DELETE", {}, Exception("database is locked"))

        monkeypatch.setattr(temp_db.settlements, "delete_for_influencers", _fail)

        with pytest.raises(TransactionFailedError):
            CollaboratorSync(temp_db).sync(project.id, _desired(people))

        assert _persisted(temp_db, project.id) == original
        assert set(original) == {people["A"].id, people["B"].id, people["C"].id}


class TestIdempotence:
    def test_repeated_sync_is_stable(self, temp_db, seeded):
        project, people = seeded
        sync = CollaboratorSync(temp_db)

        sync.sync(project.id, _desired(people))
        first = _persisted(temp_db, project.id)
        sync.sync(project.id, _desired(people))
        second = _persisted(temp_db, project.id)

        assert first == second
        assert len(temp_db.settlements.find_by_project(project.id)) == 2


class TestRejectedInput:
    def test_duplicate_influencer(self, temp_db, seeded):
        project, people = seeded
        duplicate = [
            CollaboratorInput(influencer_id=people["B"].id, fee=1),
            CollaboratorInput(influencer_id=people["B"].id, fee=2),
        ]
        with pytest.raises(ValidationError):
            CollaboratorSync(temp_db).sync(project.id, duplicate)
        assert len(_persisted(temp_db, project.id)) == 3

    def test_missing_influencer(self, temp_db, seeded):
        project, _ = seeded
        with pytest.raises(NotFoundError) as exc_info:
            CollaboratorSync(temp_db).sync(
                project.id, [CollaboratorInput(influencer_id=9999, fee=1)]
            )
        assert exc_info.value.entity == "Influencer"
        assert exc_info.value.ids == [9999]
        assert len(_persisted(temp_db, project.id)) == 3

    def test_missing_project(self, temp_db, seeded):
        _, people = seeded
        with pytest.raises(NotFoundError) as exc_info:
            CollaboratorSync(temp_db).sync(9999, _desired(people))
        assert exc_info.value.entity == "Project"

    def test_payload_validation(self, temp_db, seeded):
        project, _ = seeded
        with pytest.raises(ValidationError) as exc_info:
            CollaboratorSync(temp_db).sync_payload(
                project.id, {"collaborators": [{"fee": -1}]}
            )
        assert "collaborators.0.influencerId" in exc_info.value.fields
