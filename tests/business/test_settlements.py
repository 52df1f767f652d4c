"""Settlement aggregation and service tests."""
from datetime import date, datetime
from types import SimpleNamespace

import pytest

from business.errors import NotFoundError, ValidationError
from business.settlements import SettlementService, aggregate_settlements, parse_month
from business.status import PaymentStatus
from database.models import CalendarEvent


def _row(project_id, influencer_id, fee, status):
    return SimpleNamespace(project_id=project_id, influencer_id=influencer_id,
                           fee=fee, payment_status=status)


INFLUENCERS = {
    1: SimpleNamespace(id=1, name="X", instagram_id="x_insta"),
    2: SimpleNamespace(id=2, name="Y", instagram_id=None),
}
PROJECTS = {
    10: SimpleNamespace(id=10, name="봄 캠페인", client=SimpleNamespace(id=5, name="뷰티랩")),
    11: SimpleNamespace(id=11, name="여름 캠페인", client=None),
}


class TestAggregate:
    def test_two_collaborator_scenario(self):
        rows = [_row(10, 1, 500000, "PENDING"), _row(10, 2, 400000, "REQUESTED")]
        summary = aggregate_settlements(rows, INFLUENCERS, PROJECTS).to_dict()

        assert summary["statusTotals"]["pending"] == {"amount": 500000, "count": 1}
        assert summary["statusTotals"]["in_progress"] == {"amount": 400000, "count": 1}
        assert summary["statusTotals"]["completed"] == {"amount": 0, "count": 0}
        assert summary["projectTotals"] == [{
            "project": {"id": 10, "name": "봄 캠페인", "client": {"id": 5, "name": "뷰티랩"}},
            "totalFee": 900000,
            "influencers": 2,
        }]

    @pytest.mark.parametrize("rows", [
        [],
        [_row(10, 1, 0, None)],
        [_row(10, 1, 100, "completed"), _row(11, 1, 250, "COMPLETED"),
         _row(11, 2, None, "weird"), _row(99, 77, 300, "requested")],
    ])
    def test_totals_cover_every_row(self, rows):
        summary = aggregate_settlements(rows, INFLUENCERS, PROJECTS)
        totals = summary.status_totals.values()
        assert sum(t.amount for t in totals) == sum(r.fee or 0 for r in rows)
        assert sum(t.count for t in totals) == len(rows)
        assert set(summary.status_totals) == set(PaymentStatus)

    def test_unknown_references_are_skipped_in_groupings(self):
        rows = [_row(99, 77, 300, "pending"), _row(10, 1, 100, "pending")]
        summary = aggregate_settlements(rows, INFLUENCERS, PROJECTS)
        assert [e["influencer"]["id"] for e in summary.influencer_totals] == [1]
        assert [e["project"]["id"] for e in summary.project_totals] == [10]
        assert summary.status_totals[PaymentStatus.PENDING].amount == 400

    def test_groupings_sorted_desc_and_stable(self):
        rows = [
            _row(10, 1, 100, "pending"),
            _row(11, 2, 300, "pending"),
            _row(11, 1, 200, "pending"),
        ]
        summary = aggregate_settlements(rows, INFLUENCERS, PROJECTS)
        # X: 300 over 2 projects, Y: 300 over 1 project (tie keeps first seen)
        assert [(e["influencer"]["name"], e["totalFee"], e["projects"])
                for e in summary.influencer_totals] == [("X", 300, 2), ("Y", 300, 1)]
        assert [(e["project"]["id"], e["totalFee"]) for e in summary.project_totals] == [
            (11, 500), (10, 100)
        ]


class TestParseMonth:
    def test_valid_month(self):
        period = parse_month("2024-02")
        assert (period.start, period.end) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_empty_month(self):
        assert parse_month(None) is None
        assert parse_month("") is None

    @pytest.mark.parametrize("bad", ["2024-13", "202401", "Jan 2024"])
    def test_invalid_month(self, bad):
        with pytest.raises(ValidationError) as exc_info:
            parse_month(bad)
        assert "month" in exc_info.value.fields


class TestSettlementService:
    def test_list_with_status_filter(self, temp_db, make):
        project = make.project()
        make.settlement(project, make.influencer("X"), fee=500000, payment_status="PENDING")
        make.settlement(project, make.influencer("Y"), fee=400000, payment_status="REQUESTED")
        service = SettlementService(temp_db)

        everything = service.list_settlements()
        assert everything["summary"]["total"] == 900000
        assert everything["summary"]["inProgress"] == 400000
        assert {s["paymentStatus"] for s in everything["settlements"]} == {
            "pending", "in_progress"
        }

        filtered = service.list_settlements(status="in_progress")
        assert [s["influencer"]["name"] for s in filtered["settlements"]] == ["Y"]
        assert filtered["summary"]["count"] == 1
        assert service.list_settlements(status="all")["summary"]["count"] == 2

    def test_list_includes_project_client(self, temp_db, make):
        make.settlement(make.project(), make.influencer())
        item = SettlementService(temp_db).list_settlements()["settlements"][0]
        assert item["project"]["client"]["name"] == "뷰티랩"

    def test_summary_by_month(self, temp_db, make):
        project = make.project()
        make.settlement(project, make.influencer("X"), fee=500000,
                        payment_due_date=date(2024, 1, 20))
        make.settlement(project, make.influencer("Y"), fee=400000,
                        payment_due_date=date(2024, 2, 20))
        summary = SettlementService(temp_db).summary("2024-01").to_dict()
        assert summary["statusTotals"]["pending"] == {"amount": 500000, "count": 1}

    def test_update_normalizes_and_clears_date(self, temp_db, make):
        row = make.settlement(make.project(), make.influencer(),
                              payment_status="pending", payment_date=date(2024, 1, 3))
        service = SettlementService(temp_db)

        updated = service.update(row.id, {"paymentStatus": "COMPLETED"})

        assert updated["paymentStatus"] == "completed"
        assert updated["paymentDate"] is None
        assert temp_db.settlements.get_with_details(row.id).payment_status == "completed"

    def test_update_allows_backward_transition(self, temp_db, make):
        row = make.settlement(make.project(), make.influencer(), payment_status="completed")
        updated = SettlementService(temp_db).update(
            row.id, {"paymentStatus": "pending", "paymentDate": "2024-01-31"}
        )
        assert updated["paymentStatus"] == "pending"
        assert updated["paymentDate"] == "2024-01-31"

    def test_update_missing_raises_not_found(self, temp_db):
        with pytest.raises(NotFoundError) as exc_info:
            SettlementService(temp_db).update(404, {"paymentStatus": "completed"})
        assert exc_info.value.ids == [404]

    def test_update_rejects_bad_date(self, temp_db, make):
        row = make.settlement(make.project(), make.influencer())
        with pytest.raises(ValidationError) as exc_info:
            SettlementService(temp_db).update(row.id, {"paymentDate": "not-a-date"})
        assert "paymentDate" in exc_info.value.fields

    def test_delete_unlinks_calendar_events(self, temp_db, make):
        row = make.settlement(make.project(), make.influencer())
        event = temp_db.calendar.create(
            CalendarEvent, title="정산", date=datetime(2024, 1, 20, 9, 0), type="PAYMENT",
            project_influencer_id=row.id,
        )
        service = SettlementService(temp_db)

        service.delete(row.id)

        assert temp_db.settlements.get_with_details(row.id) is None
        assert temp_db.calendar.get_by_id(CalendarEvent, event.id).project_influencer_id is None
        with pytest.raises(NotFoundError):
            service.delete(row.id)
