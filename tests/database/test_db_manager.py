"""DatabaseManager facade tests (dict-returning helpers and transactions)."""
from datetime import date, datetime

import pytest

from database.models import Client


class TestTransactionScope:
    def test_commit_on_success(self, temp_db):
        with temp_db.transaction() as session:
            temp_db.clients.create(Client, session=session, name="A",
                                   contact_name="a", phone="1")
        assert temp_db.clients.count(Client) == 1

    def test_rollback_on_error(self, temp_db):
        with pytest.raises(RuntimeError):
            with temp_db.transaction() as session:
                temp_db.clients.create(Client, session=session, name="A",
                                       contact_name="a", phone="1")
                raise RuntimeError("boom")
        assert temp_db.clients.count(Client) == 0


class TestConvenienceMethods:
    def test_project_dict_includes_client_and_tags(self, temp_db, make):
        client = make.client("헬시푸드")
        project = temp_db.create_project({
            "name": "런칭", "client_id": client.id,
            "platforms": "INSTAGRAM,YOUTUBE", "end_date": date(2024, 2, 1),
        })
        assert project["client_name"] == "헬시푸드"
        assert project["platforms"] == ["INSTAGRAM", "YOUTUBE"]
        assert project["content_types"] == []
        assert project["end_date"] == "2024-02-01"

    def test_update_missing_returns_none(self, temp_db):
        assert temp_db.update_client(999, {"name": "x"}) is None
        assert temp_db.update_project(999, {"name": "x"}) is None
        assert temp_db.update_transaction(999, {"amount": 1}) is None

    def test_create_document_numbers_sequentially(self, temp_db):
        first = temp_db.create_document(
            {"type": "TAX_INVOICE", "amount": 1000, "issue_date": date(2024, 1, 5)}, "TAX")
        second = temp_db.create_document(
            {"type": "TAX_INVOICE", "amount": 2000, "issue_date": date(2024, 1, 9)}, "TAX")
        assert first["doc_number"] == "TAX-202401-001"
        assert second["doc_number"] == "TAX-202401-002"
        assert [d["doc_number"] for d in temp_db.list_documents("TAX_INVOICE")] == [
            "TAX-202401-002", "TAX-202401-001"
        ]

    def test_list_transactions_by_period(self, temp_db, make):
        make.transaction(date(2024, 1, 10), "EXPENSE", 5000)
        make.transaction(date(2024, 2, 10), "EXPENSE", 7000)
        rows = temp_db.list_transactions("EXPENSE", date(2024, 1, 1), date(2024, 1, 31))
        assert [r["amount"] for r in rows] == [5000]
        assert len(temp_db.list_transactions()) == 2

    def test_period_totals(self, temp_db, make):
        make.transaction(date(2024, 1, 10), "REVENUE", 1000000)
        make.transaction(date(2024, 1, 11), "EXPENSE", 400000)
        assert temp_db.get_period_totals(date(2024, 1, 1), date(2024, 1, 31)) == {
            "revenue": 1000000, "expense": 400000, "profit": 600000,
        }

    def test_calendar_events_listing(self, temp_db):
        temp_db.create_calendar_event({
            "title": "미팅", "date": datetime(2024, 1, 15, 10, 0), "type": "MEETING",
        })
        events = temp_db.list_calendar_events(date(2024, 1, 15), date(2024, 1, 15))
        assert events[0]["title"] == "미팅"
        assert events[0]["date"] == "2024-01-15T10:00:00"

    def test_list_influencers_keyword(self, temp_db, make):
        make.influencer("지수", instagram_id="jisoo_daily")
        make.influencer("민호", instagram_id="minho_eats")
        assert [i["name"] for i in temp_db.list_influencers("minho")] == ["민호"]
        assert len(temp_db.list_influencers()) == 2
