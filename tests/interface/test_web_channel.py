"""测试 Web 平台：认证、结算 API、定时任务入口、Slack webhook"""
import json
import time
from datetime import date

import pytest
from fastapi.testclient import TestClient

from business.errors import (
    ExternalServiceError, NotFoundError, TransactionFailedError,
    UnauthorizedError, ValidationError,
)
from interface.base import Reply
from interface.slack.channel import SlackChannel, compute_slack_signature
from interface.web.channel import WebChannel, error_body, error_status, verify_cron_auth

SIGNING_SECRET = "test-signing-secret"
CRON_SECRET = "cron-secret"


class QuietSlackChannel(SlackChannel):
    """记录收到的事件，不访问 Slack API"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.events = []

    async def process_event(self, payload):
        self.events.append(payload)
        return True

    async def send(self, session_id: str, reply: Reply):
        pass


def _make_channel(db, **kwargs):
    slack = kwargs.pop("slack_channel", None)
    return WebChannel(db_manager=db, slack_channel=slack, cron_secret=CRON_SECRET, **kwargs)


def _login(client):
    response = client.post("/api/login", json={"username": "admin", "password": "admin123"})
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def client(temp_db):
    return TestClient(_make_channel(temp_db).get_app())


@pytest.fixture
def auth(client):
    return _login(client)


class TestErrorMapping:
    """业务异常到 HTTP 状态码的映射"""

    @pytest.mark.parametrize("exc, status", [
        (ValidationError("bad", {"fee": "negative"}), 400),
        (UnauthorizedError("no"), 401),
        (NotFoundError("Project", [1]), 404),
        (TransactionFailedError("rolled back"), 409),
        (ExternalServiceError("slack", "down"), 503),
    ])
    def test_status(self, exc, status):
        assert error_status(exc) == status

    def test_timeout_message(self):
        body = error_body(ExternalServiceError("slack", "slow", timed_out=True))
        assert body == {"success": False, "error": "요청 시간이 초과되었습니다"}

    def test_validation_fields(self):
        body = error_body(ValidationError("bad", {"fee": "negative"}))
        assert body["fields"] == {"fee": "negative"}


class TestCronAuth:
    """定时任务鉴权"""

    def test_valid_secret(self):
        verify_cron_auth(f"Bearer {CRON_SECRET}", CRON_SECRET)

    @pytest.mark.parametrize("header", [None, "", CRON_SECRET, "Bearer wrong", "Basic abc"])
    def test_rejected(self, header):
        with pytest.raises(UnauthorizedError):
            verify_cron_auth(header, CRON_SECRET)

    def test_unconfigured_secret_rejects(self):
        with pytest.raises(UnauthorizedError):
            verify_cron_auth("Bearer ", "")

    def test_development_bypass(self):
        verify_cron_auth(None, "", development=True)


class TestAuth:
    """登录认证"""

    def test_login_failure(self, client):
        response = client.post("/api/login", json={"username": "admin", "password": "x"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_protected_route_requires_token(self, client):
        assert client.get("/api/settlements").status_code == 401
        assert client.get("/api/settlements",
                          headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_unknown_constructor_option_rejected(self, temp_db):
        with pytest.raises(TypeError):
            WebChannel(db_manager=temp_db, secret_key="change-me")

    def test_health_is_public(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["slack_configured"] is False
        assert body["db_connected"] is True


class TestSettlementApi:
    """结算 API"""

    def test_list_and_summary(self, client, auth, make):
        project = make.project()
        make.settlement(project, make.influencer("X"), fee=500000, payment_status="PENDING")
        make.settlement(project, make.influencer("Y"), fee=400000, payment_status="REQUESTED")

        listing = client.get("/api/settlements", headers=auth).json()
        assert listing["summary"]["total"] == 900000
        assert {s["paymentStatus"] for s in listing["settlements"]} == {"pending", "in_progress"}

        summary = client.get("/api/settlements/summary", headers=auth).json()
        assert summary["statusTotals"]["in_progress"] == {"amount": 400000, "count": 1}
        assert summary["statusTotals"]["completed"] == {"amount": 0, "count": 0}

    def test_bad_month(self, client, auth):
        response = client.get("/api/settlements?month=2024-99", headers=auth)
        assert response.status_code == 400
        assert "month" in response.json()["fields"]

    def test_patch_and_delete(self, client, auth, make):
        row = make.settlement(make.project(), make.influencer())

        patched = client.patch(f"/api/settlements/{row.id}", headers=auth,
                               json={"paymentStatus": "COMPLETED", "paymentDate": "2024-01-31"})
        assert patched.status_code == 200
        assert patched.json()["paymentStatus"] == "completed"

        assert client.delete(f"/api/settlements/{row.id}", headers=auth).json() == {"success": True}
        assert client.delete(f"/api/settlements/{row.id}", headers=auth).status_code == 404

    def test_sync_collaborators(self, client, auth, make):
        project = make.project()
        a, b = make.influencer("A"), make.influencer("B")
        make.settlement(project, a)

        response = client.post(
            f"/api/projects/{project.id}/influencers", headers=auth,
            json={"collaborators": [{"influencerId": b.id, "fee": 300000,
                                     "paymentStatus": "REQUESTED"}]},
        )

        assert response.status_code == 200
        rows = response.json()["projectInfluencers"]
        assert [(r["influencerId"], r["paymentStatus"]) for r in rows] == [(b.id, "in_progress")]

    def test_sync_unknown_influencer(self, client, auth, make):
        project = make.project()
        response = client.post(
            f"/api/projects/{project.id}/influencers", headers=auth,
            json={"collaborators": [{"influencerId": 999, "fee": 1}]},
        )
        assert response.status_code == 404


class TestRecordApi:
    """基础记录 API"""

    def test_client_and_project_flow(self, client, auth):
        created = client.post("/api/clients", headers=auth, json={
            "name": "헬시푸드", "contactName": "이매니저", "phone": "010-2222-3333",
        })
        assert created.status_code == 201
        client_id = created.json()["id"]

        project = client.post("/api/projects", headers=auth, json={
            "name": "런칭 캠페인", "clientId": client_id, "status": "IN_PROGRESS",
        }).json()
        assert project["client_name"] == "헬시푸드"

        listing = client.get("/api/projects?status=IN_PROGRESS", headers=auth).json()
        assert [p["id"] for p in listing["data"]] == [project["id"]]

    def test_validation_error_lists_fields(self, client, auth):
        response = client.post("/api/clients", headers=auth, json={"name": "x"})
        assert response.status_code == 400
        assert "contactName" in response.json()["fields"]

    def test_patch_null_required_column(self, client, auth, make):
        project = make.project()

        response = client.patch(f"/api/clients/{project.client_id}", headers=auth,
                                json={"name": None})
        assert response.status_code == 400
        assert "name" in response.json()["fields"]

        response = client.patch(f"/api/projects/{project.id}", headers=auth,
                                json={"clientId": None})
        assert response.status_code == 400
        assert "clientId" in response.json()["fields"]

    def test_document_numbering(self, client, auth):
        first = client.post("/api/documents", headers=auth,
                            json={"type": "TAX_INVOICE", "issueDate": "2024-01-05"}).json()
        assert first["doc_number"] == "TAX-202401-001"

    def test_transactions_and_calendar(self, client, auth):
        client.post("/api/transactions", headers=auth, json={
            "date": "2024-01-10", "type": "EXPENSE", "category": "FOOD", "amount": 12000,
        })
        rows = client.get("/api/transactions?start=2024-01-01&end=2024-01-31",
                          headers=auth).json()["data"]
        assert [r["amount"] for r in rows] == [12000]

        client.post("/api/calendar", headers=auth, json={
            "title": "미팅", "date": "2024-01-15T10:00:00", "type": "MEETING",
        })
        events = client.get("/api/calendar?start=2024-01-15&end=2024-01-15",
                            headers=auth).json()["data"]
        assert events[0]["title"] == "미팅"

    def test_dashboard(self, client, auth, make):
        make.transaction(date.today(), "REVENUE", 100000)
        body = client.get("/api/dashboard", headers=auth).json()
        assert body["revenue"] == 100000
        assert body["month"] == date.today().strftime("%Y-%m")


class TestCronRoutes:
    """定时任务入口"""

    def test_missing_secret_rejected(self, client):
        response = client.get("/api/cron/daily-alerts")
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.parametrize("path", [
        "/api/cron/daily-alerts", "/api/cron/weekly-report", "/api/cron/monthly-report",
    ])
    def test_reports_run_with_secret(self, client, path):
        response = client.post(path, headers={"Authorization": f"Bearer {CRON_SECRET}"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["sentToSlack"] is False
        assert body["report"] == path.rsplit("/", 1)[1]

    def test_development_mode_skips_auth(self, temp_db):
        dev = TestClient(_make_channel(temp_db, development=True).get_app())
        assert dev.get("/api/cron/weekly-report").status_code == 200


class TestSlackWebhook:
    """Slack 事件订阅"""

    @pytest.fixture
    def slack(self):
        return QuietSlackChannel(signing_secret=SIGNING_SECRET, channel_id="C0123456")

    @pytest.fixture
    def slack_client(self, temp_db, slack):
        return TestClient(_make_channel(temp_db, slack_channel=slack).get_app())

    def _signed(self, payload, secret=SIGNING_SECRET):
        body = json.dumps(payload).encode("utf-8")
        timestamp = str(int(time.time()))
        return body, {
            "Content-Type": "application/json",
            "X-Slack-Request-Timestamp": timestamp,
            "X-Slack-Signature": compute_slack_signature(secret, timestamp, body),
        }

    def test_url_verification(self, slack_client):
        response = slack_client.post("/api/slack/webhook",
                                     json={"type": "url_verification", "challenge": "xyz"})
        assert response.json() == {"challenge": "xyz"}

    def test_invalid_signature(self, slack_client, slack):
        body, headers = self._signed({"type": "event_callback"}, secret="wrong")
        response = slack_client.post("/api/slack/webhook", content=body, headers=headers)
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}
        assert slack.events == []

    def test_signed_event_is_processed(self, slack_client, slack):
        payload = {"type": "event_callback", "event_id": "Ev1",
                   "event": {"type": "message", "text": "현황", "channel": "C0123456"}}
        body, headers = self._signed(payload)
        response = slack_client.post("/api/slack/webhook", content=body, headers=headers)
        assert response.json() == {"ok": True}
        assert slack.events == [payload]

    def test_status_and_unconfigured(self, client):
        assert client.get("/api/slack/webhook").json()["status"] == "ok"
        response = client.post("/api/slack/webhook", json={"type": "event_callback"})
        assert response.status_code == 503
