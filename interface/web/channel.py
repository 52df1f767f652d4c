"""Web 平台 - REST API + 定时任务入口 + Slack webhook

基于 FastAPI，提供：
1. 管理 API：客户、网红、项目、流水、文档、日程、结算、仪表盘（需登录）
2. 定时报表入口：/api/cron/*（Bearer CRON_SECRET，开发模式跳过鉴权）
3. Slack 事件订阅：/api/slack/webhook（Slack 签名校验）

业务层抛出的类型化异常在这里统一映射为 HTTP 状态码。

使用方式：
    ```python
    channel = WebChannel(db_manager=db, slack_channel=slack, port=8080)
    await channel.startup()
    ```
"""
import asyncio
import hmac
import json
import secrets
import threading
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from business.collaborators import CollaboratorSync
from business.commands import build_dashboard_summary
from business.errors import (
    BusinessError, ExternalServiceError, NotFoundError,
    TransactionFailedError, UnauthorizedError, ValidationError,
)
from business.records import RecordService
from business.reports import ReportJob, build_report_jobs
from business.settlements import SettlementService
from interface.base import Channel, MessageHandler, Reply


def error_status(exc: BusinessError) -> int:
    """业务异常 → HTTP 状态码"""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, UnauthorizedError):
        return 401
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, TransactionFailedError):
        return 409
    if isinstance(exc, ExternalServiceError):
        return 503
    return 400


def error_body(exc: BusinessError) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": exc.message}
    if isinstance(exc, ValidationError) and exc.fields:
        body["fields"] = exc.fields
    if isinstance(exc, ExternalServiceError) and exc.timed_out:
        body["error"] = "요청 시간이 초과되었습니다"
    return body


def verify_cron_auth(authorization: Optional[str], cron_secret: str,
                     development: bool = False) -> None:
    """校验定时任务请求的 Bearer 密钥

    Args:
        authorization: Authorization 请求头
        cron_secret: 配置的 CRON_SECRET
        development: 开发模式下直接放行

    Raises:
        UnauthorizedError: 缺少或错误的密钥（未配置密钥时一律拒绝）
    """
    if development:
        return
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing Bearer authorization header")
    token = authorization[7:].strip()
    if not cron_secret or not hmac.compare_digest(token, cron_secret):
        raise UnauthorizedError("Invalid cron secret")


class WebChannel(Channel):
    """Web 平台通道

    路由：
    - POST /api/login                       → 登录
    - GET  /api/dashboard                   → 当月概况
    - GET  /api/settlements                 → 结算列表（status、month 过滤）
    - GET  /api/settlements/summary         → 结算汇总
    - PATCH/DELETE /api/settlements/{id}    → 更新状态 / 删除
    - POST /api/projects/{id}/influencers   → 同步项目合作网红
    - GET/POST/PATCH /api/clients, /api/influencers, /api/projects, /api/transactions
    - GET/POST /api/documents, /api/calendar
    - GET/POST /api/cron/{daily-alerts|weekly-report|monthly-report}
    - GET/POST /api/slack/webhook
    - GET  /health                          → 健康检查
    """

    def __init__(
        self,
        db_manager,
        slack_channel=None,
        message_handler: Optional[MessageHandler] = None,
        host: str = "0.0.0.0",
        port: int = 8080,
        username: str = "admin",
        password: str = "admin123",
        cron_secret: str = "",
        development: bool = False,
        reports: Optional[Dict[str, ReportJob]] = None,
    ):
        super().__init__("web", message_handler)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.cron_secret = cron_secret
        self.development = development
        self.db_manager = db_manager
        self.slack_channel = slack_channel
        self.reports = reports or build_report_jobs(
            db_manager, slack_channel,
            slack_channel.channel_id if slack_channel else None,
        )
        self.records = RecordService(db_manager)
        self.settlements = SettlementService(db_manager)
        self.collaborators = CollaboratorSync(db_manager)
        self.app = None
        self._server_thread: Optional[threading.Thread] = None
        self._server = None  # uvicorn.Server 实例
        self._server_loop = None  # 服务器事件循环
        # 简易 token 存储
        self._valid_tokens: Dict[str, datetime] = {}

    def _generate_token(self) -> str:
        """生成登录 token（24 小时有效）"""
        token = secrets.token_hex(32)
        self._valid_tokens[token] = datetime.now() + timedelta(hours=24)
        return token

    def _verify_token(self, token: str) -> bool:
        if token not in self._valid_tokens:
            return False
        if datetime.now() > self._valid_tokens[token]:
            del self._valid_tokens[token]
            return False
        return True

    def get_app(self):
        """获取（必要时创建）FastAPI 应用"""
        if self.app is None:
            self.app = self._create_app()
        return self.app

    def _create_app(self):
        """创建 FastAPI 应用"""
        from fastapi import Depends, FastAPI, HTTPException, Request
        from fastapi.responses import JSONResponse

        app = FastAPI(
            title="Agency ERP",
            description="营销代理业务平台 - 结算、报表与 Slack 集成",
            version="1.0.0",
        )

        @app.exception_handler(BusinessError)
        async def business_error_handler(request: Request, exc: BusinessError):
            status = error_status(exc)
            if status >= 500:
                logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            else:
                logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
            return JSONResponse(status_code=status, content=error_body(exc))

        @app.exception_handler(IntegrityError)
        async def integrity_error_handler(request: Request, exc: IntegrityError):
            logger.warning(f"{request.method} {request.url.path} conflict: {exc.orig}")
            return JSONResponse(
                status_code=409,
                content={"success": False, "error": "데이터 제약 조건 위반"},
            )

        def get_current_user(request: Request):
            """从请求头中验证 token"""
            auth = request.headers.get("Authorization", "")
            if auth.startswith("Bearer "):
                token = auth[7:]
                if self._verify_token(token):
                    return True
            raise HTTPException(status_code=401, detail="로그인이 필요합니다")

        # ==================== 认证 API ====================

        @app.post("/api/login")
        async def login(data: dict):
            """登录认证"""
            username = data.get("username", "")
            password = data.get("password", "")
            if username == self.username and password == self.password:
                token = self._generate_token()
                return {"success": True, "token": token}
            return JSONResponse(
                status_code=401,
                content={"success": False, "error": "아이디 또는 비밀번호가 올바르지 않습니다"},
            )

        # ==================== 仪表盘 ====================

        @app.get("/api/dashboard")
        async def dashboard_data(_=Depends(get_current_user)):
            """当月概况"""
            return build_dashboard_summary(self.db_manager, date.today())

        # ==================== 结算 API ====================

        @app.get("/api/settlements")
        async def settlements_list(status: Optional[str] = None,
                                   month: Optional[str] = None,
                                   _=Depends(get_current_user)):
            return self.settlements.list_settlements(status, month)

        @app.get("/api/settlements/summary")
        async def settlements_summary(month: Optional[str] = None,
                                      _=Depends(get_current_user)):
            return self.settlements.summary(month).to_dict()

        @app.patch("/api/settlements/{settlement_id}")
        async def settlement_update(settlement_id: int, data: dict,
                                    _=Depends(get_current_user)):
            return self.settlements.update(settlement_id, data)

        @app.delete("/api/settlements/{settlement_id}")
        async def settlement_delete(settlement_id: int,
                                    _=Depends(get_current_user)):
            self.settlements.delete(settlement_id)
            return {"success": True}

        @app.post("/api/projects/{project_id}/influencers")
        async def project_influencers_sync(project_id: int, data: dict,
                                           _=Depends(get_current_user)):
            """整体替换项目的合作网红"""
            rows = self.collaborators.sync_payload(project_id, data)
            return {"projectInfluencers": rows}

        # ==================== 客户 / 网红 ====================

        @app.get("/api/clients")
        async def clients_list(status: Optional[str] = None,
                               _=Depends(get_current_user)):
            return {"data": self.records.list_clients(status)}

        @app.post("/api/clients", status_code=201)
        async def client_create(data: dict, _=Depends(get_current_user)):
            return self.records.create_client(data)

        @app.patch("/api/clients/{client_id}")
        async def client_update(client_id: int, data: dict,
                                _=Depends(get_current_user)):
            return self.records.update_client(client_id, data)

        @app.get("/api/influencers")
        async def influencers_list(keyword: Optional[str] = None,
                                   _=Depends(get_current_user)):
            return {"data": self.records.list_influencers(keyword)}

        @app.post("/api/influencers", status_code=201)
        async def influencer_create(data: dict, _=Depends(get_current_user)):
            return self.records.create_influencer(data)

        @app.patch("/api/influencers/{influencer_id}")
        async def influencer_update(influencer_id: int, data: dict,
                                    _=Depends(get_current_user)):
            return self.records.update_influencer(influencer_id, data)

        # ==================== 项目 ====================

        @app.get("/api/projects")
        async def projects_list(status: Optional[str] = None,
                                client_id: Optional[int] = None,
                                _=Depends(get_current_user)):
            return {"data": self.records.list_projects(status, client_id)}

        @app.post("/api/projects", status_code=201)
        async def project_create(data: dict, _=Depends(get_current_user)):
            return self.records.create_project(data)

        @app.get("/api/projects/{project_id}")
        async def project_detail(project_id: int, _=Depends(get_current_user)):
            return self.records.get_project(project_id)

        @app.patch("/api/projects/{project_id}")
        async def project_update(project_id: int, data: dict,
                                 _=Depends(get_current_user)):
            return self.records.update_project(project_id, data)

        # ==================== 流水 / 文档 / 日程 ====================

        @app.get("/api/transactions")
        async def transactions_list(type: Optional[str] = None,
                                    start: Optional[date] = None,
                                    end: Optional[date] = None,
                                    _=Depends(get_current_user)):
            return {"data": self.records.list_transactions(type, start, end)}

        @app.post("/api/transactions", status_code=201)
        async def transaction_create(data: dict, _=Depends(get_current_user)):
            return self.records.create_transaction(data)

        @app.patch("/api/transactions/{tx_id}")
        async def transaction_update(tx_id: int, data: dict,
                                     _=Depends(get_current_user)):
            return self.records.update_transaction(tx_id, data)

        @app.get("/api/documents")
        async def documents_list(type: Optional[str] = None,
                                 _=Depends(get_current_user)):
            return {"data": self.records.list_documents(type)}

        @app.post("/api/documents", status_code=201)
        async def document_create(data: dict, _=Depends(get_current_user)):
            return self.records.create_document(data)

        @app.get("/api/calendar")
        async def calendar_list(start: date, end: date,
                                type: Optional[str] = None,
                                _=Depends(get_current_user)):
            return {"data": self.records.list_calendar_events(start, end, type)}

        @app.post("/api/calendar", status_code=201)
        async def calendar_create(data: dict, _=Depends(get_current_user)):
            return self.records.create_calendar_event(data)

        # ==================== 定时报表入口 ====================

        async def run_report(name: str, request: Request):
            verify_cron_auth(request.headers.get("Authorization"),
                             self.cron_secret, self.development)
            result = await self.reports[name].run()
            return result.to_dict()

        @app.api_route("/api/cron/daily-alerts", methods=["GET", "POST"])
        async def cron_daily_alerts(request: Request):
            return await run_report("daily-alerts", request)

        @app.api_route("/api/cron/weekly-report", methods=["GET", "POST"])
        async def cron_weekly_report(request: Request):
            return await run_report("weekly-report", request)

        @app.api_route("/api/cron/monthly-report", methods=["GET", "POST"])
        async def cron_monthly_report(request: Request):
            return await run_report("monthly-report", request)

        # ==================== Slack webhook ====================

        @app.get("/api/slack/webhook")
        async def slack_webhook_status():
            return {"status": "ok", "service": "slack-webhook"}

        @app.post("/api/slack/webhook")
        async def slack_webhook(request: Request):
            raw = await request.body()
            try:
                payload = json.loads(raw or b"{}")
            except ValueError:
                raise ValidationError("Invalid JSON body", {"body": "invalid JSON"})

            # URL 验证请求在签名校验之前直接应答
            if payload.get("type") == "url_verification":
                return {"challenge": payload.get("challenge")}

            if self.slack_channel is None:
                raise ExternalServiceError("slack", "Slack channel is not configured")

            if not self.slack_channel.verify_signature(
                raw,
                request.headers.get("X-Slack-Request-Timestamp"),
                request.headers.get("X-Slack-Signature"),
            ):
                return JSONResponse(status_code=401, content={"error": "Invalid signature"})

            await self.slack_channel.process_event(payload)
            return {"ok": True}

        # ==================== 健康检查 ====================

        @app.get("/health")
        async def health_check():
            """健康检查"""
            try:
                self.db_manager.execute_raw_sql("SELECT 1")
                db_connected = True
            except SQLAlchemyError as e:
                logger.error(f"Database health check failed: {e}")
                db_connected = False
            return {
                "status": "ok" if db_connected else "degraded",
                "channel": "web",
                "running": self.running,
                "db_connected": db_connected,
                "slack_configured": self.slack_channel is not None,
            }

        return app

    async def startup(self):
        """在独立线程中启动 uvicorn 服务器"""
        import uvicorn

        app = self.get_app()
        self.running = True

        def run_server():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._server_loop = loop

            config = uvicorn.Config(
                app,
                host=self.host,
                port=self.port,
                log_level="warning",
                loop="asyncio",
            )
            self._server = uvicorn.Server(config)
            # 信号由 app.py 统一处理
            self._server.install_signal_handlers = lambda: None

            try:
                loop.run_until_complete(self._server.serve())
            except (OSError, RuntimeError) as e:
                logger.error(f"服务器运行出错: {e}")
            finally:
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()
                if pending:
                    loop.run_until_complete(
                        asyncio.gather(*pending, return_exceptions=True)
                    )
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.close()

        self._server_thread = threading.Thread(target=run_server, daemon=True)
        self._server_thread.start()

        # 等待服务器实例创建
        waited = 0.0
        while self._server is None and waited < 5:
            await asyncio.sleep(0.1)
            waited += 0.1

        logger.info(f"Web 平台已启动: http://{self.host}:{self.port}")

    async def shutdown(self):
        """停止 Web 服务器"""
        self.running = False

        if self._server is not None:
            logger.info("正在停止 Web 服务器...")
            self._server.should_exit = True

            if self._server_thread and self._server_thread.is_alive():
                self._server_thread.join(timeout=3.0)

            if self._server_thread and self._server_thread.is_alive():
                logger.warning("服务器未在 3 秒内优雅停止，强制退出...")
                self._server.force_exit = True
                self._server_thread.join(timeout=2.0)
                if self._server_thread.is_alive():
                    logger.warning("服务器线程未能停止，将随主进程退出")

            self._server = None
            self._server_loop = None
            self._server_thread = None

        logger.info("Web 平台已停止")

    async def send(self, session_id: str, reply: Reply):
        """Web 通道通过 HTTP 响应返回结果，这里只记录日志"""
        logger.debug(f"Web 发送: session={session_id}, content={reply.content[:50]}")
