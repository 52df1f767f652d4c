#!/usr/bin/env python3
"""营销代理业务平台 - 应用入口

启动：
1. Web 平台（REST API、定时报表入口、Slack webhook）
2. Slack 通道（命令回复与报表推送）
3. 内置定时任务（每日提醒、周报、月报），可用 --no-scheduler 关闭，
   改由外部 cron 调用 /api/cron/* 触发

使用方式：
    python app.py

    # 指定端口
    python app.py --port 8080

    # 指定数据库
    python app.py --db sqlite:///data/agency.db

环境变量（在 .env 文件中配置，参见 .env.example）：
    DATABASE_URL          数据库连接地址
    APP_ENV               运行环境（development 下 cron 接口跳过鉴权）
    CRON_SECRET           定时任务接口密钥
    SLACK_BOT_TOKEN       Slack Bot Token
    SLACK_CHANNEL_ID      监听与推送的频道
    SLACK_SIGNING_SECRET  Slack 请求签名密钥
    WEB_PORT / WEB_USERNAME / WEB_PASSWORD
"""
import argparse
import asyncio
import signal

from loguru import logger


async def _cleanup(web, slack, scheduler, db):
    """统一资源清理：调度器 → Web 服务器 → Slack 通道 → 数据库连接"""
    logger.info("正在清理资源...")

    if scheduler is not None:
        scheduler.stop()
    if web is not None:
        await web.shutdown()
    if slack is not None:
        await slack.shutdown()
    if db is not None:
        db.close()

    logger.info("服务已停止")


async def main():
    from config.settings import settings

    parser = argparse.ArgumentParser(description="营销代理业务平台")
    parser.add_argument("--host", default=settings.web_host,
                        help="监听地址 (默认: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=settings.web_port,
                        help="监听端口 (默认: 8080)")
    parser.add_argument("--db", default=settings.database_url,
                        help="数据库连接 URL")
    parser.add_argument("--no-scheduler", action="store_true",
                        help="不启动内置定时任务（由外部 cron 调用 /api/cron/*）")
    args = parser.parse_args()

    web = None
    slack = None
    scheduler = None
    db = None

    try:
        from database import DatabaseManager
        db = DatabaseManager(args.db)
        db.create_tables()
        logger.info(f"数据库已连接: {db.database_url}")

        from business.commands import CommandProcessor
        from business.reports import build_report_jobs
        from interface.slack.channel import SlackChannel
        from interface.web.channel import WebChannel

        commands = CommandProcessor(db)
        slack = SlackChannel(
            bot_token=settings.slack_bot_token,
            signing_secret=settings.slack_signing_secret,
            channel_id=settings.slack_channel_id,
            message_handler=commands.handle_message,
            api_base_url=settings.slack_api_base_url,
            timeout=settings.http_timeout_seconds,
        )
        await slack.startup()

        reports = build_report_jobs(db, slack, settings.slack_channel_id)
        web = WebChannel(
            db_manager=db,
            slack_channel=slack,
            host=args.host,
            port=args.port,
            username=settings.web_username,
            password=settings.web_password,
            cron_secret=settings.cron_secret,
            development=settings.is_development,
            reports=reports,
        )
        await web.startup()

        if not args.no_scheduler:
            from business.scheduler import Scheduler
            scheduler = Scheduler(settings.scheduler_timezone or None)
            scheduler.setup_report_jobs(
                reports["daily-alerts"].run,
                reports["weekly-report"].run,
                reports["monthly-report"].run,
                hour=settings.report_hour,
                minute=settings.report_minute,
            )
            scheduler.start()

        if settings.is_development:
            logger.warning("APP_ENV=development：/api/cron/* 已跳过鉴权")

        print()
        print("=" * 60)
        print("  营销代理业务平台已启动!")
        print(f"  API 地址: http://localhost:{args.port}")
        print(f"  数据库: {db.database_url}")
        print(f"  Slack 频道: {settings.slack_channel_id or '未配置'}")
        print(f"  定时任务: {'未启用' if scheduler is None else '已启用'}")
        print("=" * 60)
        print("  按 Ctrl+C 停止服务")
        print()

        loop = asyncio.get_running_loop()
        shutdown_event = asyncio.Event()
        _shutdown_requested = False

        def signal_handler(signum):
            """处理退出信号"""
            nonlocal _shutdown_requested
            if _shutdown_requested:
                logger.warning("再次收到退出信号，强制退出...")
                for task in asyncio.all_tasks(loop):
                    task.cancel()
                return
            _shutdown_requested = True
            logger.info(f"收到信号 {signum}，正在关闭服务...")
            shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler, sig)

        await shutdown_event.wait()

    except asyncio.CancelledError:
        logger.info("任务被取消，正在清理...")
    finally:
        await _cleanup(web, slack, scheduler, db)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        print("\n已停止。")
