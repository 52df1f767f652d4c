"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    1. 复制 .env.example 为 .env 并按需修改
    2. 或直接通过环境变量覆盖（如 CRON_SECRET、SLACK_BOT_TOKEN）
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 运行环境 ==========
    # development 模式下 cron 接口跳过鉴权，仅用于本地调试
    app_env: str = "production"

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/agency.db"

    # ========== 定时报表 ==========
    cron_secret: str = ""
    report_hour: int = 9
    report_minute: int = 0
    # 调度时区（如 Asia/Seoul），为空时使用本地时区
    scheduler_timezone: str = ""

    # ========== Slack 配置 ==========
    slack_bot_token: str = ""
    slack_channel_id: str = ""
    slack_signing_secret: str = ""
    slack_api_base_url: str = "https://slack.com/api"

    # 外部 HTTP 调用超时（秒）
    http_timeout_seconds: float = 10.0

    # ========== Web 平台配置 ==========
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    web_username: str = "admin"
    web_password: str = "admin123"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"


# 全局配置实例
settings = Settings()
