"""
File: passport/core/config.py
Description: 全局应用配置管理（使用 pydantic-settings）

所有配置值通过 .env 文件加载。
本模块负责：
1. 校验环境变量类型
2. 组装数据库 DSN（默认 postgresql+asyncpg，允许直接传入 SQLite DSN 用于本地/测试）
3. 定义 Redis、JWT、会话 Cookie 参数
4. 定义激活码引擎与第三方登录 (微信) 的业务参数
5. 运行时强制校验必填项，确保应用在配置缺失时快速失败

Author: jinmozhe
Created: 2025-11-24
Updated: 2026-03-02 (Activation Code & Third Party settings)
"""

import string
from typing import Literal

from pydantic import AnyHttpUrl, model_validator
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """全局配置对象（唯一真实来源）"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=True,
    )

    # --------------------------------------------------------------------------
    # 1. General (通用)
    # --------------------------------------------------------------------------
    PROJECT_NAME: str = "Passport Service"
    API_V1_STR: str = "/api/v1"
    DOCS_PREFIX: str = "/passport"
    ENVIRONMENT: Literal["local", "dev", "prod"] = "local"
    DEBUG: bool = False

    # 用于 JWT 签名与第三方绑定 state 派生
    SECRET_KEY: str | None = None

    BACKEND_CORS_ORIGINS: list[AnyHttpUrl] = []

    # --------------------------------------------------------------------------
    # 2. Database (PostgreSQL)
    # --------------------------------------------------------------------------
    POSTGRES_SERVER: str | None = None
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str | None = None
    POSTGRES_PASSWORD: str | None = None
    POSTGRES_DB: str | None = None

    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_PRE_PING: bool = True
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # 完整 DSN 覆盖（可选，支持 sqlite+aiosqlite）
    SQLALCHEMY_DATABASE_URI: str | None = None

    # --------------------------------------------------------------------------
    # 3. Logging (Loguru)
    # --------------------------------------------------------------------------
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_JSON_FORMAT: bool = False
    LOG_FILE_ENABLED: bool = False
    LOG_DIR: str = "logs"
    LOG_ROTATION: str = "1 hour"
    LOG_RETENTION: str = "7 days"
    LOG_COMPRESSION: str = "zip"
    LOG_DIAGNOSE: bool = True

    # --------------------------------------------------------------------------
    # 4. Redis (Refresh Token 存储)
    # --------------------------------------------------------------------------
    REDIS_URL: str = "redis://localhost:6379/0"

    # --------------------------------------------------------------------------
    # 5. Security & Session
    # --------------------------------------------------------------------------
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ALGORITHM: str = "HS256"

    # 浏览器跳转场景 (第三方回调) 无法携带 Authorization 头，改用 Cookie 承载会话
    SESSION_COOKIE_NAME: str = "passport_token"
    SESSION_COOKIE_SECURE: bool = False

    # --------------------------------------------------------------------------
    # 6. Activation Code (激活码引擎)
    # --------------------------------------------------------------------------
    ACTIVATION_CODE_LENGTH: int = 8
    ACTIVATION_CODE_ALPHABET: str = string.digits + string.ascii_letters
    # 单个激活码生成时的最大重试次数 (碰撞保护)
    ACTIVATION_CODE_MAX_RETRIES: int = 10
    ACTIVATION_CODE_BATCH_CREATE_MAX: int = 50
    ACTIVATION_CODE_BATCH_UPDATE_MAX: int = 100
    # 用户邀请码的默认可用次数
    USER_ACTIVATION_CODE_DEFAULT_LIMIT: int = 5

    # --------------------------------------------------------------------------
    # 7. Third Party (微信开放平台)
    # --------------------------------------------------------------------------
    WECHAT_APP_ID: str = ""
    WECHAT_APP_SECRET: str = ""
    WECHAT_AUTHORIZE_URL: str = "https://open.weixin.qq.com/connect/qrconnect"
    WECHAT_ACCESS_TOKEN_URL: str = "https://api.weixin.qq.com/sns/oauth2/access_token"
    WECHAT_USERINFO_URL: str = "https://api.weixin.qq.com/sns/userinfo"
    WECHAT_LOGIN_REDIRECT_URI: str = (
        "http://localhost:8000/api/v1/third-party/wechat/callback"
    )
    WECHAT_BIND_REDIRECT_URI: str = (
        "http://localhost:8000/api/v1/third-party/wechat/bind-callback"
    )
    HTTP_CLIENT_TIMEOUT: float = 10.0

    # 前端页面 (未绑定时跳转至注册/绑定页，未登录时跳转至登录页)
    FRONTEND_BIND_URL: str = "http://localhost:3000/bind"
    FRONTEND_LOGIN_URL: str = "http://localhost:3000/login"
    # 回调跳转地址 (return_url) 允许的主机名；为空时不限制 (仅本地调试)
    RETURN_URL_ALLOWED_HOSTS: list[str] = []

    # 默认头像模板 ({seed} 为用户 ID 派生值)
    DEFAULT_HEAD_IMAGE_TEMPLATE: str = (
        "https://api.dicebear.com/9.x/identicon/svg?seed={seed}"
    )

    # --------------------------------------------------------------------------
    # Properties (便捷属性)
    # --------------------------------------------------------------------------
    @property
    def is_production(self) -> bool:
        """是否为生产环境"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_debug(self) -> bool:
        """是否启用调试模式（仅在非生产环境有效）"""
        return self.DEBUG and not self.is_production

    @property
    def is_sqlite(self) -> bool:
        """当前 DSN 是否指向 SQLite (本地调试/测试)"""
        return str(self.SQLALCHEMY_DATABASE_URI or "").startswith("sqlite")

    # --------------------------------------------------------------------------
    # Validators
    # --------------------------------------------------------------------------
    @model_validator(mode="after")
    def _validate_and_build_db_uri(self) -> "Settings":
        """验证必填项并构建数据库连接串。"""
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY 必须在 .env 中设置")

        if self.ENVIRONMENT == "prod" and len(self.SECRET_KEY) < 32:
            raise ValueError("生产环境 SECRET_KEY 长度必须 >= 32 字符")

        if self.ACTIVATION_CODE_LENGTH <= 0 or not self.ACTIVATION_CODE_ALPHABET:
            raise ValueError("激活码长度与字符集配置无效")

        if self.SQLALCHEMY_DATABASE_URI:
            return self

        missing_fields: list[str] = []
        required_pg_fields = [
            "POSTGRES_SERVER",
            "POSTGRES_USER",
            "POSTGRES_PASSWORD",
            "POSTGRES_DB",
        ]

        for field in required_pg_fields:
            if not getattr(self, field):
                missing_fields.append(field)

        if missing_fields:
            raise ValueError(
                f"缺少数据库环境变量，无法构建 DSN: {', '.join(missing_fields)}"
            )

        self.SQLALCHEMY_DATABASE_URI = str(
            MultiHostUrl.build(
                scheme="postgresql+asyncpg",
                username=self.POSTGRES_USER,  # type: ignore[arg-type]
                password=self.POSTGRES_PASSWORD,  # type: ignore[arg-type]
                host=self.POSTGRES_SERVER,  # type: ignore[arg-type]
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,  # type: ignore[arg-type]
            )
        )

        return self


# 单例配置对象
settings = Settings()
