"""
File: passport/domains/third_party/client.py
Description: 微信开放平台客户端 (httpx)

本模块负责：
1. 生成网站应用扫码授权地址 (qrconnect)
2. 使用授权码换取 access_token + openid (sns/oauth2/access_token)
3. 拉取用户信息 (sns/userinfo)

失败处理：
传输错误、非 2xx、非 JSON、微信 errcode 均转换为 ThirdPartyError.PROVIDER_ERROR，
不自动重试 (授权码一次性有效，由用户重新发起扫码)。

Author: jinmozhe
Created: 2026-03-02
"""

from dataclasses import dataclass, field
from typing import Any

import httpx

from passport.core.config import settings
from passport.core.exceptions import AppException
from passport.core.logging import logger
from passport.db.models.third_party_identity import IDENTITY_NAME_MAX_LENGTH
from passport.domains.third_party.constants import ThirdPartyError


@dataclass(frozen=True)
class ProviderProfile:
    """第三方用户资料快照"""

    open_id: str
    union_id: str | None
    name: str | None
    head_image_url: str | None
    raw: dict[str, Any] = field(default_factory=dict)


class WeChatClient:
    """
    微信开放平台 (网站应用) OAuth2 客户端。
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        app_id: str = settings.WECHAT_APP_ID,
        app_secret: str = settings.WECHAT_APP_SECRET,
    ):
        self.http_client = http_client
        self.app_id = app_id
        self.app_secret = app_secret

    def _ensure_configured(self) -> None:
        if not self.app_id or not self.app_secret:
            raise AppException(ThirdPartyError.PROVIDER_NOT_CONFIGURED)

    def build_authorize_url(self, redirect_uri: str, state: str | None = None) -> str:
        """
        生成扫码授权地址。
        微信要求 #wechat_redirect 锚点位于地址末尾。
        """
        self._ensure_configured()
        params = {
            "appid": self.app_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "snsapi_login",
        }
        if state:
            params["state"] = state
        url = httpx.URL(settings.WECHAT_AUTHORIZE_URL, params=params)
        return f"{url}#wechat_redirect"

    async def exchange_code(self, auth_code: str) -> ProviderProfile:
        """
        授权码换取用户资料。
        """
        self._ensure_configured()

        token_payload = await self._get_json(
            settings.WECHAT_ACCESS_TOKEN_URL,
            {
                "appid": self.app_id,
                "secret": self.app_secret,
                "code": auth_code,
                "grant_type": "authorization_code",
            },
        )
        access_token = token_payload.get("access_token")
        open_id = token_payload.get("openid")
        if not isinstance(access_token, str) or not isinstance(open_id, str):
            logger.warning("WeChat token response missing access_token/openid")
            raise AppException(ThirdPartyError.PROVIDER_ERROR)

        userinfo = await self._get_json(
            settings.WECHAT_USERINFO_URL,
            {"access_token": access_token, "openid": open_id},
        )

        union_id = userinfo.get("unionid") or token_payload.get("unionid")
        nickname = userinfo.get("nickname")
        return ProviderProfile(
            open_id=str(userinfo.get("openid") or open_id),
            union_id=str(union_id) if union_id else None,
            name=str(nickname)[:IDENTITY_NAME_MAX_LENGTH] if nickname else None,
            head_image_url=userinfo.get("headimgurl") or None,
            raw=userinfo,
        )

    async def _get_json(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        try:
            resp = await self.http_client.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.bind(url=url, error=type(exc).__name__).warning(
                "WeChat API request failed"
            )
            raise AppException(ThirdPartyError.PROVIDER_ERROR) from exc

        if resp.status_code >= 400:
            logger.bind(url=url, status_code=resp.status_code).warning(
                "WeChat API returned error status"
            )
            raise AppException(ThirdPartyError.PROVIDER_ERROR)

        try:
            payload = resp.json()
        except ValueError as exc:
            logger.bind(url=url).warning("WeChat API returned non-JSON body")
            raise AppException(ThirdPartyError.PROVIDER_ERROR) from exc

        if not isinstance(payload, dict):
            raise AppException(ThirdPartyError.PROVIDER_ERROR)

        if payload.get("errcode"):
            logger.bind(
                url=url, errcode=payload.get("errcode"), errmsg=payload.get("errmsg")
            ).warning("WeChat API returned errcode")
            raise AppException(ThirdPartyError.PROVIDER_ERROR)

        return payload
