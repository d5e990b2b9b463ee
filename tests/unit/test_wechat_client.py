"""
File: tests/unit/test_wechat_client.py
Description: 微信开放平台客户端单元测试

Author: jinmozhe
Created: 2026-03-02
"""

from typing import Any

import httpx
import pytest

from passport.core.exceptions import AppException
from passport.db.models.third_party_identity import IDENTITY_NAME_MAX_LENGTH
from passport.domains.third_party.client import WeChatClient
from passport.domains.third_party.constants import ThirdPartyError


def client_with(handler: Any) -> WeChatClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WeChatClient(http_client, app_id="wx-app", app_secret="wx-secret")


def test_build_authorize_url() -> None:
    client = client_with(lambda request: httpx.Response(200))

    url = client.build_authorize_url("https://passport.example.com/cb", state="abc")

    assert url.startswith("https://open.weixin.qq.com/connect/qrconnect?")
    assert url.endswith("#wechat_redirect")
    params = httpx.URL(url.removesuffix("#wechat_redirect")).params
    assert params["appid"] == "wx-app"
    assert params["redirect_uri"] == "https://passport.example.com/cb"
    assert params["response_type"] == "code"
    assert params["scope"] == "snsapi_login"
    assert params["state"] == "abc"


def test_build_authorize_url_without_state() -> None:
    client = client_with(lambda request: httpx.Response(200))

    url = client.build_authorize_url("https://passport.example.com/cb")

    assert "state" not in httpx.URL(url.removesuffix("#wechat_redirect")).params


def test_unconfigured_client() -> None:
    client = WeChatClient(httpx.AsyncClient(), app_id="", app_secret="")

    with pytest.raises(AppException) as excinfo:
        client.build_authorize_url("https://passport.example.com/cb")

    assert excinfo.value.error is ThirdPartyError.PROVIDER_NOT_CONFIGURED


@pytest.mark.asyncio
async def test_exchange_code(wechat: Any, wechat_http_client: httpx.AsyncClient) -> None:
    client = WeChatClient(wechat_http_client, app_id="wx-app", app_secret="wx-secret")

    profile = await client.exchange_code("auth-code")

    assert profile.open_id == "openid-001"
    assert profile.union_id == "unionid-001"
    assert profile.name == "微信用户"
    assert profile.head_image_url == wechat.head_image
    assert profile.raw["nickname"] == "微信用户"


@pytest.mark.asyncio
async def test_exchange_code_without_union_id(
    wechat: Any, wechat_http_client: httpx.AsyncClient
) -> None:
    wechat.union_id = None
    client = WeChatClient(wechat_http_client, app_id="wx-app", app_secret="wx-secret")

    profile = await client.exchange_code("auth-code")

    assert profile.union_id is None


@pytest.mark.asyncio
async def test_exchange_code_clamps_long_nickname(
    wechat: Any, wechat_http_client: httpx.AsyncClient
) -> None:
    wechat.nickname = "长" * 150
    client = WeChatClient(wechat_http_client, app_id="wx-app", app_secret="wx-secret")

    profile = await client.exchange_code("auth-code")

    assert profile.name == "长" * IDENTITY_NAME_MAX_LENGTH
    assert profile.raw["nickname"] == "长" * 150


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"errcode": 40029, "errmsg": "invalid code"}),
        httpx.Response(500, text="internal error"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json=["unexpected"]),
        httpx.Response(200, json={"expires_in": 7200}),
    ],
)
async def test_exchange_code_provider_errors(response: httpx.Response) -> None:
    client = client_with(lambda request: response)

    with pytest.raises(AppException) as excinfo:
        await client.exchange_code("auth-code")

    assert excinfo.value.error is ThirdPartyError.PROVIDER_ERROR


@pytest.mark.asyncio
async def test_exchange_code_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = client_with(handler)

    with pytest.raises(AppException) as excinfo:
        await client.exchange_code("auth-code")

    assert excinfo.value.error is ThirdPartyError.PROVIDER_ERROR
