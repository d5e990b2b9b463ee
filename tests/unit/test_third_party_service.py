"""
File: tests/unit/test_third_party_service.py
Description: 第三方登录/绑定服务单元测试

本模块覆盖 ThirdPartyService 的状态机分支：
1. 扫码登录回调 (未绑定跳转注册或绑定页 / 已绑定签发会话)
2. 注册或绑定 (新账号 / 已有账号 / 冲突 / 会话存储失败)
3. 已登录用户扫码绑定 (state 校验 / 幂等 / 已被绑定)
4. 解绑与查询
5. 并发回调同时创建身份

微信开放平台由 tests/conftest.py 中的 FakeWeChat 模拟。

Author: jinmozhe
Created: 2026-03-02
"""

from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID, uuid4

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from passport.core.config import settings
from passport.core.exceptions import AppException
from passport.core.security import generate_bind_state
from passport.db.models.third_party_identity import ThirdPartyIdentity
from passport.db.models.user import User
from passport.domains.auth.constants import AuthError
from passport.domains.auth.service import AuthService
from passport.domains.third_party.client import ProviderProfile, WeChatClient
from passport.domains.third_party.constants import (
    BindStatus,
    LinkFlowState,
    ThirdPartyError,
    ThirdPartyType,
)
from passport.domains.third_party.repository import ThirdPartyIdentityRepository
from passport.domains.third_party.service import ThirdPartyService
from passport.domains.users.repository import UserRepository
from passport.domains.users.schemas import NICKNAME_MAX_LENGTH
from passport.domains.users.service import UserService

CreateUser = Callable[..., Awaitable[User]]

RETURN_URL = "https://app.example.com/settings"

# ------------------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------------------


@pytest.fixture
def service(
    db_session: AsyncSession,
    redis: Any,
    wechat_http_client: httpx.AsyncClient,
) -> ThirdPartyService:
    user_repo = UserRepository(model=User, session=db_session)
    return ThirdPartyService(
        identity_repo=ThirdPartyIdentityRepository(
            model=ThirdPartyIdentity, session=db_session
        ),
        user_repo=user_repo,
        user_service=UserService(repo=user_repo),
        auth_service=AuthService(user_repo=user_repo, redis=redis),  # type: ignore[arg-type]
        wechat_client=WeChatClient(wechat_http_client),
    )


async def scan_unbound(service: ThirdPartyService) -> UUID:
    """模拟一次未绑定账号的扫码登录，返回身份 ID"""
    outcome = await service.handle_login_callback("auth-code", RETURN_URL)
    assert outcome.state == LinkFlowState.BIND_REQUIRED
    return UUID(httpx.URL(outcome.redirect_url).params["identityId"])


async def fresh(service: ThirdPartyService, identity_id: UUID) -> ThirdPartyIdentity:
    identity = await service.identity_repo.get_fresh(identity_id)
    assert identity is not None
    return identity


# ------------------------------------------------------------------------------
# 扫码登录回调
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_login_callback_unbound_redirects_to_bind_page(
    service: ThirdPartyService, wechat: Any
) -> None:
    outcome = await service.handle_login_callback("auth-code", RETURN_URL)

    assert outcome.state == LinkFlowState.BIND_REQUIRED
    assert outcome.token is None
    assert outcome.redirect_url.startswith(settings.FRONTEND_BIND_URL)

    params = httpx.URL(outcome.redirect_url).params
    assert params["returnUrl"] == RETURN_URL

    identity = await fresh(service, UUID(params["identityId"]))
    assert identity.user_id is None
    assert identity.third_party_type == ThirdPartyType.WECHAT
    assert identity.open_id == "openid-001"
    assert identity.union_id == "unionid-001"
    assert identity.name == "微信用户"
    assert identity.extra_data is not None
    assert identity.extra_data["openid"] == "openid-001"

    assert wechat.calls == ["/sns/oauth2/access_token", "/sns/userinfo"]


@pytest.mark.asyncio
async def test_login_callback_refreshes_existing_identity(
    service: ThirdPartyService, wechat: Any
) -> None:
    first_id = await scan_unbound(service)

    wechat.nickname = "新昵称"
    second_id = await scan_unbound(service)

    assert first_id == second_id
    assert (await fresh(service, first_id)).name == "新昵称"


@pytest.mark.asyncio
async def test_login_callback_matches_identity_by_union_id(
    service: ThirdPartyService, wechat: Any
) -> None:
    first_id = await scan_unbound(service)

    # 同一开放平台主体下的另一个应用：OpenID 不同，UnionID 相同
    wechat.open_id = "openid-app2"
    second_id = await scan_unbound(service)

    assert first_id == second_id


@pytest.mark.asyncio
async def test_login_callback_bound_issues_session(
    service: ThirdPartyService, user: User, password: str, redis: Any
) -> None:
    identity_id = await scan_unbound(service)
    await service.complete_bind(identity_id, "alice", password)
    redis.store.clear()

    outcome = await service.handle_login_callback("auth-code", RETURN_URL)

    assert outcome.state == LinkFlowState.LOGGED_IN
    assert outcome.redirect_url == RETURN_URL
    assert outcome.token is not None
    assert redis.store  # refresh token 已写入


@pytest.mark.asyncio
async def test_login_callback_provider_error(
    service: ThirdPartyService, wechat: Any, db_session: AsyncSession
) -> None:
    wechat.token_error = {"errcode": 40029, "errmsg": "invalid code"}

    with pytest.raises(AppException) as excinfo:
        await service.handle_login_callback("bad-code", RETURN_URL)

    assert excinfo.value.error is ThirdPartyError.PROVIDER_ERROR
    assert (
        await service.identity_repo.get_by_subject(
            ThirdPartyType.WECHAT, "openid-001", "unionid-001"
        )
        is None
    )


# ------------------------------------------------------------------------------
# 注册或绑定
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_complete_bind_registers_new_user(
    service: ThirdPartyService, wechat: Any, redis: Any
) -> None:
    identity_id = await scan_unbound(service)

    outcome = await service.complete_bind(identity_id, "newbie", "newbie-pass")

    assert outcome.user_created is True
    assert outcome.token is not None
    assert redis.store

    created = await service.user_repo.get_by_username("newbie")
    assert created is not None
    assert created.id == outcome.user_id
    assert created.nickname == "微信用户"
    assert created.avatar == wechat.head_image

    assert (await fresh(service, identity_id)).user_id == outcome.user_id


@pytest.mark.asyncio
async def test_complete_bind_truncates_long_provider_nickname(
    service: ThirdPartyService, wechat: Any
) -> None:
    wechat.nickname = "N" * 60
    identity_id = await scan_unbound(service)

    outcome = await service.complete_bind(identity_id, "newbie_01", "newbie-pass")

    created = await service.user_repo.get_by_username("newbie_01")
    assert created is not None
    assert created.id == outcome.user_id
    assert created.nickname == "N" * NICKNAME_MAX_LENGTH
    assert (await fresh(service, identity_id)).name == "N" * 60


@pytest.mark.asyncio
async def test_complete_bind_registers_with_email_login_name(
    service: ThirdPartyService,
) -> None:
    identity_id = await scan_unbound(service)

    outcome = await service.complete_bind(identity_id, "wx@example.com", "wx-pass-1")

    created = await service.user_repo.get_by_email("wx@example.com")
    assert created is not None
    assert created.id == outcome.user_id
    assert created.username == f"weChat_{identity_id.hex[-12:]}"


@pytest.mark.asyncio
async def test_complete_bind_existing_user(
    service: ThirdPartyService, user: User, password: str
) -> None:
    user_id = user.id
    identity_id = await scan_unbound(service)

    outcome = await service.complete_bind(identity_id, "alice@example.com", password)

    assert outcome.user_created is False
    assert outcome.user_id == user_id
    assert (await fresh(service, identity_id)).user_id == user_id


@pytest.mark.asyncio
async def test_complete_bind_wrong_password(
    service: ThirdPartyService, user: User
) -> None:
    identity_id = await scan_unbound(service)

    with pytest.raises(AppException) as excinfo:
        await service.complete_bind(identity_id, "alice", "wrong-password")

    assert excinfo.value.error is AuthError.INVALID_CREDENTIALS
    assert (await fresh(service, identity_id)).user_id is None


@pytest.mark.asyncio
async def test_complete_bind_identity_already_bound(
    service: ThirdPartyService, user: User, password: str
) -> None:
    identity_id = await scan_unbound(service)
    await service.complete_bind(identity_id, "alice", password)

    with pytest.raises(AppException) as excinfo:
        await service.complete_bind(identity_id, "mallory", "mallory-pass")

    assert excinfo.value.error is ThirdPartyError.ALREADY_LINKED
    assert await service.user_repo.get_by_username("mallory") is None
    assert (await fresh(service, identity_id)).user_id == user.id


@pytest.mark.asyncio
async def test_complete_bind_user_already_linked_to_provider(
    service: ThirdPartyService, wechat: Any, user: User, password: str
) -> None:
    first_id = await scan_unbound(service)
    await service.complete_bind(first_id, "alice", password)

    wechat.open_id = "openid-002"
    wechat.union_id = "unionid-002"
    second_id = await scan_unbound(service)

    with pytest.raises(AppException) as excinfo:
        await service.complete_bind(second_id, "alice", password)

    assert excinfo.value.error is ThirdPartyError.ALREADY_LINKED
    assert (await fresh(service, second_id)).user_id is None


@pytest.mark.asyncio
async def test_complete_bind_identity_not_found(service: ThirdPartyService) -> None:
    with pytest.raises(AppException) as excinfo:
        await service.complete_bind(uuid4(), "alice", "whatever")

    assert excinfo.value.error is ThirdPartyError.IDENTITY_NOT_FOUND


@pytest.mark.asyncio
async def test_complete_bind_keeps_link_when_session_store_fails(
    service: ThirdPartyService, redis: Any
) -> None:
    identity_id = await scan_unbound(service)
    redis.fail = True

    outcome = await service.complete_bind(identity_id, "newbie", "newbie-pass")

    assert outcome.token is None
    assert outcome.user_created is True
    assert (await fresh(service, identity_id)).user_id == outcome.user_id


# ------------------------------------------------------------------------------
# 已登录用户扫码绑定
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_bind_state_requires_password(
    service: ThirdPartyService, user: User
) -> None:
    with pytest.raises(AppException) as excinfo:
        await service.create_bind_state(user, "wrong-password", RETURN_URL)

    assert excinfo.value.error is AuthError.INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_create_bind_state(
    service: ThirdPartyService, user: User, password: str
) -> None:
    state, authorize_url = await service.create_bind_state(user, password, RETURN_URL)

    assert state == generate_bind_state(user.id)
    assert authorize_url.endswith("#wechat_redirect")
    params = httpx.URL(authorize_url.removesuffix("#wechat_redirect")).params
    assert params["state"] == state
    assert params["redirect_uri"].startswith(settings.WECHAT_BIND_REDIRECT_URI)


@pytest.mark.asyncio
@pytest.mark.parametrize("state", [None, "", "deadbeef"])
async def test_bind_rejects_bad_state_without_provider_call(
    service: ThirdPartyService, wechat: Any, user: User, state: str | None
) -> None:
    outcome = await service.bind_existing_login_user(user, "auth-code", state, RETURN_URL)

    assert outcome.state == LinkFlowState.BIND_REJECTED_BAD_STATE
    assert outcome.status == BindStatus.BAD_STATE
    params = httpx.URL(outcome.redirect_url).params
    assert params["type"] == "wechat"
    assert params["status"] == "2"
    assert wechat.calls == []


@pytest.mark.asyncio
async def test_bind_rejects_state_of_other_user(
    service: ThirdPartyService, wechat: Any, user: User, create_user: CreateUser
) -> None:
    bob = await create_user("bob")

    outcome = await service.bind_existing_login_user(
        user, "auth-code", generate_bind_state(bob.id), RETURN_URL
    )

    assert outcome.status == BindStatus.BAD_STATE
    assert wechat.calls == []


@pytest.mark.asyncio
async def test_bind_existing_login_user_success_and_idempotent(
    service: ThirdPartyService, user: User
) -> None:
    user_id = user.id
    state = generate_bind_state(user_id)

    first = await service.bind_existing_login_user(user, "auth-code", state, RETURN_URL)
    second = await service.bind_existing_login_user(user, "auth-code", state, RETURN_URL)

    assert first.status == BindStatus.SUCCESS
    assert second.status == BindStatus.SUCCESS
    assert httpx.URL(first.redirect_url).params["status"] == "1"

    links = await service.list_links(user)
    assert len(links) == 1
    assert links[0].user_id == user_id


@pytest.mark.asyncio
async def test_bind_identity_linked_to_other_user(
    service: ThirdPartyService, user: User, create_user: CreateUser, password: str
) -> None:
    bob = await create_user("bob")
    bob_id = bob.id
    identity_id = await scan_unbound(service)
    await service.complete_bind(identity_id, "bob", password)

    outcome = await service.bind_existing_login_user(
        user, "auth-code", generate_bind_state(user.id), RETURN_URL
    )

    assert outcome.state == LinkFlowState.BIND_REJECTED_ALREADY_LINKED
    assert outcome.status == BindStatus.ALREADY_LINKED
    assert httpx.URL(outcome.redirect_url).params["status"] == "3"
    assert (await fresh(service, identity_id)).user_id == bob_id


@pytest.mark.asyncio
async def test_bind_user_already_linked_to_provider(
    service: ThirdPartyService, wechat: Any, user: User
) -> None:
    state = generate_bind_state(user.id)
    await service.bind_existing_login_user(user, "auth-code", state, RETURN_URL)

    wechat.open_id = "openid-002"
    wechat.union_id = "unionid-002"
    outcome = await service.bind_existing_login_user(user, "auth-code", state, RETURN_URL)

    assert outcome.status == BindStatus.ALREADY_LINKED
    second = await service.identity_repo.get_by_subject(
        ThirdPartyType.WECHAT, "openid-002", "unionid-002"
    )
    assert second is not None
    assert second.user_id is None


# ------------------------------------------------------------------------------
# 解绑与查询
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unbind(service: ThirdPartyService, user: User, password: str) -> None:
    await service.bind_existing_login_user(
        user, "auth-code", generate_bind_state(user.id), RETURN_URL
    )
    assert await service.is_bound("alice", ThirdPartyType.WECHAT) is True

    assert await service.unbind(user, ThirdPartyType.WECHAT, password) is True
    assert await service.is_bound("alice", ThirdPartyType.WECHAT) is False

    # 未绑定时同样成功
    assert await service.unbind(user, ThirdPartyType.WECHAT, password) is False


@pytest.mark.asyncio
async def test_unbind_wrong_password(service: ThirdPartyService, user: User) -> None:
    await service.bind_existing_login_user(
        user, "auth-code", generate_bind_state(user.id), RETURN_URL
    )

    with pytest.raises(AppException) as excinfo:
        await service.unbind(user, ThirdPartyType.WECHAT, "wrong-password")

    assert excinfo.value.error is AuthError.INVALID_CREDENTIALS
    assert await service.is_bound("alice", ThirdPartyType.WECHAT) is True


@pytest.mark.asyncio
async def test_is_bound_by_any_login_name(
    service: ThirdPartyService, user: User
) -> None:
    assert await service.is_bound("alice@example.com", ThirdPartyType.WECHAT) is False

    await service.bind_existing_login_user(
        user, "auth-code", generate_bind_state(user.id), RETURN_URL
    )

    assert await service.is_bound("alice@example.com", ThirdPartyType.WECHAT) is True
    assert await service.is_bound("alice", ThirdPartyType.WEIBO) is False
    assert await service.is_bound("nobody", ThirdPartyType.WECHAT) is False


@pytest.mark.asyncio
async def test_get_wechat_info(service: ThirdPartyService, user: User) -> None:
    with pytest.raises(AppException) as excinfo:
        await service.get_wechat_info(user.id)
    assert excinfo.value.error is ThirdPartyError.IDENTITY_NOT_FOUND

    await service.bind_existing_login_user(
        user, "auth-code", generate_bind_state(user.id), RETURN_URL
    )

    info = await service.get_wechat_info(user.id)
    assert info.open_id == "openid-001"

    by_union = await service.get_wechat_info_by_union_id("unionid-001")
    assert by_union.id == info.id

    with pytest.raises(AppException):
        await service.get_wechat_info_by_union_id("unionid-missing")


# ------------------------------------------------------------------------------
# 跳转地址校验
# ------------------------------------------------------------------------------


def test_check_return_url_defaults(service: ThirdPartyService) -> None:
    assert service.check_return_url(None, "https://app.example.com/login") == (
        "https://app.example.com/login"
    )
    assert service.check_return_url(RETURN_URL, "unused") == RETURN_URL


@pytest.mark.parametrize(
    "return_url",
    ["https://evil.example.org/steal", "javascript:alert(1)", "//app.example.com/x"],
)
def test_check_return_url_rejects_foreign_targets(
    service: ThirdPartyService, return_url: str
) -> None:
    with pytest.raises(AppException) as excinfo:
        service.check_return_url(return_url, "unused")

    assert excinfo.value.error is ThirdPartyError.INVALID_RETURN_URL


# ------------------------------------------------------------------------------
# 并发回调
# ------------------------------------------------------------------------------


class RacingIdentityRepository(ThirdPartyIdentityRepository):
    """首次按主体查询未命中后，另一会话抢先插入同一身份"""

    def __init__(
        self, *args: Any, rival: Callable[[], Awaitable[None]], **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self.rival: Callable[[], Awaitable[None]] | None = rival

    async def get_by_subject(
        self, third_party_type: str, open_id: str, union_id: str | None
    ) -> ThirdPartyIdentity | None:
        identity = await super().get_by_subject(third_party_type, open_id, union_id)
        if self.rival is not None:
            rival, self.rival = self.rival, None
            await rival()
        return identity


@pytest.mark.asyncio
async def test_resolve_identity_rereads_concurrent_insert(
    service: ThirdPartyService,
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    rival_ids: list[UUID] = []

    async def rival_insert() -> None:
        async with session_factory() as rival:
            identity = ThirdPartyIdentity(
                third_party_type=ThirdPartyType.WECHAT,
                open_id="openid-001",
                union_id="unionid-001",
                name="并发回调",
            )
            rival.add(identity)
            await rival.commit()
            rival_ids.append(identity.id)

    service.identity_repo = RacingIdentityRepository(
        model=ThirdPartyIdentity, session=db_session, rival=rival_insert
    )
    profile = ProviderProfile(
        open_id="openid-001",
        union_id="unionid-001",
        name="微信用户",
        head_image_url=None,
        raw={"openid": "openid-001"},
    )

    identity = await service.resolve_identity(ThirdPartyType.WECHAT, profile)

    assert rival_ids and identity.id == rival_ids[0]
    assert identity.name == "微信用户"

    total = await db_session.execute(
        select(func.count()).select_from(ThirdPartyIdentity)
    )
    assert total.scalar_one() == 1
