"""
File: passport/domains/third_party/service.py
Description: 第三方登录/绑定领域服务

一次扫码往返的状态机 (LinkFlowState):
    INITIATED → CALLBACK_RECEIVED → IDENTITY_RESOLVED → 终态

1. handle_login_callback: 扫码登录回调。已绑定直接签发会话；未绑定跳转 "注册或绑定" 页。
2. complete_bind: 注册或绑定。登录名存在则复核密码后绑定，不存在则注册新账号并绑定。
3. bind_existing_login_user: 已登录用户在设置页扫码绑定，state 令牌防 CSRF。
4. unbind / list_links / is_bound / get_wechat_info*: 绑定关系管理与查询。

约束：
- 第三方身份每次回调都会创建或刷新 (与绑定结果无关)。
- 绑定以条件 UPDATE (user_id IS NULL) 原子完成，已绑定的身份不会被改绑。
- 一个用户对同一第三方至多绑定一个账号 (唯一约束兜底)。

Author: jinmozhe
Created: 2026-03-02
"""

from dataclasses import dataclass
from urllib.parse import urlsplit
from uuid import UUID

import httpx
from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError

from passport.core.config import settings
from passport.core.exceptions import AppException
from passport.core.logging import logger
from passport.core.security import generate_bind_state, verify_bind_state
from passport.db.models.third_party_identity import (
    IDENTITY_STATUS_ACTIVE,
    ThirdPartyIdentity,
)
from passport.db.models.user import User
from passport.domains.auth.constants import AuthError
from passport.domains.auth.schemas import Token
from passport.domains.auth.service import AuthService
from passport.domains.third_party.client import ProviderProfile, WeChatClient
from passport.domains.third_party.constants import (
    BIND_STATUS_BY_STATE,
    REDIRECT_TYPE_WECHAT,
    BindStatus,
    LinkFlowState,
    ThirdPartyError,
    ThirdPartyType,
)
from passport.domains.third_party.repository import ThirdPartyIdentityRepository
from passport.domains.users.constants import UserErrorCode
from passport.domains.users.repository import UserRepository
from passport.domains.users.schemas import (
    E164_PATTERN,
    NICKNAME_MAX_LENGTH,
    UserCreate,
)
from passport.domains.users.service import UserService
from passport.utils.masking import mask_login_name


@dataclass
class LoginCallbackOutcome:
    state: LinkFlowState
    redirect_url: str
    token: Token | None = None


@dataclass
class BindOutcome:
    user_id: UUID
    user_created: bool
    token: Token | None


@dataclass
class BindCallbackOutcome:
    state: LinkFlowState
    redirect_url: str

    @property
    def status(self) -> BindStatus:
        return BIND_STATUS_BY_STATE[self.state]


def append_query(url: str, params: dict[str, str | int]) -> str:
    return str(httpx.URL(url).copy_merge_params(params))


class ThirdPartyService:
    """
    第三方身份协调器。
    """

    def __init__(
        self,
        identity_repo: ThirdPartyIdentityRepository,
        user_repo: UserRepository,
        user_service: UserService,
        auth_service: AuthService,
        wechat_client: WeChatClient,
    ):
        self.identity_repo = identity_repo
        self.user_repo = user_repo
        self.user_service = user_service
        self.auth_service = auth_service
        self.wechat_client = wechat_client
        self.session = identity_repo.session

    # --------------------------------------------------------------------------
    # 跳转地址
    # --------------------------------------------------------------------------

    def check_return_url(self, return_url: str | None, default: str) -> str:
        """
        校验回调跳转地址，防止开放重定向。
        """
        if not return_url:
            return default
        parts = urlsplit(return_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise AppException(ThirdPartyError.INVALID_RETURN_URL)
        allowed = settings.RETURN_URL_ALLOWED_HOSTS
        if allowed and parts.hostname not in allowed:
            raise AppException(ThirdPartyError.INVALID_RETURN_URL)
        return return_url

    def login_authorize_url(self, return_url: str) -> str:
        redirect_uri = append_query(
            settings.WECHAT_LOGIN_REDIRECT_URI, {"return_url": return_url}
        )
        return self.wechat_client.build_authorize_url(redirect_uri)

    async def create_bind_state(
        self, user: User, password: str, return_url: str
    ) -> tuple[str, str]:
        """
        已登录用户发起绑定：复核密码后签发 state 并生成授权地址。
        """
        await self.auth_service.verify_user_password(user, password)
        state = generate_bind_state(user.id)
        redirect_uri = append_query(
            settings.WECHAT_BIND_REDIRECT_URI, {"return_url": return_url}
        )
        authorize_url = self.wechat_client.build_authorize_url(redirect_uri, state)
        logger.bind(user_id=str(user.id), flow_state=LinkFlowState.INITIATED).info(
            "Third party bind initiated"
        )
        return state, authorize_url

    # --------------------------------------------------------------------------
    # 身份解析
    # --------------------------------------------------------------------------

    async def resolve_identity(
        self, third_party_type: str, profile: ProviderProfile
    ) -> ThirdPartyIdentity:
        """
        创建或刷新第三方身份 (昵称/头像/原始快照)。
        并发回调同时插入时，唯一约束失败方回滚后重新读取。
        """
        fields = {
            "name": profile.name,
            "head_image": profile.head_image_url,
            "extra_data": profile.raw,
            "status": IDENTITY_STATUS_ACTIVE,
        }
        if profile.union_id:
            fields["union_id"] = profile.union_id

        for _ in range(2):
            identity = await self.identity_repo.get_by_subject(
                third_party_type, profile.open_id, profile.union_id
            )
            if identity is not None:
                await self.identity_repo.update(identity, fields)
                await self.session.commit()
                return identity

            try:
                identity = await self.identity_repo.create(
                    {
                        **fields,
                        "third_party_type": third_party_type,
                        "open_id": profile.open_id,
                        "union_id": profile.union_id,
                    }
                )
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                logger.info("Third party identity created concurrently, re-reading")
                continue
            return identity

        raise AppException(ThirdPartyError.PROVIDER_ERROR)

    async def _exchange_and_resolve(self, auth_code: str) -> ThirdPartyIdentity:
        logger.bind(flow_state=LinkFlowState.CALLBACK_RECEIVED).debug(
            "Third party callback received"
        )
        profile = await self.wechat_client.exchange_code(auth_code)
        identity = await self.resolve_identity(ThirdPartyType.WECHAT, profile)
        logger.bind(
            identity_id=str(identity.id),
            bound=identity.is_bound,
            flow_state=LinkFlowState.IDENTITY_RESOLVED,
        ).info("Third party identity resolved")
        return identity

    # --------------------------------------------------------------------------
    # 扫码登录
    # --------------------------------------------------------------------------

    async def handle_login_callback(
        self, auth_code: str, return_url: str
    ) -> LoginCallbackOutcome:
        """
        扫码登录回调。

        已绑定：签发会话，跳转 return_url。
        未绑定：跳转前端 "注册或绑定" 页，携带 identityId 与 returnUrl。
        """
        identity = await self._exchange_and_resolve(auth_code)

        if identity.user_id is None:
            redirect_url = append_query(
                settings.FRONTEND_BIND_URL,
                {"identityId": str(identity.id), "returnUrl": return_url},
            )
            logger.bind(
                identity_id=str(identity.id), flow_state=LinkFlowState.BIND_REQUIRED
            ).info("Third party identity not bound, redirecting to bind page")
            return LoginCallbackOutcome(
                state=LinkFlowState.BIND_REQUIRED, redirect_url=redirect_url
            )

        user = await self.user_repo.get(identity.user_id)
        if user is None or user.is_deleted:
            raise AppException(UserErrorCode.USER_NOT_FOUND)
        if not user.is_active:
            raise AppException(AuthError.ACCOUNT_LOCKED)

        token = await self.auth_service.issue_session(user)
        logger.bind(user_id=str(user.id), flow_state=LinkFlowState.LOGGED_IN).info(
            "Third party login succeeded"
        )
        return LoginCallbackOutcome(
            state=LinkFlowState.LOGGED_IN, redirect_url=return_url, token=token
        )

    # --------------------------------------------------------------------------
    # 注册或绑定
    # --------------------------------------------------------------------------

    def _build_user_create(
        self, identity: ThirdPartyIdentity, login_name: str, password: str
    ) -> UserCreate:
        """
        以登录名注册新账号：
        邮箱/手机号登录名生成形如 weChat_xxxxxxxxxxxx 的用户名。
        第三方昵称超出用户昵称长度时截断。
        """
        fallback_username = f"{identity.third_party_type}_{identity.id.hex[-12:]}"
        nickname = (identity.name or "")[:NICKNAME_MAX_LENGTH] or None
        if "@" in login_name:
            return UserCreate(
                username=fallback_username,
                email=login_name,
                password=password,
                nickname=nickname,
            )
        if E164_PATTERN.match(login_name):
            return UserCreate(
                username=fallback_username,
                phone_number=login_name,
                password=password,
                nickname=nickname,
            )
        return UserCreate(username=login_name, password=password, nickname=nickname)

    async def complete_bind(
        self, identity_id: UUID, login_name: str, password: str
    ) -> BindOutcome:
        """
        注册或绑定。

        流程:
        1. 身份不存在报错；身份已绑定报冲突 (不做任何修改)
        2. 登录名存在：复核密码，检查该用户未绑定同类第三方
        3. 登录名不存在：以第三方头像注册新账号 (与绑定同一事务)
        4. 条件 UPDATE 原子绑定并提交
        5. 签发会话；会话存储失败不回滚绑定，只返回空 Token
        """
        identity = await self.identity_repo.get_fresh(identity_id)
        if identity is None:
            raise AppException(ThirdPartyError.IDENTITY_NOT_FOUND)
        if identity.is_bound:
            raise AppException(ThirdPartyError.ALREADY_LINKED)

        third_party_type = identity.third_party_type

        user = await self.user_repo.get_by_login_name(login_name)
        if user is not None:
            await self.auth_service.verify_user_password(user, password)
            if not user.is_active:
                raise AppException(AuthError.ACCOUNT_LOCKED)
            if await self.identity_repo.get_by_user(user.id, third_party_type):
                raise AppException(ThirdPartyError.ALREADY_LINKED)
            user_created = False
        else:
            user_in = self._build_user_create(identity, login_name, password)
            user = await self.user_service.create(
                user_in, avatar=identity.head_image, commit=False
            )
            user_created = True

        user_id = user.id

        if not await self.identity_repo.bind_user(identity_id, user_id):
            await self.session.rollback()
            logger.bind(identity_id=str(identity_id)).info(
                "Third party identity bound concurrently"
            )
            raise AppException(ThirdPartyError.ALREADY_LINKED)

        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise AppException(ThirdPartyError.ALREADY_LINKED) from None

        logger.bind(
            identity_id=str(identity_id),
            user_id=str(user_id),
            user_created=user_created,
            login_name=mask_login_name(login_name),
            flow_state=LinkFlowState.BIND_COMPLETED,
        ).info("Third party identity bound")

        try:
            token = await self.auth_service.issue_session(user)
        except RedisError:
            logger.bind(user_id=str(user_id)).exception(
                "Session issuance failed after bind"
            )
            token = None

        return BindOutcome(user_id=user_id, user_created=user_created, token=token)

    # --------------------------------------------------------------------------
    # 已登录用户扫码绑定
    # --------------------------------------------------------------------------

    async def bind_existing_login_user(
        self, user: User, auth_code: str, state: str | None, return_url: str
    ) -> BindCallbackOutcome:
        """
        已登录用户扫码绑定。

        state 校验失败时不调用第三方接口、不修改任何数据 (status=2)；
        身份已绑定其他账号或用户已绑定同类第三方时 status=3；
        身份已绑定当前用户视为成功 (幂等)。
        """
        # 回滚会使会话内对象过期，先取出
        user_id = user.id

        if not verify_bind_state(user_id, state or ""):
            logger.bind(user_id=str(user_id)).warning("Bind state verification failed")
            return self._bind_outcome(LinkFlowState.BIND_REJECTED_BAD_STATE, return_url)

        identity = await self._exchange_and_resolve(auth_code)
        identity_id = identity.id
        third_party_type = identity.third_party_type

        if identity.user_id == user_id:
            return self._bind_outcome(LinkFlowState.BIND_COMPLETED, return_url)

        if identity.user_id is not None:
            logger.bind(user_id=str(user_id), identity_id=str(identity_id)).info(
                "Third party identity already linked to another user"
            )
            return self._bind_outcome(
                LinkFlowState.BIND_REJECTED_ALREADY_LINKED, return_url
            )

        if await self.identity_repo.get_by_user(user_id, third_party_type):
            logger.bind(user_id=str(user_id)).info(
                "User already linked to this third party"
            )
            return self._bind_outcome(
                LinkFlowState.BIND_REJECTED_ALREADY_LINKED, return_url
            )

        if not await self.identity_repo.bind_user(identity_id, user_id):
            await self.session.rollback()
            return self._bind_outcome(
                LinkFlowState.BIND_REJECTED_ALREADY_LINKED, return_url
            )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return self._bind_outcome(
                LinkFlowState.BIND_REJECTED_ALREADY_LINKED, return_url
            )

        logger.bind(user_id=str(user_id), identity_id=str(identity_id)).info(
            "Third party identity bound to logged in user"
        )
        return self._bind_outcome(LinkFlowState.BIND_COMPLETED, return_url)

    def _bind_outcome(self, state: LinkFlowState, return_url: str) -> BindCallbackOutcome:
        status = BIND_STATUS_BY_STATE[state]
        logger.bind(flow_state=state, status=int(status)).debug("Bind flow finished")
        redirect_url = append_query(
            return_url, {"type": REDIRECT_TYPE_WECHAT, "status": int(status)}
        )
        return BindCallbackOutcome(state=state, redirect_url=redirect_url)

    # --------------------------------------------------------------------------
    # 解绑与查询
    # --------------------------------------------------------------------------

    async def unbind(self, user: User, third_party_type: str, password: str) -> bool:
        """
        解绑 (需复核密码)。未绑定时视为成功。
        返回是否实际删除了绑定关系。
        """
        await self.auth_service.verify_user_password(user, password)
        user_id = user.id
        deleted = await self.identity_repo.delete_by_user(user_id, third_party_type)
        await self.session.commit()

        logger.bind(
            user_id=str(user_id), third_party_type=third_party_type, deleted=deleted
        ).info("Third party identity unbound")
        return deleted > 0

    async def list_links(self, user: User) -> list[ThirdPartyIdentity]:
        return await self.identity_repo.list_by_user(user.id)

    async def is_bound(self, login_name: str, third_party_type: str) -> bool:
        user = await self.user_repo.get_by_login_name(login_name)
        if user is None:
            return False
        return await self.identity_repo.has_active_link(user.id, third_party_type)

    async def get_wechat_info(self, user_id: UUID) -> ThirdPartyIdentity:
        identity = await self.identity_repo.get_by_user(user_id, ThirdPartyType.WECHAT)
        if identity is None:
            raise AppException(ThirdPartyError.IDENTITY_NOT_FOUND)
        return identity

    async def get_wechat_info_by_union_id(self, union_id: str) -> ThirdPartyIdentity:
        identity = await self.identity_repo.get_by_union_id(
            union_id, ThirdPartyType.WECHAT
        )
        if identity is None:
            raise AppException(ThirdPartyError.IDENTITY_NOT_FOUND)
        return identity
