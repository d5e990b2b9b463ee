"""
File: passport/domains/third_party/dependencies.py
Description: 第三方领域依赖注入 (DI)

依赖链：
DBSession → ThirdPartyIdentityRepository ─┐
UserRepoDep / UserServiceDep / AuthServiceDep ─┤→ ThirdPartyService
httpx.AsyncClient → WeChatClient ─┘

Author: jinmozhe
Created: 2026-03-02
"""

from typing import Annotated

import httpx
from fastapi import Depends

from passport.api.deps import DBSession
from passport.core.http import get_http_client
from passport.db.models.third_party_identity import ThirdPartyIdentity
from passport.domains.auth.dependencies import AuthServiceDep
from passport.domains.third_party.client import WeChatClient
from passport.domains.third_party.repository import ThirdPartyIdentityRepository
from passport.domains.third_party.service import ThirdPartyService
from passport.domains.users.dependencies import UserRepoDep, UserServiceDep


async def get_wechat_client(
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> WeChatClient:
    return WeChatClient(http_client=http_client)


WeChatClientDep = Annotated[WeChatClient, Depends(get_wechat_client)]


async def get_third_party_service(
    session: DBSession,
    user_repo: UserRepoDep,
    user_service: UserServiceDep,
    auth_service: AuthServiceDep,
    wechat_client: WeChatClientDep,
) -> ThirdPartyService:
    return ThirdPartyService(
        identity_repo=ThirdPartyIdentityRepository(
            model=ThirdPartyIdentity, session=session
        ),
        user_repo=user_repo,
        user_service=user_service,
        auth_service=auth_service,
        wechat_client=wechat_client,
    )


ThirdPartyServiceDep = Annotated[ThirdPartyService, Depends(get_third_party_service)]
