"""
File: passport/domains/activation_codes/dependencies.py
Description: 激活码领域依赖注入 (DI)

依赖链：
DBSession → ActivationCodeRepository / UsageRecordRepository
UserRepoDep ─┘
→ ActivationCodeService → ActivationCodeServiceDep

Author: jinmozhe
Created: 2026-03-02
"""

from typing import Annotated

from fastapi import Depends

from passport.api.deps import DBSession
from passport.db.models.activation_code import (
    ActivationCode,
    ActivationCodeUsageRecord,
)
from passport.domains.activation_codes.repository import (
    ActivationCodeRepository,
    UsageRecordRepository,
)
from passport.domains.activation_codes.service import ActivationCodeService
from passport.domains.users.dependencies import UserRepoDep


async def get_activation_code_service(
    session: DBSession, user_repo: UserRepoDep
) -> ActivationCodeService:
    return ActivationCodeService(
        code_repo=ActivationCodeRepository(model=ActivationCode, session=session),
        record_repo=UsageRecordRepository(
            model=ActivationCodeUsageRecord, session=session
        ),
        user_repo=user_repo,
    )


ActivationCodeServiceDep = Annotated[
    ActivationCodeService, Depends(get_activation_code_service)
]
