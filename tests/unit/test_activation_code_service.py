"""
File: tests/unit/test_activation_code_service.py
Description: 激活码引擎单元测试

本模块覆盖 ActivationCodeService 的核心业务规则：
1. 批量创建 (批次内/库内碰撞重试，重试耗尽跳过)
2. 兑换 (原子扣减、使用记录、内测资格位、生效窗口)
3. 用户邀请码 (有且仅有一个)
4. 可用次数调整与批量改状态
5. 并发竞争 (最后一次兑换、邀请码首次创建、插入碰撞)

Author: jinmozhe
Created: 2026-03-02
"""

from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from passport.core.config import settings
from passport.core.exceptions import AppException
from passport.db.models.activation_code import (
    ActivationCode,
    ActivationCodeStatus,
    ActivationCodeUsageRecord,
)
from passport.db.models.user import User, UserType
from passport.domains.activation_codes.constants import ActivationCodeError
from passport.domains.activation_codes.repository import (
    ActivationCodeRepository,
    UsageRecordRepository,
)
from passport.domains.activation_codes.schemas import (
    ActivationCodeQuery,
    BatchCreateRequest,
    BatchUpdateRequest,
    UsageRecordQuery,
)
from passport.domains.activation_codes.service import ActivationCodeService
from passport.domains.users.constants import UserErrorCode
from passport.domains.users.repository import UserRepository

CreateUser = Callable[..., Awaitable[User]]

# ------------------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------------------


def build_service(
    session: AsyncSession, codes: Iterable[str] | None = None
) -> ActivationCodeService:
    """构造服务实例；传入 codes 时按顺序产出固定激活码"""
    kwargs = {}
    if codes is not None:
        sequence = iter(codes)
        kwargs["code_generator"] = lambda: next(sequence)
    return ActivationCodeService(
        code_repo=ActivationCodeRepository(model=ActivationCode, session=session),
        record_repo=UsageRecordRepository(
            model=ActivationCodeUsageRecord, session=session
        ),
        user_repo=UserRepository(model=User, session=session),
        **kwargs,
    )


@pytest.fixture
def service(db_session: AsyncSession) -> ActivationCodeService:
    return build_service(db_session)


async def create_one(
    service: ActivationCodeService, **kwargs: object
) -> ActivationCode:
    codes = await service.batch_create(BatchCreateRequest(quantity=1, **kwargs))
    assert len(codes) == 1
    return codes[0]


# ------------------------------------------------------------------------------
# 批量创建
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_batch_create_generates_unique_codes(
    service: ActivationCodeService,
) -> None:
    codes = await service.batch_create(
        BatchCreateRequest(quantity=5, limit_count=3, remark="首批内测")
    )

    assert len(codes) == 5
    assert len({c.code for c in codes}) == 5
    for c in codes:
        assert len(c.code) == settings.ACTIVATION_CODE_LENGTH
        assert c.status == ActivationCodeStatus.UNUSED
        assert c.limit_count == 3
        assert c.remark == "首批内测"


@pytest.mark.asyncio
async def test_batch_create_skips_duplicates_within_batch(
    db_session: AsyncSession,
) -> None:
    service = build_service(db_session, ["AAAA1111", "AAAA1111", "BBBB2222"])

    codes = await service.batch_create(BatchCreateRequest(quantity=2))

    assert [c.code for c in codes] == ["AAAA1111", "BBBB2222"]


@pytest.mark.asyncio
async def test_batch_create_skips_existing_codes(db_session: AsyncSession) -> None:
    await build_service(db_session, ["CCCC3333"]).batch_create(
        BatchCreateRequest(quantity=1)
    )

    service = build_service(db_session, ["CCCC3333", "DDDD4444"])
    codes = await service.batch_create(BatchCreateRequest(quantity=1))

    assert [c.code for c in codes] == ["DDDD4444"]


@pytest.mark.asyncio
async def test_batch_create_skips_code_when_retries_exhausted(
    db_session: AsyncSession,
) -> None:
    await build_service(db_session, ["EEEE5555"]).batch_create(
        BatchCreateRequest(quantity=1)
    )

    # 生成器永远产出已存在的激活码
    service = ActivationCodeService(
        code_repo=ActivationCodeRepository(model=ActivationCode, session=db_session),
        record_repo=UsageRecordRepository(
            model=ActivationCodeUsageRecord, session=db_session
        ),
        user_repo=UserRepository(model=User, session=db_session),
        code_generator=lambda: "EEEE5555",
    )
    codes = await service.batch_create(BatchCreateRequest(quantity=1))

    assert codes == []


@pytest.mark.asyncio
async def test_batch_create_rejects_quantity_out_of_range(
    service: ActivationCodeService,
) -> None:
    obj_in = BatchCreateRequest.model_construct(quantity=0, limit_count=1)

    with pytest.raises(AppException) as excinfo:
        await service.batch_create(obj_in)

    assert excinfo.value.error is ActivationCodeError.BATCH_LIMIT


# ------------------------------------------------------------------------------
# 兑换
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_redeem_grants_qualification_and_records_usage(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    bob = await create_user("bob")
    activation_code = await create_one(service, limit_count=1)

    redeemed = await service.redeem(activation_code.code, bob)

    assert redeemed.limit_count == 0
    assert redeemed.status == ActivationCodeStatus.USED
    assert bob.has_user_type(UserType.TEST_QUALIFIED)

    records, total = await service.find_used_record_interval_list(
        UsageRecordQuery(code=activation_code.code)
    )
    assert total == 1
    assert records[0].user_id == bob.id
    assert records[0].username == "bob"


@pytest.mark.asyncio
async def test_redeem_multi_use_code_until_exhausted(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    activation_code = await create_one(service, limit_count=2)
    bob = await create_user("bob")
    carol = await create_user("carol")
    dave = await create_user("dave")

    first = await service.redeem(activation_code.code, bob)
    assert first.limit_count == 1
    assert first.status == ActivationCodeStatus.UNUSED

    second = await service.redeem(activation_code.code, carol)
    assert second.limit_count == 0
    assert second.status == ActivationCodeStatus.USED

    with pytest.raises(AppException) as excinfo:
        await service.redeem(activation_code.code, dave)
    assert excinfo.value.error is ActivationCodeError.INELIGIBLE
    assert not dave.has_user_type(UserType.TEST_QUALIFIED)

    _, total = await service.find_used_record_interval_list(
        UsageRecordQuery(code=activation_code.code)
    )
    assert total == 2


@pytest.mark.asyncio
async def test_redeem_unknown_code_is_ineligible(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    bob = await create_user("bob")

    with pytest.raises(AppException) as excinfo:
        await service.redeem("NoSuch00", bob)

    assert excinfo.value.error is ActivationCodeError.INELIGIBLE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("start_offset", "end_offset"),
    [
        (None, timedelta(days=-1)),  # 已过期
        (timedelta(days=1), None),  # 尚未生效
    ],
)
async def test_redeem_outside_effective_window(
    service: ActivationCodeService,
    create_user: CreateUser,
    start_offset: timedelta | None,
    end_offset: timedelta | None,
) -> None:
    now = datetime.now(UTC)
    activation_code = await create_one(
        service,
        start_effective_date=now + start_offset if start_offset else None,
        end_effective_date=now + end_offset if end_offset else None,
    )
    bob = await create_user("bob")

    with pytest.raises(AppException) as excinfo:
        await service.redeem(activation_code.code, bob)

    assert excinfo.value.error is ActivationCodeError.INELIGIBLE
    unchanged = await service.get_by_code(activation_code.code)
    assert unchanged.limit_count == 1


@pytest.mark.asyncio
async def test_redeem_inside_effective_window(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    now = datetime.now(UTC)
    activation_code = await create_one(
        service,
        start_effective_date=now - timedelta(days=1),
        end_effective_date=now + timedelta(days=1),
    )
    bob = await create_user("bob")

    redeemed = await service.redeem(activation_code.code, bob)

    assert redeemed.status == ActivationCodeStatus.USED


@pytest.mark.asyncio
async def test_redeem_disabled_code_is_ineligible(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    activation_code = await create_one(service)
    await service.batch_update(
        BatchUpdateRequest(
            codes=[activation_code.code], status=ActivationCodeStatus.DISABLED
        )
    )
    bob = await create_user("bob")

    with pytest.raises(AppException) as excinfo:
        await service.redeem(activation_code.code, bob)

    assert excinfo.value.error is ActivationCodeError.INELIGIBLE


@pytest.mark.asyncio
async def test_redeem_rejects_already_qualified_user(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    bob = await create_user("bob")
    first = await create_one(service)
    second = await create_one(service)
    await service.redeem(first.code, bob)

    with pytest.raises(AppException) as excinfo:
        await service.redeem(second.code, bob)

    assert excinfo.value.error is ActivationCodeError.ALREADY_QUALIFIED
    untouched = await service.get_by_code(second.code)
    assert untouched.limit_count == 1
    assert untouched.status == ActivationCodeStatus.UNUSED


# ------------------------------------------------------------------------------
# 用户邀请码
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_find_or_create_user_code_is_idempotent(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    bob = await create_user("bob")

    first = await service.find_or_create_user_activation_code(bob)
    second = await service.find_or_create_user_activation_code(bob)

    assert first.id == second.id
    assert first.code == second.code
    assert first.owner_user_id == bob.id
    assert first.owner_username == "bob"
    assert first.limit_count == settings.USER_ACTIVATION_CODE_DEFAULT_LIMIT


@pytest.mark.asyncio
async def test_user_codes_are_distinct_per_user(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    bob = await create_user("bob")
    carol = await create_user("carol")

    bob_code = await service.find_or_create_user_activation_code(bob)
    carol_code = await service.find_or_create_user_activation_code(carol)

    assert bob_code.code != carol_code.code


# ------------------------------------------------------------------------------
# 可用次数调整
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_adjust_limit_count_reopens_used_code(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    activation_code = await create_one(service, limit_count=1)
    await service.redeem(activation_code.code, await create_user("bob"))

    assert await service.adjust_limit_count(activation_code.code, 2) is True

    reopened = await service.get_by_code(activation_code.code)
    assert reopened.limit_count == 2
    assert reopened.status == ActivationCodeStatus.UNUSED


@pytest.mark.asyncio
async def test_adjust_limit_count_keeps_disabled_code_disabled(
    service: ActivationCodeService,
) -> None:
    activation_code = await create_one(service)
    await service.batch_update(
        BatchUpdateRequest(
            codes=[activation_code.code], status=ActivationCodeStatus.DISABLED
        )
    )

    await service.adjust_limit_count(activation_code.code, 3)

    refreshed = await service.get_by_code(activation_code.code)
    assert refreshed.limit_count == 4
    assert refreshed.status == ActivationCodeStatus.DISABLED


@pytest.mark.asyncio
async def test_adjust_limit_count_unknown_code(service: ActivationCodeService) -> None:
    assert await service.adjust_limit_count("NoSuch00", 1) is False


@pytest.mark.asyncio
async def test_adjust_user_limit_count_creates_code_on_demand(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    bob = await create_user("bob")

    adjusted = await service.adjust_user_limit_count(bob.id, -2)

    assert adjusted.owner_user_id == bob.id
    assert adjusted.limit_count == settings.USER_ACTIVATION_CODE_DEFAULT_LIMIT - 2


@pytest.mark.asyncio
async def test_adjust_user_limit_count_unknown_user(
    service: ActivationCodeService,
) -> None:
    with pytest.raises(AppException) as excinfo:
        await service.adjust_user_limit_count(uuid4(), 1)

    assert excinfo.value.error is UserErrorCode.USER_NOT_FOUND


# ------------------------------------------------------------------------------
# 批量改状态 / 查询
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_batch_update_rejects_used_status(service: ActivationCodeService) -> None:
    activation_code = await create_one(service)

    with pytest.raises(AppException) as excinfo:
        await service.batch_update(
            BatchUpdateRequest(
                codes=[activation_code.code], status=ActivationCodeStatus.USED
            )
        )

    assert excinfo.value.error is ActivationCodeError.INVALID_STATUS


@pytest.mark.asyncio
async def test_batch_update_ignores_unknown_codes(
    service: ActivationCodeService,
) -> None:
    activation_code = await create_one(service)

    matched = await service.batch_update(
        BatchUpdateRequest(
            codes=[activation_code.code, "ZZZZ9999"],
            status=ActivationCodeStatus.DISABLED,
            remark="回收",
        )
    )

    assert matched == 1
    refreshed = await service.get_by_code(activation_code.code)
    assert refreshed.status == ActivationCodeStatus.DISABLED
    assert refreshed.remark == "回收"


@pytest.mark.asyncio
async def test_get_by_code_not_found(service: ActivationCodeService) -> None:
    with pytest.raises(AppException) as excinfo:
        await service.get_by_code("NoSuch00")

    assert excinfo.value.error is ActivationCodeError.NOT_FOUND


@pytest.mark.asyncio
async def test_find_interval_list_filters(
    service: ActivationCodeService, create_user: CreateUser
) -> None:
    await service.batch_create(BatchCreateRequest(quantity=3))
    bob = await create_user("bob")
    bob_code = await service.find_or_create_user_activation_code(bob)

    items, total = await service.find_interval_list(ActivationCodeQuery(keywords="bo"))
    assert total == 1
    assert items[0].code == bob_code.code

    items, total = await service.find_interval_list(
        ActivationCodeQuery(keywords=bob_code.code)
    )
    assert [c.code for c in items] == [bob_code.code]

    _, total = await service.find_interval_list(
        ActivationCodeQuery(status=ActivationCodeStatus.UNUSED, limit=2)
    )
    assert total == 4

    items, total = await service.find_interval_list(
        ActivationCodeQuery(status=ActivationCodeStatus.DISABLED)
    )
    assert total == 0
    assert items == []


# ------------------------------------------------------------------------------
# 并发竞争
# 另一个会话在 "预检查" 与 "写入" 之间抢先提交
# ------------------------------------------------------------------------------


class RacingCodeRepository(ActivationCodeRepository):
    """在指定读操作返回前执行一次竞争方写入"""

    def __init__(
        self, *args: Any, rival: Callable[[], Awaitable[None]], **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self.rival: Callable[[], Awaitable[None]] | None = rival

    async def _run_rival(self) -> None:
        if self.rival is not None:
            rival, self.rival = self.rival, None
            await rival()

    async def consume_one(self, code: str, now: datetime) -> bool:
        await self._run_rival()
        return await super().consume_one(code, now)

    async def code_exists(self, code: str) -> bool:
        exists = await super().code_exists(code)
        await self._run_rival()
        return exists


def build_racing_service(
    session: AsyncSession,
    rival: Callable[[], Awaitable[None]],
    codes: Iterable[str] | None = None,
) -> ActivationCodeService:
    service = build_service(session, codes)
    service.code_repo = RacingCodeRepository(
        model=ActivationCode, session=session, rival=rival
    )
    return service


async def count_rows(session: AsyncSession, *criteria: Any) -> int:
    stmt = select(func.count()).select_from(ActivationCode).where(*criteria)
    return (await session.execute(stmt)).scalar_one()


@pytest.mark.asyncio
async def test_redeem_loses_race_for_last_use(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    user: User,
    create_user: CreateUser,
) -> None:
    code = (await create_one(build_service(db_session), limit_count=1)).code
    user_id = user.id
    bob_id = (await create_user("bob")).id

    async def rival_redeem() -> None:
        async with session_factory() as rival:
            bob = await rival.get(User, bob_id)
            assert bob is not None
            await build_service(rival).redeem(code, bob)

    service = build_racing_service(db_session, rival_redeem)

    with pytest.raises(AppException) as excinfo:
        await service.redeem(code, user)

    assert excinfo.value.error is ActivationCodeError.INELIGIBLE

    final = await service.code_repo.get_by_code(code)
    assert final is not None
    assert final.limit_count == 0
    assert final.status == ActivationCodeStatus.USED

    records = await db_session.execute(
        select(ActivationCodeUsageRecord).where(ActivationCodeUsageRecord.code == code)
    )
    assert [r.user_id for r in records.scalars()] == [bob_id]

    loser = await db_session.get(User, user_id, populate_existing=True)
    assert loser is not None
    assert not loser.has_user_type(UserType.TEST_QUALIFIED)


@pytest.mark.asyncio
async def test_find_or_create_user_code_returns_concurrent_winner(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    user: User,
) -> None:
    user_id = user.id
    winner_codes: list[str] = []

    async def rival_create() -> None:
        async with session_factory() as rival:
            alice = await rival.get(User, user_id)
            assert alice is not None
            created = await build_service(rival).find_or_create_user_activation_code(
                alice
            )
            winner_codes.append(created.code)

    service = build_racing_service(db_session, rival_create, ["LOSE0000"])

    result = await service.find_or_create_user_activation_code(user)

    assert winner_codes and result.code == winner_codes[0]
    assert result.code != "LOSE0000"
    assert await count_rows(db_session, ActivationCode.owner_user_id == user_id) == 1


@pytest.mark.asyncio
async def test_batch_create_regenerates_after_insert_collision(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async def rival_insert() -> None:
        async with session_factory() as rival:
            await build_service(rival, ["DDDD4444"]).batch_create(
                BatchCreateRequest(quantity=1)
            )

    # 预检查之后竞争方写入同一激活码，插入时撞上唯一约束
    service = build_racing_service(db_session, rival_insert, ["DDDD4444", "EEEE5555"])

    codes = await service.batch_create(BatchCreateRequest(quantity=1))

    assert [c.code for c in codes] == ["EEEE5555"]
    assert await count_rows(db_session, ActivationCode.code == "DDDD4444") == 1
    assert await count_rows(db_session) == 2
