"""
File: passport/domains/activation_codes/service.py
Description: 激活码领域服务 (激活码引擎)

本模块编排激活码的全部业务流程：
1. batch_create: 批量生成唯一激活码 (存在性检查 + UNIQUE 约束兜底重试)
2. batch_update: 批量修改状态 (仅允许 未使用 / 已停用)
3. redeem: 兑换激活码 (条件 UPDATE 原子扣减，写使用记录，授予内测资格)
4. find_or_create_user_activation_code: 每个用户有且仅有一个邀请码 (并发创建以唯一约束裁决)
5. adjust_limit_count: 有符号原子调整可用次数
6. find_interval_list / find_used_record_interval_list: 列表查询

注意：
- 事务提交/回滚由本层负责，Repository 只 flush。
- 回滚会使会话内所有对象过期，需要在回滚前读取的字段先取到局部变量。

Author: jinmozhe
Created: 2026-03-02
"""

from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from passport.core.config import settings
from passport.core.exceptions import AppException
from passport.core.logging import logger
from passport.db.models.activation_code import (
    ActivationCode,
    ActivationCodeStatus,
    ActivationCodeUsageRecord,
)
from passport.db.models.user import User, UserType
from passport.domains.activation_codes.constants import (
    BATCH_INSERT_ATTEMPTS,
    ActivationCodeError,
)
from passport.domains.activation_codes.generator import generate_code
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
from passport.domains.users.constants import UserErrorCode
from passport.domains.users.repository import UserRepository

# 批量改状态允许的目标状态 (USED 只能由兑换产生)
ASSIGNABLE_STATUSES = frozenset(
    {ActivationCodeStatus.UNUSED, ActivationCodeStatus.DISABLED}
)


def is_redeemable(activation_code: ActivationCode, now: datetime) -> bool:
    """判断激活码在 now 时刻是否可兑换"""
    if activation_code.status != ActivationCodeStatus.UNUSED:
        return False
    if activation_code.limit_count <= 0:
        return False
    start = activation_code.start_effective_date
    if start is not None and start > now:
        return False
    end = activation_code.end_effective_date
    if end is not None and end < now:
        return False
    return True


class ActivationCodeService:
    """
    激活码引擎。

    code_generator 可注入，便于测试碰撞与重试路径。
    """

    def __init__(
        self,
        code_repo: ActivationCodeRepository,
        record_repo: UsageRecordRepository,
        user_repo: UserRepository,
        code_generator: Callable[[], str] = generate_code,
    ):
        self.code_repo = code_repo
        self.record_repo = record_repo
        self.user_repo = user_repo
        self.code_generator = code_generator
        self.session = code_repo.session

    # --------------------------------------------------------------------------
    # 唯一激活码生成
    # --------------------------------------------------------------------------

    async def _generate_unique_code(self, reserved: set[str]) -> str | None:
        """
        生成一个在库中与本批次内都不存在的激活码。
        重试耗尽返回 None，由调用方决定跳过或报错。
        """
        for _ in range(settings.ACTIVATION_CODE_MAX_RETRIES):
            candidate = self.code_generator()
            if candidate in reserved:
                continue
            if await self.code_repo.code_exists(candidate):
                continue
            return candidate
        return None

    # --------------------------------------------------------------------------
    # 批量创建 / 批量更新
    # --------------------------------------------------------------------------

    async def batch_create(
        self, obj_in: BatchCreateRequest, operator_id: UUID | None = None
    ) -> list[ActivationCode]:
        """
        批量创建激活码。

        单个激活码重试耗尽只跳过该激活码并记录错误；
        插入时遇到唯一约束冲突 (并发生成了同一激活码) 则回滚并整批重新生成。
        """
        if not 1 <= obj_in.quantity <= settings.ACTIVATION_CODE_BATCH_CREATE_MAX:
            raise AppException(ActivationCodeError.BATCH_LIMIT)

        for attempt in range(1, BATCH_INSERT_ATTEMPTS + 1):
            reserved: set[str] = set()
            generated: list[str] = []
            for _ in range(obj_in.quantity):
                candidate = await self._generate_unique_code(reserved)
                if candidate is None:
                    logger.bind(attempt=attempt).error(
                        "Activation code generation retries exhausted, skipped one code"
                    )
                    continue
                reserved.add(candidate)
                generated.append(candidate)

            codes = [
                ActivationCode(
                    code=candidate,
                    status=ActivationCodeStatus.UNUSED,
                    limit_count=obj_in.limit_count,
                    start_effective_date=obj_in.start_effective_date,
                    end_effective_date=obj_in.end_effective_date,
                    remark=obj_in.remark,
                    created_by=operator_id,
                )
                for candidate in generated
            ]

            try:
                await self.code_repo.add_all(codes)
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                logger.bind(attempt=attempt).warning(
                    "Activation code collided on insert, regenerating batch"
                )
                continue

            logger.bind(
                quantity=obj_in.quantity,
                created=len(codes),
                operator_id=str(operator_id) if operator_id else None,
            ).info("Activation codes created")
            return codes

        raise AppException(ActivationCodeError.CODE_GENERATION_EXHAUSTED)

    async def batch_update(self, obj_in: BatchUpdateRequest) -> int:
        """
        批量修改激活码状态。
        不存在的激活码静默忽略，返回实际匹配数量。
        """
        if obj_in.status not in ASSIGNABLE_STATUSES:
            raise AppException(ActivationCodeError.INVALID_STATUS)
        if not 1 <= len(obj_in.codes) <= settings.ACTIVATION_CODE_BATCH_UPDATE_MAX:
            raise AppException(ActivationCodeError.BATCH_LIMIT)

        matched = await self.code_repo.bulk_update_status(
            obj_in.codes, obj_in.status, obj_in.remark, datetime.now(UTC)
        )
        await self.session.commit()

        logger.bind(
            requested=len(obj_in.codes), matched=matched, status=int(obj_in.status)
        ).info("Activation codes status updated")
        return matched

    # --------------------------------------------------------------------------
    # 兑换
    # --------------------------------------------------------------------------

    async def redeem(self, code: str, user: User) -> ActivationCode:
        """
        兑换激活码并授予内测资格。

        流程:
        1. 已具备内测资格的用户拒绝重复激活
        2. 预检查激活码可兑换性 (失败无副作用)
        3. 条件 UPDATE 原子扣减 (影响 0 行即竞争失败，返回同一 INELIGIBLE 错误，不重试)
        4. 追加使用记录 + 授予资格位，同一事务提交
        """
        if user.has_user_type(UserType.TEST_QUALIFIED):
            raise AppException(ActivationCodeError.ALREADY_QUALIFIED)

        now = datetime.now(UTC)
        activation_code = await self.code_repo.get_by_code(code)
        if activation_code is None or not is_redeemable(activation_code, now):
            logger.bind(user_id=str(user.id)).info("Activation code not redeemable")
            raise AppException(ActivationCodeError.INELIGIBLE)

        if not await self.code_repo.consume_one(code, now):
            logger.bind(user_id=str(user.id)).info(
                "Activation code consumed by concurrent request"
            )
            raise AppException(ActivationCodeError.INELIGIBLE)

        await self.record_repo.create(
            {"code": code, "user_id": user.id, "username": user.username}
        )
        await self.user_repo.add_user_type(user.id, UserType.TEST_QUALIFIED)
        await self.session.commit()

        # 位运算更新未同步到会话内对象
        await self.session.refresh(user, attribute_names=["user_type"])

        logger.bind(user_id=str(user.id)).info("Activation code redeemed")
        redeemed = await self.code_repo.get_by_code(code)
        return redeemed  # type: ignore[return-value]

    # --------------------------------------------------------------------------
    # 用户邀请码
    # --------------------------------------------------------------------------

    async def find_or_create_user_activation_code(self, user: User) -> ActivationCode:
        """
        获取用户邀请码，不存在则创建。

        并发首次调用时，owner_user_id 唯一约束保证只有一个插入成功；
        失败方回滚后重新读取并返回胜出者的记录。
        """
        user_id = user.id
        username = user.username

        existing = await self.code_repo.get_by_owner(user_id)
        if existing is not None:
            return existing

        for _ in range(settings.ACTIVATION_CODE_MAX_RETRIES):
            candidate = await self._generate_unique_code(set())
            if candidate is None:
                break

            activation_code = ActivationCode(
                code=candidate,
                status=ActivationCodeStatus.UNUSED,
                limit_count=settings.USER_ACTIVATION_CODE_DEFAULT_LIMIT,
                owner_user_id=user_id,
                owner_username=username,
                created_by=user_id,
            )
            try:
                await self.code_repo.add_all([activation_code])
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                winner = await self.code_repo.get_by_owner(user_id)
                if winner is not None:
                    logger.bind(user_id=str(user_id)).info(
                        "User activation code created concurrently, using winner"
                    )
                    return winner
                # 激活码本身碰撞，重新生成
                continue

            logger.bind(user_id=str(user_id)).info("User activation code created")
            return activation_code

        logger.bind(user_id=str(user_id)).error(
            "User activation code generation exhausted"
        )
        raise AppException(ActivationCodeError.CODE_GENERATION_EXHAUSTED)

    # --------------------------------------------------------------------------
    # 可用次数调整
    # --------------------------------------------------------------------------

    async def adjust_limit_count(self, code: str, delta: int) -> bool:
        """有符号原子调整可用次数，返回是否匹配到激活码"""
        matched = await self.code_repo.increment_limit(code, delta, datetime.now(UTC))
        await self.session.commit()

        logger.bind(delta=delta, matched=matched).info(
            "Activation code limit count adjusted"
        )
        return matched

    async def adjust_user_limit_count(self, user_id: UUID, delta: int) -> ActivationCode:
        """
        调整指定用户邀请码的可用次数 (邀请码不存在时先创建)。
        """
        user = await self.user_repo.get(user_id)
        if user is None or user.is_deleted:
            raise AppException(UserErrorCode.USER_NOT_FOUND)

        activation_code = await self.find_or_create_user_activation_code(user)
        code = activation_code.code
        await self.adjust_limit_count(code, delta)

        refreshed = await self.code_repo.get_by_code(code)
        return refreshed  # type: ignore[return-value]

    # --------------------------------------------------------------------------
    # 查询
    # --------------------------------------------------------------------------

    async def get_by_code(self, code: str) -> ActivationCode:
        activation_code = await self.code_repo.get_by_code(code)
        if activation_code is None:
            raise AppException(ActivationCodeError.NOT_FOUND)
        return activation_code

    async def find_interval_list(
        self, query: ActivationCodeQuery
    ) -> tuple[list[ActivationCode], int]:
        return await self.code_repo.find_interval_list(query)

    async def find_used_record_interval_list(
        self, query: UsageRecordQuery
    ) -> tuple[list[ActivationCodeUsageRecord], int]:
        return await self.record_repo.find_interval_list(query)
