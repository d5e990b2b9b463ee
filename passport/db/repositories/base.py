"""
File: passport/db/repositories/base.py
Description: 通用异步 Repository 基类 (CRUD + 分页)

本模块定义了 BaseRepository，封装了通用的 CRUD 操作。
所有领域的 Repository 应继承此类，以减少样板代码。

特性：
- 泛型支持: BaseRepository[ModelType, CreateSchemaType, UpdateSchemaType]
- 纯异步: 基于 sqlalchemy.ext.asyncio
- 只 flush 不 commit: 事务边界由 Service 层控制
- 安全增强: update 操作自动过滤核心系统字段 (id, created_at)
- 分页查询: paginate 统一返回 (当前页数据, 总条数)

Author: jinmozhe
Created: 2025-11-25
Updated: 2026-03-02 (paginate / add_all)
"""

from collections.abc import Sequence
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from passport.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class BaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    通用 CRUD 仓储基类。

    参数:
    - ModelType: SQLAlchemy 模型类 (如 User)
    - CreateSchemaType: 创建数据的 Pydantic 模型 (如 UserCreate)
    - UpdateSchemaType: 更新数据的 Pydantic 模型 (如 BatchUpdateRequest)
    """

    # 受保护的字段，禁止通过通用 update 方法修改
    PROTECTED_FIELDS: ClassVar[set[str]] = {"id", "created_at", "updated_at"}

    def __init__(self, model: type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    # --------------------------------------------------------------------------
    # 查询操作 (Read)
    # --------------------------------------------------------------------------

    async def get(self, id: Any) -> ModelType | None:
        """根据主键 ID 查询单条记录"""
        return await self.session.get(self.model, id)

    def sort_clause(self, sort: str) -> Any:
        """
        将 "-created_at" 形式的排序串转换为 ORDER BY 子句。
        字段白名单由 Schema 层校验。
        """
        column = getattr(self.model, sort.removeprefix("-"))
        return column.desc() if sort.startswith("-") else column.asc()

    async def paginate(
        self,
        stmt: Select[Any],
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[ModelType], int]:
        """
        对查询语句执行分页。

        Args:
            stmt: 已拼装好过滤与排序条件的 select 语句
            skip: 跳过的记录数（偏移量）
            limit: 返回的最大记录数

        Returns:
            tuple[list[ModelType], int]: (当前页记录, 满足条件的总条数)
        """
        count_stmt = select(func.count()).select_from(
            stmt.order_by(None).subquery()
        )
        total = (await self.session.execute(count_stmt)).scalar_one()

        result = await self.session.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    # --------------------------------------------------------------------------
    # 写入操作 (Create / Update)
    # --------------------------------------------------------------------------

    async def create(self, obj_in: CreateSchemaType | dict[str, Any]) -> ModelType:
        """
        创建新记录。

        注意：此方法会自动 flush 到数据库以获取默认值，但不会 commit（由 Service 层控制事务）。
        """
        if isinstance(obj_in, dict):
            obj_in_data = obj_in
        else:
            obj_in_data = obj_in.model_dump(exclude_unset=True)
        db_obj = self.model(**obj_in_data)

        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)

        return db_obj

    async def add_all(self, db_objs: Sequence[ModelType]) -> list[ModelType]:
        """
        批量写入 ORM 对象并 flush。
        唯一约束冲突将在 flush 时以 IntegrityError 抛出，由 Service 层决定回滚与重试。
        """
        self.session.add_all(db_objs)
        await self.session.flush()
        return list(db_objs)

    async def update(
        self, db_obj: ModelType, obj_in: UpdateSchemaType | dict[str, Any]
    ) -> ModelType:
        """
        更新现有记录。

        支持传入 UpdateSchema 或 字典。
        会自动过滤 PROTECTED_FIELDS 中的敏感字段(如 id, created_at)。
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        safe_data = {
            k: v for k, v in update_data.items() if k not in self.PROTECTED_FIELDS
        }
        db_obj.update(**safe_data)  # type: ignore[attr-defined]

        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)

        return db_obj
