"""
File: passport/db/models/third_party_identity.py
Description: 第三方身份模型 (微信/微博等)

每个第三方账号对应一行，每次第三方回调都会创建或刷新该行，
与最终是否绑定成功无关：未绑定的行 (user_id 为空) 是后续"注册或绑定"步骤的锚点。

约束：
- (third_party_type, open_id) 唯一：同一第三方账号只有一行
- (third_party_type, user_id) 唯一：一个平台用户对同一第三方至多绑定一个账号
  (user_id 为空的行不参与唯一性比较)

注意：
采用 "No-Relationship" 模式，不显式定义 ORM relationship，
仅通过 user_id 外键物理约束关联 User。

Author: jinmozhe
Created: 2025-12-02
Updated: 2026-03-02 (Nullable user_id for pending bind)
"""

import uuid
from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String, UniqueConstraint, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from passport.db.models.base import UUIDModel

# 第三方状态
IDENTITY_STATUS_ACTIVE = 1
IDENTITY_STATUS_INACTIVE = 0

IDENTITY_NAME_MAX_LENGTH = 100


class ThirdPartyIdentity(UUIDModel):
    """
    第三方身份表 (N:1 User)
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "third_party_identities"

    __table_args__ = (
        UniqueConstraint(
            "third_party_type",
            "open_id",
            name="uq_third_party_identities_type_open_id",
        ),
        UniqueConstraint(
            "third_party_type",
            "user_id",
            name="uq_third_party_identities_type_user_id",
        ),
    )

    # ❌ 严禁 ondelete="CASCADE"：用户仅软删除，绑定关系必须保留
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
        index=True,
        comment="绑定的平台用户ID (为空表示未绑定)",
    )

    # 平台标识: weChat, weibo
    third_party_type: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True, comment="第三方类型"
    )

    open_id: Mapped[str] = mapped_column(
        String(128), nullable=False, comment="第三方应用内唯一ID (OpenID)"
    )

    union_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True, comment="跨应用统一ID (UnionID)"
    )

    name: Mapped[str | None] = mapped_column(
        String(IDENTITY_NAME_MAX_LENGTH), nullable=True, comment="第三方昵称快照"
    )

    head_image: Mapped[str | None] = mapped_column(
        String(512), nullable=True, comment="第三方头像快照"
    )

    status: Mapped[int] = mapped_column(
        Integer,
        default=IDENTITY_STATUS_ACTIVE,
        server_default=text("1"),
        nullable=False,
        comment="状态 (1:有效 0:无效)",
    )

    # 存储三方返回的原始数据快照
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        comment="三方原始数据快照",
    )

    @property
    def is_bound(self) -> bool:
        return self.user_id is not None
