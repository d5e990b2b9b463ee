"""create account tables

users / activation_codes / activation_code_usage_records / third_party_identities

Revision ID: 20260302_0001
Revises:
Create Date: 2026-03-02
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20260302_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("nickname", sa.String(length=50), nullable=True),
        sa.Column("avatar", sa.String(length=512), nullable=True),
        sa.Column("user_type", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_superuser", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("username", name=op.f("uq_users_username")),
        sa.UniqueConstraint("phone_number", name=op.f("uq_users_phone_number")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
        sa.CheckConstraint(
            "length(trim(username)) > 0", name=op.f("ck_users_username_not_empty")
        ),
        sa.CheckConstraint(
            "length(hashed_password) > 0", name=op.f("ck_users_password_not_empty")
        ),
    )

    op.create_table(
        "activation_codes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=8), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("limit_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("start_effective_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_effective_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("remark", sa.String(length=255), nullable=True),
        sa.Column("owner_user_id", sa.Uuid(), nullable=True),
        sa.Column("owner_username", sa.String(length=50), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_activation_codes")),
        sa.ForeignKeyConstraint(
            ["owner_user_id"],
            ["users.id"],
            name=op.f("fk_activation_codes_owner_user_id_users"),
        ),
        sa.UniqueConstraint(
            "owner_user_id", name=op.f("uq_activation_codes_owner_user_id")
        ),
        sa.CheckConstraint(
            "length(code) = 8", name=op.f("ck_activation_codes_code_length")
        ),
        sa.CheckConstraint(
            "status IN (0, 1, 2)", name=op.f("ck_activation_codes_status_valid")
        ),
    )
    op.create_index(
        op.f("ix_activation_codes_code"), "activation_codes", ["code"], unique=True
    )
    op.create_index(
        op.f("ix_activation_codes_status"), "activation_codes", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_activation_codes_owner_username"),
        "activation_codes",
        ["owner_username"],
        unique=False,
    )

    op.create_table(
        "activation_code_usage_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=8), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_activation_code_usage_records")),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_activation_code_usage_records_user_id_users"),
        ),
    )
    op.create_index(
        op.f("ix_activation_code_usage_records_code"),
        "activation_code_usage_records",
        ["code"],
        unique=False,
    )
    op.create_index(
        op.f("ix_activation_code_usage_records_user_id"),
        "activation_code_usage_records",
        ["user_id"],
        unique=False,
    )

    op.create_table(
        "third_party_identities",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("third_party_type", sa.String(length=20), nullable=False),
        sa.Column("open_id", sa.String(length=128), nullable=False),
        sa.Column("union_id", sa.String(length=128), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("head_image", sa.String(length=512), nullable=True),
        sa.Column("status", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "extra_data",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_third_party_identities")),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_third_party_identities_user_id_users"),
        ),
        sa.UniqueConstraint(
            "third_party_type",
            "open_id",
            name="uq_third_party_identities_type_open_id",
        ),
        sa.UniqueConstraint(
            "third_party_type",
            "user_id",
            name="uq_third_party_identities_type_user_id",
        ),
    )
    op.create_index(
        op.f("ix_third_party_identities_user_id"),
        "third_party_identities",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_third_party_identities_third_party_type"),
        "third_party_identities",
        ["third_party_type"],
        unique=False,
    )
    op.create_index(
        op.f("ix_third_party_identities_union_id"),
        "third_party_identities",
        ["union_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_third_party_identities_union_id"), table_name="third_party_identities")
    op.drop_index(op.f("ix_third_party_identities_third_party_type"), table_name="third_party_identities")
    op.drop_index(op.f("ix_third_party_identities_user_id"), table_name="third_party_identities")
    op.drop_table("third_party_identities")

    op.drop_index(op.f("ix_activation_code_usage_records_user_id"), table_name="activation_code_usage_records")
    op.drop_index(op.f("ix_activation_code_usage_records_code"), table_name="activation_code_usage_records")
    op.drop_table("activation_code_usage_records")

    op.drop_index(op.f("ix_activation_codes_owner_username"), table_name="activation_codes")
    op.drop_index(op.f("ix_activation_codes_status"), table_name="activation_codes")
    op.drop_index(op.f("ix_activation_codes_code"), table_name="activation_codes")
    op.drop_table("activation_codes")

    op.drop_table("users")
