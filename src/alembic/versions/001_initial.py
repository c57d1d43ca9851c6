"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
PENDING = sa.text("status = 'pending'")


def _string(length: int) -> sqlmodel.sql.sqltypes.AutoString:
    return sqlmodel.sql.sqltypes.AutoString(length=length)


def upgrade() -> None:
    # 1. Tenants and their quota ledger
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", _string(100), nullable=False),
        sa.Column("slug", _string(56), nullable=False),
        sa.Column("status", _string(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenants_name", "tenants", ["name"], unique=False)
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "tenant_quotas",
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("resource", _string(20), nullable=False),
        sa.Column("quota_limit", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("usage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("tenant_id", "resource"),
        sa.CheckConstraint("usage >= 0", name="ck_tenant_quotas_usage_non_negative"),
        sa.CheckConstraint(
            "quota_limit = -1 OR usage <= quota_limit",
            name="ck_tenant_quotas_usage_within_limit",
        ),
    )

    # 2. Users (shadow records) and memberships
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", _string(255), nullable=False),
        sa.Column("full_name", _string(100), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_tenant_membership",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("role", _string(50), nullable=False, server_default="member"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "tenant_id"),
    )

    # 3. Profiles
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("username", _string(64), nullable=False),
        sa.Column("display_name", _string(100), nullable=False),
        sa.Column("title", _string(100), nullable=True),
        sa.Column("status", _string(20), nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_tenant_id", "profiles", ["tenant_id"], unique=False)
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=False)
    op.create_index("ix_profiles_username", "profiles", ["username"], unique=True)

    # 4. Cards and the append-only assignment log
    op.create_table(
        "cards",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("card_uid", _string(16), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("serial_number", _string(64), nullable=True),
        sa.Column("sku", _string(64), nullable=True),
        sa.Column("batch_number", _string(64), nullable=True),
        sa.Column("product_line", _string(64), nullable=True),
        sa.Column("physical", JSON_TYPE, nullable=True),
        sa.Column("ndef_url", _string(500), nullable=True),
        sa.Column("status", _string(20), nullable=False, server_default="inventory"),
        sa.Column("lifecycle_stage", _string(20), nullable=False, server_default="manufactured"),
        sa.Column("assigned_to_user_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_profile_id", sa.Uuid(), nullable=True),
        sa.Column("claim_token_id", sa.Uuid(), nullable=True),
        sa.Column("tap_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_tapped_at", sa.DateTime(), nullable=True),
        sa.Column("last_viewed_at", sa.DateTime(), nullable=True),
        sa.Column("created_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.Column("suspended_at", sa.DateTime(), nullable=True),
        sa.Column("deactivated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["assigned_to_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_profile_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("serial_number"),
    )
    op.create_index("ix_cards_card_uid", "cards", ["card_uid"], unique=True)
    op.create_index("ix_cards_tenant_id", "cards", ["tenant_id"], unique=False)
    op.create_index("ix_cards_assigned_to_user_id", "cards", ["assigned_to_user_id"])
    op.create_index("ix_cards_tenant_status", "cards", ["tenant_id", "status"])
    op.create_index("ix_cards_tenant_created", "cards", ["tenant_id", "created_at"])
    op.create_index("ix_cards_tenant_batch", "cards", ["tenant_id", "batch_number"])

    op.create_table(
        "card_assignments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("card_id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("action", _string(20), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("profile_id", sa.Uuid(), nullable=True),
        sa.Column("previous_user_id", sa.Uuid(), nullable=True),
        sa.Column("actor_user_id", sa.Uuid(), nullable=True),
        sa.Column("reason", _string(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"]),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_card_assignments_tenant_id", "card_assignments", ["tenant_id"])
    op.create_index(
        "ix_card_assignments_card_created", "card_assignments", ["card_id", "created_at"]
    )

    # 5. Claim tokens and the bounded attempt log
    op.create_table(
        "claim_tokens",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("token_hash", _string(64), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("card_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_email", _string(255), nullable=False),
        sa.Column("assigned_name", _string(100), nullable=True),
        sa.Column("assigned_phone", _string(32), nullable=True),
        sa.Column("assignee_details", JSON_TYPE, nullable=True),
        sa.Column("status", _string(20), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "require_email_verification", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_code_hash", _string(64), nullable=True),
        sa.Column("verification_code_expires_at", sa.DateTime(), nullable=True),
        sa.Column("verification_code_issued_at", sa.DateTime(), nullable=True),
        sa.Column("claimed_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("revocation_reason", _string(500), nullable=True),
        sa.Column("created_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"]),
        sa.ForeignKeyConstraint(["claimed_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("used_count <= max_uses", name="ck_claim_tokens_used_within_max"),
    )
    op.create_index("ix_claim_tokens_token_hash", "claim_tokens", ["token_hash"], unique=True)
    op.create_index("ix_claim_tokens_tenant_id", "claim_tokens", ["tenant_id"])
    op.create_index("ix_claim_tokens_tenant_created", "claim_tokens", ["tenant_id", "created_at"])
    op.create_index("ix_claim_tokens_status_expires", "claim_tokens", ["status", "expires_at"])
    op.create_index(
        "uq_claim_tokens_pending_card",
        "claim_tokens",
        ["card_id"],
        unique=True,
        postgresql_where=PENDING,
        sqlite_where=PENDING,
    )

    op.create_table(
        "claim_attempts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("claim_token_id", sa.Uuid(), nullable=False),
        sa.Column("kind", _string(20), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("failure_reason", _string(100), nullable=True),
        sa.Column("email", _string(255), nullable=True),
        sa.Column("ip_address", _string(45), nullable=True),
        sa.Column("user_agent", _string(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["claim_token_id"], ["claim_tokens.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_claim_attempts_token_created", "claim_attempts", ["claim_token_id", "created_at"]
    )

    # 6. Audit log
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("user_email", _string(255), nullable=True),
        sa.Column("user_role", _string(50), nullable=True),
        sa.Column("action", _string(50), nullable=False),
        sa.Column("entity_type", _string(50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=True),
        sa.Column("identifier", _string(64), nullable=True),
        sa.Column("changes", JSON_TYPE, nullable=True),
        sa.Column("ip_address", _string(45), nullable=True),
        sa.Column("user_agent", _string(500), nullable=True),
        sa.Column("request_id", _string(36), nullable=True),
        sa.Column("severity", _string(20), nullable=False, server_default="low"),
        sa.Column("status", _string(20), nullable=False, server_default="success"),
        sa.Column("error_message", _string(1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_tenant_id", "audit_logs", ["tenant_id"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_tenant_created", "audit_logs", ["tenant_id", "created_at"])
    op.create_index("ix_audit_logs_action_created", "audit_logs", ["action", "created_at"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("claim_attempts")
    op.drop_index("uq_claim_tokens_pending_card", table_name="claim_tokens")
    op.drop_table("claim_tokens")
    op.drop_table("card_assignments")
    op.drop_table("cards")
    op.drop_table("profiles")
    op.drop_table("user_tenant_membership")
    op.drop_table("users")
    op.drop_table("tenant_quotas")
    op.drop_table("tenants")
