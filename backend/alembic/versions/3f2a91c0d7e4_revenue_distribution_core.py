"""revenue distribution core: users, content, subscriptions, engagement, pools, ledger

Revision ID: 3f2a91c0d7e4
Revises:
Create Date: 2026-10-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f2a91c0d7e4"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)
        )
    return cols


def upgrade() -> None:
    # -----------------------------------------------------
    # 1) users + content catalogue
    # -----------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "programs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column(
            "instructor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="programs_instructor_id_fkey"),
            nullable=False,
        ),
        sa.Column("monetization_type", sa.String(length=20), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_programs"),
    )
    op.create_index("ix_programs_instructor_id", "programs", ["instructor_id"])

    op.create_table(
        "course_modules",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column(
            "teacher_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="course_modules_teacher_id_fkey"),
            nullable=False,
        ),
        sa.Column("monetization_type", sa.String(length=20), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_course_modules"),
    )
    op.create_index("ix_course_modules_teacher_id", "course_modules", ["teacher_id"])

    # -----------------------------------------------------
    # 2) subscriptions + access grants
    # -----------------------------------------------------
    op.create_table(
        "subscriptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="subscriptions_user_id_fkey"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), server_default="USD", nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("provider", sa.String(length=20), nullable=True),
        sa.Column("transaction_id", sa.String(length=128), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_subscriptions"),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=True)
    op.create_index("ix_subscriptions_status_window", "subscriptions", ["status", "starts_at", "expires_at"])

    op.create_table(
        "content_access_grants",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="content_access_grants_user_id_fkey"),
            nullable=False,
        ),
        sa.Column(
            "program_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("programs.id", ondelete="CASCADE", name="content_access_grants_program_id_fkey"),
            nullable=True,
        ),
        sa.Column(
            "module_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("course_modules.id", ondelete="CASCADE", name="content_access_grants_module_id_fkey"),
            nullable=True,
        ),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_content_access_grants"),
        sa.CheckConstraint(
            "(program_id IS NULL) <> (module_id IS NULL)",
            name="ck_content_access_grants_one_content_ref",
        ),
    )
    op.create_index("ix_content_access_grants_user_id", "content_access_grants", ["user_id"])

    # -----------------------------------------------------
    # 3) engagement
    # -----------------------------------------------------
    op.create_table(
        "student_engagements",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="student_engagements_student_id_fkey"),
            nullable=False,
        ),
        sa.Column(
            "program_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("programs.id", name="student_engagements_program_id_fkey"),
            nullable=True,
        ),
        sa.Column(
            "module_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("course_modules.id", name="student_engagements_module_id_fkey"),
            nullable=True,
        ),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("watch_time_minutes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("completion_percent", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_completed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_watched_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_student_engagements"),
        sa.CheckConstraint(
            "(program_id IS NULL) <> (module_id IS NULL)",
            name="ck_student_engagements_one_content_ref",
        ),
    )
    op.create_index("ix_student_engagements_period", "student_engagements", ["period"])
    op.create_index("ix_student_engagements_student_period", "student_engagements", ["student_id", "period"])
    op.create_index("ix_student_engagements_program_id", "student_engagements", ["program_id"])
    op.create_index("ix_student_engagements_module_id", "student_engagements", ["module_id"])

    # -----------------------------------------------------
    # 4) revenue pools + teacher earnings ledger
    # -----------------------------------------------------
    op.create_table(
        "subscription_revenue_pools",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_revenue", sa.Numeric(18, 6), nullable=False),
        sa.Column("platform_fee", sa.Numeric(18, 6), nullable=False),
        sa.Column("teacher_pool", sa.Numeric(18, 6), nullable=False),
        sa.Column("total_watch_time", sa.Integer(), nullable=False),
        sa.Column("total_engagements", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("distributed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_subscription_revenue_pools"),
    )
    op.create_index(
        "ix_subscription_revenue_pools_period",
        "subscription_revenue_pools",
        ["period"],
        unique=True,
    )

    op.create_table(
        "teacher_earnings",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "teacher_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="teacher_earnings_teacher_id_fkey"),
            nullable=False,
        ),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revenue_source", sa.String(length=20), nullable=False),
        sa.Column("source_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("watch_time_minutes", sa.Integer(), nullable=False),
        sa.Column("engaged_students", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("platform_fee_percent", sa.Numeric(5, 4), nullable=False),
        sa.Column("platform_fee_amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("net_amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("currency", sa.String(length=10), server_default="USD", nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column(
            "revenue_pool_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(
                "subscription_revenue_pools.id",
                ondelete="SET NULL",
                name="teacher_earnings_revenue_pool_id_fkey",
            ),
            nullable=True,
        ),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_teacher_earnings"),
    )
    op.create_index("ix_teacher_earnings_teacher_period", "teacher_earnings", ["teacher_id", "period"])
    op.create_index("ix_teacher_earnings_teacher_status", "teacher_earnings", ["teacher_id", "status"])
    op.create_index("ix_teacher_earnings_revenue_source", "teacher_earnings", ["revenue_source"])
    op.create_index("ix_teacher_earnings_revenue_pool_id", "teacher_earnings", ["revenue_pool_id"])

    # at most one SUBSCRIPTION line per teacher per period
    op.create_index(
        "uq_teacher_earnings_subscription_period",
        "teacher_earnings",
        ["teacher_id", "period", "revenue_source"],
        unique=True,
        postgresql_where=sa.text("revenue_source = 'SUBSCRIPTION'"),
    )


def downgrade() -> None:
    op.drop_index("uq_teacher_earnings_subscription_period", table_name="teacher_earnings")
    op.drop_index("ix_teacher_earnings_revenue_pool_id", table_name="teacher_earnings")
    op.drop_index("ix_teacher_earnings_revenue_source", table_name="teacher_earnings")
    op.drop_index("ix_teacher_earnings_teacher_status", table_name="teacher_earnings")
    op.drop_index("ix_teacher_earnings_teacher_period", table_name="teacher_earnings")
    op.drop_table("teacher_earnings")

    op.drop_index("ix_subscription_revenue_pools_period", table_name="subscription_revenue_pools")
    op.drop_table("subscription_revenue_pools")

    op.drop_index("ix_student_engagements_module_id", table_name="student_engagements")
    op.drop_index("ix_student_engagements_program_id", table_name="student_engagements")
    op.drop_index("ix_student_engagements_student_period", table_name="student_engagements")
    op.drop_index("ix_student_engagements_period", table_name="student_engagements")
    op.drop_table("student_engagements")

    op.drop_index("ix_content_access_grants_user_id", table_name="content_access_grants")
    op.drop_table("content_access_grants")

    op.drop_index("ix_subscriptions_status_window", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.drop_table("subscriptions")

    op.drop_index("ix_course_modules_teacher_id", table_name="course_modules")
    op.drop_table("course_modules")

    op.drop_index("ix_programs_instructor_id", table_name="programs")
    op.drop_table("programs")

    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
