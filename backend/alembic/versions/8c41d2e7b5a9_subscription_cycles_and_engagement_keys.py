"""subscription payment cycles; one engagement row per student, content and period

Revision ID: 8c41d2e7b5a9
Revises: 3f2a91c0d7e4
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "8c41d2e7b5a9"
down_revision = "3f2a91c0d7e4"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # -----------------------------------------------------
    # 1) subscriptions: a row per payment cycle
    # -----------------------------------------------------
    op.add_column("subscriptions", sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True))

    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    op.create_index(
        "uq_subscriptions_user_open",
        "subscriptions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'COMPLETED')"),
    )

    # -----------------------------------------------------
    # 2) engagement: fold duplicate rows, then key them
    # -----------------------------------------------------
    for column in ("program_id", "module_id"):
        op.execute(
            f"""
            WITH ranked AS (
                SELECT id,
                       first_value(id) OVER w AS keep_id,
                       sum(watch_time_minutes) OVER (PARTITION BY student_id, {column}, period) AS minutes,
                       max(completion_percent) OVER (PARTITION BY student_id, {column}, period) AS percent,
                       bool_or(is_completed) OVER (PARTITION BY student_id, {column}, period) AS completed,
                       min(completed_at) OVER (PARTITION BY student_id, {column}, period) AS first_completed,
                       max(last_watched_at) OVER (PARTITION BY student_id, {column}, period) AS last_watched
                FROM student_engagements
                WHERE {column} IS NOT NULL
                WINDOW w AS (PARTITION BY student_id, {column}, period ORDER BY created_at, id)
            )
            UPDATE student_engagements AS se
            SET watch_time_minutes = r.minutes,
                completion_percent = r.percent,
                is_completed = r.completed,
                completed_at = r.first_completed,
                last_watched_at = r.last_watched
            FROM ranked r
            WHERE se.id = r.id AND r.id = r.keep_id
            """
        )
        op.execute(
            f"""
            DELETE FROM student_engagements AS se
            USING student_engagements AS keeper
            WHERE se.{column} IS NOT NULL
              AND keeper.student_id = se.student_id
              AND keeper.{column} = se.{column}
              AND keeper.period = se.period
              AND (keeper.created_at, keeper.id) < (se.created_at, se.id)
            """
        )

    op.create_index(
        "uq_student_engagements_program_period",
        "student_engagements",
        ["student_id", "program_id", "period"],
        unique=True,
        postgresql_where=sa.text("program_id IS NOT NULL"),
    )
    op.create_index(
        "uq_student_engagements_module_period",
        "student_engagements",
        ["student_id", "module_id", "period"],
        unique=True,
        postgresql_where=sa.text("module_id IS NOT NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_student_engagements_module_period", table_name="student_engagements")
    op.drop_index("uq_student_engagements_program_period", table_name="student_engagements")

    # keep only the latest cycle per user so the old unique key fits again
    op.execute(
        """
        DELETE FROM subscriptions AS s
        USING subscriptions AS newer
        WHERE newer.user_id = s.user_id
          AND (newer.created_at, newer.id) > (s.created_at, s.id)
        """
    )
    op.drop_index("uq_subscriptions_user_open", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=True)
    op.drop_column("subscriptions", "cancelled_at")
