"""Initial schema: access requests, reminders, revocations, job runs

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "user_access_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("requestor_email", sa.String(255), nullable=False),
        sa.Column("expires_on", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_user_access_requests"),
    )
    op.create_index(
        "ix_user_access_requests_request_id", "user_access_requests", ["request_id"], unique=True
    )
    op.create_index(
        "ix_user_access_requests_requestor_email", "user_access_requests", ["requestor_email"]
    )
    op.create_index("ix_user_access_requests_expires_on", "user_access_requests", ["expires_on"])
    op.create_index("ix_user_access_requests_status", "user_access_requests", ["status"])

    op.create_table(
        "expiry_notifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("notification_sent_at", sa.DateTime(), nullable=False),
        sa.Column("notification_sent_to", sa.String(255), nullable=False),
        sa.Column("notification_sent_by", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_expiry_notifications"),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["user_access_requests.request_id"],
            name="fk_expiry_notifications_request_id_user_access_requests",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_expiry_notifications_request_id", "expiry_notifications", ["request_id"]
    )

    op.create_table(
        "revoked_access",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_by", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_revoked_access"),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["user_access_requests.request_id"],
            name="fk_revoked_access_request_id_user_access_requests",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_revoked_access_request_id", "revoked_access", ["request_id"], unique=True)

    op.create_table(
        "job_runs",
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("job_kind", sa.String(32), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("started_by", sa.String(255), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("processed_count", sa.Integer(), nullable=True),
        sa.Column("failed_count", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.String(500), nullable=True),
        sa.PrimaryKeyConstraint("job_id", name="pk_job_runs"),
    )
    op.create_index(
        "ix_job_runs_kind_status_started", "job_runs", ["job_kind", "status", "started_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_job_runs_kind_status_started", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("ix_revoked_access_request_id", table_name="revoked_access")
    op.drop_table("revoked_access")
    op.drop_index("ix_expiry_notifications_request_id", table_name="expiry_notifications")
    op.drop_table("expiry_notifications")
    op.drop_index("ix_user_access_requests_status", table_name="user_access_requests")
    op.drop_index("ix_user_access_requests_expires_on", table_name="user_access_requests")
    op.drop_index("ix_user_access_requests_requestor_email", table_name="user_access_requests")
    op.drop_index("ix_user_access_requests_request_id", table_name="user_access_requests")
    op.drop_table("user_access_requests")
