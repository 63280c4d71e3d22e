"""Job negotiation and chat.

- service_requests: price increments and extra time requests
- chat_messages
- security_logs
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002_negotiation_chat"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    with op.batch_alter_table("service_requests") as batch:
        batch.add_column(sa.Column("extra_increment", sa.Numeric(12, 2), server_default="0", nullable=False))
        batch.add_column(sa.Column("increment_count", sa.Integer(), server_default="0", nullable=False))
        batch.add_column(sa.Column("extra_time_minutes", sa.Integer(), nullable=True))
        batch.add_column(sa.Column("extra_time_reason", sa.Text(), nullable=True))
        batch.add_column(sa.Column("extra_time_status", sa.String(16), nullable=True))

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_chat_messages"),
        sa.ForeignKeyConstraint(["job_id"], ["service_requests.id"], ondelete="CASCADE", name="fk_chat_messages_job_id_service_requests"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE", name="fk_chat_messages_sender_id_users"),
    )
    op.create_index("ix_chat_messages_job_id", "chat_messages", ["job_id"])

    op.create_table(
        "security_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("severity", sa.String(16), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_security_logs"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE", name="fk_security_logs_user_id_users"),
        sa.ForeignKeyConstraint(["job_id"], ["service_requests.id"], ondelete="SET NULL", name="fk_security_logs_job_id_service_requests"),
    )
    op.create_index("ix_security_logs_user_id", "security_logs", ["user_id"])


def downgrade() -> None:
    op.drop_table("security_logs")
    op.drop_table("chat_messages")
    with op.batch_alter_table("service_requests") as batch:
        for column in ("extra_time_status", "extra_time_reason", "extra_time_minutes", "increment_count", "extra_increment"):
            batch.drop_column(column)
