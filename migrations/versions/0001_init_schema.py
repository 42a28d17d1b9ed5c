from __future__ import annotations

"""init schema"""

from alembic import op
import sqlalchemy as sa

from sqlalchemy.dialects import postgresql


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Extensions
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "threads",
        sa.Column("id", sa.String(length=100), primary_key=True),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("agent", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200)),
        sa.Column("messages", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_threads_user_updated", "threads", ["user_id", "last_updated"])

    op.create_table(
        "usage_log",
        sa.Column("id", sa.String(length=100), primary_key=True),
        sa.Column("user_sub", sa.String(length=255), nullable=False),
        sa.Column("agent", sa.String(length=50), nullable=False),
        sa.Column("records_created", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("records_updated", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("meetings_booked", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("queries_executed", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("usage", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("response_data", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("archived", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        # Epoch milliseconds
        sa.Column("timestamp", sa.BigInteger, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_usage_log_user_timestamp", "usage_log", ["user_sub", "timestamp"])

    op.create_table(
        "credentials",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("access_token", sa.Text, nullable=False),
        sa.Column("refresh_token", sa.Text),
        sa.Column("instance_url", sa.String(length=500)),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("metadata", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.UniqueConstraint("user_id", "provider", name="uq_credentials_user_provider"),
    )

    op.create_table(
        "agent_settings",
        sa.Column("agent", sa.String(length=50), primary_key=True),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )

    op.create_table(
        "customer_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("customer_profile_name", sa.String(length=255), nullable=False),
        sa.Column("common_industries", sa.String(length=512), nullable=False),
        sa.Column("frequently_purchased_products", sa.String(length=512), nullable=False),
        sa.Column("geographic_regions", sa.String(length=512), nullable=False),
        sa.Column("average_days_to_close", sa.Integer, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.text("TRUE")),
        sa.Column("social_media_presence", sa.String(length=256)),
        sa.Column("channel_recommendation", sa.String(length=256)),
        sa.Column("account_strategy", sa.Text),
        sa.Column("account_employee_size", sa.String(length=32)),
        sa.Column("account_lifecycle", sa.String(length=32)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_customer_profiles_user_id", "customer_profiles", ["user_id"])


def downgrade() -> None:
    op.drop_index("idx_customer_profiles_user_id", table_name="customer_profiles")
    op.drop_table("customer_profiles")

    op.drop_table("agent_settings")
    op.drop_table("credentials")

    op.drop_index("idx_usage_log_user_timestamp", table_name="usage_log")
    op.drop_table("usage_log")

    op.drop_index("idx_threads_user_updated", table_name="threads")
    op.drop_table("threads")
