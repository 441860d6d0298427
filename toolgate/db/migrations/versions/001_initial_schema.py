"""Create the initial gateway schema.

Revision ID: 001
Revises:
Create Date: 2026-10-18

Tables: users, apps, app_likes, user_app_library, user_app_blocks, grants,
pending_grants, secrets, content, content_shares, memory_entries,
memory_shares, call_logs, discovery_queries, shortcomings, gaps
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSIONS = 1536


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=sa.text("NOW()"),
            )
        )
    return columns


def _constraint_columns() -> list[sa.Column]:
    return [
        sa.Column("allowed_ips", ARRAY(sa.Text)),
        sa.Column("time_window", JSONB),
        sa.Column("budget_limit", sa.Integer),
        sa.Column("budget_used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("budget_period", sa.String(20)),
        sa.Column("budget_period_start", sa.TIMESTAMP(timezone=True)),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True)),
        sa.Column("allowed_args", JSONB),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "users",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("email", sa.Text, nullable=False),
        sa.Column("display_name", sa.Text),
        sa.Column("tier", sa.String(20), nullable=False, server_default="free"),
        sa.Column("hosting_balance_cents", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(updated=False),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)

    op.create_table(
        "apps",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("slug", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="private"),
        sa.Column("versions", ARRAY(sa.Text), nullable=False, server_default="{}"),
        sa.Column("current_version", sa.Text),
        sa.Column("exports", ARRAY(sa.Text), nullable=False, server_default="{}"),
        sa.Column("download_access", sa.String(20), nullable=False, server_default="owner"),
        sa.Column("rate_limit_config", JSONB),
        sa.Column("pricing_config", JSONB),
        sa.Column("external_binding", sa.Text),
        sa.Column("env_schema", JSONB),
        sa.Column("likes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("dislikes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("weighted_likes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("weighted_dislikes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("runs_30d", sa.Integer, nullable=False, server_default="0"),
        sa.Column("skills_md", sa.Text),
        sa.Column("hosting_suspended", sa.Boolean, nullable=False, server_default="false"),
        *_timestamps(),
        sa.CheckConstraint(
            "visibility IN ('private', 'unlisted', 'public')",
            name="chk_apps_visibility",
        ),
    )
    op.create_index("idx_apps_owner_slug", "apps", ["owner_id", "slug"], unique=True)
    op.create_index(
        "idx_apps_public",
        "apps",
        ["weighted_likes", "likes", "runs_30d"],
        postgresql_where=sa.text("visibility = 'public' AND NOT hosting_suspended"),
    )

    op.create_table(
        "app_likes",
        sa.Column("app_id", sa.Text, sa.ForeignKey("apps.id", ondelete="CASCADE")),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("positive", sa.Boolean, nullable=False),
        sa.Column("weighted", sa.Boolean, nullable=False, server_default="false"),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("app_id", "user_id"),
    )

    for table in ("user_app_library", "user_app_blocks"):
        op.create_table(
            table,
            sa.Column("user_id", sa.Text, nullable=False),
            sa.Column("app_id", sa.Text, sa.ForeignKey("apps.id", ondelete="CASCADE")),
            *_timestamps(updated=False),
            sa.PrimaryKeyConstraint("user_id", "app_id"),
        )

    op.create_table(
        "grants",
        sa.Column("app_id", sa.Text, sa.ForeignKey("apps.id", ondelete="CASCADE")),
        sa.Column("grantee_id", sa.Text, nullable=False),
        sa.Column("granted_by", sa.Text, nullable=False),
        sa.Column("function_name", sa.Text, nullable=False),
        *_constraint_columns(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("app_id", "grantee_id", "function_name"),
    )
    op.create_index("idx_grants_grantee", "grants", ["grantee_id"])

    op.create_table(
        "pending_grants",
        sa.Column("app_id", sa.Text, sa.ForeignKey("apps.id", ondelete="CASCADE")),
        sa.Column("invited_email", sa.Text, nullable=False),
        sa.Column("granted_by", sa.Text, nullable=False),
        sa.Column("function_name", sa.Text, nullable=False),
        *_constraint_columns(),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("app_id", "invited_email", "function_name"),
    )
    op.create_index("idx_pending_grants_email", "pending_grants", ["invited_email"])

    op.create_table(
        "secrets",
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("app_id", sa.Text, nullable=False),
        sa.Column("key", sa.Text, nullable=False),
        sa.Column("value_encrypted", sa.Text, nullable=False),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("user_id", "app_id", "key"),
    )

    op.create_table(
        "content",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("slug", sa.Text, nullable=False),
        sa.Column("title", sa.Text),
        sa.Column("body", sa.Text),
        sa.Column("size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="private"),
        sa.Column("access_token", sa.Text),
        sa.Column("published", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("hosting_suspended", sa.Boolean, nullable=False, server_default="false"),
        *_timestamps(),
        sa.UniqueConstraint("owner_id", "type", "slug", name="uq_content_owner_type_slug"),
    )

    op.create_table(
        "content_shares",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("content_id", sa.Text, sa.ForeignKey("content.id", ondelete="CASCADE")),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("shared_with_email", sa.Text, nullable=False),
        sa.Column("shared_with_user_id", sa.Text),
        sa.Column("access_level", sa.String(20), nullable=False, server_default="read"),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True)),
        *_timestamps(updated=False),
        sa.UniqueConstraint("content_id", "shared_with_email", name="uq_content_shares_email"),
    )
    op.create_index("idx_content_shares_email", "content_shares", ["shared_with_email"])

    op.create_table(
        "memory_entries",
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("scope", sa.Text, nullable=False),
        sa.Column("key", sa.Text, nullable=False),
        sa.Column("value", JSONB, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("owner_id", "scope", "key"),
    )

    op.create_table(
        "memory_shares",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("scope", sa.Text, nullable=False),
        sa.Column("key_pattern", sa.Text, nullable=False),
        sa.Column("shared_with_email", sa.Text, nullable=False),
        sa.Column("shared_with_user_id", sa.Text),
        sa.Column("access_level", sa.String(20), nullable=False, server_default="read"),
        *_timestamps(updated=False),
        sa.UniqueConstraint(
            "owner_id", "scope", "key_pattern", "shared_with_email", name="uq_memory_shares"
        ),
    )

    op.create_table(
        "call_logs",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("app_id", sa.Text),
        sa.Column("app_name", sa.Text),
        sa.Column("function_name", sa.Text),
        sa.Column("method", sa.Text, nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("duration_ms", sa.Integer),
        sa.Column("error_message", sa.Text),
        sa.Column("input_args", JSONB),
        sa.Column("output_result", JSONB),
        sa.Column("user_tier", sa.String(20)),
        sa.Column("session_id", sa.Text),
        sa.Column("user_query", sa.Text),
        sa.Column("caller_ip", sa.Text),
        *_timestamps(updated=False),
    )
    op.create_index("idx_call_logs_user_created", "call_logs", ["user_id", "created_at"])
    op.create_index("idx_call_logs_app_created", "call_logs", ["app_id", "created_at"])

    op.create_table(
        "discovery_queries",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("query", sa.Text, nullable=False),
        sa.Column("top_similarity", sa.Float),
        sa.Column("top_final_score", sa.Float),
        sa.Column("result_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("results", JSONB, nullable=False, server_default="[]"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "shortcomings",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("session_id", sa.Text),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("context", JSONB),
        *_timestamps(updated=False),
    )

    op.create_table(
        "gaps",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("severity", sa.String(20)),
        sa.Column("points_value", sa.Integer, nullable=False, server_default="0"),
        sa.Column("season", sa.Integer),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        *_timestamps(updated=False),
    )

    # pgvector columns
    for table in ("apps", "content"):
        op.execute(f"ALTER TABLE {table} ADD COLUMN embedding vector({EMBEDDING_DIMENSIONS})")
    op.execute(
        """
        CREATE INDEX idx_apps_embedding ON apps
        USING ivfflat (embedding vector_cosine_ops)
        WITH (lists = 100)
        WHERE embedding IS NOT NULL
        """
    )
    op.execute(
        """
        CREATE INDEX idx_content_embedding ON content
        USING ivfflat (embedding vector_cosine_ops)
        WITH (lists = 50)
        WHERE embedding IS NOT NULL
        """
    )


def downgrade() -> None:
    for table in (
        "gaps",
        "shortcomings",
        "discovery_queries",
        "call_logs",
        "memory_shares",
        "memory_entries",
        "content_shares",
        "content",
        "secrets",
        "pending_grants",
        "grants",
        "user_app_blocks",
        "user_app_library",
        "app_likes",
        "apps",
        "users",
    ):
        op.drop_table(table)
