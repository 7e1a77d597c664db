"""initial schema: accounts, credit journal, projects, interview, suites, sequences

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
CREDITS = sa.Numeric(10, 2)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("credits", CREDITS, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("amount", CREDITS, nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(64), nullable=False),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("balance_after", CREDITS, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["user_id"], ["accounts.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_credit_transactions_user_time", "credit_transactions", ["user_id", "created_at"]
    )

    op.create_table(
        "projects",
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("project_type", sa.String(32), nullable=True),
        sa.Column("detected_features", JSON, nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["user_id"], ["accounts.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("project_id"),
    )
    op.create_index("idx_projects_user", "projects", ["user_id"])

    op.create_table(
        "conversations",
        sa.Column("conversation_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("initial_description", sa.Text(), nullable=False),
        sa.Column("messages", JSON, nullable=False),
        sa.Column("questions_asked", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("is_ready_for_blueprints", sa.Boolean(), nullable=False),
        sa.Column("completion_reason", sa.Text(), nullable=True),
        sa.Column("project_type", sa.String(32), nullable=True),
        sa.Column("detected_features", JSON, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.project_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["accounts.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("conversation_id"),
    )
    op.create_index(
        "idx_conversations_project_time", "conversations", ["project_id", "created_at"]
    )

    op.create_table(
        "blueprint_suites",
        sa.Column("suite_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("conversation_id", sa.Uuid(), nullable=False),
        sa.Column("active_project_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("blueprint_types", JSON, nullable=False),
        sa.Column("completed_count", sa.Integer(), nullable=False),
        sa.Column("total_count", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.project_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["conversations.conversation_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("suite_id"),
        sa.UniqueConstraint("active_project_id", name="uq_blueprint_suites_active_project"),
    )
    op.create_index(
        "idx_blueprint_suites_project_time", "blueprint_suites", ["project_id", "created_at"]
    )

    op.create_table(
        "blueprints",
        sa.Column("blueprint_id", sa.Uuid(), nullable=False),
        sa.Column("suite_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["suite_id"], ["blueprint_suites.suite_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("blueprint_id"),
        sa.UniqueConstraint("suite_id", "position", name="uq_blueprints_suite_position"),
    )

    op.create_table(
        "prompt_sequences",
        sa.Column("sequence_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("suite_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total_prompts", sa.Integer(), nullable=False),
        sa.Column("completed_prompts", sa.Integer(), nullable=False),
        sa.Column("current_prompt_index", sa.Integer(), nullable=False),
        sa.Column("skip_categories", JSON, nullable=False),
        sa.Column("credits_charged", CREDITS, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.project_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["suite_id"], ["blueprint_suites.suite_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["accounts.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("sequence_id"),
        sa.UniqueConstraint("project_id", name="uq_prompt_sequences_project"),
    )

    op.create_table(
        "implementation_prompts",
        sa.Column("prompt_id", sa.Uuid(), nullable=False),
        sa.Column("sequence_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("suite_id", sa.Uuid(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("prerequisites", JSON, nullable=False),
        sa.Column("user_actions", JSON, nullable=False),
        sa.Column("acceptance_criteria", JSON, nullable=False),
        sa.Column("next_step", sa.Text(), nullable=True),
        sa.Column("estimated_time", sa.String(32), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["sequence_id"], ["prompt_sequences.sequence_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("prompt_id"),
        sa.UniqueConstraint("sequence_id", "sequence_number", name="uq_prompts_sequence_number"),
    )
    op.create_index(
        "idx_prompts_project_number", "implementation_prompts", ["project_id", "sequence_number"]
    )


def downgrade() -> None:
    op.drop_index("idx_prompts_project_number", table_name="implementation_prompts")
    op.drop_table("implementation_prompts")
    op.drop_table("prompt_sequences")
    op.drop_table("blueprints")
    op.drop_index("idx_blueprint_suites_project_time", table_name="blueprint_suites")
    op.drop_table("blueprint_suites")
    op.drop_index("idx_conversations_project_time", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("idx_projects_user", table_name="projects")
    op.drop_table("projects")
    op.drop_index("idx_credit_transactions_user_time", table_name="credit_transactions")
    op.drop_table("credit_transactions")
    op.drop_table("accounts")
