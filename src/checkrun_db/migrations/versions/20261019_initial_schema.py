"""Create the catalog, questionnaire, response and settings tables.

Initial migration.  ``order_index`` uniqueness is DEFERRABLE INITIALLY
DEFERRED on both ordered tables so a bulk renumbering inside one transaction
is only checked at commit.  Test responses cascade with their
parent instruction.  Questionnaire answers keep a copy of their question and
only lose the link (SET NULL) when the item set is replaced.

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import TIMESTAMP

# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Instruction catalog ---
    op.create_table(
        "instructions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("device", sa.String(16), nullable=False),
        sa.Column("video_url", sa.Text, nullable=True),
        sa.Column("order_index", sa.Integer, nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "order_index",
            name="uq_instruction_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        sa.CheckConstraint("order_index >= 1", name="ck_instruction_order_positive"),
        sa.CheckConstraint(
            "device IN ('desktop', 'mobile')", name="ck_instruction_device",
        ),
    )

    # --- Closing questionnaire ---
    op.create_table(
        "questionnaires",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("order_index", sa.Integer, nullable=False),
        sa.Column(
            "required", sa.Boolean, nullable=False, server_default=sa.true(),
        ),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "order_index",
            name="uq_questionnaire_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        sa.CheckConstraint(
            "order_index >= 1", name="ck_questionnaire_order_positive",
        ),
    )

    # --- Per-instruction decisions ---
    op.create_table(
        "test_responses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "instruction_id",
            sa.Integer,
            sa.ForeignKey("instructions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("test_run_id", sa.Text, nullable=False),
        sa.Column("tester_name", sa.Text, nullable=False),
        sa.Column("approved", sa.Boolean, nullable=False),
        sa.Column("remark", sa.Text, nullable=True),
        sa.Column("test_number", sa.Integer, nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "test_run_id", "test_number", name="uq_run_test_number",
        ),
        sa.CheckConstraint("test_number >= 1", name="ck_test_number_positive"),
        sa.CheckConstraint(
            "approved OR (remark IS NOT NULL AND length(trim(remark)) > 0)",
            name="ck_rejection_has_remark",
        ),
    )
    op.create_index(
        "ix_test_responses_instruction_id", "test_responses", ["instruction_id"],
    )

    # --- Questionnaire answers ---
    op.create_table(
        "questionnaire_responses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("test_run_id", sa.Text, nullable=False),
        sa.Column(
            "questionnaire_id",
            sa.Integer,
            sa.ForeignKey("questionnaires.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("question_title", sa.Text, nullable=False),
        sa.Column("question_order", sa.Integer, nullable=False),
        sa.Column("tester_name", sa.Text, nullable=False),
        sa.Column("answer", sa.Text, nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "test_run_id", "questionnaire_id", name="uq_run_questionnaire",
        ),
    )
    op.create_index(
        "ix_questionnaire_responses_run", "questionnaire_responses", ["test_run_id"],
    )

    # --- Mutable notification settings (single row) ---
    op.create_table(
        "settings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("report_email", sa.Text, nullable=True),
        sa.Column("rejection_email", sa.Text, nullable=True),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_table("questionnaire_responses")
    op.drop_table("test_responses")
    op.drop_table("questionnaires")
    op.drop_table("instructions")
