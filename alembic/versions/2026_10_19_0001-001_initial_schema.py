"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

All 3 tables as defined in app/models/database_models.py:
users, blind_spots, buddy_matches.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── Enum types ────────────────────────────────────────────────────────
    match_status = sa.Enum("pending", "accepted", "rejected", "active", name="matchstatus")
    match_status.create(op.get_bind(), checkfirst=True)

    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("study_style", sa.JSON, nullable=True),
        sa.Column("interest_tags", sa.JSON, nullable=True),
        sa.Column("availability", sa.JSON, nullable=True),
        sa.Column("experience_level", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── blind_spots ───────────────────────────────────────────────────────
    op.create_table(
        "blind_spots",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("topic", sa.String(255), nullable=False),
        sa.Column("confidence", sa.Float, nullable=False),
        sa.Column("ai_analysis", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── buddy_matches ─────────────────────────────────────────────────────
    op.create_table(
        "buddy_matches",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id1", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id2", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("compatibility_score", sa.Float, nullable=False),
        sa.Column("common_topics", sa.JSON, nullable=True),
        sa.Column("suggested_activities", sa.JSON, nullable=True),
        sa.Column(
            "status",
            postgresql.ENUM("pending", "accepted", "rejected", "active", name="matchstatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("buddy_matches")
    op.drop_table("blind_spots")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS matchstatus")
