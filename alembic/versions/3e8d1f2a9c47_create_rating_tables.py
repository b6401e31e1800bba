"""create_rating_tables

Revision ID: 3e8d1f2a9c47
Revises:
Create Date: 2025-03-01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3e8d1f2a9c47"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _rating_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "trustpilot_ratings",
        *_rating_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_trustpilot_ratings_provider_key"), "trustpilot_ratings", ["provider_key"], unique=True
    )
    op.create_index(
        op.f("ix_trustpilot_ratings_last_updated"), "trustpilot_ratings", ["last_updated"], unique=False
    )

    op.create_table(
        "google_ratings",
        *_rating_columns(),
        sa.Column("place_id", sa.String(length=200), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_google_ratings_provider_key"), "google_ratings", ["provider_key"], unique=True)
    op.create_index(op.f("ix_google_ratings_last_updated"), "google_ratings", ["last_updated"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_google_ratings_last_updated"), table_name="google_ratings")
    op.drop_index(op.f("ix_google_ratings_provider_key"), table_name="google_ratings")
    op.drop_table("google_ratings")

    op.drop_index(op.f("ix_trustpilot_ratings_last_updated"), table_name="trustpilot_ratings")
    op.drop_index(op.f("ix_trustpilot_ratings_provider_key"), table_name="trustpilot_ratings")
    op.drop_table("trustpilot_ratings")
