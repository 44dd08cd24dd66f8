"""memories

Revision ID: 0002_memories
Revises: 0001_initial
Create Date: 2026-10-19 16:40:08.117902

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002_memories"
down_revision: Union[str, Sequence[str], None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "memories",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.String(length=32), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("photos", sa.Text(), nullable=True),
        sa.Column("created_at", sa.String(length=32), nullable=False),
        sa.Column("updated_at", sa.String(length=32), nullable=False),
    )
    op.create_index("ix_memories_date", "memories", ["date"], unique=False)

    op.create_table(
        "memory_people",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("memory_id", sa.String(length=64), sa.ForeignKey("memories.id", ondelete="CASCADE"), nullable=False),
        sa.Column("person_id", sa.String(length=64), sa.ForeignKey("people.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("memory_id", "person_id", name="uq_memory_people_pair"),
    )
    op.create_index("ix_memory_people_memory_id", "memory_people", ["memory_id"], unique=False)
    op.create_index("ix_memory_people_person_id", "memory_people", ["person_id"], unique=False)


def downgrade() -> None:
    op.drop_table("memory_people")
    op.drop_table("memories")
