"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:12:41.508311

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    # ISO-8601 UTC strings
    return [
        sa.Column("created_at", sa.String(length=32), nullable=False),
        sa.Column("updated_at", sa.String(length=32), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "mood_entries",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("entry_time", sa.BigInteger(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("emotion", sa.String(length=64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("social_context", sa.String(length=255), nullable=True),
        sa.Column("weather", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_mood_entries_rating"),
    )
    op.create_index("mood_entries_timestamp", "mood_entries", ["entry_time"], unique=False)

    op.create_table(
        "people",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("context", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=True),
        sa.Column("birth_date", sa.String(length=32), nullable=True),
        sa.Column("is_deceased", sa.Boolean(), nullable=False),
        sa.Column("deceased_date", sa.String(length=32), nullable=True),
        sa.Column("phone_number", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("socials", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_people_name", "people", ["name"], unique=False)

    op.create_table(
        "places",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_places_name", "places", ["name"], unique=False)

    op.create_table(
        "mood_tags",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("mood_id", sa.String(length=64), sa.ForeignKey("mood_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tag_name", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("mood_id", "tag_name", name="uq_mood_tags_mood_tag"),
    )
    op.create_index("ix_mood_tags_mood_id", "mood_tags", ["mood_id"], unique=False)

    op.create_table(
        "mood_activities",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("mood_id", sa.String(length=64), sa.ForeignKey("mood_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("activity_type", sa.String(length=32), nullable=False),
        sa.Column("activity_name", sa.String(length=16), nullable=False),
        sa.UniqueConstraint("mood_id", "activity_type", name="uq_mood_activities_mood_type"),
    )
    op.create_index("ix_mood_activities_mood_id", "mood_activities", ["mood_id"], unique=False)

    op.create_table(
        "mood_entry_metadata",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("mood_id", sa.String(length=64), sa.ForeignKey("mood_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("metadata_type", sa.String(length=16), nullable=False),
        sa.Column("metadata_value", sa.Text(), nullable=False),
        sa.Column("created_at", sa.String(length=32), nullable=False),
        sa.UniqueConstraint("mood_id", "metadata_type", name="uq_mood_metadata_mood_type"),
    )
    op.create_index("ix_mood_entry_metadata_mood_id", "mood_entry_metadata", ["mood_id"], unique=False)

    op.create_table(
        "mood_people",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("mood_id", sa.String(length=64), sa.ForeignKey("mood_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("person_id", sa.String(length=64), sa.ForeignKey("people.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("mood_id", "person_id", name="uq_mood_people_pair"),
    )
    op.create_index("ix_mood_people_mood_id", "mood_people", ["mood_id"], unique=False)
    op.create_index("ix_mood_people_person_id", "mood_people", ["person_id"], unique=False)

    op.create_table(
        "person_tags",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("person_id", sa.String(length=64), sa.ForeignKey("people.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("person_id", "type", "value", name="uq_person_tags_key"),
    )
    op.create_index("ix_person_tags_person_id", "person_tags", ["person_id"], unique=False)

    op.create_table(
        "place_moods",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("place_id", sa.String(length=64), sa.ForeignKey("places.id", ondelete="CASCADE"), nullable=False),
        sa.Column("mood_id", sa.String(length=64), sa.ForeignKey("mood_entries.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("mood_id", name="uq_place_moods_mood"),
    )
    op.create_index("ix_place_moods_place_id", "place_moods", ["place_id"], unique=False)
    op.create_index("ix_place_moods_mood_id", "place_moods", ["mood_id"], unique=False)

    op.create_table(
        "food_entries",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("calories", sa.Float(), nullable=False),
        sa.Column("protein", sa.Float(), nullable=False),
        sa.Column("carbs", sa.Float(), nullable=False),
        sa.Column("fat", sa.Float(), nullable=False),
        sa.Column("meal_type", sa.String(length=16), nullable=False),
        sa.Column("date", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("image_uri", sa.Text(), nullable=True),
        sa.Column("place_id", sa.String(length=64), sa.ForeignKey("places.id", ondelete="SET NULL"), nullable=True),
        sa.Column("mood_id", sa.String(length=64), sa.ForeignKey("mood_entries.id", ondelete="SET NULL"), nullable=True),
        sa.Column("mood_rating", sa.Integer(), nullable=True),
        sa.Column("mood_emotion", sa.String(length=64), nullable=True),
        sa.Column("food_rating", sa.Integer(), nullable=True),
        sa.Column("is_restaurant", sa.Boolean(), nullable=False),
        sa.Column("restaurant_name", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "calories >= 0 AND protein >= 0 AND carbs >= 0 AND fat >= 0", name="ck_food_entries_macros"
        ),
    )
    op.create_index("ix_food_entries_date", "food_entries", ["date"], unique=False)
    op.create_index("ix_food_entries_place_id", "food_entries", ["place_id"], unique=False)

    op.create_table(
        "food_people",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("food_id", sa.String(length=64), sa.ForeignKey("food_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("person_id", sa.String(length=64), sa.ForeignKey("people.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("food_id", "person_id", name="uq_food_people_pair"),
    )
    op.create_index("ix_food_people_food_id", "food_people", ["food_id"], unique=False)
    op.create_index("ix_food_people_person_id", "food_people", ["person_id"], unique=False)


def downgrade() -> None:
    for table in (
        "food_people",
        "food_entries",
        "place_moods",
        "person_tags",
        "mood_people",
        "mood_entry_metadata",
        "mood_activities",
        "mood_tags",
        "places",
        "people",
        "mood_entries",
    ):
        op.drop_table(table)
