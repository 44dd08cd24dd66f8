"""
Plain data objects handed to and returned from the repositories.

Entry objects are deliberately lenient about required fields (rating,
emotion, name) so the repositories can reject them with a typed
ValidationError before touching the store. Patches are partial: only the
fields explicitly set on the patch are applied.
"""
from __future__ import annotations

from datetime import date as date_type, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from memoria.enums import (
    ActivityCategory,
    Intensity,
    MealType,
    PersonStatus,
    RelationshipContext,
    SocialContext,
    Weather,
)


def _clean_set(values: Optional[List[str]]) -> List[str]:
    """Strip, drop blanks and duplicates. Set semantics -> sorted list."""
    out = set()
    for v in values or []:
        s = str(v).strip() if v is not None else ""
        if s:
            out.add(s)
    return sorted(out)


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


# -------------------- mood --------------------


class _MoodFields(_Model):
    @field_validator("tags", "people", mode="before", check_fields=False)
    @classmethod
    def _normalize_set(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            v = [v]
        return _clean_set(list(v))

    @field_validator("activities", mode="before", check_fields=False)
    @classmethod
    def _drop_empty_activities(cls, v):
        if not v:
            return v
        return {k: lvl for k, lvl in dict(v).items() if k and lvl}


class MoodEntry(_MoodFields):
    id: Optional[str] = None
    entry_time: Optional[int] = None  # epoch ms

    rating: Optional[int] = None
    emotion: Optional[str] = None
    notes: Optional[str] = None

    location: Optional[str] = None
    social_context: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("social_context", "socialContext"),
    )
    weather: Optional[str] = None

    location_data: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("location_data", "locationData"),
    )
    weather_data: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("weather_data", "weatherData"),
    )

    tags: List[str] = Field(default_factory=list)
    activities: Dict[ActivityCategory, Intensity] = Field(default_factory=dict)
    people: List[str] = Field(default_factory=list)  # person ids
    place_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        if self.entry_time is None:
            return None
        return datetime.fromtimestamp(self.entry_time / 1000, tz=timezone.utc)

    @property
    def social_context_kind(self) -> Optional[SocialContext]:
        return SocialContext.parse(self.social_context)

    @property
    def weather_kind(self) -> Optional[Weather]:
        return Weather.parse(self.weather)


class MoodEntryPatch(_MoodFields):
    entry_time: Optional[int] = None
    rating: Optional[int] = None
    emotion: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    social_context: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("social_context", "socialContext"),
    )
    weather: Optional[str] = None
    location_data: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("location_data", "locationData"),
    )
    weather_data: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("weather_data", "weatherData"),
    )
    tags: Optional[List[str]] = None
    activities: Optional[Dict[ActivityCategory, Intensity]] = None
    people: Optional[List[str]] = None
    place_id: Optional[str] = None


class MoodStats(_Model):
    entry_count: int = 0
    earliest_entry_time: Optional[int] = None
    latest_entry_time: Optional[int] = None
    tag_count: int = 0
    activity_count: int = 0


# -------------------- food --------------------


class _FoodFields(_Model):
    @field_validator("people", mode="before", check_fields=False)
    @classmethod
    def _normalize_people(cls, v):
        if v is None:
            return v
        return _clean_set(list(v))


class FoodEntry(_FoodFields):
    id: Optional[str] = None
    name: Optional[str] = None
    date: Optional[datetime] = None
    meal_type: MealType = Field(
        default=MealType.SNACK,
        validation_alias=AliasChoices("meal_type", "mealType"),
    )

    calories: float = Field(default=0, ge=0)
    protein: float = Field(default=0, ge=0)
    carbs: float = Field(default=0, ge=0)
    fat: float = Field(default=0, ge=0)

    notes: Optional[str] = None
    image_uri: Optional[str] = None

    mood_rating: Optional[int] = Field(default=None, ge=1, le=5)
    mood_emotion: Optional[str] = None
    food_rating: Optional[int] = Field(default=None, ge=1, le=5)
    is_restaurant: bool = False
    restaurant_name: Optional[str] = None

    people: List[str] = Field(default_factory=list)  # person ids
    place_id: Optional[str] = None
    mood_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FoodEntryPatch(_FoodFields):
    name: Optional[str] = None
    date: Optional[datetime] = None
    meal_type: Optional[MealType] = None
    calories: Optional[float] = Field(default=None, ge=0)
    protein: Optional[float] = Field(default=None, ge=0)
    carbs: Optional[float] = Field(default=None, ge=0)
    fat: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    image_uri: Optional[str] = None
    mood_rating: Optional[int] = Field(default=None, ge=1, le=5)
    mood_emotion: Optional[str] = None
    food_rating: Optional[int] = Field(default=None, ge=1, le=5)
    is_restaurant: Optional[bool] = None
    restaurant_name: Optional[str] = None
    people: Optional[List[str]] = None
    place_id: Optional[str] = None
    mood_id: Optional[str] = None


class DayNutrition(_Model):
    day: date_type
    entries: int = 0
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0


class NutritionSummary(_Model):
    entry_count: int = 0
    avg_calories: int = 0
    avg_protein: float = 0
    avg_carbs: float = 0
    avg_fat: float = 0
    days: List[DayNutrition] = Field(default_factory=list)


# -------------------- people --------------------


class _PersonFields(_Model):
    @field_validator("hobbies", "interests", mode="before", check_fields=False)
    @classmethod
    def _normalize_tags(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            v = v.split(",")
        return _clean_set(list(v))


class Person(_PersonFields):
    id: Optional[str] = None
    name: Optional[str] = None
    context: Optional[str] = None
    status: Optional[str] = None
    birth_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("birth_date", "birthDate"),
    )
    is_deceased: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_deceased", "isDeceased"),
    )
    deceased_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("deceased_date", "deceasedDate"),
    )
    phone_number: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("phone_number", "phoneNumber"),
    )
    email: Optional[str] = None
    socials: Optional[str] = None

    hobbies: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def context_kind(self) -> Optional[RelationshipContext]:
        return RelationshipContext.parse(self.context)

    @property
    def status_kind(self) -> Optional[PersonStatus]:
        return PersonStatus.parse(self.status)


class PersonPatch(_PersonFields):
    name: Optional[str] = None
    context: Optional[str] = None
    status: Optional[str] = None
    birth_date: Optional[datetime] = None
    is_deceased: Optional[bool] = None
    deceased_date: Optional[datetime] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    socials: Optional[str] = None
    hobbies: Optional[List[str]] = None
    interests: Optional[List[str]] = None


# -------------------- places --------------------


class Place(_Model):
    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None

    mood_ids: List[str] = Field(default_factory=list)
    mood_count: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PlacePatch(_Model):
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = None


# -------------------- memories --------------------


class _MemoryFields(_Model):
    @field_validator("people", mode="before", check_fields=False)
    @classmethod
    def _normalize_people(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            v = [v]
        return _clean_set(list(v))

    @field_validator("photos", mode="before", check_fields=False)
    @classmethod
    def _drop_blank_photos(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            v = [v]
        # order is the gallery order
        return [str(p).strip() for p in v if p is not None and str(p).strip()]


class Memory(_MemoryFields):
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    location: Optional[str] = None

    people: List[str] = Field(default_factory=list)  # person ids
    photos: List[str] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MemoryPatch(_MemoryFields):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    location: Optional[str] = None
    people: Optional[List[str]] = None
    photos: Optional[List[str]] = None


# -------------------- history --------------------


class PersonHistory(_Model):
    person: Person
    moods: List[MoodEntry] = Field(default_factory=list)
    food: List[FoodEntry] = Field(default_factory=list)
    memories: List[Memory] = Field(default_factory=list)


class PlaceHistory(_Model):
    place: Place
    moods: List[MoodEntry] = Field(default_factory=list)
    food: List[FoodEntry] = Field(default_factory=list)
