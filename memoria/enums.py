from __future__ import annotations

import enum
from typing import Optional


class _Vocabulary(str, enum.Enum):
    """
    Closed vocabulary with an OTHER fallback.

    The raw user text is what gets stored; parse() only classifies it, so
    ad hoc values typed by the user survive unchanged.
    """

    @classmethod
    def _lookup(cls, s: str):
        for member in cls:
            if s in (member.value.lower(), member.label.lower()):
                return member
        return None

    @classmethod
    def _missing_(cls, value):
        # case-insensitive, also accepts display labels ("Self Care")
        if isinstance(value, str):
            return cls._lookup(value.strip().lower())
        return None

    @classmethod
    def parse(cls, text: Optional[str]):
        s = (text or "").strip().lower()
        if not s:
            return None
        return cls._lookup(s) or getattr(cls, "OTHER", None)

    @property
    def label(self) -> str:
        return _LABELS.get(self, self.value)


class Emotion(_Vocabulary):
    HAPPY = "happy"
    EXCITED = "excited"
    CONTENT = "content"
    NEUTRAL = "neutral"
    SAD = "sad"
    ANXIOUS = "anxious"
    STRESSED = "stressed"
    ANGRY = "angry"
    TIRED = "tired"
    CALM = "calm"
    BORED = "bored"
    GRATEFUL = "grateful"
    CONFUSED = "confused"
    HOPEFUL = "hopeful"
    OTHER = "other"

    @classmethod
    def label_for(cls, value: str) -> str:
        member = cls.parse(value)
        if member is None or member is cls.OTHER:
            return value
        return member.label


class ActivityCategory(_Vocabulary):
    SOCIAL = "social"
    WORK = "work"
    EXERCISE = "exercise"
    ENTERTAINMENT = "entertainment"
    SELF_CARE = "self_care"
    FOOD = "food"
    SLEEP = "sleep"


class Intensity(_Vocabulary):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class MealType(_Vocabulary):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    DRINK = "drink"


class SocialContext(_Vocabulary):
    ALONE = "Alone"
    WITH_FRIENDS = "With Friends"
    WITH_FAMILY = "With Family"
    WITH_PARTNER = "With Partner"
    IN_A_CROWD = "In a Crowd"
    WITH_COLLEAGUES = "With Colleagues"
    WITH_STRANGERS = "With Strangers"
    OTHER = "Other"


class Weather(_Vocabulary):
    SUNNY = "Sunny"
    CLOUDY = "Cloudy"
    RAINY = "Rainy"
    STORMY = "Stormy"
    SNOWY = "Snowy"
    FOGGY = "Foggy"
    HOT = "Hot"
    COLD = "Cold"
    OTHER = "Other"


class RelationshipContext(_Vocabulary):
    FAMILY = "Family"
    FRIEND = "Friend"
    PARTNER = "Partner"
    COLLEAGUE = "Colleague"
    ACQUAINTANCE = "Acquaintance"
    OTHER = "Other"


class PersonStatus(_Vocabulary):
    CLOSE = "Close"
    ACTIVE = "Active"
    DISTANT = "Distant"
    LOST_CONTACT = "Lost contact"
    OTHER = "Other"


class PersonTagType(str, enum.Enum):
    HOBBY = "hobby"
    INTEREST = "interest"


class MetadataType(str, enum.Enum):
    LOCATION = "location"
    WEATHER = "weather"


_LABELS = {
    Emotion.HAPPY: "Happy",
    Emotion.EXCITED: "Excited",
    Emotion.CONTENT: "Content",
    Emotion.NEUTRAL: "Neutral",
    Emotion.SAD: "Sad",
    Emotion.ANXIOUS: "Anxious",
    Emotion.STRESSED: "Stressed",
    Emotion.ANGRY: "Angry",
    Emotion.TIRED: "Tired",
    Emotion.CALM: "Calm",
    Emotion.BORED: "Bored",
    Emotion.GRATEFUL: "Grateful",
    Emotion.CONFUSED: "Confused",
    Emotion.HOPEFUL: "Hopeful",
    Emotion.OTHER: "Other",
    ActivityCategory.SOCIAL: "Social",
    ActivityCategory.WORK: "Work",
    ActivityCategory.EXERCISE: "Exercise",
    ActivityCategory.ENTERTAINMENT: "Entertainment",
    ActivityCategory.SELF_CARE: "Self Care",
    ActivityCategory.FOOD: "Food & Drink",
    ActivityCategory.SLEEP: "Sleep",
}
