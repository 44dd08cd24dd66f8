from .mood import MoodActivity, MoodEntryRow, MoodMetadata, MoodPerson, MoodTag
from .person import PersonRow, PersonTag
from .place import PlaceMood, PlaceRow
from .food import FoodEntryRow, FoodPerson
from .memory import MemoryPerson, MemoryRow

__all__ = [
    "MoodEntryRow",
    "MoodTag",
    "MoodActivity",
    "MoodMetadata",
    "MoodPerson",
    "PersonRow",
    "PersonTag",
    "PlaceRow",
    "PlaceMood",
    "FoodEntryRow",
    "FoodPerson",
    "MemoryRow",
    "MemoryPerson",
]
