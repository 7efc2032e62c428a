"""
entries.py

Journal data types consumed by the pipeline:
- TimeOfDay / Factor enums
- MoodEntry (one logged mood) and its parsing from the API's JSON
- CurrentConditions (inference-time context)
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import DEFAULT_SLEEP_QUALITY


class TimeOfDay(Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"
    NIGHT = "Night"

    @property
    def index(self) -> int:
        return TIME_OF_DAY_INDEX[self]

    @classmethod
    def parse(cls, value: Any) -> Optional["TimeOfDay"]:
        """Accept an enum, its label, or an empty/missing value."""
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().capitalize())

    @classmethod
    def for_hour(cls, hour: int) -> "TimeOfDay":
        if hour < 12:
            return cls.MORNING
        if hour < 17:
            return cls.AFTERNOON
        if hour < 21:
            return cls.EVENING
        return cls.NIGHT


TIME_OF_DAY_INDEX = {
    TimeOfDay.MORNING: 0,
    TimeOfDay.AFTERNOON: 1,
    TimeOfDay.EVENING: 2,
    TimeOfDay.NIGHT: 3,
}


class Factor(Enum):
    """Model inputs, in feature-vector order."""

    DAY_OF_WEEK = "dayOfWeek"
    TIME_OF_DAY = "timeOfDay"
    PREVIOUS_MOOD = "previousMoodValue"
    SLEEP_QUALITY = "sleepQuality"
    EXERCISE = "exercise"
    SOCIAL_INTERACTION = "socialInteraction"
    WORK_STRESS = "workStress"

    @property
    def position(self) -> int:
        return FACTORS.index(self)

    @property
    def label(self) -> str:
        return factor_label(self.value)


FACTORS: Tuple[Factor, ...] = tuple(Factor)
FEATURE_NAMES: List[str] = [f.value for f in FACTORS]


def factor_label(name: str) -> str:
    """'workStress' -> 'work stress'"""
    return re.sub(r"([A-Z])", r" \1", name).lower()


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO string / datetime into a naive datetime (UTC if zoned)."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.to_pydatetime()


@dataclass(frozen=True)
class MoodEntry:
    mood_value: int
    timestamp: datetime
    time_of_day: Optional[TimeOfDay] = None
    triggers: Tuple[str, ...] = ()
    activities: Tuple[str, ...] = ()
    sleep_quality: float = DEFAULT_SLEEP_QUALITY
    mood: str = ""
    note: str = ""

    def __post_init__(self):
        if not 1 <= self.mood_value <= 5:
            raise ValueError(f"mood_value must be between 1 and 5, got {self.mood_value}")
        if not 0.0 <= self.sleep_quality <= 1.0:
            raise ValueError(f"sleep_quality must be between 0 and 1, got {self.sleep_quality}")
        # lists from JSON are turned into tuples so entries stay hashable
        object.__setattr__(self, "triggers", tuple(self.triggers or ()))
        object.__setattr__(self, "activities", tuple(self.activities or ()))

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "MoodEntry":
        """Build an entry from the journal API's camelCase JSON."""
        sleep = payload.get("sleepQuality")
        return cls(
            mood_value=int(payload["moodValue"]),
            timestamp=parse_timestamp(payload.get("timestamp") or datetime.now()),
            time_of_day=TimeOfDay.parse(payload.get("timeOfDay")),
            triggers=tuple(payload.get("triggers") or ()),
            activities=tuple(payload.get("activities") or ()),
            sleep_quality=DEFAULT_SLEEP_QUALITY if sleep is None else float(sleep),
            mood=payload.get("mood") or "",
            note=payload.get("note") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "moodValue": self.mood_value,
            "timestamp": self.timestamp.isoformat(),
            "timeOfDay": self.time_of_day.value if self.time_of_day else "",
            "triggers": list(self.triggers),
            "activities": list(self.activities),
            "sleepQuality": self.sleep_quality,
            "mood": self.mood,
            "note": self.note,
        }


def sort_entries(entries: Iterable[MoodEntry]) -> List[MoodEntry]:
    """Chronological (ascending) order, as the encoder expects."""
    return sorted(entries, key=lambda e: e.timestamp)


@dataclass
class CurrentConditions:
    """What the user looks like right now, for a single prediction."""

    last_mood_value: Optional[int] = None
    sleep_quality: float = DEFAULT_SLEEP_QUALITY
    exercise: bool = False
    social_interaction: bool = False
    work_stress: bool = False
