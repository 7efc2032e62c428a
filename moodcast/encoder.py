"""
encoder.py

Feature engineering for the mood regressor:
- Normalising mood values between the 1-5 scale and [0, 1]
- Turning a chronological journal into (features, labels) for training
- Building a single feature vector from current conditions for inference
- A pandas view of the journal for history-based analyses
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import (
    DEFAULT_PREVIOUS_MOOD,
    DEFAULT_SLEEP_QUALITY,
    MIN_TRAINING_ENTRIES,
    NUM_FEATURES,
    RECENT_ENTRY_WINDOW,
)
from .entries import CurrentConditions, Factor, MoodEntry, TimeOfDay

# --------- LOOKUP TABLES ---------

# Journal labels that feed a model input
LABEL_FACTORS: Dict[str, Factor] = {
    "Work Stress": Factor.WORK_STRESS,
    "Poor Sleep": Factor.SLEEP_QUALITY,
    "Good Sleep": Factor.SLEEP_QUALITY,
    "Exercise": Factor.EXERCISE,
    "Talking with Friend": Factor.SOCIAL_INTERACTION,
}

# Value a factor takes when its label is logged as a trigger / as an activity.
# Factors missing from a table are left untouched for that role.
TRIGGER_VALUES: Dict[Factor, float] = {
    Factor.WORK_STRESS: 1.0,
    Factor.SLEEP_QUALITY: 0.0,
}
ACTIVITY_VALUES: Dict[Factor, float] = {
    Factor.EXERCISE: 1.0,
    Factor.SOCIAL_INTERACTION: 1.0,
    Factor.SLEEP_QUALITY: 1.0,
}

# Index used when an entry has no time of day (Evening)
DEFAULT_TIME_INDEX = TimeOfDay.EVENING.index


# --------- NORMALISATION ---------

def normalize_mood(value: float) -> float:
    """Map a mood from [1, 5] onto [0, 1]."""
    return (value - 1) / 4


def denormalize_mood(value: float) -> float:
    """Map a model output from [0, 1] back onto [1, 5]."""
    return 1 + value * 4


def day_index(moment: datetime) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6."""
    return (moment.weekday() + 1) % 7


# --------- TRAINING DATA ---------

def context_values(entry: MoodEntry) -> Dict[Factor, float]:
    """
    Resolve the four context inputs of one entry.

    Starts from a neutral sleep quality and zero flags, then applies the
    trigger table followed by the activity table, so an activity wins over a
    trigger that maps to the same factor.
    """
    values = {
        Factor.SLEEP_QUALITY: DEFAULT_SLEEP_QUALITY,
        Factor.EXERCISE: 0.0,
        Factor.SOCIAL_INTERACTION: 0.0,
        Factor.WORK_STRESS: 0.0,
    }
    for labels, table in ((entry.triggers, TRIGGER_VALUES), (entry.activities, ACTIVITY_VALUES)):
        for label in labels:
            factor = LABEL_FACTORS.get(label)
            if factor in table:
                values[factor] = table[factor]
    return values


def entry_features(entry: MoodEntry, previous: MoodEntry) -> np.ndarray:
    """Feature vector for `entry`, using `previous` for the mood lag."""
    time_index = entry.time_of_day.index if entry.time_of_day is not None else DEFAULT_TIME_INDEX
    context = context_values(entry)
    return np.array(
        [
            day_index(entry.timestamp) / 6,
            time_index / 3,
            normalize_mood(previous.mood_value),
            context[Factor.SLEEP_QUALITY],
            context[Factor.EXERCISE],
            context[Factor.SOCIAL_INTERACTION],
            context[Factor.WORK_STRESS],
        ],
        dtype=np.float64,
    )


def build_examples(entries: Sequence[MoodEntry]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pair every entry after the first with its predecessor.

    Args:
        entries: journal sorted ascending by timestamp

    Returns:
        X: (N-1, 7) float64 feature matrix
        y: (N-1,) normalised mood labels
    """
    features = [entry_features(entries[i], entries[i - 1]) for i in range(1, len(entries))]
    labels = [normalize_mood(entries[i].mood_value) for i in range(1, len(entries))]

    X = np.array(features, dtype=np.float64).reshape(-1, NUM_FEATURES)
    y = np.array(labels, dtype=np.float64)
    return X, y


def encode(entries: Sequence[MoodEntry]) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Training set for a user's journal, or None when there are fewer than
    MIN_TRAINING_ENTRIES entries. The caller is responsible for ordering.
    """
    if len(entries) < MIN_TRAINING_ENTRIES:
        return None
    return build_examples(entries)


# --------- INFERENCE ---------

def encode_single(conditions: CurrentConditions, now: Optional[datetime] = None) -> np.ndarray:
    """Feature vector for a prediction made at `now` (wall clock by default)."""
    now = now or datetime.now()
    time_index = TimeOfDay.for_hour(now.hour).index

    if conditions.last_mood_value is not None:
        previous = normalize_mood(conditions.last_mood_value)
    else:
        previous = DEFAULT_PREVIOUS_MOOD

    return np.array(
        [
            day_index(now) / 6,
            time_index / 3,
            previous,
            float(conditions.sleep_quality),
            1.0 if conditions.exercise else 0.0,
            1.0 if conditions.social_interaction else 0.0,
            1.0 if conditions.work_stress else 0.0,
        ],
        dtype=np.float64,
    )


def current_conditions_from_history(
    entries: Sequence[MoodEntry],
    sleep_quality: float = 0.5,
) -> CurrentConditions:
    """
    Conditions implied by the journal: the last logged mood, plus any
    exercise / social / work-stress label among the most recent entries.
    """
    recent = entries[-RECENT_ENTRY_WINDOW:]

    def seen(factor: Factor, role: str) -> bool:
        return any(
            LABEL_FACTORS.get(label) is factor
            for entry in recent
            for label in getattr(entry, role)
        )

    return CurrentConditions(
        last_mood_value=entries[-1].mood_value if entries else 3,
        sleep_quality=sleep_quality,
        exercise=seen(Factor.EXERCISE, "activities"),
        social_interaction=seen(Factor.SOCIAL_INTERACTION, "activities"),
        work_stress=seen(Factor.WORK_STRESS, "triggers"),
    )


# --------- TABULAR VIEW ---------

def entries_frame(entries: Sequence[MoodEntry]) -> pd.DataFrame:
    """One row per entry: timestamp, mood_value, time_of_day, sleep_quality."""
    rows: List[dict] = [
        {
            "timestamp": e.timestamp,
            "mood_value": e.mood_value,
            "time_of_day": e.time_of_day.value if e.time_of_day else None,
            "sleep_quality": e.sleep_quality,
        }
        for e in entries
    ]
    return pd.DataFrame(rows, columns=["timestamp", "mood_value", "time_of_day", "sleep_quality"])
