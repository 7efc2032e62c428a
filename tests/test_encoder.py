from datetime import datetime

import numpy as np
import pytest

from moodcast.encoder import (
    build_examples,
    context_values,
    current_conditions_from_history,
    day_index,
    denormalize_mood,
    encode,
    encode_single,
    entries_frame,
    normalize_mood,
)
from moodcast.entries import CurrentConditions, Factor, MoodEntry, TimeOfDay

from .conftest import make_entry, random_journal


@pytest.mark.parametrize("value", [1, 2, 3, 4, 5])
def test_normalize_round_trip(value):
    assert denormalize_mood(normalize_mood(value)) == value


def test_normalize_bounds():
    assert normalize_mood(1) == 0.0
    assert normalize_mood(5) == 1.0


@pytest.mark.parametrize("n", [10, 11, 25, 60])
def test_encode_yields_n_minus_one_examples_in_unit_range(n):
    X, y = encode(random_journal(n, seed=n))
    assert X.shape == (n - 1, 7)
    assert y.shape == (n - 1,)
    assert X.dtype == np.float64
    assert ((X >= 0) & (X <= 1)).all()
    assert ((y >= 0) & (y <= 1)).all()


def test_encode_insufficient_data():
    assert encode(random_journal(9)) is None
    assert encode([]) is None


def test_labels_and_previous_mood():
    entries = [make_entry(i, mood) for i, mood in enumerate([1, 3, 5, 2, 4, 1, 1, 5, 5, 3])]
    X, y = encode(entries)
    assert y.tolist() == [normalize_mood(m) for m in [3, 5, 2, 4, 1, 1, 5, 5, 3]]
    assert X[:, Factor.PREVIOUS_MOOD.position].tolist() == [
        normalize_mood(m) for m in [1, 3, 5, 2, 4, 1, 1, 5, 5]
    ]


def test_time_of_day_mapping_and_default():
    entries = [
        make_entry(0, 3),
        make_entry(1, 3, time_of_day=TimeOfDay.MORNING),
        make_entry(2, 3, time_of_day=TimeOfDay.AFTERNOON),
        make_entry(3, 3, time_of_day=TimeOfDay.NIGHT),
        make_entry(4, 3),
    ]
    X, _ = build_examples(entries)
    assert X[:, Factor.TIME_OF_DAY.position].tolist() == [0.0, 1 / 3, 1.0, 2 / 3]


def test_day_of_week_starts_on_sunday():
    assert day_index(datetime(2024, 1, 7)) == 0  # Sunday
    assert day_index(datetime(2024, 1, 1)) == 1  # Monday
    assert day_index(datetime(2024, 1, 6)) == 6  # Saturday


def test_context_defaults():
    values = context_values(make_entry(0, 3))
    assert values == {
        Factor.SLEEP_QUALITY: 0.5,
        Factor.EXERCISE: 0.0,
        Factor.SOCIAL_INTERACTION: 0.0,
        Factor.WORK_STRESS: 0.0,
    }


def test_context_overrides():
    entry = make_entry(0, 2, triggers=("Work Stress", "Poor Sleep", "Traffic"),
                       activities=("Talking with Friend", "Reading"))
    values = context_values(entry)
    assert values[Factor.WORK_STRESS] == 1.0
    assert values[Factor.SLEEP_QUALITY] == 0.0
    assert values[Factor.SOCIAL_INTERACTION] == 1.0
    assert values[Factor.EXERCISE] == 0.0


def test_activity_wins_over_trigger_for_sleep():
    entry = make_entry(0, 3, triggers=("Poor Sleep",), activities=("Good Sleep",))
    assert context_values(entry)[Factor.SLEEP_QUALITY] == 1.0


def test_labels_in_wrong_role_are_ignored():
    # "Exercise" logged as a trigger and "Work Stress" as an activity change nothing
    entry = make_entry(0, 3, triggers=("Exercise",), activities=("Work Stress",))
    values = context_values(entry)
    assert values[Factor.EXERCISE] == 0.0
    assert values[Factor.WORK_STRESS] == 0.0


def test_encode_single_uses_clock():
    now = datetime(2024, 1, 3, 18, 30)  # Wednesday evening
    x = encode_single(CurrentConditions(last_mood_value=5, sleep_quality=0.0, exercise=True), now=now)
    assert x.shape == (7,)
    assert x.tolist() == [3 / 6, 2 / 3, 1.0, 0.0, 1.0, 0.0, 0.0]


@pytest.mark.parametrize("hour,expected", [(0, 0), (11, 0), (12, 1), (16, 1), (17, 2), (20, 2), (21, 3), (23, 3)])
def test_encode_single_time_buckets(hour, expected):
    x = encode_single(CurrentConditions(), now=datetime(2024, 1, 1, hour))
    assert x[Factor.TIME_OF_DAY.position] == expected / 3


def test_encode_single_defaults_previous_mood():
    x = encode_single(CurrentConditions(), now=datetime(2024, 1, 1, 9))
    assert x[Factor.PREVIOUS_MOOD.position] == 0.5
    assert x[Factor.SLEEP_QUALITY.position] == 0.5


def test_current_conditions_from_recent_entries():
    entries = [
        make_entry(0, 2, triggers=("Work Stress",)),
        make_entry(1, 3, activities=("Exercise",)),
        make_entry(2, 4),
        make_entry(3, 4, activities=("Talking with Friend",)),
        make_entry(4, 5),
    ]
    conditions = current_conditions_from_history(entries, sleep_quality=0.8)
    assert conditions.last_mood_value == 5
    assert conditions.sleep_quality == 0.8
    assert conditions.social_interaction is True
    # older than the three most recent entries
    assert conditions.exercise is False
    assert conditions.work_stress is False


def test_entries_frame_columns():
    df = entries_frame(random_journal(4))
    assert list(df.columns) == ["timestamp", "mood_value", "time_of_day", "sleep_quality"]
    assert len(df) == 4


def test_mood_entry_validation():
    with pytest.raises(ValueError):
        make_entry(0, 6)
    with pytest.raises(ValueError):
        make_entry(0, 3, sleep_quality=1.5)


def test_mood_entry_from_api_payload():
    entry = MoodEntry.from_dict({
        "mood": "happy",
        "moodValue": 4,
        "timeOfDay": "",
        "triggers": ["Work Stress"],
        "activities": [],
        "timestamp": "2024-02-10T08:15:00.000Z",
    })
    assert entry.time_of_day is None
    assert entry.sleep_quality == 0.5
    assert entry.triggers == ("Work Stress",)
    assert entry.timestamp == datetime(2024, 2, 10, 8, 15)


def test_logged_sleep_quality_is_not_a_feature_input():
    entries = [make_entry(i, 3, sleep_quality=0.9) for i in range(10)]
    X, _ = encode(entries)
    assert X[:, Factor.SLEEP_QUALITY.position].tolist() == [0.5] * 9


def test_sleep_labels_override_neutral_sleep():
    assert context_values(make_entry(0, 3, sleep_quality=0.9, triggers=("Poor Sleep",)))[
        Factor.SLEEP_QUALITY] == 0.0
    assert context_values(make_entry(0, 3, sleep_quality=0.1, activities=("Good Sleep",)))[
        Factor.SLEEP_QUALITY] == 1.0
