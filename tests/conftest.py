import json
import random
from datetime import datetime, timedelta

import pytest
import torch
import torch.nn as nn

from moodcast.config import TrainingConfig
from moodcast.engine import ModelSession
from moodcast.entries import MoodEntry, TimeOfDay
from moodcast.errors import ModelNotFoundError, PersistenceError
from moodcast.storage import LocalModelCache

# a Monday morning
BASE_TIME = datetime(2024, 1, 1, 9, 0)

LABELS_TRIGGERS = ["Work Stress", "Poor Sleep", "Traffic", "Deadline"]
LABELS_ACTIVITIES = ["Exercise", "Talking with Friend", "Good Sleep", "Reading"]


def make_entry(day, mood, **kwargs):
    return MoodEntry(mood_value=mood, timestamp=BASE_TIME + timedelta(days=day), **kwargs)


def random_journal(n, seed=0):
    rng = random.Random(seed)
    entries = []
    for day in range(n):
        entries.append(make_entry(
            day,
            rng.randint(1, 5),
            time_of_day=rng.choice(list(TimeOfDay) + [None]),
            triggers=tuple(rng.sample(LABELS_TRIGGERS, rng.randint(0, 2))),
            activities=tuple(rng.sample(LABELS_ACTIVITIES, rng.randint(0, 2))),
            sleep_quality=round(rng.random(), 2),
        ))
    return entries


def contrast_journal(pairs=10):
    """Good days (mood 5, exercise, good sleep) alternating with bad days (mood 1, work stress, poor sleep)."""
    entries = []
    for i in range(pairs):
        entries.append(make_entry(2 * i, 5, activities=("Exercise", "Good Sleep"), sleep_quality=1.0))
        entries.append(make_entry(2 * i + 1, 1, triggers=("Work Stress", "Poor Sleep"), sleep_quality=0.0))
    return entries


class FakeRemoteStore:
    """In-memory stand-in for RemoteModelStore; documents go through JSON like the real API."""

    def __init__(self, documents=None, fail=False):
        self.documents = dict(documents or {})
        self.fail = fail
        self.puts = []

    def get_model(self, model_name):
        if self.fail:
            raise PersistenceError("remote store unreachable")
        if model_name not in self.documents:
            raise ModelNotFoundError(model_name)
        return json.loads(json.dumps(self.documents[model_name]))

    def put_model(self, model_name, model_data, metrics):
        if self.fail:
            raise PersistenceError("remote store unreachable")
        self.documents[model_name] = json.loads(json.dumps({"modelData": model_data, "metrics": metrics}))
        self.puts.append(model_name)

    def delete_model(self, model_name):
        if model_name not in self.documents:
            raise ModelNotFoundError(model_name)
        del self.documents[model_name]


class LinearStub(nn.Module):
    """Deterministic 'model': output = bias + sum(weight_i * x_i), shape (batch,)."""

    def __init__(self, weights, bias=0.1):
        super().__init__()
        self.weights = torch.tensor(weights, dtype=torch.float64)
        self.bias = bias

    def forward(self, x):
        return self.bias + x @ self.weights


@pytest.fixture
def cache(tmp_path):
    return LocalModelCache(tmp_path / "models")


@pytest.fixture
def session(cache):
    return ModelSession(cache=cache, config=TrainingConfig(seed=0))


@pytest.fixture
def trained_session(session):
    assert session.train(contrast_journal())
    return session
