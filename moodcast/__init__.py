"""
moodcast

On-device mood prediction for a personal mood journal: feature encoding,
a small PyTorch regressor, factor analysis, recommendations and the
train / save / load lifecycle around them.
"""

from .engine import LoadStatus, ModelMetrics, ModelSession
from .entries import CurrentConditions, Factor, MoodEntry, TimeOfDay
from .lifecycle import InsightState, ModelLifecycleManager

__version__ = "0.1.0"

__all__ = [
    "CurrentConditions",
    "Factor",
    "InsightState",
    "LoadStatus",
    "ModelLifecycleManager",
    "ModelMetrics",
    "ModelSession",
    "MoodEntry",
    "TimeOfDay",
]
