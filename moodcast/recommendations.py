"""
recommendations.py

Turns the factor ranking and counterfactual predictions into short,
human-readable suggestions.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import torch.nn as nn

from .analysis import analyze
from .config import (
    IMPROVEMENT_THRESHOLD,
    MAX_RECOMMENDATIONS,
    MIN_RECOMMENDATION_ENTRIES,
    TOP_FACTOR_COUNT,
)
from .encoder import entries_frame
from .entries import CurrentConditions, Factor, MoodEntry
from .model import predict_mood

logger = logging.getLogger(__name__)

NEED_MORE_ENTRIES = "Log more entries to get ML-powered recommendations"
ANALYSIS_UNAVAILABLE = "Unable to analyze factors"
GENERATION_FAILED = "Error generating ML-powered recommendations"

FACTOR_MESSAGES: Dict[Factor, str] = {
    Factor.SLEEP_QUALITY: "Prioritize consistent sleep schedule for improved mood",
    Factor.EXERCISE: "Regular physical activity significantly improves your mood",
    Factor.SOCIAL_INTERACTION: "Connecting with friends appears to have a positive effect on your mood",
    Factor.WORK_STRESS: "Consider stress management techniques for work-related pressure",
    Factor.DAY_OF_WEEK: "Your mood follows weekly patterns - plan activities accordingly",
}
BEST_TIME_MESSAGE = "Schedule important activities during {time} when your mood tends to be best"

# Counterfactual tweaks, as (conditions field, improving value, message)
RIGHT_NOW_CHANGES = (
    (Factor.SLEEP_QUALITY, "sleep_quality", 1.0, "A short nap or rest might help your current state"),
    (Factor.EXERCISE, "exercise", True, "Right now, physical activity would likely improve your mood"),
    (Factor.SOCIAL_INTERACTION, "social_interaction", True, "Connecting with a friend could help your current mood"),
    (Factor.WORK_STRESS, "work_stress", False, "Taking a break from work stress would be beneficial now"),
)


def best_time_of_day(entries: Sequence[MoodEntry]) -> Optional[str]:
    """Time-of-day bucket with the highest average mood (first seen wins ties)."""
    df = entries_frame(entries).dropna(subset=["time_of_day"])
    if df.empty:
        return None
    averages = df.groupby("time_of_day", sort=False)["mood_value"].mean()
    return str(averages.idxmax())


def factor_message(factor: Factor, entries: Sequence[MoodEntry]) -> Optional[str]:
    if factor is Factor.TIME_OF_DAY:
        best = best_time_of_day(entries)
        return BEST_TIME_MESSAGE.format(time=best) if best else None
    return FACTOR_MESSAGES.get(factor)


def right_now_messages(
    model: nn.Module,
    conditions: CurrentConditions,
    now: Optional[datetime] = None,
) -> List[str]:
    """Tips for the changes that would raise the predicted mood by more than the threshold."""
    now = now or datetime.now()
    current = predict_mood(model, conditions, now)

    messages = []
    for factor, field_name, value, message in RIGHT_NOW_CHANGES:
        modified = replace(conditions, **{field_name: value})
        gain = predict_mood(model, modified, now) - current
        logger.debug("Setting %s would change predicted mood by %.3f", factor.value, gain)
        if gain > IMPROVEMENT_THRESHOLD:
            messages.append(message)
    return messages


def recommend(
    model: Optional[nn.Module],
    entries: Sequence[MoodEntry],
    conditions: Optional[CurrentConditions] = None,
    now: Optional[datetime] = None,
) -> List[str]:
    """
    Up to MAX_RECOMMENDATIONS unique suggestions: messages for the top
    factors first, then "right now" tips derived from `conditions`.
    """
    if model is None or len(entries) < MIN_RECOMMENDATION_ENTRIES:
        return [NEED_MORE_ENTRIES]

    try:
        ranking = analyze(model, entries)
    except Exception:
        logger.exception("Error analyzing factor importance")
        ranking = None
    if not ranking:
        return [ANALYSIS_UNAVAILABLE]

    try:
        recommendations = []
        for item in ranking[:TOP_FACTOR_COUNT]:
            message = factor_message(item.factor, entries)
            if message:
                recommendations.append(message)

        if conditions is not None:
            recommendations.extend(right_now_messages(model, conditions, now))
    except Exception:
        logger.exception("Error generating recommendations")
        return [GENERATION_FAILED]

    return list(dict.fromkeys(recommendations))[:MAX_RECOMMENDATIONS]
