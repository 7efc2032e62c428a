"""
analysis.py

Sensitivity analysis over a trained regressor: which inputs move the
predicted mood the most.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import torch.nn as nn

from .config import MIN_ANALYSIS_ENTRIES
from .encoder import normalize_mood
from .entries import FACTORS, Factor, MoodEntry
from .model import predict_array

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactorImpact:
    factor: Factor
    impact: float
    label: str

    def to_dict(self):
        return {"factor": self.factor.value, "impact": self.impact, "label": self.label}


def baseline_features(entries: Sequence[MoodEntry]) -> np.ndarray:
    """Neutral input with the previous mood set to the journal average."""
    average = float(np.mean([e.mood_value for e in entries]))
    baseline = np.full(len(FACTORS), 0.5, dtype=np.float64)
    baseline[Factor.PREVIOUS_MOOD.position] = normalize_mood(average)
    return baseline


def analyze(model: Optional[nn.Module], entries: Sequence[MoodEntry]) -> Optional[List[FactorImpact]]:
    """
    Rank the model inputs by |prediction(factor=1) - prediction(factor=0)|
    around the baseline. Returns None without a model or with fewer than
    MIN_ANALYSIS_ENTRIES entries.
    """
    if model is None or len(entries) < MIN_ANALYSIS_ENTRIES:
        return None

    baseline = baseline_features(entries)

    # rows 2i / 2i+1 are factor i pushed high / low
    variants = np.repeat(baseline[np.newaxis, :], 2 * len(FACTORS), axis=0)
    for i in range(len(FACTORS)):
        variants[2 * i, i] = 1.0
        variants[2 * i + 1, i] = 0.0
    predictions = predict_array(model, variants)

    impacts = []
    for i, factor in enumerate(FACTORS):
        impact = float(abs(predictions[2 * i] - predictions[2 * i + 1]))
        logger.debug("Factor %s impact: %.4f", factor.value, impact)
        impacts.append(FactorImpact(factor=factor, impact=impact, label=factor.label))

    # sorted() is stable, so equal impacts keep declaration order
    return sorted(impacts, key=lambda f: f.impact, reverse=True)
