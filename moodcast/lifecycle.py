"""
lifecycle.py

Sequences load / train / save / insight generation for one user session.

    DISABLED --enable, <10 entries--> AWAITING_DATA --10th entry--> TRAINING --> TRAINED
    TRAINED --next session--> LOADING --> TRAINED | TRAINING (load miss)
    TRAINING --failure, >=10 entries, no model--> UNTRAINED --next entry / enable--> TRAINING

Everything runs on one asyncio loop; the blocking torch / disk / HTTP work is
pushed to an executor. Only one training run may be in flight: a second
request while one is running is ignored, not queued.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence

from .analysis import FactorImpact, analyze
from .config import MIN_TRAINING_ENTRIES
from .encoder import current_conditions_from_history
from .engine import ModelSession
from .entries import MoodEntry, sort_entries
from .model import predict_mood
from .recommendations import recommend

logger = logging.getLogger(__name__)


class InsightState(Enum):
    DISABLED = "disabled"
    AWAITING_DATA = "awaiting_data"
    LOADING = "loading"
    TRAINING = "training"
    TRAINED = "trained"
    UNTRAINED = "untrained"


@dataclass
class Insights:
    predicted_mood: Optional[float]
    factors: Optional[List[FactorImpact]]
    recommendations: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)


class ModelLifecycleManager:
    def __init__(
        self,
        session: ModelSession,
        entries: Sequence[MoodEntry] = (),
        enabled: bool = False,
        sleep_quality: float = 0.5,
        executor=None,
    ):
        self.session = session
        self.entries: List[MoodEntry] = sort_entries(entries)
        self.enabled = enabled
        self.sleep_quality = sleep_quality
        self.executor = executor

        self.insights: Optional[Insights] = None
        self.training_runs = 0
        self._training = False
        self.state = self._idle_state()

    @property
    def training_in_progress(self) -> bool:
        return self._training

    def _idle_state(self) -> InsightState:
        if not self.enabled:
            return InsightState.DISABLED
        if self.session.is_loaded:
            return InsightState.TRAINED
        if len(self.entries) < MIN_TRAINING_ENTRIES:
            return InsightState.AWAITING_DATA
        return InsightState.UNTRAINED

    async def _run_blocking(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(fn, *args))

    # --------- EVENTS ---------

    async def start_session(self, entries: Optional[Sequence[MoodEntry]] = None) -> bool:
        """
        Called when the user (or session) changes. Loads the saved model, or
        trains one if loading fails and there is enough data.
        """
        if entries is not None:
            self.entries = sort_entries(entries)
        if not self.enabled:
            self.state = InsightState.DISABLED
            return False

        self.state = InsightState.LOADING
        try:
            loaded = await self._run_blocking(self.session.load)
        except Exception:
            logger.exception("Error loading ML model")
            loaded = False

        if loaded:
            self.state = InsightState.TRAINED
            await self.refresh_insights()
            return True

        logger.info("No saved model available (%s)", self.session.last_load_status.value)
        if len(self.entries) >= MIN_TRAINING_ENTRIES:
            return await self.train()
        self.state = self._idle_state()
        return False

    async def add_entry(self, entry: MoodEntry) -> bool:
        """
        Record a new journal entry. Returns True if it triggered a successful
        retrain.
        """
        self.entries = sort_entries([*self.entries, entry])
        if not self.enabled:
            return False

        if len(self.entries) >= MIN_TRAINING_ENTRIES and not self._training:
            return await self.train()

        if self.session.is_loaded:
            await self.refresh_insights()
        if not self._training:
            self.state = self._idle_state()
        return False

    async def set_enabled(self, enabled: bool) -> bool:
        """
        Toggle the feature. Enabling with enough data and no model trains
        right away; disabling keeps the saved model.
        """
        self.enabled = enabled
        if not enabled:
            self.insights = None
            self.state = InsightState.DISABLED
            return False

        if len(self.entries) >= MIN_TRAINING_ENTRIES and not self.session.is_loaded:
            return await self.train()

        self.state = self._idle_state()
        if self.session.is_loaded:
            await self.refresh_insights()
        return False

    async def train(self) -> bool:
        """Train, save and refresh insights; ignored while a run is in flight."""
        if self._training:
            logger.info("Training already in progress; request ignored")
            return False
        if len(self.entries) < MIN_TRAINING_ENTRIES:
            self.state = self._idle_state()
            return False

        self._training = True
        self.state = InsightState.TRAINING
        entries = list(self.entries)
        try:
            success = await self._run_blocking(self.session.train, entries)
            if success:
                self.training_runs += 1
                await self._run_blocking(self.session.save)
                await self.refresh_insights()
            return success
        except Exception:
            logger.exception("Error training model")
            return False
        finally:
            self._training = False
            self.state = self._idle_state()

    # --------- INSIGHTS ---------

    def _compute_insights(self, model, entries: List[MoodEntry], conditions) -> Insights:
        try:
            predicted = predict_mood(model, conditions)
        except Exception:
            logger.exception("Prediction error")
            predicted = None
        try:
            factors = analyze(model, entries)
        except Exception:
            logger.exception("Error analyzing factor importance")
            factors = None
        return Insights(
            predicted_mood=predicted,
            factors=factors,
            recommendations=recommend(model, entries, conditions),
        )

    async def refresh_insights(self) -> Optional[Insights]:
        """Prediction, factor ranking and recommendations for the current model."""
        model = self.session.model
        if not self.enabled or model is None:
            return None

        entries = list(self.entries)
        conditions = current_conditions_from_history(entries, self.sleep_quality)
        try:
            insights = await self._run_blocking(self._compute_insights, model, entries, conditions)
        except Exception:
            logger.exception("Error updating ML insights")
            return None
        self.insights = insights
        return insights

    def status_message(self) -> str:
        """Text for the insights panel when there is nothing (new) to show."""
        if not self.enabled:
            return "ML features are disabled"
        if self._training:
            return "Training model with your data..."
        if len(self.entries) < MIN_TRAINING_ENTRIES:
            remaining = MIN_TRAINING_ENTRIES - len(self.entries)
            return f"Not enough data for ML insights: log at least {remaining} more mood entries"
        if self.state is InsightState.LOADING:
            return "Loading your mood model..."
        if not self.session.is_loaded:
            return "No trained model yet"
        return "Insights ready"
