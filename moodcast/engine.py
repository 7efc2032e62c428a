"""
engine.py

ModelSession: one user's mood model and everything done with it.

- train(entries)        fit a fresh regressor, back-test it, install it
- predict(conditions)   predicted mood on the 1-5 scale
- save() / load()       local cache first, remote store as a mirror / fallback
- backtest / manual_test / model_info for verification

A session is owned by exactly one user context. The installed model is only
ever replaced wholesale, so readers take a reference once and keep using it.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .analysis import FactorImpact, analyze
from .config import LOCAL_MODEL_KEY, REMOTE_MODEL_NAME, TrainingConfig
from .encoder import encode
from .entries import FEATURE_NAMES, CurrentConditions, MoodEntry, parse_timestamp
from .errors import ModelFormatError, ModelNotFoundError, PersistenceError
from .history import TrainingHistory
from .model import (
    MoodRegressor,
    get_model_parameters,
    model_from_payload,
    predict_mood,
    serialize_weights,
    set_model_parameters,
    topology_from_dicts,
    topology_to_dicts,
)
from .recommendations import recommend
from .remote import RemoteModelStore, TokenAuth
from .storage import LocalModelCache
from .trainer import BacktestResult, backtest, fit_regressor, release_memory

logger = logging.getLogger(__name__)


class LoadStatus(Enum):
    NOT_ATTEMPTED = "not_attempted"
    LOCAL = "local"
    REMOTE = "remote"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_FOUND = "not_found"
    REMOTE_ERROR = "remote_error"
    CORRUPT = "corrupt"


@dataclass
class ModelMetrics:
    training_samples: int = 0
    training_loss: Optional[float] = None
    validation_loss: Optional[float] = None
    average_error: Optional[float] = None
    last_training_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trainingSamples": self.training_samples,
            "trainingLoss": self.training_loss,
            "validationLoss": self.validation_loss,
            "averageError": self.average_error,
            "lastTrainingDate": self.last_training_date.isoformat() if self.last_training_date else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ModelMetrics":
        data = data or {}
        last = data.get("lastTrainingDate")
        return cls(
            training_samples=int(data.get("trainingSamples") or 0),
            training_loss=data.get("trainingLoss"),
            validation_loss=data.get("validationLoss"),
            average_error=data.get("averageError"),
            last_training_date=parse_timestamp(last) if last else None,
        )


@dataclass
class ManualTestResult:
    good_conditions_prediction: float
    bad_conditions_prediction: float

    @property
    def difference(self) -> float:
        return self.good_conditions_prediction - self.bad_conditions_prediction


GOOD_CONDITIONS = CurrentConditions(
    last_mood_value=3, sleep_quality=1.0, exercise=True, social_interaction=True, work_stress=False,
)
BAD_CONDITIONS = CurrentConditions(
    last_mood_value=2, sleep_quality=0.0, exercise=False, social_interaction=False, work_stress=True,
)


class ModelSession:
    """Per-user owner of the mood model."""

    def __init__(
        self,
        cache: LocalModelCache,
        auth: Optional[TokenAuth] = None,
        remote: Optional[RemoteModelStore] = None,
        config: Optional[TrainingConfig] = None,
        history: Optional[TrainingHistory] = None,
        model_key: str = LOCAL_MODEL_KEY,
        model_name: str = REMOTE_MODEL_NAME,
    ):
        self.cache = cache
        self.auth = auth or TokenAuth()
        self.remote = remote
        self.config = config or TrainingConfig()
        self.history = history
        self.model_key = model_key
        self.model_name = model_name

        self._lock = threading.Lock()
        self._model: Optional[MoodRegressor] = None
        self.metrics = ModelMetrics()
        self.model_version = 0
        self.last_load_status = LoadStatus.NOT_ATTEMPTED

    # --------- STATE ---------

    @property
    def model(self) -> Optional[MoodRegressor]:
        return self._model

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _install(self, model: MoodRegressor, metrics: ModelMetrics) -> None:
        with self._lock:
            self._model = model
            self.metrics = metrics
            self.model_version += 1

    # --------- TRAINING ---------

    def train(self, entries: Sequence[MoodEntry]) -> bool:
        """
        Train a new model on the whole journal. Returns False (leaving the
        current model in place) on insufficient data or any training error.
        """
        data = encode(entries)
        if data is None:
            logger.info("Not enough data to train the model (%d entries)", len(entries))
            return False

        X, y = data
        logger.info("Starting model training with %d data points", len(X))
        logger.debug("Sample feature vector: %s, label: %s", X[0], y[0])

        try:
            result = fit_regressor(X, y, self.config)
            report = backtest(result.model, entries)
        except Exception:
            logger.exception("Error training model")
            return False
        finally:
            release_memory()

        metrics = ModelMetrics(
            training_samples=result.samples,
            training_loss=result.training_loss,
            validation_loss=result.validation_loss,
            average_error=report.average_error if report else None,
            last_training_date=datetime.now(),
        )
        self._install(result.model, metrics)
        logger.info("Training complete - Final loss: %.4f, Validation loss: %s",
                    result.training_loss, result.validation_loss)

        if self.history is not None:
            try:
                self.history.record_run(metrics.to_dict(), result.loss_history, result.val_loss_history)
            except PersistenceError:
                logger.exception("Could not record training history")
        return True

    # --------- INFERENCE ---------

    def predict(self, conditions: CurrentConditions, now: Optional[datetime] = None) -> Optional[float]:
        model = self._model
        if model is None:
            return None
        try:
            return predict_mood(model, conditions, now)
        except Exception:
            logger.exception("Prediction error")
            return None

    def analyze(self, entries: Sequence[MoodEntry]) -> Optional[List[FactorImpact]]:
        try:
            return analyze(self._model, entries)
        except Exception:
            logger.exception("Error analyzing factor importance")
            return None

    def recommend(
        self,
        entries: Sequence[MoodEntry],
        conditions: Optional[CurrentConditions] = None,
        now: Optional[datetime] = None,
    ) -> List[str]:
        return recommend(self._model, entries, conditions, now)

    # --------- PERSISTENCE ---------

    def _model_data(self, model: MoodRegressor) -> Dict[str, Any]:
        return {
            "config": topology_to_dicts(model.topology),
            "weights": serialize_weights(model),
            "inputDim": model.input_dim,
        }

    def save(self) -> bool:
        """
        Write the model to the local cache and, when authenticated, mirror it
        to the remote store. Only a local failure fails the save.
        """
        with self._lock:
            model, metrics = self._model, self.metrics
        if model is None:
            return False

        try:
            self.cache.save(self.model_key, topology_to_dicts(model.topology),
                            model.state_dict(), metrics.to_dict())
        except PersistenceError:
            logger.exception("Error saving model")
            return False

        if self.remote is not None and self.auth.is_authenticated():
            try:
                self.remote.put_model(self.model_name, self._model_data(model), metrics.to_dict())
            except Exception:
                logger.exception("Error saving model to remote store")
        return True

    def _load_local(self) -> bool:
        try:
            cached = self.cache.load(self.model_key)
        except PersistenceError:
            logger.exception("Local model cache is unreadable")
            self.last_load_status = LoadStatus.CORRUPT
            return False
        if cached is None:
            return False

        try:
            model = MoodRegressor(topology_from_dicts(cached.topology))
            set_model_parameters(model, list(cached.state_dict.values()))
            model.eval()
        except ModelFormatError:
            logger.exception("Local model does not match its stored topology")
            self.last_load_status = LoadStatus.CORRUPT
            return False

        self._install(model, ModelMetrics.from_dict(cached.metrics))
        self.last_load_status = LoadStatus.LOCAL
        logger.info("Model loaded from local cache")
        return True

    def _load_remote(self) -> bool:
        if self.remote is None or not self.auth.is_authenticated():
            logger.info("Not authenticated and no local model found")
            self.last_load_status = LoadStatus.NOT_AUTHENTICATED
            return False

        try:
            document = self.remote.get_model(self.model_name)
        except ModelNotFoundError:
            logger.info("No model stored remotely under '%s'", self.model_name)
            self.last_load_status = LoadStatus.NOT_FOUND
            return False
        except PersistenceError:
            logger.exception("Error loading model from remote store")
            self.last_load_status = LoadStatus.REMOTE_ERROR
            return False

        try:
            model_data = document["modelData"]
            model = model_from_payload(model_data["config"], model_data["weights"])
        except (KeyError, TypeError, ModelFormatError):
            logger.exception("Remote model document is malformed")
            self.last_load_status = LoadStatus.CORRUPT
            return False

        metrics = ModelMetrics.from_dict(document.get("metrics"))
        self._install(model, metrics)
        self.last_load_status = LoadStatus.REMOTE
        logger.info("Model loaded from remote store")

        try:
            self.cache.save(self.model_key, topology_to_dicts(model.topology),
                            model.state_dict(), metrics.to_dict())
        except PersistenceError:
            logger.exception("Could not copy remote model into local cache")
        return True

    def load(self) -> bool:
        """
        Install a previously saved model: local cache first, then the remote
        store. On failure the current model is untouched and
        `last_load_status` says why.
        """
        try:
            if self._load_local():
                return True
            logger.info("Model not found in local cache, trying remote store...")
            return self._load_remote()
        except Exception:
            logger.exception("Error loading model")
            return False

    def delete(self) -> bool:
        """Forget the model locally and remotely (remote errors are logged)."""
        removed = self.cache.delete(self.model_key)
        if self.remote is not None and self.auth.is_authenticated():
            try:
                self.remote.delete_model(self.model_name)
                removed = True
            except PersistenceError:
                logger.exception("Error deleting remote model")
        with self._lock:
            self._model = None
            self.metrics = ModelMetrics()
        return removed

    # --------- VERIFICATION ---------

    def backtest(self, entries: Sequence[MoodEntry]) -> Optional[BacktestResult]:
        model = self._model
        if model is None:
            return None
        try:
            return backtest(model, entries)
        except Exception:
            logger.exception("Error testing model")
            return None

    def manual_test(self, now: Optional[datetime] = None) -> Optional[ManualTestResult]:
        """Predict a fixed good-day and bad-day scenario."""
        model = self._model
        if model is None:
            return None
        result = ManualTestResult(
            good_conditions_prediction=predict_mood(model, GOOD_CONDITIONS, now),
            bad_conditions_prediction=predict_mood(model, BAD_CONDITIONS, now),
        )
        logger.info("Manual test - good: %.2f, bad: %.2f, difference: %.2f",
                    result.good_conditions_prediction, result.bad_conditions_prediction,
                    result.difference)
        return result

    def model_info(self) -> Dict[str, Any]:
        return {
            "is_loaded": self.is_loaded,
            "metrics": self.metrics.to_dict(),
            "features": list(FEATURE_NAMES),
            "parameters": sum(p.size for p in get_model_parameters(self._model)) if self._model else 0,
        }
