"""
trainer.py

Training and evaluation of the mood regressor:
- Holding out the most recent examples for validation
- The mini-batch training loop (Adam + MSE)
- Back-testing a trained model against the journal it learned from
- Regression metrics (MAE, MSE, rounded-class accuracy)
"""

import gc
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import torch
from sklearn.metrics import accuracy_score, mean_absolute_error, mean_squared_error
from sklearn.model_selection import train_test_split
from torch.utils.data import DataLoader, TensorDataset

from .config import MIN_BACKTEST_ENTRIES, TrainingConfig
from .encoder import build_examples, denormalize_mood
from .entries import MoodEntry
from .model import MoodRegressor, default_topology, predict_array

logger = logging.getLogger(__name__)

EpochCallback = Callable[[int, float, Optional[float]], None]


@dataclass
class TrainingResult:
    model: MoodRegressor
    samples: int
    training_loss: float
    validation_loss: Optional[float]
    loss_history: List[float] = field(default_factory=list)
    val_loss_history: List[Optional[float]] = field(default_factory=list)


@dataclass
class BacktestResult:
    predictions: pd.DataFrame
    average_error: float
    class_accuracy: float


# --------- MEMORY ---------

def release_memory() -> None:
    """Drop unreferenced tensors and any cached device memory."""
    gc.collect()
    try:
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
    except RuntimeError:
        logger.debug("Could not empty CUDA cache", exc_info=True)


# --------- SPLITS ---------

def validation_split(
    X: np.ndarray,
    y: np.ndarray,
    fraction: float,
) -> Tuple[np.ndarray, np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]:
    """
    Hold out the last `fraction` of the examples (no shuffling), so the
    validation set is the most recent part of the journal.
    """
    if fraction <= 0 or len(X) < 2:
        return X, y, None, None
    X_train, X_val, y_train, y_val = train_test_split(X, y, test_size=fraction, shuffle=False)
    return X_train, y_train, X_val, y_val


# --------- METRICS ---------

def compute_metrics(actual: np.ndarray, predicted: np.ndarray) -> Dict[str, float]:
    """
    Compare moods on the 1-5 scale.

    Returns:
        Dict with 'mae', 'mse' and 'class_accuracy' (share of rounded
        predictions that hit the logged mood)
    """
    predicted_class = np.clip(np.rint(predicted), 1, 5).astype(int)
    return {
        "mae": float(mean_absolute_error(actual, predicted)),
        "mse": float(mean_squared_error(actual, predicted)),
        "class_accuracy": float(accuracy_score(actual.astype(int), predicted_class)),
    }


# --------- TRAINING LOOP ---------

def _evaluate_loss(model: MoodRegressor, X: torch.Tensor, y: torch.Tensor, criterion) -> float:
    model.eval()
    with torch.no_grad():
        return float(criterion(model(X), y).item())


def fit_regressor(
    X: np.ndarray,
    y: np.ndarray,
    config: Optional[TrainingConfig] = None,
    on_epoch_end: Optional[EpochCallback] = None,
) -> TrainingResult:
    """
    Train a fresh regressor on (X, y).

    Raises:
        FloatingPointError: if the training loss stops being finite
    """
    config = config or TrainingConfig()
    if config.seed is not None:
        torch.manual_seed(config.seed)
        np.random.seed(config.seed)

    X_train, y_train, X_val, y_val = validation_split(X, y, config.validation_split)

    train_dataset = TensorDataset(
        torch.tensor(X_train, dtype=torch.float64),
        torch.tensor(y_train, dtype=torch.float64),
    )
    train_loader = DataLoader(train_dataset, batch_size=config.batch_size, shuffle=True)

    val_tensors = None
    if X_val is not None and len(X_val) > 0:
        val_tensors = (
            torch.tensor(X_val, dtype=torch.float64),
            torch.tensor(y_val, dtype=torch.float64),
        )

    model = MoodRegressor(default_topology(input_dim=X.shape[1], hidden_units=config.hidden_units))
    criterion = torch.nn.MSELoss()
    optimizer = torch.optim.Adam(model.parameters(), lr=config.learning_rate)

    loss_history: List[float] = []
    val_loss_history: List[Optional[float]] = []

    for epoch in range(config.epochs):
        model.train()
        total_loss = 0.0
        for X_batch, y_batch in train_loader:
            optimizer.zero_grad()
            loss = criterion(model(X_batch), y_batch)
            loss.backward()
            optimizer.step()
            total_loss += loss.item() * X_batch.size(0)

        avg_loss = total_loss / len(train_dataset)
        if not np.isfinite(avg_loss):
            raise FloatingPointError(f"Training loss diverged at epoch {epoch}: {avg_loss}")

        val_loss = _evaluate_loss(model, *val_tensors, criterion) if val_tensors else None
        loss_history.append(avg_loss)
        val_loss_history.append(val_loss)

        if epoch % config.log_every == 0:
            logger.info("Epoch %d: loss = %.4f, val_loss = %s", epoch, avg_loss,
                        f"{val_loss:.4f}" if val_loss is not None else "NA")
        if on_epoch_end is not None:
            on_epoch_end(epoch, avg_loss, val_loss)

    model.eval()
    return TrainingResult(
        model=model,
        samples=len(X),
        training_loss=loss_history[-1],
        validation_loss=val_loss_history[-1],
        loss_history=loss_history,
        val_loss_history=val_loss_history,
    )


# --------- BACK-TEST ---------

def backtest(model: MoodRegressor, entries: Sequence[MoodEntry]) -> Optional[BacktestResult]:
    """
    Predict every logged mood (after the first) from its own features and
    compare with what was actually logged.

    Returns None with fewer than MIN_BACKTEST_ENTRIES entries.
    """
    if model is None or len(entries) < MIN_BACKTEST_ENTRIES:
        return None

    X, _ = build_examples(entries)
    predicted = np.array([denormalize_mood(v) for v in predict_array(model, X)])
    actual = np.array([e.mood_value for e in entries[1:]], dtype=np.float64)

    predictions = pd.DataFrame({
        "date": [e.timestamp.date() for e in entries[1:]],
        "actual": actual,
        "predicted": predicted,
        "error": np.abs(predicted - actual),
    })
    metrics = compute_metrics(actual, predicted)
    logger.info("Model accuracy test - Average error: %.2f", metrics["mae"])

    return BacktestResult(
        predictions=predictions,
        average_error=metrics["mae"],
        class_accuracy=metrics["class_accuracy"],
    )
