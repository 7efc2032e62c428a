import numpy as np
import pytest

from moodcast.config import TrainingConfig
from moodcast.encoder import encode
from moodcast.trainer import backtest, compute_metrics, fit_regressor, validation_split

from .conftest import contrast_journal, random_journal


def test_validation_split_holds_out_most_recent():
    X = np.arange(20, dtype=np.float64).reshape(10, 2)
    y = np.arange(10, dtype=np.float64)
    X_train, y_train, X_val, y_val = validation_split(X, y, 0.2)
    assert y_train.tolist() == list(range(8))
    assert y_val.tolist() == [8, 9]


def test_validation_split_disabled():
    X = np.zeros((3, 7))
    y = np.zeros(3)
    _, _, X_val, y_val = validation_split(X, y, 0.0)
    assert X_val is None and y_val is None


def test_compute_metrics():
    metrics = compute_metrics(np.array([1.0, 3.0, 5.0]), np.array([1.2, 4.0, 4.6]))
    assert metrics["mae"] == pytest.approx((0.2 + 1.0 + 0.4) / 3)
    # rounded: 1, 4, 5 against 1, 3, 5
    assert metrics["class_accuracy"] == pytest.approx(2 / 3)


def test_fit_regressor_records_losses():
    X, y = encode(random_journal(15))
    epochs = []
    result = fit_regressor(X, y, TrainingConfig(epochs=12, seed=3),
                           on_epoch_end=lambda epoch, loss, val: epochs.append(epoch))
    assert result.samples == 14
    assert len(result.loss_history) == 12
    assert len(result.val_loss_history) == 12
    assert result.training_loss == result.loss_history[-1]
    assert result.validation_loss is not None
    assert epochs == list(range(12))


def test_fit_regressor_is_reproducible_with_seed():
    X, y = encode(random_journal(15))
    a = fit_regressor(X, y, TrainingConfig(epochs=5, seed=7))
    b = fit_regressor(X, y, TrainingConfig(epochs=5, seed=7))
    assert a.loss_history == b.loss_history


def test_fit_regressor_reduces_loss_on_learnable_data():
    X, y = encode(contrast_journal())
    result = fit_regressor(X, y, TrainingConfig(seed=0))
    assert result.loss_history[-1] < result.loss_history[0]


def test_backtest_report():
    entries = contrast_journal()
    X, y = encode(entries)
    model = fit_regressor(X, y, TrainingConfig(seed=0)).model

    report = backtest(model, entries)
    assert list(report.predictions.columns) == ["date", "actual", "predicted", "error"]
    assert len(report.predictions) == len(entries) - 1
    assert report.average_error >= 0
    # five mood classes, so chance is 0.2
    assert report.class_accuracy > 0.2


def test_backtest_needs_entries_and_model():
    assert backtest(None, contrast_journal()) is None
    X, y = encode(contrast_journal())
    model = fit_regressor(X, y, TrainingConfig(epochs=1, seed=0)).model
    assert backtest(model, contrast_journal()[:4]) is None
