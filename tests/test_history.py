import pytest

from moodcast.errors import PersistenceError
from moodcast.history import EPOCH_COLUMNS, RUN_COLUMNS, TrainingHistory

METRICS = {
    "trainingSamples": 9,
    "trainingLoss": 0.05,
    "validationLoss": 0.08,
    "averageError": 0.7,
    "lastTrainingDate": "2024-01-10T12:00:00",
}


def test_empty_history(tmp_path):
    history = TrainingHistory(tmp_path)
    assert list(history.get_runs_df().columns) == RUN_COLUMNS
    assert history.get_epochs_df().empty


def test_runs_are_numbered_and_persisted(tmp_path):
    history = TrainingHistory(tmp_path)
    assert history.record_run(METRICS, [0.3, 0.2, 0.1], [0.4, 0.3, None]) == 1
    assert history.record_run(METRICS, [0.5, 0.4], [None, None]) == 2

    reopened = TrainingHistory(tmp_path)
    runs = reopened.get_runs_df()
    assert runs["run"].tolist() == [1, 2]
    assert runs.loc[0, "trained_at"] == "2024-01-10T12:00:00"

    latest = reopened.get_epochs_df()
    assert list(latest.columns) == EPOCH_COLUMNS
    assert latest["loss"].tolist() == [0.5, 0.4]
    assert latest["val_loss"].isna().all()

    first = reopened.get_epochs_df(run=1)
    assert first["epoch"].tolist() == [0, 1, 2]
    assert first["val_loss"].isna().tolist() == [False, False, True]


def test_unreadable_file(tmp_path):
    (tmp_path / "runs.csv").write_bytes(b"")
    with pytest.raises(PersistenceError):
        TrainingHistory(tmp_path)
