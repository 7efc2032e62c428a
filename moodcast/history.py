# moodcast/history.py
import os
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as _np
import pandas as pd

from .errors import PersistenceError

RUN_COLUMNS = ["run", "trained_at", "training_samples", "training_loss", "validation_loss", "average_error"]
EPOCH_COLUMNS = ["run", "epoch", "loss", "val_loss"]


class TrainingHistory:
    """
    Thread-safe record of a user's training runs, kept as two CSV files in
    `folder`: runs.csv (one row per run) and epochs.csv (loss curves).
    Training runs in a worker thread, so every write takes the lock.
    """

    def __init__(self, folder: str):
        self.folder = os.path.abspath(str(folder))
        os.makedirs(self.folder, exist_ok=True)
        self.lock = threading.Lock()

        self.runs_path = os.path.join(self.folder, "runs.csv")
        self.epochs_path = os.path.join(self.folder, "epochs.csv")
        self.runs_df = self._read(self.runs_path, RUN_COLUMNS)
        self.epochs_df = self._read(self.epochs_path, EPOCH_COLUMNS)

    def _read(self, path: str, cols: List[str]) -> pd.DataFrame:
        if not os.path.exists(path):
            return pd.DataFrame(columns=cols)
        try:
            df = pd.read_csv(path)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read training history {path}: {e}") from e
        return df.reindex(columns=cols)

    def _atomic_write_csv(self, df: pd.DataFrame, path: str):
        tmp = path + ".tmp"
        try:
            df.to_csv(tmp, index=False)
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceError(f"Could not write training history {path}: {e}") from e

    def record_run(
        self,
        metrics: Dict[str, Any],
        losses: List[float],
        val_losses: List[Optional[float]],
    ) -> int:
        """Append one training run; returns its 1-based run number."""
        with self.lock:
            run = int(self.runs_df["run"].max()) + 1 if not self.runs_df.empty else 1
            row = {
                "run": run,
                "trained_at": metrics.get("lastTrainingDate") or datetime.now().isoformat(),
                "training_samples": metrics.get("trainingSamples"),
                "training_loss": metrics.get("trainingLoss"),
                "validation_loss": metrics.get("validationLoss"),
                "average_error": metrics.get("averageError"),
            }
            epochs = pd.DataFrame({
                "run": run,
                "epoch": _np.arange(len(losses)),
                "loss": losses,
                "val_loss": [_np.nan if v is None else v for v in val_losses],
            })

            runs_df = pd.concat([self.runs_df, pd.DataFrame([row])], ignore_index=True, sort=False)
            epochs_df = pd.concat([self.epochs_df, epochs], ignore_index=True, sort=False)

            self._atomic_write_csv(runs_df, self.runs_path)
            self._atomic_write_csv(epochs_df, self.epochs_path)
            self.runs_df, self.epochs_df = runs_df, epochs_df
            return run

    def get_runs_df(self) -> pd.DataFrame:
        return self.runs_df.copy()

    def get_epochs_df(self, run: Optional[int] = None) -> pd.DataFrame:
        """Loss curve of one run (latest by default)."""
        if self.epochs_df.empty:
            return self.epochs_df.copy()
        if run is None:
            run = int(self.epochs_df["run"].max())
        return self.epochs_df.loc[self.epochs_df["run"] == run].reset_index(drop=True)
