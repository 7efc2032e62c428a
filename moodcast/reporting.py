"""
reporting.py

Saves verification charts as PNG files:
- training / validation loss vs epoch
- back-test: actual vs predicted mood per entry
- factor importance bar chart
"""

import os
from typing import List, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from .analysis import FactorImpact  # noqa: E402


def _save(fig, out_dir: str, name: str) -> str:
    os.makedirs(out_dir, exist_ok=True)
    png_path = os.path.join(out_dir, name)
    fig.savefig(png_path, bbox_inches="tight")
    plt.close(fig)
    return png_path


def plot_loss_curve(epochs_df: pd.DataFrame, out_dir: str) -> str:
    """`epochs_df` needs 'epoch', 'loss' and optionally 'val_loss' columns."""
    fig = plt.figure()
    plt.plot(epochs_df["epoch"], epochs_df["loss"], label="loss")
    if "val_loss" in epochs_df.columns and epochs_df["val_loss"].notna().any():
        plt.plot(epochs_df["epoch"], epochs_df["val_loss"], label="val_loss", linestyle="--")
    plt.xlabel("Epoch")
    plt.ylabel("MSE")
    plt.title("Training loss vs Epoch")
    plt.legend()
    plt.grid(True)
    return _save(fig, out_dir, "loss_curve.png")


def plot_backtest(predictions: pd.DataFrame, out_dir: str) -> str:
    """Actual vs predicted mood for each back-tested entry."""
    fig = plt.figure()
    index = range(len(predictions))
    plt.plot(index, predictions["actual"], marker="o", label="Actual Mood")
    plt.plot(index, predictions["predicted"], marker="x", linestyle="--", label="Predicted Mood")
    plt.ylim(0.8, 5.2)
    plt.yticks([1, 2, 3, 4, 5])
    plt.xlabel("Entry")
    plt.ylabel("Mood")
    plt.title("Back-test: actual vs predicted")
    plt.legend()
    plt.grid(True)
    return _save(fig, out_dir, "backtest.png")


def plot_factor_importance(factors: Sequence[FactorImpact], out_dir: str) -> str:
    """Horizontal bars, impact scaled to percent."""
    labels: List[str] = [f.label for f in factors][::-1]
    values: List[float] = [f.impact * 100 for f in factors][::-1]
    fig = plt.figure()
    plt.barh(labels, values, color="#8884d8")
    plt.xlabel("% impact")
    plt.title("Factors Influencing Your Mood")
    plt.grid(True, axis="x")
    return _save(fig, out_dir, "factor_importance.png")
