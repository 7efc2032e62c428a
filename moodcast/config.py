"""
config.py

Constants shared by the mood-prediction pipeline:
- Feature order and entry-count thresholds
- Model names used for the local cache and the remote store
- Paths / URLs (overridable through environment variables)
- Training hyperparameters
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# --------- FEATURES ---------

# Number of inputs the regressor takes (one per Factor, in declaration order)
NUM_FEATURES = 7

# Default context values before trigger/activity overrides are applied
DEFAULT_SLEEP_QUALITY = 0.5
DEFAULT_PREVIOUS_MOOD = 0.5

# --------- ENTRY-COUNT THRESHOLDS ---------

MIN_TRAINING_ENTRIES = 10
MIN_BACKTEST_ENTRIES = 5
MIN_RECOMMENDATION_ENTRIES = 15
MIN_ANALYSIS_ENTRIES = 20

# Number of recent entries inspected when deriving current conditions
RECENT_ENTRY_WINDOW = 3

# --------- RECOMMENDATIONS ---------

TOP_FACTOR_COUNT = 3
MAX_RECOMMENDATIONS = 5
# Predicted gain (in mood points) needed before a "right now" tip is shown
IMPROVEMENT_THRESHOLD = 0.5

# --------- PERSISTENCE ---------

# Local cache key and remote model name
LOCAL_MODEL_KEY = "mood-prediction-model"
REMOTE_MODEL_NAME = "mood-prediction"

CACHE_DIR = Path(os.getenv("MOODCAST_CACHE_DIR", Path.home() / ".moodcast"))
API_URL = os.getenv("MOODCAST_API_URL", "http://localhost:5000/api")
API_TOKEN = os.getenv("MOODCAST_API_TOKEN")
REQUEST_TIMEOUT = float(os.getenv("MOODCAST_REQUEST_TIMEOUT", "30"))


# --------- TRAINING ---------

@dataclass
class TrainingConfig:
    """Hyperparameters for one training pass."""

    hidden_units: int = 10
    learning_rate: float = 0.01
    epochs: int = 100
    batch_size: int = 8
    validation_split: float = 0.2
    log_every: int = 10
    seed: Optional[int] = None
