"""
storage.py

Local model cache. Each key gets its own folder:

    <root>/<key>/model.json   topology + metrics
    <root>/<key>/weights.pt   state_dict (torch.save)

Both files are staged as temp files in the key folder and swapped in with
os.replace only after both writes succeed, so a failed save never mixes new
weights with old metadata.
"""

import json
import logging
import os
import pickle
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import torch

from .errors import PersistenceError

logger = logging.getLogger(__name__)

MODEL_FILE = "model.json"
WEIGHTS_FILE = "weights.pt"


@dataclass
class CachedModel:
    topology: List[Dict[str, Any]]
    state_dict: Dict[str, torch.Tensor]
    metrics: Dict[str, Any]


class LocalModelCache:
    """Directory-backed store for trained models, keyed by name."""

    def __init__(self, root):
        self.root = Path(root)

    def _folder(self, key: str) -> Path:
        return self.root / key

    def _write_temp(self, folder: Path, suffix: str, write) -> str:
        # torch.save rejects file names starting with a dot
        fd, tmp_path = tempfile.mkstemp(prefix="tmp_", suffix=suffix, dir=str(folder))
        os.close(fd)
        try:
            write(tmp_path)
        except BaseException:
            os.remove(tmp_path)
            raise
        return tmp_path

    def exists(self, key: str) -> bool:
        folder = self._folder(key)
        return (folder / MODEL_FILE).exists() and (folder / WEIGHTS_FILE).exists()

    def save(
        self,
        key: str,
        topology: List[Dict[str, Any]],
        state_dict: Dict[str, torch.Tensor],
        metrics: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Both files are written to temp files first and only swapped in once
        both writes succeeded, so a failed save leaves the previous model.

        Raises:
            PersistenceError: if either file cannot be written
        """
        folder = self._folder(key)
        meta = {"topology": topology, "metrics": metrics or {}}

        def write_meta(tmp):
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(meta, f, indent=2)

        def write_weights(tmp):
            torch.save(state_dict, tmp)

        pending = []
        try:
            folder.mkdir(parents=True, exist_ok=True)
            pending.append((self._write_temp(folder, ".pt", write_weights), folder / WEIGHTS_FILE))
            pending.append((self._write_temp(folder, ".json", write_meta), folder / MODEL_FILE))
            for tmp_path, path in pending:
                os.replace(tmp_path, path)
        except (OSError, RuntimeError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not write model '{key}' to {folder}: {e}") from e
        finally:
            for tmp_path, _ in pending:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        logger.info("Model saved to local cache: %s", folder)

    def load(self, key: str) -> Optional[CachedModel]:
        """
        Returns None on a cache miss.

        Raises:
            PersistenceError: if the files exist but cannot be read
        """
        if not self.exists(key):
            return None
        folder = self._folder(key)
        try:
            with open(folder / MODEL_FILE, "r", encoding="utf-8") as f:
                meta = json.load(f)
            state_dict = torch.load(folder / WEIGHTS_FILE, map_location="cpu", weights_only=True)
        except (OSError, RuntimeError, ValueError, EOFError, pickle.UnpicklingError) as e:
            raise PersistenceError(f"Could not read model '{key}' from {folder}: {e}") from e

        return CachedModel(
            topology=meta.get("topology") or [],
            state_dict=state_dict,
            metrics=meta.get("metrics") or {},
        )

    def delete(self, key: str) -> bool:
        folder = self._folder(key)
        if not folder.exists():
            return False
        shutil.rmtree(folder)
        return True
