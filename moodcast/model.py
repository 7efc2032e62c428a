"""
model.py

Defines the PyTorch regressor used for mood prediction, plus the helpers
that move it in and out of storage:
- DenseLayer descriptors (the stored topology)
- Building a network from a topology
- Converting weights to / from flat arrays tagged with their shape
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Sequence

import numpy as np
import torch
import torch.nn as nn

from .config import NUM_FEATURES
from .encoder import denormalize_mood, encode_single
from .errors import ModelFormatError

ACTIVATIONS = {
    "relu": nn.ReLU,
    "sigmoid": nn.Sigmoid,
    "linear": None,
}


# --------- TOPOLOGY ---------

@dataclass(frozen=True)
class DenseLayer:
    """One fully connected layer; input width is always stored explicitly."""

    units: int
    activation: str
    input_dim: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = "dense"
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DenseLayer":
        layer_type = data.get("type", "dense")
        if layer_type != "dense":
            raise ModelFormatError(f"Unsupported layer type: {layer_type}")
        try:
            return cls(
                units=int(data["units"]),
                activation=str(data.get("activation", "linear")),
                input_dim=int(data["input_dim"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ModelFormatError(f"Malformed layer descriptor {data!r}: {e}") from e


def default_topology(input_dim: int = NUM_FEATURES, hidden_units: int = 10) -> List[DenseLayer]:
    """Hidden ReLU layer followed by a single sigmoid unit (output in [0, 1])."""
    return [
        DenseLayer(units=hidden_units, activation="relu", input_dim=input_dim),
        DenseLayer(units=1, activation="sigmoid", input_dim=hidden_units),
    ]


def topology_to_dicts(topology: Sequence[DenseLayer]) -> List[Dict[str, Any]]:
    return [layer.to_dict() for layer in topology]


def topology_from_dicts(data: Sequence[Dict[str, Any]]) -> List[DenseLayer]:
    if not data:
        raise ModelFormatError("Topology is empty")
    return [DenseLayer.from_dict(d) for d in data]


def build_network(topology: Sequence[DenseLayer]) -> nn.Sequential:
    """Stack Linear (+ activation) modules; consecutive widths must agree."""
    modules: List[nn.Module] = []
    expected_in = topology[0].input_dim
    for layer in topology:
        if layer.input_dim != expected_in:
            raise ModelFormatError(
                f"Layer expects {layer.input_dim} inputs but previous layer yields {expected_in}"
            )
        if layer.activation not in ACTIVATIONS:
            raise ModelFormatError(f"Unknown activation: {layer.activation}")

        modules.append(nn.Linear(layer.input_dim, layer.units))
        activation = ACTIVATIONS[layer.activation]
        if activation is not None:
            modules.append(activation())
        expected_in = layer.units
    return nn.Sequential(*modules)


# --------- NETWORK ---------

class MoodRegressor(nn.Module):
    """
    A small feed-forward network mapping a feature vector to a normalised
    mood score.

    Architecture (default topology):
    - Input layer: 7 features
    - Hidden layer: 10 units, ReLU
    - Output layer: 1 unit, sigmoid
    """

    def __init__(self, topology: Sequence[DenseLayer] = None):
        super().__init__()
        self.topology = list(topology) if topology is not None else default_topology()
        self.net = build_network(self.topology).double()

    @property
    def input_dim(self) -> int:
        return self.topology[0].input_dim

    def forward(self, x):
        """
        Args:
            x: float64 tensor of shape (batch_size, input_dim)

        Returns:
            tensor of shape (batch_size,) with values in [0, 1]
        """
        return self.net(x).squeeze(-1)


def predict_array(model: nn.Module, X: np.ndarray) -> np.ndarray:
    """Normalised predictions for a (n, input_dim) or (input_dim,) array."""
    batch = np.atleast_2d(np.asarray(X, dtype=np.float64))
    model.eval()
    with torch.no_grad():
        out = model(torch.as_tensor(batch, dtype=torch.float64))
        return out.cpu().numpy().astype(np.float64).reshape(-1)


def predict_mood(model: nn.Module, conditions, now=None) -> float:
    """Predicted mood on the 1-5 scale for the given CurrentConditions."""
    normalized = predict_array(model, encode_single(conditions, now))[0]
    return denormalize_mood(float(normalized))


# --------- WEIGHT SERIALISATION ---------

def get_model_parameters(model: nn.Module) -> List[np.ndarray]:
    """Model weights as NumPy arrays, in state_dict order."""
    return [val.cpu().detach().numpy() for _, val in model.state_dict().items()]


def set_model_parameters(model: nn.Module, parameters: Sequence[np.ndarray]) -> None:
    """Load arrays (in state_dict order) into the model, checking shapes."""
    state_dict = model.state_dict()
    if len(parameters) != len(state_dict):
        raise ModelFormatError(
            f"Expected {len(state_dict)} weight tensors, got {len(parameters)}"
        )
    new_state_dict = {}
    for (key, current), param in zip(state_dict.items(), parameters):
        tensor = torch.as_tensor(np.asarray(param), dtype=current.dtype)
        if tuple(tensor.shape) != tuple(current.shape):
            raise ModelFormatError(
                f"Weight {key} has shape {tuple(tensor.shape)}, expected {tuple(current.shape)}"
            )
        new_state_dict[key] = tensor
    model.load_state_dict(new_state_dict, strict=True)


def serialize_weights(model: nn.Module) -> List[Dict[str, Any]]:
    """[{'data': flat list, 'shape': [...]}, ...] for JSON transport."""
    return [
        {"data": arr.reshape(-1).tolist(), "shape": list(arr.shape)}
        for arr in get_model_parameters(model)
    ]


def deserialize_weights(payload: Sequence[Dict[str, Any]]) -> List[np.ndarray]:
    arrays = []
    for item in payload:
        try:
            arrays.append(np.asarray(item["data"], dtype=np.float64).reshape(item["shape"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ModelFormatError(f"Malformed weight entry: {e}") from e
    return arrays


def model_from_payload(topology: Sequence[Dict[str, Any]], weights: Sequence[Dict[str, Any]]) -> MoodRegressor:
    """Rebuild a network layer by layer from a stored topology and weights."""
    model = MoodRegressor(topology_from_dicts(topology))
    set_model_parameters(model, deserialize_weights(weights))
    model.eval()
    return model
