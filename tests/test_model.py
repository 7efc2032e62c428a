import numpy as np
import pytest
import torch

from moodcast.errors import ModelFormatError
from moodcast.model import (
    DenseLayer,
    MoodRegressor,
    build_network,
    default_topology,
    deserialize_weights,
    get_model_parameters,
    model_from_payload,
    predict_array,
    serialize_weights,
    set_model_parameters,
    topology_from_dicts,
    topology_to_dicts,
)


def test_default_topology():
    topology = default_topology()
    assert topology == [
        DenseLayer(units=10, activation="relu", input_dim=7),
        DenseLayer(units=1, activation="sigmoid", input_dim=10),
    ]


def test_forward_shape_and_range():
    torch.manual_seed(0)
    model = MoodRegressor()
    out = predict_array(model, np.random.RandomState(0).rand(12, 7))
    assert out.shape == (12,)
    assert out.dtype == np.float64
    assert ((out >= 0) & (out <= 1)).all()


def test_single_vector_prediction():
    out = predict_array(MoodRegressor(), np.full(7, 0.5))
    assert out.shape == (1,)


def test_topology_dicts_keep_input_width():
    data = topology_to_dicts(default_topology(input_dim=9, hidden_units=4))
    assert data[0] == {"type": "dense", "units": 4, "activation": "relu", "input_dim": 9}
    assert topology_from_dicts(data)[0].input_dim == 9


@pytest.mark.parametrize("bad", [
    [],
    [{"type": "conv2d", "units": 1, "activation": "relu", "input_dim": 7}],
    [{"type": "dense", "activation": "relu", "input_dim": 7}],
])
def test_topology_from_dicts_rejects_malformed(bad):
    with pytest.raises(ModelFormatError):
        topology_from_dicts(bad)


def test_build_network_checks_layer_widths():
    with pytest.raises(ModelFormatError):
        build_network([
            DenseLayer(units=10, activation="relu", input_dim=7),
            DenseLayer(units=1, activation="sigmoid", input_dim=5),
        ])
    with pytest.raises(ModelFormatError):
        build_network([DenseLayer(units=1, activation="softmax", input_dim=7)])


def test_weights_payload_rebuilds_identical_model():
    torch.manual_seed(1)
    model = MoodRegressor()
    X = np.random.RandomState(1).rand(5, 7)

    payload = serialize_weights(model)
    assert [w["shape"] for w in payload] == [[10, 7], [10], [1, 10], [1]]

    restored = model_from_payload(topology_to_dicts(model.topology), payload)
    np.testing.assert_array_equal(predict_array(model, X), predict_array(restored, X))


def test_set_model_parameters_rejects_wrong_count_and_shape():
    model = MoodRegressor()
    params = get_model_parameters(model)
    with pytest.raises(ModelFormatError):
        set_model_parameters(model, params[:-1])
    params[0] = np.zeros((7, 10))
    with pytest.raises(ModelFormatError):
        set_model_parameters(model, params)


def test_payload_for_different_width_is_rejected():
    narrow = MoodRegressor(default_topology(input_dim=5))
    with pytest.raises(ModelFormatError):
        model_from_payload(topology_to_dicts(default_topology()), serialize_weights(narrow))


def test_deserialize_rejects_bad_shape():
    with pytest.raises(ModelFormatError):
        deserialize_weights([{"data": [1.0, 2.0, 3.0], "shape": [2, 2]}])
    with pytest.raises(ModelFormatError):
        deserialize_weights([{"data": [1.0]}])
