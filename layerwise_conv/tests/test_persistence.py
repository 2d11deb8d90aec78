"""
Tests for saving and loading a network.
"""
import sys
import os
from io import BytesIO

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import numpy as np
import pytest

from layerwise_conv.network import ConvolutionNetwork


def _trained_network():
    net = ConvolutionNetwork(3, 10, 8, 2, 3, 4, 4, 4, [5.0, 0.0, 0.25],
                             rng=np.random.default_rng(0))
    net.learning_rate = 0.05
    img = np.random.default_rng(1).integers(0, 256, size=10 * 8 * 2, dtype=np.uint8)
    rng = np.random.default_rng(2)
    for _ in range(3):
        net.learn(img, 2, rng)
    net.feed_forward(img)
    return net


def _assert_same_state(a, b):
    assert a.no_of_layers == b.no_of_layers
    assert a.current_layer == b.current_layer
    assert a.learning_rate == pytest.approx(b.learning_rate)
    assert a.iterations == b.iterations
    assert a.training_counter == b.training_counter
    np.testing.assert_array_equal(a.match_threshold, b.match_threshold)
    np.testing.assert_array_equal(a.outputs, b.outputs)
    assert (a.history.index, a.history.step, a.history.counter) == \
           (b.history.index, b.history.step, b.history.counter)
    np.testing.assert_array_equal(a.history.values, b.history.values)
    for la, lb in zip(a.layers, b.layers):
        assert (la.width, la.height, la.depth, la.feature_width) == \
               (lb.width, lb.height, lb.depth, lb.feature_width)
        np.testing.assert_array_equal(la.layer, lb.layer)
        np.testing.assert_array_equal(la.feature, lb.feature)


class TestPersistence:

    def test_byte_stream_round_trip(self):
        net = _trained_network()
        assert net.current_layer == 1

        stream = BytesIO()
        net.save(stream)
        stream.seek(0)
        loaded = ConvolutionNetwork.load(stream)

        _assert_same_state(net, loaded)

    def test_file_round_trip_adds_extension(self, tmp_path):
        net = _trained_network()
        path = str(tmp_path / "model")

        net.save(path)
        assert os.path.exists(path + ".npz")
        loaded = ConvolutionNetwork.load(path)

        _assert_same_state(net, loaded)

    def test_loaded_network_keeps_training(self):
        net = _trained_network()
        stream = BytesIO()
        net.save(stream)
        stream.seek(0)
        loaded = ConvolutionNetwork.load(stream)

        img = np.zeros(10 * 8 * 2, dtype=np.uint8)
        a = net.learn(img, 2, np.random.default_rng(5))
        b = loaded.learn(img, 2, np.random.default_rng(5))
        assert a == b
        _assert_same_state(net, loaded)

    def test_unknown_version_is_rejected(self):
        net = _trained_network()
        stream = BytesIO()
        net.save(stream)
        stream.seek(0)
        with np.load(stream) as data:
            contents = dict(data)
        contents['format_version'] = np.array(99)

        tampered = BytesIO()
        np.savez(tampered, **contents)
        tampered.seek(0)

        with pytest.raises(ValueError):
            ConvolutionNetwork.load(tampered)

    def test_mismatched_buffer_is_rejected(self):
        net = _trained_network()
        stream = BytesIO()
        net.save(stream)
        stream.seek(0)
        with np.load(stream) as data:
            contents = dict(data)
        contents['feature_1'] = contents['feature_1'][:-1]

        tampered = BytesIO()
        np.savez(tampered, **contents)
        tampered.seek(0)

        with pytest.raises(ValueError):
            ConvolutionNetwork.load(tampered)
