"""
Tests for layer geometry and buffer allocation.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import numpy as np
import pytest

from layerwise_conv.network import ConvolutionNetwork
from layerwise_conv.primitives import buffers
from layerwise_conv.primitives.buffers import (
    AllocationError, ActivationAllocationError, FeatureAllocationError,
    OutputAllocationError, ThresholdAllocationError,
)
from layerwise_conv.primitives.geometry import compute_layer_geometry, layer_width


def _small_network(**overrides):
    """2-layer 8x8x1 network -> 4x4 output, 2 features of width 4."""
    params = dict(no_of_layers=2, image_width=8, image_height=8, image_depth=1,
                  no_of_features=2, feature_width=4,
                  final_image_width=4, final_image_height=4,
                  match_threshold=[0.5, 0.5])
    params.update(overrides)
    return ConvolutionNetwork(**params)


class TestLayerGeometry:

    def test_small_network_shapes(self):
        net = _small_network()
        assert [l.width for l in net.layers] == [8, 6]
        assert [l.height for l in net.layers] == [8, 6]
        assert [l.depth for l in net.layers] == [1, 2]
        assert [l.feature_width for l in net.layers] == [4, 3]
        assert [l.no_of_features for l in net.layers] == [2, 2]

    @pytest.mark.parametrize("no_of_layers", [1, 2, 3, 4, 6, 10])
    def test_widths_shrink_from_image_toward_final(self, no_of_layers):
        geometry = compute_layer_geometry(no_of_layers, 28, 28, 1, 8, 7, 4, 4)
        widths = [g.width for g in geometry]

        assert widths[0] == 28
        assert all(a >= b for a, b in zip(widths, widths[1:]))
        assert all(w >= 4 for w in widths)
        assert all(g.feature_width >= 3 for g in geometry)

    def test_interpolation_truncates(self):
        # 28 - 24 * 1 / 3 = 20, 28 - 24 * 2 / 3 = 12
        assert [layer_width(l, 3, 28, 4) for l in range(3)] == [28, 20, 12]
        # 7 * 1 // 3 == 2, so 10 - 2
        assert layer_width(1, 3, 10, 3) == 8

    def test_feature_width_floor(self):
        geometry = compute_layer_geometry(3, 28, 28, 1, 4, 3, 4, 4)
        assert [g.feature_width for g in geometry] == [3, 3, 3]

    def test_depth_chains_from_previous_feature_count(self):
        geometry = compute_layer_geometry(4, 32, 32, 3, 5, 8, 4, 4)
        assert geometry[0].depth == 3
        for prev, g in zip(geometry, geometry[1:]):
            assert g.depth == prev.no_of_features

    def test_first_layer_keeps_image_height_later_layers_square(self):
        geometry = compute_layer_geometry(2, 10, 6, 1, 2, 4, 2, 2)
        assert (geometry[0].width, geometry[0].height) == (10, 6)
        assert geometry[1].height == geometry[1].width == 6

    @pytest.mark.parametrize("overrides", [
        dict(no_of_layers=0, match_threshold=[]),
        dict(image_width=0),
        dict(no_of_features=0),
        dict(final_image_width=9),
        dict(final_image_height=9),
    ])
    def test_invalid_configuration_raises_value_error(self, overrides):
        with pytest.raises(ValueError):
            _small_network(**overrides)

    def test_threshold_count_must_match_layers(self):
        with pytest.raises(ValueError):
            _small_network(match_threshold=[0.5])


class TestAllocation:

    def test_buffer_sizes(self):
        net = _small_network()
        assert net.layers[0].layer.size == 8 * 8 * 1
        assert net.layers[0].feature.size == 2 * 4 * 4 * 1
        assert net.layers[1].layer.size == 6 * 6 * 2
        assert net.layers[1].feature.size == 2 * 3 * 3 * 2
        assert net.outputs.size == net.no_of_outputs == 4 * 4 * 2
        assert net.match_threshold.size == 2
        assert all(l.layer.dtype == np.float32 for l in net.layers)

    def test_initial_state(self):
        net = _small_network()
        assert net.current_layer == 0
        assert net.learning_rate == pytest.approx(0.1)
        assert net.iterations == 0
        assert net.training_counter == 0
        assert net.history_index == 0
        assert net.history_step == 1
        assert not net.trained

    def test_thresholds_are_copied(self):
        thresholds = np.array([0.25, 0.75], dtype=np.float32)
        net = _small_network(match_threshold=thresholds)
        thresholds[:] = 99.0
        np.testing.assert_array_equal(net.match_threshold, [0.25, 0.75])

    def test_features_initialised_from_rng(self):
        a = _small_network(rng=np.random.default_rng(3))
        b = _small_network(rng=np.random.default_rng(3))
        for la, lb in zip(a.layers, b.layers):
            np.testing.assert_array_equal(la.feature, lb.feature)
            assert np.all((la.feature >= 0.0) & (la.feature < 1.0))

    @pytest.mark.parametrize("failing_call, error_cls, layer", [
        (1, ActivationAllocationError, 0),
        (2, FeatureAllocationError, 0),
        (3, ActivationAllocationError, 1),
        (4, FeatureAllocationError, 1),
        (5, OutputAllocationError, None),
        (6, ThresholdAllocationError, None),
    ])
    def test_each_allocation_site_has_its_own_error(self, monkeypatch, failing_call, error_cls, layer):
        calls = []
        real_allocate = buffers.allocate_floats

        def flaky_allocate(size):
            calls.append(size)
            if len(calls) == failing_call:
                raise MemoryError
            return real_allocate(size)

        monkeypatch.setattr(buffers, "allocate_floats", flaky_allocate)

        with pytest.raises(error_cls) as excinfo:
            _small_network()

        assert isinstance(excinfo.value, AllocationError)
        assert isinstance(excinfo.value, MemoryError)
        assert excinfo.value.layer == layer

    def test_error_codes_are_distinct(self):
        codes = [cls.code for cls in (ActivationAllocationError, FeatureAllocationError,
                                      OutputAllocationError, ThresholdAllocationError)]
        assert codes == [1, 2, 3, 4]

    def test_free_releases_every_buffer(self):
        net = _small_network()
        net.free()
        assert all(l.layer is None and l.feature is None for l in net.layers)
        assert net.outputs is None
        assert net.match_threshold is None
