"""
Layer-wise Convolutional Feature Network
========================================
A stack of convolution layers that shrinks the image toward a small output
grid while each layer learns a bank of matching features. Layers are
trained one at a time; see stages/layer_training.py.

Key design:
- All buffers are flat float32 arrays, allocated once and never resized
- Layout is row-major with channels fastest, for activations, features
  and outputs alike
- Each allocation site raises its own AllocationError subclass
- Save/load uses a versioned .npz archive
"""

import numpy as np

from .config import (
    DEFAULT_LEARNING_RATE, FORMAT_VERSION
)
from .primitives import buffers
from .primitives.buffers import (
    ActivationAllocationError, FeatureAllocationError,
    OutputAllocationError, ThresholdAllocationError,
)
from .primitives.geometry import compute_layer_geometry
from .primitives.history import ErrorHistory
from .stages.feature_learning import learn_features
from .stages.feed_forward import feed_forward
from .stages.layer_training import learn_step


class Layer:
    """One stage of the stack: its activation volume and its feature bank."""

    def __init__(self, geometry, index):
        self.width = geometry.width
        self.height = geometry.height
        self.depth = geometry.depth
        self.feature_width = geometry.feature_width
        self.no_of_features = geometry.no_of_features

        self.layer = buffers.allocate(geometry.activation_size,
                                      ActivationAllocationError, "activations", layer=index)
        self.feature = buffers.allocate(geometry.feature_bank_size,
                                        FeatureAllocationError, "features", layer=index)

    def activations(self):
        """(height, width, depth) view of the activation buffer."""
        return buffers.as_volume(self.layer, self.width, self.height, self.depth)

    def features(self):
        """(no_of_features, feature_width, feature_width, depth) view of the feature bank."""
        return buffers.as_feature_bank(self.feature, self.no_of_features,
                                       self.feature_width, self.depth)

    def free(self):
        self.layer = None
        self.feature = None


class ConvolutionNetwork:
    """
    Layer-wise trained convolution stack.

    Args:
        no_of_layers: Number of convolution layers
        image_width, image_height, image_depth: Input image dimensions
        no_of_features: Features learned in every layer
        feature_width: Feature patch width in the first layer
        final_image_width, final_image_height: Size of the output grid
        match_threshold: One threshold per layer; copied
        rng: Optional numpy Generator used to initialise the feature banks

    Raises:
        ValueError: On an invalid configuration
        AllocationError: Subclass naming the buffer that failed
    """

    def __init__(self, no_of_layers,
                 image_width, image_height, image_depth,
                 no_of_features, feature_width,
                 final_image_width, final_image_height,
                 match_threshold, rng=None):
        if len(match_threshold) != no_of_layers:
            raise ValueError(f"Expected {no_of_layers} match thresholds, "
                             f"got {len(match_threshold)}")

        geometry = compute_layer_geometry(no_of_layers,
                                          image_width, image_height, image_depth,
                                          no_of_features, feature_width,
                                          final_image_width, final_image_height)

        self.no_of_layers = no_of_layers
        self.image_width = image_width
        self.image_height = image_height
        self.image_depth = image_depth
        self.no_of_features = no_of_features
        self.feature_width = feature_width
        self.final_image_width = final_image_width
        self.final_image_height = final_image_height

        self.current_layer = 0
        self.learning_rate = DEFAULT_LEARNING_RATE
        self.iterations = 0
        self.training_counter = 0
        self.history = ErrorHistory()

        if rng is None:
            rng = np.random.default_rng()

        self.layers = []
        for index, g in enumerate(geometry):
            layer = Layer(g, index)
            layer.feature[:] = rng.random(layer.feature.size, dtype=np.float32)
            self.layers.append(layer)

        # Sized by what the last convolution writes: one channel per feature
        self.outputs_width = final_image_width
        self.no_of_outputs = (final_image_width * final_image_width *
                              self.layers[-1].no_of_features)
        self.outputs = buffers.allocate(self.no_of_outputs, OutputAllocationError, "outputs")

        self.match_threshold = buffers.allocate(no_of_layers, ThresholdAllocationError,
                                                "match thresholds")
        self.match_threshold[:] = np.asarray(match_threshold, dtype=np.float32)

    @property
    def history_index(self):
        return self.history.index

    @property
    def history_step(self):
        return self.history.step

    @property
    def trained(self):
        return self.current_layer >= self.no_of_layers

    def feed_forward(self, img, layer_count=None):
        """Convolve the image through `layer_count` layers (default: all)."""
        if layer_count is None:
            layer_count = self.no_of_layers
        feed_forward(self, img, layer_count)

    def learn(self, img, samples, rng, learner=learn_features):
        """One training step on the current layer. See stages.layer_training.learn_step."""
        return learn_step(self, img, samples, rng, learner)

    def free(self):
        """Release every buffer. The network is unusable afterwards."""
        for layer in reversed(self.layers):
            layer.free()
        self.outputs = None
        self.match_threshold = None

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def save(self, fp):
        """
        Save the full network state as an .npz archive.

        Args:
            fp: Path (".npz" is appended if missing) or binary file object
        """
        data = {
            'format_version': np.array(FORMAT_VERSION),
            'config': np.array([
                self.no_of_layers,
                self.image_width, self.image_height, self.image_depth,
                self.no_of_features, self.feature_width,
                self.final_image_width, self.final_image_height,
            ]),
            'current_layer': np.array(self.current_layer),
            'learning_rate': np.array(self.learning_rate),
            'iterations': np.array(self.iterations),
            'training_counter': np.array(self.training_counter),
            'match_threshold': self.match_threshold,
            'outputs': self.outputs,
            'history_values': self.history.values,
            'history_state': np.array([self.history.index, self.history.step,
                                       self.history.counter]),
        }
        for index, layer in enumerate(self.layers):
            data[f'layer_{index}'] = layer.layer
            data[f'feature_{index}'] = layer.feature

        np.savez(fp, **data)
        if isinstance(fp, str):
            print(f"Model saved to {fp}")

    @classmethod
    def load(cls, fp):
        """Load a network written by save()."""
        if isinstance(fp, str) and not fp.endswith('.npz'):
            fp = fp + '.npz'

        with np.load(fp) as data:
            version = int(data['format_version'])
            if version != FORMAT_VERSION:
                raise ValueError(f"Unsupported model format version {version}, "
                                 f"expected {FORMAT_VERSION}")

            (no_of_layers, image_width, image_height, image_depth,
             no_of_features, feature_width,
             final_image_width, final_image_height) = (int(v) for v in data['config'])

            network = cls(no_of_layers,
                          image_width, image_height, image_depth,
                          no_of_features, feature_width,
                          final_image_width, final_image_height,
                          data['match_threshold'])

            network.current_layer = int(data['current_layer'])
            network.learning_rate = float(data['learning_rate'])
            network.iterations = int(data['iterations'])
            network.training_counter = int(data['training_counter'])
            if not 0 <= network.current_layer <= no_of_layers:
                raise ValueError(f"Saved current layer {network.current_layer} is out of range")

            _restore(network.outputs, data['outputs'], 'outputs')
            _restore(network.history.values, data['history_values'], 'history')
            (network.history.index, network.history.step,
             network.history.counter) = (int(v) for v in data['history_state'])

            for index, layer in enumerate(network.layers):
                _restore(layer.layer, data[f'layer_{index}'], f'layer {index} activations')
                _restore(layer.feature, data[f'feature_{index}'], f'layer {index} features')

        if isinstance(fp, str):
            print(f"Model loaded from {fp}")
        return network

    def summary(self):
        """Print network architecture summary."""
        print("\n" + "=" * 50)
        print("ConvolutionNetwork Architecture")
        print("=" * 50)
        print(f"Input: {self.image_width}x{self.image_height}x{self.image_depth}")
        for index, layer in enumerate(self.layers):
            marker = " <- training" if index == self.current_layer else ""
            print(f"Layer {index}: {layer.width}x{layer.height}x{layer.depth}, "
                  f"{layer.no_of_features} features of {layer.feature_width}x{layer.feature_width}, "
                  f"threshold {self.match_threshold[index]:.4f}{marker}")
        print(f"Outputs: {self.outputs_width}x{self.outputs_width}x"
              f"{self.layers[-1].no_of_features} = {self.no_of_outputs}")
        print(f"Learning rate: {self.learning_rate}")
        print(f"Trained layers: {self.current_layer}/{self.no_of_layers}")
        print("=" * 50 + "\n")


def _restore(target, source, what):
    if target.shape != source.shape:
        raise ValueError(f"Saved {what} has shape {source.shape}, expected {target.shape}")
    target[:] = source
