"""
Flat float32 buffers and the index arithmetic that addresses them.

Every activation volume is stored row-major with channels fastest:
    index(x, y, d) = ((y * width) + x) * depth + d
Feature banks use the same layout per patch, with patches laid end to end.
Convolution output follows the same rule with features as channels, which
is what lets one layer's output serve as the next layer's input.
"""
import numpy as np


class AllocationError(MemoryError):
    """A network buffer could not be allocated. `code` identifies which one."""
    code = 0

    def __init__(self, message, layer=None):
        super().__init__(message)
        self.layer = layer


class ActivationAllocationError(AllocationError):
    code = 1


class FeatureAllocationError(AllocationError):
    code = 2


class OutputAllocationError(AllocationError):
    code = 3


class ThresholdAllocationError(AllocationError):
    code = 4


def allocate_floats(size):
    """Zero-filled float32 vector."""
    return np.zeros(size, dtype=np.float32)


def allocate(size, error_cls, what, layer=None):
    """Allocate a buffer, translating MemoryError into the given AllocationError."""
    try:
        return allocate_floats(size)
    except MemoryError as e:
        where = f" for layer {layer}" if layer is not None else ""
        raise error_cls(f"Could not allocate {size} floats for {what}{where}", layer=layer) from e


# =============================================================================
# STRIDE HELPERS
# =============================================================================

def activation_index(x, y, d, width, depth):
    return ((y * width) + x) * depth + d


def feature_index(f, x, y, d, feature_width, depth):
    return f * feature_width * feature_width * depth + ((y * feature_width) + x) * depth + d


def output_index(x, y, f, layer_width, no_of_features):
    return ((y * layer_width) + x) * no_of_features + f


def as_volume(buffer, width, height, depth):
    """(height, width, depth) view of a flat buffer. Writes go through to the buffer."""
    return buffer.reshape(height, width, depth)


def as_feature_bank(buffer, no_of_features, feature_width, depth):
    """(no_of_features, feature_width, feature_width, depth) view of a flat feature bank."""
    return buffer.reshape(no_of_features, feature_width, feature_width, depth)
