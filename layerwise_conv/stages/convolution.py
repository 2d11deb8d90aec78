"""Convolution engine: feature-similarity maps at an arbitrary output resolution.

Each output cell owns a proportional sub-region of the source volume:
    top    = y * img_height // layer_width
    bottom = (y + 1) * img_height // layer_width
(and likewise for columns). The sub-region is resampled by nearest
neighbour onto a feature_width x feature_width grid and compared against
every feature in the bank. Because the mapping truncates, sub-regions may be
empty, overlap or leave gaps; this is a scale-normalising resample rather
than a fixed-stride sliding window.

Output layout matches the input layout, with features as channels:
    layer[((y * layer_width) + x) * no_of_features + f]
"""
import numpy as np

from ..primitives.buffers import as_volume, as_feature_bank


def region_indices(cells: int, source_size: int, feature_width: int) -> np.ndarray:
    """
    Source coordinates sampled by each output cell along one axis.

    Returns (cells, feature_width) int array: entry [c, k] is the source
    row (or column) used for patch position k of output cell c.
    """
    c = np.arange(cells)
    top = c * source_size // cells
    bottom = (c + 1) * source_size // cells
    k = np.arange(feature_width)
    return top[:, np.newaxis] + (k[np.newaxis, :] * (bottom - top)[:, np.newaxis]) // feature_width


def convolve_image(img: np.ndarray,
                   img_width: int, img_height: int, img_depth: int,
                   feature_width: int, no_of_features: int,
                   feature: np.ndarray,
                   layer: np.ndarray, layer_width: int) -> None:
    """
    Write the similarity of every feature to every output cell into `layer`.

    img:     flat float32, img_width * img_height * img_depth
    feature: flat float32, no_of_features * feature_width^2 * img_depth
    layer:   flat float32, layer_width^2 * no_of_features (written in place)

    similarity = 1 - sum_sq_diff / (feature_width^2 * img_depth). It is 1.0
    for a perfect match and is not clamped, so it goes negative when the
    mean squared difference exceeds 1.
    """
    expected = layer_width * layer_width * no_of_features
    if layer.size != expected:
        raise ValueError(f"Output buffer holds {layer.size} values, expected {expected}")

    volume = as_volume(img, img_width, img_height, img_depth)
    bank = as_feature_bank(feature, no_of_features, feature_width, img_depth)

    rows = region_indices(layer_width, img_height, feature_width)  # (layer_width, fw)
    cols = region_indices(layer_width, img_width, feature_width)   # (layer_width, fw)

    # Gather every resampled patch at once.
    # (layer_width, layer_width, fw, fw, img_depth), indexed [y, x, yy, xx, d]
    patches = volume[rows[:, np.newaxis, :, np.newaxis], cols[np.newaxis, :, np.newaxis, :]]

    pixels = feature_width * feature_width * img_depth
    out = layer.reshape(layer_width, layer_width, no_of_features)
    for f in range(no_of_features):
        diff = patches - bank[f]
        match = np.sum(diff * diff, axis=(2, 3, 4))
        out[:, :, f] = 1.0 - match / pixels
