"""Default feature learner: competitive (winner-take-all) patch learning.

Any callable with the signature of `learn_features` can be handed to the
training controller instead. The controller only relies on the returned
score (lower = better match) and on the feature bank being updated in place.
"""
import numpy as np

from ..primitives.buffers import as_volume, as_feature_bank


def sample_patch(volume, feature_width, rng):
    """
    Pick a random feature_width x feature_width patch from a (H, W, D) volume.

    When the volume is narrower than a patch along an axis, the whole axis is
    stretched onto the patch by nearest neighbour, the same mapping the
    convolution uses.
    """
    height, width = volume.shape[:2]
    k = np.arange(feature_width)

    size_y = min(feature_width, height)
    size_x = min(feature_width, width)
    top = int(rng.integers(0, height - size_y + 1))
    left = int(rng.integers(0, width - size_x + 1))

    rows = top + (k * size_y) // feature_width
    cols = left + (k * size_x) // feature_width
    return volume[rows[:, np.newaxis], cols[np.newaxis, :]]


def learn_features(img, img_width, img_height, img_depth,
                   feature_width, no_of_features,
                   feature, feature_score,
                   samples, learning_rate, rng):
    """
    Pull the best matching feature toward randomly sampled patches.

    For each of `samples` draws the distance from the patch to every feature
    (mean squared difference per pixel and channel) is computed; the
    closest feature wins and moves `learning_rate` of the way toward the
    patch. `feature_score` receives each feature's mean distance over the
    draws.

    Returns the mean winning distance, 0.0 meaning every patch was already
    matched exactly.
    """
    if samples < 1:
        return 0.0

    volume = as_volume(img, img_width, img_height, img_depth)
    bank = as_feature_bank(feature, no_of_features, feature_width, img_depth)

    feature_score[:] = 0.0
    total = 0.0
    for _ in range(samples):
        patch = sample_patch(volume, feature_width, rng)

        diff = bank - patch[np.newaxis]
        distances = np.mean(diff * diff, axis=(1, 2, 3))
        feature_score += distances / samples

        winner = int(np.argmin(distances))
        total += float(distances[winner])
        bank[winner] += learning_rate * (patch - bank[winner])

    return total / samples
