"""
Layer-wise training: one layer at a time, advancing when it matches well enough.

The network's `current_layer` is the cursor. Each step feeds the image
forward to that layer, lets the learner run `samples` times against the
layer's activations, and sums the returned scores. A sum strictly below the
layer's match threshold commits the layer and moves the cursor on.

The scores are summed, not averaged, so the effective threshold scales with
`samples`. Keep `samples` fixed across steps for the comparison to mean
anything.
"""

from ..config import SCRATCH_ALLOCATION_FAILED
from ..primitives import buffers
from .feature_learning import learn_features
from .feed_forward import feed_forward


def learn_step(network, img, samples, rng, learner=learn_features):
    """
    Run one training step on the current layer.

    Args:
        network: ConvolutionNetwork, mutated in place
        img: Raw byte image matching layer 0
        samples: Number of learner calls (also passed to the learner)
        rng: numpy Generator shared with the learner
        learner: Callable with the signature of learn_features

    Returns:
        Accumulated score (lower is better), 0.0 when every layer is
        already trained, or SCRATCH_ALLOCATION_FAILED.
    """
    index = network.current_layer
    if index >= network.no_of_layers:
        return 0.0

    feed_forward(network, img, index)

    layer = network.layers[index]
    try:
        feature_score = buffers.allocate_floats(layer.no_of_features)
    except MemoryError:
        return SCRATCH_ALLOCATION_FAILED

    matching_score = 0.0
    for _ in range(samples):
        matching_score += learner(layer.layer,
                                  layer.width, layer.height, layer.depth,
                                  layer.feature_width, layer.no_of_features,
                                  layer.feature, feature_score,
                                  samples, network.learning_rate, rng)
        network.iterations += 1

    del feature_score

    if matching_score < network.match_threshold[index]:
        network.current_layer += 1

    network.training_counter += 1
    network.history.record(matching_score)
    return float(matching_score)
