"""
Training Pipeline
=================
Layer-wise training loop with progress tracking.
"""

import time

import numpy as np

from .config import EPOCHS, SAMPLES_PER_STEP, RANDOM_SEED, PROGRESS_EVERY, SCRATCH_ALLOCATION_FAILED
from .data_loader import get_data_loader
from .stages.feature_learning import learn_features


def train_network(network, train_images, epochs=EPOCHS, samples=SAMPLES_PER_STEP,
                  seed=RANDOM_SEED, learner=learn_features, progress_every=PROGRESS_EVERY):
    """
    Train the network one layer at a time.

    Args:
        network: ConvolutionNetwork instance
        train_images: List of uint8 images matching the network input
        epochs: Maximum passes over the images
        samples: Learner calls per training step (keep fixed, the
                 thresholds are compared against the sum)
        seed: Seeds both image shuffling and the learner
        learner: Feature learner passed to every step
        progress_every: Print a progress line every N images

    Returns:
        history: Dict with 'scores', 'layer_advances', 'epoch_times'
                 and 'total_time'
    """
    n_samples = len(train_images)
    rng = np.random.default_rng(seed)
    loader = get_data_loader(train_images, shuffle=True, seed=seed)
    history = {
        'scores': [],
        'layer_advances': [],
        'epoch_times': []
    }

    print("\n" + "=" * 50)
    print("TRAINING")
    print("=" * 50)
    print(f"Images: {n_samples}")
    print(f"Epochs: {epochs}")
    print(f"Samples per step: {samples}")
    print(f"Learning rate: {network.learning_rate}")
    print()

    total_start_time = time.time()

    for epoch in range(epochs):
        if network.trained:
            break
        epoch_start_time = time.time()
        epoch_score = 0.0
        steps = 0

        for i, (image, _) in enumerate(loader):
            layer = network.current_layer
            score = network.learn(image.numpy(), samples, rng, learner)
            if score == SCRATCH_ALLOCATION_FAILED:
                print(f"\n  Warning: scratch allocation failed at image {i}")
                continue

            history['scores'].append(score)
            epoch_score += score
            steps += 1

            if network.current_layer != layer:
                history['layer_advances'].append(network.training_counter)
                print(f"\n  Layer {layer} trained after {network.training_counter} steps "
                      f"(score {score:.4f} < {network.match_threshold[layer]:.4f})")
                if network.trained:
                    break

            if (i + 1) % progress_every == 0 or (i + 1) == n_samples:
                progress = (i + 1) / n_samples * 100
                print(f"\rEpoch {epoch + 1}/{epochs} | "
                      f"Progress: {progress:5.1f}% | "
                      f"Layer: {network.current_layer}/{network.no_of_layers} | "
                      f"Score: {epoch_score / steps:.4f}", end="", flush=True)

        epoch_time = time.time() - epoch_start_time
        history['epoch_times'].append(epoch_time)

        avg_score = epoch_score / steps if steps else 0.0
        print(f"\rEpoch {epoch + 1}/{epochs} | "
              f"Score: {avg_score:.4f} | "
              f"Layer: {network.current_layer}/{network.no_of_layers} | "
              f"Time: {epoch_time:.1f}s")

    total_time = time.time() - total_start_time
    print(f"\nTotal training time: {total_time / 60:.1f} minutes")
    if network.trained:
        print("All layers trained.")
    else:
        print(f"Stopped with {network.current_layer}/{network.no_of_layers} layers trained.")

    history['total_time'] = total_time
    return history
