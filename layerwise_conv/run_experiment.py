"""
Layer-wise Feature Learning - Main Entry Point
==============================================
Trains a layer-wise convolution network on MNIST, then saves the model,
the training error plot and an image of every layer's feature bank.

Usage:
    layerwise-conv-train                          # defaults from config.py
    layerwise-conv-train --layers 2 --features 6 --threshold 0.3
    layerwise-conv-train --dataset torchvision --data-dir ~/.mnist
"""

import os
import argparse

import numpy as np

from .config import (
    DEFAULT_LAYERS, IMAGE_WIDTH, IMAGE_HEIGHT, IMAGE_DEPTH,
    DEFAULT_FEATURES, DEFAULT_FEATURE_WIDTH,
    FINAL_IMAGE_WIDTH, DEFAULT_MATCH_THRESHOLD,
    DEFAULT_LEARNING_RATE, SAMPLES_PER_STEP, EPOCHS, TRAINING_SAMPLES,
    RANDOM_SEED, EXPERIMENT_BASE_DIR,
)
from .data_loader import load_mnist, load_torchvision_mnist
from .network import ConvolutionNetwork
from .training import train_network
from .visualization.feature_viz import save_feature_bank
from .visualization.history_plot import plot_history


def get_experiment_dir(base_dir, num_layers, num_features, feature_width):
    """
    Directory for one configuration.

    Format: {N}_layers_{F}_features_{W}_width/
    """
    dir_name = f"{num_layers}_layers_{num_features}_features_{feature_width}_width"
    return os.path.join(base_dir, dir_name)


def parse_thresholds(text, num_layers):
    """A single value applies to every layer, otherwise one comma-separated value per layer."""
    values = [float(v) for v in text.split(",")]
    if len(values) == 1:
        values = values * num_layers
    if len(values) != num_layers:
        raise ValueError(f"Got {len(values)} thresholds for {num_layers} layers")
    return values


def run_single_experiment(args):
    """Build, train and save one network."""
    thresholds = parse_thresholds(args.threshold, args.layers)

    if args.dataset == "torchvision":
        images, _ = load_torchvision_mnist(args.data_dir or EXPERIMENT_BASE_DIR,
                                           train=True, max_n=args.images)
    else:
        images, _, _, _ = load_mnist(args.data_dir, max_train=args.images, max_test=0)

    network = ConvolutionNetwork(
        args.layers,
        IMAGE_WIDTH, IMAGE_HEIGHT, IMAGE_DEPTH,
        args.features, args.feature_width,
        args.final_width, args.final_width,
        thresholds,
        rng=np.random.default_rng(args.seed),
    )
    network.learning_rate = args.learning_rate
    network.summary()

    train_network(network, images,
                  epochs=args.epochs, samples=args.samples, seed=args.seed)

    experiment_dir = get_experiment_dir(args.output, args.layers,
                                        args.features, args.feature_width)
    os.makedirs(experiment_dir, exist_ok=True)

    network.save(os.path.join(experiment_dir, "model.npz"))
    plot_history(network.history, os.path.join(experiment_dir, "training_error.png"),
                 f"Layer-wise Training Error - {args.layers} layers")
    for index in range(network.no_of_layers):
        save_feature_bank(network, index,
                          os.path.join(experiment_dir, f"features_layer_{index}.png"))

    network.summary()
    print(f"Results saved to {experiment_dir}")
    return network


def main():
    parser = argparse.ArgumentParser(
        description="Layer-wise unsupervised convolutional feature learning on MNIST"
    )
    parser.add_argument('--layers', type=int, default=DEFAULT_LAYERS,
                        help=f'Number of convolution layers (default: {DEFAULT_LAYERS})')
    parser.add_argument('--features', type=int, default=DEFAULT_FEATURES,
                        help=f'Features per layer (default: {DEFAULT_FEATURES})')
    parser.add_argument('--feature-width', type=int, default=DEFAULT_FEATURE_WIDTH,
                        help=f'Feature width in the first layer (default: {DEFAULT_FEATURE_WIDTH})')
    parser.add_argument('--final-width', type=int, default=FINAL_IMAGE_WIDTH,
                        help=f'Width of the output grid (default: {FINAL_IMAGE_WIDTH})')
    parser.add_argument('--threshold', type=str, default=str(DEFAULT_MATCH_THRESHOLD),
                        help='Match threshold, one value or one per layer separated by commas')
    parser.add_argument('--learning-rate', type=float, default=DEFAULT_LEARNING_RATE)
    parser.add_argument('--samples', type=int, default=SAMPLES_PER_STEP,
                        help='Learner calls per training step')
    parser.add_argument('--epochs', type=int, default=EPOCHS)
    parser.add_argument('--images', type=int, default=TRAINING_SAMPLES,
                        help='Number of training images to use')
    parser.add_argument('--seed', type=int, default=RANDOM_SEED)
    parser.add_argument('--dataset', choices=['parquet', 'torchvision'], default='parquet',
                        help='Where to load MNIST from')
    parser.add_argument('--data-dir', type=str, default=None,
                        help='Parquet directory, or torchvision download root')
    parser.add_argument('--output', type=str, default=EXPERIMENT_BASE_DIR,
                        help='Base directory for results')

    args = parser.parse_args()
    run_single_experiment(args)


if __name__ == "__main__":
    main()
