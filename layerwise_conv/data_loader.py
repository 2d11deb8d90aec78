"""
MNIST Data Loading
==================
Loads MNIST as raw uint8 images; the network normalises them itself.
Sources: parquet files (pandas + PIL) or torchvision's downloader.
"""

import os
from io import BytesIO

import numpy as np
import pandas as pd
from PIL import Image
import torch
import torchvision
from torch.utils.data import Dataset, DataLoader

from .config import MNIST_DATA_DIR


class ImageDataset(Dataset):
    """PyTorch Dataset over a list of uint8 images."""

    def __init__(self, images, labels=None):
        self.images = torch.from_numpy(np.stack(images).astype(np.uint8))
        if labels is None:
            labels = np.zeros(len(images), dtype=np.int64)
        self.labels = torch.from_numpy(np.asarray(labels, dtype=np.int64))

    def __len__(self):
        return len(self.labels)

    def __getitem__(self, idx):
        return self.images[idx], self.labels[idx]


def load_mnist(data_dir=None, max_train=None, max_test=None):
    """
    Load MNIST data from parquet files.

    Args:
        data_dir: Path to directory containing parquet files
        max_train: Limit training samples (None for all)
        max_test: Limit test samples (None for all)

    Returns:
        (train_images, train_labels, test_images, test_labels)
        Images are uint8 numpy arrays (28x28)
    """
    if data_dir is None:
        data_dir = os.path.join(os.path.dirname(__file__), "..", MNIST_DATA_DIR)

    train_path = os.path.join(data_dir, "train-00000-of-00001.parquet")
    test_path = os.path.join(data_dir, "test-00000-of-00001.parquet")

    print("Loading training data...")
    train_images, train_labels = load_parquet(train_path, max_train)
    print(f"  Loaded {len(train_images)} training samples")

    print("Loading test data...")
    test_images, test_labels = load_parquet(test_path, max_test)
    print(f"  Loaded {len(test_images)} test samples")

    return train_images, train_labels, test_images, test_labels


def load_parquet(path, max_n=None):
    """Load images and labels from one parquet file."""
    df = pd.read_parquet(path)
    if max_n is not None:
        df = df.head(max_n)

    images = []
    labels = []
    for _, row in df.iterrows():
        img_data = row['image']
        if isinstance(img_data, dict) and 'bytes' in img_data:
            img_bytes = img_data['bytes']
        else:
            img_bytes = img_data

        img = Image.open(BytesIO(img_bytes)).convert('L')
        images.append(np.array(img, dtype=np.uint8))
        labels.append(int(row['label']))

    return images, labels


def load_torchvision_mnist(root, train=True, max_n=None):
    """
    Load MNIST through torchvision, downloading it into `root` if needed.

    Returns:
        (images, labels) with images as uint8 numpy arrays (28x28)
    """
    dataset = torchvision.datasets.MNIST(root=root, train=train, download=True)
    data = dataset.data.numpy()
    targets = dataset.targets.numpy()
    if max_n is not None:
        data = data[:max_n]
        targets = targets[:max_n]

    print(f"  Loaded {len(data)} {'training' if train else 'test'} samples")
    return list(data), [int(t) for t in targets]


def get_data_loader(images, labels=None, shuffle=True, seed=None):
    """
    One-image-at-a-time loader. Yields (image, label) tensors.

    Training steps consume a single image each, so no batching is done.
    """
    generator = None
    if seed is not None:
        generator = torch.Generator()
        generator.manual_seed(seed)
    return DataLoader(ImageDataset(images, labels), batch_size=None,
                      shuffle=shuffle, generator=generator)
