from __future__ import annotations

import numpy as np

from .convolution import convolve_image


def image_to_bytes(img, expected_size: int) -> np.ndarray:
    """
    Flatten a raw image into a uint8 vector of `expected_size` bytes.

    Accepts bytes, bytearray or a uint8 array in (height, width[, depth])
    or flat layout. Channels must be the fastest-varying dimension.
    """
    if isinstance(img, (bytes, bytearray, memoryview)):
        data = np.frombuffer(img, dtype=np.uint8)
    else:
        data = np.asarray(img)
        if data.dtype != np.uint8:
            raise ValueError(f"Expected a uint8 image, got dtype {data.dtype}")
        data = data.reshape(-1)
    if data.size != expected_size:
        raise ValueError(f"Image has {data.size} bytes, expected {expected_size}")
    return data


def load_image(network, img) -> None:
    """Normalise a byte image into layer 0's activation buffer ([0, 255] -> [0, 1])."""
    first = network.layers[0]
    data = image_to_bytes(img, first.width * first.height * first.depth)
    first.layer[:] = data.astype(np.float32) / 255.0


def feed_forward(network, img, layer_count: int) -> None:
    """
    Run the image through the first `layer_count` layers.

    Layer l convolves into layer l+1's activation buffer, or into the
    network's outputs when l is the last layer. Buffers beyond layer
    `layer_count` are left as they were. A count of 0 only loads the image.
    """
    if not 0 <= layer_count <= network.no_of_layers:
        raise ValueError(
            f"Layer count must be between 0 and {network.no_of_layers}, got {layer_count}"
        )

    load_image(network, img)

    for l in range(layer_count):
        src = network.layers[l]
        if l < network.no_of_layers - 1:
            next_layer = network.layers[l + 1].layer
            next_width = network.layers[l + 1].width
        else:
            next_layer = network.outputs
            next_width = network.outputs_width

        convolve_image(src.layer,
                       src.width, src.height, src.depth,
                       src.feature_width, src.no_of_features,
                       src.feature,
                       next_layer, next_width)
