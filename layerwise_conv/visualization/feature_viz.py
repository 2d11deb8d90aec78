import numpy as np
from PIL import Image
import os

from ..config import FEATURE_SCALE


def feature_to_image(patch: np.ndarray) -> np.ndarray:
    """
    patch: (fw, fw, depth) float array.
    Returns (fw, fw) or (fw, fw, 3) uint8, min-max normalised.
    Depth 1 is greyscale, depth 3 is RGB, any other depth is shown as the
    mean over channels.
    """
    if patch.shape[2] == 3:
        img = patch
    else:
        img = patch.mean(axis=2)

    p_min = np.min(img)
    p_max = np.max(img)
    if p_max - p_min > 0:
        normalized = (img - p_min) / (p_max - p_min)
    else:
        normalized = np.zeros_like(img)
    return (normalized * 255).astype(np.uint8)


def save_feature_bank(network, layer_index: int, path: str, scale: int = FEATURE_SCALE) -> None:
    """
    Tile every feature of one layer into a single PNG.

    Features are laid out on a near-square grid, one pixel gap between
    tiles, scaled up by `scale` for visibility.
    """
    layer = network.layers[layer_index]
    bank = layer.features()
    n, fw = layer.no_of_features, layer.feature_width

    cols = int(np.ceil(np.sqrt(n)))
    rows = int(np.ceil(n / cols))
    step = fw + 1
    colour = layer.depth == 3

    shape = (rows * step - 1, cols * step - 1) + ((3,) if colour else ())
    canvas = np.zeros(shape, dtype=np.uint8)
    for f in range(n):
        r, c = divmod(f, cols)
        canvas[r * step:r * step + fw, c * step:c * step + fw] = feature_to_image(bank[f])

    img = Image.fromarray(canvas)
    img = img.resize((img.width * scale, img.height * scale), Image.NEAREST)

    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    img.save(path)
