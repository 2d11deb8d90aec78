from __future__ import annotations

from dataclasses import dataclass

from ..config import MIN_FEATURE_WIDTH


@dataclass(frozen=True)
class LayerGeometry:
    width: int
    height: int
    depth: int
    feature_width: int
    no_of_features: int

    @property
    def activation_size(self) -> int:
        return self.width * self.height * self.depth

    @property
    def feature_size(self) -> int:
        return self.feature_width * self.feature_width * self.depth

    @property
    def feature_bank_size(self) -> int:
        return self.no_of_features * self.feature_size


def layer_width(layer: int, no_of_layers: int, image_width: int, final_image_width: int) -> int:
    """Linear interpolation from the input width toward the final width, truncating."""
    return image_width - (image_width - final_image_width) * layer // no_of_layers


def scaled_feature_width(feature_width: int, width: int, image_width: int) -> int:
    """Feature width shrinks in proportion to the layer, but never below MIN_FEATURE_WIDTH."""
    return max(MIN_FEATURE_WIDTH, feature_width * width // image_width)


def validate_config(no_of_layers: int,
                    image_width: int, image_height: int, image_depth: int,
                    no_of_features: int, feature_width: int,
                    final_image_width: int, final_image_height: int) -> None:
    if no_of_layers < 1:
        raise ValueError(f"Need at least one layer, got {no_of_layers}")
    for name, value in (("image_width", image_width), ("image_height", image_height),
                        ("image_depth", image_depth), ("no_of_features", no_of_features),
                        ("feature_width", feature_width),
                        ("final_image_width", final_image_width),
                        ("final_image_height", final_image_height)):
        if value < 1:
            raise ValueError(f"{name} must be positive, got {value}")
    if final_image_width > image_width or final_image_height > image_height:
        raise ValueError(
            f"Final size {final_image_width}x{final_image_height} is larger than "
            f"the input image {image_width}x{image_height}"
        )


def compute_layer_geometry(no_of_layers: int,
                           image_width: int, image_height: int, image_depth: int,
                           no_of_features: int, feature_width: int,
                           final_image_width: int, final_image_height: int) -> list[LayerGeometry]:
    """
    Derive the shape of every layer in the stack.

    Layer 0 keeps the input image's height and depth. Later layers are
    square, and their depth is the previous layer's feature count, since
    the convolution output of one layer has one channel per feature.
    """
    validate_config(no_of_layers, image_width, image_height, image_depth,
                    no_of_features, feature_width,
                    final_image_width, final_image_height)

    geometry = []
    for l in range(no_of_layers):
        width = layer_width(l, no_of_layers, image_width, final_image_width)
        if l == 0:
            height = image_height - (image_height - final_image_height) * l // no_of_layers
            depth = image_depth
        else:
            height = width
            depth = geometry[l - 1].no_of_features

        geometry.append(LayerGeometry(
            width=width,
            height=height,
            depth=depth,
            feature_width=scaled_feature_width(feature_width, width, image_width),
            no_of_features=no_of_features,
        ))
    return geometry
