"""Nearest-neighbour resampling of pixel buffers."""

from __future__ import annotations

import numpy as np

from tile_mosaic.errors import InvalidTileSizeError


def scale_nearest(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize *image* to ``(height, width)`` by nearest-neighbour sampling.

    Destination pixel ``(x, y)`` copies source pixel
    ``(floor(x * src_w / width), floor(y * src_h / height))``.  No blending
    takes place, and equal sizes yield an exact copy.

    Args:
        image:  (H, W) or (H, W, C) array of any dtype.
        width:  Output width in pixels.
        height: Output height in pixels.

    Returns:
        New array of shape (height, width[, C]) and the input dtype.
    """
    if width < 1 or height < 1:
        msg = f"Cannot scale to {width}x{height}"
        raise InvalidTileSizeError(msg)

    src_h, src_w = image.shape[:2]
    if src_h == 0 or src_w == 0:
        msg = "Cannot scale an empty image"
        raise ValueError(msg)

    # Integer arithmetic keeps the floor exact
    ys = np.arange(height) * src_h // height
    xs = np.arange(width) * src_w // width
    return image[ys[:, np.newaxis], xs[np.newaxis, :]].copy()
