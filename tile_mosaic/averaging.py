"""Representative colour of a pixel region."""

from __future__ import annotations

import numpy as np

from tile_mosaic.color_model import LCH, MAX_16BIT, RGBA
from tile_mosaic.scaling import scale_nearest

STRATEGIES = ("mean", "nearest")


def _rgb_channels(region: np.ndarray) -> np.ndarray:
    """Return an (H, W, 3) view of the colour channels, alpha dropped."""
    if region.ndim == 2:
        return np.repeat(region[:, :, np.newaxis], 3, axis=2)
    if region.shape[2] == 1:
        return np.repeat(region, 3, axis=2)
    return region[:, :, :3]


def _to_16bit(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    if dtype == np.uint16:
        return values.astype(np.uint64)
    if dtype == np.uint8:
        return values.astype(np.uint64) * 0x101
    msg = f"Unsupported pixel dtype {dtype}"
    raise TypeError(msg)


def mean_color(region: np.ndarray) -> RGBA:
    """Exact per-channel mean in 16-bit device space."""
    rgb = _rgb_channels(region)
    count = rgb.shape[0] * rgb.shape[1]
    if count == 0:
        msg = "Cannot average an empty region"
        raise ValueError(msg)
    totals = _to_16bit(rgb, region.dtype).sum(axis=(0, 1))
    r, g, b = (int(v) for v in totals // count)
    return RGBA(r, g, b, MAX_16BIT)


def nearest_color(region: np.ndarray) -> RGBA:
    """Colour of a 1x1 nearest-neighbour downsample of *region*."""
    rgb = _rgb_channels(region)
    if rgb.shape[0] == 0 or rgb.shape[1] == 0:
        msg = "Cannot average an empty region"
        raise ValueError(msg)
    pixel = _to_16bit(scale_nearest(rgb, 1, 1)[0, 0], region.dtype)
    r, g, b = (int(v) for v in pixel)
    return RGBA(r, g, b, MAX_16BIT)


def region_color(region: np.ndarray, strategy: str = "mean") -> LCH:
    """Summarise *region* as a single LCH colour.

    Args:
        region:   (H, W), (H, W, 3) or (H, W, 4) uint8/uint16 pixels.
        strategy: ``"mean"`` (exact average) or ``"nearest"`` (fast 1x1
            downsample, approximate for non-uniform regions).

    Returns:
        Representative colour; alpha never contributes.
    """
    if strategy == "mean":
        rgba = mean_color(region)
    elif strategy == "nearest":
        rgba = nearest_color(region)
    else:
        msg = f"Unknown averaging strategy {strategy!r}; choose from {STRATEGIES}"
        raise ValueError(msg)
    return LCH.from_color(rgba)
