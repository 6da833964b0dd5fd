"""Perceptual fidelity of a finished mosaic (reporting only)."""

from __future__ import annotations

import numpy as np
from skimage.color import deltaE_ciede2000, rgb2lab
from skimage.measure import block_reduce


def _rgb_float(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        image = np.repeat(image[:, :, np.newaxis], 3, axis=2)
    return image[:, :, :3].astype(np.float64) / 255.0


def mosaic_error(
    source: np.ndarray,
    mosaic: np.ndarray,
    block_size: tuple[int, int] | None = None,
) -> float:
    """Mean CIEDE2000 (CIELAB, D65) between *source* and *mosaic*.

    With *block_size* ``(w, h)`` both images are first averaged over whole
    blocks, so the score reflects colour placement rather than tile texture.
    Partial edge blocks are ignored in that case.

    Args:
        source: (H, W, 3) uint8.
        mosaic: (H, W, 3) uint8, same shape as *source*.
        block_size: Optional block width and height in pixels.

    Returns:
        Mean colour difference (0 = identical).
    """
    if source.shape[:2] != mosaic.shape[:2]:
        msg = f"Shape mismatch: {source.shape[:2]} vs {mosaic.shape[:2]}"
        raise ValueError(msg)

    src = _rgb_float(source)
    dst = _rgb_float(mosaic)

    if block_size is not None:
        bw, bh = block_size
        h, w = src.shape[:2]
        crop_h, crop_w = h - h % bh, w - w % bw
        if crop_h and crop_w:
            src = block_reduce(src[:crop_h, :crop_w], (bh, bw, 1), np.mean)
            dst = block_reduce(dst[:crop_h, :crop_w], (bh, bw, 1), np.mean)

    return float(np.mean(deltaE_ciede2000(rgb2lab(src), rgb2lab(dst))))
