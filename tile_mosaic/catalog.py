"""Tile catalog: decode, normalise and colour-tag candidate images."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from tile_mosaic.averaging import region_color
from tile_mosaic.color_model import LCH
from tile_mosaic.errors import EmptyCatalogError, InvalidTileSizeError, TileDecodeError
from tile_mosaic.scaling import scale_nearest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileCandidate:
    """One directory entry offered to the catalog builder.

    Attributes:
        name:   Display name (usually the file name).
        load:   Returns the decoded pixels; raises :class:`TileDecodeError`
                when the entry cannot be read.
        is_dir: Sub-directories are never tiles.
    """

    name: str
    load: Callable[[], np.ndarray]
    is_dir: bool = False


@dataclass(frozen=True, eq=False)
class Tile:
    """A read-only (H, W, 3) uint8 bitmap and its representative colour."""

    name: str
    image: np.ndarray
    color: LCH

    @property
    def size(self) -> tuple[int, int]:
        h, w = self.image.shape[:2]
        return w, h


def _as_rgb(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        image = np.repeat(image[:, :, np.newaxis], 3, axis=2)
    elif image.shape[2] == 1:
        image = np.repeat(image, 3, axis=2)
    else:
        image = image[:, :, :3]
    if image.dtype == np.uint16:
        image = image // 0x101
    return image.astype(np.uint8, order="C", copy=True)


def make_tile(
    name: str,
    image: np.ndarray,
    tile_width: int,
    tile_height: int,
    strategy: str = "mean",
) -> Tile:
    """Scale *image* to the tile size if needed and tag it with its colour.

    Raises:
        TileDecodeError: If *image* is not a non-empty 8/16-bit
            (H, W[, 1|3|4]) pixel buffer.
    """
    image = np.asarray(image)
    if (
        image.dtype not in (np.uint8, np.uint16)
        or image.ndim not in (2, 3)
        or image.size == 0
        or (image.ndim == 3 and image.shape[2] not in (1, 3, 4))
    ):
        msg = f"Unusable pixel buffer for {name}: {image.dtype} {image.shape}"
        raise TileDecodeError(msg)

    h, w = image.shape[:2]
    if w != tile_width or h != tile_height:
        image = scale_nearest(image, tile_width, tile_height)
    rgb = _as_rgb(image)
    rgb.flags.writeable = False
    return Tile(name=name, image=rgb, color=region_color(rgb, strategy))


def _load_tile(
    candidate: TileCandidate,
    tile_width: int,
    tile_height: int,
    strategy: str,
) -> Tile | None:
    if candidate.is_dir:
        logger.debug("Skipping directory %s", candidate.name)
        return None
    try:
        image = candidate.load()
        return make_tile(candidate.name, image, tile_width, tile_height, strategy)
    except TileDecodeError as exc:
        logger.debug("Skipping %s: %s", candidate.name, exc)
        return None


def build_catalog(
    candidates: Sequence[TileCandidate],
    tile_width: int,
    tile_height: int,
    strategy: str = "mean",
    max_workers: int | None = None,
) -> list[Tile]:
    """Turn candidate images into tiles, one concurrent task per candidate.

    Directories and candidates that do not yield a usable bitmap are
    dropped silently.  The
    returned tiles keep candidate order.

    Args:
        candidates:  Entries to consider.
        tile_width:  Target tile width in pixels.
        tile_height: Target tile height in pixels.
        strategy:    Averaging strategy (see :func:`region_color`).
        max_workers: Thread count (``None`` = executor default).

    Returns:
        Non-empty list of tiles.

    Raises:
        InvalidTileSizeError: If a dimension is not positive.
        EmptyCatalogError: If no candidate produced a tile.
    """
    if tile_width < 1 or tile_height < 1:
        msg = f"Invalid tile dimensions {tile_width}x{tile_height}"
        raise InvalidTileSizeError(msg)

    logger.info("Loading %d tile candidates …", len(candidates))
    t0 = time.perf_counter()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = list(pool.map(
            lambda c: _load_tile(c, tile_width, tile_height, strategy),
            candidates,
        ))

    tiles = [tile for tile in results if tile is not None]
    logger.info(
        "Catalog ready: %d/%d tiles  (%.1f s)",
        len(tiles), len(candidates), time.perf_counter() - t0,
    )
    if not tiles:
        msg = "No usable tile images"
        raise EmptyCatalogError(msg)
    return tiles


def catalog_colors(tiles: Sequence[Tile]) -> np.ndarray:
    """(N, 3) float64 array of the tiles' LCH colours, in catalog order."""
    return np.array([tile.color for tile in tiles], dtype=np.float64).reshape(-1, 3)
