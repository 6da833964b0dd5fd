"""Block partitioning, nearest-tile search and mosaic composition."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import NamedTuple, Union

import numpy as np

from tile_mosaic.averaging import region_color
from tile_mosaic.catalog import Tile, catalog_colors
from tile_mosaic.color_model import LCH, lch_distances
from tile_mosaic.errors import EmptyCatalogError, InvalidTileSizeError

logger = logging.getLogger(__name__)


class Rect(NamedTuple):
    """Half-open pixel rectangle ``[x0, x1) x [y0, y1)``."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0


@dataclass(frozen=True)
class TileSize:
    """Fixed block size in pixels; the block count follows from the canvas."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            msg = f"Invalid tile dimensions {self.width}x{self.height}"
            raise InvalidTileSizeError(msg)

    def block_size(self, canvas_width: int, canvas_height: int) -> tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class GridSize:
    """Fixed grid of at most ``columns x rows`` blocks.

    The block size is ``ceil(canvas / count)`` on each axis so the grid never
    needs more cells than requested; the last row and column may be clipped.
    Rounding up can also leave fewer columns or rows than requested: six
    columns over a 10 px canvas give 2 px blocks and only five columns.
    """

    columns: int
    rows: int

    def __post_init__(self) -> None:
        if self.columns < 1 or self.rows < 1:
            msg = f"Invalid grid {self.columns}x{self.rows}"
            raise InvalidTileSizeError(msg)

    def block_size(self, canvas_width: int, canvas_height: int) -> tuple[int, int]:
        return (
            max(1, math.ceil(canvas_width / self.columns)),
            max(1, math.ceil(canvas_height / self.rows)),
        )


Tiling = Union[TileSize, GridSize]


@dataclass(frozen=True)
class Block:
    rect: Rect
    tile: Tile


@dataclass
class Mosaic:
    """Composed canvas plus the placement decisions behind it."""

    image: np.ndarray
    blocks: list[Block] = field(default_factory=list)
    block_size: tuple[int, int] = (0, 0)

    @property
    def tiles_used(self) -> int:
        return len({id(block.tile) for block in self.blocks})


def partition(
    width: int,
    height: int,
    block_width: int,
    block_height: int,
) -> list[Rect]:
    """Split a canvas into row-major blocks that cover it exactly.

    Blocks on the right and bottom edges are clipped to the canvas.
    """
    if block_width < 1 or block_height < 1:
        msg = f"Invalid block dimensions {block_width}x{block_height}"
        raise InvalidTileSizeError(msg)
    return [
        Rect(x, y, min(x + block_width, width), min(y + block_height, height))
        for y in range(0, height, block_height)
        for x in range(0, width, block_width)
    ]


def match_tile(
    color: LCH,
    catalog: Sequence[Tile],
    colors: np.ndarray | None = None,
) -> int:
    """Index of the catalog tile closest to *color*.

    Every tile is compared; on ties the earliest tile wins.

    Args:
        color:   Block colour.
        catalog: Non-empty tile list.
        colors:  Precomputed :func:`catalog_colors` for *catalog*.
    """
    if not catalog:
        msg = "Cannot match against an empty catalog"
        raise EmptyCatalogError(msg)
    if colors is None:
        colors = catalog_colors(catalog)
    # argmin returns the first occurrence of the minimum
    return int(np.argmin(lch_distances(color, colors)))


def compose(blocks: Sequence[Block], width: int, height: int) -> np.ndarray:
    """Paint every block's tile into a fresh (height, width, 3) canvas."""
    canvas = np.zeros((height, width, 3), dtype=np.uint8)
    for block in blocks:
        r = block.rect
        canvas[r.y0:r.y1, r.x0:r.x1] = block.tile.image[:r.height, :r.width]
    return canvas


def assemble(
    source: np.ndarray,
    catalog: Sequence[Tile],
    tiling: Tiling,
    strategy: str = "mean",
    max_workers: int | None = None,
) -> Mosaic:
    """Build a mosaic of *source* from *catalog*.

    One task per block computes the block colour and finds the nearest
    tile; once all tasks have finished the canvas is composed.

    Args:
        source:      (H, W[, C]) uint8 pixels.
        catalog:     Tiles whose size equals the block size.
        tiling:      :class:`TileSize` or :class:`GridSize`.
        strategy:    Averaging strategy (see :func:`region_color`).
        max_workers: Thread count (``None`` = executor default).

    Returns:
        The composed :class:`Mosaic`.
    """
    if not catalog:
        msg = "No tiles available"
        raise EmptyCatalogError(msg)

    height, width = source.shape[:2]
    block_w, block_h = tiling.block_size(width, height)
    sizes = {tile.size for tile in catalog}
    if sizes != {(block_w, block_h)}:
        msg = f"Tile sizes {sorted(sizes)} do not match block size {block_w}x{block_h}"
        raise InvalidTileSizeError(msg)

    rects = partition(width, height, block_w, block_h)
    if isinstance(tiling, GridSize):
        columns, rows = math.ceil(width / block_w), math.ceil(height / block_h)
        if (columns, rows) != (tiling.columns, tiling.rows):
            logger.warning(
                "Requested a %dx%d grid; %dx%d px canvas fits %dx%d blocks of %dx%d px",
                tiling.columns, tiling.rows, width, height,
                columns, rows, block_w, block_h,
            )
    colors = catalog_colors(catalog)

    def _match(rect: Rect) -> int:
        region = source[rect.y0:rect.y1, rect.x0:rect.x1]
        return match_tile(region_color(region, strategy), catalog, colors)

    logger.info(
        "Matching %d blocks (%dx%d px) against %d tiles …",
        len(rects), block_w, block_h, len(catalog),
    )
    t0 = time.perf_counter()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        choices = list(pool.map(_match, rects))
    logger.info("Blocks matched  (%.1f s)", time.perf_counter() - t0)

    blocks = [Block(rect, catalog[i]) for rect, i in zip(rects, choices, strict=True)]
    return Mosaic(
        image=compose(blocks, width, height),
        blocks=blocks,
        block_size=(block_w, block_h),
    )
