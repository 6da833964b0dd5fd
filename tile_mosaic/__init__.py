"""
Tile Mosaic Generator
=====================

Rebuild a photo out of many small tile images.  Every block of the source
is replaced by the tile whose average colour is perceptually closest,
measured with a CIEDE2000-style distance in LCH(uv) space.

Two tiling modes are available:

- **TileSize** (default): fixed block size in pixels
- **GridSize**: fixed number of columns and rows
"""

__version__ = "1.0.0"

from tile_mosaic.assembler import (
    Block,
    GridSize,
    Mosaic,
    Rect,
    TileSize,
    assemble,
    match_tile,
    partition,
)
from tile_mosaic.averaging import region_color
from tile_mosaic.catalog import Tile, TileCandidate, build_catalog
from tile_mosaic.color_model import LCH, RGBA, XYZ, Luv, convert, lch_distance
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import (
    EmptyCatalogError,
    InvalidTileSizeError,
    MosaicError,
    SourceImageError,
    TileDecodeError,
    TileDirectoryError,
)
from tile_mosaic.scaling import scale_nearest

__all__ = [
    "LCH",
    "RGBA",
    "XYZ",
    "Block",
    "EmptyCatalogError",
    "GridSize",
    "InvalidTileSizeError",
    "Luv",
    "Mosaic",
    "MosaicConfig",
    "MosaicError",
    "Rect",
    "SourceImageError",
    "Tile",
    "TileCandidate",
    "TileDecodeError",
    "TileDirectoryError",
    "TileSize",
    "assemble",
    "build_catalog",
    "convert",
    "lch_distance",
    "match_tile",
    "partition",
    "region_color",
    "scale_nearest",
]
