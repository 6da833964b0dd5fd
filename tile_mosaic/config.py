"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tile_mosaic.assembler import GridSize, Tiling, TileSize
from tile_mosaic.averaging import STRATEGIES
from tile_mosaic.errors import InvalidTileSizeError


@dataclass(frozen=True)
class MosaicConfig:
    """All tuneable parameters for a mosaic run.

    Attributes:
        tile_width:      Tile / block width in pixels.
        tile_height:     Tile / block height in pixels.
        columns:         Grid columns (grid mode; requires ``rows``).
        rows:            Grid rows (grid mode; requires ``columns``).
        strategy:        Region averaging - "mean" (exact) or "nearest" (fast).
        max_workers:     Worker threads per fan-out (None = executor default).
        tile_dir:        Folder holding the tile images.
        input_dir:       Folder to scan for source images (batch mode).
        output_dir:      Folder for results (batch mode).
        output_format:   Image format for saved files.
        save_comparison: Also write a Source | Mosaic comparison image.
    """

    # Tiling: fixed tile size unless both grid counts are given
    tile_width: int = 60
    tile_height: int = 60
    columns: int | None = None
    rows: int | None = None

    # Matching
    strategy: str = "mean"
    max_workers: int | None = None

    # Paths
    tile_dir: Path = field(default_factory=lambda: Path("tiles"))
    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    # Output
    output_format: str = "png"
    save_comparison: bool = True

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".tif", ".webp"}
    )

    def __post_init__(self) -> None:
        if self.tile_width < 1 or self.tile_height < 1:
            msg = f"Invalid tile dimensions {self.tile_width}x{self.tile_height}"
            raise InvalidTileSizeError(msg)
        if (self.columns is None) != (self.rows is None):
            msg = "Grid mode needs both columns and rows"
            raise ValueError(msg)
        if self.strategy not in STRATEGIES:
            msg = f"Unknown averaging strategy {self.strategy!r}"
            raise ValueError(msg)

    @property
    def grid_mode(self) -> bool:
        return self.columns is not None

    def tiling(self) -> Tiling:
        """The tiling scheme for this run; grid counts win when set."""
        if self.columns is not None and self.rows is not None:
            return GridSize(self.columns, self.rows)
        return TileSize(self.tile_width, self.tile_height)
