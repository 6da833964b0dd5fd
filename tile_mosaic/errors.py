"""Exception hierarchy.

Per-item failures (:class:`TileDecodeError`) are absorbed by the catalog
builder; everything else is a fatal precondition for the caller to report.
"""

from __future__ import annotations


class MosaicError(Exception):
    """Base class for all tile-mosaic errors."""


class TileDecodeError(MosaicError):
    """A single tile candidate could not be read or decoded."""


class InvalidTileSizeError(MosaicError, ValueError):
    """Tile or block dimensions are zero, negative, or inconsistent."""


class EmptyCatalogError(MosaicError):
    """No usable tiles were found."""


class SourceImageError(MosaicError):
    """The source image could not be read or decoded."""


class TileDirectoryError(MosaicError):
    """The tile directory is missing or is not a directory."""
