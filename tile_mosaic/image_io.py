"""Image decoding, tile-directory scanning, saving and comparison output."""

from __future__ import annotations

import io
from collections.abc import Iterable
from functools import partial
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from tile_mosaic.catalog import TileCandidate
from tile_mosaic.errors import SourceImageError, TileDecodeError, TileDirectoryError


# Pillow signals unreadable or hostile input with these
_DECODE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


def _decode(fp: str | Path | io.BytesIO) -> np.ndarray:
    with Image.open(fp) as img:
        return np.array(img.convert("RGB"), dtype=np.uint8)


def load_source(path: str | Path) -> np.ndarray:
    """Decode the source image.

    Returns:
        (H, W, 3) uint8 array.

    Raises:
        SourceImageError: If the file is missing or not a decodable image.
    """
    try:
        return _decode(path)
    except _DECODE_ERRORS as exc:
        msg = f"Could not read source image {path}: {exc}"
        raise SourceImageError(msg) from exc


def load_source_bytes(data: bytes, name: str = "upload") -> np.ndarray:
    """Decode an in-memory source image (e.g. a browser upload).

    Raises:
        SourceImageError: If *data* is not a decodable image.
    """
    try:
        return _decode(io.BytesIO(data))
    except _DECODE_ERRORS as exc:
        msg = f"Could not read source image {name}: {exc}"
        raise SourceImageError(msg) from exc


def _load_tile_file(path: Path) -> np.ndarray:
    try:
        return _decode(path)
    except _DECODE_ERRORS as exc:
        raise TileDecodeError(str(exc)) from exc


def _load_tile_bytes(data: bytes) -> np.ndarray:
    try:
        return _decode(io.BytesIO(data))
    except _DECODE_ERRORS as exc:
        raise TileDecodeError(str(exc)) from exc


def scan_tile_dir(
    folder: str | Path,
    extensions: Iterable[str] | None = None,
) -> list[TileCandidate]:
    """List *folder* as tile candidates, sorted by name.

    Sub-directories are reported as directory candidates.  When *extensions*
    is given, files with other suffixes are left out.  Decoding is deferred
    to :meth:`TileCandidate.load`.

    Raises:
        TileDirectoryError: If *folder* does not exist or is not a directory.
    """
    folder = Path(folder)
    if not folder.is_dir():
        msg = f"Tile directory {folder} is not a directory"
        raise TileDirectoryError(msg)

    allowed = {e.lower() for e in extensions} if extensions is not None else None
    try:
        entries = sorted(folder.iterdir())
    except OSError as exc:
        msg = f"Could not list tile directory {folder}: {exc}"
        raise TileDirectoryError(msg) from exc

    candidates = []
    for entry in entries:
        is_dir = entry.is_dir()
        if is_dir or allowed is None or entry.suffix.lower() in allowed:
            candidates.append(
                TileCandidate(entry.name, partial(_load_tile_file, entry), is_dir=is_dir),
            )
    return candidates


def candidate_from_bytes(name: str, data: bytes) -> TileCandidate:
    """Tile candidate backed by an in-memory encoded image (e.g. an upload)."""
    return TileCandidate(name, partial(_load_tile_bytes, data))


def collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def save_image(array: np.ndarray, path: str | Path) -> None:
    Image.fromarray(array.astype(np.uint8)).save(path)


def encode_png(array: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(array.astype(np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


def make_comparison_grid(
    source: np.ndarray,
    mosaic: np.ndarray,
    output_path: str | Path,
    max_panel_side: int = 800,
) -> None:
    """Create a 2-panel comparison: Source | Mosaic.

    Both panels are scaled so that their longest side is at most
    *max_panel_side*.
    """
    h, w = source.shape[:2]
    scale = min(1.0, max_panel_side / max(w, h))
    panel_w = max(1, round(w * scale))
    panel_h = max(1, round(h * scale))
    label_height = 36

    panels = [
        Image.fromarray(source).convert("RGB").resize((panel_w, panel_h), Image.LANCZOS),
        Image.fromarray(mosaic).convert("RGB").resize((panel_w, panel_h), Image.LANCZOS),
    ]
    labels = ["Source", f"Mosaic {w}x{h}"]

    gap = 8
    total_w = len(panels) * panel_w + (len(panels) - 1) * gap
    total_h = panel_h + label_height

    canvas = Image.new("RGB", (total_w, total_h), (30, 30, 30))
    draw = ImageDraw.Draw(canvas)

    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", 18,
        )
    except OSError:
        font = ImageFont.load_default()

    for i, (panel, label) in enumerate(zip(panels, labels, strict=True)):
        x = i * (panel_w + gap)
        canvas.paste(panel, (x, label_height))

        bbox = draw.textbbox((0, 0), label, font=font)
        tx = x + (panel_w - (bbox[2] - bbox[0])) // 2
        draw.text((tx, 6), label, fill=(220, 220, 220), font=font)

    canvas.save(output_path)
