"""Tests for the tile_mosaic package."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from tile_mosaic.assembler import (
    GridSize,
    Rect,
    TileSize,
    assemble,
    compose,
    match_tile,
    partition,
)
from tile_mosaic.averaging import mean_color, region_color
from tile_mosaic.catalog import Tile, TileCandidate, build_catalog, make_tile
from tile_mosaic.cli import EXIT_NO_TILES, EXIT_SOURCE, EXIT_TILE_DIR, app
from tile_mosaic.color_model import LCH, RGBA
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import (
    EmptyCatalogError,
    InvalidTileSizeError,
    SourceImageError,
    TileDecodeError,
    TileDirectoryError,
)
from tile_mosaic.image_io import encode_png, load_source, load_source_bytes, scan_tile_dir
from tile_mosaic.quality import mosaic_error
from tile_mosaic.scaling import scale_nearest

# -- Fixtures ----------------------------------------------------------

TW, TH = 10, 8  # non-square tiles

RED = (200, 30, 30)
GREEN = (30, 180, 60)
BLUE = (20, 40, 210)
GRAY = (128, 128, 128)


def _solid(rgb: tuple[int, int, int], w: int = TW, h: int = TH) -> np.ndarray:
    return np.full((h, w, 3), rgb, dtype=np.uint8)


def _candidate(name: str, image: np.ndarray) -> TileCandidate:
    return TileCandidate(name, lambda: image)


def _broken() -> np.ndarray:
    raise TileDecodeError("corrupt file")


@pytest.fixture
def checkerboard() -> np.ndarray:
    """64x64: black top-left / bottom-right, white top-right / bottom-left."""
    img = np.zeros((64, 64, 3), dtype=np.uint8)
    img[32:, :32] = 255
    img[:32, 32:] = 255
    return img


@pytest.fixture
def catalog() -> list[Tile]:
    return build_catalog(
        [
            _candidate("red", _solid(RED)),
            _candidate("green", _solid(GREEN)),
            _candidate("blue", _solid(BLUE)),
            _candidate("gray", _solid(GRAY)),
        ],
        TW, TH,
    )


@pytest.fixture
def source() -> np.ndarray:
    """2 x 2 blocks: red, blue / gray, green."""
    img = np.zeros((2 * TH, 2 * TW, 3), dtype=np.uint8)
    img[:TH, :TW] = RED
    img[:TH, TW:] = BLUE
    img[TH:, :TW] = GRAY
    img[TH:, TW:] = GREEN
    return img


@pytest.fixture
def tile_dir(tmp_path: Path) -> Path:
    folder = tmp_path / "tiles"
    folder.mkdir()
    for name, rgb in [("a_red.png", RED), ("b_blue.png", BLUE), ("c_gray.png", GRAY)]:
        Image.fromarray(_solid(rgb, 16, 16)).save(folder / name)
    (folder / "d_broken.png").write_bytes(b"not an image")
    (folder / "notes.txt").write_text("ignored")
    (folder / "nested").mkdir()
    return folder


# -- Config ------------------------------------------------------------

class TestConfig:
    def test_defaults(self) -> None:
        cfg = MosaicConfig()
        assert (cfg.tile_width, cfg.tile_height) == (60, 60)
        assert cfg.tiling() == TileSize(60, 60)

    def test_grid_mode(self) -> None:
        cfg = MosaicConfig(columns=12, rows=8)
        assert cfg.grid_mode
        assert cfg.tiling() == GridSize(12, 8)

    def test_half_grid_rejected(self) -> None:
        with pytest.raises(ValueError):
            MosaicConfig(columns=12)

    def test_invalid_dimensions(self) -> None:
        with pytest.raises(InvalidTileSizeError):
            MosaicConfig(tile_width=0)

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError):
            MosaicConfig(strategy="median")

    def test_frozen(self) -> None:
        cfg = MosaicConfig()
        with pytest.raises(AttributeError):
            cfg.tile_width = 128  # type: ignore[misc]


# -- Scaling -----------------------------------------------------------

class TestScaling:
    def test_checkerboard_halved(self, checkerboard: np.ndarray) -> None:
        out = scale_nearest(checkerboard, 32, 32)
        assert out.shape == (32, 32, 3)
        assert np.all(out[:16, :16] == 0)
        assert np.all(out[:16, 16:] == 255)
        assert np.all(out[16:, 16:] == 0)
        assert np.all(out[16:, :16] == 255)

    def test_same_size_is_copy(self, checkerboard: np.ndarray) -> None:
        out = scale_nearest(checkerboard, 64, 64)
        np.testing.assert_array_equal(out, checkerboard)
        assert out is not checkerboard

    def test_arbitrary_size(self) -> None:
        rng = np.random.default_rng(7)
        img = rng.integers(0, 256, size=(13, 29, 4), dtype=np.uint8)
        out = scale_nearest(img, 11, 5)
        assert out.shape == (5, 11, 4)
        # Every output pixel is a verbatim source pixel
        src_pixels = {tuple(p) for p in img.reshape(-1, 4)}
        assert all(tuple(p) in src_pixels for p in out.reshape(-1, 4))

    def test_floor_mapping(self) -> None:
        img = np.arange(6, dtype=np.uint8).reshape(1, 6)
        np.testing.assert_array_equal(scale_nearest(img, 4, 1)[0], [0, 1, 3, 4])

    def test_upscale(self) -> None:
        img = np.array([[1, 2]], dtype=np.uint8)
        np.testing.assert_array_equal(scale_nearest(img, 4, 2), [[1, 1, 2, 2]] * 2)

    def test_invalid_size(self) -> None:
        with pytest.raises(InvalidTileSizeError):
            scale_nearest(np.zeros((4, 4, 3), dtype=np.uint8), 0, 4)


# -- Averaging ---------------------------------------------------------

class TestAveraging:
    def test_checkerboard_is_mid_gray(self, checkerboard: np.ndarray) -> None:
        r, g, b, _ = region_color(checkerboard).rgba().to_8bit()
        for channel in (r, g, b):
            assert abs(channel - 127) <= 1

    def test_white_is_white(self) -> None:
        white = np.full((64, 64, 3), 255, dtype=np.uint8)
        assert region_color(white).rgba().to_8bit()[:3] == (255, 255, 255)

    def test_exact_mean(self, checkerboard: np.ndarray) -> None:
        assert mean_color(checkerboard) == RGBA(32767, 32767, 32767)

    def test_alpha_ignored(self) -> None:
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        rgba[..., :3] = RED
        rgba[..., 3] = np.arange(16, dtype=np.uint8).reshape(4, 4)
        assert region_color(rgba) == region_color(_solid(RED, 4, 4))

    def test_nearest_uniform_matches_mean(self) -> None:
        img = _solid(GREEN)
        assert region_color(img, "nearest") == region_color(img, "mean")

    def test_nearest_picks_top_left(self, checkerboard: np.ndarray) -> None:
        assert region_color(checkerboard, "nearest") == LCH.from_color(RGBA(0, 0, 0))

    def test_grayscale_region(self) -> None:
        gray = np.full((3, 3), 128, dtype=np.uint8)
        assert region_color(gray) == region_color(_solid(GRAY, 3, 3))

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError):
            region_color(_solid(RED), "median")

    def test_empty_region(self) -> None:
        with pytest.raises(ValueError):
            region_color(np.zeros((0, 4, 3), dtype=np.uint8))


# -- Catalog -----------------------------------------------------------

class TestCatalog:
    def test_keeps_candidate_order(self, catalog: list[Tile]) -> None:
        assert [t.name for t in catalog] == ["red", "green", "blue", "gray"]

    def test_skips_directories_and_failures(self) -> None:
        tiles = build_catalog(
            [
                TileCandidate("sub", _broken, is_dir=True),
                TileCandidate("bad", _broken),
                _candidate("ok", _solid(RED)),
            ],
            TW, TH,
        )
        assert [t.name for t in tiles] == ["ok"]

    def test_skips_unusable_pixel_buffers(self) -> None:
        tiles = build_catalog(
            [
                _candidate("float", np.zeros((TH, TW, 3), dtype=np.float64)),
                _candidate("empty", np.zeros((0, 0, 3), dtype=np.uint8)),
                _candidate("flat", np.zeros(TW, dtype=np.uint8)),
                _candidate("ok", _solid(RED)),
            ],
            TW, TH,
        )
        assert [t.name for t in tiles] == ["ok"]

    def test_make_tile_rejects_unusable_buffer(self) -> None:
        with pytest.raises(TileDecodeError):
            make_tile("float", np.zeros((TH, TW, 3), dtype=np.float32), TW, TH)
        with pytest.raises(TileDecodeError):
            make_tile("two-channel", np.zeros((TH, TW, 2), dtype=np.uint8), TW, TH)

    def test_scales_to_tile_size(self) -> None:
        tiles = build_catalog([_candidate("big", _solid(BLUE, 50, 30))], TW, TH)
        assert tiles[0].image.shape == (TH, TW, 3)
        assert tiles[0].size == (TW, TH)

    def test_tiles_are_read_only(self, catalog: list[Tile]) -> None:
        with pytest.raises(ValueError):
            catalog[0].image[0, 0] = 0

    def test_does_not_touch_input(self) -> None:
        image = _solid(RED)
        make_tile("red", image, TW, TH)
        assert image.flags.writeable

    def test_rgba_tiles_become_rgb(self) -> None:
        rgba = np.zeros((TH, TW, 4), dtype=np.uint8)
        tiles = build_catalog([_candidate("rgba", rgba)], TW, TH)
        assert tiles[0].image.shape == (TH, TW, 3)

    def test_colour_precomputed(self, catalog: list[Tile]) -> None:
        assert catalog[0].color == region_color(_solid(RED))

    def test_empty_catalog(self) -> None:
        with pytest.raises(EmptyCatalogError):
            build_catalog([TileCandidate("bad", _broken)], TW, TH)

    def test_no_candidates(self) -> None:
        with pytest.raises(EmptyCatalogError):
            build_catalog([], TW, TH)

    def test_invalid_size(self) -> None:
        with pytest.raises(InvalidTileSizeError):
            build_catalog([_candidate("red", _solid(RED))], 0, TH)


# -- Partition ---------------------------------------------------------

class TestPartition:
    def test_exact_fit(self) -> None:
        rects = partition(40, 20, 10, 10)
        assert len(rects) == 8
        assert rects[0] == Rect(0, 0, 10, 10)
        assert rects[3] == Rect(30, 0, 40, 10)  # row-major

    def test_clipped_edges(self) -> None:
        rects = partition(25, 15, 10, 10)
        assert len(rects) == 6
        assert rects[2] == Rect(20, 0, 25, 10)
        assert rects[-1] == Rect(20, 10, 25, 15)

    def test_covers_canvas_without_overlap(self) -> None:
        coverage = np.zeros((37, 53), dtype=int)
        for r in partition(53, 37, 7, 6):
            coverage[r.y0:r.y1, r.x0:r.x1] += 1
        assert np.all(coverage == 1)

    def test_invalid_block(self) -> None:
        with pytest.raises(InvalidTileSizeError):
            partition(10, 10, 0, 5)

    def test_grid_block_size(self) -> None:
        assert GridSize(3, 2).block_size(100, 50) == (34, 25)
        assert len(partition(100, 50, 34, 25)) == 6

    def test_grid_may_yield_fewer_columns(self) -> None:
        # 10 / 6 rounds up to 2 px, and 2 px blocks only need 5 columns
        assert GridSize(6, 1).block_size(10, 10) == (2, 10)
        assert len(partition(10, 10, 2, 10)) == 5

    def test_tile_size_block_size(self) -> None:
        assert TileSize(7, 9).block_size(100, 50) == (7, 9)

    def test_invalid_tiling(self) -> None:
        with pytest.raises(InvalidTileSizeError):
            TileSize(0, 5)
        with pytest.raises(InvalidTileSizeError):
            GridSize(4, -1)


# -- Matching & assembly -----------------------------------------------

class TestAssembler:
    def test_match_exact_tile(self, catalog: list[Tile]) -> None:
        assert match_tile(region_color(_solid(BLUE)), catalog) == 2

    def test_tie_goes_to_first(self) -> None:
        tiles = build_catalog(
            [
                _candidate("first", _solid(GREEN)),
                _candidate("red", _solid(RED)),
                _candidate("second", _solid(GREEN)),
            ],
            TW, TH,
        )
        assert match_tile(region_color(_solid(GREEN)), tiles) == 0

    def test_empty_catalog(self) -> None:
        with pytest.raises(EmptyCatalogError):
            match_tile(LCH(50.0, 0.0, 0.0), [])

    def test_end_to_end(self, source: np.ndarray, catalog: list[Tile]) -> None:
        mosaic = assemble(source, catalog, TileSize(TW, TH))
        assert [b.tile.name for b in mosaic.blocks] == ["red", "blue", "gray", "green"]
        np.testing.assert_array_equal(mosaic.image, source)
        assert mosaic.block_size == (TW, TH)
        assert mosaic.tiles_used == 4

    def test_picks_exact_match_over_distractors(self) -> None:
        target = (90, 140, 200)
        tiles = build_catalog(
            [
                _candidate("near", _solid((100, 140, 200))),
                _candidate("exact", _solid(target)),
                _candidate("far", _solid((250, 250, 10))),
                _candidate("dark", _solid((5, 5, 5))),
            ],
            TW, TH,
        )
        mosaic = assemble(_solid(target), tiles, TileSize(TW, TH))
        assert [b.tile.name for b in mosaic.blocks] == ["exact"]

    def test_clipped_canvas(self, catalog: list[Tile]) -> None:
        src = np.full((TH * 2 + 3, TW * 3 + 5, 3), GRAY, dtype=np.uint8)
        mosaic = assemble(src, catalog, TileSize(TW, TH))
        assert mosaic.image.shape == src.shape
        assert len(mosaic.blocks) == 4 * 3
        np.testing.assert_array_equal(mosaic.image, src)

    def test_grid_mode(self, source: np.ndarray, catalog: list[Tile]) -> None:
        mosaic = assemble(source, catalog, GridSize(2, 2))
        assert len(mosaic.blocks) == 4
        np.testing.assert_array_equal(mosaic.image, source)

    def test_grid_shortfall_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        tiles = build_catalog([_candidate("gray", _solid(GRAY, 2, 10))], 2, 10)
        with caplog.at_level(logging.WARNING, logger="tile_mosaic.assembler"):
            mosaic = assemble(_solid(GRAY, 10, 10), tiles, GridSize(6, 1))
        assert len(mosaic.blocks) == 5
        assert "fits 5x1 blocks" in caplog.text

    def test_exact_grid_is_quiet(
        self, source: np.ndarray, catalog: list[Tile], caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="tile_mosaic.assembler"):
            assemble(source, catalog, GridSize(2, 2))
        assert "Requested" not in caplog.text

    def test_deterministic_across_workers(self, catalog: list[Tile]) -> None:
        rng = np.random.default_rng(3)
        src = rng.integers(0, 256, size=(TH * 6, TW * 7, 3), dtype=np.uint8)
        one = assemble(src, catalog, TileSize(TW, TH), max_workers=1)
        many = assemble(src, catalog, TileSize(TW, TH), max_workers=8)
        np.testing.assert_array_equal(one.image, many.image)

    def test_tile_size_mismatch(self, source: np.ndarray, catalog: list[Tile]) -> None:
        with pytest.raises(InvalidTileSizeError):
            assemble(source, catalog, TileSize(TW + 1, TH))

    def test_compose_clips_tiles(self, catalog: list[Tile]) -> None:
        blocks = [b for b in assemble(_solid(RED, 15, 8), catalog, TileSize(TW, TH)).blocks]
        canvas = compose(blocks, 15, 8)
        assert canvas.shape == (8, 15, 3)
        assert np.all(canvas == RED)


# -- Image I/O ---------------------------------------------------------

class TestImageIO:
    def test_scan_tile_dir(self, tile_dir: Path) -> None:
        candidates = scan_tile_dir(tile_dir, MosaicConfig.SUPPORTED_EXTENSIONS)
        names = [c.name for c in candidates]
        assert names == ["a_red.png", "b_blue.png", "c_gray.png", "d_broken.png", "nested"]
        assert [c.is_dir for c in candidates][-1]

    def test_broken_file_raises_decode_error(self, tile_dir: Path) -> None:
        broken = next(c for c in scan_tile_dir(tile_dir) if c.name == "d_broken.png")
        with pytest.raises(TileDecodeError):
            broken.load()

    def test_catalog_from_dir(self, tile_dir: Path) -> None:
        tiles = build_catalog(scan_tile_dir(tile_dir, {".png"}), 8, 8)
        assert [t.name for t in tiles] == ["a_red.png", "b_blue.png", "c_gray.png"]

    def test_missing_tile_dir(self, tmp_path: Path) -> None:
        with pytest.raises(TileDirectoryError):
            scan_tile_dir(tmp_path / "nope")

    def test_load_source(self, tmp_path: Path) -> None:
        path = tmp_path / "src.png"
        Image.fromarray(_solid(BLUE, 12, 7)).save(path)
        assert load_source(path).shape == (7, 12, 3)

    def test_unreadable_source(self, tmp_path: Path) -> None:
        with pytest.raises(SourceImageError):
            load_source(tmp_path / "missing.png")

    def test_load_source_bytes(self) -> None:
        pixels = load_source_bytes(encode_png(_solid(BLUE, 12, 7)))
        assert pixels.shape == (7, 12, 3)
        assert tuple(pixels[0, 0]) == BLUE

    def test_unreadable_source_bytes(self) -> None:
        with pytest.raises(SourceImageError, match="holiday.jpg"):
            load_source_bytes(b"not an image", "holiday.jpg")


# -- Quality -----------------------------------------------------------

class TestQuality:
    def test_identical_is_zero(self, source: np.ndarray) -> None:
        assert mosaic_error(source, source) == pytest.approx(0.0, abs=1e-6)

    def test_different_is_positive(self, source: np.ndarray) -> None:
        assert mosaic_error(source, 255 - source, (TW, TH)) > 10

    def test_shape_mismatch(self, source: np.ndarray) -> None:
        with pytest.raises(ValueError):
            mosaic_error(source, source[:-1])


# -- CLI ---------------------------------------------------------------

class TestCLI:
    @pytest.fixture
    def runner(self) -> CliRunner:
        return CliRunner()

    @pytest.fixture
    def source_path(self, tmp_path: Path) -> Path:
        img = np.zeros((32, 48, 3), dtype=np.uint8)
        img[:, :24] = RED
        img[:, 24:] = BLUE
        path = tmp_path / "photo.png"
        Image.fromarray(img).save(path)
        return path

    def test_single(
        self, runner: CliRunner, source_path: Path, tile_dir: Path, tmp_path: Path,
    ) -> None:
        out = tmp_path / "out" / "mosaic.png"
        result = runner.invoke(
            app, ["single", str(source_path), str(tile_dir), "-o", str(out), "-w", "8", "-h", "8"],
        )
        assert result.exit_code == 0, result.output
        with Image.open(out) as img:
            assert img.size == (48, 32)
            pixels = np.array(img.convert("RGB"))
        assert tuple(pixels[0, 0]) == RED
        assert tuple(pixels[-1, -1]) == BLUE
        # Comparison output follows MosaicConfig.save_comparison
        assert (out.parent / "mosaic_comparison.png").exists()

    def test_single_no_comparison(
        self, runner: CliRunner, source_path: Path, tile_dir: Path, tmp_path: Path,
    ) -> None:
        out = tmp_path / "plain.png"
        result = runner.invoke(
            app,
            ["single", str(source_path), str(tile_dir), "-o", str(out),
             "-w", "8", "-h", "8", "--no-comparison"],
        )
        assert result.exit_code == 0, result.output
        assert out.exists()
        assert not (tmp_path / "plain_comparison.png").exists()

    def test_single_grid(
        self, runner: CliRunner, source_path: Path, tile_dir: Path, tmp_path: Path,
    ) -> None:
        out = tmp_path / "grid.png"
        result = runner.invoke(
            app,
            ["single", str(source_path), str(tile_dir), "-o", str(out),
             "--columns", "4", "--rows", "2", "--comparison"],
        )
        assert result.exit_code == 0, result.output
        assert out.exists()
        assert (tmp_path / "grid_comparison.png").exists()

    def test_missing_source(self, runner: CliRunner, tile_dir: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["single", str(tmp_path / "missing.png"), str(tile_dir)])
        assert result.exit_code == EXIT_SOURCE

    def test_missing_tile_dir(
        self, runner: CliRunner, source_path: Path, tmp_path: Path,
    ) -> None:
        result = runner.invoke(app, ["single", str(source_path), str(tmp_path / "nope")])
        assert result.exit_code == EXIT_TILE_DIR

    def test_no_tiles(self, runner: CliRunner, source_path: Path, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(app, ["single", str(source_path), str(empty)])
        assert result.exit_code == EXIT_NO_TILES

    def test_batch(
        self, runner: CliRunner, source_path: Path, tile_dir: Path, tmp_path: Path,
    ) -> None:
        out_dir = tmp_path / "results"
        result = runner.invoke(
            app,
            ["batch", "-i", str(source_path.parent), "-t", str(tile_dir),
             "-o", str(out_dir), "-w", "8", "-h", "8"],
        )
        assert result.exit_code == 0, result.output
        assert (out_dir / "photo_mosaic.png").exists()
        assert (out_dir / "photo_comparison.png").exists()

    def test_tiles_table(self, runner: CliRunner, tile_dir: Path) -> None:
        result = runner.invoke(app, ["tiles", str(tile_dir), "-w", "8", "-h", "8"])
        assert result.exit_code == 0, result.output
        assert "a_red.png" in result.output
