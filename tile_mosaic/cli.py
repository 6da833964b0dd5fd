"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

import numpy as np
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from tile_mosaic.assembler import Mosaic, assemble
from tile_mosaic.catalog import Tile, TileCandidate, build_catalog
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import (
    EmptyCatalogError,
    InvalidTileSizeError,
    SourceImageError,
    TileDirectoryError,
)
from tile_mosaic.image_io import (
    collect_images,
    load_source,
    make_comparison_grid,
    save_image,
    scan_tile_dir,
)
from tile_mosaic.quality import mosaic_error

app = typer.Typer(
    name="tile-mosaic",
    help="Rebuild a photo out of many small tile images.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

EXIT_SOURCE = 1
EXIT_TILE_DIR = 2
EXIT_NO_TILES = 3
EXIT_BAD_SIZE = 4


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


@contextmanager
def _fatal_errors() -> Iterator[None]:
    """Turn fatal core errors into a message and a distinct exit code."""
    try:
        yield
    except SourceImageError as exc:
        console.print(f"[red]✗ Source image unreadable:[/red] {exc}")
        raise typer.Exit(EXIT_SOURCE) from exc
    except TileDirectoryError as exc:
        console.print(f"[red]✗ Tile directory unreadable:[/red] {exc}")
        raise typer.Exit(EXIT_TILE_DIR) from exc
    except EmptyCatalogError as exc:
        console.print(f"[red]✗ No tiles available:[/red] {exc}")
        raise typer.Exit(EXIT_NO_TILES) from exc
    except InvalidTileSizeError as exc:
        console.print(f"[red]✗ Invalid tile dimensions:[/red] {exc}")
        raise typer.Exit(EXIT_BAD_SIZE) from exc
    except ValueError as exc:
        console.print(f"[red]✗ Invalid options:[/red] {exc}")
        raise typer.Exit(EXIT_BAD_SIZE) from exc


def _catalog_for(
    source: np.ndarray,
    candidates: Sequence[TileCandidate],
    cfg: MosaicConfig,
) -> list[Tile]:
    h, w = source.shape[:2]
    block_w, block_h = cfg.tiling().block_size(w, h)
    return build_catalog(candidates, block_w, block_h, cfg.strategy, cfg.max_workers)


def _render(
    source: np.ndarray,
    catalog: Sequence[Tile],
    cfg: MosaicConfig,
    output: Path,
    comparison: Path | None,
) -> tuple[Mosaic, float]:
    mosaic = assemble(source, catalog, cfg.tiling(), cfg.strategy, cfg.max_workers)
    save_image(mosaic.image, output)
    if comparison is not None:
        make_comparison_grid(source, mosaic.image, comparison)
    return mosaic, mosaic_error(source, mosaic.image, mosaic.block_size)


# Defaults come from MosaicConfig - single source of truth
_DEFAULTS = MosaicConfig()


# -- single-image command ----------------------------------------------

@app.command()
def single(
    source: Path = typer.Argument(..., help="Path to the source image"),
    tiles: Path = typer.Argument(_DEFAULTS.tile_dir, help="Folder with tile images"),
    output: Path = typer.Option(Path("mosaic.png"), "--output", "-o"),
    width: int = typer.Option(
        _DEFAULTS.tile_width, "--width", "-w", help="Tile width in pixels",
    ),
    height: int = typer.Option(
        _DEFAULTS.tile_height, "--height", "-h", help="Tile height in pixels",
    ),
    columns: int | None = typer.Option(
        None, "--columns",
        help="Grid columns (grid mode, needs --rows); at most this many, "
             "block widths round up",
    ),
    rows: int | None = typer.Option(
        None, "--rows",
        help="Grid rows (grid mode, needs --columns); at most this many, "
             "block heights round up",
    ),
    strategy: str = typer.Option(
        _DEFAULTS.strategy, "--strategy", help="'mean' (exact) or 'nearest' (fast)",
    ),
    workers: int | None = typer.Option(None, "--workers", help="Worker threads"),
    comparison: bool = typer.Option(
        _DEFAULTS.save_comparison, "--comparison/--no-comparison",
        help="Also save Source | Mosaic",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Build a mosaic of SOURCE from the images in TILES."""
    _setup_logging(verbose)

    with _fatal_errors():
        cfg = MosaicConfig(
            tile_width=width,
            tile_height=height,
            columns=columns,
            rows=rows,
            strategy=strategy,
            max_workers=workers,
            tile_dir=tiles,
        )
        t0 = time.perf_counter()
        src = load_source(source)
        candidates = scan_tile_dir(tiles, cfg.SUPPORTED_EXTENSIONS)
        catalog = _catalog_for(src, candidates, cfg)

        output.parent.mkdir(parents=True, exist_ok=True)
        comp_path = (
            output.with_name(f"{output.stem}_comparison{output.suffix}")
            if comparison else None
        )
        mosaic, err = _render(src, catalog, cfg, output, comp_path)

    h, w = src.shape[:2]
    console.print(
        f"[green]✓[/green] Saved to {output}  "
        f"[dim]{w}x{h}  blocks={len(mosaic.blocks)}  "
        f"tiles={mosaic.tiles_used}/{len(catalog)}  ΔE={err:.1f}  "
        f"time={time.perf_counter() - t0:.1f}s[/dim]"
    )


# -- batch command -----------------------------------------------------

@app.command()
def batch(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    tiles: Path = typer.Option(
        _DEFAULTS.tile_dir, "--tiles", "-t", help="Folder with tile images",
    ),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    width: int = typer.Option(_DEFAULTS.tile_width, "--width", "-w"),
    height: int = typer.Option(_DEFAULTS.tile_height, "--height", "-h"),
    columns: int | None = typer.Option(None, "--columns", help="Grid columns (at most)"),
    rows: int | None = typer.Option(None, "--rows", help="Grid rows (at most)"),
    strategy: str = typer.Option(_DEFAULTS.strategy, "--strategy"),
    workers: int | None = typer.Option(None, "--workers"),
    comparison: bool = typer.Option(
        _DEFAULTS.save_comparison, "--comparison/--no-comparison",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Process all images in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)
    logger = logging.getLogger("tile_mosaic")

    with _fatal_errors():
        cfg = MosaicConfig(
            tile_width=width,
            tile_height=height,
            columns=columns,
            rows=rows,
            strategy=strategy,
            max_workers=workers,
            tile_dir=tiles,
            input_dir=input_dir,
            output_dir=output_dir,
            save_comparison=comparison,
        )
        candidates = scan_tile_dir(tiles, cfg.SUPPORTED_EXTENSIONS)

    images = collect_images(input_dir, cfg.SUPPORTED_EXTENSIONS)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        console.print("Place .jpg / .png / ... files there and re-run.\n")
        raise typer.Exit(0)

    output_dir.mkdir(parents=True, exist_ok=True)

    tiling = (
        f"grid {cfg.columns}x{cfg.rows}" if cfg.grid_mode
        else f"tiles {cfg.tile_width}x{cfg.tile_height}"
    )
    console.print(Panel.fit(
        f"[bold]TILE MOSAIC GENERATOR[/bold]\n"
        f"Tiling: {tiling}  |  Averaging: {cfg.strategy}\n"
        f"Tile candidates: {len(candidates)}  |  Images: {len(images)}",
        border_style="cyan",
    ))

    # A fixed tile size lets every image share one catalog
    shared: list[Tile] | None = None
    if not cfg.grid_mode:
        with _fatal_errors():
            shared = build_catalog(
                candidates, cfg.tile_width, cfg.tile_height,
                cfg.strategy, cfg.max_workers,
            )

    failed = 0
    for idx, img_path in enumerate(images, 1):
        stem = img_path.stem
        console.rule(f"[bold cyan][{idx}/{len(images)}] {img_path.name}[/bold cyan]")
        t_total = time.perf_counter()

        try:
            src = load_source(img_path)
        except SourceImageError as exc:
            logger.warning("Skipping %s: %s", img_path.name, exc)
            failed += 1
            continue

        h, w = src.shape[:2]
        logger.info("Source: %dx%d", w, h)

        with _fatal_errors():
            catalog = shared if shared is not None else _catalog_for(src, candidates, cfg)
            mosaic_path = output_dir / f"{stem}_mosaic.{cfg.output_format}"
            comp_path = (
                output_dir / f"{stem}_comparison.{cfg.output_format}"
                if cfg.save_comparison else None
            )
            mosaic, err = _render(src, catalog, cfg, mosaic_path, comp_path)

        console.print(
            f"  [green]✓[/green] {mosaic_path.name}  "
            f"[dim]blocks={len(mosaic.blocks)}  tiles={mosaic.tiles_used}/{len(catalog)}"
            f"  ΔE={err:.1f}  time={time.perf_counter() - t_total:.1f}s[/dim]"
        )

    style = "green" if not failed else "yellow"
    console.print(Panel.fit(
        f"[bold {style}]ALL DONE[/bold {style}] - results in [bold]{output_dir}/[/bold]"
        + (f"\n{failed} image(s) could not be read" if failed else ""),
        border_style=style,
    ))


# -- tile inspection command -------------------------------------------

@app.command("tiles")
def list_tiles(
    tiles: Path = typer.Argument(_DEFAULTS.tile_dir, help="Folder with tile images"),
    width: int = typer.Option(_DEFAULTS.tile_width, "--width", "-w"),
    height: int = typer.Option(_DEFAULTS.tile_height, "--height", "-h"),
    strategy: str = typer.Option(_DEFAULTS.strategy, "--strategy"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Show the catalog built from TILES with each tile's colour."""
    _setup_logging(verbose)

    with _fatal_errors():
        cfg = MosaicConfig(tile_width=width, tile_height=height, strategy=strategy)
        candidates = scan_tile_dir(tiles, cfg.SUPPORTED_EXTENSIONS)
        catalog = build_catalog(candidates, width, height, strategy)

    table = Table(title=f"{len(catalog)} tiles from {tiles}")
    table.add_column("Tile")
    table.add_column("L", justify="right")
    table.add_column("C", justify="right")
    table.add_column("H°", justify="right")
    table.add_column("RGB")
    for tile in catalog:
        r, g, b, _ = tile.color.rgba().to_8bit()
        hex_rgb = f"#{r:02X}{g:02X}{b:02X}"
        table.add_row(
            tile.name,
            f"{tile.color.l:.1f}",
            f"{tile.color.c:.1f}",
            f"{math.degrees(tile.color.h):.0f}",
            f"[on {hex_rgb}]      [/] {hex_rgb}",
        )
    console.print(table)


if __name__ == "__main__":
    app()
