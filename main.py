#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Put tile images into ``tiles/`` and run:

    python main.py single my_photo.jpg

Or use the full CLI:

    python -m tile_mosaic.cli batch --help
    python -m tile_mosaic.cli tiles tiles/ -w 40 -h 40
"""

from tile_mosaic.cli import app

if __name__ == "__main__":
    app()
