"""
Tile Mosaic — Gallery Edition

Run with:
    streamlit run streamlit_app.py
"""

from __future__ import annotations

import time

import streamlit as st

from tile_mosaic.assembler import GridSize, TileSize, assemble
from tile_mosaic.averaging import STRATEGIES
from tile_mosaic.catalog import build_catalog
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import EmptyCatalogError, InvalidTileSizeError, SourceImageError
from tile_mosaic.image_io import candidate_from_bytes, encode_png, load_source_bytes
from tile_mosaic.quality import mosaic_error

# -- Page config -------------------------------------------------------
st.set_page_config(
    page_title="Tile Mosaic",
    page_icon=None,
    layout="wide",
    initial_sidebar_state="collapsed",
)

_DEFAULTS = MosaicConfig()

# -- CSS ---------------------------------------------------------------
st.markdown("""
<style>
    .stApp { background-color: #faf9f6; color: #2a2a2a; }
    .block-container { max-width: 1000px; padding-top: 3rem; }
    .gallery-title {
        font-family: 'Georgia', serif;
        font-size: 2.6rem;
        font-weight: 300;
        text-align: center;
        border-bottom: 1px solid #1a1a1a;
        padding-bottom: 0.6rem;
        margin-bottom: 0.5rem;
    }
    .gallery-subtitle {
        font-size: 0.8rem;
        line-height: 1.8;
        margin-bottom: 2.5rem;
    }
    .label-detail {
        font-family: 'Georgia', serif;
        font-style: italic;
        color: #a0a09a;
        text-align: center;
    }
    .stButton > button, .stDownloadButton > button { border-radius: 0px !important; }
    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}
</style>
""", unsafe_allow_html=True)

# -- Title -------------------------------------------------------------
st.markdown('<div class="gallery-title">Tile Mosaic</div>', unsafe_allow_html=True)
st.markdown(
    '<div class="gallery-subtitle">'
    "Upload a photograph and a set of tile images. The photograph is cut into "
    "a grid of blocks, and every block is replaced by the tile whose average "
    "colour is perceptually closest to it. Colours are compared in LCH space "
    "with a CIEDE2000-style distance, so matches follow what the eye sees "
    "rather than raw RGB values."
    "</div>",
    unsafe_allow_html=True,
)

# -- Controls ----------------------------------------------------------
ctrl1, ctrl2, ctrl3 = st.columns(3)
with ctrl1:
    mode = st.radio("Tiling", ["Tile size", "Grid"], horizontal=True)
with ctrl2:
    if mode == "Tile size":
        tile_w = st.slider("Tile width (px)", 4, 200, _DEFAULTS.tile_width)
        tile_h = st.slider("Tile height (px)", 4, 200, _DEFAULTS.tile_height)
    else:
        columns = st.slider("Columns", 2, 200, 40)
        rows = st.slider("Rows", 2, 200, 40)
with ctrl3:
    strategy = st.selectbox("Averaging", STRATEGIES, index=0)

st.markdown("---")

# -- Upload ------------------------------------------------------------
up1, up2 = st.columns(2)
with up1:
    source_file = st.file_uploader(
        "Source image", type=["jpg", "jpeg", "png", "gif", "webp", "bmp"],
    )
with up2:
    tile_files = st.file_uploader(
        "Tile images",
        type=["jpg", "jpeg", "png", "gif", "webp", "bmp"],
        accept_multiple_files=True,
    )

if source_file is None:
    st.markdown(
        '<div class="label-detail">Select a source image to begin.</div>',
        unsafe_allow_html=True,
    )
    st.stop()

try:
    source = load_source_bytes(source_file.getvalue(), source_file.name)
except SourceImageError:
    st.error("Source image unreadable - upload a valid JPEG, PNG, GIF, WebP or BMP file.")
    st.stop()
h, w = source.shape[:2]
tiling = TileSize(tile_w, tile_h) if mode == "Tile size" else GridSize(columns, rows)
block_w, block_h = tiling.block_size(w, h)

if not st.button("COMPOSE", type="primary", use_container_width=True):
    st.image(source, use_container_width=True)
    st.markdown(
        f'<div class="label-detail">{w} &times; {h}, blocks of '
        f"{block_w} &times; {block_h} px, {len(tile_files or [])} tiles</div>",
        unsafe_allow_html=True,
    )
    st.stop()

candidates = [candidate_from_bytes(f.name, f.getvalue()) for f in tile_files or []]

with st.spinner("Composing ..."):
    t0 = time.perf_counter()
    try:
        catalog = build_catalog(candidates, block_w, block_h, strategy)
        mosaic = assemble(source, catalog, tiling, strategy)
    except EmptyCatalogError:
        st.error("No tiles available - upload at least one readable tile image.")
        st.stop()
    except InvalidTileSizeError as exc:
        st.error(f"Invalid tile dimensions: {exc}")
        st.stop()
    elapsed = time.perf_counter() - t0

error = mosaic_error(source, mosaic.image, mosaic.block_size)

st.image(mosaic.image, use_container_width=True)
st.markdown(
    f'<div class="label-detail">{w} &times; {h}, {len(mosaic.blocks):,} blocks, '
    f"{mosaic.tiles_used} of {len(catalog)} tiles</div>",
    unsafe_allow_html=True,
)

_, dl_col, _ = st.columns([1, 2, 1])
with dl_col:
    st.download_button(
        "SAVE ART",
        data=encode_png(mosaic.image),
        file_name="tile_mosaic.png",
        mime="image/png",
        use_container_width=True,
    )

m1, m2, m3, m4 = st.columns(4)
m1.metric("Blocks", f"{len(mosaic.blocks):,}")
m2.metric("Tiles", f"{len(catalog):,}")
m3.metric("Time", f"{elapsed:.1f} s")
m4.metric("Avg ΔE", f"{error:.1f}")
