"""Colour models and the perceptual distance used to rank tiles.

Four representations are supported:

- :class:`RGBA` - 16-bit device colour (0 … 65535 per channel)
- :class:`XYZ`  - CIE 1931 tristimulus, linear, reference white Y = 1
- :class:`Luv`  - CIELUV lightness / chrominance
- :class:`LCH`  - cylindrical form of Luv (hue in radians)

All conversions live in a single table keyed by ``(source, target)``;
pairs without a direct edge are routed through :class:`XYZ`.  No gamma
decoding is applied: the sRGB matrices operate directly on normalised
device values.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import NamedTuple, TypeVar, Union

import numpy as np

MAX_16BIT = 65535

# Reference white (see https://en.wikipedia.org/wiki/CIELUV)
UN = 0.2009
VN = 0.461
YN = 1.0

TAU = 2 * math.pi

_EPSILON = (6 / 29) ** 3  # linear/cube-root split of Y/Yn
_KAPPA = (29 / 3) ** 3
_INV_KAPPA = (3 / 29) ** 3

_DEG_6 = math.radians(6)
_DEG_25 = math.radians(25)
_DEG_30 = math.radians(30)
_DEG_60 = math.radians(60)
_DEG_63 = math.radians(63)
_DEG_275 = math.radians(275)
_SQRT20 = math.sqrt(20)


class RGBA(NamedTuple):
    """Device colour with 16-bit channels."""

    r: int
    g: int
    b: int
    a: int = MAX_16BIT

    @classmethod
    def from_8bit(cls, r: int, g: int, b: int, a: int = 255) -> RGBA:
        """Widen 8-bit channels to 16 bits (×0x101)."""
        return cls(int(r) * 0x101, int(g) * 0x101, int(b) * 0x101, int(a) * 0x101)

    @classmethod
    def from_color(cls, color: Color) -> RGBA:
        return convert(color, cls)

    def to_8bit(self) -> tuple[int, int, int, int]:
        """Narrow to 8-bit channels (floor division by 0x101)."""
        return (self.r // 0x101, self.g // 0x101, self.b // 0x101, self.a // 0x101)

    def rgba(self) -> RGBA:
        return self


class XYZ(NamedTuple):
    x: float
    y: float
    z: float

    @classmethod
    def from_color(cls, color: Color) -> XYZ:
        return convert(color, cls)

    def rgba(self) -> RGBA:
        return convert(self, RGBA)


class Luv(NamedTuple):
    l: float  # noqa: E741
    u: float
    v: float

    @classmethod
    def from_color(cls, color: Color) -> Luv:
        return convert(color, cls)

    def rgba(self) -> RGBA:
        return convert(self, RGBA)


class LCH(NamedTuple):
    """Lightness, chroma and hue (radians, ``0 <= h < 2π``) of a Luv colour."""

    l: float  # noqa: E741
    c: float
    h: float

    @classmethod
    def from_color(cls, color: Color) -> LCH:
        return convert(color, cls)

    def rgba(self) -> RGBA:
        return convert(self, RGBA)

    def distance(self, other: LCH) -> float:
        """Perceptual distance to *other*, see :func:`lch_distance`."""
        return lch_distance(self, other)


Color = Union[RGBA, XYZ, Luv, LCH]
C = TypeVar("C", RGBA, XYZ, Luv, LCH)


def _clamp16(value: float) -> int:
    # Clamp while still a float; int(inf) raises
    return int(round(min(max(value, 0.0), MAX_16BIT)))


def _wrap_hue(h: float) -> float:
    if h < 0:
        h += TAU
    if h >= TAU:
        h -= TAU
    return h


# -- Direct conversions ------------------------------------------------

def rgb_to_xyz(color: RGBA) -> XYZ:
    """Normalise to 0 … 1 and apply the sRGB primaries matrix.

    Alpha is discarded. See http://en.wikipedia.org/wiki/SRGB
    """
    r = color.r / MAX_16BIT
    g = color.g / MAX_16BIT
    b = color.b / MAX_16BIT
    return XYZ(
        0.4124 * r + 0.3576 * g + 0.1805 * b,
        0.2126 * r + 0.7152 * g + 0.0722 * b,
        0.0193 * r + 0.1192 * g + 0.9505 * b,
    )


def xyz_to_rgb(color: XYZ) -> RGBA:
    """Apply the inverse sRGB matrix; out-of-gamut channels saturate."""
    x, y, z = color
    r = 3.2406 * x - 1.5372 * y - 0.4986 * z
    g = -0.9689 * x + 1.8758 * y + 0.0415 * z
    b = 0.0557 * x - 0.2040 * y + 1.0570 * z
    return RGBA(
        _clamp16(r * MAX_16BIT),
        _clamp16(g * MAX_16BIT),
        _clamp16(b * MAX_16BIT),
        MAX_16BIT,
    )


def xyz_to_luv(color: XYZ) -> Luv:
    x, y, z = color
    yr = y / YN
    if yr <= _EPSILON:
        lightness = _KAPPA * yr
    else:
        lightness = 116 * yr ** (1 / 3) - 16

    # Pure black has no chromaticity
    d = x + 15 * y + 3 * z
    if d != 0:
        u_prime = 4 * x / d
        v_prime = 9 * y / d
    else:
        u_prime = v_prime = 0.0

    return Luv(
        lightness,
        13 * lightness * (u_prime - UN),
        13 * lightness * (v_prime - VN),
    )


def luv_to_xyz(color: Luv) -> XYZ:
    """Inverse of :func:`xyz_to_luv`.

    ``L <= 0`` carries no chromaticity and maps to black.  A zero ``v'``
    keeps the luminance and drops X and Z.
    """
    lightness, u, v = color
    if lightness <= 0:
        return XYZ(0.0, 0.0, 0.0)

    if lightness <= 8:
        y = YN * lightness * _INV_KAPPA
    else:
        y = YN * ((lightness + 16) / 116) ** 3

    u_prime = u / (13 * lightness) + UN
    v_prime = v / (13 * lightness) + VN
    if v_prime == 0:
        return XYZ(0.0, y, 0.0)

    x = y * (9 * u_prime) / (4 * v_prime)
    z = y * (12 - 3 * u_prime - 20 * v_prime) / (4 * v_prime)
    return XYZ(x, y, z)


def luv_to_lch(color: Luv) -> LCH:
    lightness, u, v = color
    return LCH(lightness, math.hypot(u, v), _wrap_hue(math.atan2(v, u)))


def lch_to_luv(color: LCH) -> Luv:
    lightness, chroma, hue = color
    return Luv(lightness, chroma * math.cos(hue), chroma * math.sin(hue))


_CONVERSIONS: dict[tuple[type, type], Callable[[Color], Color]] = {
    (RGBA, XYZ): rgb_to_xyz,
    (XYZ, RGBA): xyz_to_rgb,
    (XYZ, Luv): xyz_to_luv,
    (Luv, XYZ): luv_to_xyz,
    (Luv, LCH): luv_to_lch,
    (LCH, Luv): lch_to_luv,
}

# Intermediate models visited for every ordered pair
_ROUTES: dict[tuple[type, type], tuple[type, ...]] = {
    (RGBA, XYZ): (),
    (RGBA, Luv): (XYZ,),
    (RGBA, LCH): (XYZ, Luv),
    (XYZ, RGBA): (),
    (XYZ, Luv): (),
    (XYZ, LCH): (Luv,),
    (Luv, RGBA): (XYZ,),
    (Luv, XYZ): (),
    (Luv, LCH): (),
    (LCH, RGBA): (Luv, XYZ),
    (LCH, XYZ): (Luv,),
    (LCH, Luv): (),
}


def convert(color: Color, target: type[C]) -> C:
    """Convert *color* into the *target* model.

    Returns *color* unchanged when it already is a *target*; otherwise the
    shortest chain of direct conversions is applied.

    Raises:
        TypeError: If either side is not one of the four colour models.
    """
    source = type(color)
    if source is target:
        return color  # type: ignore[return-value]

    try:
        hops = _ROUTES[(source, target)]
    except KeyError:
        msg = f"Cannot convert {source.__name__} to {target.__name__}"
        raise TypeError(msg) from None

    for step in (*hops, target):
        color = _CONVERSIONS[(type(color), step)](color)
    return color  # type: ignore[return-value]


# -- Perceptual distance -----------------------------------------------

def lch_distance(a: LCH, b: LCH) -> float:
    """CIEDE2000-style colour difference between two LCH colours.

    Symmetric, zero for identical inputs, and about 100 between black and
    white.  Hue differences wrap around the circle.

    Args:
        a: First colour.
        b: Second colour.

    Returns:
        Non-negative finite distance.
    """
    dh = b.h - a.h
    hsum = b.h + a.h
    if abs(dh) > math.pi:
        hsum += TAU if hsum < TAU else -TAU
        dh += TAU if b.h <= a.h else -TAU
    hbar = hsum / 2

    t = (
        1
        - 0.17 * math.cos(hbar - _DEG_30)
        + 0.24 * math.cos(2 * hbar)
        + 0.32 * math.cos(3 * hbar + _DEG_6)
        - 0.20 * math.cos(4 * hbar - _DEG_63)
    )

    lbar = (a.l + b.l) / 2
    cbar = (a.c + b.c) / 2

    x = abs(lbar - 50)
    sl = 1 + 0.015 * x * (x / math.hypot(_SQRT20, x))
    sc = 1 + 0.045 * cbar
    sh = 1 + 0.015 * cbar * t

    dtheta = _DEG_60 * math.exp(-(((hbar - _DEG_275) / _DEG_25) ** 2))
    rt = -2 * _chroma_weight(cbar) * math.sin(dtheta)

    dl = (b.l - a.l) / sl
    dc = (b.c - a.c) / sc
    dhue = math.sqrt(a.c) * math.sqrt(b.c) * math.sin(dh / 2) / sh

    return _combine(dl, dc, dhue, rt)


def _chroma_weight(cbar: float) -> float:
    """sqrt(C^7 / (C^7 + 25^7)) without raising C to the 7th power."""
    q = (min(cbar, 25.0) / max(cbar, 25.0)) ** 7
    if cbar >= 25.0:
        return 1 / math.sqrt(1 + q)
    return math.sqrt(q / (1 + q))


def _combine(dl: float, dc: float, dhue: float, rt: float) -> float:
    # The rotation term can push the sum a hair below zero
    return math.sqrt(max(dl * dl + dc * dc + dhue * dhue + rt * dc * dhue, 0.0))


def lch_distances(color: LCH, others: np.ndarray) -> np.ndarray:
    """Vectorised :func:`lch_distance` from *color* to many colours.

    Args:
        color:  Reference colour (first argument of every comparison).
        others: (N, 3) float array of ``(l, c, h)`` rows.

    Returns:
        (N,) float64 distances.
    """
    others = np.asarray(others, dtype=np.float64).reshape(-1, 3)
    l2, c2, h2 = others[:, 0], others[:, 1], others[:, 2]

    dh = h2 - color.h
    hsum = h2 + color.h
    wrap = np.abs(dh) > np.pi
    hsum = np.where(wrap, np.where(hsum < TAU, hsum + TAU, hsum - TAU), hsum)
    dh = np.where(wrap, np.where(h2 <= color.h, dh + TAU, dh - TAU), dh)
    hbar = hsum / 2

    t = (
        1
        - 0.17 * np.cos(hbar - _DEG_30)
        + 0.24 * np.cos(2 * hbar)
        + 0.32 * np.cos(3 * hbar + _DEG_6)
        - 0.20 * np.cos(4 * hbar - _DEG_63)
    )

    lbar = (color.l + l2) / 2
    cbar = (color.c + c2) / 2

    x = np.abs(lbar - 50)
    sl = 1 + 0.015 * x * (x / np.hypot(_SQRT20, x))
    sc = 1 + 0.045 * cbar
    sh = 1 + 0.015 * cbar * t

    dtheta = _DEG_60 * np.exp(-(((hbar - _DEG_275) / _DEG_25) ** 2))
    q = (np.minimum(cbar, 25.0) / np.maximum(cbar, 25.0)) ** 7
    rc = np.where(cbar >= 25.0, 1 / np.sqrt(1 + q), np.sqrt(q / (1 + q)))
    rt = -2 * rc * np.sin(dtheta)

    dl = (l2 - color.l) / sl
    dc = (c2 - color.c) / sc
    dhue = np.sqrt(color.c) * np.sqrt(c2) * np.sin(dh / 2) / sh

    return np.sqrt(np.maximum(dl ** 2 + dc ** 2 + dhue ** 2 + rt * dc * dhue, 0.0))
