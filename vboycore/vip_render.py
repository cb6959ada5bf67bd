"""Colour tables and per-column output of the display framebuffers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Sequence

from .events import Mode3D

FB_COLUMNS = 384
FB_ROWS = 224
_COLUMN_STRIDE = 64
_COLUMN_BYTES = FB_ROWS // 4

RED_SHIFT = 16
GREEN_SHIFT = 8
BLUE_SHIFT = 0
ALPHA_SHIFT = 24

COLORSPACE_RGB = 0

_GAMMA = 2.2


def make_color(r: int, g: int, b: int, a: int = 0) -> int:
    """Pack 8-bit components into a 32-bit pixel."""
    return (r << RED_SHIFT) | (g << GREEN_SHIFT) | (b << BLUE_SHIFT) | (a << ALPHA_SHIFT)


@dataclass
class Surface:
    """A 32-bit pixel buffer; ``pitch`` is in pixels and defaults to the width."""

    width: int = 768
    height: int = 448
    pitch: int = 0
    colorspace: int = COLORSPACE_RGB
    pixels: list[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("surface dimensions must be positive")
        if not self.pitch:
            self.pitch = self.width
        self.pixels = [0] * (self.pitch * self.height)

    def clear(self) -> None:
        """Set every pixel to zero."""
        self.pixels[:] = [0] * len(self.pixels)


@dataclass(frozen=True)
class ColorTables:
    """Per-eye brightness-to-pixel tables and the mixed anaglyph table.

    ``color_lut[eye][level]`` is a pixel, ``linear[eye][level]`` the same colour
    with gamma removed, and ``ana_slow[left_level][right_level]`` the pixel of
    both eyes mixed in linear light.
    """

    color_lut: tuple[tuple[int, ...], tuple[int, ...]]
    linear: tuple[tuple[tuple[float, float, float], ...], ...]
    ana_slow: tuple[tuple[int, ...], ...]


def _channels(color: int) -> tuple[int, int, int]:
    return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


def build_color_tables(mode: int, reverse: bool, anaglyph_colors: Sequence[int],
                       default_color: int) -> ColorTables:
    """Build the colour tables for the given 3D mode and tint colours."""
    rev = 1 if reverse else 0
    color_lut: list[tuple[int, ...]] = []
    linear: list[tuple[tuple[float, float, float], ...]] = []

    for lr in range(2):
        if mode == Mode3D.ANAGLYPH:
            tint = _channels(anaglyph_colors[lr ^ rev])
        else:
            tint = _channels(default_color)
        eye_lut = []
        eye_linear = []
        for i in range(256):
            base = pow(i / 255, 1.0 / _GAMMA)
            primes = [base * c / 255 for c in tint]
            eye_linear.append(tuple(pow(p, _GAMMA) for p in primes))
            eye_lut.append(make_color(*(int(p * 255) for p in primes), 0))
        color_lut.append(tuple(eye_lut))
        linear.append(tuple(eye_linear))

    left_lin, right_lin = linear
    ana_slow = []
    for lcol in left_lin:
        row = []
        for rcol in right_lin:
            mixed = (min(lc + rc, 1.0) for lc, rc in zip(lcol, rcol))
            row.append(make_color(*(int(pow(m, 1.0 / _GAMMA) * 255) for m in mixed), 0))
        ana_slow.append(tuple(row))

    return ColorTables((color_lut[0], color_lut[1]), tuple(linear), tuple(ana_slow))


def needs_slow_anaglyph(anaglyph_colors: Sequence[int], non_rgb_output: bool) -> bool:
    """True when the two eye colours share a channel, so they must be mixed."""
    left, right = anaglyph_colors[0], anaglyph_colors[1]
    overlap = any((left & mask) and (right & mask) for mask in (0xFF, 0xFF00, 0xFF0000))
    return bool(overlap or non_rgb_output)


def build_hli_lut(prescale: int) -> list[int]:
    """Expand each 2-bit pixel of a framebuffer byte ``prescale`` times."""
    lut = []
    for p in range(256):
        v = 0
        shift = 0
        for i in range(4):
            level = (p >> (i * 2)) & 0x3
            for _ in range(prescale):
                v |= level << shift
                shift += 2
        lut.append(v)
    return lut


def display_rect(mode: int, prescale: int = 1, separation: int = 0) -> tuple[int, int, int, int]:
    """The (x, y, w, h) output rectangle for a 3D mode."""
    if mode == Mode3D.VLI:
        return 0, 0, 768 * prescale, 224
    if mode == Mode3D.HLI:
        return 0, 0, 384, 448 * prescale
    if mode == Mode3D.CSCOPE:
        return 0, 0, 512, 384
    if mode == Mode3D.SIDEBYSIDE:
        return 0, 0, 768 + separation, 224
    return 0, 0, 384, 224


def _levels(source: Sequence[int], column: int) -> Iterator[int]:
    start = _COLUMN_STRIDE * column
    for byte in source[start:start + _COLUMN_BYTES]:
        for _ in range(4):
            yield byte & 3
            byte >>= 2


class ColumnRenderer:
    """Copies one framebuffer column of one eye onto an output surface."""

    def __init__(self, mode: int, reverse: bool = False, prescale: int = 1,
                 separation: int = 0, slow: bool = False) -> None:
        if prescale < 1:
            raise ValueError("prescale must be at least 1")
        self.mode = mode
        self.reverse = 1 if reverse else 0
        self.prescale = prescale
        self.separation = separation
        self.slow = slow
        self.hli_lut = build_hli_lut(prescale)
        self._slow_buf = [[0] * FB_ROWS for _ in range(FB_COLUMNS)]

    def copy_column(self, surface: Surface, source: Sequence[int], column: int, lr: int,
                    active: bool, bright_clut: Sequence[Sequence[int]],
                    brightness: Sequence[int], slow_lut: Sequence[Sequence[int]] | None) -> None:
        """Draw ``column`` of eye ``lr`` from the eye's framebuffer ``source``."""
        if lr not in (0, 1):
            raise ValueError(f"invalid eye: {lr}")
        if not 0 <= column < FB_COLUMNS:
            raise ValueError(f"invalid column: {column}")
        dest = lr ^ self.reverse

        if self.mode == Mode3D.CSCOPE:
            self._cscope(surface, source, column, lr, dest, active, bright_clut)
        elif self.mode == Mode3D.SIDEBYSIDE:
            self._side_by_side(surface, source, column, lr, dest, active, bright_clut)
        elif self.mode == Mode3D.VLI:
            self._vli(surface, source, column, dest, active, bright_clut)
        elif self.mode == Mode3D.HLI:
            self._hli(surface, source, column, dest, active, bright_clut)
        elif self.slow:
            if lr and slow_lut is None:
                raise ValueError("slow anaglyph output needs the mixing table")
            self._anaglyph_slow(surface, source, column, lr, active, brightness, slow_lut)
        else:
            self._anaglyph(surface, source, column, lr, active, bright_clut)

    def _anaglyph(self, surface, source, column, lr, active, clut) -> None:
        pixels, pitch = surface.pixels, surface.pitch
        for row, level in enumerate(_levels(source, column)):
            value = clut[lr][level] if active else 0
            pos = column + row * pitch
            if lr:
                pixels[pos] |= value
            else:
                pixels[pos] = value

    def _anaglyph_slow(self, surface, source, column, lr, active, brightness, slow_lut) -> None:
        left = self._slow_buf[column]
        if not lr:
            for row, level in enumerate(_levels(source, column)):
                left[row] = brightness[level] if active else 0
            return
        pixels, pitch = surface.pixels, surface.pitch
        for row, level in enumerate(_levels(source, column)):
            right = brightness[level] if active else 0
            pixels[column + row * pitch] = slow_lut[left[row]][right]

    def _cscope(self, surface, source, column, lr, dest, active, clut) -> None:
        pixels, pitch = surface.pixels, surface.pitch
        if dest:
            pos, step = (512 - 16 - 1) + column * pitch, -1
        else:
            pos, step = 16 + (383 - column) * pitch, 1
        for level in _levels(source, column):
            pixels[pos] = clut[lr][level] if active else 0
            pos += step

    def _side_by_side(self, surface, source, column, lr, dest, active, clut) -> None:
        pixels, pitch = surface.pixels, surface.pitch
        base = column + (384 + self.separation if dest else 0)
        for row, level in enumerate(_levels(source, column)):
            pixels[base + row * pitch] = clut[lr][level] if active else 0

    def _vli(self, surface, source, column, dest, active, clut) -> None:
        pixels, pitch = surface.pixels, surface.pitch
        base = column * 2 * self.prescale + dest
        for row, level in enumerate(_levels(source, column)):
            value = clut[0][level] if active else 0
            pos = base + row * pitch
            for ps in range(self.prescale):
                pixels[pos + ps * 2] = value

    def _hli(self, surface, source, column, dest, active, clut) -> None:
        pixels, pitch = surface.pixels, surface.pitch
        pos = column + dest * pitch
        step = pitch * 2
        start = _COLUMN_STRIDE * column
        if self.prescale <= 4:
            for byte in source[start:start + _COLUMN_BYTES]:
                bits = self.hli_lut[byte]
                for _ in range(4 * self.prescale):
                    pixels[pos] = clut[0][bits & 3] if active else 0
                    pos += step
                    bits >>= 2
        else:
            for level in _levels(source, column):
                value = clut[0][level] if active else 0
                for _ in range(self.prescale):
                    pixels[pos] = value
                    pos += step