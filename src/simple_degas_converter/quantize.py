"""Color quantization to the Atari ST/STE hardware palette."""

# Reference: ST/STE palette register (one 16-bit word per color)
# Bits     | Usage
# ---------|--------------------------------------------------------------
# 15–12    | unused (read as zero)
# 11–8     | red   : bit 11 = STE low bit, bits 10–8 = ST 3-bit value
# 7–4      | green : bit 7  = STE low bit, bits 6–4  = ST 3-bit value
# 3–0      | blue  : bit 3  = STE low bit, bits 2–0  = ST 3-bit value
#
# Internally colors are kept in "standard order": each channel is a plain
# 4-bit number whose top bits are the significant ones (ST values are even).
# The hardware order is the standard nibble rotated right by one bit.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Dict, Iterable, List, Sequence, Tuple

from .errors import QuantizationOverflowError

Color = Tuple[int, int, int]

HISTOGRAM_SIZE = 0x1000
SENTINEL_COLOR = 0xFFF  # white, fills unused palette slots
LUMINANCE_WEIGHTS = (2, 4, 1)  # R, G, B


class ComponentWidth(Enum):
    """Significant bits per color component."""

    ST = 3
    STE = 4

    @property
    def mask(self) -> int:
        return 0xE0 if self is ComponentWidth.ST else 0xF0


class ExpansionRule(Enum):
    """How a hardware component is widened back to 8 bits."""

    ZERO_FILL = "zero"
    REPLICATE = "replicate"
    FULL_RANGE = "full"


@dataclass(frozen=True)
class QuantizeMode:
    width: ComponentWidth = ComponentWidth.ST
    expansion: ExpansionRule = ExpansionRule.ZERO_FILL

    def __post_init__(self) -> None:
        if not isinstance(self.width, ComponentWidth):
            raise TypeError(f"Invalid component width: {self.width!r}")
        if not isinstance(self.expansion, ExpansionRule):
            raise TypeError(f"Invalid expansion rule: {self.expansion!r}")


@dataclass(frozen=True)
class ChannelTable:
    """Lookup tables for one quantization mode.

    ``nibbles`` maps an 8-bit channel value to its standard-order nibble and
    ``levels`` maps any nibble back to an 8-bit value. In ST mode the STE-only
    low bit of a nibble is ignored by ``levels``.
    """

    mode: QuantizeMode
    nibbles: Tuple[int, ...]
    levels: Tuple[int, ...]

    def reconstruct(self, value: int) -> int:
        return self.levels[self.nibbles[value]]


def _expand(nibble: int, mode: QuantizeMode) -> int:
    if mode.width is ComponentWidth.ST:
        value = nibble >> 1
        if mode.expansion is ExpansionRule.ZERO_FILL:
            return value << 5
        if mode.expansion is ExpansionRule.REPLICATE:
            return (value << 5) | (value << 2) | (value >> 1)
        return (value * 255 + 3) // 7

    if mode.expansion is ExpansionRule.ZERO_FILL:
        return nibble << 4
    if mode.expansion is ExpansionRule.REPLICATE:
        return (nibble << 4) | nibble
    return (nibble * 255 + 7) // 15


@lru_cache(maxsize=None)
def build_table(mode: QuantizeMode) -> ChannelTable:
    """Build the channel lookup table for ``mode``.

    Every rule keeps the top bits of the channel value; the rules differ only
    in how a nibble widens back to 8 bits. The result is immutable and cached,
    so it can be shared between conversions.
    """

    if not isinstance(mode, QuantizeMode):
        raise TypeError(f"Invalid quantization mode: {mode!r}")

    mask = mode.width.mask
    nibbles = tuple((value & mask) >> 4 for value in range(256))
    if mode.width is ComponentWidth.ST:
        levels = tuple(_expand(nibble & 0xE, mode) for nibble in range(16))
    else:
        levels = tuple(_expand(nibble, mode) for nibble in range(16))
    return ChannelTable(mode=mode, nibbles=nibbles, levels=levels)


def to_hardware_color(r: int, g: int, b: int, table: ChannelTable) -> int:
    nibbles = table.nibbles
    return (nibbles[r] << 8) | (nibbles[g] << 4) | nibbles[b]


def hardware_to_rgb(color: int, table: ChannelTable) -> Color:
    levels = table.levels
    return (levels[(color >> 8) & 15], levels[(color >> 4) & 15], levels[color & 15])


def _ror4(nibble: int) -> int:
    return ((nibble & 1) << 3) | (nibble >> 1)


def _rol4(nibble: int) -> int:
    return ((nibble << 1) & 0xE) | (nibble >> 3)


def hardware_to_word(color: int) -> int:
    """Standard-order color to the palette word stored on disk."""

    return (
        (_ror4((color >> 8) & 15) << 8)
        | (_ror4((color >> 4) & 15) << 4)
        | _ror4(color & 15)
    )


def word_to_hardware(word: int) -> int:
    """Palette word read from disk to a standard-order color."""

    return (
        (_rol4((word >> 8) & 15) << 8)
        | (_rol4((word >> 4) & 15) << 4)
        | _rol4(word & 15)
    )


def luminance(color: int) -> int:
    wr, wg, wb = LUMINANCE_WEIGHTS
    return wr * ((color >> 8) & 15) + wg * ((color >> 4) & 15) + wb * (color & 15)


class ColorHistogram:
    """Occurrence counters for all 4096 hardware colors."""

    def __init__(self) -> None:
        self.counts: List[int] = [0] * HISTOGRAM_SIZE

    def add(self, color: int) -> None:
        self.counts[color] += 1

    def update(self, colors: Iterable[int]) -> None:
        counts = self.counts
        for color in colors:
            counts[color] += 1

    def count(self, color: int) -> int:
        return self.counts[color]

    def ranked(self) -> List[Tuple[int, int]]:
        """Return ``(color, count)`` pairs, most frequent first.

        Only colors that occur are returned; equal counts are ordered by
        ascending color value.
        """

        entries = sorted(
            enumerate(self.counts), key=lambda entry: (-entry[1], entry[0])
        )
        used = 0
        while used < len(entries) and entries[used][1]:
            used += 1
        return entries[:used]


@dataclass
class Palette:
    """Palette selected for one image.

    ``colors`` always has ``size`` entries; slots past ``used`` hold the
    sentinel color and are absent from ``index_of``.
    """

    colors: List[int]
    used: int
    index_of: Dict[int, int] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.colors)

    def words(self, slots: int = 16) -> List[int]:
        """Hardware palette words padded with zeros to ``slots`` entries."""

        words = [hardware_to_word(color) for color in self.colors]
        return words + [0] * (slots - len(words))


def quantize_colors(colors: Iterable[int], max_colors: int) -> Palette:
    """Select a palette for a sequence of hardware colors.

    Colors are ranked by occurrence, rejected if there are more than
    ``max_colors`` of them, then ordered by ascending luminance so that the
    palette index grows with brightness.
    """

    histogram = ColorHistogram()
    histogram.update(colors)

    ranked = histogram.ranked()
    if len(ranked) > max_colors:
        raise QuantizationOverflowError(len(ranked), max_colors)

    chosen = sorted(
        (color for color, _count in ranked),
        key=lambda color: (luminance(color), color),
    )
    index_of = {color: index for index, color in enumerate(chosen)}
    padded = chosen + [SENTINEL_COLOR] * (max_colors - len(chosen))
    return Palette(colors=padded, used=len(chosen), index_of=index_of)


def quantize(pixels: Iterable[Color], max_colors: int, table: ChannelTable) -> Palette:
    return quantize_colors(
        (to_hardware_color(r, g, b, table) for r, g, b in pixels), max_colors
    )


def rgb_to_hardware_colors(rgb: bytes | bytearray | Sequence[int], table: ChannelTable) -> List[int]:
    """Convert a packed RGB888 buffer into hardware colors, one per pixel."""

    nibbles = table.nibbles
    return [
        (nibbles[rgb[i]] << 8) | (nibbles[rgb[i + 1]] << 4) | nibbles[rgb[i + 2]]
        for i in range(0, len(rgb), 3)
    ]
