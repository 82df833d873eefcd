"""Degas PI1/PI2/PI3 (raw) and PC1/PC2/PC3 (compressed) image files."""

# Reference: Degas file layout
# Offset | Size  | Notes
# -------|-------|----------------------------------------------------------
# 0      | 2     | Format tag, big-endian: resolution 0/1/2, +8000h if compressed
# 2      | 32    | 16 palette words (hardware order, big-endian)
# 34     | 32000 | PI?: bitplane screen data, rows top to bottom
# 34     | var.  | PC?: per row, per plane, one run-length segment
# (end)  | 32    | Degas Elite only: color animation block (ignored)

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from PIL import Image

from . import planar, rle
from .errors import CorruptStreamError, MalformedHeaderError, UnsupportedResolutionError
from .quantize import ChannelTable, Color, hardware_to_rgb, word_to_hardware

HEADER_SIZE = 34
BODY_SIZE = 32000
PALETTE_SLOTS = 16
COMPRESSED_FLAG = 0x8000


@dataclass(frozen=True)
class Resolution:
    code: int
    width: int
    height: int
    planes: int

    @property
    def colors(self) -> int:
        return 1 << self.planes

    @property
    def plane_row_size(self) -> int:
        return planar.tile_count(self.width) * 2

    def tag(self, compressed: bool) -> int:
        return self.code | (COMPRESSED_FLAG if compressed else 0)

    def format_name(self, compressed: bool) -> str:
        return f"{'PC' if compressed else 'PI'}{self.code + 1}"

    def min_file_size(self, compressed: bool) -> int:
        if not compressed:
            return HEADER_SIZE + BODY_SIZE
        # Smallest legal segment is a single fill operation: 1634 bytes for
        # PC1, 834 for PC2 and PC3 (older tools check 839 and 854).
        return HEADER_SIZE + self.height * self.planes * 2


LOW = Resolution(code=0, width=320, height=200, planes=4)
MEDIUM = Resolution(code=1, width=640, height=200, planes=2)
HIGH = Resolution(code=2, width=640, height=400, planes=1)
RESOLUTIONS: Tuple[Resolution, ...] = (LOW, MEDIUM, HIGH)


def resolution_for_size(width: int, height: int) -> Resolution:
    for resolution in RESOLUTIONS:
        if resolution.width == width and resolution.height == height:
            return resolution
    raise UnsupportedResolutionError(width, height)


def parse_tag(tag: int) -> Tuple[Resolution, bool]:
    compressed = bool(tag & COMPRESSED_FLAG)
    code = tag & ~COMPRESSED_FLAG
    for resolution in RESOLUTIONS:
        if resolution.code == code:
            return resolution, compressed
    raise MalformedHeaderError(f"unknown Degas format tag {tag:04X}h")


@dataclass
class PlanarImage:
    """A Degas picture: resolution, 16 palette words and the 32000-byte body."""

    resolution: Resolution
    palette: List[int] = field(default_factory=lambda: [0] * PALETTE_SLOTS)
    body: bytes = bytes(BODY_SIZE)

    def __post_init__(self) -> None:
        if len(self.palette) != PALETTE_SLOTS:
            raise ValueError(f"Palette must have {PALETTE_SLOTS} entries")
        if len(self.body) != BODY_SIZE:
            raise ValueError(f"Body must be {BODY_SIZE} bytes, got {len(self.body)}")

    @property
    def width(self) -> int:
        return self.resolution.width

    @property
    def height(self) -> int:
        return self.resolution.height

    @property
    def planes(self) -> int:
        return self.resolution.planes

    def index_at(self, x: int, y: int) -> int:
        return planar.unpack(self.body, self.width, self.height, self.planes, x, y)

    def rgb_palette(self, table: ChannelTable) -> List[Color]:
        return [hardware_to_rgb(word_to_hardware(word), table) for word in self.palette]

    def iter_chunky_rows(self) -> Iterator[bytes]:
        """Yield each row as packed chunky pixels (``planes`` bits per pixel)."""

        for indices in planar.unpack_rows(self.body, self.width, self.height, self.planes):
            yield planar.pack_chunky_row(indices, self.planes)

    def to_image(self, table: ChannelTable) -> Image.Image:
        data = b"".join(self.iter_chunky_rows())
        image = Image.frombytes(
            "P", (self.width, self.height), data, "raw", f"P;{self.planes}"
        )
        # Only 2**planes entries: PNG bit depths 1 and 2 hold no more.
        flat: List[int] = []
        for rgb in self.rgb_palette(table)[: self.resolution.colors]:
            flat.extend(rgb)
        image.putpalette(flat)
        return image

    def to_bytes(self, compressed: bool = False) -> bytes:
        header = struct.pack(
            ">H16H", self.resolution.tag(compressed), *self.palette
        )
        if not compressed:
            return header + self.body
        return header + self.compressed_body()

    def compressed_body(self) -> bytes:
        out = bytearray()
        for y in range(self.height):
            for z in range(self.planes):
                row = planar.plane_row(self.body, self.width, self.planes, y, z)
                out += rle.encode(row)
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes) -> "PlanarImage":
        if len(data) < HEADER_SIZE:
            raise MalformedHeaderError(
                f"file length ({len(data)}) is too short for a Degas header"
            )
        tag, *palette = struct.unpack(">H16H", data[:HEADER_SIZE])
        resolution, compressed = parse_tag(tag)
        minimum = resolution.min_file_size(compressed)
        if len(data) < minimum:
            raise MalformedHeaderError(
                f"file length ({len(data)}) is too short for "
                f"{resolution.format_name(compressed)} image (minimum {minimum})"
            )
        if compressed:
            body = decompress_body(data, HEADER_SIZE, resolution)
        else:
            body = bytes(data[HEADER_SIZE : HEADER_SIZE + BODY_SIZE])
        return cls(resolution=resolution, palette=palette, body=body)


def decompress_body(data: Sequence[int], offset: int, resolution: Resolution) -> bytes:
    """Decode the run-length segments of a PC? body starting at ``offset``."""

    body = bytearray(BODY_SIZE)
    size = resolution.plane_row_size
    for y in range(resolution.height):
        for z in range(resolution.planes):
            try:
                row, offset = rle.decode_segment(data, offset, size)
            except CorruptStreamError as exc:
                raise CorruptStreamError(
                    f"corrupt compressed data at row {y}, plane {z}: {exc}"
                ) from exc
            planar.set_plane_row(body, resolution.width, resolution.planes, y, z, row)
    return bytes(body)


def describe(picture: PlanarImage, compressed: Optional[bool] = None) -> str:
    name = "" if compressed is None else picture.resolution.format_name(compressed) + " "
    return f"{name}{picture.width}x{picture.height}x{picture.resolution.colors}"
