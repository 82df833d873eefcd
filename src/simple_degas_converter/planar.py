"""Interleaved bitplane layout used by the ST video shifter."""

# Reference: one screen row, 4 planes (320x200)
# Offset | Content
# -------|-------------------------------------------------------------
# +0     | tile 0, plane 0 word (pixels 0–15, pixel 0 in bit 15)
# +2     | tile 0, plane 1 word
# +4     | tile 0, plane 2 word
# +6     | tile 0, plane 3 word
# +8     | tile 1, plane 0 word (pixels 16–31)
# ...    | 20 tiles × 4 planes × 2 bytes = 160 bytes per row
#
# With 2 planes (640x200) a tile is 4 bytes, with 1 plane (640x400) 2 bytes.
# Rows are 160 bytes (80 in 640x400) and every screen is 32000 bytes.

from __future__ import annotations

from typing import Callable, Iterator, List, Sequence, Tuple

PLANES_LOG2 = {1: 0, 2: 1, 4: 2}

IndexOf = Callable[[int, int], int]


def planes_log2(planes: int) -> int:
    try:
        return PLANES_LOG2[planes]
    except KeyError as exc:
        raise ValueError(f"Unsupported plane count: {planes}") from exc


def tile_count(width: int) -> int:
    return (width + 15) >> 4


def bytes_per_row(width: int, planes: int) -> int:
    return tile_count(width) << (planes_log2(planes) + 1)


def body_size(width: int, height: int, planes: int) -> int:
    return bytes_per_row(width, planes) * height


def pixel_address(width: int, height: int, planes: int, x: int, y: int) -> Tuple[int, int]:
    """Locate pixel ``(x, y)`` in plane 0.

    Returns the byte offset and the bit number inside that byte. The byte of
    plane ``z`` is ``2 * z`` bytes further.
    """

    if not (0 <= x < width and 0 <= y < height):
        raise IndexError(f"Pixel ({x}, {y}) is outside {width}x{height}")
    log2 = planes_log2(planes)
    row = y * (tile_count(width) << (log2 + 1))
    tile = (x >> 4) << (log2 + 1)
    return row + tile + ((x >> 3) & 1), ~x & 7


def pack(width: int, height: int, planes: int, index_of: IndexOf) -> bytes:
    """Build the bitplane body from a per-pixel palette index accessor."""

    limit = 1 << planes
    data = bytearray(body_size(width, height, planes))
    for y in range(height):
        for x in range(width):
            index = index_of(x, y)
            if not 0 <= index < limit:
                raise ValueError(
                    f"Palette index {index} at ({x}, {y}) does not fit in {planes} planes"
                )
            offset, bit = pixel_address(width, height, planes, x, y)
            mask = 1 << bit
            for z in range(planes):
                if index & (1 << z):
                    data[offset + 2 * z] |= mask
    return bytes(data)


def unpack(data: Sequence[int], width: int, height: int, planes: int, x: int, y: int) -> int:
    """Return the palette index of pixel ``(x, y)``."""

    offset, bit = pixel_address(width, height, planes, x, y)
    index = 0
    for z in range(planes):
        index |= ((data[offset + 2 * z] >> bit) & 1) << z
    return index


def unpack_rows(data: Sequence[int], width: int, height: int, planes: int) -> Iterator[List[int]]:
    """Yield the palette indices of every row, top to bottom."""

    if len(data) < body_size(width, height, planes):
        raise ValueError(
            f"Bitplane data is {len(data)} bytes, expected {body_size(width, height, planes)}"
        )
    for y in range(height):
        yield [unpack(data, width, height, planes, x, y) for x in range(width)]


def plane_row(data: Sequence[int], width: int, planes: int, y: int, z: int) -> bytes:
    """Gather the bytes of plane ``z`` in row ``y`` (two per tile)."""

    step = 2 * planes
    start = y * bytes_per_row(width, planes) + 2 * z
    out = bytearray()
    for tile in range(tile_count(width)):
        offset = start + tile * step
        out += bytes(data[offset : offset + 2])
    return bytes(out)


def set_plane_row(
    data: bytearray, width: int, planes: int, y: int, z: int, row: Sequence[int]
) -> None:
    """Scatter one plane row produced by :func:`plane_row` back into ``data``."""

    tiles = tile_count(width)
    if len(row) != 2 * tiles:
        raise ValueError(f"Plane row must be {2 * tiles} bytes, got {len(row)}")
    step = 2 * planes
    start = y * bytes_per_row(width, planes) + 2 * z
    for tile in range(tiles):
        offset = start + tile * step
        data[offset : offset + 2] = bytes(row[2 * tile : 2 * tile + 2])


def pack_chunky_row(indices: Sequence[int], bits: int) -> bytes:
    """Pack palette indices into bytes, leftmost pixel in the high bits."""

    if bits not in (1, 2, 4, 8):
        raise ValueError(f"Unsupported chunky depth: {bits}")
    per_byte = 8 // bits
    mask = (1 << bits) - 1
    out = bytearray((len(indices) + per_byte - 1) // per_byte)
    for x, index in enumerate(indices):
        shift = 8 - bits * (x % per_byte + 1)
        out[x // per_byte] |= (index & mask) << shift
    return bytes(out)
