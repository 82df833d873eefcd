"""Run-length codec of compressed Degas Elite (PC1/PC2/PC3) images.

Each bitplane of each row is coded on its own as a sequence of operations:

* ``00h–7Fh``: copy the next ``code + 1`` bytes (1 to 128 literal bytes)
* ``80h–FFh``: repeat the next byte ``257 - code`` times (2 to 129 bytes)
"""

from __future__ import annotations

from typing import Sequence, Tuple

from .errors import CorruptStreamError

MAX_COPY = 128
MIN_FILL = 2
MAX_FILL = 129


def _encode_copy(out: bytearray, src: Sequence[int]) -> None:
    for start in range(0, len(src), MAX_COPY):
        chunk = src[start : start + MAX_COPY]
        out.append(len(chunk) - 1)
        out += bytes(chunk)


def _encode_fill(out: bytearray, value: int, length: int) -> None:
    while length >= MIN_FILL:
        n = length
        if n > MAX_FILL:
            # A fill can not carry a single byte: split 130 as 128 + 2.
            n = MAX_FILL - (n == MAX_FILL + 1)
        length -= n
        out.append(257 - n)
        out.append(value)
    assert length == 0


def encode(src: Sequence[int]) -> bytes:
    """Encode one plane row."""

    out = bytearray()
    pending = 0  # start of the literal span not yet written
    i = 0
    while i < len(src):
        value = src[i]
        k = i + 1
        while k < len(src) and src[k] == value:
            k += 1
        if k - i >= 2:
            if i > pending:
                _encode_copy(out, src[pending:i])
            _encode_fill(out, value, k - i)
            pending = k
        i = k
    _encode_copy(out, src[pending:])
    return bytes(out)


def _decode_op(src: Sequence[int], i: int, written: int, capacity: int | None) -> Tuple[int, bytes]:
    """Decode the operation at ``i``; return the next offset and its output."""

    code = src[i]
    if code < 128:
        n = code + 1
        end = i + 1 + n
        if end > len(src):
            raise CorruptStreamError(
                f"copy of {n} bytes at offset {i} runs past the end of the data"
            )
    else:
        n = 257 - code
        end = i + 2
        if end > len(src):
            raise CorruptStreamError(f"fill of {n} bytes at offset {i} is missing its value")
    if capacity is not None and written + n > capacity:
        raise CorruptStreamError(
            f"operation at offset {i} writes {written + n} bytes, capacity is {capacity}"
        )
    if code < 128:
        return end, bytes(src[i + 1 : end])
    return end, bytes([src[i + 1]]) * n


def decode(src: Sequence[int], capacity: int | None = None) -> bytes:
    """Decode every operation in ``src``.

    With ``capacity`` set, an operation that would produce more than
    ``capacity`` bytes in total raises :class:`CorruptStreamError`.
    """

    out = bytearray()
    i = 0
    while i < len(src):
        i, chunk = _decode_op(src, i, len(out), capacity)
        out += chunk
    return bytes(out)


def decode_segment(src: Sequence[int], offset: int, size: int) -> Tuple[bytes, int]:
    """Decode exactly ``size`` bytes starting at ``offset``.

    Returns the decoded bytes and the offset of the next segment.
    """

    out = bytearray()
    i = offset
    while len(out) < size:
        if i >= len(src):
            raise CorruptStreamError(f"data ends after {len(out)} of {size} bytes")
        i, chunk = _decode_op(src, i, len(out), size)
        out += chunk
    return bytes(out), i
