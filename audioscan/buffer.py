"""Buffered big/little-endian reading over a seekable binary stream."""

from __future__ import annotations

import io
import os
import struct
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Union

DEFAULT_BLOCK_SIZE = 4096

Source = Union[str, "os.PathLike[str]", bytes, bytearray, BinaryIO]


class FormatError(ValueError):
    """Raised when a file does not have the structure its format requires."""


class StreamBuffer:
    """A read-ahead window over a binary stream.

    Data is pulled from the stream in blocks of at least ``block_size`` bytes.
    Reading methods fetch more data on demand and raise :class:`FormatError`
    when the stream ends before enough bytes are available.
    """

    def __init__(self, stream: BinaryIO | None = None, block_size: int = DEFAULT_BLOCK_SIZE):
        self._stream = stream
        self._block_size = max(1, block_size)
        self._data = bytearray()
        self._pos = 0
        self._bit_cache = 0
        self._bits_cached = 0

    def __len__(self) -> int:
        return len(self._data) - self._pos

    def _compact(self) -> None:
        if self._pos:
            del self._data[: self._pos]
            self._pos = 0

    def fill(self, size: int) -> bool:
        """Make sure at least ``size`` bytes are buffered; return whether that succeeded."""
        if size < 0:
            return False
        if len(self) >= size:
            return True
        if self._stream is None:
            return False
        self._compact()
        while len(self) < size:
            want = max(size - len(self), self._block_size)
            chunk = self._stream.read(want)
            if not chunk:
                break
            self._data.extend(chunk)
        return len(self) >= size

    def peek(self, size: int) -> bytes:
        """Return up to ``size`` bytes without consuming them."""
        self.fill(size)
        return bytes(self._data[self._pos : self._pos + size])

    def read(self, size: int) -> bytes:
        """Consume and return exactly ``size`` bytes."""
        if not self.fill(size):
            raise FormatError(f"needed {size} bytes, only {len(self)} available")
        start = self._pos
        self._pos += size
        return bytes(self._data[start : self._pos])

    def consume(self, size: int) -> None:
        """Discard exactly ``size`` bytes."""
        self.read(size)

    def skip(self, size: int) -> None:
        """Skip ``size`` bytes, seeking the stream past data not yet buffered."""
        if size < 0:
            raise FormatError(f"cannot skip a negative size ({size})")
        if len(self) >= size:
            self._pos += size
            return
        if self._stream is None:
            raise FormatError(f"cannot skip {size} bytes, only {len(self)} available")
        self._stream.seek(size - len(self), io.SEEK_CUR)
        self.clear()

    def clear(self) -> None:
        """Drop all buffered data."""
        self._data.clear()
        self._pos = 0

    def append(self, data: bytes) -> None:
        """Add bytes to the end of the buffer."""
        self._data.extend(data)

    def u8(self) -> int:
        return self.read(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self.read(2), "big")

    def u16le(self) -> int:
        return int.from_bytes(self.read(2), "little")

    def u24le(self) -> int:
        return int.from_bytes(self.read(3), "little")

    def u32(self) -> int:
        return int.from_bytes(self.read(4), "big")

    def u32le(self) -> int:
        return int.from_bytes(self.read(4), "little")

    def u64(self) -> int:
        return int.from_bytes(self.read(8), "big")

    def u64le(self) -> int:
        return int.from_bytes(self.read(8), "little")

    def f32(self) -> float:
        return struct.unpack(">f", self.read(4))[0]

    def f32le(self) -> float:
        return struct.unpack("<f", self.read(4))[0]

    def ieee_extended(self) -> float:
        """Read an 80-bit big-endian IEEE 754 extended precision float."""
        raw = self.read(10)
        sign_exp = int.from_bytes(raw[:2], "big")
        mantissa = int.from_bytes(raw[2:], "big")
        sign = -1.0 if sign_exp & 0x8000 else 1.0
        exponent = sign_exp & 0x7FFF
        if exponent == 0 and mantissa == 0:
            return 0.0 * sign
        if exponent == 0x7FFF:
            return sign * float("inf")
        return sign * float(mantissa) * 2.0 ** (exponent - 16383 - 63)

    def bits(self, count: int) -> int:
        """Read ``count`` bits, most significant first."""
        if count <= 0:
            return 0
        while self._bits_cached < count:
            self._bit_cache = (self._bit_cache << 8) | self.u8()
            self._bits_cached += 8
        self._bits_cached -= count
        value = (self._bit_cache >> self._bits_cached) & ((1 << count) - 1)
        self._bit_cache &= (1 << self._bits_cached) - 1
        return value


def file_size(stream: BinaryIO) -> int:
    """Return the total size of a seekable stream, keeping its position."""
    position = stream.tell()
    size = stream.seek(0, io.SEEK_END)
    stream.seek(position)
    return size


def bitrate(audio_size: int, song_length_ms: int) -> int:
    """Average bitrate in bits per second for ``audio_size`` bytes lasting ``song_length_ms``."""
    if song_length_ms <= 0:
        return 0
    return int((audio_size / song_length_ms) * 8000)


@contextmanager
def open_source(source: Source) -> Iterator[BinaryIO]:
    """Yield a binary stream for a path, raw bytes or an already open file."""
    if isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as handle:
            yield handle
    elif isinstance(source, (bytes, bytearray)):
        yield io.BytesIO(bytes(source))
    else:
        yield source