"""Parsers for the bodies of individual MP4 boxes."""

from __future__ import annotations

from typing import Any

from .buffer import FormatError, StreamBuffer
from .mp4_profiles import AacObjectType, table_samplerate

_BITS_PER_SAMPLE = (8, 16, 20, 24)


def _reader(data: bytes) -> StreamBuffer:
    buf = StreamBuffer(None)
    buf.append(bytes(data))
    return buf


def _length_ms(duration: int, timescale: int) -> int:
    if not timescale:
        raise FormatError("timescale is zero")
    return int((duration / timescale) * 1000)


def descr_length(buffer: StreamBuffer) -> int:
    """Read an MPEG-4 descriptor length of up to four 7-bit bytes."""
    length = 0
    for _ in range(4):
        byte = buffer.u8()
        length = (length << 7) | (byte & 0x7F)
        if not byte & 0x80:
            break
    return length


def parse_ftyp(data: bytes, info: dict[str, Any]) -> None:
    """Parse an ``ftyp`` body: major brand, minor version and compatible brands."""
    if len(data) < 8 or (len(data) - 8) % 4:
        raise FormatError("bad ftyp box")
    info["major_brand"] = bytes(data[:4]).decode("latin-1")
    info["minor_version"] = int.from_bytes(data[4:8], "big")
    info["compatible_brands"] = [
        bytes(data[pos : pos + 4]).decode("latin-1") for pos in range(8, len(data), 4)
    ]


def parse_mvhd(data: bytes, info: dict[str, Any]) -> None:
    """Parse an ``mvhd`` body, storing the movie timescale and length."""
    buf = _reader(data)
    version = buf.u8()
    buf.consume(3)
    if version == 0:
        buf.consume(8)
        timescale = buf.u32()
        duration = buf.u32()
    elif version == 1:
        buf.consume(16)
        timescale = buf.u32()
        duration = buf.u64()
    else:
        raise FormatError(f"bad mvhd version {version}")
    info["mv_timescale"] = timescale
    info["song_length_ms"] = _length_ms(duration, timescale)


def parse_tkhd(data: bytes, timescale: int) -> dict[str, Any]:
    """Parse a ``tkhd`` body into a new track dictionary."""
    buf = _reader(data)
    version = buf.u8()
    buf.consume(3)
    if version == 0:
        buf.consume(8)
        track_id = buf.u32()
        buf.consume(4)
        duration = buf.u32()
    elif version == 1:
        buf.consume(16)
        track_id = buf.u32()
        buf.consume(4)
        duration = buf.u64()
    else:
        raise FormatError(f"bad tkhd version {version}")

    track: dict[str, Any] = {"id": track_id, "duration": _length_ms(duration, timescale)}

    # reserved, layer, alternate group, volume, reserved, matrix
    buf.consume(52)
    width = buf.u16() + buf.u16() / 65536.0
    if width > 0:
        track["width"] = width
    height = buf.u16() + buf.u16() / 65536.0
    if height > 0:
        track["height"] = height
    return track


def parse_mdhd(data: bytes, info: dict[str, Any]) -> int:
    """Parse an ``mdhd`` body; store the sample rate and return it."""
    buf = _reader(data)
    version = buf.u8()
    buf.consume(3)
    if version == 0:
        buf.consume(8)
        timescale = buf.u32()
        read_duration = buf.u32
    elif version == 1:
        buf.consume(16)
        timescale = buf.u32()
        read_duration = buf.u64
    else:
        raise FormatError(f"bad mdhd version {version}")
    info["samplerate"] = timescale
    if "song_length_ms" not in info:
        info["song_length_ms"] = _length_ms(read_duration(), timescale)
    return timescale


def parse_hdlr(data: bytes, track: dict[str, Any] | None) -> None:
    """Parse an ``hdlr`` body into the current track."""
    if track is None:
        raise FormatError("hdlr box outside of a track")
    buf = _reader(data)
    buf.consume(8)  # version, flags, pre_defined
    track["handler_type"] = buf.read(4).decode("latin-1")
    buf.consume(12)
    name = buf.read(len(buf)).split(b"\0", 1)[0]
    track["handler_name"] = name.decode("utf-8", "replace")


def parse_sample_entry(data: bytes, track: dict[str, Any] | None, encoding: str) -> int:
    """Parse the 28 fixed bytes of an ``mp4a`` or ``alac`` sample entry; return the channels."""
    if track is None:
        raise FormatError(f"{encoding} box outside of a track")
    buf = _reader(data)
    if not buf.fill(28):
        raise FormatError(f"{encoding} box too short")
    track["encoding"] = encoding
    buf.consume(16)
    channels = buf.u16()
    track["channels"] = channels
    track["bits_per_sample"] = buf.u16()
    return channels


def _read_samplerate(buf: StreamBuffer) -> tuple[int, int]:
    """Return ``(samplerate, bits_used)``."""
    index = buf.bits(4)
    if index == 0xF:
        return buf.bits(24), 28
    return table_samplerate(index), 4


def parse_esds(data: bytes, track: dict[str, Any] | None, info: dict[str, Any]) -> None:
    """Parse an ``esds`` body into the current track and ``info``.

    The average bitrate of every track is summed in ``info["avg_bitrate"]``.
    """
    if track is None:
        raise FormatError("esds box outside of a track")
    buf = _reader(data)
    buf.consume(4)

    if buf.u8() == 0x03:
        if descr_length(buf) < 5 + 15:
            raise FormatError("ES descriptor too short")
        buf.consume(3)
    else:
        buf.consume(2)

    if buf.u8() != 0x04:
        raise FormatError("missing decoder config descriptor")
    if descr_length(buf) < 13:
        raise FormatError("decoder config descriptor too short")

    track["audio_type"] = buf.u8()
    buf.consume(4)
    track["max_bitrate"] = buf.u32()

    avg_bitrate = buf.u32()
    if avg_bitrate:
        info["avg_bitrate"] = avg_bitrate + info.get("avg_bitrate", 0)

    if buf.u8() != 0x05:
        raise FormatError("missing decoder specific info")

    remaining = descr_length(buf) * 8
    if remaining > 0:
        aot = buf.bits(5)
        remaining -= 5
        if aot == 0x1F:
            aot = 32 + buf.bits(6)
            remaining -= 6

        samplerate, used = _read_samplerate(buf)
        remaining -= used

        channels = buf.bits(4)
        track["channels"] = channels
        remaining -= 4

        if aot == AacObjectType.SLS:
            bps = buf.bits(3)
            remaining -= 3
            if bps >= len(_BITS_PER_SAMPLE):
                raise FormatError(f"invalid SLS bits per sample index {bps}")
            track["bits_per_sample"] = _BITS_PER_SAMPLE[bps]
        elif aot in (AacObjectType.HE, AacObjectType.PS):
            samplerate, used = _read_samplerate(buf)
            remaining -= used

        if remaining < 0:
            raise FormatError("decoder specific info too short")

        track["samplerate"] = samplerate
        track["audio_object_type"] = aot
        buf.bits(remaining)

    if buf.u8() != 0x06:
        raise FormatError("missing SL config descriptor")
    descr_length(buf)
    if buf.u8() != 0x02:
        raise FormatError("bad SL config value")