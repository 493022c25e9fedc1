"""Metadata scanner for Musepack (SV7 and SV8) files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .buffer import FormatError, Source, StreamBuffer, file_size, open_source
from .ogg import _id3v2_size

log = logging.getLogger(__name__)

MPC_BLOCK_SIZE = 1024
MPC_OLD_GAIN_REF = 64.82

SAMPLE_FREQS = (44100, 48000, 37800, 32000)

_NA = "n.a."
_PROFILE_NAMES = (
    _NA,
    "Unstable/Experimental",
    _NA,
    _NA,
    _NA,
    "below Telephone (q=0)",
    "below Telephone (q=1)",
    "Telephone (q=2)",
    "Thumb (q=3)",
    "Radio (q=4)",
    "Standard (q=5)",
    "Extreme (q=6)",
    "Insane (q=7)",
    "BrainDead (q=8)",
    "above BrainDead (q=9)",
    "above BrainDead (q=10)",
)

# The header is followed by this many bytes before the audio is counted.
_HEADER_SPAN = 6 * 4
_MIN_HEADER = 128


@dataclass
class _StreamInfo:
    stream_version: int = 0
    sample_freq: int = 0
    channels: int = 0
    frames: int = 0
    pcm_samples: int = 0
    beg_silence: int = 0
    max_band: int = 0
    ms: int = 0
    intensity_stereo: int = 0
    block_pwr: int = 0
    profile: int = 0
    profile_name: str | None = None
    gain_title: int = 0
    gain_album: int = 0
    peak_title: int = 0
    peak_album: int = 0
    is_true_gapless: int = 0
    last_frame_samples: int = 0
    encoder_version: int = 0
    encoder: str = ""


def profile_name(profile: int) -> str:
    """Name of a Musepack quality profile number (0..15)."""
    if 0 <= profile < len(_PROFILE_NAMES):
        return _PROFILE_NAMES[profile]
    return _NA


def encoder_string(encoder_version: int, stream_version: int) -> str:
    """Human-readable description of the encoder that produced a stream."""
    ver = encoder_version
    if stream_version >= 8:
        ver = (encoder_version >> 24) * 100 + ((encoder_version >> 16) & 0xFF)

    if ver <= 116:
        if ver == 0:
            return "Buschmann 1.7.0...9, Klemm 0.90...1.05"
        kind = ver % 10
        if kind == 0:
            return f"Release {ver // 100}.{ver // 10 % 10}"
        if kind in (2, 4, 6, 8):
            return f"Beta {ver // 100}.{ver % 100:02d}"
        return f"--Alpha-- {ver // 100}.{ver % 100:02d}"

    major = encoder_version >> 24
    minor = (encoder_version >> 16) & 0xFF
    build = (encoder_version >> 8) & 0xFF
    label = "--Unstable--" if minor & 1 else "--Stable--"
    return f"{label} {major}.{minor}.{build}"


def read_size(buffer: StreamBuffer) -> tuple[int, int]:
    """Read a variable-length SV8 size; return ``(size, bytes_used)``."""
    size = 0
    used = 0
    while True:
        byte = buffer.u8()
        size = (size << 7) | (byte & 0x7F)
        used += 1
        if not byte & 0x80:
            return size, used


def _int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value >= 0x8000 else value


def _reader(data: bytes) -> StreamBuffer:
    buf = StreamBuffer(None)
    buf.append(data)
    return buf


def _parse_sh(block: bytes, si: _StreamInfo) -> None:
    r = _reader(block)
    r.consume(4)  # CRC
    si.stream_version = r.u8()
    si.pcm_samples, _ = read_size(r)
    si.beg_silence, _ = read_size(r)
    si.is_true_gapless = 1
    b = r.read(2)
    index = (b[0] & 0xE0) >> 5
    if index >= len(SAMPLE_FREQS):
        raise FormatError(f"Musepack: invalid sample frequency index {index}")
    si.sample_freq = SAMPLE_FREQS[index]
    si.max_band = (b[0] & 0x1F) + 1
    si.channels = ((b[1] & 0xF0) >> 4) + 1
    si.ms = (b[1] & 0x8) >> 3
    si.block_pwr = (b[1] & 0x7) * 2


def _parse_rg(block: bytes, si: _StreamInfo) -> None:
    r = _reader(block)
    if r.u8() != 1:
        return
    si.gain_title = _int16(r.u16())
    si.peak_title = r.u16()
    si.gain_album = _int16(r.u16())
    si.peak_album = r.u16()


def _parse_ei(block: bytes, si: _StreamInfo) -> None:
    r = _reader(block)
    fprofile = ((r.u8() & 0xFE) >> 1) / 8.0
    si.profile_name = profile_name(int(fprofile))
    major = r.u8()
    minor = r.u8()
    build = r.u8()
    si.encoder_version = (major << 24) | (minor << 16) | (build << 8)
    si.encoder = encoder_string(si.encoder_version, si.stream_version)


def _read_sv8(buf: StreamBuffer, si: _StreamInfo) -> None:
    handlers = {b"SH": _parse_sh, b"RG": _parse_rg, b"EI": _parse_ei}
    while True:
        head = buf.peek(2)
        if len(head) < 2 or head == b"AP":
            return
        block_type = buf.read(2)
        size, used = read_size(buf)
        size -= 2 + used
        if size < 0:
            raise FormatError(f"Musepack: invalid size for {block_type!r} block")
        if not buf.fill(size):
            raise FormatError(f"Musepack: truncated {block_type!r} block")
        handler = handlers.get(block_type)
        if handler is None:
            return
        handler(buf.read(size), si)


def _convert_old_gain(gain: int) -> int:
    if gain == 0:
        return 0
    value = int((MPC_OLD_GAIN_REF - gain / 100.0) * 256.0 + 0.5)
    if value >= (1 << 16) or value < 0:
        value = 0
    return _int16(value)


def _read_sv7(buf: StreamBuffer, si: _StreamInfo) -> None:
    if si.stream_version > 0x71:
        raise FormatError(f"Musepack: unsupported stream version 0x{si.stream_version:x}")

    si.frames = buf.u32le()
    flags = buf.read(4)
    si.intensity_stereo = (flags[3] >> 7) & 0x1
    si.ms = (flags[3] >> 6) & 0x1
    si.max_band = flags[3] & 0x3F
    si.profile = (flags[2] >> 4) & 0xF
    si.profile_name = profile_name(si.profile)
    si.sample_freq = SAMPLE_FREQS[flags[2] & 0x3]

    si.peak_title = buf.u16le()
    si.gain_title = _convert_old_gain(_int16(buf.u16le()))
    si.peak_album = buf.u16le()
    si.gain_album = _convert_old_gain(_int16(buf.u16le()))

    gapless = buf.read(4)
    si.is_true_gapless = (gapless[3] >> 7) & 0x1
    si.last_frame_samples = ((gapless[3] >> 1) & 0x7F) | ((gapless[2] >> 4) & 0xF)

    si.encoder_version = buf.peek(4)[3]
    si.channels = 2
    si.encoder = encoder_string(si.encoder_version, si.stream_version)


def _gain_text(gain: int) -> str:
    value = 0.0 if gain == 0 else MPC_OLD_GAIN_REF - gain / 256.0
    return f"{value:2.2f} dB"


def scan_mpc(source: Source) -> dict[str, Any]:
    """Scan a Musepack file and return its stream information."""
    with open_source(source) as stream:
        total_size = file_size(stream)
        stream.seek(0)
        header_position = _id3v2_size(stream.read(10)) or 0
        stream.seek(header_position)

        buf = StreamBuffer(stream, MPC_BLOCK_SIZE)
        if not buf.fill(_MIN_HEADER):
            raise FormatError("Musepack: file too short")

        tag_offset = header_position + _HEADER_SPAN
        si = _StreamInfo()

        head = buf.peek(4)
        if head[:3] == b"MP+":
            buf.consume(3)
            si.stream_version = buf.u8()
            if si.stream_version & 15 != 7:
                raise FormatError(f"Musepack: unsupported stream version 0x{si.stream_version:x}")
            _read_sv7(buf, si)
        elif head == b"MPCK":
            buf.consume(4)
            _read_sv8(buf, si)
        else:
            raise FormatError("Not a Musepack SV7 or SV8 file")

    if not si.sample_freq:
        raise FormatError("Musepack: missing stream header")

    # Estimate; the exact value would need decoding the last frame.
    if not si.pcm_samples:
        si.pcm_samples = max(0, 1152 * si.frames - 576)

    total_seconds = si.pcm_samples / si.sample_freq
    audio_size = total_size - tag_offset

    info: dict[str, Any] = {
        "stream_version": si.stream_version,
        "samplerate": si.sample_freq,
        "channels": si.channels,
        "song_length_ms": int(total_seconds * 1000),
        "bitrate": int(8 * audio_size / total_seconds) if total_seconds else 0,
        "audio_offset": tag_offset,
        "audio_size": audio_size,
        "file_size": total_size,
        "encoder": si.encoder,
    }
    if si.profile_name:
        info["profile"] = si.profile_name
    info["gapless"] = si.is_true_gapless
    info["track_gain"] = _gain_text(si.gain_title)
    info["album_gain"] = _gain_text(si.gain_album)
    return info