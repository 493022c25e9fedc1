"""Metadata scanner for RIFF/WAVE and AIFF/AIFC files."""

from __future__ import annotations

import io
import logging
from typing import Any

from .buffer import DEFAULT_BLOCK_SIZE, FormatError, Source, StreamBuffer, file_size, open_source

log = logging.getLogger(__name__)

WAV_BLOCK_SIZE = DEFAULT_BLOCK_SIZE

_ID3_CHUNKS = {"id3 ", "ID3 ", "ID32"}
_SILENT_SKIP = {"SAUR", "otom", "PAD "}


def _reader(data: bytes) -> StreamBuffer:
    return StreamBuffer(io.BytesIO(data), max(1, len(data)))


def _set_dlna(info: dict[str, Any], channels: int, bits_per_sample: int, samplerate: float) -> None:
    if channels <= 2 and bits_per_sample == 16:
        if samplerate in (44100, 48000):
            info["dlna_profile"] = "LPCM"
        elif 8000 <= samplerate <= 32000:
            info["dlna_profile"] = "LPCM_low"


def scan_wav(source: Source) -> tuple[dict[str, Any], dict[str, Any]]:
    """Scan a WAV or AIFF file and return ``(info, tags)``."""
    info: dict[str, Any] = {}
    tags: dict[str, Any] = {}
    with open_source(source) as stream:
        size = file_size(stream)
        buf = StreamBuffer(stream, WAV_BLOCK_SIZE)
        if not buf.fill(12):
            raise FormatError("Invalid WAV file: too short")

        magic = buf.read(4)
        if magic == b"RIFF":
            buf.u32le()
            if buf.read(4) != b"WAVE":
                raise FormatError("Invalid WAV file: missing WAVE header")
            info["file_size"] = size
            _walk_wav(stream, buf, size, info, tags)
        elif magic == b"FORM":
            buf.u32()
            form = buf.read(4)
            if form[:3] != b"AIF" or form[3:] not in (b"F", b"C"):
                raise FormatError("Invalid AIFF file: missing AIFF header")
            info["file_size"] = size
            _walk_aiff(stream, buf, size, info, tags)
        else:
            raise FormatError("Invalid WAV file: missing RIFF header")
    return info, tags


def _walk_wav(stream, buf: StreamBuffer, size: int, info: dict, tags: dict) -> None:
    offset = 12
    while offset < size - 8:
        if not buf.fill(8):
            return
        chunk_id = buf.read(4).decode("latin-1")
        chunk_size = buf.u32le()
        if chunk_size % 2:
            chunk_size += 1
        offset += 8

        if chunk_id == "data":
            info["audio_offset"] = offset
            info["audio_size"] = chunk_size
            byte_rate = info.get("bitrate", 0) / 8
            if "song_length_ms" not in info and "bitrate" in info and byte_rate:
                info["song_length_ms"] = int((chunk_size / byte_rate) * 1000)
            if chunk_size > size - offset:
                return
            if size > offset + chunk_size:
                stream.seek(offset + chunk_size)
            buf.clear()
        elif chunk_id in _ID3_CHUNKS:
            stream.seek(offset + chunk_size)
            buf.clear()
        else:
            if chunk_size > size - offset:
                return
            if not buf.fill(chunk_size):
                return
            data = buf.read(chunk_size)
            if chunk_id == "fmt ":
                parse_fmt(data, info)
            elif chunk_id == "LIST":
                parse_list(data, tags)
            elif chunk_id == "PEAK":
                parse_peak(data, info, False)
            elif chunk_id == "fact":
                samplerate = info.get("samplerate")
                if chunk_size == 4 and samplerate:
                    num_samples = int.from_bytes(data, "little")
                    info["song_length_ms"] = (num_samples * 1000) // samplerate
            elif chunk_id not in _SILENT_SKIP:
                log.warning("Unhandled WAV chunk %s size %d (skipped)", chunk_id, chunk_size)
        offset += chunk_size


def _walk_aiff(stream, buf: StreamBuffer, size: int, info: dict, tags: dict) -> None:
    offset = 12
    while offset < size - 8:
        if not buf.fill(8):
            return
        chunk_id = buf.read(4).decode("latin-1")
        chunk_size = buf.u32()
        if chunk_size >= 1 << 31:
            chunk_size -= 1 << 32
        if chunk_size % 2:
            chunk_size += 1
        offset += 8

        if chunk_id == "SSND":
            if not buf.fill(8):
                return
            ssnd_offset = buf.u32()
            buf.u32()  # block size
            info["audio_offset"] = offset + 8 + ssnd_offset
            info["audio_size"] = chunk_size - 8 - ssnd_offset
            if size > offset + chunk_size:
                stream.seek(offset + chunk_size)
            buf.clear()
        elif chunk_id in _ID3_CHUNKS:
            # Some files carry the ID3 chunk size in the wrong byte order.
            if chunk_size < 0 or offset + chunk_size > size:
                break
            stream.seek(offset + chunk_size)
            buf.clear()
        else:
            if chunk_size < 0 or chunk_size > size - offset:
                return
            if not buf.fill(chunk_size):
                return
            data = buf.read(chunk_size)
            if chunk_id == "COMM":
                parse_aiff_comm(data, info)
            elif chunk_id == "PEAK":
                parse_peak(data, info, True)
            else:
                log.warning("Unhandled AIFF chunk %s size %d (skipped)", chunk_id, chunk_size)
        offset += chunk_size


def parse_fmt(data: bytes, info: dict[str, Any]) -> None:
    """Parse the body of a WAV ``fmt `` chunk into ``info``."""
    buf = _reader(data)
    info["format"] = buf.u16le()
    channels = buf.u16le()
    info["channels"] = channels
    samplerate = buf.u32le()
    info["samplerate"] = samplerate
    info["bitrate"] = buf.u32le() * 8
    info["block_align"] = buf.u16le()
    bits_per_sample = buf.u16le()
    info["bits_per_sample"] = bits_per_sample
    _set_dlna(info, channels, bits_per_sample, samplerate)


def parse_list(data: bytes, tags: dict[str, Any]) -> None:
    """Parse the body of a WAV ``LIST`` chunk, storing INFO entries in ``tags``."""
    chunk_size = len(data)
    type_id = data[:4].decode("latin-1")
    if type_id != "INFO":
        log.warning("Unhandled LIST type %s", type_id)
        return

    pos = 4
    while pos < chunk_size:
        if pos + 8 > chunk_size:
            log.warning("Truncated entry in WAV LIST INFO chunk")
            break
        key = data[pos : pos + 4].decode("latin-1")
        pos += 4
        length = int.from_bytes(data[pos : pos + 4], "little")
        if length > chunk_size - pos:
            log.warning(
                "Invalid data in WAV LIST INFO chunk (len %d > chunk_size - pos %d)",
                length,
                chunk_size - pos,
            )
            break
        pos += 4
        raw = data[pos : pos + length]
        pos += length
        tags[key] = raw.rstrip(b"\0").decode("latin-1")
        if length % 2:
            pos += 1


def parse_peak(data: bytes, info: dict[str, Any], big_endian: bool) -> None:
    """Parse a ``PEAK`` chunk, one peak per channel already recorded in ``info``."""
    buf = _reader(data)
    buf.consume(8)  # version and timestamp
    peaks = []
    for _ in range(info.get("channels", 0)):
        value = buf.f32() if big_endian else buf.f32le()
        position = buf.u32() if big_endian else buf.u32le()
        peaks.append({"value": value, "position": position})
    info["peak"] = peaks


def parse_aiff_comm(data: bytes, info: dict[str, Any]) -> None:
    """Parse the body of an AIFF ``COMM`` chunk into ``info``."""
    chunk_size = len(data)
    buf = _reader(data)
    channels = buf.u16()
    frames = buf.u32()
    bits_per_sample = buf.u16()
    samplerate = buf.ieee_extended()

    info["channels"] = channels
    info["bits_per_sample"] = bits_per_sample
    info["samplerate"] = int(samplerate)
    info["bitrate"] = int(samplerate * channels * bits_per_sample)
    if samplerate > 0:
        info["song_length_ms"] = int((frames / samplerate) * 1000)
    info["block_align"] = channels * bits_per_sample // 8

    if chunk_size > 18:
        info["compression_type"] = buf.read(4).decode("latin-1")
        info["compression_name"] = data[22:chunk_size].decode("latin-1")

    _set_dlna(info, channels, bits_per_sample, samplerate)