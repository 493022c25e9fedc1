"""Metadata scanner and frame seeker for Ogg Opus files."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO

from .buffer import FormatError, Source, StreamBuffer, bitrate, file_size, open_source
from .ogg import (
    OGG_BLOCK_SIZE,
    OGG_HEADER_SIZE,
    _id3v2_size,
    binary_search_sample,
    parse_vorbis_comments,
)

log = logging.getLogger(__name__)

OPUS_SAMPLERATE = 48000

# Size of each window read while looking for the last page.
_TAIL_SIZE = 8500


def _parse_head(header: bytes, info: dict[str, Any]) -> int:
    """Store the OpusHead fields in ``info`` and return the pre-skip."""
    version = header[0]
    channels = header[1]
    preskip = int.from_bytes(header[2:4], "little")
    input_samplerate = int.from_bytes(header[4:8], "little")

    info["version"] = version
    info["channels"] = channels
    info["stereo"] = 1 if channels == 2 else 0
    info["preskip"] = preskip
    info["samplerate"] = OPUS_SAMPLERATE
    info["input_samplerate"] = input_samplerate
    return preskip


def _last_page(window: bytes) -> tuple[int, int] | None:
    """Return ``(granule_pos, serial)`` of the last complete page header in ``window``."""
    last = None
    pos = window.find(b"OggS")
    while pos >= 0 and pos + OGG_HEADER_SIZE <= len(window):
        granule_pos = int.from_bytes(window[pos + 6 : pos + 14], "little")
        serial = int.from_bytes(window[pos + 14 : pos + 18], "little")
        last = (granule_pos, serial)
        pos = window.find(b"OggS", pos + 14)
    return last


def _parse(stream: BinaryIO, seeking: bool) -> tuple[dict[str, Any], dict[str, Any]]:
    info: dict[str, Any] = {}
    tags: dict[str, Any] = {}

    size = file_size(stream)
    info["file_size"] = size

    buf = StreamBuffer(stream, OGG_BLOCK_SIZE)
    if not buf.fill(10):
        raise FormatError("Not an Ogg file: too short")

    audio_offset = 0
    id3_size = _id3v2_size(buf.peek(10))
    if id3_size is not None:
        log.debug("Skipping ID3v2 tag of size %d", id3_size)
        buf.clear()
        stream.seek(id3_size)
        audio_offset = id3_size

    packet = StreamBuffer(None)
    packets = streams = 0
    serialno = 0
    samplerate = preskip = 0

    while True:
        if not buf.fill(OGG_HEADER_SIZE):
            raise FormatError("Premature end of file")
        header = buf.read(OGG_HEADER_SIZE)
        audio_offset += OGG_HEADER_SIZE

        if header[:4] != b"OggS":
            raise FormatError("Not an Ogg file (bad OggS header)")

        header_type = header[5]
        granule_pos = int.from_bytes(header[6:14], "little")
        serialno = int.from_bytes(header[14:18], "little")

        if header_type & 0x02:
            streams += 1
        if not header_type & 0x01:
            packets += 1

        # Past the header packets with nothing left to parse.
        if packets > 2 * streams and not len(packet):
            break

        num_segments = header[26]
        page_len = header[27]
        if num_segments > 1:
            if not buf.fill(num_segments):
                raise FormatError("Premature end of file")
            page_len += sum(buf.read(num_segments - 1))
            audio_offset += num_segments - 1

        if not buf.fill(page_len):
            raise FormatError("Premature end of file")

        audio_offset += page_len
        packet.append(buf.read(page_len))

        # Header pages complete with a zero granule position; keep collecting.
        if granule_pos != 0:
            continue

        if packet.u8() != ord("O"):
            continue

        magic = packet.peek(7)
        if magic == b"pusTags":
            packet.consume(7)
            if not seeking:
                parse_vorbis_comments(packet.read(len(packet)), tags, False)
        elif magic == b"pusHead":
            packet.consume(7)
            if len(packet) < 11:
                raise FormatError("Not an Opus file (opus header too short)")
            preskip = _parse_head(packet.read(11), info)
            samplerate = OPUS_SAMPLERATE
        else:
            raise FormatError("Not an Opus file (bad opus header)")
        packet.clear()

    # The header of the first audio page was already counted.
    audio_offset -= OGG_HEADER_SIZE
    info["audio_offset"] = audio_offset
    audio_size = size - audio_offset
    info["audio_size"] = audio_size
    info["serial_number"] = serialno

    seek_position = size - _TAIL_SIZE
    while True:
        seek_position = max(seek_position, audio_offset)
        stream.seek(seek_position)
        window = stream.read(_TAIL_SIZE)
        if len(window) < OGG_HEADER_SIZE:
            raise FormatError("Premature end of file")

        last = _last_page(window)
        if last is not None:
            granule_pos, final_serialno = last
            if granule_pos and samplerate and final_serialno == serialno:
                length = int((max(0, granule_pos - preskip) / samplerate) * 1000)
                info["song_length_ms"] = length
                info["bitrate_average"] = bitrate(audio_size, length)
                break

        if seek_position == audio_offset:
            log.debug("Last page not found, length unknown")
            break
        # Overlap windows so a page header split across them is not missed.
        seek_position -= _TAIL_SIZE - OGG_HEADER_SIZE

    return info, tags


def scan_opus(source: Source) -> tuple[dict[str, Any], dict[str, Any]]:
    """Scan an Ogg Opus file and return ``(info, tags)``."""
    with open_source(source) as stream:
        return _parse(stream, False)


def find_opus_frame(source: Source, offset: int) -> int:
    """Return the file offset of the page playing at ``offset`` milliseconds, or -1."""
    with open_source(source) as stream:
        info, _ = _parse(stream, True)
        if offset >= info.get("song_length_ms", 0):
            return -1
        samplerate = info["samplerate"]
        target_sample = max(0, int((offset - 1) / 10)) * (samplerate // 100)
        log.debug("Looking for target sample %d", target_sample)
        return binary_search_sample(stream, info, target_sample)