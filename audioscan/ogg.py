"""Metadata scanner and frame seeker for Ogg Vorbis files."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import struct
from typing import Any, BinaryIO

from .buffer import FormatError, Source, StreamBuffer, bitrate, file_size, open_source

log = logging.getLogger(__name__)

OGG_BLOCK_SIZE = 8192
OGG_HEADER_SIZE = 28

_NO_GRANULE = 0xFFFFFFFFFFFFFFFF
_PICTURE_PREFIX = b"METADATA_BLOCK_PICTURE="
_COVERART_PREFIX = b"COVERART="


def _no_artwork() -> bool:
    return os.environ.get("AUDIO_SCAN_NO_ARTWORK", "") not in ("", "0")


def _id3v2_size(header: bytes) -> int | None:
    """Return the full size of a leading ID3v2 tag, or None if there is none."""
    if len(header) < 10 or header[:3] != b"ID3":
        return None
    if header[3] >= 0xFF or header[4] >= 0xFF or any(b >= 0x80 for b in header[6:10]):
        return None
    size = 10 + (header[6] << 21) + (header[7] << 14) + (header[8] << 7) + header[9]
    if header[5] & 0x10:
        size += 10  # footer present
    return size


def _decode_picture(raw: bytes) -> dict[str, Any] | None:
    """Decode a FLAC picture block, or return None if it is malformed."""
    buf = StreamBuffer(None)
    buf.append(raw)
    try:
        picture_type = buf.u32()
        mime_type = buf.read(buf.u32()).decode("latin-1")
        description = buf.read(buf.u32()).decode("utf-8", "replace")
        width = buf.u32()
        height = buf.u32()
        depth = buf.u32()
        color_index = buf.u32()
        image = buf.read(buf.u32())
    except FormatError:
        return None
    return {
        "picture_type": picture_type,
        "mime_type": mime_type,
        "description": description,
        "width": width,
        "height": height,
        "depth": depth,
        "color_index": color_index,
        "image_data": len(image) if _no_artwork() else image,
    }


def _b64decode(text: bytes) -> bytes | None:
    cleaned = b"".join(text.split())
    cleaned += b"=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned)
    except (binascii.Error, ValueError):
        return None


def split_vorbis_comment(comment: str | bytes, tags: dict[str, Any]) -> None:
    """Store a ``KEY=value`` comment under the upper-cased key, collecting repeats in a list."""
    if isinstance(comment, (bytes, bytearray)):
        comment = bytes(comment).decode("utf-8", "replace")
    key, sep, value = comment.partition("=")
    if not sep:
        log.warning("Vorbis comment without '=': %r", comment)
        return
    key = key.upper()
    if key not in tags:
        tags[key] = value
    elif isinstance(tags[key], list):
        tags[key].append(value)
    else:
        tags[key] = [tags[key], value]


def parse_vorbis_comments(data: bytes, tags: dict[str, Any], has_framing: bool) -> None:
    """Parse a Vorbis comment block (without its packet header) into ``tags``."""
    buf = StreamBuffer(None)
    buf.append(data)

    tags["VENDOR"] = buf.read(buf.u32le()).decode("utf-8", "replace")
    count = buf.u32le()

    for _ in range(count):
        if len(buf) < 4:
            return
        length = buf.u32le()
        if length > len(buf):
            log.debug("invalid Vorbis comment length: %d", length)
            return
        comment = buf.read(length)

        if comment[: len(_PICTURE_PREFIX)].upper() == _PICTURE_PREFIX:
            raw = _b64decode(comment[len(_PICTURE_PREFIX) :])
            picture = _decode_picture(raw) if raw is not None else None
            if picture is None:
                log.warning("Invalid Vorbis METADATA_BLOCK_PICTURE comment")
            else:
                tags.setdefault("ALLPICTURES", []).append(picture)
        elif comment[: len(_COVERART_PREFIX)].upper() == _COVERART_PREFIX:
            picture: dict[str, Any] = {
                "color_index": 0,
                "depth": 0,
                "description": "",
                "height": 0,
                "width": 0,
                "mime_type": "image/",
                "picture_type": 0,
            }
            if _no_artwork():
                picture["image_data"] = length - len(_COVERART_PREFIX)
            else:
                image = _b64decode(comment[len(_COVERART_PREFIX) :])
                if image is None:
                    log.warning("Invalid base64 data in COVERART comment")
                    image = b""
                picture["image_data"] = image
            tags.setdefault("ALLPICTURES", []).append(picture)
        else:
            split_vorbis_comment(comment, tags)

    if has_framing and len(buf):
        buf.consume(1)


def _store_nominal(info: dict[str, Any], audio_size: int, bitrate_nominal: int) -> None:
    if bitrate_nominal:
        info["song_length_ms"] = (audio_size * 8 // bitrate_nominal) * 1000
    else:
        info["song_length_ms"] = 0
    info["bitrate_average"] = bitrate_nominal


def _parse_identification(header: bytes, info: dict[str, Any]) -> tuple[int, int, int]:
    version, channels, samplerate, upper, nominal, lower, blocksizes = struct.unpack(
        "<iBIiIiB", header[:22]
    )
    info["version"] = version
    info["channels"] = channels
    info["stereo"] = 1 if channels == 2 else 0
    info["samplerate"] = samplerate
    info["bitrate_upper"] = upper
    info["bitrate_nominal"] = nominal
    info["bitrate_lower"] = lower
    blocksize_0 = 2 << ((blocksizes & 0xF0) >> 4)
    info["blocksize_0"] = blocksize_0
    info["blocksize_1"] = 2 << (blocksizes & 0x0F)
    return samplerate, nominal, blocksize_0


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

    vorbis = StreamBuffer(None)
    vorbis_type = 0
    packets = streams = 0
    serialno = 0
    samplerate = bitrate_nominal = blocksize_0 = 0

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
        if packets > 2 * streams and not len(vorbis):
            break

        # A positive granule position marks the first audio page.
        if granule_pos > 0 and granule_pos != _NO_GRANULE:
            if not seeking and len(vorbis):
                parse_vorbis_comments(vorbis.read(len(vorbis)), tags, True)
            vorbis.clear()
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
        vorbis.append(buf.read(page_len))

        if not vorbis_type:
            vorbis_type = vorbis.u8()
            if vorbis.peek(6) != b"vorbis":
                raise FormatError("Not a Vorbis file (bad vorbis header)")
            vorbis.consume(6)

        if vorbis_type == 1:
            if len(vorbis) < 23:
                raise FormatError("Not a Vorbis file (bad vorbis header)")
            samplerate, bitrate_nominal, blocksize_0 = _parse_identification(vorbis.read(23), info)
            vorbis.clear()
            vorbis_type = 0

    # The header of the first audio page was already counted.
    audio_offset -= OGG_HEADER_SIZE
    info["audio_offset"] = audio_offset
    audio_size = size - audio_offset
    info["audio_size"] = audio_size
    info["serial_number"] = serialno

    avg_buf_size = blocksize_0 * 2
    stream.seek(size - avg_buf_size if size > avg_buf_size else audio_offset)
    tail = stream.read(avg_buf_size)
    if not tail:
        raise FormatError("File too small. Probably corrupted.")

    sync = tail.find(b"OggS")
    if sync < 0 or len(tail) - sync < 18:
        _store_nominal(info, audio_size, bitrate_nominal)
        return info, tags

    granule_pos = int.from_bytes(tail[sync + 6 : sync + 14], "little")
    final_serialno = int.from_bytes(tail[sync + 14 : sync + 18], "little")

    if granule_pos and samplerate and serialno == final_serialno:
        length = int((granule_pos / samplerate) * 1000)
        info["song_length_ms"] = length
        info["bitrate_average"] = bitrate(audio_size, length)
    else:
        _store_nominal(info, audio_size, bitrate_nominal)

    return info, tags


def scan_ogg(source: Source) -> tuple[dict[str, Any], dict[str, Any]]:
    """Scan an Ogg Vorbis file and return ``(info, tags)``."""
    with open_source(source) as stream:
        return _parse(stream, False)


def binary_search_sample(stream: BinaryIO, info: dict[str, Any], target_sample: int) -> int:
    """Return the offset of the page holding ``target_sample``, or -1 if it cannot be found."""
    audio_offset = info["audio_offset"]
    size = info["file_size"]
    serialno = info["serial_number"]

    low, high = audio_offset, size
    frame_offset = -1
    granule_pos = 0

    while low <= high:
        mid = low + (high - low) // 2
        if mid > size - OGG_HEADER_SIZE:
            return -1

        stream.seek(mid)
        data = stream.read(OGG_BLOCK_SIZE * 2)
        if len(data) < OGG_HEADER_SIZE:
            return -1

        prev_frame_offset = frame_offset
        prev_granule_pos = granule_pos
        pos = 0
        # Two consecutive pages tell which samples the second one holds.
        while len(data) - pos >= 4:
            prev_frame_offset = frame_offset
            prev_granule_pos = granule_pos

            found = data.find(b"OggS", pos)
            if found < 0 or found + 18 > len(data):
                break

            frame_offset = mid + found
            granule_pos = int.from_bytes(data[found + 6 : found + 14], "little")
            current_serialno = int.from_bytes(data[found + 14 : found + 18], "little")
            pos = found + 14

            if current_serialno != serialno:
                log.debug("serial number changed to %x, aborting seek", current_serialno)
                return -1

            if granule_pos and prev_granule_pos:
                break

        if prev_granule_pos + 1 <= target_sample <= granule_pos:
            return frame_offset

        if target_sample < prev_granule_pos + 1:
            if prev_frame_offset == audio_offset:
                return prev_frame_offset
            high = mid - 1
        else:
            low = mid + 1

        frame_offset = -1
        granule_pos = 0

    return frame_offset


def find_ogg_frame(source: Source, offset: int) -> int:
    """Return the file offset of the page playing at ``offset`` milliseconds, or -1."""
    with open_source(source) as stream:
        info, _ = _parse(stream, True)
        if offset >= info.get("song_length_ms", 0):
            return -1
        samplerate = info["samplerate"]
        target_sample = max(0, int((offset - 1) / 10)) * (samplerate // 100)
        log.debug("Looking for target sample %d", target_sample)
        return binary_search_sample(stream, info, target_sample)