"""Parsing of iTunes-style metadata items held in an MP4 ``ilst`` box."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from .buffer import FormatError

log = logging.getLogger(__name__)

# Flag values of data boxes that hold integers or raw bytes rather than text.
_BINARY_FLAGS = (0, 21)
_DATA_HEADER = 8  # version/flags + reserved


def add_tag(tags: dict[str, Any], key: str, value: Any) -> None:
    """Store ``value`` under ``key``, collecting repeated keys in a list."""
    if key not in tags:
        tags[key] = value
    elif isinstance(tags[key], list):
        tags[key].append(value)
    else:
        tags[key] = [tags[key], value]


def _decode_text(raw: bytes) -> str | bytes:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def _flags(data: bytes) -> int:
    if len(data) < _DATA_HEADER:
        raise FormatError(f"ilst data box too short ({len(data)} bytes)")
    return int.from_bytes(data[:4], "big")


def parse_ilst_data(data: bytes, key: str, tags: dict[str, Any]) -> None:
    """Parse the payload of a ``data`` box (flags onward) and store it under ``key``.

    Genre codes (``GNRE``) are resolved by :func:`parse_ilst`.
    """
    flags = _flags(data)
    body = bytes(data[_DATA_HEADER:])

    if flags in _BINARY_FLAGS:
        if key in ("TRKN", "DISK"):
            if len(body) < 4:
                raise FormatError(f"{key} value too short")
            num = int.from_bytes(body[2:4], "big")
            total = 0
            if len(data) > 12:
                if len(body) < 6:
                    raise FormatError(f"{key} value too short")
                total = int.from_bytes(body[4:6], "big")
            if total:
                tags[key] = f"{num}/{total}"
            elif num:
                tags[key] = num
            return
        value: Any = int.from_bytes(body, "big") if len(body) in (1, 2, 4, 8) else body
    else:
        value = _decode_text(body)
        if key.startswith("\xa9"):
            key = key[1:]

    add_tag(tags, key, value)


def _store_value(
    payload: bytes,
    key: str,
    tags: dict[str, Any],
    cover_offset: int,
    no_artwork: bool,
    genres: Sequence[str],
) -> None:
    if key == "COVR" and no_artwork:
        tags["COVR_offset"] = cover_offset
        add_tag(tags, "COVR", max(0, len(payload) - _DATA_HEADER))
        return
    if key == "GNRE" and _flags(payload) in _BINARY_FLAGS:
        if len(payload) < _DATA_HEADER + 2:
            raise FormatError("GNRE value too short")
        genre_num = int.from_bytes(payload[8:10], "big")
        if 0 < genre_num <= len(genres):
            tags[key] = genres[genre_num - 1]
        return
    parse_ilst_data(payload, key, tags)


def _parse_item(
    item: bytes,
    key: str,
    tags: dict[str, Any],
    cover_offset: int,
    no_artwork: bool,
    genres: Sequence[str],
) -> None:
    if len(item) < 8:
        raise FormatError(f"ilst item {key!r} too short")
    data_size = int.from_bytes(item[:4], "big")
    if data_size > len(item):
        log.debug("invalid data size %d for %r, skipping value", data_size, key)
        return
    if item[4:8] != b"data":
        raise FormatError(f"ilst item {key!r} has no data box")
    if data_size < 8:
        raise FormatError(f"ilst item {key!r} has an invalid data box size")
    _store_value(item[8:data_size], key, tags, cover_offset, no_artwork, genres)


def _parse_custom(
    item: bytes,
    tags: dict[str, Any],
    cover_offset: int,
    no_artwork: bool,
    genres: Sequence[str],
) -> None:
    name: str | None = None
    pos = 0
    while pos < len(item):
        if len(item) - pos < 8:
            raise FormatError("truncated box in custom ilst item")
        size = int.from_bytes(item[pos : pos + 4], "big")
        box_type = item[pos + 4 : pos + 8]
        if size < 8 or pos + size > len(item):
            raise FormatError(f"invalid box size {size} in custom ilst item")
        body = item[pos + 8 : pos + size]
        if box_type == b"name":
            if len(body) < 4:
                raise FormatError("custom ilst name box too short")
            name = bytes(body[4:]).upper().decode("utf-8", "replace")
        elif box_type == b"data":
            if name is None:
                raise FormatError("custom ilst data box before its name")
            _store_value(body, name, tags, cover_offset, no_artwork, genres)
        pos += size


def parse_ilst(
    data: bytes,
    tags: dict[str, Any],
    box_offset: int = 0,
    no_artwork: bool = False,
    genres: Sequence[str] = (),
) -> None:
    """Parse the payload of an ``ilst`` box into ``tags``.

    ``box_offset`` is the file offset of the first byte of the payload; it is
    used to report where artwork starts when ``no_artwork`` is set, in which
    case only the artwork length is stored. ``genres`` maps 1-based genre
    codes to names.
    """
    pos = 0
    while pos < len(data):
        if len(data) - pos < 8:
            raise FormatError("truncated ilst item header")
        size = int.from_bytes(data[pos : pos + 4], "big")
        if size < 8 or pos + size > len(data):
            raise FormatError(f"invalid ilst item size {size}")
        raw_key = bytes(data[pos + 4 : pos + 8]).upper()
        item = data[pos + 8 : pos + size]
        cover_offset = box_offset + pos + 24
        if raw_key == b"----":
            _parse_custom(item, tags, cover_offset, no_artwork, genres)
        else:
            _parse_item(item, raw_key.decode("latin-1"), tags, cover_offset, no_artwork, genres)
        pos += size