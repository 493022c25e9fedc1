import base64
import io
import struct

import pytest

from audioscan.buffer import FormatError, bitrate
from audioscan.ogg import (
    binary_search_sample,
    find_ogg_frame,
    parse_vorbis_comments,
    scan_ogg,
    split_vorbis_comment,
)

SERIAL = 0x1234


def page(payload, granule=0, serial=SERIAL, seq=0, header_type=0):
    lacing = [255] * (len(payload) // 255) + [len(payload) % 255]
    return (
        b"OggS"
        + bytes([0, header_type])
        + granule.to_bytes(8, "little")
        + serial.to_bytes(4, "little")
        + seq.to_bytes(4, "little")
        + b"\0\0\0\0"
        + bytes([len(lacing)])
        + bytes(lacing)
        + payload
    )


def ident(magic=b"vorbis", samplerate=44100, nominal=128000):
    body = struct.pack("<IBIiIiB", 0, 2, samplerate, 0, nominal, 0, 0xB8) + b"\x01"
    return b"\x01" + magic + body


def comment_block(vendor, comments, framing=True):
    out = len(vendor).to_bytes(4, "little") + vendor + len(comments).to_bytes(4, "little")
    for comment in comments:
        out += len(comment).to_bytes(4, "little") + comment
    if framing:
        out += b"\x01"
    return out


def build(audio, magic=b"vorbis", prefix=b""):
    """audio: list of (granule, payload_len, serial). Returns data, header_len, page offsets."""
    comments = comment_block(b"test vendor", [b"TITLE=Song", b"artist=A", b"ARTIST=B"])
    headers = page(ident(magic), header_type=2, seq=0) + page(
        b"\x03vorbis" + comments + b"\x05vorbis" + b"\0" * 10, seq=1
    )
    data = prefix + headers
    offsets = []
    for seq, (granule, length, serial) in enumerate(audio, start=2):
        offsets.append(len(data))
        data += page(b"\0" * length, granule=granule, serial=serial, seq=seq)
    return data, len(prefix) + len(headers), offsets


def two_second_file(final_serial=SERIAL):
    return build([(44100, 9000, SERIAL), (88200, 100, final_serial)])


def many_pages():
    return build([(4410 * (k + 1), 200, SERIAL) for k in range(60)])


def test_scan_reads_stream_info():
    data, header_len, _ = two_second_file()
    info, _ = scan_ogg(data)
    assert info["channels"] == 2
    assert info["stereo"] == 1
    assert info["samplerate"] == 44100
    assert info["bitrate_nominal"] == 128000
    assert info["file_size"] == len(data)
    assert info["audio_offset"] == header_len
    assert info["audio_size"] == len(data) - header_len
    assert info["serial_number"] == SERIAL


def test_scan_length_from_last_granule():
    data, _, _ = two_second_file()
    info, _ = scan_ogg(data)
    assert info["song_length_ms"] == 2000
    assert info["bitrate_average"] == bitrate(info["audio_size"], 2000)


def test_scan_reads_comments():
    data, _, _ = two_second_file()
    _, tags = scan_ogg(data)
    assert tags["VENDOR"] == "test vendor"
    assert tags["TITLE"] == "Song"
    assert tags["ARTIST"] == ["A", "B"]


def test_scan_falls_back_to_nominal_on_serial_change():
    data, _, _ = two_second_file(final_serial=SERIAL + 1)
    info, _ = scan_ogg(data)
    assert info["bitrate_average"] == 128000
    assert info["song_length_ms"] % 1000 == 0


def test_scan_skips_leading_id3():
    prefix = b"ID3\x04\x00\x00\x00\x00\x00\x0a" + b"\0" * 10
    data, header_len, _ = build([(44100, 9000, SERIAL), (88200, 100, SERIAL)], prefix=prefix)
    info, tags = scan_ogg(data)
    assert info["audio_offset"] == header_len
    assert header_len == len(prefix) + two_second_file()[1]
    assert tags["TITLE"] == "Song"


def test_scan_rejects_non_ogg():
    with pytest.raises(FormatError):
        scan_ogg(b"RIFF" + b"\0" * 100)


def test_scan_rejects_bad_vorbis_header():
    data, _, _ = build([(44100, 100, SERIAL)], magic=b"notvrb")
    with pytest.raises(FormatError):
        scan_ogg(data)


def test_scan_rejects_truncated_file():
    data, header_len, _ = two_second_file()
    with pytest.raises(FormatError):
        scan_ogg(data[: header_len + 10])


def test_split_vorbis_comment():
    tags = {}
    split_vorbis_comment("title=Foo", tags)
    split_vorbis_comment(b"EQ=a=b", tags)
    split_vorbis_comment("no separator", tags)
    assert tags == {"TITLE": "Foo", "EQ": "a=b"}


def test_split_vorbis_comment_collects_repeats():
    tags = {}
    for value in ("x", "y", "z"):
        split_vorbis_comment("genre=" + value, tags)
    assert tags["GENRE"] == ["x", "y", "z"]


def test_parse_comments_stops_on_bad_length():
    data = comment_block(b"v", [b"A=1"], framing=False)
    data = data[:-4 - 3 - 4] + (2).to_bytes(4, "little")
    data += (3).to_bytes(4, "little") + b"A=1" + (999).to_bytes(4, "little") + b"B=2"
    tags = {}
    parse_vorbis_comments(data, tags, False)
    assert tags == {"VENDOR": "v", "A": "1"}


def test_parse_coverart():
    encoded = base64.b64encode(b"imagebytes")
    tags = {}
    parse_vorbis_comments(comment_block(b"v", [b"COVERART=" + encoded]), tags, True)
    picture = tags["ALLPICTURES"][0]
    assert picture["image_data"] == b"imagebytes"
    assert picture["mime_type"] == "image/"
    assert picture["picture_type"] == 0


def test_parse_coverart_without_artwork(monkeypatch):
    monkeypatch.setenv("AUDIO_SCAN_NO_ARTWORK", "1")
    encoded = base64.b64encode(b"imagebytes")
    tags = {}
    parse_vorbis_comments(comment_block(b"v", [b"coverart=" + encoded]), tags, True)
    assert tags["ALLPICTURES"][0]["image_data"] == len(encoded)


def test_parse_metadata_block_picture():
    mime, desc, image = b"image/png", b"front", b"\x89PNGdata"
    block = (
        struct.pack(">II", 3, len(mime)) + mime
        + struct.pack(">I", len(desc)) + desc
        + struct.pack(">IIIII", 10, 20, 24, 0, len(image)) + image
    )
    comment = b"METADATA_BLOCK_PICTURE=" + base64.b64encode(block)
    tags = {}
    parse_vorbis_comments(comment_block(b"v", [comment, b"TITLE=t"]), tags, True)
    picture = tags["ALLPICTURES"][0]
    assert picture["mime_type"] == "image/png"
    assert picture["description"] == "front"
    assert (picture["width"], picture["height"], picture["depth"]) == (10, 20, 24)
    assert picture["picture_type"] == 3
    assert picture["image_data"] == image
    assert tags["TITLE"] == "t"


def test_find_frame_first_page_for_start():
    data, header_len, offsets = many_pages()
    assert offsets[0] == header_len
    assert find_ogg_frame(data, 1) == header_len


def test_find_frame_page_covers_time():
    data, _, offsets = many_pages()
    granules = [4410 * (k + 1) for k in range(60)]
    result = find_ogg_frame(data, 2000)
    index = offsets.index(result)
    assert granules[index - 1] / 44.1 < 2000
    assert granules[index] / 44.1 >= 1990


def test_find_frame_past_end():
    data, _, _ = many_pages()
    assert find_ogg_frame(data, 10**7) == -1


def test_binary_search_aborts_on_serial_mismatch():
    data, _, _ = many_pages()
    info, _ = scan_ogg(data)
    info["serial_number"] += 1
    assert binary_search_sample(io.BytesIO(data), info, 1000) == -1