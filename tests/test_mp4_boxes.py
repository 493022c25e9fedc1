import struct

import pytest

from audioscan.buffer import FormatError, StreamBuffer
from audioscan.mp4_boxes import (
    descr_length,
    parse_esds,
    parse_ftyp,
    parse_hdlr,
    parse_mdhd,
    parse_mvhd,
    parse_sample_entry,
    parse_tkhd,
)


def _buffer(data):
    buf = StreamBuffer(None)
    buf.append(data)
    return buf


def _esds(asc, avg_bitrate=128000, max_bitrate=160000):
    decoder = bytes([0x40, 0x15, 0, 0, 0]) + struct.pack(">II", max_bitrate, avg_bitrate)
    decoder += bytes([0x05, len(asc)]) + asc
    es = b"\x00\x01\x00" + bytes([0x04, len(decoder)]) + decoder + bytes([0x06, 0x01, 0x02])
    return b"\x00\x00\x00\x00" + bytes([0x03, len(es)]) + es


def test_descr_length_multi_byte():
    buf = _buffer(bytes([0x80, 0x80, 0x80, 0x19, 0xAA]))
    assert descr_length(buf) == 25
    assert buf.u8() == 0xAA


def test_descr_length_stops_after_four_bytes():
    buf = _buffer(bytes([0x81, 0x81, 0x81, 0x81, 0x05]))
    descr_length(buf)
    assert buf.u8() == 0x05


def test_parse_ftyp():
    info = {}
    parse_ftyp(b"M4A " + struct.pack(">I", 512) + b"M4A mp42isom", info)
    assert info["major_brand"] == "M4A "
    assert info["minor_version"] == 512
    assert info["compatible_brands"] == ["M4A ", "mp42", "isom"]


def test_parse_ftyp_bad_length():
    with pytest.raises(FormatError):
        parse_ftyp(b"M4A \x00\x00\x00\x00ab", {})


def test_parse_mvhd_v0():
    data = b"\x00\x00\x00\x00" + b"\x00" * 8 + struct.pack(">II", 1000, 5000) + b"\x00" * 80
    info = {}
    parse_mvhd(data, info)
    assert info["mv_timescale"] == 1000
    assert info["song_length_ms"] == 5000


def test_parse_mvhd_v1():
    data = b"\x01\x00\x00\x00" + b"\x00" * 16 + struct.pack(">IQ", 1000, 7000) + b"\x00" * 80
    info = {}
    parse_mvhd(data, info)
    assert info["song_length_ms"] == 7000


def test_parse_mvhd_bad_version():
    with pytest.raises(FormatError):
        parse_mvhd(b"\x02" + b"\x00" * 30, {})


def test_parse_tkhd():
    data = (
        b"\x00\x00\x00\x01"
        + b"\x00" * 8
        + struct.pack(">I", 1)
        + b"\x00" * 4
        + struct.pack(">I", 2000)
        + b"\x00" * 52
        + struct.pack(">HHHH", 320, 32768, 0, 0)
    )
    track = parse_tkhd(data, 1000)
    assert track["id"] == 1
    assert track["duration"] == 2000
    assert track["width"] == 320.5
    assert "height" not in track


def test_parse_tkhd_zero_timescale():
    data = b"\x00" * 84
    with pytest.raises(FormatError):
        parse_tkhd(data, 0)


def test_parse_mdhd_keeps_existing_length():
    data = b"\x00\x00\x00\x00" + b"\x00" * 8 + struct.pack(">II", 44100, 88200) + b"\x00" * 4
    info = {"song_length_ms": 1234}
    assert parse_mdhd(data, info) == 44100
    assert info["samplerate"] == 44100
    assert info["song_length_ms"] == 1234


def test_parse_mdhd_sets_length():
    data = b"\x00\x00\x00\x00" + b"\x00" * 8 + struct.pack(">II", 44100, 88200) + b"\x00" * 4
    info = {}
    parse_mdhd(data, info)
    assert info["song_length_ms"] == 2000


def test_parse_hdlr():
    track = {}
    parse_hdlr(b"\x00" * 8 + b"soun" + b"\x00" * 12 + b"SoundHandler\x00", track)
    assert track["handler_type"] == "soun"
    assert track["handler_name"] == "SoundHandler"


def test_parse_hdlr_without_track():
    with pytest.raises(FormatError):
        parse_hdlr(b"\x00" * 30, None)


def test_parse_sample_entry():
    data = b"\x00" * 16 + struct.pack(">HH", 2, 16) + b"\x00" * 8
    track = {}
    assert parse_sample_entry(data, track, "mp4a") == 2
    assert track == {"encoding": "mp4a", "channels": 2, "bits_per_sample": 16}


def test_parse_sample_entry_too_short():
    with pytest.raises(FormatError):
        parse_sample_entry(b"\x00" * 20, {}, "alac")


def test_parse_esds_aac_lc():
    track = {}
    info = {}
    parse_esds(_esds(bytes([0x12, 0x10])), track, info)
    assert track["audio_object_type"] == 2
    assert track["samplerate"] == 44100
    assert track["channels"] == 2
    assert track["max_bitrate"] == 160000
    assert info["avg_bitrate"] == 128000


def test_parse_esds_he_aac_extended_samplerate():
    track = {}
    parse_esds(_esds(bytes([0x2B, 0x11, 0x80])), track, {})
    assert track["audio_object_type"] == 5
    assert track["samplerate"] == 48000


def test_parse_esds_sums_bitrates():
    info = {"avg_bitrate": 64000}
    parse_esds(_esds(bytes([0x12, 0x10]), avg_bitrate=128000), {}, info)
    assert info["avg_bitrate"] == 64000 + 128000


def test_parse_esds_missing_decoder_config():
    data = b"\x00" * 4 + bytes([0x03, 0x20, 0, 1, 0, 0x05]) + b"\x00" * 30
    with pytest.raises(FormatError):
        parse_esds(data, {}, {})


def test_parse_esds_bad_sl_value():
    data = bytearray(_esds(bytes([0x12, 0x10])))
    data[-1] = 0x03
    with pytest.raises(FormatError):
        parse_esds(bytes(data), {}, {})