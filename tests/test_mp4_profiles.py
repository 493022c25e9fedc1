import pytest

from audioscan.buffer import FormatError
from audioscan.mp4_profiles import AacObjectType, dlna_profile, table_samplerate


def test_table_samplerate_known_values():
    assert table_samplerate(0) == 96000
    assert table_samplerate(4) == 44100
    assert table_samplerate(12) == 7350


@pytest.mark.parametrize("index", [13, 14, 16, -1])
def test_table_samplerate_invalid(index):
    with pytest.raises(FormatError):
        table_samplerate(index)


@pytest.mark.parametrize(
    "aot, samplerate, bitrate, channels, expected",
    [
        (AacObjectType.LC, 44100, 128000, 2, "AAC_ISO_192"),
        (AacObjectType.LC, 44100, 256000, 2, "AAC_ISO_320"),
        (AacObjectType.LC, 48000, 500000, 2, "AAC_ISO"),
        (AacObjectType.LC_ER, 48000, 1000000, 6, "AAC_MULT5_ISO"),
        (AacObjectType.LTP, 44100, 256000, 2, "AAC_LTP_ISO"),
        (AacObjectType.LTP, 96000, 2000000, 6, "AAC_LTP_MULT5_ISO"),
        (AacObjectType.LTP_ER, 96000, 4000000, 8, "AAC_LTP_MULT7_ISO"),
        (AacObjectType.HE, 24000, 64000, 2, "HEAAC_L2_ISO_128"),
        (AacObjectType.HE, 48000, 256000, 2, "HEAAC_L3_ISO"),
        (AacObjectType.HE, 96000, 4000000, 8, "HEAAC_MULT7"),
        (AacObjectType.PS, 24000, 64000, 2, "HEAACv2_L2_128"),
        (AacObjectType.PARAM_ER, 48000, 2000000, 6, "HEAACv2_MULT5"),
        (AacObjectType.BSAC_ER, 44100, 96000, 2, "BSAC_ISO"),
        (AacObjectType.BSAC_ER, 44100, 96000, 6, "BSAC_MULT5_ISO"),
    ],
)
def test_dlna_profile_matches(aot, samplerate, bitrate, channels, expected):
    assert dlna_profile(aot, samplerate, bitrate, channels) == expected


@pytest.mark.parametrize(
    "aot, samplerate, bitrate, channels",
    [
        (AacObjectType.LC, 96000, 128000, 2),
        (AacObjectType.LC, 44100, 700000, 2),
        (AacObjectType.HE, 24000, 64000, 6),
        (AacObjectType.BSAC_ER, 44100, 200000, 2),
        (AacObjectType.MAIN, 44100, 128000, 2),
        (AacObjectType.LC, 0, 128000, 2),
        (AacObjectType.LC, 44100, 0, 2),
        (AacObjectType.LC, 44100, 128000, 0),
    ],
)
def test_dlna_profile_none(aot, samplerate, bitrate, channels):
    assert dlna_profile(aot, samplerate, bitrate, channels) is None


def test_dlna_profile_accepts_plain_int():
    assert dlna_profile(int(AacObjectType.LC), 44100, 128000, 2) == "AAC_ISO_192"