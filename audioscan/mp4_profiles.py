"""AAC object types, the AAC sample-rate table and DLNA profile detection."""

from __future__ import annotations

from enum import IntEnum

from .buffer import FormatError


class AacObjectType(IntEnum):
    """MPEG-4 audio object types."""

    INVALID = 0
    MAIN = 1
    LC = 2
    SSR = 3
    LTP = 4
    HE = 5
    SCALE = 6
    TWINVQ = 7
    CELP = 8
    HVXC = 9
    TTSI = 12
    MS = 13
    WAVE = 14
    MIDI = 15
    FX = 16
    LC_ER = 17
    LTP_ER = 19
    SCALE_ER = 20
    TWINVQ_ER = 21
    BSAC_ER = 22
    LD_ER = 23
    CELP_ER = 24
    HXVC_ER = 25
    HILN_ER = 26
    PARAM_ER = 27
    SSC = 28
    PS = 29
    ESCAPE = 31
    SLS = 37


_SAMPLERATES = (
    96000, 88200, 64000, 48000, 44100, 32000, 24000,
    22050, 16000, 12000, 11025, 8000, 7350, None, None, 0,
)


def table_samplerate(index: int) -> int:
    """Sample rate for a 4-bit sampling frequency index."""
    if not 0 <= index < len(_SAMPLERATES):
        raise FormatError(f"sampling frequency index out of range: {index}")
    rate = _SAMPLERATES[index]
    if rate is None:
        raise FormatError(f"reserved sampling frequency index: {index}")
    return rate


def _lc(samplerate: int, bitrate: int, channels: int) -> str | None:
    if samplerate < 8000 or samplerate > 48000:
        return None
    if channels <= 2:
        if bitrate <= 192000:
            return "AAC_ISO_192"
        if bitrate <= 320000:
            return "AAC_ISO_320"
        if bitrate <= 576000:
            return "AAC_ISO"
    elif channels <= 6:
        if bitrate <= 1440000:
            return "AAC_MULT5_ISO"
    return None


def _ltp(samplerate: int, bitrate: int, channels: int) -> str | None:
    if samplerate < 8000:
        return None
    if samplerate <= 48000:
        if channels <= 2 and bitrate <= 576000:
            return "AAC_LTP_ISO"
    elif samplerate <= 96000:
        if channels <= 6 and bitrate <= 2880000:
            return "AAC_LTP_MULT5_ISO"
        if channels <= 8 and bitrate <= 4032000:
            return "AAC_LTP_MULT7_ISO"
    return None


def _he(samplerate: int, bitrate: int, channels: int) -> str | None:
    if samplerate < 8000:
        return None
    if samplerate <= 24000:
        if channels > 2:
            return None
        if bitrate <= 128000:
            return "HEAAC_L2_ISO_128"
        if bitrate <= 320000:
            return "HEAAC_L2_ISO_320"
        if bitrate <= 576000:
            return "HEAAC_L2_ISO"
    elif samplerate <= 48000:
        if channels <= 2 and bitrate <= 576000:
            return "HEAAC_L3_ISO"
        if channels <= 6 and bitrate <= 1440000:
            return "HEAAC_MULT5_ISO"
        if channels <= 8 and bitrate <= 4032000:
            return "HEAAC_MULT7"
    elif samplerate <= 96000:
        if channels <= 8 and bitrate <= 4032000:
            return "HEAAC_MULT7"
    return None


def _he_v2(samplerate: int, bitrate: int, channels: int) -> str | None:
    if samplerate < 8000:
        return None
    if samplerate <= 24000:
        if channels > 2:
            return None
        if bitrate <= 128000:
            return "HEAACv2_L2_128"
        if bitrate <= 320000:
            return "HEAACv2_L2_320"
        if bitrate <= 576000:
            return "HEAACv2_L2"
    elif samplerate <= 48000:
        if channels <= 2 and bitrate <= 576000:
            return "HEAACv2_L3"
        if channels <= 6 and bitrate <= 1440000:
            return "HEAACv2_L4"
        if channels <= 6 and bitrate <= 2880000:
            return "HEAACv2_MULT5"
        if channels <= 8 and bitrate <= 4032000:
            return "HEAACv2_MULT7"
    elif samplerate <= 96000:
        if channels <= 8 and bitrate <= 4032000:
            return "HEAACv2_MULT7"
    return None


def _bsac(samplerate: int, bitrate: int, channels: int) -> str | None:
    if samplerate < 16000 or samplerate > 48000:
        return None
    if bitrate > 128000:
        return None
    if channels <= 2:
        return "BSAC_ISO"
    if channels <= 6:
        return "BSAC_MULT5_ISO"
    return None


_RULES = {
    AacObjectType.LC: _lc,
    AacObjectType.LC_ER: _lc,
    AacObjectType.LTP: _ltp,
    AacObjectType.LTP_ER: _ltp,
    AacObjectType.HE: _he,
    AacObjectType.PARAM_ER: _he_v2,
    AacObjectType.PS: _he_v2,
    AacObjectType.BSAC_ER: _bsac,
}


def dlna_profile(audio_object_type: int, samplerate: int, bitrate: int, channels: int) -> str | None:
    """DLNA profile name for an AAC stream, or None if none applies."""
    if not (samplerate and bitrate and channels):
        return None
    rule = _RULES.get(audio_object_type)
    if rule is None:
        return None
    return rule(samplerate, bitrate, channels)