"""Read stream information and tags from WAV, AIFF, Ogg Vorbis, Opus and Musepack files, and parse MP4 metadata boxes."""

__version__ = "0.1.0"

__all__ = [
    "buffer",
    "mp4_boxes",
    "mp4_profiles",
    "mp4_tags",
    "mpc",
    "ogg",
    "opus",
    "wav",
]