# audioscan

`audioscan` reads the technical stream information and the embedded tags of
common audio files without decoding any audio. It is pure Python and uses
only the standard library.

## Scanners

| Format                   | Module            | Function    | Returns          |
|--------------------------|-------------------|-------------|------------------|
| WAV (RIFF) and AIFF/AIFC | `audioscan.wav`   | `scan_wav`  | `(info, tags)`   |
| Ogg Vorbis               | `audioscan.ogg`   | `scan_ogg`  | `(info, tags)`   |
| Opus                     | `audioscan.opus`  | `scan_opus` | `(info, tags)`   |
| Musepack SV7 / SV8       | `audioscan.mpc`   | `scan_mpc`  | `info`           |

Each function accepts a path, a `bytes` object, or an open seekable binary
file.

```python
from audioscan.ogg import scan_ogg
from audioscan.mpc import scan_mpc

info, tags = scan_ogg("song.ogg")
print(info["samplerate"], info["song_length_ms"], tags.get("TITLE"))

print(scan_mpc("song.mpc")["encoder"])
```

### Stream information

Keys shared across formats where the format carries the value:
`file_size`, `audio_offset`, `audio_size`, `samplerate`, `channels`,
`song_length_ms`, and a bitrate (`bitrate` for WAV/AIFF and Musepack,
`bitrate_average` and `bitrate_nominal` for Vorbis, `bitrate_average` for
Opus).

Format specific extras:

- WAV: `format`, `block_align`, `bits_per_sample`, a `peak` list from a
  `PEAK` chunk, and `dlna_profile` (`LPCM` or `LPCM_low`) for 16-bit mono or
  stereo PCM. A `fact` chunk gives the length of non-PCM files.
- AIFF/AIFC: `bits_per_sample`, `block_align`, `peak`, `dlna_profile`, and
  `compression_type` / `compression_name` for AIFC.
- Vorbis: `version`, `stereo`, `bitrate_upper`, `bitrate_lower`,
  `blocksize_0`, `blocksize_1`, `serial_number`.
- Opus: `version`, `stereo`, `preskip`, `input_samplerate`, `serial_number`
  (`samplerate` is always 48000).
- Musepack: `stream_version`, `encoder`, `profile`, `gapless`,
  `track_gain`, `album_gain`.

### Tags

- WAV `LIST`/`INFO` chunks become tags keyed by their four-letter ids.
- Vorbis comments (Ogg Vorbis and Opus) are keyed by the upper-cased field
  name; a key that occurs more than once holds a list. The vendor string is
  stored as `VENDOR`. `METADATA_BLOCK_PICTURE` and `COVERART` comments are
  decoded into picture dictionaries under `ALLPICTURES`. When the
  environment variable `AUDIO_SCAN_NO_ARTWORK` is set to a value other than
  empty or `0`, a picture's `image_data` holds its length instead of the
  image bytes.

## Seeking in Ogg files

`audioscan.ogg.find_ogg_frame(source, offset)` and
`audioscan.opus.find_opus_frame(source, offset)` return the byte offset of
the Ogg page that holds the given position in milliseconds, or `-1` when it
cannot be found (past the end of the stream, or a chained file whose serial
number changes). The underlying search is available as
`audioscan.ogg.binary_search_sample`.

## MP4 building blocks

The package contains parsers for the bodies of individual MP4 boxes, to be
fed with bytes you have already cut out of a file:

- `audioscan.mp4_boxes`: `parse_ftyp`, `parse_mvhd`, `parse_tkhd`,
  `parse_mdhd`, `parse_hdlr`, `parse_sample_entry` (for `mp4a` and `alac`),
  `parse_esds` and `descr_length`.
- `audioscan.mp4_tags`: `parse_ilst` and `parse_ilst_data` turn iTunes-style
  `ilst` items into tags (track and disc numbers as `"n/total"`, genre codes
  resolved through a caller-supplied genre list, custom `----` items by their
  name); `add_tag` collects repeated keys into lists.
- `audioscan.mp4_profiles`: the `AacObjectType` enum, `table_samplerate`
  for the AAC sampling frequency index, and `dlna_profile`, which names the
  DLNA profile (such as `AAC_ISO_192` or `HEAAC_L2_ISO_128`) matching an AAC
  stream's object type, sample rate, bitrate and channel count.

## What this package does not do

- There is no function that scans a whole MP4/M4A file: walking the box
  tree and combining the parsers above is left to the caller.
- There is no seeking in MP4 files and no rewriting of MP4 sample tables.
- ID3 chunks inside WAV and AIFF files are skipped, not read; leading ID3v2
  tags in Ogg, Opus and Musepack files are skipped as well.
- There is no command-line program.

## Lower-level reading

`audioscan.buffer.StreamBuffer` is the read-ahead buffer the scanners use,
with big- and little-endian integer readers, 32-bit and 80-bit float
readers and a bit reader. The module also provides `file_size`, `bitrate`
and the `open_source` context manager.

## Errors

Files that are not of the expected format, or that end before their headers
are complete, raise `audioscan.buffer.FormatError`, a subclass of
`ValueError`. Unusual but harmless content (unknown chunks, malformed
pictures) is reported through the `logging` module.