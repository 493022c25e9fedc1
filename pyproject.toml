[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "audioscan"
version = "0.1.0"
description = "Read stream information and tags from WAV, AIFF, Ogg Vorbis, Opus and Musepack files, with parsers for MP4 metadata boxes"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "audio",
    "metadata",
    "tags",
    "wav",
    "aiff",
    "ogg",
    "vorbis",
    "opus",
    "musepack",
    "mp4",
    "aac",
    "dlna",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Analysis",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["audioscan"]

[tool.hatch.build.targets.sdist]
include = ["audioscan", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
