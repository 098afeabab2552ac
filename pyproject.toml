[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "arenakit"
version = "0.1.0"
description = "Game toolkit pieces: scene files, chunked binary I/O, software audio mixing, PNG I/O, path fonts and orbit cameras"
requires-python = ">=3.10"
keywords = ["game", "scene", "audio", "mixer", "wav", "png", "hexdump", "chunks", "camera"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Games/Entertainment",
    "Topic :: Multimedia :: Sound/Audio :: Mixers",
    "Topic :: Multimedia :: Graphics",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["arenakit"]

[tool.pytest.ini_options]
addopts = "-ra"
