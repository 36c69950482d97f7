[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "apricot"
version = "0.1.0"
description = "A small BitTorrent client: bencode codec, metainfo reader, HTTP tracker announces and peer wire messages."
requires-python = ">=3.10"
dependencies = []
keywords = ["bittorrent", "torrent", "bencode", "tracker", "peer-to-peer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
    "Topic :: Internet",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
apricot = "apricot.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["apricot"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
