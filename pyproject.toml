[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hyperblow"
version = "0.1.0"
description = "BitTorrent tracker messages, bencode, HTTP and UDP tracker announces and torrent source helpers"
requires-python = ">=3.10"
keywords = ["bittorrent", "torrent", "tracker", "bencode", "udp", "magnet"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: File Sharing",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hyperblow"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
