[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zstparse"
version = "0.1.0"
description = "Pure-Python readers for Zstandard frame headers, FSE tables and Huffman tables"
requires-python = ">=3.10"
dependencies = []
keywords = ["zstd", "zstandard", "frame-header", "fse", "huffman", "entropy-coding"]
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
    "Topic :: System :: Archiving :: Compression",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["zstparse"]

[tool.pytest.ini_options]
addopts = "-ra"
