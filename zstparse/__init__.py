"""Readers for Zstandard frame headers, bit streams, FSE tables and Huffman tables."""

__version__ = "0.1.0"
__all__ = ["frame", "fse", "huff0"]