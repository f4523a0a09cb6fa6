"""Zstandard frame headers: the magic number, descriptor and header fields.

Zstandard data is made of one or more independent frames. A frame is either
a Zstandard frame, which holds compressed data, or a skippable frame, which
holds user metadata that a decoder passes over.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import BinaryIO, Union

__all__ = [
    "MAGIC_NUM",
    "MIN_WINDOW_SIZE",
    "MAX_WINDOW_SIZE",
    "FrameDescriptorError",
    "FrameHeaderError",
    "ReadFrameHeaderError",
    "BadMagicNumberError",
    "SkipFrameError",
    "FrameDescriptor",
    "FrameHeader",
    "Frame",
    "read_frame_header",
]

#: Magic number at the start of every Zstandard frame.
MAGIC_NUM = 0xFD2F_B528
#: Smallest window size the format allows (1 KiB).
MIN_WINDOW_SIZE = 1024
#: Window sizes must stay below this value (3.75 TiB).
MAX_WINDOW_SIZE = (1 << 41) + 7 * (1 << 38)

_SKIPPABLE_MAGIC = range(0x184D2A50, 0x184D2A5F + 1)


class FrameDescriptorError(ValueError):
    """Raised when a frame header descriptor holds an invalid flag."""


class FrameHeaderError(ValueError):
    """Raised when a parsed frame header describes an invalid frame."""


class ReadFrameHeaderError(ValueError):
    """Raised when a frame header cannot be read from its source."""


class BadMagicNumberError(ReadFrameHeaderError):
    """Raised when the data does not start with a known magic number."""

    def __init__(self, magic_number: int) -> None:
        super().__init__(f"Read wrong magic number: 0x{magic_number:X}")
        self.magic_number = magic_number


class SkipFrameError(ReadFrameHeaderError):
    """Raised on a skippable frame; ``length`` bytes of payload follow."""

    def __init__(self, magic_number: int, length: int) -> None:
        super().__init__(
            f"SkippableFrame encountered with MagicNumber 0x{magic_number:X} "
            f"and length {length} bytes"
        )
        self.magic_number = magic_number
        self.length = length


@dataclass(frozen=True)
class FrameDescriptor:
    """The first header byte, describing which other header fields exist."""

    value: int

    def frame_content_size_flag(self) -> int:
        """The two-bit flag that selects the size of ``Frame_Content_Size``."""
        return self.value >> 6

    def reserved_flag(self) -> bool:
        """The reserved bit, which a compliant stream leaves unset."""
        return (self.value >> 3) & 0x1 == 1

    def single_segment_flag(self) -> bool:
        """Whether the frame is one segment with no window descriptor."""
        return (self.value >> 5) & 0x1 == 1

    def content_checksum_flag(self) -> bool:
        """Whether a 32-bit content checksum ends the frame."""
        return (self.value >> 2) & 0x1 == 1

    def dict_id_flag(self) -> int:
        """The two-bit flag that selects the size of ``Dictionary_ID``."""
        return self.value & 0x3

    def frame_content_size_bytes(self) -> int:
        """Size in bytes of the ``Frame_Content_Size`` field; 0 if absent."""
        flag = self.frame_content_size_flag()
        if flag == 0:
            return 1 if self.single_segment_flag() else 0
        sizes = {1: 2, 2: 4, 3: 8}
        if flag not in sizes:
            raise FrameDescriptorError(
                f"Invalid Frame_Content_Size_Flag; Is: {flag}, "
                f"Should be one of: 0, 1, 2, 3"
            )
        return sizes[flag]

    def dictionary_id_bytes(self) -> int:
        """Size in bytes of the ``Dictionary_ID`` field; 0 if absent."""
        flag = self.dict_id_flag()
        sizes = {0: 0, 1: 1, 2: 2, 3: 4}
        if flag not in sizes:
            raise FrameDescriptorError(
                f"Invalid Frame_Content_Size_Flag; Is: {flag}, "
                f"Should be one of: 0, 1, 2, 3"
            )
        return sizes[flag]


@dataclass
class FrameHeader:
    """A parsed frame header."""

    descriptor: FrameDescriptor
    window_descriptor: int = 0
    dictionary_id: int | None = None
    frame_content_size: int = 0

    def window_size(self) -> int:
        """The window size in bytes the frame needs for decoding."""
        if self.descriptor.single_segment_flag():
            return self.frame_content_size

        exponent = self.window_descriptor >> 3
        mantissa = self.window_descriptor & 0x7
        window_base = 1 << (10 + exponent)
        window_size = window_base + (window_base // 8) * mantissa

        if window_size < MIN_WINDOW_SIZE:
            raise FrameHeaderError(
                f"window_size smaller than allowed minimum. Is: {window_size}, "
                f"Should be greater than: {MIN_WINDOW_SIZE}"
            )
        if window_size >= MAX_WINDOW_SIZE:
            raise FrameHeaderError(
                f"window_size bigger than allowed maximum. Is: {window_size}, "
                f"Should be lower than: {MAX_WINDOW_SIZE}"
            )
        return window_size


@dataclass
class Frame:
    """A Zstandard frame, represented by its header."""

    header: FrameHeader = field()


_Source = Union[bytes, bytearray, memoryview, BinaryIO]


def _as_stream(source: _Source) -> BinaryIO:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))
    return source


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    parts = []
    remaining = size
    try:
        while remaining > 0:
            chunk = stream.read(remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
    except OSError as exc:
        raise ReadFrameHeaderError(f"Error while reading {what}: {exc}") from exc
    if remaining > 0:
        raise ReadFrameHeaderError(
            f"Error while reading {what}: unexpected end of file"
        )
    return b"".join(parts)


def read_frame_header(source: _Source) -> tuple[Frame, int]:
    """Read one frame header from ``source``.

    ``source`` is a byte string or a binary stream. Returns the frame and
    the number of header bytes consumed. A skippable frame raises
    :class:`SkipFrameError` after its magic number and length were read.
    """
    stream = _as_stream(source)

    magic_num = int.from_bytes(_read_exact(stream, 4, "magic number"), "little")
    bytes_read = 4

    if magic_num in _SKIPPABLE_MAGIC:
        length = int.from_bytes(
            _read_exact(stream, 4, "frame descriptor"), "little"
        )
        raise SkipFrameError(magic_num, length)

    if magic_num != MAGIC_NUM:
        raise BadMagicNumberError(magic_num)

    descriptor = FrameDescriptor(_read_exact(stream, 1, "frame descriptor")[0])
    bytes_read += 1
    header = FrameHeader(descriptor=descriptor)

    if not descriptor.single_segment_flag():
        header.window_descriptor = _read_exact(stream, 1, "window descriptor")[0]
        bytes_read += 1

    try:
        dict_id_len = descriptor.dictionary_id_bytes()
        fcs_len = descriptor.frame_content_size_bytes()
    except FrameDescriptorError as exc:
        raise ReadFrameHeaderError(str(exc)) from exc

    if dict_id_len:
        raw = _read_exact(stream, dict_id_len, "dictionary id")
        bytes_read += dict_id_len
        dict_id = int.from_bytes(raw, "little")
        if dict_id != 0:
            header.dictionary_id = dict_id

    if fcs_len:
        raw = _read_exact(stream, fcs_len, "frame content size")
        bytes_read += fcs_len
        fcs = int.from_bytes(raw, "little")
        if fcs_len == 2:
            fcs += 256
        header.frame_content_size = fcs

    return Frame(header=header), bytes_read