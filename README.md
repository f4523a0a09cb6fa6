# zstparse

Pure-Python building blocks for reading Zstandard (zstd) data. It needs
nothing outside the standard library.

The package has three modules:

- `zstparse.frame` parses a Zstandard frame header: the magic number, the
  frame header descriptor, the window descriptor, the dictionary id and the
  frame content size. It also recognises skippable frames.
- `zstparse.fse` holds two bit readers, `BitReader` (forward) and
  `BitReaderReversed`, and also Finite State Entropy tables (`FSETable`)
  and decoders (`FSEDecoder`).
- `zstparse.huff0` builds Huffman tables (`HuffmanTable`) from Huff0
  weight descriptions. The weights may be packed four bits each or
  FSE-compressed. It also holds a `HuffmanDecoder` that walks a table using
  a reversed bit stream.

## Installation

From a checkout of the project:

```
pip install .
```

## Reading a frame header

`read_frame_header` takes a byte string or a binary stream. It returns the
parsed `Frame` and the number of header bytes it consumed.

```python
import io
from zstparse.frame import read_frame_header, SkipFrameError

data = io.BytesIO(compressed_bytes)
try:
    frame, header_size = read_frame_header(data)
except SkipFrameError as skip:
    # A skippable frame: skip.length bytes of user data follow.
    data.seek(skip.length, io.SEEK_CUR)
else:
    header = frame.header
    print(header.window_size())
    print(header.frame_content_size, header.dictionary_id)
    print(header.descriptor.content_checksum_flag())
```

`FrameDescriptor` exposes each flag of the descriptor byte:
`frame_content_size_flag()`, `single_segment_flag()`,
`content_checksum_flag()`, `reserved_flag()` and `dict_id_flag()`. It also
gives the sizes of the optional fields, `frame_content_size_bytes()` and
`dictionary_id_bytes()`.

The errors are these:

- A truncated or unreadable header raises `ReadFrameHeaderError`.
- A wrong magic number raises `BadMagicNumberError`. Its `magic_number`
  attribute holds the number that was read.
- A skippable frame raises `SkipFrameError`, with `magic_number` and
  `length` as attributes.
- `FrameHeader.window_size()` raises `FrameHeaderError` when the window
  falls below `MIN_WINDOW_SIZE` or reaches `MAX_WINDOW_SIZE`.

## Bit readers

`BitReader` reads from the start of a byte string, lowest bit first.
`BitReaderReversed` reads from the end of a byte string towards its start.
When it reads past the start it returns zero bits, and `bits_remaining()`
becomes negative. If `BitReader` is asked for more bits than are left, it
raises `GetBitsError`.

## FSE tables

```python
from zstparse.fse import FSETable, FSEDecoder, BitReaderReversed

table = FSETable(255)
bytes_used = table.build_decoder(table_description, 9)

decoder = FSEDecoder(table)
bits = BitReaderReversed(bitstream)
decoder.init_state(bits)
symbol = decoder.decode_symbol()
decoder.update_state(bits)
```

If the probabilities are already known, build the table with
`FSETable.build_from_probabilities(acc_log, probs)`. Invalid descriptions
raise `FSETableError`. An `FSEDecoder` used on an empty table raises
`FSEDecoderError`.

## Huffman tables

```python
from zstparse.huff0 import HuffmanTable, HuffmanDecoder
from zstparse.fse import BitReaderReversed

table = HuffmanTable()
bytes_used = table.build_decoder(huffman_description)

decoder = HuffmanDecoder(table)
bits = BitReaderReversed(literals_stream)
decoder.init_state(bits)
literal = decoder.decode_symbol()
decoder.next_state(bits)
```

Errors in the table description raise `HuffmanTableError`.

## What this package does not do

This package is not a decompressor. It does not decode blocks, literal or
sequence sections, or whole frames. It has no streaming reader, no
dictionary support, no content checksum check and no command-line tool.
What it gives you are the pieces for reading headers and entropy tables.

## Running the tests

```
pip install .[test]
pytest
```