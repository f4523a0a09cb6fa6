"""Huffman (Huff0) table reading and literal decoding.

Every symbol gets a prefix-free code, and frequent symbols get shorter
codes. The table is sent as a list of weights. The weights are either
packed four bits each or compressed with FSE. The decoding table is
indexed by a window of ``max_num_bits`` bits taken from the stream.
"""

from __future__ import annotations

from dataclasses import dataclass

from zstparse.fse import (
    BitReaderReversed,
    FSEDecoder,
    FSEDecoderError,
    FSETable,
    FSETableError,
)

__all__ = [
    "HuffmanTableError",
    "HuffmanDecoderError",
    "HuffmanEntry",
    "HuffmanTable",
    "HuffmanDecoder",
]

# The format limits a code to 11 bits.
_MAX_MAX_NUM_BITS = 11
# Largest accuracy log accepted for the FSE table that compresses the weights.
_WEIGHTS_FSE_MAX_LOG = 100


class HuffmanTableError(ValueError):
    """Raised when a Huffman table cannot be read or built."""


class HuffmanDecoderError(ValueError):
    """Raised when a Huffman decoder cannot read from its bit stream."""


@dataclass(frozen=True)
class HuffmanEntry:
    """One slot of the decoding table: the symbol and the length of its code."""

    symbol: int = 0
    num_bits: int = 0


_EMPTY_ENTRY = HuffmanEntry()


def _highest_bit_set(x: int) -> int:
    if x <= 0:
        raise ValueError(f"value must be positive, got {x}")
    return x.bit_length()


def _is_power_of_two(x: int) -> bool:
    return x > 0 and x & (x - 1) == 0


class HuffmanTable:
    """A Huffman decoding table built from a list of weights."""

    def __init__(self) -> None:
        self.decode: list[HuffmanEntry] = []
        self.weights: list[int] = []
        self.max_num_bits = 0
        self.bits: list[int] = []
        self._bit_ranks: list[int] = []
        self._rank_indexes: list[int] = []
        self._fse_table = FSETable(100)

    def reinit_from(self, other: HuffmanTable) -> None:
        """Empty this table and make it a copy of ``other``."""
        self.reset()
        self.decode.extend(other.decode)
        self.weights.extend(other.weights)
        self.max_num_bits = other.max_num_bits
        self.bits.extend(other.bits)
        self._rank_indexes.extend(other._rank_indexes)
        self._fse_table.reinit_from(other._fse_table)

    def reset(self) -> None:
        """Empty the table of all data."""
        self.decode.clear()
        self.weights.clear()
        self.max_num_bits = 0
        self.bits.clear()
        self._bit_ranks.clear()
        self._rank_indexes.clear()
        self._fse_table.reset()

    def build_decoder(self, source: bytes) -> int:
        """Read a table description from ``source`` and build the table.

        Returns the number of bytes the description occupied.
        """
        self.decode.clear()
        bytes_used = self._read_weights(bytes(source))
        self._build_table_from_weights()
        return bytes_used

    def _read_weights(self, source: bytes) -> int:
        if not source:
            raise HuffmanTableError("Source needs to have at least one byte")
        header = source[0]
        bits_read = 8

        if header < 128:
            bits_read += self._read_fse_weights(header, source[1:])
        else:
            bits_read += self._read_direct_weights(header - 127, source[1:])

        return (bits_read + 7) // 8

    def _read_fse_weights(self, header: int, fse_stream: bytes) -> int:
        if header > len(fse_stream):
            raise HuffmanTableError(
                f"Header says there should be {header} bytes for the weights "
                f"but there are only {len(fse_stream)} bytes in the stream"
            )
        try:
            bytes_used_by_fse_header = self._fse_table.build_decoder(
                fse_stream, _WEIGHTS_FSE_MAX_LOG
            )
        except FSETableError as exc:
            raise HuffmanTableError(str(exc)) from exc

        if bytes_used_by_fse_header > header:
            raise HuffmanTableError(
                f"FSE table used more bytes: {bytes_used_by_fse_header} than were "
                f"meant to be used for the whole stream of huffman weights ({header})"
            )

        # Two interleaved FSE streams share one table: the first decodes the
        # even weights, the second the odd ones.
        dec1 = FSEDecoder(self._fse_table)
        dec2 = FSEDecoder(self._fse_table)

        compressed_length = header - bytes_used_by_fse_header
        compressed_weights = fse_stream[bytes_used_by_fse_header:]
        if len(compressed_weights) < compressed_length:
            raise HuffmanTableError(
                f"Not enough bytes in stream to decompress weights. "
                f"Is: {len(compressed_weights)}, Should be: {compressed_length}"
            )
        br = BitReaderReversed(compressed_weights[:compressed_length])

        # Skip the zero padding of the last byte and the marker bit set above it.
        skipped_bits = 0
        while True:
            skipped_bits += 1
            if br.get_bits(1) == 1 or skipped_bits > 8:
                break
        if skipped_bits > 8:
            raise HuffmanTableError(
                f"Padding at the end of the sequence_section was more than a byte "
                f"long: {skipped_bits} bits. Probably caused by data corruption"
            )

        try:
            dec1.init_state(br)
            dec2.init_state(br)
        except FSEDecoderError as exc:
            raise HuffmanTableError(str(exc)) from exc

        weights: list[int] = []
        self.weights = weights
        while True:
            weights.append(dec1.decode_symbol())
            dec1.update_state(br)
            if br.bits_remaining() <= -1:
                weights.append(dec2.decode_symbol())
                break

            weights.append(dec2.decode_symbol())
            dec2.update_state(br)
            if br.bits_remaining() <= -1:
                weights.append(dec1.decode_symbol())
                break

            # The last weight is implied, so at most 255 can be transmitted.
            if len(weights) > 255:
                raise HuffmanTableError(
                    f"More than 255 weights decoded (got {len(weights)} weights). "
                    f"Stream is probably corrupted"
                )

        return (bytes_used_by_fse_header + compressed_length) * 8

    def _read_direct_weights(self, num_weights: int, weights_raw: bytes) -> int:
        bytes_needed = (num_weights + 1) // 2
        if len(weights_raw) < bytes_needed:
            raise HuffmanTableError(
                f"Source needs to have at least {bytes_needed} bytes, "
                f"got: {len(weights_raw)}"
            )
        self.weights = [
            weights_raw[idx // 2] >> 4 if idx % 2 == 0 else weights_raw[idx // 2] & 0xF
            for idx in range(num_weights)
        ]
        return num_weights * 4

    def _build_table_from_weights(self) -> None:
        weight_sum = 0
        for weight in self.weights:
            if weight > _MAX_MAX_NUM_BITS:
                raise HuffmanTableError(
                    f"Cant have weight: {weight} bigger than max_num_bits: "
                    f"{_MAX_MAX_NUM_BITS}"
                )
            if weight > 0:
                weight_sum += 1 << (weight - 1)

        if weight_sum == 0:
            raise HuffmanTableError("Can't build huffman table without any weights")

        max_bits = _highest_bit_set(weight_sum)
        left_over = (1 << max_bits) - weight_sum
        if not _is_power_of_two(left_over):
            raise HuffmanTableError(
                f"Leftover must be power of two but is: {left_over}"
            )
        last_weight = _highest_bit_set(left_over)

        self.bits = [max_bits + 1 - w if w > 0 else 0 for w in self.weights]
        self.bits.append(max_bits + 1 - last_weight)
        self.max_num_bits = max_bits

        if max_bits > _MAX_MAX_NUM_BITS:
            raise HuffmanTableError(
                f"max_bits derived from weights is: {max_bits} should be lower "
                f"than: {_MAX_MAX_NUM_BITS}"
            )

        self._bit_ranks = [0] * (max_bits + 1)
        for num_bits in self.bits:
            self._bit_ranks[num_bits] += 1

        table_size = 1 << max_bits
        decode = [_EMPTY_ENTRY] * table_size

        # Starting index of the codes of each length.
        self._rank_indexes = [0] * (max_bits + 1)
        for bits in range(max_bits, 0, -1):
            self._rank_indexes[bits - 1] = self._rank_indexes[bits] + (
                self._bit_ranks[bits] << (max_bits - bits)
            )

        if self._rank_indexes[0] != table_size:
            raise HuffmanTableError(
                f"rank_idx[0]: {self._rank_indexes[0]} should be: {table_size}"
            )

        for symbol, bits_for_symbol in enumerate(self.bits):
            if bits_for_symbol == 0:
                continue
            # A code ignores the trailing max_bits - bits bits, so it covers
            # a whole range of the table.
            base_idx = self._rank_indexes[bits_for_symbol]
            length = 1 << (max_bits - bits_for_symbol)
            self._rank_indexes[bits_for_symbol] += length
            entry = HuffmanEntry(symbol=symbol & 0xFF, num_bits=bits_for_symbol)
            decode[base_idx : base_idx + length] = [entry] * length

        self.decode = decode


class HuffmanDecoder:
    """Decodes symbols by walking a :class:`HuffmanTable` with a bit window."""

    def __init__(self, table: HuffmanTable) -> None:
        self._table = table
        self.state = 0

    def reset(self, new_table: HuffmanTable | None) -> None:
        """Clear the state and switch to ``new_table`` if one is given."""
        self.state = 0
        if new_table is not None:
            self._table = new_table

    def decode_symbol(self) -> int:
        """The symbol the current state points at."""
        return self._table.decode[self.state].symbol

    def init_state(self, br: BitReaderReversed) -> int:
        """Fill the state from the stream; returns the number of bits read."""
        num_bits = self._table.max_num_bits
        self.state = br.get_bits(num_bits)
        return num_bits

    def next_state(self, br: BitReaderReversed) -> int:
        """Drop the bits of the current symbol and shift in new ones.

        Returns the number of bits read.
        """
        num_bits = self._table.decode[self.state].num_bits
        new_bits = br.get_bits(num_bits)
        mask = len(self._table.decode) - 1
        self.state = ((self.state << num_bits) & mask) | new_bits
        return num_bits