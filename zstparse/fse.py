"""Finite State Entropy decoding tables, decoders and the bit readers they use.

FSE assigns short codes to frequent symbols and long codes to rare ones.
Decoding works by mutating a state and using that state to index into a
table that yields the next symbol and how to compute the next state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    "GetBitsError",
    "FSETableError",
    "FSEDecoderError",
    "BitReader",
    "BitReaderReversed",
    "Entry",
    "FSETable",
    "FSEDecoder",
]

# Added to the first four bits of an FSE header to get the accuracy log.
_ACC_LOG_OFFSET = 5
_MAX_BITS_PER_READ = 64


class GetBitsError(ValueError):
    """Raised when a bit reader cannot satisfy a request."""


class FSETableError(ValueError):
    """Raised when an FSE table cannot be read or built."""


class FSEDecoderError(ValueError):
    """Raised when an FSE decoder cannot be used."""


def _highest_bit_set(x: int) -> int:
    if x <= 0:
        raise ValueError(f"value must be positive, got {x}")
    return x.bit_length()


class BitReader:
    """Reads bits from a byte string, least significant bit of each byte first."""

    def __init__(self, source: bytes) -> None:
        self._source = bytes(source)
        self._idx = 0

    def bits_read(self) -> int:
        """Number of bits consumed so far."""
        return self._idx

    def bits_left(self) -> int:
        """Number of bits that can still be read."""
        return len(self._source) * 8 - self._idx

    def return_bits(self, n: int) -> None:
        """Step back ``n`` bits so they will be read again."""
        if n > self._idx:
            raise ValueError("cannot return more bits than have been read")
        self._idx -= n

    def get_bits(self, n: int) -> int:
        """Read ``n`` bits; the first bit read becomes the lowest bit of the result."""
        if n < 0:
            raise ValueError(f"cannot read a negative number of bits: {n}")
        if n == 0:
            return 0
        if n > _MAX_BITS_PER_READ:
            raise GetBitsError(
                f"Cant serve this request. The reader is limited to "
                f"{_MAX_BITS_PER_READ} bits, requested {n} bits"
            )
        remaining = self.bits_left()
        if n > remaining:
            raise GetBitsError(
                f"Can't read {n} bits, only have {remaining} bits left"
            )
        start = self._idx
        first_byte = start // 8
        last_byte = (start + n + 7) // 8
        chunk = int.from_bytes(self._source[first_byte:last_byte], "little")
        self._idx += n
        return (chunk >> (start - first_byte * 8)) & ((1 << n) - 1)


class BitReaderReversed:
    """Reads bits from the end of a byte string towards its start.

    The most significant bit of the last byte comes first. Reading past the
    start yields zero bits and drives :meth:`bits_remaining` negative.
    """

    def __init__(self, source: bytes) -> None:
        self._source = b""
        self._pos = 0
        self.reset(source)

    def reset(self, source: bytes) -> None:
        """Start reading a new byte string from its end."""
        self._source = bytes(source)
        self._pos = len(self._source) * 8

    def bits_remaining(self) -> int:
        """Bits left before the start; negative once reading has overrun it."""
        return self._pos

    def get_bits(self, n: int) -> int:
        """Read ``n`` bits; the first bit read becomes the highest bit of the result."""
        if n < 0:
            raise ValueError(f"cannot read a negative number of bits: {n}")
        if n == 0:
            return 0
        available = max(self._pos, 0)
        take = min(n, available)
        value = 0
        if take:
            start = available - take
            first_byte = start // 8
            last_byte = (available + 7) // 8
            chunk = int.from_bytes(self._source[first_byte:last_byte], "little")
            value = (chunk >> (start - first_byte * 8)) & ((1 << take) - 1)
        self._pos -= n
        return value << (n - take)


@dataclass(frozen=True)
class Entry:
    """One state of an FSE decoding table."""

    base_line: int = 0
    num_bits: int = 0
    symbol: int = 0


_EMPTY_ENTRY = Entry()


@dataclass
class FSETable:
    """An FSE decoding table built from a symbol probability distribution."""

    max_symbol: int
    decode: list[Entry] = field(default_factory=list)
    accuracy_log: int = 0
    symbol_probabilities: list[int] = field(default_factory=list)
    _symbol_counter: list[int] = field(default_factory=list, repr=False)

    def __init__(self, max_symbol: int) -> None:
        self.max_symbol = max_symbol
        self.decode = []
        self.accuracy_log = 0
        self.symbol_probabilities = []
        self._symbol_counter = []

    def reinit_from(self, other: FSETable) -> None:
        """Reset and copy the state of ``other`` into this table."""
        self.reset()
        self._symbol_counter.extend(other._symbol_counter)
        self.symbol_probabilities.extend(other.symbol_probabilities)
        self.decode.extend(other.decode)
        self.accuracy_log = other.accuracy_log

    def reset(self) -> None:
        """Empty the table and clear all internal state."""
        self._symbol_counter.clear()
        self.symbol_probabilities.clear()
        self.decode.clear()
        self.accuracy_log = 0

    def build_decoder(self, source: bytes, max_log: int) -> int:
        """Read a table description from ``source`` and build the table.

        Returns the number of bytes the description occupied.
        """
        self.accuracy_log = 0
        bytes_read = self._read_probabilities(bytes(source), max_log)
        self._build_decoding_table()
        return bytes_read

    def build_from_probabilities(self, acc_log: int, probs: list[int]) -> None:
        """Build the table from a known accuracy log and distribution."""
        if acc_log == 0:
            raise FSETableError("Acclog must be at least 1")
        self.symbol_probabilities = list(probs)
        self.accuracy_log = acc_log
        self._build_decoding_table()

    def _check_symbol_count(self) -> None:
        if len(self.symbol_probabilities) > self.max_symbol + 1:
            raise FSETableError(
                f"There are too many symbols in this distribution: "
                f"{len(self.symbol_probabilities)}. Max: 256"
            )

    def _build_decoding_table(self) -> None:
        self._check_symbol_count()
        probs = self.symbol_probabilities
        table_size = 1 << self.accuracy_log
        symbols = [0] * table_size
        base_lines = [0] * table_size
        num_bits = [0] * table_size

        # Symbols with probability "less than one" occupy the top of the table.
        negative_idx = table_size
        for symbol, prob in enumerate(probs):
            if prob == -1:
                negative_idx -= 1
                symbols[negative_idx] = symbol
                num_bits[negative_idx] = self.accuracy_log

        position = 0
        for symbol, prob in enumerate(probs):
            if prob <= 0:
                continue
            for _ in range(prob):
                symbols[position] = symbol
                position = _next_position(position, table_size)
                while position >= negative_idx:
                    position = _next_position(position, table_size)

        self._symbol_counter = [0] * len(probs)
        for idx in range(negative_idx):
            symbol = symbols[idx]
            count = self._symbol_counter[symbol]
            base_line, bits = _calc_baseline_and_numbits(
                table_size, probs[symbol], count
            )
            if bits > self.accuracy_log:
                raise FSETableError(
                    f"Computed {bits} bits for a state in a table with "
                    f"accuracy log {self.accuracy_log}"
                )
            self._symbol_counter[symbol] += 1
            base_lines[idx] = base_line
            num_bits[idx] = bits

        self.decode = [
            Entry(base_line=b, num_bits=n, symbol=s)
            for b, n, s in zip(base_lines, num_bits, symbols)
        ]

    def _read_probabilities(self, source: bytes, max_log: int) -> int:
        self.symbol_probabilities.clear()
        br = BitReader(source)
        try:
            self.accuracy_log = _ACC_LOG_OFFSET + br.get_bits(4)
            if self.accuracy_log > max_log:
                raise FSETableError(
                    f"Found FSE acc_log: {self.accuracy_log} bigger than allowed "
                    f"maximum in this case: {max_log}"
                )
            if self.accuracy_log == 0:
                raise FSETableError("Acclog must be at least 1")

            probability_sum = 1 << self.accuracy_log
            counter = 0
            while counter < probability_sum:
                max_remaining = probability_sum - counter + 1
                bits_to_read = _highest_bit_set(max_remaining)
                unchecked = br.get_bits(bits_to_read)

                low_threshold = ((1 << bits_to_read) - 1) - max_remaining
                mask = (1 << (bits_to_read - 1)) - 1
                small = unchecked & mask

                if small < low_threshold:
                    br.return_bits(1)
                    value = small
                elif unchecked > mask:
                    value = unchecked - low_threshold
                else:
                    value = unchecked

                prob = value - 1
                self.symbol_probabilities.append(prob)
                if prob > 0:
                    counter += prob
                elif prob == -1:
                    counter += 1
                else:
                    while True:
                        skip = br.get_bits(2)
                        self.symbol_probabilities.extend([0] * skip)
                        if skip != 3:
                            break
        except GetBitsError as exc:
            raise FSETableError(str(exc)) from exc

        if counter != probability_sum:
            raise FSETableError(
                f"The counter ({counter}) exceeded the expected sum: "
                f"{probability_sum}. This means an error or corrupted data \n "
                f"{self.symbol_probabilities}"
            )
        self._check_symbol_count()
        return (br.bits_read() + 7) // 8


class FSEDecoder:
    """Walks an :class:`FSETable` using bits from a reversed bit reader."""

    def __init__(self, table: FSETable) -> None:
        self._table = table
        self.state: Entry = table.decode[0] if table.decode else _EMPTY_ENTRY

    def decode_symbol(self) -> int:
        """The symbol of the current state."""
        return self.state.symbol

    def init_state(self, bits: BitReaderReversed) -> None:
        """Read the initial state from the bit stream."""
        if self._table.accuracy_log == 0:
            raise FSEDecoderError("Tried to use an uninitialized table!")
        self.state = self._table.decode[bits.get_bits(self._table.accuracy_log)]

    def update_state(self, bits: BitReaderReversed) -> None:
        """Advance to the next state using bits from the stream."""
        add = bits.get_bits(self.state.num_bits)
        self.state = self._table.decode[self.state.base_line + add]


def _next_position(position: int, table_size: int) -> int:
    position += (table_size >> 1) + (table_size >> 3) + 3
    return position & (table_size - 1)


def _calc_baseline_and_numbits(
    num_states_total: int, num_states_symbol: int, state_number: int
) -> tuple[int, int]:
    highest = _highest_bit_set(num_states_symbol)
    if 1 << (highest - 1) == num_states_symbol:
        num_state_slices = num_states_symbol
    else:
        num_state_slices = 1 << highest

    num_double_width = num_state_slices - num_states_symbol
    num_single_width = num_states_symbol - num_double_width
    slice_width = num_states_total // num_state_slices
    num_bits = _highest_bit_set(slice_width) - 1

    if state_number < num_double_width:
        base_line = num_single_width * slice_width + state_number * slice_width * 2
        return base_line, num_bits + 1
    return (state_number - num_double_width) * slice_width, num_bits