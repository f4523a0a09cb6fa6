import pytest

from zstparse.fse import BitReaderReversed, FSETableError
from zstparse.huff0 import HuffmanDecoder, HuffmanTable, HuffmanTableError

# Entropy tables of a real dictionary; they start with a Huffman table whose
# weights are FSE compressed.
RAW_TABLES = bytes(
    [
        54, 16, 192, 155, 4, 0, 207, 59, 239, 121, 158, 116, 220, 93, 114, 229, 110, 41, 249, 95,
        165, 255, 83, 202, 254, 68, 74, 159, 63, 161, 100, 151, 137, 21, 184, 183, 189, 100, 235,
        209, 251, 174, 91, 75, 91, 185, 19, 39, 75, 146, 98, 177, 249, 14, 4, 35, 0, 0, 0, 40, 40,
        20, 10, 12, 204, 37, 196, 1, 173, 122, 0, 4, 0, 128, 1, 2, 2, 25, 32, 27, 27, 22, 24, 26,
        18, 12, 12, 15, 16, 11, 69, 37, 225, 48, 20, 12, 6, 2, 161, 80, 40, 20, 44, 137, 145, 204,
        46, 0, 0, 0, 0, 0, 116, 253, 16, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0,
    ]
)


def _encode(table, symbols):
    """Pack the canonical codes of ``symbols`` for a reversed bit reader."""
    max_bits = table.max_num_bits
    codes = {}
    for idx, entry in enumerate(table.decode):
        codes.setdefault(entry.symbol, (idx >> (max_bits - entry.num_bits), entry.num_bits))
    bitstring = "".join(format(code, f"0{nb}b") for code, nb in (codes[s] for s in symbols))
    bitstring += "0" * (-len(bitstring) % 8)
    data = int(bitstring, 2).to_bytes(len(bitstring) // 8, "big")
    return data[::-1]


def _decode(table, data, count):
    br = BitReaderReversed(data)
    dec = HuffmanDecoder(table)
    dec.init_state(br)
    out = []
    for _ in range(count):
        out.append(dec.decode_symbol())
        dec.next_state(br)
    return out


def _check_table_invariants(table):
    assert len(table.decode) == 1 << table.max_num_bits
    assert 1 <= table.max_num_bits <= 11
    counts = {}
    for entry in table.decode:
        assert 1 <= entry.num_bits <= table.max_num_bits
        counts.setdefault(entry.symbol, []).append(entry.num_bits)
    for symbol, nbs in counts.items():
        assert len(set(nbs)) == 1
        assert len(nbs) == 1 << (table.max_num_bits - nbs[0])


def test_direct_weights_bytes_read_and_invariants():
    raw = bytes([0x11])
    table = HuffmanTable()
    assert table.build_decoder(bytes([129]) + raw) == 1 + len(raw)
    assert table.weights == [1, 1]
    _check_table_invariants(table)
    assert len(table.bits) == len(table.weights) + 1


def test_direct_weights_worked_example():
    table = HuffmanTable()
    table.build_decoder(bytes([129, 0x11]))
    assert table.max_num_bits == 2
    # Stream bits, most significant first: 00 01 1 01 1(0)
    assert _decode(table, bytes([0b00011011]), 5) == [0, 1, 2, 1, 2]


def test_direct_weights_round_trip():
    table = HuffmanTable()
    table.build_decoder(bytes([131, 0x21, 0x12]))
    _check_table_invariants(table)
    symbols = [0, 1, 2, 3, 4, 4, 3, 2, 1, 0, 0, 4]
    assert _decode(table, _encode(table, symbols), len(symbols)) == symbols


def test_fse_compressed_weights_from_dictionary():
    table = HuffmanTable()
    assert table.build_decoder(RAW_TABLES) == 1 + RAW_TABLES[0]
    _check_table_invariants(table)
    present = sorted({e.symbol for e in table.decode})
    assert len(present) > 1
    symbols = present + present[::-1] + present[::3]
    assert _decode(table, _encode(table, symbols), len(symbols)) == symbols


def test_empty_source():
    with pytest.raises(HuffmanTableError):
        HuffmanTable().build_decoder(b"")


def test_not_enough_bytes_for_fse_weights():
    with pytest.raises(HuffmanTableError):
        HuffmanTable().build_decoder(RAW_TABLES[:10])


def test_not_enough_bytes_for_direct_weights():
    with pytest.raises(HuffmanTableError):
        HuffmanTable().build_decoder(bytes([130]))


def test_missing_weights():
    with pytest.raises(HuffmanTableError):
        HuffmanTable().build_decoder(bytes([129, 0x00]))


def test_weight_bigger_than_max():
    with pytest.raises(HuffmanTableError):
        HuffmanTable().build_decoder(bytes([128, 0xC0]))


def test_leftover_not_power_of_two():
    with pytest.raises(HuffmanTableError):
        HuffmanTable().build_decoder(bytes([131, 0x21, 0x11]))


def test_fse_table_error_is_chained():
    with pytest.raises(HuffmanTableError) as info:
        HuffmanTable().build_decoder(bytes([2, 0x0F, 0x00]))
    assert isinstance(info.value.__cause__, FSETableError)


def test_reset_clears_table():
    table = HuffmanTable()
    table.build_decoder(RAW_TABLES)
    table.reset()
    assert table.decode == []
    assert table.weights == []
    assert table.max_num_bits == 0


def test_reinit_from_copies_table():
    source = HuffmanTable()
    source.build_decoder(RAW_TABLES)
    copy = HuffmanTable()
    copy.build_decoder(bytes([129, 0x11]))
    copy.reinit_from(source)
    assert copy.decode == source.decode
    assert copy.weights == source.weights
    assert copy.max_num_bits == source.max_num_bits
    assert copy.bits == source.bits


def test_decoder_reset_switches_table():
    small = HuffmanTable()
    small.build_decoder(bytes([129, 0x11]))
    big = HuffmanTable()
    big.build_decoder(RAW_TABLES)
    dec = HuffmanDecoder(small)
    dec.state = 3
    dec.reset(big)
    assert dec.state == 0
    assert dec.decode_symbol() == big.decode[0].symbol
    br = BitReaderReversed(b"\xff\xff")
    assert dec.init_state(br) == big.max_num_bits


def test_decoder_reset_without_table_keeps_table():
    table = HuffmanTable()
    table.build_decoder(bytes([129, 0x11]))
    dec = HuffmanDecoder(table)
    dec.state = 2
    dec.reset(None)
    assert dec.state == 0
    assert dec.decode_symbol() == table.decode[0].symbol


def test_next_state_returns_code_length():
    table = HuffmanTable()
    table.build_decoder(RAW_TABLES)
    dec = HuffmanDecoder(table)
    br = BitReaderReversed(bytes(range(1, 33)))
    dec.init_state(br)
    for _ in range(20):
        expected = table.decode[dec.state].num_bits
        assert dec.next_state(br) == expected
        assert 0 <= dec.state < len(table.decode)