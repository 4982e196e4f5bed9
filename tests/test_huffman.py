import pytest

from bitops import BitReader
from huffman import (
    ALPH_SIZE,
    PSEUDO_EOF,
    build_tree,
    code_to_str,
    count_frequencies,
    derive_codes,
    read_tree,
    tree_symbols,
    write_tree,
)


def _counts(data: bytes):
    counts = [0] * ALPH_SIZE
    for b in data:
        counts[b] += 1
    return counts


def _follow(root, bits: str):
    node = root
    for bit in bits:
        node = node.left if bit == "0" else node.right
    return node


def test_count_frequencies_drains_reader():
    reader = BitReader(b"abracadabra")
    counts = count_frequencies(reader)
    assert len(counts) == ALPH_SIZE
    assert counts[ord("a")] == 5
    assert counts[ord("b")] == 2
    assert counts[ord("r")] == 2
    assert counts[ord("c")] == 1
    assert counts[ord("d")] == 1
    assert sum(counts) == 11
    with pytest.raises(EOFError):
        reader.read_bits(1)


def test_build_tree_contains_data_symbols_and_sentinel():
    root = build_tree(_counts(b"abracadabra"))
    assert sorted(tree_symbols(root)) == [ord(c) for c in "abcdr"] + [PSEUDO_EOF]
    assert root.freq == 12


def test_build_tree_empty_input_pairs_sentinel():
    root = build_tree([0] * ALPH_SIZE)
    assert not root.is_leaf
    assert root.left.is_leaf and root.right.is_leaf
    assert PSEUDO_EOF in tree_symbols(root)
    assert derive_codes(root)[PSEUDO_EOF] == (1, 1)


def test_single_symbol_tree_and_codes():
    root = build_tree(_counts(b"A" * 1000))
    codes = derive_codes(root)
    assert codes == {PSEUDO_EOF: (0, 1), ord("A"): (1, 1)}


def test_build_tree_rejects_bad_tables():
    with pytest.raises(ValueError):
        build_tree([1, 2, 3])
    bad = [0] * ALPH_SIZE
    bad[7] = -1
    with pytest.raises(ValueError):
        build_tree(bad)


def test_codes_are_prefix_free_and_match_tree_paths():
    data = bytes(range(256)) + b"eeeeeeeeeetttttaaaoooin" * 7
    root = build_tree(_counts(data))
    codes = derive_codes(root)
    assert set(codes) == set(range(256)) | {PSEUDO_EOF}

    words = {sym: code_to_str(code, length) for sym, (code, length) in codes.items()}
    for sym, word in words.items():
        assert len(word) >= 1
        leaf = _follow(root, word)
        assert leaf.is_leaf and leaf.symbol == sym
    ordered = sorted(words.values())
    for a, b in zip(ordered, ordered[1:]):
        assert not b.startswith(a)
    assert sum(2 ** -len(w) for w in words.values()) == 1


def test_frequent_symbols_get_shorter_codes():
    codes = derive_codes(build_tree(_counts(b"x" * 500 + b"y" * 20 + b"z")))
    assert codes[ord("x")][1] < codes[ord("y")][1] <= codes[ord("z")][1]


def test_build_tree_is_deterministic():
    counts = _counts(b"mississippi river banks")
    assert derive_codes(build_tree(counts)) == derive_codes(build_tree(counts))


def test_skewed_counts_give_codes_longer_than_32_bits():
    counts = [0] * ALPH_SIZE
    a, b = 1, 1
    for i in range(40):
        counts[i] = a
        a, b = b, a + b
    codes = derive_codes(build_tree(counts))
    assert max(length for _, length in codes.values()) > 32


def test_write_tree_read_tree_roundtrip(memory_writer):
    root = build_tree(_counts(b"hello huffman world"))
    bw = memory_writer()
    write_tree(root, bw)
    leaves = len(tree_symbols(root))
    assert bw.bits_written == 10 * leaves + (leaves - 1)
    bw.close()

    restored = read_tree(BitReader(bw.getvalue()))
    assert tree_symbols(restored) == tree_symbols(root)
    assert derive_codes(restored) == derive_codes(root)


def test_write_tree_empty_input_layout(memory_writer):
    bw = memory_writer()
    write_tree(build_tree([0] * ALPH_SIZE), bw)
    bw.close()
    # 0 | 1 000000000 | 1 100000000, padded
    assert bw.getvalue() == bytes([0x40, 0x18, 0x00])


def _header(memory_writer, fields):
    bw = memory_writer()
    for value, nbits in fields:
        bw.write_bits(value, nbits)
    bw.close()
    return BitReader(bw.getvalue())


def test_read_tree_truncated_raises_eoferror(memory_writer):
    with pytest.raises(EOFError):
        read_tree(BitReader(b""))
    with pytest.raises(EOFError):
        read_tree(_header(memory_writer, [(0, 1), (1, 1), (5, 9)]))


@pytest.mark.parametrize(
    "fields",
    [
        [(1, 1), (PSEUDO_EOF, 9)],  # root is a leaf
        [(0, 1), (1, 1), (300, 9), (1, 1), (PSEUDO_EOF, 9)],  # symbol out of range
        [(0, 1), (1, 1), (5, 9), (1, 1), (5, 9)],  # duplicate symbol
        [(0, 1), (1, 1), (5, 9), (1, 1), (6, 9)],  # no sentinel
    ],
)
def test_read_tree_rejects_impossible_headers(memory_writer, fields):
    with pytest.raises(ValueError):
        read_tree(_header(memory_writer, fields))


def test_read_tree_rejects_runaway_depth():
    with pytest.raises(ValueError):
        read_tree(BitReader(b"\x00" * 40))
