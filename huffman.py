import heapq
import itertools
from typing import Dict, List, Optional, Tuple

from bitops import BitReader, BitWriter

BITS_PER_WORD = 8  #: Width of one input chunk
BITS_PER_INT = 32  #: Width of the magic number
ALPH_SIZE = 1 << BITS_PER_WORD  #: Number of distinct chunk values
PSEUDO_EOF = ALPH_SIZE  #: Sentinel symbol marking the end of the data
MAX_DEPTH = PSEUDO_EOF  #: Deepest possible leaf in a tree of 257 symbols


class HuffmanNode:
    """Node for a full binary Huffman tree.

    :ivar symbol: The symbol stored at a leaf (0-256); ``None`` for internal nodes.
    :type symbol: int | None
    :ivar freq: Weight of the subtree rooted at this node.
    :type freq: int
    :ivar left: Left child node, reached by a ``0`` bit.
    :type left: HuffmanNode | None
    :ivar right: Right child node, reached by a ``1`` bit.
    :type right: HuffmanNode | None
    """

    def __init__(self, symbol=None, freq=0, left=None, right=None):
        self.symbol = symbol
        self.freq = freq
        self.left = left
        self.right = right

    @property
    def is_leaf(self) -> bool:
        """``True`` for a node without children."""
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf:
            return f"HuffmanNode(symbol={self.symbol}, freq={self.freq})"
        return f"HuffmanNode(freq={self.freq}, left={self.left!r}, right={self.right!r})"


def count_frequencies(reader: BitReader) -> List[int]:
    """Count how often each 8-bit chunk occurs in the rest of ``reader``.

    The reader is drained but not rewound.

    :param reader: Source of chunks.
    :type reader: BitReader
    :returns: List of ``ALPH_SIZE`` counts indexed by chunk value.
    :rtype: List[int]
    """
    counts = [0] * ALPH_SIZE
    while True:
        try:
            value = reader.read_bits(BITS_PER_WORD)
        except EOFError:
            break
        counts[value] += 1
    return counts


def build_tree(counts: List[int]) -> HuffmanNode:
    """Build a Huffman tree from chunk counts plus the sentinel.

    Every symbol with a positive count gets a leaf, and a ``PSEUDO_EOF``
    leaf of weight 1 is always added. When no symbol occurs at all, a
    weight-0 leaf for symbol 0 is paired with the sentinel so the root is
    never a leaf. Nodes of equal weight are merged in the order they
    entered the heap.

    :param counts: ``ALPH_SIZE`` non-negative counts.
    :type counts: List[int]
    :returns: Root of the tree.
    :rtype: HuffmanNode
    :raises ValueError: If ``counts`` has the wrong length or a negative entry.
    """
    if len(counts) != ALPH_SIZE:
        raise ValueError(f"Expected {ALPH_SIZE} counts, got {len(counts)}")
    order = itertools.count()
    heap: List[Tuple[int, int, HuffmanNode]] = []
    for symbol, freq in enumerate(counts):
        if freq < 0:
            raise ValueError(f"Negative count for symbol {symbol}: {freq}")
        if freq > 0:
            heap.append((freq, next(order), HuffmanNode(symbol=symbol, freq=freq)))
    heap.append((1, next(order), HuffmanNode(symbol=PSEUDO_EOF, freq=1)))
    if len(heap) == 1:
        # empty input: a lone sentinel would get a zero-length codeword
        heap.append((0, next(order), HuffmanNode(symbol=0, freq=0)))
    heapq.heapify(heap)

    while len(heap) > 1:
        _, _, left = heapq.heappop(heap)
        _, _, right = heapq.heappop(heap)
        merged = HuffmanNode(freq=left.freq + right.freq, left=left, right=right)
        heapq.heappush(heap, (merged.freq, next(order), merged))

    return heap[0][2]


def derive_codes(root: HuffmanNode) -> Dict[int, Tuple[int, int]]:
    """Collect the root-to-leaf path of every leaf as its codeword.

    :param root: Root of a full binary tree.
    :type root: HuffmanNode
    :returns: Mapping from symbol to ``(code, length)``.
    :rtype: Dict[int, Tuple[int, int]]
    """
    codes: Dict[int, Tuple[int, int]] = {}

    def walk(node: HuffmanNode, code: int, length: int):
        if node.is_leaf:
            codes[node.symbol] = (code, length)
            return
        walk(node.left, code << 1, length + 1)
        walk(node.right, (code << 1) | 1, length + 1)

    walk(root, 0, 0)
    return codes


def code_to_str(code: int, length: int) -> str:
    """Render a ``(code, length)`` pair as a string of ``0``/``1``."""
    return format(code, "b").zfill(length) if length else ""


def write_tree(root: HuffmanNode, writer: BitWriter):
    """Serialize a tree in pre-order.

    A leaf is a ``1`` bit followed by its symbol in ``BITS_PER_WORD + 1``
    bits; an internal node is a ``0`` bit followed by its left and then
    its right subtree.

    :param root: Tree to write.
    :type root: HuffmanNode
    :param writer: Destination stream.
    :type writer: BitWriter
    :returns: None
    :rtype: None
    """
    if root.is_leaf:
        writer.write_bits(1, 1)
        writer.write_bits(root.symbol, BITS_PER_WORD + 1)
    else:
        writer.write_bits(0, 1)
        write_tree(root.left, writer)
        write_tree(root.right, writer)


def read_tree(reader: BitReader) -> HuffmanNode:
    """Rebuild a tree written by :func:`write_tree`.

    Internal nodes come back with weight 0.

    :param reader: Stream positioned at the start of the tree.
    :type reader: BitReader
    :returns: Root of the tree.
    :rtype: HuffmanNode
    :raises EOFError: If the stream ends inside the tree.
    :raises ValueError: If the bits do not describe a tree
        :func:`write_tree` could have produced.
    """
    seen = set()
    root = _read_node(reader, 0, seen)
    if root.is_leaf:
        raise ValueError("Corrupt tree header: root is a leaf")
    if PSEUDO_EOF not in seen:
        raise ValueError("Corrupt tree header: no end-of-data leaf")
    return root


def _read_node(reader: BitReader, depth: int, seen: set) -> HuffmanNode:
    """Read one subtree at ``depth``, recording leaf symbols in ``seen``.

    :raises ValueError: If the subtree is too deep or a leaf symbol is
        out of range or repeated.
    """
    if depth > MAX_DEPTH:
        raise ValueError(f"Corrupt tree header: deeper than {MAX_DEPTH} levels")
    if reader.read_bits(1) == 0:
        left = _read_node(reader, depth + 1, seen)
        right = _read_node(reader, depth + 1, seen)
        return HuffmanNode(left=left, right=right)
    symbol = reader.read_bits(BITS_PER_WORD + 1)
    if symbol > PSEUDO_EOF:
        raise ValueError(f"Corrupt tree header: invalid symbol {symbol}")
    if symbol in seen:
        raise ValueError(f"Corrupt tree header: duplicate symbol {symbol}")
    seen.add(symbol)
    return HuffmanNode(symbol=symbol)


def tree_symbols(root: Optional[HuffmanNode]) -> List[int]:
    """Return the leaf symbols of a tree in left-to-right order."""
    if root is None:
        return []
    if root.is_leaf:
        return [root.symbol]
    return tree_symbols(root.left) + tree_symbols(root.right)
