import io
import sys
from typing import Callable, Optional

from bitops import BitReader, BitWriter
from huffman import (
    BITS_PER_INT,
    BITS_PER_WORD,
    PSEUDO_EOF,
    build_tree,
    code_to_str,
    count_frequencies,
    derive_codes,
    read_tree,
    tree_symbols,
    write_tree,
)

HUFF_NUMBER = 0xFACE8200  #: Magic number for huffman files
HUFF_TREE = HUFF_NUMBER | 1  #: Magic number for files carrying a pre-order tree header
PROGRESS_STEP = 1 << 16  #: Input bytes between two progress reports


class HuffProcessor:
    """Two-pass Huffman compressor and tree-walking decompressor.

    Compressed format:
    - Magic: ``HUFF_TREE`` (32 bits)
    - Tree: pre-order, ``0`` per internal node, ``1`` + 9-bit symbol per leaf
    - Body: one codeword per input byte, then the ``PSEUDO_EOF`` codeword
    - Zero bits up to the next byte boundary

    :ivar debug: Print a trace of each run to ``sys.stderr``.
    :type debug: bool
    """

    def __init__(self, debug: bool = False):
        """Create a processor.

        :param bool debug: Whether to print a trace of each run.
        :returns: None
        :rtype: None
        """
        self.debug = debug

    def _trace(self, message: str):
        """Print one debug line; callers check ``self.debug`` first."""
        print(f"[huff] {message}", file=sys.stderr)

    def compress(
        self,
        reader: BitReader,
        writer: BitWriter,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        """Compress everything ``reader`` holds into ``writer``.

        ``reader`` is read twice: once to count chunks and, after
        :meth:`BitReader.reset`, once to encode them. ``writer`` is closed
        on success.

        :param reader: Rewindable source positioned at the data start.
        :type reader: BitReader
        :param writer: Destination of the compressed stream.
        :type writer: BitWriter
        :param on_progress: Optional callback ``on_progress(done, total)``
            receiving the number of input bytes encoded so far.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: None
        :rtype: None
        """
        counts = count_frequencies(reader)
        total = sum(counts)
        root = build_tree(counts)
        reader.reset()

        writer.write_bits(HUFF_TREE, BITS_PER_INT)
        write_tree(root, writer)
        header_bits = writer.bits_written
        codes = derive_codes(root)
        if self.debug:
            self._trace(
                f"tree has {len(tree_symbols(root))} leaves, "
                f"header is {header_bits} bits, "
                f"end-of-data code is {code_to_str(*codes[PSEUDO_EOF])}"
            )
        done = 0
        while True:
            try:
                value = reader.read_bits(BITS_PER_WORD)
            except EOFError:
                break
            code, length = codes[value]
            self._write_code(writer, code, length)
            done += 1
            if on_progress is not None and done % PROGRESS_STEP == 0:
                self._report(on_progress, done, total)

        code, length = codes[PSEUDO_EOF]
        self._write_code(writer, code, length)
        if self.debug:
            self._trace(
                f"encoded {done} bytes into "
                f"{writer.bits_written - header_bits} body bits"
            )
        if on_progress is not None:
            self._report(on_progress, done, total)
        writer.close()

    def decompress(self, reader: BitReader, writer: BitWriter) -> None:
        """Decompress a stream produced by :meth:`compress`.

        :param reader: Source positioned at the magic number.
        :type reader: BitReader
        :param writer: Destination of the original bytes; closed on success.
        :type writer: BitWriter
        :returns: None
        :rtype: None
        :raises ValueError: If the magic number is missing or wrong, or the
            tree header is corrupt.
        :raises EOFError: If the stream ends before the end-of-data codeword.
        """
        try:
            magic = reader.read_bits(BITS_PER_INT)
        except EOFError:
            raise ValueError("Illegal header: stream too short for magic number")
        if magic != HUFF_TREE:
            raise ValueError(f"Invalid magic number {magic:#010x}")

        root = read_tree(reader)
        if self.debug:
            self._trace(f"read tree with {len(tree_symbols(root))} leaves")

        current = root
        decoded = 0
        while True:
            if reader.read_bits(1) == 0:
                current = current.left
            else:
                current = current.right
            if current.is_leaf:
                if current.symbol == PSEUDO_EOF:
                    break
                writer.write_bits(current.symbol, BITS_PER_WORD)
                decoded += 1
                current = root

        if self.debug:
            self._trace(f"decoded {decoded} bytes from {reader.bits_read} bits")
        writer.close()

    @staticmethod
    def _write_code(writer: BitWriter, code: int, length: int):
        """Write a codeword that may be wider than a single ``write_bits`` call."""
        while length > BITS_PER_INT:
            length -= BITS_PER_INT
            writer.write_bits(code >> length, BITS_PER_INT)
        writer.write_bits(code, length)

    @staticmethod
    def _report(on_progress: Callable[[int, int], None], done: int, total: int):
        try:
            on_progress(done, total)
        except Exception:
            pass


def compress_bytes(data: bytes, debug: bool = False) -> bytes:
    """Compress an in-memory byte string.

    :param data: Input bytes.
    :type data: bytes
    :param bool debug: Enable the processor trace.
    :returns: Compressed stream.
    :rtype: bytes
    """
    writer = BitWriter(io.BytesIO(), close_sink=False)
    HuffProcessor(debug).compress(BitReader(data), writer)
    return writer.getvalue()


def decompress_bytes(data: bytes, debug: bool = False) -> bytes:
    """Decompress a byte string produced by :func:`compress_bytes`.

    :param data: Compressed stream.
    :type data: bytes
    :param bool debug: Enable the processor trace.
    :returns: Original bytes.
    :rtype: bytes
    :raises ValueError: If the stream is not a valid compressed stream.
    :raises EOFError: If the stream is truncated.
    """
    writer = BitWriter(io.BytesIO(), close_sink=False)
    HuffProcessor(debug).decompress(BitReader(data), writer)
    return writer.getvalue()
