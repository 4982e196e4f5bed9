import io

BUFFER_SIZE = 8192  #: Bytes read from / written to the underlying stream at once
MAX_BITS = 32  #: Widest single read or write


def _check_width(nbits: int):
    """Validate a bit width for a single read or write.

    :param nbits: Requested number of bits.
    :type nbits: int
    :raises ValueError: If ``nbits`` is outside ``[1, 32]``.
    """
    if nbits < 1 or nbits > MAX_BITS:
        raise ValueError(
            f"Illegal argument: nbits must be on [1, {MAX_BITS}], got {nbits}"
        )


class BitWriter:
    """Bit-packing writer over a binary sink.

    Accumulates individual bits into bytes and buffers the completed bytes
    until ``buffer_size`` of them are pending, then writes them out.

    :ivar sink: Writable binary file object receiving the bytes.
    :type sink: io.IOBase
    :ivar buffer: Completed bytes not yet written to ``sink``.
    :type buffer: bytearray
    :ivar bit_buffer: Scratch register for pending bits.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits currently stored in ``bit_buffer`` (0-7).
    :type bit_count: int
    :ivar bits_written: Number of bits accepted so far.
    :type bits_written: int
    :ivar closed: Whether :meth:`close` has been called.
    :type closed: bool
    """

    def __init__(self, sink=None, buffer_size: int = BUFFER_SIZE,
                 close_sink: bool = True):
        """Initialize a bit writer.

        :param sink: Writable binary file object; ``None`` writes into an
            internal :class:`io.BytesIO`.
        :param int buffer_size: Number of completed bytes to hold before
            writing them to ``sink``.
        :param bool close_sink: Whether :meth:`close` also closes ``sink``.
            An internal :class:`io.BytesIO` is never closed, so
            :meth:`getvalue` keeps working after :meth:`close`.
        :returns: None
        :rtype: None
        """
        self.sink = io.BytesIO() if sink is None else sink
        self.buffer_size = buffer_size
        self.close_sink = close_sink and sink is not None
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_written = 0
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def write_bits(self, value: int, nbits: int):
        """Write the lowest ``nbits`` of ``value``, MSB first.

        :param value: Integer whose bits will be written.
        :type value: int
        :param nbits: Number of bits from ``value`` to write (1-32).
        :type nbits: int
        :returns: None
        :rtype: None
        :raises ValueError: If ``nbits`` is out of range or the writer
            is closed.
        """
        _check_width(nbits)
        if self.closed:
            raise ValueError("write to a closed BitWriter")
        self.bit_buffer = (self.bit_buffer << nbits) | (value & ((1 << nbits) - 1))
        self.bit_count += nbits
        while self.bit_count >= 8:
            self.bit_count -= 8
            self.buffer.append((self.bit_buffer >> self.bit_count) & 0xFF)
        self.bit_buffer &= (1 << self.bit_count) - 1
        self.bits_written += nbits
        if len(self.buffer) >= self.buffer_size:
            self.flush()

    def flush(self):
        """Write all completed bytes to the sink.

        A partial byte stays in ``bit_buffer`` until more bits arrive or
        the writer is closed.

        :returns: None
        :rtype: None
        """
        if self.buffer:
            self.sink.write(bytes(self.buffer))
            self.buffer.clear()
        flush = getattr(self.sink, "flush", None)
        if flush is not None:
            flush()

    def close(self):
        """Pad the final partial byte with zeros, flush and release the sink.

        Calling ``close`` more than once has no further effect.

        :returns: None
        :rtype: None
        """
        if self.closed:
            return
        if self.bit_count > 0:
            self.buffer.append((self.bit_buffer << (8 - self.bit_count)) & 0xFF)
            self.bit_buffer = 0
            self.bit_count = 0
        self.flush()
        self.closed = True
        if self.close_sink:
            self.sink.close()

    def getvalue(self) -> bytes:
        """Return everything written so far to an in-memory sink.

        Only completed bytes are included; call :meth:`close` first to get
        the padded final byte.

        :returns: Bytes written to the underlying :class:`io.BytesIO`.
        :rtype: bytes
        """
        if self.buffer:
            self.flush()
        return self.sink.getvalue()


class BitReader:
    """Buffered bit reader over a binary source.

    Reads the source ``buffer_size`` bytes at a time and serves bits from
    a wide accumulator refilled up to 4 bytes at a time, so most calls to
    :meth:`read_bits` never touch the source.

    :ivar source: Readable binary file object.
    :type source: io.IOBase
    :ivar buffer: Last block read from ``source``.
    :type buffer: bytes
    :ivar pos: Index of the next unread byte in ``buffer``.
    :type pos: int
    :ivar bit_buffer: Accumulator holding ``bit_count`` unread bits.
    :type bit_buffer: int
    :ivar bit_count: Number of unread bits in ``bit_buffer``.
    :type bit_count: int
    :ivar bits_read: Number of bits delivered since the start or the last
        :meth:`reset`.
    :type bits_read: int
    :ivar closed: Whether :meth:`close` has been called.
    :type closed: bool
    """

    def __init__(self, source, buffer_size: int = BUFFER_SIZE,
                 close_source: bool = True):
        """Create a bit reader.

        :param source: Readable binary file object, or a bytes-like object
            which is wrapped in :class:`io.BytesIO`.
        :param int buffer_size: Number of bytes to request from ``source``
            per refill.
        :param bool close_source: Whether :meth:`close` also closes
            ``source``.
        :returns: None
        :rtype: None
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        self.source = source
        self.buffer_size = buffer_size
        self.close_source = close_source
        self.start = source.tell() if source.seekable() else None
        self.closed = False
        self._clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _clear(self):
        """Drop all buffered bytes and bits and zero the bit counter."""
        self.buffer = b""
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_read = 0

    def read_bits(self, nbits: int) -> int:
        """Read ``nbits`` bits from the stream and return them as an integer.

        Bits are returned MSB-first in the integer. A failed read consumes
        nothing.

        :param nbits: Number of bits to read (1-32).
        :type nbits: int
        :returns: The integer value composed of the next ``nbits`` bits.
        :rtype: int
        :raises ValueError: If ``nbits`` is outside ``[1, 32]``.
        :raises EOFError: If fewer than ``nbits`` bits remain.
        """
        _check_width(nbits)
        while self.bit_count < nbits:
            if not self._fill_bit_buffer():
                raise EOFError("Unexpected end of data")
        self.bit_count -= nbits
        value = self.bit_buffer >> self.bit_count
        self.bit_buffer &= (1 << self.bit_count) - 1
        self.bits_read += nbits
        return value

    def _fill_bit_buffer(self) -> bool:
        """Move up to 4 bytes from ``buffer`` into the accumulator.

        :returns: ``False`` if the source is exhausted.
        :rtype: bool
        """
        if self.pos >= len(self.buffer):
            self.buffer = self.source.read(self.buffer_size)
            self.pos = 0
            if not self.buffer:
                return False
        chunk = self.buffer[self.pos:self.pos + 4]
        self.pos += len(chunk)
        self.bit_buffer = (self.bit_buffer << (8 * len(chunk))) | int.from_bytes(
            chunk, "big"
        )
        self.bit_count += 8 * len(chunk)
        return True

    def reset(self):
        """Rewind to the position the source had when the reader was created.

        :returns: None
        :rtype: None
        :raises io.UnsupportedOperation: If the source is not seekable.
        """
        if self.start is None:
            raise io.UnsupportedOperation("source is not seekable")
        self.source.seek(self.start)
        self._clear()

    def close(self):
        """Release the underlying source.

        :returns: None
        :rtype: None
        """
        if self.closed:
            return
        self.closed = True
        if self.close_source:
            self.source.close()
