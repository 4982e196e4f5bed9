import argparse
import os
import sys

from bitops import BitReader, BitWriter
from processor import HuffProcessor


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Huffman compressor for a single file"
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    compress = subparsers.add_parser(
        "compress", aliases=["c"], help="Compress a file"
    )
    compress.add_argument("input", help="File to compress")
    compress.add_argument(
        "-o", "--output", required=True, help="Compressed output file path"
    )
    compress.add_argument(
        "-P",
        "--no-progress",
        action="store_true",
        help="Hide the progress line",
    )
    compress.add_argument(
        "-d", "--debug", action="store_true", help="Print a codec trace"
    )

    decompress = subparsers.add_parser(
        "decompress", aliases=["d"], help="Decompress a file"
    )
    decompress.add_argument("input", help="Compressed file to restore")
    decompress.add_argument(
        "-o", "--output", required=True, help="Restored output file path"
    )
    decompress.add_argument(
        "-d", "--debug", action="store_true", help="Print a codec trace"
    )

    return parser


def _print_progress(line: str) -> None:
    """Render and flush a single progress line in-place (carriage return).

    :param line: The textual progress line to display.
    :type line: str
    :returns: None
    :rtype: None
    """
    sys.stdout.write("\r" + line)
    sys.stdout.flush()


def _fmt_pct(done: int, total: int) -> str:
    """Format a completion percentage string like ``12.34%``.

    :param done: Units completed.
    :type done: int
    :param total: Total units to complete.
    :type total: int
    :returns: Percentage.
    :rtype: str
    """
    if total <= 0:
        return "0%"
    pct = 100.0 * (done / float(total))
    return f"{pct:6.2f}%"


def _fmt_bytes(n: int) -> str:
    """Format a byte count into a human-readable string.

    :param n: Number of bytes.
    :type n: int
    :returns: Human-readable string.
    :rtype: str
    """
    for unit in ['', 'Ki', 'Mi', 'Gi', 'Ti']:
        if abs(n) < 1024:
            return f"{n:.2f} {unit}B"
        n /= 1024
    return f"{n:.2f} PiB"


class FileProgress:
    """Callable progress reporter for a single file.

    Redraws the line only when the whole percentage changes.

    :ivar label: Action label (e.g., "Compressing").
    :type label: str
    :ivar path: File name displayed on the line.
    :type path: str
    """

    def __init__(self, label: str, path: str) -> None:
        self.label = label
        self.path = path
        self._last_reported = -1

    def __call__(self, done: int, total: int) -> None:
        """Update the progress display.

        :param done: Bytes processed so far.
        :type done: int
        :param total: Total bytes of the file.
        :type total: int
        :returns: None
        :rtype: None
        """
        if total <= 0:
            return
        percent_bucket = int((done * 100) / total)
        if percent_bucket == self._last_reported:
            return
        self._last_reported = percent_bucket
        _print_progress(f"{self.label} {self.path}  {_fmt_pct(done, total)}")


def compress_file(
    input_path: str, output_path: str, hide_progress: bool, debug: bool = False
) -> None:
    """Compress ``input_path`` into ``output_path`` and report the sizes.

    :param input_path: File to compress.
    :type input_path: str
    :param output_path: Destination file.
    :type output_path: str
    :param hide_progress: Whether to hide the progress line.
    :type hide_progress: bool
    :param debug: Whether to print the codec trace.
    :type debug: bool
    :returns: None
    :rtype: None
    """
    try:
        source = open(input_path, "rb")
    except FileNotFoundError:
        print(f"[!] Input file not found: {input_path}")
        return
    on_prog = None
    if not hide_progress:
        on_prog = FileProgress("Compressing", os.path.basename(input_path))
    with BitReader(source) as reader:
        writer = BitWriter(open(output_path, "wb"))
        try:
            HuffProcessor(debug).compress(reader, writer, on_progress=on_prog)
        finally:
            writer.close()
    if not hide_progress:
        sys.stdout.write("\n")
        sys.stdout.flush()
    before = os.path.getsize(input_path)
    after = os.path.getsize(output_path)
    print("Size before compression: ", _fmt_bytes(before))
    print("Size after compression: ", _fmt_bytes(after))
    print(f"Compression ratio: {before / after:.2f}")


def decompress_file(input_path: str, output_path: str, debug: bool = False) -> None:
    """Restore ``output_path`` from the compressed file ``input_path``.

    :param input_path: Compressed file.
    :type input_path: str
    :param output_path: Destination file.
    :type output_path: str
    :param debug: Whether to print the codec trace.
    :type debug: bool
    :returns: None
    :rtype: None
    :raises ValueError: If the input is not a compressed stream.
    :raises EOFError: If the input is truncated.

    A partially restored ``output_path`` is removed when decompression fails.
    """
    try:
        source = open(input_path, "rb")
    except FileNotFoundError:
        print(f"[!] Compressed file not found: {input_path}")
        return
    with BitReader(source) as reader:
        writer = BitWriter(open(output_path, "wb"))
        try:
            HuffProcessor(debug).decompress(reader, writer)
        except (ValueError, EOFError):
            writer.close()
            os.remove(output_path)
            raise
        finally:
            writer.close()


def main():
    """Entry point for the CLI tool.

    :returns: None
    :rtype: None
    """
    parser = get_parser()
    args = parser.parse_args()

    if args.cmd in ["compress", "c"]:
        compress_file(
            args.input,
            args.output,
            getattr(args, "no_progress", False),
            args.debug,
        )
    elif args.cmd in ["decompress", "d"]:
        decompress_file(args.input, args.output, args.debug)


if __name__ == "__main__":
    main()
