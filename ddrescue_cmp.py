#!/usr/bin/env python3
"""
DdrescueCmp - Cross-checks and repairs partial ddrescue image recoveries

This tool reads a recovered image together with its ddrescue log and can:
  - report how many bytes were rescued,
  - verify that two independently rescued copies agree wherever both were rescued,
  - extract files listed in a catalog when all of their bytes were rescued,
  - scan the rescued data for JPEG files and write a catalog for later extraction.
"""

import argparse
import sys
from pathlib import Path
from typing import Callable, Iterator, NamedTuple, Optional
from dataclasses import dataclass
from enum import Enum, auto
from datetime import datetime
import mmh3
import bisect
import re


BLOCK_SIZE = 2048
DEFAULT_BUFFER_SIZE = BLOCK_SIZE * 1024
MAX_NAME_LENGTH = 255


class RescueFormatError(ValueError):
    """Raised when a rescue log violates the rescued range invariants."""


class ImageMismatchError(Exception):
    """Raised when two rescued images disagree inside a commonly rescued range."""

    def __init__(self, address: int):
        super().__init__(f"Files do not match at 0x{address:x}")
        self.address = address


class Interval(NamedTuple):
    """A byte range [start, start + length) of an image."""
    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length


class RescueMap:
    """Sorted, non-overlapping set of rescued byte ranges.

    Ranges are stored as two parallel lists so lookups can use binary search
    on the start offsets, keeping coverage tests logarithmic for large logs.
    """

    def __init__(self):
        self._starts: list[int] = []
        self._lengths: list[int] = []

    def __len__(self) -> int:
        return len(self._starts)

    def __iter__(self) -> Iterator[Interval]:
        for start, length in zip(self._starts, self._lengths):
            yield Interval(start, length)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RescueMap):
            return NotImplemented
        return self._starts == other._starts and self._lengths == other._lengths

    def __repr__(self) -> str:
        runs = ', '.join(f"0x{start:x}:0x{length:x}" for start, length in self)
        return f"RescueMap({{{runs}}})"

    @property
    def total_bytes(self) -> int:
        return sum(self._lengths)

    def insert(self, start: int, length: int, allow_touching: bool = False):
        """
        Insert a rescued range.

        Args:
            start: Address of the first rescued byte
            length: Number of rescued bytes
            allow_touching: Accept a range that exactly touches an existing one
                            (overlaps are always rejected)

        Raises:
            RescueFormatError: If the range overlaps (or touches) an existing range
        """
        end = start + length
        idx = bisect.bisect_left(self._starts, start)

        if idx < len(self._starts):
            next_start = self._starts[idx]
            if next_start < end or (next_start == end and not allow_touching):
                self._raise_overlap(idx, start, length)

        if idx > 0:
            prev_end = self._starts[idx - 1] + self._lengths[idx - 1]
            if start < prev_end or (start == prev_end and not allow_touching):
                self._raise_overlap(idx - 1, start, length)

        self._starts.insert(idx, start)
        self._lengths.insert(idx, length)

    def _raise_overlap(self, idx: int, start: int, length: int):
        raise RescueFormatError(
            f"overlap of existing 0x{self._starts[idx]:x} 0x{self._lengths[idx]:x} "
            f"with 0x{start:x} 0x{length:x}"
        )

    def compact(self):
        """Merge ranges where one ends exactly where the next begins."""
        starts: list[int] = []
        lengths: list[int] = []
        for start, length in zip(self._starts, self._lengths):
            if starts and starts[-1] + lengths[-1] == start:
                lengths[-1] += length
            else:
                starts.append(start)
                lengths.append(length)
        self._starts = starts
        self._lengths = lengths

    def find_covering_run(self, address: int) -> Optional[Interval]:
        """
        Find the range with the greatest start not after the given address.

        The returned range does not necessarily contain the address; callers
        check its end themselves.

        Returns:
            The Interval, or None if the address precedes every range
        """
        idx = bisect.bisect_right(self._starts, address) - 1
        if idx < 0:
            return None
        return Interval(self._starts[idx], self._lengths[idx])

    def covers(self, start: int, length: int) -> bool:
        """Check whether [start, start + length) lies entirely within one range."""
        run = self.find_covering_run(start)
        return run is not None and start >= run.start and start + length <= run.end

    def intersect_runs(self, other: 'RescueMap') -> Iterator[Interval]:
        """
        Yield the ranges rescued in both this map and another, in address order.

        Args:
            other: The RescueMap to intersect with

        Yields:
            Interval for every overlap between a range of this map and a range of other
        """
        other_starts = other._starts
        other_lengths = other._lengths

        for start, length in zip(self._starts, self._lengths):
            end = start + length
            # Back up one so a range beginning before ours is also seen
            idx = bisect.bisect_left(other_starts, start)
            if idx > 0:
                idx -= 1

            while idx < len(other_starts):
                other_start = other_starts[idx]
                if other_start >= end:
                    break
                other_end = other_start + other_lengths[idx]
                if other_end > start:
                    overlap_start = max(start, other_start)
                    yield Interval(overlap_start, min(end, other_end) - overlap_start)
                idx += 1


def _parse_log_line(line: str) -> Optional[tuple[int, int, str]]:
    """Split a ddrescue data line into (address, length, status), or None."""
    fields = line.split()
    if len(fields) != 3 or len(fields[2]) != 1:
        return None
    try:
        address = int(fields[0], 16)
        length = int(fields[1], 16)
    except ValueError:
        return None
    if address < 0 or length < 0:
        return None
    return address, length, fields[2]


def read_rescue_log(input_stream, image_name: str, output_stream=sys.stdout) -> RescueMap:
    """
    Read a ddrescue log into a RescueMap of its rescued ('+') ranges.

    The first non-comment line is the ddrescue status line and is always
    skipped. Lines that are not of the form '<hex address> <hex length> <status>'
    are ignored.

    Args:
        input_stream: Text stream of the log
        image_name: Name of the image the log describes (used in the report)
        output_stream: Stream to write the rescued byte total to

    Returns:
        The RescueMap of rescued ranges

    Raises:
        RescueFormatError: On a zero-length rescued range or overlapping ranges
    """
    rescue_map = RescueMap()
    skipped_header = False

    for line in input_stream:
        line = line.rstrip('\n\r')
        if not line.strip() or line.startswith('#'):
            continue
        if not skipped_header:
            skipped_header = True
            continue

        parsed = _parse_log_line(line)
        if parsed is None:
            continue
        address, length, status = parsed
        if status != '+':
            continue

        if length == 0:
            raise RescueFormatError(f'zero length in log "{line}"')

        rescue_map.insert(address, length)

    print(f'Total bytes rescued in "{image_name}" {rescue_map.total_bytes}', file=output_stream)
    return rescue_map


class CatalogEntry(NamedTuple):
    """A file embedded in the image."""
    name: str
    position: int
    length: int


# block (hex), length (dec), ownership token, name. The ownership token is
# either separated from the name by whitespace or glued to it with a '/'.
_CATALOG_FIELDS = re.compile(r'\s*([0-9A-Fa-f]+)\s+(\d+)\s+(?:\S+\s+|\S*/)(\S+)')


def parse_catalog_line(line: str) -> Optional[CatalogEntry]:
    """
    Extract a (block, length, name) triplet from one line of an isodump listing.

    The triplet follows the last ']' on the line, or the last '[' when the
    line has no ']', and ends at ';1'. Anything that does not fit is ignored
    rather than reported, since the listings are edited by hand and often
    contain noise.

    Args:
        line: One line of text

    Returns:
        CatalogEntry with the position converted to a byte address, or None
    """
    line = line.replace('\0', '')

    bracket = line.rfind(']')
    if bracket < 0:
        bracket = line.rfind('[')
    if bracket < 0:
        return None
    line = line[bracket + 1:]

    terminator = line.find(';1')
    if terminator < 0:
        return None
    line = line[:terminator]

    match = _CATALOG_FIELDS.match(line)
    if match is None:
        return None

    block = int(match.group(1), 16)
    length = int(match.group(2))
    # The limit is in bytes; a multi-byte character cut in half is dropped
    name = match.group(3).encode('utf-8')[:MAX_NAME_LENGTH].decode('utf-8', 'ignore')
    return CatalogEntry(name, block * BLOCK_SIZE, length)


def read_catalog(input_stream) -> dict[str, CatalogEntry]:
    """
    Read a catalog listing into a name-indexed dictionary.

    A later line with the same name replaces the earlier entry.
    """
    catalog: dict[str, CatalogEntry] = {}
    for line in input_stream:
        entry = parse_catalog_line(line.rstrip('\n\r'))
        if entry is not None:
            catalog[entry.name] = entry
    return catalog


def format_catalog_line(block: int, length: int, name: str) -> str:
    """Format a catalog line that parse_catalog_line() reads back."""
    return f"] {block:x} {length} 00/ {name};1"


def _read_exact(image, offset: int, size: int) -> bytes:
    """Read exactly size bytes at offset, raising IOError on a short read."""
    image.seek(offset)
    data = image.read(size)
    if len(data) != size:
        name = getattr(image, 'name', 'image')
        raise IOError(f"Failed to read {size} bytes from {name} at 0x{offset:x} (got {len(data)})")
    return data


def compare_images(map1: RescueMap, map2: RescueMap, image1, image2, output_stream=sys.stdout,
                   buffer_size: int = DEFAULT_BUFFER_SIZE,
                   log: Optional[Callable[[str], None]] = None) -> int:
    """
    Verify that two images agree byte-for-byte wherever both were rescued.

    Args:
        map1: RescueMap of the first image
        map2: RescueMap of the second image
        image1: Binary file object of the first image
        image2: Binary file object of the second image
        output_stream: Stream to report each overlap to
        buffer_size: Size of the chunks read from each image
        log: Optional callable receiving diagnostic messages

    Returns:
        Number of overlapping ranges verified

    Raises:
        ImageMismatchError: At the first differing byte
        IOError: If either image cannot supply a requested range
    """
    overlaps = 0

    for overlap in map1.intersect_runs(map2):
        print(f"Overlap starting 0x{overlap.start:x} of length 0x{overlap.length:x}", file=output_stream)

        hasher = mmh3.mmh3_x64_128() if log else None
        position = overlap.start
        while position < overlap.end:
            to_read = min(buffer_size, overlap.end - position)
            chunk1 = _read_exact(image1, position, to_read)
            chunk2 = _read_exact(image2, position, to_read)

            if chunk1 != chunk2:
                index = next(i for i, (a, b) in enumerate(zip(chunk1, chunk2)) if a != b)
                raise ImageMismatchError(position + index)

            if hasher is not None:
                hasher.update(chunk1)
            position += to_read

        overlaps += 1
        if hasher is not None:
            log(f"Overlap 0x{overlap.start:x} matches (mmh3 {hasher.digest().hex()})")

    return overlaps


def extract_files(catalog: dict[str, CatalogEntry], rescue_map: RescueMap, image, output_dir: Path,
                  output_stream=sys.stdout, buffer_size: int = DEFAULT_BUFFER_SIZE,
                  log: Optional[Callable[[str], None]] = None) -> list[str]:
    """
    Extract every catalog entry whose bytes were all rescued.

    An entry must lie entirely inside a single rescued range; partially
    rescued entries are reported and skipped. The output directory is only
    created once there is something to put in it.

    Args:
        catalog: Name-indexed catalog entries
        rescue_map: Compacted RescueMap of the image
        image: Binary file object of the image
        output_dir: Directory to write extracted files to
        output_stream: Stream to report progress to
        buffer_size: Size of the chunks copied from the image
        log: Optional callable receiving diagnostic messages

    Returns:
        Names of the extracted files, in extraction order

    Raises:
        ValueError: If an entry name would escape the output directory
        IOError: If the image cannot supply a range the log claims was rescued
    """
    extracted = []
    created_dir = False

    for name in sorted(catalog):
        entry = catalog[name]
        if not rescue_map.covers(entry.position, entry.length):
            print(f"Missing data for {name} can't extract.", file=output_stream)
            continue

        if name in ('.', '..') or '/' in name or '\\' in name:
            raise ValueError(f"Catalog name '{name}' would escape the output directory")

        if not created_dir:
            output_dir.mkdir(parents=True, exist_ok=True)
            created_dir = True

        hasher = mmh3.mmh3_x64_128() if log else None
        position = entry.position
        end = entry.position + entry.length
        out_path = output_dir / name
        try:
            with open(out_path, 'wb') as out_f:
                while position < end:
                    to_read = min(buffer_size, end - position)
                    data = _read_exact(image, position, to_read)
                    out_f.write(data)
                    if hasher is not None:
                        hasher.update(data)
                    position += to_read
        except BaseException:
            # No partially written files are left behind
            out_path.unlink(missing_ok=True)
            raise

        print(f"Extracted file {name}", file=output_stream)
        if hasher is not None:
            log(f"{name}: {entry.length} bytes at 0x{entry.position:x} (mmh3 {hasher.digest().hex()})")
        extracted.append(name)

    return extracted


JFIF_MARKER = b'\xff\xd8\xff\xe0'
JFIF_IDENTIFIER = b'JFIF\x00'


class JpegState(Enum):
    NO_FILE = auto()
    IN_PROGRESS = auto()
    FOUND_FF = auto()
    FOUND_LEN_HI = auto()
    FOUND_LEN_LO = auto()
    SKIPPING = auto()
    COMPLETE = auto()


@dataclass
class ScanState:
    """Progress through one rescued range; discarded at the end of the range."""
    state: JpegState = JpegState.NO_FILE
    skip: int = 0
    start_block: int = 0
    length: int = 0


class JpegScanner:
    """Finds JFIF files that start on a block boundary inside rescued ranges.

    Each state has a transition function taking (block, pos, scan_state) and
    returning the position of the next unconsumed byte. Only whole blocks are
    scanned; a file that is still open when its rescued range ends is dropped.
    """

    def __init__(self, output_stream=sys.stdout, buffer_size: int = DEFAULT_BUFFER_SIZE,
                 block_size: int = BLOCK_SIZE):
        if buffer_size < block_size or buffer_size % block_size != 0:
            raise ValueError(f"Buffer size ({buffer_size}) must be a positive multiple of block size ({block_size})")
        self.output_stream = output_stream
        self.buffer_size = buffer_size
        self.block_size = block_size
        self.file_count = 0
        self._transitions = {
            JpegState.IN_PROGRESS: self._in_progress,
            JpegState.FOUND_FF: self._found_ff,
            JpegState.FOUND_LEN_HI: self._found_len_hi,
            JpegState.FOUND_LEN_LO: self._found_len_lo,
            JpegState.SKIPPING: self._skipping,
        }

    def scan(self, rescue_map: RescueMap, image) -> Iterator[CatalogEntry]:
        """
        Scan every rescued range of an image for JPEG files.

        Args:
            rescue_map: Compacted RescueMap of the image
            image: Binary file object of the image

        Yields:
            CatalogEntry for every complete JPEG file found
        """
        for run in rescue_map:
            yield from self._scan_run(run, image)

    def write_catalog(self, rescue_map: RescueMap, image, catalog_stream) -> list[CatalogEntry]:
        """Scan the image and write one catalog line per JPEG file found."""
        entries = []
        for entry in self.scan(rescue_map, image):
            catalog_stream.write(format_catalog_line(entry.position // self.block_size, entry.length, entry.name) + '\n')
            entries.append(entry)
        return entries

    def _scan_run(self, run: Interval, image) -> Iterator[CatalogEntry]:
        scan_state = ScanState()
        # Round up to the first block boundary inside the range
        offset = -(-run.start // self.block_size) * self.block_size

        while run.end - offset >= self.block_size:
            to_read = min(run.end - offset, self.buffer_size)
            to_read -= to_read % self.block_size
            buf = _read_exact(image, offset, to_read)
            first_block = offset // self.block_size

            for i in range(to_read // self.block_size):
                block = buf[i * self.block_size:(i + 1) * self.block_size]
                entry = self._scan_block(block, first_block + i, scan_state)
                if entry is not None:
                    yield entry
                scan_state.length += self.block_size

            offset += to_read

    def _scan_block(self, block: bytes, block_num: int, scan_state: ScanState) -> Optional[CatalogEntry]:
        pos = 0
        if scan_state.state is JpegState.NO_FILE:
            pos = self._match_header(block, block_num, scan_state)
            if scan_state.state is JpegState.NO_FILE:
                return None

        while pos < len(block):
            pos = self._transitions[scan_state.state](block, pos, scan_state)
            if scan_state.state is JpegState.COMPLETE:
                # Files start on block boundaries, so the rest of the block is not scanned
                return self._complete(pos, scan_state)
        return None

    def _match_header(self, block: bytes, block_num: int, scan_state: ScanState) -> int:
        if block[:4] != JFIF_MARKER or block[6:11] != JFIF_IDENTIFIER:
            return 1

        segment_length = int.from_bytes(block[4:6], 'big')
        scan_state.start_block = block_num
        scan_state.length = 0
        scan_state.state = JpegState.IN_PROGRESS
        self.file_count += 1
        print(f"jpeg header at block number {block_num:x}", file=self.output_stream)

        pos = 4 + segment_length
        if pos > len(block):
            scan_state.skip = pos - len(block)
            scan_state.state = JpegState.SKIPPING
        return pos

    def _in_progress(self, block: bytes, pos: int, scan_state: ScanState) -> int:
        marker = block.find(b'\xff', pos)
        if marker < 0:
            return len(block)
        scan_state.state = JpegState.FOUND_FF
        return marker + 1

    def _found_ff(self, block: bytes, pos: int, scan_state: ScanState) -> int:
        c = block[pos]
        if c == 0xD9:
            scan_state.state = JpegState.COMPLETE
        elif c == 0xFF:
            # fill byte
            pass
        elif c == 0x00:
            scan_state.state = JpegState.IN_PROGRESS
        elif 0xD0 <= c <= 0xD7:
            # restart markers carry no length
            scan_state.state = JpegState.IN_PROGRESS
        elif c >> 4 in (0xC, 0xD, 0xE, 0xF):
            scan_state.skip = 0
            scan_state.state = JpegState.FOUND_LEN_HI
        else:
            scan_state.state = JpegState.IN_PROGRESS
        return pos + 1

    def _found_len_hi(self, block: bytes, pos: int, scan_state: ScanState) -> int:
        scan_state.skip = block[pos] << 8
        scan_state.state = JpegState.FOUND_LEN_LO
        return pos + 1

    def _found_len_lo(self, block: bytes, pos: int, scan_state: ScanState) -> int:
        # The stated length includes the two length bytes themselves
        scan_state.skip = (scan_state.skip | block[pos]) - 2
        scan_state.state = JpegState.SKIPPING if scan_state.skip > 0 else JpegState.IN_PROGRESS
        return pos + 1

    def _skipping(self, block: bytes, pos: int, scan_state: ScanState) -> int:
        count = min(scan_state.skip, len(block) - pos)
        scan_state.skip -= count
        if scan_state.skip <= 0:
            scan_state.state = JpegState.IN_PROGRESS
        return pos + count

    def _complete(self, pos: int, scan_state: ScanState) -> CatalogEntry:
        entry = CatalogEntry(
            f"File{self.file_count}.jpg",
            scan_state.start_block * self.block_size,
            scan_state.length + pos,
        )
        scan_state.state = JpegState.NO_FILE
        scan_state.skip = 0
        return entry


class RescueChecker:
    """Runs the checks and repairs for one primary image and its rescue log."""

    def __init__(self, image_file: Path, log_file: Path, output_stream=sys.stdout,
                 buffer_size: int = DEFAULT_BUFFER_SIZE, verbose: bool = False):
        """
        Initialize the checker and read the primary rescue log.

        Args:
            image_file: Path to the rescued image
            log_file: Path to the ddrescue log of the image
            output_stream: Stream to write progress reports to (default: stdout)
            buffer_size: Size of image reads in bytes, a multiple of 2048 (default: 2 MiB)
            verbose: Whether to print timestamped diagnostics to stderr (default: False)
        """
        if buffer_size < BLOCK_SIZE or buffer_size % BLOCK_SIZE != 0:
            raise ValueError(f"Buffer size ({buffer_size}) must be a positive multiple of block size ({BLOCK_SIZE})")
        self.image_file = image_file
        self.log_file = log_file
        self.output_stream = output_stream
        self.buffer_size = buffer_size
        self.verbose = verbose
        self.rescue_map = self._load_log(image_file, log_file)

    def _log(self, message: str):
        """Print a timestamped message to stderr if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
            print(f"[{timestamp}] {message}", file=sys.stderr)

    def _digest_log(self) -> Optional[Callable[[str], None]]:
        """Return the logger for data fingerprints, or None so nothing is hashed."""
        return self._log if self.verbose else None

    def _load_log(self, image_file: Path, log_file: Path) -> RescueMap:
        self._log(f"Reading rescue log {log_file}")
        with open(log_file, 'r') as log_f:
            rescue_map = read_rescue_log(log_f, str(image_file), self.output_stream)
        self._log(f"{len(rescue_map)} rescued ranges in {log_file}")
        return rescue_map

    def compare(self, other_image: Path, other_log: Path) -> int:
        """
        Verify the primary image against a second rescue of the same medium.

        Returns:
            Number of overlapping ranges verified
        """
        other_map = self._load_log(other_image, other_log)
        self._log(f"Comparing {self.image_file} with {other_image}")
        with open(self.image_file, 'rb') as image1, open(other_image, 'rb') as image2:
            overlaps = compare_images(self.rescue_map, other_map, image1, image2,
                                      self.output_stream, self.buffer_size, self._digest_log())
        self._log(f"Verified {overlaps} overlapping ranges")
        return overlaps

    def compact(self):
        before = len(self.rescue_map)
        self.rescue_map.compact()
        self._log(f"Compacted {before} rescued ranges into {len(self.rescue_map)}")

    def extract(self, catalog_file: Path, output_dir: Path) -> list[str]:
        """Extract the fully rescued files listed in a catalog file into output_dir."""
        catalog = self.read_catalog(catalog_file)
        with open(self.image_file, 'rb') as image_f:
            extracted = extract_files(catalog, self.rescue_map, image_f, output_dir,
                                      self.output_stream, self.buffer_size, self._digest_log())
        self._log(f"Extracted {len(extracted)} of {len(catalog)} catalog entries")
        return extracted

    def read_catalog(self, catalog_file: Path) -> dict[str, CatalogEntry]:
        # Listings may contain stray bytes from the tool that produced them
        with open(catalog_file, 'r', encoding='utf-8', errors='replace') as catalog_f:
            catalog = read_catalog(catalog_f)
        self._log(f"Read {len(catalog)} catalog entries from {catalog_file}")
        return catalog

    def scan_jpegs(self, catalog_file: Path) -> list[CatalogEntry]:
        """Scan the rescued data for JPEG files and write their catalog to catalog_file."""
        scanner = JpegScanner(self.output_stream, self.buffer_size)
        self._log(f"Scanning {self.image_file} for JPEG files")
        with open(catalog_file, 'w') as catalog_f, open(self.image_file, 'rb') as image_f:
            entries = scanner.write_catalog(self.rescue_map, image_f, catalog_f)
        self._log(f"Found {scanner.file_count} JPEG headers, {len(entries)} complete files")
        return entries


def main():
    """Main entry point for ddrescue-cmp."""
    parser = argparse.ArgumentParser(
        description='Cross-check and repair partial ddrescue image recoveries',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report rescued bytes in disc.iso according to disc.log
  %(prog)s disc

  # Check that two rescues of the same disc agree
  %(prog)s disc -c disc2

  # Extract the files listed in photos.txt into photos/
  %(prog)s disc -x photos

  # Find JPEG files and write their catalog, then extract them
  %(prog)s disc --jpg jpegs.txt
  %(prog)s disc -x jpegs --catalog jpegs.txt
        """
    )

    parser.add_argument(
        'base',
        help='Base name of the rescue: BASE.iso is the image and BASE.log its ddrescue log'
    )

    parser.add_argument(
        '-c', '--compare',
        metavar='BASE2',
        help='Verify against a second rescue BASE2.iso/BASE2.log'
    )

    parser.add_argument(
        '-x', '--extract',
        metavar='DIR',
        help='Extract fully rescued catalog entries into DIR (catalog read from DIR.txt)'
    )

    parser.add_argument(
        '--catalog',
        type=Path,
        metavar='FILE',
        help='Read the extraction catalog from FILE instead of DIR.txt'
    )

    parser.add_argument(
        '--jpg', '-jpg',
        type=Path,
        metavar='FILE',
        help='Scan the image for JPEG files and write their catalog to FILE '
             '(the older single-dash -jpg spelling is also accepted)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose mode with timestamped progress messages to stderr'
    )

    parser.add_argument(
        '--buffer-size',
        type=int,
        default=DEFAULT_BUFFER_SIZE,
        metavar='BYTES',
        help=f'Size of image reads in bytes (must be a multiple of {BLOCK_SIZE}, default: {DEFAULT_BUFFER_SIZE}, which is 2 MiB)'
    )

    args = parser.parse_args()

    if args.buffer_size < BLOCK_SIZE or args.buffer_size % BLOCK_SIZE != 0:
        parser.error(f"Buffer size ({args.buffer_size}) must be a positive multiple of block size ({BLOCK_SIZE})")

    if args.catalog is not None and args.extract is None:
        parser.error("--catalog requires -x/--extract")

    image_file = Path(args.base + '.iso')
    log_file = Path(args.base + '.log')
    required = [image_file, log_file]

    if args.compare:
        other_image = Path(args.compare + '.iso')
        other_log = Path(args.compare + '.log')
        required += [other_image, other_log]

    if args.extract:
        output_dir = Path(args.extract)
        catalog_file = args.catalog if args.catalog is not None else Path(args.extract + '.txt')
        required.append(catalog_file)

    for path in required:
        if not path.is_file():
            parser.error(f"File does not exist: {path}")

    try:
        checker = RescueChecker(image_file, log_file, sys.stdout,
                                buffer_size=args.buffer_size, verbose=args.verbose)

        if args.compare:
            checker.compare(other_image, other_log)

        checker.compact()

        if args.extract:
            checker.extract(catalog_file, output_dir)

        if args.jpg:
            checker.scan_jpegs(args.jpg)

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
