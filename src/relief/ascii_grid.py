"""
Esri ASCII grid import and export.

The format is a short header of key/value lines followed by ``nrows`` lines
of ``ncols`` whitespace-separated values, north to south:

    ncols         4
    nrows         3
    xllcorner     0.0
    yllcorner     0.0
    cellsize      10.0
    NODATA_value  -9999
    1 2 3 4
    ...

The body is read by two threads: a producer reading lines and a consumer
parsing them, connected by a bounded queue. The producer ends the stream with
an end marker, or with a failure message carrying the stream's error, so failures
travel through the queue in order with the data.
"""

import logging
import math
import queue
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np

from src.config import READER_POLL_INTERVAL, READER_QUEUE_CAPACITY
from src.relief.errors import CorruptGrid, GridReadError, InvalidArgument, InvalidHeader
from src.relief.grid import Grid
from src.relief.progress import as_monitor

logger = logging.getLogger(__name__)

HEADER_KEYS = (
    "ncols",
    "nrows",
    "xllcorner",
    "xllcenter",
    "yllcorner",
    "yllcenter",
    "cellsize",
    "nodata_value",
)

FIRST_VOID_VALUE = "-9999"

# float32 overflows to -inf beyond this many characters
_MAX_VOID_VALUE_LENGTH = 40


class ReaderState(Enum):
    """Life cycle of an AsciiGridReader."""

    IDLE = "idle"
    READING_HEADER = "reading_header"
    STREAMING_BODY = "streaming_body"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class GridHeader:
    """Geometry and void marker of an Esri ASCII grid."""

    cols: int
    rows: int
    west: float
    """Coordinate of the center of the westernmost column."""
    south: float
    """Coordinate of the center of the southernmost row."""
    cell_size: float
    nodata_value: float

    def create_grid(self):
        """Allocate a grid with this geometry."""
        try:
            return Grid(self.cols, self.rows, self.cell_size, self.west, self.south)
        except InvalidArgument as e:
            raise InvalidHeader(str(e)) from e


class _EndOfStream:
    pass


@dataclass
class _Failure:
    error: Exception


_END_OF_STREAM = _EndOfStream()


def _parse_number(key, text):
    try:
        return float(text)
    except ValueError as e:
        raise InvalidHeader(f"Invalid value for {key}: {text!r}") from e


def _parse_count(key, text):
    value = _parse_number(key, text)
    if not math.isfinite(value) or value != int(value):
        raise InvalidHeader(f"{key} must be an integer, got {text!r}")
    return int(value)


def read_header(stream):
    """
    Read the header lines of a grid.

    Keys are case-insensitive and may appear in any order. The header ends at
    the first non-blank line that does not start with a header key.

    Args:
        stream: Text stream positioned at the start of the file

    Returns:
        tuple: (GridHeader, first body line or None at end of stream)

    Raises:
        InvalidHeader: If a required key is missing or a value is malformed
    """
    entries = {}
    first_line = None
    for line in iter(stream.readline, ""):
        tokens = line.split()
        if not tokens:
            continue
        key = tokens[0].lower()
        if key not in HEADER_KEYS:
            first_line = line
            break
        if len(tokens) < 2:
            raise InvalidHeader(f"Missing value for {tokens[0]}")
        entries[key] = tokens[1]

    for required in ("ncols", "nrows", "cellsize", "nodata_value"):
        if required not in entries:
            raise InvalidHeader(f"Missing {required} in grid header")

    cols = _parse_count("ncols", entries["ncols"])
    rows = _parse_count("nrows", entries["nrows"])
    cell_size = _parse_number("cellsize", entries["cellsize"])
    if not cell_size > 0:
        raise InvalidHeader(f"Invalid cellsize: {entries['cellsize']}")

    # the grid stores cell centers
    if "xllcenter" in entries:
        west = _parse_number("xllcenter", entries["xllcenter"])
    elif "xllcorner" in entries:
        west = _parse_number("xllcorner", entries["xllcorner"]) + cell_size / 2
    else:
        raise InvalidHeader("Missing xllcorner or xllcenter in grid header")
    if "yllcenter" in entries:
        south = _parse_number("yllcenter", entries["yllcenter"])
    elif "yllcorner" in entries:
        south = _parse_number("yllcorner", entries["yllcorner"]) + cell_size / 2
    else:
        raise InvalidHeader("Missing yllcorner or yllcenter in grid header")

    nodata_value = _parse_number("nodata_value", entries["nodata_value"])

    header = GridHeader(cols, rows, west, south, cell_size, nodata_value)
    return header, first_line


class AsciiGridReader:
    """
    Streaming reader for Esri ASCII grids.

    Line reading and value parsing overlap on two threads connected by a
    queue holding at most ``queue_capacity`` lines. The body must contain
    exactly ``nrows * ncols`` values; values equal to the header's
    ``nodata_value`` become void.

    Args:
        progress: Optional callback ``(percent) -> bool | None`` or ProgressMonitor;
            returning False cancels reading
        cancel: Optional threading.Event; setting it cancels reading
        queue_capacity: Maximum number of lines waiting to be parsed
    """

    def __init__(self, progress=None, cancel=None, queue_capacity=READER_QUEUE_CAPACITY):
        self._monitor = as_monitor(progress, cancel, label="Reading grid")
        self._queue_capacity = queue_capacity
        self._state = ReaderState.IDLE
        self._state_lock = threading.Lock()

    @property
    def state(self):
        return self._state

    def _set_state(self, state):
        with self._state_lock:
            logger.debug(f"Reader state {self._state.name} -> {state.name}")
            self._state = state

    def read(self, stream):
        """
        Read a grid from a text stream.

        Args:
            stream: Text stream positioned at the start of the header

        Returns:
            Grid: The grid, or None if reading was cancelled

        Raises:
            InvalidHeader: If the header is invalid
            CorruptGrid: If the body does not hold exactly rows * cols numbers
            GridReadError: If reading the stream fails
        """
        if self._state is not ReaderState.IDLE:
            raise InvalidArgument("A reader can only read one grid")

        self._set_state(ReaderState.READING_HEADER)
        try:
            header, first_line = read_header(stream)
            grid = header.create_grid()
        except GridReadError:
            self._set_state(ReaderState.FAILED)
            raise
        except (OSError, ValueError) as e:
            self._set_state(ReaderState.FAILED)
            raise GridReadError(f"Cannot read grid header: {e}") from e

        logger.info(
            f"Reading {header.cols} x {header.rows} grid, cell size {header.cell_size}"
        )
        self._set_state(ReaderState.STREAMING_BODY)

        lines = queue.Queue(maxsize=self._queue_capacity)
        stop = threading.Event()
        produced = threading.Event()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="ascii-grid") as executor:
            producer = executor.submit(self._produce, stream, first_line, lines, stop, produced)
            consumer = executor.submit(
                self._consume, lines, grid, header.nodata_value, stop, produced
            )
            wait([producer, consumer])

        try:
            completed = consumer.result()
            producer.result()
        except GridReadError:
            self._set_state(ReaderState.FAILED)
            raise
        except Exception as e:
            self._set_state(ReaderState.FAILED)
            raise GridReadError(f"Cannot read grid body: {e}") from e

        if not completed:
            self._set_state(ReaderState.CANCELLED)
            logger.info("Grid reading cancelled")
            return None

        self._set_state(ReaderState.DONE)
        return grid

    def _produce(self, stream, first_line, lines, stop, produced):
        """
        Put body lines into the queue, then an end or failure message.

        Any exception raised by the stream is sent as a failure message.
        ``produced`` is set when this method returns, however it ends.
        """

        def put(item):
            while not stop.is_set():
                try:
                    lines.put(item, timeout=READER_POLL_INTERVAL)
                    return True
                except queue.Full:
                    continue
            return False

        try:
            if first_line is not None and not put(first_line):
                return
            for line in iter(stream.readline, ""):
                if not put(line):
                    return
            put(_END_OF_STREAM)
        except Exception as e:
            put(_Failure(e))
        finally:
            produced.set()

    def _consume(self, lines, grid, nodata_value, stop, produced):
        """
        Parse queued lines into the grid in row-major order.

        Returns:
            bool: True when all values were read, False when cancelled

        Raises:
            GridReadError: If the producer stopped without an end or failure message
        """
        values = grid.values.reshape(-1)
        total = values.size
        nodata = np.float32(nodata_value)
        count = 0
        try:
            while True:
                if self._monitor.cancelled:
                    return False
                try:
                    item = lines.get(timeout=READER_POLL_INTERVAL)
                except queue.Empty:
                    # the producer puts before it finishes, so an empty queue here is final
                    if produced.is_set() and lines.empty():
                        raise GridReadError("Grid body ended without an end of stream")
                    continue

                if item is _END_OF_STREAM:
                    if count != total:
                        raise CorruptGrid(f"Expected {total} values, found {count}")
                    return True
                if isinstance(item, _Failure):
                    raise GridReadError(f"Cannot read grid body: {item.error}") from item.error

                tokens = item.split()
                if not tokens:
                    continue
                if count + len(tokens) > total:
                    raise CorruptGrid(f"More than {total} values in grid body")
                try:
                    parsed = np.asarray(tokens, dtype=np.float64).astype(np.float32)
                except ValueError as e:
                    raise CorruptGrid(f"Invalid number in grid body: {e}") from e
                parsed[parsed == nodata] = np.nan
                values[count : count + len(tokens)] = parsed
                count += len(tokens)

                if not self._monitor.update(100 * count / total):
                    return False
        finally:
            stop.set()


def can_read(path):
    """True if the file exists and starts with a valid Esri ASCII grid header."""
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            header, _ = read_header(f)
        header.create_grid()
        return True
    except (OSError, ValueError, GridReadError):
        return False


def read_ascii_grid_stream(stream, progress=None, cancel=None):
    """
    Read a grid from an open text stream.

    Returns:
        Grid: The grid, or None if reading was cancelled
    """
    return AsciiGridReader(progress=progress, cancel=cancel).read(stream)


def read_ascii_grid(path, progress=None, cancel=None):
    """
    Read an Esri ASCII grid file.

    Args:
        path: Path to the file
        progress: Optional progress callback or ProgressMonitor
        cancel: Optional threading.Event to cancel reading

    Returns:
        Grid: The grid, or None if reading was cancelled
    """
    path = Path(path)
    logger.info(f"Reading Esri ASCII grid {path}")
    with open(path, "r", encoding="utf-8-sig") as f:
        return read_ascii_grid_stream(f, progress=progress, cancel=cancel)


def find_void_value(grid):
    """
    Find a void marker smaller than every value of a grid.

    Tries -9999, -99999, -999999 and so on, comparing in float32.

    Returns:
        str: The void marker as written to the file
    """
    min_value, _ = grid.min_max()
    void_value = FIRST_VOID_VALUE
    while np.float32(void_value) >= min_value:
        if len(void_value) >= _MAX_VOID_VALUE_LENGTH:
            raise InvalidArgument(f"No void value below grid minimum {min_value}")
        void_value += "9"
    return void_value


def write_ascii_grid(grid, path):
    """
    Write a grid to an Esri ASCII grid file.

    Void cells are written with the value returned by find_void_value. Numbers
    always use '.' as the radix point.

    Args:
        grid: Grid to write
        path: Output file path
    """
    if grid is None:
        raise InvalidArgument("Cannot write a missing grid")
    void_value = find_void_value(grid)
    half = grid.cell_size / 2
    body = np.where(np.isnan(grid.values), np.float32(void_value), grid.values)

    path = Path(path)
    with open(path, "w", encoding="ascii", newline="\n") as f:
        f.write(f"ncols {grid.cols}\n")
        f.write(f"nrows {grid.rows}\n")
        f.write(f"xllcorner {grid.west - half!r}\n")
        f.write(f"yllcorner {grid.south - half!r}\n")
        f.write(f"cellsize {grid.cell_size!r}\n")
        f.write(f"nodata_value {void_value}\n")
        np.savetxt(f, body, fmt="%.9g", delimiter=" ")
    logger.info(f"Wrote {grid.cols} x {grid.rows} grid to {path}")
