"""Sensor event logs.

One sample per row, in delivery order:

    timestamp_us,sensor,x,y,z
    1000000,gyro,0.001,-0.002,0.0
    1005000,acc,0.02,-0.01,9.81
    1010000,mag,0.1,20.3,-44.8

Units: gyro rad/s, acc m/s^2, mag uT.
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, Iterator, Union

from ..core.types import SAMPLE_TYPES, SensorKind, SensorSample

logger = logging.getLogger(__name__)

HEADER = ["timestamp_us", "sensor", "x", "y", "z"]


class LogFormatError(ValueError):
    """Raised when an event log row cannot be parsed."""

    def __init__(self, path: Union[str, Path], line: int, message: str):
        super().__init__(f"{path}:{line}: {message}")
        self.path = str(path)
        self.line = line


def parse_row(row: list, path: Union[str, Path] = "<log>", line: int = 0) -> SensorSample:
    """Parse one CSV row into a sensor sample.

    Raises:
        LogFormatError: If the row is malformed.
    """
    if len(row) != len(HEADER):
        raise LogFormatError(path, line, f"expected {len(HEADER)} fields, got {len(row)}")

    timestamp, sensor, x, y, z = (field.strip() for field in row)
    try:
        kind = SensorKind(sensor)
    except ValueError:
        raise LogFormatError(path, line, f"unknown sensor '{sensor}'") from None

    try:
        return SAMPLE_TYPES[kind](
            timestamp_us=int(timestamp),
            x=float(x),
            y=float(y),
            z=float(z),
        )
    except ValueError as e:
        raise LogFormatError(path, line, str(e)) from e


def read_event_log(path: Union[str, Path]) -> Iterator[SensorSample]:
    """Yield samples from an event log in file order.

    Blank lines and lines starting with '#' are ignored; the header row
    is optional.

    Raises:
        FileNotFoundError: If the log doesn't exist.
        LogFormatError: On the first malformed row.
    """
    path = Path(path)
    count = 0
    with open(path, "r", encoding="utf-8", newline="") as f:
        for line, row in enumerate(csv.reader(f), start=1):
            if not row or row[0].lstrip().startswith("#"):
                continue
            if [field.strip() for field in row] == HEADER:
                continue
            yield parse_row(row, path, line)
            count += 1

    logger.debug("Read %d samples from %s", count, path)


def write_event_log(path: Union[str, Path], samples: Iterable[SensorSample]) -> int:
    """Write samples to an event log.

    Returns:
        Number of samples written.
    """
    path = Path(path)
    count = 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        for sample in samples:
            writer.writerow([sample.timestamp_us, sample.kind.value, sample.x, sample.y, sample.z])
            count += 1

    logger.info("Wrote %d samples to %s", count, path)
    return count
