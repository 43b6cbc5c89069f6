"""Destinations for computed flow samples: CSV file, console or HTTP."""

from __future__ import annotations

import csv
import json
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from types import TracebackType

from .config import OutputConfig


class OutputError(Exception):
    """Raised when a sample cannot be delivered."""


@dataclass(frozen=True)
class OutputData:
    """A computed sample as sent to receivers."""

    sample_number: int
    raw_flow: int
    pressure: int
    temperature: int
    calculated_flow: int

    def to_dict(self) -> dict[str, int]:
        """Return the sample as a mapping of its wire field names."""
        return asdict(self)


CSV_HEADER = tuple(f.name for f in fields(OutputData))


class OutputHandler(ABC):
    """Somewhere computed samples are written to."""

    @abstractmethod
    def write(self, data: OutputData) -> None:
        """Deliver one sample."""

    @abstractmethod
    def close(self) -> None:
        """Release whatever the handler holds."""

    def __enter__(self) -> OutputHandler:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class FileOutput(OutputHandler):
    """Writes samples as CSV rows, flushing after each one."""

    def __init__(self, filename: str | Path) -> None:
        self._file = open(filename, "w", newline="", encoding="utf-8")
        try:
            self._writer = csv.writer(self._file, lineterminator="\n")
            self._writer.writerow(CSV_HEADER)
            self._file.flush()
        except Exception:
            self._file.close()
            raise

    def write(self, data: OutputData) -> None:
        self._writer.writerow(data.to_dict().values())
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.flush()
            self._file.close()


class ConsoleOutput(OutputHandler):
    """Prints one line per sample to standard output."""

    def write(self, data: OutputData) -> None:
        print(
            f"[{data.sample_number:8d}] Flow: {data.raw_flow:8d} | "
            f"P: {data.pressure:3d} | T: {data.temperature:3d} | "
            f"Calc: {data.calculated_flow}"
        )

    def close(self) -> None:
        pass


class NetworkOutput(OutputHandler):
    """POSTs each sample as JSON to a URL."""

    def __init__(self, url: str) -> None:
        self.target_url = url

    def write(self, data: OutputData) -> None:
        body = json.dumps(data.to_dict(), separators=(",", ":")).encode("utf-8")
        request = urllib.request.Request(
            self.target_url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(request) as response:
                response.read()
        except urllib.error.HTTPError as exc:
            exc.close()
            if exc.code >= 400:
                raise OutputError(
                    f"server returned error status: {exc.code}"
                ) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise OutputError(str(exc)) from exc

    def close(self) -> None:
        pass


def get_output_handler(config: OutputConfig) -> OutputHandler:
    """Create the handler named by ``config.type``; unknown types use the console."""
    if config.type == "file":
        return FileOutput(config.target)
    if config.type == "network":
        return NetworkOutput(config.target)
    return ConsoleOutput()