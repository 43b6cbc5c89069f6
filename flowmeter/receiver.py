"""HTTP endpoint that accepts posted samples and logs them to a CSV file."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

from .output import CSV_HEADER, OutputData

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
DEFAULT_CSV_FILE = "rcv_out.csv"

_INT32 = (-(2**31), 2**31 - 1)
_INT64 = (-(2**63), 2**63 - 1)
_RANGES = {name: _INT32 for name in CSV_HEADER} | {"sample_number": _INT64}


def _unique_object(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ValueError(f"duplicate member {key!r}")
        result[key] = value
    return result


def _decode(body: bytes) -> OutputData:
    payload = json.loads(body, object_pairs_hook=_unique_object)
    if not isinstance(payload, dict):
        raise ValueError("expected a JSON object")
    values = {}
    for name in CSV_HEADER:
        value = payload.get(name)
        if value is None:
            value = 0
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name}: expected an integer")
        low, high = _RANGES[name]
        if not low <= value <= high:
            raise ValueError(f"{name}: {value} is out of range")
        values[name] = value
    return OutputData(**values)


class _ReceiverHandler(BaseHTTPRequestHandler):
    server: _ReceiverServer

    def do_POST(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length)
        try:
            data = _decode(body)
        except ValueError as exc:
            logger.error("Error decoding JSON: %s", exc)
            self._reply_error(400, "Bad Request")
            return

        self.server.log_sample(data)
        print(
            f"Received & Logged: Sample={data.sample_number}, "
            f"Flow={data.raw_flow}, P={data.pressure}, "
            f"T={data.temperature}, Calc={data.calculated_flow}"
        )
        self.send_response(200)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _reject_method(self) -> None:
        self._reply_error(405, "Only POST allowed")

    do_GET = do_HEAD = do_PUT = do_DELETE = do_PATCH = do_OPTIONS = _reject_method

    def _reply_error(self, status: int, message: str) -> None:
        body = f"{message}\n".encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("X-Content-Type-Options", "nosniff")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class _ReceiverServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], csv_file: str | Path) -> None:
        self._file = open(csv_file, "w", newline="", encoding="utf-8")
        self._lock = threading.Lock()
        try:
            self._writer = csv.writer(self._file, lineterminator="\n")
            self._writer.writerow(CSV_HEADER)
            self._file.flush()
            super().__init__(address, _ReceiverHandler)
        except BaseException:
            self._file.close()
            raise

    def log_sample(self, data: OutputData) -> None:
        with self._lock:
            try:
                self._writer.writerow(data.to_dict().values())
                self._file.flush()
            except OSError as exc:
                logger.error("Error writing to CSV: %s", exc)

    def server_close(self) -> None:
        super().server_close()
        with self._lock:
            if not self._file.closed:
                self._file.close()


def create_server(host: str, port: int, csv_file: str | Path) -> ThreadingHTTPServer:
    """Create a bound server that logs posted samples to ``csv_file``.

    The file is truncated and its header written immediately. Call
    ``serve_forever()`` to handle requests and ``server_close()`` to release
    the socket and the file.
    """
    return _ReceiverServer((host, port), csv_file)


def main(argv: list[str] | None = None) -> int:
    """Run the receiver until interrupted."""
    parser = argparse.ArgumentParser(
        description="Receive posted flow samples and log them to CSV."
    )
    parser.add_argument("--host", default="", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--output", default=DEFAULT_CSV_FILE, help="CSV file to write")
    args = parser.parse_args(argv)

    try:
        server = create_server(args.host, args.port, args.output)
    except OSError as exc:
        logger.error("Failed to start receiver: %s", exc)
        return 1

    print(
        f"HTTP Receiver listening on {args.host}:{args.port} "
        f"(logging to {args.output})..."
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    return 0