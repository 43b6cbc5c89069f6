import json
import threading
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from flowmeter.config import OutputConfig
from flowmeter.output import (
    CSV_HEADER,
    ConsoleOutput,
    FileOutput,
    NetworkOutput,
    OutputData,
    OutputError,
    get_output_handler,
)

SAMPLE = OutputData(
    sample_number=123,
    raw_flow=5000,
    pressure=100,
    temperature=125,
    calculated_flow=5000,
)

CONSOLE_LINE = "[     123] Flow:     5000 | P: 100 | T: 125 | Calc: 5000\n"


@contextmanager
def _serve(status):
    received = []

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers.get("Content-Length") or 0)
            received.append(
                (self.command, self.headers.get("Content-Type"), self.rfile.read(length))
            )
            self.send_response(status)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def log_message(self, format, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[:2]
        yield f"http://{host}:{port}/", received
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=2)


def test_network_output_posts_json():
    with _serve(200) as (url, received):
        NetworkOutput(url).write(SAMPLE)
    assert len(received) == 1
    method, content_type, body = received[0]
    assert method == "POST"
    assert content_type == "application/json"
    decoded = json.loads(body)
    assert decoded["sample_number"] == 123
    assert decoded["calculated_flow"] == 5000
    assert decoded == SAMPLE.to_dict()


def test_network_output_error_status():
    with _serve(500) as (url, _received):
        with pytest.raises(OutputError, match="500"):
            NetworkOutput(url).write(SAMPLE)


def test_network_output_unreachable():
    with _serve(200) as (url, _received):
        pass
    with pytest.raises(OutputError):
        NetworkOutput(url).write(SAMPLE)


def test_to_dict_field_names():
    assert list(SAMPLE.to_dict()) == [
        "sample_number",
        "raw_flow",
        "pressure",
        "temperature",
        "calculated_flow",
    ]
    assert list(CSV_HEADER) == list(SAMPLE.to_dict())


def test_file_output_writes_csv(tmp_path):
    path = tmp_path / "out.csv"
    with FileOutput(path) as handler:
        assert path.read_text() == (
            "sample_number,raw_flow,pressure,temperature,calculated_flow\n"
        )
        handler.write(SAMPLE)
        handler.write(OutputData(124, -1, 99, 130, 4999))
    assert path.read_text() == (
        "sample_number,raw_flow,pressure,temperature,calculated_flow\n"
        "123,5000,100,125,5000\n"
        "124,-1,99,130,4999\n"
    )


def test_file_output_bad_path(tmp_path):
    with pytest.raises(OSError):
        FileOutput(tmp_path / "missing" / "out.csv")


def test_console_output_format(capsys):
    ConsoleOutput().write(SAMPLE)
    assert capsys.readouterr().out == CONSOLE_LINE


def test_get_output_handler_file(tmp_path):
    path = tmp_path / "x.csv"
    handler = get_output_handler(OutputConfig(type="file", target=str(path)))
    try:
        assert isinstance(handler, FileOutput)
    finally:
        handler.close()
    assert path.read_text().startswith("sample_number,")


def test_get_output_handler_network():
    handler = get_output_handler(
        OutputConfig(type="network", target="http://localhost:9/")
    )
    assert isinstance(handler, NetworkOutput)
    assert handler.target_url == "http://localhost:9/"


@pytest.mark.parametrize("kind", ["console", "", "unknown"])
def test_get_output_handler_console(kind, capsys):
    handler = get_output_handler(OutputConfig(type=kind))
    handler.write(SAMPLE)
    handler.close()
    assert capsys.readouterr().out == CONSOLE_LINE