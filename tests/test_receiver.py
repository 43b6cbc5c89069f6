import json
import threading
import urllib.error
import urllib.request

import pytest

from flowmeter.receiver import create_server, main

HEADER = "sample_number,raw_flow,pressure,temperature,calculated_flow\n"


@pytest.fixture
def receiver(tmp_path):
    path = tmp_path / "rcv.csv"
    server = create_server("127.0.0.1", 0, path)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}/", path
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=2)


def _post(url, body):
    request = urllib.request.Request(
        url, data=body, method="POST", headers={"Content-Type": "application/json"}
    )
    with urllib.request.urlopen(request) as response:
        return response.status


def test_header_written_on_start(receiver):
    _url, path = receiver
    assert path.read_text() == HEADER


def test_post_is_logged(receiver):
    url, path = receiver
    payload = {
        "sample_number": 123,
        "raw_flow": 5000,
        "pressure": 100,
        "temperature": 125,
        "calculated_flow": 5000,
    }
    assert _post(url, json.dumps(payload).encode()) == 200
    assert path.read_text() == HEADER + "123,5000,100,125,5000\n"


def test_missing_fields_default_to_zero(receiver):
    url, path = receiver
    assert _post(url, b'{"sample_number": 7, "extra": "ignored"}') == 200
    assert path.read_text() == HEADER + "7,0,0,0,0\n"


def test_get_not_allowed(receiver):
    url, path = receiver
    with pytest.raises(urllib.error.HTTPError) as info:
        urllib.request.urlopen(url)
    assert info.value.code == 405
    assert info.value.read() == b"Only POST allowed\n"
    assert path.read_text() == HEADER


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[1, 2]",
        b'{"sample_number": "one"}',
        b'{"raw_flow": 3000000000}',
        b'{"pressure": 1, "pressure": 2}',
    ],
)
def test_bad_request(receiver, body):
    url, path = receiver
    with pytest.raises(urllib.error.HTTPError) as info:
        _post(url, body)
    assert info.value.code == 400
    assert path.read_text() == HEADER


def test_main_fails_on_unwritable_output(tmp_path):
    target = tmp_path / "missing" / "out.csv"
    assert main(["--host", "127.0.0.1", "--port", "0", "--output", str(target)]) == 1
    assert not target.exists()