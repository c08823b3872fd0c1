import io
import socket
import threading
from unittest import mock

from sponge.webget import build_request, get_url, main


def test_build_request_bytes():
    assert build_request("example.com", "/index.html") == (
        b"GET /index.html HTTP/1.1\r\nHost: example.com\r\nConnection: close\r\n\r\n"
    )


def test_get_url_sends_request_and_copies_response():
    client_end, server_end = socket.socketpair()
    response = b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello" * 3
    seen = {}

    def serve():
        chunks = []
        while chunk := server_end.recv(4096):
            chunks.append(chunk)
        seen["request"] = b"".join(chunks)
        server_end.sendall(response)
        server_end.close()

    thread = threading.Thread(target=serve)
    thread.start()
    out = io.BytesIO()
    with mock.patch("socket.create_connection", return_value=client_end) as connect:
        count = get_url("example.com", "/a/b", out)
    thread.join(timeout=10)

    connect.assert_called_once_with(("example.com", "http"))
    assert seen["request"] == build_request("example.com", "/a/b")
    assert out.getvalue() == response
    assert count == len(response)


def test_main_usage_on_wrong_argument_count(capsys):
    assert main(["example.com"]) == 1
    assert "Usage:" in capsys.readouterr().err