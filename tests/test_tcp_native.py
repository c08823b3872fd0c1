import socket
import threading
import time

import pytest

from sponge.tcp_native import main, open_socket


def _free_port():
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


@pytest.mark.parametrize("args", [[], ["127.0.0.1"], ["-l", "127.0.0.1"]])
def test_missing_arguments_raise(args):
    with pytest.raises(ValueError):
        open_socket(args)


def test_client_mode_connects():
    with socket.socket() as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen()
        port = listener.getsockname()[1]
        client = open_socket(["127.0.0.1", str(port)])
        server, _ = listener.accept()
        with client, server:
            client.sendall(b"ping")
            assert server.recv(16) == b"ping"
            assert client.getpeername() == ("127.0.0.1", port)


def test_server_mode_accepts_one_connection():
    port = _free_port()
    client = socket.socket()
    errors = []

    def connect_client():
        deadline = time.monotonic() + 10
        while True:
            try:
                client.connect(("127.0.0.1", port))
                client.sendall(b"abc")
                return
            except ConnectionRefusedError as exc:
                if time.monotonic() > deadline:
                    errors.append(exc)
                    return
                time.sleep(0.02)

    thread = threading.Thread(target=connect_client)
    thread.start()
    server = open_socket(["-l", "127.0.0.1", str(port)])
    thread.join(timeout=10)
    with client, server:
        assert server.getsockname()[1] == port
        assert server.recv(16) == b"abc"
    assert errors == []


def test_main_prints_usage_on_bad_arguments(capsys):
    assert main(["-l", "127.0.0.1"]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_main_reports_refused_connection(capsys):
    port = _free_port()
    assert main(["127.0.0.1", str(port)]) == 1
    assert "Exception:" in capsys.readouterr().err