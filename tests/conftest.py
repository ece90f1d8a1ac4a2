import socket
import threading

import pytest


@pytest.fixture
def carbon_receiver():
    """A single-connection Carbon plaintext receiver on a free local port, collecting everything it receives."""
    server_socket = socket.create_server(address=("127.0.0.1", 0))
    port = server_socket.getsockname()[1]
    received_payloads = []

    def _receive() -> None:
        connection, _ = server_socket.accept()
        with connection:
            chunks = []
            while chunk := connection.recv(4096):
                chunks.append(chunk)
        received_payloads.append(b"".join(chunks).decode("utf-8"))

    receiver_thread = threading.Thread(target=_receive, daemon=True)
    receiver_thread.start()

    yield port, received_payloads, receiver_thread

    server_socket.close()
