"""Pytest configuration and fixtures."""
import json
import socket
import struct
import threading
from datetime import datetime
from unittest.mock import patch

import httpx
import pytest

from kitchen_print import create_app
from kitchen_print.printer.targets import CloudTarget, NetworkTarget, UsbTarget
from kitchen_print.printer.connection import DispatchRouter, PrinterDispatcher
from kitchen_print.schemas import OrderData, OrderItem, PrinterConfig


class FakePrinterServer:
    """Loopback TCP server that records every job it receives.

    With ``reset_after_read`` the server reads once and then aborts the
    connection with a RST, like a printer that drops the socket mid-job.
    """

    def __init__(self, reset_after_read=False):
        self.reset_after_read = reset_after_read
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(5)
        self.port = self.sock.getsockname()[1]
        self.received = []
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while True:
            try:
                conn, _ = self.sock.accept()
            except OSError:
                return
            with conn:
                conn.settimeout(5)
                if self.reset_after_read:
                    self.received.append(conn.recv(65536))
                    conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
                    continue
                chunks = []
                while True:
                    try:
                        data = conn.recv(4096)
                    except OSError:
                        break
                    if not data:
                        break
                    chunks.append(data)
                self.received.append(b"".join(chunks))

    def close(self):
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()


class RecordingDispatcher(PrinterDispatcher):
    """Dispatcher that records jobs and returns scripted results."""

    def __init__(self, target_type, results=(True,)):
        self.target_type = target_type
        self.results = list(results)
        self.calls = []
        self.closed = []
        self.connect_timeout = None

    def send(self, target, job):
        self.calls.append((target, job))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result

    def close(self, printer_id):
        self.closed.append(printer_id)


@pytest.fixture
def printer_server():
    """A reachable raw print port on localhost."""
    server = FakePrinterServer()
    yield server
    server.close()


@pytest.fixture
def resetting_printer_server():
    """A print port that drops the connection after reading the job."""
    server = FakePrinterServer(reset_after_read=True)
    yield server
    server.close()


@pytest.fixture
def closed_port():
    """A localhost port with nothing listening."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def dispatchers():
    """Recording dispatchers for every target kind."""
    return {
        NetworkTarget: RecordingDispatcher(NetworkTarget),
        UsbTarget: RecordingDispatcher(UsbTarget),
        CloudTarget: RecordingDispatcher(CloudTarget),
    }


@pytest.fixture
def fake_router(dispatchers):
    return DispatchRouter(dispatchers.values())


@pytest.fixture
def order():
    """A small dine-in order."""
    return OrderData(
        id="T1",
        customer_name="Alice",
        items=[
            OrderItem(name="Burger", quantity=2, price=5, special_instructions="No onions"),
        ],
        total=10,
        order_time=datetime(2026, 10, 19, 12, 30, 0),
        table_number="7",
        order_type="dine-in",
    )


@pytest.fixture
def ethernet_printer():
    def _make(printer_id="kitchen", port=9100, **overrides):
        data = dict(
            id=printer_id,
            name=f"Printer {printer_id}",
            type="thermal",
            connection_type="ethernet",
            ip_address="127.0.0.1",
            port=port,
            model="Epson TM-T88VI",
            enabled=True,
            is_default=True,
        )
        data.update(overrides)
        return PrinterConfig(**data)
    return _make


@pytest.fixture
def cloud_requests():
    """Requests seen by the mocked cloud relay."""
    return []


@pytest.fixture
def cloud_transport(cloud_requests):
    """httpx transport standing in for a PrintNode style relay."""
    def handler(request: httpx.Request) -> httpx.Response:
        cloud_requests.append(request)
        if request.url.path == "/whoami":
            return httpx.Response(200, json={"id": 1})
        if request.url.path == "/printers":
            return httpx.Response(200, json=[
                {"id": 42, "name": "Pass Printer", "description": "Star TSP143", "state": "online"},
            ])
        if request.url.path == "/printjobs":
            return httpx.Response(201, json=1001)
        return httpx.Response(404)
    return httpx.MockTransport(handler)


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "printer-config.json")


@pytest.fixture
def app(config_path, cloud_transport):
    """Create application for testing."""
    # Keep the host spooler out of driver status
    with patch("kitchen_print.printer.drivers.DriverManager.detect_installed", return_value=set()):
        app = create_app(
            "testing",
            config_overrides={
                "PRINTER_CONFIG_PATH": config_path,
                "CLOUD_PRINT_SERVICES": {"printnode": "https://api.printnode.test"},
            },
            transport=cloud_transport,
        )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def read_config(config_path):
    def _read():
        with open(config_path, encoding="utf-8") as f:
            return json.load(f)
    return _read
