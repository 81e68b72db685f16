"""Printer dispatchers for Network, USB, and cloud relay targets.

Every dispatcher honours the same contract: ``send(target, job)`` returns
``True`` when the payload was handed to the printer and ``False`` when nothing
reached it. Faults are logged here; the one fault raised to the caller is
``PartialDeliveryError``, when a connection breaks after some bytes were
written and a resend could print the ticket twice.
"""
import base64
import logging
import os
import select
import socket
import subprocess
import sys
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import httpx

from kitchen_print.errors import PartialDeliveryError
from kitchen_print.printer.escpos import ESCPOSBuilder
from kitchen_print.printer.targets import (
    TARGET_KINDS,
    CloudTarget,
    NetworkTarget,
    PrintJob,
    Target,
    UsbTarget,
)

logger = logging.getLogger(__name__)


class PrinterDispatcher(ABC):
    """Abstract base class for transport dispatchers."""

    target_type: type = None

    @abstractmethod
    def send(self, target: Target, job: PrintJob) -> bool:
        """Deliver a job to the target."""
        pass

    def close(self, printer_id: str) -> None:
        """Tear down any open connection held for a printer."""
        pass


class NetworkDispatcher(PrinterDispatcher):
    """Raw TCP/IP printer dispatch, one connection per job."""

    target_type = NetworkTarget

    def __init__(self, connect_timeout: float = 5.0, settle_timeout: float = 1.0):
        self.connect_timeout = connect_timeout
        self.settle_timeout = settle_timeout
        self._active: Dict[str, socket.socket] = {}

    def send(self, target: NetworkTarget, job: PrintJob) -> bool:
        """Connect, write the whole payload, wait for the printer to drain, close.

        Returns False only when nothing was written. A failure part way
        through ``sendall`` raises ``PartialDeliveryError``; a failure after
        the whole payload was written is logged and counts as delivered.
        """
        try:
            sock = socket.create_connection((target.ip, target.port), timeout=self.connect_timeout)
        except socket.timeout:
            logger.error("Network printer timeout for %s at %s", job.printer_id, target)
            return False
        except OSError as e:
            logger.error("Network printer error for %s at %s: %s", job.printer_id, target, e)
            return False

        self._active[job.printer_id] = sock
        logger.info("Connected to printer %s at %s", job.printer_id, target)
        try:
            try:
                sock.sendall(job.payload)
            except OSError as e:
                logger.error("Network printer %s failed while sending: %s", job.printer_id, e)
                raise PartialDeliveryError(job.printer_id, str(e)) from e

            try:
                self._settle(sock)
            except OSError as e:
                logger.warning("Network printer %s closed abruptly after the job was written: %s",
                               job.printer_id, e)
            return True
        finally:
            if self._active.get(job.printer_id) is sock:
                del self._active[job.printer_id]
            sock.close()

    def _settle(self, sock: socket.socket) -> None:
        """Half-close and drain until the printer closes or the window elapses.

        The FIN is queued behind the payload, so a clean close from the printer
        means it has read everything. Printers that keep the socket open are
        given ``settle_timeout`` seconds before the job counts as delivered.
        """
        sock.shutdown(socket.SHUT_WR)
        deadline = time.monotonic() + self.settle_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            sock.settimeout(remaining)
            try:
                chunk = sock.recv(1024)
            except socket.timeout:
                return
            if not chunk:
                return

    def close(self, printer_id: str) -> None:
        sock = self._active.pop(printer_id, None)
        if sock:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
            logger.info("Closed active connection for printer %s", printer_id)

    def is_connected(self, printer_id: str) -> bool:
        """Check if a job is currently in flight for the printer."""
        return printer_id in self._active


class USBDispatcher(PrinterDispatcher):
    """USB printer dispatch through the raw device node or the lp spooler."""

    target_type = UsbTarget

    def __init__(self, queue: str = "usb-printer", command_timeout: float = 10.0,
                 platform: Optional[str] = None):
        self.queue = queue
        self.command_timeout = command_timeout
        self.platform = platform or sys.platform

    def send(self, target: UsbTarget, job: PrintJob) -> bool:
        data = job.payload if isinstance(job.payload, bytes) else job.payload.encode("utf-8")
        try:
            if self.platform.startswith("linux"):
                self._write_device(target.device_path, job.printer_id, data)
                return True
            return self._print_via_lp(target.queue or self.queue, data)
        except TimeoutError:
            logger.error("USB print to %s timed out after %ss", target, self.command_timeout)
            return False
        except OSError as e:
            logger.error("USB print error for %s: %s", target, e)
            return False

    def _write_device(self, device_path: str, printer_id: str, data: bytes) -> None:
        """Write to the device node without blocking past the command timeout."""
        fd = os.open(device_path, os.O_WRONLY | os.O_NONBLOCK)
        try:
            view = memoryview(data)
            deadline = time.monotonic() + self.command_timeout
            while view:
                remaining = deadline - time.monotonic()
                try:
                    if remaining <= 0:
                        raise TimeoutError(f"Device {device_path} not accepting data")
                    _, writable, _ = select.select([], [fd], [], remaining)
                    if not writable:
                        continue
                    written = os.write(fd, view)
                except BlockingIOError:
                    continue
                except OSError as e:
                    if len(view) < len(data):
                        raise PartialDeliveryError(printer_id, str(e)) from e
                    raise
                view = view[written:]
        finally:
            os.close(fd)

    def _print_via_lp(self, queue: str, data: bytes) -> bool:
        try:
            result = subprocess.run(
                ["lp", "-d", queue, "-o", "raw"],
                input=data,
                capture_output=True,
                timeout=self.command_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error("lp did not finish within %ss", self.command_timeout)
            return False
        if result.returncode != 0:
            logger.error("lp exited with %s: %s", result.returncode,
                         result.stderr.decode(errors="replace").strip())
            return False
        return True

    def test_connection(self, device_path: str) -> bool:
        """Send a short test page to a USB printer."""
        data = ESCPOSBuilder().textln("USB TEST PRINT").feed_lines(3).build()
        return self.send(UsbTarget(device_path), PrintJob("usb-test", "USB Test", data))


class CloudPrintClient:
    """Minimal client for PrintNode-style cloud print relays.

    Each service exposes ``/printjobs`` (POST), ``/printers`` (GET) and
    ``/whoami`` (GET) under its base URL and authenticates with the API key as
    the HTTP Basic user name.
    """

    def __init__(self, services: Dict[str, str], timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.services = services
        self.timeout = timeout
        self._transport = transport

    def base_url(self, service: str) -> str:
        try:
            return self.services[service].rstrip("/")
        except KeyError:
            raise ValueError(f"Unknown cloud print service: {service}")

    def _client(self, service: str, api_key: str) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url(service),
            auth=(api_key, ""),
            timeout=self.timeout,
            transport=self._transport,
        )

    def submit_job(self, service: str, api_key: str, body: dict) -> httpx.Response:
        with self._client(service, api_key) as client:
            return client.post("/printjobs", json=body)

    def list_printers(self, service: str, api_key: str) -> List[dict]:
        with self._client(service, api_key) as client:
            resp = client.get("/printers")
            resp.raise_for_status()
            return resp.json()

    def whoami(self, service: str, api_key: str) -> httpx.Response:
        with self._client(service, api_key) as client:
            return client.get("/whoami")


class CloudDispatcher(PrinterDispatcher):
    """Cloud relay dispatch via an authenticated HTTPS print-job request."""

    target_type = CloudTarget

    def __init__(self, client: CloudPrintClient, source: str = "Kitchen Print Dispatch"):
        self.client = client
        self.source = source

    def send(self, target: CloudTarget, job: PrintJob) -> bool:
        if isinstance(job.payload, bytes):
            content_type = "raw_base64"
            content = base64.b64encode(job.payload).decode("ascii")
        else:
            content_type = "text/plain"
            content = job.payload

        body = {
            "printerId": int(target.printer_ref) if target.printer_ref.isdigit() else target.printer_ref,
            "title": job.title,
            "contentType": content_type,
            "content": content,
            "source": self.source,
        }
        try:
            resp = self.client.submit_job(target.service, target.api_key, body)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Cloud printing error for %s: %s", job.printer_id, e)
            return False

        if not resp.is_success:
            logger.error("Cloud print relay rejected job for %s: HTTP %s",
                         job.printer_id, resp.status_code)
            return False
        return True

    def test_connection(self, service: str, api_key: str) -> bool:
        """Check the API key against the relay's account endpoint."""
        try:
            resp = self.client.whoami(service, api_key)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Cloud connection test for %s failed: %s", service, e)
            return False
        return resp.is_success


class DispatchRouter:
    """Routes a job to the dispatcher registered for its target kind."""

    def __init__(self, dispatchers: Iterable[PrinterDispatcher]):
        self._by_kind = {d.target_type: d for d in dispatchers}
        missing = [kind.__name__ for kind in TARGET_KINDS if kind not in self._by_kind]
        if missing:
            raise ValueError(f"No dispatcher registered for: {', '.join(missing)}")

    def dispatcher(self, kind: type) -> PrinterDispatcher:
        return self._by_kind[kind]

    def send(self, target: Target, job: PrintJob) -> bool:
        return self._by_kind[type(target)].send(target, job)

    def close(self, printer_id: str) -> None:
        for dispatcher in self._by_kind.values():
            dispatcher.close(printer_id)


def create_router(config: dict, transport: Optional[httpx.BaseTransport] = None) -> DispatchRouter:
    """Factory function to build the dispatchers from application config.

    Args:
        config: Mapping with the ``NETWORK_*``, ``LP_PRINTER_QUEUE``,
            ``USB_COMMAND_TIMEOUT`` and ``CLOUD_*`` keys of ``Config``.
        transport: Optional httpx transport for the cloud client.

    Returns:
        DispatchRouter covering every target kind.
    """
    cloud_client = CloudPrintClient(
        services=config.get("CLOUD_PRINT_SERVICES", {}),
        timeout=config.get("CLOUD_REQUEST_TIMEOUT", 10.0),
        transport=transport,
    )
    return DispatchRouter([
        NetworkDispatcher(
            connect_timeout=config.get("NETWORK_CONNECT_TIMEOUT", 5.0),
            settle_timeout=config.get("NETWORK_SETTLE_TIMEOUT", 1.0),
        ),
        USBDispatcher(
            queue=config.get("LP_PRINTER_QUEUE", "usb-printer"),
            command_timeout=config.get("USB_COMMAND_TIMEOUT", 10.0),
        ),
        CloudDispatcher(cloud_client),
    ])
