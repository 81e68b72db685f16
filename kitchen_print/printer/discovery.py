"""Printer discovery for network, USB and cloud transports.

Discovered printers are candidates only: they are always returned disabled and
non-default, and nothing here touches the registry.
"""
import logging
import socket
from typing import Iterable, List, Optional

import httpx
import usb.core
import usb.util

from kitchen_print.printer.connection import CloudPrintClient
from kitchen_print.printer.drivers import SUPPORTED_MODELS, catalog_key
from kitchen_print.schemas import CloudServiceCredentials, PrinterConfig, USBPrinterDevice

logger = logging.getLogger(__name__)


class NetworkDiscovery:
    """Probe a fixed list of LAN addresses for raw print ports."""

    def __init__(self, candidates: Iterable[str], port: int = 9100, timeout: float = 2.0):
        self.candidates = list(candidates)
        self.port = port
        self.timeout = timeout

    def probe(self, ip: str) -> bool:
        """Return True if ip accepts a TCP connection within the timeout."""
        try:
            with socket.create_connection((ip, self.port), timeout=self.timeout):
                return True
        except OSError:
            return False

    def discover(self) -> List[PrinterConfig]:
        found = []
        for ip in self.candidates:
            if not self.probe(ip):
                logger.debug("No printer answering at %s:%s", ip, self.port)
                continue
            logger.info("Discovered network printer at %s:%s", ip, self.port)
            found.append(PrinterConfig(
                id=f"discovered-{ip}",
                name=f"Network Printer ({ip})",
                type="thermal",
                connection_type="ethernet",
                ip_address=ip,
                port=self.port,
                model="Unknown",
                status="connected",
                enabled=False,
                is_default=False,
            ))
        return found


class USBDiscovery:
    """Enumerate the USB bus and keep devices found in the model catalog."""

    DEVICE_PATH_PATTERN = "/dev/usb/lp{index}"

    def _read_string(self, dev, index) -> Optional[str]:
        if not index:
            return None
        try:
            return usb.util.get_string(dev, index)
        except (usb.core.USBError, ValueError, NotImplementedError):
            # Descriptor strings need device permissions
            return None

    def scan(self) -> List[USBPrinterDevice]:
        """List every device on the bus, printers or not."""
        devices = []
        for index, dev in enumerate(usb.core.find(find_all=True)):
            devices.append(USBPrinterDevice(
                vendor_id=f"{dev.idVendor:04x}",
                product_id=f"{dev.idProduct:04x}",
                device_path=self.DEVICE_PATH_PATTERN.format(index=index),
                manufacturer=self._read_string(dev, dev.iManufacturer),
                product=self._read_string(dev, dev.iProduct),
                serial_number=self._read_string(dev, dev.iSerialNumber),
            ))
        return devices

    def discover(self) -> List[USBPrinterDevice]:
        try:
            devices = self.scan()
        except (usb.core.USBError, usb.core.NoBackendError) as e:
            logger.error("USB discovery error: %s", e)
            return []

        supported = [
            d for d in devices
            if catalog_key(d.vendor_id, d.product_id) in SUPPORTED_MODELS
        ]
        # lp nodes are numbered per printer, not per bus device
        return [
            d.model_copy(update={"device_path": self.DEVICE_PATH_PATTERN.format(index=i)})
            for i, d in enumerate(supported)
        ]


class CloudDiscovery:
    """Ask each configured cloud relay for the printers on its account."""

    def __init__(self, client: CloudPrintClient):
        self.client = client

    def discover(self, credentials: Iterable[CloudServiceCredentials]) -> List[PrinterConfig]:
        found = []
        for cred in credentials:
            try:
                printers = self.client.list_printers(cred.service, cred.api_key)
            except (httpx.HTTPError, ValueError) as e:
                logger.error("Cloud discovery failed for %s: %s", cred.service, e)
                continue

            if isinstance(printers, dict):
                printers = printers.get("printers", [])
            for entry in printers:
                remote_id = str(entry.get("id"))
                found.append(PrinterConfig(
                    id=f"{cred.service}-{remote_id}",
                    name=entry.get("name") or f"Cloud Printer {remote_id}",
                    type="cloud",
                    connection_type="cloud",
                    api_key=cred.api_key,
                    cloud_service=cred.service,
                    cloud_printer_id=remote_id,
                    model=entry.get("description") or "Unknown",
                    status="connected" if entry.get("state") == "online" else "disconnected",
                    enabled=False,
                    is_default=False,
                ))
        return found
