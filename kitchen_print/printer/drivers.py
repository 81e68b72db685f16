"""USB printer model catalog and OS spooler driver installation."""
import logging
import subprocess
import sys
from typing import Dict, List, Optional, Set

from kitchen_print.errors import UnsupportedDeviceError
from kitchen_print.schemas import DriverInfo, PrinterConfig

logger = logging.getLogger(__name__)

# vendor:product -> model info, lower-case hex ids
SUPPORTED_MODELS: Dict[str, dict] = {
    # Epson printers
    "04b8:0202": {"manufacturer": "Epson", "name": "Epson TM-T88V", "driver": "epson"},
    "04b8:0207": {"manufacturer": "Epson", "name": "Epson TM-T88VI", "driver": "epson"},
    "04b8:0208": {"manufacturer": "Epson", "name": "Epson TM-T88VII", "driver": "epson"},
    "04b8:0205": {"manufacturer": "Epson", "name": "Epson TM-U220", "driver": "epson"},
    # Star printers
    "0519:0001": {"manufacturer": "Star Micronics", "name": "Star TSP143", "driver": "star"},
    "0519:0007": {"manufacturer": "Star Micronics", "name": "Star TSP143III", "driver": "star"},
    "0519:0020": {"manufacturer": "Star Micronics", "name": "Star SP700", "driver": "star"},
    # Bixolon printers
    "1504:0006": {"manufacturer": "Bixolon", "name": "Bixolon SRP-350III", "driver": "bixolon"},
    "1504:0011": {"manufacturer": "Bixolon", "name": "Bixolon SRP-Q300", "driver": "bixolon"},
}

SPOOLER_PLATFORMS = ("linux", "darwin")


def catalog_key(vendor_id: str, product_id: str) -> str:
    return f"{vendor_id.lower()}:{product_id.lower()}"


def driver_id(vendor_id: str, product_id: str) -> str:
    return f"{vendor_id.lower()}-{product_id.lower()}"


class DriverManager:
    """Tracks spooler registration for catalog printers and auto-configures them.

    Installation registers a raw queue with CUPS (``lpadmin``), so ESC/POS
    bytes pass through the spooler untouched. Queues registered by earlier runs
    are picked up from ``lpstat -p`` at start-up.
    """

    QUEUE_PREFIX = "kitchen"

    def __init__(self, registry, command_timeout: float = 10.0, platform: Optional[str] = None):
        self.registry = registry
        self.command_timeout = command_timeout
        self.platform = platform or sys.platform
        self._installed = self.detect_installed()

    def queue_name(self, ident: str) -> str:
        return f"{self.QUEUE_PREFIX}-{ident.lower()}"

    def detect_installed(self) -> Set[str]:
        """Driver ids whose spooler queue already exists."""
        if not self.platform.startswith(SPOOLER_PLATFORMS):
            return set()
        try:
            result = subprocess.run(["lpstat", "-p"], capture_output=True,
                                    timeout=self.command_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("lpstat did not finish within %ss", self.command_timeout)
            return set()
        except OSError as e:
            logger.info("Spooler not available, no drivers detected: %s", e)
            return set()
        if result.returncode != 0:
            return set()

        known = {driver_id(*key.split(":")) for key in SUPPORTED_MODELS}
        prefix = f"{self.QUEUE_PREFIX}-"
        installed = set()
        # "printer kitchen-04b8-0207 is idle.  enabled since ..."
        for line in result.stdout.decode(errors="replace").splitlines():
            parts = line.split()
            if len(parts) < 2 or parts[0] != "printer":
                continue
            queue = parts[1]
            if queue.startswith(prefix) and queue[len(prefix):] in known:
                installed.add(queue[len(prefix):])
        if installed:
            logger.info("Detected installed printer drivers: %s", ", ".join(sorted(installed)))
        return installed

    def lookup(self, vendor_id: str, product_id: str) -> Optional[dict]:
        return SUPPORTED_MODELS.get(catalog_key(vendor_id, product_id))

    def supported_models(self) -> List[dict]:
        models = []
        for key, info in SUPPORTED_MODELS.items():
            vendor_id, product_id = key.split(":")
            models.append({
                "vendorId": vendor_id,
                "productId": product_id,
                "manufacturer": info["manufacturer"],
                "name": info["name"],
                "driver": info["driver"],
            })
        return models

    def list_drivers(self) -> List[DriverInfo]:
        drivers = []
        for key, info in SUPPORTED_MODELS.items():
            ident = driver_id(*key.split(":"))
            drivers.append(DriverInfo(
                id=ident,
                manufacturer=info["manufacturer"],
                model=info["name"],
                status="installed" if ident in self._installed else "not_installed",
            ))
        return drivers

    def is_installed(self, ident: str) -> bool:
        return ident in self._installed

    def install(self, ident: str, device_path: str = "/dev/usb/lp0") -> bool:
        """Register a raw spooler queue for a catalog driver.

        Args:
            ident: Driver id, ``<vendor>-<product>``
            device_path: USB device node the queue prints to

        Returns:
            True if the queue was registered.

        Raises:
            UnsupportedDeviceError: ident is not in the catalog.
        """
        ident = ident.lower()
        key = ident.replace("-", ":", 1)
        if key not in SUPPORTED_MODELS:
            raise UnsupportedDeviceError(f"Unsupported driver: {ident}")

        if not self.platform.startswith(SPOOLER_PLATFORMS):
            logger.warning("Spooler driver installation not supported on %s", self.platform)
            return False

        queue = self.queue_name(ident)
        command = ["lpadmin", "-p", queue, "-E", "-v", f"usb://{device_path}", "-m", "raw"]
        try:
            result = subprocess.run(command, capture_output=True, timeout=self.command_timeout)
        except subprocess.TimeoutExpired:
            logger.error("lpadmin did not finish within %ss", self.command_timeout)
            return False
        except OSError as e:
            logger.error("Spooler printer installation failed: %s", e)
            return False

        if result.returncode != 0:
            logger.error("Spooler printer installation failed: %s",
                         result.stderr.decode(errors="replace").strip())
            return False

        self._installed.add(ident)
        logger.info("Spooler printer %s installed successfully", queue)
        return True

    def auto_configure_printer(self, vendor_id: str, product_id: str, device_path: str) -> bool:
        """Install the driver for a catalog printer and register it.

        Returns False, leaving the registry untouched, when the device is not
        in the catalog or the driver cannot be installed.
        """
        info = self.lookup(vendor_id, product_id)
        if not info:
            logger.info("No catalog entry for USB device %s:%s", vendor_id, product_id)
            return False

        ident = driver_id(vendor_id, product_id)
        if not self.install(ident, device_path):
            return False

        self.registry.add(PrinterConfig(
            id=f"usb-{ident}",
            name=info["name"],
            type="thermal",
            connection_type="usb",
            device_path=device_path,
            spooler_queue=self.queue_name(ident),
            model=info["name"],
            status="disconnected",
            enabled=True,
            is_default=False,
        ))
        logger.info("Configured USB printer %s at %s", info["name"], device_path)
        return True
