"""Transport addresses for configured printers.

Each printer resolves to exactly one of three target kinds. Dispatchers are
registered per kind, so adding a kind without a dispatcher fails at start-up.
"""
from dataclasses import dataclass
from typing import Optional, Union

from kitchen_print.errors import UnsupportedConnectionError
from kitchen_print.schemas import PrinterConfig

DEFAULT_RAW_PORT = 9100


@dataclass(frozen=True)
class NetworkTarget:
    """Raw TCP (JetDirect style) printer."""
    ip: str
    port: int = DEFAULT_RAW_PORT

    def __str__(self):
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True)
class UsbTarget:
    """USB printer reachable through a device node or the local spooler."""
    device_path: str
    queue: Optional[str] = None  # spooler queue, when one was registered for the printer

    def __str__(self):
        return self.device_path


@dataclass(frozen=True)
class CloudTarget:
    """Printer behind a third-party cloud print relay."""
    service: str
    api_key: str
    printer_ref: str

    def __str__(self):
        return f"{self.service}:{self.printer_ref}"


Target = Union[NetworkTarget, UsbTarget, CloudTarget]
TARGET_KINDS = (NetworkTarget, UsbTarget, CloudTarget)


@dataclass(frozen=True)
class PrintJob:
    """One payload bound for one printer."""
    printer_id: str
    title: str
    payload: Union[bytes, str]


def target_for(printer: PrinterConfig) -> Target:
    """Resolve a printer's connection fields to its transport target.

    Raises:
        UnsupportedConnectionError: required address fields are missing.
    """
    kind = printer.connection_type

    if kind in ("ethernet", "wifi"):
        if not printer.ip_address:
            raise UnsupportedConnectionError(f"Printer {printer.id} has no IP address")
        return NetworkTarget(ip=printer.ip_address, port=printer.port or DEFAULT_RAW_PORT)
    if kind == "usb":
        if not printer.device_path:
            raise UnsupportedConnectionError(f"Printer {printer.id} has no USB device path")
        return UsbTarget(device_path=printer.device_path, queue=printer.spooler_queue)
    if kind == "cloud":
        if not printer.api_key:
            raise UnsupportedConnectionError(f"Printer {printer.id} has no cloud API key")
        return CloudTarget(
            service=printer.cloud_service,
            api_key=printer.api_key,
            printer_ref=printer.cloud_printer_id or printer.id,
        )
    raise UnsupportedConnectionError(f"Unsupported connection type: {kind}")


def is_text_target(target: Optional[Target]) -> bool:
    """Cloud relays take the plain-text receipt; everything else takes ESC/POS."""
    return isinstance(target, CloudTarget)
