"""Printer module: ESC/POS rendering, transports, discovery and drivers."""
from kitchen_print.printer.connection import (
    PrinterDispatcher,
    NetworkDispatcher,
    USBDispatcher,
    CloudDispatcher,
    CloudPrintClient,
    DispatchRouter,
    create_router,
)
from kitchen_print.printer.escpos import ESCPOSBuilder
from kitchen_print.printer.renderer import KitchenTicketRenderer
from kitchen_print.printer.targets import CloudTarget, NetworkTarget, PrintJob, UsbTarget, target_for

__all__ = [
    "PrinterDispatcher",
    "NetworkDispatcher",
    "USBDispatcher",
    "CloudDispatcher",
    "CloudPrintClient",
    "DispatchRouter",
    "create_router",
    "ESCPOSBuilder",
    "KitchenTicketRenderer",
    "CloudTarget",
    "NetworkTarget",
    "PrintJob",
    "UsbTarget",
    "target_for",
]
