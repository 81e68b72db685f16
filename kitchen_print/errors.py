"""Exceptions raised by the print dispatch subsystem.

Dispatchers turn transport faults into ``False``, except
``PartialDeliveryError``: a connection that fails after part of a ticket was
written must not be retried. The rest cover the configuration
tier, where the request is rejected before any transport is touched.
"""


class PrintDispatchError(Exception):
    """Base class for print dispatch errors."""


class PrinterConfigurationError(PrintDispatchError):
    """Nothing suitable to print to."""


class PrinterNotFoundError(PrinterConfigurationError):
    """No printer with the given id is registered."""

    def __init__(self, printer_id: str):
        super().__init__(f"Printer not found: {printer_id}")
        self.printer_id = printer_id


class NoTargetPrinterError(PrinterConfigurationError):
    """No printer id was given and no enabled default printer exists."""

    def __init__(self):
        super().__init__("No enabled default printer configured")


class PrinterDisabledError(PrinterConfigurationError):
    """The selected printer is disabled."""

    def __init__(self, printer_id: str):
        super().__init__(f"Printer {printer_id} is disabled")
        self.printer_id = printer_id


class UnsupportedDeviceError(PrinterConfigurationError):
    """USB vendor/product pair or driver id missing from the model catalog."""


class UnsupportedConnectionError(PrinterConfigurationError):
    """Printer record lacks the address fields its connection type needs."""


class PartialDeliveryError(PrintDispatchError):
    """The connection failed after payload bytes were written.

    The printer may already be printing the ticket, so the job must not be
    sent again.
    """

    def __init__(self, printer_id: str, reason: str):
        super().__init__(f"Delivery to {printer_id} interrupted after writing: {reason}")
        self.printer_id = printer_id
