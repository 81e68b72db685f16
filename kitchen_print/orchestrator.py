"""Print orchestration: pick a printer, render the ticket, dispatch, record status."""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from kitchen_print.errors import (
    NoTargetPrinterError,
    PartialDeliveryError,
    PrinterDisabledError,
    PrinterNotFoundError,
    UnsupportedConnectionError,
)
from kitchen_print.printer.connection import DispatchRouter
from kitchen_print.printer.renderer import KitchenTicketRenderer
from kitchen_print.printer.targets import NetworkTarget, PrintJob, is_text_target, target_for
from kitchen_print.registry import PrinterRegistry
from kitchen_print.schemas import OrderData, OrderItem, PrinterConfig, PrinterSettings, PrintTemplate

logger = logging.getLogger(__name__)

# PrintResult reasons
PRINTED = "printed"
NO_TARGET = "no_target"
NOT_FOUND = "not_found"
DISABLED = "disabled"
TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class PrintResult:
    """Outcome of one print request; truthy only when the job was delivered."""
    reason: str
    printer_id: Optional[str] = None
    message: str = ""
    attempts: int = 0
    order_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason == PRINTED

    @property
    def dispatched(self) -> bool:
        """True when a transport was actually tried."""
        return self.reason in (PRINTED, TRANSPORT_ERROR)

    def __bool__(self):
        return self.ok


class PrintOrchestrator:
    """Entry point for printing orders.

    Args:
        registry: Printer registry; receives status updates after each dispatch.
        router: Dispatchers for every transport.
        renderer: Ticket renderer, defaults to a 48 column renderer.
        settings: Callable returning the current global settings. Retry count
            and network connect timeout are read on every print.
    """

    BACKOFF_BASE = 0.5
    BACKOFF_MAX = 4.0

    def __init__(self, registry: PrinterRegistry, router: DispatchRouter,
                 renderer: Optional[KitchenTicketRenderer] = None,
                 settings: Optional[Callable[[], PrinterSettings]] = None):
        self.registry = registry
        self.router = router
        self.renderer = renderer or KitchenTicketRenderer()
        self.settings = settings or PrinterSettings

    def resolve_target(self, printer_id: Optional[str] = None) -> PrinterConfig:
        """Select the printer for a job.

        Raises:
            PrinterNotFoundError: printer_id is not registered.
            NoTargetPrinterError: no printer_id and no enabled default.
            PrinterDisabledError: the selected printer is disabled.
        """
        if printer_id:
            printer = self.registry.get(printer_id)
        else:
            printer = self.registry.default()
            if printer is None:
                raise NoTargetPrinterError()

        if not printer.enabled:
            raise PrinterDisabledError(printer.id)
        return printer

    def print_order(self, order: OrderData, printer_id: Optional[str] = None,
                    template: Optional[PrintTemplate] = None) -> PrintResult:
        try:
            printer = self.resolve_target(printer_id)
        except PrinterNotFoundError as e:
            logger.error("%s", e)
            return PrintResult(NOT_FOUND, printer_id, str(e), order_id=order.id)
        except NoTargetPrinterError as e:
            logger.error("No suitable printer found for order %s", order.id)
            return PrintResult(NO_TARGET, None, str(e), order_id=order.id)
        except PrinterDisabledError as e:
            logger.info("Printer %s is disabled, order %s not printed", e.printer_id, order.id)
            return PrintResult(DISABLED, e.printer_id, str(e), order_id=order.id)

        logger.info("Printing order %s to %s", order.id, printer.name)
        success, attempts = self._dispatch(printer, order, template)
        self.registry.set_status(printer.id, "connected" if success else "error")

        if success:
            return PrintResult(PRINTED, printer.id, "Order printed", attempts, order.id)
        return PrintResult(TRANSPORT_ERROR, printer.id,
                           f"Could not reach printer {printer.name}", attempts, order.id)

    def _dispatch(self, printer: PrinterConfig, order: OrderData,
                  template: Optional[PrintTemplate]):
        try:
            target = target_for(printer)
        except UnsupportedConnectionError as e:
            logger.error("Cannot dispatch to %s: %s", printer.id, e)
            return False, 0

        if is_text_target(target):
            payload = self.renderer.render_text(order, template)
        else:
            payload = self.renderer.render(order, template)
        job = PrintJob(printer.id, f"Kitchen Order {order.id}", payload)

        settings = self.settings()
        self.router.dispatcher(NetworkTarget).connect_timeout = settings.timeout / 1000.0
        attempts = max(1, settings.retry_attempts)

        for attempt in range(1, attempts + 1):
            try:
                if self.router.send(target, job):
                    return True, attempt
            except PartialDeliveryError as e:
                # Part of the ticket may already be printing
                logger.error("Not retrying order %s: %s", order.id, e)
                return False, attempt
            except Exception:
                logger.exception("Dispatcher raised for printer %s", printer.id)

            if attempt < attempts:
                delay = min(self.BACKOFF_BASE * 2 ** (attempt - 1), self.BACKOFF_MAX)
                logger.warning("Print to %s failed (attempt %d/%d), retrying in %.1fs",
                               printer.id, attempt, attempts, delay)
                time.sleep(delay)

        return False, attempts

    def test_print(self, printer_id: str) -> PrintResult:
        """Print a canned order through the full print path."""
        test_order = OrderData(
            id=f"TEST-{int(time.time() * 1000)}",
            customer_name="Test Customer",
            items=[
                OrderItem(name="Test Burger", quantity=1,
                          special_instructions="No pickles", price=12.99),
                OrderItem(name="French Fries", quantity=1, price=4.99),
            ],
            total=17.98,
            order_time=datetime.now(),
            special_instructions="This is a test order",
            table_number="1",
            order_type="dine-in",
        )
        return self.print_order(test_order, printer_id)
