"""Tests for target selection, retries and status updates."""
from unittest.mock import patch

import pytest

from kitchen_print.errors import PartialDeliveryError
from kitchen_print.orchestrator import (
    DISABLED,
    NO_TARGET,
    NOT_FOUND,
    PRINTED,
    TRANSPORT_ERROR,
    PrintOrchestrator,
)
from kitchen_print.printer.connection import create_router
from kitchen_print.printer.targets import CloudTarget, NetworkTarget, UsbTarget
from kitchen_print.registry import PrinterRegistry
from kitchen_print.schemas import PrinterConfig, PrinterSettings, PrintTemplate


def settings(**overrides):
    return lambda: PrinterSettings(**overrides)


@pytest.fixture
def no_sleep():
    with patch("kitchen_print.orchestrator.time.sleep") as sleep:
        yield sleep


class TestPrintOrder:
    """End-to-end printing through a real network dispatcher."""

    def test_prints_to_default_network_printer(self, printer_server, ethernet_printer, order):
        registry = PrinterRegistry([ethernet_printer("kitchen", port=printer_server.port)])
        orchestrator = PrintOrchestrator(registry, create_router({"NETWORK_SETTLE_TIMEOUT": 1.0}))

        result = orchestrator.print_order(order)

        assert result
        assert result.reason == PRINTED
        assert result.printer_id == "kitchen"
        assert result.order_id == "T1"
        assert result.attempts == 1
        assert len(printer_server.received) == 1
        data = printer_server.received[0]
        assert data.startswith(b"\x1b@")
        assert b"Order #: T1" in data
        assert registry.get("kitchen").status == "connected"

    def test_unreachable_printer_marks_error(self, closed_port, ethernet_printer, order, no_sleep):
        registry = PrinterRegistry([ethernet_printer("kitchen", port=closed_port)])
        orchestrator = PrintOrchestrator(registry, create_router({}),
                                         settings=settings(retry_attempts=2, timeout=500))

        result = orchestrator.print_order(order)

        assert not result
        assert result.reason == TRANSPORT_ERROR
        assert result.attempts == 2
        assert registry.get("kitchen").status == "error"

    def test_printer_dropping_connection_prints_once(self, resetting_printer_server, ethernet_printer,
                                                    order, no_sleep):
        registry = PrinterRegistry([ethernet_printer("kitchen", port=resetting_printer_server.port)])
        orchestrator = PrintOrchestrator(registry, create_router({"NETWORK_SETTLE_TIMEOUT": 2.0}),
                                         settings=settings(retry_attempts=3))

        result = orchestrator.print_order(order)

        assert result.reason == PRINTED
        assert len(resetting_printer_server.received) == 1
        no_sleep.assert_not_called()


class TestTargetSelection:
    """Tests for choosing the printer."""

    def test_no_printers_means_no_dispatch(self, fake_router, dispatchers, order):
        result = PrintOrchestrator(PrinterRegistry(), fake_router).print_order(order)

        assert not result
        assert result.reason == NO_TARGET
        assert not result.dispatched
        assert all(d.calls == [] for d in dispatchers.values())

    def test_disabled_default_is_no_target(self, fake_router, ethernet_printer, order):
        registry = PrinterRegistry([ethernet_printer("a", enabled=False)])
        result = PrintOrchestrator(registry, fake_router).print_order(order)
        assert result.reason == NO_TARGET
        assert registry.get("a").status == "disconnected"

    def test_explicit_disabled_printer(self, fake_router, dispatchers, ethernet_printer, order):
        registry = PrinterRegistry([ethernet_printer("a", enabled=False)])
        result = PrintOrchestrator(registry, fake_router).print_order(order, "a")
        assert result.reason == DISABLED
        assert result.printer_id == "a"
        assert dispatchers[NetworkTarget].calls == []
        assert registry.get("a").status == "disconnected"

    def test_unknown_printer(self, fake_router, order):
        result = PrintOrchestrator(PrinterRegistry(), fake_router).print_order(order, "nope")
        assert result.reason == NOT_FOUND
        assert result.printer_id == "nope"

    def test_explicit_printer_wins_over_default(self, fake_router, dispatchers, ethernet_printer, order):
        registry = PrinterRegistry([
            ethernet_printer("default"),
            ethernet_printer("bar", is_default=False, ip_address="10.0.0.9"),
        ])
        PrintOrchestrator(registry, fake_router).print_order(order, "bar")
        target, job = dispatchers[NetworkTarget].calls[0]
        assert target == NetworkTarget("10.0.0.9", 9100)
        assert job.printer_id == "bar"


class TestDispatch:
    """Tests for payloads, retries and failures."""

    def test_cloud_printer_gets_text(self, fake_router, dispatchers, order):
        printer = PrinterConfig(id="c1", name="Cloud", type="cloud", connection_type="cloud",
                                api_key="k", cloud_printer_id="42", is_default=True)
        PrintOrchestrator(PrinterRegistry([printer]), fake_router).print_order(order)

        target, job = dispatchers[CloudTarget].calls[0]
        assert target == CloudTarget("printnode", "k", "42")
        assert isinstance(job.payload, str)
        assert job.title == "Kitchen Order T1"

    def test_usb_printer_gets_escpos(self, fake_router, dispatchers, order):
        printer = PrinterConfig(id="u1", name="USB", connection_type="usb",
                                device_path="/dev/usb/lp0", is_default=True)
        PrintOrchestrator(PrinterRegistry([printer]), fake_router).print_order(order)

        target, job = dispatchers[UsbTarget].calls[0]
        assert target == UsbTarget("/dev/usb/lp0")
        assert job.payload.startswith(b"\x1b@")

    def test_retries_with_backoff(self, fake_router, dispatchers, ethernet_printer, order, no_sleep):
        dispatchers[NetworkTarget].results = [False, False, True]
        registry = PrinterRegistry([ethernet_printer("a")])

        result = PrintOrchestrator(registry, fake_router, settings=settings(retry_attempts=3)).print_order(order)

        assert result.reason == PRINTED
        assert result.attempts == 3
        assert [c.args[0] for c in no_sleep.call_args_list] == [0.5, 1.0]

    def test_zero_retry_attempts_still_tries_once(self, fake_router, dispatchers, ethernet_printer,
                                                  order, no_sleep):
        dispatchers[NetworkTarget].results = [False]
        registry = PrinterRegistry([ethernet_printer("a")])

        result = PrintOrchestrator(registry, fake_router, settings=settings(retry_attempts=0)).print_order(order)

        assert result.reason == TRANSPORT_ERROR
        assert len(dispatchers[NetworkTarget].calls) == 1
        no_sleep.assert_not_called()

    def test_partial_delivery_is_not_retried(self, fake_router, dispatchers, ethernet_printer,
                                             order, no_sleep):
        dispatchers[NetworkTarget].results = [PartialDeliveryError("a", "connection reset")]
        registry = PrinterRegistry([ethernet_printer("a")])

        result = PrintOrchestrator(registry, fake_router, settings=settings(retry_attempts=3)).print_order(order)

        assert result.reason == TRANSPORT_ERROR
        assert result.attempts == 1
        assert len(dispatchers[NetworkTarget].calls) == 1
        no_sleep.assert_not_called()
        assert registry.get("a").status == "error"

    def test_dispatcher_exception_is_a_failure(self, fake_router, dispatchers, ethernet_printer,
                                               order, no_sleep):
        dispatchers[NetworkTarget].results = [RuntimeError("boom")]
        registry = PrinterRegistry([ethernet_printer("a")])

        result = PrintOrchestrator(registry, fake_router, settings=settings(retry_attempts=1)).print_order(order)

        assert result.reason == TRANSPORT_ERROR
        assert registry.get("a").status == "error"

    def test_settings_timeout_applied(self, fake_router, dispatchers, ethernet_printer, order):
        registry = PrinterRegistry([ethernet_printer("a")])
        PrintOrchestrator(registry, fake_router, settings=settings(timeout=2500)).print_order(order)
        assert dispatchers[NetworkTarget].connect_timeout == 2.5

    def test_missing_address_is_transport_error(self, fake_router, dispatchers, order):
        printer = PrinterConfig(id="u1", name="USB", connection_type="usb", is_default=True)
        result = PrintOrchestrator(PrinterRegistry([printer]), fake_router).print_order(order)
        assert result.reason == TRANSPORT_ERROR
        assert result.attempts == 0
        assert dispatchers[UsbTarget].calls == []

    def test_repeated_print_dispatches_twice(self, fake_router, dispatchers, ethernet_printer, order):
        orchestrator = PrintOrchestrator(PrinterRegistry([ethernet_printer("a")]), fake_router)
        orchestrator.print_order(order)
        orchestrator.print_order(order)
        assert len(dispatchers[NetworkTarget].calls) == 2

    def test_template_is_applied(self, fake_router, dispatchers, ethernet_printer, order):
        orchestrator = PrintOrchestrator(PrinterRegistry([ethernet_printer("a")]), fake_router)
        template = PrintTemplate(id="2", name="Bar", header_text="BAR ORDER")
        orchestrator.print_order(order, template=template)
        _, job = dispatchers[NetworkTarget].calls[0]
        assert b"BAR ORDER" in job.payload

    def test_test_print(self, fake_router, dispatchers, ethernet_printer):
        orchestrator = PrintOrchestrator(PrinterRegistry([ethernet_printer("a")]), fake_router)
        result = orchestrator.test_print("a")
        assert result
        assert result.order_id.startswith("TEST-")
        _, job = dispatchers[NetworkTarget].calls[0]
        assert b"Test Burger" in job.payload
        assert job.title.startswith("Kitchen Order TEST-")
