"""Tests for the printer registry."""
import pytest

from kitchen_print.errors import PrinterNotFoundError
from kitchen_print.registry import PrinterRegistry


def defaults(registry):
    return [p.id for p in registry.list() if p.is_default]


class TestPrinterRegistry:
    """Tests for PrinterRegistry."""

    def test_add_and_get(self, ethernet_printer):
        registry = PrinterRegistry()
        registry.add(ethernet_printer("a"))
        assert registry.get("a").name == "Printer a"
        assert "a" in registry
        assert len(registry) == 1

    def test_single_default_on_add(self, ethernet_printer):
        registry = PrinterRegistry()
        registry.add(ethernet_printer("a", is_default=True))
        registry.add(ethernet_printer("b", is_default=True))
        assert defaults(registry) == ["b"]

    def test_single_default_on_update(self, ethernet_printer):
        registry = PrinterRegistry([ethernet_printer("a"), ethernet_printer("b", is_default=False)])
        registry.update("b", is_default=True)
        assert defaults(registry) == ["b"]

    def test_add_existing_id_overwrites(self, ethernet_printer):
        registry = PrinterRegistry([ethernet_printer("a")])
        registry.add(ethernet_printer("a", name="Renamed"))
        assert len(registry) == 1
        assert registry.get("a").name == "Renamed"

    def test_update_keeps_id(self, ethernet_printer):
        registry = PrinterRegistry([ethernet_printer("a")])
        updated = registry.update("a", id="z", port=9101)
        assert updated.id == "a"
        assert registry.get("a").port == 9101
        assert "z" not in registry

    def test_update_unknown_raises(self):
        with pytest.raises(PrinterNotFoundError):
            PrinterRegistry().update("missing", name="x")

    def test_delete_notifies(self, ethernet_printer):
        removed = []
        registry = PrinterRegistry([ethernet_printer("a")], on_delete=removed.append)
        registry.delete("a")
        assert removed == ["a"]
        assert registry.find("a") is None

    def test_delete_unknown_raises(self):
        with pytest.raises(PrinterNotFoundError) as exc:
            PrinterRegistry().delete("missing")
        assert exc.value.printer_id == "missing"

    def test_default_must_be_enabled(self, ethernet_printer):
        registry = PrinterRegistry([ethernet_printer("a", enabled=False)])
        assert registry.default() is None

    def test_set_status(self, ethernet_printer):
        registry = PrinterRegistry([ethernet_printer("a")])
        registry.set_status("a", "error")
        registry.set_status("missing", "error")
        assert registry.get("a").status == "error"

    def test_returns_copies(self, ethernet_printer):
        registry = PrinterRegistry([ethernet_printer("a")])
        printer = registry.get("a")
        printer.name = "Changed outside"
        assert registry.get("a").name == "Printer a"

    def test_replace_rejects_two_defaults(self, ethernet_printer):
        registry = PrinterRegistry()
        with pytest.raises(ValueError):
            registry.replace([ethernet_printer("a"), ethernet_printer("b")])

    def test_replace_notifies_removed(self, ethernet_printer):
        removed = []
        registry = PrinterRegistry([ethernet_printer("a"), ethernet_printer("b", is_default=False)],
                                   on_delete=removed.append)
        registry.replace([ethernet_printer("b")])
        assert removed == ["a"]
        assert [p.id for p in registry.list()] == ["b"]
