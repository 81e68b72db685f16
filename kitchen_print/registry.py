"""In-memory registry of configured printers."""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from kitchen_print.errors import PrinterNotFoundError
from kitchen_print.schemas import PrinterConfig, PrinterStatus

logger = logging.getLogger(__name__)


class PrinterRegistry:
    """Printer configurations keyed by id.

    At most one printer is the default: marking a printer default clears the
    flag everywhere else. Records handed out are copies, so callers change
    state only through ``add``, ``update`` and ``set_status``.

    Args:
        printers: Initial printers.
        on_delete: Called with the printer id whenever a printer leaves the
            registry, used to close open dispatcher connections.
    """

    def __init__(self, printers: Iterable[PrinterConfig] = (),
                 on_delete: Optional[Callable[[str], None]] = None):
        self._printers: Dict[str, PrinterConfig] = {}
        self.on_delete = on_delete
        self.replace(printers)

    def __len__(self):
        return len(self._printers)

    def __contains__(self, printer_id):
        return printer_id in self._printers

    def _clear_default(self, keep_id: str) -> None:
        for pid, printer in self._printers.items():
            if pid != keep_id and printer.is_default:
                self._printers[pid] = printer.model_copy(update={"is_default": False})
                logger.info("Printer %s is no longer the default", pid)

    def _removed(self, printer_id: str) -> None:
        if self.on_delete:
            self.on_delete(printer_id)

    def add(self, printer: PrinterConfig) -> PrinterConfig:
        """Add a printer, replacing any printer with the same id."""
        printer = printer.model_copy(deep=True)
        if printer.is_default:
            self._clear_default(keep_id=printer.id)
        self._printers[printer.id] = printer
        logger.info("Added printer %s (%s)", printer.id, printer.name)
        return printer.model_copy()

    def update(self, printer_id: str, **changes) -> PrinterConfig:
        """Apply a partial update; the id itself cannot change."""
        current = self.get(printer_id)
        data = current.model_dump()
        data.update(changes)
        data["id"] = printer_id
        updated = PrinterConfig.model_validate(data)
        if updated.is_default:
            self._clear_default(keep_id=printer_id)
        self._printers[printer_id] = updated
        return updated.model_copy()

    def delete(self, printer_id: str) -> None:
        if self._printers.pop(printer_id, None) is None:
            raise PrinterNotFoundError(printer_id)
        self._removed(printer_id)
        logger.info("Deleted printer %s", printer_id)

    def get(self, printer_id: str) -> PrinterConfig:
        try:
            return self._printers[printer_id].model_copy()
        except KeyError:
            raise PrinterNotFoundError(printer_id)

    def find(self, printer_id: str) -> Optional[PrinterConfig]:
        printer = self._printers.get(printer_id)
        return printer.model_copy() if printer else None

    def list(self) -> List[PrinterConfig]:
        return [p.model_copy() for p in self._printers.values()]

    def default(self) -> Optional[PrinterConfig]:
        """The enabled default printer, if any."""
        for printer in self._printers.values():
            if printer.is_default and printer.enabled:
                return printer.model_copy()
        return None

    def set_status(self, printer_id: str, status: PrinterStatus) -> None:
        """Record the outcome of the last dispatch; unknown ids are ignored."""
        printer = self._printers.get(printer_id)
        if printer:
            self._printers[printer_id] = printer.model_copy(update={"status": status})

    def replace(self, printers: Iterable[PrinterConfig]) -> None:
        """Swap in a complete printer list.

        Raises:
            ValueError: more than one printer is marked default.
        """
        printers = [p.model_copy(deep=True) for p in printers]
        if sum(1 for p in printers if p.is_default) > 1:
            raise ValueError("At most one printer may be the default")

        new_ids = {p.id for p in printers}
        for pid in list(self._printers):
            if pid not in new_ids:
                self._removed(pid)
        self._printers = {p.id: p for p in printers}
