"""Wiring of the print dispatch components for one application."""
import logging
from typing import Optional

import httpx

from kitchen_print.config_store import ConfigurationStore
from kitchen_print.orchestrator import PrintOrchestrator
from kitchen_print.printer.connection import CloudDispatcher, USBDispatcher, create_router
from kitchen_print.printer.discovery import CloudDiscovery, NetworkDiscovery, USBDiscovery
from kitchen_print.printer.drivers import DriverManager
from kitchen_print.printer.targets import CloudTarget, UsbTarget
from kitchen_print.registry import PrinterRegistry
from kitchen_print.schemas import PrinterConfiguration

logger = logging.getLogger(__name__)


class KitchenPrintService:
    """Owns the registry, configuration store, dispatchers and discovery.

    One instance lives on each Flask app (``app.extensions["kitchen_print"]``);
    nothing here is module-global.
    """

    def __init__(self, config: dict, transport: Optional[httpx.BaseTransport] = None):
        self.store = ConfigurationStore(config["PRINTER_CONFIG_PATH"])
        configuration = self.store.load()

        self.router = create_router(config, transport=transport)
        self.registry = PrinterRegistry(configuration.printers, on_delete=self.router.close)
        self.orchestrator = PrintOrchestrator(
            self.registry, self.router, settings=lambda: self.store.settings
        )
        self.drivers = DriverManager(
            self.registry, command_timeout=config.get("USB_COMMAND_TIMEOUT", 10.0)
        )

        cloud = self.cloud_dispatcher.client
        self.network_discovery = NetworkDiscovery(
            config.get("NETWORK_DISCOVERY_CANDIDATES", []),
            port=config.get("NETWORK_DISCOVERY_PORT", 9100),
            timeout=config.get("NETWORK_PROBE_TIMEOUT", 2.0),
        )
        self.usb_discovery = USBDiscovery()
        self.cloud_discovery = CloudDiscovery(cloud)

    @property
    def usb_dispatcher(self) -> USBDispatcher:
        return self.router.dispatcher(UsbTarget)

    @property
    def cloud_dispatcher(self) -> CloudDispatcher:
        return self.router.dispatcher(CloudTarget)

    def persist(self) -> bool:
        """Write the current registry, templates and settings to disk."""
        self.store.set_printers(self.registry.list())
        try:
            self.store.save()
        except OSError as e:
            logger.error("Failed to save printer configuration: %s", e)
            return False
        return True

    def apply_configuration(self, configuration: PrinterConfiguration) -> bool:
        """Replace printers, templates and settings with a full snapshot."""
        self.registry.replace(configuration.printers)
        self.store.configuration = configuration
        logger.info("Printer configuration applied (%d printers, %d templates)",
                    len(configuration.printers), len(configuration.templates))
        return self.persist()
