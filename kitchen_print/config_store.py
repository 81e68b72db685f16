"""Durable JSON snapshot of printers, templates and global settings."""
import json
import logging
import os
from typing import List, Optional

from pydantic import ValidationError

from kitchen_print.schemas import (
    PrinterConfig,
    PrinterConfiguration,
    PrinterSettings,
    PrintTemplate,
)

logger = logging.getLogger(__name__)


def default_configuration() -> PrinterConfiguration:
    """Built-in configuration used when no snapshot can be loaded."""
    return PrinterConfiguration(
        printers=[
            PrinterConfig(
                id="1",
                name="Main Kitchen Printer",
                type="thermal",
                connection_type="ethernet",
                ip_address="192.168.1.100",
                port=9100,
                model="Epson TM-T88VI",
                status="disconnected",
                enabled=True,
                is_default=True,
            ),
        ],
        templates=[
            PrintTemplate(
                id="1",
                name="Standard Kitchen Order",
                type="kitchen",
                width=48,
                font_size=12,
                include_customer_info=True,
                include_order_time=True,
                include_special_instructions=True,
                header_text="KITCHEN ORDER",
                footer_text="",
            ),
            PrintTemplate(
                id="2",
                name="Bar Order",
                type="bar",
                width=32,
                font_size=10,
                include_customer_info=False,
                include_order_time=True,
                include_special_instructions=True,
                header_text="BAR ORDER",
                footer_text="",
            ),
        ],
        settings=PrinterSettings(autoprint=True, retry_attempts=3, timeout=5000),
    )


class ConfigurationStore:
    """Loads and saves the printer configuration file.

    Args:
        path: Location of the JSON snapshot. Its directory is created on save.
    """

    def __init__(self, path: str):
        self.path = path
        self.configuration = default_configuration()

    def load(self) -> PrinterConfiguration:
        """Read the snapshot, falling back to (and writing) the defaults."""
        try:
            with open(self.path, encoding="utf-8") as f:
                self.configuration = PrinterConfiguration.model_validate(json.load(f))
            logger.info("Printer configuration loaded from %s", self.path)
        except FileNotFoundError:
            logger.info("No printer configuration at %s, using defaults", self.path)
            self._reset_to_defaults()
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Unreadable printer configuration at %s (%s), using defaults",
                           self.path, e)
            self._reset_to_defaults()
        return self.configuration

    def _reset_to_defaults(self) -> None:
        self.configuration = default_configuration()
        try:
            self.save()
        except OSError as e:
            logger.error("Failed to write default printer configuration: %s", e)

    def save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.configuration.to_dict(), f, indent=2)
        os.replace(tmp_path, self.path)
        logger.debug("Printer configuration saved to %s", self.path)

    # Printers

    def set_printers(self, printers: List[PrinterConfig]) -> None:
        self.configuration = self.configuration.model_copy(update={"printers": list(printers)})

    # Templates

    @property
    def templates(self) -> List[PrintTemplate]:
        return list(self.configuration.templates)

    def get_template(self, template_id: str) -> Optional[PrintTemplate]:
        for template in self.configuration.templates:
            if template.id == template_id:
                return template
        return None

    def add_template(self, template: PrintTemplate) -> None:
        templates = [t for t in self.configuration.templates if t.id != template.id]
        templates.append(template)
        self.configuration = self.configuration.model_copy(update={"templates": templates})

    def update_template(self, template_id: str, **changes) -> Optional[PrintTemplate]:
        current = self.get_template(template_id)
        if current is None:
            return None
        data = current.model_dump()
        data.update(changes)
        data["id"] = template_id
        updated = PrintTemplate.model_validate(data)
        templates = [updated if t.id == template_id else t for t in self.configuration.templates]
        self.configuration = self.configuration.model_copy(update={"templates": templates})
        return updated

    def delete_template(self, template_id: str) -> bool:
        templates = [t for t in self.configuration.templates if t.id != template_id]
        removed = len(templates) != len(self.configuration.templates)
        self.configuration = self.configuration.model_copy(update={"templates": templates})
        return removed

    # Settings

    @property
    def settings(self) -> PrinterSettings:
        return self.configuration.settings

    def update_settings(self, **changes) -> PrinterSettings:
        data = self.configuration.settings.model_dump()
        data.update(changes)
        settings = PrinterSettings.model_validate(data)
        self.configuration = self.configuration.model_copy(update={"settings": settings})
        return settings
