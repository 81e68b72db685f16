"""Pydantic schemas for printers, orders, templates and request bodies.

Attributes are snake_case in Python; JSON uses camelCase aliases
(``isDefault``, ``connectionType``) and accepts either spelling on input.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializationInfo,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

PrinterType = Literal["thermal", "impact", "kds", "cloud"]
ConnectionType = Literal["usb", "ethernet", "wifi", "cloud"]
PrinterStatus = Literal["connected", "disconnected", "error"]
OrderType = Literal["dine-in", "takeout", "delivery"]
TemplateType = Literal["receipt", "kitchen", "bar"]
DriverStatus = Literal["installed", "not_installed"]

HEX_ID_PATTERN = r"^[0-9a-fA-F]{4}$"
API_KEY_MASK = "****"


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Hide all but the last four characters of a credential."""
    if not value:
        return value
    return API_KEY_MASK + value[-4:] if len(value) > 8 else API_KEY_MASK


def is_masked(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(API_KEY_MASK)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self, mask_secrets: bool = False) -> dict:
        """Convert to dictionary for API responses.

        Args:
            mask_secrets: Mask API keys, for output leaving the service
        """
        return self.model_dump(mode="json", by_alias=True, context={"mask_secrets": mask_secrets})


# Printers

class PrinterConfig(CamelModel):
    """A configured print target."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: PrinterType = "thermal"
    connection_type: ConnectionType
    ip_address: Optional[str] = None
    port: Optional[int] = Field(None, ge=1, le=65535)
    device_path: Optional[str] = None
    spooler_queue: Optional[str] = None
    api_key: Optional[str] = None
    cloud_service: str = "printnode"
    cloud_printer_id: Optional[str] = None
    model: str = "Unknown"
    status: PrinterStatus = "disconnected"
    enabled: bool = True
    is_default: bool = False

    @field_serializer("api_key")
    def serialize_api_key(self, value: Optional[str], info: SerializationInfo) -> Optional[str]:
        if info.context and info.context.get("mask_secrets"):
            return mask_secret(value)
        return value


class PrinterUpdate(CamelModel):
    """Partial printer update; only fields present in the body are applied."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    type: Optional[PrinterType] = None
    connection_type: Optional[ConnectionType] = None
    ip_address: Optional[str] = None
    port: Optional[int] = Field(None, ge=1, le=65535)
    device_path: Optional[str] = None
    spooler_queue: Optional[str] = None
    api_key: Optional[str] = None
    cloud_service: Optional[str] = None
    cloud_printer_id: Optional[str] = None
    model: Optional[str] = None
    status: Optional[PrinterStatus] = None
    enabled: Optional[bool] = None
    is_default: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# Orders

class OrderItem(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    special_instructions: Optional[str] = None
    price: float = Field(..., ge=0)


class OrderData(CamelModel):
    """Order to print. Read-only input, never stored by this package."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    customer_name: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    total: float = Field(..., ge=0)
    order_time: datetime
    special_instructions: Optional[str] = None
    table_number: Optional[str] = None
    order_type: OrderType


class PrintOrderRequest(OrderData):
    """Body of ``POST /print``: an order plus optional routing hints."""
    printer_id: Optional[str] = None
    template_id: Optional[str] = None

    def order(self) -> OrderData:
        return OrderData.model_validate(self.model_dump(exclude={"printer_id", "template_id"}))


# Templates and settings

class PrintTemplate(CamelModel):
    """Layout options applied by the ticket renderer."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: TemplateType = "kitchen"
    width: int = Field(48, ge=16, le=64)
    font_size: int = Field(12, gt=0)
    include_customer_info: bool = True
    include_order_time: bool = True
    include_special_instructions: bool = True
    header_text: str = "KITCHEN ORDER"
    footer_text: str = ""


class TemplateUpdate(CamelModel):
    """Partial template update; only fields present in the body are applied."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    type: Optional[TemplateType] = None
    width: Optional[int] = Field(None, ge=16, le=64)
    font_size: Optional[int] = Field(None, gt=0)
    include_customer_info: Optional[bool] = None
    include_order_time: Optional[bool] = None
    include_special_instructions: Optional[bool] = None
    header_text: Optional[str] = None
    footer_text: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class PrinterSettings(CamelModel):
    autoprint: bool = True
    retry_attempts: int = Field(3, ge=0, le=10)
    timeout: int = Field(5000, gt=0, description="Network connect timeout in milliseconds")


class SettingsUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    autoprint: Optional[bool] = None
    retry_attempts: Optional[int] = Field(None, ge=0, le=10)
    timeout: Optional[int] = Field(None, gt=0)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class PrinterConfiguration(CamelModel):
    """Durable snapshot of printers, templates and global settings."""
    printers: List[PrinterConfig] = Field(default_factory=list)
    templates: List[PrintTemplate] = Field(default_factory=list)
    settings: PrinterSettings = Field(default_factory=PrinterSettings)

    @model_validator(mode="after")
    def check_printers(self):
        ids = [p.id for p in self.printers]
        if len(ids) != len(set(ids)):
            raise ValueError("Printer ids must be unique")
        if sum(1 for p in self.printers if p.is_default) > 1:
            raise ValueError("At most one printer may be the default")
        return self


# USB devices and drivers

class USBPrinterDevice(CamelModel):
    """A printer found on the USB bus, not yet configured."""
    vendor_id: str = Field(..., pattern=HEX_ID_PATTERN)
    product_id: str = Field(..., pattern=HEX_ID_PATTERN)
    device_path: str
    manufacturer: Optional[str] = None
    product: Optional[str] = None
    serial_number: Optional[str] = None

    @field_validator("vendor_id", "product_id")
    @classmethod
    def lower_hex(cls, value: str) -> str:
        return value.lower()


class DriverInfo(CamelModel):
    id: str
    manufacturer: str
    model: str
    status: DriverStatus = "not_installed"


# Request bodies

class PrintTestRequest(CamelModel):
    printer_id: str = Field(..., min_length=1)


class CloudServiceCredentials(CamelModel):
    service: str = Field("printnode", min_length=1)
    api_key: str = Field(..., min_length=1)


class CloudDiscoveryRequest(CamelModel):
    services: List[CloudServiceCredentials] = Field(..., min_length=1)


class UsbConfigureRequest(CamelModel):
    vendor_id: str = Field(..., pattern=HEX_ID_PATTERN)
    product_id: str = Field(..., pattern=HEX_ID_PATTERN)
    device_path: str = Field(..., min_length=1)


class UsbTestRequest(CamelModel):
    device_path: str = Field(..., min_length=1)


class DriverInstallRequest(CamelModel):
    device_path: str = Field("/dev/usb/lp0", min_length=1)
