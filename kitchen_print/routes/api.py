"""REST API for kitchen printer management and order printing."""
import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from kitchen_print import db
from kitchen_print.errors import PrinterNotFoundError, UnsupportedDeviceError
from kitchen_print.models import PrintHistory
from kitchen_print.orchestrator import DISABLED, NO_TARGET, NOT_FOUND, PRINTED, TRANSPORT_ERROR
from kitchen_print.printer.drivers import driver_id
from kitchen_print.schemas import (
    CloudDiscoveryRequest,
    CloudServiceCredentials,
    DriverInstallRequest,
    PrinterConfig,
    PrinterConfiguration,
    PrinterUpdate,
    PrintOrderRequest,
    PrintTemplate,
    PrintTestRequest,
    SettingsUpdate,
    TemplateUpdate,
    UsbConfigureRequest,
    UsbTestRequest,
    is_masked,
)

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

RESULT_STATUS_CODES = {
    PRINTED: 200,
    NOT_FOUND: 404,
    NO_TARGET: 409,
    DISABLED: 409,
    TRANSPORT_ERROR: 502,
}


def get_service():
    """The KitchenPrintService bound to the current app."""
    return current_app.extensions["kitchen_print"]


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if data is not None else {}


def record_history(order_id, result):
    """Log a print attempt to history."""
    printer = get_service().registry.find(result.printer_id) if result.printer_id else None
    history = PrintHistory.from_result(order_id, result, printer)
    db.session.add(history)
    db.session.commit()
    return history


def restore_api_key(printer: PrinterConfig) -> PrinterConfig:
    """Keep the stored key when a client echoes back a masked one."""
    if not is_masked(printer.api_key):
        return printer
    existing = get_service().registry.find(printer.id)
    return printer.model_copy(update={"api_key": existing.api_key if existing else None})


# Error handlers

@api_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({
        "error": "Invalid request data",
        "details": e.errors(include_url=False, include_context=False),
    }), 400


@api_bp.errorhandler(PrinterNotFoundError)
def handle_printer_not_found(e):
    return jsonify({"error": "Printer not found", "printerId": e.printer_id}), 404


@api_bp.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    logger.exception("Unhandled error in kitchen printing API")
    return jsonify({"error": "Internal server error"}), 500


# Printers API

@api_bp.route("/printers", methods=["GET"])
def list_printers():
    """List all printers."""
    return jsonify([p.to_dict(mask_secrets=True) for p in get_service().registry.list()])


@api_bp.route("/printers/<printer_id>", methods=["GET"])
def get_printer(printer_id):
    """Get a specific printer."""
    return jsonify(get_service().registry.get(printer_id).to_dict(mask_secrets=True))


@api_bp.route("/printers", methods=["POST"])
def create_printer():
    """Add a new printer."""
    printer = restore_api_key(PrinterConfig.model_validate(json_body()))
    service = get_service()
    printer = service.registry.add(printer)
    service.persist()

    return jsonify({
        "message": "Printer added successfully",
        "printer": printer.to_dict(mask_secrets=True)
    }), 201


@api_bp.route("/printers/<printer_id>", methods=["PUT"])
def update_printer(printer_id):
    """Update a printer with the fields present in the body."""
    changes = PrinterUpdate.model_validate(json_body()).changes()
    if is_masked(changes.get("api_key")):
        del changes["api_key"]
    service = get_service()
    printer = service.registry.update(printer_id, **changes)
    service.persist()

    return jsonify({
        "message": "Printer updated successfully",
        "printer": printer.to_dict(mask_secrets=True)
    })


@api_bp.route("/printers/<printer_id>", methods=["DELETE"])
def delete_printer(printer_id):
    """Delete a printer and close any open connection to it."""
    service = get_service()
    service.registry.delete(printer_id)
    service.persist()
    return jsonify({"message": "Printer deleted successfully"})


# Print API

@api_bp.route("/test", methods=["POST"])
def test_print():
    """Print a test ticket on a specific printer."""
    data = PrintTestRequest.model_validate(json_body())
    service = get_service()
    printer = service.registry.get(data.printer_id)

    result = service.orchestrator.test_print(printer.id)
    record_history(result.order_id, result)

    body = {"printerId": printer.id, "printerName": printer.name, "reason": result.reason}
    if result:
        body["message"] = "Test print successful"
    else:
        body["error"] = "Test print failed"
    return jsonify(body), RESULT_STATUS_CODES[result.reason]


@api_bp.route("/print", methods=["POST"])
def print_order():
    """Print an order ticket.

    Request body: order fields plus optional ``printerId`` (default printer
    when absent) and ``templateId``.
    """
    data = PrintOrderRequest.model_validate(json_body())
    service = get_service()

    template = None
    if data.template_id:
        template = service.store.get_template(data.template_id)
        if template is None:
            return jsonify({"error": "Template not found", "templateId": data.template_id}), 404

    order = data.order()
    result = service.orchestrator.print_order(order, data.printer_id, template)
    history = record_history(order.id, result)

    body = {
        "orderId": order.id,
        "printerId": result.printer_id,
        "reason": result.reason,
        "historyId": history.id,
    }
    if result:
        body["message"] = "Order printed successfully"
    else:
        body["error"] = "Failed to print order"
        body["detail"] = result.message
    return jsonify(body), RESULT_STATUS_CODES[result.reason]


# Configuration API

@api_bp.route("/config", methods=["GET"])
def get_configuration():
    """Current printers, templates and settings."""
    service = get_service()
    configuration = PrinterConfiguration(
        printers=service.registry.list(),
        templates=service.store.templates,
        settings=service.store.settings,
    )
    return jsonify(configuration.to_dict(mask_secrets=True))


@api_bp.route("/config", methods=["POST"])
def save_configuration():
    """Replace printers and templates (and settings when given)."""
    data = json_body()
    service = get_service()
    if isinstance(data, dict) and "settings" not in data:
        data = {**data, "settings": service.store.settings.to_dict()}
    configuration = PrinterConfiguration.model_validate(data)
    configuration = configuration.model_copy(
        update={"printers": [restore_api_key(p) for p in configuration.printers]}
    )

    if not service.apply_configuration(configuration):
        return jsonify({"error": "Failed to save configuration"}), 500
    return jsonify({"message": "Configuration saved successfully"})


@api_bp.route("/templates", methods=["GET"])
def list_templates():
    """List print templates."""
    return jsonify([t.to_dict() for t in get_service().store.templates])


@api_bp.route("/templates", methods=["POST"])
def create_template():
    """Add a print template, replacing any template with the same id."""
    template = PrintTemplate.model_validate(json_body())
    service = get_service()
    service.store.add_template(template)
    service.persist()

    return jsonify({
        "message": "Template added successfully",
        "template": template.to_dict()
    }), 201


@api_bp.route("/templates/<template_id>", methods=["PUT"])
def update_template(template_id):
    """Update a template with the fields present in the body."""
    updates = TemplateUpdate.model_validate(json_body())
    service = get_service()
    template = service.store.update_template(template_id, **updates.changes())
    if template is None:
        return jsonify({"error": "Template not found", "templateId": template_id}), 404
    service.persist()

    return jsonify({
        "message": "Template updated successfully",
        "template": template.to_dict()
    })


@api_bp.route("/templates/<template_id>", methods=["DELETE"])
def delete_template(template_id):
    service = get_service()
    if not service.store.delete_template(template_id):
        return jsonify({"error": "Template not found", "templateId": template_id}), 404
    service.persist()
    return jsonify({"message": "Template deleted successfully"})


@api_bp.route("/settings", methods=["GET"])
def get_settings():
    return jsonify(get_service().store.settings.to_dict())


@api_bp.route("/settings", methods=["PUT"])
def update_settings():
    """Update global print settings (autoprint, retry attempts, timeout)."""
    updates = SettingsUpdate.model_validate(json_body())
    service = get_service()
    settings = service.store.update_settings(**updates.changes())
    service.persist()

    return jsonify({
        "message": "Settings updated successfully",
        "settings": settings.to_dict()
    })


# Discovery API

@api_bp.route("/discover", methods=["GET"])
def discover_network():
    """Probe the LAN for raw print ports."""
    printers = get_service().network_discovery.discover()
    return jsonify({
        "message": f"Found {len(printers)} network printers",
        "printers": [p.to_dict(mask_secrets=True) for p in printers]
    })


@api_bp.route("/discover/usb", methods=["GET"])
def discover_usb():
    """List supported printers on the USB bus."""
    devices = get_service().usb_discovery.discover()
    return jsonify({
        "message": f"Found {len(devices)} USB printers",
        "devices": [d.to_dict() for d in devices]
    })


@api_bp.route("/discover/cloud", methods=["POST"])
def discover_cloud():
    """List printers from each cloud service in the body.

    API keys are returned unmasked: they are the ones sent in this request.
    """
    data = CloudDiscoveryRequest.model_validate(json_body())
    printers = get_service().cloud_discovery.discover(data.services)
    return jsonify({
        "message": f"Found {len(printers)} cloud printers",
        "printers": [p.to_dict() for p in printers]
    })


@api_bp.route("/test/cloud", methods=["POST"])
def test_cloud():
    """Check cloud service credentials."""
    data = CloudServiceCredentials.model_validate(json_body())
    if data.service not in current_app.config["CLOUD_PRINT_SERVICES"]:
        return jsonify({
            "error": "Invalid request data",
            "details": [{"loc": ["service"], "msg": f"Unknown cloud service: {data.service}",
                         "type": "value_error"}],
        }), 400

    if get_service().cloud_dispatcher.test_connection(data.service, data.api_key):
        return jsonify({"message": "Cloud connection successful", "service": data.service})
    return jsonify({"error": "Cloud connection failed", "service": data.service}), 502


# USB drivers API

@api_bp.route("/drivers", methods=["GET"])
def list_drivers():
    """List catalog drivers and their install state."""
    return jsonify([d.to_dict() for d in get_service().drivers.list_drivers()])


@api_bp.route("/drivers/<driver>/install", methods=["POST"])
def install_driver(driver):
    """Register the spooler queue for a catalog driver."""
    data = DriverInstallRequest.model_validate(json_body())
    drivers = get_service().drivers
    try:
        installed = drivers.install(driver, data.device_path)
    except UnsupportedDeviceError:
        return jsonify({"error": "Driver not found", "driverId": driver}), 404

    if not installed:
        return jsonify({"error": "Driver installation failed", "driverId": driver}), 500
    return jsonify({"message": "Driver installed successfully", "driverId": driver})


@api_bp.route("/configure/usb", methods=["POST"])
def configure_usb():
    """Install the driver for a USB printer and add it to the registry."""
    data = UsbConfigureRequest.model_validate(json_body())
    service = get_service()

    if service.drivers.lookup(data.vendor_id, data.product_id) is None:
        return jsonify({
            "error": "Unsupported printer model",
            "vendorId": data.vendor_id,
            "productId": data.product_id,
        }), 409

    if not service.drivers.auto_configure_printer(data.vendor_id, data.product_id, data.device_path):
        return jsonify({"error": "USB printer configuration failed"}), 500

    service.persist()
    printer = service.registry.get(f"usb-{driver_id(data.vendor_id, data.product_id)}")
    return jsonify({
        "message": "USB printer configured successfully",
        "printer": printer.to_dict(mask_secrets=True)
    }), 201


@api_bp.route("/test/usb", methods=["POST"])
def test_usb():
    """Send a test page straight to a USB device."""
    data = UsbTestRequest.model_validate(json_body())
    if get_service().usb_dispatcher.test_connection(data.device_path):
        return jsonify({"message": "USB test print successful", "devicePath": data.device_path})
    return jsonify({"error": "USB test print failed", "devicePath": data.device_path}), 502


@api_bp.route("/models", methods=["GET"])
def list_models():
    """Supported USB printer models."""
    return jsonify(get_service().drivers.supported_models())


# Status and history API

@api_bp.route("/status", methods=["GET"])
def status():
    """Summary of printer state."""
    printers = get_service().registry.list()
    default = next((p for p in printers if p.is_default), None)
    return jsonify({
        "totalPrinters": len(printers),
        "activePrinters": sum(1 for p in printers if p.enabled),
        "connectedPrinters": sum(1 for p in printers if p.status == "connected"),
        "defaultPrinter": default.name if default else "None",
        "printers": [
            {
                "id": p.id,
                "name": p.name,
                "status": p.status,
                "enabled": p.enabled,
                "isDefault": p.is_default,
            }
            for p in printers
        ],
    })


@api_bp.route("/history", methods=["GET"])
def list_history():
    """List print history.

    Query params:
    - page: Page number (default: 1)
    - per_page: Items per page (default: 20, max: 100)
    - status: Filter by status (success/failed)
    - printer_id: Filter by printer
    """
    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", 20, type=int), 100)

    query = PrintHistory.query.order_by(PrintHistory.printed_at.desc())

    status_filter = request.args.get("status")
    if status_filter:
        query = query.filter_by(status=status_filter)

    printer_id = request.args.get("printer_id")
    if printer_id:
        query = query.filter_by(printer_id=printer_id)

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        "history": [h.to_dict() for h in pagination.items],
        "page": pagination.page,
        "pages": pagination.pages,
        "total": pagination.total,
        "has_next": pagination.has_next,
        "has_prev": pagination.has_prev
    })
