"""Database models."""
import json
from datetime import datetime
from kitchen_print import db


class PrintHistory(db.Model):
    """Outcome of one print request made through the API.

    Only the order id is kept; order contents are never stored.
    """
    __tablename__ = "print_history"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(100), nullable=False)
    printer_id = db.Column(db.String(100), nullable=True)
    printer_config_json = db.Column(db.Text, nullable=True)  # Snapshot of printer config used
    status = db.Column(db.String(20), nullable=False)  # success, failed
    reason = db.Column(db.String(30), nullable=False)  # PrintResult reason
    attempts = db.Column(db.Integer, default=0)
    error_message = db.Column(db.Text, nullable=True)
    printed_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def printer_config(self):
        """Parse printer config JSON."""
        return json.loads(self.printer_config_json) if self.printer_config_json else {}

    @printer_config.setter
    def printer_config(self, value):
        """Set printer config as JSON, leaving out credentials."""
        value = {k: v for k, v in (value or {}).items() if k != "apiKey"}
        self.printer_config_json = json.dumps(value)

    @classmethod
    def from_result(cls, order_id, result, printer=None):
        """Build a history row from a PrintResult."""
        history = cls(
            order_id=order_id,
            printer_id=result.printer_id,
            status="success" if result.ok else "failed",
            reason=result.reason,
            attempts=result.attempts,
            error_message=None if result.ok else result.message,
        )
        if printer is not None:
            history.printer_config = printer.to_dict()
        return history

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "orderId": self.order_id,
            "printerId": self.printer_id,
            "printerConfig": self.printer_config,
            "status": self.status,
            "reason": self.reason,
            "attempts": self.attempts,
            "errorMessage": self.error_message,
            "printedAt": self.printed_at.isoformat() if self.printed_at else None,
        }

    def __repr__(self):
        return f"<PrintHistory {self.id} ({self.status})>"
