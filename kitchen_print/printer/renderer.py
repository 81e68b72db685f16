"""Kitchen ticket renderer: order data to ESC/POS bytes or plain text."""
from typing import Iterator, Optional, Tuple

from kitchen_print.printer.escpos import ESCPOSBuilder
from kitchen_print.schemas import OrderData, PrintTemplate

# Line kinds produced by KitchenTicketRenderer._lines
HEADER = "header"
TEXT = "text"
BOLD = "bold"
CENTER = "center"
RULE = "rule"
BLANK = "blank"

Line = Tuple[str, str]


class KitchenTicketRenderer:
    """Renders an order as a kitchen ticket.

    Both outputs come from the same line sequence, so the ESC/POS ticket and
    the plain-text receipt sent to cloud relays always carry the same content:

        header, order number, time, customer, table, order type,
        items with per-item instructions, order instructions, total

    Optional fields that are missing drop their whole line. A template, when
    given, overrides the header/footer text, the ruler width and which
    optional sections are printed.
    """

    DEFAULT_HEADER = "KITCHEN ORDER"
    TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

    def __init__(self, width: int = 48):
        """Initialize renderer.

        Args:
            width: Character width per line
        """
        self.width = width

    def render(self, order: OrderData, template: Optional[PrintTemplate] = None) -> bytes:
        """Render order to ESC/POS bytes.

        Args:
            order: Order to print
            template: Optional layout overrides

        Returns:
            ESC/POS command bytes
        """
        builder = ESCPOSBuilder(width=self._width(template))

        for kind, content in self._lines(order, template):
            if kind == HEADER:
                builder.centered_line(content, bold=True).newline()
            elif kind == BOLD:
                builder.bold_line(content)
            elif kind == CENTER:
                builder.centered_line(content)
            elif kind == RULE:
                builder.line()
            elif kind == BLANK:
                builder.newline()
            else:
                builder.textln(content)

        builder.cut(partial=True)
        return builder.build()

    def render_text(self, order: OrderData, template: Optional[PrintTemplate] = None) -> str:
        """Render order to a plain text receipt.

        Args:
            order: Order to print
            template: Optional layout overrides

        Returns:
            Plain text receipt, newline terminated
        """
        width = self._width(template)
        output = []

        for kind, content in self._lines(order, template):
            if kind == HEADER:
                output.append(content.center(width).rstrip())
                output.append("=" * width)
            elif kind == CENTER:
                output.append(content.center(width).rstrip())
            elif kind == RULE:
                output.append("-" * width)
            elif kind == BLANK:
                output.append("")
            else:
                output.append(content)

        output.extend(["", "", ""])
        return "\n".join(output) + "\n"

    def _width(self, template: Optional[PrintTemplate]) -> int:
        return template.width if template else self.width

    def _lines(self, order: OrderData, template: Optional[PrintTemplate]) -> Iterator[Line]:
        header = template.header_text if template and template.header_text else self.DEFAULT_HEADER
        show_time = template.include_order_time if template else True
        show_customer = template.include_customer_info if template else True
        show_instructions = template.include_special_instructions if template else True

        yield HEADER, header
        yield TEXT, f"Order #: {order.id}"
        if show_time:
            yield TEXT, f"Time: {order.order_time.strftime(self.TIME_FORMAT)}"
        if show_customer and order.customer_name:
            yield TEXT, f"Customer: {order.customer_name}"
        if order.table_number:
            yield TEXT, f"Table: {order.table_number}"
        yield TEXT, f"Type: {order.order_type.upper()}"
        yield BLANK, ""

        yield RULE, ""
        yield BOLD, "ITEMS:"
        for item in order.items:
            yield TEXT, f"{item.quantity}x {item.name}"
            if show_instructions and item.special_instructions:
                yield TEXT, f"   * {item.special_instructions}"

        if show_instructions and order.special_instructions:
            yield BLANK, ""
            yield RULE, ""
            yield BOLD, "SPECIAL INSTRUCTIONS:"
            yield TEXT, order.special_instructions

        yield BLANK, ""
        yield RULE, ""
        yield CENTER, f"Total: ${order.total:.2f}"
        if template and template.footer_text:
            yield CENTER, template.footer_text
