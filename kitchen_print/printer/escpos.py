"""ESC/POS command builder for kitchen ticket printers."""


class ESCPOSBuilder:
    """Builder for ESC/POS printer commands.

    Only the command subset every ESC/POS printer understands is emitted, so
    the same bytes go to Epson, Star and Bixolon models alike.
    """

    # ESC/POS Command Constants
    ESC = b'\x1b'
    GS = b'\x1d'

    # Initialize printer
    INIT = ESC + b'\x40'  # ESC @

    # Text formatting
    BOLD_ON = ESC + b'\x45\x01'   # ESC E 1
    BOLD_OFF = ESC + b'\x45\x00'  # ESC E 0

    # Alignment
    ALIGN_LEFT = ESC + b'\x61\x00'    # ESC a 0
    ALIGN_CENTER = ESC + b'\x61\x01'  # ESC a 1

    # Paper control
    CUT_FULL = GS + b'\x56\x00'  # GS V 0 - Full cut
    CUT_PARTIAL = GS + b'\x56\x01'  # GS V 1 - Partial cut
    FEED_LINE = b'\n'
    FEED_LINES = ESC + b'\x64'  # ESC d n - Print and feed n lines

    # Character settings
    CHARSET_PC437 = ESC + b'\x74\x00'  # USA: Standard Europe

    ENCODING = "cp437"

    def __init__(self, width: int = 48):
        """Initialize builder.

        Args:
            width: Character width per line (48 for 80mm, 32 for 58mm paper)
        """
        self.width = width
        # Every ticket starts from a known printer state
        self._buffer = bytearray(self.INIT + self.CHARSET_PC437)

    # Text formatting methods

    def text(self, content: str) -> "ESCPOSBuilder":
        """Add plain text."""
        self._buffer.extend(content.encode(self.ENCODING, errors="replace"))
        return self

    def textln(self, content: str = "") -> "ESCPOSBuilder":
        """Add a line of text followed by a newline."""
        return self.text(content).newline()

    def newline(self, count: int = 1) -> "ESCPOSBuilder":
        """Add newline(s)."""
        self._buffer.extend(self.FEED_LINE * count)
        return self

    def bold(self, on: bool = True) -> "ESCPOSBuilder":
        """Set bold mode."""
        self._buffer.extend(self.BOLD_ON if on else self.BOLD_OFF)
        return self

    # Alignment methods

    def align_left(self) -> "ESCPOSBuilder":
        """Set left alignment."""
        self._buffer.extend(self.ALIGN_LEFT)
        return self

    def align_center(self) -> "ESCPOSBuilder":
        """Set center alignment."""
        self._buffer.extend(self.ALIGN_CENTER)
        return self

    # Scoped formatting: the "off" command is always written

    def bold_line(self, content: str) -> "ESCPOSBuilder":
        """Print one bold line, switching bold off before the newline."""
        return self.bold(True).text(content).bold(False).newline()

    def centered_line(self, content: str, bold: bool = False) -> "ESCPOSBuilder":
        """Print one centered line and restore left alignment."""
        self.align_center()
        if bold:
            self.bold(True).text(content).bold(False)
        else:
            self.text(content)
        return self.newline().align_left()

    # Line formatting

    def line(self, char: str = "-") -> "ESCPOSBuilder":
        """Print a horizontal line."""
        self._buffer.extend((char * self.width).encode(self.ENCODING))
        self._buffer.extend(self.FEED_LINE)
        return self

    def feed_lines(self, lines: int) -> "ESCPOSBuilder":
        """Print the buffer and feed n lines with a single command."""
        self._buffer.extend(self.FEED_LINES)
        self._buffer.append(lines & 0xff)
        return self

    # Paper control

    def cut(self, partial: bool = False) -> "ESCPOSBuilder":
        """Cut the paper."""
        # Feed a bit before cutting to ensure content clears the cutter
        self._buffer.extend(self.FEED_LINE * 4)
        self._buffer.extend(self.CUT_PARTIAL if partial else self.CUT_FULL)
        return self

    # Build output

    def build(self) -> bytes:
        """Build and return the command buffer."""
        return bytes(self._buffer)
