"""Status screen rendering for a 128x128 RGB565 panel and front-button debouncing."""

from __future__ import annotations

LCD_W = 128
LCD_H = 128
CHAR_W = 6  # 5 pixels + 1 gap
CHAR_H = 9  # 7 pixels + 2 gap

# RGB565 colours
COL_BLACK = 0x0000
COL_WHITE = 0xFFFF
COL_RED = 0xF800
COL_GREEN = 0x07E0
COL_GREY = 0x7BEF
COL_DKGREY = 0x39E7
COL_CYAN = 0x07FF
COL_YELLOW = 0xFFE0

DEBOUNCE_TICKS = 3
"""Polls a level must hold before it counts (3 x 50 ms = 150 ms)."""

# 5x7 bitmap font, ASCII 0x20-0x7E; one byte per column, bit 0 is the top row.
_FONT_5X7: tuple[bytes, ...] = (
    bytes((0x00, 0x00, 0x00, 0x00, 0x00)),  # ' '
    bytes((0x00, 0x00, 0x5F, 0x00, 0x00)),  # '!'
    bytes((0x00, 0x07, 0x00, 0x07, 0x00)),  # '"'
    bytes((0x14, 0x7F, 0x14, 0x7F, 0x14)),  # '#'
    bytes((0x24, 0x2A, 0x7F, 0x2A, 0x12)),  # '$'
    bytes((0x23, 0x13, 0x08, 0x64, 0x62)),  # '%'
    bytes((0x36, 0x49, 0x55, 0x22, 0x50)),  # '&'
    bytes((0x00, 0x05, 0x03, 0x00, 0x00)),  # '''
    bytes((0x00, 0x1C, 0x22, 0x41, 0x00)),  # '('
    bytes((0x00, 0x41, 0x22, 0x1C, 0x00)),  # ')'
    bytes((0x08, 0x2A, 0x1C, 0x2A, 0x08)),  # '*'
    bytes((0x08, 0x08, 0x3E, 0x08, 0x08)),  # '+'
    bytes((0x00, 0x50, 0x30, 0x00, 0x00)),  # ','
    bytes((0x08, 0x08, 0x08, 0x08, 0x08)),  # '-'
    bytes((0x00, 0x60, 0x60, 0x00, 0x00)),  # '.'
    bytes((0x20, 0x10, 0x08, 0x04, 0x02)),  # '/'
    bytes((0x3E, 0x51, 0x49, 0x45, 0x3E)),  # '0'
    bytes((0x00, 0x42, 0x7F, 0x40, 0x00)),  # '1'
    bytes((0x42, 0x61, 0x51, 0x49, 0x46)),  # '2'
    bytes((0x21, 0x41, 0x45, 0x4B, 0x31)),  # '3'
    bytes((0x18, 0x14, 0x12, 0x7F, 0x10)),  # '4'
    bytes((0x27, 0x45, 0x45, 0x45, 0x39)),  # '5'
    bytes((0x3C, 0x4A, 0x49, 0x49, 0x30)),  # '6'
    bytes((0x01, 0x71, 0x09, 0x05, 0x03)),  # '7'
    bytes((0x36, 0x49, 0x49, 0x49, 0x36)),  # '8'
    bytes((0x06, 0x49, 0x49, 0x29, 0x1E)),  # '9'
    bytes((0x00, 0x36, 0x36, 0x00, 0x00)),  # ':'
    bytes((0x00, 0x56, 0x36, 0x00, 0x00)),  # ';'
    bytes((0x00, 0x08, 0x14, 0x22, 0x41)),  # '<'
    bytes((0x14, 0x14, 0x14, 0x14, 0x14)),  # '='
    bytes((0x41, 0x22, 0x14, 0x08, 0x00)),  # '>'
    bytes((0x02, 0x01, 0x51, 0x09, 0x06)),  # '?'
    bytes((0x32, 0x49, 0x79, 0x41, 0x3E)),  # '@'
    bytes((0x7E, 0x11, 0x11, 0x11, 0x7E)),  # 'A'
    bytes((0x7F, 0x49, 0x49, 0x49, 0x36)),  # 'B'
    bytes((0x3E, 0x41, 0x41, 0x41, 0x22)),  # 'C'
    bytes((0x7F, 0x41, 0x41, 0x22, 0x1C)),  # 'D'
    bytes((0x7F, 0x49, 0x49, 0x49, 0x41)),  # 'E'
    bytes((0x7F, 0x09, 0x09, 0x01, 0x01)),  # 'F'
    bytes((0x3E, 0x41, 0x41, 0x51, 0x32)),  # 'G'
    bytes((0x7F, 0x08, 0x08, 0x08, 0x7F)),  # 'H'
    bytes((0x00, 0x41, 0x7F, 0x41, 0x00)),  # 'I'
    bytes((0x20, 0x40, 0x41, 0x3F, 0x01)),  # 'J'
    bytes((0x7F, 0x08, 0x14, 0x22, 0x41)),  # 'K'
    bytes((0x7F, 0x40, 0x40, 0x40, 0x40)),  # 'L'
    bytes((0x7F, 0x02, 0x04, 0x02, 0x7F)),  # 'M'
    bytes((0x7F, 0x04, 0x08, 0x10, 0x7F)),  # 'N'
    bytes((0x3E, 0x41, 0x41, 0x41, 0x3E)),  # 'O'
    bytes((0x7F, 0x09, 0x09, 0x09, 0x06)),  # 'P'
    bytes((0x3E, 0x41, 0x51, 0x21, 0x5E)),  # 'Q'
    bytes((0x7F, 0x09, 0x19, 0x29, 0x46)),  # 'R'
    bytes((0x46, 0x49, 0x49, 0x49, 0x31)),  # 'S'
    bytes((0x01, 0x01, 0x7F, 0x01, 0x01)),  # 'T'
    bytes((0x3F, 0x40, 0x40, 0x40, 0x3F)),  # 'U'
    bytes((0x1F, 0x20, 0x40, 0x20, 0x1F)),  # 'V'
    bytes((0x7F, 0x20, 0x18, 0x20, 0x7F)),  # 'W'
    bytes((0x63, 0x14, 0x08, 0x14, 0x63)),  # 'X'
    bytes((0x03, 0x04, 0x78, 0x04, 0x03)),  # 'Y'
    bytes((0x61, 0x51, 0x49, 0x45, 0x43)),  # 'Z'
    bytes((0x00, 0x00, 0x7F, 0x41, 0x41)),  # '['
    bytes((0x02, 0x04, 0x08, 0x10, 0x20)),  # '\'
    bytes((0x41, 0x41, 0x7F, 0x00, 0x00)),  # ']'
    bytes((0x04, 0x02, 0x01, 0x02, 0x04)),  # '^'
    bytes((0x40, 0x40, 0x40, 0x40, 0x40)),  # '_'
    bytes((0x00, 0x01, 0x02, 0x04, 0x00)),  # '`'
    bytes((0x20, 0x54, 0x54, 0x54, 0x78)),  # 'a'
    bytes((0x7F, 0x48, 0x44, 0x44, 0x38)),  # 'b'
    bytes((0x38, 0x44, 0x44, 0x44, 0x20)),  # 'c'
    bytes((0x38, 0x44, 0x44, 0x48, 0x7F)),  # 'd'
    bytes((0x38, 0x54, 0x54, 0x54, 0x18)),  # 'e'
    bytes((0x08, 0x7E, 0x09, 0x01, 0x02)),  # 'f'
    bytes((0x08, 0x14, 0x54, 0x54, 0x3C)),  # 'g'
    bytes((0x7F, 0x08, 0x04, 0x04, 0x78)),  # 'h'
    bytes((0x00, 0x44, 0x7D, 0x40, 0x00)),  # 'i'
    bytes((0x20, 0x40, 0x44, 0x3D, 0x00)),  # 'j'
    bytes((0x00, 0x7F, 0x10, 0x28, 0x44)),  # 'k'
    bytes((0x00, 0x41, 0x7F, 0x40, 0x00)),  # 'l'
    bytes((0x7C, 0x04, 0x18, 0x04, 0x78)),  # 'm'
    bytes((0x7C, 0x08, 0x04, 0x04, 0x78)),  # 'n'
    bytes((0x38, 0x44, 0x44, 0x44, 0x38)),  # 'o'
    bytes((0x7C, 0x14, 0x14, 0x14, 0x08)),  # 'p'
    bytes((0x08, 0x14, 0x14, 0x18, 0x7C)),  # 'q'
    bytes((0x7C, 0x08, 0x04, 0x04, 0x08)),  # 'r'
    bytes((0x48, 0x54, 0x54, 0x54, 0x20)),  # 's'
    bytes((0x04, 0x3F, 0x44, 0x40, 0x20)),  # 't'
    bytes((0x3C, 0x40, 0x40, 0x20, 0x7C)),  # 'u'
    bytes((0x1C, 0x20, 0x40, 0x20, 0x1C)),  # 'v'
    bytes((0x3C, 0x40, 0x30, 0x40, 0x3C)),  # 'w'
    bytes((0x44, 0x28, 0x10, 0x28, 0x44)),  # 'x'
    bytes((0x0C, 0x50, 0x50, 0x50, 0x3C)),  # 'y'
    bytes((0x44, 0x64, 0x54, 0x4C, 0x44)),  # 'z'
    bytes((0x00, 0x08, 0x36, 0x41, 0x00)),  # '{'
    bytes((0x00, 0x00, 0x7F, 0x00, 0x00)),  # '|'
    bytes((0x00, 0x41, 0x36, 0x08, 0x00)),  # '}'
    bytes((0x08, 0x08, 0x2A, 0x1C, 0x08)),  # '~'
)


def _glyph(code: int) -> bytes:
    if not 0x20 <= code <= 0x7E:
        code = ord("?")
    return _FONT_5X7[code - 0x20]


class FrameBuffer:
    """An RGB565 pixel buffer with clipped drawing primitives."""

    def __init__(self, width: int = LCD_W, height: int = LCD_H) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self._pixels = [COL_BLACK] * (width * height)

    @property
    def pixels(self) -> tuple[int, ...]:
        """All pixels, row by row."""
        return tuple(self._pixels)

    def clear(self, colour: int = COL_BLACK) -> None:
        """Fill the whole buffer with one colour."""
        self._pixels = [colour] * (self.width * self.height)

    def pixel(self, x: int, y: int, colour: int) -> None:
        """Set one pixel; coordinates outside the buffer are ignored."""
        if 0 <= x < self.width and 0 <= y < self.height:
            self._pixels[y * self.width + x] = colour

    def get(self, x: int, y: int) -> int:
        """Return the colour of one pixel."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        return self._pixels[y * self.width + x]

    def char(self, x: int, y: int, c: str | int, colour: int, scale: int = 1) -> None:
        """Draw one character; anything outside printable ASCII is drawn as '?'."""
        if isinstance(c, str):
            if len(c) != 1:
                raise ValueError(f"expected a single character, got {c!r}")
            c = ord(c)
        glyph = _glyph(c)
        for col, bits in enumerate(glyph):
            for row in range(7):
                if bits & (1 << row):
                    for sy in range(scale):
                        for sx in range(scale):
                            self.pixel(x + col * scale + sx, y + row * scale + sy, colour)

    def string(self, x: int, y: int, text: str, colour: int, scale: int = 1) -> None:
        """Draw text left to right, one cell per encoded byte."""
        for code in text.encode("utf-8"):
            self.char(x, y, code, colour, scale)
            x += CHAR_W * scale

    def rect(self, x: int, y: int, w: int, h: int, colour: int) -> None:
        """Fill a rectangle, clipped to the buffer."""
        for ry in range(y, min(y + h, self.height)):
            for rx in range(x, min(x + w, self.width)):
                self.pixel(rx, ry, colour)

    def circle(self, cx: int, cy: int, r: int, colour: int) -> None:
        """Fill a circle of radius ``r`` centred on (cx, cy)."""
        for dy in range(-r, r + 1):
            for dx in range(-r, r + 1):
                if dx * dx + dy * dy <= r * r:
                    self.pixel(cx + dx, cy + dy, colour)


class StatusScreen:
    """Draws the splash, status and Wi-Fi setup screens into a frame buffer."""

    def __init__(self, version: str = "") -> None:
        self.version = version
        self.framebuffer = FrameBuffer(LCD_W, LCD_H)
        self._blink_on = False

    @property
    def blink_on(self) -> bool:
        """Phase of the blinking indicators after the last refresh."""
        return self._blink_on

    def splash(self) -> FrameBuffer:
        """Draw the start-up splash screen."""
        fb = self.framebuffer
        fb.clear(COL_BLACK)
        fb.string(16, 50, "Arctic", COL_CYAN, 2)
        fb.string(10, 72, "Sniffer", COL_WHITE, 2)
        return fb

    def _header(self) -> None:
        fb = self.framebuffer
        fb.clear(COL_BLACK)
        fb.string(4, 4, "Arctic Sniffer", COL_CYAN, 1)
        fb.string(4, 16, f"v{self.version}", COL_GREY, 1)
        fb.rect(4, 28, 120, 1, COL_DKGREY)

    def refresh(
        self,
        ip: str | None,
        recording: bool,
        rec_used: int,
        rec_limit: int,
        rec_entries: int,
        has_psram: bool,
    ) -> FrameBuffer:
        """Draw the status screen; blinking items change phase on every call."""
        self._blink_on = not self._blink_on
        fb = self.framebuffer
        self._header()

        if ip:
            fb.string(4, 34, "IP:", COL_GREY, 1)
            fb.string(22, 34, ip, COL_WHITE, 1)
        else:
            fb.string(4, 34, "No WiFi", COL_RED, 1)

        fb.rect(4, 46, 120, 1, COL_DKGREY)

        if recording:
            if self._blink_on:
                fb.circle(12, 58, 5, COL_RED)
            fb.string(22, 54, "REC", COL_RED, 1)
            fb.string(4, 68, f"{rec_entries} entries", COL_WHITE, 1)
            fb.string(4, 82, "Memory:", COL_GREY, 1)

            bar_x, bar_y, bar_w, bar_h = 4, 94, 120, 10
            fb.rect(bar_x, bar_y, bar_w, bar_h, COL_DKGREY)
            pct = (rec_used * 100) // rec_limit if rec_limit > 0 else 0
            pct = min(pct, 100)
            fill_w = (bar_w * pct) // 100
            fb.rect(bar_x, bar_y, fill_w, bar_h, COL_GREEN if pct < 80 else COL_RED)

            pct_text = f"{pct}%"
            text_x = bar_x + int((bar_w - len(pct_text) * CHAR_W) / 2)
            fb.string(text_x, bar_y + 2, pct_text, COL_WHITE, 1)

            remaining = max(rec_limit - rec_used, 0)
            if remaining >= 1024:
                rem_text = f"{remaining // 1024}KB free"
            else:
                rem_text = f"{remaining}B free"
            fb.string(4, 108, rem_text, COL_GREY, 1)
        elif has_psram:
            fb.string(4, 54, "Ready", COL_GREEN, 1)
            fb.string(4, 68, "Press btn", COL_GREY, 1)
            fb.string(4, 78, "to record", COL_GREY, 1)
        else:
            fb.string(4, 54, "Monitoring", COL_GREEN, 1)
            fb.string(4, 68, "Web UI only", COL_GREY, 1)
        return fb

    def refresh_provisioning(self, ap_name: str | None) -> FrameBuffer:
        """Draw the Wi-Fi setup screen naming the access point to join."""
        self._blink_on = not self._blink_on
        fb = self.framebuffer
        self._header()

        fb.string(4, 34, "WiFi Setup", COL_YELLOW, 1)
        fb.rect(4, 46, 120, 1, COL_DKGREY)
        fb.string(4, 52, "Connect to:", COL_GREY, 1)

        if ap_name:
            length = len(ap_name.encode("utf-8"))
            if length <= 10:
                x = int((LCD_W - length * CHAR_W * 2) / 2)
                fb.string(x, 66, ap_name, COL_WHITE, 2)
            else:
                fb.string(4, 68, ap_name, COL_WHITE, 1)

        if self._blink_on:
            fb.circle(120, 36, 3, COL_GREEN)

        fb.string(4, 96, "then open", COL_GREY, 1)
        fb.string(4, 108, "192.168.4.1", COL_WHITE, 1)
        return fb


class ButtonDebouncer:
    """Turns periodic raw button samples into one event per press."""

    def __init__(self, ticks: int = DEBOUNCE_TICKS) -> None:
        if ticks < 0:
            raise ValueError(f"ticks must not be negative, got {ticks}")
        self.ticks = ticks
        self._last_raw = False
        self._last_stable = False
        self._count = 0

    def poll(self, raw_pressed: bool) -> bool:
        """Feed one sample; return True once when a press becomes stable."""
        raw = bool(raw_pressed)
        if raw != self._last_raw:
            self._count = 0
            self._last_raw = raw
        elif self._count < self.ticks:
            self._count += 1

        stable = raw if self._count >= self.ticks else self._last_stable
        pressed = stable and not self._last_stable
        self._last_stable = stable
        return pressed