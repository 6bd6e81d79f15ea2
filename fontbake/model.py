"""
fontbake Data Model

All records that flow through the conversion pipeline.
Uses dataclasses for clean, immutable definitions.
"""

from bisect import bisect_left
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


MAX_CODEPOINT = 0x10FFFF


class FontBakeError(Exception):
    """Base class for every pipeline failure."""
    stage = "fontbake"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.stage}: {message}")

    def __reduce__(self):
        # Subclass __init__ signatures differ; rebuild from state so errors
        # survive the trip back from a worker process
        return (_restore_error, (self.__class__, self.args, self.__dict__))


def _restore_error(cls, args, state):
    error = cls.__new__(cls)
    Exception.__init__(error, *args)
    error.__dict__.update(state)
    return error


def row_stride(width: int) -> int:
    """Bytes per bitmap row for a glyph `width` pixels wide."""
    return (width + 7) // 8


def format_codepoint(cp: int) -> str:
    """Format a codepoint for diagnostics: U+0041 'A'."""
    ch = chr(cp)
    if ch.isprintable() and not ch.isspace():
        return f"U+{cp:04X} {ch!r}"
    return f"U+{cp:04X}"


# -----------------------------------------------------------------------------
# Character sets
# -----------------------------------------------------------------------------

def check_codepoint(cp: int) -> int:
    """Reject values that are not Unicode scalar values."""
    if cp < 0 or cp > MAX_CODEPOINT:
        raise ValueError(f"codepoint out of range: {cp:#x}")
    if 0xD800 <= cp <= 0xDFFF:
        raise ValueError(f"surrogate is not a character: U+{cp:04X}")
    return cp


def charset_from_text(text: str) -> tuple[int, ...]:
    """Collapse a flat string into codepoints, first occurrence wins."""
    seen: dict[int, None] = {}
    for ch in text:
        seen.setdefault(check_codepoint(ord(ch)))
    return tuple(seen)


def parse_codepoint(text: str) -> int:
    """
    Parse '65', '0x41', 'U+0041' or a single literal character.

    Digits are always numbers: '9' is U+0009, not the character '9'.
    """
    text = text.strip()
    if len(text) == 1 and not text.isdigit():
        return check_codepoint(ord(text))
    upper = text.upper()
    if upper.startswith("U+"):
        return check_codepoint(int(text[2:], 16))
    return check_codepoint(int(text, 0))


def parse_charset_ranges(spec: str) -> tuple[int, ...]:
    """
    Parse range syntax into codepoints.

    Items are separated by commas; each item is a codepoint or an inclusive
    range 'lo-hi'. Bounds are numeric, so the digits are "48-57", not
    "0-9". Example: "32-126,0xA0-0xFF,U+20AC".
    """
    seen: dict[int, None] = {}
    for item in spec.split(","):
        item = item.strip()
        if not item:
            continue
        lo_text, sep, hi_text = item.partition("-")
        if sep and lo_text:
            lo, hi = parse_codepoint(lo_text), parse_codepoint(hi_text)
            if hi < lo:
                raise ValueError(f"empty range: {item}")
            for cp in range(lo, hi + 1):
                if not 0xD800 <= cp <= 0xDFFF:
                    seen.setdefault(cp)
        else:
            seen.setdefault(parse_codepoint(item))
    return tuple(seen)


def compress_ranges(codepoints) -> list[tuple[int, int]]:
    """Sorted inclusive (lo, hi) runs covering the given codepoints."""
    runs: list[tuple[int, int]] = []
    for cp in sorted(set(codepoints)):
        if runs and runs[-1][1] == cp - 1:
            runs[-1] = (runs[-1][0], cp)
        else:
            runs.append((cp, cp))
    return runs


# -----------------------------------------------------------------------------
# Request
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ConversionRequest:
    """One font at one pixel size for one character set."""
    font_path: Path
    pixel_size: int
    charset: tuple[int, ...]

    def __post_init__(self):
        if not isinstance(self.pixel_size, int) or self.pixel_size <= 0:
            raise ValueError(f"pixel size must be a positive integer, got {self.pixel_size!r}")
        # Normalize: Path, deduplicated tuple
        object.__setattr__(self, "font_path", Path(self.font_path))
        seen: dict[int, None] = {}
        for cp in self.charset:
            seen.setdefault(check_codepoint(cp))
        object.__setattr__(self, "charset", tuple(seen))

    @classmethod
    def from_text(cls, font_path, pixel_size: int, chars: str) -> "ConversionRequest":
        return cls(Path(font_path), pixel_size, charset_from_text(chars))


# -----------------------------------------------------------------------------
# Parser output
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class GlyphRecord:
    """A glyph as emitted by the rasterizer, before deduplication."""
    codepoint: int
    width: int
    height: int
    x_offset: int
    y_offset: int
    advance: int
    rows: tuple[bytes, ...]
    name: str = ""
    line: int = 0  # STARTCHAR line in the BDF text

    @property
    def data(self) -> bytes:
        return b"".join(self.rows)


@dataclass
class BdfFont:
    """Everything the parser keeps from one BDF document."""
    version: str
    name: str = ""
    bounding_box: Optional[tuple[int, int, int, int]] = None
    properties: dict[str, str | int] = field(default_factory=dict)
    declared_chars: int = 0
    glyphs: list[GlyphRecord] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Glyph table
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class BoundingBox:
    """Bitmap placement relative to the origin on the baseline."""
    width: int
    height: int
    x_offset: int
    y_offset: int


@dataclass(frozen=True)
class GlyphBitmap:
    """One deduplicated, row-packed bitmap (MSB = leftmost pixel)."""
    width: int
    height: int
    data: bytes

    @property
    def stride(self) -> int:
        return row_stride(self.width)

    def rows(self) -> list[bytes]:
        s = self.stride
        return [self.data[i * s:(i + 1) * s] for i in range(self.height)]

    def pixel(self, x: int, y: int) -> bool:
        byte = self.data[y * self.stride + x // 8]
        return bool(byte & (0x80 >> (x % 8)))


@dataclass(frozen=True)
class GlyphTableEntry:
    """Lookup entry: codepoint -> bitmap index plus its own metrics."""
    codepoint: int
    glyph_index: int
    advance: int
    bbox: BoundingBox


@dataclass(frozen=True)
class FontMetrics:
    """Font-wide metrics derived from the full glyph set."""
    ascent: int       # highest row above baseline, >= 0
    descent: int      # lowest row below baseline, <= 0
    max_advance: int
    pixel_size: int
    max_width: int = 0
    max_height: int = 0

    @property
    def line_height(self) -> int:
        return self.ascent - self.descent


@dataclass(frozen=True)
class GlyphTable:
    """The final artifact: sorted entries, unique bitmaps and metrics."""
    metrics: FontMetrics
    entries: tuple[GlyphTableEntry, ...]
    bitmaps: tuple[GlyphBitmap, ...]

    @property
    def codepoints(self) -> list[int]:
        return [e.codepoint for e in self.entries]

    @property
    def offsets(self) -> list[int]:
        """Blob offset of each bitmap, indexed by glyph_index."""
        result = []
        pos = 0
        for bitmap in self.bitmaps:
            result.append(pos)
            pos += len(bitmap.data)
        return result

    @property
    def blob(self) -> bytes:
        return b"".join(b.data for b in self.bitmaps)

    def lookup(self, codepoint: int) -> Optional[GlyphTableEntry]:
        """Binary search over the codepoint-sorted entries."""
        keys = self.codepoints
        i = bisect_left(keys, codepoint)
        if i < len(keys) and keys[i] == codepoint:
            return self.entries[i]
        return None

    def bitmap_for(self, codepoint: int) -> Optional[GlyphBitmap]:
        entry = self.lookup(codepoint)
        if entry is None:
            return None
        return self.bitmaps[entry.glyph_index]
