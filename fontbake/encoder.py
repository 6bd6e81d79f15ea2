"""
fontbake Compact Format Encoder

Serializes a GlyphTable into the binary layout read by the renderer, and
decodes it back (the reference decoder used for round-trip checks).

Layout, all multi-byte fields big-endian:

    header   19 bytes
        magic         2s   b"FB"
        version       B    FORMAT_VERSION
        flags         B    reserved, 0
        glyph_count   H    lookup entries
        bitmap_count  H    unique bitmaps
        pixel_size    H
        max_advance   B
        ascent        b
        descent       b
        max_width     B
        max_height    B
        blob_size     I
    entries  9 bytes each, ascending codepoint
        codepoint I, glyph_index H, advance B, x_offset b, y_offset b
    bitmaps  6 bytes each, by glyph index
        offset I, width B, height B
    blob     rows of ceil(width/8) bytes, MSB = leftmost pixel
"""

import struct

from .model import (BoundingBox, FontBakeError, FontMetrics, GlyphBitmap,
                    GlyphTable, GlyphTableEntry, MAX_CODEPOINT, format_codepoint,
                    row_stride)


MAGIC = b"FB"
FORMAT_VERSION = 1

HEADER = struct.Struct(">2sBBHHHBbbBBI")
ENTRY = struct.Struct(">IHBbb")
BITMAP = struct.Struct(">IBB")

U8 = (0, 0xFF)
I8 = (-0x80, 0x7F)
U16 = (0, 0xFFFF)
U32 = (0, 0xFFFFFFFF)


class EncodingError(FontBakeError):
    """Table does not fit the binary layout, or bytes are not a valid table."""
    stage = "encode"


def check_field(name: str, value: int, limits: tuple[int, int], where: str = "") -> int:
    """Raise EncodingError unless value fits the field."""
    lo, hi = limits
    if not lo <= value <= hi:
        suffix = f" for {where}" if where else ""
        raise EncodingError(f"{name} {value} outside field range {lo}..{hi}{suffix}")
    return value


class Encoder:
    """Packs a GlyphTable into bytes."""

    def __init__(self, table: GlyphTable):
        self.table = table
        self.output = bytearray()

    def encode(self) -> bytes:
        self.emit_header()
        self.emit_entries()
        self.emit_bitmaps()
        self.output += self.table.blob
        return bytes(self.output)

    def emit_header(self) -> None:
        t = self.table
        m = t.metrics
        blob_size = len(t.blob)
        self.output += HEADER.pack(
            MAGIC,
            FORMAT_VERSION,
            0,
            check_field("glyph count", len(t.entries), U16),
            check_field("bitmap count", len(t.bitmaps), U16),
            check_field("pixel size", m.pixel_size, U16),
            check_field("max advance", m.max_advance, U8),
            check_field("ascent", m.ascent, I8),
            check_field("descent", m.descent, I8),
            check_field("max width", m.max_width, U8),
            check_field("max height", m.max_height, U8),
            check_field("blob size", blob_size, U32),
        )

    def emit_entries(self) -> None:
        previous = -1
        for e in self.table.entries:
            where = format_codepoint(e.codepoint)
            if e.codepoint <= previous:
                raise EncodingError(f"entries not strictly ascending at {where}")
            if not 0 <= e.glyph_index < len(self.table.bitmaps):
                raise EncodingError(f"glyph index {e.glyph_index} out of range for {where}")
            previous = e.codepoint
            self.output += ENTRY.pack(
                check_field("codepoint", e.codepoint, (0, MAX_CODEPOINT)),
                e.glyph_index,
                check_field("advance", e.advance, U8, where),
                check_field("x offset", e.bbox.x_offset, I8, where),
                check_field("y offset", e.bbox.y_offset, I8, where),
            )

    def emit_bitmaps(self) -> None:
        for i, (b, offset) in enumerate(zip(self.table.bitmaps, self.table.offsets)):
            where = f"bitmap {i}"
            if len(b.data) != row_stride(b.width) * b.height:
                raise EncodingError(f"{where} holds {len(b.data)} byte(s), "
                                    f"{b.width}x{b.height} needs {row_stride(b.width) * b.height}")
            self.output += BITMAP.pack(
                offset,
                check_field("width", b.width, U8, where),
                check_field("height", b.height, U8, where),
            )


def encode(table: GlyphTable) -> bytes:
    """Encode a GlyphTable to bytes."""
    return Encoder(table).encode()


# -----------------------------------------------------------------------------
# Reference decoder
# -----------------------------------------------------------------------------

class Decoder:
    """Reads bytes produced by Encoder back into a GlyphTable."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    def read(self, layout: struct.Struct, what: str) -> tuple:
        end = self.pos + layout.size
        if end > len(self.data):
            raise EncodingError(f"truncated data reading {what} at byte {self.pos}")
        values = layout.unpack_from(self.data, self.pos)
        self.pos = end
        return values

    def decode(self) -> GlyphTable:
        (magic, version, _flags, glyph_count, bitmap_count, pixel_size, max_advance,
         ascent, descent, max_width, max_height, blob_size) = self.read(HEADER, "header")
        if magic != MAGIC:
            raise EncodingError(f"bad magic {magic!r}")
        if version != FORMAT_VERSION:
            raise EncodingError(f"unsupported format version {version}")

        raw_entries = [self.read(ENTRY, f"entry {i}") for i in range(glyph_count)]
        raw_bitmaps = [self.read(BITMAP, f"bitmap {i}") for i in range(bitmap_count)]

        blob = self.data[self.pos:]
        if len(blob) != blob_size:
            raise EncodingError(f"blob is {len(blob)} byte(s), header says {blob_size}")

        bitmaps = []
        for i, (offset, width, height) in enumerate(raw_bitmaps):
            size = row_stride(width) * height
            if offset + size > blob_size:
                raise EncodingError(f"bitmap {i} runs past end of blob")
            bitmaps.append(GlyphBitmap(width, height, blob[offset:offset + size]))

        entries = []
        previous = -1
        for codepoint, glyph_index, advance, x_offset, y_offset in raw_entries:
            if codepoint <= previous:
                raise EncodingError(f"entries not sorted at {format_codepoint(codepoint)}")
            if glyph_index >= bitmap_count:
                raise EncodingError(f"glyph index {glyph_index} out of range "
                                    f"for {format_codepoint(codepoint)}")
            previous = codepoint
            b = bitmaps[glyph_index]
            bbox = BoundingBox(b.width, b.height, x_offset, y_offset)
            entries.append(GlyphTableEntry(codepoint, glyph_index, advance, bbox))

        metrics = FontMetrics(ascent, descent, max_advance, pixel_size, max_width, max_height)
        return GlyphTable(metrics, tuple(entries), tuple(bitmaps))


def decode(data: bytes) -> GlyphTable:
    """Decode bytes produced by encode()."""
    return Decoder(data).decode()


def render_glyph(table: GlyphTable, codepoint: int, on: str = "#", off: str = ".") -> list[str]:
    """Render one glyph as text rows, for previews."""
    bitmap = table.bitmap_for(codepoint)
    if bitmap is None:
        raise KeyError(format_codepoint(codepoint))
    return ["".join(on if bitmap.pixel(x, y) else off for x in range(bitmap.width))
            for y in range(bitmap.height)]
