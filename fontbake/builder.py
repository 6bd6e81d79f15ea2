"""
fontbake Glyph Table Builder

Turns parsed glyph records into a GlyphTable:
1. Coverage - every requested codepoint must have a record
2. Deduplication - identical bitmaps share one glyph index
3. Ordering - entries sorted by codepoint (renderers binary-search them)
4. Metrics - ascent, descent and max advance over the whole set
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .bdf_parser import MissingGlyphError, find_missing, select_glyphs
from .model import (BoundingBox, FontBakeError, FontMetrics, GlyphBitmap,
                    GlyphRecord, GlyphTable, GlyphTableEntry, format_codepoint)


class BuildError(FontBakeError):
    """Glyph table cannot be built from the given input."""
    stage = "build"


class InconsistencyError(BuildError):
    """Input violates an invariant the parser guarantees."""

    def __init__(self, message: str):
        super().__init__(f"internal inconsistency (parser fault, not a font problem): {message}")


@dataclass
class BuildStats:
    """Numbers reported by --verbose."""
    glyphs: int = 0
    unique_bitmaps: int = 0
    blob_size: int = 0
    naive_size: int = 0
    missing: list[int] = field(default_factory=list)

    @property
    def saved(self) -> int:
        return self.naive_size - self.blob_size


class GlyphTableBuilder:
    """Builds a GlyphTable from parser output."""

    def __init__(self, pixel_size: int, allow_missing: bool = False):
        self.pixel_size = pixel_size
        self.allow_missing = allow_missing
        self.stats = BuildStats()

    def build(self, records: Iterable[GlyphRecord], charset: Iterable[int]) -> GlyphTable:
        """Build the table for `charset` out of `records`."""
        charset = list(charset)
        if not charset:
            raise BuildError("empty character set")

        records = list(records)
        if not records:
            raise self.nothing_built(charset)

        records = select_glyphs(records, charset)
        self.check_unique(records)
        missing = find_missing(records, charset)
        if missing and not self.allow_missing:
            raise MissingGlyphError(missing)
        self.stats.missing = missing
        if not records:
            raise self.nothing_built(charset)

        records.sort(key=lambda r: r.codepoint)
        bitmaps, entries = self.dedup(records)
        metrics = self.compute_metrics(records)

        self.stats.glyphs = len(entries)
        self.stats.unique_bitmaps = len(bitmaps)
        self.stats.blob_size = sum(len(b.data) for b in bitmaps)
        self.stats.naive_size = sum(len(r.data) for r in records)
        return GlyphTable(metrics, tuple(entries), tuple(bitmaps))

    def nothing_built(self, charset: list[int]) -> BuildError:
        listed = ", ".join(format_codepoint(cp) for cp in sorted(set(charset)))
        return BuildError(f"rasterizer produced none of the {len(charset)} requested "
                          f"glyph(s) at size {self.pixel_size}: {listed}")

    def check_unique(self, records: list[GlyphRecord]) -> None:
        """Duplicate codepoints can only come from a parser bug."""
        seen: dict[int, GlyphRecord] = {}
        for record in records:
            first = seen.get(record.codepoint)
            if first is not None:
                raise InconsistencyError(
                    f"duplicate record for {format_codepoint(record.codepoint)} "
                    f"(lines {first.line} and {record.line})")
            seen[record.codepoint] = record

    def dedup(self, records: list[GlyphRecord]) -> tuple[list[GlyphBitmap], list[GlyphTableEntry]]:
        """Assign glyph indices, sharing one bitmap per distinct image."""
        index: dict[tuple[int, int, bytes], int] = {}
        bitmaps: list[GlyphBitmap] = []
        entries: list[GlyphTableEntry] = []

        for record in records:
            key = (record.width, record.height, record.data)
            glyph_index = index.get(key)
            if glyph_index is None:
                glyph_index = len(bitmaps)
                index[key] = glyph_index
                bitmaps.append(GlyphBitmap(record.width, record.height, record.data))
            bbox = BoundingBox(record.width, record.height, record.x_offset, record.y_offset)
            entries.append(GlyphTableEntry(record.codepoint, glyph_index, record.advance, bbox))

        return bitmaps, entries

    def compute_metrics(self, records: list[GlyphRecord]) -> FontMetrics:
        """Exact extents over all glyphs, in rasterizer pixels."""
        ascent = 0
        descent = 0
        for record in records:
            # Blank glyphs (space) have no extent
            if record.height == 0:
                continue
            ascent = max(ascent, record.y_offset + record.height)
            descent = min(descent, record.y_offset)
        return FontMetrics(
            ascent=ascent,
            descent=descent,
            max_advance=max(r.advance for r in records),
            pixel_size=self.pixel_size,
            max_width=max(r.width for r in records),
            max_height=max(r.height for r in records),
        )


def build_table(records: Iterable[GlyphRecord], charset: Iterable[int], pixel_size: int,
                allow_missing: bool = False, stats: Optional[BuildStats] = None) -> GlyphTable:
    """Convenience function to build a GlyphTable."""
    builder = GlyphTableBuilder(pixel_size, allow_missing)
    if stats is not None:
        builder.stats = stats
    return builder.build(records, charset)
