"""
fontbake BDF Parser - Line-scanning parser for rasterizer output.

Builds GlyphRecords from the lines produced by the BDF lexer. Every
deviation from the grammar is a ParseError naming the offending line;
nothing is padded, truncated or guessed.
"""

from typing import Iterable, Optional

from .bdf_lexer import Line, tokenize
from .model import (BdfFont, FontBakeError, GlyphRecord, MAX_CODEPOINT,
                    format_codepoint, row_stride)


class ParseError(FontBakeError):
    """Malformed BDF text."""
    stage = "parse"

    def __init__(self, message: str, line: int):
        self.line = line
        super().__init__(f"{message} at line {line}")


class MissingGlyphError(FontBakeError):
    """Requested codepoints the rasterizer did not produce."""
    stage = "parse"

    def __init__(self, codepoints: Iterable[int]):
        self.codepoints = tuple(sorted(codepoints))
        listed = ", ".join(format_codepoint(cp) for cp in self.codepoints)
        super().__init__(f"{len(self.codepoints)} requested glyph(s) not in font: {listed}")


class Parser:
    """Line-scanning parser for BDF 2.1 glyph data."""

    def __init__(self, lines: list[Line], filename: str = "<bdf>"):
        self.lines = lines
        self.filename = filename
        self.pos = 0

    def current(self) -> Optional[Line]:
        """Get current line, or None at end of input."""
        if self.pos >= len(self.lines):
            return None
        return self.lines[self.pos]

    def advance(self) -> Line:
        """Advance and return the line we passed."""
        line = self.lines[self.pos]
        self.pos += 1
        return line

    def check(self, *keywords: str) -> bool:
        """Check if the current line starts with one of the keywords."""
        line = self.current()
        return line is not None and line.keyword in keywords

    def expect(self, keyword: str, msg: str = "") -> Line:
        """Expect the current line to start with keyword."""
        if not self.check(keyword):
            if not msg:
                msg = f"Expected {keyword}"
            raise self.error(msg)
        return self.advance()

    def error(self, msg: str, line: Optional[Line] = None) -> ParseError:
        """Build a ParseError at line, the current line or end of input."""
        if line is None:
            line = self.current()
        if line is None:
            number = self.lines[-1].line + 1 if self.lines else 1
            return ParseError(f"{msg} (end of input)", number)
        return ParseError(msg, line.line)

    def ints(self, line: Line, count: int, optional: int = 0) -> list[int]:
        """Read `count` integer fields (plus up to `optional` more)."""
        if not count <= len(line.args) <= count + optional:
            raise self.error(f"{line.keyword} expects {count} field(s), got {len(line.args)}", line)
        try:
            return [int(arg) for arg in line.args]
        except ValueError:
            raise self.error(f"{line.keyword} fields must be integers: {line.text!r}", line) from None

    # -------------------------------------------------------------------------
    # Font structure
    # -------------------------------------------------------------------------

    def parse_font(self) -> BdfFont:
        """Parse a whole BDF document."""
        start = self.expect("STARTFONT", "Missing STARTFONT header")
        if len(start.args) != 1:
            raise self.error("STARTFONT expects a version", start)
        font = BdfFont(version=start.args[0])

        self.parse_header(font)
        chars = self.advance()
        font.declared_chars = self.ints(chars, 1)[0]

        seen: dict[int, int] = {}
        blocks = 0
        while not self.check("ENDFONT"):
            line = self.current()
            if line is None:
                raise self.error("Missing ENDFONT")
            if line.keyword != "STARTCHAR":
                raise self.error(f"Expected STARTCHAR or ENDFONT, got {line.keyword}")
            record = self.parse_glyph()
            blocks += 1
            if record is None:
                continue
            if record.codepoint in seen:
                raise ParseError(f"Duplicate ENCODING {record.codepoint} "
                                 f"(first defined at line {seen[record.codepoint]})",
                                 record.line)
            seen[record.codepoint] = record.line
            font.glyphs.append(record)
        self.advance()

        if blocks != font.declared_chars:
            raise self.error(f"CHARS declares {font.declared_chars} glyph(s) "
                             f"but {blocks} were defined", chars)
        if self.current() is not None:
            raise self.error("Unexpected content after ENDFONT")
        return font

    def parse_header(self, font: BdfFont) -> None:
        """Parse global header lines up to CHARS."""
        while not self.check("CHARS"):
            line = self.current()
            if line is None:
                raise self.error("Missing CHARS")
            match line.keyword:
                case "FONT":
                    font.name = " ".join(line.args)
                case "FONTBOUNDINGBOX":
                    font.bounding_box = tuple(self.ints(line, 4))
                case "STARTPROPERTIES":
                    self.parse_properties(font)
                    continue
                case "STARTCHAR" | "ENDFONT":
                    raise self.error(f"Expected CHARS before {line.keyword}")
            # SIZE, CONTENTVERSION, METRICSSET and friends carry nothing we use
            self.advance()

    def parse_properties(self, font: BdfFont) -> None:
        """Parse STARTPROPERTIES ... ENDPROPERTIES."""
        start = self.advance()
        while True:
            line = self.current()
            if line is None:
                raise self.error("Unterminated STARTPROPERTIES", start)
            self.advance()
            if line.keyword == "ENDPROPERTIES":
                return
            value = line.text[len(line.keyword):].strip()
            if value.startswith('"') and value.endswith('"') and len(value) >= 2:
                font.properties[line.keyword] = value[1:-1].replace('""', '"')
                continue
            try:
                font.properties[line.keyword] = int(value)
            except ValueError:
                font.properties[line.keyword] = value

    # -------------------------------------------------------------------------
    # Glyph blocks
    # -------------------------------------------------------------------------

    def parse_glyph(self) -> Optional[GlyphRecord]:
        """Parse STARTCHAR ... ENDCHAR. Returns None for unencoded glyphs."""
        start = self.advance()
        name = " ".join(start.args)
        encoding: Optional[int] = None
        advance: Optional[int] = None
        bbx: Optional[list[int]] = None
        rows: Optional[list[bytes]] = None

        while True:
            line = self.current()
            if line is None:
                raise self.error(f"Glyph {name!r} has no ENDCHAR", start)
            match line.keyword:
                case "ENCODING":
                    # "ENCODING -1 <n>" names a glyph outside the standard encoding
                    encoding = self.ints(line, 1, optional=1)[0]
                case "SWIDTH":
                    self.ints(line, 2)
                case "DWIDTH":
                    advance = self.ints(line, 2)[0]
                case "BBX":
                    bbx = self.ints(line, 4)
                    if bbx[0] < 0 or bbx[1] < 0:
                        raise self.error(f"Negative BBX size in glyph {name!r}", line)
                case "BITMAP":
                    if bbx is None:
                        raise self.error(f"BITMAP before BBX in glyph {name!r}", line)
                    self.advance()
                    rows = self.parse_rows(name, bbx[0], bbx[1])
                    if not self.check("ENDCHAR"):
                        raise self.error(f"Glyph {name!r} has more than {bbx[1]} bitmap row(s)")
                    continue
                case "ENDCHAR":
                    self.advance()
                    break
                case "STARTCHAR" | "ENDFONT":
                    raise self.error(f"Glyph {name!r} has no ENDCHAR", start)
            self.advance()

        required = (("ENCODING", encoding), ("DWIDTH", advance),
                    ("BBX", bbx), ("BITMAP", rows))
        missing = [keyword for keyword, value in required if value is None]
        if missing:
            raise self.error(f"Glyph {name!r} is missing {', '.join(missing)}", start)
        if encoding < 0:
            return None
        if encoding > MAX_CODEPOINT or 0xD800 <= encoding <= 0xDFFF:
            raise self.error(f"Glyph {name!r} has invalid ENCODING {encoding}", start)

        width, height, x_offset, y_offset = bbx
        return GlyphRecord(encoding, width, height, x_offset, y_offset, advance,
                           tuple(rows), name, start.line)

    def parse_rows(self, name: str, width: int, height: int) -> list[bytes]:
        """Read exactly `height` hex rows of ceil(width/8) bytes each."""
        stride = row_stride(width)
        rows: list[bytes] = []
        for _ in range(height):
            line = self.current()
            if line is None or line.keyword == "ENDCHAR":
                raise self.error(f"Glyph {name!r} declares {height} bitmap row(s) "
                                 f"but has {len(rows)}")
            if line.args:
                raise self.error(f"Bitmap row must be one hex string: {line.text!r}")
            try:
                row = bytes.fromhex(line.keyword)
            except ValueError:
                raise self.error(f"Invalid hex bitmap row {line.keyword!r}") from None
            if len(row) != stride:
                raise self.error(f"Bitmap row decodes to {len(row)} byte(s) but glyph "
                                 f"{name!r} of width {width} needs {stride}")
            rows.append(row)
            self.advance()
        return rows


def parse(source: str, filename: str = "<bdf>") -> BdfFont:
    """Convenience function to parse BDF text."""
    lines = tokenize(source, filename)
    parser = Parser(lines, filename)
    return parser.parse_font()


def parse_glyphs(source: str, filename: str = "<bdf>") -> list[GlyphRecord]:
    """Parse BDF text down to its encoded glyph records."""
    return parse(source, filename).glyphs


def find_missing(records: Iterable[GlyphRecord], charset: Iterable[int]) -> list[int]:
    """Requested codepoints with no record, ascending."""
    present = {r.codepoint for r in records}
    return sorted(set(charset) - present)


def check_coverage(records: Iterable[GlyphRecord], charset: Iterable[int]) -> None:
    """Raise MissingGlyphError unless every requested codepoint has a record."""
    missing = find_missing(records, charset)
    if missing:
        raise MissingGlyphError(missing)


def select_glyphs(records: Iterable[GlyphRecord], charset: Iterable[int]) -> list[GlyphRecord]:
    """Keep only records for requested codepoints, in input order."""
    wanted = set(charset)
    return [r for r in records if r.codepoint in wanted]
