"""
fontbake Source Generator

Wraps encoded font bytes in a named, typed source artifact that firmware
code can embed:

- Rust: a unit struct implementing the renderer's font trait
  (`const DATA: &'static [u8]`)
- C: a `static const uint8_t[]` behind an include guard
"""

import re
from typing import Optional

from .model import FontBakeError, GlyphTable


IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
BYTES_PER_LINE = 16
DEFAULT_TRAIT = "fontbake::Font"


class CodeGenError(FontBakeError):
    """Cannot produce a valid source artifact."""
    stage = "codegen"


def type_name(name: str, weight: str = "", size: Optional[int] = None) -> str:
    """Compose the generated type name: name + weight + size."""
    result = f"{name}{weight}{size if size is not None else ''}"
    if not IDENT.match(result):
        raise CodeGenError(f"not a valid identifier: {result!r}")
    return result


def snake_case(name: str) -> str:
    """RobotoBold30 -> roboto_bold30"""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


def format_bytes(data: bytes, indent: str = "    ") -> list[str]:
    """Hex byte literals, BYTES_PER_LINE to a line."""
    lines = []
    for i in range(0, len(data), BYTES_PER_LINE):
        chunk = data[i:i + BYTES_PER_LINE]
        lines.append(indent + ", ".join(f"0x{b:02x}" for b in chunk) + ",")
    return lines


def describe(table: Optional[GlyphTable]) -> list[str]:
    """Comment lines summarizing the table."""
    if table is None:
        return []
    m = table.metrics
    return [
        f"{len(table.entries)} glyphs, {len(table.bitmaps)} unique bitmaps, "
        f"pixel size {m.pixel_size}",
        f"ascent {m.ascent}, descent {m.descent}, max advance {m.max_advance}",
    ]


class RustCodeGen:
    """Generates a Rust font type."""

    def __init__(self, trait: str = DEFAULT_TRAIT):
        self.trait = trait
        self.output: list[str] = []

    def emit(self, line: str) -> None:
        self.output.append(line)

    def gen_font(self, name: str, data: bytes, table: Optional[GlyphTable] = None) -> str:
        if not IDENT.match(name):
            raise CodeGenError(f"not a valid Rust identifier: {name!r}")
        self.emit("// Generated by fontbake. Do not edit.")
        for line in describe(table):
            self.emit(f"// {line}")
        self.emit("")
        self.emit(f"pub struct {name} {{}}")
        self.emit("")
        self.emit(f"impl {self.trait} for {name} {{")
        self.emit("    const DATA: &'static [u8] = &[")
        for line in format_bytes(data, indent=" " * 8):
            self.emit(line)
        self.emit("    ];")
        self.emit("}")
        return "\n".join(self.output) + "\n"


class CCodeGen:
    """Generates a C header holding the font bytes."""

    def __init__(self):
        self.output: list[str] = []

    def emit(self, line: str) -> None:
        self.output.append(line)

    def gen_font(self, name: str, data: bytes, table: Optional[GlyphTable] = None) -> str:
        if not IDENT.match(name):
            raise CodeGenError(f"not a valid C identifier: {name!r}")
        symbol = snake_case(name)
        guard = f"FONTBAKE_{symbol.upper()}_H"
        self.emit("/* Generated by fontbake. Do not edit. */")
        for line in describe(table):
            self.emit(f"/* {line} */")
        self.emit(f"#ifndef {guard}")
        self.emit(f"#define {guard}")
        self.emit("")
        self.emit("#include <stdint.h>")
        self.emit("")
        self.emit(f"#define {symbol.upper()}_SIZE {len(data)}")
        self.emit(f"static const uint8_t {symbol}[{len(data)}] = {{")
        for line in format_bytes(data):
            self.emit(line)
        self.emit("};")
        self.emit("")
        self.emit(f"#endif /* {guard} */")
        return "\n".join(self.output) + "\n"


def generate(data: bytes, name: str, lang: str = "rust", trait: str = DEFAULT_TRAIT,
             table: Optional[GlyphTable] = None) -> str:
    """Generate source for encoded font bytes."""
    match lang:
        case "rust":
            return RustCodeGen(trait).gen_font(name, data, table)
        case "c":
            return CCodeGen().gen_font(name, data, table)
    raise CodeGenError(f"unknown output language: {lang}")
