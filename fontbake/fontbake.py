#!/usr/bin/env python3
"""
fontbake CLI - Bake outline fonts into bitmap glyph tables

Usage:
    fontbake convert Roboto.ttf -s 30 -c 0123456789 --format rust --name Roboto --weight Bold
    fontbake bdf existing.bdf -s 16 -r 32-126 -o font.bin
    fontbake batch fonts.spec -o generated/ -j 4
    fontbake dump font.bin --chars 0123
"""

import argparse
import re
import shlex
import sys
from pathlib import Path
from typing import Optional

from .codegen import DEFAULT_TRAIT, generate, snake_case, type_name
from .encoder import decode, render_glyph
from .model import (ConversionRequest, FontBakeError, charset_from_text,
                    format_codepoint, parse_charset_ranges)
from .pipeline import ConversionResult, convert, convert_bdf, convert_many
from .rasterizer import BdfFileRasterizer, Otf2BdfRasterizer, RasterizerConfig


EXTENSIONS = {"bin": ".bin", "rust": ".rs", "c": ".h"}
RANGE_PREFIX = "range:"


def log(message: str) -> None:
    print(message, file=sys.stderr)


def resolve_font(path: str, base_dir: Path) -> Path:
    """Resolve a font path relative to base_dir."""
    font_path = Path(path)
    if not font_path.is_absolute():
        font_path = base_dir / font_path
    if not font_path.exists():
        raise FileNotFoundError(f"Font file does not exist (relative to {base_dir}): {font_path}")
    return font_path


def default_name(path: Path) -> str:
    """Roboto-Regular.ttf -> RobotoRegular"""
    parts = re.split(r"[^A-Za-z0-9]+", path.stem)
    name = "".join(p[:1].upper() + p[1:] for p in parts if p)
    if not name or name[0].isdigit():
        name = "Font" + name
    return name


def charset_from_args(args: argparse.Namespace) -> tuple[int, ...]:
    """Combine --chars and --range into one charset."""
    codepoints = list(charset_from_text(args.chars or ""))
    if args.range:
        codepoints += parse_charset_ranges(args.range)
    return tuple(dict.fromkeys(codepoints))


def make_rasterizer(args: argparse.Namespace) -> Otf2BdfRasterizer:
    config = RasterizerConfig.from_env()
    if args.otf2bdf:
        config.binary = args.otf2bdf
    if args.dpi:
        config.dpi = args.dpi
    return Otf2BdfRasterizer(config)


def report(result: ConversionResult, verbose: bool) -> None:
    """Print warnings, and stage details when verbose."""
    if result.missing:
        listed = ", ".join(format_codepoint(cp) for cp in result.missing)
        log(f"Warning: {len(result.missing)} glyph(s) not in font, left out: {listed}")
    if not verbose:
        return
    s = result.stats
    m = result.table.metrics
    log(f"  {s.glyphs} glyphs, {s.unique_bitmaps} unique bitmaps")
    log(f"  bitmap data {s.blob_size} bytes ({s.saved} saved by deduplication)")
    log(f"  ascent {m.ascent}, descent {m.descent}, max advance {m.max_advance}")
    log(f"  encoded size {len(result.data)} bytes")


def render_output(result: ConversionResult, fmt: str, name: str, trait: str) -> bytes:
    """Encoded bytes, or generated source as UTF-8."""
    if fmt == "bin":
        return result.data
    return generate(result.data, name, fmt, trait, result.table).encode("utf-8")


def write_output(output: bytes, path: Optional[str]) -> None:
    if path:
        Path(path).write_bytes(output)
        log(f"Wrote {path}")
    else:
        sys.stdout.buffer.write(output)
        sys.stdout.buffer.flush()


def check_charset(charset: tuple[int, ...]) -> bool:
    if not charset:
        log("Error: no characters requested (use --chars and/or --range)")
        return False
    return True


def cmd_convert(args: argparse.Namespace) -> int:
    """Convert command."""
    base_dir = Path(args.base_dir) if args.base_dir else Path.cwd()
    try:
        font_path = resolve_font(args.font, base_dir)
        charset = charset_from_args(args)
        if not check_charset(charset):
            return 1
        request = ConversionRequest(font_path, args.size, charset)
        name = type_name(args.name or default_name(font_path), args.weight, args.size)

        if args.verbose:
            log(f"Rasterizing {len(charset)} glyph(s) from {font_path} at {args.size}px")
        result = convert(request, make_rasterizer(args), args.allow_missing)
        report(result, args.verbose)

        if args.keep_bdf:
            bdf_path = font_path.with_suffix(".bdf")
            bdf_path.write_text(result.bdf, encoding="utf-8")
            log(f"BDF written to {bdf_path}")

        write_output(render_output(result, args.format, name, args.trait), args.output)
    except (FontBakeError, OSError, ValueError) as e:
        log(f"Error: {e}")
        return 1
    return 0


def cmd_bdf(args: argparse.Namespace) -> int:
    """Convert an existing BDF file, skipping the rasterizer."""
    bdf_path = Path(args.bdf)
    if not bdf_path.exists():
        log(f"Error: {bdf_path} not found")
        return 1

    try:
        charset = charset_from_args(args)
        if not check_charset(charset):
            return 1
        request = ConversionRequest(bdf_path, args.size, charset)
        name = type_name(args.name or default_name(bdf_path), args.weight, args.size)
        bdf = BdfFileRasterizer(bdf_path).rasterize(request)
        result = convert_bdf(bdf, request, args.allow_missing, filename=str(bdf_path))
        report(result, args.verbose)
        write_output(render_output(result, args.format, name, args.trait), args.output)
    except (FontBakeError, OSError, ValueError) as e:
        log(f"Error: {e}")
        return 1
    return 0


def read_batch_spec(spec_path: Path, base_dir: Path) -> list[tuple[str, str, ConversionRequest]]:
    """
    Parse a batch spec file.

    One font per line: name path size charset [weight]. The charset field is
    literal characters (quote it if it has spaces) or 'range:32-126,0xA0'.
    Blank lines and # comments are ignored.
    """
    jobs = []
    for number, raw in enumerate(spec_path.read_text(encoding="utf-8").splitlines(), start=1):
        try:
            fields = shlex.split(raw, comments=True)
        except ValueError as e:
            raise ValueError(f"{spec_path}:{number}: {e}") from None
        if not fields:
            continue
        if len(fields) not in (4, 5):
            raise ValueError(f"{spec_path}:{number}: expected 'name path size charset [weight]'")
        name, path, size_text, chars = fields[:4]
        weight = fields[4] if len(fields) == 5 else ""
        try:
            size = int(size_text)
        except ValueError:
            raise ValueError(f"{spec_path}:{number}: size must be an integer: {size_text!r}") from None
        if chars.startswith(RANGE_PREFIX):
            charset = parse_charset_ranges(chars[len(RANGE_PREFIX):])
        else:
            charset = charset_from_text(chars)
        request = ConversionRequest(resolve_font(path, base_dir), size, charset)
        jobs.append((name, weight, request))
    return jobs


def cmd_batch(args: argparse.Namespace) -> int:
    """Convert every font listed in a spec file."""
    spec_path = Path(args.spec)
    if not spec_path.exists():
        log(f"Error: {spec_path} not found")
        return 1
    base_dir = Path(args.base_dir) if args.base_dir else spec_path.parent
    out_dir = Path(args.output) if args.output else Path.cwd()

    try:
        jobs = read_batch_spec(spec_path, base_dir)
        names = [type_name(name, weight, req.pixel_size) for name, weight, req in jobs]
        log(f"Converting {len(jobs)} font(s)...")
        results = convert_many([req for _, _, req in jobs], make_rasterizer(args),
                               args.allow_missing, args.jobs)

        out_dir.mkdir(parents=True, exist_ok=True)
        for name, result in zip(names, results):
            log(f"  {name}")
            report(result, args.verbose)
            target = out_dir / (snake_case(name) + EXTENSIONS[args.format])
            target.write_bytes(render_output(result, args.format, name, args.trait))
    except (FontBakeError, OSError, ValueError) as e:
        log(f"Error: {e}")
        return 1

    log(f"Wrote {len(results)} file(s) to {out_dir}")
    return 0


def cmd_dump(args: argparse.Namespace) -> int:
    """Decode an encoded table and preview its glyphs."""
    path = Path(args.file)
    if not path.exists():
        log(f"Error: {path} not found")
        return 1

    try:
        table = decode(path.read_bytes())
    except (FontBakeError, OSError) as e:
        log(f"Error: {e}")
        return 1

    m = table.metrics
    print(f"pixel size {m.pixel_size}, ascent {m.ascent}, descent {m.descent}, "
          f"line height {m.line_height}, max advance {m.max_advance}, "
          f"max bbox {m.max_width}x{m.max_height}")
    print(f"{len(table.entries)} glyphs, {len(table.bitmaps)} unique bitmaps, "
          f"{len(table.blob)} bytes of bitmap data")

    wanted = charset_from_text(args.chars) if args.chars else table.codepoints
    for cp in wanted:
        entry = table.lookup(cp)
        if entry is None:
            print(f"\n{format_codepoint(cp)}: not in table")
            continue
        b = entry.bbox
        print(f"\n{format_codepoint(cp)}: glyph {entry.glyph_index}, {b.width}x{b.height} "
              f"at ({b.x_offset}, {b.y_offset}), advance {entry.advance}")
        for row in render_glyph(table, cp):
            print(f"  {row}")
    return 0


def add_charset_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--chars", help="Characters to include (duplicates ignored)")
    parser.add_argument("-r", "--range",
                        help="Numeric codepoint ranges, e.g. 32-126,0xA0-0xFF,U+20AC "
                             "(digits are numbers, so the characters 0 to 9 are 48-57; "
                             "use --chars for literal characters)")


def add_output_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", choices=sorted(EXTENSIONS), default="bin",
                        help="Output format (default: bin)")
    parser.add_argument("--trait", default=DEFAULT_TRAIT,
                        help=f"Rust trait the generated type implements (default: {DEFAULT_TRAIT})")
    parser.add_argument("--allow-missing", action="store_true",
                        help="Leave out requested glyphs the font lacks instead of failing")
    parser.add_argument("-v", "--verbose", action="store_true", help="Report each stage")


def add_rasterizer_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--otf2bdf", help="Rasterizer executable (default: otf2bdf)")
    parser.add_argument("--dpi", type=int, help="Rasterizer resolution (default: 72)")
    parser.add_argument("--base-dir", help="Directory relative font paths resolve against")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="fontbake",
        description="fontbake - bake outline fonts into bitmap glyph tables"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Convert command
    convert_parser = subparsers.add_parser("convert", help="Rasterize a TTF/OTF font and encode it")
    convert_parser.add_argument("font", help="Font file (.ttf, .otf)")
    convert_parser.add_argument("-s", "--size", type=int, required=True, help="Pixel size")
    convert_parser.add_argument("-o", "--output", help="Output file (default: stdout)")
    convert_parser.add_argument("--name", help="Generated type name (default: from font file)")
    convert_parser.add_argument("--weight", default="", help="Weight appended to the type name")
    convert_parser.add_argument("--keep-bdf", action="store_true",
                                help="Keep the rasterizer output next to the font")
    add_charset_args(convert_parser)
    add_output_args(convert_parser)
    add_rasterizer_args(convert_parser)
    convert_parser.set_defaults(func=cmd_convert)

    # BDF command
    bdf_parser = subparsers.add_parser("bdf", help="Encode an existing BDF file")
    bdf_parser.add_argument("bdf", help="BDF file")
    bdf_parser.add_argument("-s", "--size", type=int, required=True, help="Pixel size")
    bdf_parser.add_argument("-o", "--output", help="Output file (default: stdout)")
    bdf_parser.add_argument("--name", help="Generated type name (default: from file name)")
    bdf_parser.add_argument("--weight", default="", help="Weight appended to the type name")
    add_charset_args(bdf_parser)
    add_output_args(bdf_parser)
    bdf_parser.set_defaults(func=cmd_bdf)

    # Batch command
    batch_parser = subparsers.add_parser("batch", help="Convert every font in a spec file")
    batch_parser.add_argument("spec", help="Spec file: name path size charset [weight] per line")
    batch_parser.add_argument("-o", "--output", help="Output directory (default: current)")
    batch_parser.add_argument("-j", "--jobs", type=int, default=1,
                              help="Worker processes (default: 1)")
    add_output_args(batch_parser)
    add_rasterizer_args(batch_parser)
    batch_parser.set_defaults(func=cmd_batch)

    # Dump command
    dump_parser = subparsers.add_parser("dump", help="Preview an encoded table")
    dump_parser.add_argument("file", help="Encoded table (.bin)")
    dump_parser.add_argument("-c", "--chars", help="Only show these characters")
    dump_parser.set_defaults(func=cmd_dump)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
