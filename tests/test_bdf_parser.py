#!/usr/bin/env python3
"""
BDF Lexer and Parser Tests

Tests for glyph extraction and every malformed-input path.
"""

import sys
import os

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from fontbake.bdf_lexer import tokenize
from fontbake.bdf_parser import (MissingGlyphError, ParseError, check_coverage,
                                 find_missing, parse, parse_glyphs, select_glyphs)
from bdf_samples import SampleGlyph, digits_bdf, full_bdf, make_bdf


ONE_GLYPH = """STARTFONT 2.1
FONT test
SIZE 8 72 72
FONTBOUNDINGBOX 8 2 0 0
CHARS 1
STARTCHAR A
ENCODING 65
SWIDTH 500 0
DWIDTH 8 0
BBX 8 2 0 0
BITMAP
{row1}
{row2}
ENDCHAR
ENDFONT
"""


def expect_parse_error(text: str, fragment: str = "", line: int = 0) -> ParseError:
    try:
        parse(text)
    except ParseError as e:
        if fragment:
            assert fragment in str(e), str(e)
        if line:
            assert e.line == line, f"line {e.line} != {line}"
        return e
    assert False, "expected ParseError"


def test_lexer_lines():
    """Blank lines and comments vanish; line numbers are kept."""
    lines = tokenize("STARTFONT 2.1\n\nCOMMENT hello\nCHARS  3\n")
    assert [(l.keyword, l.args, l.line) for l in lines] == [
        ("STARTFONT", ["2.1"], 1),
        ("CHARS", ["3"], 4),
    ]
    print("PASS: test_lexer_lines")


def test_parse_digits():
    """All ten digits come through with their metrics and rows."""
    font = parse(digits_bdf())
    assert font.version == "2.1"
    assert font.declared_chars == 10
    assert font.bounding_box == (8, 9, 0, -2)
    assert font.properties["FAMILY_NAME"] == "Sample"
    assert font.properties["FONT_ASCENT"] == 7
    assert [g.codepoint for g in font.glyphs] == [ord(c) for c in "0123456789"]

    zero = font.glyphs[0]
    assert (zero.width, zero.height, zero.advance) == (5, 7, 8)
    assert zero.rows[0] == bytes([0b01110000])
    assert zero.name == "uni0030"
    print("PASS: test_parse_digits")


def test_parse_offsets_and_blank():
    """Negative offsets and zero-size glyphs parse."""
    glyphs = {g.codepoint: g for g in parse_glyphs(full_bdf())}
    assert glyphs[ord("g")].y_offset == -2
    space = glyphs[ord(" ")]
    assert (space.width, space.height, space.rows) == (0, 0, ())
    assert space.advance == 3
    print("PASS: test_parse_offsets_and_blank")


def test_row_too_long():
    """Width 8 with a row decoding to 2 bytes is fatal, not truncated."""
    expect_parse_error(ONE_GLYPH.format(row1="FF00", row2="FF"),
                       "decodes to 2 byte(s)", line=12)
    print("PASS: test_row_too_long")


def test_row_too_short():
    """A 9-pixel row needs 2 bytes; 1 is fatal, not padded."""
    text = ONE_GLYPH.replace("BBX 8 2 0 0", "BBX 9 2 0 0").format(row1="FF", row2="FF80")
    expect_parse_error(text, "needs 2", line=12)
    print("PASS: test_row_too_short")


def test_row_not_hex():
    """Rows must be hex."""
    expect_parse_error(ONE_GLYPH.format(row1="ZZ", row2="FF"), "Invalid hex")
    print("PASS: test_row_not_hex")


def test_missing_rows():
    """Fewer rows than BBX height."""
    text = ONE_GLYPH.format(row1="FF", row2="").replace("\n\n", "\n")
    expect_parse_error(text, "declares 2 bitmap row(s) but has 1")
    print("PASS: test_missing_rows")


def test_extra_rows():
    """More rows than BBX height."""
    expect_parse_error(ONE_GLYPH.format(row1="FF", row2="FF\n00"), "more than 2")
    print("PASS: test_extra_rows")


def test_missing_fields():
    """Blocks without ENCODING, DWIDTH or BBX are rejected."""
    no_dwidth = ONE_GLYPH.replace("DWIDTH 8 0\n", "").format(row1="FF", row2="FF")
    expect_parse_error(no_dwidth, "missing DWIDTH", line=6)
    no_encoding = ONE_GLYPH.replace("ENCODING 65\n", "").format(row1="FF", row2="FF")
    expect_parse_error(no_encoding, "missing ENCODING")
    no_bbx = ONE_GLYPH.replace("BBX 8 2 0 0\n", "").format(row1="FF", row2="FF")
    expect_parse_error(no_bbx, "BITMAP before BBX")
    print("PASS: test_missing_fields")


def test_bad_header():
    """Documents must start with STARTFONT and declare CHARS."""
    expect_parse_error("FONT x\nCHARS 0\nENDFONT\n", "Missing STARTFONT", line=1)
    expect_parse_error("STARTFONT 2.1\nSTARTCHAR A\n", "Expected CHARS")
    expect_parse_error("STARTFONT 2.1\nFONT x\n", "Missing CHARS")
    print("PASS: test_bad_header")


def test_missing_endfont():
    """Truncated documents are errors."""
    text = ONE_GLYPH.format(row1="FF", row2="FF").replace("ENDFONT\n", "")
    expect_parse_error(text, "Missing ENDFONT")
    print("PASS: test_missing_endfont")


def test_bad_integer_fields():
    """Non-integer and wrong-arity fields name the keyword."""
    text = ONE_GLYPH.replace("BBX 8 2 0 0", "BBX 8 two 0 0").format(row1="FF", row2="FF")
    expect_parse_error(text, "BBX fields must be integers", line=10)
    text = ONE_GLYPH.replace("DWIDTH 8 0", "DWIDTH 8").format(row1="FF", row2="FF")
    expect_parse_error(text, "DWIDTH expects 2 field(s)", line=9)
    print("PASS: test_bad_integer_fields")


def test_chars_count_mismatch():
    """CHARS must match the number of glyph blocks."""
    text = make_bdf([SampleGlyph(65, ["#"])], chars=2)
    expect_parse_error(text, "CHARS declares 2")
    print("PASS: test_chars_count_mismatch")


def test_duplicate_encoding():
    """The same ENCODING twice is malformed input."""
    text = make_bdf([SampleGlyph(65, ["#"]), SampleGlyph(65, ["."])])
    expect_parse_error(text, "Duplicate ENCODING 65")
    print("PASS: test_duplicate_encoding")


def test_unencoded_glyphs_skipped():
    """ENCODING -1 glyphs are not part of any character set."""
    text = make_bdf([SampleGlyph(65, ["#"]), SampleGlyph(66, ["#"])])
    text = text.replace("ENCODING 66", "ENCODING -1 300")
    assert [g.codepoint for g in parse_glyphs(text)] == [65]
    print("PASS: test_unencoded_glyphs_skipped")


def test_missing_glyphs_named():
    """Coverage check names exactly the absent codepoints."""
    records = parse_glyphs(digits_bdf())
    charset = [ord(c) for c in "0A9B"]
    assert find_missing(records, charset) == [ord("A"), ord("B")]
    try:
        check_coverage(records, charset)
        assert False, "expected MissingGlyphError"
    except MissingGlyphError as e:
        assert e.codepoints == (ord("A"), ord("B"))
        assert "U+0041 'A'" in str(e)
    check_coverage(records, [ord("5")])
    print("PASS: test_missing_glyphs_named")


def test_select_glyphs():
    """Only requested records survive, in input order."""
    records = parse_glyphs(digits_bdf())
    assert [r.codepoint for r in select_glyphs(records, [ord("7"), ord("2")])] == [50, 55]
    print("PASS: test_select_glyphs")


def run_all_tests():
    """Run all BDF parser tests."""
    tests = [
        test_lexer_lines,
        test_parse_digits,
        test_parse_offsets_and_blank,
        test_row_too_long,
        test_row_too_short,
        test_row_not_hex,
        test_missing_rows,
        test_extra_rows,
        test_missing_fields,
        test_bad_header,
        test_missing_endfont,
        test_bad_integer_fields,
        test_chars_count_mismatch,
        test_duplicate_encoding,
        test_unencoded_glyphs_skipped,
        test_missing_glyphs_named,
        test_select_glyphs,
    ]

    passed = 0
    failed = 0

    print("=" * 50)
    print("fontbake BDF Parser Tests")
    print("=" * 50)

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {test.__name__}: {e}")
            failed += 1

    print()
    print("=" * 50)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 50)

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
