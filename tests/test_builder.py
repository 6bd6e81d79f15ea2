#!/usr/bin/env python3
"""
Glyph Table Builder Tests

Tests for ordering, deduplication, metrics and build failures.
"""

import sys
import os

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from fontbake.bdf_parser import MissingGlyphError, parse_glyphs
from fontbake.builder import (BuildError, BuildStats, GlyphTableBuilder,
                              InconsistencyError, build_table)
from fontbake.model import GlyphRecord
from bdf_samples import digits_bdf, full_bdf


DIGITS = [ord(c) for c in "0123456789"]


def test_one_entry_per_codepoint_sorted():
    """Exactly one entry per requested codepoint, ascending."""
    records = parse_glyphs(digits_bdf())
    records.reverse()
    charset = [ord(c) for c in "9081726354"]
    table = build_table(records, charset, 30)
    assert table.codepoints == DIGITS
    assert len(table.entries) == 10
    print("PASS: test_one_entry_per_codepoint_sorted")


def test_digit_scenario_metrics():
    """Size 30 digits: max advance is the widest digit's advance."""
    table = build_table(parse_glyphs(digits_bdf()), DIGITS, 30)
    m = table.metrics
    assert m.max_advance == 8
    assert m.pixel_size == 30
    assert (m.ascent, m.descent) == (7, 0)
    assert m.line_height == 7
    assert (m.max_width, m.max_height) == (5, 7)
    print("PASS: test_digit_scenario_metrics")


def test_descent_from_glyph_below_baseline():
    """A glyph reaching below the baseline sets the descent."""
    table = build_table(parse_glyphs(full_bdf()), [ord(c) for c in "0g "], 30)
    assert table.metrics.descent == -2
    assert table.metrics.ascent == 7
    assert table.metrics.line_height == 9
    assert table.lookup(ord(" ")).bbox.height == 0
    print("PASS: test_descent_from_glyph_below_baseline")


def test_dedup_shares_index():
    """'0'/'O' and '1'/'l' are drawn alike and share bitmaps."""
    charset = [ord(c) for c in "01Ol"]
    stats = BuildStats()
    table = build_table(parse_glyphs(full_bdf()), charset, 30, stats=stats)
    zero, one, big_o, ell = (table.lookup(ord(c)) for c in "01Ol")
    assert zero.glyph_index == big_o.glyph_index
    assert one.glyph_index == ell.glyph_index
    assert zero.glyph_index != one.glyph_index
    assert len(table.bitmaps) == 2
    assert table.offsets == [0, 7]

    # 5x7 at 1 byte/row + 3x7 at 1 byte/row, stored once each
    assert len(table.blob) == 14
    assert stats.naive_size == 28
    assert stats.saved == 14
    print("PASS: test_dedup_shares_index")


def test_dedup_keeps_per_glyph_metrics():
    """Shared bitmaps still carry each codepoint's own advance and offsets."""
    rows = (b"\x80",)
    records = [
        GlyphRecord(65, 1, 1, 0, 5, 4, rows),
        GlyphRecord(66, 1, 1, 2, -1, 6, rows),
    ]
    table = build_table(records, [65, 66], 10)
    a, b = table.entries
    assert a.glyph_index == b.glyph_index == 0
    assert (a.advance, a.bbox.x_offset, a.bbox.y_offset) == (4, 0, 5)
    assert (b.advance, b.bbox.x_offset, b.bbox.y_offset) == (6, 2, -1)
    print("PASS: test_dedup_keeps_per_glyph_metrics")


def test_same_bytes_different_shape_not_shared():
    """Equal bytes with different width/height are different bitmaps."""
    records = [
        GlyphRecord(65, 8, 2, 0, 0, 8, (b"\xff", b"\xff")),
        GlyphRecord(66, 16, 1, 0, 0, 16, (b"\xff\xff",)),
    ]
    table = build_table(records, [65, 66], 10)
    assert len(table.bitmaps) == 2
    print("PASS: test_same_bytes_different_shape_not_shared")


def test_indices_deterministic():
    """Glyph indices follow codepoint order regardless of input order."""
    forward = build_table(parse_glyphs(full_bdf()), DIGITS, 30)
    records = parse_glyphs(full_bdf())
    records.reverse()
    backward = build_table(records, list(reversed(DIGITS)), 30)
    assert forward == backward
    assert [e.glyph_index for e in forward.entries] == list(range(10))
    print("PASS: test_indices_deterministic")


def test_missing_glyphs_fail():
    """Requested characters absent from the font are never dropped silently."""
    try:
        build_table(parse_glyphs(digits_bdf()), [ord(c) for c in "01xy"], 30)
        assert False, "expected MissingGlyphError"
    except MissingGlyphError as e:
        assert e.codepoints == (ord("x"), ord("y"))
    print("PASS: test_missing_glyphs_fail")


def test_allow_missing():
    """With allow_missing the table is built and the gap is reported."""
    builder = GlyphTableBuilder(30, allow_missing=True)
    table = builder.build(parse_glyphs(digits_bdf()), [ord(c) for c in "01x"])
    assert table.codepoints == [48, 49]
    assert builder.stats.missing == [ord("x")]
    print("PASS: test_allow_missing")


def test_empty_charset():
    """An empty character set cannot build a table."""
    try:
        build_table(parse_glyphs(digits_bdf()), [], 30)
        assert False, "expected BuildError"
    except BuildError as e:
        assert "empty character set" in str(e)
    print("PASS: test_empty_charset")


def test_zero_glyphs():
    """Nothing rasterized is a build failure, even with allow_missing."""
    for allow in (False, True):
        try:
            build_table([], [65, 66], 30, allow_missing=allow)
            assert False, "expected BuildError"
        except BuildError as e:
            assert "none of the 2" in str(e)
            assert "U+0041 'A', U+0042 'B'" in str(e)
            assert not isinstance(e, MissingGlyphError)
    print("PASS: test_zero_glyphs")


def test_no_requested_glyph_in_font():
    """A font lacking every requested character names each one."""
    try:
        build_table(parse_glyphs(digits_bdf()), [ord("A"), ord("B")], 30)
        assert False, "expected MissingGlyphError"
    except MissingGlyphError as e:
        assert e.codepoints == (ord("A"), ord("B"))
        assert "U+0041 'A'" in str(e)

    # Allowed to leave them out, there is nothing left to build
    try:
        build_table(parse_glyphs(digits_bdf()), [ord("A")], 30, allow_missing=True)
        assert False, "expected BuildError"
    except BuildError as e:
        assert not isinstance(e, MissingGlyphError)
        assert "U+0041 'A'" in str(e)
    print("PASS: test_no_requested_glyph_in_font")


def test_duplicate_records_are_internal():
    """Duplicate codepoints after parsing are reported as a parser fault."""
    records = [
        GlyphRecord(65, 1, 1, 0, 0, 2, (b"\x80",), line=10),
        GlyphRecord(65, 1, 1, 0, 0, 2, (b"\x00",), line=20),
    ]
    try:
        build_table(records, [65], 10)
        assert False, "expected InconsistencyError"
    except InconsistencyError as e:
        assert isinstance(e, BuildError)
        assert "internal inconsistency" in str(e)
        assert "lines 10 and 20" in str(e)
    print("PASS: test_duplicate_records_are_internal")


def run_all_tests():
    """Run all builder tests."""
    tests = [
        test_one_entry_per_codepoint_sorted,
        test_digit_scenario_metrics,
        test_descent_from_glyph_below_baseline,
        test_dedup_shares_index,
        test_dedup_keeps_per_glyph_metrics,
        test_same_bytes_different_shape_not_shared,
        test_indices_deterministic,
        test_missing_glyphs_fail,
        test_allow_missing,
        test_empty_charset,
        test_zero_glyphs,
        test_no_requested_glyph_in_font,
        test_duplicate_records_are_internal,
    ]

    passed = 0
    failed = 0

    print("=" * 50)
    print("fontbake Builder Tests")
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
