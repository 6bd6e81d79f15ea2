"""
fontbake Pipeline

One forward pass per request: rasterize -> parse -> build -> encode.
Any stage failure aborts the pass; nothing partial is returned.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Iterable

from .bdf_parser import parse_glyphs
from .builder import BuildError, BuildStats, build_table
from .encoder import encode
from .model import ConversionRequest, GlyphTable
from .rasterizer import Otf2BdfRasterizer


@dataclass
class ConversionResult:
    """Everything one pass produced."""
    request: ConversionRequest
    table: GlyphTable
    data: bytes
    bdf: str
    stats: BuildStats

    @property
    def missing(self) -> list[int]:
        return self.stats.missing


def convert_bdf(bdf: str, request: ConversionRequest, allow_missing: bool = False,
                filename: str = "<bdf>") -> ConversionResult:
    """Run the pass on BDF text that is already available."""
    records = parse_glyphs(bdf, filename)
    stats = BuildStats()
    table = build_table(records, request.charset, request.pixel_size, allow_missing, stats)
    return ConversionResult(request, table, encode(table), bdf, stats)


def convert(request: ConversionRequest, rasterizer=None,
            allow_missing: bool = False) -> ConversionResult:
    """Convert one font request to an encoded glyph table."""
    if not request.charset:
        raise BuildError("empty character set")
    if rasterizer is None:
        rasterizer = Otf2BdfRasterizer()
    bdf = rasterizer.rasterize(request)
    return convert_bdf(bdf, request, allow_missing, filename=str(request.font_path))


def convert_many(requests: Iterable[ConversionRequest], rasterizer=None,
                 allow_missing: bool = False, jobs: int = 1) -> list[ConversionResult]:
    """
    Convert independent requests, in worker processes when jobs > 1.

    Results come back in request order. The first failure propagates.
    """
    requests = list(requests)
    if jobs <= 1 or len(requests) <= 1:
        return [convert(r, rasterizer, allow_missing) for r in requests]

    with ProcessPoolExecutor(max_workers=min(jobs, len(requests))) as pool:
        futures = [pool.submit(convert, r, rasterizer, allow_missing) for r in requests]
        return [f.result() for f in futures]
