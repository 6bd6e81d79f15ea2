"""fontbake - build-time conversion of outline fonts into bitmap glyph tables."""

from .model import ConversionRequest, FontBakeError, GlyphTable
from .pipeline import convert, convert_bdf, convert_many

__version__ = "0.1.0"
