"""
fontbake BDF Lexer - Splits BDF text into keyword lines.

BDF is line oriented: every line is a keyword followed by
whitespace-separated arguments. Bitmap rows are bare hex strings and come
through as a keyword with no arguments; the parser knows when to expect them.
"""

from dataclasses import dataclass


@dataclass
class Line:
    """A single non-blank line of BDF text."""
    keyword: str
    args: list[str]
    line: int
    text: str

    def __repr__(self) -> str:
        return f"Line({self.keyword}, {self.args!r}, {self.line})"


class Lexer:
    """Tokenizes BDF text into Line records."""

    def __init__(self, source: str, filename: str = "<bdf>"):
        self.source = source
        self.filename = filename
        self.lines: list[Line] = []

    def tokenize(self) -> list[Line]:
        """Tokenize the entire source."""
        for number, raw in enumerate(self.source.splitlines(), start=1):
            text = raw.strip()
            if not text:
                continue
            keyword, *args = text.split()
            # COMMENT payloads are free text, never fields
            if keyword == "COMMENT":
                continue
            self.lines.append(Line(keyword, args, number, text))
        return self.lines


def tokenize(source: str, filename: str = "<bdf>") -> list[Line]:
    """Convenience function to tokenize BDF text."""
    lexer = Lexer(source, filename)
    return lexer.tokenize()
