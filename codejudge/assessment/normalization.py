"""
Output normalization rules.

Program output is canonicalized before comparison so that incidental
whitespace (trailing newline, doubled spaces, CRLF line endings) does not
fail a correct solution. Case, line order and punctuation are never touched.
"""

import re

_HORIZONTAL_WS = re.compile(r"[ \t]+")


def normalize_line_endings(text: str) -> str:
    """CRLF and lone CR become LF"""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def collapse_horizontal_whitespace(line: str) -> str:
    return _HORIZONTAL_WS.sub(" ", line)


def trim_lines(text: str) -> str:
    """Trim every line, then the text as a whole. Internal blank lines stay."""
    return "\n".join(line.strip() for line in text.split("\n")).strip()


def normalize(text: str) -> str:
    """Canonical form used on both sides of every comparison.

    Idempotent: normalize(normalize(x)) == normalize(x).
    """
    text = normalize_line_endings(text)
    text = "\n".join(collapse_horizontal_whitespace(line) for line in text.split("\n"))
    return trim_lines(text)
