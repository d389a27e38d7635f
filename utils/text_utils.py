"""
Text utilities for comparing spreadsheet headers.

Headers come from arbitrary user files: mixed case, stray punctuation,
non-breaking spaces, and non-Latin scripts (Cyrillic is common).
"""

import re
import unicodedata
from typing import Optional

NBSP = "\u00a0"

_SEPARATORS = re.compile(r"[_-]+")
_WHITESPACE = re.compile(r"\s+")


def _is_kept(char: str) -> bool:
    """Letters (any script), decimal digits and whitespace survive."""
    if char.isspace():
        return True
    category = unicodedata.category(char)
    return category.startswith("L") or category == "Nd"


def normalize_header(raw: Optional[str]) -> str:
    """
    Canonicalize a header for comparison.

    - "  Product_Images " → "product images"
    - "Bullet-Point #1" → "bullet point 1"
    - "Заголовок товара" → "заголовок товара"

    Args:
        raw: Header text as read from the sheet (None is treated as empty)

    Returns:
        Lowercase text containing only letters, digits and single spaces
    """
    if raw is None:
        return ""

    text = str(raw).strip().lower()
    text = text.replace(NBSP, " ")
    text = _SEPARATORS.sub(" ", text)
    text = "".join(c for c in text if _is_kept(c))
    text = _WHITESPACE.sub(" ", text)

    return text.strip()


def column_letter(index: int) -> str:
    """
    Excel column letter for a 0-based index.

    0 → "A", 25 → "Z", 26 → "AA", 701 → "ZZ"
    """
    letters = ""
    n = index + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters
