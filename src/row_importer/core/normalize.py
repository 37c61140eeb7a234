"""Column name and value normalisation.

Header matching is case, accent and whitespace insensitive by default:
``"Intitulé Produit"`` matches the field ``"intituleproduit"``.
"""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[\s\W]+")


def translate_ascii(text: str) -> str:
    """Drop diacritics and any character without an ASCII equivalent."""
    decomposed = unicodedata.normalize("NFKD", text)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def comparable_name(name: str) -> str:
    """Key used to compare two column names loosely."""
    return _WHITESPACE.sub("", translate_ascii(name)).casefold()


def compare_ws_accents(s1: str, s2: str) -> bool:
    """True when both strings are equal once accents, case and whitespace are ignored."""
    return comparable_name(s1) == comparable_name(s2)


def derive_short_name(text: str) -> str:
    """Upper-cased identifier built from a label ("Arthro Chir." -> "ARTHROCHIR")."""
    return _NON_WORD.sub("", text).upper()
