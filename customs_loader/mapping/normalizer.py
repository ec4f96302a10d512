from __future__ import annotations

import re
import unicodedata
from typing import Any

"""Header normalization.

normalize_header() turns a human-authored header or a database column name
into the comparison key used by every matching strategy. It is pure and
idempotent, so it can be applied both to the static manual dictionary and to
runtime headers.
"""

__all__ = [
    "SEPARATOR",
    "normalize_header",
    "strip_diacritics",
    "tokenize",
]

SEPARATOR = "_"
_NON_ALNUM = re.compile(r"[\W_]+")


def strip_diacritics(value: str) -> str:
    """NFD-decompose and drop combining marks ('Código' -> 'Codigo')."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_header(raw: Any) -> str | None:
    """Canonicalize a header into ``lower_snake`` form.

    >>> normalize_header("  Value (USD) ")
    'value_usd'
    >>> normalize_header("Código del país de destino.")
    'codigo_del_pais_de_destino'
    >>> normalize_header("") is None
    True
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    text = strip_diacritics(text.casefold())
    text = _NON_ALNUM.sub(SEPARATOR, text).strip(SEPARATOR)
    return text or None


def tokenize(normalized: str | None) -> list[str]:
    if not normalized:
        return []
    return [t for t in normalized.split(SEPARATOR) if t]
