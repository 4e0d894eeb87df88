# app/services/sku.py
import random
import re

from app.core.errors import ConflictError

# Product-name prefix is cut to this many characters before cleaning
NAME_PREFIX_LENGTH = 20
SEPARATOR = "-"
FALLBACK_SEGMENT = "ITEM"
MAX_SUFFIX_ATTEMPTS = 20


def _segment(raw: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", raw.upper())


def generate_sku(product_name: str, color_code: str, size: str | None = None) -> str:
    """
    Build a stock-keeping unit code.

        generate_sku("Classic Cotton T-Shirt", "NAVY")       -> "CLASSICCOTTONTSHI-NAVY"
        generate_sku("Classic Cotton T-Shirt", "NAVY", "M")  -> "CLASSICCOTTONTSHI-NAVY-M"

    Deterministic for identical inputs. Segments are uppercased and
    stripped of non-alphanumerics; an empty segment falls back to "ITEM"
    so no SKU ever contains an empty part.
    """
    parts = [
        _segment(product_name[:NAME_PREFIX_LENGTH]) or FALLBACK_SEGMENT,
        _segment(color_code) or FALLBACK_SEGMENT,
    ]
    if size:
        parts.append(_segment(size) or FALLBACK_SEGMENT)
    return SEPARATOR.join(parts)


def unique_sku(candidate: str, taken: set[str]) -> str:
    """
    Return `candidate`, or `candidate-NNN` with a random 3-digit suffix when
    the candidate is already in `taken`.

    Raises:
        ConflictError: if no free suffix is found after MAX_SUFFIX_ATTEMPTS.
    """
    if candidate not in taken:
        return candidate
    for _ in range(MAX_SUFFIX_ATTEMPTS):
        suffixed = f"{candidate}{SEPARATOR}{random.randint(0, 999):03d}"
        if suffixed not in taken:
            return suffixed
    raise ConflictError("Could not generate a unique SKU", sku=candidate)
