"""Name normalisation helpers used for product and category identity."""

import re
from typing import Optional

_NON_ALNUM_SPACE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Fuzzy matching key for a product name.

    Lowercases, drops everything except ASCII letters, digits and
    whitespace, collapses whitespace runs and trims. Idempotent.

    >>> normalize_name("  Organic  Bananas, 1.5 LB! ")
    'organic bananas 15 lb'
    """
    if name is None:
        return None
    text = _NON_ALNUM_SPACE.sub("", name.lower())
    return _WHITESPACE.sub(" ", text).strip()


def slugify(text: Optional[str]) -> str:
    """Lowercase, turn non-alphanumeric runs into one hyphen, trim edge hyphens.

    >>> slugify("Dairy & Eggs")
    'dairy-eggs'
    """
    if not text:
        return ""
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def calculate_similarity(name1: Optional[str], name2: Optional[str]) -> float:
    """Jaccard similarity of the word sets of two normalized names.

    Returns 1.0 when the normalized names are identical and 0.0 when either
    name is missing or the word sets share nothing. Diagnostic only; product
    resolution matches on exact normalized names.
    """
    if name1 is None or name2 is None:
        return 0.0

    norm1 = normalize_name(name1)
    norm2 = normalize_name(name2)
    if norm1 == norm2:
        return 1.0

    words1 = set(norm1.split())
    words2 = set(norm2.split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)
