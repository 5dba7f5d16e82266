"""
URL slug helpers
"""

import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase ASCII slug with ``-`` as the only separator"""
    normalized = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("-", normalized.lower()).strip("-")


def property_slug(title: str, reference_number: Optional[str] = None) -> str:
    base = slugify(f"{title} {reference_number or ''}")
    return base or "property"


def candidate_slug(base: str, suffix: int) -> str:
    """``base`` for suffix 0, otherwise ``base-<suffix>``"""
    return base if suffix == 0 else f"{base}-{suffix}"


def next_free_suffix(base: str, taken: set) -> int:
    """Lowest suffix whose candidate slug is not in ``taken``"""
    suffix = 0
    while candidate_slug(base, suffix) in taken:
        suffix += 1
    return suffix
