"""Text helpers for names derived from user input (repository names, paths)."""

import re
import unicodedata

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(value: str | None, fallback: str = "untitled") -> str:
    """Lowercase ASCII slug: runs of other characters become single hyphens.

    >>> slugify("Invoice Approval (v2)")
    'invoice-approval-v2'
    """
    normalized = unicodedata.normalize("NFKD", value or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = _NON_SLUG.sub("-", ascii_text).strip("-")
    return slug or fallback
