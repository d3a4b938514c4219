"""Shared utility helpers (datetime, ids, text)."""

from flowspec.shared.utils.datetime import ensure_utc, utc_now
from flowspec.shared.utils.ids import generate_cuid, idempotency_key
from flowspec.shared.utils.text import slugify

__all__ = ["ensure_utc", "generate_cuid", "idempotency_key", "slugify", "utc_now"]
