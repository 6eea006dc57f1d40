from __future__ import annotations

import re

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """
    "Acme & Co." -> "acme-co". Runs of anything outside [a-z0-9] collapse to one
    hyphen; leading/trailing hyphens are dropped.
    """
    return _NON_SLUG.sub("-", (name or "").lower()).strip("-")


def contains_pattern(q: str) -> str:
    """LIKE pattern for a case-insensitive substring match, escaping wildcards with backslash."""
    escaped = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
