"""Slug helpers for catalog records."""
from __future__ import annotations

import re
import unicodedata
from typing import Callable

_NON_WORD = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Return a lowercase ASCII slug, ``"item"`` when nothing survives."""

    normalized = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode()
    slug = _NON_WORD.sub("-", normalized.lower()).strip("-")
    return slug or "item"


def unique_slug(base: str, exists: Callable[[str], bool]) -> str:
    """Return ``base`` or the first free ``base-1``, ``base-2``... variant."""

    candidate = base
    suffix = 0
    while exists(candidate):
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


__all__ = ["slugify", "unique_slug"]
