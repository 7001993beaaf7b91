from __future__ import annotations

from typing import Iterable


def dedupe_tags(tags: Iterable[str]) -> list[str]:
    # First occurrence wins so the stored order follows the input.
    return list(dict.fromkeys(tags))


def clean_tags(tags: Iterable[str]) -> list[str]:
    parts = [tag.strip() for tag in tags if tag.strip()]
    return dedupe_tags(parts)
