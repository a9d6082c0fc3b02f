"""Short, stable identifiers derived from free-text region labels."""

import re

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def derive_code(label: str) -> str:
    """Derive a URL-safe code from a region label.

    "St. Louis" -> "st-louis". Labels that differ only in punctuation
    produce the same code.
    """
    return _NON_ALPHANUMERIC.sub("-", label.lower()).strip("-")
