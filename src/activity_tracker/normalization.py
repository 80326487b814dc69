"""Utilities to normalize URLs and rule values."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

_SCHEME_SEPARATOR = "://"


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Return the hostname of ``url``, or ``None`` when none can be parsed.

    Browser captures sometimes omit the scheme, so bare ``example.com/path``
    values are parsed as if they were ``http://`` URLs.
    """
    if not url:
        return None
    candidate = url.strip()
    if not candidate:
        return None
    if _SCHEME_SEPARATOR not in candidate:
        candidate = f"http://{candidate}"
    try:
        hostname = urlsplit(candidate).hostname
    except ValueError:
        return None
    return hostname or None


_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


def parse_int_prefix(value: Optional[str]) -> Optional[int]:
    """Parse the leading integer of ``value``; ``"300s"`` gives ``300``."""
    if value is None:
        return None
    match = _INT_PREFIX.match(value)
    if match is None:
        return None
    return int(match.group(1))
