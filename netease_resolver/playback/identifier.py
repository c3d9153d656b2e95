"""
Track identifier extraction from share/web URLs.
"""

import re
from urllib.parse import parse_qs, urlparse

from netease_resolver.errors import InvalidUrl

from .types import TrackKind, TrackRef

VENDOR_HOST = "music.163.com"

# Substring heuristic: program pages are "/program?id=..." or "/dj/program?id=..."
PROGRAM_MARKER = "program"

MAX_TRACK_ID = 2**64 - 1

_DIGITS = re.compile(r"[0-9]+")


def is_vendor_url(url: str) -> bool:
    """Check whether a URL belongs to this resolver rather than the generic path."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return False
    return host == VENDOR_HOST or host.endswith("." + VENDOR_HOST)


def parse_track_id(url: str) -> int:
    """
    Extract the numeric ``id`` query parameter from a vendor URL.

    The web player keeps its route in the fragment (``/#/song?id=...``), so the
    ``/#`` marker is removed first to expose the query to the URL parser.

    Args:
        url: Song or program URL

    Returns:
        Track id as an unsigned 64-bit integer

    Raises:
        InvalidUrl: URL unparsable, no ``id`` parameter, or not a valid id
    """
    cleaned = url.strip().replace("/#", "")
    try:
        parsed = urlparse(cleaned)
    except ValueError as e:
        raise InvalidUrl(f"Cannot parse URL: {e}", url) from e

    if not parsed.scheme or not parsed.netloc:
        raise InvalidUrl(f"Not an absolute URL: {url}", url)
    if not parsed.query:
        raise InvalidUrl(f"URL has no query: {url}", url)

    values = parse_qs(parsed.query, keep_blank_values=True).get("id")
    if not values:
        raise InvalidUrl(f"URL has no id parameter: {url}", url)

    raw = values[0]
    if not _DIGITS.fullmatch(raw):
        raise InvalidUrl(f"Invalid track id {raw!r} in {url}", url)

    track_id = int(raw)
    if track_id > MAX_TRACK_ID:
        raise InvalidUrl(f"Track id out of range in {url}", url)
    return track_id


def parse_track_url(url: str) -> TrackRef:
    """
    Parse a vendor URL into a typed reference.

    Program detection is a plain substring check on the URL.

    Raises:
        InvalidUrl: See parse_track_id
    """
    track_id = parse_track_id(url)
    kind = TrackKind.PROGRAM if PROGRAM_MARKER in url else TrackKind.STANDALONE
    return TrackRef(kind=kind, track_id=track_id)
