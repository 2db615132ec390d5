"""Conditional-request validators.

A ``Validator`` is computed from ``os.stat`` at read time and compared
against ``If-None-Match`` / ``If-Modified-Since``.  Nothing is stored
between requests, so concurrent requests for one file need no locking.
"""

import hashlib
import os
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime

from esdev.http.headers import Headers
from esdev.http.response import Response


@dataclass(frozen=True, slots=True)
class Validator:
    """Cache validator for one file at one point in time.

    ``last_modified`` is whole seconds since the epoch; HTTP dates carry no
    finer resolution, so comparisons are made at that granularity.  It is
    ``None`` for transformed output, which only the ETag can validate.
    """

    last_modified: int | None
    etag: str

    @property
    def last_modified_header(self) -> str | None:
        if self.last_modified is None:
            return None
        return format_http_date(self.last_modified)

    def with_content(self, body: bytes) -> "Validator":
        """Return a validator whose ETag identifies *body* exactly.

        Used for transformed output, where the bytes on the wire can change
        while the source file's timestamp does not, so the timestamp is
        dropped.
        """
        digest = hashlib.sha1(body, usedforsecurity=False).hexdigest()[:16]
        return replace(self, last_modified=None, etag=f'"{digest}"')

    def apply(self, response: Response) -> Response:
        """Attach ``Last-Modified`` (when known) and ``ETag`` to *response*."""
        last_modified = self.last_modified_header
        if last_modified is not None:
            response = response.with_header("Last-Modified", last_modified)
        return response.with_header("ETag", self.etag)


def compute_validator(stat: os.stat_result) -> Validator:
    """Build a validator from a stat result (mtime + size)."""
    etag = f'W/"{stat.st_mtime_ns:x}-{stat.st_size:x}"'
    return Validator(last_modified=int(stat.st_mtime), etag=etag)


def format_http_date(timestamp: float) -> str:
    """Format a POSIX timestamp as an IMF-fixdate (RFC 9110)."""
    return format_datetime(datetime.fromtimestamp(int(timestamp), tz=UTC), usegmt=True)


def parse_http_date(value: str) -> int | None:
    """Parse an HTTP date into whole seconds, or ``None`` if malformed."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def _opaque(tag: str) -> str:
    """Strip the weak prefix for weak comparison (RFC 9110 §8.8.3.2)."""
    return tag[2:] if tag.startswith("W/") else tag


def is_not_modified(headers: Headers, validator: Validator) -> bool:
    """Decide whether a conditional request can be answered with 304.

    ``If-None-Match`` takes precedence; ``If-Modified-Since`` is only
    consulted when no entity tags were sent.
    """
    if_none_match = headers.get("if-none-match")
    if if_none_match is not None:
        tags = [tag.strip() for tag in if_none_match.split(",") if tag.strip()]
        if "*" in tags:
            return True
        current = _opaque(validator.etag)
        return any(_opaque(tag) == current for tag in tags)

    if_modified_since = headers.get("if-modified-since")
    if if_modified_since is not None:
        since = parse_http_date(if_modified_since)
        return since is not None and since == validator.last_modified

    return False
