"""
Utility functions for remotefs
"""

import time
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_HALF_UP
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import quote
import logging

from .models import SIZE_SUFFIXES, DEFAULT_MIME_TYPE

logger = logging.getLogger(__name__)


def format_size(value: int, decimal_places: int = 1) -> str:
    """
    Format a byte count as a human readable string, e.g. ``"2.0 KB"``

    Args:
        value: Byte count, may be negative
        decimal_places: Digits after the decimal point

    Returns:
        ``"<scaled> <suffix>"`` with suffixes bytes, KB, MB ... YB

    Raises:
        ValueError: If the value is beyond the YB range
    """
    if value < 0:
        return "-" + format_size(-value, decimal_places)
    if value == 0:
        return "0.0 bytes"

    # floor(log1024(value)), exact for any int
    mag = (value.bit_length() - 1) // 10
    adjusted = Decimal(value) / Decimal(1 << (mag * 10))

    # Rounding up to 1000 carries into the next unit (999.96 KB -> 1.0 MB)
    quantum = Decimal(1).scaleb(-decimal_places)
    if adjusted < 1000 and adjusted.quantize(quantum, rounding=ROUND_HALF_EVEN) >= 1000:
        mag += 1
        adjusted /= 1024

    if mag >= len(SIZE_SUFFIXES):
        raise ValueError(f"Size out of range: {value}")

    return f"{adjusted.quantize(quantum, rounding=ROUND_HALF_UP)} {SIZE_SUFFIXES[mag]}"


def normalize_path(path: str) -> str:
    """Normalize path separators for cross-platform compatibility"""
    return path.replace('\\', '/')


def join_segments(*segments: Optional[str]) -> str:
    """Join path segments with '/', skipping empty or missing ones"""
    parts = (normalize_path(str(s)).strip('/') for s in segments if s)
    return '/'.join(p for p in parts if p)


def upload_filename(filename: Optional[str]) -> str:
    """
    Name an uploaded file is stored under

    Any directory part sent by the client is dropped and spaces are
    replaced with underscores so the name stays URL friendly.
    """
    name = PurePosixPath(normalize_path(filename or "")).name
    if name in ("", ".", ".."):
        name = "unnamed"
    return name.replace(' ', '_')


def content_disposition(filename: str) -> str:
    """Build an attachment Content-Disposition value for filename"""
    fallback_name = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in {'"', '\\'} else "_"
        for ch in filename
    ) or "download"

    if fallback_name == filename:
        return f'attachment; filename="{filename}"'

    return (
        f"attachment; filename=\"{fallback_name}\"; filename*=UTF-8''{quote(filename, safe='')}"
    )


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable string"""
    if seconds < 1:
        return f"{seconds*1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m{secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h{minutes}m"


def create_response_headers(
    content_length: Optional[int] = None,
    content_type: str = DEFAULT_MIME_TYPE,
    last_modified: Optional[float] = None,
    cache_control: str = "no-cache"
) -> dict:
    """Create standard response headers"""
    headers = {
        "Content-Type": content_type,
        "Cache-Control": cache_control,
        "X-Content-Type-Options": "nosniff",
    }

    if content_length is not None:
        headers["Content-Length"] = str(content_length)

    if last_modified:
        headers["Last-Modified"] = time.strftime(
            "%a, %d %b %Y %H:%M:%S GMT",
            time.gmtime(last_modified)
        )

    return headers
