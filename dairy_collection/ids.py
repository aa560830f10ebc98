"""Locally generated record identifiers."""

from __future__ import annotations

from datetime import datetime

from .const import ID_PREFIX


def generate_id(now: datetime | None = None) -> str:
    """Return ``BUID`` followed by the local time down to the millisecond.

    Two calls inside the same millisecond produce the same identifier. Manual
    data entry cannot reach that rate, so no counter or random suffix is added.
    """

    now = now or datetime.now()
    return f"{ID_PREFIX}{now:%Y%m%d%H%M%S}{now.microsecond // 1000:03d}"
