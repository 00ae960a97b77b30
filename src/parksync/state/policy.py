"""Acceptance policy for incoming feature updates.

The default is last-delivered-wins: the change feed gives no ordering
guarantee across events, so a late, older event overwrites a newer one.
Enabling ``reject_stale`` compares commit timestamps per space instead.
"""

from __future__ import annotations

from datetime import datetime


def should_accept_update(
    *,
    cached_timestamp: datetime | None,
    incoming_timestamp: datetime | None,
    reject_stale: bool,
) -> bool:
    """Decide whether an incoming update should replace the stored feature.

    Policy:
    - ``reject_stale`` off: always accept.
    - Either timestamp missing: accept (snapshot rows carry none).
    - Otherwise accept unless incoming is strictly older.
    """
    if not reject_stale:
        return True
    if cached_timestamp is None or incoming_timestamp is None:
        return True
    return incoming_timestamp >= cached_timestamp
