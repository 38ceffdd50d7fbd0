"""
Per-client request limiting backed by the ``request_log`` table.

Every admitted request appends one row; a client is refused once it has
``max_requests`` rows newer than the window. Refused requests are not logged,
so they never extend a client's lockout.
"""

from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from oncelink.errors import RateLimited
from oncelink.models.request_log import RequestLogEntry

logger = structlog.get_logger()


def purge_stale_requests(db: Session, now: datetime, window: timedelta) -> int:
    """Delete log entries older than the window. Returns the count of deleted rows."""
    result = db.execute(
        delete(RequestLogEntry)
        .where(RequestLogEntry.ts < now - window)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def count_recent_requests(
    db: Session, client_identity: str, now: datetime, window: timedelta
) -> int:
    return db.scalar(
        select(func.count())
        .select_from(RequestLogEntry)
        .where(
            RequestLogEntry.client_identity == client_identity,
            RequestLogEntry.ts >= now - window,
        )
    )


def record_request(db: Session, client_identity: str, now: datetime) -> None:
    db.add(RequestLogEntry(client_identity=client_identity, ts=now))
    db.commit()


def admit_request(
    db: Session,
    client_identity: str,
    now: datetime,
    max_requests: int,
    window: timedelta,
) -> None:
    """
    Count the request against the client's quota.

    Raises RateLimited (without recording anything) when the client already
    made ``max_requests`` requests within the window.
    """
    purge_stale_requests(db, now, window)

    if count_recent_requests(db, client_identity, now, window) >= max_requests:
        logger.warning("request_rate_limited", max_requests=max_requests)
        raise RateLimited()

    record_request(db, client_identity, now)
