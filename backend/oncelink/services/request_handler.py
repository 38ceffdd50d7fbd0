from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oncelink.config import Settings
from oncelink.errors import (
    DuplicateSecretId,
    InvalidRequest,
    PayloadTooLarge,
    SecretNotFound,
    StorageFault,
)
from oncelink.services.identifiers import generate_secret_id
from oncelink.services.rate_limiter import admit_request
from oncelink.services.secret_store import purge_expired_secrets, put_secret, take_secret

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Everything the handler needs to know about one inbound request."""

    method: str
    client_identity: str
    ciphertext: str | None = None
    # Set when the body was too large to read; counts as an oversized ciphertext.
    payload_too_large: bool = False
    secret_id: str | None = None


def handle_request(
    db: Session,
    context: RequestContext,
    now: datetime,
    settings: Settings,
    generate_id: Callable[[], str] = generate_secret_id,
) -> dict:
    """
    Run one request through the create/reveal protocol.

    Checks happen in a fixed order: rate limit, payload size, then routing.
    Returns the JSON body for a successful response; every failure is raised
    as an OnceLinkError subclass.
    """
    try:
        purge_expired_secrets(db, now, timedelta(seconds=settings.data_storage_time))
        admit_request(
            db,
            context.client_identity,
            now,
            max_requests=settings.max_requests,
            window=timedelta(seconds=settings.time_window),
        )

        if context.method == "POST":
            if context.payload_too_large or (
                context.ciphertext is not None
                and len(context.ciphertext.encode("utf-8")) > settings.max_payload
            ):
                raise PayloadTooLarge()

        if context.method == "POST" and context.ciphertext:
            return {"id": create_secret(db, context.ciphertext, now, generate_id)}

        # An empty id is looked up like any other and answers 404.
        if context.method == "GET" and context.secret_id is not None:
            return {"data": reveal_secret(db, context.secret_id)}
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("storage_fault", error=str(e), exc_info=True)
        raise StorageFault() from e

    raise InvalidRequest()


def create_secret(
    db: Session,
    ciphertext: str,
    now: datetime,
    generate_id: Callable[[], str] = generate_secret_id,
) -> str:
    """
    Store a ciphertext under a freshly generated id and return the id.

    A collision is retried once with a new id; a second one is treated as a
    storage fault.
    """
    for attempt in range(2):
        secret_id = generate_id()
        try:
            put_secret(db, secret_id, ciphertext, now)
        except DuplicateSecretId:
            logger.warning("secret_id_collision", attempt=attempt + 1)
            continue
        logger.info("secret_created", ciphertext_size=len(ciphertext))
        return secret_id

    raise StorageFault()


def reveal_secret(db: Session, secret_id: str) -> str:
    """Return the ciphertext for ``secret_id`` and delete it permanently."""
    ciphertext = take_secret(db, secret_id)
    if ciphertext is None:
        logger.info("secret_not_found")
        raise SecretNotFound()
    logger.info("secret_revealed")
    return ciphertext
