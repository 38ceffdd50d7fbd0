from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oncelink.errors import DuplicateSecretId
from oncelink.models.secret import Secret

logger = structlog.get_logger()


def put_secret(db: Session, secret_id: str, ciphertext: str, created_at: datetime) -> None:
    """
    Insert a new secret as a single row write.

    Raises DuplicateSecretId if a row with the same id already exists; the
    transaction is rolled back and nothing is written.
    """
    try:
        db.execute(
            insert(Secret).values(id=secret_id, ciphertext=ciphertext, created_at=created_at)
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateSecretId(secret_id) from e


def take_secret(db: Session, secret_id: str) -> str | None:
    """
    Atomically remove a secret and return its ciphertext.

    This is a ONE-TIME operation. The row is deleted and committed before the
    ciphertext is handed back, and only the caller whose delete actually
    removed the row gets it. Concurrent callers racing on the same id see
    None.
    """
    if db.get_bind().dialect.delete_returning:
        result = db.execute(
            delete(Secret)
            .where(Secret.id == secret_id)
            .returning(Secret.ciphertext)
            .execution_options(synchronize_session=False)
        )
        ciphertext = result.scalar_one_or_none()
        db.commit()
        return ciphertext

    # No DELETE ... RETURNING: read first, then only the caller whose
    # conditional delete removed the row may return it.
    ciphertext = db.scalar(select(Secret.ciphertext).where(Secret.id == secret_id))
    if ciphertext is None:
        db.rollback()
        return None
    result = db.execute(
        delete(Secret)
        .where(Secret.id == secret_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return None
    return ciphertext


def purge_expired_secrets(db: Session, now: datetime, retention: timedelta) -> int:
    """
    Delete every secret created before ``now - retention``.

    Returns the count of deleted rows.
    """
    result = db.execute(
        delete(Secret)
        .where(Secret.created_at < now - retention)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        logger.info("expired_secrets_purged", count=result.rowcount)
    return result.rowcount
