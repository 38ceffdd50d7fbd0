"""Tests for the read-once secret store."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from oncelink.database import Base, make_engine, make_session_factory
from oncelink.errors import DuplicateSecretId
from oncelink.models.secret import Secret
from oncelink.services.secret_store import purge_expired_secrets, put_secret, take_secret
from tests.test_utils import utcnow

RETENTION = timedelta(hours=24)


def secret_count(db) -> int:
    return db.scalar(select(func.count()).select_from(Secret))


class TestPutSecret:
    def test_put_then_take_returns_exact_ciphertext(self, db_session):
        ciphertext = "q83vEjRWeJq83vEjRWeJq83vEjRWeJ+/=="
        put_secret(db_session, "abc", ciphertext, utcnow())

        assert take_secret(db_session, "abc") == ciphertext

    def test_duplicate_id_rejected(self, db_session):
        """A second insert with the same id fails and leaves the first row intact."""
        put_secret(db_session, "abc", "first", utcnow())

        with pytest.raises(DuplicateSecretId):
            put_secret(db_session, "abc", "second", utcnow())

        assert secret_count(db_session) == 1
        assert take_secret(db_session, "abc") == "first"

    def test_session_usable_after_duplicate(self, db_session):
        put_secret(db_session, "abc", "first", utcnow())
        with pytest.raises(DuplicateSecretId):
            put_secret(db_session, "abc", "second", utcnow())

        put_secret(db_session, "def", "third", utcnow())
        assert secret_count(db_session) == 2


class TestTakeSecret:
    def test_second_take_returns_none(self, db_session):
        put_secret(db_session, "abc", "payload", utcnow())

        assert take_secret(db_session, "abc") == "payload"
        assert take_secret(db_session, "abc") is None
        assert secret_count(db_session) == 0

    def test_unknown_id_returns_none(self, db_session):
        assert take_secret(db_session, "nonexistent") is None

    def test_take_only_removes_matching_row(self, db_session):
        put_secret(db_session, "abc", "one", utcnow())
        put_secret(db_session, "def", "two", utcnow())

        take_secret(db_session, "abc")

        assert secret_count(db_session) == 1
        assert take_secret(db_session, "def") == "two"

    def test_without_delete_returning(self, db_session, monkeypatch):
        """Dialects without RETURNING fall back to read plus conditional delete."""
        dialect = db_session.get_bind().dialect
        monkeypatch.setattr(dialect, "delete_returning", False)

        put_secret(db_session, "abc", "payload", utcnow())

        assert take_secret(db_session, "abc") == "payload"
        assert take_secret(db_session, "abc") is None
        assert take_secret(db_session, "nonexistent") is None


class TestConcurrentTake:
    """Racing reveals on one id must produce exactly one winner."""

    @pytest.fixture
    def session_factory(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
        Base.metadata.create_all(bind=engine)
        try:
            yield make_session_factory(engine)
        finally:
            engine.dispose()

    def race(self, session_factory, workers: int) -> list[str | None]:
        barrier = threading.Barrier(workers)

        def reveal() -> str | None:
            db = session_factory()
            try:
                barrier.wait()
                return take_secret(db, "contested")
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(reveal) for _ in range(workers)]
            return [future.result() for future in futures]

    @pytest.mark.parametrize("workers", [2, 8])
    def test_exactly_one_success(self, session_factory, workers):
        with session_factory() as db:
            put_secret(db, "contested", "payload", utcnow())

        results = self.race(session_factory, workers)

        assert results.count("payload") == 1
        assert results.count(None) == workers - 1

    def test_exactly_one_success_without_delete_returning(self, session_factory, monkeypatch):
        with session_factory() as db:
            put_secret(db, "contested", "payload", utcnow())
            monkeypatch.setattr(db.get_bind().dialect, "delete_returning", False)

        results = self.race(session_factory, 8)

        assert results.count("payload") == 1
        assert results.count(None) == 7


class TestPurgeExpiredSecrets:
    def test_expired_secret_removed_without_reveal(self, db_session):
        now = utcnow()
        put_secret(db_session, "old", "payload", now - RETENTION - timedelta(seconds=1))

        purged = purge_expired_secrets(db_session, now, RETENTION)

        assert purged == 1
        assert take_secret(db_session, "old") is None

    def test_fresh_secret_kept(self, db_session):
        now = utcnow()
        put_secret(db_session, "young", "payload", now - RETENTION + timedelta(seconds=1))

        assert purge_expired_secrets(db_session, now, RETENTION) == 0
        assert take_secret(db_session, "young") == "payload"

    def test_secret_exactly_at_retention_boundary_kept(self, db_session):
        now = utcnow()
        put_secret(db_session, "edge", "payload", now - RETENTION)

        assert purge_expired_secrets(db_session, now, RETENTION) == 0
        assert secret_count(db_session) == 1

    def test_purge_only_touches_expired_rows(self, db_session):
        now = utcnow()
        put_secret(db_session, "old-1", "a", now - timedelta(days=2))
        put_secret(db_session, "old-2", "b", now - timedelta(days=3))
        put_secret(db_session, "new", "c", now)

        assert purge_expired_secrets(db_session, now, RETENTION) == 2
        assert take_secret(db_session, "new") == "c"
