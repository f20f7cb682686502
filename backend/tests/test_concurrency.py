"""
Write discipline tests.

Verifies:
- Concurrency failures roll back and re-run the unit of work
- Service errors roll back once and are never retried
- The last concurrency failure propagates
- A write committed elsewhere between read and commit is detected through
  the version column and the retry sees the new value
"""

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from printshop.errors import ValidationError
from printshop.extensions import db
from printshop.models import User
from printshop.services import concurrency
from printshop.services.concurrency import lock_for_update, run_with_retry


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays = []
    monkeypatch.setattr(concurrency.time, "sleep", delays.append)
    return delays


# =============================================================================
# RETRY POLICY
# =============================================================================


class TestRunWithRetry:

    @pytest.mark.parametrize(
        "failure",
        [
            StaleDataError("row version changed"),
            OperationalError("UPDATE users", {}, Exception("database is locked")),
        ],
    )
    def test_retries_after_rollback(self, customer_a, db_session, sleeps, failure):
        calls = []

        def _op():
            calls.append(1)
            user = db_session.get(User, customer_a.id)
            if len(calls) == 1:
                user.credit_balance = 999
                raise failure
            return user.credit_balance

        assert run_with_retry(_op) == 0
        assert len(calls) == 2
        assert sleeps == [0.05]

    def test_service_error_not_retried(self, customer_a, db_session, sleeps):
        calls = []

        def _op():
            calls.append(1)
            db_session.get(User, customer_a.id).credit_balance = 999
            raise ValidationError("EMPTY_CART", "Cart is empty")

        with pytest.raises(ValidationError):
            run_with_retry(_op)

        assert len(calls) == 1
        assert sleeps == []
        assert db_session.get(User, customer_a.id).credit_balance == 0

    def test_last_failure_propagates(self, db_session, sleeps):
        calls = []

        def _op():
            calls.append(1)
            raise StaleDataError("row version changed")

        with pytest.raises(StaleDataError):
            run_with_retry(_op, attempts=2)

        assert len(calls) == 2
        assert sleeps == [0.05]


# =============================================================================
# VERSION COLUMN
# =============================================================================


class TestConcurrentWrite:

    def test_write_between_read_and_commit_is_retried(self, customer_a, db_session, sleeps):
        customer_a.credit_balance = 1000
        db_session.commit()
        users = User.__table__
        seen = []

        def _op():
            buyer = lock_for_update(db_session.query(User).filter_by(id=customer_a.id)).first()
            balance = buyer.credit_balance
            seen.append(balance)

            if len(seen) == 1:
                # Another request settles an order on its own connection
                with db.engine.begin() as conn:
                    conn.execute(
                        update(users)
                        .where(users.c.id == customer_a.id)
                        .values(credit_balance=900, version_id=users.c.version_id + 1)
                    )

            buyer.credit_balance = balance - 100
            db_session.commit()
            return buyer.credit_balance

        assert run_with_retry(_op) == 800
        assert seen == [1000, 900]
        assert db_session.get(User, customer_a.id).credit_balance == 800
