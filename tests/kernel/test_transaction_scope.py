"""Tests for transaction_scope commit/rollback semantics."""

import itertools
from uuid import uuid4

import pytest
from sqlalchemy import select

from gls_kernel.db.engine import get_engine, transaction_scope
from gls_kernel.exceptions import StorageTimeoutError, ValidationError
from gls_kernel.services.sequence_service import SequenceCounter, SequenceService


def _counter(session, name):
    return session.execute(
        select(SequenceCounter).where(SequenceCounter.name == name)
    ).scalar_one_or_none()


class TestTransactionScope:

    def test_commits_on_success(self, session):
        name = f"scope_{uuid4().hex[:8]}"
        with transaction_scope(session, "test.commit"):
            SequenceService(session).next_value(name)
        assert _counter(session, name).current_value == 1

    def test_rolls_back_on_domain_error(self, session):
        name = f"scope_{uuid4().hex[:8]}"
        with pytest.raises(ValidationError):
            with transaction_scope(session, "test.rollback"):
                SequenceService(session).next_value(name)
                raise ValidationError({"field": "bad"})
        assert _counter(session, name) is None

    def test_rolls_back_on_base_exception(self, session):
        name = f"scope_{uuid4().hex[:8]}"
        with pytest.raises(KeyboardInterrupt):
            with transaction_scope(session, "test.interrupt"):
                SequenceService(session).next_value(name)
                raise KeyboardInterrupt
        assert _counter(session, name) is None

    def test_deadline_exceeded_rolls_back(self, session, monkeypatch):
        name = f"scope_{uuid4().hex[:8]}"
        ticks = itertools.count(0.0, 10.0)
        monkeypatch.setattr("gls_kernel.db.engine.time.monotonic", lambda: next(ticks))
        with pytest.raises(StorageTimeoutError) as exc_info:
            with transaction_scope(session, "test.slow", timeout_seconds=1.0):
                SequenceService(session).next_value(name)
        assert exc_info.value.operation == "test.slow"
        assert exc_info.value.kind == "timeout"
        assert _counter(session, name) is None

    def test_logs_commit(self, session, captured_logs):
        with transaction_scope(session, "test.logged"):
            pass
        messages = [(r["message"], r.get("operation")) for r in captured_logs()]
        assert ("transaction_committed", "test.logged") in messages


def test_engine_initialized(db_engine):
    assert get_engine() is db_engine
