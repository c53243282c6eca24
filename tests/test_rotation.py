"""
Tests for the refresh token state machine: rotation, reuse detection,
expiry and concurrent refreshes.
"""

import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from services.revocation import REASON_MANUAL, REASON_REPLACED, REASON_REUSE
from services.rotation import TokenState
from utils.exceptions import Fatal, InvalidToken

IP = "198.51.100.7"


def rotate(flow, token, times):
    """Rotate `times` times starting from `token`; returns every token string in order."""
    chain = [token]
    for _ in range(times):
        _, _, successor = flow.refresh_token(chain[-1], IP)
        chain.append(successor.token)
    return chain


class TestRotation:

    def test_refresh_returns_new_pair(self, flow, login):
        user, _, first = login()

        owner, access_token, second = flow.refresh_token(first.token, IP)

        assert owner.id == user.id
        assert second.token != first.token
        assert second.created_by_ip == IP
        assert flow.codec.decode_access_token(access_token)["sub"] == user.id

    def test_source_is_retired_and_linked(self, flow, login, reload_tokens):
        user, _, first = login()
        _, _, second = flow.refresh_token(first.token, IP)

        records = reload_tokens(user.id)
        assert records[first.token].reason_revoked == REASON_REPLACED
        assert records[first.token].revoked_by_ip == IP
        assert records[first.token].replaced_by_token == second.token
        assert records[second.token].is_active

    def test_rotation_invalidates_source(self, flow, login):
        _, _, first = login()
        flow.refresh_token(first.token, IP)

        with pytest.raises(InvalidToken):
            flow.refresh_token(first.token, IP)

    def test_chain_is_linear(self, flow, login, reload_tokens):
        user, _, first = login()
        chain = rotate(flow, first.token, 6)

        records = reload_tokens(user.id)
        walked, current = [], chain[0]
        while current:
            assert current not in walked
            walked.append(current)
            current = records[current].replaced_by_token
        assert walked == chain

    def test_single_active_tip(self, flow, login, reload_tokens):
        user, _, first = login()
        chain = rotate(flow, first.token, 5)

        records = reload_tokens(user.id)
        assert [t for t in chain if records[t].is_active] == [chain[-1]]

    def test_unknown_token(self, flow, login):
        login()
        with pytest.raises(InvalidToken):
            flow.refresh_token("does-not-exist", IP)

    def test_empty_token(self, flow):
        with pytest.raises(InvalidToken):
            flow.refresh_token("", IP)


class TestReuseDetection:

    def test_reuse_revokes_live_descendant(self, flow, login, reload_tokens):
        user, _, first = login()
        a, b, c = rotate(flow, first.token, 2)

        with pytest.raises(InvalidToken):
            flow.refresh_token(a, IP)

        records = reload_tokens(user.id)
        assert records[c].is_revoked
        assert records[c].reason_revoked == REASON_REUSE
        assert records[c].replaced_by_token is None
        assert records[b].reason_revoked == REASON_REPLACED
        with pytest.raises(InvalidToken):
            flow.refresh_token(c, IP)

    def test_reuse_of_manually_revoked_token_is_rejected(self, flow, login, reload_tokens):
        user, _, first = login()
        _, _, other = login()
        flow.revoke_token(first.token, IP)

        with pytest.raises(InvalidToken):
            flow.refresh_token(first.token, IP)

        records = reload_tokens(user.id)
        assert records[first.token].reason_revoked == REASON_MANUAL
        # an unrelated chain of the same user is untouched
        assert records[other.token].is_active

    def test_reuse_is_rejected_even_if_containment_cannot_be_saved(self, flow, storage, login, monkeypatch):
        _, _, first = login()
        a, b = rotate(flow, first.token, 1)

        def failing_save():
            storage.rollback()
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(storage, "save", failing_save)
        with pytest.raises(InvalidToken):
            flow.refresh_token(a, IP)


class TestExpiredToken:

    def test_expired_token_is_rejected_without_cascade(self, flow, login, backdate, reload_tokens):
        """An expired, never revoked token gives no reuse signal.

        Containment only fires for revoked tokens; a token that was stolen and
        left to expire is simply rejected.
        """
        user, _, expired = login()
        _, _, other = login()
        backdate(expired.token, expires=timedelta(days=8))

        with pytest.raises(InvalidToken):
            flow.refresh_token(expired.token, IP)

        records = reload_tokens(user.id)
        assert records[expired.token].revoked_at is None
        assert records[expired.token].replaced_by_token is None
        assert records[other.token].is_active


class TestClassify:

    def test_states(self, flow, login, backdate):
        user, _, first = login()
        a, b = rotate(flow, first.token, 1)
        _, _, expired = login()
        backdate(expired.token, expires=timedelta(days=8))

        loaded = flow.get_by_id(user.id)
        classify = flow.rotation.classify
        assert classify(loaded, None) is TokenState.NOT_FOUND
        assert classify(loaded, loaded.get_refresh_token(a)) is TokenState.REVOKED_ACTIVE_SUCCESSOR
        assert classify(loaded, loaded.get_refresh_token(b)) is TokenState.ACTIVE
        assert classify(loaded, loaded.get_refresh_token(expired.token)) is TokenState.EXPIRED

        flow.revoke_token(b, IP)
        loaded = flow.get_by_id(user.id)
        assert classify(loaded, loaded.get_refresh_token(a)) is TokenState.REVOKED_NO_SUCCESSOR


class TestRetentionDuringRefresh:

    def test_old_inactive_tokens_are_pruned(self, flow, login, backdate, reload_tokens):
        user, _, first = login()
        a, b = rotate(flow, first.token, 1)
        backdate(a, created=timedelta(days=3))

        rotate(flow, b, 1)

        assert a not in reload_tokens(user.id)

    def test_old_active_token_is_kept(self, flow, login, backdate, reload_tokens):
        user, _, old = login()
        backdate(old.token, created=timedelta(days=3))

        login()

        records = reload_tokens(user.id)
        assert old.token in records
        assert records[old.token].is_active


class TestConcurrency:

    def test_concurrent_refresh_of_same_token(self, flow, storage, login, reload_tokens):
        user, _, first = login()
        barrier = threading.Barrier(2)
        results = []

        def worker():
            barrier.wait()
            try:
                flow.refresh_token(first.token, IP)
                results.append("ok")
            except InvalidToken:
                results.append("invalid")
            finally:
                storage.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(results) == ["invalid", "ok"]
        records = reload_tokens(user.id)
        descendants = [rt for rt in records.values() if rt.token != first.token]
        assert len(descendants) == 1
        assert sum(rt.is_active for rt in records.values()) <= 1

    def test_writer_from_another_process_wins(self, flow, storage, login, reload_tokens, monkeypatch):
        user, _, first = login()
        other_process = create_engine(storage.database_url)
        replace = flow.revocation.replace

        def replace_after_foreign_write(token, successor, ip):
            with other_process.begin() as conn:
                conn.execute(
                    text("UPDATE refresh_tokens SET version = version + 1 WHERE token = :token"),
                    {"token": token.token},
                )
            replace(token, successor, ip)

        monkeypatch.setattr(flow.revocation, "replace", replace_after_foreign_write)
        try:
            with pytest.raises(InvalidToken):
                flow.refresh_token(first.token, IP)
        finally:
            other_process.dispose()

        records = reload_tokens(user.id)
        assert list(records) == [first.token]
        assert records[first.token].is_active

    def test_lock_timeout_is_fatal(self, flow, login):
        user, _, first = login()
        flow.store.lock_timeout = 0.05
        lock = flow.store._lock_for(user.id)
        lock.acquire()
        try:
            with pytest.raises(Fatal):
                flow.refresh_token(first.token, IP)
        finally:
            lock.release()
            flow.store._forget_lock(user.id)
        assert flow.store._locks == {}

    def test_locks_are_dropped_when_idle(self, flow, login):
        user, _, first = login()
        _, _, second = flow.refresh_token(first.token, IP)
        flow.revoke_token(second.token, IP)
        with pytest.raises(InvalidToken):
            flow.refresh_token(first.token, IP)

        assert flow.store._locks == {}

    def test_failed_save_leaves_token_usable(self, flow, storage, login, reload_tokens, monkeypatch):
        user, _, first = login()
        real_save = storage.save

        def failing_save():
            storage.rollback()
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(storage, "save", failing_save)
        with pytest.raises(Fatal):
            flow.refresh_token(first.token, IP)
        monkeypatch.setattr(storage, "save", real_save)

        records = reload_tokens(user.id)
        assert list(records) == [first.token]
        assert records[first.token].is_active
