"""Tests for the credential store contract, run against every backend."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from finance_auth.domain.errors import DuplicateEmailError, DuplicateUsernameError, TokenCollisionError
from finance_auth.domain.models import TokenType


def _in(hours: float = 1) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)


class TestUsers:
    def test_create_user_defaults(self, credential_store):
        user = credential_store.create_user("A@X.com ", "hash", username="ana", name="Ana")

        assert user.id > 0
        assert user.email == "a@x.com"
        assert user.username == "ana"
        assert user.name == "Ana"
        assert user.email_verified is False
        assert user.is_active is True
        assert user.two_factor_enabled is False
        assert user.last_login is None
        assert user.created_at.tzinfo is not None

    def test_ids_are_unique(self, credential_store):
        first = credential_store.create_user("a@x.com", "hash")
        second = credential_store.create_user("b@x.com", "hash")
        assert first.id != second.id

    def test_lookups_by_exact_key(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash", username="ana")

        assert credential_store.get_user_by_id(user.id).email == "a@x.com"
        assert credential_store.get_user_by_email("a@x.com").id == user.id
        assert credential_store.get_user_by_email("A@X.COM").id == user.id
        assert credential_store.get_user_by_username("ana").id == user.id
        assert credential_store.get_user_by_username("an") is None
        assert credential_store.get_user_by_email("a@x.co") is None
        assert credential_store.get_user_by_id(user.id + 100) is None

    def test_duplicate_email_is_rejected(self, credential_store):
        credential_store.create_user("a@x.com", "hash")
        with pytest.raises(DuplicateEmailError):
            credential_store.create_user("A@x.com", "other")

    def test_duplicate_username_is_rejected(self, credential_store):
        credential_store.create_user("a@x.com", "hash", username="ana")
        with pytest.raises(DuplicateUsernameError):
            credential_store.create_user("b@x.com", "hash", username="ana")

    def test_missing_usernames_do_not_collide(self, credential_store):
        credential_store.create_user("a@x.com", "hash")
        credential_store.create_user("b@x.com", "hash")
        assert credential_store.get_user_by_email("b@x.com").username is None

    def test_concurrent_creation_admits_one_user_per_email(self, credential_store):
        def attempt(i: int):
            try:
                return credential_store.create_user("race@x.com", f"hash-{i}")
            except DuplicateEmailError:
                return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(16)))

        assert len([r for r in results if r is not None]) == 1

    def test_updates(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        assert credential_store.set_email_verified(user.id, True)
        assert credential_store.set_last_login(user.id, when)
        assert credential_store.set_password_hash(user.id, "new-hash")
        assert credential_store.set_two_factor_enabled(user.id, True)

        stored = credential_store.get_user_by_id(user.id)
        assert stored.email_verified is True
        assert stored.last_login == when
        assert stored.password_hash == "new-hash"
        assert stored.two_factor_enabled is True

    def test_updates_on_unknown_user_report_failure(self, credential_store):
        assert credential_store.set_email_verified(999, True) is False
        assert credential_store.set_password_hash(999, "x") is False

    def test_returned_user_is_a_snapshot(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        user.password_hash = "tampered"
        assert credential_store.get_user_by_id(user.id).password_hash == "hash"


class TestVerificationTokens:
    def test_create_and_find_by_value(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        expires = _in(24)
        record = credential_store.create_verification_token(
            user.id, "tok-1", TokenType.EMAIL_VERIFICATION, expires
        )

        found = credential_store.get_verification_token("tok-1")
        assert found.id == record.id
        assert found.user_id == user.id
        assert found.type == TokenType.EMAIL_VERIFICATION
        assert found.used is False
        assert found.expires_at == expires
        assert credential_store.get_verification_token("tok") is None

    def test_mark_used_only_once(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        record = credential_store.create_verification_token(
            user.id, "tok-1", TokenType.PASSWORD_RESET, _in()
        )

        assert credential_store.mark_verification_token_used(record.id) is True
        assert credential_store.mark_verification_token_used(record.id) is False
        assert credential_store.get_verification_token("tok-1").used is True

    def test_link_token_values_are_unique(self, credential_store):
        ana = credential_store.create_user("a@x.com", "hash")
        bob = credential_store.create_user("b@x.com", "hash")
        credential_store.create_verification_token(ana.id, "link", TokenType.PASSWORD_RESET, _in())

        with pytest.raises(TokenCollisionError):
            credential_store.create_verification_token(
                bob.id, "link", TokenType.EMAIL_VERIFICATION, _in()
            )

    def test_two_factor_codes_are_unique_per_user_only(self, credential_store):
        ana = credential_store.create_user("a@x.com", "hash")
        bob = credential_store.create_user("b@x.com", "hash")
        credential_store.create_verification_token(ana.id, "123456", TokenType.TWO_FACTOR, _in())
        credential_store.create_verification_token(bob.id, "123456", TokenType.TWO_FACTOR, _in())

        latest = credential_store.get_latest_unused_verification_token(bob.id, TokenType.TWO_FACTOR)
        assert latest.user_id == bob.id
        with pytest.raises(TokenCollisionError):
            credential_store.create_verification_token(ana.id, "123456", TokenType.TWO_FACTOR, _in())

    def test_two_factor_codes_are_not_found_by_value(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        credential_store.create_verification_token(user.id, "123456", TokenType.TWO_FACTOR, _in())
        assert credential_store.get_verification_token("123456") is None

    def test_mark_used_unknown_token(self, credential_store):
        assert credential_store.mark_verification_token_used(12345) is False

    def test_latest_unused_by_type(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        credential_store.create_verification_token(user.id, "111111", TokenType.TWO_FACTOR, _in())
        newest = credential_store.create_verification_token(
            user.id, "222222", TokenType.TWO_FACTOR, _in()
        )
        credential_store.create_verification_token(user.id, "reset", TokenType.PASSWORD_RESET, _in())

        latest = credential_store.get_latest_unused_verification_token(user.id, TokenType.TWO_FACTOR)
        assert latest.token == "222222"

        credential_store.mark_verification_token_used(newest.id)
        latest = credential_store.get_latest_unused_verification_token(user.id, TokenType.TWO_FACTOR)
        assert latest.token == "111111"

    def test_latest_unused_ignores_expiry(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        credential_store.create_verification_token(
            user.id, "333333", TokenType.TWO_FACTOR, _in(-1)
        )
        latest = credential_store.get_latest_unused_verification_token(user.id, TokenType.TWO_FACTOR)
        assert latest.token == "333333"

    def test_list_tokens_filters_by_type(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        credential_store.create_verification_token(user.id, "r1", TokenType.PASSWORD_RESET, _in())
        credential_store.create_verification_token(user.id, "v1", TokenType.EMAIL_VERIFICATION, _in())

        assert len(credential_store.list_verification_tokens(user.id)) == 2
        resets = credential_store.list_verification_tokens(user.id, TokenType.PASSWORD_RESET)
        assert [t.token for t in resets] == ["r1"]


class TestSessions:
    def test_create_and_find(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        expires = _in(24 * 7)
        session = credential_store.create_session(
            user.id, "sess-1", expires, ip_address="10.0.0.1", user_agent="pytest"
        )

        found = credential_store.get_session_by_token("sess-1")
        assert found.id == session.id
        assert found.user_id == user.id
        assert found.expires_at == expires
        assert found.ip_address == "10.0.0.1"
        assert found.user_agent == "pytest"

    def test_session_tokens_are_unique(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        credential_store.create_session(user.id, "sess-1", _in())
        with pytest.raises(TokenCollisionError):
            credential_store.create_session(user.id, "sess-1", _in())

    def test_delete_by_token(self, credential_store):
        user = credential_store.create_user("a@x.com", "hash")
        credential_store.create_session(user.id, "sess-1", _in())

        assert credential_store.delete_session_by_token("sess-1") is True
        assert credential_store.delete_session_by_token("sess-1") is False
        assert credential_store.get_session_by_token("sess-1") is None

    def test_delete_all_for_user(self, credential_store):
        ana = credential_store.create_user("a@x.com", "hash")
        bob = credential_store.create_user("b@x.com", "hash")
        credential_store.create_session(ana.id, "ana-1", _in())
        credential_store.create_session(ana.id, "ana-2", _in())
        credential_store.create_session(bob.id, "bob-1", _in())

        assert credential_store.delete_sessions_for_user(ana.id) == 2
        assert credential_store.list_sessions_for_user(ana.id) == []
        assert [s.token for s in credential_store.list_sessions_for_user(bob.id)] == ["bob-1"]
