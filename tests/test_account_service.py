"""Tests for signup, email verification and login at the service level."""

import re
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import update

from app.models.user import User
from app.services import accounts as accounts_module
from app.services.accounts import AccountService
from app.services.errors import (
    AlreadyVerifiedError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
)
from app.services.mailer import Mailer
from app.services.security import hash_token

NOW = datetime(2026, 3, 1, 9, 30, 0)


@pytest.fixture
def make_service(db, hasher, issuer, mailer):
    def _make(now=NOW):
        return AccountService(db, hasher, issuer, mailer, verification_ttl_hours=24, clock=lambda: now)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


def _signup_alice(service):
    return service.signup("alice", "Alice A", "alice@x.com", "pw123456")


class TestSignup:
    def test_creates_unverified_account_with_code(self, service, db, mailer):
        assert _signup_alice(service) == "alice@x.com"

        user = db.query(User).filter(User.username == "alice").one()
        code = mailer.last_code("alice@x.com")
        assert user.is_verified is False
        assert re.fullmatch(r"\d{6}", code)
        assert user.email_verification_token_hash == hash_token(code)
        assert user.email_verification_expires_at == NOW + timedelta(hours=24)
        assert user.hashed_password != "pw123456"

    def test_email_is_lowercased(self, service, db):
        assert service.signup("bob", "Bob B", "Bob@X.com", "pw123456") == "bob@x.com"

    def test_duplicate_username_conflicts_on_username(self, service):
        _signup_alice(service)
        with pytest.raises(ConflictError) as exc_info:
            service.signup("alice", "Other", "other@x.com", "pw123456")
        assert exc_info.value.field == "username"

    def test_duplicate_email_conflicts_on_email(self, service):
        _signup_alice(service)
        with pytest.raises(ConflictError) as exc_info:
            service.signup("alice2", "Other", "alice@x.com", "pw123456")
        assert exc_info.value.field == "email"

    def test_email_failure_does_not_roll_back(self, db, hasher, issuer):
        service = AccountService(db, hasher, issuer, Mailer(use_queue=False), clock=lambda: NOW)
        with patch("app.services.email.send_verification_email", side_effect=RuntimeError("smtp down")):
            assert _signup_alice(service) == "alice@x.com"
        assert db.query(User).count() == 1

    def test_commit_race_maps_to_conflict(self, service, db, db_session_maker, hasher, monkeypatch):
        real_hash = hasher.hash

        def hash_while_competing_signup_lands(password):
            # another request commits the same username after our existence check
            other = db_session_maker()
            other.add(User(username="alice", full_name="Rival", email="rival@x.com", hashed_password="x"))
            other.commit()
            other.close()
            return real_hash(password)

        monkeypatch.setattr(hasher, "hash", hash_while_competing_signup_lands)
        with pytest.raises(ConflictError) as exc_info:
            _signup_alice(service)

        assert exc_info.value.field == "username"
        assert db.query(User).filter(User.username == "alice").count() == 1
        assert db.query(User).count() == 1


class TestVerifyEmail:
    def test_correct_code_verifies_once(self, service, db, mailer, issuer):
        _signup_alice(service)
        code = mailer.last_code("alice@x.com")

        user, token = service.verify_email("alice@x.com", code)

        assert user.is_verified is True
        assert user.email_verification_token_hash is None
        assert user.email_verification_expires_at is None
        assert issuer.resolve(token).account_id == user.id
        assert mailer.of_kind("welcome") == [("welcome", "alice@x.com", "alice")]

        with pytest.raises(AlreadyVerifiedError):
            service.verify_email("alice@x.com", code)

    def test_unknown_email(self, service):
        with pytest.raises(NotFoundError):
            service.verify_email("nobody@x.com", "123456")

    def test_wrong_code(self, service, mailer):
        _signup_alice(service)
        with pytest.raises(InvalidCodeError):
            service.verify_email("alice@x.com", "000000")

    def test_expired_code(self, service, make_service, mailer):
        _signup_alice(service)
        code = mailer.last_code("alice@x.com")
        later = make_service(NOW + timedelta(hours=24, seconds=1))
        with pytest.raises(ExpiredError):
            later.verify_email("alice@x.com", code)

    def test_code_valid_until_expiry(self, service, make_service, mailer):
        _signup_alice(service)
        code = mailer.last_code("alice@x.com")
        almost = make_service(NOW + timedelta(hours=23, minutes=59))
        user, _ = almost.verify_email("alice@x.com", code)
        assert user.is_verified is True

    def test_lost_race_reports_already_verified(self, service, db, mailer, monkeypatch):
        _signup_alice(service)
        code = mailer.last_code("alice@x.com")
        real_matches = accounts_module.token_matches

        def matches_then_race(token, token_hash):
            result = real_matches(token, token_hash)
            # a concurrent request consumes the code right after our check
            db.execute(
                update(User)
                .where(User.email == "alice@x.com")
                .values(is_verified=True, email_verification_token_hash=None)
                .execution_options(synchronize_session=False)
            )
            return result

        monkeypatch.setattr(accounts_module, "token_matches", matches_then_race)
        with pytest.raises(AlreadyVerifiedError):
            service.verify_email("alice@x.com", code)

    def test_code_replaced_by_resend_is_invalid(self, service, db, mailer, monkeypatch):
        _signup_alice(service)
        code = mailer.last_code("alice@x.com")
        fresh = "111111" if code != "111111" else "222222"
        real_matches = accounts_module.token_matches

        def matches_then_resend(token, token_hash):
            result = real_matches(token, token_hash)
            # a resend lands right after our check and replaces the code
            monkeypatch.setattr(
                accounts_module,
                "generate_verification_code_with_expiry",
                lambda hours, now=None: (fresh, hash_token(fresh), NOW + timedelta(hours=hours)),
            )
            service.resend_verification("alice@x.com")
            return result

        monkeypatch.setattr(accounts_module, "token_matches", matches_then_resend)
        with pytest.raises(InvalidCodeError):
            service.verify_email("alice@x.com", code)

        user = db.query(User).filter(User.email == "alice@x.com").one()
        assert user.is_verified is False
        assert user.email_verification_token_hash == hash_token(fresh)


class TestResendVerification:
    def test_issues_fresh_code(self, service, make_service, db, mailer):
        _signup_alice(service)
        first = mailer.last_code("alice@x.com")

        later = make_service(NOW + timedelta(hours=30))
        later.resend_verification("alice@x.com")
        second = mailer.last_code("alice@x.com")

        user = db.query(User).filter(User.email == "alice@x.com").one()
        assert len(mailer.of_kind("verification")) == 2
        assert user.email_verification_token_hash == hash_token(second)
        assert user.email_verification_expires_at == NOW + timedelta(hours=54)
        if first != second:
            with pytest.raises(InvalidCodeError):
                later.verify_email("alice@x.com", first)
        user, _ = later.verify_email("alice@x.com", second)
        assert user.is_verified is True

    def test_verified_account_has_no_reverification(self, service, mailer):
        _signup_alice(service)
        service.verify_email("alice@x.com", mailer.last_code("alice@x.com"))
        with pytest.raises(AlreadyVerifiedError):
            service.resend_verification("alice@x.com")

    def test_unknown_email(self, service):
        with pytest.raises(NotFoundError):
            service.resend_verification("nobody@x.com")


class TestLogin:
    def test_verified_account_gets_token(self, service, mailer, issuer):
        _signup_alice(service)
        service.verify_email("alice@x.com", mailer.last_code("alice@x.com"))

        for identifier in ("alice", "alice@x.com", "ALICE@x.com"):
            user, token = service.login(identifier, "pw123456")
            assert token is not None
            assert issuer.resolve(token).username == "alice"

    def test_unverified_account_gets_null_token(self, service):
        _signup_alice(service)
        user, token = service.login("alice", "pw123456")
        assert token is None
        assert user.is_verified is False

    def test_wrong_password_fails_regardless_of_state(self, service, mailer):
        _signup_alice(service)
        with pytest.raises(InvalidCredentialsError):
            service.login("alice", "wrong-password")

        service.verify_email("alice@x.com", mailer.last_code("alice@x.com"))
        with pytest.raises(InvalidCredentialsError):
            service.login("alice", "wrong-password")

    def test_unknown_account(self, service):
        with pytest.raises(NotFoundError):
            service.login("ghost", "pw123456")
