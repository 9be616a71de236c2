"""Scenario tests for the authentication use cases (in-memory stores)."""

import threading
import time

import pytest

from services.access_tokens import AccessClaims
from services.auth_service import RegistrationProfile
from services.errors import (
    DuplicateIdentityError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
    TokenExpiredError,
    TokenFailure,
    UnknownIdentityError,
)
from tests.conftest import REFRESH_TTL

PASSWORD = "Passw0rd!"


@pytest.fixture
def registered(auth_service):
    return auth_service.register(
        RegistrationProfile(email="a@x.com", first_name="Ada", last_name="Lovelace"), PASSWORD
    )


class TestRegister:
    def test_returns_both_tokens_and_profile(self, registered, codec, manager):
        assert registered.token_type == "Bearer"
        assert registered.user.email == "a@x.com"
        assert registered.user.first_name == "Ada"
        assert registered.user.role == "user"

        claims = codec.parse_and_verify(registered.access_token)
        assert isinstance(claims, AccessClaims)
        assert claims.subject == "a@x.com"
        assert claims.roles == ("user",)
        assert manager.validate(registered.refresh_token).user_id == registered.user.id

    def test_password_is_hashed(self, registered):
        assert registered.user.password_hash != PASSWORD
        assert registered.user.password_hash.startswith("$argon2")

    def test_duplicate_email_rejected(self, auth_service, registered):
        with pytest.raises(DuplicateIdentityError):
            auth_service.register(RegistrationProfile(email="a@x.com"), "Other0ne!")

    def test_default_role_is_configurable(self, user_store, hasher, codec, manager, memory_storage, clock):
        from services.auth_service import AuthService

        service = AuthService(user_store, hasher, codec, manager, memory_storage, default_role="member", clock=clock)
        result = service.register(RegistrationProfile(email="m@x.com"), PASSWORD)
        assert result.user.role == "member"

    def test_user_and_token_roll_back_together(self, auth_service, manager, user_store, monkeypatch):
        def broken_issue(owner_id):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(manager, "issue", broken_issue)

        with pytest.raises(RuntimeError):
            auth_service.register(RegistrationProfile(email="b@x.com"), PASSWORD)

        assert user_store.exists("b@x.com") is False


class TestLogin:
    def test_success_updates_last_login(self, auth_service, registered, clock):
        clock.advance(minutes=5)

        result = auth_service.login("a@x.com", PASSWORD)

        assert result.user.last_login == clock.now
        assert result.access_token
        assert result.refresh_token != registered.refresh_token

    def test_wrong_password(self, auth_service, registered):
        with pytest.raises(InvalidCredentialsError) as excinfo:
            auth_service.login("a@x.com", "wrong-password")
        assert not isinstance(excinfo.value, UnknownIdentityError)

    def test_unknown_email_reads_like_wrong_password(self, auth_service, registered):
        with pytest.raises(InvalidCredentialsError) as unknown:
            auth_service.login("nobody@x.com", PASSWORD)
        with pytest.raises(InvalidCredentialsError) as wrong:
            auth_service.login("a@x.com", "wrong-password")

        assert isinstance(unknown.value, UnknownIdentityError)
        assert unknown.value.code == wrong.value.code
        assert unknown.value.message == wrong.value.message
        assert unknown.value.status == wrong.value.status

    def test_each_login_revokes_previous_refresh_tokens(self, auth_service, registered, manager):
        issued = [auth_service.login("a@x.com", PASSWORD).refresh_token for _ in range(3)]

        for stale in [registered.refresh_token] + issued[:-1]:
            assert manager.validate(stale) is TokenFailure.NOT_FOUND_OR_REVOKED
        assert manager.validate(issued[-1]).user_id == registered.user.id

    def test_failed_login_keeps_existing_session(self, auth_service, registered, manager):
        with pytest.raises(InvalidCredentialsError):
            auth_service.login("a@x.com", "wrong-password")

        assert manager.validate(registered.refresh_token).user_id == registered.user.id


class TestRefresh:
    def test_rotates_and_mints(self, auth_service, registered, codec, clock):
        clock.advance(minutes=1)

        result = auth_service.refresh(registered.refresh_token)

        assert result.refresh_token != registered.refresh_token
        assert result.user.email == "a@x.com"
        claims = codec.parse_and_verify(result.access_token)
        assert claims.issued_at == clock.now

    def test_old_value_is_dead_after_refresh(self, auth_service, registered):
        auth_service.refresh(registered.refresh_token)

        with pytest.raises(InvalidTokenError):
            auth_service.refresh(registered.refresh_token)

    def test_new_value_can_be_refreshed_again(self, auth_service, registered):
        second = auth_service.refresh(registered.refresh_token)
        third = auth_service.refresh(second.refresh_token)
        assert third.refresh_token not in (registered.refresh_token, second.refresh_token)

    def test_unknown_value(self, auth_service):
        with pytest.raises(InvalidTokenError):
            auth_service.refresh("fabricated")

    def test_expired_value_is_revoked_even_though_call_fails(self, auth_service, registered, token_store, clock):
        clock.advance(seconds=REFRESH_TTL.total_seconds() + 1)

        with pytest.raises(TokenExpiredError):
            auth_service.refresh(registered.refresh_token)

        assert token_store.find(registered.refresh_token).revoked is True

    def test_refresh_for_deleted_user_fails(self, auth_service, registered, user_store):
        user_store.delete("a@x.com")

        with pytest.raises(InvalidTokenError):
            auth_service.refresh(registered.refresh_token)

    def test_revoke_all_during_refresh_waits_for_rotation(self, auth_service, registered, manager, monkeypatch):
        validated = threading.Event()
        revoked = []
        real_rotate = manager.rotate

        def slow_rotate(token):
            validated.set()
            # let the competing revoke_all reach the store first
            time.sleep(0.05)
            return real_rotate(token)

        monkeypatch.setattr(manager, "rotate", slow_rotate)

        def logout_elsewhere():
            validated.wait(timeout=5)
            revoked.append(manager.revoke_all(registered.user.id))

        other = threading.Thread(target=logout_elsewhere)
        other.start()
        renewed = auth_service.refresh(registered.refresh_token)
        other.join(timeout=5)

        assert renewed.refresh_token != registered.refresh_token
        # revoke_all ran after the rotation and caught the new token
        assert revoked == [1]
        assert manager.validate(renewed.refresh_token) is TokenFailure.NOT_FOUND_OR_REVOKED


class TestLogout:
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_value_is_missing_token(self, auth_service, value):
        with pytest.raises(MissingTokenError):
            auth_service.logout(value)

    def test_revokes_every_token_of_the_owner(self, auth_service, registered, manager):
        other_device = manager.issue(registered.user.id)

        auth_service.logout(registered.refresh_token)

        assert manager.validate(other_device.token) is TokenFailure.NOT_FOUND_OR_REVOKED

    def test_other_users_untouched(self, auth_service, registered, manager):
        bob = auth_service.register(RegistrationProfile(email="bob@x.com"), PASSWORD)

        auth_service.logout(registered.refresh_token)

        assert manager.validate(bob.refresh_token).user_id == bob.user.id

    def test_second_logout_fails_cleanly(self, auth_service, registered):
        auth_service.logout(registered.refresh_token)

        with pytest.raises(InvalidTokenError):
            auth_service.logout(registered.refresh_token)

    def test_expired_value(self, auth_service, registered, clock):
        clock.advance(seconds=REFRESH_TTL.total_seconds())

        with pytest.raises(TokenExpiredError):
            auth_service.logout(registered.refresh_token)
