import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("TOKEN_CLEANUP_ENABLED", "false")

import pytest  # noqa: E402
from argon2 import PasswordHasher  # noqa: E402

from models.memory import (  # noqa: E402
    MemoryStorage,
    MemoryUserRepository,
    MemoryRefreshTokenRepository,
)
from services.access_tokens import AccessTokenCodec, SigningKey  # noqa: E402
from services.auth_service import AuthService  # noqa: E402
from services.refresh_tokens import RefreshTokenManager  # noqa: E402
from services.request_auth import RequestAuthenticator  # noqa: E402
from utils.security import Argon2Hasher  # noqa: E402

TEST_SECRET = "Test-Secret-Key_for-Automation-Only-987654321!"
ACCESS_TTL = timedelta(minutes=15)
REFRESH_TTL = timedelta(days=7)


class FakeClock:
    """Settable clock; starts on a whole second so JWT timestamps line up."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def signing_key():
    return SigningKey.from_secret(TEST_SECRET)


@pytest.fixture
def codec(signing_key, clock):
    return AccessTokenCodec(signing_key, ACCESS_TTL, clock=clock)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def user_store(memory_storage):
    return MemoryUserRepository(memory_storage)


@pytest.fixture
def token_store(memory_storage):
    return MemoryRefreshTokenRepository(memory_storage)


@pytest.fixture
def manager(token_store, memory_storage, clock):
    return RefreshTokenManager(token_store, memory_storage, REFRESH_TTL, clock=clock)


@pytest.fixture
def hasher():
    # cheap parameters: the tests exercise flow, not hash strength
    return Argon2Hasher(PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


@pytest.fixture
def auth_service(user_store, hasher, codec, manager, memory_storage, clock):
    return AuthService(user_store, hasher, codec, manager, memory_storage, clock=clock)


@pytest.fixture
def authenticator(codec, user_store):
    return RequestAuthenticator(codec, user_store)


@pytest.fixture
def app():
    from api import create_app

    app = create_app("test", TOKEN_CLEANUP_ENABLED=False)
    yield app
    from models import storage

    storage.close()
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
