"""Shared fixtures for fieldops tests."""

from datetime import datetime, timedelta, timezone

import pytest

from fieldops.auth import AuthorizedCaller, Role
from fieldops.config import Settings
from fieldops.context import build_context

TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef0123456789abcdef"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start=None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(jwt_secret=TEST_SECRET)


@pytest.fixture
def ctx(settings, clock):
    return build_context(settings, clock=clock)


@pytest.fixture
def admin(ctx):
    return ctx.users.register("admin@x.mil", "pw1", "Admin", rank="W1", unit="MA")


@pytest.fixture
def user(ctx, admin):
    return ctx.users.register("user@x.mil", "pw2", "Operador", rank="W2", unit="MB")


@pytest.fixture
def admin_caller(admin):
    return AuthorizedCaller(email=admin.email, name=admin.name, role=Role.ADMIN)


@pytest.fixture
def user_caller(user):
    return AuthorizedCaller(email=user.email, name=user.name, role=Role.STANDARD)


@pytest.fixture
def other_caller(ctx, admin):
    other = ctx.users.register("other@x.mil", "pw3", "Otro")
    return AuthorizedCaller(email=other.email, name=other.name, role=Role.STANDARD)
