"""
Shared pytest fixtures.
"""

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from core.tokens import issue_token_pair

User = get_user_model()

PASSWORD = 'SecurePass123'


@pytest.fixture(autouse=True)
def fast_password_hasher(settings):
    """bcrypt is deliberately slow; tests hash with MD5."""
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']


@pytest.fixture(autouse=True)
def clear_cache(db):
    """Clear Django cache before each test to reset throttle limits."""
    from django.core.cache import cache
    cache.clear()


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory for users; username and email derive from ``name``."""
    def _make_user(name, **extra):
        extra.setdefault('password', PASSWORD)
        return User.objects.create_user(
            username=name,
            email=f'{name}@example.com',
            **extra,
        )
    return _make_user


@pytest.fixture
def user(make_user):
    return make_user('alice', full_name='Alice Seller', phone='0812345678')


@pytest.fixture
def other_user(make_user):
    return make_user('bob', full_name='Bob Buyer')


@pytest.fixture
def outsider(make_user):
    return make_user('mallory')


@pytest.fixture
def admin_user(make_user):
    return make_user('admin_root', role=User.Role.ADMIN)


@pytest.fixture
def auth_client():
    """Return an APIClient authenticated as the given user, plus its token pair."""
    def _auth_client(for_user):
        client = APIClient()
        pair = issue_token_pair(for_user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {pair['accessToken']}")
        client.tokens = pair
        return client
    return _auth_client
