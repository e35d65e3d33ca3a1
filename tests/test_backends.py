"""
Tests for the credential and OAuth profile authentication backends.
"""

import pytest
from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework.exceptions import AuthenticationFailed

from core.backends import (
    CredentialsBackend,
    OAuthProfileBackend,
    exchange_oauth_profile,
    generate_username,
    verify_credentials,
)
User = get_user_model()

PASSWORD = 'SecurePass123'

BOTH_BACKENDS = [
    'core.backends.CredentialsBackend',
    'core.backends.OAuthProfileBackend',
]


def google_profile(**overrides):
    profile = {
        'provider': 'google',
        'subject': '109876543210',
        'email': 'carol@gmail.com',
        'name': 'Carol Google',
        'picture': 'https://lh3.googleusercontent.com/carol.png',
    }
    profile.update(overrides)
    return profile


@pytest.mark.django_db
class TestCredentialsBackend:

    backend = CredentialsBackend()

    def test_email_lookup(self, user):
        assert self.backend.authenticate(None, email=' Alice@Example.com', password=PASSWORD) == user

    def test_username_lookup(self, user):
        assert self.backend.authenticate(None, username='alice', password=PASSWORD) == user

    def test_username_field_accepts_email(self, user):
        # The admin login form posts the identifier as ``username``
        assert self.backend.authenticate(None, username='alice@example.com', password=PASSWORD) == user

    def test_wrong_password(self, user):
        assert self.backend.authenticate(None, email=user.email, password='nope') is None

    def test_unknown_user(self, db):
        assert self.backend.authenticate(None, email='ghost@example.com', password=PASSWORD) is None

    def test_inactive_user(self, make_user):
        make_user('dormant', is_active=False)
        assert self.backend.authenticate(None, username='dormant', password=PASSWORD) is None

    def test_missing_arguments(self, user):
        assert self.backend.authenticate(None, email=user.email) is None
        assert self.backend.authenticate(None, password=PASSWORD) is None

    def test_verify_credentials_raises_generic_error(self, user):
        with pytest.raises(AuthenticationFailed) as exc_info:
            verify_credentials(None, 'nope', email=user.email)
        assert str(exc_info.value.detail) == 'Invalid credentials'


@pytest.mark.django_db
class TestOAuthProfileBackend:

    backend = OAuthProfileBackend()

    def test_creates_new_user(self):
        user = self.backend.authenticate(None, oauth_profile=google_profile())

        assert user.email == 'carol@gmail.com'
        assert user.google_id == '109876543210'
        assert user.auth_provider == User.AuthProvider.GOOGLE
        assert user.role == User.Role.USER
        assert user.full_name == 'Carol Google'
        assert not user.has_usable_password()
        assert user.username.startswith('carol_')

    def test_matches_existing_link(self):
        first = self.backend.authenticate(None, oauth_profile=google_profile())

        again = self.backend.authenticate(
            None, oauth_profile=google_profile(email='Carol.New@gmail.com', name='Carol N')
        )

        assert again.pk == first.pk
        assert again.email == 'carol.new@gmail.com'
        assert again.full_name == 'Carol N'
        assert User.objects.count() == 1

    def test_links_local_account_with_same_email(self, db):
        local = User.objects.create_user(
            username='carol', email='carol@gmail.com', password=PASSWORD,
        )

        user = self.backend.authenticate(None, oauth_profile=google_profile(email='CAROL@gmail.com'))

        assert user.pk == local.pk
        assert user.google_id == '109876543210'
        assert user.auth_provider == User.AuthProvider.GOOGLE
        assert user.check_password(PASSWORD)

    def test_inactive_user_refused(self):
        user = self.backend.authenticate(None, oauth_profile=google_profile())
        user.is_active = False
        user.save()

        assert self.backend.authenticate(None, oauth_profile=google_profile()) is None

    @pytest.mark.parametrize('overrides', [
        {'provider': 'facebook'},
        {'subject': ''},
        {'email': None},
    ])
    def test_incomplete_or_foreign_profile(self, overrides):
        assert self.backend.authenticate(None, oauth_profile=google_profile(**overrides)) is None
        assert not User.objects.exists()

    def test_ignores_password_logins(self, user):
        assert self.backend.authenticate(None, username='alice', password=PASSWORD) is None

    def test_get_user(self, user):
        assert self.backend.get_user(user.pk) == user

    @override_settings(AUTHENTICATION_BACKENDS=BOTH_BACKENDS)
    def test_exchange_oauth_profile(self):
        user = exchange_oauth_profile(None, google_profile())
        assert user.google_id == '109876543210'

    @override_settings(AUTHENTICATION_BACKENDS=BOTH_BACKENDS)
    def test_exchange_failure_is_generic(self):
        with pytest.raises(AuthenticationFailed):
            exchange_oauth_profile(None, google_profile(subject=''))


def test_generate_username_sanitizes_local_part():
    username = generate_username('jane.doe+shop@example.com', suffix='1700000000000')
    assert username == 'jane_doe_shop_1700000000000'


def test_generate_username_respects_max_length():
    username = generate_username('x' * 200 + '@example.com', suffix='abc123')
    assert len(username) == 100
    assert username.endswith('_abc123')
