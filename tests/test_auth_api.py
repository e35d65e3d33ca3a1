"""
Authentication endpoint tests: registration, login, logout, refresh,
current identity and password change.
"""

from datetime import timedelta

import jwt
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.urls import reverse, reverse_lazy
from rest_framework import status
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

from core.tokens import IdentityAccessToken
User = get_user_model()

PASSWORD = 'SecurePass123'


def payload(response):
    return response.data['data']


def error_fields(response):
    return {error['field'] for error in payload(response)['errors']}


# ============================================================================
# Registration
# ============================================================================

@pytest.mark.django_db
class TestRegistration:

    url = reverse_lazy('user_register')

    def registration_data(self, **overrides):
        data = {
            'email': 'New.User@Example.com',
            'username': 'new_user',
            'password': 'secret12',
            'fullName': 'New User',
        }
        data.update(overrides)
        return data

    def test_register_returns_profile_and_tokens(self, api_client):
        response = api_client.post(self.url, self.registration_data(), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        body = payload(response)
        assert response.data['apiVersion'] == '0.1.0'
        assert body['success'] is True
        assert body['item']['user']['email'] == 'new.user@example.com'
        assert body['item']['user']['role'] == 'USER'
        assert 'password' not in body['item']['user']
        assert body['item']['accessToken']
        assert body['item']['refreshToken']

    def test_password_is_hashed(self, api_client):
        api_client.post(self.url, self.registration_data(), format='json')
        user = User.objects.get(username='new_user')
        assert user.password != 'secret12'
        assert user.check_password('secret12')

    def test_role_cannot_be_chosen(self, api_client):
        response = api_client.post(self.url, self.registration_data(role='ADMIN'), format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert User.objects.get(username='new_user').role == User.Role.USER

    def test_duplicate_email_conflicts_without_side_effects(self, api_client, user):
        response = api_client.post(
            self.url,
            self.registration_data(email='ALICE@example.com'),
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        body = payload(response)
        assert body['success'] is False
        assert 'item' not in body
        assert body['errors'][0]['code'] == 'CONFLICT'
        assert not User.objects.filter(username='new_user').exists()

    def test_duplicate_username_conflicts(self, api_client, user):
        response = api_client.post(self.url, self.registration_data(username='alice'), format='json')
        assert response.status_code == status.HTTP_409_CONFLICT
        assert User.objects.count() == 1

    @pytest.mark.parametrize('field, value', [
        ('email', 'not-an-email'),
        ('username', 'ab'),
        ('username', 'bad name!'),
        ('password', '123'),
        ('bankAccountNumber', '12345'),
    ])
    def test_invalid_input_rejected(self, api_client, field, value):
        response = api_client.post(self.url, self.registration_data(**{field: value}), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert field in error_fields(response)
        assert not User.objects.exists()

    def test_bank_fields_required_together(self, api_client):
        response = api_client.post(
            self.url,
            self.registration_data(bankAccountNumber='1234567890'),
            format='json',
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'bankCode' in error_fields(response)

    def test_bank_pair_sets_payout_method(self, api_client):
        response = api_client.post(
            self.url,
            self.registration_data(bankAccountNumber='1234567890', bankCode='014'),
            format='json',
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert payload(response)['item']['user']['hasPayoutMethod'] is True


# ============================================================================
# Login
# ============================================================================

@pytest.mark.django_db
class TestLogin:

    url = reverse_lazy('user_login')

    def test_login_with_email(self, api_client, user):
        response = api_client.post(self.url, {'email': 'alice@example.com', 'password': PASSWORD}, format='json')

        assert response.status_code == status.HTTP_200_OK
        item = payload(response)['item']
        assert item['user']['id'] == str(user.pk)
        claims = jwt.decode(item['accessToken'], settings.SIMPLE_JWT['SIGNING_KEY'], algorithms=['HS256'])
        assert claims['type'] == 'access'
        assert claims['userId'] == str(user.pk)

    def test_login_with_username(self, api_client, user):
        response = api_client.post(self.url, {'username': 'alice', 'password': PASSWORD}, format='json')
        assert response.status_code == status.HTTP_200_OK

    def test_email_is_case_insensitive(self, api_client, user):
        response = api_client.post(self.url, {'email': 'ALICE@Example.COM', 'password': PASSWORD}, format='json')
        assert response.status_code == status.HTTP_200_OK

    def test_login_updates_last_login(self, api_client, user):
        assert user.last_login is None
        api_client.post(self.url, {'email': user.email, 'password': PASSWORD}, format='json')
        user.refresh_from_db()
        assert user.last_login is not None

    def test_failures_share_one_generic_message(self, api_client, user, make_user):
        make_user('dormant', is_active=False)
        attempts = [
            {'email': 'alice@example.com', 'password': 'wrong-password'},
            {'email': 'nobody@example.com', 'password': PASSWORD},
            {'email': 'dormant@example.com', 'password': PASSWORD},
            {'username': 'alice', 'password': 'wrong-password'},
        ]
        messages = set()
        for attempt in attempts:
            response = api_client.post(self.url, attempt, format='json')
            assert response.status_code == status.HTTP_401_UNAUTHORIZED
            messages.add(payload(response)['message'])
            assert payload(response)['errors'][0]['code'] == 'INVALID_CREDENTIALS'

        assert messages == {'Invalid credentials'}

    def test_missing_identifier_rejected(self, api_client):
        response = api_client.post(self.url, {'password': PASSWORD}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_stale_authorization_header_ignored(self, api_client, user):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')
        response = api_client.post(self.url, {'email': user.email, 'password': PASSWORD}, format='json')
        assert response.status_code == status.HTTP_200_OK

    def test_login_rate_limited(self, api_client, user):
        for _ in range(5):
            api_client.post(self.url, {'email': user.email, 'password': 'wrong'}, format='json')

        response = api_client.post(self.url, {'email': user.email, 'password': PASSWORD}, format='json')
        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS


# ============================================================================
# Current identity and bearer authentication
# ============================================================================

@pytest.mark.django_db
class TestMe:

    url = reverse_lazy('user_me')

    def test_me_returns_profile(self, auth_client, user):
        response = auth_client(user).get(self.url)
        assert response.status_code == status.HTTP_200_OK
        assert payload(response)['item']['username'] == 'alice'

    def test_no_token_rejected(self, api_client):
        response = api_client.get(self.url)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert payload(response)['success'] is False

    def test_refresh_token_as_bearer_rejected(self, api_client, auth_client, user):
        client = auth_client(user)
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {client.tokens['refreshToken']}")
        response = api_client.get(self.url)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_expired_token_rejected(self, api_client, user):
        token = IdentityAccessToken.for_user(user)
        token.set_exp(lifetime=-timedelta(seconds=1))
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = api_client.get(self.url)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_deactivated_user_token_rejected(self, auth_client, user):
        client = auth_client(user)
        user.is_active = False
        user.save()

        response = client.get(self.url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert payload(response)['message'] == 'Account is deactivated'


# ============================================================================
# Logout and refresh
# ============================================================================

@pytest.mark.django_db
class TestLogout:

    url = reverse_lazy('user_logout')

    def test_logout_blacklists_refresh_token(self, auth_client, user):
        client = auth_client(user)
        response = client.post(self.url, {'refreshToken': client.tokens['refreshToken']}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert BlacklistedToken.objects.filter(token__user=user).exists()

    def test_cannot_blacklist_someone_elses_token(self, auth_client, user, other_user):
        victim = auth_client(other_user)
        response = auth_client(user).post(
            self.url, {'refreshToken': victim.tokens['refreshToken']}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert not BlacklistedToken.objects.filter(token__user=other_user).exists()

    def test_logout_requires_authentication(self, api_client):
        response = api_client.post(self.url, {}, format='json')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestRefreshEndpoint:

    url = reverse_lazy('token_refresh')

    def test_refresh_rotates_pair(self, api_client, auth_client, user):
        tokens = auth_client(user).tokens
        response = api_client.post(self.url, {'refreshToken': tokens['refreshToken']}, format='json')

        assert response.status_code == status.HTTP_200_OK
        item = payload(response)['item']
        assert item['accessToken']
        assert item['refreshToken'] != tokens['refreshToken']

    def test_reused_refresh_token_rejected(self, api_client, auth_client, user):
        tokens = auth_client(user).tokens
        api_client.post(self.url, {'refreshToken': tokens['refreshToken']}, format='json')

        response = api_client.post(self.url, {'refreshToken': tokens['refreshToken']}, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_access_token_rejected(self, api_client, auth_client, user):
        tokens = auth_client(user).tokens
        response = api_client.post(self.url, {'refreshToken': tokens['accessToken']}, format='json')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_failure_reasons_are_indistinguishable(self, api_client, auth_client, user):
        tokens = auth_client(user).tokens
        bad = [tokens['accessToken'], 'garbage', tokens['refreshToken'][:-4] + 'abcd']
        messages = {
            payload(api_client.post(self.url, {'refreshToken': raw}, format='json'))['message']
            for raw in bad
        }
        assert len(messages) == 1

    def test_missing_token_is_validation_error(self, api_client):
        response = api_client.post(self.url, {}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST


# ============================================================================
# Password change
# ============================================================================

@pytest.mark.django_db
class TestChangePassword:

    url = reverse_lazy('change_password')

    def test_change_password(self, auth_client, user):
        client = auth_client(user)
        response = client.put(self.url, {
            'currentPassword': PASSWORD,
            'newPassword': 'brand-new-pass',
            'confirmPassword': 'brand-new-pass',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert payload(response)['item']['accessToken']
        user.refresh_from_db()
        assert user.check_password('brand-new-pass')
        # Refresh tokens issued before the change are revoked
        assert BlacklistedToken.objects.filter(token__user=user).count() == 1

    def test_wrong_current_password(self, auth_client, user):
        response = auth_client(user).put(self.url, {
            'currentPassword': 'nope',
            'newPassword': 'brand-new-pass',
            'confirmPassword': 'brand-new-pass',
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'currentPassword' in error_fields(response)

    def test_confirmation_must_match(self, auth_client, user):
        response = auth_client(user).put(self.url, {
            'currentPassword': PASSWORD,
            'newPassword': 'brand-new-pass',
            'confirmPassword': 'different-pass',
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'confirmPassword' in error_fields(response)


@pytest.mark.django_db
def test_health_check(api_client):
    response = api_client.get(reverse('health_check'))
    assert response.status_code == status.HTTP_200_OK
    assert payload(response)['item']['status'] == 'ok'
