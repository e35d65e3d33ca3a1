"""
Admin user management endpoint tests.
"""

import uuid

import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse, reverse_lazy
from rest_framework import status
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

User = get_user_model()


def payload(response):
    return response.data['data']


@pytest.mark.django_db
class TestAdminAccess:

    @pytest.mark.parametrize('method, route, with_id', [
        ('get', 'admin_user_list', False),
        ('get', 'admin_user_stats', False),
        ('get', 'admin_user_detail', True),
        ('put', 'admin_user_detail', True),
        ('delete', 'admin_user_detail', True),
        ('put', 'admin_user_activate', True),
        ('put', 'admin_user_deactivate', True),
    ])
    def test_regular_user_forbidden(self, auth_client, user, other_user, method, route, with_id):
        kwargs = {'user_id': other_user.pk} if with_id else {}
        response = getattr(auth_client(user), method)(reverse(route, kwargs=kwargs), {}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert payload(response)['errors'][0]['code'] == 'FORBIDDEN'
        other_user.refresh_from_db()
        assert other_user.is_active is True

    def test_anonymous_unauthorized(self, api_client):
        response = api_client.get(reverse('admin_user_list'))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestAdminUserList:

    url = reverse_lazy('admin_user_list')

    def test_lists_inactive_users_too(self, auth_client, admin_user, user, make_user):
        make_user('dormant', is_active=False)

        response = auth_client(admin_user).get(self.url)

        assert response.status_code == status.HTTP_200_OK
        usernames = {item['username'] for item in payload(response)['items']}
        assert usernames == {'admin_root', 'alice', 'dormant'}
        assert payload(response)['pagination']['total'] == 3

    def test_admin_view_includes_private_fields(self, auth_client, admin_user, user):
        items = payload(auth_client(admin_user).get(self.url))['items']
        alice = next(item for item in items if item['username'] == 'alice')
        assert alice['email'] == 'alice@example.com'
        assert alice['isActive'] is True


@pytest.mark.django_db
def test_admin_user_stats(auth_client, admin_user, user, other_user, make_user):
    make_user('dormant', is_active=False)

    response = auth_client(admin_user).get(reverse('admin_user_stats'))

    assert response.status_code == status.HTTP_200_OK
    item = payload(response)['item']
    assert item['totalUsers'] == 4
    assert item['activeUsers'] == 3
    assert item['inactiveUsers'] == 1
    assert item['recentUsers'] == 4
    assert item['stats'] == {'activePercentage': '75.00', 'inactivePercentage': '25.00'}


@pytest.mark.django_db
class TestAdminUserDetail:

    def url(self, route, target):
        return reverse(route, kwargs={'user_id': target.pk})

    def test_get_inactive_user(self, auth_client, admin_user, make_user):
        dormant = make_user('dormant', is_active=False)
        response = auth_client(admin_user).get(self.url('admin_user_detail', dormant))

        assert response.status_code == status.HTTP_200_OK
        assert payload(response)['item']['isActive'] is False

    def test_update_role(self, auth_client, admin_user, user):
        response = auth_client(admin_user).put(
            self.url('admin_user_detail', user), {'role': 'ADMIN'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.is_admin()

    def test_invalid_role_rejected(self, auth_client, admin_user, user):
        response = auth_client(admin_user).put(
            self.url('admin_user_detail', user), {'role': 'ROOT'}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_deactivates_and_revokes(self, auth_client, admin_user, user):
        user_client = auth_client(user)

        response = auth_client(admin_user).delete(self.url('admin_user_detail', user))

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.is_active is False
        assert User.objects.filter(pk=user.pk).exists()
        assert BlacklistedToken.objects.filter(token__user=user).exists()

        refresh = user_client.post(
            reverse('token_refresh'), {'refreshToken': user_client.tokens['refreshToken']}, format='json'
        )
        assert refresh.status_code == status.HTTP_401_UNAUTHORIZED

    def test_deactivate_then_activate(self, auth_client, admin_user, user):
        client = auth_client(admin_user)

        response = client.put(self.url('admin_user_deactivate', user))
        assert payload(response)['item']['isActive'] is False

        response = client.put(self.url('admin_user_activate', user))
        assert response.status_code == status.HTTP_200_OK
        assert payload(response)['item']['isActive'] is True

        login = client.post(reverse('user_login'), {'username': 'alice', 'password': 'SecurePass123'}, format='json')
        assert login.status_code == status.HTTP_200_OK

    def test_unknown_user_not_found(self, auth_client, admin_user):
        url = reverse('admin_user_detail', kwargs={'user_id': uuid.uuid4()})
        response = auth_client(admin_user).get(url)
        assert response.status_code == status.HTTP_404_NOT_FOUND
