"""
Tests for account lifecycle signals.
"""

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from core.tokens import issue_token_pair

User = get_user_model()


@override_settings(PASSWORD_HASHERS=['django.contrib.auth.hashers.MD5PasswordHasher'])
class DeactivationSignalTests(TestCase):
    """Deactivating an account revokes its refresh tokens."""

    def setUp(self):
        self.user = User.objects.create_user(
            username='member1', email='member1@test.com', password='testpass123'
        )
        issue_token_pair(self.user)
        issue_token_pair(self.user)

    def blacklisted(self):
        return BlacklistedToken.objects.filter(token__user=self.user).count()

    def test_deactivation_revokes_refresh_tokens(self):
        self.user.is_active = False
        self.user.save()
        self.assertEqual(self.blacklisted(), 2)

    def test_deactivation_with_update_fields(self):
        self.user.is_active = False
        self.user.save(update_fields=['is_active', 'updated_at'])
        self.assertEqual(self.blacklisted(), 2)

    def test_other_updates_do_not_revoke(self):
        self.user.full_name = 'Member One'
        self.user.save()
        self.assertEqual(self.blacklisted(), 0)

    def test_saving_inactive_user_again_is_noop(self):
        self.user.is_active = False
        self.user.save()
        issue_token_pair(self.user)

        self.user.full_name = 'Still inactive'
        self.user.save()

        self.assertEqual(OutstandingToken.objects.filter(user=self.user).count(), 3)
        self.assertEqual(self.blacklisted(), 2)

    def test_reactivation_does_not_revoke(self):
        self.user.is_active = False
        self.user.save()
        self.user.is_active = True
        self.user.save()
        issue_token_pair(self.user)
        self.assertEqual(self.blacklisted(), 2)

    def test_creating_inactive_user(self):
        inactive = User.objects.create_user(
            username='member2', email='member2@test.com', password='testpass123', is_active=False
        )
        self.assertFalse(BlacklistedToken.objects.filter(token__user=inactive).exists())
