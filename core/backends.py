"""
Authentication backends: password credentials and OAuth profile exchange.

Which backends are active is decided by ``AUTHENTICATION_BACKENDS`` in
settings; the OAuth backend is only listed when Google credentials are
configured.
"""

import logging
import re
import secrets

from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.backends import BaseBackend, ModelBackend
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import AuthenticationFailed

User = get_user_model()
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid credentials'


class CredentialsBackend(ModelBackend):
    """
    Authenticate with an email address or username and a password.
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        """
        Authenticate user by email (case-insensitive) or username.

        Args:
            request: HTTP request object
            username: Username, or an email address when coming from the admin login
            password: User password
            email: Email address

        Returns:
            User object if authentication successful, None otherwise
        """
        if password is None or not (email or username):
            return None

        if email:
            lookup = Q(email__iexact=email.strip())
        else:
            lookup = Q(username=username) | Q(email__iexact=username.strip())

        user = User.objects.filter(lookup).first()
        if user is None:
            # Run the default password hasher once to reduce the timing
            # difference between an existing and a nonexistent user
            User().set_password(password)
            logger.info(f"Credential check failed: no account for {email or username}")
            return None

        if not user.check_password(password):
            logger.info(f"Credential check failed: wrong password for {user.pk}")
            return None

        if not self.user_can_authenticate(user):
            logger.info(f"Credential check failed: account {user.pk} is inactive")
            return None

        return user


class OAuthProfileBackend(BaseBackend):
    """
    Turn a provider-verified OAuth profile into a local user.

    The profile is a dict with ``provider``, ``subject``, ``email``, ``name``
    and ``picture``. Lookup order: existing link by provider subject, then an
    account with the same email (which gets linked), then a new account with
    an unusable password.
    """

    def authenticate(self, request, oauth_profile=None, **kwargs):
        if not oauth_profile:
            return None

        provider = oauth_profile.get('provider', User.AuthProvider.GOOGLE)
        if provider != User.AuthProvider.GOOGLE:
            return None

        subject = str(oauth_profile.get('subject') or '').strip()
        email = (oauth_profile.get('email') or '').strip().lower()
        if not subject or not email:
            logger.warning("OAuth profile rejected: missing subject or email")
            return None

        name = (oauth_profile.get('name') or '').strip()[:200]
        picture = (oauth_profile.get('picture') or '').strip()

        with transaction.atomic():
            user = User.objects.filter(google_id=subject).first()
            if user is not None:
                user.email = email
                user.full_name = name or user.full_name
                user.profile_picture = picture or user.profile_picture
                user.save(update_fields=['email', 'full_name', 'profile_picture', 'updated_at'])
            else:
                user = User.objects.filter(email__iexact=email).first()
                if user is not None:
                    if user.auth_provider == User.AuthProvider.LOCAL:
                        user.google_id = subject
                        user.auth_provider = User.AuthProvider.GOOGLE
                        user.full_name = name or user.full_name
                        user.profile_picture = picture or user.profile_picture
                        user.save(update_fields=[
                            'google_id', 'auth_provider', 'full_name', 'profile_picture', 'updated_at',
                        ])
                        logger.info(f"Linked Google account to existing user {user.pk}")
                else:
                    user = self.create_oauth_user(subject, email, name, picture)

        if not user.is_active:
            logger.warning(f"OAuth login refused for inactive user {user.pk}")
            return None

        return user

    def create_oauth_user(self, subject, email, name, picture):
        user = User(
            email=email,
            username=generate_username(email),
            google_id=subject,
            full_name=name,
            profile_picture=picture,
            auth_provider=User.AuthProvider.GOOGLE,
            role=User.Role.USER,
        )
        user.set_unusable_password()
        try:
            with transaction.atomic():
                user.save()
        except IntegrityError:
            # Generated username collided, one retry with a random suffix
            user.username = generate_username(email, suffix=secrets.token_hex(3))
            user.save()
        logger.info(f"Created user {user.pk} from Google profile")
        return user

    def get_user(self, user_id):
        try:
            return User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None


def generate_username(email, suffix=None):
    """
    Build a username from the local part of ``email`` plus a unique suffix.
    """
    base = re.sub(r'[^a-zA-Z0-9_]', '_', email.split('@')[0]) or 'user'
    if suffix is None:
        suffix = str(int(timezone.now().timestamp() * 1000))
    return f"{base[:100 - len(suffix) - 1]}_{suffix}"


def verify_credentials(request, password, email=None, username=None):
    """
    Authenticate a login request or raise a generic 401.

    Raises:
        AuthenticationFailed: For any failure, with the same message
    """
    user = authenticate(request, email=email, username=username, password=password)
    if user is None:
        raise AuthenticationFailed(INVALID_CREDENTIALS, code='INVALID_CREDENTIALS')
    return user


def exchange_oauth_profile(request, oauth_profile):
    """
    Resolve a verified OAuth profile to a local user or raise a generic 401.
    """
    user = authenticate(request, oauth_profile=oauth_profile)
    if user is None:
        raise AuthenticationFailed('OAuth login failed', code='AUTHENTICATION_FAILED')
    return user
