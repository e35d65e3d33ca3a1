"""
JWT issuance, verification and refresh rotation.

Access tokens carry the identity claims the frontend reads; refresh tokens
carry only what is needed to mint a new pair. Every token has a ``type``
claim and verification always checks it.
"""

import logging

import jwt
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import AccessToken, RefreshToken
from rest_framework_simplejwt.utils import aware_utcnow, datetime_from_epoch

from .exceptions import TokenExpired, TokenInvalid, TokenRejected, TokenTypeMismatch

User = get_user_model()
logger = logging.getLogger(__name__)

ACCESS = 'access'
REFRESH = 'refresh'


class IdentityAccessToken(AccessToken):
    """
    Access token with identity claims: userId, email, fullName, phone, role, isActive.
    """

    @classmethod
    def for_user(cls, user):
        token = super().for_user(user)
        token['email'] = user.email
        token['fullName'] = user.full_name
        token['phone'] = user.phone
        token['role'] = user.role
        token['isActive'] = user.is_active
        return token


class IdentityRefreshToken(RefreshToken):
    """
    Refresh token with userId and email claims.

    Each issued token is recorded as outstanding so it can be blacklisted.
    """

    @classmethod
    def for_user(cls, user):
        token = super().for_user(user)
        token['email'] = user.email
        return token


TOKEN_CLASSES = {
    ACCESS: IdentityAccessToken,
    REFRESH: IdentityRefreshToken,
}


def issue_token_pair(user):
    """
    Issue a fresh access/refresh token pair for ``user``.

    Returns:
        dict: {'accessToken': str, 'refreshToken': str}
    """
    return {
        'accessToken': str(IdentityAccessToken.for_user(user)),
        'refreshToken': str(IdentityRefreshToken.for_user(user)),
    }


def decode_token(raw, expected_type):
    """
    Verify ``raw`` and return the validated token.

    The signature is checked first, then the ``type`` claim, then expiry,
    so callers can tell the failure reasons apart.

    Raises:
        TokenInvalid: Bad signature, malformed, or blacklisted
        TokenTypeMismatch: Valid token of the other type
        TokenExpired: Valid token past its ``exp``
    """
    if not raw:
        raise TokenInvalid()

    try:
        claims = jwt.decode(
            raw,
            api_settings.SIGNING_KEY,
            algorithms=[api_settings.ALGORITHM],
            options={'verify_exp': False},
        )
    except jwt.PyJWTError:
        raise TokenInvalid()

    if claims.get(api_settings.TOKEN_TYPE_CLAIM) != expected_type:
        raise TokenTypeMismatch()

    exp = claims.get('exp')
    if exp is None or datetime_from_epoch(exp) <= aware_utcnow():
        raise TokenExpired()

    try:
        return TOKEN_CLASSES[expected_type](raw)
    except TokenError:
        raise TokenInvalid()


def rotate_refresh_token(raw):
    """
    Exchange a refresh token for a new pair and blacklist the old one.

    The owning user must still exist and be active. Access tokens issued
    before the rotation stay valid until their own expiry.

    Returns:
        tuple: (user, pair)

    Raises:
        TokenRejected: If the refresh token cannot be used
    """
    refresh = decode_token(raw, REFRESH)

    user = User.objects.active().filter(pk=refresh.get(api_settings.USER_ID_CLAIM)).first()
    if user is None:
        logger.warning(f"Refresh rejected for missing or inactive user {refresh.get(api_settings.USER_ID_CLAIM)}")
        raise TokenInvalid()

    _blacklisted, created = refresh.blacklist()
    if not created:
        # Another request rotated this token first
        raise TokenInvalid()

    return user, issue_token_pair(user)


def blacklist_refresh_token(raw, user):
    """
    Blacklist a refresh token belonging to ``user``.

    Returns:
        bool: True if the token was valid and owned by ``user``
    """
    try:
        refresh = decode_token(raw, REFRESH)
    except TokenRejected:
        return False

    if str(refresh.get(api_settings.USER_ID_CLAIM)) != str(user.pk):
        return False

    refresh.blacklist()
    return True


def revoke_user_refresh_tokens(user):
    """
    Blacklist every outstanding refresh token for ``user``.

    Returns:
        int: Number of tokens newly blacklisted
    """
    pending = OutstandingToken.objects.filter(user=user, blacklistedtoken__isnull=True)
    count = 0
    for outstanding in pending:
        _token, created = BlacklistedToken.objects.get_or_create(token=outstanding)
        count += int(created)
    return count
