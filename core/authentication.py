"""
DRF authentication classes built on simplejwt.
"""

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.settings import api_settings

from .exceptions import TokenExpired, TokenInvalid, TokenRejected
from .tokens import ACCESS, decode_token, rotate_refresh_token

User = get_user_model()
logger = logging.getLogger(__name__)


class ActiveUserJWTAuthentication(JWTAuthentication):
    """
    Bearer access-token authentication.

    The user is reloaded on every request, so deactivating an account takes
    effect immediately even for tokens that have not expired.
    """

    def get_validated_token(self, raw_token):
        return decode_token(raw_token, ACCESS)

    def get_user(self, validated_token):
        user_id = validated_token.get(api_settings.USER_ID_CLAIM)
        if user_id is None:
            raise TokenInvalid()

        try:
            user = User.objects.get(pk=user_id)
        except (User.DoesNotExist, DjangoValidationError, ValueError):
            raise AuthenticationFailed('User not found', code='USER_NOT_FOUND')

        if not user.is_active:
            raise AuthenticationFailed('Account is deactivated', code='ACCOUNT_DEACTIVATED')

        return user


class RefreshingJWTAuthentication(ActiveUserJWTAuthentication):
    """
    Access-token authentication that renews an expired access token.

    When the bearer token has expired and the request also carries a valid
    refresh token in ``X-Refresh-Token``, the pair is rotated and the request
    proceeds as the token's user. The new pair is stored on the request for
    ``TokenRenewalMiddleware`` to return in response headers.
    """

    def authenticate(self, request):
        header = self.get_header(request)
        if header is None:
            return None

        raw_token = self.get_raw_token(header)
        if raw_token is None:
            return None

        try:
            validated_token = self.get_validated_token(raw_token)
        except TokenExpired:
            return self.renew(request)

        return self.get_user(validated_token), validated_token

    def renew(self, request):
        raw_refresh = request.META.get(settings.REFRESH_TOKEN_HEADER)
        if not raw_refresh:
            raise TokenExpired()

        try:
            user, pair = rotate_refresh_token(raw_refresh)
        except TokenRejected:
            logger.warning("Automatic token renewal failed: refresh token rejected")
            raise TokenExpired()

        request._request.renewed_tokens = pair
        logger.info(f"Access token renewed for user {user.pk}")
        return user, decode_token(pair['accessToken'], ACCESS)
