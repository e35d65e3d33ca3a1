"""
Middleware returning renewed tokens to the client.
"""

from django.conf import settings


class TokenRenewalMiddleware:
    """
    Copy a token pair renewed during authentication into response headers.

    ``RefreshingJWTAuthentication`` sets ``request.renewed_tokens``; the
    headers are exposed to browsers through ``CORS_EXPOSE_HEADERS``.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        pair = getattr(request, 'renewed_tokens', None)
        if pair:
            response[settings.RENEWED_ACCESS_TOKEN_HEADER] = pair['accessToken']
            response[settings.RENEWED_REFRESH_TOKEN_HEADER] = pair['refreshToken']

        return response
