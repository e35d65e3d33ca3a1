"""
Custom validators for users and transaction rooms.
"""

import re

from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator, URLValidator


validate_username = RegexValidator(
    regex=r'^[a-zA-Z0-9_]+$',
    message='Username can only contain letters, numbers, and underscores.',
    code='invalid_username',
)

validate_bank_account_number = RegexValidator(
    regex=r'^\d{10,12}$',
    message='Bank account number must be 10-12 digits.',
    code='invalid_bank_account_number',
)

validate_bank_code = RegexValidator(
    regex=r'^\d{3}$',
    message='Bank code must be exactly 3 digits.',
    code='invalid_bank_code',
)

validate_currency_code = RegexValidator(
    regex=r'^[A-Z]{3}$',
    message='Currency must be a 3-letter upper-case code.',
    code='invalid_currency',
)


def validate_phone_number(value):
    """
    Validate phone number format.

    Accepts international formats with optional country code, spaces, dashes
    and parentheses. Requires between 9 and 15 digits.

    Raises:
        ValidationError: If phone number format is invalid
    """
    if not value:
        return

    if not re.match(r'^[\d\s\-\+\(\)]+$', value):
        raise ValidationError(
            'Phone number can only contain digits, spaces, dashes, parentheses, and plus sign.',
            code='invalid_phone_chars'
        )

    digits = re.sub(r'\D', '', value)

    if len(digits) < 9 or len(digits) > 15:
        raise ValidationError(
            'Phone number must contain between 9 and 15 digits.',
            code='invalid_phone_length'
        )


def validate_image_urls(value):
    """
    Validate a list of item image URLs.

    Args:
        value: Decoded JSON value stored on the room

    Raises:
        ValidationError: If value is not a list of http(s) URL strings
    """
    if value in (None, ''):
        return

    if not isinstance(value, list):
        raise ValidationError(
            'Item images must be a list of URLs.',
            code='invalid_images'
        )

    url_validator = URLValidator(schemes=['http', 'https'])
    for url in value:
        if not isinstance(url, str):
            raise ValidationError(
                'Each item image must be a URL string.',
                code='invalid_image_url'
            )
        try:
            url_validator(url)
        except ValidationError:
            raise ValidationError(
                f'Invalid image URL: {url}',
                code='invalid_image_url'
            )
