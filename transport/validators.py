"""
Custom validators for marketplace fields.
"""

import re
from django.core.exceptions import ValidationError


PAYOUT_ACCOUNT_PATTERN = re.compile(r'^acct_[A-Za-z0-9]+$')
PUSH_TOKEN_PATTERN = re.compile(r'^(ExponentPushToken|ExpoPushToken)\[[^\[\]\s]+\]$')


def validate_payout_account_id(value):
    """
    Validate a connected payout account identifier.

    Valid format: ``acct_`` followed by letters and digits, e.g. ``acct_1Nv0FGQ9RKHgCVdK``.

    Raises:
        ValidationError: If the identifier is malformed
    """
    if not value:  # Optional until the transporter finishes onboarding
        return

    if not PAYOUT_ACCOUNT_PATTERN.match(value):
        raise ValidationError(
            'Payout account must look like "acct_" followed by letters and digits.',
            code='invalid_payout_account'
        )


def validate_push_token(value):
    """
    Validate a device push token.

    Valid formats:
    - ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]
    - ExpoPushToken[xxxxxxxxxxxxxxxxxxxxxx]

    Raises:
        ValidationError: If the token is malformed
    """
    if not value:
        return

    if not PUSH_TOKEN_PATTERN.match(value):
        raise ValidationError(
            'Push token must look like ExponentPushToken[...].',
            code='invalid_push_token'
        )


def validate_dog_info(value):
    """
    Validate the free-form dog description attached to a trip.

    Must be a JSON object; a ``count`` entry, when present, must be a positive integer.

    Raises:
        ValidationError: If the value has the wrong shape
    """
    if value is None:
        return

    if not isinstance(value, dict):
        raise ValidationError('Dog info must be an object.', code='invalid_dog_info')

    count = value.get('count')
    if count is not None and (isinstance(count, bool) or not isinstance(count, int) or count < 1):
        raise ValidationError('Dog count must be a positive integer.', code='invalid_dog_count')
