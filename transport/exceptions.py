"""
Domain errors for the trip / bid / payment lifecycle and its outside providers.

Each error is a DRF APIException with a stable code, so coordinators can raise
them directly and the API boundary renders them without extra mapping.
"""

import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(APIException):
    """Base class for all marketplace domain errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be completed.'
    default_code = 'domain_error'


class NotFound(DomainError):
    """A trip, bid or user referenced by the request does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class Forbidden(DomainError):
    """Role or ownership mismatch."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class InvalidState(DomainError):
    """Operation is not valid for the current lifecycle state."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This operation is not allowed in the current state.'
    default_code = 'invalid_state'


class PayoutNotConfigured(DomainError):
    """The winning transporter has no payout account to receive funds."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Transporter has not configured a payout account.'
    default_code = 'payout_not_configured'


class PaymentAuthorizationFailed(DomainError):
    """The payment processor refused or failed to authorize the payment."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Payment authorization failed.'
    default_code = 'payment_authorization_failed'


class NoAuthorization(DomainError):
    """Capture was requested for a trip without a stored authorization."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'No payment authorization exists for this trip.'
    default_code = 'no_authorization'


class CaptureFailed(DomainError):
    """The payment processor failed to capture the held payment."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Payment capture failed.'
    default_code = 'capture_failed'


class CancelFailed(DomainError):
    """The payment processor failed to cancel a held payment."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Payment cancellation failed.'
    default_code = 'cancel_failed'


class BackgroundCheckUnavailable(DomainError):
    """Background checks are not configured on this deployment."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Background checks are not available.'
    default_code = 'background_check_unavailable'


class BackgroundCheckFailed(DomainError):
    """The background check provider rejected the request or could not be reached."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Background check request failed.'
    default_code = 'background_check_failed'


def domain_exception_handler(exc, context):
    """
    DRF exception handler that attaches a stable ``code`` to error bodies.

    Domain errors render as ``{"detail": ..., "code": ...}``. Other DRF errors
    keep their default body; plain dict bodies without a code get the
    exception's default code added.
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, DomainError):
        response.data = {
            'detail': str(exc.detail),
            'code': exc.get_codes() if isinstance(exc.get_codes(), str) else exc.default_code,
        }
        view = context.get('view')
        logger.info(
            f"Domain error in {view.__class__.__name__ if view else 'unknown view'}: "
            f"{exc.default_code} - {exc.detail}"
        )
    elif isinstance(response.data, dict) and 'detail' in response.data and 'code' not in response.data:
        response.data['code'] = getattr(exc, 'default_code', 'error')

    return response
