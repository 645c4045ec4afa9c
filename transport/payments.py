"""
Payment processor client.

Wraps the Stripe SDK behind a small gateway object so coordinators can be
handed a fake in tests. Payments are authorized with manual capture when a
bid is accepted, captured once delivery is confirmed and cancelled when the
award that placed it does not go through.
"""

import logging
from collections import namedtuple

import stripe

from .exceptions import CancelFailed, CaptureFailed, PaymentAuthorizationFailed

logger = logging.getLogger(__name__)


PaymentAuthorization = namedtuple('PaymentAuthorization', ['intent_id', 'client_secret'])


class PaymentGateway:
    """
    Stripe PaymentIntent operations used by the marketplace.

    Args:
        secret_key: Stripe secret API key
        currency: ISO currency code for every charge (lowercase)
        webhook_secret: Signing secret for incoming webhook payloads
    """

    def __init__(self, secret_key, currency='usd', webhook_secret=''):
        self.secret_key = secret_key
        self.currency = currency
        self.webhook_secret = webhook_secret

    def authorize(self, amount_cents, destination_account, application_fee_cents,
                  description='', metadata=None, idempotency_key=None):
        """
        Place a hold on the customer's card for a transporter payout.

        Funds are routed to ``destination_account`` minus the platform's
        application fee once captured.

        Returns:
            PaymentAuthorization: intent id and client secret for client-side confirmation

        Raises:
            PaymentAuthorizationFailed: If Stripe rejects the request
        """
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount_cents,
                currency=self.currency,
                capture_method='manual',
                payment_method_types=['card'],
                description=description,
                transfer_data={'destination': destination_account},
                application_fee_amount=application_fee_cents,
                metadata={key: str(value) for key, value in (metadata or {}).items()},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.warning(f"Payment authorization failed for {destination_account}: {e}")
            raise PaymentAuthorizationFailed(detail=f'Payment authorization failed: {e.user_message or e}')

        logger.info(f"Authorized payment {intent.id} for {amount_cents} {self.currency}")
        return PaymentAuthorization(intent.id, intent.client_secret)

    def capture(self, intent_id):
        """
        Capture a previously authorized payment.

        Raises:
            CaptureFailed: If Stripe rejects the capture
        """
        try:
            intent = stripe.PaymentIntent.capture(intent_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            logger.warning(f"Payment capture failed for {intent_id}: {e}")
            raise CaptureFailed(detail=f'Payment capture failed: {e.user_message or e}')

        logger.info(f"Captured payment {intent_id} (status={intent.status})")
        return intent

    def cancel(self, intent_id):
        """
        Release an authorized payment that will not be captured.

        Raises:
            CancelFailed: If Stripe rejects the cancellation
        """
        try:
            intent = stripe.PaymentIntent.cancel(intent_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            logger.warning(f"Payment cancellation failed for {intent_id}: {e}")
            raise CancelFailed(detail=f'Payment cancellation failed: {e.user_message or e}')

        logger.info(f"Cancelled payment {intent_id} (status={intent.status})")
        return intent

    def construct_event(self, payload, signature):
        """
        Verify a webhook payload and parse it into an event.

        Raises:
            ValueError: If the payload is not valid JSON
            stripe.SignatureVerificationError: If the signature does not match
        """
        return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
