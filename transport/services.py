"""
Business operations for the trip / bid / payment lifecycle.

Views stay thin and call into this module. Every state change happens inside
``transaction.atomic()`` with the trip row locked, and domain events are only
emitted after commit.
"""

import hashlib
import logging
from collections import namedtuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from . import events
from .events import emit_on_commit
from .exceptions import (
    CancelFailed,
    Forbidden,
    InvalidState,
    NoAuthorization,
    NotFound,
    PayoutNotConfigured,
)
from .fees import compute_split
from .models import Bid, Message, Review, Trip, User

logger = logging.getLogger(__name__)


MARKET_LIMIT = 100
REVIEWS_DEFAULT_LIMIT = 10
REVIEWS_MAX_LIMIT = 50

DIRECTION_OWNER_TO_TRANSPORTER = 'owner-to-transporter'
DIRECTION_TRANSPORTER_TO_OWNER = 'transporter-to-owner'
REVIEW_DIRECTIONS = (DIRECTION_OWNER_TO_TRANSPORTER, DIRECTION_TRANSPORTER_TO_OWNER)


AwardResult = namedtuple(
    'AwardResult',
    ['payment_intent_id', 'client_secret', 'bid', 'trip', 'fee_percent', 'breakdown'],
)


def award_idempotency_key(trip_id, bid_id, amount_cents, destination_account, fee_cents):
    """
    Idempotency key for the award hold.

    Retries with the same parameters reuse the hold; a retry after the payout
    account or amounts changed gets a fresh key instead of a processor conflict.
    """
    fingerprint = hashlib.sha256(
        f'{amount_cents}:{destination_account}:{fee_cents}'.encode('utf-8')
    ).hexdigest()[:16]
    return f'award-trip-{trip_id}-bid-{bid_id}-{fingerprint}'


def get_trip_or_404(trip_id):
    trip = Trip.objects.select_related('owner', 'transporter').filter(pk=trip_id).first()
    if trip is None:
        raise NotFound('Trip not found.')
    return trip


# Trips

def create_trip(owner, pickup_location, dropoff_location, dog_info=None):
    """Post a new trip in the ``requested`` state and announce it to transporters."""
    if not owner.is_owner():
        raise Forbidden('Only owners can post trips.')

    with transaction.atomic():
        trip = Trip(
            owner=owner,
            pickup_location=pickup_location.strip(),
            dropoff_location=dropoff_location.strip(),
            dog_info=dog_info or {},
        )
        trip.save()
        emit_on_commit(events.trip_created, sender=Trip, trip=trip)

    logger.info(f"Trip {trip.id} created by owner {owner.email}")
    return trip


def list_trips_for_user(user_id, acting_user):
    """Trips where the user is owner or awarded transporter, newest first."""
    if acting_user.pk != int(user_id) and not acting_user.is_staff:
        raise Forbidden('You can only list your own trips.')

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found.')

    return Trip.objects.involving(user).select_related('owner', 'transporter')


def trip_finance(trip_id, acting_user):
    """Amount, platform fee and transporter earnings recorded on a trip."""
    trip = get_trip_or_404(trip_id)
    if trip.owner_id != acting_user.pk:
        raise Forbidden('Only the trip owner can view its finances.')

    return {
        'id': trip.id,
        'status': trip.status,
        'total_amount_cents': trip.total_amount_cents,
        'platform_fee_cents': trip.platform_fee_cents,
        'transporter_earnings_cents': trip.transporter_earnings_cents,
        'accepted_at': trip.accepted_at,
    }


def list_open_trips(acting_user):
    """Trips still open for bidding, newest first, capped for the market view."""
    if not acting_user.is_transporter():
        raise Forbidden('Only transporters can browse the market.')
    return Trip.objects.open_for_bidding()[:MARKET_LIMIT]


# Bids

def place_bid(trip_id, transporter, amount_cents, eta_hours=None, note=''):
    """
    Submit a pending bid on a trip.

    Takes the trip row lock so a bid can never land on a trip that is being
    awarded concurrently.

    Raises:
        Forbidden: If the bidder is not a transporter
        NotFound: If the trip does not exist
        InvalidState: If the trip is no longer accepting bids
    """
    if not transporter.is_transporter():
        raise Forbidden('Only transporters can place bids.')

    with transaction.atomic():
        trip = Trip.objects.select_for_update().filter(pk=trip_id).first()
        if trip is None:
            raise NotFound('Trip not found.')

        if trip.status != Trip.STATUS_REQUESTED:
            raise InvalidState(f'Trip is {trip.status} and no longer accepts bids.')

        bid = Bid(
            trip=trip,
            transporter=transporter,
            amount_cents=amount_cents,
            eta_hours=eta_hours,
            note=note or '',
        )
        bid.save()
        emit_on_commit(events.bid_placed, sender=Bid, bid=bid)

    logger.info(f"Bid {bid.id} placed on trip {trip.id} by {transporter.email}: {amount_cents} cents")
    return bid


def list_bids_for_trip(trip_id, acting_user):
    """Bids on the owner's trip, cheapest first, with transporter reputation."""
    trip = get_trip_or_404(trip_id)
    if trip.owner_id != acting_user.pk:
        raise Forbidden('Only the trip owner can view its bids.')
    return Bid.objects.for_trip_ranked(trip)


def list_bids_for_transporter(transporter):
    if not transporter.is_transporter():
        raise Forbidden('Only transporters have bids.')
    return Bid.objects.for_transporter(transporter)


def list_awarded_trips_for_transporter(transporter):
    if not transporter.is_transporter():
        raise Forbidden('Only transporters are awarded trips.')
    return Trip.objects.awarded_to(transporter)


class AwardCoordinator:
    """
    Accepts a bid: authorizes payment, records the split and closes bidding.

    Either every effect happens (authorization stored, winner accepted, other
    bids rejected, trip accepted) or none of the database effects do. A hold
    placed before a later failure is cancelled at the processor.

    Args:
        gateway: Payment gateway exposing ``authorize(...)`` and ``cancel(intent_id)``
        fee_percent: Platform fee percent; defaults to ``settings.PLATFORM_FEE_PERCENT``
    """

    def __init__(self, gateway, fee_percent=None):
        self.gateway = gateway
        self.fee_percent = settings.PLATFORM_FEE_PERCENT if fee_percent is None else fee_percent

    def _lock_trip(self, trip_id):
        return Trip.objects.select_for_update().get(pk=trip_id)

    def _release(self, intent_id, bid):
        """Cancel a hold that will not be recorded on the trip."""
        try:
            self.gateway.cancel(intent_id)
        except CancelFailed:
            logger.error(
                f"Could not cancel authorization {intent_id} for bid {bid.id}; "
                f"it stays held until the processor expires it",
                exc_info=True,
            )

    def accept_bid(self, bid_id, acting_owner):
        """
        Award the bid's trip to its transporter.

        Raises:
            NotFound: Bid does not exist
            Forbidden: Actor does not own the trip
            InvalidState: Trip already awarded (including a lost race)
            PayoutNotConfigured: Transporter cannot receive funds
            PaymentAuthorizationFailed: Processor refused the hold
        """
        bid = Bid.objects.select_related('trip', 'transporter').filter(pk=bid_id).first()
        if bid is None:
            raise NotFound('Bid not found.')

        if bid.trip.owner_id != acting_owner.pk:
            logger.warning(
                f"User {acting_owner.email} attempted to accept bid {bid_id} on a trip they do not own"
            )
            raise Forbidden('Only the trip owner can accept bids.')

        authorization = None
        try:
            with transaction.atomic():
                trip = self._lock_trip(bid.trip_id)

                if trip.status != Trip.STATUS_REQUESTED:
                    raise InvalidState(f'Trip is already {trip.status}.')

                transporter = bid.transporter
                if not transporter.has_payout_account():
                    raise PayoutNotConfigured()

                split = compute_split(bid.amount_cents, self.fee_percent)

                authorization = self.gateway.authorize(
                    amount_cents=bid.amount_cents,
                    destination_account=transporter.payout_account_id,
                    application_fee_cents=split.platform_fee,
                    description=f'Dog transport trip {trip.id} - bid {bid.id}',
                    metadata={
                        'trip_id': trip.id,
                        'bid_id': bid.id,
                        'transporter_user_id': transporter.id,
                    },
                    idempotency_key=award_idempotency_key(
                        trip.id, bid.id, bid.amount_cents,
                        transporter.payout_account_id, split.platform_fee,
                    ),
                )

                now = timezone.now()
                updated = Trip.objects.filter(pk=trip.id, status=Trip.STATUS_REQUESTED).update(
                    status=Trip.STATUS_ACCEPTED,
                    transporter=transporter,
                    winning_bid=bid,
                    total_amount_cents=bid.amount_cents,
                    platform_fee_cents=split.platform_fee,
                    transporter_earnings_cents=split.transporter_earnings,
                    payment_intent_id=authorization.intent_id,
                    accepted_at=now,
                    updated_at=now,
                )
                if updated == 0:
                    logger.warning(
                        f"Trip {trip.id} was awarded concurrently; cancelling authorization "
                        f"{authorization.intent_id} for bid {bid.id}"
                    )
                    raise InvalidState('Trip was awarded by another request.')

                try:
                    Bid.objects.filter(pk=bid.id).update(
                        status=Bid.STATUS_ACCEPTED,
                        platform_fee_cents=split.platform_fee,
                        transporter_earnings_cents=split.transporter_earnings,
                    )
                except IntegrityError:
                    raise InvalidState('Another bid on this trip is already accepted.')

                rejected = (
                    Bid.objects.filter(trip_id=trip.id)
                    .exclude(pk=bid.id)
                    .update(status=Bid.STATUS_REJECTED)
                )

                bid.refresh_from_db()
                trip.refresh_from_db()
                emit_on_commit(events.bid_accepted, sender=Bid, bid=bid, trip=trip)
        except Exception:
            if authorization is not None:
                self._release(authorization.intent_id, bid)
            raise

        logger.info(
            f"Trip {trip.id} awarded to bid {bid.id} ({transporter.email}): "
            f"total={bid.amount_cents}, fee={split.platform_fee}, rejected={rejected}"
        )

        return AwardResult(
            payment_intent_id=authorization.intent_id,
            client_secret=authorization.client_secret,
            bid=bid,
            trip=trip,
            fee_percent=self.fee_percent,
            breakdown={
                'total': bid.amount_cents,
                'platform_fee': split.platform_fee,
                'transporter_earnings': split.transporter_earnings,
            },
        )


class DeliveryCoordinator:
    """
    Confirms delivery of an accepted trip and captures the held payment.

    The capture happens first; the trip only becomes ``delivered`` once the
    funds are captured.
    """

    def __init__(self, gateway):
        self.gateway = gateway

    def mark_delivered(self, trip_id, acting_owner):
        """
        Raises:
            NotFound: Trip does not exist
            Forbidden: Actor does not own the trip
            InvalidState: Trip is not in the ``accepted`` state
            NoAuthorization: No payment hold is stored on the trip
            CaptureFailed: Processor refused the capture
        """
        with transaction.atomic():
            trip = Trip.objects.select_for_update().filter(pk=trip_id).first()
            if trip is None:
                raise NotFound('Trip not found.')

            if trip.owner_id != acting_owner.pk:
                logger.warning(
                    f"User {acting_owner.email} attempted to mark trip {trip_id} delivered without owning it"
                )
                raise Forbidden('Only the trip owner can confirm delivery.')

            if trip.status == Trip.STATUS_DELIVERED:
                raise InvalidState('Trip is already delivered.')

            is_valid, error_message = trip.can_transition_to(Trip.STATUS_DELIVERED)
            if not is_valid:
                raise InvalidState(error_message)

            if not trip.payment_intent_id:
                raise NoAuthorization()

            self.gateway.capture(trip.payment_intent_id)

            trip.status = Trip.STATUS_DELIVERED
            trip.save()
            emit_on_commit(events.trip_delivered, sender=Trip, trip=trip)

        logger.info(f"Trip {trip.id} delivered; captured payment {trip.payment_intent_id}")
        return trip

    def capture_for_trip(self, trip_id):
        """Capture a trip's held payment without touching its status."""
        trip = Trip.objects.filter(pk=trip_id).first()
        if trip is None:
            raise NotFound('Trip not found.')

        if not trip.payment_intent_id:
            raise NoAuthorization()

        self.gateway.capture(trip.payment_intent_id)
        logger.info(f"Manual capture for trip {trip.id}: {trip.payment_intent_id}")
        return trip


# Reviews

def submit_review(trip_id, reviewer, direction, rating, comment=''):
    """
    Create or overwrite the reviewer's review for a trip.

    ``direction`` names which side of the trip is reviewing which.
    """
    if direction not in REVIEW_DIRECTIONS:
        raise ValidationError({'direction': f'Unknown review direction: {direction}.'})

    trip = get_trip_or_404(trip_id)

    if direction == DIRECTION_OWNER_TO_TRANSPORTER:
        if trip.owner_id != reviewer.pk:
            raise Forbidden('Only the trip owner can review its transporter.')
        if trip.transporter_id is None:
            raise InvalidState('Trip has no transporter to review yet.')
        reviewee_id = trip.transporter_id
    else:
        if trip.transporter_id is None or trip.transporter_id != reviewer.pk:
            raise Forbidden('Only the awarded transporter can review the owner.')
        reviewee_id = trip.owner_id

    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError({'rating': 'Rating must be an integer between 1 and 5.'})

    with transaction.atomic():
        review, created = Review.objects.update_or_create(
            trip=trip,
            reviewer=reviewer,
            defaults={
                'reviewee_id': reviewee_id,
                'rating': rating,
                'comment': comment or '',
            },
        )

    action = 'created' if created else 'updated'
    logger.info(f"Review {review.id} {action} on trip {trip.id} by {reviewer.email} ({direction})")
    return review, created


def list_reviews_for_user(user_id, limit=None):
    if not User.objects.filter(pk=user_id).exists():
        raise NotFound('User not found.')

    if limit is None:
        limit = REVIEWS_DEFAULT_LIMIT
    limit = max(1, min(int(limit), REVIEWS_MAX_LIMIT))

    return (
        Review.objects.filter(reviewee_id=user_id)
        .select_related('reviewer')
        .order_by('-created_at', '-id')[:limit]
    )


def user_public_profile(user_id):
    """Public reputation summary for any user."""
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found.')

    response_minutes = [
        (created_at - trip_created_at).total_seconds() / 60
        for created_at, trip_created_at in Bid.objects.filter(transporter=user).values_list(
            'created_at', 'trip__created_at'
        )
    ]
    avg_response = sum(response_minutes) / len(response_minutes) if response_minutes else 0.0

    completed = Trip.objects.filter(transporter=user, status=Trip.STATUS_DELIVERED).count()

    return {
        'id': user.id,
        'email': user.email,
        'role': user.role,
        'avg_rating': float(user.avg_rating),
        'review_count': user.review_count,
        'avg_response_minutes': round(avg_response, 2),
        'completed_trips': completed,
    }


# Chat

def get_channel(bid_id, user):
    """Load a bid's chat channel, checking the user is one of its two participants."""
    bid = Bid.objects.select_related('trip', 'transporter', 'trip__owner').filter(pk=bid_id).first()
    if bid is None:
        raise NotFound('Bid not found.')

    if user.pk not in (bid.trip.owner_id, bid.transporter_id):
        logger.warning(f"User {user.email} denied access to chat on bid {bid_id}")
        raise Forbidden('You are not a participant in this conversation.')

    return bid


def list_messages(bid_id, user, since=None):
    """Messages on the channel in send order, optionally only those after ``since``."""
    bid = get_channel(bid_id, user)
    messages = bid.messages.select_related('sender')
    if since is not None:
        messages = messages.filter(created_at__gt=since)
    return messages.order_by('created_at', 'id')


def send_message(bid_id, user, body):
    bid = get_channel(bid_id, user)

    body = (body or '').strip()
    if not body:
        raise ValidationError({'body': 'Message body cannot be empty.'})

    with transaction.atomic():
        message = Message.objects.create(bid=bid, sender=user, body=body)
        Bid.objects.filter(pk=bid.pk).update(last_message_at=message.created_at)
        emit_on_commit(events.message_sent, sender=Message, message=message)

    logger.info(f"Message {message.id} sent on bid {bid.id} by {user.email}")
    return message


# Push registration

def register_push_token(user, token):
    user.push_token = token
    user.save(update_fields=['push_token', 'updated_at'])
    logger.info(f"Registered push token for {user.email}")
    return user
