"""
Signal receivers.

Reputation receivers keep ``User.avg_rating`` / ``User.review_count`` in sync
with reviews. Notification receivers turn domain events into push messages.
"""

import logging
from decimal import Decimal

from django.apps import apps
from django.db import transaction
from django.db.models import Avg, Count
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from . import events
from .models import Review, User
from .notifications import build_message

logger = logging.getLogger(__name__)


def refresh_reputation(user_id):
    """
    Recompute a user's average rating and review count from their received reviews.

    Locks the user row so concurrent reviews for the same reviewee serialize.
    """
    with transaction.atomic():
        user = User.objects.select_for_update().get(pk=user_id)

        stats = Review.objects.filter(reviewee=user).aggregate(
            avg=Avg('rating'),
            total=Count('id'),
        )

        avg_rating = stats['avg']
        user.avg_rating = (
            Decimal(str(avg_rating)).quantize(Decimal('0.01')) if avg_rating is not None else Decimal('0.00')
        )
        user.review_count = stats['total'] or 0
        user.save(update_fields=['avg_rating', 'review_count', 'updated_at'])

    return user


@receiver(post_save, sender=Review)
def update_reputation_on_review_save(sender, instance, created, **kwargs):
    """
    Refresh the reviewee's reputation when a review is created or overwritten.

    Runs inside the review's transaction: if the refresh fails the review
    write is rolled back with it.
    """
    try:
        user = refresh_reputation(instance.reviewee_id)
        action = "created" if created else "updated"
        logger.info(
            f"Updated reputation for review {instance.id} ({action}): "
            f"reviewee={user.email}, avg={user.avg_rating}, count={user.review_count}"
        )
    except Exception as e:
        logger.error(f"Error updating reputation for review {instance.id}: {e}", exc_info=True)
        raise


@receiver(post_delete, sender=Review)
def update_reputation_on_review_delete(sender, instance, **kwargs):
    """Refresh the reviewee's reputation after a review is removed (admin only)."""
    try:
        refresh_reputation(instance.reviewee_id)
        logger.info(f"Updated reputation after deleting review {instance.id}")
    except Exception as e:
        logger.error(f"Error updating reputation after deleting review {instance.id}: {e}", exc_info=True)
        raise


def get_notifier():
    return apps.get_app_config('transport').push_notifier


@receiver(events.trip_created)
def notify_transporters_of_new_trip(sender, trip, **kwargs):
    tokens = (
        User.objects.filter(role=User.ROLE_TRANSPORTER, push_token__isnull=False)
        .exclude(push_token='')
        .values_list('push_token', flat=True)
    )
    messages = [
        build_message(
            token,
            'New dog trip available',
            f'{trip.pickup_location} → {trip.dropoff_location}',
            {'type': 'new_trip', 'tripId': trip.pk},
        )
        for token in tokens
    ]
    if messages:
        get_notifier().send(messages)


@receiver(events.bid_placed)
def notify_owner_of_new_bid(sender, bid, **kwargs):
    owner = bid.trip.owner
    get_notifier().notify(
        owner.push_token,
        'New bid received',
        'Open the app to review bids',
        {'type': 'new_bid', 'tripId': bid.trip_id},
    )


@receiver(events.bid_accepted)
def notify_transporter_of_award(sender, bid, trip, **kwargs):
    get_notifier().notify(
        bid.transporter.push_token,
        'Your bid was accepted',
        f'Trip #{trip.pk}',
        {'type': 'bid_accepted', 'tripId': trip.pk},
    )


@receiver(events.trip_delivered)
def notify_owner_of_delivery(sender, trip, **kwargs):
    get_notifier().notify(
        trip.owner.push_token,
        'Trip delivered',
        'Payment captured. Please leave a review.',
        {'type': 'delivered', 'tripId': trip.pk},
    )


@receiver(events.message_sent)
def notify_counterparty_of_message(sender, message, **kwargs):
    bid = message.bid
    recipient = bid.transporter if message.sender_id == bid.trip.owner_id else bid.trip.owner
    get_notifier().notify(
        recipient.push_token,
        'New message',
        message.body[:100],
        {'type': 'chat', 'bidId': bid.pk},
    )
