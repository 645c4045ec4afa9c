"""
Domain events for the marketplace lifecycle.

Events are plain Django signals sent only after the surrounding database
transaction commits, so receivers never observe a rolled-back change.
Receivers are isolated from each other and from the caller: a failing
receiver is logged and the committed operation still returns normally.
"""

import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)


# Sent with trip=
trip_created = Signal()

# Sent with bid=
bid_placed = Signal()

# Sent with bid=, trip=
bid_accepted = Signal()

# Sent with trip=
trip_delivered = Signal()

# Sent with message=
message_sent = Signal()


def dispatch(signal, sender, **payload):
    """
    Send ``signal`` to every receiver, logging the ones that raise.

    Returns:
        list: ``(receiver, response)`` pairs as returned by ``send_robust``
    """
    responses = signal.send_robust(sender=sender, **payload)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                f"Event receiver {getattr(receiver, '__qualname__', receiver)} failed "
                f"for {getattr(sender, '__name__', sender)}: {response}",
                exc_info=(type(response), response, response.__traceback__),
            )
    return responses


def emit_on_commit(signal, sender, **payload):
    """Send ``signal`` once the current transaction commits (immediately outside one)."""
    transaction.on_commit(lambda: dispatch(signal, sender, **payload))
