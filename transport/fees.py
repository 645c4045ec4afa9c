"""
Platform fee calculation for accepted bids.

All amounts are integer minor currency units (cents). The platform fee is
rounded half-up; transporter earnings are always the remainder, so the two
parts add back up to the bid amount exactly.
"""

from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP


FeeSplit = namedtuple('FeeSplit', ['platform_fee', 'transporter_earnings'])


def compute_split(amount_cents, fee_percent):
    """
    Split a bid amount between the platform and the transporter.

    Args:
        amount_cents: Bid amount in cents (non-negative integer)
        fee_percent: Platform fee percentage (non-negative, e.g. 15 or 12.5)

    Returns:
        FeeSplit: (platform_fee, transporter_earnings), both in cents

    Raises:
        ValueError: If amount is not a non-negative integer or percent is negative

    Example:
        >>> compute_split(10000, 15)
        FeeSplit(platform_fee=1500, transporter_earnings=8500)
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValueError('Amount must be an integer number of cents.')
    if amount_cents < 0:
        raise ValueError('Amount cannot be negative.')

    percent = Decimal(str(fee_percent))
    if percent < 0:
        raise ValueError('Fee percent cannot be negative.')

    fee = (Decimal(amount_cents) * percent / Decimal(100)).quantize(
        Decimal('1'), rounding=ROUND_HALF_UP
    )
    platform_fee = int(fee)

    return FeeSplit(platform_fee, amount_cents - platform_fee)
