"""
Data model for the Dog Transport Marketplace.

Owners post trips, transporters bid on them. A trip is awarded to exactly one
bid, which holds a payment authorization until delivery is confirmed.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Count, Q
from django.utils.translation import gettext_lazy as _

from .validators import validate_dog_info, validate_payout_account_id, validate_push_token


class User(AbstractUser):
    """
    Marketplace account.

    Additional fields:
    - email: Required, unique email address (login identifier)
    - external_id: Reference to the identity provider account, if any
    - role: Either 'owner' or 'transporter'; fixed at account creation
    - payout_account_id: Payment processor connected account receiving transporter payouts
    - push_token: Push notification address for the user's device
    - avg_rating / review_count: Reputation, maintained by review signals
    """

    ROLE_OWNER = 'owner'
    ROLE_TRANSPORTER = 'transporter'

    ROLE_CHOICES = [
        (ROLE_OWNER, 'Dog Owner'),
        (ROLE_TRANSPORTER, 'Transporter'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    external_id = models.CharField(
        _('external identity'),
        max_length=128,
        unique=True,
        blank=True,
        null=True,
        help_text=_('Identifier of this account at the identity provider.')
    )

    role = models.CharField(
        _('role'),
        max_length=20,
        choices=ROLE_CHOICES,
        blank=False,
        null=False,
        help_text=_('Required. Owners post trips, transporters bid on them.')
    )

    payout_account_id = models.CharField(
        _('payout account'),
        max_length=255,
        blank=True,
        null=True,
        validators=[validate_payout_account_id],
        help_text=_('Connected payment account that receives transporter earnings.')
    )

    push_token = models.CharField(
        _('push token'),
        max_length=255,
        blank=True,
        null=True,
        validators=[validate_push_token],
        help_text=_('Device push notification token.')
    )

    avg_rating = models.DecimalField(
        _('average rating'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[
            MinValueValidator(Decimal('0.00'), message=_('Rating cannot be negative.')),
            MaxValueValidator(Decimal('5.00'), message=_('Rating cannot exceed 5.00.'))
        ],
        help_text=_('Average rating received from counterparties.')
    )

    review_count = models.PositiveIntegerField(
        _('review count'),
        default=0,
        help_text=_('Number of reviews received.')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='user_email_idx'),
            models.Index(fields=['role'], name='user_role_idx'),
        ]

    def __str__(self):
        return self.email or self.username

    def is_owner(self):
        return self.role == self.ROLE_OWNER

    def is_transporter(self):
        return self.role == self.ROLE_TRANSPORTER

    def has_payout_account(self):
        return bool(self.payout_account_id and self.payout_account_id.strip())

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Email is provided and stored lowercase
        - Role is provided
        - Role never changes once the account exists

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if not self.role:
            raise ValidationError({
                'role': _('Role is required.')
            })

        if self.pk is not None:
            stored_role = (
                User.objects.filter(pk=self.pk).values_list('role', flat=True).first()
            )
            if stored_role and stored_role != self.role:
                raise ValidationError({
                    'role': _('Role cannot be changed once the account is created.')
                })

    def save(self, *args, **kwargs):
        """
        Normalize email and validate updates.

        New accounts skip full_clean so duplicate emails surface as the
        database IntegrityError the registration view handles.
        """
        if self.email:
            self.email = self.email.lower()

        if self.pk is not None:
            self.full_clean()

        super().save(*args, **kwargs)


class TripQuerySet(models.QuerySet):
    """Queries over trips used by the HTTP surface."""

    def involving(self, user):
        """Trips where the user is the owner or the awarded transporter, newest first."""
        return self.filter(Q(owner=user) | Q(transporter=user)).order_by('-created_at')

    def open_for_bidding(self):
        """Trips still accepting bids, with their bid count, newest first."""
        return (
            self.filter(status=Trip.STATUS_REQUESTED)
            .annotate(bid_count=Count('bids'))
            .order_by('-created_at')
        )

    def awarded_to(self, transporter):
        """
        Trips won by the transporter, most recently accepted first.

        Trips without an acceptance time sort last.
        """
        return (
            self.filter(transporter=transporter, winning_bid__isnull=False)
            .select_related('winning_bid', 'owner')
            .order_by(models.F('accepted_at').desc(nulls_last=True), '-id')
        )


class Trip(models.Model):
    """
    A transport job posted by an owner.

    Lifecycle: requested -> accepted -> delivered.

    Invariants:
    - winning_bid is set iff status is accepted or delivered
    - transporter is set iff winning_bid is set
    - money fields are set iff awarded and fee + earnings == total
    """

    STATUS_REQUESTED = 'requested'
    STATUS_ACCEPTED = 'accepted'
    STATUS_DELIVERED = 'delivered'

    STATUS_CHOICES = [
        (STATUS_REQUESTED, 'Requested'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_DELIVERED, 'Delivered'),
    ]

    VALID_TRANSITIONS = {
        STATUS_REQUESTED: [STATUS_ACCEPTED],
        STATUS_ACCEPTED: [STATUS_DELIVERED],
        STATUS_DELIVERED: [],
    }

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='owned_trips',
        help_text=_('Owner who posted the trip')
    )

    transporter = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='awarded_trips',
        null=True,
        blank=True,
        help_text=_('Transporter whose bid won the trip')
    )

    pickup_location = models.CharField(_('pickup location'), max_length=300)
    dropoff_location = models.CharField(_('dropoff location'), max_length=300)

    dog_info = models.JSONField(
        _('dog info'),
        default=dict,
        blank=True,
        validators=[validate_dog_info],
        help_text=_('Free-form details about the dog(s) being transported')
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_REQUESTED,
    )

    winning_bid = models.OneToOneField(
        'Bid',
        on_delete=models.PROTECT,
        related_name='won_trip',
        null=True,
        blank=True,
        help_text=_('Accepted bid')
    )

    total_amount_cents = models.PositiveIntegerField(_('total amount (cents)'), null=True, blank=True)
    platform_fee_cents = models.PositiveIntegerField(_('platform fee (cents)'), null=True, blank=True)
    transporter_earnings_cents = models.PositiveIntegerField(
        _('transporter earnings (cents)'), null=True, blank=True
    )

    payment_intent_id = models.CharField(
        _('payment authorization'),
        max_length=255,
        null=True,
        blank=True,
        help_text=_('Payment processor authorization held for this trip')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    accepted_at = models.DateTimeField(_('accepted at'), null=True, blank=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    objects = TripQuerySet.as_manager()

    class Meta:
        verbose_name = _('trip')
        verbose_name_plural = _('trips')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner'], name='trip_owner_idx'),
            models.Index(fields=['transporter'], name='trip_transporter_idx'),
            models.Index(fields=['status'], name='trip_status_idx'),
            models.Index(fields=['accepted_at'], name='trip_accepted_at_idx'),
        ]

    def __str__(self):
        return f"Trip #{self.pk}: {self.pickup_location} -> {self.dropoff_location} ({self.status})"

    @property
    def is_awarded(self):
        return self.status in (self.STATUS_ACCEPTED, self.STATUS_DELIVERED)

    def can_transition_to(self, new_status):
        """
        Validate if the trip can move to ``new_status``.

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        if new_status == self.status:
            return True, None

        if new_status not in self.VALID_TRANSITIONS:
            return False, f'Unknown trip status: {new_status}.'

        if new_status in self.VALID_TRANSITIONS.get(self.status, []):
            return True, None

        if self.status == self.STATUS_DELIVERED:
            return False, 'Cannot modify a delivered trip.'

        return False, f'Invalid status transition from {self.status} to {new_status}.'

    def clean(self):
        """
        Validate the award invariants and location fields.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.owner_id and self.owner and not self.owner.is_owner():
            raise ValidationError({
                'owner': _('Only users with role="owner" can post trips.')
            })

        if not self.pickup_location or not self.pickup_location.strip():
            raise ValidationError({'pickup_location': _('Pickup location cannot be empty.')})

        if not self.dropoff_location or not self.dropoff_location.strip():
            raise ValidationError({'dropoff_location': _('Dropoff location cannot be empty.')})

        if self.is_awarded != (self.winning_bid_id is not None):
            raise ValidationError({
                'winning_bid': _('A winning bid is required exactly when the trip is accepted or delivered.')
            })

        if (self.transporter_id is not None) != (self.winning_bid_id is not None):
            raise ValidationError({
                'transporter': _('A transporter is assigned exactly when a winning bid is set.')
            })

        money = [self.total_amount_cents, self.platform_fee_cents, self.transporter_earnings_cents]
        if self.is_awarded:
            if any(value is None for value in money):
                raise ValidationError(_('Awarded trips must record total, fee and earnings.'))
            if self.platform_fee_cents + self.transporter_earnings_cents != self.total_amount_cents:
                raise ValidationError(_('Platform fee and transporter earnings must add up to the total.'))
        elif any(value is not None for value in money):
            raise ValidationError(_('Amounts can only be recorded once the trip is awarded.'))

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class BidQuerySet(models.QuerySet):
    """
    Read side of the bid repository.

    Writes that change bid status belong to the award coordinator in
    ``transport.services``.
    """

    def for_trip_ranked(self, trip):
        """
        Bids on a trip, cheapest first, with transporter reputation loaded.

        Ties on amount are broken by submission time.
        """
        return (
            self.filter(trip=trip)
            .select_related('transporter', 'trip')
            .order_by('amount_cents', 'created_at', 'id')
        )

    def for_transporter(self, transporter):
        """Bids placed by a transporter with their trip summary, newest first."""
        return (
            self.filter(transporter=transporter)
            .select_related('trip')
            .order_by('-created_at', '-id')
        )

    def accepted(self):
        return self.filter(status=Bid.STATUS_ACCEPTED)


class Bid(models.Model):
    """
    A transporter's offer to fulfil a trip.

    Money fields (platform fee, transporter earnings) are only populated on the
    accepted bid and always sum to the bid amount.
    """

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    trip = models.ForeignKey(
        Trip,
        on_delete=models.CASCADE,
        related_name='bids',
    )

    transporter = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='bids',
    )

    amount_cents = models.PositiveIntegerField(_('amount (cents)'))

    eta_hours = models.PositiveIntegerField(_('ETA (hours)'), null=True, blank=True)

    note = models.TextField(_('note'), blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    platform_fee_cents = models.PositiveIntegerField(_('platform fee (cents)'), null=True, blank=True)
    transporter_earnings_cents = models.PositiveIntegerField(
        _('transporter earnings (cents)'), null=True, blank=True
    )

    last_message_at = models.DateTimeField(_('last message at'), null=True, blank=True)
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    objects = BidQuerySet.as_manager()

    class Meta:
        verbose_name = _('bid')
        verbose_name_plural = _('bids')
        ordering = ['amount_cents', 'created_at']
        indexes = [
            models.Index(fields=['trip', 'status'], name='bid_trip_status_idx'),
            models.Index(fields=['transporter'], name='bid_transporter_idx'),
            models.Index(fields=['amount_cents'], name='bid_amount_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['trip'],
                condition=Q(status='accepted'),
                name='unique_accepted_bid_per_trip',
            ),
        ]

    def __str__(self):
        return f"Bid #{self.pk} on trip #{self.trip_id}: {self.amount_cents} cents ({self.status})"

    @property
    def response_time_minutes(self):
        """Minutes between the trip being posted and this bid arriving."""
        if not self.created_at or not self.trip.created_at:
            return None
        return (self.created_at - self.trip.created_at).total_seconds() / 60

    def clean(self):
        """
        Validate the bid.

        Ensures:
        - Bidder is a transporter
        - Fee and earnings are set together, only on accepted bids, and sum to the amount

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.transporter_id and self.transporter and not self.transporter.is_transporter():
            raise ValidationError({
                'transporter': _('Only users with role="transporter" can place bids.')
            })

        money = [self.platform_fee_cents, self.transporter_earnings_cents]
        if self.status == self.STATUS_ACCEPTED:
            if any(value is None for value in money):
                raise ValidationError(_('Accepted bids must record fee and earnings.'))
            if self.platform_fee_cents + self.transporter_earnings_cents != self.amount_cents:
                raise ValidationError(_('Platform fee and transporter earnings must add up to the bid amount.'))
        elif any(value is not None for value in money):
            raise ValidationError(_('Fee and earnings are only recorded on the accepted bid.'))

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Review(models.Model):
    """
    Review left by one counterparty of a trip for the other.

    One review per (trip, reviewer); resubmitting overwrites rating and comment.
    """

    trip = models.ForeignKey(
        Trip,
        on_delete=models.CASCADE,
        related_name='reviews',
    )

    reviewer = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_given',
        help_text=_('User writing the review')
    )

    reviewee = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_received',
        help_text=_('User receiving the review')
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.'))
        ],
    )

    comment = models.TextField(_('comment'), blank=True, default='')

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['reviewee'], name='review_reviewee_idx'),
            models.Index(fields=['created_at'], name='review_created_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['trip', 'reviewer'],
                name='unique_review_per_trip_reviewer',
            ),
        ]

    def __str__(self):
        return f"Review by {self.reviewer.email} for {self.reviewee.email} - {self.rating}★"

    def clean(self):
        """
        Validate that reviewer and reviewee are the two parties of the trip.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.reviewer_id and self.reviewee_id and self.reviewer_id == self.reviewee_id:
            raise ValidationError({
                'reviewee': _('Reviewer and reviewee cannot be the same user.')
            })

        if self.trip_id and self.trip:
            parties = {self.trip.owner_id, self.trip.transporter_id}
            if self.reviewer_id not in parties or self.reviewee_id not in parties:
                raise ValidationError(_('Reviews can only be exchanged between the trip owner and transporter.'))


class Message(models.Model):
    """
    Chat message on a bid's conversation channel.

    Participants are the trip owner and the bidding transporter, derived from
    the bid on every access. Messages are never deleted.
    """

    bid = models.ForeignKey(
        Bid,
        on_delete=models.CASCADE,
        related_name='messages',
    )

    sender = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='messages_sent',
    )

    body = models.TextField(_('body'))

    created_at = models.DateTimeField(_('created at'), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['bid', 'created_at'], name='message_bid_created_idx'),
        ]

    def __str__(self):
        return f"Message #{self.pk} on bid #{self.bid_id} from {self.sender_id}"
