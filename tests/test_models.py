"""
Tests for model-level invariants and field validators.
"""

import pytest
from django.contrib.auth import authenticate
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from transport.models import Bid, Review, Trip, User
from transport.validators import validate_dog_info, validate_payout_account_id, validate_push_token


@pytest.mark.django_db
class TestUserModel:

    def test_email_stored_lowercase(self, owner):
        owner.email = 'Owner@EXAMPLE.com'
        owner.save()
        owner.refresh_from_db()
        assert owner.email == 'owner@example.com'

    def test_role_is_immutable(self, owner):
        owner.role = User.ROLE_TRANSPORTER

        with pytest.raises(ValidationError) as excinfo:
            owner.save()

        assert 'role' in excinfo.value.message_dict
        assert User.objects.get(pk=owner.pk).role == User.ROLE_OWNER

    def test_role_helpers(self, owner, transporter, unpaid_transporter):
        assert owner.is_owner() and not owner.is_transporter()
        assert transporter.is_transporter() and transporter.has_payout_account()
        assert not unpaid_transporter.has_payout_account()

    def test_duplicate_email_rejected_by_database(self, owner):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                User.objects.create_user(
                    username='someone-else', email='owner@example.com', password='x', role=User.ROLE_OWNER
                )

    def test_email_backend_is_case_insensitive(self, owner):
        assert authenticate(username='OWNER@example.com', password='TestPass123!') == owner
        assert authenticate(username='owner@example.com', password='wrong') is None
        assert authenticate(username='nobody@example.com', password='TestPass123!') is None


@pytest.mark.django_db
class TestTripModel:

    def test_new_trip_defaults(self, trip):
        assert trip.status == Trip.STATUS_REQUESTED
        assert trip.winning_bid is None
        assert not trip.is_awarded

    @pytest.mark.parametrize('current,target,allowed', [
        (Trip.STATUS_REQUESTED, Trip.STATUS_ACCEPTED, True),
        (Trip.STATUS_ACCEPTED, Trip.STATUS_DELIVERED, True),
        (Trip.STATUS_REQUESTED, Trip.STATUS_DELIVERED, False),
        (Trip.STATUS_ACCEPTED, Trip.STATUS_REQUESTED, False),
        (Trip.STATUS_DELIVERED, Trip.STATUS_ACCEPTED, False),
        (Trip.STATUS_DELIVERED, Trip.STATUS_DELIVERED, True),
        (Trip.STATUS_REQUESTED, 'cancelled', False),
    ])
    def test_can_transition_to(self, current, target, allowed):
        trip = Trip(status=current)
        is_valid, message = trip.can_transition_to(target)

        assert is_valid is allowed
        assert (message is None) is allowed

    def test_transporter_cannot_own_trip(self, transporter):
        with pytest.raises(ValidationError):
            Trip.objects.create(owner=transporter, pickup_location='A', dropoff_location='B')

    def test_accepted_trip_requires_winning_bid(self, trip):
        trip.status = Trip.STATUS_ACCEPTED

        with pytest.raises(ValidationError) as excinfo:
            trip.save()

        assert 'winning_bid' in excinfo.value.message_dict

    def test_amounts_only_after_award(self, trip):
        trip.total_amount_cents = 1000

        with pytest.raises(ValidationError):
            trip.save()

    def test_awarded_amounts_must_add_up(self, awarded_trip):
        awarded_trip.platform_fee_cents += 1

        with pytest.raises(ValidationError):
            awarded_trip.save()

    def test_awarded_trip_satisfies_invariants(self, awarded_trip):
        awarded_trip.full_clean()

        assert awarded_trip.is_awarded
        assert awarded_trip.winning_bid.status == Bid.STATUS_ACCEPTED
        assert awarded_trip.transporter_id == awarded_trip.winning_bid.transporter_id


@pytest.mark.django_db
class TestBidModel:

    def test_owner_cannot_bid(self, trip, owner):
        with pytest.raises(ValidationError):
            Bid.objects.create(trip=trip, transporter=owner, amount_cents=100)

    def test_pending_bid_has_no_split(self, bid):
        bid.platform_fee_cents = 10

        with pytest.raises(ValidationError):
            bid.save()

    def test_accepted_bid_split_must_add_up(self, bid):
        bid.status = Bid.STATUS_ACCEPTED
        bid.platform_fee_cents = 1500
        bid.transporter_earnings_cents = 8000

        with pytest.raises(ValidationError):
            bid.save()

    def test_response_time(self, bid, trip):
        assert bid.response_time_minutes == pytest.approx(
            (bid.created_at - trip.created_at).total_seconds() / 60
        )
        assert bid.response_time_minutes >= 0


@pytest.mark.django_db
class TestReviewModel:

    def test_one_review_per_reviewer_and_trip(self, awarded_trip, owner, transporter):
        Review.objects.create(trip=awarded_trip, reviewer=owner, reviewee=transporter, rating=4)

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Review.objects.create(trip=awarded_trip, reviewer=owner, reviewee=transporter, rating=5)

    def test_outsider_review_invalid(self, awarded_trip, owner, second_transporter):
        review = Review(trip=awarded_trip, reviewer=owner, reviewee=second_transporter, rating=3)

        with pytest.raises(ValidationError):
            review.full_clean()

    def test_rating_bounds(self, awarded_trip, owner, transporter):
        review = Review(trip=awarded_trip, reviewer=owner, reviewee=transporter, rating=6)

        with pytest.raises(ValidationError) as excinfo:
            review.full_clean()

        assert 'rating' in excinfo.value.message_dict


class TestValidators:

    @pytest.mark.parametrize('value', ['acct_1Nv0FGQ9RKHgCVdK', 'acct_abc', '', None])
    def test_valid_payout_accounts(self, value):
        validate_payout_account_id(value)

    @pytest.mark.parametrize('value', ['acct_', 'acct-123', 'ba_123', 'acct_12 34'])
    def test_invalid_payout_accounts(self, value):
        with pytest.raises(ValidationError):
            validate_payout_account_id(value)

    @pytest.mark.parametrize('value', ['ExponentPushToken[abc123]', 'ExpoPushToken[xyz-789]', ''])
    def test_valid_push_tokens(self, value):
        validate_push_token(value)

    @pytest.mark.parametrize('value', ['abc123', 'ExponentPushToken[]', 'ExponentPushToken[a b]', 'FcmToken[abc]'])
    def test_invalid_push_tokens(self, value):
        with pytest.raises(ValidationError):
            validate_push_token(value)

    @pytest.mark.parametrize('value', [{}, {'name': 'Rex'}, {'count': 3, 'crate': True}, None])
    def test_valid_dog_info(self, value):
        validate_dog_info(value)

    @pytest.mark.parametrize('value', [[], 'beagle', {'count': 0}, {'count': 'two'}, {'count': True}])
    def test_invalid_dog_info(self, value):
        with pytest.raises(ValidationError):
            validate_dog_info(value)
