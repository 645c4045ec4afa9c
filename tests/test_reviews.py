"""
Tests for two-way reviews: upsert semantics and reputation aggregates.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.exceptions import ValidationError

from transport import services
from transport.exceptions import Forbidden, InvalidState, NotFound
from transport.models import Review


OWNER_TO_TRANSPORTER = services.DIRECTION_OWNER_TO_TRANSPORTER
TRANSPORTER_TO_OWNER = services.DIRECTION_TRANSPORTER_TO_OWNER


@pytest.mark.django_db
class TestSubmitReview:

    def test_owner_reviews_transporter(self, awarded_trip, owner, transporter):
        review, created = services.submit_review(awarded_trip.id, owner, OWNER_TO_TRANSPORTER, 5, 'Biscuit arrived happy')

        assert created is True
        assert review.reviewer_id == owner.id
        assert review.reviewee_id == transporter.id
        assert review.comment == 'Biscuit arrived happy'

    def test_transporter_reviews_owner(self, awarded_trip, owner, transporter):
        review, created = services.submit_review(awarded_trip.id, transporter, TRANSPORTER_TO_OWNER, 4)

        assert created is True
        assert review.reviewee_id == owner.id

    def test_resubmission_overwrites(self, awarded_trip, owner, transporter):
        first, _ = services.submit_review(awarded_trip.id, owner, OWNER_TO_TRANSPORTER, 2, 'Late pickup')
        second, created = services.submit_review(awarded_trip.id, owner, OWNER_TO_TRANSPORTER, 4, 'They made up for it')

        assert created is False
        assert second.id == first.id
        assert Review.objects.filter(trip=awarded_trip, reviewer=owner).count() == 1
        second.refresh_from_db()
        assert second.rating == 4
        assert second.comment == 'They made up for it'

    def test_reputation_tracks_latest_rating(self, awarded_trip, owner, transporter):
        services.submit_review(awarded_trip.id, owner, OWNER_TO_TRANSPORTER, 2)
        services.submit_review(awarded_trip.id, owner, OWNER_TO_TRANSPORTER, 5)

        transporter.refresh_from_db()
        assert transporter.avg_rating == Decimal('5.00')
        assert transporter.review_count == 1

    def test_reputation_averages_across_trips(self, owner, transporter, gateway):
        coordinator = services.AwardCoordinator(gateway)
        for rating in (5, 4, 4):
            trip = services.create_trip(owner, 'Fresno, CA', 'Eugene, OR')
            bid = services.place_bid(trip.id, transporter, amount_cents=8000)
            coordinator.accept_bid(bid.id, owner)
            services.submit_review(trip.id, owner, OWNER_TO_TRANSPORTER, rating)

        transporter.refresh_from_db()
        assert transporter.avg_rating == Decimal('4.33')
        assert transporter.review_count == 3

    def test_trip_without_transporter(self, trip, owner):
        with pytest.raises(InvalidState):
            services.submit_review(trip.id, owner, OWNER_TO_TRANSPORTER, 5)

    def test_non_owner_cannot_review_transporter(self, awarded_trip, other_owner):
        with pytest.raises(Forbidden):
            services.submit_review(awarded_trip.id, other_owner, OWNER_TO_TRANSPORTER, 5)

    def test_losing_bidder_cannot_review_owner(self, awarded_trip, second_transporter):
        with pytest.raises(Forbidden):
            services.submit_review(awarded_trip.id, second_transporter, TRANSPORTER_TO_OWNER, 1)

    def test_missing_trip(self, owner):
        with pytest.raises(NotFound):
            services.submit_review(4040, owner, OWNER_TO_TRANSPORTER, 5)

    @pytest.mark.parametrize('rating', [0, 6, 3.5, True])
    def test_rating_out_of_range(self, awarded_trip, owner, rating):
        with pytest.raises(ValidationError):
            services.submit_review(awarded_trip.id, owner, OWNER_TO_TRANSPORTER, rating)

        assert not Review.objects.exists()

    def test_unknown_direction(self, awarded_trip, owner):
        with pytest.raises(ValidationError):
            services.submit_review(awarded_trip.id, owner, 'sideways', 5)


@pytest.mark.django_db
class TestReviewEndpoints:

    def test_create_returns_201_then_update_returns_200(self, owner_client, awarded_trip):
        url = reverse('review_owner_to_transporter', kwargs={'trip_id': awarded_trip.id})

        created = owner_client.post(url, {'rating': 3, 'comment': 'OK'}, format='json')
        updated = owner_client.post(url, {'rating': 5, 'comment': 'Great after all'}, format='json')

        assert created.status_code == status.HTTP_201_CREATED
        assert updated.status_code == status.HTTP_200_OK
        assert updated.data['id'] == created.data['id']
        assert updated.data['rating'] == 5

    def test_transporter_direction(self, transporter_client, awarded_trip, owner):
        url = reverse('review_transporter_to_owner', kwargs={'trip_id': awarded_trip.id})
        response = transporter_client.post(url, {'rating': 4}, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['reviewee'] == owner.id

    def test_rating_above_five_rejected(self, owner_client, awarded_trip):
        url = reverse('review_owner_to_transporter', kwargs={'trip_id': awarded_trip.id})
        response = owner_client.post(url, {'rating': 6}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'rating' in response.data

    def test_unawarded_trip_conflicts(self, owner_client, trip):
        url = reverse('review_owner_to_transporter', kwargs={'trip_id': trip.id})
        response = owner_client.post(url, {'rating': 5}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_wrong_side_forbidden(self, transporter_client, awarded_trip):
        url = reverse('review_owner_to_transporter', kwargs={'trip_id': awarded_trip.id})
        response = transporter_client.post(url, {'rating': 5}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'forbidden'
