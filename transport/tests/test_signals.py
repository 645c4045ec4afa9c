"""
Tests for signal receivers: reputation refresh and post-commit notifications.

Uses TransactionTestCase so ``transaction.on_commit`` callbacks run exactly as
they do in production.
"""

from decimal import Decimal
from unittest import mock

from django.apps import apps
from django.contrib.auth import get_user_model
from django.test import TransactionTestCase

from transport import services
from transport.exceptions import PaymentAuthorizationFailed
from transport.models import Review
from transport.notifications import PushNotifier
from transport.payments import PaymentAuthorization

User = get_user_model()


class StubGateway:
    def __init__(self, fail=False):
        self.fail = fail

    def authorize(self, **kwargs):
        if self.fail:
            raise PaymentAuthorizationFailed()
        return PaymentAuthorization('pi_signal_test', 'pi_signal_test_secret')

    def capture(self, intent_id):
        return {'id': intent_id, 'status': 'succeeded'}

    def cancel(self, intent_id):
        return {'id': intent_id, 'status': 'canceled'}


class SignalTestCase(TransactionTestCase):

    def setUp(self):
        self.notifier = mock.Mock(spec=PushNotifier)
        patcher = mock.patch.object(apps.get_app_config('transport'), 'push_notifier', self.notifier)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.owner = User.objects.create_user(
            username='owner@test.com',
            email='owner@test.com',
            password='testpass123',
            role='owner',
            push_token='ExponentPushToken[owner]',
        )
        self.transporter = User.objects.create_user(
            username='driver@test.com',
            email='driver@test.com',
            password='testpass123',
            role='transporter',
            payout_account_id='acct_Driver1',
            push_token='ExponentPushToken[driver]',
        )

    def award_trip(self, pickup='123 Test St'):
        trip = services.create_trip(self.owner, pickup, '456 Test Ave')
        bid = services.place_bid(trip.id, self.transporter, amount_cents=10000)
        services.AwardCoordinator(StubGateway(), fee_percent=15).accept_bid(bid.id, self.owner)
        return trip


class ReputationSignalTests(SignalTestCase):

    def test_creating_review_updates_reviewee(self):
        trip = self.award_trip()

        self.transporter.refresh_from_db()
        self.assertEqual(self.transporter.avg_rating, Decimal('0.00'))

        services.submit_review(trip.id, self.owner, services.DIRECTION_OWNER_TO_TRANSPORTER, 5)

        self.transporter.refresh_from_db()
        self.assertEqual(self.transporter.avg_rating, Decimal('5.00'))
        self.assertEqual(self.transporter.review_count, 1)

        # The reviewer's own reputation is untouched
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.review_count, 0)

    def test_overwriting_review_recalculates(self):
        trip = self.award_trip()
        services.submit_review(trip.id, self.owner, services.DIRECTION_OWNER_TO_TRANSPORTER, 1)
        services.submit_review(trip.id, self.owner, services.DIRECTION_OWNER_TO_TRANSPORTER, 3)

        self.transporter.refresh_from_db()
        self.assertEqual(self.transporter.avg_rating, Decimal('3.00'))
        self.assertEqual(self.transporter.review_count, 1)

    def test_average_rounds_to_two_places(self):
        for rating, pickup in ((5, 'A St'), (5, 'B St'), (4, 'C St')):
            trip = self.award_trip(pickup)
            services.submit_review(trip.id, self.owner, services.DIRECTION_OWNER_TO_TRANSPORTER, rating)

        self.transporter.refresh_from_db()
        self.assertEqual(self.transporter.avg_rating, Decimal('4.67'))
        self.assertEqual(self.transporter.review_count, 3)

    def test_deleting_review_recalculates(self):
        trip = self.award_trip()
        review, _ = services.submit_review(trip.id, self.owner, services.DIRECTION_OWNER_TO_TRANSPORTER, 2)

        review.delete()

        self.transporter.refresh_from_db()
        self.assertEqual(self.transporter.avg_rating, Decimal('0.00'))
        self.assertEqual(self.transporter.review_count, 0)

    def test_failed_refresh_rolls_back_review(self):
        trip = self.award_trip()

        with mock.patch('transport.signals.refresh_reputation', side_effect=RuntimeError('db gone')):
            with self.assertRaises(RuntimeError):
                services.submit_review(trip.id, self.owner, services.DIRECTION_OWNER_TO_TRANSPORTER, 4)

        self.assertFalse(Review.objects.exists())


class NotificationSignalTests(SignalTestCase):

    def test_award_notifies_transporter_after_commit(self):
        trip = self.award_trip()

        self.notifier.notify.assert_any_call(
            'ExponentPushToken[driver]',
            'Your bid was accepted',
            f'Trip #{trip.id}',
            {'type': 'bid_accepted', 'tripId': trip.id},
        )

    def test_bid_notifies_owner(self):
        trip = services.create_trip(self.owner, '1 Elm St', '2 Oak St')
        services.place_bid(trip.id, self.transporter, amount_cents=5000)

        self.notifier.notify.assert_called_once_with(
            'ExponentPushToken[owner]',
            'New bid received',
            'Open the app to review bids',
            {'type': 'new_bid', 'tripId': trip.id},
        )

    def test_trip_broadcast_reaches_transporters_only(self):
        trip = services.create_trip(self.owner, '1 Elm St', '2 Oak St')

        self.notifier.send.assert_called_once()
        messages = self.notifier.send.call_args[0][0]
        self.assertEqual([m['to'] for m in messages], ['ExponentPushToken[driver]'])
        self.assertEqual(messages[0]['data'], {'type': 'new_trip', 'tripId': trip.id})

    def test_rolled_back_award_sends_nothing(self):
        trip = services.create_trip(self.owner, '1 Elm St', '2 Oak St')
        bid = services.place_bid(trip.id, self.transporter, amount_cents=5000)
        self.notifier.reset_mock()

        with self.assertRaises(PaymentAuthorizationFailed):
            services.AwardCoordinator(StubGateway(fail=True)).accept_bid(bid.id, self.owner)

        self.notifier.notify.assert_not_called()
        self.notifier.send.assert_not_called()

    def test_delivery_notifies_owner(self):
        trip = self.award_trip()
        self.notifier.reset_mock()

        services.DeliveryCoordinator(StubGateway()).mark_delivered(trip.id, self.owner)

        self.notifier.notify.assert_called_once_with(
            'ExponentPushToken[owner]',
            'Trip delivered',
            'Payment captured. Please leave a review.',
            {'type': 'delivered', 'tripId': trip.id},
        )
