"""
Shared fixtures for the API and service tests.

The payment, push and background check clients built at app start are
replaced for every test, so nothing here talks to Stripe, Expo or Checkr.
"""

from unittest import mock

import pytest
from django.apps import apps
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from transport import services
from transport.background_checks import BackgroundCheckClient
from transport.notifications import PushNotifier
from transport.payments import PaymentAuthorization

User = get_user_model()


class FakePaymentGateway:
    """Records processor calls; set an ``*_error`` attribute to make that call fail."""

    def __init__(self):
        self.authorizations = []
        self.captures = []
        self.cancellations = []
        self.authorize_error = None
        self.capture_error = None
        self.cancel_error = None

    def authorize(self, **kwargs):
        if self.authorize_error is not None:
            raise self.authorize_error
        self.authorizations.append(kwargs)
        number = len(self.authorizations)
        return PaymentAuthorization(f'pi_test_{number}', f'pi_test_{number}_secret_abc')

    def capture(self, intent_id):
        if self.capture_error is not None:
            raise self.capture_error
        self.captures.append(intent_id)
        return {'id': intent_id, 'status': 'succeeded'}

    def cancel(self, intent_id):
        if self.cancel_error is not None:
            raise self.cancel_error
        self.cancellations.append(intent_id)
        return {'id': intent_id, 'status': 'canceled'}


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear Django cache before each test to reset throttle limits."""
    from django.core.cache import cache
    cache.clear()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def notifier():
    return mock.Mock(spec=PushNotifier)


@pytest.fixture
def background_checks():
    return mock.Mock(spec=BackgroundCheckClient)


@pytest.fixture(autouse=True)
def transport_clients(gateway, notifier, background_checks):
    """Swap the app-level payment, push and background check clients for fakes."""
    config = apps.get_app_config('transport')
    with mock.patch.object(config, 'payment_gateway', gateway), \
            mock.patch.object(config, 'push_notifier', notifier), \
            mock.patch.object(config, 'background_check_client', background_checks):
        yield config


@pytest.fixture
def api_client():
    return APIClient()


def make_user(email, role, **extra):
    return User.objects.create_user(
        username=email,
        email=email,
        password='TestPass123!',
        role=role,
        **extra
    )


def authenticate(client, user):
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    return client


@pytest.fixture
def owner(db):
    return make_user('owner@example.com', User.ROLE_OWNER, push_token='ExponentPushToken[owner-device]')


@pytest.fixture
def other_owner(db):
    return make_user('other.owner@example.com', User.ROLE_OWNER)


@pytest.fixture
def transporter(db):
    return make_user(
        'driver@example.com',
        User.ROLE_TRANSPORTER,
        payout_account_id='acct_1DriverPayout',
        push_token='ExponentPushToken[driver-device]',
    )


@pytest.fixture
def second_transporter(db):
    return make_user('second.driver@example.com', User.ROLE_TRANSPORTER, payout_account_id='acct_2SecondDriver')


@pytest.fixture
def unpaid_transporter(db):
    """Transporter who has not connected a payout account yet."""
    return make_user('new.driver@example.com', User.ROLE_TRANSPORTER)


@pytest.fixture
def owner_client(api_client, owner):
    return authenticate(api_client, owner)


@pytest.fixture
def transporter_client(transporter):
    return authenticate(APIClient(), transporter)


@pytest.fixture
def other_owner_client(other_owner):
    return authenticate(APIClient(), other_owner)


@pytest.fixture
def trip(owner):
    return services.create_trip(
        owner,
        pickup_location='Austin, TX',
        dropoff_location='Denver, CO',
        dog_info={'name': 'Biscuit', 'breed': 'Beagle', 'count': 1},
    )


@pytest.fixture
def bid(trip, transporter):
    return services.place_bid(trip.id, transporter, amount_cents=10000, eta_hours=20, note='Climate-controlled van')


@pytest.fixture
def rival_bid(trip, second_transporter):
    return services.place_bid(trip.id, second_transporter, amount_cents=12000, eta_hours=18)


@pytest.fixture
def awarded_trip(trip, bid, rival_bid, owner, gateway):
    """Trip whose cheapest bid has been accepted with a held payment."""
    services.AwardCoordinator(gateway, fee_percent=15).accept_bid(bid.id, owner)
    trip.refresh_from_db()
    return trip


@pytest.fixture
def staff_client(db):
    staff = make_user('ops@example.com', User.ROLE_OWNER, is_staff=True)
    return authenticate(APIClient(), staff)
