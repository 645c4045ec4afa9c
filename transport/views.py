"""
API views for the Dog Transport Marketplace.

Views validate input with serializers and delegate every state change to
``transport.services``. Domain errors raised there are rendered by
``transport.exceptions.domain_exception_handler``.
"""

import logging

import stripe
from django.apps import apps
from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer as SimpleJWTRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from . import services
from .models import Trip
from .permissions import IsOwner, IsStaffUser, IsTransporter
from .serializers import (
    AwardedTripSerializer,
    BidCreateSerializer,
    BidSerializer,
    CandidateSerializer,
    CaptureRequestSerializer,
    LoginSerializer,
    MessageQuerySerializer,
    MessageSerializer,
    OpenTripSerializer,
    PushTokenSerializer,
    RankedBidSerializer,
    ReviewSerializer,
    ReviewSubmitSerializer,
    SendMessageSerializer,
    TokenRefreshSerializer,
    TransporterBidSerializer,
    TripCreateSerializer,
    TripSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
    UserRegistrationSerializer,
    UserReviewSerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Client IP address, honouring the first X-Forwarded-For hop."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def get_payment_gateway():
    return apps.get_app_config('transport').payment_gateway


def get_background_check_client():
    return apps.get_app_config('transport').background_check_client


# Authentication

class UserRegistrationView(generics.CreateAPIView):
    """
    POST /api/auth/register/

    Creates an owner or transporter account. Concurrent duplicate emails that
    slip past serializer validation are reported as a field error.
    """
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.perform_create(serializer)
        except IntegrityError as e:
            if 'email' in str(e).lower() or 'unique' in str(e).lower():
                return Response(
                    {'email': ['A user with that email already exists.']},
                    status=status.HTTP_400_BAD_REQUEST
                )
            raise

        logger.info(
            f"Registered {serializer.instance.role} account {serializer.instance.email}, "
            f"IP: {get_client_ip(request)}"
        )
        headers = self.get_success_headers(serializer.data)
        return Response(serializer.data, status=status.HTTP_201_CREATED, headers=headers)


class LoginView(APIView):
    """
    POST /api/auth/login/

    Request body: {"email": "owner@example.com", "password": "..."}

    Success response (200):
    {
        "access": "<jwt_access_token>",
        "refresh": "<jwt_refresh_token>",
        "user": {"id": 1, "email": "owner@example.com", "role": "owner"}
    }

    Every failure returns the same 401 body so accounts cannot be enumerated.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        email = serializer.validated_data['email'].lower().strip()
        password = serializer.validated_data['password']
        client_ip = get_client_ip(request)

        user = authenticate(request, username=email, password=password)
        if user is None:
            logger.warning(f"Failed login attempt. Email: {email}, IP: {client_ip}")
            return Response(
                {'detail': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        refresh = RefreshToken.for_user(user)

        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")

        return Response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'user': {
                'id': user.id,
                'email': user.email,
                'role': user.role,
            }
        }, status=status.HTTP_200_OK)


class CustomTokenRefreshView(APIView):
    """
    POST /api/token/refresh/

    Exchanges a refresh token for a new access token. Refresh tokens rotate
    and the old one is blacklisted.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'refresh'

    def post(self, request, *args, **kwargs):
        serializer = TokenRefreshSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        client_ip = get_client_ip(request)
        refresh_serializer = SimpleJWTRefreshSerializer(data=serializer.validated_data)

        try:
            refresh_serializer.is_valid(raise_exception=True)
        except TokenError as e:
            logger.warning(f"Failed token refresh attempt. Error: {e}, IP: {client_ip}")
            return Response({'detail': str(e)}, status=status.HTTP_401_UNAUTHORIZED)

        logger.info(f"Successful token refresh. IP: {client_ip}")
        return Response(refresh_serializer.validated_data, status=status.HTTP_200_OK)


class UserProfileView(APIView):
    """
    GET/PUT/PATCH /api/auth/profile/

    Own account details. Role is immutable; payout account and push token
    can be updated here.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        serializer = UserProfileSerializer(request.user, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    def put(self, request, *args, **kwargs):
        return self._update_profile(request, partial=False)

    def patch(self, request, *args, **kwargs):
        return self._update_profile(request, partial=True)

    def _update_profile(self, request, partial=False):
        user = request.user
        serializer = UserProfileUpdateSerializer(
            user,
            data=request.data,
            partial=partial,
            context={'request': request}
        )

        if not serializer.is_valid():
            logger.warning(
                f"Profile update validation failed. User ID: {user.id}, Errors: {serializer.errors}"
            )
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        serializer.save()
        logger.info(f"Profile updated. User ID: {user.id}, Partial: {partial}")

        return Response(
            UserProfileSerializer(user, context={'request': request}).data,
            status=status.HTTP_200_OK
        )


# Trips

class TripCreateView(APIView):
    """POST /trips/ - owner posts a trip; transporters are notified."""
    permission_classes = [IsAuthenticated, IsOwner]

    def post(self, request, *args, **kwargs):
        serializer = TripCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        trip = services.create_trip(
            owner=request.user,
            pickup_location=serializer.validated_data['pickup_location'],
            dropoff_location=serializer.validated_data['dropoff_location'],
            dog_info=serializer.validated_data.get('dog_info'),
        )

        return Response(TripSerializer(trip).data, status=status.HTTP_201_CREATED)


class UserTripsView(APIView):
    """GET /trips/user/<user_id>/ - trips the user owns or was awarded."""
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id, *args, **kwargs):
        trips = services.list_trips_for_user(user_id, request.user)
        return Response(TripSerializer(trips, many=True).data, status=status.HTTP_200_OK)


class TripFinanceView(APIView):
    """GET /trips/<trip_id>/finance/ - amounts recorded at award time."""
    permission_classes = [IsAuthenticated, IsOwner]

    def get(self, request, trip_id, *args, **kwargs):
        return Response(services.trip_finance(trip_id, request.user), status=status.HTTP_200_OK)


class MarkDeliveredView(APIView):
    """
    POST /trips/<trip_id>/mark-delivered/

    Captures the held payment and marks the trip delivered. A failed capture
    leaves the trip accepted.
    """
    permission_classes = [IsAuthenticated, IsOwner]

    def post(self, request, trip_id, *args, **kwargs):
        coordinator = services.DeliveryCoordinator(get_payment_gateway())
        trip = coordinator.mark_delivered(trip_id, request.user)

        return Response({
            'success': True,
            'trip': TripSerializer(trip).data,
        }, status=status.HTTP_200_OK)


# Bids

class TripBidsView(APIView):
    """
    GET  /bids/<trip_id>/ - owner lists bids, cheapest first
    POST /bids/<trip_id>/ - transporter places a bid
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, trip_id, *args, **kwargs):
        bids = services.list_bids_for_trip(trip_id, request.user)
        return Response(RankedBidSerializer(bids, many=True).data, status=status.HTTP_200_OK)

    def post(self, request, trip_id, *args, **kwargs):
        serializer = BidCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        bid = services.place_bid(
            trip_id,
            request.user,
            amount_cents=serializer.validated_data['amount_cents'],
            eta_hours=serializer.validated_data.get('eta_hours'),
            note=serializer.validated_data.get('note', ''),
        )

        return Response(BidSerializer(bid).data, status=status.HTTP_201_CREATED)


class AcceptBidView(APIView):
    """
    POST /bids/<bid_id>/accept/

    Success response (200):
    {
        "success": true,
        "payment_intent_id": "pi_...",
        "client_secret": "pi_..._secret_...",
        "winning_bid": {...},
        "fee_percent": 15.0,
        "breakdown": {"total": 10000, "platform_fee": 1500, "transporter_earnings": 8500}
    }
    """
    permission_classes = [IsAuthenticated, IsOwner]

    def post(self, request, bid_id, *args, **kwargs):
        coordinator = services.AwardCoordinator(get_payment_gateway())
        result = coordinator.accept_bid(bid_id, request.user)

        return Response({
            'success': True,
            'payment_intent_id': result.payment_intent_id,
            'client_secret': result.client_secret,
            'winning_bid': BidSerializer(result.bid).data,
            'trip': TripSerializer(result.trip).data,
            'fee_percent': result.fee_percent,
            'breakdown': result.breakdown,
        }, status=status.HTTP_200_OK)


class MyBidsView(APIView):
    """GET /bids/mine/ - the transporter's bids with trip summary."""
    permission_classes = [IsAuthenticated, IsTransporter]

    def get(self, request, *args, **kwargs):
        bids = services.list_bids_for_transporter(request.user)
        return Response(TransporterBidSerializer(bids, many=True).data, status=status.HTTP_200_OK)


class AwardedTripsView(APIView):
    """GET /bids/awarded/ - trips the transporter has won."""
    permission_classes = [IsAuthenticated, IsTransporter]

    def get(self, request, *args, **kwargs):
        trips = services.list_awarded_trips_for_transporter(request.user)
        return Response(AwardedTripSerializer(trips, many=True).data, status=status.HTTP_200_OK)


# Reviews

class ReviewSubmitView(APIView):
    """
    POST /reviews/trip/<trip_id>/owner-to-transporter/
    POST /reviews/trip/<trip_id>/transporter-to-owner/

    Resubmitting overwrites the previous rating and comment.
    """
    permission_classes = [IsAuthenticated]
    direction = None

    def post(self, request, trip_id, *args, **kwargs):
        serializer = ReviewSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        review, created = services.submit_review(
            trip_id,
            request.user,
            self.direction,
            rating=serializer.validated_data['rating'],
            comment=serializer.validated_data.get('comment', ''),
        )

        return Response(
            ReviewSerializer(review).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


# Chat

class ChatMessagesView(APIView):
    """GET /chat/messages/?bid_id=<id>&since=<iso timestamp>"""
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        query = MessageQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        messages = services.list_messages(
            query.validated_data['bid_id'],
            request.user,
            since=query.validated_data.get('since'),
        )
        return Response(MessageSerializer(messages, many=True).data, status=status.HTTP_200_OK)


class SendMessageView(APIView):
    """POST /chat/send/ with {"bid_id": ..., "body": "..."}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = services.send_message(
            serializer.validated_data['bid_id'],
            request.user,
            serializer.validated_data['body'],
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


# Market and public profiles

class OpenTripsView(APIView):
    """GET /market/open-trips/ - up to 100 trips still open for bidding."""
    permission_classes = [IsAuthenticated, IsTransporter]

    def get(self, request, *args, **kwargs):
        trips = services.list_open_trips(request.user)
        return Response(OpenTripSerializer(trips, many=True).data, status=status.HTTP_200_OK)


class UserPublicProfileView(APIView):
    """GET /users/<user_id>/profile/ - reputation summary."""
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id, *args, **kwargs):
        return Response(services.user_public_profile(user_id), status=status.HTTP_200_OK)


class UserReviewsView(APIView):
    """GET /users/<user_id>/reviews/?limit=<n> - latest reviews received (max 50)."""
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id, *args, **kwargs):
        limit = request.query_params.get('limit')
        if limit is not None:
            try:
                limit = int(limit)
            except ValueError:
                return Response(
                    {'limit': ['A valid integer is required.']},
                    status=status.HTTP_400_BAD_REQUEST
                )

        reviews = services.list_reviews_for_user(user_id, limit=limit)
        return Response(UserReviewSerializer(reviews, many=True).data, status=status.HTTP_200_OK)


class RegisterPushTokenView(APIView):
    """POST /notifications/register/ with {"push_token": "ExponentPushToken[...]"}"""
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = PushTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.register_push_token(request.user, serializer.validated_data['push_token'])
        return Response({'success': True}, status=status.HTTP_200_OK)


# Payments

class StripeWebhookView(APIView):
    """
    POST /stripe/webhook/

    Verifies the Stripe-Signature header against the raw body, then records
    payment intent lifecycle events against the matching trip.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    HANDLED_EVENTS = (
        'payment_intent.amount_capturable_updated',
        'payment_intent.succeeded',
        'payment_intent.canceled',
        'payment_intent.payment_failed',
    )

    def post(self, request, *args, **kwargs):
        signature = request.META.get('HTTP_STRIPE_SIGNATURE', '')

        try:
            event = get_payment_gateway().construct_event(request.body, signature)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Webhook signature verification failed. IP: {get_client_ip(request)}, Error: {e}")
            return Response(
                {'detail': f'Webhook Error: {e}', 'code': 'invalid_signature'},
                status=status.HTTP_400_BAD_REQUEST
            )

        event_type = event['type']
        if event_type in self.HANDLED_EVENTS:
            intent_id = event['data']['object']['id']
            trip = Trip.objects.filter(payment_intent_id=intent_id).only('id', 'status').first()
            if trip is None:
                logger.warning(f"Webhook {event_type} for unknown payment {intent_id}")
            else:
                logger.info(f"Webhook {event_type} for trip {trip.id} ({trip.status}), payment {intent_id}")
        else:
            logger.debug(f"Ignoring webhook event {event_type}")

        return Response({'received': True}, status=status.HTTP_200_OK)


class CaptureFromTripView(APIView):
    """POST /stripe/capture-from-trip/ - staff-only manual capture of a trip's hold."""
    permission_classes = [IsAuthenticated, IsStaffUser]

    def post(self, request, *args, **kwargs):
        serializer = CaptureRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        coordinator = services.DeliveryCoordinator(get_payment_gateway())
        trip = coordinator.capture_for_trip(serializer.validated_data['trip_id'])

        logger.info(f"Staff user {request.user.email} captured payment for trip {trip.id}")
        return Response({
            'captured': True,
            'trip_id': trip.id,
            'payment_intent_id': trip.payment_intent_id,
        }, status=status.HTTP_200_OK)


# Background checks

class CreateCandidateView(APIView):
    """
    POST /checkr/create-candidate/ with {"first_name", "last_name", "email"?}

    Registers the calling transporter with the background check provider and
    returns the provider's candidate record.
    """
    permission_classes = [IsAuthenticated, IsTransporter]

    def post(self, request, *args, **kwargs):
        serializer = CandidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        candidate = get_background_check_client().create_candidate(
            first_name=data['first_name'],
            last_name=data['last_name'],
            email=data.get('email') or request.user.email,
        )

        logger.info(f"Transporter {request.user.email} registered for background check")
        return Response(candidate, status=status.HTTP_201_CREATED)
