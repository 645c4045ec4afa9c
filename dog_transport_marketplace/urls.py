"""
URL configuration for dog_transport_marketplace project.
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenBlacklistView

from transport.services import DIRECTION_OWNER_TO_TRANSPORTER, DIRECTION_TRANSPORTER_TO_OWNER
from transport.views import (
    AcceptBidView,
    AwardedTripsView,
    CaptureFromTripView,
    ChatMessagesView,
    CreateCandidateView,
    CustomTokenRefreshView,
    LoginView,
    MarkDeliveredView,
    MyBidsView,
    OpenTripsView,
    RegisterPushTokenView,
    ReviewSubmitView,
    SendMessageView,
    StripeWebhookView,
    TripBidsView,
    TripCreateView,
    TripFinanceView,
    UserProfileView,
    UserPublicProfileView,
    UserRegistrationView,
    UserReviewsView,
    UserTripsView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/register/', UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', TokenBlacklistView.as_view(), name='user_logout'),
    path('api/auth/profile/', UserProfileView.as_view(), name='user_profile'),
    path('api/token/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),

    # Trips
    path('trips/', TripCreateView.as_view(), name='trip_create'),
    path('trips/user/<int:user_id>/', UserTripsView.as_view(), name='user_trips'),
    path('trips/<int:trip_id>/finance/', TripFinanceView.as_view(), name='trip_finance'),
    path('trips/<int:trip_id>/mark-delivered/', MarkDeliveredView.as_view(), name='trip_mark_delivered'),

    # Bids; the literal routes must precede /bids/<trip_id>/
    path('bids/mine/', MyBidsView.as_view(), name='my_bids'),
    path('bids/awarded/', AwardedTripsView.as_view(), name='awarded_trips'),
    path('bids/<int:bid_id>/accept/', AcceptBidView.as_view(), name='bid_accept'),
    path('bids/<int:trip_id>/', TripBidsView.as_view(), name='trip_bids'),

    # Reviews
    path(
        'reviews/trip/<int:trip_id>/owner-to-transporter/',
        ReviewSubmitView.as_view(direction=DIRECTION_OWNER_TO_TRANSPORTER),
        name='review_owner_to_transporter',
    ),
    path(
        'reviews/trip/<int:trip_id>/transporter-to-owner/',
        ReviewSubmitView.as_view(direction=DIRECTION_TRANSPORTER_TO_OWNER),
        name='review_transporter_to_owner',
    ),

    # Chat
    path('chat/messages/', ChatMessagesView.as_view(), name='chat_messages'),
    path('chat/send/', SendMessageView.as_view(), name='chat_send'),

    # Market and public profiles
    path('market/open-trips/', OpenTripsView.as_view(), name='market_open_trips'),
    path('users/<int:user_id>/profile/', UserPublicProfileView.as_view(), name='user_public_profile'),
    path('users/<int:user_id>/reviews/', UserReviewsView.as_view(), name='user_reviews'),

    # Notifications
    path('notifications/register/', RegisterPushTokenView.as_view(), name='push_register'),

    # Payments
    path('stripe/webhook/', StripeWebhookView.as_view(), name='stripe_webhook'),
    path('stripe/capture-from-trip/', CaptureFromTripView.as_view(), name='stripe_capture_from_trip'),

    # Background checks
    path('checkr/create-candidate/', CreateCandidateView.as_view(), name='checkr_create_candidate'),
]
