"""
Serializers for authentication, trips, bids, reviews and chat.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers

from .models import Bid, Message, Review, Trip
from .validators import validate_dog_info, validate_payout_account_id, validate_push_token

User = get_user_model()


def run_django_validator(validator, value):
    """Run a model-level validator and re-raise its errors as DRF errors."""
    try:
        validator(value)
    except DjangoValidationError as e:
        raise serializers.ValidationError(list(e.messages))
    return value


class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for account registration.

    Fields:
    - email: Required, unique (case-insensitive)
    - password / confirm_password: Required, must match and pass Django's validators
    - role: Required, 'owner' or 'transporter'; cannot be changed later
    - payout_account_id: Optional, transporters need it before winning a bid
    - push_token: Optional device push token
    """

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    confirm_password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'password', 'confirm_password', 'role',
                  'external_id', 'payout_account_id', 'push_token', 'created_at']
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
            'role': {'required': True},
        }

    def validate_email(self, value):
        value = value.strip().lower()

        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "A user with that email already exists."
            )

        return value

    def validate_password(self, value):
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))

        return value

    def validate_role(self, value):
        valid_roles = [User.ROLE_OWNER, User.ROLE_TRANSPORTER]

        if value not in valid_roles:
            raise serializers.ValidationError(
                f"Role must be one of: {', '.join(valid_roles)}."
            )

        return value

    def validate(self, attrs):
        if attrs.get('password') != attrs.get('confirm_password'):
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })

        if attrs.get('payout_account_id') and attrs.get('role') != User.ROLE_TRANSPORTER:
            raise serializers.ValidationError({
                'payout_account_id': 'Only transporters receive payouts.'
            })

        return attrs

    def create(self, validated_data):
        """
        Create the account with a hashed password.

        Privileged flags are never taken from the request.
        """
        validated_data.pop('confirm_password', None)
        validated_data['password'] = make_password(validated_data.pop('password'))

        for field in ('is_superuser', 'is_staff', 'is_active', 'groups', 'user_permissions'):
            validated_data.pop(field, None)

        # AbstractUser still requires a unique username; the email already is one
        validated_data['username'] = validated_data['email']

        with transaction.atomic():
            user = User.objects.create(**validated_data)

        return user


class LoginSerializer(serializers.Serializer):
    """
    Email and password for login.

    Authentication itself happens in the view so every failure looks the same.
    """
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class TokenRefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=True)


class UserProfileSerializer(serializers.ModelSerializer):
    """Own account details. Never exposes password or permission flags."""

    has_payout_account = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'first_name',
            'last_name',
            'role',
            'external_id',
            'payout_account_id',
            'has_payout_account',
            'push_token',
            'avg_rating',
            'review_count',
            'created_at',
        ]
        read_only_fields = fields

    def get_has_payout_account(self, obj):
        return obj.has_payout_account()


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Partial profile update.

    Only names, payout account and push token are editable. Attempts to change
    the role are rejected outright; other restricted fields are ignored.
    """

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'payout_account_id', 'push_token']
        extra_kwargs = {
            'first_name': {'required': False},
            'last_name': {'required': False},
            'payout_account_id': {'required': False},
            'push_token': {'required': False},
        }

    def validate_payout_account_id(self, value):
        if value and self.instance is not None and not self.instance.is_transporter():
            raise serializers.ValidationError('Only transporters receive payouts.')
        return run_django_validator(validate_payout_account_id, value)

    def validate_push_token(self, value):
        return run_django_validator(validate_push_token, value)

    def validate(self, attrs):
        requested_role = self.initial_data.get('role')
        if requested_role is not None and self.instance is not None and requested_role != self.instance.role:
            raise serializers.ValidationError({
                'role': 'Role cannot be changed once the account is created.'
            })
        return attrs

    def update(self, instance, validated_data):
        fields_to_update = []
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
            fields_to_update.append(attr)

        if fields_to_update:
            instance.save(update_fields=fields_to_update + ['updated_at'])

        return instance


class TripCreateSerializer(serializers.Serializer):
    pickup_location = serializers.CharField(max_length=300, allow_blank=False, trim_whitespace=True)
    dropoff_location = serializers.CharField(max_length=300, allow_blank=False, trim_whitespace=True)
    dog_info = serializers.JSONField(required=False, default=dict)

    def validate_dog_info(self, value):
        return run_django_validator(validate_dog_info, value)


class TripSerializer(serializers.ModelSerializer):
    owner_email = serializers.EmailField(source='owner.email', read_only=True)
    transporter_email = serializers.SerializerMethodField()

    class Meta:
        model = Trip
        fields = [
            'id',
            'owner',
            'owner_email',
            'transporter',
            'transporter_email',
            'pickup_location',
            'dropoff_location',
            'dog_info',
            'status',
            'winning_bid',
            'total_amount_cents',
            'platform_fee_cents',
            'transporter_earnings_cents',
            'created_at',
            'accepted_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_transporter_email(self, obj):
        return obj.transporter.email if obj.transporter_id else None


class OpenTripSerializer(serializers.ModelSerializer):
    """Market listing row: a requested trip and how many bids it has drawn."""

    bid_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Trip
        fields = ['id', 'pickup_location', 'dropoff_location', 'dog_info', 'status', 'bid_count', 'created_at']
        read_only_fields = fields


class AwardedTripSerializer(serializers.ModelSerializer):
    owner_email = serializers.EmailField(source='owner.email', read_only=True)
    bid_amount_cents = serializers.IntegerField(source='winning_bid.amount_cents', read_only=True)

    class Meta:
        model = Trip
        fields = [
            'id',
            'owner_email',
            'pickup_location',
            'dropoff_location',
            'dog_info',
            'status',
            'winning_bid',
            'bid_amount_cents',
            'transporter_earnings_cents',
            'accepted_at',
        ]
        read_only_fields = fields


class BidCreateSerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField(min_value=0)
    eta_hours = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True, default='')


class BidSerializer(serializers.ModelSerializer):
    class Meta:
        model = Bid
        fields = [
            'id',
            'trip',
            'transporter',
            'amount_cents',
            'eta_hours',
            'note',
            'status',
            'platform_fee_cents',
            'transporter_earnings_cents',
            'last_message_at',
            'created_at',
        ]
        read_only_fields = fields


class RankedBidSerializer(BidSerializer):
    """Bid as the trip owner sees it, with the bidder's reputation."""

    transporter_email = serializers.EmailField(source='transporter.email', read_only=True)
    avg_rating = serializers.DecimalField(
        source='transporter.avg_rating', max_digits=3, decimal_places=2, read_only=True
    )
    review_count = serializers.IntegerField(source='transporter.review_count', read_only=True)
    response_time_minutes = serializers.SerializerMethodField()

    class Meta(BidSerializer.Meta):
        fields = BidSerializer.Meta.fields + [
            'transporter_email',
            'avg_rating',
            'review_count',
            'response_time_minutes',
        ]
        read_only_fields = fields

    def get_response_time_minutes(self, obj):
        minutes = obj.response_time_minutes
        return round(minutes, 2) if minutes is not None else None


class TransporterBidSerializer(BidSerializer):
    """Bid as its transporter sees it, with the trip summary."""

    pickup_location = serializers.CharField(source='trip.pickup_location', read_only=True)
    dropoff_location = serializers.CharField(source='trip.dropoff_location', read_only=True)
    trip_status = serializers.CharField(source='trip.status', read_only=True)

    class Meta(BidSerializer.Meta):
        fields = BidSerializer.Meta.fields + ['pickup_location', 'dropoff_location', 'trip_status']
        read_only_fields = fields


class ReviewSubmitSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)


class ReviewSerializer(serializers.ModelSerializer):
    class Meta:
        model = Review
        fields = ['id', 'trip', 'reviewer', 'reviewee', 'rating', 'comment', 'created_at', 'updated_at']
        read_only_fields = fields


class UserReviewSerializer(serializers.ModelSerializer):
    reviewer_email = serializers.EmailField(source='reviewer.email', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'trip', 'rating', 'comment', 'created_at', 'reviewer_email']
        read_only_fields = fields


class MessageQuerySerializer(serializers.Serializer):
    bid_id = serializers.IntegerField(min_value=1)
    since = serializers.DateTimeField(required=False, allow_null=True)


class SendMessageSerializer(serializers.Serializer):
    bid_id = serializers.IntegerField(min_value=1)
    body = serializers.CharField(allow_blank=False, trim_whitespace=True, max_length=5000)


class MessageSerializer(serializers.ModelSerializer):
    sender_email = serializers.EmailField(source='sender.email', read_only=True)

    class Meta:
        model = Message
        fields = ['id', 'bid', 'sender', 'sender_email', 'body', 'created_at']
        read_only_fields = fields


class PushTokenSerializer(serializers.Serializer):
    push_token = serializers.CharField(max_length=255)

    def validate_push_token(self, value):
        return run_django_validator(validate_push_token, value.strip())


class CaptureRequestSerializer(serializers.Serializer):
    trip_id = serializers.IntegerField(min_value=1)


class CandidateSerializer(serializers.Serializer):
    """Person to register with the background check provider; email defaults to the account's."""
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150)
    email = serializers.EmailField(required=False)
