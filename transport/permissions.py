"""
Custom permission classes for the Dog Transport Marketplace.
"""

from rest_framework import permissions


class IsStaffUser(permissions.BasePermission):
    """
    Allows only staff users (internal operations such as manual capture).

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsStaffUser]
    """

    message = 'You do not have permission to perform this action. Staff privileges required.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        return request.user.is_staff


class HasRole(permissions.BasePermission):
    """
    Base class for role-gated endpoints.

    Subclasses set ``role`` to the value of ``User.role`` they admit.
    """

    role = None
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        return getattr(request.user, 'role', None) == self.role


class IsOwner(HasRole):
    """Allows only dog owners (posting trips, accepting bids, leaving transporter reviews)."""

    role = 'owner'
    message = 'Only owners can perform this action.'


class IsTransporter(HasRole):
    """Allows only transporters (bidding, market, awarded trips)."""

    role = 'transporter'
    message = 'Only transporters can perform this action.'
