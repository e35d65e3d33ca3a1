"""
Access-control policy for the Escrow Marketplace.
"""

import logging

from rest_framework import permissions

from .models import Room

logger = logging.getLogger(__name__)


def can_access_room(user, room):
    """
    Decide whether ``user`` may view or act on ``room``.

    Admins always may. Anyone else must be the room's creator, buyer or
    seller. A missing user or room is always denied.

    Returns:
        bool: True if access is allowed
    """
    if user is None or room is None:
        return False

    if not getattr(user, 'is_authenticated', False):
        return False

    if user.is_admin():
        return True

    return user.pk in room.participant_ids


class IsAdminRole(permissions.BasePermission):
    """
    Allows access only to users with the ADMIN role.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsAdminRole]
    """

    message = 'Admin access required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin())


class IsRoomParticipant(permissions.BasePermission):
    """
    Object-level permission backed by ``can_access_room``.
    """

    message = 'You do not have access to this room.'

    def has_object_permission(self, request, view, obj):
        allowed = can_access_room(request.user, obj)
        if not allowed:
            logger.warning(f"Room access denied: user {request.user.pk} on room {obj.room_code}")
        return allowed


class CanTransitionRoom(permissions.BasePermission):
    """
    Decides who may request each target status.

    - PENDING_PAYMENT: buyer
    - PAID: seller
    - SHIPPED: seller
    - COMPLETED: buyer
    - CANCELLED: any participant

    Admins may request any transition. The view stores the requested status
    on ``view.requested_status`` before checking object permissions.
    """

    ROLE_BY_TARGET = {
        Room.Status.PENDING_PAYMENT: ('buyer',),
        Room.Status.PAID: ('seller',),
        Room.Status.SHIPPED: ('seller',),
        Room.Status.COMPLETED: ('buyer',),
        Room.Status.CANCELLED: ('creator', 'buyer', 'seller'),
    }

    message = 'You are not allowed to make this status change.'

    def has_object_permission(self, request, view, obj):
        user = request.user
        target = getattr(view, 'requested_status', None)

        if user.is_admin():
            return True

        roles = self.ROLE_BY_TARGET.get(target)
        if not roles:
            # Unknown targets fall through to the transition check
            return can_access_room(user, obj)

        if any(getattr(obj, f'{role}_id') == user.pk for role in roles):
            return True

        readable = ' or '.join(roles)
        self.message = f'Only the {readable} can move this room to {target}.'
        return False
