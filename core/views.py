"""
API views for the Escrow Marketplace.
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import update_last_login
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, NotFound, ValidationError
from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from .authentication import RefreshingJWTAuthentication
from .backends import verify_credentials
from .exceptions import Conflict, TokenRejected
from .models import Room
from .permissions import CanTransitionRoom, IsAdminRole, IsRoomParticipant
from .responses import EnvelopePagination, success_response
from .room_codes import create_room_with_unique_code
from .serializers import (
    AdminUserSerializer,
    AdminUserUpdateSerializer,
    ChangePasswordSerializer,
    LoginSerializer,
    LogoutSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    PublicUserSerializer,
    RefreshTokenSerializer,
    RegistrationSerializer,
    RoomCreateSerializer,
    RoomSerializer,
    RoomStatusUpdateSerializer,
)
from .tokens import (
    blacklist_refresh_token,
    issue_token_pair,
    revoke_user_refresh_tokens,
    rotate_refresh_token,
)

User = get_user_model()
logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def percentage(part, total):
    if not total:
        return '0.00'
    value = Decimal(part) * 100 / Decimal(total)
    return str(value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


class PublicEndpointMixin:
    """
    Endpoints that ignore any Authorization header.

    The authenticate header keeps credential failures on these endpoints
    at 401 instead of DRF's 403 fallback.
    """
    authentication_classes = []

    def get_authenticate_header(self, request):
        return 'Bearer realm="api"'


class HealthCheckView(PublicEndpointMixin, APIView):
    """
    GET /api/health/
    """
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        return success_response(
            'Health Check',
            'Server is running',
            item={'status': 'ok', 'timestamp': timezone.now().isoformat()},
        )


# ============================================================================
# Authentication
# ============================================================================

class RegisterView(PublicEndpointMixin, APIView):
    """
    API endpoint for user registration.

    POST /api/auth/register/
    Request body: {"email", "username", "password", "fullName"?, "phone"?,
                   "bankAccountNumber"?, "bankCode"?}

    Returns the new profile and a token pair (201). A duplicate email or
    username is a 409 and creates nothing. Concurrent duplicates are caught
    by the database unique constraints.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'register'

    def post(self, request, *args, **kwargs):
        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        email = serializer.validated_data['email']
        username = serializer.validated_data['username']

        if User.objects.filter(email__iexact=email).exists():
            raise Conflict('A user with that email already exists.')
        if User.objects.filter(username=username).exists():
            raise Conflict('A user with that username already exists.')

        try:
            with transaction.atomic():
                user = serializer.save()
        except IntegrityError:
            logger.warning(f"Concurrent registration conflict for {email} / {username}")
            raise Conflict('A user with that email or username already exists.')

        logger.info(f"New user registered: {user.pk}, IP: {get_client_ip(request)}")

        return success_response(
            'Registration Successful',
            'User registered successfully',
            item={'user': ProfileSerializer(user).data, **issue_token_pair(user)},
            status_code=status.HTTP_201_CREATED,
        )


class LoginView(PublicEndpointMixin, APIView):
    """
    API endpoint for login with email or username.

    Security features:
    - Rate limiting: 5 attempts per minute per IP
    - One generic error message for every failure
    - Failed login attempt logging for security monitoring

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "secret1"}
               or {"username": "someone", "password": "secret1"}
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        email = serializer.validated_data.get('email')
        username = serializer.validated_data.get('username')
        client_ip = get_client_ip(request)

        try:
            user = verify_credentials(
                request,
                serializer.validated_data['password'],
                email=email,
                username=username,
            )
        except AuthenticationFailed:
            logger.warning(f"Failed login attempt. Identifier: {email or username}, IP: {client_ip}")
            raise

        update_last_login(None, user)
        logger.info(f"Successful login. User: {user.pk}, IP: {client_ip}")

        return success_response(
            'Login Successful',
            'User logged in successfully',
            item={'user': ProfileSerializer(user).data, **issue_token_pair(user)},
        )


class LogoutView(APIView):
    """
    POST /api/auth/logout/

    Blacklists the supplied refresh token when it belongs to the caller.
    The access token stays valid until it expires.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        raw_refresh = serializer.validated_data.get('refreshToken')
        if raw_refresh and not blacklist_refresh_token(raw_refresh, request.user):
            logger.info(f"Logout for {request.user.pk} sent an unusable refresh token")

        logger.info(f"User logged out: {request.user.pk}")
        return success_response('Logout Successful', 'User logged out successfully')


class RefreshTokenView(PublicEndpointMixin, APIView):
    """
    POST /api/auth/refresh-token/
    Request body: {"refreshToken": "<jwt>"}

    Rotates the pair; the old refresh token is blacklisted. Any failure is a
    generic 401.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'refresh'

    def post(self, request, *args, **kwargs):
        serializer = RefreshTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user, pair = rotate_refresh_token(serializer.validated_data['refreshToken'])
        except TokenRejected as e:
            logger.warning(
                f"Token refresh failed ({e.__class__.__name__}), IP: {get_client_ip(request)}"
            )
            raise

        logger.info(f"Token pair rotated for user {user.pk}")
        return success_response('Token Refreshed', 'Tokens refreshed successfully', item=pair)


class MeView(APIView):
    """
    GET /api/auth/me/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return success_response(
            'User Profile',
            'User profile retrieved successfully',
            item=ProfileSerializer(request.user).data,
        )


class ChangePasswordView(APIView):
    """
    PUT /api/auth/change-password/
    Request body: {"currentPassword", "newPassword", "confirmPassword"}

    All outstanding refresh tokens are blacklisted and a new pair is returned.
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, *args, **kwargs):
        user = request.user
        serializer = ChangePasswordSerializer(data=request.data, context={'user': user})
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            user.set_password(serializer.validated_data['newPassword'])
            user.save(update_fields=['password', 'updated_at'])
            revoked = revoke_user_refresh_tokens(user)

        logger.info(f"Password changed for {user.pk}; {revoked} refresh tokens revoked")

        return success_response(
            'Password Changed',
            'Password changed successfully',
            item=issue_token_pair(user),
        )


# ============================================================================
# Profile and public users
# ============================================================================

class ProfileView(APIView):
    """
    GET/PUT/PATCH/DELETE /api/profile/

    DELETE deactivates the account; the record is kept.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return success_response(
            'Profile Retrieved',
            'Profile retrieved successfully',
            item=ProfileSerializer(request.user).data,
        )

    def put(self, request, *args, **kwargs):
        return self._update_profile(request, partial=False)

    def patch(self, request, *args, **kwargs):
        return self._update_profile(request, partial=True)

    def delete(self, request, *args, **kwargs):
        user = request.user
        user.is_active = False
        user.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"User deactivated own account: {user.pk}")
        return success_response('Profile Deleted', 'Account deactivated successfully')

    def _update_profile(self, request, partial):
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"Profile updated: {user.pk}")
        return success_response(
            'Profile Updated',
            'Profile updated successfully',
            item=ProfileSerializer(user).data,
        )


class UserSearchView(ListAPIView):
    """
    GET /api/users/search/?q=<term>&page=&per_page=

    Searches active users by username, email or full name.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = PublicUserSerializer
    pagination_class = EnvelopePagination
    list_title = 'User Search'
    list_message = 'Users retrieved successfully'

    def get_queryset(self):
        term = self.request.query_params.get('q', '').strip()
        if len(term) < 2:
            raise ValidationError({'q': 'Search query must be at least 2 characters long.'})
        return User.objects.active().search(term).order_by('username')


class PublicUserView(APIView):
    """
    GET /api/users/<uuid>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id, *args, **kwargs):
        user = User.objects.active().filter(pk=user_id).first()
        if user is None:
            raise NotFound('User not found')
        return success_response(
            'User Retrieved',
            'User retrieved successfully',
            item=PublicUserSerializer(user).data,
        )


# ============================================================================
# Admin user management
# ============================================================================

class AdminUserListView(ListAPIView):
    """
    GET /api/admin/users/

    Lists every user, active or not.
    """
    permission_classes = [IsAuthenticated, IsAdminRole]
    serializer_class = AdminUserSerializer
    pagination_class = EnvelopePagination
    queryset = User.objects.order_by('-created_at')
    list_title = 'Users'
    list_message = 'Users retrieved successfully'


class AdminUserStatsView(APIView):
    """
    GET /api/admin/users/stats/
    """
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request, *args, **kwargs):
        total = User.objects.count()
        active = User.objects.active().count()
        inactive = total - active
        recent = User.objects.filter(created_at__gte=timezone.now() - timedelta(days=30)).count()

        return success_response(
            'User Statistics',
            'User statistics retrieved successfully',
            item={
                'totalUsers': total,
                'activeUsers': active,
                'inactiveUsers': inactive,
                'recentUsers': recent,
                'stats': {
                    'activePercentage': percentage(active, total),
                    'inactivePercentage': percentage(inactive, total),
                },
            },
        )


class AdminUserMixin:
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get_user(self, user_id):
        # Admin lookups include deactivated accounts
        try:
            return User.objects.get(pk=user_id)
        except User.DoesNotExist:
            raise NotFound('User not found')

    def set_active(self, request, user_id, active):
        user = self.get_user(user_id)
        user.is_active = active
        user.save(update_fields=['is_active', 'updated_at'])
        state = 'activated' if active else 'deactivated'
        logger.info(f"Admin {request.user.pk} {state} user {user.pk}")
        return success_response(
            f'User {state.capitalize()}',
            f'User {state} successfully',
            item=AdminUserSerializer(user).data,
        )


class AdminUserDetailView(AdminUserMixin, APIView):
    """
    GET/PUT/DELETE /api/admin/users/<uuid>/

    DELETE deactivates the user.
    """

    def get(self, request, user_id, *args, **kwargs):
        return success_response(
            'User Retrieved',
            'User retrieved successfully',
            item=AdminUserSerializer(self.get_user(user_id)).data,
        )

    def put(self, request, user_id, *args, **kwargs):
        user = self.get_user(user_id)
        serializer = AdminUserUpdateSerializer(user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"Admin {request.user.pk} updated user {user.pk}")
        return success_response(
            'User Updated',
            'User updated successfully',
            item=AdminUserSerializer(user).data,
        )

    def delete(self, request, user_id, *args, **kwargs):
        return self.set_active(request, user_id, False)


class AdminUserActivateView(AdminUserMixin, APIView):
    """PUT /api/admin/users/<uuid>/activate/"""

    def put(self, request, user_id, *args, **kwargs):
        return self.set_active(request, user_id, True)


class AdminUserDeactivateView(AdminUserMixin, APIView):
    """PUT /api/admin/users/<uuid>/deactivate/"""

    def put(self, request, user_id, *args, **kwargs):
        return self.set_active(request, user_id, False)


# ============================================================================
# Transaction rooms
# ============================================================================

class RoomViewMixin:
    """
    Shared configuration for room endpoints.

    Room endpoints renew an expired access token when a refresh token is
    sent in ``X-Refresh-Token``.
    """
    authentication_classes = [RefreshingJWTAuthentication]
    permission_classes = [IsAuthenticated, IsRoomParticipant]

    def room_response(self, room, title, message, status_code=status.HTTP_200_OK):
        return success_response(title, message, item=RoomSerializer(room).data, status_code=status_code)


class RoomCreateView(RoomViewMixin, APIView):
    """
    POST /api/rooms/

    The caller becomes the creator and, unless ``sellerId`` is given, the seller.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = RoomCreateSerializer(data=request.data, context={'user': request.user})
        serializer.is_valid(raise_exception=True)

        room = create_room_with_unique_code(**serializer.to_model_fields())
        logger.info(f"Room {room.room_code} created by {request.user.pk}")

        return self.room_response(
            room,
            'Room Created',
            'Transaction room created successfully',
            status_code=status.HTTP_201_CREATED,
        )


class MyRoomsListView(RoomViewMixin, ListAPIView):
    """
    GET /api/rooms/list/?status=&page=&per_page=

    Rooms where the caller is creator, buyer or seller.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = RoomSerializer
    pagination_class = EnvelopePagination
    list_title = 'My Rooms'
    list_message = 'Rooms retrieved successfully'

    def get_queryset(self):
        user = self.request.user
        queryset = Room.objects.filter(
            Q(creator=user) | Q(buyer=user) | Q(seller=user)
        ).select_related('creator', 'buyer', 'seller').order_by('-created_at')

        room_status = self.request.query_params.get('status')
        if room_status:
            room_status = room_status.upper()
            if room_status not in Room.Status.values:
                raise ValidationError({'status': f'Invalid status: {room_status}'})
            queryset = queryset.filter(status=room_status)

        return queryset


class RoomDetailView(RoomViewMixin, APIView):
    """
    GET /api/rooms/<uuid>/
    """

    def get(self, request, room_id, *args, **kwargs):
        room = Room.objects.select_related('creator', 'buyer', 'seller').filter(pk=room_id).first()
        if room is None:
            raise NotFound('Room not found')
        self.check_object_permissions(request, room)
        return self.room_response(room, 'Room Retrieved', 'Room retrieved successfully')


class RoomByCodeView(RoomViewMixin, APIView):
    """
    GET /api/rooms/code/<code>/

    The code is matched case-insensitively.
    """

    def get(self, request, room_code, *args, **kwargs):
        room = Room.objects.select_related('creator', 'buyer', 'seller').filter(
            room_code=room_code.upper()
        ).first()
        if room is None:
            raise NotFound('Room not found')
        self.check_object_permissions(request, room)
        return self.room_response(room, 'Room Retrieved', 'Room retrieved successfully')


class RoomJoinView(RoomViewMixin, APIView):
    """
    POST /api/rooms/code/<code>/join/

    Takes the free buyer slot, or the seller slot if only that is free.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, room_code, *args, **kwargs):
        with transaction.atomic():
            room = Room.objects.select_for_update().filter(room_code=room_code.upper()).first()
            if room is None:
                raise NotFound('Room not found')
            slot = room.join(request.user)

        logger.info(f"User {request.user.pk} joined room {room.room_code} as {slot}")
        return self.room_response(room, 'Room Joined', f'Joined room as {slot}')


class RoomStatusUpdateView(RoomViewMixin, APIView):
    """
    PUT /api/rooms/<uuid>/status/
    Request body: {"status": "SHIPPED", "trackingNumber": "TH123"}
               or {"status": "CANCELLED", "reason": "..."}

    The row is locked for the duration of the transition.
    """
    permission_classes = [IsAuthenticated, IsRoomParticipant, CanTransitionRoom]

    def put(self, request, room_id, *args, **kwargs):
        serializer = RoomStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.requested_status = serializer.validated_data['status']

        with transaction.atomic():
            room = Room.objects.select_for_update().filter(pk=room_id).first()
            if room is None:
                raise NotFound('Room not found')

            self.check_object_permissions(request, room)

            old_status = room.status
            room.transition_to(
                self.requested_status,
                actor=request.user,
                tracking_number=serializer.validated_data['trackingNumber'],
                reason=serializer.validated_data['reason'],
            )

        logger.info(
            f"Room {room.room_code} status {old_status} -> {room.status} by {request.user.pk}, "
            f"IP: {get_client_ip(request)}"
        )
        return self.room_response(room, 'Room Status Updated', f'Room status changed to {room.status}')
