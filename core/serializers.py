"""
Serializers for authentication, user management and transaction rooms.

Output uses camelCase field names; each operation has its own serializer.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .models import Room
from .validators import (
    validate_bank_account_number,
    validate_bank_code,
    validate_currency_code,
    validate_phone_number,
    validate_username,
)

User = get_user_model()


def check_password_strength(value, user=None):
    """
    Run Django's password validators and report failures as a DRF error.
    """
    try:
        validate_password(value, user)
    except DjangoValidationError as e:
        raise serializers.ValidationError(list(e.messages))
    return value


def check_bank_pair(account_number, bank_code):
    if bool(account_number) != bool(bank_code):
        raise serializers.ValidationError({
            'bankCode': 'Bank account number and bank code must be provided together.'
        })


# ============================================================================
# User views
# ============================================================================

class PublicUserSerializer(serializers.ModelSerializer):
    """
    What any authenticated user may see about another user.
    """
    fullName = serializers.CharField(source='full_name', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'fullName', 'createdAt']
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    """
    Full view of a user for the user themself. The password hash is never included.
    """
    fullName = serializers.CharField(source='full_name', read_only=True)
    bankAccountNumber = serializers.CharField(source='bank_account_number', read_only=True)
    bankCode = serializers.CharField(source='bank_code', read_only=True)
    hasPayoutMethod = serializers.BooleanField(source='has_payout_method', read_only=True)
    authProvider = serializers.CharField(source='auth_provider', read_only=True)
    profilePicture = serializers.CharField(source='profile_picture', read_only=True)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'username', 'fullName', 'phone', 'role',
            'bankAccountNumber', 'bankCode', 'hasPayoutMethod',
            'authProvider', 'profilePicture', 'isActive', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields


class AdminUserSerializer(ProfileSerializer):
    """Admin view of a user; same shape as the profile."""


# ============================================================================
# Authentication
# ============================================================================

class RegistrationSerializer(serializers.Serializer):
    """
    Serializer for user registration.

    Uniqueness of email and username is left to the view so that duplicates
    are reported as conflicts rather than validation errors. The role is
    always USER.
    """
    email = serializers.EmailField(max_length=254)
    username = serializers.CharField(min_length=3, max_length=100, validators=[validate_username])
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})
    fullName = serializers.CharField(source='full_name', max_length=200, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, validators=[validate_phone_number])
    bankAccountNumber = serializers.CharField(
        source='bank_account_number',
        required=False,
        allow_blank=True,
        validators=[validate_bank_account_number],
    )
    bankCode = serializers.CharField(
        source='bank_code',
        required=False,
        allow_blank=True,
        validators=[validate_bank_code],
    )

    def validate_email(self, value):
        return value.strip().lower()

    def validate_password(self, value):
        return check_password_strength(value)

    def validate(self, attrs):
        check_bank_pair(attrs.get('bank_account_number'), attrs.get('bank_code'))
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data.pop('username'),
            email=validated_data.pop('email'),
            password=validated_data.pop('password'),
            role=User.Role.USER,
            **validated_data,
        )


class LoginSerializer(serializers.Serializer):
    """
    Login with either an email address or a username.
    """
    email = serializers.EmailField(required=False)
    username = serializers.CharField(required=False, max_length=100)
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})

    def validate(self, attrs):
        if not attrs.get('email') and not attrs.get('username'):
            raise serializers.ValidationError('Either email or username is required.')
        if attrs.get('email'):
            attrs['email'] = attrs['email'].strip().lower()
        return attrs


class RefreshTokenSerializer(serializers.Serializer):
    refreshToken = serializers.CharField()


class LogoutSerializer(serializers.Serializer):
    refreshToken = serializers.CharField(required=False, allow_blank=True)


class ChangePasswordSerializer(serializers.Serializer):
    """
    Change the authenticated user's password.

    Expects the user in ``context['user']``.
    """
    currentPassword = serializers.CharField(write_only=True)
    newPassword = serializers.CharField(write_only=True)
    confirmPassword = serializers.CharField(write_only=True)

    def validate_currentPassword(self, value):
        if not self.context['user'].check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def validate_newPassword(self, value):
        return check_password_strength(value, self.context['user'])

    def validate(self, attrs):
        if attrs['newPassword'] != attrs['confirmPassword']:
            raise serializers.ValidationError({
                'confirmPassword': 'Password confirmation does not match new password.'
            })
        return attrs


# ============================================================================
# Profile and admin updates
# ============================================================================

class ProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Fields a user may change on their own profile.
    """
    fullName = serializers.CharField(source='full_name', max_length=200, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, validators=[validate_phone_number])
    bankAccountNumber = serializers.CharField(
        source='bank_account_number',
        required=False,
        allow_blank=True,
        validators=[validate_bank_account_number],
    )
    bankCode = serializers.CharField(
        source='bank_code',
        required=False,
        allow_blank=True,
        validators=[validate_bank_code],
    )
    profilePicture = serializers.URLField(
        source='profile_picture',
        max_length=500,
        required=False,
        allow_blank=True,
    )

    class Meta:
        model = User
        fields = ['fullName', 'phone', 'bankAccountNumber', 'bankCode', 'profilePicture']

    def validate(self, attrs):
        """
        Check the bank pair against the values the user will end up with.
        """
        instance = self.instance
        check_bank_pair(
            attrs.get('bank_account_number', instance.bank_account_number if instance else ''),
            attrs.get('bank_code', instance.bank_code if instance else ''),
        )
        return attrs


class AdminUserUpdateSerializer(ProfileUpdateSerializer):
    """
    Fields an admin may change on any user.
    """
    role = serializers.ChoiceField(choices=User.Role.choices, required=False)
    isActive = serializers.BooleanField(source='is_active', required=False)

    class Meta(ProfileUpdateSerializer.Meta):
        fields = ['fullName', 'phone', 'role', 'bankAccountNumber', 'bankCode', 'isActive']


# ============================================================================
# Transaction rooms
# ============================================================================

class RoomSerializer(serializers.ModelSerializer):
    """
    Read view of a room with participant summaries.
    """
    roomCode = serializers.CharField(source='room_code', read_only=True)
    creatorId = serializers.UUIDField(source='creator_id', read_only=True)
    buyerId = serializers.UUIDField(source='buyer_id', read_only=True)
    sellerId = serializers.UUIDField(source='seller_id', read_only=True)
    creator = PublicUserSerializer(read_only=True)
    buyer = PublicUserSerializer(read_only=True)
    seller = PublicUserSerializer(read_only=True)
    paymentStatus = serializers.CharField(source='payment_status', read_only=True)
    itemTitle = serializers.CharField(source='item_title', read_only=True)
    itemDescription = serializers.CharField(source='item_description', read_only=True)
    itemImages = serializers.JSONField(source='item_images', read_only=True)
    itemPriceCents = serializers.IntegerField(source='item_price_cents', read_only=True)
    shippingFeeCents = serializers.IntegerField(source='shipping_fee_cents', read_only=True)
    platformFeeCents = serializers.IntegerField(source='platform_fee_cents', read_only=True)
    totalCents = serializers.IntegerField(source='total_cents', read_only=True)
    trackingNumber = serializers.CharField(source='tracking_number', read_only=True)
    paidAt = serializers.DateTimeField(source='paid_at', read_only=True)
    paymentVerifiedAt = serializers.DateTimeField(source='payment_verified_at', read_only=True)
    paymentVerifiedBy = serializers.UUIDField(source='payment_verified_by_id', read_only=True)
    shippedAt = serializers.DateTimeField(source='shipped_at', read_only=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True)
    cancelledAt = serializers.DateTimeField(source='cancelled_at', read_only=True)
    cancelledBy = serializers.UUIDField(source='cancelled_by_id', read_only=True)
    cancellationReason = serializers.CharField(source='cancellation_reason', read_only=True)
    expiresAt = serializers.DateTimeField(source='expires_at', read_only=True)
    closedAt = serializers.DateTimeField(source='closed_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Room
        fields = [
            'id', 'roomCode', 'creatorId', 'buyerId', 'sellerId',
            'creator', 'buyer', 'seller', 'status', 'paymentStatus',
            'itemTitle', 'itemDescription', 'quantity', 'itemImages',
            'itemPriceCents', 'shippingFeeCents', 'platformFeeCents', 'totalCents',
            'currency', 'trackingNumber', 'paidAt', 'paymentVerifiedAt',
            'paymentVerifiedBy', 'shippedAt', 'completedAt', 'cancelledAt',
            'cancelledBy', 'cancellationReason', 'expiresAt', 'closedAt',
            'createdAt', 'updatedAt',
        ]
        read_only_fields = fields


class RoomCreateSerializer(serializers.Serializer):
    """
    Input for creating a room.

    ``sellerId`` defaults to the creator when omitted. ``totalCents`` is
    not an input; any value sent is ignored. Expects the creator in
    ``context['user']``.
    """
    buyerId = serializers.UUIDField(required=False, allow_null=True)
    sellerId = serializers.UUIDField(required=False, allow_null=True)
    itemTitle = serializers.CharField(max_length=255)
    itemDescription = serializers.CharField(required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(min_value=1, default=1)
    itemImages = serializers.ListField(
        child=serializers.URLField(max_length=2048),
        required=False,
        default=list,
    )
    itemPriceCents = serializers.IntegerField(min_value=1)
    shippingFeeCents = serializers.IntegerField(min_value=0, default=0)
    platformFeeCents = serializers.IntegerField(min_value=0, default=0)
    currency = serializers.CharField(max_length=3, required=False)

    def validate_currency(self, value):
        value = value.strip().upper()
        try:
            validate_currency_code(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def _resolve_participant(self, user_id, field):
        if user_id is None:
            return None
        participant = User.objects.active().filter(pk=user_id).first()
        if participant is None:
            raise serializers.ValidationError({field: 'User not found or inactive.'})
        return participant

    def validate(self, attrs):
        creator = self.context['user']

        seller_id = attrs['sellerId'] if 'sellerId' in attrs else creator.pk
        buyer_id = attrs.get('buyerId')

        if buyer_id is None and seller_id is None:
            raise serializers.ValidationError('Either buyerId or sellerId must be provided.')

        if buyer_id is not None and buyer_id == seller_id:
            raise serializers.ValidationError({'sellerId': 'Buyer and seller must be different users.'})

        attrs['buyer'] = self._resolve_participant(buyer_id, 'buyerId')
        attrs['seller'] = self._resolve_participant(seller_id, 'sellerId')
        return attrs

    def to_model_fields(self):
        data = self.validated_data
        fields = {
            'creator': self.context['user'],
            'buyer': data['buyer'],
            'seller': data['seller'],
            'item_title': data['itemTitle'].strip(),
            'item_description': data.get('itemDescription', ''),
            'quantity': data['quantity'],
            'item_images': data.get('itemImages', []),
            'item_price_cents': data['itemPriceCents'],
            'shipping_fee_cents': data['shippingFeeCents'],
            'platform_fee_cents': data['platformFeeCents'],
        }
        if data.get('currency'):
            fields['currency'] = data['currency']
        return fields


class RoomStatusUpdateSerializer(serializers.Serializer):
    """
    Input for a room status change.
    """
    status = serializers.ChoiceField(choices=Room.Status.choices)
    trackingNumber = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['status'] == Room.Status.SHIPPED and not attrs.get('trackingNumber', '').strip():
            raise serializers.ValidationError({
                'trackingNumber': 'Tracking number is required when marking a room as shipped.'
            })
        return attrs
