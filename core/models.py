"""
Data models for the Escrow Marketplace: users and transaction rooms.
"""

import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.core.exceptions import ValidationError
from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .exceptions import Conflict, InvalidTransition
from .validators import (
    validate_bank_account_number,
    validate_bank_code,
    validate_currency_code,
    validate_image_urls,
    validate_phone_number,
    validate_username,
)


class UserQuerySet(models.QuerySet):
    """
    Query helpers for users.

    ``active()`` is the one predicate for excluding soft-deleted accounts;
    every non-admin read path goes through it.
    """

    def active(self):
        return self.filter(is_active=True)

    def search(self, term):
        return self.filter(
            Q(username__icontains=term)
            | Q(email__icontains=term)
            | Q(full_name__icontains=term)
        )


class UserManager(DjangoUserManager.from_queryset(UserQuerySet)):

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', self.model.Role.ADMIN)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """
    Marketplace account.

    Additional fields:
    - email: Required, unique, stored lower-cased
    - full_name / phone: Optional contact details
    - role: USER or ADMIN
    - bank_account_number / bank_code: Payout method, both or neither
    - auth_provider / google_id / profile_picture: OAuth identity
    - created_at / updated_at: Timestamps
    """

    class Role(models.TextChoices):
        USER = 'USER', _('User')
        ADMIN = 'ADMIN', _('Admin')

    class AuthProvider(models.TextChoices):
        LOCAL = 'local', _('Local')
        GOOGLE = 'google', _('Google')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # full_name replaces the split name fields
    first_name = None
    last_name = None

    username = models.CharField(
        _('username'),
        max_length=100,
        unique=True,
        validators=[MinLengthValidator(3), validate_username],
        error_messages={
            'unique': _('A user with that username already exists.'),
        },
        help_text=_('Required. 3-100 characters. Letters, digits and underscores only.')
    )

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
    )

    full_name = models.CharField(_('full name'), max_length=200, blank=True, default='')

    phone = models.CharField(
        _('phone'),
        max_length=20,
        blank=True,
        default='',
        validators=[validate_phone_number],
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=Role.choices,
        default=Role.USER,
    )

    bank_account_number = models.CharField(
        _('bank account number'),
        max_length=12,
        blank=True,
        default='',
        validators=[validate_bank_account_number],
    )

    bank_code = models.CharField(
        _('bank code'),
        max_length=3,
        blank=True,
        default='',
        validators=[validate_bank_code],
    )

    auth_provider = models.CharField(
        _('auth provider'),
        max_length=10,
        choices=AuthProvider.choices,
        default=AuthProvider.LOCAL,
    )

    google_id = models.CharField(
        _('google id'),
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    profile_picture = models.URLField(_('profile picture'), max_length=500, blank=True, default='')

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    objects = UserManager()

    REQUIRED_FIELDS = ['email']

    class Meta:
        db_table = 'users'
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role'], name='users_role_idx'),
            models.Index(fields=['is_active'], name='users_is_active_idx'),
        ]

    def __str__(self):
        return self.email or self.username

    def get_full_name(self):
        return self.full_name.strip()

    def get_short_name(self):
        return self.username

    def is_admin(self):
        return self.role == self.Role.ADMIN

    @property
    def has_payout_method(self):
        return bool(self.bank_account_number and self.bank_code)

    def clean(self):
        """
        Validate cross-field rules.

        Ensures:
        - Email is present and lower-cased
        - Bank account number and bank code are set together or not at all
        """
        super().clean()

        if self.email:
            self.email = self.email.strip().lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if bool(self.bank_account_number) != bool(self.bank_code):
            raise ValidationError({
                'bank_code': _('Bank account number and bank code must be provided together.')
            })

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()

        if self.google_id == '':
            self.google_id = None

        # Creation skips full_clean so duplicates surface as IntegrityError
        if not self._state.adding:
            self.full_clean(validate_unique=False)

        super().save(*args, **kwargs)


# ============================================================================
# Transaction Room Model
# ============================================================================

def default_room_expiry():
    return timezone.now() + settings.ROOM_EXPIRY


def default_room_currency():
    return settings.ROOM_DEFAULT_CURRENCY


class Room(models.Model):
    """
    A transaction room tracking one buyer/seller deal.

    Status moves only along ``TRANSITIONS`` through the transition methods
    below. ``total_cents`` is derived on every save and never taken from
    callers. ``room_code`` is unique and fixed once the room exists.
    """

    class Status(models.TextChoices):
        CREATED = 'CREATED', _('Created')
        PENDING_PAYMENT = 'PENDING_PAYMENT', _('Pending payment')
        PAID = 'PAID', _('Paid')
        SHIPPED = 'SHIPPED', _('Shipped')
        COMPLETED = 'COMPLETED', _('Completed')
        CANCELLED = 'CANCELLED', _('Cancelled')

    class PaymentStatus(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        HELD = 'HELD', _('Held')
        RELEASED = 'RELEASED', _('Released')
        REFUNDED = 'REFUNDED', _('Refunded')

    TRANSITIONS = {
        Status.CREATED: [Status.PENDING_PAYMENT, Status.CANCELLED],
        Status.PENDING_PAYMENT: [Status.PAID, Status.CANCELLED],
        Status.PAID: [Status.SHIPPED, Status.CANCELLED],
        Status.SHIPPED: [Status.COMPLETED, Status.CANCELLED],
        Status.COMPLETED: [],  # Terminal state
        Status.CANCELLED: [],  # Terminal state
    }

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    room_code = models.CharField(_('room code'), max_length=8, unique=True, editable=False)

    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_rooms',
    )
    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='buying_rooms',
        null=True,
        blank=True,
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='selling_rooms',
        null=True,
        blank=True,
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=Status.choices,
        default=Status.CREATED,
    )
    payment_status = models.CharField(
        _('payment status'),
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )

    item_title = models.CharField(_('item title'), max_length=255)
    item_description = models.TextField(_('item description'), blank=True, default='')
    quantity = models.PositiveIntegerField(
        _('quantity'),
        default=1,
        validators=[MinValueValidator(1, message=_('Quantity must be at least 1.'))],
    )
    item_images = models.JSONField(
        _('item images'),
        default=list,
        blank=True,
        validators=[validate_image_urls],
    )

    item_price_cents = models.PositiveBigIntegerField(_('item price (cents)'))
    shipping_fee_cents = models.PositiveBigIntegerField(_('shipping fee (cents)'), default=0)
    platform_fee_cents = models.PositiveBigIntegerField(_('platform fee (cents)'), default=0)
    total_cents = models.PositiveBigIntegerField(_('total (cents)'), default=0, editable=False)
    currency = models.CharField(
        _('currency'),
        max_length=3,
        default=default_room_currency,
        validators=[validate_currency_code],
    )

    tracking_number = models.CharField(_('tracking number'), max_length=100, blank=True, default='')

    paid_at = models.DateTimeField(null=True, blank=True)
    payment_verified_at = models.DateTimeField(null=True, blank=True)
    payment_verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='verified_rooms',
        null=True,
        blank=True,
    )
    shipped_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='cancelled_rooms',
        null=True,
        blank=True,
    )
    cancellation_reason = models.TextField(blank=True, default='')
    expires_at = models.DateTimeField(default=default_room_expiry)
    closed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        db_table = 'transaction_rooms'
        verbose_name = _('transaction room')
        verbose_name_plural = _('transaction rooms')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='rooms_status_idx'),
            models.Index(fields=['creator'], name='rooms_creator_idx'),
            models.Index(fields=['buyer'], name='rooms_buyer_idx'),
            models.Index(fields=['seller'], name='rooms_seller_idx'),
            models.Index(fields=['expires_at'], name='rooms_expires_at_idx'),
        ]

    def __str__(self):
        return f"Room {self.room_code} - {self.item_title} ({self.status})"

    @staticmethod
    def compute_total(item_price_cents, quantity, shipping_fee_cents=0, platform_fee_cents=0):
        return (
            (item_price_cents or 0) * (quantity or 0)
            + (shipping_fee_cents or 0)
            + (platform_fee_cents or 0)
        )

    @property
    def participant_ids(self):
        return {pk for pk in (self.creator_id, self.buyer_id, self.seller_id) if pk is not None}

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def clean(self):
        """
        Validate cross-field rules.

        Ensures:
        - Buyer and seller are different users
        - Room code is unchanged once persisted
        - Status only changes along TRANSITIONS
        """
        super().clean()

        if self.buyer_id and self.seller_id and self.buyer_id == self.seller_id:
            raise ValidationError({
                'seller': _('Buyer and seller must be different users.')
            })

        if self._state.adding:
            return

        try:
            old = Room.objects.only('room_code', 'status').get(pk=self.pk)
        except Room.DoesNotExist:
            return

        if old.room_code != self.room_code:
            raise ValidationError({
                'room_code': _('Room code cannot be changed.')
            })

        if old.status != self.status and self.status not in self.TRANSITIONS.get(old.status, []):
            raise ValidationError({
                'status': _('Invalid status transition from %(old)s to %(new)s.') % {
                    'old': old.status,
                    'new': self.status,
                }
            })

    def save(self, *args, **kwargs):
        """
        Recompute the total and validate before writing.
        """
        self.total_cents = self.compute_total(
            self.item_price_cents,
            self.quantity,
            self.shipping_fee_cents,
            self.platform_fee_cents,
        )

        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'total_cents', 'updated_at'}

        self.full_clean(validate_unique=False)
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        """
        Check whether the room may move to ``new_status``.

        Returns:
            tuple: (bool, str) - (can_transition, message)
        """
        if self.is_terminal:
            return False, f'Room is already {self.status} and cannot change status.'

        if new_status not in self.TRANSITIONS.get(self.status, []):
            return False, f'Cannot transition room from {self.status} to {new_status}.'

        return True, ''

    def _require_transition(self, new_status):
        allowed, _message = self.can_transition_to(new_status)
        if not allowed:
            raise InvalidTransition(self.status, new_status)

    def confirm_intent(self, actor=None):
        """Buyer confirms intent to pay: CREATED -> PENDING_PAYMENT."""
        self._require_transition(self.Status.PENDING_PAYMENT)
        self.status = self.Status.PENDING_PAYMENT
        self.save()

    def verify_payment(self, actor=None):
        """
        Record verified payment: PENDING_PAYMENT -> PAID.

        Funds move into escrow (payment status HELD).
        """
        self._require_transition(self.Status.PAID)
        now = timezone.now()
        self.status = self.Status.PAID
        self.payment_status = self.PaymentStatus.HELD
        self.paid_at = now
        self.payment_verified_at = now
        self.payment_verified_by = actor
        self.save()

    def mark_shipped(self, actor=None, tracking_number=''):
        """
        Seller ships the item: PAID -> SHIPPED.

        Raises:
            InvalidTransition: If the room is not PAID
            ValidationError: If no tracking number is given
        """
        self._require_transition(self.Status.SHIPPED)
        tracking_number = (tracking_number or '').strip()
        if not tracking_number:
            raise ValidationError({
                'tracking_number': _('Tracking number is required to mark a room as shipped.')
            })
        self.status = self.Status.SHIPPED
        self.tracking_number = tracking_number
        self.shipped_at = timezone.now()
        self.save()

    def complete(self, actor=None):
        """Buyer confirms receipt: SHIPPED -> COMPLETED, escrow released."""
        self._require_transition(self.Status.COMPLETED)
        now = timezone.now()
        self.status = self.Status.COMPLETED
        self.payment_status = self.PaymentStatus.RELEASED
        self.completed_at = now
        self.closed_at = now
        self.save()

    def cancel(self, actor=None, reason=''):
        """
        Cancel from any non-terminal status.

        Held funds are refunded.
        """
        self._require_transition(self.Status.CANCELLED)
        now = timezone.now()
        self.status = self.Status.CANCELLED
        if self.payment_status == self.PaymentStatus.HELD:
            self.payment_status = self.PaymentStatus.REFUNDED
        self.cancelled_at = now
        self.cancelled_by = actor
        self.cancellation_reason = reason or ''
        self.closed_at = now
        self.save()

    def transition_to(self, new_status, actor=None, tracking_number='', reason=''):
        """
        Dispatch a status change to the matching transition method.

        Raises:
            InvalidTransition: If ``new_status`` is not reachable from the current status
        """
        if new_status == self.Status.PENDING_PAYMENT:
            self.confirm_intent(actor)
        elif new_status == self.Status.PAID:
            self.verify_payment(actor)
        elif new_status == self.Status.SHIPPED:
            self.mark_shipped(actor, tracking_number)
        elif new_status == self.Status.COMPLETED:
            self.complete(actor)
        elif new_status == self.Status.CANCELLED:
            self.cancel(actor, reason)
        else:
            raise InvalidTransition(self.status, new_status)

    def join(self, user):
        """
        Add ``user`` to the room, filling the buyer slot first, then the seller slot.

        Returns:
            str: 'buyer' or 'seller', the slot that was filled

        Raises:
            Conflict: If the room is no longer open, the user already
                participates, or both slots are taken
        """
        if self.status != self.Status.CREATED:
            raise Conflict(f'Room can only be joined while {self.Status.CREATED}.')

        if user.pk in (self.buyer_id, self.seller_id):
            raise Conflict('You are already a participant in this room.')

        if self.buyer_id is None:
            self.buyer = user
            slot = 'buyer'
        elif self.seller_id is None:
            self.seller = user
            slot = 'seller'
        else:
            raise Conflict('This room already has a buyer and a seller.')

        self.save()
        return slot
