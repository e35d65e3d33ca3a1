import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import core.models
import core.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 3-100 characters. Letters, digits and underscores only.', max_length=100, unique=True, validators=[django.core.validators.MinLengthValidator(3), core.validators.validate_username], verbose_name='username')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, max_length=254, unique=True, verbose_name='email address')),
                ('full_name', models.CharField(blank=True, default='', max_length=200, verbose_name='full name')),
                ('phone', models.CharField(blank=True, default='', max_length=20, validators=[core.validators.validate_phone_number], verbose_name='phone')),
                ('role', models.CharField(choices=[('USER', 'User'), ('ADMIN', 'Admin')], default='USER', max_length=10, verbose_name='role')),
                ('bank_account_number', models.CharField(blank=True, default='', max_length=12, validators=[core.validators.validate_bank_account_number], verbose_name='bank account number')),
                ('bank_code', models.CharField(blank=True, default='', max_length=3, validators=[core.validators.validate_bank_code], verbose_name='bank code')),
                ('auth_provider', models.CharField(choices=[('local', 'Local'), ('google', 'Google')], default='local', max_length=10, verbose_name='auth provider')),
                ('google_id', models.CharField(blank=True, max_length=255, null=True, unique=True, verbose_name='google id')),
                ('profile_picture', models.URLField(blank=True, default='', max_length=500, verbose_name='profile picture')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'db_table': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['role'], name='users_role_idx'),
                    models.Index(fields=['is_active'], name='users_is_active_idx'),
                ],
            },
            managers=[
                ('objects', core.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Room',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('room_code', models.CharField(editable=False, max_length=8, unique=True, verbose_name='room code')),
                ('status', models.CharField(choices=[('CREATED', 'Created'), ('PENDING_PAYMENT', 'Pending payment'), ('PAID', 'Paid'), ('SHIPPED', 'Shipped'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='CREATED', max_length=20, verbose_name='status')),
                ('payment_status', models.CharField(choices=[('PENDING', 'Pending'), ('HELD', 'Held'), ('RELEASED', 'Released'), ('REFUNDED', 'Refunded')], default='PENDING', max_length=20, verbose_name='payment status')),
                ('item_title', models.CharField(max_length=255, verbose_name='item title')),
                ('item_description', models.TextField(blank=True, default='', verbose_name='item description')),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1, message='Quantity must be at least 1.')], verbose_name='quantity')),
                ('item_images', models.JSONField(blank=True, default=list, validators=[core.validators.validate_image_urls], verbose_name='item images')),
                ('item_price_cents', models.PositiveBigIntegerField(verbose_name='item price (cents)')),
                ('shipping_fee_cents', models.PositiveBigIntegerField(default=0, verbose_name='shipping fee (cents)')),
                ('platform_fee_cents', models.PositiveBigIntegerField(default=0, verbose_name='platform fee (cents)')),
                ('total_cents', models.PositiveBigIntegerField(default=0, editable=False, verbose_name='total (cents)')),
                ('currency', models.CharField(default=core.models.default_room_currency, max_length=3, validators=[core.validators.validate_currency_code], verbose_name='currency')),
                ('tracking_number', models.CharField(blank=True, default='', max_length=100, verbose_name='tracking number')),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('payment_verified_at', models.DateTimeField(blank=True, null=True)),
                ('shipped_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True, default='')),
                ('expires_at', models.DateTimeField(default=core.models.default_room_expiry)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('creator', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_rooms', to=settings.AUTH_USER_MODEL)),
                ('buyer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='buying_rooms', to=settings.AUTH_USER_MODEL)),
                ('seller', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='selling_rooms', to=settings.AUTH_USER_MODEL)),
                ('payment_verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='verified_rooms', to=settings.AUTH_USER_MODEL)),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='cancelled_rooms', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'transaction room',
                'verbose_name_plural': 'transaction rooms',
                'db_table': 'transaction_rooms',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='rooms_status_idx'),
                    models.Index(fields=['creator'], name='rooms_creator_idx'),
                    models.Index(fields=['buyer'], name='rooms_buyer_idx'),
                    models.Index(fields=['seller'], name='rooms_seller_idx'),
                    models.Index(fields=['expires_at'], name='rooms_expires_at_idx'),
                ],
            },
        ),
    ]
