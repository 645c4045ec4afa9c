import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models

import transport.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('external_id', models.CharField(blank=True, help_text='Identifier of this account at the identity provider.', max_length=128, null=True, unique=True, verbose_name='external identity')),
                ('role', models.CharField(choices=[('owner', 'Dog Owner'), ('transporter', 'Transporter')], help_text='Required. Owners post trips, transporters bid on them.', max_length=20, verbose_name='role')),
                ('payout_account_id', models.CharField(blank=True, help_text='Connected payment account that receives transporter earnings.', max_length=255, null=True, validators=[transport.validators.validate_payout_account_id], verbose_name='payout account')),
                ('push_token', models.CharField(blank=True, help_text='Device push notification token.', max_length=255, null=True, validators=[transport.validators.validate_push_token], verbose_name='push token')),
                ('avg_rating', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Average rating received from counterparties.', max_digits=3, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Rating cannot be negative.'), django.core.validators.MaxValueValidator(Decimal('5.00'), message='Rating cannot exceed 5.00.')], verbose_name='average rating')),
                ('review_count', models.PositiveIntegerField(default=0, help_text='Number of reviews received.', verbose_name='review count')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='user_email_idx'),
                    models.Index(fields=['role'], name='user_role_idx'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Trip',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('pickup_location', models.CharField(max_length=300, verbose_name='pickup location')),
                ('dropoff_location', models.CharField(max_length=300, verbose_name='dropoff location')),
                ('dog_info', models.JSONField(blank=True, default=dict, help_text='Free-form details about the dog(s) being transported', validators=[transport.validators.validate_dog_info], verbose_name='dog info')),
                ('status', models.CharField(choices=[('requested', 'Requested'), ('accepted', 'Accepted'), ('delivered', 'Delivered')], default='requested', max_length=20, verbose_name='status')),
                ('total_amount_cents', models.PositiveIntegerField(blank=True, null=True, verbose_name='total amount (cents)')),
                ('platform_fee_cents', models.PositiveIntegerField(blank=True, null=True, verbose_name='platform fee (cents)')),
                ('transporter_earnings_cents', models.PositiveIntegerField(blank=True, null=True, verbose_name='transporter earnings (cents)')),
                ('payment_intent_id', models.CharField(blank=True, help_text='Payment processor authorization held for this trip', max_length=255, null=True, verbose_name='payment authorization')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('accepted_at', models.DateTimeField(blank=True, null=True, verbose_name='accepted at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('owner', models.ForeignKey(help_text='Owner who posted the trip', on_delete=django.db.models.deletion.CASCADE, related_name='owned_trips', to=settings.AUTH_USER_MODEL)),
                ('transporter', models.ForeignKey(blank=True, help_text='Transporter whose bid won the trip', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='awarded_trips', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'trip',
                'verbose_name_plural': 'trips',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Bid',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount_cents', models.PositiveIntegerField(verbose_name='amount (cents)')),
                ('eta_hours', models.PositiveIntegerField(blank=True, null=True, verbose_name='ETA (hours)')),
                ('note', models.TextField(blank=True, default='', verbose_name='note')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('rejected', 'Rejected')], default='pending', max_length=20, verbose_name='status')),
                ('platform_fee_cents', models.PositiveIntegerField(blank=True, null=True, verbose_name='platform fee (cents)')),
                ('transporter_earnings_cents', models.PositiveIntegerField(blank=True, null=True, verbose_name='transporter earnings (cents)')),
                ('last_message_at', models.DateTimeField(blank=True, null=True, verbose_name='last message at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('transporter', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bids', to=settings.AUTH_USER_MODEL)),
                ('trip', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bids', to='transport.trip')),
            ],
            options={
                'verbose_name': 'bid',
                'verbose_name_plural': 'bids',
                'ordering': ['amount_cents', 'created_at'],
                'indexes': [
                    models.Index(fields=['trip', 'status'], name='bid_trip_status_idx'),
                    models.Index(fields=['transporter'], name='bid_transporter_idx'),
                    models.Index(fields=['amount_cents'], name='bid_amount_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'accepted')), fields=('trip',), name='unique_accepted_bid_per_trip'),
                ],
            },
        ),
        migrations.AddField(
            model_name='trip',
            name='winning_bid',
            field=models.OneToOneField(blank=True, help_text='Accepted bid', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='won_trip', to='transport.bid'),
        ),
        migrations.AddIndex(
            model_name='trip',
            index=models.Index(fields=['owner'], name='trip_owner_idx'),
        ),
        migrations.AddIndex(
            model_name='trip',
            index=models.Index(fields=['transporter'], name='trip_transporter_idx'),
        ),
        migrations.AddIndex(
            model_name='trip',
            index=models.Index(fields=['status'], name='trip_status_idx'),
        ),
        migrations.AddIndex(
            model_name='trip',
            index=models.Index(fields=['accepted_at'], name='trip_accepted_at_idx'),
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.TextField(blank=True, default='', verbose_name='comment')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('reviewee', models.ForeignKey(help_text='User receiving the review', on_delete=django.db.models.deletion.CASCADE, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
                ('reviewer', models.ForeignKey(help_text='User writing the review', on_delete=django.db.models.deletion.CASCADE, related_name='reviews_given', to=settings.AUTH_USER_MODEL)),
                ('trip', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='transport.trip')),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['reviewee'], name='review_reviewee_idx'),
                    models.Index(fields=['created_at'], name='review_created_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('trip', 'reviewer'), name='unique_review_per_trip_reviewer'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('body', models.TextField(verbose_name='body')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('bid', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='transport.bid')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages_sent', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'message',
                'verbose_name_plural': 'messages',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['bid', 'created_at'], name='message_bid_created_idx'),
                ],
            },
        ),
    ]
