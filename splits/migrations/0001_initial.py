import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


MONEY = dict(max_digits=12, decimal_places=2, null=True, blank=True)

PAYMENT_METHOD_CHOICES = [
    ('venmo', 'Venmo'),
    ('cash_app', 'Cash App'),
    ('zelle', 'Zelle'),
    ('cash_apple_pay', 'Cash / Apple Pay'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Receipt',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('share_code', models.CharField(db_index=True, max_length=6, unique=True)),
                ('client_receipt_id', models.CharField(max_length=128)),
                ('owner_key', models.CharField(db_index=True, max_length=200)),
                ('receipt_total', models.DecimalField(**MONEY)),
                ('subtotal', models.DecimalField(**MONEY)),
                ('tax', models.DecimalField(**MONEY)),
                ('gratuity', models.DecimalField(**MONEY)),
                ('extra_fees_total', models.DecimalField(**MONEY)),
                ('other_fees', models.DecimalField(**MONEY)),
                ('gratuity_percent', models.DecimalField(blank=True, decimal_places=2, max_digits=7, null=True)),
                ('settlement_phase', models.CharField(
                    choices=[('claiming', 'Claiming'), ('finalized', 'Finalized')],
                    default='claiming', max_length=20,
                )),
                ('finalized_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('archived_reason', models.CharField(
                    blank=True, choices=[('manual', 'Manual'), ('auto_settled', 'Auto settled')],
                    max_length=20, null=True,
                )),
                ('revision', models.PositiveIntegerField(default=0)),
                ('legacy_items_json', models.TextField(blank=True, null=True)),
                ('items_schema_version', models.PositiveSmallIntegerField(default=2)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(
                        fields=('owner_key', 'client_receipt_id'), name='unique_owner_client_receipt'
                    ),
                ],
                'indexes': [
                    models.Index(fields=['owner_key', 'is_active', 'created_at'], name='splits_receipt_owner_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReceiptItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('client_item_id', models.CharField(blank=True, default='', max_length=128)),
                ('name', models.CharField(max_length=200)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('price', models.DecimalField(**MONEY)),
                ('sort_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('receipt', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name='items', to='splits.receipt',
                )),
            ],
            options={
                'ordering': ['sort_order', 'id'],
                'indexes': [
                    models.Index(fields=['receipt', 'sort_order'], name='splits_item_sort_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Participant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('participant_key', models.CharField(max_length=200)),
                ('user_id', models.CharField(blank=True, default='', max_length=150)),
                ('guest_device_id', models.CharField(blank=True, default='', max_length=36)),
                ('display_name', models.CharField(blank=True, default='', max_length=50)),
                ('is_submitted', models.BooleanField(default=False)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('payment_status', models.CharField(
                    choices=[('none', 'None'), ('pending', 'Pending'), ('confirmed', 'Confirmed')],
                    default='none', max_length=20,
                )),
                ('payment_method', models.CharField(
                    blank=True, choices=PAYMENT_METHOD_CHOICES, max_length=20, null=True,
                )),
                ('payment_amount', models.DecimalField(**MONEY)),
                ('payment_marked_at', models.DateTimeField(blank=True, null=True)),
                ('payment_confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('joined_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('receipt', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='splits.receipt',
                )),
            ],
            options={
                'ordering': ['joined_at', 'id'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('receipt', 'participant_key'), name='unique_receipt_participant'
                    ),
                ],
                'indexes': [
                    models.Index(fields=['participant_key', 'joined_at'], name='splits_participant_key_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Claim',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_key', models.CharField(max_length=128)),
                ('participant_key', models.CharField(max_length=200)),
                ('quantity', models.PositiveIntegerField()),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('receipt', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name='claims', to='splits.receipt',
                )),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(
                        fields=('receipt', 'item_key', 'participant_key'),
                        name='unique_claim_per_item_participant',
                    ),
                ],
                'indexes': [
                    models.Index(fields=['receipt', 'item_key'], name='splits_claim_item_idx'),
                    models.Index(fields=['receipt', 'participant_key'], name='splits_claim_participant_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='HostPaymentProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('owner_key', models.CharField(max_length=200, unique=True)),
                ('preferred_payment_method', models.CharField(
                    blank=True, choices=PAYMENT_METHOD_CHOICES, max_length=20, null=True,
                )),
                ('absorb_extra_cents', models.BooleanField(default=False)),
                ('venmo_enabled', models.BooleanField(default=False)),
                ('venmo_username', models.CharField(blank=True, default='', max_length=50)),
                ('cash_app_enabled', models.BooleanField(default=False)),
                ('cash_app_cashtag', models.CharField(blank=True, default='', max_length=50)),
                ('zelle_enabled', models.BooleanField(default=False)),
                ('zelle_contact', models.CharField(blank=True, default='', max_length=100)),
                ('cash_apple_pay_enabled', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
    ]
