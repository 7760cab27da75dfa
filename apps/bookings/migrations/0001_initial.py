import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('rooms', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('contract_number', models.CharField(editable=False, max_length=32, unique=True)),
                ('check_in', models.DateField()),
                ('check_out', models.DateField()),
                ('duration_months', models.PositiveSmallIntegerField(default=1)),
                ('occupants', models.PositiveSmallIntegerField(default=1)),
                ('status', models.CharField(choices=[('pending', 'Chờ xác nhận'), ('confirmed', 'Đã xác nhận'), ('deposit_paid', 'Đã đặt cọc'), ('active', 'Đang thuê'), ('completed', 'Hoàn thành'), ('cancelled', 'Đã hủy'), ('expired', 'Hết hạn')], default='pending', max_length=20)),
                ('currency', models.CharField(default='VND', max_length=3)),
                ('monthly_rent', models.DecimalField(decimal_places=0, max_digits=14)),
                ('deposit', models.DecimalField(decimal_places=0, max_digits=14)),
                ('utilities', models.DecimalField(decimal_places=0, default=Decimal('0'), max_digits=14)),
                ('total_amount', models.DecimalField(decimal_places=0, max_digits=16)),
                ('deposit_status', models.CharField(choices=[('pending', 'Chưa thanh toán'), ('paid', 'Đã thanh toán'), ('refunded', 'Đã hoàn tiền')], default='pending', max_length=20)),
                ('deposit_amount', models.DecimalField(decimal_places=0, default=Decimal('0'), max_digits=14)),
                ('deposit_paid_at', models.DateTimeField(blank=True, null=True)),
                ('deposit_method', models.CharField(blank=True, max_length=20)),
                ('deposit_transaction_id', models.CharField(blank=True, max_length=100)),
                ('payment_schedule', models.JSONField(blank=True, default=list, help_text='Lịch thanh toán tiền thuê hàng tháng.')),
                ('cancelled_by', models.CharField(blank=True, choices=[('tenant', 'Người thuê'), ('landlord', 'Chủ trọ'), ('admin', 'Quản trị viên'), ('system', 'Hệ thống')], max_length=20)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('refund_amount', models.DecimalField(blank=True, decimal_places=0, max_digits=14, null=True)),
                ('refund_status', models.CharField(blank=True, choices=[('pending', 'Chờ hoàn tiền'), ('processed', 'Đang xử lý'), ('completed', 'Đã hoàn tiền')], max_length=20)),
                ('tenant_notes', models.TextField(blank=True)),
                ('landlord_notes', models.TextField(blank=True)),
                ('admin_notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField()),
                ('updated_at', models.DateTimeField()),
                ('landlord', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='landlord_bookings', to=settings.AUTH_USER_MODEL)),
                ('room', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='rooms.room')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tenant_bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Đặt phòng',
                'verbose_name_plural': 'Đặt phòng',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['room', 'status', 'check_in', 'check_out'], name='booking_room_window_idx'),
                    models.Index(fields=['tenant', 'status'], name='booking_tenant_status_idx'),
                    models.Index(fields=['landlord', 'status'], name='booking_landlord_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(check_out__gt=models.F('check_in')), name='booking_valid_dates'),
                ],
            },
        ),
    ]
