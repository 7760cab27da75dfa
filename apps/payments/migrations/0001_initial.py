import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bookings', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('type', models.CharField(choices=[('deposit', 'Đặt cọc'), ('monthly_rent', 'Tiền thuê tháng'), ('utilities', 'Điện nước'), ('penalty', 'Tiền phạt'), ('refund', 'Hoàn tiền')], max_length=20)),
                ('amount', models.DecimalField(decimal_places=0, max_digits=14)),
                ('currency', models.CharField(default='VND', max_length=3)),
                ('transaction_id', models.CharField(editable=False, max_length=64, unique=True)),
                ('status', models.CharField(choices=[('pending', 'Chờ thanh toán'), ('processing', 'Đang xử lý'), ('completed', 'Thành công'), ('failed', 'Thất bại'), ('cancelled', 'Đã hủy'), ('refunded', 'Đã hoàn tiền')], default='pending', max_length=20)),
                ('method', models.CharField(choices=[('vnpay', 'VNPay'), ('bank_transfer', 'Chuyển khoản'), ('cash', 'Tiền mặt'), ('other', 'Khác'), ('pending', 'Chưa chọn')], default='pending', max_length=20)),
                ('external_transaction_id', models.CharField(blank=True, max_length=100)),
                ('description', models.TextField(blank=True)),
                ('notes', models.TextField(blank=True)),
                ('gateway_txn_ref', models.CharField(blank=True, db_index=True, max_length=100)),
                ('gateway_order_info', models.CharField(blank=True, max_length=255)),
                ('gateway_order_type', models.CharField(blank=True, max_length=50)),
                ('gateway_amount', models.BigIntegerField(blank=True, null=True)),
                ('gateway_locale', models.CharField(blank=True, max_length=5)),
                ('gateway_curr_code', models.CharField(blank=True, max_length=3)),
                ('gateway_return_url', models.CharField(blank=True, max_length=500)),
                ('gateway_ip_addr', models.CharField(blank=True, max_length=64)),
                ('gateway_create_date', models.CharField(blank=True, max_length=14)),
                ('gateway_expire_date', models.CharField(blank=True, max_length=14)),
                ('gateway_response_code', models.CharField(blank=True, max_length=4)),
                ('gateway_transaction_no', models.CharField(blank=True, max_length=100)),
                ('gateway_bank_code', models.CharField(blank=True, max_length=32)),
                ('gateway_card_type', models.CharField(blank=True, max_length=32)),
                ('gateway_pay_date', models.CharField(blank=True, max_length=14)),
                ('gateway_raw_fields', models.JSONField(blank=True, default=dict)),
                ('bank_name', models.CharField(blank=True, max_length=255)),
                ('bank_account_number', models.CharField(blank=True, max_length=64)),
                ('bank_account_holder', models.CharField(blank=True, max_length=255)),
                ('bank_transfer_note', models.CharField(blank=True, max_length=255)),
                ('bank_transfer_date', models.DateTimeField(blank=True, null=True)),
                ('bank_receipt_image', models.CharField(blank=True, max_length=500)),
                ('initiated_at', models.DateTimeField(blank=True, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('failed_at', models.DateTimeField(blank=True, null=True)),
                ('failure_reason', models.TextField(blank=True)),
                ('refund_amount', models.DecimalField(blank=True, decimal_places=0, max_digits=14, null=True)),
                ('refund_reason', models.TextField(blank=True)),
                ('refund_status', models.CharField(blank=True, choices=[('pending', 'Chờ hoàn tiền'), ('processing', 'Đang hoàn tiền'), ('completed', 'Đã hoàn tiền'), ('failed', 'Hoàn tiền thất bại')], max_length=20)),
                ('refund_processed_at', models.DateTimeField(blank=True, null=True)),
                ('refund_transaction_id', models.CharField(blank=True, max_length=100)),
                ('platform_fee', models.DecimalField(decimal_places=0, default=Decimal('0'), max_digits=14)),
                ('processing_fee', models.DecimalField(decimal_places=0, default=Decimal('0'), max_digits=14)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('backfilled', models.BooleanField(default=False, help_text='Tạo lại từ trạng thái booking, không được ghi nhận khi thanh toán.')),
                ('created_at', models.DateTimeField()),
                ('updated_at', models.DateTimeField()),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='bookings.booking')),
                ('payer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments_made', to=settings.AUTH_USER_MODEL)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Thanh toán',
                'verbose_name_plural': 'Thanh toán',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['booking', 'type'], name='payment_booking_type_idx'),
                    models.Index(fields=['payer', 'status'], name='payment_payer_status_idx'),
                    models.Index(fields=['recipient', 'status'], name='payment_recipient_status_idx'),
                ],
            },
        ),
    ]
