import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Room',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('active', 'Đang hoạt động'), ('inactive', 'Ngừng hoạt động'), ('pending', 'Chờ duyệt')], default='pending', max_length=20)),
                ('is_available', models.BooleanField(default=True)),
                ('monthly_price', models.DecimalField(decimal_places=0, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('deposit', models.DecimalField(decimal_places=0, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('utilities', models.DecimalField(decimal_places=0, default=Decimal('0'), help_text='Chi phí điện nước dự kiến mỗi tháng.', max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('street', models.CharField(blank=True, max_length=255)),
                ('ward', models.CharField(blank=True, max_length=100)),
                ('district', models.CharField(blank=True, max_length=100)),
                ('city', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('landlord', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rooms', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Phòng',
                'verbose_name_plural': 'Phòng',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['landlord', 'status'], name='room_landlord_status_idx'),
                    models.Index(fields=['status', 'is_available'], name='room_status_available_idx'),
                ],
            },
        ),
    ]
