import django.db.models.deletion
from django.db import migrations, models


def copy_current_refs(apps, schema_editor):
    Payment = apps.get_model('payments', 'Payment')
    PaymentTxnRef = apps.get_model('payments', 'PaymentTxnRef')
    PaymentTxnRef.objects.bulk_create(
        [
            PaymentTxnRef(txn_ref=txn_ref, payment_id=payment_id)
            for payment_id, txn_ref in Payment.objects.exclude(gateway_txn_ref='').values_list('id', 'gateway_txn_ref')
        ],
        ignore_conflicts=True,
    )


class Migration(migrations.Migration):

    dependencies = [
        ('payments', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentTxnRef',
            fields=[
                ('txn_ref', models.CharField(max_length=100, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('payment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='txn_refs', to='payments.payment')),
            ],
            options={
                'verbose_name': 'Mã giao dịch VNPay',
                'verbose_name_plural': 'Mã giao dịch VNPay',
            },
        ),
        migrations.RunPython(copy_current_refs, migrations.RunPython.noop),
    ]
