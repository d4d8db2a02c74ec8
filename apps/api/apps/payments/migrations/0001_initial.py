# Generated migration for payments app - payment ledger

from decimal import Decimal
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('clinical', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('method', models.CharField(
                    choices=[
                        ('cash', 'Cash'),
                        ('transfer', 'Transfer'),
                        ('insurance', 'Insurance'),
                    ],
                    max_length=20
                )),
                ('receipt_number', models.CharField(blank=True, max_length=100, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('consultation_record', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments', to='clinical.consultationrecord')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Payment',
                'verbose_name_plural': 'Payments',
                'db_table': 'payment',
                'indexes': [
                    models.Index(fields=['paid_at'], name='idx_payment_paid_at'),
                    models.Index(fields=['patient', 'paid_at'], name='idx_payment_patient_paid'),
                    models.Index(fields=['consultation_record'], name='idx_payment_record'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('amount__gte', 0)), name='payment_amount_non_negative'),
                    models.CheckConstraint(condition=models.Q(models.Q(('amount', 0), _negated=True), ('method', 'insurance'), _connector='OR'), name='payment_zero_amount_is_insurance'),
                ],
            },
        ),
    ]
