# Generated migration for clinical app - patients, attention queue, consultation records, audit log

from django.conf import settings
import django.core.serializers.json
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('national_id', models.CharField(max_length=20, unique=True)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('birth_date', models.DateField(blank=True, null=True)),
                ('phone', models.CharField(blank=True, max_length=50, null=True)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('address', models.CharField(blank=True, max_length=255, null=True)),
                ('insurer', models.CharField(blank=True, max_length=100, null=True)),
                ('insurer_member_number', models.CharField(blank=True, max_length=50, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Patient',
                'verbose_name_plural': 'Patients',
                'db_table': 'patient',
                'indexes': [
                    models.Index(fields=['last_name', 'first_name'], name='idx_patient_name'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Attention',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(
                    choices=[
                        ('waiting', 'Waiting'),
                        ('in_consultation', 'In Consultation'),
                        ('finished', 'Finished'),
                    ],
                    default='waiting',
                    max_length=20
                )),
                ('is_priority', models.BooleanField(default=False)),
                ('entered_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='attentions', to='authz.doctor')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attentions', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Attention',
                'verbose_name_plural': 'Attentions',
                'db_table': 'attention',
                'indexes': [
                    models.Index(fields=['doctor', 'status'], name='idx_attention_doctor_status'),
                    models.Index(fields=['patient', 'entered_at'], name='idx_attention_patient_entry'),
                    models.Index(fields=['entered_at'], name='idx_attention_entered_at'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ConsultationRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.TextField()),
                ('reason', models.TextField(blank=True, null=True)),
                ('symptoms', models.TextField(blank=True, null=True)),
                ('diagnosis', models.TextField(blank=True, null=True)),
                ('treatment', models.TextField(blank=True, null=True)),
                ('observations', models.TextField(blank=True, null=True)),
                ('blood_pressure', models.CharField(blank=True, max_length=20, null=True)),
                ('temperature', models.DecimalField(blank=True, decimal_places=1, max_digits=4, null=True)),
                ('weight', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('height', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('next_visit_at', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('attention', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='consultation_record', to='clinical.attention')),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='consultation_records', to='authz.doctor')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='consultation_records', to='clinical.patient')),
            ],
            options={
                'verbose_name': 'Consultation Record',
                'verbose_name_plural': 'Consultation Records',
                'db_table': 'consultation_record',
                'indexes': [
                    models.Index(fields=['patient', 'created_at'], name='idx_record_patient_created'),
                    models.Index(fields=['doctor', 'created_at'], name='idx_record_doctor_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ClinicalAuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('action', models.CharField(
                    choices=[
                        ('create', 'Create'),
                        ('update', 'Update'),
                        ('delete', 'Delete'),
                    ],
                    max_length=10
                )),
                ('entity_type', models.CharField(
                    choices=[
                        ('Patient', 'Patient'),
                        ('Attention', 'Attention'),
                        ('ConsultationRecord', 'Consultation Record'),
                        ('Payment', 'Payment'),
                    ],
                    max_length=50
                )),
                ('entity_id', models.CharField(max_length=64)),
                ('patient_id_snapshot', models.BigIntegerField(blank=True, null=True)),
                ('metadata', models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder, help_text='Changed fields, before/after snapshots')),
                ('actor_user', models.ForeignKey(blank=True, help_text='User who performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='clinical_audit_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Clinical Audit Log',
                'verbose_name_plural': 'Clinical Audit Logs',
                'db_table': 'clinical_audit_log',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['created_at'], name='idx_audit_created_at'),
                    models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
                    models.Index(fields=['patient_id_snapshot'], name='idx_audit_patient'),
                ],
            },
        ),
    ]
