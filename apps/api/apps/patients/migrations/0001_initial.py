# Initial migration for patients and treatment cycle history

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('patient_code', models.CharField(max_length=30, unique=True, verbose_name='Patient Code')),
                ('patient_name', models.CharField(max_length=255, verbose_name='Patient Name')),
                ('date_of_birth', models.DateField(blank=True, null=True, verbose_name='Date of Birth')),
                ('gender', models.CharField(choices=[('M', 'Male'), ('F', 'Female'), ('O', 'Other'), ('U', 'Prefer not to say')], default='U', max_length=1, verbose_name='Gender')),
                ('mobile_no', models.CharField(blank=True, max_length=20, verbose_name='Mobile No')),
                ('address', models.TextField(blank=True, verbose_name='Address')),
                ('current_cycle_number', models.PositiveIntegerField(default=1, verbose_name='Current Cycle Number')),
                ('current_cycle_start_date', models.DateField(blank=True, null=True, verbose_name='Current Cycle Start')),
                ('current_cycle_end_date', models.DateField(blank=True, null=True, verbose_name='Current Cycle End')),
                ('current_cycle_session_count', models.PositiveIntegerField(default=0, verbose_name='Sessions In Current Cycle')),
                ('total_completed_cycles', models.PositiveIntegerField(default=0, verbose_name='Completed Cycles')),
                ('dialysis_cycles', models.PositiveIntegerField(default=0, help_text='All-time count of completed dialysis appointments', verbose_name='Completed Sessions')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='patients', to='core.company')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='patients', to='core.center')),
            ],
            options={
                'verbose_name': 'Patient',
                'verbose_name_plural': 'Patients',
                'db_table': 'patients',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['patient_name'], name='idx_patient_name'),
                    models.Index(fields=['mobile_no'], name='idx_patient_mobile'),
                    models.Index(fields=['center', 'is_active'], name='idx_patient_center_active'),
                    models.Index(fields=['current_cycle_end_date'], name='idx_patient_cycle_end'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TreatmentCycle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('cycle_number', models.PositiveIntegerField()),
                ('cycle_start_date', models.DateField()),
                ('cycle_end_date', models.DateField()),
                ('planned_sessions', models.PositiveIntegerField(default=18)),
                ('completed_sessions', models.PositiveIntegerField(default=0)),
                ('cycle_status', models.CharField(choices=[('active', 'Active'), ('completed', 'Completed'), ('incomplete', 'Incomplete')], default='active', max_length=20)),
                ('first_appointment_date', models.DateField(blank=True, null=True)),
                ('last_appointment_date', models.DateField(blank=True, null=True)),
                ('completed_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='treatment_cycles', to='patients.patient')),
            ],
            options={
                'verbose_name': 'Treatment Cycle',
                'verbose_name_plural': 'Treatment Cycles',
                'db_table': 'treatment_cycle',
                'ordering': ['patient', '-cycle_number'],
                'indexes': [
                    models.Index(fields=['patient', 'cycle_status'], name='idx_cycle_patient_status'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('patient', 'cycle_number'), name='uniq_cycle_number_per_patient'),
                    models.UniqueConstraint(condition=models.Q(('cycle_status', 'active')), fields=('patient',), name='uniq_active_cycle_per_patient'),
                ],
            },
        ),
    ]
