# Initial migration for scheduling (appointment, slot)

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('patients', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('appointment_date', models.DateField()),
                ('status', models.PositiveSmallIntegerField(choices=[(1, 'Scheduled'), (2, 'In Progress'), (3, 'Completed'), (5, 'Cancelled'), (6, 'Terminated'), (7, 'Rescheduled')], default=1)),
                ('reschedule_revision', models.PositiveIntegerField(default=0)),
                ('is_rescheduled', models.BooleanField(default=False)),
                ('reschedule_reason', models.TextField(blank=True, default='')),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='core.company')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='core.center')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='patients.patient')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Appointment',
                'verbose_name_plural': 'Appointments',
                'db_table': 'appointment',
                'ordering': ['-appointment_date', '-id'],
                'indexes': [
                    models.Index(fields=['patient', 'appointment_date'], name='idx_appt_patient_date'),
                    models.Index(fields=['center', 'appointment_date'], name='idx_appt_center_date'),
                    models.Index(fields=['status'], name='idx_appt_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Slot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('slot_date', models.DateField()),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('appointment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='slots', to='scheduling.appointment')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='slots', to='core.center')),
            ],
            options={
                'verbose_name': 'Slot',
                'verbose_name_plural': 'Slots',
                'db_table': 'slot',
                'ordering': ['slot_date', 'start_time'],
                'indexes': [
                    models.Index(fields=['center', 'slot_date', 'is_active'], name='idx_slot_center_date'),
                    models.Index(fields=['appointment', 'is_active'], name='idx_slot_appointment'),
                ],
                'constraints': [
                    models.CheckConstraint(check=models.Q(('end_time__gt', models.F('start_time'))), name='chk_slot_end_after_start'),
                ],
            },
        ),
    ]
