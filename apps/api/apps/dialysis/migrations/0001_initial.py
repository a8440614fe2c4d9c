# Initial migration for dialysis sessions, timeline, complications and notes

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('patients', '0001_initial'),
        ('scheduling', '0001_initial'),
        ('assets', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DialysisSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session_code', models.CharField(max_length=40, unique=True)),
                ('status', models.CharField(choices=[('not_started', 'Not Started'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('terminated', 'Terminated')], default='not_started', max_length=20)),
                ('session_date', models.DateField()),
                ('scheduled_start_time', models.TimeField(blank=True, null=True)),
                ('actual_start_time', models.DateTimeField(blank=True, null=True)),
                ('actual_end_time', models.DateTimeField(blank=True, null=True)),
                ('session_duration', models.PositiveIntegerField(blank=True, help_text='Minutes', null=True)),
                ('dialysis_type', models.CharField(choices=[('hemodialysis', 'Hemodialysis'), ('hemodiafiltration', 'Hemodiafiltration'), ('hemofiltration', 'Hemofiltration'), ('sled', 'Sustained Low-Efficiency Dialysis')], default='hemodialysis', max_length=30)),
                ('pre_session_notes', models.TextField(blank=True, default='')),
                ('post_session_notes', models.TextField(blank=True, default='')),
                ('termination_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('appointment', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='dialysis_session', to='scheduling.appointment')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='dialysis_sessions', to='patients.patient')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='dialysis_sessions', to='core.center')),
                ('asset', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='dialysis_sessions', to='assets.asset')),
                ('asset_assignment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='dialysis_sessions', to='assets.assetassignment')),
                ('started_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('completed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Dialysis Session',
                'verbose_name_plural': 'Dialysis Sessions',
                'db_table': 'dialysis_session',
                'ordering': ['-session_date', '-id'],
                'indexes': [
                    models.Index(fields=['center', 'status'], name='idx_session_center_status'),
                    models.Index(fields=['patient', 'session_date'], name='idx_session_patient_date'),
                    models.Index(fields=['asset', 'status'], name='idx_session_asset_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionTimeline',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('SessionCreated', 'Session Created'), ('MachineAssigned', 'Machine Assigned'), ('InventoryAdded', 'Inventory Added'), ('InventoryRemoved', 'Inventory Removed'), ('SessionStarted', 'Session Started'), ('NoteAdded', 'Note Added'), ('ComplicationReported', 'Complication Reported'), ('SessionCompleted', 'Session Completed'), ('SessionTerminated', 'Session Terminated')], max_length=40)),
                ('event_description', models.TextField()),
                ('event_time', models.DateTimeField()),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='timeline', to='dialysis.dialysissession')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Session Timeline Event',
                'verbose_name_plural': 'Session Timeline',
                'db_table': 'session_timeline',
                'ordering': ['event_time', 'id'],
                'indexes': [
                    models.Index(fields=['session', 'event_time'], name='idx_timeline_session_time'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionComplication',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('complication_type', models.CharField(max_length=100)),
                ('severity', models.CharField(blank=True, choices=[('mild', 'Mild'), ('moderate', 'Moderate'), ('severe', 'Severe')], default='', max_length=20)),
                ('occurred_at', models.DateTimeField()),
                ('description', models.TextField(blank=True, default='')),
                ('action_taken', models.TextField(blank=True, default='')),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='complications', to='dialysis.dialysissession')),
                ('reported_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Session Complication',
                'verbose_name_plural': 'Session Complications',
                'db_table': 'session_complication',
                'ordering': ['-occurred_at'],
                'indexes': [
                    models.Index(fields=['session', 'resolved_at'], name='idx_complication_open'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionNoteType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('code', models.CharField(max_length=30, unique=True)),
                ('unit', models.CharField(blank=True, default='', max_length=20)),
                ('is_mandatory', models.BooleanField(default=False)),
                ('is_numeric', models.BooleanField(default=False)),
                ('min_value', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('max_value', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('category', models.CharField(choices=[('vital_signs', 'Vital Signs'), ('lab_results', 'Lab Results'), ('treatment', 'Treatment'), ('observations', 'Observations'), ('other', 'Other')], default='other', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Session Note Type',
                'verbose_name_plural': 'Session Note Types',
                'db_table': 'session_note_type',
                'ordering': ['display_order', 'name'],
            },
        ),
        migrations.CreateModel(
            name='SessionNote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('note_value', models.CharField(max_length=255)),
                ('note_time', models.DateTimeField()),
                ('is_abnormal', models.BooleanField(default=False)),
                ('alert_generated', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notes', to='dialysis.dialysissession')),
                ('note_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='notes', to='dialysis.sessionnotetype')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Session Note',
                'verbose_name_plural': 'Session Notes',
                'db_table': 'session_note',
                'ordering': ['note_time', 'id'],
                'indexes': [
                    models.Index(fields=['session', 'note_type'], name='idx_note_session_type'),
                ],
            },
        ),
    ]
