# Initial migration for assets (asset type, asset, asset assignment)

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('scheduling', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AssetType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type_code', models.CharField(max_length=20, unique=True, verbose_name='Type Code')),
                ('type_name', models.CharField(max_length=100, verbose_name='Type Name')),
                ('is_dialysis_machine', models.BooleanField(default=False, verbose_name='Dialysis Machine')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Asset Type',
                'verbose_name_plural': 'Asset Types',
                'db_table': 'asset_type',
                'ordering': ['type_name'],
            },
        ),
        migrations.CreateModel(
            name='Asset',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('asset_code', models.CharField(max_length=40, unique=True, verbose_name='Asset Code')),
                ('asset_name', models.CharField(max_length=255, verbose_name='Asset Name')),
                ('serial_number', models.CharField(blank=True, default='', max_length=100, verbose_name='Serial Number')),
                ('purchase_date', models.DateField(blank=True, null=True, verbose_name='Purchase Date')),
                ('notes', models.TextField(blank=True, default='')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assets', to='core.company')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assets', to='core.center')),
                ('asset_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assets', to='assets.assettype')),
            ],
            options={
                'verbose_name': 'Asset',
                'verbose_name_plural': 'Assets',
                'db_table': 'asset',
                'ordering': ['asset_code'],
                'indexes': [
                    models.Index(fields=['center', 'is_active'], name='idx_asset_center_active'),
                    models.Index(fields=['asset_type'], name='idx_asset_type'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AssetAssignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('assigned_date', models.DateField()),
                ('assigned_time', models.TimeField()),
                ('session_duration', models.PositiveIntegerField(help_text='Minutes')),
                ('status', models.CharField(choices=[('active', 'Active'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='active', max_length=20)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='assignments', to='assets.asset')),
                ('appointment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='asset_assignments', to='scheduling.appointment')),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Asset Assignment',
                'verbose_name_plural': 'Asset Assignments',
                'db_table': 'asset_assignment',
                'ordering': ['-assigned_date', '-assigned_time'],
                'indexes': [
                    models.Index(fields=['asset', 'assigned_date', 'status'], name='idx_assign_asset_date'),
                    models.Index(fields=['appointment'], name='idx_assign_appointment'),
                ],
            },
        ),
    ]
