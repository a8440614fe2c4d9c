# Asset maintenance schedule fields and maintenance log

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('assets', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.AddField(
            model_name='assettype',
            name='requires_maintenance',
            field=models.BooleanField(default=False, verbose_name='Requires Maintenance'),
        ),
        migrations.AddField(
            model_name='assettype',
            name='maintenance_interval_days',
            field=models.PositiveIntegerField(default=0, verbose_name='Maintenance Interval (days)'),
        ),
        migrations.AddField(
            model_name='asset',
            name='last_maintenance_date',
            field=models.DateField(blank=True, null=True, verbose_name='Last Maintenance'),
        ),
        migrations.AddField(
            model_name='asset',
            name='next_maintenance_date',
            field=models.DateField(blank=True, null=True, verbose_name='Next Maintenance'),
        ),
        migrations.CreateModel(
            name='AssetMaintenance',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('maintenance_date', models.DateField()),
                ('maintenance_type', models.CharField(choices=[('preventive', 'Preventive'), ('corrective', 'Corrective'), ('calibration', 'Calibration')], max_length=20)),
                ('description', models.TextField(blank=True, default='')),
                ('technician_name', models.CharField(blank=True, default='', max_length=255)),
                ('cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('next_maintenance_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(default='completed', editable=False, max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='maintenance_records', to='assets.asset')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Asset Maintenance',
                'verbose_name_plural': 'Asset Maintenance',
                'db_table': 'asset_maintenance',
                'ordering': ['-maintenance_date', '-id'],
                'indexes': [models.Index(fields=['asset', 'maintenance_date'], name='idx_maint_asset_date')],
            },
        ),
    ]
