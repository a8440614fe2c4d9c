# Appointment-level inventory usage ledger

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
        ('inventory', '0001_initial'),
        ('patients', '0001_initial'),
        ('scheduling', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InventoryUsage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('usage_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('quantity_used', models.PositiveIntegerField(default=1)),
                ('usage_number', models.PositiveIntegerField(default=1)),
                ('item_condition', models.CharField(blank=True, choices=[('new', 'New'), ('good', 'Good'), ('fair', 'Fair')], default='', max_length=10)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='usage_records', to='inventory.inventoryitem')),
                ('individual_item', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='usage_records', to='inventory.individualitem')),
                ('stock', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='usage_records', to='inventory.inventorystock')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_usage', to='core.center')),
                ('appointment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_usage', to='scheduling.appointment')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_usage', to='patients.patient')),
                ('used_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Inventory Usage',
                'verbose_name_plural': 'Inventory Usage',
                'db_table': 'inventory_usage',
                'ordering': ['-usage_date', '-id'],
                'indexes': [
                    models.Index(fields=['appointment'], name='idx_usage_appointment'),
                    models.Index(fields=['center', 'usage_date'], name='idx_usage_center_date'),
                    models.Index(fields=['patient', 'usage_date'], name='idx_usage_patient_date'),
                ],
            },
        ),
    ]
