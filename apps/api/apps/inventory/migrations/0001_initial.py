# Initial migration for inventory (items, stock, individual items, discards, session usage)

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('dialysis', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InventoryItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_code', models.CharField(max_length=30, unique=True, verbose_name='Item Code')),
                ('item_name', models.CharField(max_length=255, verbose_name='Item Name')),
                ('unit_of_measure', models.CharField(default='pcs', max_length=20, verbose_name='Unit of Measure')),
                ('reorder_level', models.PositiveIntegerField(default=0, verbose_name='Reorder Level')),
                ('is_individual_qty_tracking', models.BooleanField(default=False, verbose_name='Individually Tracked')),
                ('maximum_usage_count', models.PositiveIntegerField(default=1, verbose_name='Maximum Usage Count')),
                ('minimum_usage_count', models.PositiveIntegerField(default=0, verbose_name='Minimum Usage Count')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
            ],
            options={
                'verbose_name': 'Inventory Item',
                'verbose_name_plural': 'Inventory Items',
                'db_table': 'inventory_item',
                'ordering': ['item_name'],
            },
        ),
        migrations.CreateModel(
            name='InventoryStock',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('batch_number', models.CharField(blank=True, default='', max_length=100, verbose_name='Batch Number')),
                ('manufacture_date', models.DateField(blank=True, null=True, verbose_name='Manufacture Date')),
                ('expiry_date', models.DateField(blank=True, null=True, verbose_name='Expiry Date')),
                ('purchase_date', models.DateField(blank=True, null=True, verbose_name='Purchase Date')),
                ('purchase_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Purchase Cost')),
                ('quantity', models.PositiveIntegerField(verbose_name='Quantity Received')),
                ('available_quantity', models.IntegerField(verbose_name='Available Quantity')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stocks', to='inventory.inventoryitem', verbose_name='Item')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_stocks', to='core.center')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventory_stocks', to='core.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Inventory Stock',
                'verbose_name_plural': 'Inventory Stock',
                'db_table': 'inventory_stock',
                'ordering': ['expiry_date', 'id'],
                'indexes': [
                    models.Index(fields=['item', 'center'], name='idx_stock_item_center'),
                    models.Index(fields=['expiry_date'], name='idx_stock_expiry'),
                ],
                'constraints': [
                    models.CheckConstraint(check=models.Q(('available_quantity__gte', 0)), name='chk_stock_available_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='IndividualItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('individual_item_code', models.CharField(max_length=50, unique=True, verbose_name='Item Code')),
                ('max_usage_count', models.PositiveIntegerField(verbose_name='Maximum Usage Count')),
                ('current_usage_count', models.PositiveIntegerField(default=0, verbose_name='Current Usage Count')),
                ('status', models.CharField(choices=[('available', 'Available'), ('in_use', 'In Use'), ('exhausted', 'Exhausted'), ('discard_requested', 'Discard Requested'), ('discarded', 'Discarded')], default='available', max_length=20, verbose_name='Status')),
                ('is_available', models.BooleanField(default=True, verbose_name='Available')),
                ('first_used_date', models.DateTimeField(blank=True, null=True)),
                ('last_used_date', models.DateTimeField(blank=True, null=True)),
                ('discarded_date', models.DateTimeField(blank=True, null=True)),
                ('discard_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('stock', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='individual_items', to='inventory.inventorystock')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='individual_items', to='inventory.inventoryitem')),
                ('center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='individual_items', to='core.center')),
            ],
            options={
                'verbose_name': 'Individual Item',
                'verbose_name_plural': 'Individual Items',
                'db_table': 'individual_item',
                'ordering': ['individual_item_code'],
                'indexes': [
                    models.Index(fields=['item', 'center', 'status'], name='idx_indiv_item_center_status'),
                    models.Index(fields=['stock'], name='idx_indiv_stock'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DiscardRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('discard_type', models.CharField(choices=[('early', 'Early Discard'), ('damaged', 'Damaged'), ('exhausted', 'Usage Exhausted'), ('expired', 'Expired'), ('other', 'Other')], max_length=20, verbose_name='Discard Type')),
                ('reason', models.TextField(verbose_name='Reason')),
                ('current_usage_count', models.PositiveIntegerField()),
                ('minimum_usage_count', models.PositiveIntegerField()),
                ('previous_status', models.CharField(choices=[('available', 'Available'), ('in_use', 'In Use'), ('exhausted', 'Exhausted'), ('discard_requested', 'Discard Requested'), ('discarded', 'Discarded')], max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=20, verbose_name='Status')),
                ('requested_date', models.DateTimeField(auto_now_add=True)),
                ('reviewed_date', models.DateTimeField(blank=True, null=True)),
                ('review_comments', models.TextField(blank=True, default='')),
                ('individual_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='discard_requests', to='inventory.individualitem')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Discard Request',
                'verbose_name_plural': 'Discard Requests',
                'db_table': 'discard_request',
                'ordering': ['-requested_date'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_discard_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionInventory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity_used', models.PositiveIntegerField(default=1)),
                ('item_condition', models.CharField(blank=True, choices=[('new', 'New'), ('good', 'Good'), ('fair', 'Fair')], default='', max_length=10)),
                ('usage_number', models.PositiveIntegerField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('selected_at', models.DateTimeField(auto_now_add=True)),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='inventory_usage', to='dialysis.dialysissession')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='session_usage', to='inventory.inventoryitem')),
                ('individual_item', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='session_usage', to='inventory.individualitem')),
                ('stock', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='session_usage', to='inventory.inventorystock')),
                ('selected_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Session Inventory',
                'verbose_name_plural': 'Session Inventory',
                'db_table': 'session_inventory',
                'ordering': ['selected_at', 'id'],
                'constraints': [
                    models.UniqueConstraint(fields=['session', 'item'], name='uniq_session_item'),
                ],
            },
        ),
    ]
