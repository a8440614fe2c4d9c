# Bootstrap the fixed staff roles

from django.db import migrations

ROLE_NAMES = ['admin', 'nurse', 'technician', 'reception']


def create_roles(apps, schema_editor):
    """Idempotent - safe to run multiple times."""
    Role = apps.get_model('authz', 'Role')
    for name in ROLE_NAMES:
        Role.objects.get_or_create(name=name)


def delete_unused_roles(apps, schema_editor):
    """Only deletes roles no user is assigned to."""
    Role = apps.get_model('authz', 'Role')
    Role.objects.filter(name__in=ROLE_NAMES, user_roles__isnull=True).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('authz', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_roles, delete_unused_roles),
    ]
