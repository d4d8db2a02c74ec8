# Generated for clinic role bootstrap

from django.db import migrations

CLINIC_ROLES = ['admin', 'doctor', 'reception']


def create_roles(apps, schema_editor):
    """
    Create the clinic roles if they don't exist.
    Idempotent - safe to run multiple times.
    """
    Role = apps.get_model('authz', 'Role')
    for name in CLINIC_ROLES:
        Role.objects.get_or_create(name=name)


def delete_unused_roles(apps, schema_editor):
    """
    Reverse migration - delete roles nobody is assigned to.
    """
    Role = apps.get_model('authz', 'Role')
    UserRole = apps.get_model('authz', 'UserRole')
    for role in Role.objects.filter(name__in=CLINIC_ROLES):
        if not UserRole.objects.filter(role=role).exists():
            role.delete()


class Migration(migrations.Migration):

    dependencies = [
        ('authz', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_roles, delete_unused_roles),
    ]
