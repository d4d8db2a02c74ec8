"""
Management command to bootstrap clinic roles and the first administrator.

Usage:
    python manage.py bootstrap_clinic
    python manage.py bootstrap_clinic --doctor doctor@example.com "Dr. Demo" "Clinic"

Idempotent and safe to run on every container start.
"""
import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from apps.authz.models import Doctor, Role, RoleChoices, UserRole


class Command(BaseCommand):
    help = 'Ensure clinic roles and an admin user exist; optionally create a doctor'

    def add_arguments(self, parser):
        parser.add_argument(
            '--doctor',
            nargs=3,
            metavar=('EMAIL', 'DISPLAY_NAME', 'SPECIALTY'),
            help='Create (or update) a doctor account with this profile',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()

        self.stdout.write("Ensuring roles exist...")
        roles = {}
        for role_choice in RoleChoices:
            role, created = Role.objects.get_or_create(name=role_choice.value)
            roles[role_choice.value] = role
            if created:
                self.stdout.write(self.style.SUCCESS(f'  ✓ Created role: {role.name}'))
            else:
                self.stdout.write(f'  - Role exists: {role.name}')

        email = os.environ.get('DJANGO_SUPERUSER_EMAIL', 'admin@example.com')
        password = os.environ.get('DJANGO_SUPERUSER_PASSWORD', 'admin123dev')
        admin_user = User.objects.filter(email=email).first()
        if admin_user is None:
            admin_user = User.objects.create_superuser(email=email, password=password)
            self.stdout.write(self.style.SUCCESS(f'  ✓ Created admin: {email}'))
        else:
            self.stdout.write(self.style.WARNING(f'  - Admin "{email}" already exists'))
        UserRole.objects.get_or_create(user=admin_user, role=roles[RoleChoices.ADMIN])

        if options.get('doctor'):
            doctor_email, display_name, specialty = options['doctor']
            doctor_user, created = User.objects.get_or_create(
                email=doctor_email,
                defaults={'is_active': True},
            )
            if created:
                doctor_user.set_password(password)
                doctor_user.save()
            UserRole.objects.get_or_create(user=doctor_user, role=roles[RoleChoices.DOCTOR])
            Doctor.objects.update_or_create(
                user=doctor_user,
                defaults={'display_name': display_name, 'specialty': specialty, 'is_active': True},
            )
            self.stdout.write(self.style.SUCCESS(f'  ✓ Doctor ready: {display_name} ({specialty})'))
