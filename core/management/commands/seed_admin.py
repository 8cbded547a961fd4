import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

User = get_user_model()


class Command(BaseCommand):
    help = 'Creates the admin account, or resets its password if it already exists'

    def add_arguments(self, parser):
        parser.add_argument('--username', default=os.environ.get('ADMIN_USERNAME', 'admin'))
        parser.add_argument('--email', default=os.environ.get('ADMIN_EMAIL', 'admin@example.com'))
        parser.add_argument('--password', default=os.environ.get('ADMIN_PASSWORD', 'admin123'))

    def handle(self, *args, **opts):
        user = User.objects.filter(username=opts['username']).first()

        if user is None:
            User.objects.create_superuser(
                username=opts['username'],
                email=opts['email'],
                password=opts['password'],
                first_name='Admin',
                last_name='User',
            )
            self.stdout.write(self.style.SUCCESS(f"Created admin '{opts['username']}'"))
            return

        user.role = User.Role.ADMIN
        user.tutor = None
        user.is_staff = True
        user.is_superuser = True
        user.is_active = True
        user.set_password(opts['password'])
        user.save()
        self.stdout.write(self.style.SUCCESS(f"Updated admin '{opts['username']}'"))
