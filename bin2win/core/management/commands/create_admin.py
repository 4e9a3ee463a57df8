"""
Create (or promote) an administrator account.
Usage: python manage.py create_admin --username admin --email admin@example.com [--password ...] [--operator-booth CODE]
"""
import os

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from bin2win.booths.models import CollectionBooth
from bin2win.core.permissions import ADMIN_GROUP, BOOTH_OPERATOR_GROUP

User = get_user_model()


class Command(BaseCommand):
    help = 'Create an Admin user, or a BoothOperator with --operator-booth'

    def add_arguments(self, parser):
        parser.add_argument('--username', required=True)
        parser.add_argument('--email', default='')
        parser.add_argument(
            '--password',
            help='Defaults to the BIN2WIN_ADMIN_PASSWORD environment variable',
        )
        parser.add_argument(
            '--operator-booth',
            action='append',
            default=[],
            help='Booth code; makes the user a BoothOperator assigned to it (repeatable)',
        )

    def handle(self, *args, **options):
        username = options['username']
        password = options.get('password') or os.environ.get('BIN2WIN_ADMIN_PASSWORD')
        booth_codes = [code.strip().upper() for code in options['operator_booth']]

        booths = list(CollectionBooth.objects.filter(code__in=booth_codes))
        missing = set(booth_codes) - {booth.code for booth in booths}
        if missing:
            raise CommandError(f"Unknown booth code(s): {', '.join(sorted(missing))}")

        with transaction.atomic():
            user, created = User.objects.get_or_create(username=username, defaults={'email': options['email']})
            if created:
                if not password:
                    raise CommandError('A password is required for a new user (--password or BIN2WIN_ADMIN_PASSWORD)')
                user.set_password(password)
            elif password:
                user.set_password(password)

            if booths:
                group, _ = Group.objects.get_or_create(name=BOOTH_OPERATOR_GROUP)
                user.save()
                user.groups.add(group)
                for booth in booths:
                    booth.operators.add(user)
                role = f"BoothOperator for {', '.join(booth.code for booth in booths)}"
            else:
                group, _ = Group.objects.get_or_create(name=ADMIN_GROUP)
                user.is_staff = True
                user.save()
                user.groups.add(group)
                role = 'Admin'

        action = 'Created' if created else 'Updated'
        self.stdout.write(self.style.SUCCESS(f'{action} {username} as {role}'))
