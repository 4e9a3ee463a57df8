from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission

from bin2win.core.permissions import ADMIN_GROUP, BOOTH_OPERATOR_GROUP


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Admin, BoothOperator'

    # (app_label, codename) pairs granted to booth operators
    OPERATOR_PERMISSIONS = [
        ('booths', 'view_collectionbooth'),
        ('waste', 'view_wastetype'),
        ('waste', 'view_wastesubmission'),
        ('waste', 'add_wastesubmission'),
        ('waste', 'change_wastesubmission'),
        ('credits', 'view_credittransaction'),
        ('core', 'view_user'),
    ]

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': ADMIN_GROUP,
                'description': 'Platform administrators - full system access including backend',
            },
            {
                'name': BOOTH_OPERATOR_GROUP,
                'description': 'Booth staff - scan participants, weigh and approve waste at assigned booths',
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                updated_count += 1

            if group_config['name'] == ADMIN_GROUP:
                group.permissions.set(Permission.objects.all())
                self.stdout.write('  Added all permissions to Admin group')
            else:
                permissions = []
                for app_label, codename in self.OPERATOR_PERMISSIONS:
                    permission = Permission.objects.filter(
                        content_type__app_label=app_label, codename=codename
                    ).first()
                    if permission is None:
                        self.stdout.write(self.style.WARNING(f'  Permission not found: {app_label}.{codename}'))
                        continue
                    permissions.append(permission)
                group.permissions.set(permissions)
                self.stdout.write(f'  Added {len(permissions)} permissions to {group_config["name"]} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
