# Generated manually
from django.db import migrations

DEFAULT_SETTINGS = [
    ('allow_new_registrations', 'true', 'Allow new participants to sign up'),
    ('leaderboard_size', '10', 'Default number of entries on the public leaderboard'),
]


def create_default_settings(apps, schema_editor):
    Setting = apps.get_model('core', 'Setting')
    for key, value, description in DEFAULT_SETTINGS:
        Setting.objects.get_or_create(key=key, defaults={'value': value, 'description': description})


def remove_default_settings(apps, schema_editor):
    Setting = apps.get_model('core', 'Setting')
    Setting.objects.filter(key__in=[key for key, _, _ in DEFAULT_SETTINGS]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_default_settings, remove_default_settings),
    ]
