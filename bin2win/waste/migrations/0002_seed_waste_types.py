# Generated manually
from decimal import Decimal

from django.db import migrations

WASTE_TYPES = [
    # code, name, points per kg, kg CO2 saved per kg, description
    ('plastic', 'Plastic', 10, '2.5', 'Bottles, wrappers, bags and containers'),
    ('organic', 'Organic', 5, '0.5', 'Flowers, food and leaf waste'),
    ('paper', 'Paper', 8, '1.2', 'Paper, cardboard and cartons'),
    ('metal', 'Metal', 15, '3.0', 'Cans, foil and scrap metal'),
    ('glass', 'Glass', 12, '0.8', 'Bottles and jars'),
    ('electronic', 'Electronic', 20, '4.0', 'Phones, chargers, batteries and small appliances'),
    ('textile', 'Textile', 6, '1.5', 'Clothes and fabric'),
    ('hazardous', 'Hazardous', 25, '5.0', 'Medical waste, chemicals and paint'),
]


def seed_waste_types(apps, schema_editor):
    WasteType = apps.get_model('waste', 'WasteType')
    for code, name, points, co2, description in WASTE_TYPES:
        WasteType.objects.get_or_create(
            code=code,
            defaults={
                'name': name,
                'points_per_kg': Decimal(points),
                'co2_factor': Decimal(co2),
                'description': description,
            },
        )


def remove_waste_types(apps, schema_editor):
    WasteType = apps.get_model('waste', 'WasteType')
    WasteType.objects.filter(code__in=[row[0] for row in WASTE_TYPES], submissions__isnull=True).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('waste', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_waste_types, remove_waste_types),
    ]
