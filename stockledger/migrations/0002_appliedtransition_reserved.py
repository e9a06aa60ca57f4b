"""
Track per-order reservation deltas on applied transitions.
"""

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('stockledger', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='appliedtransition',
            name='reserved',
            field=models.JSONField(blank=True, default=dict, help_text='Product id -> reserved_stock delta this transition applied', verbose_name='Reservation change'),
        ),
    ]
