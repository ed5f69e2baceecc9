"""
Migration: Create the alcohol table.
"""

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Alcohol",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "external_id",
                    models.CharField(
                        db_index=True,
                        help_text="Product id on the explored website (unique)",
                        max_length=20,
                        unique=True,
                    ),
                ),
                ("name", models.CharField(help_text="Product title", max_length=500)),
                (
                    "type",
                    models.CharField(
                        help_text="Category explored when the product was found (e.g. whisky)",
                        max_length=50,
                    ),
                ),
                ("lang_code", models.CharField(help_text="Locale of the page, e.g. fr_FR", max_length=10)),
                ("breadcrumbs", models.JSONField(blank=True, default=list)),
                ("reviews", models.JSONField(blank=True, help_text="{rating, ratingCount}", null=True)),
                (
                    "prices",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="List of {priceToPay, basisPrice, timestamp}",
                    ),
                ),
                (
                    "images",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="{bigs: [...], thumbnails: [...]} image ids",
                    ),
                ),
                ("details", models.JSONField(blank=True, default=list)),
                ("features", models.JSONField(blank=True, default=list)),
                (
                    "description",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="{product, images, manufacturer (gzip+base64), cocktail}",
                    ),
                ),
                ("family_links", models.JSONField(blank=True, default=list)),
                ("newer_version", models.JSONField(blank=True, null=True)),
                (
                    "country",
                    models.JSONField(
                        blank=True,
                        help_text="Resolved country, or region when a single one was found",
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Alcohol",
                "verbose_name_plural": "Alcohols",
                "db_table": "alcohol",
                "ordering": ["-created_at"],
            },
        ),
    ]
