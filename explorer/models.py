"""
Django models for the Alcohol Explorer.

Alcohol: one product extracted from the explored website, with its origin
(country or region) resolved.
"""

import uuid

from django.db import models

from explorer.entities import ProductDraft


class Alcohol(models.Model):
    """
    A product extracted from a detail page.

    Nested groups (reviews, prices, images, details...) are stored as JSON in
    the camelCase shape of the crawl exports.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Identification
    external_id = models.CharField(
        max_length=20,
        unique=True,
        db_index=True,
        help_text="Product id on the explored website (unique)",
    )
    name = models.CharField(
        max_length=500,
        help_text="Product title",
    )
    type = models.CharField(
        max_length=50,
        help_text="Category explored when the product was found (e.g. whisky)",
    )
    lang_code = models.CharField(
        max_length=10,
        help_text="Locale of the page, e.g. fr_FR",
    )

    # Page content
    breadcrumbs = models.JSONField(default=list, blank=True)
    reviews = models.JSONField(
        blank=True,
        null=True,
        help_text="{rating, ratingCount}",
    )
    prices = models.JSONField(
        default=list,
        blank=True,
        help_text="List of {priceToPay, basisPrice, timestamp}",
    )
    images = models.JSONField(
        default=dict,
        blank=True,
        help_text="{bigs: [...], thumbnails: [...]} image ids",
    )
    details = models.JSONField(default=list, blank=True)
    features = models.JSONField(default=list, blank=True)
    description = models.JSONField(
        default=dict,
        blank=True,
        help_text="{product, images, manufacturer (gzip+base64), cocktail}",
    )
    family_links = models.JSONField(default=list, blank=True)
    newer_version = models.JSONField(blank=True, null=True)

    # Origin
    country = models.JSONField(
        blank=True,
        null=True,
        help_text="Resolved country, or region when a single one was found",
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "alcohol"
        ordering = ["-created_at"]
        verbose_name = "Alcohol"
        verbose_name_plural = "Alcohols"

    def __str__(self):
        return f"{self.external_id} - {self.name}"

    @classmethod
    def fields_from_draft(cls, draft: ProductDraft) -> dict:
        data = draft.to_dict()
        return {
            "external_id": draft.external_id,
            "name": draft.name,
            "type": draft.type,
            "lang_code": draft.lang_code,
            "breadcrumbs": data["breadcrumbs"],
            "reviews": data["reviews"],
            "prices": data["prices"],
            "images": data["images"],
            "details": data["details"],
            "features": data["features"],
            "description": data["description"],
            "family_links": data["familyLinks"],
            "newer_version": data["newerVersion"],
            "country": data["country"],
        }
