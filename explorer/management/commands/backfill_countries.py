"""
Management command to complete stored origins from the gazetteer.

Usage:
    python manage.py backfill_countries
    python manage.py backfill_countries --dry-run
"""

from django.core.management.base import BaseCommand, CommandError

from explorer.exceptions import ReferenceDataError
from explorer.services.country_backfill import CountryBackfill
from explorer.services.reference_data import load_gazetteer


class Command(BaseCommand):
    help = "Fill missing French names and ISO codes of stored origins"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Log the changes without saving them",
        )

    def handle(self, *args, **options):
        try:
            gazetteer = load_gazetteer()
        except ReferenceDataError as e:
            raise CommandError(str(e))

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("Running in dry-run mode - no origin will be saved"))

        stats = CountryBackfill(gazetteer, dry_run=options["dry_run"]).run()

        self.stdout.write("\nBackfill summary:")
        self.stdout.write("=" * 50)
        self.stdout.write(f"  French names fixed: {stats.french_names_fixed}")
        self.stdout.write(f"  Duplicate regions dropped: {stats.regions_dropped}")
        self.stdout.write(f"  ISO codes fixed: {stats.iso_codes_fixed}")
        if stats.unresolved:
            self.stdout.write(f"  Unresolved: {', '.join(sorted(stats.unresolved))}")
        self.stdout.write(self.style.SUCCESS("Backfill finished"))
