"""
Management command to explore the configured retail site.

Usage:
    python manage.py explore_site
    python manage.py explore_site --max-pages 20 --no-wait
    python manage.py explore_site --unattended
"""

import asyncio

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from explorer.exceptions import ReferenceDataError
from explorer.services.disambiguation import ConsoleDisambiguator, PageAction, ScriptedDisambiguator
from explorer.services.exploration_orchestrator import explore


class Command(BaseCommand):
    help = "Explore the configured website and store the alcohol products found"

    def add_arguments(self, parser):
        parser.add_argument(
            "--max-pages",
            type=int,
            default=None,
            help="Stop after this many pages (default: explore the whole frontier)",
        )
        parser.add_argument(
            "--no-wait",
            action="store_true",
            help="Do not wait between pages",
        )
        parser.add_argument(
            "--unattended",
            action="store_true",
            help="Never prompt: skip page anomalies and accept provider guesses",
        )

    def handle(self, *args, **options):
        if not getattr(settings, "EXPLORER_WEBSITE_HOST", ""):
            raise CommandError("No website to explore: set WEBSITE_EXPLORE_HOST")

        if options["unattended"]:
            disambiguator = ScriptedDisambiguator(default_action=PageAction.SKIP)
        else:
            disambiguator = ConsoleDisambiguator()

        self.stdout.write(f"Exploring {settings.EXPLORER_WEBSITE_HOST} for '{settings.EXPLORER_TARGET_KEYWORD}'")

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            state = loop.run_until_complete(
                explore(
                    disambiguator,
                    max_pages=options["max_pages"],
                    wait=not options["no_wait"],
                )
            )
        except ReferenceDataError as e:
            raise CommandError(str(e))
        finally:
            loop.close()

        self.stdout.write("\nExploration summary:")
        self.stdout.write("=" * 50)
        self.stdout.write(f"  Pages processed: {state.pages_processed}")
        self.stdout.write(f"  Pages skipped: {state.pages_skipped}")
        self.stdout.write(f"  Products created: {state.products_created}")
        self.stdout.write(f"  Already stored: {state.conflicts}")

        if state.fatal_error:
            raise CommandError(f"Exploration stopped: {state.fatal_error}")
        self.stdout.write(self.style.SUCCESS("Exploration finished"))
