from __future__ import annotations

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError

from anchorlink.engine.errors import ConfigurationError
from anchorlink.services import build_backfill


class Command(BaseCommand):
    help = 'Compute embeddings for pages that do not have one yet.'

    def add_arguments(self, parser) -> None:
        parser.add_argument('--limit', type=int, help='Maximum number of pages to visit.')

    def handle(self, *args, **options) -> None:
        try:
            backfill = build_backfill()
        except ConfigurationError as exc:
            raise CommandError(str(exc)) from exc

        report = async_to_sync(backfill.run)(options['limit'])
        self.stdout.write(
            self.style.SUCCESS(
                f'{report.embedded} embedded, {report.skipped} skipped, '
                f'{report.superseded} superseded, {report.failed} failed'
            )
        )
