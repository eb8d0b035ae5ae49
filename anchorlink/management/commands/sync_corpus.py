from __future__ import annotations

import json

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError

from anchorlink.engine.errors import AnchorlinkError, ConfigurationError
from anchorlink.engine.sources import CsvExportSource
from anchorlink.engine.types import SyncMode
from anchorlink.services import run_sync


class Command(BaseCommand):
    help = 'Synchronize the page corpus with a crawl export (semicolon separated CSV).'

    def add_arguments(self, parser) -> None:
        parser.add_argument('export', help='Path to the crawl page export.')
        parser.add_argument('--project-id', required=True)
        parser.add_argument('--project-name')
        parser.add_argument('--crawl-id', help='Defaults to the export file name.')
        parser.add_argument('--crawl-name')
        parser.add_argument(
            '--mode',
            choices=[mode.value for mode in SyncMode],
            default=SyncMode.FULL.value,
        )

    def handle(self, *args, **options) -> None:
        source = CsvExportSource(
            options['export'],
            crawl_id=options['crawl_id'],
            crawl_name=options['crawl_name'],
            project_name=options['project_name'],
        )
        try:
            report = async_to_sync(run_sync)(source, options['project_id'], SyncMode(options['mode']))
        except (AnchorlinkError, ConfigurationError) as exc:
            raise CommandError(f'Sync failed: {exc}') from exc

        self.stdout.write(json.dumps(report.as_dict(), indent=2))
        style = self.style.WARNING if report.counts.failed else self.style.SUCCESS
        self.stdout.write(
            style(
                f'{report.counts.added} added, {report.counts.updated} updated, '
                f'{report.counts.unchanged} unchanged, {report.counts.removed} removed, '
                f'{report.counts.failed} failed in {report.duration_ms} ms'
            )
        )
