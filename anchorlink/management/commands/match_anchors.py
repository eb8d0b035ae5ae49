from __future__ import annotations

import json

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError

from anchorlink.engine.errors import ConfigurationError
from anchorlink.engine.types import AnchorCandidate
from anchorlink.services import build_match_engine


class Command(BaseCommand):
    help = 'Suggest internal-link targets for one or more anchor texts.'

    def add_arguments(self, parser) -> None:
        parser.add_argument('anchors', nargs='+')
        parser.add_argument('--threshold', type=float)
        parser.add_argument('--max-options', type=int)

    def handle(self, *args, **options) -> None:
        try:
            engine = build_match_engine()
        except ConfigurationError as exc:
            raise CommandError(str(exc)) from exc

        candidates = [AnchorCandidate.from_text(text) for text in options['anchors']]

        def _progress(done: int, total: int) -> None:
            self.stderr.write(f'{done}/{total}')

        result = async_to_sync(engine.match_candidates)(
            candidates,
            similarity_threshold=options['threshold'],
            max_options=options['max_options'],
            on_progress=_progress,
        )
        payload = {
            'anchors': [
                {
                    'text': item.anchor.text,
                    'status': item.status.value,
                    'error': item.error,
                    'options': [option.as_dict() for option in item.options],
                }
                for item in result.anchors
            ],
            'totalCandidates': result.total_candidates,
            'totalMatches': result.total_matches,
            'averageScore': result.average_score,
        }
        self.stdout.write(json.dumps(payload, indent=2))
