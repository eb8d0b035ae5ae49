"""JSON views for the anchorlink app.

The views expose link suggestions for a single anchor, the sync audit
trail and corpus statistics. Failures are reported as JSON bodies rather
than error pages.
"""

from __future__ import annotations

import json
import logging

from asgiref.sync import async_to_sync
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .engine.errors import ConfigurationError
from .engine.types import MatchStatus
from .forms import SuggestionRequestForm, SyncHistoryQueryForm
from .models import SyncHistory
from .services import build_match_engine, corpus_stats

logger = logging.getLogger(__name__)


def _error(message: str, status: int, **extra) -> JsonResponse:
    payload = {'error': message}
    payload.update(extra)
    return JsonResponse(payload, status=status)


@csrf_exempt
@require_POST
def suggestions(request: HttpRequest) -> JsonResponse:
    """Return ranked link targets for ``anchorText``."""

    try:
        body = json.loads(request.body or b'{}')
    except json.JSONDecodeError:
        return _error('Request body must be valid JSON', 400)
    if not isinstance(body, dict):
        return _error('Request body must be a JSON object', 400)

    anchor_text = body.get('anchorText', body.get('anchor_text'))
    form = SuggestionRequestForm(
        {
            'anchor_text': anchor_text if isinstance(anchor_text, str) else '',
            'max_suggestions': body.get('maxSuggestions', body.get('max_suggestions')),
        }
    )
    if not form.is_valid():
        first_error = next(iter(form.errors.values()))[0]
        return _error(first_error, 400, fields=form.errors.get_json_data())

    try:
        engine = build_match_engine()
    except ConfigurationError as exc:
        logger.error('Suggestions unavailable: %s', exc)
        return _error('Suggestions are not configured', 503, details=str(exc))

    match = async_to_sync(engine.match_text)(
        form.cleaned_data['anchor_text'],
        form.cleaned_data['max_suggestions'],
    )
    if match.status is MatchStatus.FAILED:
        return _error('Failed to get suggestions', 502, details=match.error)

    return JsonResponse(
        {
            'success': True,
            'suggestions': [option.as_dict() for option in match.options],
            'meta': {
                'query': match.anchor.text,
                'count': len(match.options),
                'maxRequested': body.get('maxSuggestions', body.get('max_suggestions', 5)),
                'status': match.status.value,
                'error': match.error,
                'durationMs': match.duration_ms,
            },
        }
    )


@require_GET
def sync_history(request: HttpRequest) -> JsonResponse:
    form = SyncHistoryQueryForm(request.GET)
    if not form.is_valid():
        return _error('Invalid query parameters', 400, fields=form.errors.get_json_data())

    queryset = SyncHistory.objects.all()
    if form.cleaned_data.get('project_id'):
        queryset = queryset.filter(project_id=form.cleaned_data['project_id'])
    rows = [row.as_dict() for row in queryset[:form.cleaned_data['limit']]]
    return JsonResponse({'history': rows, 'count': len(rows)})


@require_GET
def stats(request: HttpRequest) -> JsonResponse:
    return JsonResponse(async_to_sync(corpus_stats)())
