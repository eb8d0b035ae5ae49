"""Forms validating the JSON API inputs of the anchorlink app."""

from __future__ import annotations

from django import forms

from .engine.matcher import MAX_ANCHOR_LENGTH, MAX_SUGGESTIONS


class SuggestionRequestForm(forms.Form):
    """Anchor text to look up and how many suggestions to return."""

    anchor_text = forms.CharField(
        max_length=MAX_ANCHOR_LENGTH,
        error_messages={
            'required': 'Invalid anchor text - must be a non-empty string',
            'max_length': f'Anchor text too long - must be {MAX_ANCHOR_LENGTH} characters or less',
        },
    )
    max_suggestions = forms.IntegerField(required=False, min_value=1, initial=5)

    def clean_max_suggestions(self) -> int:
        value = self.cleaned_data.get('max_suggestions')
        if value is None:
            return 5
        return min(value, MAX_SUGGESTIONS)


class SyncHistoryQueryForm(forms.Form):
    limit = forms.IntegerField(required=False, min_value=1, max_value=100)
    project_id = forms.CharField(required=False, max_length=100)

    def clean_limit(self) -> int:
        return self.cleaned_data.get('limit') or 20
