"""Database models for the anchorlink app.

The app keeps a corpus of crawled pages (one row per URL) that serves as the
pool of internal-link targets, and an audit trail of the sync runs that keep
that corpus aligned with the crawl provider.
"""

from __future__ import annotations

from django.db import models


class Page(models.Model):
    """A crawled page eligible as a link target."""

    CATEGORY_CHOICES = [
        ('article', 'Article'),
        ('category', 'Category'),
        ('page', 'Page'),
        ('unknown', 'Unknown'),
    ]

    url = models.URLField(max_length=2048, unique=True)
    title = models.TextField(null=True, blank=True)
    meta_description = models.TextField(null=True, blank=True)
    h1 = models.TextField(null=True, blank=True)
    word_count = models.IntegerField(null=True, blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='unknown')
    depth = models.IntegerField(null=True, blank=True)
    inrank_decimal = models.FloatField(null=True, blank=True)
    internal_outlinks = models.IntegerField(null=True, blank=True)
    nb_inlinks = models.IntegerField(null=True, blank=True)
    # Null until backfilled; reset whenever title, h1 or meta description change.
    embedding = models.JSONField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return self.url


class SyncHistory(models.Model):
    """Audit row describing one sync run."""

    STATUS_RUNNING = 'running'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_RUNNING, 'Running'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    project_id = models.CharField(max_length=100)
    project_name = models.CharField(max_length=255)
    crawl_id = models.CharField(max_length=100)
    crawl_name = models.CharField(max_length=255, blank=True)
    mode = models.CharField(max_length=20)
    synced_at = models.DateTimeField(auto_now_add=True)
    pages_added = models.PositiveIntegerField(default=0)
    pages_updated = models.PositiveIntegerField(default=0)
    pages_unchanged = models.PositiveIntegerField(default=0)
    pages_removed = models.PositiveIntegerField(default=0)
    pages_failed = models.PositiveIntegerField(default=0)
    duration_ms = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_RUNNING)
    error = models.TextField(blank=True)
    finalized_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-synced_at', '-id']
        verbose_name_plural = 'sync history'

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.project_name} · {self.crawl_id} · {self.synced_at:%Y-%m-%d %H:%M}"

    def as_dict(self) -> dict:
        return {
            'id': self.pk,
            'project_id': self.project_id,
            'project_name': self.project_name,
            'crawl_id': self.crawl_id,
            'crawl_name': self.crawl_name,
            'mode': self.mode,
            'synced_at': self.synced_at.isoformat() if self.synced_at else None,
            'pages_added': self.pages_added,
            'pages_updated': self.pages_updated,
            'pages_unchanged': self.pages_unchanged,
            'pages_removed': self.pages_removed,
            'pages_failed': self.pages_failed,
            'duration_ms': self.duration_ms,
            'status': self.status,
            'error': self.error,
            'finalized_at': self.finalized_at.isoformat() if self.finalized_at else None,
        }
