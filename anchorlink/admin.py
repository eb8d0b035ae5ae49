from django.contrib import admin

from .models import Page, SyncHistory


@admin.register(Page)
class PageAdmin(admin.ModelAdmin):
    list_display = ('url', 'title', 'category', 'word_count', 'has_embedding', 'updated_at')
    list_filter = ('category',)
    search_fields = ('url', 'title', 'h1', 'meta_description')
    exclude = ('embedding',)

    @admin.display(boolean=True, description='Embedded')
    def has_embedding(self, obj: Page) -> bool:
        return obj.embedding is not None


@admin.register(SyncHistory)
class SyncHistoryAdmin(admin.ModelAdmin):
    list_display = (
        'project_name',
        'crawl_id',
        'mode',
        'status',
        'pages_added',
        'pages_updated',
        'pages_removed',
        'pages_failed',
        'synced_at',
    )
    list_filter = ('mode', 'status')
    search_fields = ('project_id', 'project_name', 'crawl_id')
    readonly_fields = ('synced_at', 'finalized_at')
