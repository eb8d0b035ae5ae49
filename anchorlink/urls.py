"""URL configuration for the anchorlink app."""

from django.urls import path

from . import views

app_name = 'anchorlink'

urlpatterns = [
    path('api/suggestions/', views.suggestions, name='suggestions'),
    path('api/sync-history/', views.sync_history, name='sync_history'),
    path('api/stats/', views.stats, name='stats'),
]
