"""Root URL configuration for the anchorlink_tool project."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('anchorlink.urls')),
]
