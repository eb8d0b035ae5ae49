"""WSGI entry point for the anchorlink_tool project.

Exposes ``application`` for WSGI servers; the async engine calls made by the
views are bridged with ``async_to_sync``.
"""

import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'anchorlink_tool.settings')

application = get_wsgi_application()
