"""
WSGI config for the Django application.

WSGI (Web Server Gateway Interface) is the interface the webhook endpoint is
served through. Each webhook delivery is handled
as an independent request with no shared in-process state.

This file exposes the WSGI callable as a module-level variable named `application`.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
