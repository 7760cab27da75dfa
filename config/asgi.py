"""ASGI entry point for the Phong Tro rental API (uvicorn, daphne)."""

import os
from django.core.asgi import get_asgi_application  # type: ignore

# Servers set DJANGO_SETTINGS_MODULE explicitly; prod is the fallback.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.prod')

application = get_asgi_application()
