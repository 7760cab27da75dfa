"""Production settings for the Phong Tro project.

This module extends the base settings with production specific
configuration. Secrets and gateway credentials must come from the
environment; startup fails when they are missing.
"""

from shared.infrastructure.env import get_env

from .base import *  # noqa: F401,F403

# Never run with debug enabled in production
DEBUG = False

SECRET_KEY = get_env('DJANGO_SECRET_KEY', required=True)

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = get_env('DJANGO_ALLOWED_HOSTS', required=True).split(',')

# Configure secure proxies and cookies
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'

VNPAY_TMN_CODE = get_env('VNPAY_TMN_CODE', required=True)
VNPAY_HASH_SECRET = get_env('VNPAY_HASH_SECRET', required=True)
VNPAY_URL = get_env('VNPAY_URL', 'https://pay.vnpay.vn/vpcpay.html')
VNPAY_RETURN_URL = get_env('VNPAY_RETURN_URL', required=True)
CLIENT_URL = get_env('CLIENT_URL', required=True)
