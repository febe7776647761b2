from .base import *

DEBUG = False

# Security settings for production.
# Tell Django to trust the X-Forwarded-Proto header from Railway's proxy.
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
# Redirect all non-HTTPS requests to HTTPS.
SECURE_SSL_REDIRECT = True
# The health check is probed over plain HTTP by the platform.
SECURE_REDIRECT_EXEMPT = [r'^health/$']

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'


APP_HOST = os.getenv('RAILWAY_PUBLIC_DOMAIN', '')

if APP_HOST:
    ALLOWED_HOSTS = [APP_HOST]
    SITE_URL = f'https://{APP_HOST}'
    CSRF_TRUSTED_ORIGINS = [f'https://{APP_HOST}']
