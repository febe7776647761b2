from .base import *

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

# Never talk to real vendors from the test suite; tests opt in with override_settings.
KAPSO_API_KEY = ''
KAPSO_WEBHOOK_SECRET = ''
KAPSO_WEBHOOK_VERIFY_TOKEN = 'vicu-kapso-webhook'
OPENAI_API_KEY = ''
VICU_LLM_MESSAGES = False
VICU_UTC_OFFSET_HOURS = -5
CRON_SECRET = ''
SITE_URL = 'https://vicu.test'

Q_CLUSTER = {**Q_CLUSTER, 'sync': True}

LOGGING['root']['level'] = 'WARNING'
for _logger in LOGGING['loggers'].values():
    _logger['level'] = 'WARNING'

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
