"""
Django settings for the Vicu reminder engine.
"""
import os
from pathlib import Path
from dotenv import load_dotenv
import dj_database_url

# Load environment variables
load_dotenv()

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-change-me-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True') == 'True'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party apps
    'django_q',  # Task queue and cron schedules

    # Local apps
    'objectives',
    'gamification',
    'whatsapp',
    'assignments',
    'health_check',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'


# Database
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('PGDATABASE', 'vicu_db'),
        'USER': os.getenv('PGUSER', 'postgres'),
        'PASSWORD': os.getenv('PGPASSWORD', 'postgres'),
        'HOST': os.getenv('PGHOST', 'localhost'),
        'PORT': os.getenv('PGPORT', '5432'),
    }
}

# Use DATABASE_URL if provided (for production)
if os.getenv('DATABASE_URL'):
    DATABASES['default'] = dj_database_url.parse(os.getenv('DATABASE_URL'))

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'es'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Site URL (used in links sent over WhatsApp)
SITE_URL = os.getenv('SITE_URL', 'http://localhost:8000')

# Email Configuration (helpers reached by email)
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', '')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', '587'))
EMAIL_USE_TLS = os.getenv('EMAIL_USE_TLS', 'True') == 'True'
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'Vicu <noreply@vicu.app>')

# Reminder engine
# All slot times and "today" boundaries are computed in this fixed offset (Lima).
VICU_UTC_OFFSET_HOURS = int(os.getenv('VICU_UTC_OFFSET_HOURS', '-5'))
# Generate reminder copy with the LLM instead of the static templates.
VICU_LLM_MESSAGES = os.getenv('VICU_LLM_MESSAGES', 'False') == 'True'
# Shared secret for cron-triggered endpoints (Authorization: Bearer <secret>).
CRON_SECRET = os.getenv('CRON_SECRET', '')

# Kapso (WhatsApp Business API) Configuration
KAPSO_API_KEY = os.getenv('KAPSO_API_KEY', '')
KAPSO_API_BASE = os.getenv('KAPSO_API_BASE', 'https://api.kapso.ai/meta/whatsapp/v24.0')
KAPSO_PHONE_NUMBER_ID = os.getenv('KAPSO_PHONE_NUMBER_ID', '12083619224')
KAPSO_WEBHOOK_SECRET = os.getenv('KAPSO_WEBHOOK_SECRET', '')
KAPSO_WEBHOOK_VERIFY_TOKEN = os.getenv('KAPSO_WEBHOOK_VERIFY_TOKEN', 'vicu-kapso-webhook')
KAPSO_TIMEOUT_SECONDS = int(os.getenv('KAPSO_TIMEOUT_SECONDS', '15'))

# OpenAI Configuration
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_TIMEOUT_SECONDS = float(os.getenv('OPENAI_TIMEOUT_SECONDS', '15'))

# Assignments
ASSIGNMENT_TOKEN_TTL_DAYS = int(os.getenv('ASSIGNMENT_TOKEN_TTL_DAYS', '7'))

# WhiteNoise Configuration
STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage',
    },
}

# Logging Configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'objectives': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'gamification': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'whatsapp': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'assignments': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
}


# Django Q Configuration
Q_CLUSTER = {
    'name': 'vicu',
    'workers': 2,
    'recycle': 500,
    'timeout': 120,
    'retry': 180,
    'compress': True,
    'save_limit': 250,
    'queue_limit': 500,
    'cpu_affinity': 1,
    'label': 'Django Q',
    'orm': 'default',  # Use Django ORM (Database) as the broker
}

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
if SENTRY_DSN != "":
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
        ],
        # Phone numbers travel in request bodies, keep PII off by default
        send_default_pii=os.getenv("SENTRY_SEND_DEFAULT_PII", "False") == "True",
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", 0.0)),
    )

# Session auth only; the admin login page doubles as the sign-in page.
LOGIN_URL = '/admin/login/'
