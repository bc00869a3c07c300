"""
Django settings for the epos project.

Everything deployment-specific comes from the environment.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-insecure-change-me')
DEBUG = env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'drf_spectacular',
    'engine',
    'tables',
    'orders',
    'payment',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'epos.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'epos.wsgi.application'

# Database: PostgreSQL when POS_DB_NAME is set, otherwise a local SQLite file
if os.environ.get('POS_DB_NAME'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ['POS_DB_NAME'],
            'USER': os.environ.get('POS_DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('POS_DB_PASSWORD', ''),
            'HOST': os.environ.get('POS_DB_HOST', 'localhost'),
            'PORT': os.environ.get('POS_DB_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.environ.get('POS_SQLITE_PATH', str(BASE_DIR / 'pos.sqlite3')),
            'OPTIONS': {
                'timeout': 5,
                'transaction_mode': 'IMMEDIATE',
            },
            # A file, not :memory:, so threaded tests share one database
            'TEST': {'NAME': str(BASE_DIR / 'test_pos.sqlite3')},
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Redis backs the idempotency key locks so every worker process shares them
REDIS_HOST = os.environ.get('REDIS_HOST', '')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DB = os.environ.get('REDIS_DB', '0')

if REDIS_HOST:
    _locks_cache = {
        'BACKEND': 'django.core.cache.backends.redis.RedisCache',
        'LOCATION': f'redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}',
        'KEY_PREFIX': 'pos',
    }
else:
    _locks_cache = {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'pos-locks',
    }

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'pos-default',
    },
    'locks': _locks_cache,
}

API_KEY = os.environ.get('API_KEY', 'demo')

POS = {
    # 700 bps == 7%
    'TAX_RATE_BPS': int(os.environ.get('POS_TAX_RATE_BPS', '0')),
    'SERVICE_RATE_BPS': int(os.environ.get('POS_SERVICE_RATE_BPS', '0')),
    'CURRENCY': os.environ.get('POS_CURRENCY', 'usd'),
    'TRANSACTION_TIMEOUT_MS': int(os.environ.get('POS_TRANSACTION_TIMEOUT_MS', '5000')),
    'IDEMPOTENCY_LOCK_TTL_MS': int(os.environ.get('POS_IDEMPOTENCY_LOCK_TTL_MS', '30000')),
    'IDEMPOTENCY_LOCK_WAIT_MS': int(os.environ.get('POS_IDEMPOTENCY_LOCK_WAIT_MS', '10000')),
    'IDEMPOTENCY_LOCK_POLL_MS': 25,
    'PAYMENT_METHODS': ['cash', 'card', 'qr'],
    'ROLE_PERMISSIONS': {
        'manager': ['void_item', 'discount_item', 'comp_item', 'order_discount', 'manager_override'],
        'cashier': ['void_item', 'discount_item', 'order_discount'],
        'server': ['void_item', 'discount_item', 'order_discount'],
        'kitchen': [],
    },
}

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'epos.authentication.APIKeyAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'epos.permissions.APIKeyPermission',
    ],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'EXCEPTION_HANDLER': 'epos.exceptions.pos_exception_handler',
    'UNAUTHENTICATED_USER': None,
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'EPOS State Engine API',
    'DESCRIPTION': 'Tables, orders, kitchen tickets and payments for a single location',
    'VERSION': '1.0.0',
}

LANGUAGE_CODE = 'en-gb'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('POS_LOG_LEVEL', 'WARNING'),
    },
    'loggers': {
        'engine': {'level': os.environ.get('POS_ENGINE_LOG_LEVEL', 'INFO'), 'propagate': True},
        'tables': {'level': os.environ.get('POS_ENGINE_LOG_LEVEL', 'INFO'), 'propagate': True},
        'orders': {'level': os.environ.get('POS_ENGINE_LOG_LEVEL', 'INFO'), 'propagate': True},
        'payment': {'level': os.environ.get('POS_ENGINE_LOG_LEVEL', 'INFO'), 'propagate': True},
    },
}
