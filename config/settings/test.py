"""Test settings.

In-memory SQLite unless DB_ENGINE points elsewhere, eager Celery, in-memory
email and file storage. The concurrent booking test needs row locks and only
runs against a database that has them, e.g.

    DB_ENGINE=django.db.backends.postgresql DB_NAME=petcare DB_USER=petcare pytest
"""

import os

from .base import *  # noqa: F401,F403

DEBUG = False

if os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3') == 'django.db.backends.sqlite3':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.InMemoryStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

LOGGING['root']['level'] = 'CRITICAL'  # noqa: F405
LOGGING['loggers']['django']['level'] = 'ERROR'  # noqa: F405
