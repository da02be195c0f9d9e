#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""
Django settings for the slicer project.

Only the pieces a command line tool needs are configured: one PostgreSQL
database, the partitioner application and logging.
"""
import os

from .env import ENVIRONMENT


BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

SECRET_KEY = ENVIRONMENT.get_value("DJANGO_SECRET_KEY", default="slicer-not-a-secret")
DEBUG = ENVIRONMENT("DJANGO_DEBUG")

INSTALLED_APPS = ["partitioner"]

USE_TZ = True
TIME_ZONE = "UTC"


def database_config():
    """Database config."""
    if ENVIRONMENT.get_value("DATABASE_URL", default=""):
        return ENVIRONMENT.db_url("DATABASE_URL")

    return {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": ENVIRONMENT.get_value("DATABASE_NAME", default="postgres"),
        "USER": ENVIRONMENT.get_value("DATABASE_USER", default="postgres"),
        "PASSWORD": ENVIRONMENT.get_value("DATABASE_PASSWORD", default="postgres"),
        "HOST": ENVIRONMENT.get_value("DATABASE_HOST", default="localhost"),
        "PORT": ENVIRONMENT.get_value("DATABASE_PORT", default="5432"),
    }


DATABASES = {"default": database_config()}

# Partition lifecycle defaults
SLICER_BATCH_SIZE = ENVIRONMENT("SLICER_BATCH_SIZE")
SLICER_LOCK_TIMEOUT = ENVIRONMENT("SLICER_LOCK_TIMEOUT")
SLICER_FORMAT_VERSION = ENVIRONMENT("SLICER_FORMAT_VERSION")
SLICER_VIEW_BATCH_LIMIT = ENVIRONMENT("SLICER_VIEW_BATCH_LIMIT")

# Logging
LOG_LEVEL = ENVIRONMENT("LOG_LEVEL")
VERBOSE_FORMATTING = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {"format": VERBOSE_FORMATTING},
        "simple": {"format": "[%(levelname)s] %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "verbose"},
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING"},
        "slicer": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "partitioner": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
