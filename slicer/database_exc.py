#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Database driver exception helpers."""
import logging

from django.db.utils import DatabaseError as DJDatabaseError
from psycopg2.errors import LockNotAvailable
from psycopg2.errors import UndefinedFunction


LOG = logging.getLogger(__name__)


def get_driver_exception(db_exception):
    if isinstance(db_exception, DJDatabaseError):
        return db_exception.__cause__ or db_exception.__context__
    else:
        return db_exception


def is_lock_timeout(db_exception):
    """True when the driver reports that a lock could not be acquired within lock_timeout."""
    return isinstance(get_driver_exception(db_exception), LockNotAvailable)


def is_undefined_function(db_exception):
    """True when the driver reports a missing function or operator (e.g. max() on a uuid column)."""
    return isinstance(get_driver_exception(db_exception), UndefinedFunction)
