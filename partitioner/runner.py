#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Execute generated statements."""
import logging
from contextlib import nullcontext

from django.db import transaction
from django.db.utils import DatabaseError

from .exceptions import LockTimeout
from slicer.database import conn_execute
from slicer.database import fetchvalue
from slicer.database_exc import is_lock_timeout


LOG = logging.getLogger(__name__)


class StatementRunner:
    """
    Print and execute ordered statement lists.
    Params:
        dry_run (bool) : print statements without executing them
        output (file-like) : where statements are printed (default is nowhere)
        execute (callable) : execute(sql) -> cursor
    """

    def __init__(self, dry_run=False, output=None, execute=conn_execute):
        self.dry_run = dry_run
        self.output = output
        self.execute = execute

    def log_sql(self, sql):
        LOG.debug(f"SQL: {sql}")
        if self.output is not None:
            self.output.write(f"{sql}\n\n")

    def transaction(self, atomic=True):
        return transaction.atomic() if atomic else nullcontext()

    def run(self, statements, atomic=True):
        """
        Execute statements in order, all-or-nothing when atomic.
        Raises:
            LockTimeout : a statement waited longer than lock_timeout; nothing was committed
        """
        statements = [s for s in statements if s]
        if not statements:
            return

        if self.dry_run:
            self.log_sql("/* dry run */")
        for sql in statements:
            self.log_sql(sql)
        if self.dry_run:
            return

        try:
            with self.transaction(atomic):
                for sql in statements:
                    self.execute(sql)
        except DatabaseError as e:
            if is_lock_timeout(e):
                raise LockTimeout(f"Could not acquire lock within lock_timeout, no changes were made: {e}") from e
            raise

    def query_value(self, sql):
        """Execute one statement and return the first column of its first row (None on dry run)."""
        self.log_sql(sql)
        if self.dry_run:
            return None
        return fetchvalue(self.execute(sql))
