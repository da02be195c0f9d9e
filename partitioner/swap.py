#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Rename based promotion and demotion of partitioned tables."""
import logging

from .exceptions import PreconditionFailed
from .trigger import ViewTrigger
from slicer.database import escape_literal


LOG = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = "5s"


class SwapCoordinator:
    """
    Exchange the live table with its staged or retired counterpart.

    Every method checks its preconditions against the catalog and returns the
    ordered statement list; the caller runs the list in one transaction.
    Params:
        introspector (CatalogIntrospector) : catalog facts
        lock_timeout (str) : postgres interval bounding each lock wait
    """

    def __init__(self, introspector, lock_timeout=DEFAULT_LOCK_TIMEOUT):
        self.introspector = introspector
        self.lock_timeout = lock_timeout

    def lock_timeout_sql(self):
        return f"SET LOCAL lock_timeout = {escape_literal(self.lock_timeout)};"

    def assert_table(self, table):
        if not self.introspector.table_exists(table):
            raise PreconditionFailed(f"Table not found: {table}")

    def assert_no_table(self, table):
        if self.introspector.table_exists(table):
            raise PreconditionFailed(f"Table already exists: {table}")

    def assert_view(self, table):
        if not self.introspector.view_exists(table):
            raise PreconditionFailed(f"View not found: {table}")

    def reown_sequences(self, owner, table):
        """Sequences of owner re-owned by the same columns of table."""
        return [sequence.owned_by(table) for sequence in self.introspector.sequences(owner)]

    def swap(self, table):
        """original -> retired, intermediate -> original."""
        intermediate_table = table.intermediate_table
        retired_table = table.retired_table

        self.assert_table(table)
        self.assert_no_table(retired_table)
        self.assert_table(intermediate_table)

        LOG.info(f"Swapping {intermediate_table} into {table}")
        sequences = self.reown_sequences(table, table)
        return [
            self.lock_timeout_sql(),
            table.rename_to(retired_table),
            intermediate_table.rename_to(table),
            *sequences,
        ]

    def unswap(self, table):
        """original -> intermediate, retired -> original."""
        intermediate_table = table.intermediate_table
        retired_table = table.retired_table

        self.assert_table(table)
        self.assert_table(retired_table)
        self.assert_no_table(intermediate_table)

        LOG.info(f"Unswapping {retired_table} back into {table}")
        sequences = self.reown_sequences(table, table)
        return [
            self.lock_timeout_sql(),
            table.rename_to(intermediate_table),
            retired_table.rename_to(table),
            *sequences,
        ]

    def view_trigger(self, table, owner, sequence_owner=None):
        """
        View trigger routing writes on the view named table into its intermediate table.
        The primary key and the column list come from owner, the unpartitioned table
        holding the rows; the key sequence is looked up on sequence_owner (default owner).
        """
        primary_key = self.introspector.primary_key(owner)
        if not primary_key:
            raise PreconditionFailed(f"No primary key: {owner}")
        primary_key = primary_key[0]
        sequences = self.introspector.sequences(sequence_owner or owner)
        sequence = next((s for s in sequences if s.column == primary_key), None)
        columns = self.introspector.columns(owner)

        return ViewTrigger(table, table.intermediate_table, table.retired_table, primary_key, columns, sequence)

    def setup_view(self, table):
        """
        Put a union view with an INSTEAD OF trigger in place of table.
        Writes go to the intermediate table; the original becomes the retired table.
        """
        intermediate_table = table.intermediate_table
        retired_table = table.retired_table

        self.assert_table(table)
        self.assert_table(intermediate_table)
        self.assert_no_table(retired_table)

        view_trigger = self.view_trigger(table, table)
        LOG.info(f"Replacing {table} with a view over {intermediate_table} and {retired_table}")
        function, view, trigger = view_trigger.install()
        return [
            function,
            table.rename_to(retired_table),
            (
                f"ALTER TABLE {retired_table.quoted} SET "
                "(autovacuum_enabled = false, toast.autovacuum_enabled = false);"
            ),
            view,
            trigger,
        ]

    def swap_view(self, table):
        """Drop the transition view and promote intermediate -> original."""
        intermediate_table = table.intermediate_table
        retired_table = table.retired_table

        self.assert_view(table)
        self.assert_table(intermediate_table)

        view_trigger = ViewTrigger(table, intermediate_table, retired_table, None, [])
        LOG.info(f"Swapping {intermediate_table} into {table} and dropping the view")
        sequences = self.reown_sequences(retired_table, table)
        return [
            self.lock_timeout_sql(),
            *view_trigger.drop(),
            intermediate_table.rename_to(table),
            *sequences,
        ]

    def unswap_view(self, table):
        """Inverse of swap_view: put the view back in front of intermediate and retired."""
        intermediate_table = table.intermediate_table
        retired_table = table.retired_table

        self.assert_table(table)
        self.assert_table(retired_table)
        self.assert_no_table(intermediate_table)

        view_trigger = self.view_trigger(table, retired_table, sequence_owner=table)
        LOG.info(f"Restoring the view over {intermediate_table} and {retired_table} as {table}")
        function, view, trigger = view_trigger.install()
        sequences = self.reown_sequences(table, retired_table)
        return [
            self.lock_timeout_sql(),
            table.rename_to(intermediate_table),
            function,
            view,
            trigger,
            *sequences,
        ]
