#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Shared plumbing for the partition lifecycle commands."""
import logging

from django.core.management.base import BaseCommand
from django.core.management.base import CommandError

from partitioner.catalog import CatalogIntrospector
from partitioner.exceptions import PartitionerError
from partitioner.runner import StatementRunner
from partitioner.tables import Table


LOG = logging.getLogger(__name__)


class PartitionerCommand(BaseCommand):
    """
    Base for commands that take a TABLE argument and support --dry-run.
    Subclasses implement run(introspector, runner, table, **options).
    """

    def add_arguments(self, parser):
        parser.add_argument("table", help="Table to operate on, as schema.name or name (public schema)")
        parser.add_argument(
            "--dry-run", action="store_true", default=False, help="Print the SQL statements without executing them"
        )

    def get_introspector(self):
        return CatalogIntrospector()

    def get_runner(self, dry_run):
        return StatementRunner(dry_run=dry_run, output=self.stdout)

    def handle(self, *args, **options):
        table = Table.parse(options.pop("table"))
        dry_run = options.pop("dry_run")
        introspector = self.get_introspector()
        runner = self.get_runner(dry_run)
        try:
            result = self.run(introspector, runner, table, **options)
        except PartitionerError as e:
            LOG.error(f"{self.__module__.rsplit('.', 1)[-1]} failed for {table}: {e}")
            raise CommandError(str(e)) from e
        except ValueError as e:
            raise CommandError(str(e)) from e

        if not dry_run:
            self.stdout.write(self.style.SUCCESS(self.success_message(table, result)))

    def run(self, introspector, runner, table, **options):
        raise NotImplementedError

    def success_message(self, table, result):
        return f"Done: {table}"
