#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Drop the intermediate table."""
from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand


class Command(PartitionerCommand):
    help = "Drop the intermediate table of TABLE and its routing function."

    def run(self, introspector, runner, table, **options):
        lifecycle.unprep(introspector, runner, table)

    def success_message(self, table, result):
        return f"Dropped {table.intermediate_table}"
