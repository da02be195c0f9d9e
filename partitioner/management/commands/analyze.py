#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Refresh planner statistics."""
from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand


class Command(PartitionerCommand):
    help = "Analyze the partitions of TABLE's intermediate table (or of TABLE with --swapped)."

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("--swapped", action="store_true", default=False, help="Analyze the swapped table")

    def run(self, introspector, runner, table, swapped, **options):
        lifecycle.analyze(introspector, runner, table, swapped=swapped)
