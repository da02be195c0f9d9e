#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Promote the intermediate table."""
from django.conf import settings

from partitioner import lifecycle
from partitioner.management.base import PartitionerCommand


class Command(PartitionerCommand):
    help = "Swap the intermediate table of TABLE into place, retiring the original."

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("--lock-timeout", default=settings.SLICER_LOCK_TIMEOUT, help="Lock timeout")
        parser.add_argument(
            "--use-view", action="store_true", default=False, help="Operate on the view based transition"
        )

    def run(self, introspector, runner, table, lock_timeout, use_view, **options):
        lifecycle.swap(introspector, runner, table, lock_timeout=lock_timeout, use_view=use_view)

    def success_message(self, table, result):
        return f"Swapped {table}"
