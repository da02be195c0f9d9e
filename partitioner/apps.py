#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Partitioner application configuration module."""
from django.apps import AppConfig


class PartitionerConfig(AppConfig):
    """Partitioner application configuration."""

    name = "partitioner"
