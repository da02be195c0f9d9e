#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Partition lifecycle exceptions."""


class PartitionerError(Exception):
    """Base class for errors reported to the operator."""


class NotConfigured(PartitionerError):
    """No partition settings were found for the table."""


class UnsupportedKeyType(PartitionerError):
    """The primary key cannot be batched by numeric range."""


class PreconditionFailed(PartitionerError):
    """A table or view is present or missing for the requested transition."""


class LockTimeout(PartitionerError):
    """A statement could not acquire its lock within the configured lock_timeout."""


class MalformedPartitionName(PartitionerError):
    """A child table name does not end in a date of the expected format."""
