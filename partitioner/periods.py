#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Period arithmetic and partition naming."""
import datetime
import logging
from enum import Enum

import ciso8601
from dateutil.relativedelta import relativedelta

from .exceptions import MalformedPartitionName


LOG = logging.getLogger(__name__)


class Period(Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"

    def __str__(self):
        return self.value

    @property
    def name_format(self):
        """strftime format of the date suffix of a partition name."""
        return NAME_FORMATS[self]

    def delta(self, count=1):
        if self is Period.DAY:
            return relativedelta(days=count)
        elif self is Period.MONTH:
            return relativedelta(months=count)
        return relativedelta(years=count)


NAME_FORMATS = {
    Period.DAY: "%Y%m%d",
    Period.MONTH: "%Y%m",
    Period.YEAR: "%Y",
}


def to_date(value):
    """
    Convert a date, datetime or ISO-8601 string to a UTC date.
    Params:
        value (date/datetime/str) : value to convert; naive datetimes are taken as UTC
    Returns:
        datetime.date
    """
    if isinstance(value, str):
        value = ciso8601.parse_datetime(value)
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc)
        return value.date()
    return value


def round_date(value, period):
    """Truncate value to the first day of its containing day, month or year (UTC)."""
    day = to_date(value)
    if period is Period.MONTH:
        return day.replace(day=1)
    elif period is Period.YEAR:
        return day.replace(month=1, day=1)
    return day


def advance_date(boundary, period, count=1):
    """Move a boundary by count periods; count may be negative."""
    return boundary + period.delta(count)


def partition_name(base_name, period, boundary):
    return f"{base_name}_{boundary.strftime(period.name_format)}"


def partition_date(name, base_name, period):
    """
    Parse the boundary date back out of a partition name.
    Params:
        name (str) : partition table name
        base_name (str) : name of the table the partitions belong to
        period (Period) : partitioning period
    Returns:
        datetime.date
    Raises:
        MalformedPartitionName : the suffix is not a date in the period's format
    """
    prefix = f"{base_name}_"
    suffix = name[len(prefix) :] if name.startswith(prefix) else ""
    try:
        boundary = datetime.datetime.strptime(suffix, period.name_format).date()
    except ValueError:
        boundary = None

    # strptime accepts single digit months and days; only exact names round-trip
    if boundary is None or partition_name(base_name, period, boundary) != name:
        raise MalformedPartitionName(f'"{name}" is not a {period} partition of "{base_name}"')

    return boundary


def partitioned_dates(partitions, base_name, period):
    """
    Pair each partition with its boundary, sorted by partition name.
    Partitions whose names do not parse are skipped with a warning.
    Params:
        partitions (iterable(Table)) : partition tables
        base_name (str) : name of the table the partitions belong to
        period (Period) : partitioning period
    Returns:
        list(tuple(Table, datetime.date))
    """
    res = []
    for partition in sorted(partitions, key=lambda p: p.name):
        try:
            res.append((partition, partition_date(partition.name, base_name, period)))
        except MalformedPartitionName as e:
            LOG.warning(f"Skipping partition: {e}")
    return res
