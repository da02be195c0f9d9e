#
# Copyright 2021 Red Hat Inc.
# SPDX-License-Identifier: Apache-2.0
#
"""Table identities and persisted partition settings."""
import logging
from dataclasses import dataclass
from dataclasses import replace
from enum import Enum

from .periods import Period
from slicer.database import DEFAULT_SCHEMA
from slicer.database import escape_literal
from slicer.database import quote_ident
from slicer.database import quote_table


LOG = logging.getLogger(__name__)

CAST_DATE = "date"
CAST_TIMESTAMPTZ = "timestamptz"

# Settings written before the format carried a version
LEGACY_TRIGGER_VERSION = 1
LEGACY_DECLARATIVE_VERSION = 2
# Native partitioning propagates indexes and foreign keys from this version on
PROPAGATING_VERSION = 3


@dataclass(frozen=True)
class Table:
    """A table identity. Renames produce new values."""

    schema: str
    name: str

    @classmethod
    def parse(cls, value, default_schema=DEFAULT_SCHEMA):
        """Build a Table from "schema.name" or "name"."""
        if "." in value:
            schema, name = value.split(".", 1)
        else:
            schema, name = default_schema, value
        return cls(schema, name)

    def __str__(self):
        return f"{self.schema}.{self.name}"

    @property
    def quoted(self):
        return quote_table(self.schema, self.name)

    @property
    def quoted_name(self):
        return quote_ident(self.name)

    @property
    def intermediate_table(self):
        return self.renamed(f"{self.name}_intermediate")

    @property
    def retired_table(self):
        return self.renamed(f"{self.name}_retired")

    @property
    def trigger_name(self):
        return f"{self.name}_insert_trigger"

    def renamed(self, name):
        return replace(self, name=name)

    def rename_to(self, target):
        """Statement renaming this table to the name of target (same schema)."""
        return f"ALTER TABLE {self.quoted} RENAME TO {target.quoted_name};"


@dataclass(frozen=True)
class Sequence:
    """A sequence and the column that owns it."""

    schema: str
    name: str
    column: str

    @property
    def quoted(self):
        return quote_table(self.schema, self.name)

    def owned_by(self, table):
        LOG.debug(f"Building ownership statement for sequence {self.schema}.{self.name} -> {table}.{self.column}")
        return f"ALTER SEQUENCE {self.quoted} OWNED BY {table.quoted}.{quote_ident(self.column)};"


class Capability(Enum):
    """How rows reach partitions and what the database propagates on its own."""

    TRIGGER = "trigger"
    NATIVE = "native"
    NATIVE_UNPROPAGATED = "native-unpropagated"


@dataclass(frozen=True)
class PartitionConfig:
    """
    Partition settings persisted as a comment on the intermediate table (native)
    or on the routing trigger (trigger-based).
    """

    period: Period
    column: str
    cast: str = CAST_DATE
    declarative: bool = True
    version: int = PROPAGATING_VERSION

    @property
    def capability(self):
        if not self.declarative:
            return Capability.TRIGGER
        elif self.version < PROPAGATING_VERSION:
            return Capability.NATIVE_UNPROPAGATED
        return Capability.NATIVE

    def comment(self):
        parts = [f"column:{self.column}", f"period:{self.period}", f"cast:{self.cast}"]
        if self.declarative:
            parts.append(f"version:{self.version}")
        return ",".join(parts)

    def comment_on_table(self, table):
        return f"COMMENT ON TABLE {table.quoted} IS {escape_literal(self.comment())};"

    def comment_on_trigger(self, trigger_name, table):
        return f"COMMENT ON TRIGGER {quote_ident(trigger_name)} ON {table.quoted} IS {escape_literal(self.comment())};"

    @classmethod
    def from_comment(cls, comment, declarative):
        """
        Parse a settings comment.
        Params:
            comment (str) : comment text such as "column:createdAt,period:month,cast:date,version:3"
            declarative (bool) : True when the comment came from the table rather than the trigger
        Returns:
            PartitionConfig or None when the comment carries no usable settings
        """
        if not comment:
            return None

        settings = {}
        for item in comment.split(","):
            key, sep, value = item.partition(":")
            if sep:
                settings[key.strip()] = value.strip()

        try:
            period = Period(settings.get("period"))
        except ValueError:
            LOG.warning(f"Ignoring comment without a valid period: {comment}")
            return None
        if not settings.get("column"):
            LOG.warning(f"Ignoring comment without a column: {comment}")
            return None

        default_version = LEGACY_DECLARATIVE_VERSION if declarative else LEGACY_TRIGGER_VERSION
        try:
            version = int(settings.get("version") or default_version)
        except ValueError:
            LOG.warning(f"Ignoring comment without a valid version: {comment}")
            return None
        return cls(
            period=period,
            column=settings["column"],
            cast=settings.get("cast") or CAST_DATE,
            declarative=declarative,
            version=version,
        )
