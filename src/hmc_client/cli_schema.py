"""Schema describing important fields for CLI table rendering."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

Row = Mapping[str, Any]
ValueExtractor = Callable[[Row], Any]
ValueFormatter = Callable[[Any], str]
SortKey = Callable[[Row], Any]


@dataclass(frozen=True)
class Column:
    """Describe how to pull and format a column for Rich tables."""

    header: str
    keys: tuple[str, ...] = ()
    extractor: ValueExtractor | None = None
    formatter: ValueFormatter | None = None
    justify: str = "left"

    def render(self, row: Row) -> str:
        value: Any | None = None
        for key in self.keys:
            value = row.get(key)
            if value is not None:
                break
        if value is None and self.extractor:
            value = self.extractor(row)
        if value is None:
            return ""
        if self.formatter:
            return self.formatter(value)
        return str(value)


@dataclass(frozen=True)
class TableView:
    """Describe a Rich table for a CLI command."""

    title: str
    columns: tuple[Column, ...]
    sort_key: SortKey | None = None


def _bool_formatter(value: Any) -> str:
    return "Yes" if bool(value) else "No"


def _uri_tail(value: Any) -> str:
    # Console URIs end in the object id; the full URI stays in --json output.
    return str(value).rstrip("/").rsplit("/", 1)[-1]


def _sort_name(row: Row) -> str:
    return str(row.get("name") or "").lower()


CLI_TABLE_VIEWS: dict[str, TableView] = {
    "cpcs.list": TableView(
        title="CPCs",
        columns=(
            Column("Name", keys=("name",)),
            Column("Status", keys=("status",)),
            Column("DPM", keys=("dpm-enabled",), formatter=_bool_formatter, justify="center"),
            Column("URI", keys=("object-uri",)),
        ),
        sort_key=_sort_name,
    ),
    "partitions.list": TableView(
        title="Partitions",
        columns=(
            Column("Name", keys=("name",)),
            Column("Status", keys=("status",)),
            Column("Type", keys=("type",)),
            Column("URI", keys=("object-uri",)),
        ),
        sort_key=_sort_name,
    ),
    "adapters.list": TableView(
        title="Adapters",
        columns=(
            Column("Name", keys=("name",)),
            Column("Family", keys=("adapter-family",)),
            Column("Type", keys=("type",)),
            Column("Status", keys=("status",)),
            Column("Id", keys=("object-uri",), formatter=_uri_tail),
        ),
        sort_key=_sort_name,
    ),
    "vswitches.list": TableView(
        title="Virtual Switches",
        columns=(
            Column("Name", keys=("name",)),
            Column("Type", keys=("type",)),
            Column("Backing Adapter", keys=("backing-adapter-uri",), formatter=_uri_tail),
            Column("URI", keys=("object-uri",)),
        ),
        sort_key=_sort_name,
    ),
    "storage-groups.list": TableView(
        title="Storage Groups",
        columns=(
            Column("Name", keys=("name",)),
            Column("Type", keys=("type",)),
            Column("Fulfillment", keys=("fulfillment-state",)),
            Column("URI", keys=("object-uri",)),
        ),
        sort_key=_sort_name,
    ),
}
