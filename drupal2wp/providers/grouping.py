"""Folding of denormalized join rows into one record per primary id."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

__all__ = ["group_rows"]


def group_rows(
    rows: Iterable[Mapping[str, Any]],
    key: str,
    *,
    collect: Mapping[str, str | Sequence[str]] | None = None,
) -> list[dict[str, Any]]:
    """Fold rows produced by one-to-many joins into one dict per ``key``.

    Groups keep the order in which their key first appears. Columns that are
    not collected take the first non-null value seen in the group. Collected
    attributes become lists without repeats, in first-seen order:

    * ``{"tag_ids": "tag_tid"}`` collects the non-null values of a column
    * ``{"files": ("fid", "filename", "uri")}`` collects tuples, skipping rows
      whose first column is null and treating the first column as the identity

    Args:
        rows (Iterable[Mapping[str, Any]]): Raw result rows
        key (str): Primary id column
        collect (Mapping | None): Output name to column or column tuple

    Returns:
        list[dict[str, Any]]: One dict per distinct key
    """
    collect = collect or {}
    collected_columns = {
        column
        for wanted in collect.values()
        for column in ((wanted,) if isinstance(wanted, str) else wanted)
    }

    groups: dict[Any, dict[str, Any]] = {}
    seen: dict[Any, dict[str, set[Any]]] = {}
    for row in rows:
        group_id = row[key]
        group = groups.get(group_id)
        if group is None:
            group = groups[group_id] = {name: [] for name in collect}
            seen[group_id] = {name: set() for name in collect}

        for column, value in row.items():
            if column in collected_columns or column in collect:
                continue
            if group.get(column) is None:
                group[column] = value

        for name, wanted in collect.items():
            if isinstance(wanted, str):
                value = row.get(wanted)
                identity = value
            else:
                value = tuple(row.get(column) for column in wanted)
                identity = value[0]
            if identity is None or identity in seen[group_id][name]:
                continue
            seen[group_id][name].add(identity)
            group[name].append(value)

    return list(groups.values())
