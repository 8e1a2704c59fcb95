"""Compile data filters into SQL predicates over a JSON column.

A filter maps top-level payload fields to either a scalar (equality) or a
list of scalars (membership, i.e. any-match). Fields are ANDed together.
None values and empty lists are ignored rather than meaning "IS NULL".
Comparison is text against text: the stored JSON value is cast to TEXT and
the filter value is stringified the same way SQLite renders it.
"""

from typing import Any

from eventledger.config import is_identifier, validate_identifier


def field_expression(column: str, key: str) -> str:
    """SQL expression for one top-level field of a JSON column, as TEXT.

    Only for identifier keys, which are spliced into the SQL text. Schema
    data indexes are built on this exact expression so the planner can use
    them for filtered reads.
    """
    validate_identifier(key)
    return f"CAST(json_extract({column}, '$.{key}') AS TEXT)"


def json_path(key: str) -> str:
    """Quoted JSON path for any top-level key, e.g. '$."list-id"'."""
    return '$."' + key.replace('"', '""') + '"'


def filter_expression(column: str, key: str) -> tuple[str, list[str]]:
    """(expression, params) selecting one payload field.

    Identifier keys use the index-friendly spliced form; every other key is
    bound as a parameter, so any payload key can be filtered on.
    """
    if is_identifier(key):
        return field_expression(column, key), []
    return f"CAST(json_extract({column}, ?) AS TEXT)", [json_path(key)]


def filter_text(value: Any) -> str:
    # SQLite's json_extract renders JSON true/false as 1/0
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def build_data_conditions(
    column: str, data: dict[str, Any] | None
) -> tuple[list[str], list[str]]:
    """Return (predicates, params) for a data filter. Empty when nothing applies."""
    predicates: list[str] = []
    params: list[str] = []
    if not data:
        return predicates, params

    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            candidates = [filter_text(v) for v in value if v is not None]
            if not candidates:
                continue
            expr, path_params = filter_expression(column, key)
            placeholders = ", ".join("?" for _ in candidates)
            predicates.append(f"{expr} IN ({placeholders})")
            params.extend(path_params)
            params.extend(candidates)
        else:
            expr, path_params = filter_expression(column, key)
            predicates.append(f"{expr} = ?")
            params.extend(path_params)
            params.append(filter_text(value))

    return predicates, params
