"""Identifier sanitising, literal quoting and clause builders for generated SQL.

Every caller-supplied name that ends up in SQL text goes through
``resolve_name`` (tables and views) or ``quote_ident`` (columns and aliases).
Filter values are bound as parameters wherever DuckDB allows it; view
definitions cannot hold parameters, so those inline values through
``quote_literal`` instead.
"""

from __future__ import annotations

import math
import re
from typing import Any, Iterable, Sequence

from errors import InvalidArgument

DEFAULT_TABLE_NAME = "imported_data"

FILTER_OPERATORS = {"=", "!=", ">", "<", ">=", "<=", "LIKE", "IN"}

# Public function name -> DuckDB aggregate.
AGGREGATE_FUNCTIONS: dict[str, str] = {
    "SUM": "SUM",
    "AVG": "AVG",
    "COUNT": "COUNT",
    "MIN": "MIN",
    "MAX": "MAX",
    "STDDEV": "STDDEV_SAMP",
    "VAR": "VAR_SAMP",
}

NUMERIC_TYPE_MARKERS = ("INT", "DOUBLE", "FLOAT", "DECIMAL", "NUMERIC")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


def _strip_unsafe(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name).strip("_")


def sanitize_name(name: str) -> str:
    """Turn an arbitrary label into a bare identifier (``imported_data`` if nothing survives)."""
    return _strip_unsafe(name) or DEFAULT_TABLE_NAME


def resolve_name(name: Any, kind: str = "table") -> str:
    """Sanitise a table/view reference coming from a caller."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgument(f"A {kind} name is required")
    cleaned = _strip_unsafe(name)
    if not cleaned:
        raise InvalidArgument(f"Invalid {kind} name: {name!r}")
    return cleaned


def header_names(raw_headers: Iterable[Any]) -> list[str]:
    """Column names for a spreadsheet header row.

    Blank headers become ``Column{n}`` (1-based) and repeated names get a
    numeric suffix so the generated CREATE TABLE stays valid.
    """
    names: list[str] = []
    seen: set[str] = set()
    for idx, raw in enumerate(raw_headers, start=1):
        text = "" if raw is None else str(raw).strip()
        name = _strip_unsafe(text) if text else ""
        if not name:
            name = f"Column{idx}"
        candidate = name
        suffix = 2
        while candidate.lower() in seen:
            candidate = f"{name}_{suffix}"
            suffix += 1
        seen.add(candidate.lower())
        names.append(candidate)
    return names


def quote_ident(ident: Any) -> str:
    if not isinstance(ident, str) or not ident:
        raise InvalidArgument("Identifier must be a non-empty string")
    if '"' in ident:
        raise InvalidArgument(f"Identifier may not contain double quotes: {ident!r}")
    return f'"{ident}"'


def quote_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return "NULL"
        return repr(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, (list, tuple)):
        return "(" + ", ".join(_scalar_literal(v) for v in value) + ")"
    raise InvalidArgument(f"Unsupported literal value: {value!r}")


def _scalar_literal(value: Any) -> str:
    if isinstance(value, (list, tuple, dict)):
        raise InvalidArgument("IN lists may only contain scalar values")
    return quote_literal(value)


def _bind_value(value: Any) -> Any:
    if isinstance(value, (list, tuple, dict)):
        raise InvalidArgument("IN lists may only contain scalar values")
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    return value


def normalize_operator(operator: Any) -> str:
    if not isinstance(operator, str) or not operator.strip():
        raise InvalidArgument("Filter operator is required")
    op = operator.strip().upper()
    if op not in FILTER_OPERATORS:
        raise InvalidArgument(f"Unsupported operator '{operator}'")
    return op


def build_condition(
    column: str, operator: str, value: Any, inline: bool = False
) -> tuple[str, list[Any]]:
    col_sql = quote_ident(column)
    op = normalize_operator(operator)

    if op == "IN":
        if not isinstance(value, (list, tuple)):
            raise InvalidArgument(f"IN filter on '{column}' requires an array value")
        if not value:
            return "FALSE", []
        if inline:
            return f"{col_sql} IN {quote_literal(list(value))}", []
        params = [_bind_value(v) for v in value]
        placeholders = ", ".join("?" for _ in params)
        return f"{col_sql} IN ({placeholders})", params

    if isinstance(value, (list, tuple, dict)):
        raise InvalidArgument(f"Operator {op} on '{column}' requires a scalar value")
    if inline:
        return f"{col_sql} {op} {quote_literal(value)}", []
    return f"{col_sql} {op} ?", [_bind_value(value)]


def build_where(conditions: Sequence[Any], inline: bool = False) -> tuple[str, list[Any]]:
    """AND together filter conditions (objects with column/operator/value)."""
    clauses: list[str] = []
    params: list[Any] = []
    for cond in conditions:
        clause, p = build_condition(cond.column, cond.operator, cond.value, inline)
        clauses.append(clause)
        params.extend(p)
    where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where_sql, params


def build_order_by(sort_keys: Sequence[Any]) -> str:
    return ", ".join(
        f"{quote_ident(key.column)} {'ASC' if key.ascending else 'DESC'}"
        for key in sort_keys
    )


def aggregate_function(function: Any) -> str:
    name = function.strip().upper() if isinstance(function, str) else ""
    if name not in AGGREGATE_FUNCTIONS:
        raise InvalidArgument(f"Unsupported aggregation function: {function}")
    return AGGREGATE_FUNCTIONS[name]


def is_numeric_type(declared_type: str) -> bool:
    upper = declared_type.upper()
    return any(marker in upper for marker in NUMERIC_TYPE_MARKERS)


def aggregate_call(function: Any, column: str) -> str:
    """``FN("column")``, or ``COUNT(*)`` when the column is ``*``."""
    sql_function = aggregate_function(function)
    if column == "*":
        if sql_function != "COUNT":
            raise InvalidArgument("Only COUNT accepts '*' as its column")
        return f"{sql_function}(*)"
    return f"{sql_function}({quote_ident(column)})"
