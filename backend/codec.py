"""Translate DuckDB cell values to wire values and wire values to spreadsheet cells."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


def to_wire(value: Any) -> Any:
    """Map one engine cell to ``None | bool | int | float | str``."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if I64_MIN <= value <= I64_MAX:
            return value
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def row_to_wire(row: tuple) -> list[Any]:
    return [to_wire(v) for v in row]


def to_float(value: Any) -> float | None:
    """Statistics slots: finite floats only."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(n) or math.isinf(n):
        return None
    return n


def decode_scalar(value: Any) -> int | float | str | None:
    """Single aggregate result: integer first, then float, then text."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value if I64_MIN <= value <= I64_MAX else to_float(value)
    if isinstance(value, (float, Decimal)):
        return to_float(value)
    if isinstance(value, str):
        return value
    return None


def to_sheet_cell(value: Any) -> Any:
    """Wire value -> openpyxl cell value (blank, boolean, number or string)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return ILLEGAL_CHARACTERS_RE.sub("", repr(value))
