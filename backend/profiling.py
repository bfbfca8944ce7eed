"""Column statistics, single-column aggregates and correlation."""

from __future__ import annotations

import logging
from typing import Any

from codec import decode_scalar, to_float
from engine import DuckDBEngine
from sql import aggregate_call, is_numeric_type, quote_ident, resolve_name

logger = logging.getLogger(__name__)


class Profiler:
    def __init__(self, engine: DuckDBEngine) -> None:
        self.engine = engine

    def get_table_statistics(self, table_name: str) -> dict:
        table = resolve_name(table_name)
        table_sql = quote_ident(table)

        total_rows = self.engine.count_rows(table_sql)
        with self.engine.query(f"DESCRIBE {table_sql}") as cursor:
            described = [(str(row[0]), str(row[1])) for row in cursor]

        column_stats = [
            self._column_statistics(table_sql, name, data_type)
            for name, data_type in described
        ]
        return {
            "tableName": table,
            "totalRows": total_rows,
            "totalColumns": len(column_stats),
            "columnStats": column_stats,
        }

    def _column_statistics(self, table_sql: str, column: str, data_type: str) -> dict:
        col_sql = quote_ident(column)
        if is_numeric_type(data_type):
            numeric_sql = (
                f"AVG({col_sql}), "
                f"MEDIAN({col_sql}), "
                f"STDDEV_POP({col_sql}), "
                f"VAR_POP({col_sql}), "
                f"PERCENTILE_CONT(0.25) WITHIN GROUP (ORDER BY {col_sql}), "
                f"PERCENTILE_CONT(0.75) WITHIN GROUP (ORDER BY {col_sql})"
            )
        else:
            numeric_sql = "NULL, NULL, NULL, NULL, NULL, NULL"

        row = self.engine.query_row(
            f"SELECT COUNT({col_sql}), "
            f"COUNT(*) - COUNT({col_sql}), "
            f"COUNT(DISTINCT {col_sql}), "
            f"MIN({col_sql})::VARCHAR, "
            f"MAX({col_sql})::VARCHAR, "
            f"{numeric_sql} "
            f"FROM {table_sql}"
        )
        return {
            "name": column,
            "count": int(row[0]),
            "nullCount": int(row[1]),
            "distinctCount": int(row[2]),
            "min": row[3],
            "max": row[4],
            "mean": to_float(row[5]),
            "median": to_float(row[6]),
            "stdDev": to_float(row[7]),
            "variance": to_float(row[8]),
            "q25": to_float(row[9]),
            "q75": to_float(row[10]),
            "dataType": data_type,
        }

    def aggregate_column(self, table_name: str, column_name: str, function: str) -> dict:
        table_sql = quote_ident(resolve_name(table_name))
        call_sql = aggregate_call(function, column_name)
        value = self.engine.query_row(f"SELECT {call_sql} FROM {table_sql}")[0]
        return {
            "columnName": column_name,
            "function": function.strip().upper(),
            "result": decode_scalar(value),
        }

    def calculate_correlation(
        self, table_name: str, column_x: str, column_y: str
    ) -> float | None:
        table_sql = quote_ident(resolve_name(table_name))
        value: Any = self.engine.query_row(
            f"SELECT CORR({quote_ident(column_x)}, {quote_ident(column_y)}) "
            f"FROM {table_sql}"
        )[0]
        return to_float(value)
