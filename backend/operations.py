"""Table browsing and reshaping: windows, sort materialisation, filters, group-by."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from engine import DuckDBEngine
from errors import EngineError, InvalidArgument
from models import AggregationSpec, FilterCondition, SortColumn
from sql import (
    aggregate_call,
    build_order_by,
    build_where,
    quote_ident,
    resolve_name,
)

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 1000


class TableOps:
    def __init__(self, engine: DuckDBEngine, default_limit: int = DEFAULT_LIMIT) -> None:
        self.engine = engine
        self.default_limit = default_limit

    def query_data(
        self, table_name: str, limit: int | None = None, offset: int | None = None
    ) -> dict:
        table_sql = quote_ident(resolve_name(table_name))
        limit, offset = self._window(limit, offset)
        return self.engine.execute_query(
            f"SELECT * FROM {table_sql} LIMIT {limit} OFFSET {offset}"
        )

    def get_table_info(self, table_name: str) -> dict:
        table_sql = quote_ident(resolve_name(table_name))
        with self.engine.query(f"PRAGMA table_info({table_sql})") as cursor:
            columns = [{"name": row[1], "dataType": row[2]} for row in cursor]
        row_count = self.engine.count_rows(table_sql)
        return {"columns": columns, "rowCount": row_count}

    def drop_table(self, table_name: str) -> dict:
        table = resolve_name(table_name)
        self.engine.execute(f"DROP TABLE IF EXISTS {quote_ident(table)}")
        logger.info(f"[TABLE] Dropped {table}")
        return {"success": True}

    def reorder_rows(self, table_name: str, sort_columns: Sequence[SortColumn]) -> dict:
        if not sort_columns:
            raise InvalidArgument("No sort columns specified")

        table = resolve_name(table_name)
        table_sql = quote_ident(table)
        temp_sql = quote_ident(f"{table}_sorted_temp")
        order_sql = build_order_by(sort_columns)

        self.engine.execute(f"DROP TABLE IF EXISTS {temp_sql}")
        self._step(
            "Failed to create sorted table",
            f"CREATE TABLE {temp_sql} AS SELECT * FROM {table_sql} ORDER BY {order_sql}",
        )
        self._step("Failed to drop original table", f"DROP TABLE {table_sql}")
        self._step(
            "Failed to rename table", f"ALTER TABLE {temp_sql} RENAME TO {table_sql}"
        )

        logger.info(f"[TABLE] Reordered {table} by {order_sql}")
        return {
            "success": True,
            "message": f"Rows reordered by {len(sort_columns)} column(s)",
        }

    def filter_data(
        self,
        table_name: str,
        conditions: Sequence[FilterCondition],
        limit: int | None = None,
        offset: int | None = None,
    ) -> dict:
        table_sql = quote_ident(resolve_name(table_name))
        where_sql, params = build_where(conditions)
        limit, offset = self._window(limit, offset)
        return self.engine.execute_query(
            f"SELECT * FROM {table_sql} {where_sql} LIMIT {limit} OFFSET {offset}",
            params,
        )

    def create_filtered_view(
        self,
        source_table: str,
        view_name: str,
        conditions: Sequence[FilterCondition],
    ) -> str:
        source_sql = quote_ident(resolve_name(source_table))
        view = resolve_name(view_name, kind="view")
        view_sql = quote_ident(view)
        # Views cannot carry bound parameters, so values are inlined as literals.
        where_sql, _ = build_where(conditions, inline=True)

        self._step("Failed to drop view", f"DROP VIEW IF EXISTS {view_sql}")
        self._step(
            "Failed to create filtered view",
            f"CREATE VIEW {view_sql} AS SELECT * FROM {source_sql} {where_sql}",
        )
        return view

    def group_and_aggregate(
        self,
        table_name: str,
        group_by: Sequence[str],
        aggregations: Sequence[AggregationSpec],
    ) -> dict:
        table_sql = quote_ident(resolve_name(table_name))
        if not group_by and not aggregations:
            raise InvalidArgument("Specify group-by columns or aggregations")

        group_cols = [quote_ident(c) for c in group_by]
        agg_cols = [self._aggregate_expr(a) for a in aggregations]
        select_sql = ", ".join([*group_cols, *agg_cols])

        sql = f"SELECT {select_sql} FROM {table_sql}"
        if group_cols:
            sql += f" GROUP BY {', '.join(group_cols)}"
        return self.engine.execute_query(sql)

    def _aggregate_expr(self, agg: AggregationSpec) -> str:
        call_sql = aggregate_call(agg.function, agg.column)
        alias = agg.alias if agg.alias and agg.alias.strip() else None
        if alias is None:
            alias = f"{agg.function.strip().lower()}_{agg.column.replace('*', 'all')}"
        return f"{call_sql} AS {quote_ident(alias)}"

    def _window(self, limit: int | None, offset: int | None) -> tuple[int, int]:
        limit = self.default_limit if limit is None else int(limit)
        offset = 0 if offset is None else int(offset)
        if limit < 0 or offset < 0:
            raise InvalidArgument("limit and offset must be non-negative")
        return limit, offset

    def _step(self, label: str, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self.engine.execute(sql, params)
        except EngineError as e:
            raise EngineError(f"{label}: {e}") from e
