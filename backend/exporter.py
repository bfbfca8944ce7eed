"""CSV export through DuckDB COPY, spreadsheet export through openpyxl."""

from __future__ import annotations

import logging

from openpyxl import Workbook

from codec import to_sheet_cell
from engine import DuckDBEngine
from errors import InvalidArgument, IoError
from sql import quote_ident, resolve_name

logger = logging.getLogger(__name__)


def _export_result(file_path: str, rows_exported: int, kind: str) -> dict:
    return {
        "success": True,
        "message": f"Successfully exported {rows_exported} rows to {kind}",
        "filePath": file_path,
        "rowsExported": rows_exported,
    }


def _clean_query(query: str) -> str:
    cleaned = query.strip().rstrip(";").strip()
    if not cleaned:
        raise InvalidArgument("Export query is empty")
    return cleaned


class Exporter:
    def __init__(self, engine: DuckDBEngine) -> None:
        self.engine = engine

    def export_to_csv(
        self, table_name: str, file_path: str, include_header: bool = True
    ) -> dict:
        table_sql = quote_ident(resolve_name(table_name))
        self.engine.copy_to_csv(f"SELECT * FROM {table_sql}", file_path, include_header)
        rows_exported = self.engine.count_rows(table_sql)
        logger.info(f"[EXPORT] {table_sql}: {rows_exported} rows -> {file_path}")
        return _export_result(file_path, rows_exported, "CSV")

    def export_query_to_csv(
        self, query: str, file_path: str, include_header: bool = True
    ) -> dict:
        select_sql = _clean_query(query)
        self.engine.copy_to_csv(select_sql, file_path, include_header)
        rows_exported = self.engine.count_rows(f"({select_sql})")
        logger.info(f"[EXPORT] query: {rows_exported} rows -> {file_path}")
        return _export_result(file_path, rows_exported, "CSV")

    def export_to_excel(
        self, table_name: str, file_path: str, sheet_name: str = "Data"
    ) -> dict:
        table_sql = quote_ident(resolve_name(table_name))
        result = self.engine.execute_query(f"SELECT * FROM {table_sql}")

        workbook = Workbook(write_only=True)
        try:
            worksheet = workbook.create_sheet(title=sheet_name or "Data")
        except ValueError as e:
            raise InvalidArgument(f"Invalid sheet name {sheet_name!r}: {e}") from e

        worksheet.append(result["columns"])
        for row in result["rows"]:
            worksheet.append([to_sheet_cell(v) for v in row])

        try:
            workbook.save(file_path)
        except OSError as e:
            raise IoError(f"Failed to save workbook: {e}") from e

        rows_exported = result["totalRows"]
        logger.info(f"[EXPORT] {table_sql}: {rows_exported} rows -> {file_path}")
        return _export_result(file_path, rows_exported, "Excel")
