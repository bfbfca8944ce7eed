"""Session coordinator: one engine handle behind one lock, RPC-style commands.

Every command that touches the engine holds the session lock for its whole
duration, so statements never interleave. Progress events are the only thing
that leaves a command while it runs; they go to the caller's sink and any
failure there is logged and dropped.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

import models
from config import Settings, settings as default_settings
from engine import DuckDBEngine
from errors import EngineError, InternalError, InvalidArgument, NotFoundError, WorkbenchError
from events import IMPORT_PROGRESS
from exporter import Exporter
from importer import Importer, ProgressCallback, preview_file
from operations import TableOps
from profiling import Profiler

logger = logging.getLogger(__name__)

EventSink = Callable[[str, dict], None]


@dataclass(frozen=True)
class Command:
    args: type[models.Args]
    handler: Callable[["Session", Any, "ProgressCallback | None"], Any]
    error_label: str | None = None
    needs_engine: bool = True


class Session:
    def __init__(self, settings: Settings | None = None) -> None:
        cfg = settings or default_settings
        self._lock = threading.Lock()
        self.engine = DuckDBEngine(memory_limit=cfg.MEMORY_LIMIT, threads=cfg.THREADS)
        self.importer = Importer(self.engine, batch_size=cfg.IMPORT_BATCH_SIZE)
        self.tables = TableOps(self.engine, default_limit=cfg.QUERY_LIMIT)
        self.profiler = Profiler(self.engine)
        self.exporter = Exporter(self.engine)
        self.preview_rows = cfg.PREVIEW_ROWS

    def invoke(
        self, command: str, args: dict | None = None, sink: EventSink | None = None
    ) -> Any:
        cmd = COMMANDS.get(command)
        if cmd is None:
            raise NotFoundError(f"Unknown command: {command}")

        try:
            parsed = cmd.args.model_validate(args or {})
        except ValidationError as e:
            raise InvalidArgument(f"Invalid arguments for {command}: {e}") from e

        progress = self._progress_callback(sink)
        logger.debug(f"[SESSION] {command}")
        try:
            if not cmd.needs_engine:
                return cmd.handler(self, parsed, progress)
            with self._lock:
                if self.engine.closed:
                    raise InternalError("Session is closed")
                return cmd.handler(self, parsed, progress)
        except EngineError as e:
            logger.warning(f"[SESSION] {command} failed: {e}")
            if cmd.error_label:
                raise EngineError(f"{cmd.error_label}: {e}") from e
            raise
        except WorkbenchError as e:
            logger.warning(f"[SESSION] {command} failed: {e}")
            raise

    def close(self) -> None:
        with self._lock:
            self.engine.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _progress_callback(self, sink: EventSink | None) -> ProgressCallback | None:
        if sink is None:
            return None

        def emit(rows_imported: int, total_rows: int | None, status: str) -> None:
            payload = {
                "rowsImported": rows_imported,
                "totalRows": total_rows,
                "status": status,
            }
            try:
                sink(IMPORT_PROGRESS, payload)
            except Exception as e:
                logger.warning(f"[SESSION] Dropped progress event: {e}")

        return emit


# ── command handlers ──


def _import_file(s: Session, a: models.ImportFileArgs, progress):
    return s.importer.import_file(a.filePath, a.tableName, progress)


def _preview_file(s: Session, a: models.PreviewFileArgs, _):
    return preview_file(a.filePath, s.preview_rows if a.rows is None else a.rows)


def _query_data(s: Session, a: models.QueryDataArgs, _):
    return s.tables.query_data(a.tableName, a.limit, a.offset)


def _get_table_info(s: Session, a: models.TableArgs, _):
    return s.tables.get_table_info(a.tableName)


def _drop_table(s: Session, a: models.TableArgs, _):
    return s.tables.drop_table(a.tableName)


def _reorder_rows(s: Session, a: models.ReorderRowsArgs, _):
    return s.tables.reorder_rows(a.tableName, a.sortColumns)


def _get_table_statistics(s: Session, a: models.TableArgs, _):
    return s.profiler.get_table_statistics(a.tableName)


def _aggregate_column(s: Session, a: models.AggregateColumnArgs, _):
    return s.profiler.aggregate_column(a.tableName, a.columnName, a.function)


def _calculate_correlation(s: Session, a: models.CorrelationArgs, _):
    return s.profiler.calculate_correlation(a.tableName, a.columnX, a.columnY)


def _filter_data(s: Session, a: models.FilterDataArgs, _):
    return s.tables.filter_data(a.tableName, a.conditions, a.limit, a.offset)


def _create_filtered_view(s: Session, a: models.CreateFilteredViewArgs, _):
    return s.tables.create_filtered_view(a.sourceTable, a.viewName, a.conditions)


def _group_and_aggregate(s: Session, a: models.GroupAndAggregateArgs, _):
    return s.tables.group_and_aggregate(a.tableName, a.groupByColumns, a.aggregations)


def _export_to_csv(s: Session, a: models.ExportCsvArgs, _):
    return s.exporter.export_to_csv(a.tableName, a.filePath, a.includeHeader)


def _export_query_to_csv(s: Session, a: models.ExportQueryCsvArgs, _):
    return s.exporter.export_query_to_csv(a.query, a.filePath, a.includeHeader)


def _export_to_excel(s: Session, a: models.ExportExcelArgs, _):
    return s.exporter.export_to_excel(a.tableName, a.filePath, a.sheetName)


COMMANDS: dict[str, Command] = {
    "importFile": Command(models.ImportFileArgs, _import_file, "Import error"),
    "previewFile": Command(models.PreviewFileArgs, _preview_file, needs_engine=False),
    "queryData": Command(models.QueryDataArgs, _query_data, "Query error"),
    "getTableInfo": Command(models.TableArgs, _get_table_info, "Failed to get table info"),
    "dropTable": Command(models.TableArgs, _drop_table, "Failed to drop table"),
    "reorderRows": Command(models.ReorderRowsArgs, _reorder_rows),
    "getTableStatistics": Command(models.TableArgs, _get_table_statistics, "Statistics error"),
    "aggregateColumn": Command(models.AggregateColumnArgs, _aggregate_column, "Aggregation error"),
    "calculateCorrelation": Command(models.CorrelationArgs, _calculate_correlation, "Correlation error"),
    "filterData": Command(models.FilterDataArgs, _filter_data, "Filter error"),
    "createFilteredView": Command(models.CreateFilteredViewArgs, _create_filtered_view),
    "groupAndAggregate": Command(models.GroupAndAggregateArgs, _group_and_aggregate, "Aggregation error"),
    "exportToCsv": Command(models.ExportCsvArgs, _export_to_csv, "Export error"),
    "exportQueryToCsv": Command(models.ExportQueryCsvArgs, _export_query_to_csv, "Export error"),
    "exportToExcel": Command(models.ExportExcelArgs, _export_to_excel, "Query error"),
}
