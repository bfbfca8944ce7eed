"""File ingest: CSV through DuckDB's reader, spreadsheets row by row, plus previews."""

from __future__ import annotations

import csv
import logging
import math
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Callable, Optional

import pandas as pd

from engine import DuckDBEngine
from errors import EngineError, IoError, ParseError, UnsupportedFormatError
from sql import header_names, quote_ident, sanitize_name

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int], str], None]

SUPPORTED_SUFFIX: dict[str, str] = {
    ".csv": "csv",
    ".xls": "excel",
    ".xlsx": "excel",
    ".xlsm": "excel",
    ".xlsb": "excel",
}

SNIFF_DELIMITERS = ",;\t|"
SNIFF_BYTES = 4096


def detect_format(path: Path) -> str:
    suffix = path.suffix.lower()
    file_format = SUPPORTED_SUFFIX.get(suffix)
    if not file_format:
        raise UnsupportedFormatError(suffix or path.name)
    return file_format


def cell_text(value: Any) -> str | None:
    """Render a spreadsheet cell the way it is stored: text, or None when blank."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    text = str(value)
    return text if text else None


def read_first_sheet(path: Path) -> pd.DataFrame:
    """Load the first worksheet with every cell kept as a raw Python object."""
    try:
        workbook = pd.ExcelFile(path)
    except OSError as e:
        raise IoError(f"Failed to open workbook: {e}") from e
    except Exception as e:
        raise ParseError(f"Excel error: {e}") from e

    with workbook:
        sheet_names = workbook.sheet_names
        if not sheet_names:
            raise ParseError("No sheets found in Excel file")
        try:
            frame = workbook.parse(
                sheet_names[0], header=None, dtype=object, keep_default_na=False
            )
        except Exception as e:
            raise ParseError(f"Failed to read sheet '{sheet_names[0]}': {e}") from e

    frame = _trim_leading_blanks(frame)
    if frame.empty:
        raise ParseError("Empty Excel file")
    return frame


def _trim_leading_blanks(frame: pd.DataFrame) -> pd.DataFrame:
    """Start the used range at the first row and column holding any content."""
    filled = frame.apply(lambda col: col.map(lambda v: cell_text(v) is not None))
    rows = filled.any(axis=1).to_numpy().nonzero()[0]
    cols = filled.any(axis=0).to_numpy().nonzero()[0]
    if len(rows) == 0:
        return frame.iloc[0:0]
    return frame.iloc[rows[0]:, cols[0]:]


def _require_file(path: Path) -> None:
    if not path.is_file():
        raise IoError(f"File not found: {path}")


class Importer:
    def __init__(self, engine: DuckDBEngine, batch_size: int = 1000) -> None:
        self.engine = engine
        self.batch_size = max(1, batch_size)

    def import_file(
        self,
        file_path: str,
        table_name: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> dict:
        path = Path(file_path)
        file_format = detect_format(path)
        table = sanitize_name(table_name if table_name else path.stem)
        emit = progress or (lambda *_: None)

        _require_file(path)
        emit(0, None, "Starting import... Large files may take 1-2 minutes")
        logger.info(f"[IMPORT] {path.name} -> {table} ({file_format})")

        # Spreadsheets are decoded before anything is dropped so a bad
        # workbook leaves the previous table in place.
        frame = read_first_sheet(path) if file_format == "excel" else None

        try:
            self.engine.execute(f"DROP TABLE IF EXISTS {quote_ident(table)}")
        except EngineError as e:
            logger.debug(f"[IMPORT] Suppressed drop failure for {table}: {e}")

        if frame is None:
            rows_imported = self._import_csv(path, table, emit)
        else:
            rows_imported = self._import_spreadsheet(frame, table, emit)

        emit(rows_imported, rows_imported, "Import complete!")
        logger.info(f"[IMPORT] {table}: {rows_imported} rows")
        return {
            "success": True,
            "message": f"Successfully imported {rows_imported} rows",
            "tableName": table,
            "rowsImported": rows_imported,
        }

    def _import_csv(self, path: Path, table: str, emit: ProgressCallback) -> int:
        emit(0, None, "Starting CSV import...")
        self.engine.copy_from_csv(str(path), table)
        return self.engine.count_rows(quote_ident(table))

    def _import_spreadsheet(
        self, frame: pd.DataFrame, table: str, emit: ProgressCallback
    ) -> int:
        headers = header_names(frame.iloc[0].tolist())
        table_sql = quote_ident(table)
        columns_def = ", ".join(f"{quote_ident(h)} VARCHAR" for h in headers)
        self.engine.execute(f"CREATE TABLE {table_sql} ({columns_def})")

        placeholders = ", ".join("?" for _ in headers)
        insert_sql = f"INSERT INTO {table_sql} VALUES ({placeholders})"

        total_rows = 0
        batch: list[list[str | None]] = []
        with self.engine.transaction():
            for values in frame.iloc[1:].itertuples(index=False, name=None):
                batch.append([cell_text(v) for v in values])
                if len(batch) >= self.batch_size:
                    self.engine.execute_many(insert_sql, batch)
                    total_rows += len(batch)
                    batch = []
                    emit(total_rows, None, f"Importing... {total_rows} rows")
            if batch:
                self.engine.execute_many(insert_sql, batch)
                total_rows += len(batch)

        emit(total_rows, total_rows, "Finalizing import...")
        return total_rows


def preview_file(file_path: str, rows: int = 10) -> dict:
    """First ``rows`` data rows of a file as strings; nothing is loaded."""
    path = Path(file_path)
    file_format = detect_format(path)
    _require_file(path)
    if file_format == "csv":
        return _preview_csv(path, rows)
    return _preview_spreadsheet(path, rows)


def _sniff_delimiter(path: Path) -> str:
    with path.open(newline="", encoding="utf-8-sig", errors="replace") as f:
        sample = f.read(SNIFF_BYTES)
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _preview_csv(path: Path, rows: int) -> dict:
    delimiter = _sniff_delimiter(path)
    preview_rows: list[list[str]] = []
    total_rows = 0
    try:
        with path.open(newline="", encoding="utf-8-sig", errors="replace") as f:
            reader = csv.reader(f, delimiter=delimiter)
            try:
                columns = next(reader)
            except StopIteration:
                raise ParseError("Empty CSV file") from None
            for record in reader:
                total_rows += 1
                if len(preview_rows) < rows:
                    preview_rows.append(list(record))
    except csv.Error as e:
        raise ParseError(f"CSV error: {e}") from e
    except OSError as e:
        raise IoError(str(e)) from e

    return {"columns": columns, "rows": preview_rows, "totalRows": total_rows}


def _preview_spreadsheet(path: Path, rows: int) -> dict:
    frame = read_first_sheet(path)
    columns = [cell_text(v) or "" for v in frame.iloc[0].tolist()]
    body = frame.iloc[1:]
    preview_rows = [
        [cell_text(v) or "" for v in values]
        for values in body.head(rows).itertuples(index=False, name=None)
    ]
    return {"columns": columns, "rows": preview_rows, "totalRows": len(body)}
