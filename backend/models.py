"""Command argument payloads (camelCase, as sent by the front-end)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Args(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FilterCondition(BaseModel):
    column: str
    operator: str
    value: Any = None


class SortColumn(BaseModel):
    column: str
    ascending: bool = True


class AggregationSpec(BaseModel):
    column: str
    function: str
    alias: str | None = None


class ImportFileArgs(Args):
    filePath: str
    tableName: str | None = None


class PreviewFileArgs(Args):
    filePath: str
    rows: int | None = Field(default=None, ge=0)


class QueryDataArgs(Args):
    tableName: str
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)


class TableArgs(Args):
    tableName: str


class ReorderRowsArgs(Args):
    tableName: str
    sortColumns: list[SortColumn] = Field(default_factory=list)


class AggregateColumnArgs(Args):
    tableName: str
    columnName: str
    function: str


class CorrelationArgs(Args):
    tableName: str
    columnX: str
    columnY: str


class FilterDataArgs(Args):
    tableName: str
    conditions: list[FilterCondition] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)


class CreateFilteredViewArgs(Args):
    sourceTable: str
    viewName: str
    conditions: list[FilterCondition] = Field(default_factory=list)


class GroupAndAggregateArgs(Args):
    tableName: str
    groupByColumns: list[str] = Field(default_factory=list)
    aggregations: list[AggregationSpec] = Field(default_factory=list)


class ExportCsvArgs(Args):
    tableName: str
    filePath: str
    includeHeader: bool = True


class ExportQueryCsvArgs(Args):
    query: str
    filePath: str
    includeHeader: bool = True


class ExportExcelArgs(Args):
    tableName: str
    filePath: str
    sheetName: str = "Data"
