"""Error taxonomy shared by the engine, the pipelines and the host."""

from __future__ import annotations


class WorkbenchError(Exception):
    status_code = 400


class IoError(WorkbenchError):
    pass


class UnsupportedFormatError(WorkbenchError):
    def __init__(self, detail: str = "") -> None:
        message = "Unsupported file format"
        super().__init__(f"{message}: {detail}" if detail else message)


class ParseError(WorkbenchError):
    pass


class EngineError(WorkbenchError):
    pass


class NoRowsError(EngineError):
    def __init__(self, sql: str = "") -> None:
        super().__init__("Query returned no rows")
        self.sql = sql


class InvalidArgument(WorkbenchError, ValueError):
    pass


class NotFoundError(WorkbenchError):
    status_code = 404


class InternalError(WorkbenchError):
    status_code = 500
