from __future__ import annotations

import math
from pathlib import Path
import sys

from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import app as app_module

client = TestClient(app_module.app)


def _invoke(command: str, **args):
    return client.post(f"/api/commands/{command}", json=args)


def _write_csv(path: Path, text: str) -> str:
    path.write_text(text, encoding="utf-8")
    return str(path)


def _import(path: str, table: str | None = None) -> dict:
    args = {"filePath": path}
    if table:
        args["tableName"] = table
    resp = _invoke("importFile", **args)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_lists_registered_commands() -> None:
    resp = client.get("/api/commands")
    assert resp.status_code == 200
    commands = resp.json()["commands"]
    for name in [
        "importFile",
        "previewFile",
        "queryData",
        "getTableInfo",
        "dropTable",
        "reorderRows",
        "getTableStatistics",
        "aggregateColumn",
        "calculateCorrelation",
        "filterData",
        "createFilteredView",
        "groupAndAggregate",
        "exportToCsv",
        "exportQueryToCsv",
        "exportToExcel",
    ]:
        assert name in commands


def test_import_csv_and_query(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "people.csv", "id,name,age\n1,Ada,36\n2,Lin,28\n")

    payload = _import(path)
    assert payload["success"] is True
    assert payload["tableName"] == "people"
    assert payload["rowsImported"] == 2

    resp = _invoke("queryData", tableName="people")
    assert resp.status_code == 200
    result = resp.json()
    assert result["columns"] == ["id", "name", "age"]
    assert result["rows"] == [[1, "Ada", 36], [2, "Lin", 28]]
    assert result["totalRows"] == 2


def test_import_sanitizes_table_name(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "2024 Sales!.csv", "region,amount\nWest,10\n")
    payload = _import(path)
    assert payload["tableName"] == "2024_Sales"

    info = _invoke("getTableInfo", tableName="2024_Sales").json()
    assert info["rowCount"] == 1
    assert [c["name"] for c in info["columns"]] == ["region", "amount"]
    assert info["columns"][1]["dataType"] == "BIGINT"


def test_import_twice_replaces_table(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "twice.csv", "a,b\n1,x\n2,y\n3,z\n")
    first = _import(path, "twice_t")
    second = _import(path, "twice_t")
    assert first["rowsImported"] == second["rowsImported"] == 3

    info = _invoke("getTableInfo", tableName="twice_t").json()
    assert info["rowCount"] == 3
    assert [c["name"] for c in info["columns"]] == ["a", "b"]


def test_import_rejects_unsupported_format() -> None:
    resp = _invoke("importFile", filePath="a.txt")
    assert resp.status_code == 400
    assert "Unsupported" in resp.json()["detail"]


def test_import_missing_file_keeps_existing_table(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "keepme.csv", "v\n1\n2\n")
    _import(path)

    resp = _invoke("importFile", filePath=str(tmp_path / "missing.csv"), tableName="keepme")
    assert resp.status_code == 400
    assert "File not found" in resp.json()["detail"]
    assert _invoke("getTableInfo", tableName="keepme").json()["rowCount"] == 2


def test_import_emits_progress_events(tmp_path: Path) -> None:
    before = client.get("/api/events").json()["next"]
    path = _write_csv(tmp_path / "progress.csv", "x\n1\n2\n")
    _import(path)

    resp = client.get("/api/events", params={"since": before})
    assert resp.status_code == 200
    events = resp.json()["events"]
    assert events
    assert all(e["event"] == "import-progress" for e in events)
    counts = [e["payload"]["rowsImported"] for e in events]
    assert counts == sorted(counts)
    last = events[-1]["payload"]
    assert last == {"rowsImported": 2, "totalRows": 2, "status": "Import complete!"}


def test_preview_csv_does_not_create_table(tmp_path: Path) -> None:
    lines = ["k;v"] + [f"{i};val{i}" for i in range(15)]
    path = _write_csv(tmp_path / "preview_only.csv", "\n".join(lines) + "\n")

    resp = _invoke("previewFile", filePath=path, rows=3)
    assert resp.status_code == 200
    preview = resp.json()
    assert preview["columns"] == ["k", "v"]
    assert preview["rows"] == [["0", "val0"], ["1", "val1"], ["2", "val2"]]
    assert preview["totalRows"] == 15

    resp = _invoke("queryData", tableName="preview_only")
    assert resp.status_code == 400


def test_reorder_rows_sorts_table(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "reorder_t.csv", "id,age\n1,30\n2,20\n3,25\n")
    _import(path)

    resp = _invoke(
        "reorderRows",
        tableName="reorder_t",
        sortColumns=[{"column": "age", "ascending": True}],
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Rows reordered by 1 column(s)"}

    rows = _invoke("queryData", tableName="reorder_t").json()["rows"]
    assert [r[1] for r in rows] == [20, 25, 30]
    assert sorted(rows) == [[1, 30], [2, 20], [3, 25]]


def test_reorder_rows_requires_sort_columns() -> None:
    resp = _invoke("reorderRows", tableName="t", sortColumns=[])
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No sort columns specified"


def test_filter_data_returns_matching_rows(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "filter_t.csv", "x\n1\n2\n3\n4\n5\n")
    _import(path)

    resp = _invoke(
        "filterData",
        tableName="filter_t",
        conditions=[{"column": "x", "operator": ">=", "value": 3}],
    )
    assert resp.status_code == 200
    assert sorted(r[0] for r in resp.json()["rows"]) == [3, 4, 5]


def test_filter_data_windows_cover_all_matches(tmp_path: Path) -> None:
    body = "\n".join(str(i) for i in range(1, 21))
    path = _write_csv(tmp_path / "window_t.csv", f"n\n{body}\n")
    _import(path)

    conditions = [
        {"column": "n", "operator": ">", "value": 4},
        {"column": "n", "operator": "<=", "value": 17},
    ]
    seen: list[int] = []
    for offset in range(0, 20, 5):
        resp = _invoke(
            "filterData", tableName="window_t", conditions=conditions, limit=5, offset=offset
        )
        assert resp.status_code == 200
        seen.extend(r[0] for r in resp.json()["rows"])
    assert sorted(seen) == list(range(5, 18))


def test_filter_rejects_unknown_operator(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "badop_t.csv", "x\n1\n")
    _import(path)
    resp = _invoke(
        "filterData",
        tableName="badop_t",
        conditions=[{"column": "x", "operator": "bogus", "value": 1}],
    )
    assert resp.status_code == 400
    assert "Unsupported operator" in resp.json()["detail"]


def test_table_statistics_numeric(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "stats_t.csv", "x,label\n1,a\n2,b\n3,a\n4,c\n5,a\n")
    _import(path)

    resp = _invoke("getTableStatistics", tableName="stats_t")
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["tableName"] == "stats_t"
    assert stats["totalRows"] == 5
    assert stats["totalColumns"] == 2

    x = next(c for c in stats["columnStats"] if c["name"] == "x")
    assert x["count"] == 5
    assert x["nullCount"] == 0
    assert x["distinctCount"] == 5
    assert x["min"] == "1"
    assert x["max"] == "5"
    assert math.isclose(x["mean"], 3.0)
    assert math.isclose(x["median"], 3.0)
    assert math.isclose(x["stdDev"], math.sqrt(2))
    assert math.isclose(x["variance"], 2.0)
    assert math.isclose(x["q25"], 2.0)
    assert math.isclose(x["q75"], 4.0)

    label = next(c for c in stats["columnStats"] if c["name"] == "label")
    assert label["distinctCount"] == 3
    assert label["min"] == "a"
    assert label["mean"] is None
    assert label["q75"] is None


def test_aggregate_column(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "agg_t.csv", "v\n2\n4\n6\n")
    _import(path)

    total = _invoke("aggregateColumn", tableName="agg_t", columnName="v", function="sum")
    assert total.status_code == 200
    assert total.json() == {"columnName": "v", "function": "SUM", "result": 12}

    avg = _invoke("aggregateColumn", tableName="agg_t", columnName="v", function="AVG")
    assert math.isclose(avg.json()["result"], 4.0)

    bad = _invoke("aggregateColumn", tableName="agg_t", columnName="v", function="median")
    assert bad.status_code == 400
    assert "Unsupported aggregation function" in bad.json()["detail"]

    rows = _invoke("aggregateColumn", tableName="agg_t", columnName="*", function="count")
    assert rows.status_code == 200, rows.text
    assert rows.json() == {"columnName": "*", "function": "COUNT", "result": 3}

    star_sum = _invoke("aggregateColumn", tableName="agg_t", columnName="*", function="SUM")
    assert star_sum.status_code == 400
    assert "Only COUNT" in star_sum.json()["detail"]


def test_calculate_correlation(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "corr_t.csv", "x,y\n1,2\n2,4\n3,6\n4,8\n")
    _import(path)

    resp = _invoke("calculateCorrelation", tableName="corr_t", columnX="x", columnY="y")
    assert resp.status_code == 200
    assert abs(resp.json() - 1.0) < 1e-9


def test_group_and_aggregate(tmp_path: Path) -> None:
    path = _write_csv(
        tmp_path / "group_t.csv",
        "region,amount\nWest,10\nEast,5\nWest,15\nEast,1\n",
    )
    _import(path)

    resp = _invoke(
        "groupAndAggregate",
        tableName="group_t",
        groupByColumns=["region"],
        aggregations=[
            {"column": "amount", "function": "sum", "alias": "total"},
            {"column": "*", "function": "COUNT", "alias": "n"},
        ],
    )
    assert resp.status_code == 200
    result = resp.json()
    assert result["columns"] == ["region", "total", "n"]
    assert sorted(result["rows"]) == [["East", 6, 2], ["West", 25, 2]]


def test_create_filtered_view_is_queryable(tmp_path: Path) -> None:
    path = _write_csv(
        tmp_path / "view_src.csv", "name,score\nO'Brien,3\nAda,9\nLin,7\n"
    )
    _import(path)

    resp = _invoke(
        "createFilteredView",
        sourceTable="view_src",
        viewName="high scores",
        conditions=[
            {"column": "score", "operator": ">", "value": 5},
            {"column": "name", "operator": "IN", "value": ["Ada", "O'Brien"]},
        ],
    )
    assert resp.status_code == 200
    assert resp.json() == "high_scores"

    rows = _invoke("queryData", tableName="high_scores").json()["rows"]
    assert rows == [["Ada", 9]]


def test_drop_table(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "drop_t.csv", "a\n1\n")
    _import(path)

    resp = _invoke("dropTable", tableName="drop_t")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert _invoke("queryData", tableName="drop_t").status_code == 400


def test_export_csv_round_trip(tmp_path: Path) -> None:
    path = _write_csv(
        tmp_path / "roundtrip.csv",
        "id,name,score,flag\n1,Ada,1.5,true\n2,,2.25,false\n3,Lin,,true\n",
    )
    _import(path)
    out_path = str(tmp_path / "exported.csv")

    resp = _invoke("exportToCsv", tableName="roundtrip", filePath=out_path)
    assert resp.status_code == 200
    result = resp.json()
    assert result["success"] is True
    assert result["rowsExported"] == 3
    assert result["filePath"] == out_path

    _import(out_path, "roundtrip_copy")
    original = _invoke("queryData", tableName="roundtrip").json()
    copy = _invoke("queryData", tableName="roundtrip_copy").json()
    assert copy["columns"] == original["columns"]
    assert [[str(v) for v in r] for r in copy["rows"]] == [
        [str(v) for v in r] for r in original["rows"]
    ]


def test_export_query_to_csv_without_header(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "query_src.csv", "x\n1\n2\n3\n")
    _import(path)
    out_path = tmp_path / "query_out.csv"

    resp = _invoke(
        "exportQueryToCsv",
        query='SELECT x * 10 AS y FROM "query_src" WHERE x > 1;',
        filePath=str(out_path),
        includeHeader=False,
    )
    assert resp.status_code == 200
    assert resp.json()["rowsExported"] == 2
    assert out_path.read_text(encoding="utf-8").split() == ["20", "30"]


def test_unknown_command_is_not_found() -> None:
    resp = _invoke("launchMissiles")
    assert resp.status_code == 404
    assert "Unknown command" in resp.json()["detail"]


def test_missing_arguments_are_rejected() -> None:
    resp = _invoke("queryData")
    assert resp.status_code == 400
    assert "Invalid arguments for queryData" in resp.json()["detail"]


def test_quoted_column_is_rejected(tmp_path: Path) -> None:
    path = _write_csv(tmp_path / "quote_t.csv", "a\n1\n")
    _import(path)
    resp = _invoke(
        "aggregateColumn", tableName="quote_t", columnName='a") FROM x; --', function="SUM"
    )
    assert resp.status_code == 400
    assert "double quotes" in resp.json()["detail"]
