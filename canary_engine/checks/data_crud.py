"""Data CRUD lifecycle check.

Creates a table, inserts, lists, reads, updates and deletes a row, then
drops the table.  The table name is fixed so a leftover from a previous
failed run is dropped before starting.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from canary_engine.base import LifecycleCheck, StepRecorder
from canary_engine.http import AuthMode, HttpExecutor
from canary_engine.steps import contains_id, expect_object, extract_list, pass_step

TABLE_NAME = "canary_birds"
TABLE_PATH = f"/v1/{TABLE_NAME}"
META_PATH = f"/v1/_meta/tables/{TABLE_NAME}"

TABLE_SCHEMA: dict[str, Any] = {
    "columns": [
        {"name": "species", "type": "text"},
        {"name": "spotted_at", "type": "timestamptz"},
        {"name": "count", "type": "integer"},
    ],
}


def _make_record() -> dict[str, Any]:
    return {
        "species": "Canary",
        "spotted_at": datetime.now(UTC).isoformat(),
        "count": 1,
    }


def _check_row(body: Any, record_id: str) -> str | None:
    obj = expect_object(body)
    if obj is None:
        return "Response is not an object"
    if str(obj.get("id")) != record_id:
        return f"ID mismatch: expected {record_id}, got {obj.get('id')}"
    if obj.get("species") != "Canary":
        return f'species mismatch: expected "Canary", got "{obj.get("species")}"'
    return None


def _check_count(body: Any) -> str | None:
    obj = expect_object(body)
    if obj is None:
        return "Response is not an object"
    try:
        count = int(obj.get("count"))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        count = None
    if count != 2:
        return f"count expected 2, got {obj.get('count')}"
    return None


class DataCrudCheck(LifecycleCheck):
    """Full table + row lifecycle through the data API."""

    @property
    def name(self) -> str:
        return "data-crud"

    async def run_steps(self, http: HttpExecutor, recorder: StepRecorder) -> str | None:
        # Drop a table left behind by a previous failed run.
        pre_clean = await http.delete(META_PATH, AuthMode.BEARER)
        if pre_clean.succeeded(200, 204):
            recorder.add(
                pass_step(
                    f"pre-cleanup: DROP {TABLE_NAME} (existed from previous run)",
                    "Stale table cleaned up",
                    pre_clean.duration_ms,
                )
            )

        create = await http.put(META_PATH, TABLE_SCHEMA, AuthMode.BEARER)
        recorder.record(f"PUT _meta/tables/{TABLE_NAME} (create table)", create, [200, 201])
        if not create.succeeded(200, 201):
            return "Cannot proceed without table"

        def _capture_id(body: Any) -> str | None:
            obj = expect_object(body)
            if obj is None:
                return "Response is not an object"
            if not obj.get("id"):
                return "Response missing 'id' field"
            recorder.created["record"] = str(obj["id"])
            return None

        insert = await http.post(TABLE_PATH, _make_record(), AuthMode.BEARER)
        recorder.record(f"POST {TABLE_PATH} (insert record)", insert, [200, 201], _capture_id)
        record_id = recorder.created.get("record")
        if record_id is None:
            return "Cannot proceed without record"
        row_path = f"{TABLE_PATH}/{record_id}"

        def _listed(body: Any) -> str | None:
            items, violation = extract_list(body, allow_empty=False)
            if items is None:
                return violation
            return None if contains_id(items, record_id) else f"Record {record_id} not found in list"

        listing = await http.get(TABLE_PATH, AuthMode.BEARER)
        recorder.record(f"GET {TABLE_PATH} (list records)", listing, 200, _listed)

        fetched = await http.get(row_path, AuthMode.BEARER)
        recorder.record(
            f"GET {row_path} (get by ID)", fetched, 200, lambda body: _check_row(body, record_id)
        )

        patched = await http.patch(row_path, {"count": 2}, AuthMode.BEARER)
        recorder.record(f"PATCH {row_path} (update count)", patched, 200)

        verified = await http.get(row_path, AuthMode.BEARER)
        recorder.record(f"GET {row_path} (verify update)", verified, 200, _check_count)

        deleted = await http.delete(row_path, AuthMode.BEARER)
        recorder.record(f"DELETE {row_path} (delete record)", deleted, [200, 204])
        return None

    async def cleanup(self, http: HttpExecutor, recorder: StepRecorder) -> None:
        await recorder.cleanup(
            f"DELETE _meta/tables/{TABLE_NAME} (drop table)",
            lambda: http.delete(META_PATH, AuthMode.BEARER),
            [200, 204, 404],
        )
