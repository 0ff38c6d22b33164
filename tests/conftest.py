"""Shared fixtures: in-memory stand-ins for the sheet and amoCRM."""

from __future__ import annotations

from typing import Any

import pytest

from paysync.errors import TransientError
from paysync.queue.models import COLUMNS, FIRST_DATA_ROW, QueueRecord
from paysync.settings import SyncConfig


PIPELINE_ID = 100
OTHER_PIPELINE_ID = 200
STATUS_PREPAY = 11
STATUS_FULLPAY = 12
FIELD_PREPAY = 901
FIELD_FULLPAY = 902
FIELD_PAYMENT_TYPE = 903
FIELD_PAYMENT_DATE = 904
ENUM_PREPAYMENT = 5001
ENUM_FULL = 5002


class FakeSheetQueue:
    """List-of-rows sheet with the same interface as SheetQueue."""

    def __init__(self, rows: list[list[str]] | None = None) -> None:
        self.rows: list[list[str]] = [list(r) for r in rows or []]
        self.cell_writes: list[tuple[int, str, str]] = []
        self.fail_reads = False
        self.fail_writes = False

    def read_all(self) -> list[QueueRecord]:
        if self.fail_reads:
            raise TransientError("sheet unreachable")
        return [
            QueueRecord.from_row(values, FIRST_DATA_ROW + i)
            for i, values in enumerate(self.rows)
        ]

    def find_row(self, event_id: str) -> int | None:
        for i, values in enumerate(self.rows):
            if values and values[0] == event_id:
                return FIRST_DATA_ROW + i
        return None

    def event_id_at(self, row: int) -> str:
        index = row - FIRST_DATA_ROW
        if 0 <= index < len(self.rows) and self.rows[index]:
            return self.rows[index][0]
        return ""

    def append_row(self, values: list[str]) -> None:
        self.rows.append(list(values))

    def append(self, record: QueueRecord) -> None:
        self.append_row(record.to_row())

    def update_cell(self, row: int, column: str, value: str) -> None:
        if self.fail_writes:
            raise TransientError("sheet unreachable")
        values = self.rows[row - FIRST_DATA_ROW]
        values += [""] * (len(COLUMNS) - len(values))
        values[COLUMNS.index(column)] = value
        self.cell_writes.append((row, column, value))

    def cell(self, row: int, column: str) -> str:
        values = self.rows[row - FIRST_DATA_ROW]
        index = COLUMNS.index(column)
        return values[index] if index < len(values) else ""


class FakeAmoClient:
    """amoCRM stand-in with fuzzy contact search and stored leads."""

    def __init__(self) -> None:
        self.contacts: list[dict[str, Any]] = []
        self.leads: dict[int, dict[str, Any]] = {}
        self.updates: list[tuple[int, dict[str, Any]]] = []
        self.search_calls: list[str] = []
        self.fail_update_with: Exception | None = None
        self.fail_search_with: Exception | None = None

    def add_contact(self, contact_id: int, phones: list[str], lead_ids: list[int]) -> None:
        self.contacts.append({
            "id": contact_id,
            "custom_fields_values": [{
                "field_code": "PHONE",
                "values": [{"value": p} for p in phones],
            }],
            "_embedded": {"leads": [{"id": lead_id} for lead_id in lead_ids]},
        })

    def add_lead(
        self,
        lead_id: int,
        pipeline_id: int = PIPELINE_ID,
        updated_at: int = 1_700_000_000,
        created_at: int = 1_700_000_000,
    ) -> None:
        self.leads[lead_id] = {
            "id": lead_id,
            "pipeline_id": pipeline_id,
            "status_id": 1,
            "updated_at": updated_at,
            "created_at": created_at,
            "custom_fields_values": [],
        }

    def search_contacts(self, query: str) -> list[dict[str, Any]]:
        self.search_calls.append(query)
        if self.fail_search_with is not None:
            raise self.fail_search_with
        digits = query[-7:]
        hits = []
        for contact in self.contacts:
            raw = " ".join(
                v["value"]
                for f in contact["custom_fields_values"]
                for v in f["values"]
            )
            if digits in "".join(ch for ch in raw if ch.isdigit()):
                hits.append(contact)
        return hits

    def get_leads(self, lead_ids) -> list[dict[str, Any]]:
        return [self.leads[i] for i in lead_ids if i in self.leads]

    def update_lead(self, lead_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        if self.fail_update_with is not None:
            raise self.fail_update_with
        self.updates.append((lead_id, payload))
        lead = self.leads[lead_id]
        lead["status_id"] = payload["status_id"]
        lead["custom_fields_values"] = payload["custom_fields_values"]
        return {"id": lead_id}


def make_row(**overrides: str) -> list[str]:
    """Sheet row with sensible defaults for a new full payment."""
    values = {
        "event_id": "B-1:P-1:payment",
        "client_phone": "77077599609",
        "client_name": "Aidar",
        "booking_id": "B-1",
        "service_name": "Consultation",
        "payment_type": "full",
        "payment_amount": "15000",
        "payment_method": "card",
        "payment_status": "paid",
        "payment_datetime": "2025-03-01T10:00:00+00:00",
        "target_entity_id": "",
        "sync_status": "new",
    }
    values.update(overrides)
    return [values[name] for name in COLUMNS]


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig(
        amo_base_url="https://example.amocrm.ru/api/v4",
        amo_token="token",
        crm_timeout=5,
        pipeline_id=PIPELINE_ID,
        status_prepay=STATUS_PREPAY,
        status_fullpay=STATUS_FULLPAY,
        field_prepay=FIELD_PREPAY,
        field_fullpay=FIELD_FULLPAY,
        field_payment_type=FIELD_PAYMENT_TYPE,
        field_payment_date=FIELD_PAYMENT_DATE,
        payment_type_enums={"prepayment": ENUM_PREPAYMENT, "full": ENUM_FULL},
        spreadsheet_id="sheet-1",
        sheet_name="Payments",
    )


@pytest.fixture
def amo() -> FakeAmoClient:
    return FakeAmoClient()


@pytest.fixture
def sheet() -> FakeSheetQueue:
    return FakeSheetQueue()
