"""Queue data models."""
from dataclasses import dataclass
from typing import List, Optional

# Sheet column order (A..L)
COLUMNS = [
    "event_id",
    "client_phone",
    "client_name",
    "booking_id",
    "service_name",
    "payment_type",
    "payment_amount",
    "payment_method",
    "payment_status",
    "payment_datetime",
    "target_entity_id",
    "sync_status",
]

# First data row; row 1 holds the headers
FIRST_DATA_ROW = 2


class SyncStatus:
    NEW = "new"
    SENT = "sent"
    NOT_FOUND = "not_found"
    ERROR = "error"

    TERMINAL = frozenset({SENT, NOT_FOUND, ERROR})


class PaymentType:
    PREPAYMENT = "prepayment"
    FULL = "full"


def column_letter(column: str) -> str:
    """Sheet column letter for a queue column name."""
    index = COLUMNS.index(column)
    return chr(ord("A") + index)


@dataclass
class QueueRecord:
    """One row of the payments sheet."""

    event_id: str
    client_phone: str = ""
    client_name: str = ""
    booking_id: str = ""
    service_name: str = ""
    payment_type: str = ""
    payment_amount: str = ""
    payment_method: str = ""
    payment_status: str = ""
    payment_datetime: str = ""
    target_entity_id: str = ""
    sync_status: str = SyncStatus.NEW
    row_number: Optional[int] = None  # 1-based sheet row, None until stored

    @classmethod
    def from_row(cls, values: List[str], row_number: int) -> "QueueRecord":
        """Build a record from raw sheet cells; short rows are padded."""
        cells = [str(v).strip() if v is not None else "" for v in values]
        cells += [""] * (len(COLUMNS) - len(cells))
        data = dict(zip(COLUMNS, cells))
        # Blank status means nobody has touched the row yet
        data["sync_status"] = data["sync_status"] or SyncStatus.NEW
        return cls(row_number=row_number, **data)

    def to_row(self) -> List[str]:
        """Cell values in sheet column order."""
        return [getattr(self, name) for name in COLUMNS]

    @property
    def is_new(self) -> bool:
        return self.sync_status == SyncStatus.NEW

