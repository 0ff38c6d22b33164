"""Translate a queue record into an amoCRM lead update."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from paysync.errors import MappingError, UnsupportedPaymentType
from paysync.queue.models import PaymentType, QueueRecord
from paysync.settings import SyncConfig


@dataclass
class LeadUpdate:
    status_id: int
    pipeline_id: int
    custom_fields: List[Dict[str, Any]] = field(default_factory=list)

    def field_value(self, field_id: int) -> Optional[Dict[str, Any]]:
        """First value entry set for `field_id`, if any."""
        for item in self.custom_fields:
            if item["field_id"] == field_id:
                return item["values"][0]
        return None

    def to_payload(self) -> Dict[str, Any]:
        """Body for PATCH /api/v4/leads/{id}."""
        return {
            "status_id": self.status_id,
            "pipeline_id": self.pipeline_id,
            "custom_fields_values": self.custom_fields,
        }


def parse_amount(raw: str) -> Decimal:
    """Parse a sheet amount such as '7000', '7 000' or '7000,50'."""
    cleaned = str(raw).replace("\u00a0", "").replace(" ", "").replace(",", ".")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise MappingError(f"Invalid payment amount: {raw!r}")
    if not amount.is_finite() or amount < 0:
        raise MappingError(f"Invalid payment amount: {raw!r}")
    return amount


def to_number(amount: Decimal) -> Union[int, float]:
    """JSON-friendly number; whole amounts stay integers."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def parse_timestamp(raw: str) -> int:
    """
    Convert an ISO-8601 string or epoch seconds to unix seconds.

    Naive ISO values are taken as UTC.
    """
    value = str(raw).strip()
    if value.isdigit():
        return int(value)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise MappingError(f"Invalid payment datetime: {raw!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def build_lead_update(record: QueueRecord, config: SyncConfig) -> LeadUpdate:
    """
    Compute the status and custom field values for a record's lead.

    Raises:
        UnsupportedPaymentType: payment_type is not prepayment/full.
        MappingError: amount or datetime cannot be parsed.
    """
    payment_type = record.payment_type
    if payment_type == PaymentType.PREPAYMENT:
        status_id, amount_field = config.status_prepay, config.field_prepay
    elif payment_type == PaymentType.FULL:
        status_id, amount_field = config.status_fullpay, config.field_fullpay
    else:
        raise UnsupportedPaymentType(payment_type)

    amount = parse_amount(record.payment_amount)
    fields = [
        {"field_id": amount_field, "values": [{"value": to_number(amount)}]},
        {"field_id": config.field_payment_type, "values": [{"enum_id": config.payment_type_enums[payment_type]}]},
    ]
    if record.payment_datetime:
        fields.append({
            "field_id": config.field_payment_date,
            "values": [{"value": parse_timestamp(record.payment_datetime)}],
        })

    return LeadUpdate(status_id=status_id, pipeline_id=config.pipeline_id, custom_fields=fields)
