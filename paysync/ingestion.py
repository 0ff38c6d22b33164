"""Validate inbound booking/payment webhooks and enqueue them once."""
import threading
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from paysync.errors import ValidationError
from paysync.logging_conf import logger
from paysync.phone import normalize_phone
from paysync.queue.models import PaymentType, QueueRecord, SyncStatus
from paysync.queue.sheet_queue import SheetQueue

STATUS_OK = "ok"
STATUS_DUPLICATE = "duplicate"


@dataclass(frozen=True)
class PaymentEvent:
    """A parsed, validated payment event."""

    event_id: str
    booking_id: str
    client_phone: str
    client_name: str
    service_name: str
    payment_type: str
    payment_amount: Optional[Decimal]
    payment_method: str
    payment_status: str
    payment_datetime: str

    def to_record(self) -> QueueRecord:
        return QueueRecord(
            event_id=self.event_id,
            client_phone=self.client_phone,
            client_name=self.client_name,
            booking_id=self.booking_id,
            service_name=self.service_name,
            payment_type=self.payment_type,
            payment_amount="" if self.payment_amount is None else str(self.payment_amount),
            payment_method=self.payment_method,
            payment_status=self.payment_status,
            payment_datetime=self.payment_datetime,
            sync_status=SyncStatus.NEW,
        )


@dataclass(frozen=True)
class IngestResult:
    status: str
    event_id: str


def _first(data: Dict[str, Any], *keys: str) -> Any:
    """First non-empty value among `keys`."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _decimal(value: Any, name: str) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        number = Decimal(str(value).replace(",", ".").replace(" ", ""))
    except InvalidOperation:
        raise ValidationError(f"{name} is not a number: {value!r}")
    if not number.is_finite():
        raise ValidationError(f"{name} is not a number: {value!r}")
    return number


def classify_payment(amount: Optional[Decimal], total: Optional[Decimal]) -> str:
    """'full' when the paid amount covers a known total, else 'prepayment'."""
    if total is not None and amount is not None and amount >= total:
        return PaymentType.FULL
    return PaymentType.PREPAYMENT


def make_event_id(booking_id: str, payment_key: str, kind: str) -> str:
    """Stable id built only from immutable source fields."""
    return f"{booking_id}:{payment_key or '-'}:{kind}"


def payment_key(payment_id: str, amount: Optional[Decimal], paid_at: str) -> str:
    """
    Identify one payment within a booking.

    Without a source payment id, the paid amount and payment time stand in
    for it, so two payments on one booking never share an event id.
    """
    if payment_id:
        return payment_id
    parts = []
    if amount is not None:
        parts.append(format(amount.normalize(), "f"))
    if paid_at:
        parts.append(paid_at)
    return "@".join(parts)


def _services(data: Dict[str, Any]):
    services = data.get("services") or []
    if isinstance(services, dict):
        services = [services]
    return [s for s in services if isinstance(s, dict)]


def parse_event(payload: Any) -> PaymentEvent:
    """
    Turn a raw webhook document into a PaymentEvent.

    Accepts the booking platform's envelope (`resource`, `event`/`status`,
    `data`) as well as a flat document carrying the same keys.

    Raises:
        ValidationError: not an object, no booking id, no usable phone,
            or nothing that identifies the payment.
    """
    if not isinstance(payload, dict):
        raise ValidationError("payload must be a JSON object")

    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    client = data.get("client") if isinstance(data.get("client"), dict) else {}
    payment = data.get("payment") if isinstance(data.get("payment"), dict) else {}

    booking_id = _text(_first(data, "booking_id", "record_id", "id"))
    if not booking_id:
        raise ValidationError("booking id is missing")

    phone = normalize_phone(_first(client, "phone") or _first(data, "client_phone", "phone"))
    if not phone:
        raise ValidationError("client phone is missing or invalid")

    payment_id = _text(
        _first(payment, "id", "transaction_id") or _first(data, "payment_id", "transaction_id")
    )
    kind = _text(_first(payload, "event", "resource") or "payment")
    status = _text(_first(payload, "status"))
    if status:
        kind = f"{kind}.{status}"

    amount = _decimal(_first(payment, "amount") or _first(data, "payment_amount", "amount", "paid_sum"), "amount")
    total = _decimal(_first(data, "total", "cost", "total_cost"), "total")
    services = _services(data)
    if total is None and services:
        costs = [_decimal(s.get("cost"), "service cost") for s in services]
        if all(cost is not None for cost in costs):
            total = sum(costs, Decimal(0))

    paid_at = _text(
        _first(payment, "paid_at", "date") or _first(data, "payment_datetime", "paid_at", "date")
    )
    key = payment_key(payment_id, amount, paid_at)
    if not key:
        raise ValidationError("payment has no id, amount or date")

    service_name = _text(_first(data, "service_name")) or ", ".join(
        _text(s.get("title")) for s in services if s.get("title")
    )

    return PaymentEvent(
        event_id=make_event_id(booking_id, key, kind),
        booking_id=booking_id,
        client_phone=phone,
        client_name=_text(_first(client, "name") or _first(data, "client_name")),
        service_name=service_name,
        payment_type=classify_payment(amount, total),
        payment_amount=amount,
        payment_method=_text(_first(payment, "method") or _first(data, "payment_method")),
        payment_status=_text(_first(payment, "status") or _first(data, "payment_status")),
        payment_datetime=paid_at,
    )


class Ingestor:
    """Appends each distinct event to the queue exactly once."""

    def __init__(self, queue: SheetQueue):
        self.queue = queue
        self._lock = threading.Lock()

    def ingest(self, payload: Any) -> IngestResult:
        """
        Validate and enqueue one webhook delivery.

        Raises:
            ValidationError: payload rejected, nothing written.
            TransientError: sheet unreachable, the sender should redeliver.
        """
        event = parse_event(payload)

        with self._lock:
            existing = self.queue.find_row(event.event_id)
            if existing is not None:
                logger.info(f"Duplicate event {event.event_id} (row {existing})")
                return IngestResult(status=STATUS_DUPLICATE, event_id=event.event_id)
            self.queue.append(event.to_record())

        logger.info(
            f"Queued {event.event_id}: {event.payment_type} {event.payment_amount} for {event.client_phone}"
        )
        return IngestResult(status=STATUS_OK, event_id=event.event_id)
