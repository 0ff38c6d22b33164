"""Reconciliation pass: push new queue rows to their amoCRM leads."""
import threading
from dataclasses import dataclass

from paysync.amo_client import AmoClient
from paysync.errors import SyncError, TransientError, ValidationError
from paysync.field_mapper import build_lead_update
from paysync.logging_conf import logger
from paysync.phone import normalize_phone
from paysync.queue.models import QueueRecord, SyncStatus
from paysync.queue.sheet_queue import SheetQueue
from paysync.resolver import LeadResolver
from paysync.settings import SyncConfig

REQUIRED_FIELDS = ("client_phone", "payment_type", "payment_amount")


@dataclass
class PassSummary:
    processed: int = 0
    sent: int = 0
    not_found: int = 0
    error: int = 0
    skipped: bool = False

    def count(self, status: str) -> None:
        self.processed += 1
        if status == SyncStatus.SENT:
            self.sent += 1
        elif status == SyncStatus.NOT_FOUND:
            self.not_found += 1
        else:
            self.error += 1


class ReconciliationEngine:
    """Processes every `new` row of the queue, one row at a time."""

    def __init__(self, queue: SheetQueue, client: AmoClient, resolver: LeadResolver, config: SyncConfig):
        self.queue = queue
        self.client = client
        self.resolver = resolver
        self.config = config
        self._pass_lock = threading.Lock()

    def run_pass(self) -> PassSummary:
        """
        Run one pass over a snapshot of the queue.

        A call made while another pass is running returns at once with
        `skipped=True`. A failure reading the snapshot propagates and
        nothing is written.
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.warning("Previous pass still running, skipping")
            return PassSummary(skipped=True)

        try:
            return self._run()
        finally:
            self._pass_lock.release()

    def _run(self) -> PassSummary:
        logger.info("=== Sync pass start ===")
        try:
            records = self.queue.read_all()
        except Exception as e:
            logger.error(f"Could not read queue, pass aborted: {e}")
            raise

        pending = [r for r in records if r.is_new]
        logger.info(f"Rows: {len(records)}, new: {len(pending)}")

        summary = PassSummary()
        for record in pending:
            status = self._process(record)
            summary.count(status)

        logger.info(
            f"=== Sync pass end: processed={summary.processed} sent={summary.sent} "
            f"not_found={summary.not_found} error={summary.error} ==="
        )
        return summary

    def _process(self, record: QueueRecord) -> str:
        """Process one row and record its outcome. Returns the final status."""
        target_id = ""
        try:
            status, target_id = self._sync_record(record)
        except SyncError as e:
            logger.error(f"Row {record.row_number} ({record.event_id}) failed: {e}")
            status = SyncStatus.ERROR
        except Exception as e:
            logger.error(f"Row {record.row_number} ({record.event_id}) unexpected error: {e}", exc_info=True)
            status = SyncStatus.ERROR

        try:
            self._write_outcome(record, status, target_id)
        except Exception as e:
            # Row stays `new` and is picked up again next pass
            logger.error(f"Could not record '{status}' for row {record.row_number}: {e}")
            return SyncStatus.ERROR
        return status

    def _sync_record(self, record: QueueRecord):
        missing = [name for name in REQUIRED_FIELDS if not getattr(record, name)]
        if missing:
            raise ValidationError(f"missing {', '.join(missing)}")

        phone = normalize_phone(record.client_phone)
        if not phone:
            raise ValidationError(f"unusable phone {record.client_phone!r}")

        lead = self.resolver.resolve(phone)
        if lead is None:
            logger.info(f"Row {record.row_number}: no lead for {phone}")
            return SyncStatus.NOT_FOUND, ""

        update = build_lead_update(record, self.config)
        self.client.update_lead(lead.id, update.to_payload())
        logger.info(f"Row {record.row_number}: lead {lead.id} -> status {update.status_id}")
        return SyncStatus.SENT, str(lead.id)

    def _current_row(self, record: QueueRecord) -> int:
        """Row holding the record now; rows may have moved since the snapshot."""
        if self.queue.event_id_at(record.row_number) == record.event_id:
            return record.row_number
        row = self.queue.find_row(record.event_id)
        if row is None:
            raise TransientError(f"event {record.event_id} is no longer in the sheet")
        logger.warning(f"Event {record.event_id} moved from row {record.row_number} to {row}")
        record.row_number = row
        return row

    def _write_outcome(self, record: QueueRecord, status: str, target_id: str) -> None:
        """Write the target id (if any), then the status cell last."""
        row = self._current_row(record)
        if target_id:
            self.queue.update_cell(row, "target_entity_id", target_id)
            record.target_entity_id = target_id
        self.queue.update_cell(row, "sync_status", status)
        record.sync_status = status
