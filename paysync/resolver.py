"""Resolve a phone number to the lead to update in the configured pipeline."""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from paysync.amo_client import AmoClient
from paysync.logging_conf import logger
from paysync.phone import normalize_phone
from paysync.settings import SyncConfig

PHONE_FIELD_CODE = "PHONE"


@dataclass(frozen=True)
class Lead:
    id: int
    pipeline_id: int
    status_id: Optional[int] = None
    updated_at: int = 0
    created_at: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Lead":
        return cls(
            id=int(data["id"]),
            pipeline_id=int(data.get("pipeline_id") or 0),
            status_id=data.get("status_id"),
            updated_at=int(data.get("updated_at") or 0),
            created_at=int(data.get("created_at") or 0),
        )

    @property
    def recency_key(self):
        """Sort key: most recently updated, then created, then largest id."""
        return (self.updated_at, self.created_at, self.id)


def contact_phones(contact: Dict[str, Any]) -> List[str]:
    """Normalized values of every phone stored on a contact."""
    phones = []
    for field in contact.get("custom_fields_values") or []:
        if field.get("field_code") != PHONE_FIELD_CODE:
            continue
        for item in field.get("values") or []:
            phone = normalize_phone(item.get("value"))
            if phone:
                phones.append(phone)
    return phones


def pick_lead(leads: List[Lead]) -> Optional[Lead]:
    """Deterministic choice among several qualifying leads."""
    if not leads:
        return None
    return max(leads, key=lambda lead: lead.recency_key)


class LeadResolver:
    """Finds the unique lead for a phone number within one pipeline."""

    def __init__(self, client: AmoClient, config: SyncConfig):
        self.client = client
        self.pipeline_id = config.pipeline_id

    def resolve(self, phone: str) -> Optional[Lead]:
        """
        Return the lead to update for `phone`, or None when nothing matches.

        Args:
            phone: Already normalized phone; an empty value never matches.

        Raises:
            TransientError: CRM unreachable or timing out.
            CrmError: CRM rejected the request.
        """
        if not phone:
            return None

        contacts = self.client.search_contacts(phone)
        # Full-text search is fuzzy; keep exact matches only
        matched = [c for c in contacts if phone in contact_phones(c)]
        if not matched:
            logger.info(f"No contact with phone {phone} ({len(contacts)} search hits)")
            return None

        lead_ids = []
        for contact in matched:
            for link in contact.get("_embedded", {}).get("leads") or []:
                lead_id = int(link["id"])
                if lead_id not in lead_ids:
                    lead_ids.append(lead_id)
        if not lead_ids:
            logger.info(f"Contact(s) for {phone} have no leads")
            return None

        leads = [Lead.from_api(data) for data in self.client.get_leads(lead_ids)]
        qualifying = [lead for lead in leads if lead.pipeline_id == self.pipeline_id]
        lead = pick_lead(qualifying)

        if lead is None:
            logger.info(f"No lead for {phone} in pipeline {self.pipeline_id}")
        elif len(qualifying) > 1:
            logger.warning(
                f"{len(qualifying)} leads for {phone} in pipeline {self.pipeline_id}; picked {lead.id}"
            )
        return lead
