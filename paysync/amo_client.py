"""Minimal amoCRM API v4 client for contact search and lead updates."""
import time
from typing import Any, Dict, Iterable, List, Optional
import requests

from paysync.errors import CrmError, TransientError
from paysync.logging_conf import logger
from paysync.settings import SyncConfig

MAX_RETRIES = 3
MAX_RATE_LIMIT_WAIT = 10  # seconds


class AmoClient:
    """Talks to amoCRM on behalf of the resolver and the engine."""

    def __init__(self, config: SyncConfig, session: Optional[requests.Session] = None):
        self.base_url = config.amo_base_url
        self.timeout = config.crm_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {config.amo_token}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        })

    def search_contacts(self, query: str) -> List[Dict[str, Any]]:
        """
        Full-text contact search, with linked lead ids embedded.

        amoCRM matches the query as a substring, so results must be
        re-checked by the caller.
        """
        data = self._request("GET", "/contacts", params={"query": query, "with": "leads"})
        return data.get("_embedded", {}).get("contacts", [])

    def get_leads(self, lead_ids: Iterable[int]) -> List[Dict[str, Any]]:
        """Fetch leads by id in a single request."""
        ids = list(lead_ids)
        if not ids:
            return []
        params = [("filter[id][]", lead_id) for lead_id in ids]
        params.append(("limit", 250))
        data = self._request("GET", "/leads", params=params)
        return data.get("_embedded", {}).get("leads", [])

    def update_lead(self, lead_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """PATCH a lead; re-sending the same payload leaves the lead unchanged."""
        data = self._request("PATCH", f"/leads/{lead_id}", json=payload)
        logger.info(f"Lead {lead_id} updated (status {payload.get('status_id')})")
        return data

    def _request(self, method: str, endpoint: str, params=None, json=None, retry_count: int = 0) -> Dict[str, Any]:
        """Make API request with retry logic."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(method=method, url=url, params=params, json=json, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            if retry_count < MAX_RETRIES:
                wait_time = 2 ** retry_count
                logger.warning(f"amoCRM {method} {endpoint} failed ({e}). Retrying in {wait_time}s...")
                time.sleep(wait_time)
                return self._request(method, endpoint, params, json, retry_count + 1)
            raise TransientError(f"amoCRM {method} {endpoint} unreachable: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransientError(f"amoCRM {method} {endpoint} failed: {e}") from e

        if response.status_code == 429:
            if retry_count < MAX_RETRIES:
                retry_after = min(int(response.headers.get("Retry-After", 1)), MAX_RATE_LIMIT_WAIT)
                logger.warning(f"Rate limited. Waiting {retry_after}s...")
                time.sleep(retry_after)
                return self._request(method, endpoint, params, json, retry_count + 1)
            raise TransientError(f"amoCRM {method} {endpoint} still rate limited")

        if response.status_code >= 500:
            if retry_count < MAX_RETRIES:
                wait_time = 2 ** retry_count
                logger.warning(f"Server error {response.status_code}. Retrying in {wait_time}s...")
                time.sleep(wait_time)
                return self._request(method, endpoint, params, json, retry_count + 1)
            raise TransientError(f"amoCRM {method} {endpoint} returned {response.status_code}")

        if response.status_code >= 400:
            raise CrmError(
                f"amoCRM {method} {endpoint} rejected with {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

        # Empty search results come back as 204 with no body
        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise CrmError(f"amoCRM {method} {endpoint} returned invalid JSON") from e
