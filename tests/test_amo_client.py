"""Tests for the amoCRM HTTP client with a mocked requests session."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from paysync.amo_client import AmoClient
from paysync.errors import CrmError, TransientError


def _response(status: int, body: dict | None = None, headers: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.content = b"" if body is None else b"{...}"
    response.json.return_value = body
    response.text = "" if body is None else str(body)
    return response


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def client(config, session) -> AmoClient:
    return AmoClient(config, session=session)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("paysync.amo_client.time.sleep") as sleep:
        yield sleep


def test_auth_header_is_set(client, session) -> None:
    assert session.headers["Authorization"] == "Bearer token"


def test_search_contacts_passes_query_and_timeout(client, session) -> None:
    session.request.return_value = _response(200, {"_embedded": {"contacts": [{"id": 1}]}})

    assert client.search_contacts("77077599609") == [{"id": 1}]
    session.request.assert_called_once_with(
        method="GET",
        url="https://example.amocrm.ru/api/v4/contacts",
        params={"query": "77077599609", "with": "leads"},
        json=None,
        timeout=5,
    )


def test_empty_search_returns_no_contacts(client, session) -> None:
    session.request.return_value = _response(204)
    assert client.search_contacts("77077599609") == []


def test_get_leads_filters_by_id(client, session) -> None:
    session.request.return_value = _response(200, {"_embedded": {"leads": [{"id": 10}]}})

    assert client.get_leads([10, 11]) == [{"id": 10}]
    params = session.request.call_args.kwargs["params"]
    assert ("filter[id][]", 10) in params
    assert ("filter[id][]", 11) in params


def test_get_leads_without_ids_skips_request(client, session) -> None:
    assert client.get_leads([]) == []
    session.request.assert_not_called()


def test_update_lead_patches_payload(client, session) -> None:
    session.request.return_value = _response(200, {"id": 10})
    payload = {"status_id": 12, "custom_fields_values": []}

    client.update_lead(10, payload)

    kwargs = session.request.call_args.kwargs
    assert kwargs["method"] == "PATCH"
    assert kwargs["url"].endswith("/leads/10")
    assert kwargs["json"] == payload


def test_server_errors_are_retried_then_succeed(client, session, no_sleep) -> None:
    session.request.side_effect = [_response(502), _response(200, {"id": 10})]

    assert client.update_lead(10, {"status_id": 1}) == {"id": 10}
    assert session.request.call_count == 2
    no_sleep.assert_called_once_with(1)


def test_persistent_server_error_is_transient(client, session) -> None:
    session.request.return_value = _response(500)

    with pytest.raises(TransientError):
        client.search_contacts("777")
    assert session.request.call_count == 4


def test_timeout_is_transient(client, session) -> None:
    session.request.side_effect = requests.exceptions.Timeout("read timed out")

    with pytest.raises(TransientError):
        client.search_contacts("777")


def test_rate_limit_waits_for_retry_after(client, session, no_sleep) -> None:
    session.request.side_effect = [
        _response(429, headers={"Retry-After": "2"}),
        _response(200, {"_embedded": {"contacts": []}}),
    ]

    assert client.search_contacts("777") == []
    no_sleep.assert_called_once_with(2)


def test_client_error_is_a_crm_rejection(client, session) -> None:
    session.request.return_value = _response(400, {"validation-errors": []})

    with pytest.raises(CrmError) as exc_info:
        client.update_lead(10, {"status_id": 1})
    assert exc_info.value.status_code == 400
    assert session.request.call_count == 1
