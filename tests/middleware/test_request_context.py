from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from coursehub.core.logging import request_id_var


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "edge-7f3a"})
    assert resp.headers.get("x-request-id") == "edge-7f3a"


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get(f"/v1/progress/{uuid.uuid4()}")  # no token -> 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_request_id_reset_after_request(client: TestClient) -> None:
    client.get("/health", headers={"X-Request-ID": "short-lived"})
    assert request_id_var.get() == "-"


def test_summary_line_carries_request_id(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="coursehub.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "trace-me"})

    summaries = [
        r for r in caplog.records if r.name == "coursehub.middleware.request_context"
    ]
    assert summaries
    record = summaries[-1]
    assert record.request_id == "trace-me"  # type: ignore[attr-defined]
    assert record.status_code == 200  # type: ignore[attr-defined]
    assert "GET /health -> 200" in record.getMessage()
