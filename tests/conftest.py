"""Shared fixtures: canned provider payloads and mock transports."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

import httpx
import pytest

from certscope_agent.config import Settings

SSLLABS_HOST = "api.ssllabs.com"
CRTSH_HOST = "crt.sh"

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> Settings:
    """Settings with no poll delay and a short overall deadline."""
    return Settings(grade_poll_interval_s=0.0, analysis_deadline_s=5.0)


@pytest.fixture
def now() -> datetime:
    return NOW


def make_endpoint(ip: str = "93.184.216.34", grade: str = "A", **details: Any) -> Dict[str, Any]:
    base_details = {
        "protocols": [{"id": 771, "name": "TLS", "version": "1.2"}, {"id": 772, "name": "TLS", "version": "1.3"}],
        "suites": {
            "preference": True,
            "list": [{"id": i, "name": f"TLS_SUITE_{i}", "cipherStrength": 128} for i in range(14)],
        },
        "sims": {"results": [{"client": {"name": f"Client {i}"}, "protocolId": 771} for i in range(8)]},
        "forwardSecrecy": 4,
        "ocspStapling": True,
        "supportsAlpn": True,
    }
    base_details.update(details)
    return {"ipAddress": ip, "grade": grade, "hasWarnings": False, "details": base_details}


@pytest.fixture
def ready_payload() -> Dict[str, Any]:
    return {
        "host": "example.com",
        "port": 443,
        "protocol": "http",
        "status": "READY",
        "endpoints": [make_endpoint()],
        "certs": [
            {
                "id": "abc123",
                "subject": "CN=example.com",
                "altNames": ["example.com", "www.example.com"],
                "notBefore": 1735689600000,
                "notAfter": 1767225600000,
                "issuerSubject": "CN=R3, O=Let's Encrypt",
                "keyAlg": "RSA",
                "keySize": 2048,
            }
        ],
    }


def ct_row(
    cert_id: int,
    logged: str,
    name_value: str = "example.com\nwww.example.com",
    not_before: str = "2025-01-01T00:00:00",
    not_after: str = "2025-12-01T00:00:00",
    issuer: str = "C=US, O=Let's Encrypt, CN=R3",
) -> Dict[str, Any]:
    return {
        "id": cert_id,
        "entry_timestamp": logged,
        "not_before": not_before,
        "not_after": not_after,
        "common_name": name_value.split("\n")[0],
        "name_value": name_value,
        "issuer_ca_id": 183267,
        "issuer_name": issuer,
        "serial_number": f"{cert_id:x}",
        "result_count": 2,
    }


@pytest.fixture
def ct_rows() -> List[Dict[str, Any]]:
    return [
        ct_row(1, "2025-05-20T10:00:00.123", "api.example.com\nexample.com"),
        ct_row(2, "2024-11-02T08:30:00", not_before="2024-01-01T00:00:00", not_after="2024-12-31T00:00:00"),
        ct_row(3, "2025-05-28T12:00:00", "mail.example.com", issuer="C=US, O=Google Trust Services, CN=WR1"),
    ]


def mock_transport(
    grading: Callable[[httpx.Request], httpx.Response],
    transparency: Callable[[httpx.Request], httpx.Response],
) -> httpx.MockTransport:
    """Route requests by host to one handler per provider."""

    def handler(request: httpx.Request):
        if request.url.host == SSLLABS_HOST:
            return grading(request)
        if request.url.host == CRTSH_HOST:
            return transparency(request)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


class PollSequence:
    """Grading handler that replays a list of payloads, repeating the last one."""

    def __init__(self, payloads: List[Dict[str, Any]]):
        self.payloads = payloads
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = self.payloads[min(self.calls, len(self.payloads) - 1)]
        self.calls += 1
        return httpx.Response(200, json=payload)
