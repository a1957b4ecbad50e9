from __future__ import annotations

import logging
from datetime import datetime

import httpx

from .config import Settings
from .errors import TransparencyError, TransparencyTimeout
from .models import TransparencyReport
from .normalize import build_transparency_report


logger = logging.getLogger(__name__)


async def fetch_transparency_report(
    client: httpx.AsyncClient,
    domain: str,
    settings: Settings,
    log: logging.Logger | logging.LoggerAdapter | None = None,
    now: datetime | None = None,
) -> TransparencyReport:
    """Single crt.sh lookup for `%.<domain>`; no retry."""
    log = log or logger
    try:
        res = await client.get(
            f"{settings.crtsh_api_url}/",
            params={"q": f"%.{domain}", "output": "json"},
            headers={"user-agent": settings.user_agent, "accept": "application/json"},
            timeout=settings.ct_http_timeout_s,
        )
    except httpx.TimeoutException as e:
        raise TransparencyTimeout("Certificate transparency lookup timeout") from e
    except httpx.HTTPError as e:
        raise TransparencyError(f"Certificate transparency API error: {e.__class__.__name__}: {e}") from e

    if res.status_code < 200 or res.status_code >= 300:
        raise TransparencyError(f"Certificate transparency API error: HTTP {res.status_code}")

    body = (res.text or "").strip()
    if not body:
        rows = []
    else:
        try:
            rows = res.json()
        except ValueError as e:
            raise TransparencyError("Certificate transparency API error: response was not valid JSON") from e

    if not isinstance(rows, list):
        raise TransparencyError("Certificate transparency API error: unexpected response shape")

    log.info("crt.sh returned %d certificate record(s)", len(rows))
    return build_transparency_report(domain, rows, now=now)
