"""Drive the SSL Labs assessment for a host until it settles.

SSL Labs runs assessments asynchronously: the same `analyze` call both
starts a run and reports its progress. We re-issue it on a fixed interval
while the provider says IN_PROGRESS, up to a hard attempt cap. Transport
failures end the run immediately; the attempt budget is only spent on the
provider's own progress signal.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .config import Settings
from .errors import AnalysisTimeout, ProviderError
from .models import GradeReport
from .normalize import normalize_grade_report


logger = logging.getLogger(__name__)


async def _poll_once(client: httpx.AsyncClient, domain: str, settings: Settings) -> dict[str, Any]:
    url = f"{settings.ssllabs_api_url}/analyze"
    params = {"host": domain, "all": "done", "ignoreMismatch": "on"}
    try:
        res = await client.get(
            url,
            params=params,
            headers={"user-agent": settings.user_agent, "accept": "application/json"},
            timeout=settings.grade_http_timeout_s,
        )
    except httpx.HTTPError as e:
        raise ProviderError(f"SSL Labs API error: {e.__class__.__name__}: {e}") from e

    if res.status_code < 200 or res.status_code >= 300:
        raise ProviderError(f"SSL Labs API error: HTTP {res.status_code}")

    try:
        data = res.json()
    except ValueError as e:
        raise ProviderError("SSL Labs API error: response was not valid JSON") from e

    if not isinstance(data, dict):
        raise ProviderError("SSL Labs API error: unexpected response shape")
    return data


async def poll_grade_report(
    client: httpx.AsyncClient,
    domain: str,
    settings: Settings,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> GradeReport:
    log = log or logger
    attempts = 0

    while True:
        data = await _poll_once(client, domain, settings)
        status = data.get("status")

        if status == "READY":
            log.info("grading ready after %d poll(s)", attempts + 1)
            return normalize_grade_report(data, domain)

        if status == "ERROR":
            message = data.get("statusMessage") or "Unknown error"
            raise ProviderError(f"SSL Labs analysis failed: {message}")

        # IN_PROGRESS, DNS or no status yet: the assessment is still running.
        attempts += 1
        if attempts >= settings.grade_max_attempts:
            raise AnalysisTimeout("SSL analysis timeout - analysis taking too long")

        log.debug("grading status=%s attempt %d/%d", status, attempts, settings.grade_max_attempts)
        await asyncio.sleep(settings.grade_poll_interval_s)
