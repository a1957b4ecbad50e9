from __future__ import annotations

import asyncio
import re
import time
from datetime import datetime, timezone
from typing import Awaitable, TypeVar

import httpx

from .config import Settings, load_settings
from .errors import OrchestratorTimeout, SourceError, ValidationError
from .grading import poll_grade_report
from .log import RequestContext
from .models import AnalysisData, AnalysisResult, GradeReport, SourceFailure, TransparencyReport
from .summary import summarize
from .transparency import fetch_transparency_report


T = TypeVar("T")

_DOMAIN_RE = re.compile(
    r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$",
    re.IGNORECASE,
)


def validate_domain(raw: str) -> str:
    """Return the canonical form of `raw` or raise ValidationError."""
    value = (raw or "").strip().lower().rstrip(".")
    if not value or not _DOMAIN_RE.match(value):
        raise ValidationError(raw)
    return value


async def _capture(ctx: RequestContext, name: str, work: Awaitable[T]) -> T | SourceFailure:
    start = time.perf_counter()
    try:
        value = await work
    except SourceError as e:
        ctx.logger.warning("%s failed: %s", name, e)
        return SourceFailure(error=str(e), error_type=e.__class__.__name__)
    except Exception as e:
        # CancelledError is not an Exception and still propagates.
        ctx.logger.exception("%s failed unexpectedly", name)
        return SourceFailure(error=f"{name} failed: {e}", error_type=e.__class__.__name__)
    finally:
        ctx.record(name, start)
    ctx.logger.info("%s completed in %dms", name, ctx.timings[name])
    return value


async def _run(
    ctx: RequestContext,
    client: httpx.AsyncClient,
    settings: Settings,
    *,
    cancel_on_deadline: bool,
    now: datetime | None,
) -> AnalysisResult:
    grading = asyncio.create_task(
        _capture(ctx, "grading", poll_grade_report(client, ctx.domain, settings, ctx.logger))
    )
    transparency = asyncio.create_task(
        _capture(ctx, "transparency", fetch_transparency_report(client, ctx.domain, settings, ctx.logger, now=now))
    )

    remaining = max(0.0, settings.analysis_deadline_s - ctx.elapsed_s())
    _, pending = await asyncio.wait({grading, transparency}, timeout=remaining)

    if pending:
        ctx.logger.warning(
            "deadline of %gs exceeded with %d source(s) outstanding", settings.analysis_deadline_s, len(pending)
        )
        # Otherwise left running: both transports carry their own timeouts and
        # late results are simply dropped.
        if cancel_on_deadline:
            for task in pending:
                task.cancel()
        raise OrchestratorTimeout(ctx.domain, settings.analysis_deadline_s)

    ssl_security = grading.result()
    certificate_transparency = transparency.result()

    summary = summarize(
        ssl_security if isinstance(ssl_security, GradeReport) else None,
        certificate_transparency if isinstance(certificate_transparency, TransparencyReport) else None,
    )

    elapsed = ctx.elapsed_s()
    ctx.timings["total"] = int(elapsed * 1000)
    ctx.logger.info("analysis finished in %.2fs (grade=%s)", elapsed, summary.overall_grade)

    return AnalysisResult(
        domain=ctx.domain,
        timestamp=datetime.now(timezone.utc).isoformat(),
        analysis_time=f"{elapsed:.2f}s",
        timings_ms=dict(ctx.timings),
        data=AnalysisData(ssl_security=ssl_security, certificate_transparency=certificate_transparency),
        summary=summary,
    )


async def analyze(
    domain: str,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> AnalysisResult:
    """Grade `domain` and search CT logs for it concurrently.

    Per-source failures are embedded in the result. Raises ValidationError
    for a malformed domain and OrchestratorTimeout when the overall deadline
    passes before both sources finish.
    """
    settings = settings or load_settings()
    ctx = RequestContext(domain=validate_domain(domain))
    ctx.logger.info("starting analysis")

    if client is not None:
        return await _run(ctx, client, settings, cancel_on_deadline=settings.cancel_on_deadline, now=now)

    # A private client is closed on return, so nothing may outlive it.
    async with httpx.AsyncClient(follow_redirects=True) as own:
        return await _run(ctx, own, settings, cancel_on_deadline=True, now=now)
