from __future__ import annotations

import logging
import os
import platform
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .analyzer import analyze
from .config import Settings, load_settings
from .errors import OrchestratorTimeout, ValidationError
from .log import setup_logging
from .models import AnalysisRequest, AnalysisResult


logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    started = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Under `uvicorn certscope_agent.main:app` nothing else configures logging.
        if not logging.getLogger().handlers:
            setup_logging(settings.log_level)
        # One outbound client for every request; it holds no per-request state.
        async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
            app.state.http = client
            yield

    app = FastAPI(title="CertScope Agent", version=__version__, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code != 404:
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": "Endpoint not found",
                "message": f"{request.method} {request.url.path} is not a valid endpoint",
                "available_endpoints": ["GET /analyze/{domain}", "POST /analyze", "GET /health"],
                "timestamp": _now_iso(),
            },
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client_host = request.client.host if request.client else "-"
        logger.info("%s %s - %s", request.method, request.url.path, client_host)
        return await call_next(request)

    async def _analyze(domain: str, request: Request):
        t0 = time.perf_counter()
        try:
            return await analyze(
                domain,
                client=request.app.state.http,
                settings=settings,
                now=clock() if clock is not None else None,
            )
        except ValidationError:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Invalid domain format", "domain": domain, "timestamp": _now_iso()},
            )
        except OrchestratorTimeout:
            return JSONResponse(
                status_code=408,
                content={
                    "success": False,
                    "domain": domain,
                    "error": "Analysis timeout - request took too long",
                    "timestamp": _now_iso(),
                },
            )
        except Exception as e:
            logger.exception("analysis error for %s", domain)
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "domain": domain,
                    "error": str(e),
                    "timestamp": _now_iso(),
                    "analysis_time": f"{time.perf_counter() - t0:.2f}s",
                },
            )

    @app.get("/")
    def index(request: Request):
        return {
            "name": "CertScope Agent",
            "version": __version__,
            "description": "TLS configuration grading and certificate transparency monitoring",
            "endpoints": {
                "GET /analyze/{domain}": "Complete SSL security analysis",
                "POST /analyze": "Same, with a JSON body {\"domain\": ...}",
                "GET /health": "Service health",
            },
            "usage": {
                "example": f"{request.base_url}analyze/google.com",
                "timeout": f"Maximum {settings.analysis_deadline_s:g}s per analysis",
            },
            "features": [
                "SSL Labs security grading",
                "Certificate transparency log monitoring",
                "Vulnerability detection",
                "Subdomain discovery",
            ],
        }

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/health")
    def health():
        uptime = int(time.monotonic() - started)
        return {
            "status": "healthy",
            "timestamp": _now_iso(),
            "uptime": {
                "seconds": uptime,
                "formatted": f"{uptime // 3600}h {(uptime % 3600) // 60}m {uptime % 60}s",
            },
            "python_version": platform.python_version(),
            "platform": sys.platform,
        }

    @app.get("/analyze/{domain}", response_model=AnalysisResult)
    async def analyze_path(domain: str, request: Request):
        return await _analyze(domain, request)

    @app.post("/analyze", response_model=AnalysisResult)
    async def analyze_body(req: AnalysisRequest, request: Request):
        return await _analyze(req.domain, request)

    return app


app = create_app()


def run() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "9000")))
