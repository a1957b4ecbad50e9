from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


_HERE = Path(__file__).resolve()
_PACKAGE_ROOT = _HERE.parents[1]

_DEFAULT_USER_AGENT = "CertScopeAgent/1.0 (+https://github.com/certscope)"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _cors_allow_origins() -> list[str]:
    raw = os.getenv("CERTSCOPE_CORS_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:3000"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    ssllabs_api_url: str = "https://api.ssllabs.com/api/v3"
    crtsh_api_url: str = "https://crt.sh"
    user_agent: str = _DEFAULT_USER_AGENT

    # Grading provider polling: 24 attempts x 5s ~= 2 minutes.
    grade_poll_interval_s: float = 5.0
    grade_max_attempts: int = 24
    grade_http_timeout_s: float = 120.0

    ct_http_timeout_s: float = 15.0

    analysis_deadline_s: float = 120.0
    cancel_on_deadline: bool = False

    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings from the environment.

    A `.env` next to the package is loaded first (real environment variables
    win). Malformed numeric values fall back to their defaults.
    """
    load_dotenv(env_file or (_PACKAGE_ROOT / ".env"), override=False)

    defaults = Settings()
    return Settings(
        ssllabs_api_url=os.getenv("SSLLABS_API_URL", defaults.ssllabs_api_url).rstrip("/"),
        crtsh_api_url=os.getenv("CRTSH_API_URL", defaults.crtsh_api_url).rstrip("/"),
        user_agent=os.getenv("CERTSCOPE_USER_AGENT", defaults.user_agent),
        grade_poll_interval_s=max(0.0, _env_float("GRADE_POLL_INTERVAL_S", defaults.grade_poll_interval_s)),
        grade_max_attempts=max(1, _env_int("GRADE_MAX_ATTEMPTS", defaults.grade_max_attempts)),
        grade_http_timeout_s=_env_float("GRADE_HTTP_TIMEOUT_S", defaults.grade_http_timeout_s),
        ct_http_timeout_s=_env_float("CT_HTTP_TIMEOUT_S", defaults.ct_http_timeout_s),
        analysis_deadline_s=_env_float("ANALYSIS_DEADLINE_S", defaults.analysis_deadline_s),
        cancel_on_deadline=_env_bool("CANCEL_ON_DEADLINE", defaults.cancel_on_deadline),
        cors_origins=_cors_allow_origins(),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )
