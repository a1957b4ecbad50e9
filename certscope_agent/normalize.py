"""Reshape raw provider payloads into the stable report schema.

Both providers drift: fields go missing, change type or arrive as null.
Everything here coerces into the pydantic models in `models.py` so the
summary and API layers never have to check for presence themselves.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from .models import (
    CertChain,
    CertificateInfo,
    CertificateSlices,
    CipherSuite,
    CipherSuites,
    CTCertificate,
    Endpoint,
    EndpointDetail,
    GradeReport,
    MonthCount,
    Protocol,
    SimulatedClient,
    TransparencyReport,
    TransparencyStatistics,
    TransparencySummary,
)


MAX_CIPHER_SUITES = 10
MAX_SIMULATED_CLIENTS = 5

MAX_ISSUERS = 10
MAX_SUBDOMAINS = 20
MAX_MONTHS = 12
MAX_ACTIVE_CERTS = 10
MAX_RECENT_CERTS = 10
MAX_ALL_CERTS = 50
RECENT_WINDOW = timedelta(days=30)

_SECONDS_PER_DAY = 86400

# crt.sh trims trailing zeros from fractional seconds ("12:12:40.56").
_FRACTION_RE = re.compile(r"\.(\d+)(?=$|[+-])")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _as_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, int, float, bool)):
        return [str(value)]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


# ---------------------------------------------------------------------------
# Grading provider
# ---------------------------------------------------------------------------


def _suites(raw: Any) -> CipherSuites | None:
    raw = _as_dict(raw)
    if raw is None:
        return None
    return CipherSuites(
        preference=raw.get("preference") if isinstance(raw.get("preference"), bool) else None,
        protocol=_as_int(raw.get("protocol")),
        suites=[
            CipherSuite(
                id=_as_int(s.get("id")),
                name=_as_str(s.get("name")),
                cipher_strength=_as_int(s.get("cipherStrength")),
                kx_type=_as_str(s.get("kxType")),
                kx_strength=_as_int(s.get("kxStrength")),
            )
            for s in _dicts(raw.get("list"))[:MAX_CIPHER_SUITES]
        ],
    )


def _sims(raw: Any) -> list[SimulatedClient]:
    raw = _as_dict(raw) or {}
    return [
        SimulatedClient(
            client=_as_dict(sim.get("client")),
            version=_as_str(sim.get("version")),
            platform=_as_str(sim.get("platform")),
            is_reference=_as_bool(sim.get("isReference")),
            protocols=_as_int(sim.get("protocolId", sim.get("protocols"))),
            suites=_as_int(sim.get("suiteId", sim.get("suites"))),
        )
        for sim in _dicts(raw.get("results"))[:MAX_SIMULATED_CLIENTS]
    ]


def _endpoint_detail(d: dict[str, Any]) -> EndpointDetail:
    sts_subdomains = d.get("stsSubdomains")
    return EndpointDetail(
        host_start_time=_as_int(d.get("hostStartTime")),
        cert_chains=[
            CertChain(
                id=_as_str(c.get("id")),
                cert_ids=_as_str_list(c.get("certIds")),
                trust_paths=_dicts(c.get("trustPaths")),
                issues=_as_int(c.get("issues")),
                no_sni=_as_bool(c.get("noSni")),
            )
            for c in _dicts(d.get("certChains"))
        ],
        protocols=[
            Protocol(id=_as_int(p.get("id")), name=_as_str(p.get("name")), version=_as_str(p.get("version")))
            for p in _dicts(d.get("protocols"))
        ],
        suites=_suites(d.get("suites")),
        server_signature=_as_str(d.get("serverSignature")),
        prefix_delegation=_as_bool(d.get("prefixDelegation")),
        non_prefix_delegation=_as_bool(d.get("nonPrefixDelegation")),
        reneg_support=_as_int(d.get("renegSupport")),
        heartbleed=_as_bool(d.get("heartbleed")),
        heartbeat=_as_bool(d.get("heartbeat")),
        poodle=_as_bool(d.get("poodle")),
        poodle_tls=_as_int(d.get("poodleTls")),
        freak=_as_bool(d.get("freak")),
        logjam=_as_bool(d.get("logjam")),
        drown_vulnerable=_as_bool(d.get("drownVulnerable")),
        drown_errors=_as_bool(d.get("drownErrors")),
        drown_hosts=_dicts(d.get("drownHosts")),
        vuln_beast=_as_bool(d.get("vulnBeast")),
        openssl_ccs=_as_int(d.get("openSslCcs")),
        openssl_lucky_minus20=_as_int(d.get("openSSLLuckyMinus20")),
        supports_rc4=_as_bool(d.get("supportsRc4")),
        rc4_with_modern=_as_bool(d.get("rc4WithModern")),
        rc4_only=_as_bool(d.get("rc4Only")),
        forward_secrecy=_as_int(d.get("forwardSecrecy")),
        ocsp_stapling=_as_bool(d.get("ocspStapling")),
        stapling_revocation_status=_as_int(d.get("staplingRevocationStatus")),
        supports_alpn=_as_bool(d.get("supportsAlpn")),
        alpn_protocols=_as_str(d.get("alpnProtocols")),
        supports_npn=_as_bool(d.get("supportsNpn")),
        npn_protocols=_as_str(d.get("npnProtocols")),
        session_resumption=_as_int(d.get("sessionResumption")),
        session_tickets=_as_int(d.get("sessionTickets")),
        compression_methods=_as_int(d.get("compressionMethods")),
        sni_required=_as_bool(d.get("sniRequired")),
        fallback_scsv=_as_bool(d.get("fallbackScsv")),
        has_sct=_as_int(d.get("hasSct")),
        dh_primes=_as_str_list(d.get("dhPrimes")),
        dh_uses_known_primes=_as_int(d.get("dhUsesKnownPrimes")),
        dh_ys_reuse=_as_bool(d.get("dhYsReuse")),
        chacha20_preference=_as_bool(d.get("chaCha20Preference")),
        http_status_code=_as_int(d.get("httpStatusCode")),
        http_forwarding=_as_str(d.get("httpForwarding")),
        sts_response_header=_as_str(d.get("stsResponseHeader")),
        sts_max_age=_as_int(d.get("stsMaxAge")),
        sts_subdomains=sts_subdomains if isinstance(sts_subdomains, bool) else None,
        hsts_policy=_as_dict(d.get("hstsPolicy")),
        hsts_preloads=_dicts(d.get("hstsPreloads")),
        pkp_response_header=_as_dict(d.get("pkpResponseHeader")),
        hpkp_policy=_as_dict(d.get("hpkpPolicy")),
        hpkp_ro_policy=_as_dict(d.get("hpkpRoPolicy")),
        static_pkp_policy=_as_dict(d.get("staticPkpPolicy")),
        protocol_intolerance=_as_int(d.get("protocolIntolerance")),
        misc_intolerance=_as_int(d.get("miscIntolerance")),
        sims=_sims(d.get("sims")),
    )


def _endpoint(ep: dict[str, Any]) -> Endpoint:
    details = _as_dict(ep.get("details"))
    return Endpoint(
        ip_address=_as_str(ep.get("ipAddress")),
        server_name=_as_str(ep.get("serverName")),
        status_message=_as_str(ep.get("statusMessage")),
        grade=_as_str(ep.get("grade")),
        grade_trust_ignored=_as_str(ep.get("gradeTrustIgnored")),
        has_warnings=_as_bool(ep.get("hasWarnings")),
        is_exceptional=_as_bool(ep.get("isExceptional")),
        progress=_as_int(ep.get("progress")),
        duration=_as_int(ep.get("duration")),
        eta=_as_int(ep.get("eta")),
        delegation=_as_int(ep.get("delegation")),
        details=_endpoint_detail(details) if details is not None else None,
    )


def _certificate(c: dict[str, Any]) -> CertificateInfo:
    return CertificateInfo(
        id=_as_str(c.get("id")),
        subject=_as_str(c.get("subject")),
        common_names=_as_str_list(c.get("commonNames")),
        alt_names=_as_str_list(c.get("altNames")),
        not_before=_as_int(c.get("notBefore")),
        not_after=_as_int(c.get("notAfter")),
        issuer_subject=_as_str(c.get("issuerSubject")),
        issuer_label=_as_str(c.get("issuerLabel")),
        sig_alg=_as_str(c.get("sigAlg")),
        revocation_info=_as_int(c.get("revocationInfo")),
        crl_uris=_as_str_list(c.get("crlURIs")),
        ocsp_uris=_as_str_list(c.get("ocspURIs")),
        key_alg=_as_str(c.get("keyAlg")),
        key_size=_as_int(c.get("keySize")),
        key_strength=_as_int(c.get("keyStrength")),
        key_known_debian_insecure=_as_bool(c.get("keyKnownDebianInsecure")),
        raw=_as_str(c.get("raw")),
    )


def normalize_grade_report(raw: dict[str, Any], domain: str) -> GradeReport:
    status = raw.get("status")
    return GradeReport(
        host=_as_str(raw.get("host")) or domain,
        port=_as_int(raw.get("port")) or 443,
        protocol=_as_str(raw.get("protocol")) or "HTTP",
        is_public=_as_bool(raw.get("isPublic")),
        status=status if status in ("IN_PROGRESS", "READY", "ERROR") else "READY",
        start_time=_as_int(raw.get("startTime")),
        test_time=_as_int(raw.get("testTime")),
        engine_version=_as_str(raw.get("engineVersion")),
        criteria_version=_as_str(raw.get("criteriaVersion")),
        endpoints=[_endpoint(ep) for ep in _dicts(raw.get("endpoints"))],
        certs=[_certificate(c) for c in _dicts(raw.get("certs"))],
    )


# ---------------------------------------------------------------------------
# Transparency provider
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any) -> datetime | None:
    """Parse crt.sh ISO timestamps (naive, UTC implied)."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.strip().replace("Z", "+00:00"))
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def extract_subdomains(name_value: Any, domain: str) -> list[str]:
    if not isinstance(name_value, str):
        return []
    out: list[str] = []
    for line in name_value.split("\n"):
        name = line.strip()
        if name and domain in name:
            out.append(name)
    return out


def normalize_ct_record(row: dict[str, Any], domain: str, now: datetime) -> CTCertificate:
    not_before = parse_timestamp(row.get("not_before"))
    not_after = parse_timestamp(row.get("not_after"))

    is_expired = not_after is not None and now > not_after
    is_active = not_before is not None and not_after is not None and not_before <= now <= not_after

    return CTCertificate(
        id=_as_int(row.get("id")),
        logged_at=_as_str(row.get("entry_timestamp")),
        not_before=_as_str(row.get("not_before")),
        not_after=_as_str(row.get("not_after")),
        common_name=_as_str(row.get("common_name")),
        name_value=_as_str(row.get("name_value")),
        issuer_ca_id=_as_int(row.get("issuer_ca_id")),
        issuer_name=_as_str(row.get("issuer_name")),
        serial_number=_as_str(row.get("serial_number")),
        result_count=_as_int(row.get("result_count")),
        is_expired=is_expired,
        is_active=is_active,
        days_until_expiry=_ceil_days(not_after - now) if not_after is not None else None,
        validity_period=(
            _ceil_days(not_after - not_before) if not_after is not None and not_before is not None else None
        ),
        subdomains=extract_subdomains(row.get("name_value"), domain),
    )


def _unique(values) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


def certificates_by_month(logged: list[datetime], limit: int = MAX_MONTHS) -> list[MonthCount]:
    counts = Counter(f"{dt.year:04d}-{dt.month:02d}" for dt in logged)
    months = sorted(counts.items(), key=lambda kv: kv[0], reverse=True)
    return [MonthCount(month=m, count=c) for m, c in months[:limit]]


def build_transparency_report(
    domain: str,
    rows: list[Any],
    now: datetime | None = None,
) -> TransparencyReport:
    now = now or datetime.now(timezone.utc)

    records = [r for r in rows if isinstance(r, dict)]
    pairs = [(normalize_ct_record(r, domain, now), parse_timestamp(r.get("entry_timestamp"))) for r in records]

    # Newest logged first; records without a log time go last.
    _floor = datetime.min.replace(tzinfo=timezone.utc)
    pairs.sort(key=lambda p: (p[1] is not None, p[1] or _floor), reverse=True)

    certs = [c for c, _ in pairs]
    active = [c for c in certs if c.is_active]
    expired = [c for c in certs if c.is_expired]
    recent_cutoff = now - RECENT_WINDOW
    recent = [c for c, logged in pairs if logged is not None and logged > recent_cutoff]

    issuers = _unique(c.issuer_name for c in certs)
    subdomains = _unique(s for c in certs for s in c.subdomains)

    return TransparencyReport(
        domain=domain,
        scan_timestamp=now.isoformat(),
        summary=TransparencySummary(
            total_certificates=len(rows),
            active_certificates=len(active),
            expired_certificates=len(expired),
            recent_certificates=len(recent),
            unique_issuers=len(issuers),
            discovered_subdomains=len(subdomains),
        ),
        statistics=TransparencyStatistics(
            issuers=issuers[:MAX_ISSUERS],
            subdomains=subdomains[:MAX_SUBDOMAINS],
            certificates_by_month=certificates_by_month([logged for _, logged in pairs if logged is not None]),
        ),
        certificates=CertificateSlices(
            active=active[:MAX_ACTIVE_CERTS],
            recent=recent[:MAX_RECENT_CERTS],
            all=certs[:MAX_ALL_CERTS],
        ),
    )
