from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

GradeStatus = Literal["IN_PROGRESS", "READY", "ERROR"]


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str = Field(..., min_length=1, max_length=253)


# Grading provider (SSL Labs) schema. Every field that upstream may omit
# carries an explicit default: booleans -> False, lists -> [], scalars -> None.


class Protocol(BaseModel):
    id: int | None = None
    name: str | None = None
    version: str | None = None


class CipherSuite(BaseModel):
    id: int | None = None
    name: str | None = None
    cipher_strength: int | None = None
    kx_type: str | None = None
    kx_strength: int | None = None


class CipherSuites(BaseModel):
    preference: bool | None = None
    protocol: int | None = None
    # Capped at 10, upstream order.
    suites: list[CipherSuite] = Field(default_factory=list)


class CertChain(BaseModel):
    id: str | None = None
    cert_ids: list[str] = Field(default_factory=list)
    trust_paths: list[dict[str, Any]] = Field(default_factory=list)
    issues: int | None = None
    no_sni: bool = False


class SimulatedClient(BaseModel):
    client: dict[str, Any] | None = None
    version: str | None = None
    platform: str | None = None
    is_reference: bool = False
    protocols: int | None = None
    suites: int | None = None


class EndpointDetail(BaseModel):
    host_start_time: int | None = None
    cert_chains: list[CertChain] = Field(default_factory=list)
    protocols: list[Protocol] = Field(default_factory=list)
    suites: CipherSuites | None = None
    server_signature: str | None = None
    prefix_delegation: bool = False
    non_prefix_delegation: bool = False
    reneg_support: int | None = None

    # vulnerabilities
    heartbleed: bool = False
    heartbeat: bool = False
    poodle: bool = False
    poodle_tls: int | None = None
    freak: bool = False
    logjam: bool = False
    drown_vulnerable: bool = False
    drown_errors: bool = False
    # Hosts sharing this key that expose SSLv2; the evidence behind drown_vulnerable.
    drown_hosts: list[dict[str, Any]] = Field(default_factory=list)
    vuln_beast: bool = False
    openssl_ccs: int | None = None
    openssl_lucky_minus20: int | None = None

    supports_rc4: bool = False
    rc4_with_modern: bool = False
    rc4_only: bool = False

    # Bitmask as reported upstream; None when the provider omitted it.
    forward_secrecy: int | None = None
    ocsp_stapling: bool = False
    stapling_revocation_status: int | None = None
    supports_alpn: bool = False
    alpn_protocols: str | None = None
    supports_npn: bool = False
    npn_protocols: str | None = None
    session_resumption: int | None = None
    session_tickets: int | None = None
    compression_methods: int | None = None
    sni_required: bool = False
    fallback_scsv: bool = False
    has_sct: int | None = None
    dh_primes: list[str] = Field(default_factory=list)
    dh_uses_known_primes: int | None = None
    dh_ys_reuse: bool = False
    chacha20_preference: bool = False
    http_status_code: int | None = None
    http_forwarding: str | None = None
    sts_response_header: str | None = None
    sts_max_age: int | None = None
    sts_subdomains: bool | None = None
    hsts_policy: dict[str, Any] | None = None
    hsts_preloads: list[dict[str, Any]] = Field(default_factory=list)
    pkp_response_header: dict[str, Any] | None = None
    hpkp_policy: dict[str, Any] | None = None
    hpkp_ro_policy: dict[str, Any] | None = None
    static_pkp_policy: dict[str, Any] | None = None
    protocol_intolerance: int | None = None
    misc_intolerance: int | None = None

    # Capped at 5, upstream order.
    sims: list[SimulatedClient] = Field(default_factory=list)


class Endpoint(BaseModel):
    ip_address: str | None = None
    server_name: str | None = None
    status_message: str | None = None
    grade: str | None = None
    grade_trust_ignored: str | None = None
    has_warnings: bool = False
    is_exceptional: bool = False
    progress: int | None = None
    duration: int | None = None
    eta: int | None = None
    delegation: int | None = None
    details: EndpointDetail | None = None


class CertificateInfo(BaseModel):
    id: str | None = None
    subject: str | None = None
    common_names: list[str] = Field(default_factory=list)
    alt_names: list[str] = Field(default_factory=list)
    # Epoch milliseconds, copied verbatim from upstream.
    not_before: int | None = None
    not_after: int | None = None
    issuer_subject: str | None = None
    issuer_label: str | None = None
    sig_alg: str | None = None
    revocation_info: int | None = None
    crl_uris: list[str] = Field(default_factory=list)
    ocsp_uris: list[str] = Field(default_factory=list)
    key_alg: str | None = None
    key_size: int | None = None
    key_strength: int | None = None
    key_known_debian_insecure: bool = False
    # PEM as delivered upstream.
    raw: str | None = None


class GradeReport(BaseModel):
    host: str
    port: int = 443
    protocol: str = "HTTP"
    is_public: bool = False
    status: GradeStatus
    start_time: int | None = None
    test_time: int | None = None
    engine_version: str | None = None
    criteria_version: str | None = None
    endpoints: list[Endpoint] = Field(default_factory=list)
    certs: list[CertificateInfo] = Field(default_factory=list)


# Transparency provider (crt.sh) schema.


class CTCertificate(BaseModel):
    id: int | None = None
    logged_at: str | None = None
    not_before: str | None = None
    not_after: str | None = None
    common_name: str | None = None
    name_value: str | None = None
    issuer_ca_id: int | None = None
    issuer_name: str | None = None
    serial_number: str | None = None
    result_count: int | None = None

    # derived from not_before/not_after at scan time
    is_expired: bool = False
    is_active: bool = False
    days_until_expiry: int | None = None
    validity_period: int | None = None
    subdomains: list[str] = Field(default_factory=list)


class TransparencySummary(BaseModel):
    total_certificates: int = 0
    active_certificates: int = 0
    expired_certificates: int = 0
    recent_certificates: int = 0
    unique_issuers: int = 0
    discovered_subdomains: int = 0


class MonthCount(BaseModel):
    month: str
    count: int


class TransparencyStatistics(BaseModel):
    issuers: list[str] = Field(default_factory=list)
    subdomains: list[str] = Field(default_factory=list)
    certificates_by_month: list[MonthCount] = Field(default_factory=list)


class CertificateSlices(BaseModel):
    active: list[CTCertificate] = Field(default_factory=list)
    recent: list[CTCertificate] = Field(default_factory=list)
    all: list[CTCertificate] = Field(default_factory=list)


class TransparencyReport(BaseModel):
    domain: str
    scan_timestamp: str
    summary: TransparencySummary
    statistics: TransparencyStatistics
    certificates: CertificateSlices


# Aggregate result.


class SourceFailure(BaseModel):
    status: Literal["failed"] = "failed"
    error: str
    error_type: str


class SecuritySummary(BaseModel):
    overall_grade: str = "Unknown"
    security_issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    certificate_status: str = "Unknown"


class AnalysisData(BaseModel):
    ssl_security: GradeReport | SourceFailure
    certificate_transparency: TransparencyReport | SourceFailure


class AnalysisResult(BaseModel):
    success: bool = True
    domain: str
    timestamp: str
    analysis_time: str
    timings_ms: dict[str, int]
    data: AnalysisData
    summary: SecuritySummary
