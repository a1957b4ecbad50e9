from __future__ import annotations

from .models import GradeReport, SecuritySummary, TransparencyReport


# Scan order is fixed; one issue string per affected endpoint.
_VULNERABILITY_CHECKS = (
    ("heartbleed", "Heartbleed vulnerability detected"),
    ("poodle", "POODLE vulnerability detected"),
    ("freak", "FREAK vulnerability detected"),
    ("logjam", "Logjam vulnerability detected"),
    ("drown_vulnerable", "DROWN vulnerability detected"),
    ("supports_rc4", "RC4 cipher support detected"),
)

_SUBDOMAIN_REVIEW_THRESHOLD = 10


def overall_grade(grades: list[str | None]) -> str:
    # Textual minimum: "A+" < "A" < "B". Not a true rank for values like "A-" vs "B+".
    candidates = [g for g in grades if g and g != "N/A"]
    if not candidates:
        return "Unknown"
    return min(candidates)


def summarize(grade: GradeReport | None, transparency: TransparencyReport | None) -> SecuritySummary:
    summary = SecuritySummary()

    if grade is not None:
        summary.overall_grade = overall_grade([ep.grade for ep in grade.endpoints])

        for endpoint in grade.endpoints:
            details = endpoint.details
            if details is None:
                continue
            for attr, message in _VULNERABILITY_CHECKS:
                if getattr(details, attr):
                    summary.security_issues.append(message)
            if not details.forward_secrecy:
                summary.recommendations.append("Enable Perfect Forward Secrecy")
            if not details.ocsp_stapling:
                summary.recommendations.append("Enable OCSP Stapling")

    if transparency is not None:
        counts = transparency.summary
        summary.certificate_status = "Active" if counts.active_certificates > 0 else "No active certificates"
        if counts.discovered_subdomains > _SUBDOMAIN_REVIEW_THRESHOLD:
            summary.recommendations.append("Review exposed subdomains for security")

    return summary
