"""Tests for summary derivation."""

from conftest import ct_row, make_endpoint

from certscope_agent.normalize import build_transparency_report, normalize_grade_report
from certscope_agent.summary import overall_grade, summarize


def _grade_report(*endpoints):
    return normalize_grade_report({"host": "example.com", "status": "READY", "endpoints": list(endpoints)}, "example.com")


def test_overall_grade_is_textual_minimum():
    assert overall_grade(["B", "A", "N/A"]) == "A"
    assert overall_grade(["A", "A+"]) == "A"
    assert overall_grade(["N/A", None]) == "Unknown"
    assert overall_grade([]) == "Unknown"


def test_overall_grade_from_endpoints():
    report = _grade_report(make_endpoint(grade="B"), make_endpoint(grade="A"), make_endpoint(grade="N/A"))
    assert summarize(report, None).overall_grade == "A"


def test_issues_listed_in_scan_order():
    report = _grade_report(
        make_endpoint(supportsRc4=True, logjam=True, heartbleed=True, drownVulnerable=True, poodle=True, freak=True)
    )
    assert summarize(report, None).security_issues == [
        "Heartbleed vulnerability detected",
        "POODLE vulnerability detected",
        "FREAK vulnerability detected",
        "Logjam vulnerability detected",
        "DROWN vulnerability detected",
        "RC4 cipher support detected",
    ]


def test_issues_repeat_per_endpoint():
    report = _grade_report(
        make_endpoint(ip="10.0.0.1", heartbleed=True),
        make_endpoint(ip="10.0.0.2", heartbleed=True),
        make_endpoint(ip="10.0.0.3"),
    )
    assert summarize(report, None).security_issues == ["Heartbleed vulnerability detected"] * 2


def test_recommendations_for_missing_forward_secrecy_and_stapling():
    endpoint = make_endpoint(forwardSecrecy=0, ocspStapling=False)
    del endpoint["details"]["forwardSecrecy"]
    summary = summarize(_grade_report(endpoint, make_endpoint()), None)
    assert summary.recommendations == ["Enable Perfect Forward Secrecy", "Enable OCSP Stapling"]


def test_endpoint_without_details_contributes_nothing():
    summary = summarize(_grade_report({"ipAddress": "10.0.0.1", "grade": "T"}), None)
    assert summary.overall_grade == "T"
    assert summary.security_issues == []
    assert summary.recommendations == []


def test_certificate_status(now, ct_rows):
    active = build_transparency_report("example.com", ct_rows, now=now)
    assert summarize(None, active).certificate_status == "Active"

    only_expired = build_transparency_report("example.com", [ct_rows[1]], now=now)
    assert summarize(None, only_expired).certificate_status == "No active certificates"

    assert summarize(None, None).certificate_status == "Unknown"
    assert summarize(None, None).overall_grade == "Unknown"


def test_subdomain_review_recommended_once(now):
    rows = [ct_row(i, "2025-05-01T00:00:00", f"h{i}.example.com") for i in range(11)]
    report = build_transparency_report("example.com", rows, now=now)
    summary = summarize(_grade_report(make_endpoint()), report)
    assert summary.recommendations == ["Review exposed subdomains for security"]


def test_no_subdomain_review_at_threshold(now):
    rows = [ct_row(i, "2025-05-01T00:00:00", f"h{i}.example.com") for i in range(10)]
    report = build_transparency_report("example.com", rows, now=now)
    assert summarize(None, report).recommendations == []
