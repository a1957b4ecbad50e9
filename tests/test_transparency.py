"""Tests for the crt.sh lookup."""

import httpx
import pytest

from certscope_agent.errors import TransparencyError, TransparencyTimeout
from certscope_agent.transparency import fetch_transparency_report


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_single_wildcard_lookup(settings, ct_rows, now):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=ct_rows)

    async with _client(handler) as client:
        report = await fetch_transparency_report(client, "example.com", settings, now=now)

    assert len(seen) == 1
    assert seen[0].url.params["q"] == "%.example.com"
    assert seen[0].url.params["output"] == "json"
    assert seen[0].headers["user-agent"] == settings.user_agent
    assert report.domain == "example.com"
    assert report.summary.total_certificates == 3


@pytest.mark.asyncio
async def test_empty_body_is_empty_report(settings, now):
    async with _client(lambda request: httpx.Response(200, text="")) as client:
        report = await fetch_transparency_report(client, "example.com", settings, now=now)

    assert report.summary.total_certificates == 0
    assert report.statistics.certificates_by_month == []
    assert report.certificates.all == []


@pytest.mark.asyncio
async def test_timeout_maps_to_transparency_timeout(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler) as client:
        with pytest.raises(TransparencyTimeout, match="lookup timeout"):
            await fetch_transparency_report(client, "example.com", settings)


@pytest.mark.asyncio
async def test_non_2xx_is_transparency_error(settings):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(502, text="Bad Gateway")

    async with _client(handler) as client:
        with pytest.raises(TransparencyError, match="HTTP 502"):
            await fetch_transparency_report(client, "example.com", settings)

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_connection_error_is_transparency_error(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed", request=request)

    async with _client(handler) as client:
        with pytest.raises(TransparencyError, match="name resolution failed"):
            await fetch_transparency_report(client, "example.com", settings)


@pytest.mark.asyncio
async def test_malformed_json_is_transparency_error(settings):
    async with _client(lambda request: httpx.Response(200, text="[{oops")) as client:
        with pytest.raises(TransparencyError):
            await fetch_transparency_report(client, "example.com", settings)


@pytest.mark.asyncio
async def test_unexpected_shape_is_transparency_error(settings):
    async with _client(lambda request: httpx.Response(200, json={"error": "busy"})) as client:
        with pytest.raises(TransparencyError, match="unexpected response shape"):
            await fetch_transparency_report(client, "example.com", settings)
