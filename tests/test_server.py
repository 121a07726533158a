"""
Integration tests for the resolver web application.

The application is started with aiohttp's test server and a resolver built from
stub drivers, so no outbound requests are made.
"""

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from social.graze.resolver.app.config import HealthGaugeAppKey, Settings
from social.graze.resolver.app.handlers.resolver import (
    status_for_error,
    wants_resolve_result,
)
from social.graze.resolver.app.server import start_web_server
from social.graze.resolver.errors import ResolutionException
from social.graze.resolver.extensions.base import DEFAULT, ExtensionStage, extension
from social.graze.resolver.resolver import LocalResolver
from social.graze.resolver.result import RESOLVE_RESULT_MEDIA_TYPE
from tests.helpers import StubDriver


@extension(ExtensionStage.after_resolve)
async def mark_deactivated(did, options, result, state, resolver):
    if did.method_specific_id == "deactivated":
        result.document_metadata["deactivated"] = True
    return DEFAULT


def build_resolver():
    return LocalResolver(
        drivers=[
            StubDriver(
                "example",
                resolution_metadata={"contentType": "application/did+json"},
                test_identifiers=["did:example:123"],
                traits={"updatable": False},
            ),
            StubDriver(
                "broken",
                raises=RuntimeError("backend down"),
                test_identifiers=["did:broken:1"],
            ),
            StubDriver(
                "gone",
                raises=ResolutionException("notFound", "gone"),
            ),
        ],
        extensions=[mark_deactivated],
    )


async def make_client(resolver):
    app = await start_web_server(Settings(atproto_drivers=False), resolver=resolver)
    return TestClient(TestServer(app))


@pytest_asyncio.fixture
async def client():
    client = await make_client(build_resolver())
    await client.start_server()
    yield client
    await client.close()


def test_status_for_error():
    assert status_for_error("invalidDid") == 400
    assert status_for_error("notFound") == 404
    assert status_for_error("representationNotSupported") == 406
    assert status_for_error("methodNotSupported") == 501
    assert status_for_error("internalError") == 500
    assert status_for_error("somethingElse") == 500


def test_wants_resolve_result():
    assert wants_resolve_result(RESOLVE_RESULT_MEDIA_TYPE)
    assert not wants_resolve_result("application/did+ld+json")
    assert not wants_resolve_result("")


@pytest.mark.asyncio
async def test_resolve_document(client):
    resp = await client.get("/1.0/identifiers/did:example:123")

    assert resp.status == 200
    assert resp.headers["Content-Type"].startswith("application/did+json")
    assert await resp.json(content_type=None) == {"id": "did:example:123"}


@pytest.mark.asyncio
async def test_resolve_full_result(client):
    resp = await client.get(
        "/1.0/identifiers/did:example:123",
        headers={"Accept": RESOLVE_RESULT_MEDIA_TYPE},
    )

    assert resp.status == 200
    body = await resp.json(content_type=None)
    assert body["didDocument"] == {"id": "did:example:123"}
    metadata = body["didResolutionMetadata"]
    assert metadata["did"]["method"] == "example"
    assert "duration" in metadata
    assert "driverDuration" in metadata


@pytest.mark.asyncio
async def test_query_parameters_become_options():
    driver = StubDriver("example")
    client = await make_client(LocalResolver(drivers=[driver]))
    await client.start_server()
    try:
        resp = await client.get(
            "/1.0/identifiers/did:example:123?noCache=true",
            headers={"Accept": "application/did+json"},
        )
        assert resp.status == 200
    finally:
        await client.close()

    assert dict(driver.received_options[0]) == {
        "noCache": "true",
        "accept": "application/did+json",
    }


@pytest.mark.asyncio
async def test_resolve_deactivated(client):
    resp = await client.get("/1.0/identifiers/did:example:deactivated")

    assert resp.status == 410


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "identifier,status,error",
    [
        ("not-a-did", 400, "invalidDid"),
        ("did:unknown:123", 501, "methodNotSupported"),
        ("did:gone:123", 404, "notFound"),
    ],
)
async def test_resolve_errors(client, identifier, status, error):
    resp = await client.get(f"/1.0/identifiers/{identifier}")

    assert resp.status == status
    body = await resp.json(content_type=None)
    assert body["didDocument"] is None
    assert body["didResolutionMetadata"]["error"] == error
    assert await client.app[HealthGaugeAppKey].is_healthy()
    assert client.app[HealthGaugeAppKey].value == 0


@pytest.mark.asyncio
async def test_resolve_driver_failure_counts_against_health(client):
    resp = await client.get("/1.0/identifiers/did:broken:1")

    assert resp.status == 500
    body = await resp.json(content_type=None)
    assert body["didResolutionMetadata"]["error"] == "internalError"
    assert client.app[HealthGaugeAppKey].value == 1


@pytest.mark.asyncio
async def test_properties(client):
    resp = await client.get("/1.0/properties")

    assert resp.status == 200
    assert await resp.json() == {"driver-0": {}, "driver-1": {}, "driver-2": {}}


@pytest.mark.asyncio
async def test_methods(client):
    resp = await client.get("/1.0/methods")

    assert resp.status == 200
    assert await resp.json() == ["example", "broken"]


@pytest.mark.asyncio
async def test_test_identifiers(client):
    resp = await client.get("/1.0/testIdentifiers")

    assert resp.status == 200
    assert await resp.json() == {
        "example": ["did:example:123"],
        "broken": ["did:broken:1"],
    }


@pytest.mark.asyncio
async def test_traits(client):
    resp = await client.get("/1.0/traits")

    assert resp.status == 200
    assert (await resp.json())["driver-0"] == {"updatable": False}


@pytest.mark.asyncio
async def test_misconfigured_resolver():
    client = await make_client(LocalResolver())
    await client.start_server()
    try:
        resp = await client.get("/1.0/methods")
        assert resp.status == 500
        body = await resp.json(content_type=None)
        assert body["didResolutionMetadata"]["error"] == "misconfigured"
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_internal_endpoints(client):
    assert (await client.get("/internal/alive")).status == 200
    assert (await client.get("/internal/ready")).status == 200

    await client.app[HealthGaugeAppKey].womp(1000)

    assert (await client.get("/internal/ready")).status == 503
