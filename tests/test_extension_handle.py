"""
Unit tests for AT Protocol handle verification in social.graze.resolver.extensions.handle

Tests cover DNS and HTTP handle resolution and the after-resolve extension that
checks a document's claimed handle against the DID.
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch
from aiohttp import ClientResponse, ClientSession

from social.graze.resolver.did import parse_did
from social.graze.resolver.extensions.base import DEFAULT, ExtensionStage
from social.graze.resolver.extensions.handle import (
    AtprotoHandleVerificationExtension,
    resolve_handle,
    resolve_handle_dns,
    resolve_handle_http,
)
from social.graze.resolver.result import ResolveResult

DOCUMENT = {
    "id": "did:plc:abc123",
    "alsoKnownAs": ["at://user.bsky.social"],
    "service": [
        {
            "type": "AtprotoPersonalDataServer",
            "serviceEndpoint": "https://pds.example.com",
        }
    ],
}


class TestResolveHandleDns:
    """Test suite for DNS handle resolution."""

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.DNSResolver")
    async def test_resolve_handle_dns_success(self, mock_resolver_class):
        """Test successful DNS resolution."""
        mock_resolver = AsyncMock()
        mock_resolver_class.return_value = mock_resolver

        mock_result = Mock()
        mock_result.text = "did=did:plc:abc123"
        mock_resolver.query.return_value = [mock_result]

        result = await resolve_handle_dns("user.bsky.social")

        assert result == "did:plc:abc123"
        mock_resolver.query.assert_called_once_with("_atproto.user.bsky.social", "TXT")

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.DNSResolver")
    async def test_resolve_handle_dns_no_results(self, mock_resolver_class):
        """Test DNS resolution with no results."""
        mock_resolver = AsyncMock()
        mock_resolver_class.return_value = mock_resolver
        mock_resolver.query.return_value = []

        assert await resolve_handle_dns("user.bsky.social") is None

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.DNSResolver")
    @patch("social.graze.resolver.extensions.handle.sentry_sdk")
    async def test_resolve_handle_dns_exception(self, mock_sentry, mock_resolver_class):
        """Test DNS resolution with exception."""
        mock_resolver = AsyncMock()
        mock_resolver_class.return_value = mock_resolver
        mock_resolver.query.side_effect = Exception("DNS error")

        result = await resolve_handle_dns("user.bsky.social")

        assert result is None
        mock_sentry.capture_exception.assert_called_once()


class TestResolveHandleHttp:
    """Test suite for HTTP handle resolution."""

    @pytest.mark.asyncio
    async def test_resolve_handle_http_success(self):
        """Test successful HTTP resolution strips surrounding whitespace."""
        mock_session = AsyncMock(spec=ClientSession)
        mock_response = AsyncMock(spec=ClientResponse)
        mock_response.status = 200
        mock_response.text.return_value = "did:plc:abc123\n"

        mock_session.get.return_value.__aenter__.return_value = mock_response

        result = await resolve_handle_http(mock_session, "user.bsky.social")

        assert result == "did:plc:abc123"
        mock_session.get.assert_called_once_with(
            "https://user.bsky.social/.well-known/atproto-did"
        )

    @pytest.mark.asyncio
    async def test_resolve_handle_http_not_found(self):
        """Test HTTP resolution with 404 response."""
        mock_session = AsyncMock(spec=ClientSession)
        mock_response = AsyncMock(spec=ClientResponse)
        mock_response.status = 404

        mock_session.get.return_value.__aenter__.return_value = mock_response

        assert await resolve_handle_http(mock_session, "user.bsky.social") is None


class TestResolveHandle:
    """Test suite for combined handle resolution."""

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.resolve_handle_dns")
    @patch("social.graze.resolver.extensions.handle.resolve_handle_http")
    async def test_resolve_handle_prefers_dns(self, mock_http, mock_dns):
        mock_dns.return_value = "did:plc:dns123"
        mock_http.return_value = "did:plc:http456"

        result = await resolve_handle(AsyncMock(), "user.bsky.social")

        assert result == "did:plc:dns123"

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.resolve_handle_dns")
    @patch("social.graze.resolver.extensions.handle.resolve_handle_http")
    async def test_resolve_handle_http_fallback(self, mock_http, mock_dns):
        mock_dns.return_value = None
        mock_http.return_value = "did:plc:http456"

        result = await resolve_handle(AsyncMock(), "user.bsky.social")

        assert result == "did:plc:http456"


class TestAtprotoHandleVerificationExtension:
    """Test suite for the handle verification extension."""

    def test_stage(self):
        extension = AtprotoHandleVerificationExtension(AsyncMock(spec=ClientSession))
        assert extension.stage == ExtensionStage.after_resolve

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.resolve_handle")
    async def test_verified_handle(self, mock_resolve_handle):
        mock_resolve_handle.return_value = "did:plc:abc123"
        extension = AtprotoHandleVerificationExtension(AsyncMock(spec=ClientSession))
        resolve_result = ResolveResult(did_document=DOCUMENT)

        status = await extension.apply(
            parse_did("did:plc:abc123"), {}, resolve_result, {}, Mock()
        )

        assert status == DEFAULT
        assert resolve_result.did_document_metadata == {
            "handle": "user.bsky.social",
            "handleVerified": True,
            "pds": "https://pds.example.com",
        }
        mock_resolve_handle.assert_called_once()

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.resolve_handle")
    async def test_unverified_handle(self, mock_resolve_handle):
        mock_resolve_handle.return_value = "did:plc:someoneelse"
        extension = AtprotoHandleVerificationExtension(AsyncMock(spec=ClientSession))
        resolve_result = ResolveResult(
            did_document=DOCUMENT,
            did_document_metadata={"pds": "https://driver.example.com"},
        )

        await extension.apply(parse_did("did:plc:abc123"), {}, resolve_result, {}, Mock())

        assert resolve_result.did_document_metadata["handleVerified"] is False
        assert resolve_result.did_document_metadata["pds"] == "https://driver.example.com"

    @pytest.mark.asyncio
    @patch("social.graze.resolver.extensions.handle.resolve_handle")
    async def test_not_applicable(self, mock_resolve_handle):
        extension = AtprotoHandleVerificationExtension(AsyncMock(spec=ClientSession))
        did = parse_did("did:plc:abc123")

        assert (
            await extension.apply(did, {}, ResolveResult(did_document={"id": "x"}), {}, Mock())
            is None
        )
        assert await extension.apply(did, {}, ResolveResult(), {}, Mock()) is None
        assert (
            await extension.apply(
                did, {"verifyHandle": "false"}, ResolveResult(did_document=DOCUMENT), {}, Mock()
            )
            is None
        )
        mock_resolve_handle.assert_not_called()
