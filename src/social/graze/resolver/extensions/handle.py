"""AT Protocol handle verification.

A DID document may claim an AT Protocol handle through an ``at://`` entry in
``alsoKnownAs``. The claim only holds if the handle resolves back to the same DID,
through the DNS TXT record ``_atproto.<handle>`` or the HTTPS well-known endpoint
``https://<handle>/.well-known/atproto-did``.
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from aiodns import DNSResolver
from aiohttp import ClientSession
import sentry_sdk

from social.graze.resolver.did import DID
from social.graze.resolver.drivers.atproto import extract_subject
from social.graze.resolver.extensions.base import (
    DEFAULT,
    AfterResolveExtension,
    ExtensionStatus,
)
from social.graze.resolver.result import ResolveResult

if TYPE_CHECKING:
    from social.graze.resolver.resolver import LocalResolver

logger = logging.getLogger(__name__)


async def resolve_handle_dns(handle: str) -> Optional[str]:
    """Resolve AT Protocol handle to DID using DNS TXT record.

    Queries _atproto.{handle} TXT record and extracts DID from did= prefix.

    Args:
        handle: AT Protocol handle to resolve

    Returns:
        DID string if found, None if resolution fails
    """
    resolver = DNSResolver()
    try:
        results = await resolver.query(f"_atproto.{handle}", "TXT")
    except Exception as e:
        sentry_sdk.capture_exception(e)
        return None
    first_result = next(iter(results or []), None)
    if first_result is not None:
        return first_result.text.removeprefix("did=")
    return None


async def resolve_handle_http(session: ClientSession, handle: str) -> Optional[str]:
    """Resolve AT Protocol handle to DID using HTTPS well-known endpoint.

    Args:
        session: HTTP client session
        handle: AT Protocol handle to resolve

    Returns:
        DID string if found, None if resolution fails
    """
    try:
        async with session.get(f"https://{handle}/.well-known/atproto-did") as resp:
            if resp.status != 200:
                return None
            body = await resp.text()
            if body is not None:
                return body.strip()
            return None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        return None


async def resolve_handle(session: ClientSession, handle: str) -> Optional[str]:
    """Resolve AT Protocol handle to DID using DNS and HTTPS concurrently.

    Both lookups run concurrently, the DNS answer is preferred.
    """
    async with asyncio.TaskGroup() as tg:
        dns_result = tg.create_task(resolve_handle_dns(handle))
        http_result = tg.create_task(resolve_handle_http(session, handle))
    dns_did = dns_result.result()
    if dns_did is not None:
        return dns_did
    return http_result.result()


class AtprotoHandleVerificationExtension(AfterResolveExtension):
    """
    Verifies the AT Protocol handle claimed by a resolved DID document.

    Adds ``handle``, ``handleVerified`` and (when declared) ``pds`` to the
    document metadata. Documents without an ``at://`` alias are not applicable.
    Set the resolution option ``verifyHandle`` to false to skip verification
    for a single call.
    """

    def __init__(self, session: ClientSession) -> None:
        self._session = session

    async def apply(
        self,
        did: DID,
        resolution_options: Mapping[str, Any],
        resolve_result: ResolveResult,
        execution_state: Dict[str, Any],
        resolver: "LocalResolver",
    ) -> Optional[ExtensionStatus]:
        if str(resolution_options.get("verifyHandle", "true")).lower() == "false":
            return None

        document = resolve_result.did_document
        if not isinstance(document, dict):
            return None

        subject = extract_subject(did.did_string, document)
        if subject.handle is None:
            return None

        resolved_did = await resolve_handle(self._session, subject.handle)
        verified = resolved_did == did.did_string
        if not verified:
            logger.info(
                f"Handle {subject.handle} of {did} resolved to {resolved_did}, not verified"
            )

        metadata = resolve_result.document_metadata
        metadata["handle"] = subject.handle
        metadata["handleVerified"] = verified
        if subject.pds is not None:
            metadata.setdefault("pds", subject.pds)
        return DEFAULT
