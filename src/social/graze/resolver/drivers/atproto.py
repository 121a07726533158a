"""Native AT Protocol DID drivers.

Resolves did:plc DIDs through a PLC directory and did:web DIDs through the
``did.json`` document published by the web host. Besides the DID document the
drivers extract the AT Protocol handle and PDS endpoint into document metadata.
"""

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import unquote

from aiohttp import ClientError, ClientSession
from pydantic import BaseModel
import sentry_sdk

from social.graze.resolver.did import DID
from social.graze.resolver.drivers.base import PatternDriver
from social.graze.resolver.errors import ResolutionException
from social.graze.resolver.result import DID_JSON_MEDIA_TYPE, ResolveResult

logger = logging.getLogger(__name__)

DID_PLC_PATTERN = r"^(did:plc:[a-z2-7]+)$"
DID_WEB_PATTERN = r"^(did:web:.+)$"


class AtprotoSubject(BaseModel):
    """AT Protocol identity facts extracted from a DID document.

    Contains the DID and, when the document declares them, the handle and the
    PDS endpoint.
    """

    did: str
    handle: Optional[str] = None
    pds: Optional[str] = None


def handle_predicate(value: str) -> bool:
    """Check if value is an AT Protocol handle reference.

    Args:
        value: String to check

    Returns:
        True if value starts with at:// prefix
    """
    return value is not None and value.startswith("at://")


def pds_predicate(value: Dict[str, Any]) -> bool:
    """Check if service entry is an AT Protocol PDS.

    Args:
        value: Service dictionary from DID document

    Returns:
        True if service is AtprotoPersonalDataServer with endpoint
    """
    return (
        value is not None
        and value.get("type", None) == "AtprotoPersonalDataServer"
        and "serviceEndpoint" in value
    )


def extract_subject(did: str, document: Dict[str, Any]) -> AtprotoSubject:
    """Extract the AT Protocol handle and PDS endpoint from a DID document."""
    handle = next(filter(handle_predicate, document.get("alsoKnownAs", []) or []), None)
    pds = next(filter(pds_predicate, document.get("service", []) or []), None)
    return AtprotoSubject(
        did=did,
        handle=handle.removeprefix("at://") if handle is not None else None,
        pds=pds.get("serviceEndpoint") if pds is not None else None,
    )


async def fetch_did_document(
    session: ClientSession, url: str, did: DID
) -> ResolveResult:
    """Fetch a JSON DID document and wrap it in a resolve result.

    Args:
        session: HTTP client session
        url: Location of the DID document
        did: DID being resolved

    Returns:
        ResolveResult with the document, or with no document if the body is empty

    Raises:
        ResolutionException: notFound for 404 and 410 responses, internalError
            for any other failure
    """
    try:
        async with session.get(url) as resp:
            if resp.status in (404, 410):
                raise ResolutionException.not_found(did.did_string)
            if resp.status != 200:
                raise ResolutionException.resolution_failed(
                    f"{url} returned HTTP status {resp.status} for {did}"
                )
            body = await resp.json(content_type=None)
    except (ClientError, ValueError) as e:
        sentry_sdk.capture_exception(e)
        raise ResolutionException.resolution_failed(
            f"Cannot retrieve DID document for {did} from {url}: {e}"
        ) from e

    if not isinstance(body, dict):
        logger.info(f"Empty or malformed DID document for {did} at {url}")
        return ResolveResult(did_resolution_metadata={"contentType": DID_JSON_MEDIA_TYPE})

    subject = extract_subject(did.did_string, body)
    return ResolveResult(
        did_document=body,
        did_resolution_metadata={"contentType": DID_JSON_MEDIA_TYPE},
        did_document_metadata=subject.model_dump(exclude_none=True, exclude={"did"}),
    )


class DidPlcDriver(PatternDriver):
    """Resolves did:plc DIDs through a PLC directory."""

    def __init__(self, session: ClientSession, plc_hostname: str = "plc.directory") -> None:
        super().__init__(
            DID_PLC_PATTERN,
            resolve_uri=f"https://{plc_hostname}/",
            test_identifiers=["did:plc:ewvi7nxzyoun6zhxrhs64oiz"],
            traits={"updatable": True, "deactivatable": True, "enumerable": True},
        )
        self.plc_hostname = plc_hostname
        self._session = session

    async def resolve(
        self, did: DID, resolution_options: Mapping[str, Any]
    ) -> Optional[ResolveResult]:
        identifier = self.identifier(did)
        if identifier is None:
            return None
        return await fetch_did_document(
            self._session, f"https://{self.plc_hostname}/{identifier}", did
        )

    async def properties(self) -> Optional[Dict[str, Any]]:
        return {"plcHostname": self.plc_hostname}


def did_web_url(did: DID) -> str:
    """Build the did.json location for a did:web DID.

    ``did:web:example.com`` maps to ``https://example.com/.well-known/did.json`` and
    ``did:web:example.com:user:alice`` to ``https://example.com/user/alice/did.json``.
    Percent-encoded characters (such as a port separator) are decoded.
    """
    parts = [unquote(part) for part in did.method_specific_id.split(":")]
    if len(parts) == 1:
        parts.append(".well-known")
    return "https://{inner}/did.json".format(inner="/".join(parts))


class DidWebDriver(PatternDriver):
    """Resolves did:web DIDs from the did.json document of the web host."""

    def __init__(self, session: ClientSession) -> None:
        super().__init__(
            DID_WEB_PATTERN,
            resolve_uri="https://",
            test_identifiers=["did:web:did.actor:alice"],
            traits={"updatable": True, "deactivatable": True, "enumerable": False},
        )
        self._session = session

    async def resolve(
        self, did: DID, resolution_options: Mapping[str, Any]
    ) -> Optional[ResolveResult]:
        if self.identifier(did) is None:
            return None
        return await fetch_did_document(self._session, did_web_url(did), did)
