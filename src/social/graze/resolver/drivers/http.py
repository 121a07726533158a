"""Driver that forwards resolution requests to a remote driver over HTTP.

Remote drivers follow the uni-resolver driver interface: ``GET <resolve_uri><did>``
returns either a complete DID resolution result or a bare DID document,
depending on the content type of the response.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Pattern, Union
from urllib.parse import quote

from aiohttp import ClientError, ClientSession, hdrs
from pydantic import ValidationError
import sentry_sdk

from social.graze.resolver.did import DID
from social.graze.resolver.drivers.base import PatternDriver
from social.graze.resolver.errors import ErrorCode, ResolutionException
from social.graze.resolver.result import (
    DID_DOCUMENT_MEDIA_TYPES,
    RESOLVE_RESULT_MEDIA_TYPE,
    ResolveResult,
)

logger = logging.getLogger(__name__)

RESOLVE_RESULT_PROFILE = "https://w3id.org/did-resolution"

DEFAULT_ACCEPT = ", ".join((RESOLVE_RESULT_MEDIA_TYPE,) + DID_DOCUMENT_MEDIA_TYPES)


def is_resolve_result_content_type(content_type: Optional[str]) -> bool:
    """Check if a content type denotes a complete DID resolution result."""
    if not content_type:
        return False
    normalized = content_type.replace(" ", "").lower()
    return normalized.startswith("application/ld+json") and RESOLVE_RESULT_PROFILE in normalized


def _excerpt(body: str, limit: int = 200) -> str:
    return body if len(body) <= limit else body[:limit] + "..."


class HttpDriver(PatternDriver):
    """
    Driver backed by a remote HTTP resolution endpoint.

    Args:
        session: HTTP client session used for all requests
        pattern: Regular expression the DID string must match for this driver to apply
        resolve_uri: Endpoint prefix, or a template containing ``$1``
        properties_uri: Optional endpoint returning the remote driver's properties
        test_identifiers: Example DIDs this driver can resolve
        traits: Static trait mapping reported for this driver
    """

    resolve_uri: str

    def __init__(
        self,
        session: ClientSession,
        pattern: Union[str, Pattern[str]],
        resolve_uri: str,
        properties_uri: Optional[str] = None,
        test_identifiers: Optional[List[str]] = None,
        traits: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            pattern,
            resolve_uri=resolve_uri,
            test_identifiers=test_identifiers,
            traits=traits,
        )
        self.properties_uri = properties_uri
        self._session = session

    def resolve_url(self, identifier: str) -> str:
        encoded = quote(identifier, safe=":;%")
        if "$1" in self.resolve_uri:
            return self.resolve_uri.replace("$1", encoded)
        return self.resolve_uri + encoded

    async def resolve(
        self, did: DID, resolution_options: Mapping[str, Any]
    ) -> Optional[ResolveResult]:
        identifier = self.identifier(did)
        if identifier is None:
            return None

        url = self.resolve_url(identifier)
        accept = resolution_options.get("accept") or DEFAULT_ACCEPT
        logger.debug(f"Driver request: GET {url} (Accept: {accept})")

        try:
            async with self._session.get(url, headers={hdrs.ACCEPT: accept}) as resp:
                status = resp.status
                content_type = resp.headers.get(hdrs.CONTENT_TYPE, "")
                body = await resp.text()
        except ClientError as e:
            sentry_sdk.capture_exception(e)
            raise ResolutionException.resolution_failed(
                f"Cannot retrieve result for {identifier} from {url}: {e}"
            ) from e

        logger.debug(f"Driver response: {status} {content_type} from {url}")
        return self.parse_response(identifier, status, content_type, body)

    def parse_response(
        self, identifier: str, status: int, content_type: str, body: Optional[str]
    ) -> ResolveResult:
        body = body or ""

        if is_resolve_result_content_type(content_type):
            try:
                resolve_result = ResolveResult.model_validate_json(body)
            except ValidationError as e:
                raise ResolutionException.resolution_failed(
                    f"Cannot parse resolve result for {identifier}: {e}"
                ) from e
            error = resolve_result.error
            if error is not None:
                message = (resolve_result.did_resolution_metadata or {}).get(
                    "errorMessage", f"Driver returned error {error} for {identifier}"
                )
                raise ResolutionException(error, message)
            if not 200 <= status < 300:
                raise ResolutionException.resolution_failed(
                    f"Driver returned HTTP status {status} for {identifier}"
                )
            return resolve_result

        if status == 404:
            raise ResolutionException.not_found(identifier)
        if status == 406:
            raise ResolutionException(
                ErrorCode.representation_not_supported,
                f"Representation not supported by driver for {identifier}: {_excerpt(body)}",
            )
        if not 200 <= status < 300:
            raise ResolutionException.resolution_failed(
                f"Driver returned HTTP status {status} for {identifier}: {_excerpt(body)}"
            )

        try:
            did_document = json.loads(body)
        except json.JSONDecodeError as e:
            raise ResolutionException.resolution_failed(
                f"Cannot parse DID document for {identifier}: {e}"
            ) from e

        resolution_metadata: Dict[str, Any] = {}
        if content_type:
            resolution_metadata["contentType"] = content_type.split(";")[0].strip()
        return ResolveResult(
            did_document=did_document,
            did_resolution_metadata=resolution_metadata,
        )

    async def properties(self) -> Optional[Dict[str, Any]]:
        properties: Dict[str, Any] = {
            "pattern": self.pattern.pattern,
            "resolveUri": self.resolve_uri,
        }
        if self.properties_uri is None:
            return properties

        properties["propertiesUri"] = self.properties_uri
        try:
            async with self._session.get(
                self.properties_uri, headers={hdrs.ACCEPT: "application/json"}
            ) as resp:
                if resp.status != 200:
                    logger.warning(
                        f"Driver properties endpoint {self.properties_uri} returned {resp.status}"
                    )
                    return properties
                properties["driverProperties"] = await resp.json(content_type=None)
        except (ClientError, ValueError) as e:
            sentry_sdk.capture_exception(e)
            logger.warning(f"Cannot load driver properties from {self.properties_uri}: {e}")
        return properties
