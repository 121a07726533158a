import json
import logging
from typing import Any, Dict

from aiohttp import hdrs, web

from social.graze.resolver.app.config import HealthGaugeAppKey, ResolverAppKey
from social.graze.resolver.errors import ErrorCode, ResolutionException
from social.graze.resolver.result import (
    DID_LD_JSON_MEDIA_TYPE,
    RESOLVE_RESULT_MEDIA_TYPE,
    ResolveResult,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorCode.invalid_did.value: 400,
    ErrorCode.not_found.value: 404,
    ErrorCode.representation_not_supported.value: 406,
    ErrorCode.method_not_supported.value: 501,
}

# Failures that indicate a broken driver, extension or deployment rather than a
# bad request; these count against service health.
UNHEALTHY_ERRORS = {
    ErrorCode.internal_error.value,
    ErrorCode.extension_error.value,
    ErrorCode.misconfigured.value,
}


def status_for_error(error: str) -> int:
    return ERROR_STATUS.get(error, 500)


def wants_resolve_result(accept: str) -> bool:
    return "https://w3id.org/did-resolution" in accept.replace(" ", "").lower()


def _json_response(payload: Any, content_type: str, status: int = 200) -> web.Response:
    return web.Response(
        text=json.dumps(payload),
        status=status,
        headers={hdrs.CONTENT_TYPE: content_type},
    )


async def _error_response(request: web.Request, e: ResolutionException) -> web.Response:
    if e.error in UNHEALTHY_ERRORS:
        await request.app[HealthGaugeAppKey].womp()
    return _json_response(
        e.to_resolve_result().to_json_dict(),
        RESOLVE_RESULT_MEDIA_TYPE,
        status=status_for_error(e.error),
    )


async def handle_resolve(request: web.Request):
    """
    GET /1.0/identifiers/{identifier}

    Query parameters are passed to the resolver as resolution options. Clients
    asking for the DID resolution result media type receive the complete result,
    everyone else receives the DID document.
    """
    resolver = request.app[ResolverAppKey]
    identifier = request.match_info["identifier"]
    accept = request.headers.get(hdrs.ACCEPT, "")

    resolution_options: Dict[str, Any] = dict(request.query.items())
    if accept and accept != "*/*":
        resolution_options.setdefault("accept", accept)

    try:
        resolve_result: ResolveResult = await resolver.resolve(identifier, resolution_options)
    except ResolutionException as e:
        logger.info(f"Resolution of {identifier} failed: {e.error}: {e.message}")
        return await _error_response(request, e)

    status = 410 if resolve_result.document_metadata.get("deactivated") is True else 200

    if wants_resolve_result(accept):
        return _json_response(
            resolve_result.to_json_dict(), RESOLVE_RESULT_MEDIA_TYPE, status=status
        )

    return _json_response(
        resolve_result.did_document,
        resolve_result.content_type or DID_LD_JSON_MEDIA_TYPE,
        status=status,
    )


async def handle_properties(request: web.Request):
    try:
        return web.json_response(await request.app[ResolverAppKey].properties())
    except ResolutionException as e:
        return await _error_response(request, e)


async def handle_methods(request: web.Request):
    try:
        return web.json_response(await request.app[ResolverAppKey].methods())
    except ResolutionException as e:
        return await _error_response(request, e)


async def handle_test_identifiers(request: web.Request):
    try:
        return web.json_response(await request.app[ResolverAppKey].test_identifiers())
    except ResolutionException as e:
        return await _error_response(request, e)


async def handle_traits(request: web.Request):
    try:
        return web.json_response(await request.app[ResolverAppKey].traits())
    except ResolutionException as e:
        return await _error_response(request, e)
