"""
Graze DID Resolver

This package implements a decentralized identifier (DID) resolver that dispatches
resolution requests to a set of pluggable drivers and runs a two-phase extension
pipeline around each dispatch.

Key Components:
- did: DID and DID URL parsing
- result: The resolve result aggregate and completeness predicates
- errors: The typed resolution exception and its error codes
- resolver: The resolution orchestrator (LocalResolver)
- drivers: Driver contract, the generic HTTP driver and native AT Protocol drivers
- extensions: Extension contract, extension status and bundled extensions
- app: Web application layer, configuration and metrics

Resolution Flow:
1. Parse the identifier string into a DID
2. Run the before-resolve extensions
3. Dispatch to the first driver that accepts the DID
4. Check that the result is complete
5. Run the after-resolve extensions
6. Attach timing and identifier metadata and return the result

Every failure aborts the call and is raised as a ResolutionException carrying a
machine readable error code.
"""

from social.graze.resolver.did import DID, DIDUrl, InvalidDIDError, parse_did, parse_did_url
from social.graze.resolver.errors import ErrorCode, ResolutionException
from social.graze.resolver.result import ResolveResult, document_present, strict_completeness
from social.graze.resolver.resolver import LocalResolver

__all__ = [
    "DID",
    "DIDUrl",
    "ErrorCode",
    "InvalidDIDError",
    "LocalResolver",
    "ResolutionException",
    "ResolveResult",
    "document_present",
    "parse_did",
    "parse_did_url",
    "strict_completeness",
]
