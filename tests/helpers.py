"""
Test doubles shared by the resolver tests.

Provides stub drivers and extensions that record their invocations, so tests can
assert on dispatch order, short-circuiting and skip propagation without any
network access.
"""

from typing import Any, Dict, List, Mapping, Optional


from social.graze.resolver.did import DID
from social.graze.resolver.drivers.base import Driver
from social.graze.resolver.extensions.base import (
    DEFAULT,
    ExtensionStage,
    ExtensionStatus,
    ResolverExtension,
)
from social.graze.resolver.resolver import LocalResolver
from social.graze.resolver.result import ResolveResult


class StubDriver(Driver):
    """Driver that handles a single DID method and records every call."""

    def __init__(
        self,
        method: str,
        call_log: Optional[List[str]] = None,
        document: Any = "default",
        resolution_metadata: Optional[Dict[str, Any]] = None,
        document_metadata: Optional[Dict[str, Any]] = None,
        raises: Optional[BaseException] = None,
        label: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
        traits: Optional[Dict[str, Any]] = None,
        test_identifiers: Optional[List[str]] = None,
    ) -> None:
        self.method = method
        self.call_log = call_log if call_log is not None else []
        self.document = document
        self.resolution_metadata = resolution_metadata or {}
        self.document_metadata = document_metadata or {}
        self.raises = raises
        self.label = label or f"stub-{method}"
        self._properties = properties
        self._traits = traits
        self._test_identifiers = test_identifiers
        self.received_options: List[Mapping[str, Any]] = []

    async def resolve(
        self, did: DID, resolution_options: Mapping[str, Any]
    ) -> Optional[ResolveResult]:
        self.call_log.append(self.label)
        self.received_options.append(resolution_options)
        if did.method != self.method:
            return None
        if self.raises is not None:
            raise self.raises
        document = self.document
        if document == "default":
            document = {"id": did.did_string}
        return ResolveResult(
            did_document=document,
            did_resolution_metadata=dict(self.resolution_metadata),
            did_document_metadata=dict(self.document_metadata),
        )

    async def properties(self) -> Optional[Dict[str, Any]]:
        return self._properties

    async def traits(self) -> Optional[Dict[str, Any]]:
        return self._traits

    async def test_identifiers(self) -> Optional[List[str]]:
        return self._test_identifiers


class RecordingExtension(ResolverExtension):
    """Extension returning a fixed status and recording its invocations."""

    def __init__(
        self,
        stage: ExtensionStage,
        label: str,
        call_log: List[str],
        status: Optional[ExtensionStatus] = DEFAULT,
        document: Any = None,
        raises: Optional[BaseException] = None,
    ) -> None:
        self.stage = stage  # type: ignore[misc]
        self.label = label
        self.call_log = call_log
        self.status = status
        self.document = document
        self.raises = raises

    @property
    def name(self) -> str:
        return self.label

    async def apply(
        self,
        did: DID,
        resolution_options: Mapping[str, Any],
        resolve_result: ResolveResult,
        execution_state: Dict[str, Any],
        resolver: LocalResolver,
    ) -> Optional[ExtensionStatus]:
        self.call_log.append(self.label)
        if self.raises is not None:
            raise self.raises
        if self.document is not None:
            resolve_result.did_document = self.document
        return self.status


