"""DID resolution result model and completeness predicates."""

from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

RESOLVE_RESULT_MEDIA_TYPE = 'application/ld+json;profile="https://w3id.org/did-resolution"'
"""Media type of a complete DID resolution result (document plus metadata)."""

DID_LD_JSON_MEDIA_TYPE = "application/did+ld+json"
DID_JSON_MEDIA_TYPE = "application/did+json"

DID_DOCUMENT_MEDIA_TYPES = (
    DID_LD_JSON_MEDIA_TYPE,
    DID_JSON_MEDIA_TYPE,
    "application/ld+json",
    "application/json",
)


class ResolveResult(BaseModel):
    """
    Result of a DID resolution call.

    The result has three parts:
    - did_document: The method specific DID document, opaque to the resolver
    - did_resolution_metadata: Facts about the resolution process (timings,
      identifiers, the driver that was used, errors)
    - did_document_metadata: Facts about the document content

    The model serializes with the camelCase keys used on the wire
    (didDocument, didResolutionMetadata, didDocumentMetadata) and accepts
    either spelling on input.
    """

    model_config = ConfigDict(populate_by_name=True)

    did_document: Optional[Any] = Field(default=None, alias="didDocument")
    did_resolution_metadata: Optional[Dict[str, Any]] = Field(
        default_factory=dict, alias="didResolutionMetadata"
    )
    did_document_metadata: Optional[Dict[str, Any]] = Field(
        default_factory=dict, alias="didDocumentMetadata"
    )

    @property
    def content_type(self) -> Optional[str]:
        return (self.did_resolution_metadata or {}).get("contentType")

    @property
    def error(self) -> Optional[str]:
        return (self.did_resolution_metadata or {}).get("error")

    def merge(self, other: "ResolveResult") -> None:
        """Merge another result into this one.

        The other document replaces this one and the other metadata entries are
        added to (and take precedence over) the entries already present.
        """
        self.did_document = other.did_document
        if other.did_resolution_metadata:
            self.resolution_metadata.update(other.did_resolution_metadata)
        if other.did_document_metadata:
            self.document_metadata.update(other.did_document_metadata)

    @property
    def resolution_metadata(self) -> Dict[str, Any]:
        if self.did_resolution_metadata is None:
            self.did_resolution_metadata = {}
        return self.did_resolution_metadata

    @property
    def document_metadata(self) -> Dict[str, Any]:
        if self.did_document_metadata is None:
            self.did_document_metadata = {}
        return self.did_document_metadata

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


CompletenessCheck = Callable[[ResolveResult], bool]


def document_present(result: ResolveResult) -> bool:
    """Default completeness check: a result is complete when it has a document."""
    return result.did_document is not None


def strict_completeness(result: ResolveResult) -> bool:
    """Completeness check that also requires both metadata parts.

    The document must be present, the resolution metadata must be non-empty and
    the document metadata must not be null.
    """
    return (
        result.did_document is not None
        and bool(result.did_resolution_metadata)
        and result.did_document_metadata is not None
    )
