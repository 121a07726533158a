"""Decentralized identifier parsing.

Parses DIDs and DID URLs following the W3C DID syntax. A DID has the form
``did:<method>:<method-specific-id>`` and a DID URL extends it with an optional
path, query and fragment.
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

from pydantic import BaseModel, ConfigDict

DID_SCHEME = "did"

_METHOD_NAME = r"[a-z0-9]+"
_ID_CHAR = r"(?:[A-Za-z0-9._-]|%[0-9A-Fa-f]{2})"
_METHOD_SPECIFIC_ID = rf"(?:{_ID_CHAR}*:)*{_ID_CHAR}+"

DID_PATTERN = re.compile(
    rf"{DID_SCHEME}:(?P<method>{_METHOD_NAME}):(?P<method_specific_id>{_METHOD_SPECIFIC_ID})"
)

DID_URL_PATTERN = re.compile(
    rf"(?P<did>{DID_SCHEME}:{_METHOD_NAME}:{_METHOD_SPECIFIC_ID})"
    r"(?P<path>/[^?#\s]*)?"
    r"(?:\?(?P<query>[^#\s]*))?"
    r"(?:#(?P<fragment>\S*))?"
)


class InvalidDIDError(ValueError):
    """Raised when a string is not a syntactically valid DID or DID URL."""

    def __init__(self, value: Any, reason: str) -> None:
        super().__init__(f"Invalid DID {value!r}: {reason}")
        self.value = value
        self.reason = reason


class DID(BaseModel):
    """Parsed decentralized identifier.

    Two DIDs are equal when their normalized string forms are equal.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    method_specific_id: str
    scheme: str = DID_SCHEME

    @property
    def did_string(self) -> str:
        return f"{self.scheme}:{self.method}:{self.method_specific_id}"

    def to_map(self) -> Dict[str, Any]:
        return {
            "didString": self.did_string,
            "method": self.method,
            "methodSpecificId": self.method_specific_id,
        }

    def __str__(self) -> str:
        return self.did_string


class DIDUrl(BaseModel):
    """DID URL: a DID with an optional path, query and fragment."""

    model_config = ConfigDict(frozen=True)

    did: DID
    path: Optional[str] = None
    query: Optional[str] = None
    fragment: Optional[str] = None

    @staticmethod
    def from_did(did: DID) -> "DIDUrl":
        return DIDUrl(did=did)

    @property
    def did_url_string(self) -> str:
        value = self.did.did_string
        if self.path:
            value += self.path
        if self.query is not None:
            value += f"?{self.query}"
        if self.fragment is not None:
            value += f"#{self.fragment}"
        return value

    @property
    def parameters(self) -> Dict[str, List[str]]:
        if not self.query:
            return {}
        return parse_qs(self.query, keep_blank_values=True)

    def to_map(self) -> Dict[str, Any]:
        return {
            "didUrlString": self.did_url_string,
            "did": self.did.to_map(),
            "path": self.path,
            "query": self.query,
            "fragment": self.fragment,
            "parameters": self.parameters,
        }

    def __str__(self) -> str:
        return self.did_url_string


def parse_did(value: str) -> DID:
    """Parse a DID string.

    Args:
        value: Candidate DID string, e.g. ``did:plc:ewvi7nxzyoun6zhxrhs64oiz``

    Returns:
        The parsed DID

    Raises:
        InvalidDIDError: If the value is not a string or not a valid DID
    """
    if not isinstance(value, str):
        raise InvalidDIDError(value, "not a string")
    match = DID_PATTERN.fullmatch(value)
    if match is None:
        if not value.startswith(f"{DID_SCHEME}:"):
            raise InvalidDIDError(value, f"does not start with '{DID_SCHEME}:'")
        raise InvalidDIDError(value, "does not match the DID syntax")
    return DID(
        method=match.group("method"),
        method_specific_id=match.group("method_specific_id"),
    )


def parse_did_url(value: str) -> DIDUrl:
    """Parse a DID URL string into its DID, path, query and fragment.

    Raises:
        InvalidDIDError: If the value is not a valid DID URL
    """
    if not isinstance(value, str):
        raise InvalidDIDError(value, "not a string")
    match = DID_URL_PATTERN.fullmatch(value)
    if match is None:
        raise InvalidDIDError(value, "does not match the DID URL syntax")
    return DIDUrl(
        did=parse_did(match.group("did")),
        path=match.group("path") or None,
        query=match.group("query"),
        fragment=match.group("fragment"),
    )


def did_method(value: str) -> str:
    """Return the method name of a DID string."""
    return parse_did(value).method
