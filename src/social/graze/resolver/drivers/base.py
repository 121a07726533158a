from abc import ABC, abstractmethod
import re
from typing import Any, Dict, List, Mapping, Optional, Pattern, Union

from social.graze.resolver.did import DID
from social.graze.resolver.result import ResolveResult


class Driver(ABC):
    """
    Resolution backend for one or more DID methods.

    ``resolve`` returns a result when the driver handles the DID and None when
    the DID is not applicable to it. Backend failures are raised, they are never
    reported as None.

    A driver may declare a matching ``pattern`` and a backend address
    (``resolve_uri``). When both are present the resolver copies them into the
    resolution metadata of results produced by the driver, and the pattern is
    used as the driver's key in property and trait listings.
    """

    pattern: Optional[Pattern[str]] = None
    resolve_uri: Optional[str] = None

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def resolve(
        self, did: DID, resolution_options: Mapping[str, Any]
    ) -> Optional[ResolveResult]:
        pass

    async def properties(self) -> Optional[Dict[str, Any]]:
        return None

    async def traits(self) -> Optional[Dict[str, Any]]:
        return None

    async def test_identifiers(self) -> Optional[List[str]]:
        return None


class PatternDriver(Driver):
    """Driver that accepts every DID matching a regular expression."""

    pattern: Pattern[str]

    def __init__(
        self,
        pattern: Union[str, Pattern[str]],
        resolve_uri: Optional[str] = None,
        test_identifiers: Optional[List[str]] = None,
        traits: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.resolve_uri = resolve_uri
        self._test_identifiers = list(test_identifiers or [])
        self._traits = dict(traits or {})

    def match(self, did: DID) -> Optional[re.Match[str]]:
        return self.pattern.match(did.did_string)

    def identifier(self, did: DID) -> Optional[str]:
        """Return the identifier to send to the backend, or None if the DID does not match.

        The first capture group of the pattern is used when the pattern has one.
        """
        match = self.match(did)
        if match is None:
            return None
        if match.re.groups > 0 and match.group(1) is not None:
            return match.group(1)
        return did.did_string

    async def traits(self) -> Optional[Dict[str, Any]]:
        return dict(self._traits)

    async def test_identifiers(self) -> Optional[List[str]]:
        return list(self._test_identifiers)

    def __repr__(self) -> str:
        return f"<{self.name} pattern={self.pattern.pattern!r} resolve_uri={self.resolve_uri!r}>"
