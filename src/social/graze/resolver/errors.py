from enum import Enum
from typing import Any, Dict, Optional, Union

from social.graze.resolver.result import ResolveResult


class ErrorCode(str, Enum):
    """Machine readable resolution error codes.

    The values are the error strings placed in ``didResolutionMetadata.error``.
    """

    invalid_did = "invalidDid"
    method_not_supported = "methodNotSupported"
    not_found = "notFound"
    representation_not_supported = "representationNotSupported"
    internal_error = "internalError"
    extension_error = "extensionError"
    misconfigured = "misconfigured"


class ResolutionException(Exception):
    """
    Exception raised when a resolution call fails.

    Every failure mode of the resolver surfaces as this exception. The ``error``
    attribute holds a machine readable code (usually an ErrorCode value, but codes
    reported by remote drivers are passed through unchanged) and ``message`` holds
    a human readable description.

    Static constructors are provided for the failure modes raised by the resolver
    itself.
    """

    def __init__(self, error: Union[ErrorCode, str], message: str) -> None:
        super().__init__(message)
        self.error = error.value if isinstance(error, ErrorCode) else error
        self.message = message

    def __repr__(self) -> str:
        return f"ResolutionException(error={self.error!r}, message={self.message!r})"

    @staticmethod
    def invalid_did(msg: str) -> "ResolutionException":
        """The identifier string failed structural parsing."""
        return ResolutionException(ErrorCode.invalid_did, msg)

    @staticmethod
    def method_not_supported(method: str) -> "ResolutionException":
        """No registered driver accepted the identifier."""
        return ResolutionException(
            ErrorCode.method_not_supported, f"Method not supported: {method}"
        )

    @staticmethod
    def not_found(did_string: str) -> "ResolutionException":
        """The resolve result failed the completeness check."""
        return ResolutionException(
            ErrorCode.not_found, f"No resolve result for {did_string}"
        )

    @staticmethod
    def resolution_failed(msg: str) -> "ResolutionException":
        """A driver that accepted the identifier failed internally."""
        return ResolutionException(ErrorCode.internal_error, msg)

    @staticmethod
    def extension_error(
        extension: str, stage: str, e: BaseException
    ) -> "ResolutionException":
        """An extension raised while it was being applied."""
        return ResolutionException(
            ErrorCode.extension_error,
            f"Extension {extension} failed during {stage}: {type(e).__name__}: {e}",
        )

    @staticmethod
    def misconfigured() -> "ResolutionException":
        """The resolver has no driver list."""
        return ResolutionException(ErrorCode.misconfigured, "No drivers configured.")

    def to_error_metadata(self) -> Dict[str, Any]:
        return {"error": self.error, "errorMessage": self.message}

    def to_resolve_result(self, content_type: Optional[str] = None) -> ResolveResult:
        """Render the failure as a resolve result carrying only error metadata."""
        resolution_metadata = self.to_error_metadata()
        if content_type is not None:
            resolution_metadata["contentType"] = content_type
        return ResolveResult(did_resolution_metadata=resolution_metadata)
