from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
)

from social.graze.resolver.did import DID
from social.graze.resolver.result import ResolveResult

if TYPE_CHECKING:
    from social.graze.resolver.resolver import LocalResolver

EXTENSION_STAGES_STATE_KEY = "resolverExtensionStages"
"""Execution state key under which executed extensions are recorded per stage."""


class ExtensionStage(str, Enum):
    """Stage of the resolution call an extension is attached to."""

    before_resolve = "beforeResolve"
    after_resolve = "afterResolve"


@dataclass(frozen=True)
class ExtensionStatus:
    """
    Signal returned by an extension telling the resolver which work to skip.

    Statuses are combined with ``|``: the flags of the result are the union of
    the flags of both operands, so the accumulated status of a call never loses
    a flag once an extension has set it.

    An extension may also hand back a replacement ``resolution_options``
    mapping; the resolver uses it for every later extension and for dispatch
    within the same call. Options are not part of the combined status.
    """

    skip_before_resolve: bool = False
    skip_resolve: bool = False
    skip_after_resolve: bool = False
    resolution_options: Optional[Mapping[str, Any]] = None

    def skip(self, stage: ExtensionStage) -> bool:
        if stage == ExtensionStage.before_resolve:
            return self.skip_before_resolve
        if stage == ExtensionStage.after_resolve:
            return self.skip_after_resolve
        return False

    def __or__(self, other: Optional["ExtensionStatus"]) -> "ExtensionStatus":
        if other is None:
            return ExtensionStatus(
                skip_before_resolve=self.skip_before_resolve,
                skip_resolve=self.skip_resolve,
                skip_after_resolve=self.skip_after_resolve,
            )
        if not isinstance(other, ExtensionStatus):
            return NotImplemented
        return ExtensionStatus(
            skip_before_resolve=self.skip_before_resolve or other.skip_before_resolve,
            skip_resolve=self.skip_resolve or other.skip_resolve,
            skip_after_resolve=self.skip_after_resolve or other.skip_after_resolve,
        )


DEFAULT = ExtensionStatus()
SKIP_BEFORE_RESOLVE = ExtensionStatus(skip_before_resolve=True)
SKIP_RESOLVE = ExtensionStatus(skip_resolve=True)
SKIP_AFTER_RESOLVE = ExtensionStatus(skip_after_resolve=True)


class ResolverExtension(ABC):
    """
    Hook invoked by the resolver before or after driver dispatch.

    Each extension is tagged with exactly one stage through the ``stage`` class
    attribute. ``apply`` may read and mutate the in-flight result and the
    execution state, and returns an ExtensionStatus, or None when the extension
    does not apply to the request.
    """

    stage: ClassVar[ExtensionStage]

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def apply(
        self,
        did: DID,
        resolution_options: Mapping[str, Any],
        resolve_result: ResolveResult,
        execution_state: Dict[str, Any],
        resolver: "LocalResolver",
    ) -> Optional[ExtensionStatus]:
        pass

    def __repr__(self) -> str:
        return f"<{self.name} stage={self.stage.value}>"


class BeforeResolveExtension(ResolverExtension):
    stage = ExtensionStage.before_resolve


class AfterResolveExtension(ResolverExtension):
    stage = ExtensionStage.after_resolve


ExtensionFunc = Callable[
    [DID, Mapping[str, Any], ResolveResult, Dict[str, Any], "LocalResolver"],
    Awaitable[Optional[ExtensionStatus]],
]


class FunctionExtension(ResolverExtension):
    """Extension backed by a plain async function."""

    def __init__(self, stage: ExtensionStage, func: ExtensionFunc) -> None:
        self.stage = stage  # type: ignore[misc]
        self._func = func

    @property
    def name(self) -> str:
        return getattr(self._func, "__name__", type(self).__name__)

    async def apply(
        self,
        did: DID,
        resolution_options: Mapping[str, Any],
        resolve_result: ResolveResult,
        execution_state: Dict[str, Any],
        resolver: "LocalResolver",
    ) -> Optional[ExtensionStatus]:
        return await self._func(
            did, resolution_options, resolve_result, execution_state, resolver
        )


def extension(stage: ExtensionStage) -> Callable[[ExtensionFunc], FunctionExtension]:
    """Decorator registering an async function as an extension for a stage.

    Example:
        @extension(ExtensionStage.after_resolve)
        async def add_source(did, options, result, state, resolver):
            result.document_metadata["source"] = "example"
            return DEFAULT
    """

    def decorator(func: ExtensionFunc) -> FunctionExtension:
        return FunctionExtension(stage, func)

    return decorator


def record_extension_stage(
    execution_state: Dict[str, Any],
    stage: ExtensionStage,
    resolver_extension: ResolverExtension,
) -> None:
    stages: Dict[str, List[str]] = execution_state.setdefault(
        EXTENSION_STAGES_STATE_KEY, {}
    )
    stages.setdefault(stage.value, []).append(resolver_extension.name)


def executed_extensions(
    execution_state: Mapping[str, Any], stage: ExtensionStage
) -> List[str]:
    return list(execution_state.get(EXTENSION_STAGES_STATE_KEY, {}).get(stage.value, []))
