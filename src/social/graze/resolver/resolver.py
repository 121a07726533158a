"""
DID Resolution Orchestrator

LocalResolver resolves DIDs with a list of drivers and a list of extensions.
Every call walks the same state machine:

    start -> parsed -> beforeResolve -> dispatched | skipped
          -> completenessChecked -> afterResolve -> done

and leaves it through ``error`` on the first failure. Each call owns its result,
execution state and extension status (a ResolutionCall), so concurrent calls on
one resolver do not interfere as long as the driver and extension lists are not
modified while calls are in flight.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from time import perf_counter
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

from aiohttp import ClientSession
import sentry_sdk

from social.graze.resolver.app.metrics import MetricsClient, NoOpMetricsClient
from social.graze.resolver.did import DID, DIDUrl, InvalidDIDError, did_method, parse_did
from social.graze.resolver.drivers.base import Driver
from social.graze.resolver.errors import ResolutionException
from social.graze.resolver.extensions.base import (
    DEFAULT,
    ExtensionStage,
    ExtensionStatus,
    ResolverExtension,
    record_extension_stage,
)
from social.graze.resolver.result import (
    CompletenessCheck,
    ResolveResult,
    document_present,
)

if TYPE_CHECKING:
    from social.graze.resolver.app.config import Settings

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=Driver)


class ResolutionState(str, Enum):
    start = "start"
    parsed = "parsed"
    before_resolve = "beforeResolve"
    dispatched = "dispatched"
    skipped = "skipped"
    completeness_checked = "completenessChecked"
    after_resolve = "afterResolve"
    done = "done"
    error = "error"


def _millis(seconds: float) -> int:
    return int(round(seconds * 1000))


@dataclass(eq=False)
class ResolutionCall:
    """State owned by a single resolve call.

    Created when the call starts and dropped when it returns or fails.
    """

    did_string: str
    resolution_options: Mapping[str, Any]
    execution_state: Dict[str, Any]
    resolve_result: ResolveResult = field(default_factory=ResolveResult)
    extension_status: ExtensionStatus = DEFAULT
    did: Optional[DID] = None
    did_url: Optional[DIDUrl] = None
    state: ResolutionState = ResolutionState.start
    started: float = field(default_factory=perf_counter)

    def transition(self, state: ResolutionState, **fields: Any) -> None:
        self.state = state
        extra = {"did": self.did_string, "resolution_state": state.value}
        extra.update({f"resolution_{k}": v for k, v in fields.items()})
        logger.debug(f"Resolution of {self.did_string}: {state.value}", extra=extra)


@dataclass
class StageReport:
    """Outcome of running the extensions of one stage."""

    stage: ExtensionStage
    executed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    inapplicable: List[str] = field(default_factory=list)


class LocalResolver:
    """
    Resolves DIDs with locally registered drivers and extensions.

    Args:
        drivers: Drivers in priority order. None means the resolver is not
            configured and every operation fails with ``misconfigured``.
        extensions: Extensions in execution order; each runs in the stage it
            is tagged with.
        completeness_check: Predicate deciding whether a result is a valid
            success. Defaults to "the result has a DID document".
        metrics_client: Metrics sink, no-op by default.
    """

    def __init__(
        self,
        drivers: Optional[List[Driver]] = None,
        extensions: Optional[List[ResolverExtension]] = None,
        completeness_check: CompletenessCheck = document_present,
        metrics_client: Optional[MetricsClient] = None,
    ) -> None:
        self.drivers = drivers
        self.extensions: List[ResolverExtension] = list(extensions or [])
        self.completeness_check = completeness_check
        self.metrics_client: MetricsClient = metrics_client or NoOpMetricsClient()

    @classmethod
    def from_config_file(
        cls, file_path: str, session: ClientSession, **kwargs: Any
    ) -> "LocalResolver":
        from social.graze.resolver.configuration import load_config

        return cls(drivers=load_config(file_path).build_drivers(session), **kwargs)

    @classmethod
    def from_settings(
        cls, settings: "Settings", session: ClientSession, **kwargs: Any
    ) -> "LocalResolver":
        from social.graze.resolver.configuration import configure_resolver

        return configure_resolver(cls(drivers=[], **kwargs), settings, session)

    def _require_drivers(self) -> List[Driver]:
        if self.drivers is None:
            raise ResolutionException.misconfigured()
        return self.drivers

    async def resolve(
        self,
        did_string: str,
        resolution_options: Optional[Mapping[str, Any]] = None,
        initial_execution_state: Optional[Mapping[str, Any]] = None,
    ) -> ResolveResult:
        """
        Resolve a DID string.

        Args:
            did_string: The DID to resolve
            resolution_options: Options passed to drivers and extensions
            initial_execution_state: Entries copied into the execution state of
                this call before any extension runs

        Returns:
            ResolveResult: The complete result, with ``duration``,
            ``driverDuration``, ``did`` and ``didUrl`` in its resolution metadata

        Raises:
            ResolutionException: On any failure; no partial result is returned
        """
        self._require_drivers()

        call = ResolutionCall(
            did_string=did_string,
            resolution_options=MappingProxyType(dict(resolution_options or {})),
            execution_state=dict(initial_execution_state or {}),
        )
        logger.debug(
            f"resolve({did_string}) with options: {dict(call.resolution_options)}"
        )

        try:
            resolve_result = await self._resolve(call)
        except ResolutionException as e:
            call.transition(ResolutionState.error, error=e.error)
            self.metrics_client.increment(
                "resolver.resolve.count", 1, tag_dict={"status": e.error}
            )
            raise
        finally:
            self.metrics_client.timer(
                "resolver.resolve.time", perf_counter() - call.started
            )

        self.metrics_client.increment(
            "resolver.resolve.count", 1, tag_dict={"status": "ok"}
        )
        return resolve_result

    async def _resolve(self, call: ResolutionCall) -> ResolveResult:
        try:
            did = parse_did(call.did_string)
        except InvalidDIDError as e:
            logger.warning(str(e))
            raise ResolutionException.invalid_did(str(e)) from e
        call.did = did
        call.did_url = DIDUrl.from_did(did)
        call.transition(ResolutionState.parsed)

        report = await self.execute_extensions(ExtensionStage.before_resolve, call)
        call.transition(
            ResolutionState.before_resolve,
            executed=report.executed,
            skipped=report.skipped,
        )

        if not call.extension_status.skip_resolve:
            logger.info(f"Resolving DID: {did}")

            driver_start = perf_counter()
            driver_result = await self.resolve_with_drivers(did, call.resolution_options)
            driver_duration = perf_counter() - driver_start
            call.resolve_result.resolution_metadata["driverDuration"] = _millis(
                driver_duration
            )

            if driver_result is None:
                logger.info(f"Method not supported: {did.method}")
                raise ResolutionException.method_not_supported(did.method)

            call.resolve_result.merge(driver_result)
            call.transition(ResolutionState.dispatched)
        else:
            call.transition(ResolutionState.skipped)

        if not self.completeness_check(call.resolve_result):
            logger.info(f"Resolve result is incomplete: {call.resolve_result!r}")
            raise ResolutionException.not_found(call.did_string)
        call.transition(ResolutionState.completeness_checked)

        report = await self.execute_extensions(ExtensionStage.after_resolve, call)
        call.transition(
            ResolutionState.after_resolve,
            executed=report.executed,
            skipped=report.skipped,
        )

        resolution_metadata = call.resolve_result.resolution_metadata
        resolution_metadata["duration"] = _millis(perf_counter() - call.started)
        resolution_metadata["did"] = did.to_map()
        resolution_metadata["didUrl"] = call.did_url.to_map()

        call.transition(ResolutionState.done)
        logger.info(f"Final resolve result: {call.resolve_result!r}")
        return call.resolve_result

    async def resolve_with_drivers(
        self, did: DID, resolution_options: Mapping[str, Any]
    ) -> Optional[ResolveResult]:
        """
        Resolve a DID with the first driver that accepts it.

        Drivers are tried in registration order and the first non-None result
        wins. The winning driver's pattern and backend address are added to the
        result's resolution metadata unless the driver already set them.

        Returns:
            The driver's result, or None when no driver accepted the DID

        Raises:
            ResolutionException: When the accepting driver failed
        """
        driver_resolve_result: Optional[ResolveResult] = None
        used_driver: Optional[Driver] = None

        for driver in self._require_drivers():
            logger.debug(f"Attempting to resolve {did} with driver {driver.name}")

            driver_start = perf_counter()
            try:
                driver_resolve_result = await driver.resolve(did, resolution_options)
            except ResolutionException:
                raise
            except Exception as e:
                sentry_sdk.capture_exception(e)
                raise ResolutionException.resolution_failed(
                    f"Driver {driver.name} failed to resolve {did}: {type(e).__name__}: {e}"
                ) from e

            if driver_resolve_result is not None:
                used_driver = driver
                self.metrics_client.timer(
                    "resolver.driver.time",
                    perf_counter() - driver_start,
                    tag_dict={"driver": driver.name},
                )
                break

        if driver_resolve_result is None or used_driver is None:
            return None

        pattern = getattr(used_driver, "pattern", None)
        resolve_uri = getattr(used_driver, "resolve_uri", None)
        if pattern is not None and resolve_uri is not None:
            resolution_metadata = driver_resolve_result.resolution_metadata
            resolution_metadata.setdefault("pattern", pattern.pattern)
            resolution_metadata.setdefault("driverUrl", resolve_uri)
            logger.debug(
                f"Resolved {did} with driver {used_driver.name} and pattern {pattern.pattern}"
            )
        else:
            logger.debug(f"Resolved {did} with driver {used_driver.name}")

        return driver_resolve_result

    def extensions_for(self, stage: ExtensionStage) -> List[ResolverExtension]:
        return [e for e in self.extensions if e.stage == stage]

    async def execute_extensions(
        self, stage: ExtensionStage, call: ResolutionCall
    ) -> StageReport:
        """
        Run the extensions of one stage in registration order.

        Once the accumulated status asks to skip the stage, the remaining
        extensions are reported as skipped without being invoked. An extension
        returning None is reported as inapplicable and leaves the status as is.
        """
        extensions = self.extensions_for(stage)
        report = StageReport(stage=stage)
        logger.debug(
            f"EXTENSIONS ({stage.value}), TRYING: {[e.name for e in extensions]}"
        )

        for resolver_extension in extensions:
            if call.extension_status.skip(stage):
                report.skipped.append(resolver_extension.name)
                continue

            before = self._snapshot(call) if logger.isEnabledFor(logging.DEBUG) else None

            try:
                returned_status = await resolver_extension.apply(
                    call.did,
                    call.resolution_options,
                    call.resolve_result,
                    call.execution_state,
                    self,
                )
            except ResolutionException:
                raise
            except Exception as e:
                sentry_sdk.capture_exception(e)
                raise ResolutionException.extension_error(
                    resolver_extension.name, stage.value, e
                ) from e

            if returned_status is not None and not isinstance(
                returned_status, ExtensionStatus
            ):
                raise ResolutionException.extension_error(
                    resolver_extension.name,
                    stage.value,
                    TypeError(
                        f"expected ExtensionStatus or None, got {type(returned_status).__name__}"
                    ),
                )

            call.extension_status = call.extension_status | returned_status
            if returned_status is None:
                report.inapplicable.append(resolver_extension.name)
                continue

            if returned_status.resolution_options is not None:
                call.resolution_options = MappingProxyType(
                    dict(returned_status.resolution_options)
                )

            if before is not None:
                self._log_changes(stage, resolver_extension, before, self._snapshot(call))

            record_extension_stage(call.execution_state, stage, resolver_extension)
            report.executed.append(resolver_extension.name)

        logger.debug(
            f"EXTENSIONS ({stage.value}), EXECUTED: {report.executed}, "
            f"SKIPPED: {report.skipped}, INAPPLICABLE: {report.inapplicable}"
        )
        return report

    @staticmethod
    def _snapshot(call: ResolutionCall) -> Tuple[Dict[str, Any], Dict[str, Any], Dict[str, Any]]:
        return (
            dict(call.resolution_options),
            call.resolve_result.model_dump(by_alias=True),
            dict(call.execution_state),
        )

    @staticmethod
    def _log_changes(
        stage: ExtensionStage,
        resolver_extension: ResolverExtension,
        before: Tuple[Dict[str, Any], Dict[str, Any], Dict[str, Any]],
        after: Tuple[Dict[str, Any], Dict[str, Any], Dict[str, Any]],
    ) -> None:
        options, result, state = (
            "(unchanged)" if b == a else a for b, a in zip(before, after)
        )
        logger.debug(
            f"Executed extension ({stage.value}) {resolver_extension.name} with "
            f"resolution options {options} and resolve result {result} "
            f"and execution state {state}"
        )

    async def properties(self) -> Dict[str, Dict[str, Any]]:
        """Properties of every driver, keyed by driver pattern or position."""
        properties: Dict[str, Dict[str, Any]] = {}
        for i, driver in enumerate(self._require_drivers()):
            logger.debug(f"Loading properties for driver {driver.name}")
            properties[self._driver_key(driver, i)] = await driver.properties() or {}
        logger.debug(f"Loaded properties: {properties}")
        return properties

    async def traits(self) -> Dict[str, Dict[str, Any]]:
        """Traits of every driver, keyed by driver pattern or position."""
        traits: Dict[str, Dict[str, Any]] = {}
        for i, driver in enumerate(self._require_drivers()):
            logger.debug(f"Loading traits for driver {driver.name}")
            traits[self._driver_key(driver, i)] = await driver.traits() or {}
        logger.debug(f"Loaded traits: {traits}")
        return traits

    async def test_identifiers(self) -> Dict[str, List[str]]:
        """Example DIDs declared by the drivers, grouped by DID method."""
        test_identifiers: Dict[str, List[str]] = {}
        for driver in self._require_drivers():
            logger.debug(f"Loading test identifiers for driver {driver.name}")
            for identifier in await driver.test_identifiers() or []:
                try:
                    method = did_method(identifier)
                except InvalidDIDError as e:
                    logger.warning(f"Ignoring test identifier of driver {driver.name}: {e}")
                    continue
                test_identifiers.setdefault(method, []).append(identifier)
        logger.debug(f"Loaded test identifiers: {test_identifiers}")
        return test_identifiers

    async def methods(self) -> List[str]:
        """Supported DID methods, inferred from the drivers' test identifiers."""
        methods = list(await self.test_identifiers())
        logger.debug(f"Loaded methods: {methods}")
        return methods

    def get_driver(self, driver_class: Type[D]) -> Optional[D]:
        for driver in self._require_drivers():
            if isinstance(driver, driver_class):
                return driver
        return None

    @staticmethod
    def _driver_key(driver: Driver, index: int) -> str:
        pattern = getattr(driver, "pattern", None)
        if pattern is not None:
            return pattern.pattern
        return f"driver-{index}"
