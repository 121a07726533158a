import pytest

from social.graze.resolver.did import parse_did
from social.graze.resolver.extensions.base import (
    DEFAULT,
    EXTENSION_STAGES_STATE_KEY,
    SKIP_AFTER_RESOLVE,
    SKIP_BEFORE_RESOLVE,
    SKIP_RESOLVE,
    AfterResolveExtension,
    BeforeResolveExtension,
    ExtensionStage,
    ExtensionStatus,
    FunctionExtension,
    executed_extensions,
    extension,
    record_extension_stage,
)
from social.graze.resolver.result import ResolveResult


def test_status_or_combines_flags():
    combined = SKIP_BEFORE_RESOLVE | SKIP_AFTER_RESOLVE

    assert combined.skip_before_resolve
    assert not combined.skip_resolve
    assert combined.skip_after_resolve
    assert (DEFAULT | DEFAULT) == DEFAULT
    assert (SKIP_RESOLVE | DEFAULT).skip_resolve


def test_status_or_never_clears_flags():
    status = SKIP_RESOLVE
    for other in [DEFAULT, None, SKIP_BEFORE_RESOLVE]:
        status = status | other
    assert status.skip_resolve
    assert status.skip_before_resolve


def test_status_or_with_none_keeps_flags():
    assert (SKIP_AFTER_RESOLVE | None) == SKIP_AFTER_RESOLVE


def test_status_or_drops_options():
    status = DEFAULT | ExtensionStatus(resolution_options={"accept": "x"})
    assert status.resolution_options is None


def test_status_skip_by_stage():
    assert SKIP_BEFORE_RESOLVE.skip(ExtensionStage.before_resolve)
    assert not SKIP_BEFORE_RESOLVE.skip(ExtensionStage.after_resolve)
    assert SKIP_AFTER_RESOLVE.skip(ExtensionStage.after_resolve)
    assert not SKIP_RESOLVE.skip(ExtensionStage.before_resolve)


def test_stage_values():
    assert ExtensionStage.before_resolve.value == "beforeResolve"
    assert ExtensionStage.after_resolve.value == "afterResolve"


def test_subclass_stage_tags():
    class Before(BeforeResolveExtension):
        async def apply(self, did, options, result, state, resolver):
            return DEFAULT

    class After(AfterResolveExtension):
        async def apply(self, did, options, result, state, resolver):
            return None

    assert Before().stage == ExtensionStage.before_resolve
    assert After().stage == ExtensionStage.after_resolve
    assert Before().name == "Before"
    assert repr(After()) == "<After stage=afterResolve>"


@pytest.mark.asyncio
async def test_extension_decorator():
    @extension(ExtensionStage.after_resolve)
    async def add_source(did, options, result, state, resolver):
        result.document_metadata["source"] = did.method
        return SKIP_AFTER_RESOLVE

    assert isinstance(add_source, FunctionExtension)
    assert add_source.stage == ExtensionStage.after_resolve
    assert add_source.name == "add_source"

    result = ResolveResult()
    status = await add_source.apply(
        parse_did("did:example:123"), {}, result, {}, None  # type: ignore
    )

    assert status == SKIP_AFTER_RESOLVE
    assert result.did_document_metadata == {"source": "example"}


def test_record_extension_stage():
    @extension(ExtensionStage.before_resolve)
    async def first(did, options, result, state, resolver):
        return DEFAULT

    @extension(ExtensionStage.before_resolve)
    async def second(did, options, result, state, resolver):
        return DEFAULT

    state = {}
    record_extension_stage(state, ExtensionStage.before_resolve, first)
    record_extension_stage(state, ExtensionStage.before_resolve, second)

    assert state == {EXTENSION_STAGES_STATE_KEY: {"beforeResolve": ["first", "second"]}}
    assert executed_extensions(state, ExtensionStage.before_resolve) == [
        "first",
        "second",
    ]
    assert executed_extensions(state, ExtensionStage.after_resolve) == []
    assert executed_extensions({}, ExtensionStage.before_resolve) == []
