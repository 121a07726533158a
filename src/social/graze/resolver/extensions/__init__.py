"""
Resolver Extensions

Extensions are hooks the resolver runs before and after driver dispatch. Each
extension is tagged with one stage and runs in registration order; the status it
returns can ask the resolver to skip the remaining extensions of a stage or the
driver dispatch itself.

Key Components:
- base.py: ExtensionStage, ExtensionStatus, ResolverExtension and the
  extension() decorator for function based extensions
- handle.py: AT Protocol handle verification (after resolve)
"""

from social.graze.resolver.extensions.base import (
    DEFAULT,
    SKIP_AFTER_RESOLVE,
    SKIP_BEFORE_RESOLVE,
    SKIP_RESOLVE,
    AfterResolveExtension,
    BeforeResolveExtension,
    ExtensionStage,
    ExtensionStatus,
    FunctionExtension,
    ResolverExtension,
    extension,
)

__all__ = [
    "DEFAULT",
    "SKIP_AFTER_RESOLVE",
    "SKIP_BEFORE_RESOLVE",
    "SKIP_RESOLVE",
    "AfterResolveExtension",
    "BeforeResolveExtension",
    "ExtensionStage",
    "ExtensionStatus",
    "FunctionExtension",
    "ResolverExtension",
    "extension",
]
