"""
Shared test configuration and fixtures for resolver tests.
"""

from typing import List

import pytest

from social.graze.resolver.resolver import LocalResolver
from tests.helpers import StubDriver


@pytest.fixture
def call_log() -> List[str]:
    return []


@pytest.fixture
def example_driver(call_log) -> StubDriver:
    return StubDriver("example", call_log=call_log)


@pytest.fixture
def resolver(example_driver) -> LocalResolver:
    return LocalResolver(drivers=[example_driver])
