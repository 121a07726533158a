"""
Resolution Drivers

This package defines the driver contract consumed by the resolver and ships the
drivers used by the service.

Key Components:
- base.py: Driver and PatternDriver base classes
- http.py: HttpDriver, forwarding to remote uni-resolver style drivers
- atproto.py: Native did:plc and did:web drivers

A driver returns None for DIDs it does not handle. Only failures of a driver that
accepted the DID are raised, as ResolutionException.
"""

from social.graze.resolver.drivers.base import Driver, PatternDriver
from social.graze.resolver.drivers.http import HttpDriver
from social.graze.resolver.drivers.atproto import DidPlcDriver, DidWebDriver

__all__ = ["Driver", "PatternDriver", "HttpDriver", "DidPlcDriver", "DidWebDriver"]
