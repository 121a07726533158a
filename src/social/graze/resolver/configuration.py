"""
Driver configuration loading.

Reads the uni-resolver style driver configuration file:

    {
      "drivers": [
        {
          "pattern": "^(did:example:.+)$",
          "url": "http://driver-did-example:8080/1.0/identifiers/",
          "propertiesEndpoint": "true",
          "testIdentifiers": ["did:example:123"],
          "traits": {"updatable": false}
        }
      ]
    }

and wires drivers and extensions into a LocalResolver from the service settings.
"""

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from aiohttp import ClientSession
from pydantic import BaseModel, ConfigDict, Field, field_validator

from social.graze.resolver.drivers.atproto import DidPlcDriver, DidWebDriver
from social.graze.resolver.drivers.base import Driver
from social.graze.resolver.drivers.http import HttpDriver
from social.graze.resolver.extensions.handle import AtprotoHandleVerificationExtension

if TYPE_CHECKING:
    from social.graze.resolver.app.config import Settings
    from social.graze.resolver.resolver import LocalResolver

logger = logging.getLogger(__name__)


class DriverConfig(BaseModel):
    """Configuration of one remote HTTP driver."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    pattern: str
    url: str
    properties_endpoint: bool = Field(default=False, alias="propertiesEndpoint")
    properties_uri: Optional[str] = Field(default=None, alias="propertiesUri")
    test_identifiers: List[str] = Field(default_factory=list, alias="testIdentifiers")
    traits: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"pattern is not a valid regular expression: {e}") from e
        return v

    def resolved_properties_uri(self) -> Optional[str]:
        """Explicit properties URI, or one derived from the driver URL.

        A driver URL ending in ``1.0/identifiers/`` has its properties at
        ``1.0/properties``.
        """
        if self.properties_uri is not None:
            return self.properties_uri
        if not self.properties_endpoint:
            return None
        if "1.0/identifiers/" in self.url:
            return self.url.replace("1.0/identifiers/", "1.0/properties")
        return self.url.rstrip("/") + "/properties"

    def build_driver(self, session: ClientSession) -> HttpDriver:
        return HttpDriver(
            session,
            pattern=self.pattern,
            resolve_uri=self.url,
            properties_uri=self.resolved_properties_uri(),
            test_identifiers=self.test_identifiers,
            traits=self.traits,
        )


class ResolverConfig(BaseModel):
    """Contents of a driver configuration file."""

    model_config = ConfigDict(extra="ignore")

    drivers: List[DriverConfig] = Field(default_factory=list)

    def build_drivers(self, session: ClientSession) -> List[Driver]:
        return [driver_config.build_driver(session) for driver_config in self.drivers]


def load_config(file_path: str) -> ResolverConfig:
    """Load a driver configuration file.

    Raises:
        OSError: If the file cannot be read
        pydantic.ValidationError: If the file content is not a valid configuration
    """
    logger.info(f"Loading driver configuration from {file_path}")
    config = ResolverConfig.model_validate_json(Path(file_path).read_text())
    logger.info(f"Loaded {len(config.drivers)} driver(s) from {file_path}")
    return config


def configure_resolver(
    resolver: "LocalResolver", settings: "Settings", session: ClientSession
) -> "LocalResolver":
    """
    Register the drivers and extensions selected by the settings.

    Drivers from the configuration file come first, followed by the native
    AT Protocol drivers when enabled, so configured drivers take priority.
    """
    drivers: List[Driver] = []
    if settings.config_file:
        drivers.extend(load_config(settings.config_file).build_drivers(session))
    if settings.atproto_drivers:
        drivers.append(DidPlcDriver(session, plc_hostname=settings.plc_hostname))
        drivers.append(DidWebDriver(session))
    resolver.drivers = drivers

    if settings.verify_handles:
        resolver.extensions.append(AtprotoHandleVerificationExtension(session))

    logger.info(
        f"Configured resolver with drivers {[d.name for d in drivers]} "
        f"and extensions {[e.name for e in resolver.extensions]}"
    )
    return resolver
